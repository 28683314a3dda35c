from __future__ import annotations

import threading
import uuid
from typing import Any

import bcrypt

# bcrypt refuses longer passwords.
PASSWORD_MAX_BYTES = 72

_users: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()


class DuplicateUser(ValueError):
    pass


class UserNotFound(LookupError):
    pass


class InvalidPassword(ValueError):
    pass


def _hash_password(plain: str) -> str:
    if not plain:
        raise InvalidPassword("Password must not be empty")
    if len(plain.encode()) > PASSWORD_MAX_BYTES:
        raise InvalidPassword(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


def _public(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": record["id"],
        "username": record["username"],
        "display_name": record["display_name"],
        "is_super_admin": record["is_super_admin"],
    }


def create_user(
    username: str,
    password: str,
    display_name: str | None = None,
    email: str | None = None,
    is_super_admin: bool = False,
) -> dict[str, Any]:
    """Register a user. Usernames and emails are unique."""
    with _lock:
        for record in _users.values():
            if record["username"] == username:
                raise DuplicateUser(f"Username '{username}' is already taken")
            if email and record["email"] == email:
                raise DuplicateUser(f"Email '{email}' is already registered")
        record = {
            "id": str(uuid.uuid4()),
            "username": username,
            "display_name": display_name or username,
            "email": email,
            "password_hash": _hash_password(password),
            "is_super_admin": is_super_admin,
        }
        _users[record["id"]] = record
    return _public(record)


def authenticate(login: str, password: str) -> dict[str, Any] | None:
    """Verify credentials by username or email. Returns the public profile or ``None``."""
    for record in list(_users.values()):
        if login in (record["username"], record["email"]):
            if _verify_password(password, record["password_hash"]):
                return _public(record)
            return None
    return None


def get_user(user_id: str) -> dict[str, Any]:
    record = _users.get(user_id)
    if record is None:
        raise UserNotFound(f"User {user_id} not found")
    return _public(record)


def search_users(term: str, exclude_id: str | None = None, limit: int = 20) -> list[dict[str, Any]]:
    needle = term.strip().lower()
    if not needle:
        return []
    matches = [
        _public(r) for r in list(_users.values())
        if r["id"] != exclude_id
        and (needle in r["username"].lower() or needle in r["display_name"].lower())
    ]
    return matches[:limit]


def delete_user(user_id: str) -> None:
    with _lock:
        if _users.pop(user_id, None) is None:
            raise UserNotFound(f"User {user_id} not found")


def _seed_users() -> None:
    """Pre-seed demo users on import."""
    create_user("user", "user123", display_name="Demo User", email="user@example.com")
    create_user("admin", "admin123", display_name="Administrator", email="admin@example.com", is_super_admin=True)


_seed_users()
