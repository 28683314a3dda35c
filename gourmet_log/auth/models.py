from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """``login`` is a username or an email address."""

    login: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class NewUserRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
