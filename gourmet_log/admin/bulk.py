from __future__ import annotations

import io
import json
import logging
from typing import Any

import pandas as pd
from pydantic import BaseModel, Field

from ..auth.users import create_user

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["email", "password", "display_name", "username"]


class RowResult(BaseModel):
    email: str
    status: str
    error: str | None = None


class BulkRegisterResponse(BaseModel):
    message: str = "Bulk registration complete."
    results: list[RowResult] = Field(default_factory=list)
    parse_errors: list[str] = Field(default_factory=list)


class NoValidUsers(ValueError):
    def __init__(self, parse_errors: list[str]) -> None:
        super().__init__("No valid users found in CSV or CSV is empty.")
        self.parse_errors = parse_errors


def parse_user_csv(text: str) -> tuple[list[dict[str, str]], list[str]]:
    """
    Read ``email,password,display_name,username`` rows.

    Rows missing any of the four values are skipped and reported in the
    returned parse errors.
    """
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return [], []
    except pd.errors.ParserError as exc:
        return [], [f"CSV parsing error: {exc}"]

    df = df.rename(columns=lambda c: str(c).strip())
    for col in REQUIRED_COLUMNS:
        if col not in df.columns:
            df[col] = ""

    valid: list[dict[str, str]] = []
    errors: list[str] = []
    for row in df.to_dict(orient="records"):
        cleaned = {k: str(v).strip() for k, v in row.items()}
        if all(cleaned[col] for col in REQUIRED_COLUMNS):
            valid.append({col: cleaned[col] for col in REQUIRED_COLUMNS})
        else:
            errors.append(
                f"Skipping row due to missing data: {json.dumps(cleaned, ensure_ascii=False)}"
            )
    return valid, errors


def bulk_register(text: str) -> BulkRegisterResponse:
    rows, parse_errors = parse_user_csv(text)
    if not rows:
        raise NoValidUsers(parse_errors)

    results: list[RowResult] = []
    for row in rows:
        try:
            create_user(
                row["username"],
                row["password"],
                display_name=row["display_name"],
                email=row["email"],
            )
            results.append(RowResult(email=row["email"], status="success"))
        except ValueError as exc:
            # Duplicate username or email, or an unusable password.
            results.append(RowResult(email=row["email"], status="failed", error=str(exc)))

    logger.info(
        "Bulk registration: %d succeeded, %d failed, %d skipped",
        sum(1 for r in results if r.status == "success"),
        sum(1 for r in results if r.status == "failed"),
        len(parse_errors),
    )
    return BulkRegisterResponse(results=results, parse_errors=parse_errors)
