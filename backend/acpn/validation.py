from __future__ import annotations

import math
from datetime import MAXYEAR, MINYEAR, date, datetime
from typing import Any, Iterable

from flask import current_app

from .errors import BadRequest
from .time_utils import parse_iso_datetime


def require_fields(payload: dict, fields: Iterable[str], message: str | None = None) -> None:
    """
    Reject the payload when any of `fields` is missing, None or blank.

    The error message names the missing fields unless an explicit message
    is supplied (some endpoints have a fixed client-facing wording).
    """
    missing = []
    for field in fields:
        value = payload.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    if missing:
        raise BadRequest(message or f"Missing required fields: {', '.join(missing)}")


def parse_amount(value: Any, field: str = "amount") -> float:
    """
    Coerce a JSON number/string to a float rounded to 2dp.

    Booleans are rejected even though bool is an int subclass.
    """
    if value is None or isinstance(value, bool):
        raise BadRequest(f"{field} must be a number")
    try:
        amount = float(str(value).strip())
    except ValueError:
        raise BadRequest(f"{field} must be a number")
    if not math.isfinite(amount):
        raise BadRequest(f"{field} must be a number")
    return round(amount, 2)


def parse_positive_amount(value: Any, field: str = "amount") -> float:
    amount = parse_amount(value, field)
    if amount <= 0:
        raise BadRequest("Amount must be greater than 0")
    return amount


def parse_datetime_field(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise BadRequest(f"{field} must be an ISO-8601 date")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise BadRequest(f"{field} must be an ISO-8601 date")
    if parsed is None:
        raise BadRequest(f"{field} must be an ISO-8601 date")
    return parsed


def parse_optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    return parse_datetime_field(value, field)


def require_choice(value: Any, choices: Iterable[str], field: str) -> str:
    allowed = list(choices)
    if value not in allowed:
        raise BadRequest(f"Invalid {field}. Must be one of: {', '.join(allowed)}")
    return value


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise BadRequest(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{field} must be an integer")


def parse_year(value: Any, field: str = "year") -> int:
    year = parse_int(value, field)
    if not MINYEAR <= year <= MAXYEAR:
        raise BadRequest(f"{field} must be between {MINYEAR} and {MAXYEAR}")
    return year


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def pagination_args(args) -> tuple[int, int]:
    """Read ?page=&limit= from request args, clamped to configured bounds."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)
    page = args.get("page", 1, type=int) or 1
    limit = args.get("limit", default_limit, type=int) or default_limit
    page = max(page, 1)
    limit = min(max(limit, 1), max_limit)
    return page, limit
