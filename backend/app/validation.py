from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import as_utc_naive, parse_iso_datetime


# Maximum price: 99,999,999.99 (9,999,999,999 cents)
MAX_PRICE_CENTS = 9_999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - server_owned_fields: fields clients may echo back but the server sets
      itself (acting user ids, status); silently dropped
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    server_owned_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _as_int(key: str, value: Any) -> int:
    # bool is an int subclass; money and ids never arrive as true/false
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{key} must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isdigit():
            return int(text)
    raise ValidationError(f"{key} must be a whole number")


def _as_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{key} must be a number")


def _as_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc_naive(value)
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(f"{key} must be an ISO-8601 datetime")


def _coerce_value(col, value: Any):
    coltype = col.type
    if isinstance(coltype, Integer):
        return _as_int(col.key, value)
    if isinstance(coltype, Float):
        return _as_float(col.key, value)
    if isinstance(coltype, DateTime):
        return _as_datetime(col.key, value)
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {k: v for k, v in payload.items() if k not in policy.server_owned_fields}

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_status_value(status: Any, allowed: set[str], *, field_name: str = "status") -> str:
    """Reject anything outside a status enum with a 400 before touching the store."""
    if not isinstance(status, str) or status not in allowed:
        raise ValidationError(
            f"Invalid {field_name} '{status}'. Must be one of: {', '.join(sorted(allowed))}"
        )
    return status


def _check_price(patch: dict, key: str, *, allow_zero: bool = True) -> None:
    if key not in patch or patch[key] is None:
        return
    price = patch[key]
    if price < 0 or (price == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_batch(patch: dict) -> None:
    weight = patch.get("estimated_weight")
    if weight is not None and weight < 0:
        raise ValidationError("estimated_weight must be >= 0")


def enforce_rules_auction(patch: dict, *, now: datetime) -> None:
    """
    Auction window and price rules:
    - start_time strictly in the future
    - end_time strictly after start_time
    - reserve (when given) not below the base price
    """
    _check_price(patch, "base_price_cents")
    _check_price(patch, "reserve_price_cents", allow_zero=False)

    start = patch.get("start_time")
    end = patch.get("end_time")
    if start is not None and start <= now:
        raise ValidationError("start_time must be later than the current time")
    if start is not None and end is not None and end <= start:
        raise ValidationError("end_time must be later than start_time")

    reserve = patch.get("reserve_price_cents")
    base = patch.get("base_price_cents") or 0
    if reserve is not None and reserve < base:
        raise ValidationError("reserve_price_cents cannot be below base_price_cents")


def enforce_rules_bid(patch: dict) -> None:
    if "bid_amount_cents" not in patch or patch["bid_amount_cents"] is None:
        raise ValidationError("bid_amount_cents is required")
    _check_price(patch, "bid_amount_cents", allow_zero=False)


def enforce_rules_appointment(patch: dict) -> None:
    count = patch.get("document_count")
    if count is not None and count < 1:
        raise ValidationError("document_count must be >= 1")


def enforce_rules_service_item(patch: dict) -> None:
    _check_price(patch, "price_cents")


def enforce_rules_destruction_task(patch: dict) -> None:
    weight = patch.get("estimated_weight")
    if weight is not None and weight < 0:
        raise ValidationError("estimated_weight must be >= 0")


def enforce_rules_destruction_record(patch: dict) -> None:
    weight = patch.get("actual_weight")
    if weight is not None and weight < 0:
        raise ValidationError("actual_weight must be >= 0")
    count = patch.get("item_count")
    if count is not None and count < 0:
        raise ValidationError("item_count must be >= 0")


def parse_int_arg(args, *names: str) -> int | None:
    """First present query arg among names, as an int. Aliases let camelCase callers through."""
    for name in names:
        raw = args.get(name)
        if raw is None or raw == "":
            continue
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer")
    return None


def parse_bool_arg(args, name: str) -> bool:
    return str(args.get(name, "")).strip().lower() in ("1", "true", "yes")


def amount_to_cents(key: str, value: Any) -> int:
    """Decimal currency ("1500.50", 1500.5, 1500) to integer cents."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a decimal amount")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{key} must be a decimal amount")
    if not amount.is_finite():
        raise ValidationError(f"{key} must be a decimal amount")
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValidationError(f"{key} cannot have more than two decimal places")
    return int(cents)


def apply_field_aliases(payload: Any, aliases: dict[str, str], *, money: dict[str, str] | None = None) -> Any:
    """
    Rename camelCase body keys to column names before validate_payload.

    - aliases: {"auctionId": "auction_id"} plain renames
    - money: {"bidAmount": "bid_amount_cents"} currency amounts converted to cents
    When both spellings are sent, the column name wins.
    Anything that is not a dict is returned as-is for validate_payload to reject.
    """
    if not isinstance(payload, dict):
        return payload
    money = money or {}
    out: dict = {}
    for key, value in payload.items():
        if key in money:
            target = money[key]
            if target not in payload:
                out[target] = None if value is None else amount_to_cents(key, value)
        elif key in aliases:
            target = aliases[key]
            if target not in payload:
                out[target] = value
        else:
            out[key] = value
    return out
