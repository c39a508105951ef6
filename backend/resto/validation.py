from __future__ import annotations
from datetime import datetime, timedelta
from resto.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, Float, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401  (re-exported)


# Maximum money amount: 9,999,999,999.99 (999,999,999,999 cents)
# Prevents overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999_999

EMAIL_MAX_LENGTH = 255


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: enum-like fields and their allowed values
    - min_values: numeric lower bounds (inclusive)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, tuple] = field(default_factory=dict)
    min_values: dict[str, float] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def flatten_payload(payload: dict, nested: set[str]) -> tuple[dict, dict[str, str]]:
    """
    Flatten nested objects into column keys.

    {"customer": {"name": "Ana", "address": {"city": "X"}}} becomes
    {"customer_name": "Ana", "customer_address_city": "X"}. Only top-level
    keys listed in ``nested`` are flattened. Returns the flat payload and a
    map of column key -> dotted path for error reporting.
    """
    flat: dict = {}
    paths: dict[str, str] = {}

    def _walk(prefix_key: str, prefix_path: str, value: Any) -> None:
        if isinstance(value, dict):
            for k, v in value.items():
                _walk(f"{prefix_key}_{k}", f"{prefix_path}.{k}", v)
        else:
            flat[prefix_key] = value
            paths[prefix_key] = prefix_path

    for k, v in payload.items():
        if k in nested:
            if v is None:
                continue
            if not isinstance(v, dict):
                raise ValidationError.single(k, f"{k} must be an object")
            _walk(k, k, v)
        else:
            flat[k] = v
            paths[k] = k
    return flat, paths


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValueError("must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValueError("must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValueError("must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValueError("must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            if value.is_integer():
                return int(value)
            raise ValueError("must be an integer, not a decimal")
        raise ValueError("must be an integer")

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValueError("must be a number")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValueError("must be a number")
        raise ValueError("must be a number")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ValueError("must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValueError("must be an ISO-8601 datetime")
            if dt is None:
                raise ValueError("must be an ISO-8601 datetime")
            return dt
        raise ValueError("must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValueError("must be a string")
        return str(value).strip()

    # Default: leave as-is (JSON columns)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
    paths: dict[str, str] | None = None,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields), choices and lower bounds
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    All problems are collected and raised together as one ValidationError
    whose ``errors`` list holds {field, message} entries.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    paths = paths or {}
    errors: list[dict] = []

    def _err(key: str, message: str) -> None:
        name = paths.get(key, key)
        errors.append({"field": name, "message": f"{name} {message}"})

    if not partial:
        for f in sorted(policy.required_on_create):
            if f not in payload:
                _err(f, "is required")

    cols = _columns_by_key(model)

    patch: dict = {}

    for k, raw in payload.items():
        # Reject unknown / non-writable fields
        if k not in policy.writable_fields or k not in cols:
            _err(k, "is not an allowed field")
            continue

        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                _err(k, "cannot be null")
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValueError as e:
            _err(k, str(e))
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                _err(k, "cannot be blank")
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                _err(k, f"exceeds max length {col.type.length}")
                continue

        allowed = policy.choices.get(k)
        if allowed is not None and val not in allowed:
            _err(k, f"must be one of: {', '.join(str(a) for a in allowed)}")
            continue

        minimum = policy.min_values.get(k)
        if minimum is not None and isinstance(val, (int, float)) and val < minimum:
            _err(k, f"must be >= {minimum:g}")
            continue

        if k.endswith("_cents") and isinstance(val, int) and val > MAX_AMOUNT_CENTS:
            _err(k, f"cannot exceed {MAX_AMOUNT_CENTS}")
            continue

        patch[k] = val

    if errors:
        raise ValidationError("Invalid data", errors=errors)

    return patch


def require_email(value: Any, field_name: str = "email") -> str:
    if not isinstance(value, str):
        raise ValidationError.single(field_name, f"{field_name} must be a valid email")
    email = value.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or "." not in domain or len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError.single(field_name, f"{field_name} must be a valid email")
    return email


def parse_positive_int_arg(args, name: str, default: int, *, maximum: int | None = None) -> int:
    """Parse a query-string integer (page/limit) with bounds."""
    raw = args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError.single(name, f"{name} must be a positive integer")
    if value < 1 or (maximum is not None and value > maximum):
        bound = f" between 1 and {maximum}" if maximum else " >= 1"
        raise ValidationError.single(name, f"{name} must be{bound}")
    return value


def parse_choice_arg(args, name: str, choices: tuple) -> str | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    if raw not in choices:
        raise ValidationError.single(name, f"{name} must be one of: {', '.join(choices)}")
    return raw


def parse_date_arg(args, name: str, *, required: bool = False) -> datetime | None:
    raw = args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError.single(name, f"{name} is required")
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError.single(name, f"{name} must be an ISO-8601 date")


def enforce_rules_inventory_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "sku" in patch and patch["sku"]:
        patch["sku"] = patch["sku"].upper()
    if "supplier_email" in patch and patch["supplier_email"]:
        patch["supplier_email"] = patch["supplier_email"].lower()
    lo, hi = patch.get("min_quantity"), patch.get("max_quantity")
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError.single("min_quantity", "min_quantity cannot exceed max_quantity")


def enforce_rules_order(patch: dict) -> None:
    if patch.get("customer_email"):
        patch["customer_email"] = require_email(patch["customer_email"], "customer.email")


def parse_date_range(
    args, start_name: str = "start", end_name: str = "end", *, required: bool = True
) -> tuple[datetime | None, datetime | None]:
    """
    [start, end] window from the query string.

    A date-only end ("2024-01-31") covers that whole day. With required=False
    either bound may be omitted and comes back as None.
    """
    start = parse_date_arg(args, start_name, required=required)
    end = parse_date_arg(args, end_name, required=required)
    if end is not None and len(args.get(end_name, "").strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    if start is not None and end is not None and end < start:
        raise ValidationError.single(end_name, f"{end_name} must not be before {start_name}")
    return start, end


def parse_bool_arg(args, name: str) -> bool | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value not in {"true", "false"}:
        raise ValidationError.single(name, f"{name} must be true or false")
    return value == "true"


def require_json_object(data) -> dict:
    """Request bodies must be JSON objects; a missing body is treated as {}."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data
