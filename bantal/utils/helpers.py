"""Shared parsing and transaction helpers used by services and blueprints.

parse_date:        lenient — returns None on bad input (query params)
parse_date_input:  strict  — raises ValidationError naming the field
parse_decimal:     strict  — raises ValidationError naming the field
transaction:       commit-or-rollback context for multi-step service writes
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from bantal.core.exceptions import ConflictError, ValidationError
from bantal.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY / DD-MM-YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY and DD-MM-YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    for fmt in ("%d.%m.%Y", "%d-%m-%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except (ValueError, TypeError):
            continue
    return None


def parse_date_input(value, field):
    """Parse a date, raising ValidationError on bad input.

    Empty input returns None; callers decide whether the field is required.
    """
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"{field} must be a valid date (YYYY-MM-DD)",
            details={field: "invalid date"},
        )
    return parsed


def parse_decimal(value, field, *, minimum=None, allow_equal=True):
    """Parse a monetary / percentage value into a Decimal.

    Args:
        value: Raw payload value (str, int, float or Decimal).
        field: Field name used in the error message.
        minimum: Optional lower bound.
        allow_equal: When False, the value must be strictly greater than minimum.

    Returns:
        Decimal, or None when value is None / "".

    Raises:
        ValidationError: Not a number, or out of range.
    """
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"})
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"})
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a number", details={field: "not a number"})
    if minimum is not None:
        too_small = parsed < minimum if allow_equal else parsed <= minimum
        if too_small:
            op = ">=" if allow_equal else ">"
            raise ValidationError(
                f"{field} must be {op} {minimum}",
                details={field: f"must be {op} {minimum}"},
            )
    return parsed


def parse_int(value, field, *, minimum=None):
    """Parse an integer payload value; ValidationError on garbage."""
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: "not an integer"})
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: "not an integer"})
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={field: f"must be >= {minimum}"})
    return parsed


def parse_bool(value):
    """Coerce form-style booleans ("true", "1", "on"); None stays None."""
    if value is None or isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def blank(value) -> bool:
    """True for None, empty or whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())


# ── Database transaction helper ──────────────────────────────────────────────

@contextmanager
def transaction(resource="Record"):
    """Commit the session when the block succeeds; roll back on any error.

    Usage::

        with transaction("MasterDocument"):
            master = MasterDocument(...)
            db.session.add(master)
            handler.create(master, payload)

    IntegrityError → ConflictError (duplicate / constraint violation)
    Anything else  → rolled back and re-raised unchanged
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit (%s): %s", resource, exc.orig)
        raise ConflictError(
            resource, "constraint", None,
            message=f"{resource} violates a uniqueness or reference constraint",
        ) from exc
    except Exception:
        db.session.rollback()
        raise
