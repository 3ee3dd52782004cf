# Overview: Error taxonomy and input validators shared by services and routes.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


class PosError(Exception):
    """Base class for every failure the core reports to its callers."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(PosError, ValueError):
    """400-level input problem. State is unchanged and the caller may retry."""
    status_code = 400


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the stock computed from the ledger."""


class InvalidAmountError(ValidationError):
    """Settlement or credit amount is out of range for the order."""


class MissingCustomerError(ValidationError):
    """Partial and credit settlements need a customer to carry the balance."""


class InvalidStateError(ValidationError):
    """Operation is not allowed in the order's current lifecycle state."""


class NotFoundError(PosError, LookupError):
    status_code = 404


class IntegrityViolation(PosError):
    """409-level rule breach. Rejected outright, never clamped."""
    status_code = 409


class AppendOnlyViolation(IntegrityViolation):
    """Update or delete issued against an append-only collection."""


class AlreadyReversedError(IntegrityViolation):
    """A ledger entry can be corrected exactly once."""


class CreditLimitExceededError(IntegrityViolation):
    """Granting the credit would push the customer's balance past the limit."""


class StoreUnavailableError(PosError):
    """Record store could not be reached. Transient; the core never retries."""
    status_code = 503


def require_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON and CLI input.

    Rejects booleans, floats, decimals in strings and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def require_positive_quantity(quantity: Any, field: str = "quantity") -> int:
    qty = require_int(quantity, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be positive", details={field: qty})
    return qty


def require_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    cents = require_int(value, field)
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'non-negative' if allow_zero else 'positive'}")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} exceeds the maximum of {MAX_PRICE_CENTS}")
    return cents


def clamp_percent(value: Any) -> float:
    """Coerce a discount percent and clamp it into [0, 100]."""
    if isinstance(value, bool):
        raise ValidationError("discount_percent must be a number")
    try:
        pct = float(value)
    except (TypeError, ValueError):
        raise ValidationError("discount_percent must be a number")
    if pct != pct:  # NaN
        raise ValidationError("discount_percent must be a number")
    return min(max(pct, 0.0), 100.0)


def percent_of(amount_cents: int, percent: float) -> int:
    """`amount × percent / 100` in cents, rounded half-up."""
    raw = Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def weighted_average_cents(total_value_cents: int, total_units: int) -> int:
    """Nearest-cent division (half-up) for average unit cost."""
    return (total_value_cents + (total_units // 2)) // total_units
