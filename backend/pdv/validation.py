from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_LINE_QUANTITY = 100_000


class LedgerError(ValueError):
    """
    Business-rule rejection.

    Carries a human-readable message plus structured details (invoice,
    variant, available stock...) so the caller can act on it. Never retried.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError):
    """400-level input problem."""


class ConflictError(LedgerError):
    """409-level business rule conflict (e.g., duplicate invoice number)."""
    status_code = 409


class StateError(LedgerError):
    """Referenced record is missing or in the wrong state."""
    status_code = 422


class ResourceError(LedgerError):
    """Not enough of a shared resource (stock) to honor the request."""
    status_code = 409


class InvalidLineItemsError(ValidationError):
    pass


class InvalidDiscountError(ValidationError):
    pass


class ReturnQuantityExceededError(ValidationError):
    pass


class DuplicateInvoiceError(ConflictError):
    pass


class EmployeeNotActiveError(StateError):
    status_code = 403


class PermissionDeniedError(StateError):
    status_code = 403


class VariantNotFoundError(StateError):
    status_code = 404


class SaleNotFoundError(StateError):
    status_code = 404


class OriginalSaleNotFoundError(StateError):
    status_code = 404


class InsufficientStockError(ResourceError):
    pass


def parse_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects booleans, floats, decimals and scientific notation.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={"field": field, "value": result})
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}", details={"field": field, "value": result})
    return result


def _to_decimal(value: Any, field: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
        if not result.is_finite():
            raise ValidationError(f"{field} must be a finite number")
        return result
    raise ValidationError(f"{field} must be a number")


def parse_money_cents(value: Any, field: str) -> int:
    """
    Convert a decimal currency amount (e.g. 19.99) to integer cents.

    Amounts are rounded half-up to the cent. Negative amounts are rejected.
    """
    amount = _to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0", details={"field": field, "value": str(amount)})
    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed amount", details={"field": field})
    return cents


def parse_discount_bps(value: Any, field: str = "desconto_percentual") -> int:
    """
    Convert a discount percentage (0-100, up to two decimals) to basis points.

    Out-of-range values are rejected rather than clamped; the cart clamps
    before it submits.
    """
    try:
        percent = _to_decimal(value, field)
    except ValidationError as e:
        raise InvalidDiscountError(e.message, details={"field": field})
    if percent < 0 or percent > 100:
        raise InvalidDiscountError(
            f"{field} must be between 0 and 100",
            details={"field": field, "value": str(percent)},
        )
    return int((percent * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_choice(value: Any, field: str, choices: tuple[str, ...], *, default: str | None = None) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    normalized = value.strip()
    if normalized not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}",
            details={"field": field, "value": normalized},
        )
    return normalized


def parse_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text
