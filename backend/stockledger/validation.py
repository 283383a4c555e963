from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any


# Maximum unit price / quantity accepted from clients.
# Prevents integer overflow in totals and nonsensical input.
MAX_PRICE = 999_999_999
MAX_QUANTITY = 1_000_000

ADD_MODE_PACKAGE = "package"
ADD_MODE_UNIT = "unit"
ADD_MODES = {ADD_MODE_PACKAGE, ADD_MODE_UNIT}


class ValidationError(ValueError):
    """400-level input problem."""


class InsufficientStockError(ValidationError):
    """Sale quantity exceeds the stock currently on hand."""

    def __init__(self, *, requested: int, available: int, unit_label: str):
        self.requested = requested
        self.available = available
        self.unit_label = unit_label
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock: {available} {unit_label} available, "
            f"{requested} requested (short by {self.shortfall})"
        )


class QuotaExceededError(ValidationError):
    """Plan limit reached for the organization."""


def round_half_up(value: Any, places: int = 0):
    """
    Round ties toward +infinity for every sign: 2.5 -> 3, -2.5 -> -2.

    Equivalent to floor(value + half a quantum), the rounding used by the
    dashboards for money and percentages. places=0 returns an int;
    otherwise a float with `places` decimals.
    """
    quantum = Decimal(1).scaleb(-places)
    rounded = (Decimal(str(value)) + quantum / 2).quantize(quantum, rounding=ROUND_FLOOR)
    if places == 0:
        return int(rounded)
    return float(rounded)


def coerce_int(field: str, value: Any) -> int:
    """Strict integer coercion - rejects floats, bools and scientific notation."""
    if value is None:
        raise ValidationError(f"{field} is required")
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_amount(field: str, value: Any) -> Decimal:
    """Parse a monetary amount (int, float or numeric string) into a Decimal."""
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")
    return amount


def validate_quantity(value: Any, field: str = "quantity") -> int:
    quantity = coerce_int(field, value)
    if quantity <= 0:
        raise ValidationError(f"{field} must be > 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    return quantity


@dataclass(frozen=True)
class NewProduct:
    """Normalized product creation input, already converted to base units."""
    name: str
    add_mode: str
    units_per_package: int | None
    unit_label: str
    stock_quantity: int
    purchase_price_per_unit: int
    selling_price_per_unit: int
    alert_threshold: int


def validate_new_product(
    payload: dict | None,
    *,
    default_alert_threshold: int = 10,
    default_unit_label: str = "unit",
) -> NewProduct:
    """
    Validate + normalize a product creation payload.

    Accepted keys:
    - name (required, non-blank)
    - add_mode: "package" or "unit" (default "unit")
    - quantity: packages (package mode) or units (unit mode), int > 0
    - package_size: units per package, int > 0 (package mode only, default 1)
    - purchase_price: price of one package (package mode) or one unit, > 0
    - selling_price: selling price per unit, > 0
    - alert_threshold: int >= 0 (default from config)
    - unit_label: free-text unit name
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValidationError("name cannot be blank")
    if len(name) > 255:
        raise ValidationError("name exceeds max length 255")

    add_mode = str(payload.get("add_mode") or ADD_MODE_UNIT).strip().lower()
    if add_mode not in ADD_MODES:
        raise ValidationError("add_mode must be 'package' or 'unit'")

    quantity = validate_quantity(payload.get("quantity"))

    purchase_price = coerce_amount("purchase_price", payload.get("purchase_price"))
    if purchase_price <= 0:
        raise ValidationError("purchase_price must be > 0")

    selling_price = coerce_amount("selling_price", payload.get("selling_price"))
    if selling_price <= 0:
        raise ValidationError("selling_price must be > 0")

    if add_mode == ADD_MODE_PACKAGE:
        raw_size = payload.get("package_size")
        package_size = 1 if raw_size is None else coerce_int("package_size", raw_size)
        if package_size <= 0:
            raise ValidationError("package_size must be > 0")
        units_per_package = package_size
    else:
        package_size = 1
        units_per_package = None

    raw_threshold = payload.get("alert_threshold")
    if raw_threshold is None:
        alert_threshold = default_alert_threshold
    else:
        alert_threshold = coerce_int("alert_threshold", raw_threshold)
        if alert_threshold < 0:
            raise ValidationError("alert_threshold must be >= 0")

    unit_label = str(payload.get("unit_label") or "").strip() or default_unit_label
    if len(unit_label) > 64:
        raise ValidationError("unit_label exceeds max length 64")

    stock_quantity = quantity * package_size
    if stock_quantity > MAX_QUANTITY:
        raise ValidationError(f"total units cannot exceed {MAX_QUANTITY}")

    return NewProduct(
        name=name,
        add_mode=add_mode,
        units_per_package=units_per_package,
        unit_label=unit_label,
        stock_quantity=stock_quantity,
        purchase_price_per_unit=round_half_up(purchase_price / package_size),
        selling_price_per_unit=round_half_up(selling_price),
        alert_threshold=alert_threshold,
    )


def validate_unit_price(value: Any) -> int | None:
    """Optional unit price for a ledger entry; None means 'resolve from product'."""
    if value is None:
        return None
    price = coerce_amount("unit_price", value)
    if price < 0:
        raise ValidationError("unit_price must be >= 0")
    return round_half_up(price)
