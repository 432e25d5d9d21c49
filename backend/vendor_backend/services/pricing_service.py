# Overview: Pure pricing for order lines (snapshots, discounts, totals); no database or network access.

"""
Order pricing.

For each requested line:

    unit_base            = override or the product's current price
    unit_final           = override or unit_base
    raw_line             = unit_final * quantity
    discount_from_percent = raw_line * discount_percent / 100
    line_total           = max(0, raw_line - discount_amount - discount_from_percent)

Inputs are quantized to their storage scale (2 decimals) before computing,
so the stored snapshot always satisfies the formula above. The order total
is the sum of line totals unless the caller passes an explicit total, which
is taken verbatim (no check that the two agree).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from ..validation import (
    CENTS,
    ValidationError,
    enforce_money,
    parse_decimal,
    parse_int,
)

HUNDRED = Decimal("100")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _money(value: Decimal, name: str) -> Decimal:
    return quantize_money(enforce_money(value, name))


@dataclass(frozen=True)
class ProductSnapshot:
    """The catalog facts pricing needs; decoupled from the ORM row."""
    id: int
    name: str
    price: Decimal


@dataclass(frozen=True)
class LineInput:
    product_id: int
    quantity: int
    unit_price_base: Decimal | None = None
    unit_price_final: Decimal | None = None
    discount_amount: Decimal | None = None
    discount_percent: Decimal | None = None

    @classmethod
    def from_payload(cls, raw: Any, index: int = 0) -> "LineInput":
        """Parse one camelCase item from a request body."""
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("productId") is None:
            raise ValidationError(f"items[{index}].productId is required")
        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")

        def optional(key: str) -> Decimal | None:
            value = raw.get(key)
            if value is None:
                return None
            return parse_decimal(value, f"items[{index}].{key}")

        return cls(
            product_id=parse_int(raw["productId"], f"items[{index}].productId"),
            quantity=parse_int(raw["quantity"], f"items[{index}].quantity"),
            unit_price_base=optional("unitPriceBase"),
            unit_price_final=optional("unitPriceFinal"),
            discount_amount=optional("discountAmount"),
            discount_percent=optional("discountPercent"),
        )


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    product_name: str
    quantity: int
    unit_price_base: Decimal
    unit_price_final: Decimal
    discount_amount: Decimal
    discount_percent: Decimal
    line_total: Decimal

    def to_columns(self) -> dict:
        """Keyword arguments for an OrderItem row."""
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_base": self.unit_price_base,
            "unit_price_final": self.unit_price_final,
            "discount_amount": self.discount_amount,
            "discount_percent": self.discount_percent,
            "line_total": self.line_total,
        }


@dataclass(frozen=True)
class PricingResult:
    lines: list[PricedLine]
    computed_total: Decimal
    total: Decimal

    @property
    def total_overridden(self) -> bool:
        return self.total != self.computed_total


def price_line(line: LineInput, product: ProductSnapshot) -> PricedLine:
    if line.quantity <= 0:
        raise ValidationError(f"quantity must be > 0 for product {line.product_id}")

    unit_base = _money(
        line.unit_price_base if line.unit_price_base is not None else product.price,
        "unitPriceBase",
    )
    unit_final = _money(
        line.unit_price_final if line.unit_price_final is not None else unit_base,
        "unitPriceFinal",
    )
    discount_amount = _money(
        line.discount_amount if line.discount_amount is not None else ZERO,
        "discountAmount",
    )
    discount_percent = line.discount_percent if line.discount_percent is not None else ZERO
    if not ZERO <= discount_percent <= HUNDRED:
        raise ValidationError("discountPercent must be between 0 and 100")
    discount_percent = quantize_money(discount_percent)

    raw_line = unit_final * line.quantity
    discount_from_percent = raw_line * discount_percent / HUNDRED
    line_total = max(ZERO, quantize_money(raw_line - discount_amount - discount_from_percent))
    enforce_money(line_total, "lineTotal")

    return PricedLine(
        product_id=product.id,
        product_name=product.name,
        quantity=line.quantity,
        unit_price_base=unit_base,
        unit_price_final=unit_final,
        discount_amount=discount_amount,
        discount_percent=discount_percent,
        line_total=line_total,
    )


def price_order(
    lines: Iterable[LineInput],
    catalog: Mapping[int, ProductSnapshot],
    total: Decimal | None = None,
) -> PricingResult:
    """
    Price every line against the catalog.

    Raises ValidationError if a line references a product missing from the
    catalog or carries invalid numbers.
    """
    priced: list[PricedLine] = []
    for line in lines:
        product = catalog.get(line.product_id)
        if product is None:
            raise ValidationError(f"Product {line.product_id} does not exist")
        priced.append(price_line(line, product))

    computed = quantize_money(sum((p.line_total for p in priced), ZERO))

    if total is None:
        final_total = computed
    else:
        final_total = quantize_money(enforce_money(total, "total"))

    return PricingResult(lines=priced, computed_total=computed, total=final_total)
