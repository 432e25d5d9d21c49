"""
Pricing tests.

Verifies:
- Snapshot defaults (base = catalog price, final = base)
- Percent and fixed discounts, clamped at zero
- Explicit totals win over the computed sum
- Invalid quantities, discounts and unknown products are rejected
"""

from decimal import Decimal

import pytest

from vendor_backend.services.pricing_service import (
    LineInput,
    ProductSnapshot,
    price_line,
    price_order,
)
from vendor_backend.validation import ValidationError

P1 = ProductSnapshot(id=1, name="Oak Table", price=Decimal("100.00"))
P2 = ProductSnapshot(id=2, name="Pine Chair", price=Decimal("19.99"))
CATALOG = {1: P1, 2: P2}


class TestPriceLine:

    def test_percent_discount_example(self):
        line = price_line(LineInput(product_id=1, quantity=3, discount_percent=Decimal("10")), P1)

        assert line.unit_price_base == Decimal("100.00")
        assert line.unit_price_final == Decimal("100.00")
        assert line.discount_percent == Decimal("10.00")
        assert line.line_total == Decimal("270.00")
        assert line.product_name == "Oak Table"

    def test_final_price_defaults_to_base_override(self):
        line = price_line(LineInput(product_id=1, quantity=2, unit_price_base=Decimal("80")), P1)
        assert line.unit_price_base == Decimal("80.00")
        assert line.unit_price_final == Decimal("80.00")
        assert line.line_total == Decimal("160.00")

    def test_amount_and_percent_discount_combine(self):
        line = price_line(
            LineInput(
                product_id=1,
                quantity=2,
                unit_price_final=Decimal("90"),
                discount_amount=Decimal("15"),
                discount_percent=Decimal("5"),
            ),
            P1,
        )
        # 180 - 15 - 9
        assert line.line_total == Decimal("156.00")

    def test_discount_larger_than_line_clamps_to_zero(self):
        line = price_line(LineInput(product_id=2, quantity=1, discount_amount=Decimal("50")), P2)
        assert line.line_total == Decimal("0.00")

    def test_rounds_half_up_to_cents(self):
        line = price_line(LineInput(product_id=2, quantity=3, discount_percent=Decimal("12.5")), P2)
        # 59.97 * 0.875 = 52.47375
        assert line.line_total == Decimal("52.47")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_rejects_non_positive_quantity(self, quantity):
        with pytest.raises(ValidationError):
            price_line(LineInput(product_id=1, quantity=quantity), P1)

    @pytest.mark.parametrize("percent", ["-1", "100.01"])
    def test_rejects_percent_out_of_range(self, percent):
        with pytest.raises(ValidationError):
            price_line(LineInput(product_id=1, quantity=1, discount_percent=Decimal(percent)), P1)

    def test_rejects_negative_price_override(self):
        with pytest.raises(ValidationError):
            price_line(LineInput(product_id=1, quantity=1, unit_price_final=Decimal("-5")), P1)


class TestPriceOrder:

    def test_total_is_sum_of_line_totals(self):
        result = price_order(
            [
                LineInput(product_id=1, quantity=3, discount_percent=Decimal("10")),
                LineInput(product_id=2, quantity=1),
            ],
            CATALOG,
        )
        assert result.total == Decimal("289.99")
        assert result.computed_total == Decimal("289.99")
        assert not result.total_overridden

    def test_explicit_total_wins(self):
        result = price_order([LineInput(product_id=1, quantity=1)], CATALOG, Decimal("42.5"))
        assert result.total == Decimal("42.50")
        assert result.computed_total == Decimal("100.00")
        assert result.total_overridden

    def test_no_lines_totals_zero(self):
        result = price_order([], CATALOG)
        assert result.lines == []
        assert result.total == Decimal("0.00")

    def test_unknown_product_rejected(self):
        with pytest.raises(ValidationError, match="Product 99"):
            price_order([LineInput(product_id=99, quantity=1)], CATALOG)

    def test_negative_explicit_total_rejected(self):
        with pytest.raises(ValidationError):
            price_order([LineInput(product_id=1, quantity=1)], CATALOG, Decimal("-1"))


class TestLineInputFromPayload:

    def test_parses_camel_case_and_numeric_strings(self):
        line = LineInput.from_payload(
            {"productId": "1", "quantity": 2, "unitPriceFinal": "12.50", "discountPercent": 5},
        )
        assert line.product_id == 1
        assert line.quantity == 2
        assert line.unit_price_final == Decimal("12.50")
        assert line.discount_percent == Decimal("5")
        assert line.unit_price_base is None

    def test_missing_quantity(self):
        with pytest.raises(ValidationError, match=r"items\[3\].quantity"):
            LineInput.from_payload({"productId": 1}, 3)

    def test_rejects_fractional_quantity(self):
        with pytest.raises(ValidationError):
            LineInput.from_payload({"productId": 1, "quantity": 1.5})
