"""Tests for price breakdowns and transaction ids."""

import re
from decimal import Decimal

import pytest

from learninghub.payments.models import generate_transaction_id
from learninghub.payments.pricing import InvalidPriceError, compute_breakdown


DEFAULT_TAX = Decimal(8)


class TestComputeBreakdown:
    def test_discount_then_tax(self) -> None:
        b = compute_breakdown(Decimal("49.99"), Decimal(10), None, DEFAULT_TAX)

        assert b.original_price == Decimal("49.99")
        assert b.discount_amount == Decimal("5.00")
        assert b.price_after_discount == Decimal("44.99")
        assert b.tax_percentage == DEFAULT_TAX
        assert b.tax == Decimal("3.60")
        assert b.total == Decimal("48.59")
        assert b.amount_minor_units == 4859

    def test_course_tax_overrides_default(self) -> None:
        b = compute_breakdown(Decimal(100), None, Decimal(0), DEFAULT_TAX)

        assert b.tax == Decimal("0.00")
        assert b.total == Decimal("100.00")
        assert b.amount_minor_units == 10000

    def test_half_up_rounding(self) -> None:
        b = compute_breakdown(Decimal("0.25"), Decimal(10), Decimal(10), DEFAULT_TAX)

        # 0.025 discount rounds to 0.03; 0.022 tax rounds to 0.02
        assert b.discount_amount == Decimal("0.03")
        assert b.tax == Decimal("0.02")
        assert b.total == Decimal("0.24")

    @pytest.mark.parametrize(
        "price,discount",
        [(Decimal(0), None), (Decimal(10), Decimal(100))],
    )
    def test_nothing_to_charge(self, price: Decimal, discount: Decimal | None) -> None:
        with pytest.raises(InvalidPriceError):
            compute_breakdown(price, discount, None, DEFAULT_TAX)


class TestTransactionId:
    def test_format(self) -> None:
        assert re.fullmatch(r"TXN[0-9A-Z]+\d{4}", generate_transaction_id())

    def test_timestamp_is_base36(self) -> None:
        assert generate_transaction_id(now_ms=0)[:4] == "TXN0"
        assert generate_transaction_id(now_ms=36 * 36 + 35)[:6] == "TXN10Z"

    def test_unique_enough(self) -> None:
        ids = {generate_transaction_id(now_ms=1_700_000_000_000) for _ in range(50)}
        assert len(ids) > 1
