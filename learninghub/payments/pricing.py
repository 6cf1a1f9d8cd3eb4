"""Server-side price breakdown for a course purchase.

All arithmetic is ``Decimal``; each monetary step is rounded half up to
cents before the next one uses it.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


CENTS = Decimal("0.01")
HUNDRED = Decimal(100)


class InvalidPriceError(ValueError):
    """The course price leaves nothing to charge."""


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    original_price: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    price_after_discount: Decimal
    tax_percentage: Decimal
    tax: Decimal
    total: Decimal

    @property
    def amount_minor_units(self) -> int:
        """Total in cents, as payment processors expect it."""
        return int((self.total * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


def compute_breakdown(
    price: Decimal,
    discount_percentage: Decimal | None,
    tax_percentage: Decimal | None,
    default_tax_percentage: Decimal,
) -> PriceBreakdown:
    """Apply the discount, then tax on the discounted price.

    Raises:
        InvalidPriceError: If the discounted price is zero or negative
    """
    original = to_cents(Decimal(price))
    discount_pct = Decimal(discount_percentage or 0)
    tax_pct = Decimal(
        tax_percentage if tax_percentage is not None else default_tax_percentage
    )

    discount_amount = to_cents(original * discount_pct / HUNDRED)
    after_discount = original - discount_amount
    if after_discount <= 0:
        msg = "Invalid course price configuration"
        raise InvalidPriceError(msg)

    tax = to_cents(after_discount * tax_pct / HUNDRED)
    return PriceBreakdown(
        original_price=original,
        discount_percentage=discount_pct,
        discount_amount=discount_amount,
        price_after_discount=after_discount,
        tax_percentage=tax_pct,
        tax=tax,
        total=after_discount + tax,
    )
