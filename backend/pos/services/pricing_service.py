# Overview: Pure pricing engine; computes cart figures without touching the database.

"""
Pricing Engine

Rules (authoritative, shared by the cart preview and checkout):
- Amounts are integer cents. Line totals are exact (unit_price_cents * quantity)
  and the subtotal is their exact sum; nothing is rounded per line.
- The discount is capped at the subtotal, so the discounted subtotal is never negative.
- Tax is computed on the DISCOUNTED subtotal, never on the gross subtotal.
- Percentage discounts and tax are each rounded once, half-up, to whole cents.
- total = discounted_subtotal + tax, exactly.

Inputs are assumed validated (non-negative quantities, non-negative discount
value); see validation.parse_discount / parse_quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol, Union

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_AMOUNT = "amount"

_HUNDRED = Decimal(100)
_BPS = Decimal(10_000)


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class PricedLine(Protocol):
    unit_price_cents: int
    quantity: int


@dataclass(frozen=True)
class LineInput:
    unit_price_cents: int
    quantity: int


@dataclass(frozen=True)
class PercentageDiscount:
    percent: Decimal
    kind: str = DISCOUNT_PERCENTAGE

    def raw_amount_cents(self, subtotal_cents: int) -> int:
        return round_cents(Decimal(subtotal_cents) * self.percent / _HUNDRED)


@dataclass(frozen=True)
class AmountDiscount:
    amount_cents: int
    kind: str = DISCOUNT_AMOUNT

    def raw_amount_cents(self, subtotal_cents: int) -> int:
        return self.amount_cents


Discount = Union[PercentageDiscount, AmountDiscount]


@dataclass(frozen=True)
class PricingResult:
    subtotal_cents: int
    discount_cents: int
    discounted_subtotal_cents: int
    tax_rate_bps: int
    tax_cents: int
    total_cents: int
    discount_kind: str | None = None

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "discount_kind": self.discount_kind,
            "discounted_subtotal_cents": self.discounted_subtotal_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def subtotal_cents(lines: Iterable[PricedLine]) -> int:
    return sum(line.unit_price_cents * line.quantity for line in lines)


def capped_discount_cents(subtotal: int, discount: Discount | None) -> int:
    """Discount amount clamped to [0, subtotal]."""
    if discount is None:
        return 0
    return max(0, min(discount.raw_amount_cents(subtotal), subtotal))


def tax_cents(taxable_cents: int, tax_rate_bps: int) -> int:
    return round_cents(Decimal(taxable_cents) * Decimal(tax_rate_bps) / _BPS)


def compute_totals(
    lines: Iterable[PricedLine],
    discount: Discount | None,
    tax_rate_bps: int,
) -> PricingResult:
    subtotal = subtotal_cents(lines)
    discount_cents = capped_discount_cents(subtotal, discount)
    discounted = subtotal - discount_cents
    tax = tax_cents(discounted, tax_rate_bps)

    return PricingResult(
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        discounted_subtotal_cents=discounted,
        tax_rate_bps=tax_rate_bps,
        tax_cents=tax,
        total_cents=discounted + tax,
        discount_kind=discount.kind if discount_cents > 0 else None,
    )
