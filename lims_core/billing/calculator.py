# lims_core/billing/calculator.py
"""
Invoice arithmetic.

    subtotal = sum(line totals)
    tax      = max(subtotal - discount, 0) * tax_rate / 100
    total    = subtotal - discount + tax

Money is Decimal, quantized to cents with ROUND_HALF_UP. Line totals are
rounded individually before summing, which keeps the result independent of
item order. The total is not clamped: a discount larger than the subtotal
yields a negative total.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from lims_core.common.exceptions import ValidationError
from lims_core.common.money import ZERO, has_at_most_two_places, quantize, to_decimal

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount: Decimal
    tax_amount: Decimal
    total: Decimal

    @property
    def taxable_base(self) -> Decimal:
        return max(self.subtotal - self.discount, ZERO)


def _price_and_quantity(item) -> tuple[Decimal, Decimal]:
    if isinstance(item, dict):
        price = item.get("unit_price", item.get("price"))
        quantity = item.get("quantity", 1)
    elif hasattr(item, "unit_price"):
        price, quantity = item.unit_price, getattr(item, "quantity", 1)
    else:
        price, quantity = item
    return to_decimal(price, "price"), to_decimal(quantity, "quantity")


class InvoiceCalculator:
    @staticmethod
    def line_total(price, quantity=1) -> Decimal:
        price = to_decimal(price, "price")
        quantity = to_decimal(quantity, "quantity")
        if quantity < 0:
            raise ValidationError("NegativeQuantity", "quantity must be >= 0.", details={"quantity": str(quantity)})
        if price < 0:
            raise ValidationError("NegativePrice", "price must be >= 0.", details={"price": str(price)})
        if not has_at_most_two_places(price):
            raise ValidationError("AmountPrecision", "price has more than 2 decimal places.", details={"price": str(price)})
        return quantize(price * quantity)

    @staticmethod
    def compute(items: Iterable, discount=ZERO, tax_rate=ZERO) -> InvoiceTotals:
        discount = to_decimal(discount, "discount")
        tax_rate = to_decimal(tax_rate, "tax_rate")
        if discount < 0:
            raise ValidationError("NegativeDiscount", "discount must be >= 0.", details={"discount": str(discount)})
        if not has_at_most_two_places(discount):
            raise ValidationError(
                "AmountPrecision", "discount has more than 2 decimal places.", details={"discount": str(discount)}
            )
        if tax_rate < 0:
            raise ValidationError("NegativeTaxRate", "tax_rate must be >= 0.", details={"tax_rate": str(tax_rate)})

        subtotal = ZERO
        for item in items:
            price, quantity = _price_and_quantity(item)
            subtotal += InvoiceCalculator.line_total(price, quantity)

        discount = quantize(discount)
        taxable = max(subtotal - discount, ZERO)
        tax_amount = quantize(taxable * tax_rate / HUNDRED)

        return InvoiceTotals(
            subtotal=quantize(subtotal),
            discount=discount,
            tax_amount=tax_amount,
            total=quantize(subtotal - discount + tax_amount),
        )


def compute_invoice_totals(items: Iterable, discount=ZERO, tax_rate=ZERO) -> InvoiceTotals:
    return InvoiceCalculator.compute(items, discount, tax_rate)


def line_total(price, quantity=1) -> Decimal:
    return InvoiceCalculator.line_total(price, quantity)
