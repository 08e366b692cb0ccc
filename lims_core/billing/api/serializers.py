# lims_core/billing/api/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from lims_core.billing.models import InvoiceStatus, PaymentMethod


def _amount(**kwargs):
    # precision and sign are checked by the calculator / ledger, which report reason codes
    return serializers.DecimalField(max_digits=None, decimal_places=None, **kwargs)


class InvoiceLineSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    test_code = serializers.CharField(allow_blank=True)
    test_name = serializers.CharField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2)


class PaymentSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    reference = serializers.CharField(allow_blank=True)
    paid_on = serializers.DateField()
    recorded_by = serializers.IntegerField(allow_null=True)
    created_at = serializers.DateTimeField(allow_null=True)


class InvoiceSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    invoice_number = serializers.CharField(allow_blank=True)
    patient_id = serializers.UUIDField()
    order_id = serializers.UUIDField(allow_null=True)
    status = serializers.ChoiceField(choices=InvoiceStatus.choices)
    currency = serializers.CharField()
    lines = InvoiceLineSerializer(many=True)
    payments = PaymentSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    tax_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2)
    finalized_at = serializers.DateTimeField(allow_null=True)
    paid_at = serializers.DateTimeField(allow_null=True)
    version = serializers.IntegerField()


class InvoiceCreateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    discount = _amount(default=Decimal("0.00"))
    tax_rate = _amount(required=False, allow_null=True, default=None)


class InvoiceLineCreateSerializer(serializers.Serializer):
    test_name = serializers.CharField(max_length=255)
    test_code = serializers.CharField(required=False, allow_blank=True, default="")
    quantity = _amount(default=Decimal("1.00"))
    unit_price = _amount()


class InvoiceDiscountSerializer(serializers.Serializer):
    discount = _amount()
    tax_rate = _amount(required=False, allow_null=True, default=None)


class PaymentCreateSerializer(serializers.Serializer):
    amount = _amount()
    method = serializers.CharField(max_length=32, default=PaymentMethod.CASH)
    reference = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    paid_on = serializers.DateField(required=False, allow_null=True, default=None)


class TotalsItemSerializer(serializers.Serializer):
    unit_price = _amount()
    quantity = _amount(default=Decimal("1"))


class TotalsRequestSerializer(serializers.Serializer):
    items = TotalsItemSerializer(many=True)
    discount = _amount(default=Decimal("0"))
    tax_rate = _amount(default=Decimal("0"))


class InvoiceTotalsSerializer(serializers.Serializer):
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2)
    discount = serializers.DecimalField(max_digits=14, decimal_places=2)
    tax_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    total = serializers.DecimalField(max_digits=14, decimal_places=2)


class MethodCollectionSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    label = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()
    share_percent = serializers.DecimalField(max_digits=6, decimal_places=2)


class PaymentSummarySerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()
    total_collected = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_count = serializers.IntegerField()
    by_method = MethodCollectionSerializer(many=True)


class CashReconciliationRequestSerializer(serializers.Serializer):
    on_date = serializers.DateField()
    counted_amount = _amount()


class CashReconciliationSerializer(serializers.Serializer):
    on_date = serializers.DateField()
    expected_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    counted_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    difference = serializers.DecimalField(max_digits=14, decimal_places=2)
    difference_percent = serializers.DecimalField(max_digits=8, decimal_places=2)
    reconciled = serializers.BooleanField()
