# lims_core/orders/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from lims_core.orders.models import AdditionMode, OrderStatus, OrderType
from lims_core.orders.visits import SessionStatus


class TestItemInputSerializer(serializers.Serializer):
    __test__ = False

    test_code = serializers.SlugField(max_length=64)
    test_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class AddTestsSerializer(serializers.Serializer):
    items = TestItemInputSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    approved_by = serializers.IntegerField(required=False, allow_null=True, default=None)


class LockOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class OrderLineItemSerializer(serializers.Serializer):
    test_code = serializers.CharField()
    test_name = serializers.CharField()
    price = serializers.DecimalField(max_digits=12, decimal_places=2)


class OrderSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    patient_id = serializers.UUIDField()
    visit_session_id = serializers.CharField(allow_null=True)
    session_key = serializers.CharField()
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    order_type = serializers.ChoiceField(choices=OrderType.choices)
    order_date = serializers.DateField(allow_null=True)
    line_items = OrderLineItemSerializer(many=True)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    can_add_tests = serializers.BooleanField()
    locked_at = serializers.DateTimeField(allow_null=True)
    parent_order_id = serializers.UUIDField(allow_null=True)
    addition_reason = serializers.CharField(allow_blank=True)
    requires_new_sample = serializers.BooleanField()
    version = serializers.IntegerField()


class ChainedOrderSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    order_type = serializers.ChoiceField(choices=OrderType.choices)
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    addition_reason = serializers.CharField(allow_blank=True)
    requires_new_sample = serializers.BooleanField()
    test_count = serializers.IntegerField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    created_at = serializers.DateTimeField(allow_null=True)


class TestAdditionDecisionSerializer(serializers.Serializer):
    __test__ = False

    allowed = serializers.BooleanField()
    requires_approval = serializers.BooleanField()
    requires_new_sample = serializers.BooleanField()
    reason = serializers.CharField()
    resulting_order_type = serializers.ChoiceField(choices=AdditionMode.choices, allow_null=True)


class VisitSessionSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    patient_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=SessionStatus.choices)
    started_on = serializers.DateField(allow_null=True)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_tests = serializers.IntegerField()
    orders = OrderSerializer(many=True)
