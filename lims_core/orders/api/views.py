# lims_core/orders/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from lims_core.common.idempotency import get_key, load_response, save_response
from lims_core.orders.api.serializers import (
    AddTestsSerializer,
    ChainedOrderSerializer,
    LockOrderSerializer,
    OrderSerializer,
    TestAdditionDecisionSerializer,
    VisitSessionSerializer,
)
from lims_core.orders.models import Order
from lims_core.orders.services import OrderService
from lims_core.store import get_store


class OrderViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - idempotency caching (the key also reaches OrderService for linked orders)
    - serializers validation
    - delegates to OrderService
    """

    serializer_class = OrderSerializer
    queryset = Order.objects.none()

    @extend_schema(tags=["Orders"], responses={200: OrderSerializer})
    def retrieve(self, request, pk=None):
        order = get_store().load_order(pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Orders"], responses={200: TestAdditionDecisionSerializer})
    @action(detail=True, methods=["get"], url_path="test-addition")
    def test_addition(self, request, pk=None):
        decision = OrderService.decide_test_addition(order_id=pk)
        return Response(TestAdditionDecisionSerializer(decision).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Orders"], request=AddTestsSerializer, responses={201: OrderSerializer})
    @action(detail=True, methods=["post"], url_path="tests")
    def add_tests(self, request, pk=None):
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status.HTTP_201_CREATED)

        ser = AddTestsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        order = OrderService.add_tests(
            order_id=pk,
            items=data["items"],
            reason=data.get("reason", ""),
            approved_by=data.get("approved_by"),
            actor_user_id=request.user.id,
            idempotency_key=idem,
        )

        out = OrderSerializer(order).data
        if idem:
            save_response(request.user.id, request.method, request.path, idem, out, status.HTTP_201_CREATED)
        return Response(out, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Orders"], request=LockOrderSerializer, responses={200: OrderSerializer})
    @action(detail=True, methods=["post"], url_path="lock")
    def lock(self, request, pk=None):
        ser = LockOrderSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        order = OrderService.lock_order(
            order_id=pk,
            reason=ser.validated_data.get("reason", ""),
            actor_user_id=request.user.id,
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Orders"], responses={200: ChainedOrderSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="chain")
    def chain(self, request, pk=None):
        children = OrderService.get_order_chain(parent_order_id=pk)
        return Response(ChainedOrderSerializer(children, many=True).data, status=status.HTTP_200_OK)


class VisitSessionView(APIView):
    """
    /sessions/<session_id>/
    Totals and derived status for every order in one patient visit.
    """

    @extend_schema(tags=["Orders"], responses={200: VisitSessionSerializer})
    def get(self, request, session_id: str):
        session = OrderService.get_session_summary(session_id=session_id)
        return Response(VisitSessionSerializer(session).data, status=status.HTTP_200_OK)
