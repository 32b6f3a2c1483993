from django.db.models import Prefetch, Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from apps.common.exceptions import parse_uuid
from apps.common.permissions import RolePermission, is_admin
from apps.orders import services
from apps.orders.models import DeliveryNote, Order, OrderLine, Reservation
from apps.orders.serializers import (
    DeliveryNoteSerializer,
    DeliveryNoteUpdateSerializer,
    OrderCancelSerializer,
    OrderFromQuotationSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    ReservationSerializer,
)


def _party_filter(user, prefix=""):
    return Q(**{f"{prefix}customer": user}) | Q(**{f"{prefix}vendor": user})


class OrderViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = OrderSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["orders.view"],
        "retrieve": ["orders.view"],
        "from_quotation": ["orders.create"],
        "update_status": ["orders.update_status"],
        "cancel": ["orders.cancel"],
    }

    def get_queryset(self):
        queryset = Order.objects.select_related("customer", "vendor").prefetch_related(
            Prefetch("lines", queryset=OrderLine.objects.all())
        )
        user = self.request.user
        if self.action == "list" and not is_admin(user):
            queryset = queryset.filter(_party_filter(user))
        status_param = self.request.query_params.get("status")
        if status_param:
            queryset = queryset.filter(status=status_param)
        return queryset

    def get_object(self):
        order = super().get_object()
        user = self.request.user
        if user.id not in (order.customer_id, order.vendor_id) and not is_admin(user):
            raise PermissionDenied("You are not a party to this order.")
        return order

    def _respond(self, order, status_code=status.HTTP_200_OK):
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderSerializer(order, context=self.get_serializer_context()).data, status=status_code)

    @action(detail=False, methods=["post"], url_path="from-quotation")
    def from_quotation(self, request):
        serializer = OrderFromQuotationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.convert_quotation(actor=request.user, **serializer.validated_data)
        return self._respond(order, status.HTTP_201_CREATED)

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.update_order_status(actor=request.user, order_id=pk, status=serializer.validated_data["status"])
        return self._respond(order)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.cancel_order(actor=request.user, order_id=pk, reason=serializer.validated_data["reason"])
        return self._respond(order)


class ReservationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ReservationSerializer
    permission_classes = [RolePermission]
    capability_map = {"list": ["orders.view"], "retrieve": ["orders.view"]}

    def get_queryset(self):
        queryset = Reservation.objects.select_related("product", "order")
        user = self.request.user
        if not is_admin(user):
            queryset = queryset.filter(_party_filter(user, prefix="order__"))
        params = self.request.query_params
        if params.get("product"):
            queryset = queryset.filter(product_id=parse_uuid(params["product"], field="product"))
        if params.get("order"):
            queryset = queryset.filter(order_id=parse_uuid(params["order"], field="order"))
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset


class DeliveryNoteViewSet(
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    serializer_class = DeliveryNoteSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "patch", "head", "options"]
    capability_map = {
        "list": ["logistics.view"],
        "retrieve": ["logistics.view"],
        "create": ["logistics.manage"],
        "partial_update": ["logistics.manage"],
    }

    def get_queryset(self):
        queryset = DeliveryNote.objects.select_related("order")
        user = self.request.user
        if not is_admin(user):
            queryset = queryset.filter(_party_filter(user, prefix="order__"))
        order_id = self.request.query_params.get("order")
        if order_id:
            queryset = queryset.filter(order_id=parse_uuid(order_id, field="order"))
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        note = services.schedule_delivery_note(
            actor=request.user,
            order=data["order"],
            note_type=data["note_type"],
            scheduled_at=data.get("scheduled_at"),
            driver=data.get("driver", ""),
            checklist=data.get("checklist"),
            notes=data.get("notes", ""),
        )
        return Response(DeliveryNoteSerializer(note).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        serializer = DeliveryNoteUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = services.update_delivery_note(actor=request.user, note_id=kwargs["pk"], **serializer.validated_data)
        return Response(DeliveryNoteSerializer(note).data)
