from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.common.permissions import RolePermission
from apps.notifications.models import Notification
from apps.notifications.serializers import MarkReadSerializer, NotificationSerializer
from apps.notifications import services


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["notifications.view"],
        "retrieve": ["notifications.view"],
        "mark_read": ["notifications.view"],
    }

    def get_queryset(self):
        queryset = Notification.objects.filter(recipient=self.request.user)
        if str(self.request.query_params.get("unread")).lower() in {"1", "true", "yes"}:
            queryset = queryset.filter(read_at__isnull=True)
        kind = self.request.query_params.get("kind")
        if kind:
            queryset = queryset.filter(kind=kind)
        return queryset

    @action(detail=False, methods=["post"], url_path="mark-read")
    def mark_read(self, request):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = services.mark_read(request.user, serializer.validated_data.get("ids"))
        return Response({"updated": updated})
