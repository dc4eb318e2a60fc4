"""Notification inbox for the signed-in user."""

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Notification
from .serializers import NotificationSerializer


class NotificationPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class NotificationListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    pagination_class = NotificationPagination
    throttle_scope = "profile"

    def get_queryset(self):
        qs = Notification.objects.filter(user_id=self.request.user.id)
        if self.request.query_params.get("unread") in ("1", "true"):
            qs = qs.filter(is_read=False)
        return qs

    @extend_schema(
        tags=["Notifications"],
        summary="List notifications",
        parameters=[OpenApiParameter(name="unread", description="Only unread when true", required=False, type=bool)],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class NotificationMarkReadView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "profile"

    @extend_schema(tags=["Notifications"], summary="Mark notification read", responses={200: NotificationSerializer})
    def post(self, request, notification_id: int):
        notification = Notification.objects.filter(id=notification_id, user_id=request.user.id).first()
        if notification is None:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at"])
        return Response(NotificationSerializer(notification).data)
