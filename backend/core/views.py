"""
HTTP surface of the core app: dashboard counters, system constants and
the per-user notification inbox.

Query parameters are parsed here; counting and lookups live in
``core.services``.
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)

from .serializers import (
    DashboardStatsSerializer,
    NotificationSerializer,
    SystemConstantsSerializer,
    UnreadCountSerializer,
)
from .services import (
    DashboardAggregationService,
    NotificationService,
    SystemConstantsService,
)


class DashboardStatsView(APIView):
    """
    **GET /api/core/dashboard/**

    Return aggregated case statistics: totals, open / completed /
    cancelled counts, breakdowns by kind and status, and how many cases
    still wait for an admin evaluation.

    **Authentication**: Required (``IsAuthenticated``).

    **Response** (``200 OK``):
        Serialised by ``DashboardStatsSerializer``.

    **Error Responses**:
        - ``401 Unauthorized``: Missing or invalid credentials.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Dashboard statistics",
        description="Return aggregated case statistics.",
        responses={200: OpenApiResponse(response=DashboardStatsSerializer, description="Dashboard stats.")},
        tags=["Dashboard"],
    )
    def get(self, request: Request) -> Response:
        """Totals cover every case; they are not filtered by the caller."""
        service = DashboardAggregationService()
        data = service.get_stats()
        serializer = DashboardStatsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return case kinds, statuses, sub-score ranges and score weights so the
    frontend can build forms and labels without hardcoding values.

    **Authentication**: Required (``IsAuthenticated``).

    **Response** (``200 OK``):
        Serialised by ``SystemConstantsSerializer``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="System constants",
        description=(
            "Case kinds with their detail keys, statuses, sub-score ranges "
            "and the weights used for the overall score."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class NotificationViewSet(viewsets.ViewSet):
    """
    Inbox of the authenticated user. Other users' notifications answer 404.

    Endpoints
    ---------
    GET  /api/core/notifications/               → list notifications
    GET  /api/core/notifications/unread-count/  → number of unread notifications
    POST /api/core/notifications/{id}/read/     → mark a notification as read

    **Authentication**: Required (``IsAuthenticated``).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List notifications",
        description="Return notifications for the authenticated user, newest first.",
        parameters=[
            OpenApiParameter(name="unread", type=bool, required=False, description="Only unread notifications."),
        ],
        responses={200: OpenApiResponse(response=NotificationSerializer(many=True), description="Notification list.")},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        """Delegates to ``NotificationService.list_notifications()``."""
        unread_only = request.query_params.get("unread", "").lower() in ("1", "true", "yes")
        service = NotificationService(user=request.user)
        notifications = service.list_notifications(unread_only=unread_only)
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="unread-count")
    @extend_schema(
        summary="Unread notification count",
        responses={200: OpenApiResponse(response=UnreadCountSerializer, description="Unread count.")},
        tags=["Notifications"],
    )
    def unread_count(self, request: Request) -> Response:
        """**GET /api/core/notifications/unread-count/**"""
        service = NotificationService(user=request.user)
        serializer = UnreadCountSerializer({"unread_count": service.unread_count()})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="read")
    @extend_schema(
        summary="Mark notification as read",
        description="Mark a single notification as read by ID.",
        request=None,
        responses={
            200: OpenApiResponse(response=NotificationSerializer, description="Updated notification."),
            404: OpenApiResponse(description="Notification not found."),
        },
        tags=["Notifications"],
    )
    def mark_as_read(self, request: Request, pk: int = None) -> Response:
        """
        Mark a single notification as read.

        **POST /api/core/notifications/{id}/read/**

        Delegates to ``NotificationService.mark_as_read()``.
        """
        service = NotificationService(user=request.user)
        notification = service.mark_as_read(notification_id=pk)
        serializer = NotificationSerializer(notification)
        return Response(serializer.data, status=status.HTTP_200_OK)
