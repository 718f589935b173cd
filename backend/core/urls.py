"""
Routes for the dashboard, the constants catalogue and the notification inbox.

URL prefix (registered in ``backend/urls.py``)::

    path('api/core/', include('core.urls'))

Endpoint summary
----------------
GET  /api/core/dashboard/                    — Aggregated case statistics.
GET  /api/core/constants/                    — Case kinds, statuses, score ranges and weights.
GET  /api/core/notifications/                — List notifications for the authenticated user.
GET  /api/core/notifications/unread-count/   — Number of unread notifications.
POST /api/core/notifications/{id}/read/      — Mark a single notification as read.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = "core"

# ── Notification inbox ──────────────────────────────────────────────
router = DefaultRouter()
router.register(
    prefix=r"notifications",
    viewset=views.NotificationViewSet,
    basename="notification",
)

urlpatterns = [
    # ── Dashboard ────────────────────────────────────────────────────
    path(
        "dashboard/",
        views.DashboardStatsView.as_view(),
        name="dashboard-stats",
    ),

    # ── System Constants / Enums ─────────────────────────────────────
    path(
        "constants/",
        views.SystemConstantsView.as_view(),
        name="system-constants",
    ),

    # ── Notifications (router-generated URLs) ────────────────────────
    path("", include(router.urls)),
]
