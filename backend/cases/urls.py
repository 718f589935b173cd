"""
Cases app URL configuration.

All routes are registered under the ``/api/cases/`` prefix.

Route Hierarchy
---------------
  /api/cases/                              → list / create
  /api/cases/{id}/                         → retrieve / partial_update / destroy

  ── Lifecycle @actions (resource-level RPC) ─────────────────────
  POST /api/cases/{id}/set-in-progress/     → start work, stamp in_progress_at
  POST /api/cases/{id}/close/               → complete with end_date = now
  PUT  /api/cases/{id}/evaluation/          → admin assessment (staff only)

  ── Sub-resource @actions ───────────────────────────────────────
  GET  /api/cases/{id}/comments/
  POST /api/cases/{id}/comments/

  GET  /api/cases/{id}/worklogs/
  POST /api/cases/{id}/worklogs/
"""

from rest_framework.routers import DefaultRouter

from .views import CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

urlpatterns = router.urls
