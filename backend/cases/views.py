"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

No database queries, status rules, date checks or score arithmetic
live here.  Domain exceptions raised by the services are rendered by
``core.domain.exception_handler``.

ViewSets
--------
- ``CaseViewSet`` — CRUD plus ``set-in-progress``, ``close``,
  ``evaluation``, ``comments`` and ``worklogs`` actions.
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)

from .domain.patch import CasePatch
from .models import Case
from .serializers import (
    AdminEvaluationSerializer,
    CaseCommentCreateSerializer,
    CaseCommentSerializer,
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    CaseUpdateSerializer,
    CaseWorklogCreateSerializer,
    CaseWorklogSerializer,
)
from .services import (
    CaseCollaborationService,
    CaseLifecycleService,
    CaseQueryService,
)


class CasePagination(PageNumberPagination):
    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 200


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined and every write goes through
    ``CaseLifecycleService``.

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  The one finer rule
    (only staff may write the admin assessment) is enforced inside the
    service layer — never in the view.
    """

    permission_classes = [IsAuthenticated]
    # Allows drf-spectacular to infer path-parameter types automatically.
    queryset = Case.objects.none()

    def _detail_response(self, case: Case, http_status: int = status.HTTP_200_OK) -> Response:
        return Response(CaseDetailSerializer(case).data, status=http_status)

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description="Return a page of cases with optional filters.",
        parameters=[
            OpenApiParameter(name="kind", type=str, required=False, description="Filter by case kind."),
            OpenApiParameter(name="status", type=str, required=False, description="Filter by status."),
            OpenApiParameter(name="requester", type=int, required=False, description="Requester employee ID."),
            OpenApiParameter(name="handler", type=int, required=False, description="Handler employee ID."),
            OpenApiParameter(name="needs_evaluation", type=bool, required=False, description="Admin assessment incomplete."),
            OpenApiParameter(name="search", type=str, required=False, description="Free-text search."),
            OpenApiParameter(name="page", type=int, required=False, description="Page number."),
        ],
        responses={200: OpenApiResponse(response=CaseListSerializer(many=True), description="Paginated case list.")},
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        """GET /api/cases/ — List cases with optional filters."""
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        if not filter_serializer.is_valid():
            return Response(filter_serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        queryset = CaseQueryService.get_filtered_queryset(filter_serializer.validated_data)
        paginator = CasePagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = CaseListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        summary="Create a case",
        description=(
            "Create a case of any kind. The case starts in RECEIVED (or IN_PROGRESS). "
            "Administrators and the chat channel are notified after the write commits."
        ),
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case created."),
            400: OpenApiResponse(description="Validation or date error."),
            404: OpenApiResponse(description="Requester, handler or counterparty not found."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """POST /api/cases/ — Create a case."""
        serializer = CaseCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        case = CaseLifecycleService.create_case(serializer.validated_data, request.user)
        return self._detail_response(case, status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve case detail",
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Case detail.")},
        tags=["Cases"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        """GET /api/cases/{id}/ — Case detail with its evaluation."""
        return self._detail_response(CaseQueryService.get_case_detail(pk))

    @extend_schema(
        summary="Partially update a case",
        description=(
            "Omitted keys are left unchanged; explicit null clears a field. "
            "A non-empty end_date completes an open case unless status=CANCELLED is sent."
        ),
        request=CaseUpdateSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case updated."),
            400: OpenApiResponse(description="Validation or date error."),
            403: OpenApiResponse(description="Admin assessment requires staff."),
            404: OpenApiResponse(description="Case or reference not found."),
            409: OpenApiResponse(description="Stale version or disallowed transition."),
        },
        tags=["Cases"],
    )
    def partial_update(self, request: Request, pk: int = None) -> Response:
        """PATCH /api/cases/{id}/ — Partial update."""
        serializer = CaseUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        case = CaseLifecycleService.update_case(
            pk, CasePatch.from_mapping(serializer.validated_data), request.user,
        )
        return self._detail_response(case)

    @extend_schema(
        summary="Delete a case",
        description="Delete a case together with its comments and worklogs.",
        responses={200: OpenApiResponse(description="Deleted.")},
        tags=["Cases"],
    )
    def destroy(self, request: Request, pk: int = None) -> Response:
        """DELETE /api/cases/{id}/ — Hard delete."""
        CaseLifecycleService.delete_case(pk, request.user)
        return Response({"detail": "Case deleted."}, status=status.HTTP_200_OK)

    # ── Lifecycle @actions ───────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="set-in-progress")
    @extend_schema(
        summary="Start work on a case",
        request=None,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case in progress."),
            409: OpenApiResponse(description="Case already completed or cancelled."),
        },
        tags=["Cases"],
    )
    def set_in_progress(self, request: Request, pk: int = None) -> Response:
        """POST /api/cases/{id}/set-in-progress/"""
        return self._detail_response(CaseLifecycleService.set_in_progress(pk, request.user))

    @action(detail=True, methods=["post"], url_path="close")
    @extend_schema(
        summary="Complete a case now",
        request=None,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case completed."),
            400: OpenApiResponse(description="Date error."),
        },
        tags=["Cases"],
    )
    def close(self, request: Request, pk: int = None) -> Response:
        """POST /api/cases/{id}/close/"""
        return self._detail_response(CaseLifecycleService.close_case(pk, request.user))

    @action(detail=True, methods=["put"], url_path="evaluation")
    @extend_schema(
        summary="Submit the admin evaluation",
        description="Record all four admin sub-scores. Staff only.",
        request=AdminEvaluationSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Evaluation recorded."),
            403: OpenApiResponse(description="Not staff."),
        },
        tags=["Cases"],
    )
    def evaluation(self, request: Request, pk: int = None) -> Response:
        """PUT /api/cases/{id}/evaluation/"""
        serializer = AdminEvaluationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        case = CaseLifecycleService.submit_admin_evaluation(
            pk, serializer.validated_data, request.user,
        )
        return self._detail_response(case)

    # ── Collaboration @actions ────────────────────────────────────────

    @action(detail=True, methods=["get", "post"], url_path="comments")
    @extend_schema(
        summary="List or add comments",
        request=CaseCommentCreateSerializer,
        responses={
            200: OpenApiResponse(response=CaseCommentSerializer(many=True), description="Comments."),
            201: OpenApiResponse(response=CaseCommentSerializer, description="Comment added."),
        },
        tags=["Cases"],
    )
    def comments(self, request: Request, pk: int = None) -> Response:
        """
        GET  /api/cases/{id}/comments/ — list comments.
        POST /api/cases/{id}/comments/ — add a comment.
        """
        if request.method == "GET":
            comments = CaseCollaborationService.list_comments(pk)
            return Response(CaseCommentSerializer(comments, many=True).data, status=status.HTTP_200_OK)

        serializer = CaseCommentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        comment = CaseCollaborationService.add_comment(
            pk, request.user, serializer.validated_data["content"],
        )
        return Response(CaseCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get", "post"], url_path="worklogs")
    @extend_schema(
        summary="List or add worklogs",
        request=CaseWorklogCreateSerializer,
        responses={
            200: OpenApiResponse(response=CaseWorklogSerializer(many=True), description="Worklogs."),
            201: OpenApiResponse(response=CaseWorklogSerializer, description="Worklog added."),
        },
        tags=["Cases"],
    )
    def worklogs(self, request: Request, pk: int = None) -> Response:
        """
        GET  /api/cases/{id}/worklogs/ — list worklogs.
        POST /api/cases/{id}/worklogs/ — log time.
        """
        if request.method == "GET":
            worklogs = CaseCollaborationService.list_worklogs(pk)
            return Response(CaseWorklogSerializer(worklogs, many=True).data, status=status.HTTP_200_OK)

        serializer = CaseWorklogCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        worklog = CaseCollaborationService.add_worklog(
            pk,
            request.user,
            serializer.validated_data["duration_minutes"],
            serializer.validated_data.get("description", ""),
        )
        return Response(CaseWorklogSerializer(worklog).data, status=status.HTTP_201_CREATED)
