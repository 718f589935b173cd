from django.contrib import admin

from .models import Case, CaseComment, CaseWorklog


class CaseCommentInline(admin.TabularInline):
    model = CaseComment
    extra = 0
    readonly_fields = ("author", "content", "created_at")


class CaseWorklogInline(admin.TabularInline):
    model = CaseWorklog
    extra = 0
    readonly_fields = ("author", "duration_minutes", "description", "created_at")


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    """Read-only: cases are written through ``CaseLifecycleService`` only."""

    list_display = ("id", "kind", "title", "status", "requester",
                    "handler", "start_date", "end_date", "created_at")
    list_filter = ("kind", "status")
    search_fields = ("title", "description", "requester__full_name",
                     "handler__full_name")
    inlines = [CaseCommentInline, CaseWorklogInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
