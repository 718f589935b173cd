from django.contrib import admin

from .models import Employee, Partner


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "position", "department",
                    "company_email", "user", "is_active")
    list_filter = ("department", "is_active")
    search_fields = ("full_name", "company_email")
    raw_id_fields = ("user",)


@admin.register(Partner)
class PartnerAdmin(admin.ModelAdmin):
    list_display = ("id", "short_name", "full_company_name", "contact_person")
    search_fields = ("short_name", "full_company_name", "contact_person")
