from django.contrib import admin
from django.template.defaultfilters import truncatechars
from django.utils.html import format_html_join

from migrator.models import MigrationJob, ServiceToken


@admin.register(MigrationJob)
class MigrationJobAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "action",
        "status",
        "course_id",
        "destination_category_id",
        "filename",
        "retry_count",
        "truncated_error",
        "created",
    )
    list_filter = ("action", "status", "created")
    search_fields = ("filename", "course_id")
    date_hierarchy = "created"
    readonly_fields = (
        "status",
        "task_id",
        "last_started",
        "retry_count",
        "error_trail",
        "created",
        "modified",
        "created_by",
        "modified_by",
    )
    exclude = ("errors",)

    @admin.display(description="Error")
    def truncated_error(self, obj):
        return truncatechars(obj.error or "", 80)

    @admin.display(description="Errors")
    def error_trail(self, obj):
        return format_html_join(
            "\n",
            "<p>{}: {}</p>",
            ((record["timestamp"], record["message"]) for record in obj.errors),
        )

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        obj.modified_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(ServiceToken)
class ServiceTokenAdmin(admin.ModelAdmin):
    list_display = ("name", "user", "is_active", "created", "last_used")
    list_filter = ("is_active",)
    search_fields = ("name", "user__username")
    raw_id_fields = ("user",)
    readonly_fields = ("token", "created", "last_used")
