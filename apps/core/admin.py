from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import AuditLog

class ReadOnlyAdmin(admin.ModelAdmin):
    """Prevent accidental edits"""
    actions = None

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = (
        'timestamp',
        'action',
        'severity',
        'status',
        'user_id',
        'user_role',
        'resource_type',
        'resource_id',
    )

    list_filter = (
        'action',
        'severity',
        'status',
        'user_role',
        'timestamp',
    )

    search_fields = (
        'user_id',
        'resource_type',
        'resource_id',
        'resource_name',
        'request_id',
    )

    ordering = ('-timestamp',)

    readonly_fields = [field.name for field in AuditLog._meta.fields]

    fieldsets = (
        (_("Basic Info"), {
            "fields": (
                'timestamp',
                'action',
                'severity',
                'status',
            )
        }),
        (_("User"), {
            "fields": (
                'user_id',
                'user_role',
                'user_ip',
            )
        }),
        (_("Resource"), {
            "fields": (
                'resource_type',
                'resource_id',
                'resource_name',
            )
        }),
        (_("Request"), {
            "classes": ('collapse',),
            "fields": (
                'request_method',
                'request_path',
                'request_id',
            )
        }),
        (_("Error (if any)"), {
            "classes": ('collapse',),
            "fields": (
                'error_message',
            )
        }),
        (_("Extra Data"), {
            "classes": ('collapse',),
            "fields": (
                'changes',
                'previous_state',
                'new_state',
                'extra_data',
            )
        }),
    )
