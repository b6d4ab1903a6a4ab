"""
Django admin registrations.

The audit trail is read-only in the admin: entries are only ever
written by the audit sink.
"""
from django.contrib import admin

from .models import AuditLog, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'facility_id', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'facility_id')


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'action', 'entity_type', 'entity_id', 'user_name', 'user_role', 'success')
    list_filter = ('action', 'entity_type', 'success')
    search_fields = ('description', 'user_name', 'entity_id', 'user_id')
    date_hierarchy = 'timestamp'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
