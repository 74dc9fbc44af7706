from django.contrib import admin
from .models import User, AuditLog

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'get_full_name', 'role', 'email', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'email', 'first_name', 'last_name')
    ordering = ('role', 'username')


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'user', 'target_model', 'target_id', 'ip_address')
    list_filter = ('action', 'method', 'created_at')
    list_select_related = ('user',)
    search_fields = ('details', 'path', 'target_model', 'target_id', 'user__username')
    date_hierarchy = 'created_at'
    readonly_fields = ('user', 'action', 'target_model', 'target_id', 'details', 'method', 'path', 'ip_address', 'created_at')

    def has_add_permission(self, request):
        return False
