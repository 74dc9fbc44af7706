from django.contrib import admin

from .models import ClientUser


@admin.register(ClientUser)
class ClientUserAdmin(admin.ModelAdmin):
    list_display = ('username', 'lead', 'enrolled_client', 'is_active', 'must_change_password', 'created_at')
    list_filter = ('is_active', 'must_change_password')
    search_fields = ('username', 'first_name', 'last_name', 'email')
    readonly_fields = ('password', 'created_at', 'last_login')
