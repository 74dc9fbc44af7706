from django.contrib import admin

from .models import Lead


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'primary_email', 'technology', 'status', 'assigned_to', 'created_at')
    list_filter = ('status', 'visa_status', 'country')
    search_fields = ('first_name', 'last_name', 'primary_email', 'primary_contact')
