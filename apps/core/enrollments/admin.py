from django.contrib import admin

from .models import EnrolledClient, Installment


class InstallmentInline(admin.TabularInline):
    model = Installment
    extra = 0
    fields = ('charge_type', 'installment_number', 'amount', 'due_date', 'paid', 'has_admin_update', 'sales_approval')
    readonly_fields = ('has_admin_update', 'sales_approval')


@admin.register(EnrolledClient)
class EnrolledClientAdmin(admin.ModelAdmin):
    list_display = (
        'lead',
        'payable_enrollment_charge',
        'approval_by_sales',
        'approval_by_admin',
        'has_update',
        'final_approval_sales',
        'final_approval_by_admin',
        'client_user_created',
    )
    list_filter = ('approval_by_sales', 'approval_by_admin', 'has_update', 'client_user_created')
    search_fields = ('lead__first_name', 'lead__last_name', 'lead__primary_email')
    readonly_fields = ('client_user_created', 'created_at', 'updated_at')
    inlines = [InstallmentInline]


@admin.register(Installment)
class InstallmentAdmin(admin.ModelAdmin):
    list_display = ('enrolled_client', 'charge_type', 'installment_number', 'amount', 'due_date', 'paid')
    list_filter = ('charge_type', 'paid', 'is_initial_payment', 'has_admin_update')
    search_fields = ('enrolled_client__lead__first_name', 'enrolled_client__lead__last_name')
