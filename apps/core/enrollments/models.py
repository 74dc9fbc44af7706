from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from apps.core.leads.models import Lead

from .managers import EnrolledClientManager, InstallmentManager


def _money_field(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, **kwargs)


def _percentage_field(**kwargs):
    return models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True, **kwargs)


class EnrolledClient(models.Model):
    lead = models.OneToOneField(
        Lead,
        on_delete=models.CASCADE,
        related_name='enrollment',
    )

    payable_enrollment_charge = _money_field()
    payable_offer_letter_charge = _money_field()
    payable_first_year_percentage = _percentage_field()
    payable_first_year_fixed_charge = _money_field()
    net_payable_first_year_price = _money_field()
    first_year_salary = _money_field()

    edited_enrollment_charge = _money_field()
    edited_offer_letter_charge = _money_field()
    edited_first_year_percentage = _percentage_field()
    edited_first_year_fixed_charge = _money_field()
    edited_net_payable_first_year_price = _money_field()
    edited_first_year_salary = _money_field()

    approval_by_sales = models.BooleanField(default=False)
    approval_by_admin = models.BooleanField(default=False)
    has_update = models.BooleanField(default=False)

    final_approval_sales = models.BooleanField(default=False)
    final_approval_by_admin = models.BooleanField(default=False)
    has_update_in_final = models.BooleanField(default=False)

    client_user_created = models.BooleanField(default=False)

    sales_person = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sales_enrollments',
    )
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_enrollments',
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_enrollments',
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='updated_enrollments',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EnrolledClientManager()

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(payable_first_year_percentage__isnull=True)
                | Q(payable_first_year_fixed_charge__isnull=True),
                name='enrolled_client_first_year_pricing_exclusive',
            ),
            models.CheckConstraint(
                condition=Q(edited_first_year_percentage__isnull=True)
                | Q(edited_first_year_fixed_charge__isnull=True),
                name='enrolled_client_edited_pricing_exclusive',
            ),
            models.CheckConstraint(
                condition=~Q(has_update=True, approval_by_admin=True),
                name='enrolled_client_update_not_admin_approved',
            ),
            models.CheckConstraint(
                condition=~Q(has_update_in_final=True, final_approval_by_admin=True),
                name='enrolled_client_final_update_not_admin_approved',
            ),
        ]
        indexes = [
            models.Index(
                fields=['approval_by_sales', 'approval_by_admin', 'has_update'],
                name='enroll_client_phase_idx',
            ),
            models.Index(
                fields=['final_approval_sales', 'final_approval_by_admin', 'has_update_in_final'],
                name='enroll_client_final_idx',
            ),
            models.Index(fields=['sales_person'], name='enroll_client_sales_idx'),
        ]

    def clean(self):
        super().clean()
        for percentage_name in ('payable_first_year_percentage', 'edited_first_year_percentage'):
            value = getattr(self, percentage_name)
            if value is not None and not (0 <= value <= 100):
                raise ValidationError({percentage_name: 'Percentage must be between 0 and 100.'})

        if self.payable_first_year_percentage is not None and self.payable_first_year_fixed_charge is not None:
            raise ValidationError(
                {'payable_first_year_fixed_charge': 'Use either a first year percentage or a fixed charge, not both.'}
            )
        if self.edited_first_year_percentage is not None and self.edited_first_year_fixed_charge is not None:
            raise ValidationError(
                {'edited_first_year_fixed_charge': 'Use either a first year percentage or a fixed charge, not both.'}
            )

    def payable_for(self, charge_type):
        return getattr(self, Installment.PAYABLE_FIELDS[charge_type])

    def __str__(self):
        return f"Enrollment #{self.pk} for {self.lead.full_name}"


class Installment(models.Model):
    CHARGE_ENROLLMENT = 'enrollment_charge'
    CHARGE_OFFER_LETTER = 'offer_letter_charge'
    CHARGE_FIRST_YEAR = 'first_year_charge'
    CHARGE_TYPE_CHOICES = (
        (CHARGE_ENROLLMENT, 'Enrollment Charge'),
        (CHARGE_OFFER_LETTER, 'Offer Letter Charge'),
        (CHARGE_FIRST_YEAR, 'First Year Charge'),
    )

    PAYABLE_FIELDS = {
        CHARGE_ENROLLMENT: 'payable_enrollment_charge',
        CHARGE_OFFER_LETTER: 'payable_offer_letter_charge',
        CHARGE_FIRST_YEAR: 'net_payable_first_year_price',
    }

    INITIAL_PAYMENT_REMARK = 'Initial Payment'

    enrolled_client = models.ForeignKey(
        EnrolledClient,
        on_delete=models.CASCADE,
        related_name='installments',
    )
    installment_number = models.PositiveIntegerField()
    charge_type = models.CharField(max_length=30, choices=CHARGE_TYPE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    due_date = models.DateField()
    remark = models.CharField(max_length=255, blank=True)

    edited_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    edited_due_date = models.DateField(null=True, blank=True)
    edited_remark = models.CharField(max_length=255, null=True, blank=True)
    has_admin_update = models.BooleanField(default=False)
    sales_approval = models.BooleanField(default=False)

    is_initial_payment = models.BooleanField(default=False)
    paid = models.BooleanField(default=False)
    paid_date = models.DateField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_installments',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InstallmentManager()

    class Meta:
        ordering = ['charge_type', 'installment_number', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['enrolled_client', 'charge_type', 'installment_number'],
                name='unique_installment_number_per_charge',
            ),
            models.CheckConstraint(
                condition=Q(amount__gte=0),
                name='installment_amount_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['enrolled_client', 'charge_type'], name='installment_client_charge_idx'),
            models.Index(fields=['due_date'], name='installment_due_date_idx'),
            models.Index(fields=['paid'], name='installment_paid_idx'),
            models.Index(fields=['has_admin_update', 'sales_approval'], name='installment_review_idx'),
        ]

    def clean(self):
        super().clean()
        if self.amount is None or self.amount < 0:
            raise ValidationError({'amount': 'Amount must be zero or greater.'})
        if self.edited_amount is not None and self.edited_amount < 0:
            raise ValidationError({'edited_amount': 'Amount must be zero or greater.'})

    @property
    def awaiting_sales(self):
        return self.has_admin_update and not self.sales_approval

    def __str__(self):
        return f"{self.get_charge_type_display()} #{self.installment_number} ({self.amount})"
