from django import forms
from django.core.exceptions import ValidationError

from .models import Installment


def _money(**kwargs):
    return forms.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, **kwargs)


def _percentage():
    return forms.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False)


def submitted_values(form, payload):
    """Cleaned values for the keys the caller actually sent."""
    return {name: value for name, value in form.cleaned_data.items() if name in payload}


def form_error(form):
    return ValidationError(form.errors.as_data())


class _ExclusivePricingMixin:
    percentage_field = ''
    fixed_field = ''

    def clean(self):
        cleaned_data = super().clean()
        if (
            cleaned_data.get(self.percentage_field) is not None
            and cleaned_data.get(self.fixed_field) is not None
        ):
            raise ValidationError(
                {self.fixed_field: 'Use either a first year percentage or a fixed charge, not both.'}
            )
        return cleaned_data


class _DecisionMixin:
    def clean_approved(self):
        approved = self.cleaned_data.get('approved')
        if approved is None:
            raise ValidationError('Specify whether the change is approved.')
        return approved


class EnrolledClientCreateForm(forms.Form):
    lead_id = forms.IntegerField(min_value=1)


class SalesConfigurationForm(_ExclusivePricingMixin, forms.Form):
    percentage_field = 'payable_first_year_percentage'
    fixed_field = 'payable_first_year_fixed_charge'

    payable_enrollment_charge = _money()
    payable_offer_letter_charge = _money()
    payable_first_year_percentage = _percentage()
    payable_first_year_fixed_charge = _money()
    net_payable_first_year_price = _money()
    first_year_salary = _money()


class AdminDecisionForm(_DecisionMixin, _ExclusivePricingMixin, forms.Form):
    percentage_field = 'edited_first_year_percentage'
    fixed_field = 'edited_first_year_fixed_charge'

    approved = forms.NullBooleanField(required=False)
    remark = forms.CharField(max_length=500, required=False)
    edited_enrollment_charge = _money()
    edited_offer_letter_charge = _money()
    edited_first_year_percentage = _percentage()
    edited_first_year_fixed_charge = _money()
    edited_net_payable_first_year_price = _money()
    edited_first_year_salary = _money()

    EDIT_FIELDS = (
        'edited_enrollment_charge',
        'edited_offer_letter_charge',
        'edited_first_year_percentage',
        'edited_first_year_fixed_charge',
        'edited_net_payable_first_year_price',
        'edited_first_year_salary',
    )

    def edits(self, payload):
        values = submitted_values(self, payload)
        return {name: values[name] for name in self.EDIT_FIELDS if name in values}


class SalesDecisionForm(_DecisionMixin, forms.Form):
    approved = forms.NullBooleanField(required=False)
    remark = forms.CharField(max_length=500, required=False)


class InstallmentForm(forms.Form):
    enrolled_client_id = forms.IntegerField(min_value=1)
    charge_type = forms.ChoiceField(choices=Installment.CHARGE_TYPE_CHOICES)
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    due_date = forms.DateField(required=False)
    remark = forms.CharField(max_length=255, required=False)
    installment_number = forms.IntegerField(min_value=0, required=False)
    is_initial_payment = forms.BooleanField(required=False)


class InstallmentUpdateForm(forms.Form):
    amount = _money()
    net_amount = _money()
    due_date = forms.DateField(required=False)
    remark = forms.CharField(max_length=255, required=False)
    installment_number = forms.IntegerField(min_value=0, required=False)


class ScheduleItemForm(forms.Form):
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    due_date = forms.DateField(required=False)
    remark = forms.CharField(max_length=255, required=False)


def clean_schedule(items, field_name):
    if items in (None, ''):
        return []
    if not isinstance(items, list):
        raise ValidationError({field_name: 'Provide a list of installments.'})

    cleaned = []
    errors = []
    for index, item in enumerate(items, start=1):
        form = ScheduleItemForm(data=item if isinstance(item, dict) else {})
        if not form.is_valid():
            for field, messages in form.errors.items():
                errors.extend(f"Installment {index} {field}: {message}" for message in messages)
            continue
        cleaned.append(form.cleaned_data)

    if errors:
        raise ValidationError({field_name: errors})
    return cleaned


class InstallmentReviewForm(_DecisionMixin, forms.Form):
    approved = forms.NullBooleanField(required=False)
    edited_amount = _money()
    edited_due_date = forms.DateField(required=False)
    edited_remark = forms.CharField(max_length=255, required=False)


class InstallmentSalesReviewForm(_DecisionMixin, forms.Form):
    approved = forms.NullBooleanField(required=False)


class PaymentStatusForm(forms.Form):
    paid = forms.NullBooleanField(required=False)
    paid_date = forms.DateField(required=False)
    net_amount = _money()
    remark = forms.CharField(max_length=255, required=False)

    def clean_paid(self):
        paid = self.cleaned_data.get('paid')
        if paid is None:
            raise ValidationError('Specify whether the installment is paid.')
        return paid


class CombinedInstallmentsForm(forms.Form):
    enrolled_client_id = forms.IntegerField(min_value=1)
