from __future__ import annotations

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Max, Sum
from django.utils import timezone

from .exceptions import AmountExceedsRemaining, DuplicateInstallmentNumber, InvalidTransition
from .models import EnrolledClient, Installment
from .negotiation import ENROLLMENT_PHASE
from .reconciliation import (
    apply_installment_edit,
    apply_pending_installment_edits,
    quantize,
    remaining_amount,
    snapshot_installment,
    snapshot_installments,
    to_decimal,
)

logger = logging.getLogger(__name__)

CHARGE_TYPES = tuple(value for value, _ in Installment.CHARGE_TYPE_CHOICES)
UPDATABLE_FIELDS = ('amount', 'net_amount', 'due_date', 'remark', 'installment_number')
SHADOW_FIELDS = ('edited_amount', 'edited_due_date', 'edited_remark')
PAYMENT_STATUSES = ('paid', 'unpaid')


def _sum_amount(queryset, field_name='amount') -> Decimal:
    value = queryset.aggregate(total=Sum(field_name)).get('total')
    return to_decimal(value)


def _validate_charge_type(charge_type):
    if charge_type not in CHARGE_TYPES:
        raise ValidationError({'charge_type': f'Unknown charge type "{charge_type}".'})


def _locked_installment(installment):
    return Installment.objects.select_for_update().select_related('enrolled_client').get(pk=installment.pk)


def installment_summary(*, enrolled_client: EnrolledClient, charge_type: str):
    _validate_charge_type(charge_type)
    rows = Installment.objects.for_charge(enrolled_client, charge_type)
    total_charge = quantize(enrolled_client.payable_for(charge_type))
    remaining = remaining_amount(total_charge, rows.values_list('amount', flat=True))
    return {
        'charge_type': charge_type,
        'total_charge': total_charge,
        'total_installments': quantize(_sum_amount(rows)),
        'installment_count': rows.count(),
        'remaining_amount': remaining,
        'needs_more_installments': remaining > 0,
    }


def filter_installments(queryset, *, enrolled_client_id=None, charge_type=None, status=None):
    if enrolled_client_id:
        if not str(enrolled_client_id).isdigit():
            raise ValidationError({'enrolledClientId': 'Enrolled client id must be a number.'})
        queryset = queryset.filter(enrolled_client_id=enrolled_client_id)
    if charge_type:
        _validate_charge_type(charge_type)
        queryset = queryset.filter(charge_type=charge_type)
    if status:
        if status not in PAYMENT_STATUSES:
            raise ValidationError({'status': 'Status must be "paid" or "unpaid".'})
        queryset = queryset.with_payment_status(status)
    return queryset


@transaction.atomic
def create_installment(
    *,
    enrolled_client: EnrolledClient,
    actor,
    charge_type,
    amount,
    due_date=None,
    remark='',
    installment_number=None,
    is_initial_payment=False,
):
    _validate_charge_type(charge_type)
    amount = quantize(amount)
    if amount < 0:
        raise ValidationError({'amount': 'Amount must be zero or greater.'})

    client = EnrolledClient.objects.locked(enrolled_client.pk)
    rows = Installment.objects.for_charge(client, charge_type)
    summary = installment_summary(enrolled_client=client, charge_type=charge_type)

    initial = is_initial_payment or installment_number == 0
    if not initial and amount > summary['remaining_amount']:
        raise AmountExceedsRemaining(
            f"Installment amount exceeds the remaining charge ({summary['remaining_amount']}).",
            summary=summary,
        )

    if initial:
        installment_number = 0
        due_date = due_date or timezone.localdate()
        remark = remark or Installment.INITIAL_PAYMENT_REMARK
    elif installment_number is None:
        current = rows.aggregate(top=Max('installment_number')).get('top')
        installment_number = (current or 0) + 1

    if due_date is None:
        raise ValidationError({'due_date': 'Due date is required.'})

    if rows.filter(installment_number=installment_number).exists():
        raise DuplicateInstallmentNumber(
            f'Installment number {installment_number} already exists for this charge.',
            summary=summary,
        )

    paid_now = (
        initial
        and charge_type == Installment.CHARGE_ENROLLMENT
        and ENROLLMENT_PHASE.is_converged(client)
    )
    installment = Installment.objects.create(
        enrolled_client=client,
        charge_type=charge_type,
        installment_number=installment_number,
        amount=amount,
        net_amount=amount,
        due_date=due_date,
        remark=remark or '',
        is_initial_payment=initial,
        paid=paid_now,
        paid_date=timezone.localdate() if paid_now else None,
        paid_at=timezone.now() if paid_now else None,
    )
    logger.info(
        f"Installment {installment.pk} ({charge_type} #{installment_number}) created "
        f"for enrollment {client.pk} by {getattr(actor, 'pk', None)}"
    )

    return {
        'installment': installment,
        **installment_summary(enrolled_client=client, charge_type=charge_type),
    }


@transaction.atomic
def create_combined_installments(
    *,
    enrolled_client: EnrolledClient,
    actor,
    offer_letter_installments=None,
    first_year_installments=None,
):
    client = EnrolledClient.objects.locked(enrolled_client.pk)
    schedules = (
        (Installment.CHARGE_OFFER_LETTER, offer_letter_installments or []),
        (Installment.CHARGE_FIRST_YEAR, first_year_installments or []),
    )
    if not any(schedule for _, schedule in schedules):
        raise ValidationError('Provide at least one installment schedule.')

    created = {}
    for charge_type, schedule in schedules:
        if not schedule:
            continue

        if Installment.objects.for_charge(client, charge_type).exists():
            raise ValidationError({charge_type: 'Installments already exist for this charge.'})

        total_charge = quantize(client.payable_for(charge_type))
        scheduled = quantize(sum((to_decimal(item['amount']) for item in schedule), Decimal('0.00')))
        if abs(scheduled - total_charge) > Decimal('0.01'):
            raise ValidationError(
                {charge_type: f'Installments must add up to {total_charge}; received {scheduled}.'}
            )

        rows = []
        for index, item in enumerate(schedule):
            amount = quantize(item['amount'])
            remark = item.get('remark') or (Installment.INITIAL_PAYMENT_REMARK if index == 0 else '')
            rows.append(
                Installment.objects.create(
                    enrolled_client=client,
                    charge_type=charge_type,
                    installment_number=index,
                    amount=amount,
                    net_amount=amount,
                    due_date=item.get('due_date') or timezone.localdate(),
                    remark=remark,
                    is_initial_payment=index == 0,
                )
            )
        created[charge_type] = rows

    logger.info(
        f"Combined installments created for enrollment {client.pk} by {getattr(actor, 'pk', None)}: "
        + ', '.join(f"{charge_type}={len(rows)}" for charge_type, rows in created.items())
    )

    return {
        'offer_letter_installments': created.get(Installment.CHARGE_OFFER_LETTER, []),
        'first_year_installments': created.get(Installment.CHARGE_FIRST_YEAR, []),
        'summaries': [
            installment_summary(enrolled_client=client, charge_type=charge_type)
            for charge_type in created
        ],
    }


@transaction.atomic
def update_installment(*, installment: Installment, actor, changes):
    row = _locked_installment(installment)
    updates = []
    for field_name in UPDATABLE_FIELDS:
        if field_name not in changes or changes[field_name] is None:
            continue
        value = changes[field_name]
        if field_name in ('amount', 'net_amount'):
            value = quantize(value)
        setattr(row, field_name, value)
        updates.append(field_name)

    if 'amount' in updates and 'net_amount' not in updates:
        row.net_amount = row.amount
        updates.append('net_amount')

    if 'installment_number' in updates:
        clash = Installment.objects.for_charge(row.enrolled_client, row.charge_type).filter(
            installment_number=row.installment_number,
        ).exclude(pk=row.pk)
        if clash.exists():
            raise DuplicateInstallmentNumber(
                f'Installment number {row.installment_number} already exists for this charge.',
                summary=installment_summary(enrolled_client=row.enrolled_client, charge_type=row.charge_type),
            )

    if updates:
        row.save(update_fields=updates + ['updated_at'])
        logger.info(f"Installment {row.pk} updated by {getattr(actor, 'pk', None)}: {', '.join(updates)}")

    return {'installment': row}


@transaction.atomic
def delete_installment(*, installment: Installment, actor):
    row = _locked_installment(installment)
    client = row.enrolled_client
    charge_type = row.charge_type
    installment_id = row.pk
    row.delete()
    logger.info(f"Installment {installment_id} deleted by {getattr(actor, 'pk', None)}")
    return {
        'installment_id': installment_id,
        **installment_summary(enrolled_client=client, charge_type=charge_type),
    }


@transaction.atomic
def record_installment_payment(*, installment: Installment, actor, paid, paid_date=None, net_amount=None, remark=None):
    row = _locked_installment(installment)
    row.paid = bool(paid)
    if row.paid:
        row.paid_date = paid_date or row.paid_date or timezone.localdate()
        row.paid_at = row.paid_at or timezone.now()
    else:
        row.paid_date = None
        row.paid_at = None
    updates = ['paid', 'paid_date', 'paid_at']

    if net_amount is not None:
        row.net_amount = quantize(net_amount)
        updates.append('net_amount')
    if remark is not None:
        row.remark = remark
        updates.append('remark')

    row.save(update_fields=updates + ['updated_at'])
    logger.info(f"Installment {row.pk} marked {'paid' if row.paid else 'unpaid'} by {getattr(actor, 'pk', None)}")
    return {'installment': row}


@transaction.atomic
def admin_review_installment(*, installment: Installment, actor, approved, edits=None):
    row = _locked_installment(installment)
    row.admin = actor
    if approved:
        updates = snapshot_installment(row)
        row.sales_approval = True
        updates += ['sales_approval']
    else:
        edits = {key: value for key, value in (edits or {}).items() if key in SHADOW_FIELDS and value is not None}
        if not edits:
            raise ValidationError('Provide at least one change for the sales team to review.')
        if 'edited_amount' in edits:
            edits['edited_amount'] = quantize(edits['edited_amount'])
            if edits['edited_amount'] < 0:
                raise ValidationError({'edited_amount': 'Amount must be zero or greater.'})
        for key, value in edits.items():
            setattr(row, key, value)
        row.has_admin_update = True
        row.sales_approval = False
        updates = list(edits) + ['has_admin_update', 'sales_approval']

    row.save(update_fields=updates + ['admin', 'updated_at'])
    logger.info(f"Installment {row.pk} {'approved' if approved else 'returned with edits'} by {getattr(actor, 'pk', None)}")
    return {'installment': row}


@transaction.atomic
def sales_review_installment(*, installment: Installment, actor, approved):
    row = _locked_installment(installment)
    if not row.awaiting_sales:
        raise InvalidTransition('This installment has no admin changes to review.', phase='installment')

    if approved:
        updates = apply_installment_edit(row)
    else:
        # Admin proposal is discarded; the row stays with the admin.
        for field_name in SHADOW_FIELDS:
            setattr(row, field_name, None)
        row.sales_approval = False
        updates = ['sales_approval', *SHADOW_FIELDS]

    row.save(update_fields=updates + ['updated_at'])
    logger.info(f"Installment {row.pk} admin changes {'accepted' if approved else 'rejected'} by {getattr(actor, 'pk', None)}")
    return {'installment': row}


@transaction.atomic
def mark_initial_payment_paid(*, enrolled_client: EnrolledClient, charge_type=Installment.CHARGE_ENROLLMENT):
    row = Installment.objects.for_charge(enrolled_client, charge_type).initial().select_for_update().first()
    if row is None or row.paid:
        return row

    row.paid = True
    row.paid_date = timezone.localdate()
    row.paid_at = timezone.now()
    row.save(update_fields=['paid', 'paid_date', 'paid_at', 'updated_at'])
    logger.info(f"Initial {charge_type} payment marked paid for enrollment {enrolled_client.pk}")
    return row


def snapshot_phase_installments(*, enrolled_client: EnrolledClient, charge_types):
    rows = Installment.objects.filter(
        enrolled_client=enrolled_client,
        charge_type__in=charge_types,
    ).select_for_update()
    return snapshot_installments(rows)


def apply_phase_installment_edits(*, enrolled_client: EnrolledClient, charge_types):
    rows = Installment.objects.filter(
        enrolled_client=enrolled_client,
        charge_type__in=charge_types,
    ).awaiting_sales().select_for_update()
    return apply_pending_installment_edits(rows)
