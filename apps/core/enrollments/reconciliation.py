from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable


def to_decimal(value) -> Decimal:
    return Decimal(str(value or '0'))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def remaining_amount(total_charge, amounts: Iterable) -> Decimal:
    """Chargeable amount left once ``amounts`` are scheduled against ``total_charge``."""
    scheduled = sum((to_decimal(amount) for amount in amounts), Decimal('0.00'))
    return quantize(to_decimal(total_charge) - scheduled)


def net_first_year_price(percentage, fixed_charge, salary, fallback=None):
    if fixed_charge is not None:
        return quantize(fixed_charge)
    if percentage is not None and salary is not None:
        return quantize(to_decimal(salary) * to_decimal(percentage) / Decimal('100'))
    return fallback


def snapshot_installment(installment) -> list[str]:
    installment.edited_amount = installment.amount
    installment.edited_due_date = installment.due_date
    installment.edited_remark = installment.remark
    installment.has_admin_update = False
    return ['edited_amount', 'edited_due_date', 'edited_remark', 'has_admin_update']


def apply_installment_edit(installment) -> list[str]:
    """Promote the admin's shadow values; the shadow itself is kept."""
    updates = ['sales_approval', 'has_admin_update']
    if installment.edited_amount is not None:
        installment.amount = installment.edited_amount
        installment.net_amount = installment.edited_amount
        updates += ['amount', 'net_amount']
    if installment.edited_due_date is not None:
        installment.due_date = installment.edited_due_date
        updates.append('due_date')
    if installment.edited_remark is not None:
        installment.remark = installment.edited_remark
        updates.append('remark')
    installment.sales_approval = True
    installment.has_admin_update = False
    return updates


def snapshot_installments(installments) -> int:
    count = 0
    for installment in installments:
        updates = snapshot_installment(installment)
        installment.save(update_fields=updates + ['updated_at'])
        count += 1
    return count


def apply_pending_installment_edits(installments) -> list:
    applied = []
    for installment in installments:
        if not installment.has_admin_update or installment.sales_approval:
            continue
        updates = apply_installment_edit(installment)
        installment.save(update_fields=updates + ['updated_at'])
        applied.append(installment)
    return applied
