"""
Bilateral approval between the sales and admin roles.

An ``ApprovalPhase`` binds three flags on ``EnrolledClient`` (sales approval,
admin approval, pending admin edit) to the negotiable fields and installment
charge types it governs. Every negotiable field is stored as a canonical
column plus an ``edited_*`` column holding the admin's proposal; both move
together through ``Negotiated`` so that closing a round always leaves the
proposal equal to the canonical value.

The phase objects only mutate the instance in memory and return the columns
they touched. Locking, persistence and installment fan-out belong to
``apps.core.enrollments.services``.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

from django.core.exceptions import ValidationError
from django.db.models import Q

from .exceptions import InvalidTransition
from .models import Installment
from .reconciliation import net_first_year_price, quantize


CANONICAL = 'canonical'
PROPOSED = 'proposed'

STATE_DRAFT = 'draft'
STATE_PENDING_ADMIN_REVIEW = 'pending_admin_review'
STATE_PENDING_SALES_REVIEW = 'pending_sales_review'
STATE_AWAITING_SALES = 'awaiting_sales'
STATE_APPROVED = 'approved'


@dataclass(frozen=True)
class Negotiated:
    """Canonical value plus the admin's proposal; ``None`` means no proposal."""

    canonical: object = None
    proposed: object = None

    @property
    def has_proposal(self):
        return self.proposed is not None

    def propose(self, value):
        return replace(self, proposed=value)

    def counter_propose(self, value):
        # Admin answering a sales rejection; the previous proposal is replaced.
        return self.propose(value)

    def approve(self):
        return Negotiated(self.canonical, self.canonical)

    def accept(self):
        value = self.proposed if self.has_proposal else self.canonical
        return Negotiated(value, value)


@dataclass(frozen=True)
class NegotiableField:
    canonical: str
    proposed: str
    exclusive_with: str = ''
    percentage: bool = False

    def column(self, slot):
        return self.canonical if slot == CANONICAL else self.proposed

    def load(self, instance):
        return Negotiated(getattr(instance, self.canonical), getattr(instance, self.proposed))

    def store(self, instance, value: Negotiated):
        setattr(instance, self.canonical, value.canonical)
        setattr(instance, self.proposed, value.proposed)
        return [self.canonical, self.proposed]


ENROLLMENT_CHARGE = NegotiableField('payable_enrollment_charge', 'edited_enrollment_charge')
OFFER_LETTER_CHARGE = NegotiableField('payable_offer_letter_charge', 'edited_offer_letter_charge')
FIRST_YEAR_PERCENTAGE = NegotiableField(
    'payable_first_year_percentage',
    'edited_first_year_percentage',
    exclusive_with='payable_first_year_fixed_charge',
    percentage=True,
)
FIRST_YEAR_FIXED_CHARGE = NegotiableField(
    'payable_first_year_fixed_charge',
    'edited_first_year_fixed_charge',
    exclusive_with='payable_first_year_percentage',
)
NET_FIRST_YEAR_PRICE = NegotiableField('net_payable_first_year_price', 'edited_net_payable_first_year_price')
FIRST_YEAR_SALARY = NegotiableField('first_year_salary', 'edited_first_year_salary')

FIRST_YEAR_FIELDS = (FIRST_YEAR_PERCENTAGE, FIRST_YEAR_FIXED_CHARGE, NET_FIRST_YEAR_PRICE, FIRST_YEAR_SALARY)
ALL_FIELDS = (ENROLLMENT_CHARGE, OFFER_LETTER_CHARGE) + FIRST_YEAR_FIELDS


@dataclass(frozen=True)
class ApprovalPhase:
    name: str
    label: str
    sales_flag: str
    admin_flag: str
    pending_flag: str
    fields: tuple
    charge_types: tuple
    provisions_account: bool = False

    def narrowed(self, name, label, *, fields, charge_types):
        return replace(self, name=name, label=label, fields=tuple(fields), charge_types=tuple(charge_types))

    @property
    def flag_columns(self):
        return [self.sales_flag, self.admin_flag, self.pending_flag]

    def flags(self, client):
        return (
            getattr(client, self.sales_flag),
            getattr(client, self.admin_flag),
            getattr(client, self.pending_flag),
        )

    def state(self, client):
        sales, admin, pending = self.flags(client)
        if sales and admin:
            return STATE_APPROVED
        if pending:
            return STATE_PENDING_SALES_REVIEW if sales else STATE_PENDING_ADMIN_REVIEW
        if sales:
            return STATE_PENDING_ADMIN_REVIEW
        if admin:
            return STATE_AWAITING_SALES
        return STATE_DRAFT

    def is_converged(self, client):
        return self.state(client) == STATE_APPROVED

    def state_filter(self, state):
        sales, admin, pending = self.sales_flag, self.admin_flag, self.pending_flag
        if state == STATE_APPROVED:
            return Q(**{sales: True, admin: True})
        if state == STATE_PENDING_SALES_REVIEW:
            return Q(**{sales: True, pending: True})
        if state == STATE_PENDING_ADMIN_REVIEW:
            return Q(**{sales: False, pending: True}) | Q(**{sales: True, admin: False, pending: False})
        if state == STATE_AWAITING_SALES:
            return Q(**{sales: False, admin: True, pending: False})
        if state == STATE_DRAFT:
            return Q(**{sales: False, admin: False, pending: False})
        raise ValidationError({'status': f'Unknown approval state "{state}".'})

    def field_by_canonical(self, name):
        for negotiable in self.fields:
            if negotiable.canonical == name:
                return negotiable
        return None

    def submit(self, client, values):
        updates = self._write(client, values, CANONICAL)
        return updates + self._set_flags(client, sales=True, admin=False, pending=False)

    def admin_approve(self, client):
        updates = self._snapshot(client)
        return updates + self._set_flags(client, admin=True, pending=False)

    def admin_reject(self, client, edits):
        updates = self._write(client, edits, PROPOSED)
        return updates + self._set_flags(client, admin=False, pending=True)

    def sales_accept(self, client):
        self._require_pending(client, 'accept')
        updates = []
        applied = []
        for negotiable in self.fields:
            current = negotiable.load(client)
            if current.has_proposal:
                applied.append(negotiable)
            updates += negotiable.store(client, current.accept())

        for negotiable in applied:
            if negotiable.exclusive_with and getattr(client, negotiable.canonical) is not None:
                partner = self.field_by_canonical(negotiable.exclusive_with)
                if partner is not None:
                    updates += partner.store(client, Negotiated())

        updates += self._sync_derived(client, CANONICAL)
        updates += self._snapshot(client)
        return updates + self._set_flags(client, sales=True, admin=True, pending=False)

    def sales_reject(self, client):
        self._require_pending(client, 'reject')
        return self._set_flags(client, sales=False)

    def _require_pending(self, client, verb):
        if not getattr(client, self.pending_flag):
            raise InvalidTransition(
                f'There are no admin changes to {verb} in the {self.label} step.',
                phase=self.name,
                state=self.state(client),
            )

    def _set_flags(self, client, *, sales=None, admin=None, pending=None):
        updates = []
        for column, value in ((self.sales_flag, sales), (self.admin_flag, admin), (self.pending_flag, pending)):
            if value is None:
                continue
            setattr(client, column, value)
            updates.append(column)
        return updates

    def _snapshot(self, client):
        updates = []
        for negotiable in self.fields:
            updates += negotiable.store(client, negotiable.load(client).approve())
        return updates

    def _field_for(self, key, slot):
        for negotiable in self.fields:
            if negotiable.column(slot) == key:
                return negotiable
        raise ValidationError({key: f'This value cannot be changed in the {self.label} step.'})

    def _write(self, client, values, slot):
        touched = []
        for key, value in values.items():
            negotiable = self._field_for(key, slot)
            if value is not None:
                value = quantize(value)
                if negotiable.percentage and not (0 <= value <= 100):
                    raise ValidationError({key: 'Percentage must be between 0 and 100.'})
            current = negotiable.load(client)
            if slot == CANONICAL:
                negotiable.store(client, replace(current, canonical=value))
            elif getattr(client, self.pending_flag):
                negotiable.store(client, current.counter_propose(value))
            else:
                negotiable.store(client, current.propose(value))
            touched.append((negotiable, value))

        updates = [negotiable.column(slot) for negotiable, _ in touched]
        for negotiable, value in touched:
            if value is None or not negotiable.exclusive_with:
                continue
            partner = self.field_by_canonical(negotiable.exclusive_with)
            partner_column = partner.column(slot)
            if values.get(partner_column) is not None:
                raise ValidationError(
                    {partner_column: 'Use either a first year percentage or a fixed charge, not both.'}
                )
            setattr(client, partner_column, None)
            updates.append(partner_column)

        if slot == CANONICAL and values.get(FIRST_YEAR_PERCENTAGE.canonical) is not None:
            if client.first_year_salary is None:
                raise ValidationError(
                    {'first_year_salary': 'First year salary is required when a first year percentage is set.'}
                )

        net_column = NET_FIRST_YEAR_PRICE.column(slot)
        if values.get(net_column) is not None and self._net_price_is_derived(client, slot):
            raise ValidationError(
                {net_column: 'Net first year price is derived from the first year percentage or fixed charge.'}
            )

        return updates + self._sync_derived(client, slot)

    def _net_price_is_derived(self, client, slot):
        slots = {slot, CANONICAL}
        return any(
            getattr(client, negotiable.column(current)) is not None
            for negotiable in (FIRST_YEAR_PERCENTAGE, FIRST_YEAR_FIXED_CHARGE)
            for current in slots
        )

    def _sync_derived(self, client, slot):
        if any(negotiable not in self.fields for negotiable in FIRST_YEAR_FIELDS):
            return []
        salary = getattr(client, FIRST_YEAR_SALARY.column(slot))
        if salary is None and slot == PROPOSED:
            salary = client.first_year_salary
        column = NET_FIRST_YEAR_PRICE.column(slot)
        value = net_first_year_price(
            getattr(client, FIRST_YEAR_PERCENTAGE.column(slot)),
            getattr(client, FIRST_YEAR_FIXED_CHARGE.column(slot)),
            salary,
            fallback=getattr(client, column),
        )
        setattr(client, column, value)
        return [column]


ENROLLMENT_PHASE = ApprovalPhase(
    name='enrollment',
    label='enrollment charge',
    sales_flag='approval_by_sales',
    admin_flag='approval_by_admin',
    pending_flag='has_update',
    fields=ALL_FIELDS,
    charge_types=(
        Installment.CHARGE_ENROLLMENT,
        Installment.CHARGE_OFFER_LETTER,
        Installment.CHARGE_FIRST_YEAR,
    ),
    provisions_account=True,
)

FINAL_PHASE = ApprovalPhase(
    name='final',
    label='final configuration',
    sales_flag='final_approval_sales',
    admin_flag='final_approval_by_admin',
    pending_flag='has_update_in_final',
    fields=(OFFER_LETTER_CHARGE,) + FIRST_YEAR_FIELDS,
    charge_types=(Installment.CHARGE_OFFER_LETTER, Installment.CHARGE_FIRST_YEAR),
)

OFFER_LETTER_PHASE = FINAL_PHASE.narrowed(
    'final_offer_letter',
    'offer letter',
    fields=(OFFER_LETTER_CHARGE,),
    charge_types=(Installment.CHARGE_OFFER_LETTER,),
)

FIRST_YEAR_PHASE = FINAL_PHASE.narrowed(
    'final_first_year',
    'first year',
    fields=FIRST_YEAR_FIELDS,
    charge_types=(Installment.CHARGE_FIRST_YEAR,),
)

FINAL_SCOPE_ALL = 'all'
FINAL_SCOPE_OFFER_LETTER = 'offer_letter'
FINAL_SCOPE_FIRST_YEAR = 'first_year'

FINAL_PHASE_SCOPES = {
    FINAL_SCOPE_ALL: FINAL_PHASE,
    FINAL_SCOPE_OFFER_LETTER: OFFER_LETTER_PHASE,
    FINAL_SCOPE_FIRST_YEAR: FIRST_YEAR_PHASE,
}


def final_phase_for(scope):
    try:
        return FINAL_PHASE_SCOPES[scope]
    except KeyError:
        raise ValidationError({'scope': f'Unknown final configuration scope "{scope}".'}) from None
