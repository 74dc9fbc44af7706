from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.leads.models import Lead
from apps.core.portal.notifications import send_review_notification

from .convergence import run_convergence_trigger
from .ledger import apply_phase_installment_edits, snapshot_phase_installments
from .models import EnrolledClient
from .negotiation import (
    ENROLLMENT_PHASE,
    FINAL_PHASE,
    FINAL_SCOPE_ALL,
    STATE_APPROVED,
    STATE_AWAITING_SALES,
    STATE_DRAFT,
    STATE_PENDING_ADMIN_REVIEW,
    STATE_PENDING_SALES_REVIEW,
    ApprovalPhase,
    final_phase_for,
)

logger = logging.getLogger(__name__)


SALES_BOARD = (
    ('drafts', ENROLLMENT_PHASE, STATE_DRAFT),
    ('awaiting_sales_approval', ENROLLMENT_PHASE, STATE_AWAITING_SALES),
    ('admin_changes', ENROLLMENT_PHASE, STATE_PENDING_SALES_REVIEW),
    ('final_admin_changes', FINAL_PHASE, STATE_PENDING_SALES_REVIEW),
    ('approved', ENROLLMENT_PHASE, STATE_APPROVED),
)

ADMIN_BOARD = (
    ('pending_review', ENROLLMENT_PHASE, STATE_PENDING_ADMIN_REVIEW),
    ('final_pending_review', FINAL_PHASE, STATE_PENDING_ADMIN_REVIEW),
    ('waiting_on_sales', ENROLLMENT_PHASE, STATE_PENDING_SALES_REVIEW),
    ('approved', ENROLLMENT_PHASE, STATE_APPROVED),
)


def _actor_id(actor):
    return getattr(actor, 'pk', None)


def _save(client, updates, actor):
    client.updated_by = actor
    fields = set(updates) | {'updated_by', 'updated_at'}
    client.save(update_fields=sorted(fields))


def _notify_on_commit(*, client, recipient, action, actor, remark=''):
    if recipient is None:
        return
    transaction.on_commit(
        lambda: send_review_notification(
            enrolled_client=client,
            recipient=recipient,
            action=action,
            actor=actor,
            remark=remark,
        )
    )


def _converge_if_ready(phase: ApprovalPhase, client, actor):
    if not (phase.provisions_account and phase.is_converged(client)):
        return None
    if client.client_user_created:
        return None
    return run_convergence_trigger(client, actor=actor)


def _result(phase, client, **extra):
    return {
        'enrolled_client': client,
        'phase': phase.name,
        'state': phase.state(client),
        **extra,
    }


@transaction.atomic
def create_enrolled_client(*, lead: Lead, actor=None, sales_person=None):
    if not lead.is_enrolled:
        raise ValidationError({'lead': 'Only enrolled leads can have an enrollment configuration.'})

    client, created = EnrolledClient.objects.get_or_create(
        lead=lead,
        defaults={
            'sales_person': sales_person or lead.assigned_to,
            'created_by': actor,
            'updated_by': actor,
        },
    )
    if created:
        logger.info(f"Enrollment {client.pk} opened for lead {lead.pk}")
    return {
        'enrolled_client': client,
        'created': created,
    }


def _submit(phase, *, enrolled_client, actor, charges):
    client = EnrolledClient.objects.locked(enrolled_client.pk)
    updates = phase.submit(client, dict(charges))
    if client.sales_person_id is None and actor is not None:
        client.sales_person = actor
        updates.append('sales_person')
    _save(client, updates, actor)
    logger.info(f"Enrollment {client.pk} {phase.name} configuration submitted by {_actor_id(actor)}")
    return _result(phase, client)


def _admin_approve(phase, *, enrolled_client, actor):
    client = EnrolledClient.objects.locked(enrolled_client.pk)
    updates = phase.admin_approve(client)
    client.admin = actor
    _save(client, updates + ['admin'], actor)
    snapshotted = snapshot_phase_installments(enrolled_client=client, charge_types=phase.charge_types)
    provisioning = _converge_if_ready(phase, client, actor)
    logger.info(f"Enrollment {client.pk} {phase.name} approved by admin {_actor_id(actor)}")
    return _result(
        phase,
        client,
        installments_snapshotted=snapshotted,
        portal_account=provisioning['account'] if provisioning else None,
    )


def _admin_reject(phase, *, enrolled_client, actor, edits, remark='', action):
    client = EnrolledClient.objects.locked(enrolled_client.pk)
    updates = phase.admin_reject(client, dict(edits))
    client.admin = actor
    _save(client, updates + ['admin'], actor)
    _notify_on_commit(client=client, recipient=client.sales_person, action=action, actor=actor, remark=remark)
    logger.info(f"Enrollment {client.pk} {phase.name} returned to sales by admin {_actor_id(actor)}")
    return _result(phase, client)


def _sales_accept(phase, *, enrolled_client, actor):
    client = EnrolledClient.objects.locked(enrolled_client.pk)
    updates = phase.sales_accept(client)
    _save(client, updates, actor)
    applied = apply_phase_installment_edits(enrolled_client=client, charge_types=phase.charge_types)
    provisioning = _converge_if_ready(phase, client, actor)
    logger.info(
        f"Enrollment {client.pk} {phase.name} admin changes accepted by {_actor_id(actor)}; "
        f"{len(applied)} installment(s) updated"
    )
    return _result(
        phase,
        client,
        installments_updated=applied,
        portal_account=provisioning['account'] if provisioning else None,
    )


def _sales_reject(phase, *, enrolled_client, actor, remark='', action):
    client = EnrolledClient.objects.locked(enrolled_client.pk)
    updates = phase.sales_reject(client)
    _save(client, updates, actor)
    _notify_on_commit(client=client, recipient=client.admin, action=action, actor=actor, remark=remark)
    logger.info(f"Enrollment {client.pk} {phase.name} admin changes rejected by {_actor_id(actor)}")
    return _result(phase, client, remark=remark)


@transaction.atomic
def submit_configuration(*, enrolled_client: EnrolledClient, actor, charges):
    return _submit(ENROLLMENT_PHASE, enrolled_client=enrolled_client, actor=actor, charges=charges)


@transaction.atomic
def admin_approve(*, enrolled_client: EnrolledClient, actor):
    return _admin_approve(ENROLLMENT_PHASE, enrolled_client=enrolled_client, actor=actor)


@transaction.atomic
def admin_reject_with_edits(*, enrolled_client: EnrolledClient, actor, edits, remark=''):
    return _admin_reject(
        ENROLLMENT_PHASE,
        enrolled_client=enrolled_client,
        actor=actor,
        edits=edits,
        remark=remark,
        action='admin_rejected',
    )


@transaction.atomic
def sales_accept_edits(*, enrolled_client: EnrolledClient, actor):
    return _sales_accept(ENROLLMENT_PHASE, enrolled_client=enrolled_client, actor=actor)


@transaction.atomic
def sales_reject_edits(*, enrolled_client: EnrolledClient, actor, remark=''):
    return _sales_reject(
        ENROLLMENT_PHASE,
        enrolled_client=enrolled_client,
        actor=actor,
        remark=remark,
        action='sales_rejected',
    )


@transaction.atomic
def update_final_configuration(*, enrolled_client: EnrolledClient, actor, charges, scope=FINAL_SCOPE_ALL):
    return _submit(final_phase_for(scope), enrolled_client=enrolled_client, actor=actor, charges=charges)


@transaction.atomic
def admin_final_approve(*, enrolled_client: EnrolledClient, actor, scope=FINAL_SCOPE_ALL):
    return _admin_approve(final_phase_for(scope), enrolled_client=enrolled_client, actor=actor)


@transaction.atomic
def admin_final_reject_with_edits(*, enrolled_client: EnrolledClient, actor, edits, remark='', scope=FINAL_SCOPE_ALL):
    return _admin_reject(
        final_phase_for(scope),
        enrolled_client=enrolled_client,
        actor=actor,
        edits=edits,
        remark=remark,
        action='final_admin_rejected',
    )


@transaction.atomic
def sales_accept_admin_changes(*, enrolled_client: EnrolledClient, actor, scope=FINAL_SCOPE_ALL):
    return _sales_accept(final_phase_for(scope), enrolled_client=enrolled_client, actor=actor)


@transaction.atomic
def sales_reject_admin_changes(*, enrolled_client: EnrolledClient, actor, remark='', scope=FINAL_SCOPE_ALL):
    return _sales_reject(
        final_phase_for(scope),
        enrolled_client=enrolled_client,
        actor=actor,
        remark=remark,
        action='final_sales_rejected',
    )


def review_board(*, user, board):
    lanes = SALES_BOARD if board == 'sales' else ADMIN_BOARD
    base = EnrolledClient.objects.visible_to(user).select_related('lead', 'sales_person', 'admin')
    return {name: base.in_state(phase, state) for name, phase, state in lanes}
