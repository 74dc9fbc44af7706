"""
First-time agreement on the enrollment charge.

When both enrollment-phase flags are set and no portal account has been
provisioned yet, the initial enrollment payment is marked paid and a portal
account is created for the lead. Provisioning runs in a savepoint so a
failure only rolls back the account, never the approval that triggered it.
"""
import logging

from django.db import transaction

from apps.core.leads.services import lead_contact
from apps.core.portal.exceptions import PortalAccountExists
from apps.core.portal.notifications import send_welcome_notification
from apps.core.portal.services import create_portal_account

from .ledger import mark_initial_payment_paid
from .models import EnrolledClient

logger = logging.getLogger(__name__)


def _queue_welcome(*, lead, account, credential):
    contact = lead_contact(lead)
    name = contact['name']
    login_id = account.username
    transaction.on_commit(
        lambda: send_welcome_notification(
            name=name,
            login_id=login_id,
            credential=credential,
            contact=contact,
        )
    )


def run_convergence_trigger(client: EnrolledClient, *, actor):
    if client.client_user_created:
        return None

    mark_initial_payment_paid(enrolled_client=client)

    lead = client.lead
    result = None
    try:
        with transaction.atomic():
            result = create_portal_account(lead=lead, enrolled_client=client, created_by=actor)
    except PortalAccountExists as exc:
        logger.info(f"Enrollment {client.pk}: {exc}")
    except Exception:
        logger.exception(f"Portal account provisioning failed for enrollment {client.pk}")
        return None

    client.client_user_created = True
    client.save(update_fields=['client_user_created', 'updated_at'])

    if result is not None:
        _queue_welcome(lead=lead, account=result['account'], credential=result['credential'])
        logger.info(f"Enrollment {client.pk} converged; portal account {result['account'].username} provisioned")

    return result
