import logging
import re

from django.conf import settings
from django.db import transaction
from django.utils.crypto import get_random_string

from apps.core.leads.services import lead_contact

from .exceptions import PortalAccountExists
from .models import ClientUser

logger = logging.getLogger(__name__)


def _username_base(contact):
    raw = '_'.join(part for part in (contact['first_name'], contact['last_name']) if part)
    base = re.sub(r'[^a-z0-9_]+', '', raw.lower().replace(' ', '_'))
    return base or f"client_{contact['lead_id']}"


def _unique_username(contact):
    base = _username_base(contact)
    username = base
    suffix = 1
    while ClientUser.objects.filter(username=username).exists():
        suffix += 1
        username = f"{base}{suffix}"
    return username


def generate_credential():
    return get_random_string(settings.PORTAL_CREDENTIAL_LENGTH)


@transaction.atomic
def create_portal_account(*, lead, enrolled_client=None, created_by=None):
    existing = ClientUser.objects.filter(lead=lead).first()
    if existing is None and enrolled_client is not None:
        existing = ClientUser.objects.filter(enrolled_client=enrolled_client).first()
    if existing is not None:
        raise PortalAccountExists(existing)

    contact = lead_contact(lead)
    credential = generate_credential()
    account = ClientUser(
        lead=lead,
        enrolled_client=enrolled_client,
        username=_unique_username(contact),
        first_name=contact['first_name'],
        last_name=contact['last_name'],
        email=contact['email'],
        contact_number=contact['contact_number'],
        created_by=created_by,
    )
    account.set_password(credential)
    account.save()
    logger.info(f"Portal account {account.username} created for lead {lead.pk}")

    return {
        'account': account,
        'credential': credential,
    }
