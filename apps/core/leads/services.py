from .models import Lead


def lead_contact(lead: Lead) -> dict:
    """Identity and contact fields of a lead, as handed to the portal and notifications."""
    return {
        'lead_id': lead.pk,
        'first_name': lead.first_name,
        'last_name': lead.last_name,
        'name': lead.full_name,
        'email': lead.primary_email,
        'contact_number': lead.primary_contact,
    }
