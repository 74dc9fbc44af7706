from apps.core.leads.services import lead_contact

from .negotiation import ALL_FIELDS, ENROLLMENT_PHASE, FINAL_PHASE


def user_payload(user):
    if user is None:
        return None
    return {
        'id': user.pk,
        'username': user.username,
        'name': user.get_full_name() or user.username,
        'role': user.role,
    }


def phase_payload(phase, client):
    sales, admin, pending = phase.flags(client)
    return {
        'state': phase.state(client),
        'sales_approved': sales,
        'admin_approved': admin,
        'has_update': pending,
    }


def enrolled_client_payload(client, *, include_installments=False):
    data = {
        'id': client.pk,
        'lead': {**lead_contact(client.lead), 'status': client.lead.status},
        'enrollment_phase': phase_payload(ENROLLMENT_PHASE, client),
        'final_phase': phase_payload(FINAL_PHASE, client),
        'client_user_created': client.client_user_created,
        'sales_person': user_payload(client.sales_person),
        'admin': user_payload(client.admin),
        'created_at': client.created_at,
        'updated_at': client.updated_at,
    }
    for negotiable in ALL_FIELDS:
        data[negotiable.canonical] = getattr(client, negotiable.canonical)
        data[negotiable.proposed] = getattr(client, negotiable.proposed)

    if include_installments:
        data['installments'] = [installment_payload(row) for row in client.installments.all()]
    return data


def installment_payload(row):
    return {
        'id': row.pk,
        'enrolled_client_id': row.enrolled_client_id,
        'charge_type': row.charge_type,
        'installment_number': row.installment_number,
        'amount': row.amount,
        'net_amount': row.net_amount,
        'due_date': row.due_date,
        'remark': row.remark,
        'edited_amount': row.edited_amount,
        'edited_due_date': row.edited_due_date,
        'edited_remark': row.edited_remark,
        'has_admin_update': row.has_admin_update,
        'sales_approval': row.sales_approval,
        'is_initial_payment': row.is_initial_payment,
        'paid': row.paid,
        'paid_date': row.paid_date,
        'paid_at': row.paid_at,
    }


def ledger_payload(result):
    data = {key: value for key, value in result.items() if key != 'installment'}
    if 'installment' in result:
        data['installment'] = installment_payload(result['installment'])
    return data


def transition_payload(result):
    data = {
        'phase': result['phase'],
        'state': result['state'],
        'enrolled_client': enrolled_client_payload(result['enrolled_client']),
    }
    if 'installments_snapshotted' in result:
        data['installments_snapshotted'] = result['installments_snapshotted']
    if 'installments_updated' in result:
        data['installments_updated'] = [row.pk for row in result['installments_updated']]
    if result.get('portal_account') is not None:
        data['portal_username'] = result['portal_account'].username
    return data
