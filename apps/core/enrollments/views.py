from django.conf import settings
from django.core.paginator import Paginator
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from apps.core.leads.models import Lead
from apps.core.users.audit import log_audit_event
from apps.core.users.decorators import role_required
from apps.core.users.models import User
from apps.core.utils.api import api_endpoint, api_response, read_payload

from .forms import (
    AdminDecisionForm,
    CombinedInstallmentsForm,
    EnrolledClientCreateForm,
    InstallmentForm,
    InstallmentReviewForm,
    InstallmentSalesReviewForm,
    InstallmentUpdateForm,
    PaymentStatusForm,
    SalesConfigurationForm,
    SalesDecisionForm,
    clean_schedule,
    form_error,
    submitted_values,
)
from .ledger import (
    admin_review_installment,
    create_combined_installments,
    create_installment,
    delete_installment,
    filter_installments,
    installment_summary,
    record_installment_payment,
    sales_review_installment,
    update_installment,
)
from .models import EnrolledClient, Installment
from .negotiation import ENROLLMENT_PHASE, FINAL_PHASE, FINAL_SCOPE_ALL
from .payloads import enrolled_client_payload, installment_payload, ledger_payload, transition_payload
from .services import (
    admin_approve,
    admin_final_approve,
    admin_final_reject_with_edits,
    admin_reject_with_edits,
    create_enrolled_client,
    review_board,
    sales_accept_admin_changes,
    sales_accept_edits,
    sales_reject_admin_changes,
    sales_reject_edits,
    submit_configuration,
    update_final_configuration,
)
from .statements import generate_installment_statement_pdf


def _visible_clients(request):
    return EnrolledClient.objects.visible_to(request.user).select_related('lead', 'sales_person', 'admin')


def _client_or_404(request, pk):
    return get_object_or_404(_visible_clients(request), pk=pk)


def _installment_or_404(request, pk):
    queryset = Installment.objects.filter(enrolled_client__in=EnrolledClient.objects.visible_to(request.user))
    return get_object_or_404(queryset.select_related('enrolled_client'), pk=pk)


def _valid_form(form_class, payload):
    form = form_class(data=payload)
    if not form.is_valid():
        raise form_error(form)
    return form


def _page_number(request):
    value = request.GET.get('page', '1')
    return int(value) if str(value).isdigit() else 1


@role_required(User.ALL_ROLES)
@api_endpoint(['GET', 'POST'])
def enrolled_client_collection(request):
    if request.method == 'POST':
        payload = read_payload(request)
        form = _valid_form(EnrolledClientCreateForm, payload)
        lead = get_object_or_404(Lead, pk=form.cleaned_data['lead_id'])
        result = create_enrolled_client(lead=lead, actor=request.user)
        client = result['enrolled_client']
        if result['created']:
            log_audit_event(
                request=request,
                action='enrollments.client_created',
                target=client,
                details=f"Lead={lead.pk}",
            )
        return api_response(
            'Enrolled client created.' if result['created'] else 'Enrolled client already exists.',
            data=enrolled_client_payload(client),
            status=201 if result['created'] else 200,
        )

    clients = _visible_clients(request)
    status = request.GET.get('status')
    if status:
        clients = clients.in_state(ENROLLMENT_PHASE, status)
    final_status = request.GET.get('final_status')
    if final_status:
        clients = clients.in_state(FINAL_PHASE, final_status)
    sales_person_id = request.GET.get('sales_person')
    if sales_person_id and sales_person_id.isdigit():
        clients = clients.filter(sales_person_id=int(sales_person_id))

    page = Paginator(clients, settings.ENROLLMENT_PAGE_SIZE).get_page(_page_number(request))
    return api_response(
        data={
            'results': [enrolled_client_payload(client) for client in page.object_list],
            'page': page.number,
            'pages': page.paginator.num_pages,
            'count': page.paginator.count,
        },
    )


def _board_response(request, board):
    lanes = review_board(user=request.user, board=board)
    return api_response(
        data={name: [enrolled_client_payload(client) for client in queryset] for name, queryset in lanes.items()},
    )


@role_required(User.SALES_ROLES)
@api_endpoint(['GET'])
def sales_board(request):
    return _board_response(request, 'sales')


@role_required(User.REVIEWER_ROLES)
@api_endpoint(['GET'])
def admin_board(request):
    return _board_response(request, 'admin')


@role_required(User.ALL_ROLES)
@api_endpoint(['GET'])
def enrolled_client_detail(request, pk):
    client = _client_or_404(request, pk)
    return api_response(data=enrolled_client_payload(client, include_installments=True))


@role_required(User.ALL_ROLES)
@api_endpoint(['GET'])
def enrolled_client_by_lead(request, lead_id):
    client = get_object_or_404(_visible_clients(request), lead_id=lead_id)
    return api_response(data=enrolled_client_payload(client, include_installments=True))


@role_required(User.SALES_ROLES)
@api_endpoint(['POST'])
def sales_update(request, pk):
    client = _client_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(SalesConfigurationForm, payload)
    charges = submitted_values(form, payload)
    result = submit_configuration(enrolled_client=client, actor=request.user, charges=charges)
    log_audit_event(
        request=request,
        action='enrollments.configuration_submitted',
        target=client,
        details=', '.join(f"{key}={value}" for key, value in charges.items()),
    )
    return api_response('Configuration submitted for admin review.', data=transition_payload(result))


@role_required(User.REVIEWER_ROLES)
@api_endpoint(['POST'])
def admin_approval(request, pk):
    client = _client_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(AdminDecisionForm, payload)

    if form.cleaned_data['approved']:
        result = admin_approve(enrolled_client=client, actor=request.user)
        action, message = 'enrollments.admin_approved', 'Enrollment charge approved.'
    else:
        result = admin_reject_with_edits(
            enrolled_client=client,
            actor=request.user,
            edits=form.edits(payload),
            remark=form.cleaned_data['remark'],
        )
        action, message = 'enrollments.admin_rejected', 'Changes sent to sales for review.'

    log_audit_event(request=request, action=action, target=client, details=form.cleaned_data['remark'])
    return api_response(message, data=transition_payload(result))


@role_required(User.SALES_ROLES)
@api_endpoint(['POST'])
def sales_approval(request, pk):
    client = _client_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(SalesDecisionForm, payload)

    if form.cleaned_data['approved']:
        result = sales_accept_edits(enrolled_client=client, actor=request.user)
        action, message = 'enrollments.sales_accepted', 'Admin changes accepted.'
    else:
        result = sales_reject_edits(enrolled_client=client, actor=request.user, remark=form.cleaned_data['remark'])
        action, message = 'enrollments.sales_rejected', 'Admin changes rejected.'

    log_audit_event(request=request, action=action, target=client, details=form.cleaned_data['remark'])
    return api_response(message, data=transition_payload(result))


@role_required(User.SALES_ROLES)
@api_endpoint(['POST'])
def final_configuration(request, pk, scope=FINAL_SCOPE_ALL):
    client = _client_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(SalesConfigurationForm, payload)
    charges = submitted_values(form, payload)
    result = update_final_configuration(enrolled_client=client, actor=request.user, charges=charges, scope=scope)
    log_audit_event(
        request=request,
        action='enrollments.final_configuration_submitted',
        target=client,
        details=f"Scope={scope}; " + ', '.join(f"{key}={value}" for key, value in charges.items()),
    )
    return api_response('Final configuration submitted for admin review.', data=transition_payload(result))


@role_required(User.REVIEWER_ROLES)
@api_endpoint(['POST'])
def final_approval(request, pk, scope=FINAL_SCOPE_ALL):
    client = _client_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(AdminDecisionForm, payload)

    if form.cleaned_data['approved']:
        result = admin_final_approve(enrolled_client=client, actor=request.user, scope=scope)
        action, message = 'enrollments.final_admin_approved', 'Final configuration approved.'
    else:
        result = admin_final_reject_with_edits(
            enrolled_client=client,
            actor=request.user,
            edits=form.edits(payload),
            remark=form.cleaned_data['remark'],
            scope=scope,
        )
        action, message = 'enrollments.final_admin_rejected', 'Final configuration changes sent to sales.'

    log_audit_event(request=request, action=action, target=client, details=f"Scope={scope}")
    return api_response(message, data=transition_payload(result))


@role_required(User.SALES_ROLES)
@api_endpoint(['POST'])
def accept_admin_changes(request, pk, scope=FINAL_SCOPE_ALL):
    client = _client_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(SalesDecisionForm, payload)

    if form.cleaned_data['approved']:
        result = sales_accept_admin_changes(enrolled_client=client, actor=request.user, scope=scope)
        action, message = 'enrollments.final_sales_accepted', 'Final configuration changes accepted.'
    else:
        result = sales_reject_admin_changes(
            enrolled_client=client,
            actor=request.user,
            remark=form.cleaned_data['remark'],
            scope=scope,
        )
        action, message = 'enrollments.final_sales_rejected', 'Final configuration changes rejected.'

    log_audit_event(request=request, action=action, target=client, details=f"Scope={scope}")
    return api_response(message, data=transition_payload(result))


@role_required(User.ALL_ROLES)
@api_endpoint(['GET'])
def installment_statement_pdf(request, pk):
    client = _client_or_404(request, pk)
    pdf_bytes = generate_installment_statement_pdf(client)
    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    response['Content-Disposition'] = f'inline; filename="enrollment-{client.pk}-statement.pdf"'
    return response


@role_required(User.ALL_ROLES)
@api_endpoint(['GET', 'POST'])
def installment_collection(request):
    if request.method == 'POST':
        payload = read_payload(request)
        form = _valid_form(InstallmentForm, payload)
        data = form.cleaned_data
        client = _client_or_404(request, data['enrolled_client_id'])
        result = create_installment(
            enrolled_client=client,
            actor=request.user,
            charge_type=data['charge_type'],
            amount=data['amount'],
            due_date=data['due_date'],
            remark=data['remark'],
            installment_number=data['installment_number'],
            is_initial_payment=data['is_initial_payment'],
        )
        log_audit_event(
            request=request,
            action='enrollments.installment_created',
            target=result['installment'],
            details=f"Charge={data['charge_type']}, Amount={data['amount']}",
        )
        return api_response('Installment created.', data=ledger_payload(result), status=201)

    rows = Installment.objects.filter(
        enrolled_client__in=EnrolledClient.objects.visible_to(request.user),
    )
    rows = filter_installments(
        rows,
        enrolled_client_id=request.GET.get('enrolledClientId'),
        charge_type=request.GET.get('chargeType'),
        status=request.GET.get('status'),
    )
    data = {'results': [installment_payload(row) for row in rows]}

    client_id = request.GET.get('enrolledClientId')
    charge_type = request.GET.get('chargeType')
    if client_id and charge_type:
        data['summary'] = installment_summary(enrolled_client=_client_or_404(request, client_id), charge_type=charge_type)
    return api_response(data=data)


@role_required(User.ALL_ROLES)
@api_endpoint(['POST'])
def installment_combined(request):
    payload = read_payload(request)
    form = _valid_form(CombinedInstallmentsForm, payload)
    client = _client_or_404(request, form.cleaned_data['enrolled_client_id'])
    result = create_combined_installments(
        enrolled_client=client,
        actor=request.user,
        offer_letter_installments=clean_schedule(payload.get('offer_letter_installments'), 'offer_letter_installments'),
        first_year_installments=clean_schedule(payload.get('first_year_installments'), 'first_year_installments'),
    )
    log_audit_event(
        request=request,
        action='enrollments.combined_installments_created',
        target=client,
        details=(
            f"OfferLetter={len(result['offer_letter_installments'])}, "
            f"FirstYear={len(result['first_year_installments'])}"
        ),
    )
    return api_response(
        'Combined installments created.',
        data={
            'offer_letter_installments': [installment_payload(row) for row in result['offer_letter_installments']],
            'first_year_installments': [installment_payload(row) for row in result['first_year_installments']],
            'summaries': result['summaries'],
        },
        status=201,
    )


@role_required(User.ALL_ROLES)
@api_endpoint(['GET', 'PUT', 'DELETE'])
def installment_detail(request, pk):
    installment = _installment_or_404(request, pk)

    if request.method == 'GET':
        return api_response(data=installment_payload(installment))

    if request.method == 'DELETE':
        result = delete_installment(installment=installment, actor=request.user)
        log_audit_event(
            request=request,
            action='enrollments.installment_deleted',
            target=installment.enrolled_client,
            details=f"Installment={result['installment_id']}",
        )
        return api_response('Installment deleted.', data=result)

    payload = read_payload(request)
    form = _valid_form(InstallmentUpdateForm, payload)
    changes = submitted_values(form, payload)
    result = update_installment(installment=installment, actor=request.user, changes=changes)
    log_audit_event(
        request=request,
        action='enrollments.installment_updated',
        target=result['installment'],
        details=', '.join(sorted(changes)),
    )
    return api_response('Installment updated.', data=installment_payload(result['installment']))


@role_required(User.REVIEWER_ROLES)
@api_endpoint(['POST'])
def installment_admin_review(request, pk):
    installment = _installment_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(InstallmentReviewForm, payload)
    approved = form.cleaned_data['approved']
    result = admin_review_installment(
        installment=installment,
        actor=request.user,
        approved=approved,
        edits=submitted_values(form, payload),
    )
    log_audit_event(
        request=request,
        action='enrollments.installment_admin_approved' if approved else 'enrollments.installment_admin_rejected',
        target=result['installment'],
    )
    return api_response(
        'Installment approved.' if approved else 'Installment changes sent to sales.',
        data=installment_payload(result['installment']),
    )


@role_required(User.SALES_ROLES)
@api_endpoint(['POST'])
def installment_sales_review(request, pk):
    installment = _installment_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(InstallmentSalesReviewForm, payload)
    approved = form.cleaned_data['approved']
    result = sales_review_installment(installment=installment, actor=request.user, approved=approved)
    log_audit_event(
        request=request,
        action='enrollments.installment_sales_accepted' if approved else 'enrollments.installment_sales_rejected',
        target=result['installment'],
    )
    return api_response(
        'Installment changes accepted.' if approved else 'Installment changes rejected.',
        data=installment_payload(result['installment']),
    )


@role_required(User.REVIEWER_ROLES)
@api_endpoint(['POST'])
def installment_payment(request, pk):
    installment = _installment_or_404(request, pk)
    payload = read_payload(request)
    form = _valid_form(PaymentStatusForm, payload)
    values = submitted_values(form, payload)
    result = record_installment_payment(
        installment=installment,
        actor=request.user,
        paid=form.cleaned_data['paid'],
        paid_date=values.get('paid_date'),
        net_amount=values.get('net_amount'),
        remark=values.get('remark'),
    )
    log_audit_event(
        request=request,
        action='enrollments.installment_payment_recorded',
        target=result['installment'],
        details=f"Paid={result['installment'].paid}",
    )
    return api_response('Payment status updated.', data=installment_payload(result['installment']))
