import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from apps.core.leads.models import Lead
from apps.core.portal.models import ClientUser
from apps.core.portal.services import create_portal_account
from apps.core.users.models import AuditLog

from .exceptions import AmountExceedsRemaining, DuplicateInstallmentNumber, InvalidTransition
from .ledger import (
    admin_review_installment,
    create_combined_installments,
    create_installment,
    delete_installment,
    installment_summary,
    mark_initial_payment_paid,
    record_installment_payment,
    sales_review_installment,
    update_installment,
)
from .models import EnrolledClient, Installment
from .negotiation import (
    ENROLLMENT_PHASE,
    FINAL_PHASE,
    STATE_APPROVED,
    STATE_AWAITING_SALES,
    STATE_DRAFT,
    STATE_PENDING_ADMIN_REVIEW,
    STATE_PENDING_SALES_REVIEW,
    Negotiated,
)
from .reconciliation import net_first_year_price, remaining_amount, snapshot_installment
from .services import (
    admin_approve,
    admin_final_approve,
    admin_final_reject_with_edits,
    admin_reject_with_edits,
    sales_accept_admin_changes,
    sales_accept_edits,
    sales_reject_edits,
    submit_configuration,
    update_final_configuration,
)

PROVISIONING = 'apps.core.enrollments.convergence.create_portal_account'


class NegotiatedValueTests(SimpleTestCase):
    def test_approve_settles_proposal_on_canonical_value(self):
        value = Negotiated(Decimal('500.00'), Decimal('700.00')).approve()
        self.assertEqual(value, Negotiated(Decimal('500.00'), Decimal('500.00')))

    def test_accept_promotes_proposal(self):
        value = Negotiated(Decimal('500.00')).propose(Decimal('650.00')).accept()
        self.assertEqual(value.canonical, Decimal('650.00'))
        self.assertEqual(value.proposed, Decimal('650.00'))

    def test_accept_without_proposal_keeps_canonical_value(self):
        value = Negotiated(Decimal('500.00'), None).accept()
        self.assertEqual(value, Negotiated(Decimal('500.00'), Decimal('500.00')))

    def test_counter_proposal_replaces_previous_proposal(self):
        value = Negotiated(Decimal('500.00')).propose(Decimal('650.00')).counter_propose(Decimal('600.00'))
        self.assertEqual(value.proposed, Decimal('600.00'))
        self.assertEqual(value.canonical, Decimal('500.00'))


class ReconciliationTests(SimpleTestCase):
    def test_remaining_amount_subtracts_scheduled_rows(self):
        self.assertEqual(remaining_amount(Decimal('1000'), [Decimal('250'), Decimal('100.50')]), Decimal('649.50'))
        self.assertEqual(remaining_amount(None, []), Decimal('0.00'))

    def test_net_first_year_price_prefers_fixed_charge(self):
        self.assertEqual(net_first_year_price(Decimal('10'), Decimal('9000'), Decimal('100000')), Decimal('9000.00'))
        self.assertEqual(net_first_year_price(Decimal('12.5'), None, Decimal('80000')), Decimal('10000.00'))
        self.assertEqual(net_first_year_price(Decimal('10'), None, None, fallback=Decimal('1.00')), Decimal('1.00'))


class ApprovalPhaseStateTests(SimpleTestCase):
    def _client(self, sales, admin, pending):
        return EnrolledClient(approval_by_sales=sales, approval_by_admin=admin, has_update=pending)

    def test_states_follow_flag_triplet(self):
        cases = [
            ((False, False, False), STATE_DRAFT),
            ((True, False, False), STATE_PENDING_ADMIN_REVIEW),
            ((False, False, True), STATE_PENDING_ADMIN_REVIEW),
            ((True, False, True), STATE_PENDING_SALES_REVIEW),
            ((False, True, False), STATE_AWAITING_SALES),
            ((True, True, False), STATE_APPROVED),
        ]
        for flags, expected in cases:
            with self.subTest(flags=flags):
                self.assertEqual(ENROLLMENT_PHASE.state(self._client(*flags)), expected)

    def test_final_phase_reads_its_own_flags(self):
        client = EnrolledClient(approval_by_sales=True, approval_by_admin=True, final_approval_sales=True)
        self.assertEqual(ENROLLMENT_PHASE.state(client), STATE_APPROVED)
        self.assertEqual(FINAL_PHASE.state(client), STATE_PENDING_ADMIN_REVIEW)

    def test_sales_accept_requires_pending_edit(self):
        with self.assertRaises(InvalidTransition):
            ENROLLMENT_PHASE.sales_accept(self._client(True, False, False))


class EnrollmentBaseTestCase(TestCase):
    def setUp(self):
        user_model = get_user_model()
        self.today = timezone.localdate()

        self.sales = user_model.objects.create_user(
            username='sales_user',
            password='pass12345',
            role='sales',
            email='sales@example.com',
        )
        self.reviewer = user_model.objects.create_user(
            username='admin_user',
            password='pass12345',
            role='admin',
            email='admin@example.com',
        )
        self.lead = Lead.objects.create(
            first_name='Asha',
            last_name='Rao',
            primary_email='asha@example.com',
            primary_contact='5551234567',
            technology='Python',
            status=Lead.STATUS_ENROLLED,
            assigned_to=self.sales,
            created_by=self.sales,
        )
        self.enrollment = EnrolledClient.objects.get(lead=self.lead)

    def refresh(self):
        self.enrollment.refresh_from_db()
        return self.enrollment

    def submit(self, **charges):
        return submit_configuration(enrolled_client=self.enrollment, actor=self.sales, charges=charges)

    def add_installment(self, charge_type, amount, **extra):
        values = {
            'enrolled_client': self.enrollment,
            'charge_type': charge_type,
            'installment_number': extra.pop('installment_number', 1),
            'amount': amount,
            'net_amount': amount,
            'due_date': self.today + timedelta(days=30),
        }
        values.update(extra)
        return Installment.objects.create(**values)


class EnrollmentPhaseServiceTests(EnrollmentBaseTestCase):
    def test_signal_opens_enrollment_for_assigned_sales_person(self):
        self.assertEqual(self.enrollment.sales_person, self.sales)
        self.assertEqual(ENROLLMENT_PHASE.state(self.enrollment), STATE_DRAFT)

    def test_submit_configuration_moves_to_pending_admin_review(self):
        result = self.submit(payable_enrollment_charge=Decimal('500'))

        client = self.refresh()
        self.assertEqual(result['state'], STATE_PENDING_ADMIN_REVIEW)
        self.assertEqual(client.payable_enrollment_charge, Decimal('500.00'))
        self.assertTrue(client.approval_by_sales)
        self.assertFalse(client.approval_by_admin)
        self.assertFalse(client.has_update)

    def test_submit_restarts_negotiation_after_approval(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        self.submit(payable_enrollment_charge=Decimal('550'))

        client = self.refresh()
        self.assertFalse(client.approval_by_admin)
        self.assertEqual(ENROLLMENT_PHASE.state(client), STATE_PENDING_ADMIN_REVIEW)

    def test_submit_rejects_percentage_and_fixed_charge_together(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(
                first_year_salary=Decimal('100000'),
                payable_first_year_percentage=Decimal('10'),
                payable_first_year_fixed_charge=Decimal('9000'),
            )
        self.assertIn('payable_first_year_fixed_charge', ctx.exception.message_dict)

    def test_submit_percentage_requires_salary(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(payable_first_year_percentage=Decimal('10'))
        self.assertIn('first_year_salary', ctx.exception.message_dict)

    def test_submit_rejects_percentage_out_of_bounds(self):
        with self.assertRaises(ValidationError):
            self.submit(first_year_salary=Decimal('100000'), payable_first_year_percentage=Decimal('120'))

    def test_submit_derives_net_first_year_price(self):
        self.submit(first_year_salary=Decimal('100000'), payable_first_year_percentage=Decimal('10'))
        self.assertEqual(self.refresh().net_payable_first_year_price, Decimal('10000.00'))

        self.submit(payable_first_year_fixed_charge=Decimal('9000'))

        client = self.refresh()
        self.assertIsNone(client.payable_first_year_percentage)
        self.assertEqual(client.payable_first_year_fixed_charge, Decimal('9000.00'))
        self.assertEqual(client.net_payable_first_year_price, Decimal('9000.00'))

    def test_submit_rejects_net_price_when_fixed_charge_sets_it(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(
                payable_first_year_fixed_charge=Decimal('8000'),
                net_payable_first_year_price=Decimal('9000'),
            )
        self.assertIn('net_payable_first_year_price', ctx.exception.message_dict)
        self.assertIsNone(self.refresh().payable_first_year_fixed_charge)

    def test_admin_edit_of_derived_net_price_is_rejected(self):
        self.submit(payable_first_year_fixed_charge=Decimal('8000'))
        admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        with self.assertRaises(ValidationError) as ctx:
            admin_reject_with_edits(
                enrolled_client=self.enrollment,
                actor=self.reviewer,
                edits={'edited_net_payable_first_year_price': Decimal('9000')},
            )

        self.assertIn('edited_net_payable_first_year_price', ctx.exception.message_dict)
        client = self.refresh()
        self.assertEqual(client.edited_net_payable_first_year_price, Decimal('8000.00'))
        self.assertTrue(client.approval_by_admin)
        self.assertFalse(client.has_update)

    def test_net_price_without_percentage_or_fixed_charge_is_kept(self):
        self.submit(net_payable_first_year_price=Decimal('7500'))
        self.assertEqual(self.refresh().net_payable_first_year_price, Decimal('7500.00'))

        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_net_payable_first_year_price': Decimal('7000')},
        )
        self.assertEqual(self.refresh().edited_net_payable_first_year_price, Decimal('7000.00'))

        sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)
        self.assertEqual(self.refresh().net_payable_first_year_price, Decimal('7000.00'))

    def test_submission_counts_as_sales_approval(self):
        self.submit(payable_offer_letter_charge=Decimal('2000'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_offer_letter_charge': Decimal('1500')},
        )
        sales_reject_edits(enrolled_client=self.enrollment, actor=self.sales)
        client = self.refresh()
        self.assertEqual(
            (client.approval_by_sales, client.approval_by_admin, client.has_update),
            (False, False, True),
        )

        self.submit(payable_offer_letter_charge=Decimal('1800'))

        client = self.refresh()
        self.assertEqual(
            (client.approval_by_sales, client.approval_by_admin, client.has_update),
            (True, False, False),
        )
        self.assertEqual(ENROLLMENT_PHASE.state(client), STATE_PENDING_ADMIN_REVIEW)
        self.assertEqual(client.edited_offer_letter_charge, Decimal('1500.00'))

        with patch(PROVISIONING, wraps=create_portal_account) as provisioning:
            admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)
        provisioning.assert_called_once()
        self.assertEqual(ENROLLMENT_PHASE.state(self.refresh()), STATE_APPROVED)

    def test_admin_approve_snapshots_client_and_installments(self):
        self.submit(
            payable_enrollment_charge=Decimal('500'),
            payable_offer_letter_charge=Decimal('2000'),
            first_year_salary=Decimal('100000'),
            payable_first_year_percentage=Decimal('10'),
        )
        row = self.add_installment(Installment.CHARGE_ENROLLMENT, Decimal('200.00'), remark='First slice')

        with patch(PROVISIONING, wraps=create_portal_account):
            admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        client = self.refresh()
        self.assertTrue(client.approval_by_admin)
        for negotiable in ENROLLMENT_PHASE.fields:
            with self.subTest(field=negotiable.canonical):
                self.assertEqual(getattr(client, negotiable.proposed), getattr(client, negotiable.canonical))

        row.refresh_from_db()
        self.assertEqual(row.edited_amount, Decimal('200.00'))
        self.assertEqual(row.edited_due_date, row.due_date)
        self.assertEqual(row.edited_remark, 'First slice')
        self.assertFalse(row.has_admin_update)

    def test_reject_then_accept_promotes_admin_values(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_enrollment_charge': Decimal('700')},
        )
        self.assertEqual(ENROLLMENT_PHASE.state(self.refresh()), STATE_PENDING_SALES_REVIEW)

        sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)

        client = self.refresh()
        self.assertEqual(client.payable_enrollment_charge, Decimal('700.00'))
        self.assertEqual(client.edited_enrollment_charge, Decimal('700.00'))
        self.assertTrue(client.approval_by_sales)
        self.assertTrue(client.approval_by_admin)
        self.assertFalse(client.has_update)

    def test_admin_reject_only_writes_provided_edits(self):
        self.submit(payable_enrollment_charge=Decimal('500'), payable_offer_letter_charge=Decimal('2000'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_offer_letter_charge': Decimal('1500')},
        )
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_enrollment_charge': Decimal('450')},
        )

        client = self.refresh()
        self.assertEqual(client.edited_offer_letter_charge, Decimal('1500.00'))
        self.assertEqual(client.edited_enrollment_charge, Decimal('450.00'))
        self.assertEqual(client.payable_enrollment_charge, Decimal('500.00'))

    def test_sales_reject_keeps_pending_update(self):
        self.submit(payable_offer_letter_charge=Decimal('2000'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_offer_letter_charge': Decimal('300')},
        )
        self.assertTrue(self.refresh().has_update)

        sales_reject_edits(enrolled_client=self.enrollment, actor=self.sales, remark='Too low')

        client = self.refresh()
        self.assertFalse(client.approval_by_sales)
        self.assertTrue(client.has_update)
        self.assertEqual(client.payable_offer_letter_charge, Decimal('2000.00'))
        self.assertEqual(client.edited_offer_letter_charge, Decimal('300.00'))
        self.assertEqual(ENROLLMENT_PHASE.state(client), STATE_PENDING_ADMIN_REVIEW)

    def test_sales_decisions_require_pending_edit(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        with self.assertRaises(InvalidTransition):
            sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)
        with self.assertRaises(InvalidTransition):
            sales_reject_edits(enrolled_client=self.enrollment, actor=self.sales)

    def test_accept_only_rewrites_installments_awaiting_sales(self):
        edited = self.add_installment(
            Installment.CHARGE_FIRST_YEAR,
            Decimal('500.00'),
            installment_number=1,
            edited_amount=Decimal('450.00'),
            edited_due_date=self.today + timedelta(days=45),
            edited_remark='Moved',
            has_admin_update=True,
        )
        untouched = self.add_installment(Installment.CHARGE_FIRST_YEAR, Decimal('500.00'), installment_number=2)

        self.submit(payable_enrollment_charge=Decimal('500'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_enrollment_charge': Decimal('600')},
        )
        result = sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)

        self.assertEqual([row.pk for row in result['installments_updated']], [edited.pk])
        edited.refresh_from_db()
        self.assertEqual(edited.amount, Decimal('450.00'))
        self.assertEqual(edited.net_amount, Decimal('450.00'))
        self.assertEqual(edited.due_date, self.today + timedelta(days=45))
        self.assertEqual(edited.remark, 'Moved')
        self.assertEqual(edited.edited_amount, Decimal('450.00'))
        self.assertTrue(edited.sales_approval)
        self.assertFalse(edited.has_admin_update)

        untouched_before = untouched.updated_at
        untouched.refresh_from_db()
        self.assertEqual(untouched.amount, Decimal('500.00'))
        self.assertFalse(untouched.sales_approval)
        self.assertEqual(untouched.updated_at, untouched_before)

    def test_accepting_fixed_charge_clears_percentage(self):
        self.submit(first_year_salary=Decimal('100000'), payable_first_year_percentage=Decimal('10'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_first_year_fixed_charge': Decimal('9000')},
        )
        self.assertIsNone(self.refresh().edited_first_year_percentage)

        sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)

        client = self.refresh()
        self.assertIsNone(client.payable_first_year_percentage)
        self.assertEqual(client.payable_first_year_fixed_charge, Decimal('9000.00'))
        self.assertEqual(client.net_payable_first_year_price, Decimal('9000.00'))
        self.assertEqual(client.first_year_salary, Decimal('100000.00'))
        self.assertEqual(client.edited_first_year_salary, Decimal('100000.00'))

    def test_database_rejects_pending_update_with_admin_approval(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            EnrolledClient.objects.filter(pk=self.enrollment.pk).update(has_update=True, approval_by_admin=True)

    def test_database_rejects_percentage_and_fixed_pricing(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            EnrolledClient.objects.filter(pk=self.enrollment.pk).update(
                payable_first_year_percentage=Decimal('10'),
                payable_first_year_fixed_charge=Decimal('9000'),
            )


class ConvergenceTests(EnrollmentBaseTestCase):
    def test_admin_approval_after_sales_submission_provisions_portal_account(self):
        initial = create_installment(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charge_type=Installment.CHARGE_ENROLLMENT,
            amount=Decimal('100'),
            is_initial_payment=True,
        )['installment']
        self.assertFalse(initial.paid)
        self.submit(payable_enrollment_charge=Decimal('500'))

        with self.captureOnCommitCallbacks(execute=True):
            result = admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        client = self.refresh()
        self.assertTrue(client.client_user_created)
        initial.refresh_from_db()
        self.assertTrue(initial.paid)
        self.assertEqual(initial.paid_date, self.today)

        account = ClientUser.objects.get(lead=self.lead)
        self.assertEqual(result['portal_account'], account)
        self.assertEqual(account.username, 'asha_rao')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['asha@example.com'])
        credential = next(
            line.split(': ', 1)[1]
            for line in mail.outbox[0].body.splitlines()
            if line.startswith('Temporary password:')
        )
        self.assertTrue(account.check_password(credential))
        self.assertNotEqual(account.password, credential)

    def test_repeated_convergence_provisions_once(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        with patch(PROVISIONING, wraps=create_portal_account) as provisioning:
            admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)
            admin_reject_with_edits(
                enrolled_client=self.enrollment,
                actor=self.reviewer,
                edits={'edited_enrollment_charge': Decimal('550')},
            )
            sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)
            admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        self.assertEqual(provisioning.call_count, 1)
        self.assertTrue(self.refresh().client_user_created)
        self.assertEqual(ClientUser.objects.filter(lead=self.lead).count(), 1)

    def test_single_sided_approval_does_not_converge(self):
        other_lead = Lead.objects.create(first_name='Ben', last_name='Ng', status=Lead.STATUS_ENROLLED)
        other = EnrolledClient.objects.get(lead=other_lead)

        with patch(PROVISIONING) as provisioning:
            self.submit(payable_enrollment_charge=Decimal('500'))
            admin_approve(enrolled_client=other, actor=self.reviewer)

        provisioning.assert_not_called()
        other.refresh_from_db()
        self.assertEqual(ENROLLMENT_PHASE.state(other), STATE_AWAITING_SALES)
        self.assertFalse(other.client_user_created)
        self.assertFalse(self.refresh().client_user_created)

    def test_provisioning_failure_keeps_approval_and_retries_later(self):
        self.submit(payable_enrollment_charge=Decimal('500'))

        with patch(PROVISIONING, side_effect=RuntimeError('portal down')):
            with self.assertLogs('apps.core.enrollments.convergence', level='ERROR'):
                admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        client = self.refresh()
        self.assertTrue(client.approval_by_admin)
        self.assertFalse(client.client_user_created)
        self.assertFalse(ClientUser.objects.filter(lead=self.lead).exists())

        admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)
        self.assertTrue(self.refresh().client_user_created)

    def test_existing_portal_account_counts_as_provisioned(self):
        create_portal_account(lead=self.lead, created_by=self.reviewer)
        self.submit(payable_enrollment_charge=Decimal('500'))

        with self.captureOnCommitCallbacks(execute=True):
            admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        self.assertTrue(self.refresh().client_user_created)
        self.assertEqual(ClientUser.objects.filter(lead=self.lead).count(), 1)
        self.assertEqual(mail.outbox, [])

    def test_final_phase_convergence_does_not_provision(self):
        with patch(PROVISIONING) as provisioning:
            update_final_configuration(
                enrolled_client=self.enrollment,
                actor=self.sales,
                charges={'payable_offer_letter_charge': Decimal('2000')},
            )
            result = admin_final_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        provisioning.assert_not_called()
        self.assertEqual(result['state'], STATE_APPROVED)
        client = self.refresh()
        self.assertFalse(client.client_user_created)
        self.assertFalse(client.approval_by_sales)

    def test_admin_rejection_notifies_sales_person(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        with self.captureOnCommitCallbacks(execute=True):
            admin_reject_with_edits(
                enrolled_client=self.enrollment,
                actor=self.reviewer,
                edits={'edited_enrollment_charge': Decimal('600')},
                remark='Discount too deep',
            )

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['sales@example.com'])
        self.assertIn('Discount too deep', mail.outbox[0].body)

    def test_welcome_mail_failure_keeps_provisioning(self):
        initial = create_installment(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charge_type=Installment.CHARGE_ENROLLMENT,
            amount=Decimal('100'),
            is_initial_payment=True,
        )['installment']
        self.submit(payable_enrollment_charge=Decimal('500'))

        with patch('apps.core.portal.notifications.send_mail', side_effect=OSError('smtp down')):
            with self.assertLogs('apps.core.portal.notifications', level='ERROR'):
                with self.captureOnCommitCallbacks(execute=True):
                    admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        client = self.refresh()
        self.assertTrue(client.approval_by_admin)
        self.assertTrue(client.client_user_created)
        self.assertTrue(ClientUser.objects.filter(lead=self.lead).exists())
        initial.refresh_from_db()
        self.assertTrue(initial.paid)
        self.assertEqual(mail.outbox, [])


class AtomicFanOutTests(EnrollmentBaseTestCase):
    def test_installment_snapshot_failure_rolls_back_approval(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        first = self.add_installment(Installment.CHARGE_ENROLLMENT, Decimal('200.00'), installment_number=1)
        second = self.add_installment(Installment.CHARGE_ENROLLMENT, Decimal('300.00'), installment_number=2)

        def snapshot_first_then_fail(rows):
            row = next(iter(rows))
            row.save(update_fields=snapshot_installment(row) + ['updated_at'])
            raise DatabaseError('disk full')

        with patch('apps.core.enrollments.ledger.snapshot_installments', side_effect=snapshot_first_then_fail):
            with patch(PROVISIONING) as provisioning:
                with self.assertRaises(DatabaseError):
                    admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        provisioning.assert_not_called()
        client = self.refresh()
        self.assertFalse(client.approval_by_admin)
        self.assertIsNone(client.admin)
        self.assertIsNone(client.edited_enrollment_charge)
        for row in (first, second):
            row.refresh_from_db()
            self.assertIsNone(row.edited_amount)
            self.assertIsNone(row.edited_due_date)
            self.assertIsNone(row.edited_remark)

    def test_installment_apply_failure_rolls_back_acceptance(self):
        pending = self.add_installment(
            Installment.CHARGE_ENROLLMENT,
            Decimal('200.00'),
            edited_amount=Decimal('150.00'),
            has_admin_update=True,
        )
        self.submit(payable_enrollment_charge=Decimal('500'))
        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_enrollment_charge': Decimal('450')},
        )

        with patch('apps.core.enrollments.ledger.apply_pending_installment_edits', side_effect=DatabaseError('disk full')):
            with self.assertRaises(DatabaseError):
                sales_accept_edits(enrolled_client=self.enrollment, actor=self.sales)

        client = self.refresh()
        self.assertEqual(client.payable_enrollment_charge, Decimal('500.00'))
        self.assertEqual(client.edited_enrollment_charge, Decimal('450.00'))
        self.assertTrue(client.has_update)
        self.assertFalse(client.approval_by_admin)
        pending.refresh_from_db()
        self.assertEqual(pending.amount, Decimal('200.00'))
        self.assertTrue(pending.has_admin_update)


class FinalConfigurationTests(EnrollmentBaseTestCase):
    def setUp(self):
        super().setUp()
        update_final_configuration(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charges={
                'payable_offer_letter_charge': Decimal('2000'),
                'first_year_salary': Decimal('100000'),
                'payable_first_year_percentage': Decimal('10'),
            },
        )

    def test_final_submission_uses_final_flags(self):
        client = self.refresh()
        self.assertTrue(client.final_approval_sales)
        self.assertFalse(client.final_approval_by_admin)
        self.assertFalse(client.approval_by_sales)
        self.assertEqual(client.net_payable_first_year_price, Decimal('10000.00'))

    def test_final_approval_snapshots_offer_letter_and_first_year_fields(self):
        offer_row = self.add_installment(Installment.CHARGE_OFFER_LETTER, Decimal('1000.00'))
        enrollment_row = self.add_installment(Installment.CHARGE_ENROLLMENT, Decimal('100.00'))

        result = admin_final_approve(enrolled_client=self.enrollment, actor=self.reviewer)

        self.assertEqual(result['installments_snapshotted'], 1)
        client = self.refresh()
        self.assertEqual(client.edited_offer_letter_charge, Decimal('2000.00'))
        self.assertEqual(client.edited_net_payable_first_year_price, Decimal('10000.00'))
        self.assertIsNone(client.edited_enrollment_charge)
        offer_row.refresh_from_db()
        enrollment_row.refresh_from_db()
        self.assertEqual(offer_row.edited_amount, Decimal('1000.00'))
        self.assertIsNone(enrollment_row.edited_amount)

    def test_offer_letter_scope_only_touches_offer_letter(self):
        offer_row = self.add_installment(
            Installment.CHARGE_OFFER_LETTER,
            Decimal('1000.00'),
            edited_amount=Decimal('900.00'),
            has_admin_update=True,
        )
        first_year_row = self.add_installment(
            Installment.CHARGE_FIRST_YEAR,
            Decimal('5000.00'),
            edited_amount=Decimal('4000.00'),
            has_admin_update=True,
        )

        admin_final_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_offer_letter_charge': Decimal('1800')},
            scope='offer_letter',
        )
        self.assertTrue(self.refresh().has_update_in_final)

        sales_accept_admin_changes(enrolled_client=self.enrollment, actor=self.sales, scope='offer_letter')

        client = self.refresh()
        self.assertEqual(client.payable_offer_letter_charge, Decimal('1800.00'))
        self.assertTrue(client.final_approval_by_admin)
        self.assertFalse(client.has_update_in_final)
        offer_row.refresh_from_db()
        first_year_row.refresh_from_db()
        self.assertEqual(offer_row.amount, Decimal('900.00'))
        self.assertEqual(first_year_row.amount, Decimal('5000.00'))
        self.assertTrue(first_year_row.has_admin_update)

    def test_first_year_scope_rejects_offer_letter_changes(self):
        with self.assertRaises(ValidationError) as ctx:
            update_final_configuration(
                enrolled_client=self.enrollment,
                actor=self.sales,
                charges={'payable_offer_letter_charge': Decimal('1500')},
                scope='first_year',
            )
        self.assertIn('payable_offer_letter_charge', ctx.exception.message_dict)

    def test_final_phase_rejects_enrollment_charge(self):
        with self.assertRaises(ValidationError):
            update_final_configuration(
                enrolled_client=self.enrollment,
                actor=self.sales,
                charges={'payable_enrollment_charge': Decimal('10')},
            )

    def test_unknown_scope_is_rejected(self):
        with self.assertRaises(ValidationError):
            admin_final_approve(enrolled_client=self.enrollment, actor=self.reviewer, scope='bonus')


class InstallmentLedgerTests(EnrollmentBaseTestCase):
    def setUp(self):
        super().setUp()
        self.submit(
            payable_enrollment_charge=Decimal('1000'),
            payable_offer_letter_charge=Decimal('2000'),
            first_year_salary=Decimal('100000'),
            payable_first_year_percentage=Decimal('10'),
        )

    def create(self, amount, charge_type=Installment.CHARGE_ENROLLMENT, **extra):
        extra.setdefault('due_date', self.today + timedelta(days=15))
        return create_installment(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charge_type=charge_type,
            amount=amount,
            **extra,
        )

    def test_amount_over_remaining_is_rejected_with_remaining_amount(self):
        with self.assertRaises(AmountExceedsRemaining) as ctx:
            self.create(Decimal('1200'))
        self.assertEqual(ctx.exception.remaining_amount, Decimal('1000.00'))
        self.assertIn('amount', ctx.exception.message_dict)
        self.assertFalse(Installment.objects.exists())

    def test_installments_never_exceed_charge(self):
        first = self.create(Decimal('600'))
        self.assertEqual(first['remaining_amount'], Decimal('400.00'))
        self.assertTrue(first['needs_more_installments'])

        second = self.create(Decimal('400'))
        self.assertEqual(second['remaining_amount'], Decimal('0.00'))
        self.assertFalse(second['needs_more_installments'])
        self.assertEqual(second['total_installments'], Decimal('1000.00'))

        with self.assertRaises(AmountExceedsRemaining) as ctx:
            self.create(Decimal('1'))
        self.assertEqual(ctx.exception.remaining_amount, Decimal('0.00'))

    def test_installment_numbers_are_assigned_per_charge_type(self):
        self.assertEqual(self.create(Decimal('100'))['installment'].installment_number, 1)
        self.assertEqual(self.create(Decimal('100'))['installment'].installment_number, 2)
        self.assertEqual(self.create(Decimal('100'), installment_number=5)['installment'].installment_number, 5)
        self.assertEqual(self.create(Decimal('100'))['installment'].installment_number, 6)
        offer = self.create(Decimal('100'), charge_type=Installment.CHARGE_OFFER_LETTER)
        self.assertEqual(offer['installment'].installment_number, 1)

    def test_duplicate_installment_number_is_rejected(self):
        self.create(Decimal('100'), installment_number=3)
        with self.assertRaises(DuplicateInstallmentNumber) as ctx:
            self.create(Decimal('100'), installment_number=3)
        self.assertEqual(ctx.exception.summary['remaining_amount'], Decimal('900.00'))
        self.assertIn('installment_number', ctx.exception.message_dict)

    def test_initial_payment_bypasses_remaining_check(self):
        result = create_installment(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charge_type=Installment.CHARGE_ENROLLMENT,
            amount=Decimal('1500'),
            is_initial_payment=True,
        )

        row = result['installment']
        self.assertEqual(row.installment_number, 0)
        self.assertTrue(row.is_initial_payment)
        self.assertEqual(row.due_date, self.today)
        self.assertEqual(row.remark, Installment.INITIAL_PAYMENT_REMARK)
        self.assertFalse(row.paid)
        self.assertEqual(result['remaining_amount'], Decimal('-500.00'))

    def test_installment_number_zero_marks_initial_payment(self):
        row = self.create(Decimal('100'), installment_number=0)['installment']
        self.assertTrue(row.is_initial_payment)

    def test_initial_enrollment_payment_is_paid_once_approved(self):
        admin_approve(enrolled_client=self.enrollment, actor=self.reviewer)
        row = self.create(Decimal('250'), is_initial_payment=True)['installment']
        self.assertTrue(row.paid)
        self.assertIsNotNone(row.paid_at)

    def test_mark_initial_payment_paid_without_initial_row_is_noop(self):
        self.create(Decimal('100'))
        self.assertIsNone(mark_initial_payment_paid(enrolled_client=self.enrollment))
        self.assertFalse(Installment.objects.filter(paid=True).exists())

    def test_first_year_charge_uses_net_price(self):
        summary = installment_summary(enrolled_client=self.refresh(), charge_type=Installment.CHARGE_FIRST_YEAR)
        self.assertEqual(summary['total_charge'], Decimal('10000.00'))
        with self.assertRaises(AmountExceedsRemaining):
            self.create(Decimal('10000.01'), charge_type=Installment.CHARGE_FIRST_YEAR)

    def test_unknown_charge_type_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.create(Decimal('10'), charge_type='signing_bonus')

    def test_combined_installments_create_both_schedules(self):
        result = create_combined_installments(
            enrolled_client=self.enrollment,
            actor=self.sales,
            offer_letter_installments=[
                {'amount': Decimal('500'), 'due_date': self.today},
                {'amount': Decimal('1500'), 'due_date': self.today + timedelta(days=30)},
            ],
            first_year_installments=[
                {'amount': Decimal('3333.33')},
                {'amount': Decimal('3333.33')},
                {'amount': Decimal('3333.33')},
            ],
        )

        offer_rows = result['offer_letter_installments']
        self.assertEqual([row.installment_number for row in offer_rows], [0, 1])
        self.assertTrue(offer_rows[0].is_initial_payment)
        self.assertEqual(offer_rows[0].remark, Installment.INITIAL_PAYMENT_REMARK)
        self.assertFalse(offer_rows[1].is_initial_payment)
        self.assertEqual(len(result['first_year_installments']), 3)

    def test_combined_installments_must_match_charge(self):
        with self.assertRaises(ValidationError) as ctx:
            create_combined_installments(
                enrolled_client=self.enrollment,
                actor=self.sales,
                offer_letter_installments=[{'amount': Decimal('1000')}],
            )
        self.assertIn(Installment.CHARGE_OFFER_LETTER, ctx.exception.message_dict)

    def test_combined_installments_require_empty_schedule(self):
        self.create(Decimal('100'), charge_type=Installment.CHARGE_OFFER_LETTER)
        with self.assertRaises(ValidationError):
            create_combined_installments(
                enrolled_client=self.enrollment,
                actor=self.sales,
                offer_letter_installments=[{'amount': Decimal('2000')}],
            )

    def test_update_installment_rechecks_number_only(self):
        self.create(Decimal('100'))
        second = self.create(Decimal('100'))['installment']

        with self.assertRaises(DuplicateInstallmentNumber):
            update_installment(installment=second, actor=self.sales, changes={'installment_number': 1})

        result = update_installment(installment=second, actor=self.sales, changes={'amount': Decimal('5000')})
        self.assertEqual(result['installment'].amount, Decimal('5000.00'))
        self.assertEqual(result['installment'].net_amount, Decimal('5000.00'))

    def test_delete_installment_frees_remaining_amount(self):
        row = self.create(Decimal('400'))['installment']
        result = delete_installment(installment=row, actor=self.sales)
        self.assertEqual(result['remaining_amount'], Decimal('1000.00'))
        self.assertFalse(Installment.objects.filter(pk=row.pk).exists())

    def test_record_installment_payment_toggles_paid_state(self):
        row = self.create(Decimal('400'))['installment']

        paid = record_installment_payment(installment=row, actor=self.reviewer, paid=True, net_amount=Decimal('390'))
        self.assertTrue(paid['installment'].paid)
        self.assertEqual(paid['installment'].paid_date, self.today)
        self.assertEqual(paid['installment'].net_amount, Decimal('390.00'))

        unpaid = record_installment_payment(installment=row, actor=self.reviewer, paid=False)
        self.assertFalse(unpaid['installment'].paid)
        self.assertIsNone(unpaid['installment'].paid_date)

    def test_installment_review_round_trip(self):
        row = self.create(Decimal('400'))['installment']

        admin_review_installment(
            installment=row,
            actor=self.reviewer,
            approved=False,
            edits={'edited_amount': Decimal('350'), 'edited_remark': 'Split differently'},
        )
        row.refresh_from_db()
        self.assertTrue(row.has_admin_update)
        self.assertFalse(row.sales_approval)
        self.assertEqual(row.admin, self.reviewer)

        sales_review_installment(installment=row, actor=self.sales, approved=False)
        row.refresh_from_db()
        self.assertTrue(row.has_admin_update)
        self.assertFalse(row.sales_approval)
        self.assertIsNone(row.edited_amount)
        self.assertIsNone(row.edited_due_date)
        self.assertIsNone(row.edited_remark)
        self.assertEqual(row.amount, Decimal('400.00'))

        admin_review_installment(
            installment=row,
            actor=self.reviewer,
            approved=False,
            edits={'edited_amount': Decimal('350'), 'edited_remark': 'Split differently'},
        )
        sales_review_installment(installment=row, actor=self.sales, approved=True)
        row.refresh_from_db()
        self.assertEqual(row.amount, Decimal('350.00'))
        self.assertEqual(row.remark, 'Split differently')
        self.assertTrue(row.sales_approval)
        self.assertFalse(row.has_admin_update)

        with self.assertRaises(InvalidTransition):
            sales_review_installment(installment=row, actor=self.sales, approved=True)

    def test_admin_installment_approval_snapshots_row(self):
        row = self.create(Decimal('400'))['installment']
        admin_review_installment(installment=row, actor=self.reviewer, approved=True)
        row.refresh_from_db()
        self.assertEqual(row.edited_amount, Decimal('400.00'))
        self.assertTrue(row.sales_approval)

    def test_admin_installment_rejection_needs_changes(self):
        row = self.create(Decimal('400'))['installment']
        with self.assertRaises(ValidationError):
            admin_review_installment(installment=row, actor=self.reviewer, approved=False, edits={})


class EnrollmentViewTests(EnrollmentBaseTestCase):
    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def login_sales(self):
        self.client.login(username='sales_user', password='pass12345')

    def login_admin(self):
        self.client.login(username='admin_user', password='pass12345')

    def test_anonymous_request_gets_401(self):
        response = self.client.get(reverse('enrolled_client_collection'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'not_authenticated')

    def test_sales_cannot_record_admin_decision(self):
        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_admin_approval', args=[self.enrollment.pk]),
            {'approved': True},
        )
        self.assertEqual(response.status_code, 403)

    def test_sales_update_submits_configuration(self):
        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_sales_update', args=[self.enrollment.pk]),
            {'payable_enrollment_charge': '500.00'},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['data']['state'], STATE_PENDING_ADMIN_REVIEW)
        self.assertEqual(body['data']['enrolled_client']['payable_enrollment_charge'], '500.00')
        self.assertTrue(AuditLog.objects.filter(action='enrollments.configuration_submitted').exists())

    def test_sales_update_rejects_percentage_with_fixed_charge(self):
        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_sales_update', args=[self.enrollment.pk]),
            {
                'first_year_salary': 100000,
                'payable_first_year_percentage': 10,
                'payable_first_year_fixed_charge': 9000,
            },
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['code'], 'validation_error')
        self.assertIn('payable_first_year_fixed_charge', body['errors'])

    def test_admin_decision_requires_approved_flag(self):
        self.login_admin()
        response = self.post_json(reverse('enrolled_client_admin_approval', args=[self.enrollment.pk]), {})
        self.assertEqual(response.status_code, 400)
        self.assertIn('approved', response.json()['errors'])

    def test_admin_rejection_then_sales_acceptance(self):
        self.submit(payable_enrollment_charge=Decimal('500'))

        self.login_admin()
        response = self.post_json(
            reverse('enrolled_client_admin_approval', args=[self.enrollment.pk]),
            {'approved': False, 'edited_enrollment_charge': 650, 'remark': 'Counter offer'},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['state'], STATE_PENDING_SALES_REVIEW)

        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_sales_approval', args=[self.enrollment.pk]),
            {'approved': True},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['data']['state'], STATE_APPROVED)
        self.assertEqual(body['data']['portal_username'], 'asha_rao')
        self.assertEqual(self.refresh().payable_enrollment_charge, Decimal('650.00'))

    def test_sales_acceptance_without_pending_edit_is_invalid_transition(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_sales_approval', args=[self.enrollment.pk]),
            {'approved': True},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['code'], 'invalid_transition')

    def test_missing_enrollment_returns_404(self):
        self.login_admin()
        response = self.client.get(reverse('enrolled_client_detail', args=[99999]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['code'], 'not_found')

    def test_sales_cannot_see_other_sales_enrollments(self):
        get_user_model().objects.create_user(username='other_sales', password='pass12345', role='sales')
        self.client.login(username='other_sales', password='pass12345')
        response = self.client.get(reverse('enrolled_client_detail', args=[self.enrollment.pk]))
        self.assertEqual(response.status_code, 404)

    def test_lookup_by_lead(self):
        self.login_sales()
        response = self.client.get(reverse('enrolled_client_by_lead', args=[self.lead.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['id'], self.enrollment.pk)

    def test_create_endpoint_returns_existing_enrollment(self):
        self.login_sales()
        response = self.post_json(reverse('enrolled_client_collection'), {'lead_id': self.lead.pk})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['id'], self.enrollment.pk)

    def test_list_filters_by_state(self):
        self.submit(payable_enrollment_charge=Decimal('500'))
        Lead.objects.create(first_name='Ben', status=Lead.STATUS_ENROLLED, assigned_to=self.sales)

        self.login_admin()
        response = self.client.get(reverse('enrolled_client_collection'), {'status': STATE_PENDING_ADMIN_REVIEW})
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['count'], 1)
        self.assertEqual(data['results'][0]['id'], self.enrollment.pk)

        response = self.client.get(reverse('enrolled_client_collection'), {'status': 'archived'})
        self.assertEqual(response.status_code, 400)

    def test_review_boards_categorize_enrollments(self):
        self.submit(payable_enrollment_charge=Decimal('500'))

        self.login_admin()
        board = self.client.get(reverse('enrolled_client_admin_board')).json()['data']
        self.assertEqual([item['id'] for item in board['pending_review']], [self.enrollment.pk])

        admin_reject_with_edits(
            enrolled_client=self.enrollment,
            actor=self.reviewer,
            edits={'edited_enrollment_charge': Decimal('450')},
        )
        self.login_sales()
        board = self.client.get(reverse('enrolled_client_sales_board')).json()['data']
        self.assertEqual([item['id'] for item in board['admin_changes']], [self.enrollment.pk])

    def test_final_offer_letter_routes(self):
        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_final_configuration_offer_letter', args=[self.enrollment.pk]),
            {'payable_offer_letter_charge': 2000},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['phase'], 'final_offer_letter')

        self.login_admin()
        response = self.post_json(
            reverse('enrolled_client_final_approval_offer_letter', args=[self.enrollment.pk]),
            {'approved': False, 'edited_offer_letter_charge': 1800},
        )
        self.assertEqual(response.status_code, 200)

        self.login_sales()
        response = self.post_json(
            reverse('enrolled_client_accept_admin_changes_offer_letter', args=[self.enrollment.pk]),
            {'approved': True},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.refresh().payable_offer_letter_charge, Decimal('1800.00'))

    def test_installment_endpoint_reports_remaining_amount(self):
        self.submit(payable_enrollment_charge=Decimal('1000'))
        self.login_sales()
        response = self.post_json(
            reverse('installment_collection'),
            {
                'enrolled_client_id': self.enrollment.pk,
                'charge_type': Installment.CHARGE_ENROLLMENT,
                'amount': '1200.00',
                'due_date': str(self.today),
            },
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body['code'], 'amount_exceeds_remaining')
        self.assertEqual(body['data']['remaining_amount'], '1000.00')
        self.assertIn('amount', body['errors'])

    def test_installment_create_list_update_and_delete(self):
        self.submit(payable_enrollment_charge=Decimal('1000'))
        self.login_sales()
        response = self.post_json(
            reverse('installment_collection'),
            {
                'enrolled_client_id': self.enrollment.pk,
                'charge_type': Installment.CHARGE_ENROLLMENT,
                'amount': '400.00',
                'due_date': str(self.today),
            },
        )
        self.assertEqual(response.status_code, 201)
        installment_id = response.json()['data']['installment']['id']
        self.assertEqual(response.json()['data']['remaining_amount'], '600.00')

        response = self.client.get(
            reverse('installment_collection'),
            {'enrolledClientId': self.enrollment.pk, 'chargeType': Installment.CHARGE_ENROLLMENT, 'status': 'unpaid'},
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual([row['id'] for row in data['results']], [installment_id])
        self.assertEqual(data['summary']['total_installments'], '400.00')

        response = self.client.put(
            reverse('installment_detail', args=[installment_id]),
            data=json.dumps({'remark': 'Updated'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['remark'], 'Updated')

        response = self.client.delete(reverse('installment_detail', args=[installment_id]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Installment.objects.filter(pk=installment_id).exists())

    def test_combined_installments_endpoint_validates_items(self):
        self.submit(payable_offer_letter_charge=Decimal('2000'))
        self.login_sales()
        response = self.post_json(
            reverse('installment_combined'),
            {
                'enrolled_client_id': self.enrollment.pk,
                'offer_letter_installments': [{'amount': 'abc'}],
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn('offer_letter_installments', response.json()['errors'])

        response = self.post_json(
            reverse('installment_combined'),
            {
                'enrolled_client_id': self.enrollment.pk,
                'offer_letter_installments': [{'amount': '1000'}, {'amount': '1000'}],
            },
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()['data']['offer_letter_installments']), 2)

    def test_installment_payment_requires_reviewer(self):
        self.submit(payable_enrollment_charge=Decimal('1000'))
        row = create_installment(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charge_type=Installment.CHARGE_ENROLLMENT,
            amount=Decimal('500'),
            due_date=self.today,
        )['installment']

        self.login_sales()
        response = self.post_json(reverse('installment_payment', args=[row.pk]), {'paid': True})
        self.assertEqual(response.status_code, 403)

        self.login_admin()
        response = self.post_json(reverse('installment_payment', args=[row.pk]), {'paid': True})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['data']['paid'])

    def test_statement_pdf_download(self):
        self.submit(payable_enrollment_charge=Decimal('1000'))
        create_installment(
            enrolled_client=self.enrollment,
            actor=self.sales,
            charge_type=Installment.CHARGE_ENROLLMENT,
            amount=Decimal('500'),
            due_date=self.today,
        )

        self.login_sales()
        response = self.client.get(reverse('enrolled_client_statement_pdf', args=[self.enrollment.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))
