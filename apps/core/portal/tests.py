from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings

from apps.core.enrollments.models import EnrolledClient
from apps.core.leads.models import Lead

from .exceptions import PortalAccountExists
from .models import ClientUser
from .notifications import send_review_notification, send_welcome_notification
from .services import create_portal_account


class PortalAccountTests(TestCase):
    def setUp(self):
        self.admin = get_user_model().objects.create_user(
            username='admin_user',
            password='pass12345',
            role='admin',
        )
        self.lead = Lead.objects.create(
            first_name='Asha',
            last_name='Rao',
            primary_email='asha@example.com',
            primary_contact='5551234567',
        )

    def test_create_portal_account_hashes_credential(self):
        result = create_portal_account(lead=self.lead, created_by=self.admin)

        account = result['account']
        self.assertEqual(account.username, 'asha_rao')
        self.assertEqual(account.email, 'asha@example.com')
        self.assertEqual(account.contact_number, '5551234567')
        self.assertEqual(account.created_by, self.admin)
        self.assertTrue(account.must_change_password)
        self.assertNotEqual(account.password, result['credential'])
        self.assertTrue(account.check_password(result['credential']))
        self.assertFalse(account.check_password('wrong-password'))

    @override_settings(PORTAL_CREDENTIAL_LENGTH=16)
    def test_credential_length_follows_settings(self):
        result = create_portal_account(lead=self.lead)
        self.assertEqual(len(result['credential']), 16)

    def test_username_collision_gets_numeric_suffix(self):
        create_portal_account(lead=self.lead)
        namesake = Lead.objects.create(first_name='Asha', last_name='Rao')
        third = Lead.objects.create(first_name='Asha', last_name='Rao')

        self.assertEqual(create_portal_account(lead=namesake)['account'].username, 'asha_rao2')
        self.assertEqual(create_portal_account(lead=third)['account'].username, 'asha_rao3')

    def test_username_falls_back_to_lead_id(self):
        lead = Lead.objects.create(first_name='!!!')
        account = create_portal_account(lead=lead)['account']
        self.assertEqual(account.username, f'client_{lead.pk}')

    def test_second_account_for_lead_is_rejected(self):
        first = create_portal_account(lead=self.lead)['account']

        with self.assertRaises(PortalAccountExists) as ctx:
            create_portal_account(lead=self.lead)

        self.assertEqual(ctx.exception.account, first)
        self.assertEqual(ClientUser.objects.filter(lead=self.lead).count(), 1)

    def test_account_is_linked_to_enrollment(self):
        self.lead.status = Lead.STATUS_ENROLLED
        self.lead.save()
        enrollment = EnrolledClient.objects.get(lead=self.lead)

        account = create_portal_account(lead=self.lead, enrolled_client=enrollment)['account']

        enrollment.refresh_from_db()
        self.assertEqual(enrollment.portal_account, account)


class PortalNotificationTests(TestCase):
    def test_welcome_notification_sends_login_details(self):
        sent = send_welcome_notification(
            name='Asha Rao',
            login_id='asha_rao',
            credential='s3cret',
            contact={'email': 'asha@example.com'},
        )

        self.assertTrue(sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('Username: asha_rao', mail.outbox[0].body)
        self.assertIn('Temporary password: s3cret', mail.outbox[0].body)

    def test_welcome_notification_without_email_is_skipped(self):
        with self.assertLogs('apps.core.portal.notifications', level='WARNING'):
            sent = send_welcome_notification(name='Asha', login_id='asha', credential='x', contact={'email': ''})
        self.assertFalse(sent)
        self.assertEqual(mail.outbox, [])

    def test_welcome_notification_failure_is_logged(self):
        with patch('apps.core.portal.notifications.send_mail', side_effect=OSError('smtp down')):
            with self.assertLogs('apps.core.portal.notifications', level='ERROR') as logs:
                sent = send_welcome_notification(
                    name='Asha',
                    login_id='asha',
                    credential='x',
                    contact={'email': 'asha@example.com'},
                )
        self.assertFalse(sent)
        self.assertIn('asha', logs.output[0])

    def test_review_notification_includes_remark(self):
        sales = get_user_model().objects.create_user(
            username='sales_user',
            password='pass12345',
            role='sales',
            email='sales@example.com',
        )
        lead = Lead.objects.create(first_name='Ben', last_name='Ng', status=Lead.STATUS_ENROLLED, assigned_to=sales)
        enrollment = EnrolledClient.objects.get(lead=lead)

        sent = send_review_notification(
            enrolled_client=enrollment,
            recipient=sales,
            action='sales_rejected',
            actor=sales,
            remark='Charge too high',
        )

        self.assertTrue(sent)
        self.assertEqual(mail.outbox[0].subject, 'Sales rejected the requested enrollment changes')
        self.assertIn('Ben Ng', mail.outbox[0].body)
        self.assertIn('Remark: Charge too high', mail.outbox[0].body)
