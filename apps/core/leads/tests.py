from io import StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase

from apps.core.enrollments.models import EnrolledClient, Installment

from .models import Lead
from .services import lead_contact


class LeadTests(TestCase):
    def setUp(self):
        self.sales = get_user_model().objects.create_user(
            username='sales_user',
            password='pass12345',
            role='sales',
        )

    def test_lead_contact_fields(self):
        lead = Lead.objects.create(
            first_name='Asha',
            last_name='Rao',
            primary_email='asha@example.com',
            primary_contact='5551234567',
        )

        contact = lead_contact(lead)

        self.assertEqual(contact['lead_id'], lead.pk)
        self.assertEqual(contact['name'], 'Asha Rao')
        self.assertEqual(contact['email'], 'asha@example.com')
        self.assertEqual(contact['contact_number'], '5551234567')

    def test_first_name_is_required(self):
        with self.assertRaises(ValidationError):
            Lead(first_name='   ').full_clean()

    def test_new_lead_has_no_enrollment(self):
        lead = Lead.objects.create(first_name='Ben', assigned_to=self.sales)
        self.assertFalse(EnrolledClient.objects.filter(lead=lead).exists())

    def test_enrolling_lead_opens_enrollment_once(self):
        lead = Lead.objects.create(first_name='Ben', assigned_to=self.sales)

        lead.status = Lead.STATUS_ENROLLED
        lead.save()
        lead.save()

        enrollment = EnrolledClient.objects.get(lead=lead)
        self.assertEqual(enrollment.sales_person, self.sales)
        self.assertFalse(enrollment.approval_by_sales)
        self.assertEqual(EnrolledClient.objects.filter(lead=lead).count(), 1)


class SeedCommandTests(TestCase):
    def test_seed_crm_creates_users_and_enrollments(self):
        out = StringIO()

        call_command('seed_crm', leads=5, seed=1, stdout=out)

        user_model = get_user_model()
        self.assertTrue(user_model.objects.filter(username='superadmin', role='superadmin').exists())
        self.assertTrue(user_model.objects.filter(username='admin', role='admin').exists())
        self.assertEqual(user_model.objects.filter(role='sales').count(), 3)
        self.assertEqual(Lead.objects.count(), 5)

        enrolled = Lead.objects.filter(status=Lead.STATUS_ENROLLED).count()
        self.assertEqual(EnrolledClient.objects.count(), enrolled)
        self.assertEqual(Installment.objects.count(), enrolled * 2)
        self.assertFalse(EnrolledClient.objects.filter(approval_by_admin=True).exists())
        self.assertIn('Seeded 5 leads', out.getvalue())
