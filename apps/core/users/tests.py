from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.test import RequestFactory, TestCase
from django.urls import reverse

from .audit import log_audit_event
from .decorators import role_required
from .models import AuditLog, User


@role_required(User.REVIEWER_ROLES)
def reviewer_view(request):
    return HttpResponse('ok')


class RoleAccessTests(TestCase):
    def setUp(self):
        self.user_model = get_user_model()
        self.factory = RequestFactory()

        self.sales = self.user_model.objects.create_user(
            username='sales1',
            password='pass12345',
            role='sales',
        )
        self.reviewer = self.user_model.objects.create_user(
            username='admin1',
            password='pass12345',
            role='admin',
        )

    def test_anonymous_user_gets_json_401(self):
        response = self.client.get(reverse('enrolled_client_admin_board'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'not_authenticated')

    def test_sales_cannot_access_admin_board(self):
        self.client.login(username='sales1', password='pass12345')
        response = self.client.get(reverse('enrolled_client_admin_board'))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'forbidden')

    def test_admin_can_access_admin_board(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.get(reverse('enrolled_client_admin_board'))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

    def test_admin_cannot_access_sales_board(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.get(reverse('enrolled_client_sales_board'))
        self.assertEqual(response.status_code, 403)

    def test_role_required_accepts_listed_roles(self):
        request = self.factory.get('/')
        request.user = self.reviewer
        self.assertEqual(reviewer_view(request).status_code, 200)

        request.user = self.sales
        self.assertEqual(reviewer_view(request).status_code, 403)

    def test_wrong_method_returns_405(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('enrolled_client_admin_board'))
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()['code'], 'method_not_allowed')


class UserModelTests(TestCase):
    def test_superuser_is_forced_to_superadmin_role(self):
        user = get_user_model().objects.create_user(
            username='root',
            password='pass12345',
            role='sales',
            is_superuser=True,
        )
        self.assertEqual(user.role, User.ROLE_SUPERADMIN)
        self.assertTrue(user.is_reviewer)

    def test_create_superuser_defaults_to_superadmin(self):
        user = get_user_model().objects.create_superuser('boss', 'boss@example.com', 'pass12345')
        self.assertEqual(user.role, User.ROLE_SUPERADMIN)

    def test_default_role_is_sales(self):
        user = get_user_model().objects.create_user(username='newbie', password='pass12345')
        self.assertEqual(user.role, User.ROLE_SALES)
        self.assertFalse(user.is_reviewer)


class AuditLogTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.user = get_user_model().objects.create_user(
            username='admin1',
            password='pass12345',
            role='admin',
        )

    def test_log_audit_event_records_request_context(self):
        request = self.factory.post('/api/enrolled-clients/1/admin-approval', HTTP_X_FORWARDED_FOR='10.0.0.5, 10.0.0.1')
        request.user = self.user

        log_audit_event(request=request, action='enrollments.admin_approved', target=self.user, details='ok')

        entry = AuditLog.objects.get()
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.target_model, 'User')
        self.assertEqual(entry.target_id, str(self.user.pk))
        self.assertEqual(entry.method, 'POST')
        self.assertEqual(entry.ip_address, '10.0.0.5')

    def test_audit_failure_does_not_raise(self):
        request = self.factory.get('/')
        request.user = self.user

        with patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')):
            with self.assertLogs('apps.core.users.audit', level='ERROR'):
                log_audit_event(request=request, action='enrollments.admin_approved')

        self.assertFalse(AuditLog.objects.exists())
