from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase
from django.urls import reverse

from .audit import client_ip, log_audit_event
from .decorators import role_required
from .context_processors import role_context
from .models import AuditLog


class UserModelTests(TestCase):
    def setUp(self):
        self.user_model = get_user_model()

    def test_teacher_needs_class_and_division(self):
        with self.assertRaises(ValueError):
            self.user_model.objects.create_user(username='t1', password='pass12345', role='teacher')

    def test_teacher_class_key(self):
        teacher = self.user_model.objects.create_user(
            username='t1',
            password='pass12345',
            role='teacher',
            school_class='7',
            division='C',
        )
        self.assertEqual(teacher.class_key, '7-C')

    def test_non_teachers_lose_class_and_section_scope(self):
        clerk = self.user_model.objects.create_user(
            username='c1',
            password='pass12345',
            role='clerk',
            school_class='7',
            division='C',
            section='up',
        )
        self.assertEqual(clerk.school_class, '')
        self.assertEqual(clerk.section, '')
        self.assertEqual(clerk.class_key, '')

    def test_section_head_scope(self):
        head = self.user_model.objects.create_user(username='s1', password='pass12345', role='sarvodaya', section='hs')
        everyone = self.user_model.objects.create_user(username='s2', password='pass12345', role='sarvodaya')
        self.assertTrue(head.is_section_head)
        self.assertEqual(head.section_info['classes'], (8, 9, 10))
        self.assertFalse(everyone.is_section_head)
        self.assertIsNone(everyone.section_info)

    def test_superuser_is_admin(self):
        user = self.user_model.objects.create_superuser(username='root', password='pass12345')
        self.assertEqual(user.role, 'admin')


class RoleAccessTests(TestCase):
    def setUp(self):
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(username='admin1', password='pass12345', role='admin')
        self.clerk = self.user_model.objects.create_user(username='clerk1', password='pass12345', role='clerk')
        self.teacher = self.user_model.objects.create_user(
            username='teacher1',
            password='pass12345',
            role='teacher',
            school_class='4',
            division='B',
        )
        self.sarvodaya = self.user_model.objects.create_user(
            username='lphead',
            password='pass12345',
            role='sarvodaya',
            section='lp',
        )

    def test_role_redirects(self):
        expected = {
            'clerk1': reverse('office_dashboard'),
            'teacher1': reverse('teacher_class_report'),
            'lphead': reverse('collection_overview'),
        }
        for username, url in expected.items():
            with self.subTest(username=username):
                self.client.login(username=username, password='pass12345')
                response = self.client.get(reverse('role_redirect'))
                self.assertRedirects(response, url, fetch_redirect_response=False)

    def test_teacher_cannot_access_office_dashboard(self):
        self.client.login(username='teacher1', password='pass12345')
        response = self.client.get(reverse('office_dashboard'))
        self.assertEqual(response.status_code, 403)

    def test_clerk_can_access_office_dashboard(self):
        self.client.login(username='clerk1', password='pass12345')
        response = self.client.get(reverse('office_dashboard'))
        self.assertEqual(response.status_code, 200)

    def test_anonymous_user_is_sent_to_login(self):
        response = self.client.get(reverse('office_dashboard'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login/', response['Location'])

    def test_only_admin_manages_users(self):
        self.client.login(username='clerk1', password='pass12345')
        self.assertEqual(self.client.get(reverse('user_list')).status_code, 403)

        self.client.login(username='admin1', password='pass12345')
        self.assertEqual(self.client.get(reverse('user_list')).status_code, 200)

    def test_admin_creates_teacher(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('user_create'), {
            'username': 'teacher9d',
            'role': 'teacher',
            'school_class': '9',
            'division': 'D',
            'is_active': 'on',
            'password': 'Feedesk!2026',
        })
        self.assertEqual(response.status_code, 302)
        teacher = self.user_model.objects.get(username='teacher9d')
        self.assertEqual(teacher.class_key, '9-D')
        self.assertTrue(teacher.check_password('Feedesk!2026'))
        self.assertTrue(AuditLog.objects.filter(action='users.user_created').exists())

    def test_teacher_form_requires_class(self):
        self.client.login(username='admin1', password='pass12345')
        response = self.client.post(reverse('user_create'), {
            'username': 'teacherx',
            'role': 'teacher',
            'is_active': 'on',
            'password': 'Feedesk!2026',
        })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Class teachers need a class.')

    def test_role_context_flags(self):
        request = RequestFactory().get('/')
        request.user = self.sarvodaya
        context = role_context(request)
        self.assertTrue(context['can_view_collections'])
        self.assertFalse(context['can_collect_fees'])


class AuditLogTests(TestCase):
    def test_audit_event_records_user_and_target(self):
        user = get_user_model().objects.create_user(username='admin1', password='pass12345', role='admin')
        request = RequestFactory().post('/students/add/', REMOTE_ADDR='10.0.0.5')
        request.user = user

        log_audit_event(request=request, action='students.student_created', target=user, details='Admission=1')

        entry = AuditLog.objects.get(action='students.student_created')
        self.assertEqual(entry.user, user)
        self.assertEqual(entry.target_model, 'User')
        self.assertEqual(entry.ip_address, '10.0.0.5')
        self.assertEqual(entry.method, 'POST')

    def test_audit_failure_does_not_raise(self):
        class BrokenTarget:
            @property
            def pk(self):
                raise RuntimeError('no key')

        request = RequestFactory().get('/')
        with self.assertLogs('apps.core.users.audit', level='ERROR'):
            log_audit_event(request=request, action='students.student_updated', target=BrokenTarget())
        self.assertFalse(AuditLog.objects.exists())

    def test_forwarded_address_wins(self):
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1', REMOTE_ADDR='10.0.0.1')
        self.assertEqual(client_ip(request), '203.0.113.9')

    def test_failed_login_is_audited(self):
        get_user_model().objects.create_user(username='clerk1', password='pass12345', role='clerk')

        response = self.client.post(reverse('login'), {'username': 'clerk1', 'password': 'wrong'})

        self.assertEqual(response.status_code, 200)
        entry = AuditLog.objects.get(action='user.login_failed')
        self.assertIsNone(entry.user)
        self.assertEqual(entry.details, 'Username=clerk1')

    def test_login_and_logout_are_audited(self):
        get_user_model().objects.create_user(username='clerk1', password='pass12345', role='clerk')

        self.client.post(reverse('login'), {'username': 'clerk1', 'password': 'pass12345'})
        self.client.post(reverse('logout'))

        actions = list(AuditLog.objects.order_by('id').values_list('action', flat=True))
        self.assertEqual(actions, ['user.login', 'user.logout'])


class RoleRequiredTests(TestCase):
    def test_unknown_role_is_rejected_when_decorating(self):
        with self.assertRaises(ValueError):
            role_required(['admin', 'principal'])

    def test_refused_access_is_logged(self):
        teacher = get_user_model().objects.create_user(
            username='teacher1',
            password='pass12345',
            role='teacher',
            school_class='4',
            division='A',
        )
        self.client.force_login(teacher)

        with self.assertLogs('apps.core.users.decorators', level='WARNING'):
            response = self.client.get(reverse('user_list'))
        self.assertEqual(response.status_code, 403)
