import io
import json
import shutil
import tempfile
from datetime import date, timedelta
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone
from PIL import Image

from accounts.models import ClassFeeStructure, FeeType, StudentFeeCustom
from .auth import issue_token
from .models import ActiveSession, ActivityLog, CustomUser, SchoolClass, Staff, StaffTransaction, Student


class ApiTestCase(TestCase):
    """Admin and staff-role users with bearer tokens"""

    def setUp(self):
        self.staff = Staff.objects.create(
            name='System Administrator', role='principal', join_date=date(2020, 1, 1), salary=Decimal('50000'),
        )
        self.clerk_staff = Staff.objects.create(
            name='Front Desk', role='staff', join_date=date(2021, 1, 1), salary=Decimal('15000'),
        )
        self.admin = CustomUser.objects.create_user(
            username='admin', password='admin123', role='admin', staff=self.staff,
        )
        self.clerk = CustomUser.objects.create_user(
            username='clerk', password='clerk123', role='staff', staff=self.clerk_staff,
        )
        self.auth = {'HTTP_AUTHORIZATION': f'Bearer {issue_token(self.admin)}'}
        self.clerk_auth = {'HTTP_AUTHORIZATION': f'Bearer {issue_token(self.clerk)}'}
        self.school_class = SchoolClass.objects.create(class_name='Class 1', class_teacher=self.staff)

    def get(self, url, auth=None, **params):
        return self.client.get(url, params, **(auth or self.auth))

    def post(self, url, data=None, auth=None):
        return self.client.post(url, json.dumps(data or {}), content_type='application/json', **(auth or self.auth))

    def put(self, url, data=None, auth=None):
        return self.client.put(url, json.dumps(data or {}), content_type='application/json', **(auth or self.auth))

    def delete(self, url, auth=None):
        return self.client.delete(url, **(auth or self.auth))


class AuthApiTestCase(ApiTestCase):
    def test_health(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'OK')

    def test_unknown_route(self):
        response = self.client.get('/api/does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'error': 'Route not found'})

    def test_login_returns_token_and_opens_session(self):
        response = self.client.post(
            '/api/auth/login/', json.dumps({'username': 'admin', 'password': 'admin123'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['user']['username'], 'admin')
        self.assertIn('token', body)
        self.assertTrue(ActiveSession.objects.get(user=self.admin).is_active)
        self.assertTrue(ActivityLog.objects.filter(user=self.admin, action='login', resource='auth').exists())

        me = self.client.get('/api/auth/me/', HTTP_AUTHORIZATION=f"Bearer {body['token']}")
        self.assertEqual(me.json()['role'], 'admin')

    def test_login_failures(self):
        response = self.client.post(
            '/api/auth/login/', json.dumps({'username': 'admin', 'password': 'wrong'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Invalid credentials')

        self.clerk.is_active = False
        self.clerk.save()
        response = self.client.post(
            '/api/auth/login/', json.dumps({'username': 'clerk', 'password': 'clerk123'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Account is disabled')

    def test_login_rejects_malformed_body(self):
        response = self.client.post('/api/auth/login/', 'not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Invalid JSON data')

    def test_token_checks(self):
        self.assertEqual(self.client.get('/api/auth/me/').status_code, 401)
        response = self.client.get('/api/auth/me/', HTTP_AUTHORIZATION='Bearer not-a-token')
        self.assertEqual(response.status_code, 403)

        self.clerk.delete()
        self.assertEqual(self.get('/api/auth/me/', auth=self.clerk_auth).status_code, 401)

    def test_logout_ends_session(self):
        self.get('/api/auth/me/')
        response = self.post('/api/auth/logout/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(ActiveSession.objects.get(user=self.admin).is_active)


class StudentApiTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tuition = FeeType.objects.create(name='Tuition Fee', frequency='monthly', default_amount=Decimal('1000'))
        ClassFeeStructure.objects.create(school_class=self.school_class, fee_type=self.tuition, amount=Decimal('1000'))

    def test_create_student_adds_fee_customizations(self):
        response = self.post('/api/students/', {
            'admission_no': 'A-101', 'name': 'Ravi Kumar', 'school_class': self.school_class.pk,
            'guardian_name': 'Suresh Kumar',
        })
        self.assertEqual(response.status_code, 201, response.content)
        body = response.json()
        self.assertEqual(body['status'], 'active')
        self.assertEqual(body['class']['class_name'], 'Class 1')
        self.assertTrue(StudentFeeCustom.objects.filter(student_id=body['id'], fee_type=self.tuition).exists())

        log = ActivityLog.objects.get(resource='student')
        self.assertEqual(log.action, 'create')
        self.assertEqual(log.resource_id, str(body['id']))

    def test_duplicate_admission_number(self):
        Student.objects.create(admission_no='A-101', name='Ravi', school_class=self.school_class)
        response = self.post('/api/students/', {
            'admission_no': 'A-101', 'name': 'Other', 'school_class': self.school_class.pk,
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('admission_no', response.json()['error'])

    def test_list_filters_and_paginates(self):
        for i in range(12):
            Student.objects.create(admission_no=f'A-{i}', name=f'Student {i}', school_class=self.school_class)
        Student.objects.create(admission_no='L-1', name='Gone', school_class=self.school_class, status='left')

        response = self.get('/api/students/')
        body = response.json()
        self.assertEqual(body['count'], 13)
        self.assertEqual(len(body['results']), 10)
        self.assertEqual(body['next'], 2)
        self.assertEqual(body['total_pages'], 2)

        body = self.get('/api/students/', status='left').json()
        self.assertEqual([s['admission_no'] for s in body['results']], ['L-1'])

        body = self.get('/api/students/', search='Student 1', limit=50).json()
        self.assertEqual(body['count'], 3)

    def test_update_and_delete(self):
        student = Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        response = self.put(f'/api/students/{student.pk}/', {'guardian_contact': '9876543210'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['guardian_contact'], '9876543210')
        self.assertEqual(response.json()['name'], 'Ravi')

        response = self.delete(f'/api/students/{student.pk}/')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Student.objects.filter(pk=student.pk).exists())
        self.assertEqual(self.get(f'/api/students/{student.pk}/').status_code, 404)

    def test_fee_structure_customization(self):
        student = Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        url = f'/api/students/{student.pk}/fee-structure/'

        response = self.put(url, {'customizations': [{'fee_type': self.tuition.pk, 'custom_amount': '800'}]})
        self.assertEqual(response.status_code, 400)
        self.assertIn('Remarks are required', response.json()['error'])

        response = self.put(url, {'customizations': [
            {'fee_type': self.tuition.pk, 'custom_amount': '800', 'remarks': 'Staff ward'},
        ]})
        self.assertEqual(response.status_code, 200)

        results = self.get(url).json()['results']
        self.assertEqual(results[0]['custom_amount'], 800.0)
        self.assertTrue(results[0]['is_applicable'])

    def test_fee_structure_rejects_malformed_fee_type(self):
        student = Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        response = self.put(f'/api/students/{student.pk}/fee-structure/', {'customizations': [{'fee_type': 'abc'}]})
        self.assertEqual(response.status_code, 400, response.content)
        self.assertTrue(response.json()['error'].startswith('fee_type:'))

    def test_clerk_can_manage_students_but_not_staff(self):
        self.assertEqual(self.get('/api/students/', auth=self.clerk_auth).status_code, 200)
        self.assertEqual(self.get('/api/staff/', auth=self.clerk_auth).status_code, 403)


class StaffApiTestCase(ApiTestCase):
    def test_list_reports_salary_status(self):
        today = timezone.localdate()
        StaffTransaction.objects.create(
            staff=self.clerk_staff, amount=Decimal('15000'), month=today.month, year=today.year, payment_date=today,
        )
        body = self.get('/api/staff/').json()
        statuses = {s['name']: s['salary_status'] for s in body['results']}
        self.assertEqual(statuses, {'Front Desk': 'paid', 'System Administrator': 'unpaid'})
        self.assertEqual(body['salary_period'], {'month': today.month, 'year': today.year})

    def test_create_and_delete_rules(self):
        response = self.post('/api/staff/', {
            'name': 'New Teacher', 'role': 'teacher', 'join_date': '2024-06-01', 'salary': '20000',
        })
        self.assertEqual(response.status_code, 201, response.content)
        new_id = response.json()['id']

        response = self.delete(f'/api/staff/{self.clerk_staff.pk}/')
        self.assertEqual(response.status_code, 400)
        self.assertIn('associated user accounts', response.json()['error'])

        teacher = Staff.objects.get(pk=new_id)
        SchoolClass.objects.create(class_name='Class 2', class_teacher=teacher)
        response = self.delete(f'/api/staff/{new_id}/')
        self.assertIn('class teacher', response.json()['error'])

    def test_staff_transactions_and_salary_history(self):
        response = self.post('/api/staff/transactions/', {
            'staff': self.clerk_staff.pk, 'amount': '15000', 'month': 3, 'year': 2024, 'payment_date': '2024-03-31',
        })
        self.assertEqual(response.status_code, 201, response.content)
        self.assertEqual(response.json()['transaction_type'], 'salary')

        response = self.post('/api/staff/transactions/', {
            'staff': self.clerk_staff.pk, 'amount': '15000', 'month': 3, 'year': 2024, 'payment_date': '2024-03-31',
        })
        self.assertEqual(response.status_code, 400)

        body = self.get(f'/api/staff/{self.clerk_staff.pk}/salary-history/', year=2024).json()
        self.assertEqual(body['months'][2]['status'], 'paid')
        self.assertEqual(body['months'][3]['status'], 'unpaid')
        self.assertEqual(body['total_paid'], 15000.0)

        body = self.get(f'/api/staff/{self.clerk_staff.pk}/transactions/', year=2024, month=3).json()
        self.assertEqual(body['count'], 1)


class ClassApiTestCase(ApiTestCase):
    def test_list_counts_active_students(self):
        Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        Student.objects.create(admission_no='A-2', name='Sita', school_class=self.school_class, status='left')
        body = self.get('/api/classes/').json()
        self.assertEqual(body['results'][0]['student_count'], 1)
        self.assertEqual(body['results'][0]['class_teacher_name'], 'System Administrator')

    def test_delete_blocked_while_students_remain(self):
        student = Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        url = f'/api/classes/{self.school_class.pk}/'
        self.assertEqual(self.delete(url).json()['error'], 'Cannot delete class with active students')

        student.status = 'left'
        student.save()
        self.assertEqual(self.delete(url).status_code, 400)

        student.delete()
        self.assertEqual(self.delete(url).status_code, 200)

    def test_duplicate_class_name(self):
        response = self.post('/api/classes/', {'class_name': 'Class 1'})
        self.assertEqual(response.status_code, 400)

    def test_available_teachers(self):
        body = self.get('/api/classes/available/teachers/').json()
        self.assertEqual([t['name'] for t in body['results']], ['System Administrator'])


class UserApiTestCase(ApiTestCase):
    def test_create_custom_user(self):
        staff = Staff.objects.create(name='Accountant', role='staff', join_date=date(2022, 1, 1), salary=Decimal('1'))
        self.assertEqual(
            [s['name'] for s in self.get('/api/users/available/staff/').json()['results']], ['Accountant'],
        )
        response = self.post('/api/users/', {
            'username': 'accounts', 'password': 'ledger123', 'role': 'custom', 'staff': staff.pk,
            'custom_permissions': [
                {'resource': 'finance', 'action': 'read'},
                {'resource': 'finance', 'action': 'fly'},
            ],
        })
        self.assertEqual(response.status_code, 201, response.content)
        self.assertEqual(response.json()['permissions'], {'finance': ['read']})
        self.assertTrue(CustomUser.objects.get(username='accounts').check_password('ledger123'))

    def test_activity_log_hides_passwords(self):
        staff = Staff.objects.create(name='Cashier', role='staff', join_date=date(2023, 1, 1), salary=Decimal('1'))
        response = self.post('/api/users/', {
            'username': 'cashier', 'password': 'till-secret-42', 'role': 'staff', 'staff': staff.pk,
        })
        self.assertEqual(response.status_code, 201, response.content)

        log = ActivityLog.objects.get(resource='user', action='create')
        self.assertEqual(log.details['body']['password'], '***')
        self.assertEqual(log.details['body']['username'], 'cashier')
        row = ActivityLog.objects.filter(pk=log.pk).values().get()
        self.assertNotIn('till-secret-42', json.dumps(row, default=str))

    def test_cannot_remove_yourself(self):
        url = f'/api/users/{self.admin.pk}/'
        self.assertEqual(self.put(url, {'is_active': False}).json()['error'], 'You cannot deactivate your own account')
        self.assertEqual(self.delete(url).json()['error'], 'You cannot delete your own account')

    def test_deactivating_user_ends_session(self):
        self.get('/api/auth/me/', auth=self.clerk_auth)
        response = self.put(f'/api/users/{self.clerk.pk}/', {'is_active': False})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(ActiveSession.objects.get(user=self.clerk).is_active)
        self.assertEqual(self.get('/api/auth/me/', auth=self.clerk_auth).status_code, 401)

    def test_online_filter_and_active_users(self):
        self.get('/api/auth/me/')
        ActiveSession.objects.create(
            user=self.clerk, username='clerk', last_activity=timezone.now() - timedelta(days=2),
        )
        body = self.get('/api/users/', is_online='true').json()
        self.assertEqual([u['username'] for u in body['results']], ['admin'])
        active = self.get('/api/users/active/').json()['results']
        self.assertEqual([a['username'] for a in active], ['admin'])

    def test_catalogue_endpoints(self):
        self.assertIn('principal', self.get('/api/users/roles/predefined/').json())
        self.assertEqual(len(self.get('/api/users/permissions/all/').json()['results']), 29)
        self.assertEqual(self.get('/api/users/', auth=self.clerk_auth).status_code, 403)

    def test_activity_log_filters(self):
        self.post('/api/classes/', {'class_name': 'Class 2'})
        body = self.get('/api/users/activity/', resource='class').json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['results'][0]['action'], 'create')


class DashboardApiTestCase(ApiTestCase):
    def test_stats(self):
        Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        body = self.get('/api/dashboard/stats/').json()
        self.assertEqual(body['total_students'], 1)
        self.assertEqual(body['total_staff'], 2)
        self.assertEqual(body['total_classes'], 1)
        self.assertEqual(body['outstanding_fees'], 0)
        self.assertEqual(body['recent_payments'], [])

    def test_charts(self):
        body = self.get('/api/dashboard/fee-collection-chart/', year=2024).json()
        self.assertEqual(len(body['results']), 12)
        self.assertEqual(body['results'][0], {'month': 'Jan', 'amount': 0})
        body = self.get('/api/dashboard/class-distribution/').json()
        self.assertEqual(body['results'], [{'class_name': 'Class 1', 'student_count': 0}])

    def test_clerk_has_no_dashboard(self):
        self.assertEqual(self.get('/api/dashboard/stats/', auth=self.clerk_auth).status_code, 403)


class ConfigApiTestCase(ApiTestCase):
    def test_fee_config_round_trip(self):
        self.assertEqual(self.get('/api/config/fees/').json()['gracePeriod'], {'days': 10})
        response = self.put('/api/config/fees/', {'gracePeriod': {'days': 3}})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.get('/api/config/fees/').json()['gracePeriod'], {'days': 3})

    def test_invalid_config(self):
        response = self.put('/api/config/salary/', {'salaryResetDay': 0})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'salaryResetDay must be between 1 and 31')

    def test_config_sections_must_be_objects(self):
        for url, body in [
            ('/api/config/fees/', {'autoGeneration': 5}),
            ('/api/config/fees/', {'gracePeriod': 'ten'}),
            ('/api/finance/fee-config/', {'frequencies': {'monthly': 12}}),
            ('/api/config/year-progression/', {'progressionMap': 'abc'}),
            ('/api/config/year-progression/', {'progressionMap': 5}),
        ]:
            with self.subTest(url=url, body=body):
                response = self.put(url, body)
                self.assertEqual(response.status_code, 400, response.content)
                self.assertIn('must be an object', response.json()['error'])
        self.assertEqual(self.get('/api/config/fees/').json()['autoGeneration']['dayOfMonth'], 1)

    def test_promote_year(self):
        SchoolClass.objects.create(class_name='Class 2')
        Student.objects.create(admission_no='A-1', name='Ravi', school_class=self.school_class)
        self.put('/api/config/year-progression/', {'progressionMap': {'Class 1': 'Class 2'}})

        response = self.post('/api/config/promote-year/', {})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['promoted_students'], 1)
        self.assertEqual(Student.objects.get().school_class.class_name, 'Class 2')
        self.assertTrue(ActivityLog.objects.filter(resource='academic_year', action='promote').exists())

    def test_clerk_cannot_read_config(self):
        self.assertEqual(self.get('/api/config/fees/', auth=self.clerk_auth).status_code, 403)


class UploadApiTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)

    def png_bytes(self):
        buffer = io.BytesIO()
        Image.new('RGB', (4, 4), 'white').save(buffer, format='PNG')
        return buffer.getvalue()

    def upload(self, upload):
        return self.client.post('/api/upload/student-image/', {'image': upload}, **self.auth)

    def test_upload_image(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.upload(SimpleUploadedFile('photo.PNG', self.png_bytes(), content_type='image/png'))
        self.assertEqual(response.status_code, 200, response.content)
        url = response.json()['image_url']
        self.assertTrue(url.startswith('http://testserver/media/students/'))
        self.assertTrue(url.endswith('.png'))

    def test_rejects_non_images_and_large_files(self):
        response = self.upload(SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain'))
        self.assertEqual(response.json()['error'], 'Only image files are allowed')

        response = self.upload(SimpleUploadedFile('fake.png', b'not really a png', content_type='image/png'))
        self.assertEqual(response.json()['error'], 'Only image files are allowed')

        with override_settings(STUDENT_IMAGE_MAX_BYTES=4):
            response = self.upload(SimpleUploadedFile('big.jpg', b'0123456789', content_type='image/jpeg'))
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/api/upload/student-image/', {}, **self.auth)
        self.assertEqual(response.json()['error'], 'No image file provided')
