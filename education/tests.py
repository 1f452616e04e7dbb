from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from accounts.models import ClassFeeStructure, FeeType, StudentFeeRecord
from .config_store import (
    FEE_CONFIG_DEFAULTS, current_salary_period, deep_merge, get_config, update_config,
)
from .forms import StaffForm, StudentForm, UserForm, bind_for_update
from .models import ActiveSession, CustomUser, SchoolClass, Staff, StaffTransaction, Student
from .permissions import (
    ALL_PERMISSIONS, format_permissions_for_user, has_permission, permissions_for_role,
)
from .services import PromotionService
from .tasks import purge_stale_sessions, salary_period_check
from .utils.google_sheets import GoogleSheetsService, export_outstanding_fees


class PermissionsTestCase(TestCase):
    def test_catalogue_lists_dashboard_once_and_crud_for_the_rest(self):
        self.assertEqual(len(ALL_PERMISSIONS), 1 + 7 * 4)
        dashboard = [p for p in ALL_PERMISSIONS if p['resource'] == 'dashboard']
        self.assertEqual(dashboard, [{'resource': 'dashboard', 'action': 'read', 'description': 'View dashboard'}])

    def test_format_drops_unknown_and_duplicate_pairs(self):
        formatted = format_permissions_for_user([
            {'resource': 'students', 'action': 'read'},
            {'resource': 'students', 'action': 'read'},
            {'resource': 'students', 'action': 'update'},
            {'resource': 'dashboard', 'action': 'delete'},
            {'resource': 'spaceships', 'action': 'read'},
        ])
        self.assertEqual(formatted, {'students': ['read', 'update']})

    def test_predefined_role_maps(self):
        staff = permissions_for_role('staff')
        self.assertEqual(staff['fees'], ['create', 'read', 'update'])
        self.assertNotIn('finance', staff)
        self.assertNotIn('delete', permissions_for_role('principal')['finance'])

        # Callers get a copy, not the catalogue itself
        staff['fees'].append('delete')
        self.assertNotIn('delete', permissions_for_role('staff')['fees'])

    def test_has_permission(self):
        self.assertTrue(has_permission({'classes': ['read']}, 'classes', 'read'))
        self.assertFalse(has_permission({'classes': ['read']}, 'classes', 'delete'))
        self.assertFalse(has_permission({}, 'classes', 'read'))
        self.assertFalse(has_permission(None, 'classes', 'read'))

    def test_user_permissions_follow_role(self):
        custom = CustomUser(username='clerk', role='custom', permissions={'fees': ['read']})
        self.assertTrue(custom.has_office_permission('fees', 'read'))
        self.assertFalse(custom.has_office_permission('students', 'read'))

        admin = CustomUser(username='boss', role='admin')
        self.assertTrue(admin.has_office_permission('configuration', 'delete'))

        # Stored maps are ignored for predefined roles
        staff = CustomUser(username='desk', role='staff', permissions={'finance': ['delete']})
        self.assertFalse(staff.has_office_permission('finance', 'delete'))


class ConfigStoreTestCase(TestCase):
    def test_defaults_when_nothing_stored(self):
        self.assertEqual(get_config('fees'), FEE_CONFIG_DEFAULTS)
        self.assertEqual(get_config('salary'), {'salaryResetDay': 1})
        with self.assertRaises(KeyError):
            get_config('unknown')

    def test_deep_merge_keeps_untouched_keys(self):
        merged = deep_merge({'a': {'b': 1, 'c': 2}, 'd': [1, 2]}, {'a': {'b': 5}, 'd': [3]})
        self.assertEqual(merged, {'a': {'b': 5, 'c': 2}, 'd': [3]})

    def test_update_merges_over_current_document(self):
        update_config('fees', {'gracePeriod': {'days': 5}})
        config = update_config('fees', {'autoGeneration': {'hour': 6}})
        self.assertEqual(config['gracePeriod']['days'], 5)
        self.assertEqual(config['autoGeneration']['hour'], 6)
        self.assertEqual(config['autoGeneration']['dayOfMonth'], 1)
        self.assertEqual(get_config('fees'), config)

    def test_update_rejects_invalid_values(self):
        with self.assertRaises(ValidationError):
            update_config('fees', {'autoGeneration': {'hour': 24}})
        with self.assertRaises(ValidationError):
            update_config('fees', {'academicYear': {'startMonth': 0}})
        with self.assertRaises(ValidationError):
            update_config('salary', {'salaryResetDay': 32})
        with self.assertRaises(ValidationError):
            update_config('year_progression', {'progressionMap': {'Class 1': 'Class 1'}})
        with self.assertRaises(ValidationError):
            update_config('fees', ['not', 'an', 'object'])

    def test_progression_map_is_replaced_not_merged(self):
        update_config('year_progression', {'progressionMap': {'Class 1': 'Class 2', 'Class 2': None}})
        config = update_config('year_progression', {'progressionMap': {'Class 1': None}})
        self.assertEqual(config['progressionMap'], {'Class 1': None})

    def test_current_salary_period(self):
        self.assertEqual(current_salary_period(date(2024, 3, 5), reset_day=5), (3, 2024))
        self.assertEqual(current_salary_period(date(2024, 3, 4), reset_day=5), (2, 2024))
        self.assertEqual(current_salary_period(date(2024, 1, 3), reset_day=5), (12, 2023))


class FormsTestCase(TestCase):
    def setUp(self):
        self.staff = Staff.objects.create(
            name='Meena Kumari', role='teacher', join_date=date(2020, 6, 1), salary=Decimal('25000.00'),
        )
        self.school_class = SchoolClass.objects.create(class_name='Class 1')

    def test_status_defaults_to_active(self):
        form = StudentForm({'admission_no': ' A-101 ', 'name': 'Ravi', 'school_class': self.school_class.pk})
        self.assertTrue(form.is_valid(), form.errors)
        student = form.save()
        self.assertEqual(student.status, 'active')
        self.assertEqual(student.admission_no, 'A-101')

    def test_partial_update_keeps_other_fields(self):
        form = bind_for_update(StaffForm, self.staff, {'contact': '9876543210'})
        self.assertTrue(form.is_valid(), form.errors)
        staff = form.save()
        self.assertEqual(staff.contact, '9876543210')
        self.assertEqual(staff.salary, Decimal('25000.00'))
        self.assertEqual(staff.role, 'teacher')

    def test_aadhar_must_be_twelve_digits(self):
        form = StudentForm({
            'admission_no': 'A-102', 'name': 'Sita', 'school_class': self.school_class.pk, 'aadhar': '1234',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('aadhar', form.errors)

    def test_new_user_needs_password_and_active_staff(self):
        form = UserForm({'username': 'meena', 'staff': self.staff.pk})
        self.assertFalse(form.is_valid())

        self.staff.status = 'inactive'
        self.staff.save()
        form = UserForm({'username': 'meena', 'staff': self.staff.pk, 'password': 'secret123'})
        self.assertFalse(form.is_valid())

    def test_user_password_is_hashed(self):
        form = UserForm({'username': 'meena', 'staff': self.staff.pk, 'password': 'secret123'})
        self.assertTrue(form.is_valid(), form.errors)
        user = form.save()
        self.assertEqual(user.role, 'staff')
        self.assertTrue(user.is_active)
        self.assertTrue(user.check_password('secret123'))


class PromotionServiceTestCase(TestCase):
    def setUp(self):
        self.class_one = SchoolClass.objects.create(class_name='Class 1')
        self.class_two = SchoolClass.objects.create(class_name='Class 2')
        self.tuition = FeeType.objects.create(name='Tuition Fee', frequency='monthly', default_amount=Decimal('1000'))
        ClassFeeStructure.objects.create(school_class=self.class_two, fee_type=self.tuition, amount=Decimal('1200'))
        self.junior = Student.objects.create(admission_no='A-1', name='Junior', school_class=self.class_one)
        self.senior = Student.objects.create(admission_no='A-2', name='Senior', school_class=self.class_two)
        update_config('year_progression', {'progressionMap': {'Class 1': 'Class 2', 'Class 2': None}})

    def test_build_promotion_map_skips_unknown_and_final_classes(self):
        classes = [self.class_one, self.class_two]
        promotion_map = PromotionService.build_promotion_map(classes, {'Class 1': 'Class 2', 'Class 2': 'Class 9'})
        self.assertEqual(promotion_map, {self.class_one.pk: self.class_two})

    def test_promote_year_moves_graduates_and_bills_new_class(self):
        result = PromotionService.promote_year(academic_year='2025-2026', today=date(2025, 4, 1))

        self.assertEqual(result['promoted_students'], 1)
        self.assertEqual(result['graduated_students'], 1)
        self.assertEqual(result['fee_records_created'], 1)
        self.assertEqual(result['outstanding_fees_exported'], 2)
        self.assertFalse(result['sheets_exported'])

        self.junior.refresh_from_db()
        self.senior.refresh_from_db()
        self.assertEqual(self.junior.school_class, self.class_two)
        self.assertEqual(self.senior.status, 'passed')

        record = StudentFeeRecord.objects.get(student=self.junior)
        self.assertEqual(record.academic_year, '2025-2026')
        self.assertEqual(record.amount_due, Decimal('1200.00'))

    def test_promote_year_without_students(self):
        Student.objects.update(status='left')
        result = PromotionService.promote_year(academic_year='2025-2026')
        self.assertEqual(result['promoted_students'], 0)
        self.assertEqual(result['message'], 'No active students found for promotion')

    def test_promote_year_rejects_bad_academic_year(self):
        with mock.patch('education.services.sheets_enabled', return_value=True), \
                mock.patch('education.services.export_outstanding_fees') as export:
            with self.assertRaises(ValueError):
                PromotionService.promote_year(academic_year='2025')
        export.assert_not_called()
        self.junior.refresh_from_db()
        self.assertEqual(self.junior.school_class, self.class_one)

    def test_outstanding_report_row(self):
        rows = PromotionService.outstanding_report([self.junior])
        self.assertEqual(rows[0]['Admission No'], 'A-1')
        self.assertEqual(rows[0]['Total Outstanding Fees'], 0.0)
        self.assertEqual(rows[0]['Outstanding Fee Details'], 'No Outstanding Fees')


@override_settings(
    GOOGLE_SHEETS_ENABLED=True,
    GOOGLE_SHEETS_SPREADSHEET_ID='sheet-id',
    GOOGLE_SHEETS_CREDENTIALS_FILE='/nonexistent/credentials.json',
)
class GoogleSheetsTestCase(TestCase):
    def test_replace_table_clears_then_writes_header_and_rows(self):
        session = mock.Mock()
        session.post.return_value.json.return_value = {'updates': {'updatedRows': 3}}
        service = GoogleSheetsService(session=session)

        written = service.replace_table('Outstanding Fees!A1', [
            {'Student Name': 'Ravi', 'Total': 10},
            {'Student Name': 'Sita', 'Total': None},
        ])

        self.assertEqual(written, 2)
        clear_call, append_call = session.post.call_args_list
        self.assertTrue(clear_call.args[0].endswith(':clear'))
        self.assertEqual(append_call.kwargs['json']['values'], [
            ['Student Name', 'Total'], ['Ravi', 10], ['Sita', ''],
        ])

    def test_export_failure_is_reported_not_raised(self):
        # The credentials file does not exist
        self.assertFalse(export_outstanding_fees([{'Student Name': 'Ravi'}]))


class TasksTestCase(TestCase):
    def setUp(self):
        self.user = CustomUser.objects.create_user(username='clerk', password='secret123')

    def test_purge_stale_sessions(self):
        ActiveSession.objects.create(
            user=self.user, username='clerk', last_activity=timezone.now() - timedelta(hours=25),
        )
        self.assertEqual(purge_stale_sessions(), 1)
        self.assertFalse(ActiveSession.objects.exists())

    def test_recent_sessions_survive(self):
        ActiveSession.objects.create(user=self.user, username='clerk')
        self.assertEqual(purge_stale_sessions(), 0)

    def test_salary_period_check_counts_paid_staff(self):
        today = timezone.localdate()
        month, year = current_salary_period(today)
        paid = Staff.objects.create(name='A', role='staff', join_date=date(2020, 1, 1), salary=Decimal('100'))
        Staff.objects.create(name='B', role='staff', join_date=date(2020, 1, 1), salary=Decimal('100'))
        StaffTransaction.objects.create(
            staff=paid, amount=Decimal('100'), month=month, year=year, payment_date=today,
        )

        result = salary_period_check()

        self.assertEqual(result['active_staff'], 2)
        self.assertEqual(result['paid'], 1)
        self.assertEqual(result['unpaid'], 1)
