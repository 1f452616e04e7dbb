import copy
from datetime import date, datetime
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from education.config_store import FEE_CONFIG_DEFAULTS
from education.models import SchoolClass, Staff, StaffTransaction, Student
from .fee_calculator import FeeCalculator
from .models import (
    Account, ClassFeeStructure, FeePayment, FeeType, StudentFeeCustom, StudentFeeRecord, Transaction,
    decrypt_value, encrypt_value,
)
from .services import DiscountService, FeeRecordService, FinanceService, PaymentService
from .tasks import is_generation_due
from .utils.receipt_generator import build_receipt_data, format_currency, generate_receipt_pdf, number_to_words


class FeeCalculatorTestCase(TestCase):
    def setUp(self):
        self.calculator = FeeCalculator(copy.deepcopy(FEE_CONFIG_DEFAULTS))

    def test_academic_year_labels(self):
        self.assertEqual(self.calculator.academic_year_for(2024, 4), '2024-2025')
        self.assertEqual(self.calculator.academic_year_for(2025, 3), '2024-2025')
        self.assertEqual(self.calculator.next_academic_year('2024-2025'), '2025-2026')
        with self.assertRaises(ValueError):
            self.calculator.academic_year_bounds('2024-2026')
        with self.assertRaises(ValueError):
            self.calculator.academic_year_bounds('next year')

    def test_monthly_schedule_spans_the_academic_year(self):
        schedule = self.calculator.due_schedule('monthly', '2024-2025')
        self.assertEqual(len(schedule), 12)
        self.assertEqual(schedule[0], date(2024, 4, 5))
        self.assertEqual(schedule[-1], date(2025, 3, 5))

    def test_quarterly_schedule_uses_due_months(self):
        self.assertEqual(self.calculator.due_schedule('quarterly', '2024-2025'), [
            date(2024, 4, 5), date(2024, 7, 5), date(2024, 10, 5), date(2025, 1, 5),
        ])
        self.assertEqual(self.calculator.next_due_date('quarterly', '2024-2025', 1), date(2024, 7, 5))
        self.assertIsNone(self.calculator.next_due_date('quarterly', '2024-2025', 4))

    def test_due_day_is_clamped_to_month_length(self):
        config = copy.deepcopy(FEE_CONFIG_DEFAULTS)
        config['frequencies']['monthly']['dueDayOfMonth'] = 31
        schedule = FeeCalculator(config).due_schedule('monthly', '2023-2024')
        self.assertIn(date(2024, 2, 29), schedule)
        self.assertIn(date(2024, 3, 31), schedule)

    def test_unknown_frequency(self):
        with self.assertRaises(ValueError):
            self.calculator.periods_per_year('weekly')

    def test_periods_covered(self):
        self.assertEqual(FeeCalculator.periods_covered(Decimal('1000'), Decimal('2500'), 12), 2)
        self.assertEqual(FeeCalculator.periods_covered(Decimal('1000'), Decimal('50000'), 12), 12)
        self.assertEqual(FeeCalculator.periods_covered(Decimal('0'), Decimal('0'), 4), 4)

    def test_overdue_only_after_grace_period(self):
        due = date(2024, 4, 5)
        self.assertFalse(self.calculator.is_overdue(due, today=date(2024, 4, 15)))
        self.assertTrue(self.calculator.is_overdue(due, today=date(2024, 4, 16)))
        self.assertFalse(self.calculator.is_overdue(None, today=date(2030, 1, 1)))

    def test_resolve_status(self):
        resolve = self.calculator.resolve_status
        today = date(2024, 4, 10)
        self.assertEqual(resolve(Decimal('100'), Decimal('100'), None, today), 'paid')
        self.assertEqual(resolve(Decimal('100'), Decimal('0'), date(2024, 4, 5), today), 'unpaid')
        self.assertEqual(resolve(Decimal('100'), Decimal('10'), date(2024, 4, 5), today), 'partial')
        self.assertEqual(resolve(Decimal('100'), Decimal('10'), date(2024, 3, 1), today), 'overdue')


class FeeServiceTestCase(TestCase):
    """Fee records, collections and discounts for one student in 2024-2025"""

    academic_year = '2024-2025'

    def setUp(self):
        self.school_class = SchoolClass.objects.create(class_name='Class 1')
        self.student = Student.objects.create(admission_no='A-1', name='Ravi Kumar', school_class=self.school_class,
                                              guardian_name='Suresh Kumar')
        self.tuition = FeeType.objects.create(name='Tuition Fee', frequency='monthly', default_amount=Decimal('1000'))
        self.annual = FeeType.objects.create(name='Annual Fee', frequency='yearly', default_amount=Decimal('5000'))
        ClassFeeStructure.objects.create(school_class=self.school_class, fee_type=self.tuition, amount=Decimal('1000'))
        ClassFeeStructure.objects.create(school_class=self.school_class, fee_type=self.annual, amount=Decimal('5000'))
        self.account = Account.objects.create(name='Cash Box', account_type='cash')

    def generate(self, today=date(2024, 4, 1)):
        return FeeRecordService.generate_for_students([self.student], academic_year=self.academic_year, today=today)

    def record(self, fee_type):
        return StudentFeeRecord.objects.get(student=self.student, fee_type=fee_type)

    def test_generation_creates_one_record_per_class_fee(self):
        result = self.generate()
        self.assertEqual(result['created'], 2)

        tuition = self.record(self.tuition)
        self.assertEqual(tuition.amount_due, Decimal('1000.00'))
        self.assertEqual(tuition.total_periods, 12)
        self.assertEqual(tuition.yearly_amount(), Decimal('12000.00'))
        self.assertEqual(tuition.due_date, date(2024, 4, 5))
        self.assertEqual(tuition.status, 'unpaid')
        self.assertEqual(tuition.payment_ratio(), '0/12')

        again = self.generate()
        self.assertEqual(again['created'], 0)
        self.assertEqual(again['skipped'], 2)

    def test_generation_honours_customizations(self):
        StudentFeeCustom.objects.create(student=self.student, fee_type=self.tuition, custom_amount=Decimal('800'))
        StudentFeeCustom.objects.create(student=self.student, fee_type=self.annual, is_applicable=False)
        result = self.generate()
        self.assertEqual(result['created'], 1)
        self.assertEqual(self.record(self.tuition).amount_due, Decimal('800.00'))

    def test_inactive_students_are_not_billed(self):
        self.student.status = 'left'
        self.student.save()
        self.assertEqual(self.generate()['created'], 0)

    def test_collection_covers_periods_and_books_income(self):
        self.generate()
        tuition = self.record(self.tuition)
        annual = self.record(self.annual)

        payments = PaymentService.record_collection(
            self.student,
            [{'fee_record': tuition.pk, 'amount_paid': '2000'},
             {'fee_record': annual, 'amount_paid': '4500', 'discount': '500', 'discount_remarks': 'Sibling'}],
            payment_method='upi',
            payment_date=date(2024, 4, 10),
            account=self.account,
        )

        self.assertEqual(len(payments), 2)
        self.assertEqual({p.receipt_number for p in payments}, {'RCP-20240410-0001'})

        tuition.refresh_from_db()
        self.assertEqual(tuition.periods_paid, 2)
        self.assertEqual(tuition.next_due_date, date(2024, 6, 5))
        self.assertEqual(tuition.status, 'partial')
        self.assertEqual(tuition.remaining_amount(), Decimal('10000.00'))

        annual.refresh_from_db()
        self.assertEqual(annual.status, 'paid')
        self.assertIsNone(annual.next_due_date)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('6500.00'))
        income = Transaction.objects.get()
        self.assertEqual(income.category, 'fees')
        self.assertEqual(income.reference_number, 'RCP-20240410-0001')

    def test_receipt_numbers_count_up_within_a_day(self):
        self.generate()
        tuition = self.record(self.tuition)
        for _ in range(2):
            PaymentService.record_collection(
                self.student, [{'fee_record': tuition.pk, 'amount_paid': '100'}], payment_date=date(2024, 4, 10),
            )
        self.assertEqual(
            sorted(FeePayment.objects.values_list('receipt_number', flat=True)),
            ['RCP-20240410-0001', 'RCP-20240410-0002'],
        )

    def test_receipt_numbers_past_four_digits(self):
        self.generate()
        tuition = self.record(self.tuition)

        def collect():
            return PaymentService.record_collection(
                self.student, [{'fee_record': tuition.pk, 'amount_paid': '10'}], payment_date=date(2024, 4, 10),
            )[0]

        FeePayment.objects.filter(pk=collect().pk).update(receipt_number='RCP-20240410-9999')
        self.assertEqual(collect().receipt_number, 'RCP-20240410-10000')
        self.assertEqual(collect().receipt_number, 'RCP-20240410-10001')

    def test_collection_validation(self):
        self.generate()
        tuition = self.record(self.tuition)
        other = Student.objects.create(admission_no='A-2', name='Sita', school_class=self.school_class)

        cases = [
            ([], 'At least one fee must be paid'),
            ([{'fee_record': tuition.pk, 'amount_paid': '12000.01'}], 'exceeds the remaining amount'),
            ([{'fee_record': tuition.pk, 'amount_paid': '100', 'discount': '50'}], 'Discount remarks are required'),
            ([{'fee_record': tuition.pk, 'amount_paid': '0'}], 'Nothing to record'),
            ([{'fee_record': tuition.pk, 'amount_paid': 'lots'}], 'amount_paid must be a number'),
            ([{'fee_record': tuition.pk, 'amount_paid': '1'}, {'fee_record': tuition.pk, 'amount_paid': '1'}],
             'only once per collection'),
        ]
        for items, message in cases:
            with self.subTest(message=message):
                with self.assertRaisesMessage(ValidationError, message):
                    PaymentService.record_collection(self.student, items)

        with self.assertRaisesMessage(ValidationError, 'not found for this student'):
            PaymentService.record_collection(other, [{'fee_record': tuition.pk, 'amount_paid': '100'}])
        self.assertFalse(FeePayment.objects.exists())

    def test_failed_line_rolls_back_the_whole_collection(self):
        self.generate()
        with self.assertRaises(ValidationError):
            PaymentService.record_collection(
                self.student,
                [{'fee_record': self.record(self.tuition).pk, 'amount_paid': '1000'},
                 {'fee_record': self.record(self.annual).pk, 'amount_paid': '999999'}],
                account=self.account,
            )
        self.assertFalse(FeePayment.objects.exists())
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal('0.00'))

    def test_discount_becomes_concession(self):
        self.generate()
        DiscountService.apply_discount(self.student, self.tuition, '1200', 'sibling', today=date(2024, 4, 1))

        tuition = self.record(self.tuition)
        self.assertEqual(tuition.concession, Decimal('1200.00'))
        self.assertEqual(tuition.remaining_amount(), Decimal('10800.00'))
        custom = StudentFeeCustom.objects.get(student=self.student, fee_type=self.tuition)
        self.assertEqual(custom.discount_reason, 'sibling')

        with self.assertRaises(ValidationError):
            DiscountService.apply_discount(self.student, self.tuition, '20000', today=date(2024, 4, 1))

    def test_discount_window(self):
        custom = StudentFeeCustom(
            student=self.student, fee_type=self.tuition, discount_amount=Decimal('500'),
            effective_from=date(2024, 4, 1), effective_to=date(2024, 9, 30),
        )
        self.assertEqual(custom.discount_on(date(2024, 5, 1)), Decimal('500'))
        self.assertEqual(custom.discount_on(date(2024, 10, 1)), Decimal('0.00'))
        self.assertEqual(custom.discount_on(date(2024, 3, 31)), Decimal('0.00'))

    def test_recalculate_marks_overdue(self):
        self.generate()
        result = FeeRecordService.recalculate_overdue(today=date(2024, 5, 1))
        self.assertEqual(result['overdue'], 2)
        self.assertEqual(self.record(self.tuition).status, 'overdue')

    def test_receipt_data_and_pdf(self):
        self.generate()
        payments = PaymentService.record_collection(
            self.student, [{'fee_record': self.record(self.tuition).pk, 'amount_paid': '3000'}],
            payment_date=date(2024, 4, 10),
        )
        data = build_receipt_data(payments)
        self.assertEqual(data['student'], 'Ravi Kumar')
        self.assertEqual(data['class_name'], 'Class 1')
        self.assertEqual(data['amount_paid'], Decimal('3000.00'))
        self.assertEqual(data['fee_breakdown'][0]['name'], 'Tuition Fee')

        pdf = generate_receipt_pdf(data)
        self.assertTrue(pdf.getvalue().startswith(b'%PDF'))


class FinanceServiceTestCase(TestCase):
    def setUp(self):
        self.bank = Account.objects.create(name='SBI Current', account_type='bank', balance=Decimal('10000'))
        self.cash = Account.objects.create(name='Cash Box', account_type='cash')
        self.staff = Staff.objects.create(name='Meena', role='teacher', join_date=date(2020, 1, 1),
                                          salary=Decimal('25000'))

    def create(self, **data):
        payload = {'transaction_date': date(2024, 4, 30), 'category': 'other', 'description': 'Misc'}
        payload.update(data)
        return FinanceService.create_transaction(payload)

    def test_balances_move_with_transactions(self):
        self.create(transaction_type='income', category='donation', amount=Decimal('500'), to_account=self.cash)
        self.create(transaction_type='expense', category='supplies', amount=Decimal('2000'), from_account=self.bank)
        self.create(transaction_type='transfer', category='transfer', amount=Decimal('1000'),
                    from_account=self.bank, to_account=self.cash)

        self.bank.refresh_from_db()
        self.cash.refresh_from_db()
        self.assertEqual(self.bank.balance, Decimal('7000.00'))
        self.assertEqual(self.cash.balance, Decimal('1500.00'))

    def test_transfer_rules(self):
        with self.assertRaisesMessage(ValidationError, 'same account'):
            self.create(transaction_type='transfer', amount=Decimal('1'), from_account=self.bank, to_account=self.bank)
        with self.assertRaisesMessage(ValidationError, 'both from_account and to_account'):
            self.create(transaction_type='transfer', amount=Decimal('1'), from_account=self.bank)

    def test_other_category_needs_description(self):
        with self.assertRaises(ValidationError):
            self.create(transaction_type='expense', amount=Decimal('1'), description='', from_account=self.bank)

    def test_salary_payment_records_staff_salary_once(self):
        self.create(transaction_type='expense', category='salary', amount=Decimal('25000'),
                    from_account=self.bank, staff=self.staff)
        salary = StaffTransaction.objects.get(staff=self.staff)
        self.assertEqual((salary.month, salary.year), (4, 2024))

        with self.assertRaisesMessage(ValidationError, 'already recorded'):
            self.create(transaction_type='expense', category='salary', amount=Decimal('25000'),
                        from_account=self.bank, staff=self.staff)

    def test_summary(self):
        summary = FinanceService.summary(today=date(2024, 4, 30))
        self.assertEqual(summary['total_balance'], Decimal('10000.00'))
        self.assertEqual(summary['cash_balance'], Decimal('0.00'))
        self.assertEqual(summary['accounts'], 2)

    def test_bank_details_are_encrypted(self):
        self.bank.set_bank_details('123456789012', 'SBIN0001234', 'State Bank')
        self.bank.save()
        self.assertNotIn('123456789012', self.bank.account_number)
        self.assertEqual(self.bank.get_account_number(), '123456789012')
        self.assertEqual(self.bank.masked_account_number(), '********9012')
        self.assertEqual(decrypt_value(encrypt_value('SBIN0001234')), 'SBIN0001234')


class ReceiptFormattingTestCase(TestCase):
    def test_number_to_words(self):
        self.assertEqual(number_to_words(125000), 'One Lakh Twenty Five Thousand Only')
        self.assertEqual(number_to_words(Decimal('1000000.75')), 'Ten Lakh Only')
        self.assertEqual(number_to_words(21), 'Twenty One Only')
        self.assertEqual(number_to_words(0), 'Zero Only')

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal('125000')), 'Rs. 1,25,000.00')
        self.assertEqual(format_currency(Decimal('12345678.5')), 'Rs. 1,23,45,678.50')
        self.assertEqual(format_currency(999), 'Rs. 999.00')


class ScheduleTestCase(TestCase):
    def test_generation_window(self):
        schedule = {'enabled': True, 'dayOfMonth': 1, 'hour': 0}
        self.assertTrue(is_generation_due(schedule, datetime(2024, 5, 1, 0, 30)))
        self.assertFalse(is_generation_due(schedule, datetime(2024, 5, 1, 1, 0)))
        self.assertFalse(is_generation_due(dict(schedule, enabled=False), datetime(2024, 5, 1, 0, 0)))

    def test_day_past_month_end_runs_on_last_day(self):
        schedule = {'enabled': True, 'dayOfMonth': 31, 'hour': 2}
        self.assertTrue(is_generation_due(schedule, datetime(2024, 2, 29, 2, 0)))
        self.assertFalse(is_generation_due(schedule, datetime(2024, 3, 30, 2, 0)))


class ManagementCommandsTestCase(TestCase):
    def test_generate_fees_command(self):
        school_class = SchoolClass.objects.create(class_name='Class 1')
        Student.objects.create(admission_no='A-1', name='Ravi', school_class=school_class)
        fee_type = FeeType.objects.create(name='Tuition Fee', frequency='monthly', default_amount=Decimal('1000'))
        ClassFeeStructure.objects.create(school_class=school_class, fee_type=fee_type, amount=Decimal('1000'))

        out = StringIO()
        call_command('generate_fees', '--year', '2024', '--month', '6', '--class-id', str(school_class.pk), stdout=out)
        self.assertIn('2024-2025: 1 fee records created', out.getvalue())

        with self.assertRaises(CommandError):
            call_command('generate_fees', '--month', '13', stdout=StringIO())

    def test_seed_school_command(self):
        call_command('seed_school', stdout=StringIO())
        self.assertEqual(SchoolClass.objects.count(), 5)
        self.assertEqual(FeeType.objects.get(name='Admission Fee').frequency, 'one_time')
        self.assertEqual(ClassFeeStructure.objects.count(), 20)
