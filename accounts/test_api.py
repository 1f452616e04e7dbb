from decimal import Decimal

from education.auth import issue_token
from education.models import ActivityLog, Staff, Student
from education.test_api import ApiTestCase
from .fee_calculator import FeeCalculator
from .models import Account, ClassFeeStructure, FeePayment, FeeType, StudentFeeCustom, StudentFeeRecord, Transaction
from .services import FeeRecordService


class FeeApiBase(ApiTestCase):
    """One student billed for monthly tuition in the current academic year"""

    def setUp(self):
        super().setUp()
        self.tuition = FeeType.objects.create(name='Tuition Fee', frequency='monthly', default_amount=Decimal('1000'))
        self.structure = ClassFeeStructure.objects.create(
            school_class=self.school_class, fee_type=self.tuition, amount=Decimal('1000'),
        )
        self.student = Student.objects.create(
            admission_no='A-1', name='Ravi Kumar', school_class=self.school_class, guardian_name='Suresh Kumar',
        )
        self.academic_year = FeeCalculator().current_academic_year()
        FeeRecordService.generate_for_students([self.student], academic_year=self.academic_year)
        self.record = StudentFeeRecord.objects.get(student=self.student)

    def collect(self, amount, auth=None, **extra):
        payload = {'student': self.student.pk, 'fees': [{'fee_record': self.record.pk, 'amount_paid': amount}]}
        payload.update(extra)
        return self.post('/api/fees/payment/', payload, auth=auth)


class FeeApiTestCase(FeeApiBase):
    def test_fee_types(self):
        response = self.post('/api/fees/types/', {'name': 'Transport Fee', 'frequency': 'monthly', 'default_amount': '2000'})
        self.assertEqual(response.status_code, 201, response.content)

        response = self.post('/api/fees/types/', {'name': 'Transport Fee', 'frequency': 'yearly', 'default_amount': '1'})
        self.assertEqual(response.json()['error'], 'name: A fee type with this name already exists')

        names = [f['name'] for f in self.get('/api/fees/types/').json()['results']]
        self.assertEqual(names, ['Transport Fee', 'Tuition Fee'])

    def test_fee_type_in_use_cannot_be_deleted(self):
        response = self.delete(f'/api/fees/types/{self.tuition.pk}/')
        self.assertEqual(response.json()['error'], 'Cannot delete fee type that is being used in class fee structures')

    def test_class_structures(self):
        annual = FeeType.objects.create(name='Annual Fee', frequency='yearly', default_amount=Decimal('5000'))
        response = self.post('/api/fees/class-structure/', {
            'school_class': self.school_class.pk, 'fee_type': annual.pk, 'amount': '4000',
        })
        self.assertEqual(response.status_code, 201, response.content)
        self.assertTrue(response.json()['active'])

        response = self.post('/api/fees/class-structure/', {
            'school_class': self.school_class.pk, 'fee_type': annual.pk, 'amount': '4000',
        })
        self.assertEqual(response.json()['error'], 'Fee structure already exists for this class and fee type')

        body = self.get(f'/api/fees/class/{self.school_class.pk}/structure/').json()
        self.assertEqual(body['total_yearly'], 12000.0 + 4000.0)

        response = self.delete(f"/api/fees/class-structure/{self.structure.pk}/")
        self.assertEqual(response.status_code, 200)
        results = self.get('/api/fees/class-structure/', class_id=self.school_class.pk).json()['results']
        self.assertEqual([r['fee_type']['name'] for r in results], ['Annual Fee'])

    def test_generate_endpoint_skips_existing_records(self):
        other = Student.objects.create(admission_no='A-2', name='Sita', school_class=self.school_class)
        start_year = int(self.academic_year.split('-')[0])
        response = self.post('/api/fees/generate/', {
            'year': start_year, 'month': FeeCalculator().start_month, 'class_ids': [self.school_class.pk],
        })
        self.assertEqual(response.status_code, 200, response.content)
        self.assertEqual(response.json()['created'], 1)
        self.assertTrue(StudentFeeRecord.objects.filter(student=other).exists())
        self.assertTrue(ActivityLog.objects.filter(resource='fee_records', action='generate').exists())

        response = self.post('/api/fees/generate/', {'class_ids': 'all'})
        self.assertEqual(response.status_code, 400)

    def test_collection_and_receipt(self):
        response = self.collect('3000', payment_method='upi')
        self.assertEqual(response.status_code, 201, response.content)
        body = response.json()
        self.assertEqual(body['total_paid'], 3000.0)
        self.assertEqual(body['payments'][0]['collected_by'], 'admin')
        self.assertEqual(body['payments'][0]['received_by'], self.staff.pk)

        self.record.refresh_from_db()
        self.assertEqual(self.record.periods_paid, 3)
        self.assertEqual(self.record.payment_ratio(), '3/12')

        receipt = self.get(f"/api/fees/receipt/{body['id']}/")
        self.assertEqual(receipt['Content-Type'], 'application/pdf')
        self.assertIn(body['receipt_number'], receipt['Content-Disposition'])
        self.assertTrue(receipt.content.startswith(b'%PDF'))

        records = self.get('/api/fees/collection-records/').json()
        self.assertEqual(records['count'], 1)
        self.assertEqual(records['results'][0]['total_paid'], 3000.0)

        details = self.get(f"/api/fees/collection-details/{body['receipt_number']}/").json()
        self.assertEqual(details['student']['name'], 'Ravi Kumar')
        self.assertEqual(details['amount_paid'], 3000.0)
        self.assertEqual(self.get('/api/fees/collection-details/RCP-00000000-0000/').status_code, 404)

    def test_collection_errors(self):
        response = self.collect('12000.50')
        self.assertEqual(response.status_code, 400)
        self.assertIn('exceeds the remaining amount', response.json()['error'])

        response = self.post('/api/fees/payment/', {'student': self.student.pk, 'fees': 'all'})
        self.assertEqual(response.status_code, 400)

        response = self.post('/api/fees/payment/', {
            'student': self.student.pk, 'fees': [{'fee_record': 'abc', 'amount_paid': 10}],
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Invalid fee record: abc')

        response = self.collect('100', payment_method='bitcoin')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(FeePayment.objects.exists())

    def test_collection_books_income_on_account(self):
        account = Account.objects.create(name='Cash Box', account_type='cash')
        response = self.collect('1000', account=account.pk)
        self.assertEqual(response.status_code, 201, response.content)
        account.refresh_from_db()
        self.assertEqual(account.balance, Decimal('1000.00'))
        self.assertEqual(Transaction.objects.get().category, 'fees')

    def test_student_with_payments_cannot_be_deleted(self):
        self.collect('1000')
        response = self.delete(f'/api/students/{self.student.pk}/')
        self.assertEqual(response.status_code, 400)
        self.assertTrue(Student.objects.filter(pk=self.student.pk).exists())

    def test_summaries(self):
        self.collect('2000')
        body = self.get(f'/api/fees/student-summary/{self.student.pk}/').json()
        self.assertEqual(body['academic_year'], self.academic_year)
        self.assertEqual(body['totals']['yearly_amount'], 12000.0)
        self.assertEqual(body['totals']['remaining_amount'], 10000.0)
        self.assertEqual(len(body['payments']), 1)

        due = self.get('/api/fees/due-summary/').json()
        self.assertEqual(due['summary']['record_count'], 1)
        self.assertEqual(due['summary']['total_outstanding'], 10000.0)

        records = self.get('/api/fees/records/', student_id=self.student.pk).json()
        self.assertEqual(records['count'], 1)

        stats = self.get('/api/dashboard/stats/').json()
        self.assertEqual(stats['total_fees_collected'], 2000.0)
        self.assertEqual(stats['outstanding_fees'], 10000.0)

    def test_clerk_collects_but_cannot_touch_finance(self):
        response = self.collect('1000', auth=self.clerk_auth)
        self.assertEqual(response.status_code, 201, response.content)
        self.assertEqual(response.json()['payments'][0]['received_by'], self.clerk_staff.pk)
        self.assertEqual(self.get('/api/finance/accounts/', auth=self.clerk_auth).status_code, 403)
        self.assertEqual(self.delete(f'/api/fees/types/{self.tuition.pk}/', auth=self.clerk_auth).status_code, 403)


class FinanceApiTestCase(FeeApiBase):
    def test_accounts(self):
        response = self.post('/api/finance/accounts/', {
            'name': 'SBI Current', 'account_type': 'bank', 'bank_name': 'State Bank',
            'account_number': '123456789012', 'ifsc_code': 'sbin0001234', 'balance': '5000',
        })
        self.assertEqual(response.status_code, 201, response.content)
        body = response.json()
        self.assertEqual(body['account_number'], '********9012')
        self.assertEqual(body['ifsc_code'], 'SBIN0001234')
        self.assertEqual(body['balance'], 5000.0)

        response = self.post('/api/finance/accounts/', {'name': 'Bad', 'account_type': 'bank', 'ifsc_code': 'XYZ'})
        self.assertEqual(response.json()['error'], 'ifsc_code: Enter a valid IFSC code')

        self.assertEqual(self.delete(f"/api/finance/accounts/{body['id']}/").status_code, 200)
        self.assertEqual(self.get('/api/finance/accounts/').json()['results'], [])
        self.assertFalse(Account.objects.get(pk=body['id']).is_active)

    def test_transactions_and_summary(self):
        bank = Account.objects.create(name='SBI Current', account_type='bank', balance=Decimal('50000'))
        response = self.post('/api/finance/transactions/', {
            'transaction_type': 'expense', 'category': 'salary', 'amount': '15000',
            'from_account': bank.pk, 'staff': self.clerk_staff.pk, 'transaction_date': '2024-04-30',
            'attachments': ['https://files.example.com/slip.pdf'],
        })
        self.assertEqual(response.status_code, 201, response.content)
        self.assertEqual(response.json()['attachments'], ['https://files.example.com/slip.pdf'])
        self.assertTrue(self.clerk_staff.transactions.filter(month=4, year=2024).exists())

        response = self.post('/api/finance/transactions/', {
            'transaction_type': 'expense', 'category': 'other', 'amount': '10',
            'from_account': bank.pk, 'transaction_date': '2024-04-30',
        })
        self.assertEqual(response.status_code, 400)

        body = self.get('/api/finance/transactions/', type='expense').json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['results'][0]['from_account']['name'], 'SBI Current')

        summary = self.get('/api/finance/summary/').json()
        self.assertEqual(summary['bank_balance'], 35000.0)

    def test_payment_ratios(self):
        body = self.get(f'/api/finance/students/{self.student.pk}/fee-summary/').json()
        self.assertEqual(body['results'][0]['payment_ratio'], '0/12')

        response = self.post('/api/finance/payment-with-ratio/', {
            'student': self.student.pk, 'fee_type': self.tuition.pk, 'amount': '1000',
            'discount': '1000', 'discount_remarks': 'Merit scholarship',
        })
        self.assertEqual(response.status_code, 200, response.content)
        self.assertEqual(response.json()['updated_ratio']['payment_ratio'], '2/12')

        summaries = self.get('/api/finance/payment-summaries/').json()
        self.assertEqual(summaries['count'], 1)
        self.assertEqual(summaries['results'][0]['total_paid'], 1000.0)
        self.assertEqual(summaries['results'][0]['total_discount'], 1000.0)

    def test_apply_discount(self):
        response = self.post('/api/finance/apply-discount/', {
            'student': self.student.pk, 'fee_type': self.tuition.pk, 'discount_amount': '1200',
            'discount_reason': 'staff_ward',
        })
        self.assertEqual(response.status_code, 200, response.content)
        self.record.refresh_from_db()
        self.assertEqual(self.record.concession, Decimal('1200.00'))
        self.assertEqual(
            StudentFeeCustom.objects.get(student=self.student, fee_type=self.tuition).discount_reason, 'staff_ward',
        )
        self.assertTrue(ActivityLog.objects.filter(resource='discount', action='apply').exists())

    def test_fee_jobs_and_config(self):
        response = self.post('/api/finance/trigger-auto-generation/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['created'], 0)

        response = self.post('/api/finance/trigger-fee-recalculation/')
        self.assertEqual(response.json()['checked'], 1)

        self.assertEqual(self.get('/api/finance/fee-config/').json()['academicYear']['startMonth'], 4)
        response = self.put('/api/finance/fee-config/', {'autoGeneration': {'dayOfMonth': 40}})
        self.assertEqual(response.status_code, 400)
        response = self.put('/api/finance/fee-config/', {'autoGeneration': {'dayOfMonth': 2}})
        self.assertEqual(response.json()['config']['autoGeneration']['dayOfMonth'], 2)

    def test_principal_cannot_delete_accounts(self):
        principal_staff = Staff.objects.create(
            name='Principal', role='principal', join_date='2020-01-01', salary=Decimal('1'),
        )
        principal = principal_staff.users.create(username='principal', role='principal')
        auth = {'HTTP_AUTHORIZATION': f'Bearer {issue_token(principal)}'}
        account = Account.objects.create(name='Cash Box', account_type='cash')
        self.assertEqual(self.get('/api/finance/accounts/', auth=auth).status_code, 200)
        self.assertEqual(self.delete(f'/api/finance/accounts/{account.pk}/', auth=auth).status_code, 403)
