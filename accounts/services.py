"""
Fee and finance operations.

Anything that writes more than one row runs inside a single database
transaction so a failed collection never leaves a payment without its
account booking (or the other way round).
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from education.config_store import get_fee_config
from education.models import Student, StaffTransaction
from .fee_calculator import FeeCalculator
from .models import (
    Account, ClassFeeStructure, FeePayment, StudentFeeCustom,
    StudentFeeRecord, Transaction, ZERO,
)

logger = logging.getLogger(__name__)

OPEN_STATUSES = ['unpaid', 'partial', 'overdue']


def to_decimal(value, field='amount'):
    if value in (None, ''):
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    return amount.quantize(Decimal('0.01'))


def _as_datetime(value):
    if value is None:
        return timezone.now()
    if isinstance(value, datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value)
    return timezone.make_aware(datetime.combine(value, datetime.min.time()))


# =============================================================================
# FEE RECORDS
# =============================================================================

class FeeRecordService:
    """Creates and maintains StudentFeeRecord rows"""

    @staticmethod
    def _customizations(students):
        customs = {}
        for custom in StudentFeeCustom.objects.filter(student__in=students):
            customs[(custom.student_id, custom.fee_type_id)] = custom
        return customs

    @staticmethod
    def _structures_by_class(class_ids):
        structures = {}
        for structure in ClassFeeStructure.objects.filter(
            school_class_id__in=class_ids, active=True
        ).select_related('fee_type'):
            structures.setdefault(structure.school_class_id, []).append(structure)
        return structures

    @staticmethod
    def build_record(student, structure, academic_year, month_label, calculator, custom=None, today=None):
        """Unsaved record for one class fee, or None when the fee does not apply"""
        if custom is not None and not custom.is_applicable:
            return None

        amount = structure.amount
        concession = ZERO
        if custom is not None:
            if custom.custom_amount is not None:
                amount = custom.custom_amount
            concession = custom.discount_on(today)

        frequency = structure.fee_type.frequency
        due_date = calculator.first_due_date(frequency, academic_year)
        record = StudentFeeRecord(
            student=student,
            fee_type=structure.fee_type,
            academic_year=academic_year,
            month=month_label,
            frequency=frequency,
            amount_due=amount,
            total_periods=calculator.periods_per_year(frequency),
            concession=min(concession, amount * calculator.periods_per_year(frequency)),
            due_date=due_date,
            next_due_date=due_date,
        )
        record.refresh_status(today=today, fee_config=calculator.config, save=False)
        return record

    @staticmethod
    @transaction.atomic
    def generate_for_students(students, academic_year=None, month_label=None, today=None):
        """
        Create the academic year's fee records for each active student from
        their class fee structure. Existing records are left alone.

        Returns a dict with ``created`` and ``skipped`` counts.
        """
        today = today or timezone.localdate()
        calculator = FeeCalculator(get_fee_config())
        academic_year = academic_year or calculator.current_academic_year(today)
        month_label = month_label or today.strftime('%Y-%m')

        students = [s for s in students if s.status == 'active' and s.school_class_id]
        structures = FeeRecordService._structures_by_class({s.school_class_id for s in students})
        customs = FeeRecordService._customizations(students)
        existing = set(
            StudentFeeRecord.objects.filter(
                student__in=students, academic_year=academic_year
            ).values_list('student_id', 'fee_type_id')
        )

        created = 0
        skipped = 0
        for student in students:
            for structure in structures.get(student.school_class_id, []):
                key = (student.pk, structure.fee_type_id)
                if key in existing:
                    skipped += 1
                    continue
                record = FeeRecordService.build_record(
                    student, structure, academic_year, month_label, calculator,
                    custom=customs.get(key), today=today,
                )
                if record is None:
                    skipped += 1
                    continue
                record.save()
                existing.add(key)
                created += 1

        logger.info(f"Fee generation for {academic_year}: {created} records created, {skipped} skipped")
        return {'academic_year': academic_year, 'created': created, 'skipped': skipped, 'students': len(students)}

    @staticmethod
    def generate_for_classes(class_ids=None, year=None, month=None, today=None):
        """Generate for the academic year containing year/month, limited to some classes"""
        today = today or timezone.localdate()
        year = year or today.year
        month = month or today.month
        calculator = FeeCalculator()
        academic_year = calculator.academic_year_for(year, month)

        students = Student.objects.filter(status='active')
        if class_ids:
            students = students.filter(school_class_id__in=class_ids)
        return FeeRecordService.generate_for_students(
            list(students), academic_year=academic_year, month_label=f"{year}-{month:02d}", today=today,
        )

    @staticmethod
    def auto_generate(today=None):
        """Records for every active student in the current academic year"""
        students = Student.objects.filter(status='active', school_class__isnull=False)
        return FeeRecordService.generate_for_students(list(students), today=today)

    @staticmethod
    def recalculate_overdue(today=None):
        """Recompute every open record; returns how many ended up overdue"""
        today = today or timezone.localdate()
        fee_config = get_fee_config()
        checked = 0
        overdue = 0
        changed = 0
        for record in StudentFeeRecord.objects.filter(status__in=OPEN_STATUSES):
            before = record.status
            status = record.refresh_status(today=today, fee_config=fee_config, save=False)
            if status != before:
                record.save(update_fields=['periods_paid', 'next_due_date', 'status', 'updated_at'])
                changed += 1
            if status == 'overdue':
                overdue += 1
            checked += 1
        logger.info(f"Overdue recalculation: {checked} open records checked, {overdue} overdue, {changed} changed")
        return {'checked': checked, 'overdue': overdue, 'changed': changed}

    @staticmethod
    def current_record(student, fee_type, today=None, create=True):
        """The student's record for ``fee_type`` in the current academic year"""
        today = today or timezone.localdate()
        academic_year = FeeCalculator().current_academic_year(today)
        record = StudentFeeRecord.objects.filter(
            student=student, fee_type=fee_type, academic_year=academic_year
        ).first()
        if record is None and create:
            FeeRecordService.generate_for_students([student], academic_year=academic_year, today=today)
            record = StudentFeeRecord.objects.filter(
                student=student, fee_type=fee_type, academic_year=academic_year
            ).first()
        return record


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentService:

    @staticmethod
    @transaction.atomic
    def record_collection(student, items, payment_method='cash', payment_date=None, account=None,
                          received_by=None, collected_by=None, remarks=''):
        """
        Record one collection: several fee records paid together under one
        receipt number.

        ``items`` is a list of dicts with ``fee_record`` (id or instance),
        ``amount_paid``, and optionally ``discount`` / ``discount_remarks``.
        When ``account`` is given the cash collected is booked as fee income
        on it. Returns the created FeePayment rows.
        """
        if not items:
            raise ValidationError("At least one fee must be paid")
        if account is not None and not account.is_active:
            raise ValidationError("Cannot book payments to an inactive account")

        payment_date = _as_datetime(payment_date)

        record_ids = []
        for item in items:
            record = item.get('fee_record')
            record_id = record.pk if isinstance(record, StudentFeeRecord) else _int_or_none(record)
            if record_id is None:
                raise ValidationError(f"Invalid fee record: {record}")
            record_ids.append(record_id)
        if len(set(record_ids)) != len(record_ids):
            raise ValidationError("Each fee record may appear only once per collection")

        records = {
            r.pk: r for r in StudentFeeRecord.objects.select_for_update().filter(
                student=student, pk__in=record_ids
            ).select_related('fee_type')
        }

        lines = []
        for record_id, item in zip(record_ids, items):
            record = records.get(record_id)
            if record is None:
                raise ValidationError(f"Fee record {record_id} not found for this student")

            amount_paid = to_decimal(item.get('amount_paid'), 'amount_paid')
            discount = to_decimal(item.get('discount'), 'discount')
            discount_remarks = (item.get('discount_remarks') or '').strip()

            if amount_paid < 0 or discount < 0:
                raise ValidationError("Amounts cannot be negative")
            if amount_paid + discount <= 0:
                raise ValidationError(f"Nothing to record for {record.fee_type.name}")
            if discount > 0 and not discount_remarks:
                raise ValidationError(f"Discount remarks are required for the discount on {record.fee_type.name}")

            remaining = record.remaining_amount()
            if amount_paid + discount > remaining:
                raise ValidationError(
                    f"Payment for {record.fee_type.name} exceeds the remaining amount of {remaining}"
                )
            lines.append((record, amount_paid, discount, discount_remarks))

        receipt_number = FeePayment.generate_receipt_number(timezone.localtime(payment_date))
        fee_config = get_fee_config()
        payments = []
        total_collected = ZERO
        for record, amount_paid, discount, discount_remarks in lines:
            payments.append(FeePayment.objects.create(
                student=student,
                fee_record=record,
                amount_paid=amount_paid,
                discount=discount,
                discount_remarks=discount_remarks,
                payment_method=payment_method,
                payment_date=payment_date,
                received_by=received_by,
                collected_by=collected_by,
                receipt_number=receipt_number,
                remarks=remarks,
            ))
            total_collected += amount_paid
            record.last_payment_date = payment_date
            record.save(update_fields=['last_payment_date', 'updated_at'])
            record.refresh_status(today=timezone.localtime(payment_date).date(), fee_config=fee_config)

        if account is not None and total_collected > 0:
            Transaction.objects.create(
                transaction_type='income',
                category='fees',
                amount=total_collected,
                description=f"Fee collection {receipt_number} - {student.name} ({student.admission_no})",
                to_account=account,
                transaction_date=timezone.localtime(payment_date).date(),
                reference_number=receipt_number,
                created_by=collected_by,
            )
            Account.objects.filter(pk=account.pk).update(balance=F('balance') + total_collected)

        logger.info(
            f"Collection {receipt_number}: {len(payments)} fee(s), {total_collected} collected "
            f"from {student.admission_no} by {getattr(collected_by, 'username', 'system')}"
        )
        return payments

    @staticmethod
    def pay_fee_type(student, fee_type, amount, payment_method='cash', payment_date=None, discount=None,
                     discount_remarks='', account=None, received_by=None, collected_by=None):
        """Pay against the current academic year's record of one fee type"""
        payment_date = _as_datetime(payment_date)
        record = FeeRecordService.current_record(student, fee_type, today=timezone.localtime(payment_date).date())
        if record is None:
            raise ValidationError("Invalid fee structure or student not found")
        PaymentService.record_collection(
            student,
            [{'fee_record': record, 'amount_paid': amount, 'discount': discount,
              'discount_remarks': discount_remarks}],
            payment_method=payment_method,
            payment_date=payment_date,
            account=account,
            received_by=received_by,
            collected_by=collected_by,
        )
        record.refresh_from_db()
        return record


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# =============================================================================
# DISCOUNTS
# =============================================================================

class DiscountService:

    @staticmethod
    @transaction.atomic
    def apply_discount(student, fee_type, discount_amount, discount_reason='other',
                       effective_from=None, effective_to=None, today=None):
        """
        Set a standing discount on a student's fee and carry it onto the
        current academic year's record as its concession.
        """
        today = today or timezone.localdate()
        discount_amount = to_decimal(discount_amount, 'discount_amount')
        if discount_amount < 0:
            raise ValidationError("discount_amount cannot be negative")
        effective_from = effective_from or today
        if effective_to and effective_to < effective_from:
            raise ValidationError("effective_to must be on or after effective_from")

        custom, _ = StudentFeeCustom.objects.update_or_create(
            student=student,
            fee_type=fee_type,
            defaults={
                'discount_amount': discount_amount,
                'discount_reason': discount_reason or 'other',
                'effective_from': effective_from,
                'effective_to': effective_to,
            },
        )

        record = FeeRecordService.current_record(student, fee_type, today=today, create=False)
        if record is not None:
            concession = custom.discount_on(today)
            ceiling = record.yearly_amount() - record.total_paid() - record.payment_discount()
            if concession > ceiling:
                raise ValidationError(f"Discount exceeds the remaining amount of {max(ZERO, ceiling)}")
            record.concession = concession
            record.save(update_fields=['concession', 'updated_at'])
            record.refresh_status(today=today)

        logger.info(f"Discount of {discount_amount} applied to {student.admission_no} for {fee_type.name}")
        return custom


# =============================================================================
# FINANCE
# =============================================================================

class FinanceService:

    @staticmethod
    @transaction.atomic
    def create_transaction(data, created_by=None):
        """
        Create an income, expense or transfer and move the account balances.
        Salary payments also record the staff member's salary for the month.
        """
        transaction_type = data['transaction_type']
        category = data['category']
        amount = data['amount']
        from_account = data.get('from_account')
        to_account = data.get('to_account')
        staff = data.get('staff')
        transaction_date = data['transaction_date']

        if amount is None or amount <= 0:
            raise ValidationError("amount must be greater than zero")
        if category == 'other' and not (data.get('description') or '').strip():
            raise ValidationError("description is required for category 'other'")
        if category == 'salary' and staff is None:
            raise ValidationError("staff is required for salary payments")
        if transaction_type == 'transfer':
            if from_account is None or to_account is None:
                raise ValidationError("Transfers need both from_account and to_account")
            if from_account.pk == to_account.pk:
                raise ValidationError("Cannot transfer to the same account")
        for account in (from_account, to_account):
            if account is not None and not account.is_active:
                raise ValidationError(f"Account {account.name} is inactive")
        if category == 'salary' and StaffTransaction.objects.filter(
            staff=staff, month=transaction_date.month, year=transaction_date.year, transaction_type='salary'
        ).exists():
            raise ValidationError(
                f"Salary for {staff.name} is already recorded for {transaction_date.month:02d}/{transaction_date.year}"
            )

        txn = Transaction.objects.create(
            transaction_type=transaction_type,
            category=category,
            amount=amount,
            description=data.get('description') or '',
            from_account=from_account,
            to_account=to_account,
            staff=staff,
            transaction_date=transaction_date,
            reference_number=data.get('reference_number') or '',
            attachments=data.get('attachments') or [],
            created_by=created_by,
        )

        if category == 'salary':
            StaffTransaction.objects.create(
                staff=staff,
                amount=amount,
                transaction_type='salary',
                month=transaction_date.month,
                year=transaction_date.year,
                payment_date=transaction_date,
                remarks=data.get('description') or 'Salary payment',
            )

        if transaction_type == 'income' and to_account is not None:
            Account.objects.filter(pk=to_account.pk).update(balance=F('balance') + amount)
        elif transaction_type == 'expense' and from_account is not None:
            Account.objects.filter(pk=from_account.pk).update(balance=F('balance') - amount)
        elif transaction_type == 'transfer':
            Account.objects.filter(pk=from_account.pk).update(balance=F('balance') - amount)
            Account.objects.filter(pk=to_account.pk).update(balance=F('balance') + amount)

        logger.info(f"{transaction_type.title()} of {amount} ({category}) recorded by {getattr(created_by, 'username', 'system')}")
        return txn

    @staticmethod
    def summary(today=None):
        today = today or timezone.localdate()
        month_start = today.replace(day=1)
        accounts = Account.objects.filter(is_active=True)

        def balance(qs):
            return qs.aggregate(total=Sum('balance'))['total'] or ZERO

        def monthly(transaction_type):
            return Transaction.objects.filter(
                transaction_type=transaction_type, transaction_date__gte=month_start
            ).aggregate(total=Sum('amount'))['total'] or ZERO

        return {
            'total_balance': balance(accounts),
            'bank_balance': balance(accounts.filter(account_type='bank')),
            'cash_balance': balance(accounts.filter(account_type='cash')),
            'monthly_income': monthly('income'),
            'monthly_expense': monthly('expense'),
            'accounts': accounts.count(),
        }
