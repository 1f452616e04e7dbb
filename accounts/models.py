from django.db import models
from django.db.models import Sum
from django.core.validators import MinValueValidator
from django.utils import timezone
from django.conf import settings
from decimal import Decimal
from cryptography.fernet import Fernet, InvalidToken
import base64
import hashlib
import logging

from education.models import Student, SchoolClass, Staff

logger = logging.getLogger(__name__)

FREQUENCY_CHOICES = [
    ('monthly', 'Monthly'),
    ('quarterly', 'Quarterly'),
    ('biannual', 'Bi-Annual'),
    ('yearly', 'Yearly'),
    ('one_time', 'One Time'),
]

PAYMENT_METHOD_CHOICES = [
    ('cash', 'Cash'),
    ('card', 'Card'),
    ('upi', 'UPI'),
    ('cheque', 'Cheque'),
    ('bank_transfer', 'Bank Transfer'),
]

ZERO = Decimal('0.00')


class FeeType(models.Model):
    """A category of charge: tuition, transport, admission..."""
    name = models.CharField(max_length=100, unique=True)
    frequency = models.CharField(max_length=20, choices=FREQUENCY_CHOICES)
    default_amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'fee_types'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.get_frequency_display()})"


class ClassFeeStructure(models.Model):
    """Default amount of a fee type for one class"""
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name='fee_structures')
    fee_type = models.ForeignKey(FeeType, on_delete=models.PROTECT, related_name='class_structures')
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'class_fee_structures'
        ordering = ['school_class__class_name', 'fee_type__name']
        unique_together = ['school_class', 'fee_type']

    def __str__(self):
        return f"{self.school_class} - {self.fee_type.name}: {self.amount}"


class StudentFeeCustom(models.Model):
    """Per-student override of a class fee: amount, applicability and standing discount"""
    DISCOUNT_REASON_CHOICES = [
        ('sibling', 'Sibling'),
        ('staff_ward', 'Staff Ward'),
        ('merit', 'Merit'),
        ('financial_aid', 'Financial Aid'),
        ('other', 'Other'),
    ]

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='fee_customizations')
    fee_type = models.ForeignKey(FeeType, on_delete=models.CASCADE, related_name='student_customizations')
    custom_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                        validators=[MinValueValidator(ZERO)])
    is_applicable = models.BooleanField(default=True)
    remarks = models.CharField(max_length=255, blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO,
                                          validators=[MinValueValidator(ZERO)],
                                          help_text="Standing discount per academic year")
    discount_reason = models.CharField(max_length=20, choices=DISCOUNT_REASON_CHOICES, blank=True)
    effective_from = models.DateField(null=True, blank=True)
    effective_to = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student_fee_customs'
        unique_together = ['student', 'fee_type']

    def __str__(self):
        return f"{self.student.admission_no} - {self.fee_type.name}"

    def discount_on(self, day=None):
        """Standing discount in force on ``day``"""
        day = day or timezone.localdate()
        if not self.discount_amount:
            return ZERO
        if self.effective_from and day < self.effective_from:
            return ZERO
        if self.effective_to and day > self.effective_to:
            return ZERO
        return self.discount_amount


class StudentFeeRecord(models.Model):
    """
    What a student owes for one fee type in one academic year.

    ``amount_due`` is the per-period amount; the yearly charge is
    ``amount_due * total_periods``. Paid and discounted totals are summed
    from the payments rather than stored, so they cannot drift.
    """
    STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('partial', 'Partially Paid'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
    ]

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='fee_records')
    fee_type = models.ForeignKey(FeeType, on_delete=models.PROTECT, related_name='fee_records')
    academic_year = models.CharField(max_length=9, help_text="e.g. 2024-2025")
    month = models.CharField(max_length=20, help_text="Generation month label, e.g. 2024-04")
    frequency = models.CharField(max_length=20, choices=FREQUENCY_CHOICES)
    amount_due = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(ZERO)])
    total_periods = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    concession = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO,
                                     validators=[MinValueValidator(ZERO)])
    periods_paid = models.PositiveSmallIntegerField(default=0)
    due_date = models.DateField()
    next_due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='unpaid')
    last_payment_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student_fee_records'
        ordering = ['due_date', 'student__name']
        unique_together = ['student', 'fee_type', 'academic_year']
        indexes = [
            models.Index(fields=['status'], name='fee_records_status_idx'),
            models.Index(fields=['academic_year'], name='fee_records_year_idx'),
            models.Index(fields=['next_due_date', 'status'], name='fee_records_due_idx'),
        ]

    def __str__(self):
        return f"{self.student.admission_no} - {self.fee_type.name} {self.academic_year}"

    def yearly_amount(self):
        return self.amount_due * self.total_periods

    def total_paid(self):
        if not self.pk:
            return ZERO
        return self.payments.aggregate(total=Sum('amount_paid'))['total'] or ZERO

    def payment_discount(self):
        if not self.pk:
            return ZERO
        return self.payments.aggregate(total=Sum('discount'))['total'] or ZERO

    def total_discount(self):
        return self.payment_discount() + self.concession

    def total_covered(self):
        return self.total_paid() + self.total_discount()

    def remaining_amount(self):
        return max(ZERO, self.yearly_amount() - self.total_covered())

    def payment_ratio(self):
        return f"{self.periods_paid}/{self.total_periods}"

    def refresh_status(self, today=None, fee_config=None, save=True):
        """Recompute periods paid, next due date and status from the payments"""
        from .fee_calculator import FeeCalculator

        calculator = FeeCalculator(fee_config)
        covered = self.total_covered()
        self.periods_paid = calculator.periods_covered(self.amount_due, covered, self.total_periods)
        self.next_due_date = calculator.next_due_date(self.frequency, self.academic_year, self.periods_paid)
        self.status = calculator.resolve_status(self.yearly_amount(), covered, self.next_due_date, today)
        if save:
            self.save(update_fields=['periods_paid', 'next_due_date', 'status', 'updated_at'])
        return self.status


class FeePayment(models.Model):
    """One line of a collection: money (and discount) applied to one fee record"""
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='fee_payments')
    fee_record = models.ForeignKey(StudentFeeRecord, on_delete=models.CASCADE, related_name='payments')
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(ZERO)])
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO, validators=[MinValueValidator(ZERO)])
    discount_remarks = models.CharField(max_length=255, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    payment_date = models.DateTimeField(default=timezone.now)
    received_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='fee_collections')
    collected_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='recorded_fee_payments')
    receipt_number = models.CharField(max_length=50, db_index=True, help_text="Shared by every line of one collection")
    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'fee_payments'
        ordering = ['-payment_date', 'id']
        indexes = [
            models.Index(fields=['student', 'payment_date'], name='fee_payments_student_idx'),
            models.Index(fields=['payment_method'], name='fee_payments_method_idx'),
        ]

    def __str__(self):
        return f"Payment {self.receipt_number} - {self.student.admission_no} - {self.amount_paid}"

    @classmethod
    def generate_receipt_number(cls, when=None):
        """Next RCP-YYYYMMDD-NNNN number for the day"""
        when = when or timezone.localtime()
        prefix = f"RCP-{when.strftime('%Y%m%d')}"
        # Compared numerically: -10000 sorts before -9999 as text
        issued = cls.objects.filter(
            receipt_number__startswith=f"{prefix}-"
        ).values_list('receipt_number', flat=True).distinct()
        last_num = 0
        for number in issued:
            suffix = number[len(prefix) + 1:]
            if suffix.isdigit():
                last_num = max(last_num, int(suffix))
        new_num = last_num + 1

        return f"{prefix}-{new_num:04d}"


# Encryption helper for bank details
def get_encryption_key():
    """Fernet key from settings, or one derived from SECRET_KEY"""
    key = getattr(settings, 'ENCRYPTION_KEY', None)
    if not key:
        digest = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
        return base64.urlsafe_b64encode(digest[:32])
    if isinstance(key, str):
        key = key.encode()
    return key


def encrypt_value(value):
    if not value:
        return value
    return Fernet(get_encryption_key()).encrypt(value.encode()).decode()


def decrypt_value(encrypted_value):
    if not encrypted_value:
        return encrypted_value
    try:
        return Fernet(get_encryption_key()).decrypt(encrypted_value.encode()).decode()
    except InvalidToken:
        # Rows written before the key was rotated
        logger.warning("Could not decrypt stored bank detail; returning it unchanged")
        return encrypted_value


class Account(models.Model):
    """Bank or cash account money is booked into"""
    TYPE_CHOICES = [
        ('bank', 'Bank'),
        ('cash', 'Cash'),
    ]

    name = models.CharField(max_length=100)
    account_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    bank_name = models.CharField(max_length=100, blank=True)
    # Stored encrypted; use get_account_number() / get_ifsc_code()
    account_number = models.CharField(max_length=255, blank=True)
    ifsc_code = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'accounts'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.get_account_type_display()})"

    def set_bank_details(self, account_number='', ifsc_code='', bank_name=None):
        self.account_number = encrypt_value(account_number or '')
        self.ifsc_code = encrypt_value(ifsc_code or '')
        if bank_name is not None:
            self.bank_name = bank_name

    def get_account_number(self):
        return decrypt_value(self.account_number)

    def get_ifsc_code(self):
        return decrypt_value(self.ifsc_code)

    def masked_account_number(self):
        number = self.get_account_number()
        if not number:
            return ''
        return f"{'*' * max(0, len(number) - 4)}{number[-4:]}"


class Transaction(models.Model):
    """Income, expense or transfer between accounts"""
    TYPE_CHOICES = [
        ('income', 'Income'),
        ('expense', 'Expense'),
        ('transfer', 'Transfer'),
    ]

    CATEGORY_CHOICES = [
        ('fees', 'Fees'),
        ('donation', 'Donation'),
        ('investment', 'Investment'),
        ('salary', 'Salary'),
        ('maintenance', 'Maintenance'),
        ('supplies', 'Supplies'),
        ('utilities', 'Utilities'),
        ('transport', 'Transport'),
        ('transfer', 'Transfer'),
        ('other', 'Other'),
    ]

    transaction_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    description = models.TextField(blank=True)
    from_account = models.ForeignKey(Account, on_delete=models.PROTECT, null=True, blank=True, related_name='outgoing_transactions')
    to_account = models.ForeignKey(Account, on_delete=models.PROTECT, null=True, blank=True, related_name='incoming_transactions')
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='finance_transactions')
    transaction_date = models.DateField()
    reference_number = models.CharField(max_length=100, blank=True)
    attachments = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='finance_transactions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'transactions'
        ordering = ['-transaction_date', '-created_at']
        indexes = [
            models.Index(fields=['transaction_type', 'transaction_date'], name='transactions_type_date_idx'),
            models.Index(fields=['category'], name='transactions_category_idx'),
        ]

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.amount} ({self.get_category_display()}) on {self.transaction_date}"
