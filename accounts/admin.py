from django.contrib import admin
from .models import FeeType, ClassFeeStructure, StudentFeeCustom, StudentFeeRecord, FeePayment, Account, Transaction


@admin.register(FeeType)
class FeeTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'frequency', 'default_amount', 'created_at']
    list_filter = ['frequency']
    search_fields = ['name', 'description']


@admin.register(ClassFeeStructure)
class ClassFeeStructureAdmin(admin.ModelAdmin):
    list_display = ['school_class', 'fee_type', 'amount', 'active']
    list_filter = ['school_class', 'fee_type', 'active']
    search_fields = ['school_class__class_name', 'fee_type__name']


@admin.register(StudentFeeCustom)
class StudentFeeCustomAdmin(admin.ModelAdmin):
    list_display = ['student', 'fee_type', 'custom_amount', 'is_applicable', 'discount_amount', 'discount_reason']
    list_filter = ['is_applicable', 'discount_reason', 'fee_type']
    search_fields = ['student__admission_no', 'student__name']


@admin.register(StudentFeeRecord)
class StudentFeeRecordAdmin(admin.ModelAdmin):
    list_display = ['student', 'fee_type', 'academic_year', 'amount_due', 'periods_paid', 'total_periods', 'next_due_date', 'status']
    list_filter = ['status', 'academic_year', 'frequency', 'fee_type']
    search_fields = ['student__admission_no', 'student__name']
    readonly_fields = ['periods_paid', 'next_due_date', 'status', 'last_payment_date', 'created_at', 'updated_at']


@admin.register(FeePayment)
class FeePaymentAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'student', 'fee_record', 'amount_paid', 'discount', 'payment_method', 'payment_date']
    list_filter = ['payment_method', 'payment_date']
    search_fields = ['receipt_number', 'student__admission_no', 'student__name']
    readonly_fields = ['receipt_number', 'created_at']


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ['name', 'account_type', 'bank_name', 'balance', 'is_active']
    list_filter = ['account_type', 'is_active']
    search_fields = ['name', 'bank_name']
    # Bank details are stored encrypted
    exclude = ['account_number', 'ifsc_code']


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_date', 'transaction_type', 'category', 'amount', 'from_account', 'to_account', 'created_by']
    list_filter = ['transaction_type', 'category', 'transaction_date']
    search_fields = ['description', 'reference_number']
