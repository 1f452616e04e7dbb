from decimal import Decimal

from django import forms

from education.forms import ModelDefaultsMixin
from education.models import Student, Staff
from .models import (
    FeeType, ClassFeeStructure, StudentFeeCustom, Account, Transaction,
    PAYMENT_METHOD_CHOICES,
)


class FeeTypeForm(forms.ModelForm):
    class Meta:
        model = FeeType
        fields = ['name', 'frequency', 'default_amount', 'description']
        error_messages = {
            'name': {'unique': "A fee type with this name already exists"},
        }


class ClassFeeStructureForm(forms.ModelForm):
    class Meta:
        model = ClassFeeStructure
        fields = ['school_class', 'fee_type', 'amount', 'active']
        error_messages = {
            forms.models.NON_FIELD_ERRORS: {
                'unique_together': "Fee structure already exists for this class and fee type",
            }
        }

    def clean_active(self):
        # Missing in the payload means active
        if 'active' not in self.data:
            return True
        return self.cleaned_data['active']


class StudentFeeCustomForm(forms.ModelForm):
    """One line of a student's fee structure customisation"""
    class Meta:
        model = StudentFeeCustom
        fields = ['fee_type', 'custom_amount', 'is_applicable', 'remarks']

    def __init__(self, *args, class_amounts=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.class_amounts = class_amounts or {}
        self.fields['is_applicable'].required = False

    def clean_is_applicable(self):
        if 'is_applicable' not in self.data:
            return True
        return self.cleaned_data['is_applicable']

    def clean(self):
        cleaned_data = super().clean()
        fee_type = cleaned_data.get('fee_type')
        custom_amount = cleaned_data.get('custom_amount')
        if fee_type is None:
            return cleaned_data
        if fee_type.pk not in self.class_amounts:
            raise forms.ValidationError(f"{fee_type.name} is not part of the student's class fee structure")
        class_amount = self.class_amounts[fee_type.pk]
        if custom_amount is not None and custom_amount != class_amount and not (cleaned_data.get('remarks') or '').strip():
            raise forms.ValidationError(
                f"Remarks are required when {fee_type.name} differs from the class amount of {class_amount}"
            )
        return cleaned_data


class AccountForm(ModelDefaultsMixin, forms.ModelForm):
    model_defaults = ('balance',)
    account_number = forms.CharField(required=False, max_length=34)
    ifsc_code = forms.RegexField(required=False, regex=r'^[A-Za-z]{4}0[A-Za-z0-9]{6}$',
                                 error_messages={'invalid': "Enter a valid IFSC code"})

    class Meta:
        model = Account
        fields = ['name', 'account_type', 'balance', 'bank_name']

    def clean_balance(self):
        balance = self.cleaned_data.get('balance') or Decimal('0.00')
        if balance < 0:
            raise forms.ValidationError("Opening balance cannot be negative")
        return balance

    def save(self, commit=True):
        account = super().save(commit=False)
        account.set_bank_details(
            self.cleaned_data.get('account_number'),
            (self.cleaned_data.get('ifsc_code') or '').upper(),
        )
        if commit:
            account.save()
        return account


class TransactionForm(forms.ModelForm):
    """Validated input for FinanceService.create_transaction"""
    class Meta:
        model = Transaction
        fields = [
            'transaction_type', 'category', 'amount', 'description', 'from_account',
            'to_account', 'staff', 'transaction_date', 'reference_number',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        active_accounts = Account.objects.filter(is_active=True)
        self.fields['from_account'].queryset = active_accounts
        self.fields['to_account'].queryset = active_accounts

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('category') == 'other' and not (cleaned_data.get('description') or '').strip():
            self.add_error('description', "Description is required for category 'other'")
        if cleaned_data.get('category') == 'salary' and not cleaned_data.get('staff'):
            self.add_error('staff', "Staff member is required for salary payments")
        return cleaned_data


class CollectionForm(forms.Form):
    """Header of a fee collection; the paid items are validated by PaymentService"""
    student = forms.ModelChoiceField(queryset=Student.objects.all())
    payment_method = forms.ChoiceField(choices=PAYMENT_METHOD_CHOICES, required=False)
    payment_date = forms.DateTimeField(required=False)
    account = forms.ModelChoiceField(queryset=Account.objects.filter(is_active=True), required=False)
    received_by = forms.ModelChoiceField(queryset=Staff.objects.all(), required=False)
    remarks = forms.CharField(required=False)

    def clean_payment_method(self):
        return self.cleaned_data.get('payment_method') or 'cash'


class PaymentWithRatioForm(CollectionForm):
    fee_type = forms.ModelChoiceField(queryset=FeeType.objects.all())
    amount = forms.DecimalField(min_value=Decimal('0.00'), max_digits=10, decimal_places=2)
    discount = forms.DecimalField(min_value=Decimal('0.00'), max_digits=10, decimal_places=2, required=False)
    discount_remarks = forms.CharField(required=False)


class DiscountForm(forms.Form):
    student = forms.ModelChoiceField(queryset=Student.objects.all())
    fee_type = forms.ModelChoiceField(queryset=FeeType.objects.all())
    discount_amount = forms.DecimalField(min_value=Decimal('0.00'), max_digits=10, decimal_places=2)
    discount_reason = forms.ChoiceField(choices=StudentFeeCustom.DISCOUNT_REASON_CHOICES, required=False)
    effective_from = forms.DateField(required=False)
    effective_to = forms.DateField(required=False)


class GenerateFeesForm(forms.Form):
    year = forms.IntegerField(min_value=2000, max_value=2100, required=False)
    month = forms.IntegerField(min_value=1, max_value=12, required=False)
