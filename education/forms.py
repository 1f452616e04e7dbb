from django import forms
from django.forms.models import model_to_dict

from .models import Staff, SchoolClass, Student, CustomUser, StaffTransaction


def first_error(form):
    """First validation message of a bound form, prefixed with the field name"""
    for field, errors in form.errors.items():
        message = errors[0]
        if field == '__all__':
            return message
        return f"{field}: {message}"
    return 'Invalid data'


def bind_for_update(form_class, instance, data, **kwargs):
    """
    Bind ``form_class`` for a partial update: fields missing from ``data``
    keep the instance's current values.
    """
    initial = model_to_dict(instance, fields=list(form_class._meta.fields))
    initial.update({k: v for k, v in data.items() if k in form_class.base_fields})
    return form_class(initial, instance=instance, **kwargs)


class ModelDefaultsMixin:
    """Fields named in ``model_defaults`` may be left out; the model default applies"""
    model_defaults = ()

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in self.model_defaults:
            self.fields[name].required = False

    def clean(self):
        # Filled in before validate_unique so unique_together checks still see the value
        cleaned_data = super().clean()
        for name in self.model_defaults:
            if cleaned_data.get(name) in self.fields[name].empty_values:
                cleaned_data[name] = self._meta.model._meta.get_field(name).get_default()
        return cleaned_data


class StaffForm(ModelDefaultsMixin, forms.ModelForm):
    model_defaults = ('status',)

    class Meta:
        model = Staff
        fields = ['name', 'role', 'qualification', 'join_date', 'salary', 'contact', 'status']


class SchoolClassForm(forms.ModelForm):
    """Class name plus optional class teacher (must be an active staff member)"""
    class Meta:
        model = SchoolClass
        fields = ['class_name', 'class_teacher']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['class_teacher'].queryset = Staff.objects.filter(status='active')
        self.fields['class_teacher'].required = False

    def clean_class_name(self):
        return self.cleaned_data['class_name'].strip()


class StudentForm(ModelDefaultsMixin, forms.ModelForm):
    model_defaults = ('status',)

    class Meta:
        model = Student
        fields = [
            'admission_no', 'name', 'date_of_birth', 'gender', 'blood_group', 'date_of_admission',
            'email', 'aadhar', 're_admission_of', 'school_class', 'guardian_name', 'guardian_contact',
            'guardian_occupation', 'address', 'profile_image', 'status',
        ]

    def clean_admission_no(self):
        return self.cleaned_data['admission_no'].strip()

    def clean(self):
        cleaned_data = super().clean()
        previous = cleaned_data.get('re_admission_of')
        if previous and self.instance.pk and previous.pk == self.instance.pk:
            raise forms.ValidationError("A student cannot be a re-admission of themselves.")
        return cleaned_data


class StaffTransactionForm(ModelDefaultsMixin, forms.ModelForm):
    model_defaults = ('transaction_type', 'status')

    class Meta:
        model = StaffTransaction
        fields = ['staff', 'amount', 'transaction_type', 'month', 'year', 'payment_date', 'remarks', 'status']
        error_messages = {
            forms.models.NON_FIELD_ERRORS: {
                'unique_together': "Transaction already exists for this staff member, month and year",
            }
        }


class UserForm(ModelDefaultsMixin, forms.ModelForm):
    """Office user; the password is required when creating"""
    model_defaults = ('role',)
    password = forms.CharField(required=False, min_length=6, strip=False)

    class Meta:
        model = CustomUser
        fields = ['username', 'alias', 'role', 'staff', 'is_active']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['staff'].required = self.instance.pk is None
        self.fields['is_active'].required = False

    def clean_is_active(self):
        if 'is_active' not in self.data:
            return True if self.instance.pk is None else self.instance.is_active
        return self.cleaned_data['is_active']

    def clean(self):
        cleaned_data = super().clean()
        if self.instance.pk is None and not cleaned_data.get('password'):
            raise forms.ValidationError("Password is required.")
        staff = cleaned_data.get('staff')
        if staff is not None and staff.status != 'active':
            raise forms.ValidationError("Users can only be linked to active staff.")
        return cleaned_data

    def save(self, commit=True):
        user = super().save(commit=False)
        password = self.cleaned_data.get('password')
        if password:
            user.set_password(password)
        if commit:
            user.save()
        return user


class LoginForm(forms.Form):
    username = forms.CharField(max_length=150)
    password = forms.CharField(strip=False)
