from django.db import models
from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.conf import settings
from django.utils import timezone
from datetime import timedelta
from decimal import Decimal

from .permissions import permissions_for_role, has_permission


class Staff(models.Model):
    """Teaching and non-teaching staff"""
    ROLE_CHOICES = [
        ('principal', 'Principal'),
        ('teacher', 'Teacher'),
        ('staff', 'Staff'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    name = models.CharField(max_length=100)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    qualification = models.CharField(max_length=100, blank=True)
    join_date = models.DateField()
    salary = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    contact = models.CharField(max_length=15, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'staff'
        ordering = ['name']
        indexes = [
            models.Index(fields=['role'], name='staff_role_idx'),
            models.Index(fields=['status'], name='staff_status_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"


class SchoolClass(models.Model):
    """A class (grade) students are enrolled in, e.g. "Class 5" """
    class_name = models.CharField(max_length=50, unique=True)
    class_teacher = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='classes_taught')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'classes'
        ordering = ['class_name']
        verbose_name_plural = 'classes'

    def __str__(self):
        return self.class_name


class Student(models.Model):
    """Student model"""
    GENDER_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
        ('Other', 'Other'),
    ]

    BLOOD_GROUP_CHOICES = [
        ('A+', 'A+'), ('A-', 'A-'),
        ('B+', 'B+'), ('B-', 'B-'),
        ('AB+', 'AB+'), ('AB-', 'AB-'),
        ('O+', 'O+'), ('O-', 'O-'),
        ('', 'Unknown'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('passed', 'Passed Out'),
        ('left', 'Left'),
    ]

    admission_no = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES, blank=True, default='')
    date_of_admission = models.DateField(null=True, blank=True)
    email = models.EmailField(max_length=100, blank=True, default='')
    aadhar = models.CharField(
        max_length=12, blank=True, default='',
        validators=[RegexValidator(r'^\d{12}$', 'Aadhar number must be exactly 12 digits')],
    )
    re_admission_of = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='readmissions')
    school_class = models.ForeignKey(SchoolClass, on_delete=models.PROTECT, related_name='students')
    guardian_name = models.CharField(max_length=100, blank=True)
    guardian_contact = models.CharField(max_length=15, blank=True)
    guardian_occupation = models.CharField(max_length=100, blank=True, default='')
    address = models.TextField(blank=True)
    profile_image = models.CharField(max_length=500, blank=True, default='', help_text="URL of the uploaded photo")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'students'
        ordering = ['admission_no']
        indexes = [
            models.Index(fields=['school_class', 'status'], name='students_class_status_idx'),
            models.Index(fields=['name'], name='students_name_idx'),
            models.Index(fields=['status'], name='students_status_idx'),
        ]

    def __str__(self):
        return f"{self.admission_no} - {self.name}"

    def is_active(self):
        return self.status == 'active'


class CustomUser(AbstractUser):
    """Office login linked to a staff member, with a role and permission map"""
    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('principal', 'Principal'),
        ('staff', 'Staff'),
        ('custom', 'Custom'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='staff')
    alias = models.CharField(max_length=100, blank=True)
    staff = models.ForeignKey(Staff, on_delete=models.PROTECT, null=True, blank=True, related_name='users')
    permissions = models.JSONField(default=dict, blank=True, help_text="resource -> [actions] map")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        ordering = ['username']
        indexes = [
            models.Index(fields=['role'], name='users_role_idx'),
        ]

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def is_admin(self):
        return self.role == 'admin' or self.is_superuser

    def get_permissions(self):
        """Effective permissions: the role's map, or the stored map for custom users"""
        return permissions_for_role(self.role, self.permissions)

    def has_office_permission(self, resource, action):
        if self.is_admin():
            return True
        return has_permission(self.get_permissions(), resource, action)


class StaffTransaction(models.Model):
    """Salary, bonus or deduction booked against a staff member for one month"""
    TYPE_CHOICES = [
        ('salary', 'Salary'),
        ('bonus', 'Bonus'),
        ('deduction', 'Deduction'),
    ]

    STATUS_CHOICES = [
        ('paid', 'Paid'),
        ('pending', 'Pending'),
    ]

    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name='transactions')
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    transaction_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='salary')
    month = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(12)])
    year = models.PositiveIntegerField(validators=[MinValueValidator(2020)])
    payment_date = models.DateField()
    remarks = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='paid')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'staff_transactions'
        ordering = ['-year', '-month', '-payment_date']
        unique_together = ['staff', 'month', 'year', 'transaction_type']
        indexes = [
            models.Index(fields=['year', 'month'], name='staff_txn_period_idx'),
        ]

    def __str__(self):
        return f"{self.staff.name} - {self.get_transaction_type_display()} {self.month:02d}/{self.year}"


class ActivityLog(models.Model):
    """Audit trail of office actions"""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='activity_logs')
    username = models.CharField(max_length=150)
    alias = models.CharField(max_length=100, blank=True)
    action = models.CharField(max_length=50)
    resource = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=50, blank=True)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'activity_logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['user', 'timestamp'], name='activity_user_time_idx'),
            models.Index(fields=['resource', 'action'], name='activity_resource_idx'),
        ]

    def __str__(self):
        return f"{self.username} {self.action} {self.resource} at {self.timestamp:%Y-%m-%d %H:%M}"


class ActiveSessionQuerySet(models.QuerySet):
    def stale(self, now=None):
        now = now or timezone.now()
        cutoff = now - timedelta(hours=settings.SESSION_INACTIVITY_HOURS)
        return self.filter(last_activity__lt=cutoff)

    def online(self, now=None):
        now = now or timezone.now()
        cutoff = now - timedelta(hours=settings.SESSION_INACTIVITY_HOURS)
        return self.filter(is_active=True, last_activity__gte=cutoff)


class ActiveSession(models.Model):
    """Most recent session per user; refreshed on every authenticated request"""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='active_session')
    username = models.CharField(max_length=150)
    alias = models.CharField(max_length=100, blank=True)
    login_time = models.DateTimeField(default=timezone.now)
    last_activity = models.DateTimeField(default=timezone.now)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)

    objects = ActiveSessionQuerySet.as_manager()

    class Meta:
        db_table = 'active_sessions'
        ordering = ['-last_activity']
        indexes = [
            models.Index(fields=['last_activity'], name='sessions_last_activity_idx'),
        ]

    def __str__(self):
        return f"{self.username} (last seen {self.last_activity:%Y-%m-%d %H:%M})"

    def is_expired(self, now=None):
        now = now or timezone.now()
        return self.last_activity < now - timedelta(hours=settings.SESSION_INACTIVITY_HOURS)


class SystemConfiguration(models.Model):
    """Editable JSON configuration documents (fees, salary, year progression)"""
    KEY_CHOICES = [
        ('fees', 'Fee configuration'),
        ('salary', 'Salary configuration'),
        ('year_progression', 'Year progression'),
    ]

    key = models.CharField(max_length=50, unique=True, choices=KEY_CHOICES)
    value = models.JSONField(default=dict)
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'system_configurations'
        ordering = ['key']

    def __str__(self):
        return self.get_key_display()
