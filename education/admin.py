from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import (
    Staff, SchoolClass, Student, CustomUser, StaffTransaction,
    ActivityLog, ActiveSession, SystemConfiguration
)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ['name', 'role', 'qualification', 'contact', 'salary', 'status', 'join_date']
    list_filter = ['role', 'status']
    search_fields = ['name', 'contact', 'qualification']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(SchoolClass)
class SchoolClassAdmin(admin.ModelAdmin):
    list_display = ['class_name', 'class_teacher', 'created_at']
    search_fields = ['class_name', 'class_teacher__name']


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['admission_no', 'name', 'school_class', 'guardian_name', 'guardian_contact', 'status']
    list_filter = ['status', 'school_class', 'gender']
    search_fields = ['admission_no', 'name', 'guardian_name', 'guardian_contact']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = (
        ('Basic Information', {
            'fields': ('admission_no', 'name', 'date_of_birth', 'gender', 'blood_group', 'email', 'aadhar')
        }),
        ('Admission', {
            'fields': ('school_class', 'date_of_admission', 're_admission_of', 'status')
        }),
        ('Guardian', {
            'fields': ('guardian_name', 'guardian_contact', 'guardian_occupation', 'address')
        }),
        ('Photo', {
            'fields': ('profile_image',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(CustomUser)
class CustomUserAdmin(BaseUserAdmin):
    list_display = ['username', 'alias', 'role', 'staff', 'is_active', 'last_login']
    list_filter = ['role', 'is_active']
    search_fields = ['username', 'alias', 'staff__name']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Office Access', {
            'fields': ('role', 'alias', 'staff', 'permissions')
        }),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Office Access', {
            'fields': ('role', 'alias', 'staff')
        }),
    )


@admin.register(StaffTransaction)
class StaffTransactionAdmin(admin.ModelAdmin):
    list_display = ['staff', 'transaction_type', 'amount', 'month', 'year', 'payment_date', 'status']
    list_filter = ['transaction_type', 'status', 'year']
    search_fields = ['staff__name']


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'username', 'action', 'resource', 'resource_id', 'ip_address']
    list_filter = ['action', 'resource']
    search_fields = ['username', 'alias', 'resource_id']
    readonly_fields = [f.name for f in ActivityLog._meta.fields]


@admin.register(ActiveSession)
class ActiveSessionAdmin(admin.ModelAdmin):
    list_display = ['username', 'login_time', 'last_activity', 'ip_address', 'is_active']
    list_filter = ['is_active']


@admin.register(SystemConfiguration)
class SystemConfigurationAdmin(admin.ModelAdmin):
    list_display = ['key', 'updated_by', 'updated_at']
