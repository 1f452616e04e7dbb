"""
API URL patterns for the office client
"""
from django.urls import path
from . import api_views

urlpatterns = [
    # Auth API
    path('auth/login/', api_views.api_login, name='api_login'),
    path('auth/me/', api_views.api_me, name='api_me'),
    path('auth/logout/', api_views.api_logout, name='api_logout'),

    # Students API
    path('students/', api_views.api_students, name='api_students'),
    path('students/<int:pk>/', api_views.api_student_detail, name='api_student_detail'),
    path('students/<int:pk>/fee-structure/', api_views.api_student_fee_structure, name='api_student_fee_structure'),

    # Staff API
    path('staff/', api_views.api_staff, name='api_staff'),
    path('staff/transactions/', api_views.api_staff_transactions, name='api_staff_transactions'),
    path('staff/<int:pk>/', api_views.api_staff_detail, name='api_staff_detail'),
    path('staff/<int:pk>/transactions/', api_views.api_staff_member_transactions, name='api_staff_member_transactions'),
    path('staff/<int:pk>/salary-history/', api_views.api_staff_salary_history, name='api_staff_salary_history'),

    # Classes API
    path('classes/', api_views.api_classes, name='api_classes'),
    path('classes/available/teachers/', api_views.api_available_teachers, name='api_available_teachers'),
    path('classes/<int:pk>/', api_views.api_class_detail, name='api_class_detail'),

    # Users API
    path('users/', api_views.api_users, name='api_users'),
    path('users/roles/predefined/', api_views.api_predefined_roles, name='api_predefined_roles'),
    path('users/permissions/all/', api_views.api_all_permissions, name='api_all_permissions'),
    path('users/active/', api_views.api_active_users, name='api_active_users'),
    path('users/activity/', api_views.api_user_activity, name='api_user_activity'),
    path('users/available/staff/', api_views.api_available_staff, name='api_available_staff'),
    path('users/<int:pk>/', api_views.api_user_detail, name='api_user_detail'),

    # Dashboard API
    path('dashboard/stats/', api_views.api_dashboard_stats, name='api_dashboard_stats'),
    path('dashboard/fee-collection-chart/', api_views.api_fee_collection_chart, name='api_fee_collection_chart'),
    path('dashboard/class-distribution/', api_views.api_class_distribution, name='api_class_distribution'),

    # Configuration API
    path('config/fees/', api_views.api_config_fees, name='api_config_fees'),
    path('config/salary/', api_views.api_config_salary, name='api_config_salary'),
    path('config/year-progression/', api_views.api_config_year_progression, name='api_config_year_progression'),
    path('config/promote-year/', api_views.api_promote_year, name='api_promote_year'),

    # Upload API
    path('upload/student-image/', api_views.api_upload_student_image, name='api_upload_student_image'),
]
