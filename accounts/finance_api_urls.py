"""
Finance API URL patterns (mounted at /api/finance/)
"""
from django.urls import path
from . import api_views

urlpatterns = [
    path('accounts/', api_views.api_accounts, name='api_accounts'),
    path('accounts/<int:pk>/', api_views.api_account_detail, name='api_account_detail'),
    path('transactions/', api_views.api_transactions, name='api_transactions'),
    path('summary/', api_views.api_finance_summary, name='api_finance_summary'),

    path('students/<int:pk>/fee-summary/', api_views.api_student_payment_ratios, name='api_student_payment_ratios'),
    path('payment-summaries/', api_views.api_payment_summaries, name='api_payment_summaries'),
    path('payment-with-ratio/', api_views.api_payment_with_ratio, name='api_payment_with_ratio'),
    path('apply-discount/', api_views.api_apply_discount, name='api_apply_discount'),

    path('trigger-fee-recalculation/', api_views.api_trigger_fee_recalculation, name='api_trigger_fee_recalculation'),
    path('trigger-auto-generation/', api_views.api_trigger_auto_generation, name='api_trigger_auto_generation'),
    path('fee-config/', api_views.api_fee_config, name='api_fee_config'),
]
