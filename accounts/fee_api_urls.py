"""
Fee API URL patterns (mounted at /api/fees/)
"""
from django.urls import path
from . import api_views

urlpatterns = [
    # Fee types
    path('types/', api_views.api_fee_types, name='api_fee_types'),
    path('types/<int:pk>/', api_views.api_fee_type_detail, name='api_fee_type_detail'),

    # Class fee structures
    path('class-structure/', api_views.api_class_structures, name='api_class_structures'),
    path('class-structure/<int:pk>/', api_views.api_class_structure_detail, name='api_class_structure_detail'),
    path('class/<int:class_id>/structure/', api_views.api_class_fee_structure, name='api_class_fee_structure'),

    # Records and collections
    path('due-summary/', api_views.api_due_summary, name='api_due_summary'),
    path('records/', api_views.api_fee_records, name='api_fee_records'),
    path('generate/', api_views.api_generate_fees, name='api_generate_fees'),
    path('payment/', api_views.api_fee_payment, name='api_fee_payment'),
    path('student-summary/<int:student_id>/', api_views.api_student_fee_summary, name='api_student_fee_summary'),
    path('receipt/<int:payment_id>/', api_views.api_fee_receipt, name='api_fee_receipt'),
    path('collection-records/', api_views.api_collection_records, name='api_collection_records'),
    path('collection-details/<str:receipt_number>/', api_views.api_collection_details, name='api_collection_details'),
]
