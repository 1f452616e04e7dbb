"""
API views for the school office: auth, students, staff, classes, users,
dashboard, configuration and uploads.
Returns JSON responses for frontend consumption.
"""
import logging
import os
import secrets
import time
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.db.models.functions import ExtractMonth
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from PIL import Image, UnidentifiedImageError

from .activity import log_activity, record_activity
from .auth import end_session, issue_token, start_session
from .config_store import current_salary_period, get_config, update_config
from .decorators import token_required, require_permission
from .forms import (
    first_error, bind_for_update, StaffForm, SchoolClassForm, StudentForm,
    StaffTransactionForm, UserForm, LoginForm,
)
from .models import (
    Staff, SchoolClass, Student, CustomUser, StaffTransaction, ActivityLog, ActiveSession,
)
from .permissions import ALL_PERMISSIONS, PREDEFINED_ROLES, format_permissions_for_user, permissions_for_role
from .services import PromotionService
from .utils.api import InvalidJSON, json_body, int_param, paginated_response, error_response, money, iso
from accounts.models import ClassFeeStructure, FeePayment, StudentFeeCustom, StudentFeeRecord, Transaction
from accounts.services import OPEN_STATUSES

logger = logging.getLogger(__name__)


# ============================================
# Serializers
# ============================================

def serialize_staff(staff, salary_paid=None):
    data = {
        'id': staff.id,
        'name': staff.name,
        'role': staff.role,
        'qualification': staff.qualification,
        'join_date': iso(staff.join_date),
        'salary': money(staff.salary),
        'contact': staff.contact,
        'status': staff.status,
        'created_at': iso(staff.created_at),
        'updated_at': iso(staff.updated_at),
    }
    if salary_paid is not None:
        data['salary_status'] = 'paid' if salary_paid else 'unpaid'
    return data


def serialize_class(school_class, student_count=None):
    teacher = school_class.class_teacher
    data = {
        'id': school_class.id,
        'class_name': school_class.class_name,
        'class_teacher': teacher.id if teacher else None,
        'class_teacher_name': teacher.name if teacher else None,
        'created_at': iso(school_class.created_at),
        'updated_at': iso(school_class.updated_at),
    }
    if student_count is not None:
        data['student_count'] = student_count
    return data


def serialize_student(student):
    school_class = student.school_class
    return {
        'id': student.id,
        'admission_no': student.admission_no,
        'name': student.name,
        'date_of_birth': iso(student.date_of_birth),
        'gender': student.gender,
        'blood_group': student.blood_group,
        'date_of_admission': iso(student.date_of_admission),
        'email': student.email,
        'aadhar': student.aadhar,
        're_admission_of': student.re_admission_of_id,
        'school_class': student.school_class_id,
        'class': {'id': school_class.id, 'class_name': school_class.class_name} if school_class else None,
        'guardian_name': student.guardian_name,
        'guardian_contact': student.guardian_contact,
        'guardian_occupation': student.guardian_occupation,
        'address': student.address,
        'profile_image': student.profile_image,
        'status': student.status,
        'created_at': iso(student.created_at),
        'updated_at': iso(student.updated_at),
    }


def serialize_user(user, online_ids=None):
    data = {
        'id': user.id,
        'username': user.username,
        'alias': user.alias,
        'role': user.role,
        'staff': user.staff_id,
        'staff_name': user.staff.name if user.staff_id else None,
        'permissions': user.get_permissions(),
        'is_active': user.is_active,
        'last_login': iso(user.last_login),
        'created_at': iso(user.created_at),
    }
    if online_ids is not None:
        data['is_online'] = user.id in online_ids
    return data


def serialize_staff_transaction(txn):
    return {
        'id': txn.id,
        'staff': txn.staff_id,
        'staff_name': txn.staff.name,
        'amount': money(txn.amount),
        'transaction_type': txn.transaction_type,
        'month': txn.month,
        'year': txn.year,
        'payment_date': iso(txn.payment_date),
        'remarks': txn.remarks,
        'status': txn.status,
        'created_at': iso(txn.created_at),
    }


def serialize_activity(log):
    return {
        'id': log.id,
        'user': log.user_id,
        'username': log.username,
        'alias': log.alias,
        'action': log.action,
        'resource': log.resource,
        'resource_id': log.resource_id,
        'details': log.details,
        'ip_address': log.ip_address,
        'user_agent': log.user_agent,
        'timestamp': iso(log.timestamp),
    }


def serialize_fee_custom(custom):
    return {
        'id': custom.id,
        'fee_type': custom.fee_type_id,
        'fee_type_name': custom.fee_type.name,
        'frequency': custom.fee_type.frequency,
        'custom_amount': money(custom.custom_amount),
        'is_applicable': custom.is_applicable,
        'remarks': custom.remarks,
        'discount_amount': money(custom.discount_amount),
        'discount_reason': custom.discount_reason,
        'effective_from': iso(custom.effective_from),
        'effective_to': iso(custom.effective_to),
    }


# ============================================
# Health & fallbacks
# ============================================

@require_http_methods(["GET"])
def api_health(request):
    return JsonResponse({'status': 'OK', 'message': f"{settings.SCHOOL_NAME} API is running"})


@csrf_exempt
def api_route_not_found(request):
    return error_response('Route not found', status=404)


# ============================================
# Auth API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["POST"])
def api_login(request):
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = LoginForm(data)
    if not form.is_valid():
        return error_response(first_error(form))

    user = CustomUser.objects.select_related('staff').filter(username=form.cleaned_data['username']).first()
    if user is None or not user.check_password(form.cleaned_data['password']):
        logger.warning(f"Failed login attempt for '{form.cleaned_data['username']}'")
        return error_response('Invalid credentials', status=401)
    if not user.is_active:
        return error_response('Account is disabled', status=401)

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    start_session(user, request)
    record_activity(request, 'login', 'auth', user.id, user=user)
    logger.info(f"User {user.username} logged in")

    return JsonResponse({'token': issue_token(user), 'user': serialize_user(user)})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
def api_me(request):
    return JsonResponse(serialize_user(request.office_user))


@csrf_exempt
@require_http_methods(["POST"])
@token_required
def api_logout(request):
    end_session(request.office_user)
    record_activity(request, 'logout', 'auth', request.office_user.id)
    return JsonResponse({'message': 'Logged out successfully'})


# ============================================
# Students API Endpoints
# ============================================

def _ensure_fee_customizations(student):
    """Applicable customisation rows for each active fee of the student's class"""
    for structure in ClassFeeStructure.objects.filter(school_class_id=student.school_class_id, active=True):
        StudentFeeCustom.objects.get_or_create(
            student=student, fee_type_id=structure.fee_type_id, defaults={'is_applicable': True},
        )


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('students:read', 'students:create')
@log_activity('student')
def api_students(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('students', 'read'):
            return error_response('Insufficient permissions', status=403)

        students = Student.objects.select_related('school_class').order_by('-created_at')
        search = request.GET.get('search', '').strip()
        if search:
            students = students.filter(
                Q(name__icontains=search) | Q(admission_no__icontains=search) | Q(guardian_name__icontains=search)
            )
        class_id = int_param(request, 'class_id')
        if class_id:
            students = students.filter(school_class_id=class_id)
        status = request.GET.get('status')
        if status:
            students = students.filter(status=status)
        return paginated_response(request, students, serialize_student)

    if not user.has_office_permission('students', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = StudentForm(data)
    if not form.is_valid():
        return error_response(first_error(form))

    with transaction.atomic():
        student = form.save()
        _ensure_fee_customizations(student)
    logger.info(f"Student {student.admission_no} created by {user.username}")
    return JsonResponse(serialize_student(student), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_required
@require_permission('students:read', 'students:update', 'students:delete')
@log_activity('student')
def api_student_detail(request, pk):
    user = request.office_user
    try:
        student = Student.objects.select_related('school_class').get(pk=pk)
    except Student.DoesNotExist:
        return error_response('Student not found', status=404)

    if request.method == 'GET':
        if not user.has_office_permission('students', 'read'):
            return error_response('Insufficient permissions', status=403)
        return JsonResponse(serialize_student(student))

    if request.method == 'PUT':
        if not user.has_office_permission('students', 'update'):
            return error_response('Insufficient permissions', status=403)
        try:
            data = json_body(request)
        except InvalidJSON as e:
            return error_response(str(e))

        previous_class = student.school_class_id
        form = bind_for_update(StudentForm, student, data)
        if not form.is_valid():
            return error_response(first_error(form))
        with transaction.atomic():
            student = form.save()
            if student.school_class_id != previous_class:
                _ensure_fee_customizations(student)
        return JsonResponse(serialize_student(student))

    if not user.has_office_permission('students', 'delete'):
        return error_response('Insufficient permissions', status=403)
    if student.fee_payments.exists():
        return error_response('Cannot delete a student with recorded fee payments. Mark the student as left instead.')
    student.delete()
    logger.info(f"Student {pk} deleted by {user.username}")
    return JsonResponse({'message': 'Student deleted successfully'})


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@token_required
@require_permission('students:read', 'students:update')
@log_activity('student_fee_structure')
def api_student_fee_structure(request, pk):
    from accounts.forms import StudentFeeCustomForm

    user = request.office_user
    try:
        student = Student.objects.get(pk=pk)
    except Student.DoesNotExist:
        return error_response('Student not found', status=404)

    if request.method == 'GET':
        if not user.has_office_permission('students', 'read'):
            return error_response('Insufficient permissions', status=403)
        customs = student.fee_customizations.select_related('fee_type').order_by('fee_type__name')
        return JsonResponse({'results': [serialize_fee_custom(c) for c in customs]})

    if not user.has_office_permission('students', 'update'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    customizations = data.get('customizations')
    if not isinstance(customizations, list):
        return error_response('customizations must be a list')

    class_amounts = dict(
        ClassFeeStructure.objects.filter(school_class_id=student.school_class_id, active=True)
        .values_list('fee_type_id', 'amount')
    )
    forms_to_save = []
    for entry in customizations:
        if not isinstance(entry, dict):
            return error_response('Each customization must be an object')
        # Unknown or malformed fee types are reported by the form
        existing = None
        if str(entry.get('fee_type')).isdigit():
            existing = StudentFeeCustom.objects.filter(student=student, fee_type_id=entry['fee_type']).first()
        form = StudentFeeCustomForm(entry, instance=existing, class_amounts=class_amounts)
        if not form.is_valid():
            return error_response(first_error(form))
        forms_to_save.append(form)

    with transaction.atomic():
        for form in forms_to_save:
            custom = form.save(commit=False)
            custom.student = student
            custom.save()

    logger.info(f"Fee structure of {student.admission_no} updated by {user.username}")
    return JsonResponse({'message': 'Fee structure updated successfully'})


# ============================================
# Staff API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('staff:read', 'staff:create')
@log_activity('staff')
def api_staff(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('staff', 'read'):
            return error_response('Insufficient permissions', status=403)

        staff = Staff.objects.order_by('-created_at')
        search = request.GET.get('search', '').strip()
        if search:
            staff = staff.filter(
                Q(name__icontains=search) | Q(contact__icontains=search) | Q(qualification__icontains=search)
            )
        if request.GET.get('role'):
            staff = staff.filter(role=request.GET['role'])
        if request.GET.get('status'):
            staff = staff.filter(status=request.GET['status'])

        month, year = current_salary_period()
        paid_ids = set(StaffTransaction.objects.filter(
            month=month, year=year, transaction_type='salary'
        ).values_list('staff_id', flat=True))
        return paginated_response(
            request, staff, lambda s: serialize_staff(s, salary_paid=s.id in paid_ids),
            extra={'salary_period': {'month': month, 'year': year}},
        )

    if not user.has_office_permission('staff', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = StaffForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    staff = form.save()
    logger.info(f"Staff member {staff.name} created by {user.username}")
    return JsonResponse(serialize_staff(staff), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_required
@require_permission('staff:read', 'staff:update', 'staff:delete')
@log_activity('staff')
def api_staff_detail(request, pk):
    user = request.office_user
    try:
        staff = Staff.objects.get(pk=pk)
    except Staff.DoesNotExist:
        return error_response('Staff member not found', status=404)

    if request.method == 'GET':
        if not user.has_office_permission('staff', 'read'):
            return error_response('Insufficient permissions', status=403)
        return JsonResponse(serialize_staff(staff))

    if request.method == 'PUT':
        if not user.has_office_permission('staff', 'update'):
            return error_response('Insufficient permissions', status=403)
        try:
            data = json_body(request)
        except InvalidJSON as e:
            return error_response(str(e))
        form = bind_for_update(StaffForm, staff, data)
        if not form.is_valid():
            return error_response(first_error(form))
        return JsonResponse(serialize_staff(form.save()))

    if not user.has_office_permission('staff', 'delete'):
        return error_response('Insufficient permissions', status=403)
    if staff.users.exists():
        return error_response(
            'Cannot delete staff member with associated user accounts. Please delete user accounts first.'
        )
    if staff.classes_taught.exists():
        return error_response(
            'Cannot delete staff member assigned as class teacher. Please reassign classes first.'
        )
    staff.delete()
    logger.info(f"Staff member {pk} deleted by {user.username}")
    return JsonResponse({'message': 'Staff member deleted successfully'})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('staff:read')
def api_staff_member_transactions(request, pk):
    try:
        staff = Staff.objects.get(pk=pk)
    except Staff.DoesNotExist:
        return error_response('Staff member not found', status=404)

    transactions = staff.transactions.select_related('staff')
    year = int_param(request, 'year')
    if year:
        transactions = transactions.filter(year=year)
    month = int_param(request, 'month')
    if month:
        transactions = transactions.filter(month=month)
    return paginated_response(request, transactions, serialize_staff_transaction)


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('staff:read')
def api_staff_salary_history(request, pk):
    """Month by month salary status of one staff member for a calendar year"""
    try:
        staff = Staff.objects.get(pk=pk)
    except Staff.DoesNotExist:
        return error_response('Staff member not found', status=404)

    year = int_param(request, 'year', timezone.localdate().year)
    salaries = {
        t.month: t for t in staff.transactions.filter(year=year, transaction_type='salary')
    }
    months = []
    for month in range(1, 13):
        txn = salaries.get(month)
        months.append({
            'month': month,
            'month_name': date(year, month, 1).strftime('%B'),
            'status': txn.status if txn else 'unpaid',
            'amount': money(txn.amount) if txn else None,
            'payment_date': iso(txn.payment_date) if txn else None,
        })
    total_paid = sum((t.amount for t in salaries.values() if t.status == 'paid'), Decimal('0.00'))
    return JsonResponse({
        'staff': serialize_staff(staff),
        'year': year,
        'months': months,
        'total_paid': money(total_paid),
    })


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('staff:read', 'staff:create')
@log_activity('staff_transaction')
def api_staff_transactions(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('staff', 'read'):
            return error_response('Insufficient permissions', status=403)
        transactions = StaffTransaction.objects.select_related('staff')
        return paginated_response(request, transactions, serialize_staff_transaction, default_limit=50)

    if not user.has_office_permission('staff', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = StaffTransactionForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    txn = form.save()
    logger.info(f"{txn.get_transaction_type_display()} of {txn.amount} booked for {txn.staff.name} ({txn.month:02d}/{txn.year})")
    return JsonResponse(serialize_staff_transaction(txn), status=201)


# ============================================
# Classes API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('classes:read', 'classes:create')
@log_activity('class')
def api_classes(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('classes', 'read'):
            return error_response('Insufficient permissions', status=403)
        classes = SchoolClass.objects.select_related('class_teacher').annotate(
            active_students=Count('students', filter=Q(students__status='active'))
        )
        search = request.GET.get('search', '').strip()
        if search:
            classes = classes.filter(class_name__icontains=search)
        return paginated_response(
            request, classes, lambda c: serialize_class(c, student_count=c.active_students), default_limit=50,
        )

    if not user.has_office_permission('classes', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = SchoolClassForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    school_class = form.save()
    return JsonResponse(serialize_class(school_class, student_count=0), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_required
@require_permission('classes:read', 'classes:update', 'classes:delete')
@log_activity('class')
def api_class_detail(request, pk):
    user = request.office_user
    try:
        school_class = SchoolClass.objects.select_related('class_teacher').get(pk=pk)
    except SchoolClass.DoesNotExist:
        return error_response('Class not found', status=404)

    if request.method == 'GET':
        if not user.has_office_permission('classes', 'read'):
            return error_response('Insufficient permissions', status=403)
        count = school_class.students.filter(status='active').count()
        return JsonResponse(serialize_class(school_class, student_count=count))

    if request.method == 'PUT':
        if not user.has_office_permission('classes', 'update'):
            return error_response('Insufficient permissions', status=403)
        try:
            data = json_body(request)
        except InvalidJSON as e:
            return error_response(str(e))
        form = bind_for_update(SchoolClassForm, school_class, data)
        if not form.is_valid():
            return error_response(first_error(form))
        school_class = form.save()
        count = school_class.students.filter(status='active').count()
        return JsonResponse(serialize_class(school_class, student_count=count))

    if not user.has_office_permission('classes', 'delete'):
        return error_response('Insufficient permissions', status=403)
    if school_class.students.filter(status='active').exists():
        return error_response('Cannot delete class with active students')
    if school_class.students.exists():
        return error_response('Cannot delete class that still has student records. Move them to another class first.')
    school_class.delete()
    return JsonResponse({'message': 'Class deleted successfully'})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('classes:read')
def api_available_teachers(request):
    teachers = Staff.objects.filter(status='active', role__in=['teacher', 'principal'])
    return JsonResponse({'results': [serialize_staff(t) for t in teachers]})


# ============================================
# Users API Endpoints
# ============================================

def _online_user_ids():
    return set(ActiveSession.objects.online().values_list('user_id', flat=True))


def _apply_permissions(user, data):
    if user.role == 'custom':
        if 'custom_permissions' in data:
            user.permissions = format_permissions_for_user(data.get('custom_permissions'))
    else:
        user.permissions = permissions_for_role(user.role)


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('users:read', 'users:create')
@log_activity('user')
def api_users(request):
    current = request.office_user
    if request.method == 'GET':
        if not current.has_office_permission('users', 'read'):
            return error_response('Insufficient permissions', status=403)

        users = CustomUser.objects.select_related('staff').order_by('-created_at')
        search = request.GET.get('search', '').strip()
        if search:
            users = users.filter(Q(username__icontains=search) | Q(alias__icontains=search))
        online_ids = _online_user_ids()
        is_online = request.GET.get('is_online')
        if is_online in ('true', '1'):
            users = users.filter(pk__in=online_ids)
        elif is_online in ('false', '0'):
            users = users.exclude(pk__in=online_ids)
        return paginated_response(request, users, lambda u: serialize_user(u, online_ids))

    if not current.has_office_permission('users', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = UserForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    user = form.save(commit=False)
    _apply_permissions(user, data)
    user.save()
    logger.info(f"User {user.username} ({user.role}) created by {current.username}")
    return JsonResponse(serialize_user(user), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_required
@require_permission('users:read', 'users:update', 'users:delete')
@log_activity('user')
def api_user_detail(request, pk):
    current = request.office_user
    try:
        user = CustomUser.objects.select_related('staff').get(pk=pk)
    except CustomUser.DoesNotExist:
        return error_response('User not found', status=404)

    if request.method == 'GET':
        if not current.has_office_permission('users', 'read'):
            return error_response('Insufficient permissions', status=403)
        return JsonResponse(serialize_user(user, _online_user_ids()))

    if request.method == 'PUT':
        if not current.has_office_permission('users', 'update'):
            return error_response('Insufficient permissions', status=403)
        try:
            data = json_body(request)
        except InvalidJSON as e:
            return error_response(str(e))

        form = bind_for_update(UserForm, user, data)
        if not form.is_valid():
            return error_response(first_error(form))
        if user.pk == current.pk and not form.cleaned_data.get('is_active', True):
            return error_response('You cannot deactivate your own account')
        user = form.save(commit=False)
        _apply_permissions(user, data)
        user.save()
        if not user.is_active:
            end_session(user)
        return JsonResponse(serialize_user(user))

    if not current.has_office_permission('users', 'delete'):
        return error_response('Insufficient permissions', status=403)
    if user.pk == current.pk:
        return error_response('You cannot delete your own account')
    ActiveSession.objects.filter(user=user).delete()
    user.delete()
    logger.info(f"User {pk} deleted by {current.username}")
    return JsonResponse({'message': 'User deleted successfully'})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('users:read')
def api_predefined_roles(request):
    return JsonResponse(PREDEFINED_ROLES)


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('users:read')
def api_all_permissions(request):
    return JsonResponse({'results': ALL_PERMISSIONS})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('users:read')
def api_active_users(request):
    sessions = ActiveSession.objects.online().select_related('user')
    return JsonResponse({'results': [{
        'user': session.user_id,
        'username': session.username,
        'alias': session.alias,
        'role': session.user.role,
        'login_time': iso(session.login_time),
        'last_activity': iso(session.last_activity),
        'ip_address': session.ip_address,
    } for session in sessions]})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('users:read')
def api_user_activity(request):
    logs = ActivityLog.objects.all()
    user_id = int_param(request, 'user_id')
    if user_id:
        logs = logs.filter(user_id=user_id)
    for field in ('action', 'resource'):
        if request.GET.get(field):
            logs = logs.filter(**{field: request.GET[field]})
    return paginated_response(request, logs, serialize_activity, default_limit=50)


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('users:create', 'users:update')
def api_available_staff(request):
    """Active staff members without a login yet"""
    staff = Staff.objects.filter(status='active', users__isnull=True)
    return JsonResponse({'results': [serialize_staff(s) for s in staff]})


# ============================================
# Dashboard API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('dashboard:read')
def api_dashboard_stats(request):
    today = timezone.localdate()
    yearly = ExpressionWrapper(F('amount_due') * F('total_periods'), output_field=DecimalField())
    open_records = StudentFeeRecord.objects.filter(status__in=OPEN_STATUSES).aggregate(
        yearly=Sum(yearly), concession=Sum('concession'),
    )
    open_payments = FeePayment.objects.filter(fee_record__status__in=OPEN_STATUSES).aggregate(
        paid=Sum('amount_paid'), discount=Sum('discount'),
    )
    outstanding = (open_records['yearly'] or 0) - (open_records['concession'] or 0) \
        - (open_payments['paid'] or 0) - (open_payments['discount'] or 0)

    total_collected = FeePayment.objects.aggregate(total=Sum('amount_paid'))['total'] or 0
    month_expenses = Transaction.objects.filter(
        transaction_type='expense', transaction_date__year=today.year, transaction_date__month=today.month,
    ).aggregate(total=Sum('amount'))['total'] or 0

    recent = FeePayment.objects.select_related('student', 'fee_record__fee_type')[:5]
    return JsonResponse({
        'total_students': Student.objects.count(),
        'active_students': Student.objects.filter(status='active').count(),
        'total_staff': Staff.objects.filter(status='active').count(),
        'total_classes': SchoolClass.objects.count(),
        'total_fees_collected': money(total_collected),
        'outstanding_fees': money(max(outstanding, 0)),
        'this_month_expenses': money(month_expenses),
        'recent_payments': [{
            'id': p.id,
            'receipt_number': p.receipt_number,
            'student_name': p.student.name,
            'fee_type': p.fee_record.fee_type.name,
            'amount_paid': money(p.amount_paid),
            'payment_date': iso(p.payment_date),
        } for p in recent],
    })


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('dashboard:read')
def api_fee_collection_chart(request):
    year = int_param(request, 'year', timezone.localdate().year)
    totals = dict(
        FeePayment.objects.filter(payment_date__year=year)
        .annotate(month=ExtractMonth('payment_date'))
        .values('month')
        .annotate(total=Sum('amount_paid'))
        .values_list('month', 'total')
    )
    return JsonResponse({'year': year, 'results': [{
        'month': date(year, month, 1).strftime('%b'),
        'amount': money(totals.get(month) or 0),
    } for month in range(1, 13)]})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('dashboard:read')
def api_class_distribution(request):
    classes = SchoolClass.objects.annotate(
        student_count=Count('students', filter=Q(students__status='active'))
    )
    return JsonResponse({'results': [
        {'class_name': c.class_name, 'student_count': c.student_count} for c in classes
    ]})


# ============================================
# Configuration API Endpoints
# ============================================

def _config_endpoint(request, key):
    user = request.office_user
    if request.method == 'GET':
        return JsonResponse(get_config(key))

    if not user.has_office_permission('configuration', 'update'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))
    try:
        config = update_config(key, data, user=user)
    except ValidationError as e:
        return error_response(e.messages[0])
    return JsonResponse({'message': 'Configuration updated successfully', 'config': config})


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@token_required
@require_permission('configuration:read', 'configuration:update')
@log_activity('fee_config')
def api_config_fees(request):
    return _config_endpoint(request, 'fees')


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@token_required
@require_permission('configuration:read', 'configuration:update')
@log_activity('salary_config')
def api_config_salary(request):
    return _config_endpoint(request, 'salary')


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@token_required
@require_permission('configuration:read', 'configuration:update')
@log_activity('year_progression')
def api_config_year_progression(request):
    return _config_endpoint(request, 'year_progression')


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('configuration:update')
@log_activity('academic_year', 'promote')
def api_promote_year(request):
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))
    try:
        result = PromotionService.promote_year(academic_year=data.get('academic_year') or None)
    except ValueError as e:
        return error_response(str(e))
    return JsonResponse(result)


# ============================================
# Upload API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('students:create', 'students:update')
def api_upload_student_image(request):
    image = request.FILES.get('image')
    if image is None:
        return error_response('No image file provided')
    if not (image.content_type or '').startswith('image/'):
        return error_response('Only image files are allowed')
    if image.size > settings.STUDENT_IMAGE_MAX_BYTES:
        limit_mb = settings.STUDENT_IMAGE_MAX_BYTES // (1024 * 1024)
        return error_response(f'Image must be smaller than {limit_mb}MB')
    try:
        Image.open(image).verify()
    except (UnidentifiedImageError, OSError):
        return error_response('Only image files are allowed')
    image.seek(0)

    extension = os.path.splitext(image.name)[1].lower() or '.jpg'
    name = f"students/{int(time.time() * 1000)}-{secrets.token_hex(6)}{extension}"
    path = default_storage.save(name, image)
    url = default_storage.url(path)
    if url.startswith('/'):
        url = request.build_absolute_uri(url)
    logger.info(f"Student image uploaded to {path} by {request.office_user.username}")
    return JsonResponse({'message': 'Image uploaded successfully', 'image_url': url})
