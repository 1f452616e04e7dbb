"""
API views for fees (types, class structures, records, collections, receipts)
and finance (accounts, transactions, summaries, discounts, fee jobs).
"""
import logging

from django.core.exceptions import ValidationError
from django.db.models import Count, Max, Q, Sum
from django.http import HttpResponse, JsonResponse
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from education.activity import log_activity
from education.config_store import get_fee_config, update_config
from education.decorators import token_required, require_permission
from education.forms import first_error, bind_for_update
from education.models import SchoolClass, Student
from education.utils.api import InvalidJSON, json_body, int_param, paginated_response, error_response, money, iso
from .fee_calculator import FeeCalculator
from .forms import (
    FeeTypeForm, ClassFeeStructureForm, AccountForm, TransactionForm, CollectionForm,
    PaymentWithRatioForm, DiscountForm, GenerateFeesForm,
)
from .models import Account, ClassFeeStructure, FeePayment, FeeType, StudentFeeRecord, Transaction, ZERO
from .services import DiscountService, FeeRecordService, FinanceService, OPEN_STATUSES, PaymentService
from .utils.receipt_generator import build_receipt_data, generate_receipt_pdf

logger = logging.getLogger(__name__)


# ============================================
# Serializers
# ============================================

def serialize_fee_type(fee_type):
    return {
        'id': fee_type.id,
        'name': fee_type.name,
        'frequency': fee_type.frequency,
        'default_amount': money(fee_type.default_amount),
        'description': fee_type.description,
    }


def serialize_class_structure(structure):
    return {
        'id': structure.id,
        'school_class': structure.school_class_id,
        'class_name': structure.school_class.class_name,
        'fee_type': serialize_fee_type(structure.fee_type),
        'amount': money(structure.amount),
        'active': structure.active,
    }


def serialize_fee_record(record):
    paid = record.total_paid()
    discount = record.total_discount()
    yearly = record.yearly_amount()
    student = record.student
    return {
        'id': record.id,
        'student': student.id,
        'student_name': student.name,
        'admission_no': student.admission_no,
        'class_name': student.school_class.class_name if student.school_class_id else None,
        'fee_type': record.fee_type_id,
        'fee_type_name': record.fee_type.name,
        'academic_year': record.academic_year,
        'month': record.month,
        'frequency': record.frequency,
        'amount_due': money(record.amount_due),
        'total_periods': record.total_periods,
        'yearly_amount': money(yearly),
        'concession': money(record.concession),
        'total_paid': money(paid),
        'total_discount': money(discount),
        'remaining_amount': money(max(ZERO, yearly - paid - discount)),
        'periods_paid': record.periods_paid,
        'payment_ratio': record.payment_ratio(),
        'due_date': iso(record.due_date),
        'next_due_date': iso(record.next_due_date),
        'status': record.status,
        'last_payment_date': iso(record.last_payment_date),
    }


def serialize_payment(payment):
    return {
        'id': payment.id,
        'receipt_number': payment.receipt_number,
        'student': payment.student_id,
        'fee_record': payment.fee_record_id,
        'fee_type_name': payment.fee_record.fee_type.name,
        'amount_paid': money(payment.amount_paid),
        'discount': money(payment.discount),
        'discount_remarks': payment.discount_remarks,
        'payment_method': payment.payment_method,
        'payment_date': iso(payment.payment_date),
        'received_by': payment.received_by_id,
        'collected_by': payment.collected_by.username if payment.collected_by_id else None,
        'remarks': payment.remarks,
    }


def serialize_account(account):
    return {
        'id': account.id,
        'name': account.name,
        'account_type': account.account_type,
        'balance': money(account.balance),
        'bank_name': account.bank_name,
        'account_number': account.masked_account_number(),
        'ifsc_code': account.get_ifsc_code(),
        'is_active': account.is_active,
        'created_at': iso(account.created_at),
    }


def _account_ref(account):
    return {'id': account.id, 'name': account.name} if account else None


def serialize_transaction(txn):
    return {
        'id': txn.id,
        'transaction_type': txn.transaction_type,
        'category': txn.category,
        'amount': money(txn.amount),
        'description': txn.description,
        'from_account': _account_ref(txn.from_account),
        'to_account': _account_ref(txn.to_account),
        'staff': txn.staff_id,
        'staff_name': txn.staff.name if txn.staff_id else None,
        'transaction_date': iso(txn.transaction_date),
        'reference_number': txn.reference_number,
        'attachments': txn.attachments,
        'created_by': txn.created_by.username if txn.created_by_id else None,
        'created_at': iso(txn.created_at),
    }


def _records():
    return StudentFeeRecord.objects.select_related('student__school_class', 'fee_type')


# ============================================
# Fee Types API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('fees:read', 'fees:create')
@log_activity('fee_type')
def api_fee_types(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('fees', 'read'):
            return error_response('Insufficient permissions', status=403)
        return JsonResponse({'results': [serialize_fee_type(f) for f in FeeType.objects.all()]})

    if not user.has_office_permission('fees', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))
    form = FeeTypeForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    return JsonResponse(serialize_fee_type(form.save()), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_required
@require_permission('fees:read', 'fees:update', 'fees:delete')
@log_activity('fee_type')
def api_fee_type_detail(request, pk):
    user = request.office_user
    try:
        fee_type = FeeType.objects.get(pk=pk)
    except FeeType.DoesNotExist:
        return error_response('Fee type not found', status=404)

    if request.method == 'GET':
        if not user.has_office_permission('fees', 'read'):
            return error_response('Insufficient permissions', status=403)
        return JsonResponse(serialize_fee_type(fee_type))

    if request.method == 'PUT':
        if not user.has_office_permission('fees', 'update'):
            return error_response('Insufficient permissions', status=403)
        try:
            data = json_body(request)
        except InvalidJSON as e:
            return error_response(str(e))
        form = bind_for_update(FeeTypeForm, fee_type, data)
        if not form.is_valid():
            return error_response(first_error(form))
        return JsonResponse(serialize_fee_type(form.save()))

    if not user.has_office_permission('fees', 'delete'):
        return error_response('Insufficient permissions', status=403)
    if fee_type.class_structures.exists():
        return error_response('Cannot delete fee type that is being used in class fee structures')
    if fee_type.fee_records.exists():
        return error_response('Cannot delete fee type that already has student fee records')
    fee_type.delete()
    return JsonResponse({'message': 'Fee type deleted successfully'})


# ============================================
# Class Fee Structure API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('fees:read', 'fees:create')
@log_activity('class_fee_structure')
def api_class_structures(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('fees', 'read'):
            return error_response('Insufficient permissions', status=403)
        structures = ClassFeeStructure.objects.select_related('school_class', 'fee_type').filter(active=True)
        class_id = int_param(request, 'class_id')
        if class_id:
            structures = structures.filter(school_class_id=class_id)
        return JsonResponse({'results': [serialize_class_structure(s) for s in structures]})

    if not user.has_office_permission('fees', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))
    form = ClassFeeStructureForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    structure = form.save()
    logger.info(f"{structure.fee_type.name} of {structure.amount} added to {structure.school_class.class_name}")
    return JsonResponse(serialize_class_structure(structure), status=201)


@csrf_exempt
@require_http_methods(["DELETE"])
@token_required
@require_permission('fees:delete')
@log_activity('class_fee_structure')
def api_class_structure_detail(request, pk):
    try:
        structure = ClassFeeStructure.objects.get(pk=pk)
    except ClassFeeStructure.DoesNotExist:
        return error_response('Fee structure not found', status=404)
    structure.delete()
    return JsonResponse({'message': 'Fee structure deleted successfully'})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_class_fee_structure(request, class_id):
    try:
        school_class = SchoolClass.objects.get(pk=class_id)
    except SchoolClass.DoesNotExist:
        return error_response('Class not found', status=404)
    structures = school_class.fee_structures.filter(active=True).select_related('school_class', 'fee_type')
    calculator = FeeCalculator(get_fee_config())
    results = []
    for structure in structures:
        data = serialize_class_structure(structure)
        periods = calculator.periods_per_year(structure.fee_type.frequency)
        data['periods_per_year'] = periods
        data['yearly_amount'] = money(structure.amount * periods)
        results.append(data)
    return JsonResponse({
        'class': {'id': school_class.id, 'class_name': school_class.class_name},
        'results': results,
        'total_yearly': sum(r['yearly_amount'] for r in results),
    })


# ============================================
# Fee Records API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_due_summary(request):
    records = _records().filter(status__in=OPEN_STATUSES).order_by('due_date', 'student__name')
    class_id = int_param(request, 'class_id')
    if class_id:
        records = records.filter(student__school_class_id=class_id)
    due_fees = [serialize_fee_record(r) for r in records]
    return JsonResponse({
        'due_fees': due_fees,
        'summary': {
            'total_outstanding': sum(r['remaining_amount'] for r in due_fees),
            'record_count': len(due_fees),
            'overdue_count': sum(1 for r in due_fees if r['status'] == 'overdue'),
        },
    })


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_fee_records(request):
    records = _records().order_by('-academic_year', 'due_date', 'student__name')
    for param, lookup in (('student_id', 'student_id'), ('class_id', 'student__school_class_id'),
                          ('fee_type_id', 'fee_type_id')):
        value = int_param(request, param)
        if value:
            records = records.filter(**{lookup: value})
    if request.GET.get('status'):
        records = records.filter(status=request.GET['status'])
    if request.GET.get('academic_year'):
        records = records.filter(academic_year=request.GET['academic_year'])
    search = request.GET.get('search', '').strip()
    if search:
        records = records.filter(Q(student__name__icontains=search) | Q(student__admission_no__icontains=search))
    return paginated_response(request, records, serialize_fee_record, default_limit=20)


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('fees:create')
@log_activity('fee_records', 'generate')
def api_generate_fees(request):
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = GenerateFeesForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    class_ids = data.get('class_ids') or []
    if not isinstance(class_ids, list) or not all(isinstance(c, int) for c in class_ids):
        return error_response('class_ids must be a list of class ids')

    result = FeeRecordService.generate_for_classes(
        class_ids=class_ids, year=form.cleaned_data.get('year'), month=form.cleaned_data.get('month'),
    )
    result['message'] = f"Generated {result['created']} fee records for {result['academic_year']}"
    return JsonResponse(result)


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('fees:create')
@log_activity('fee_payment')
def api_fee_payment(request):
    """Collect one or more fees of a student under a single receipt"""
    user = request.office_user
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = CollectionForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    items = data.get('fees')
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        return error_response('fees must be a list of {fee_record, amount_paid} objects')

    cleaned = form.cleaned_data
    try:
        payments = PaymentService.record_collection(
            cleaned['student'],
            items,
            payment_method=cleaned['payment_method'],
            payment_date=cleaned.get('payment_date'),
            account=cleaned.get('account'),
            received_by=cleaned.get('received_by') or user.staff,
            collected_by=user,
            remarks=cleaned.get('remarks') or '',
        )
    except ValidationError as e:
        return error_response(e.messages[0])

    return JsonResponse({
        'id': payments[0].id,
        'message': 'Payment recorded successfully',
        'receipt_number': payments[0].receipt_number,
        'total_paid': money(sum((p.amount_paid for p in payments), ZERO)),
        'total_discount': money(sum((p.discount for p in payments), ZERO)),
        'payments': [serialize_payment(p) for p in payments],
    }, status=201)


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_student_fee_summary(request, student_id):
    try:
        student = Student.objects.select_related('school_class').get(pk=student_id)
    except Student.DoesNotExist:
        return error_response('Student not found', status=404)

    academic_year = request.GET.get('academic_year') or FeeCalculator(get_fee_config()).current_academic_year()
    records = [serialize_fee_record(r) for r in _records().filter(student=student, academic_year=academic_year)]
    payments = FeePayment.objects.filter(student=student).select_related('fee_record__fee_type', 'collected_by')[:50]
    return JsonResponse({
        'student': {
            'id': student.id,
            'name': student.name,
            'admission_no': student.admission_no,
            'class_name': student.school_class.class_name if student.school_class_id else None,
            'guardian_name': student.guardian_name,
        },
        'academic_year': academic_year,
        'records': records,
        'totals': {
            'yearly_amount': sum(r['yearly_amount'] for r in records),
            'total_paid': sum(r['total_paid'] for r in records),
            'total_discount': sum(r['total_discount'] for r in records),
            'remaining_amount': sum(r['remaining_amount'] for r in records),
        },
        'payments': [serialize_payment(p) for p in payments],
    })


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_fee_receipt(request, payment_id):
    try:
        payment = FeePayment.objects.get(pk=payment_id)
    except FeePayment.DoesNotExist:
        return error_response('Payment not found', status=404)

    payments = FeePayment.objects.filter(receipt_number=payment.receipt_number).select_related(
        'student__school_class', 'fee_record__fee_type'
    ).order_by('id')
    pdf = generate_receipt_pdf(build_receipt_data(payments))

    response = HttpResponse(pdf.getvalue(), content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="receipt-{payment.receipt_number}.pdf"'
    return response


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_collection_records(request):
    """Collections (payments grouped by receipt number), newest first"""
    payments = FeePayment.objects.all()
    search = request.GET.get('search', '').strip()
    if search:
        payments = payments.filter(
            Q(receipt_number__icontains=search) | Q(student__name__icontains=search)
            | Q(student__admission_no__icontains=search)
        )
    date_from = parse_date(request.GET.get('date_from') or '')
    if date_from:
        payments = payments.filter(payment_date__date__gte=date_from)
    date_to = parse_date(request.GET.get('date_to') or '')
    if date_to:
        payments = payments.filter(payment_date__date__lte=date_to)

    collections = payments.values(
        'receipt_number', 'student_id', 'student__name', 'student__admission_no', 'payment_method',
    ).annotate(
        total_paid=Sum('amount_paid'),
        total_discount=Sum('discount'),
        fee_count=Count('id'),
        collected_at=Max('payment_date'),
    ).order_by('-collected_at', '-receipt_number')

    return paginated_response(request, collections, lambda c: {
        'receipt_number': c['receipt_number'],
        'student': c['student_id'],
        'student_name': c['student__name'],
        'admission_no': c['student__admission_no'],
        'payment_method': c['payment_method'],
        'total_paid': money(c['total_paid']),
        'total_discount': money(c['total_discount']),
        'fee_count': c['fee_count'],
        'payment_date': iso(c['collected_at']),
    }, default_limit=20)


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_collection_details(request, receipt_number):
    payments = list(FeePayment.objects.filter(receipt_number=receipt_number).select_related(
        'student__school_class', 'fee_record__fee_type', 'collected_by'
    ).order_by('id'))
    if not payments:
        return error_response('Collection not found', status=404)

    receipt = build_receipt_data(payments)
    return JsonResponse({
        'receipt_number': receipt_number,
        'student': {
            'id': payments[0].student_id,
            'name': receipt['student'],
            'admission_no': receipt['admission_number'],
            'class_name': receipt['class_name'],
            'guardian_name': receipt['guardian'],
        },
        'payment_method': payments[0].payment_method,
        'payment_date': iso(payments[0].payment_date),
        'total_amount': money(receipt['total_amount']),
        'total_discount': money(receipt['discount']),
        'amount_paid': money(receipt['amount_paid']),
        'payments': [serialize_payment(p) for p in payments],
    })


# ============================================
# Finance: Accounts API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('finance:read', 'finance:create')
@log_activity('account')
def api_accounts(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('finance', 'read'):
            return error_response('Insufficient permissions', status=403)
        accounts = Account.objects.filter(is_active=True)
        return JsonResponse({'results': [serialize_account(a) for a in accounts]})

    if not user.has_office_permission('finance', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))
    form = AccountForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    account = form.save()
    logger.info(f"Account {account.name} created by {user.username}")
    return JsonResponse(serialize_account(account), status=201)


@csrf_exempt
@require_http_methods(["DELETE"])
@token_required
@require_permission('finance:delete')
@log_activity('account')
def api_account_detail(request, pk):
    try:
        account = Account.objects.get(pk=pk)
    except Account.DoesNotExist:
        return error_response('Account not found', status=404)
    # Soft delete; transactions keep pointing at it
    account.is_active = False
    account.save(update_fields=['is_active', 'updated_at'])
    return JsonResponse({'message': 'Account deleted successfully'})


# ============================================
# Finance: Transactions API Endpoints
# ============================================

@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
@require_permission('finance:read', 'finance:create')
@log_activity('transaction')
def api_transactions(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('finance', 'read'):
            return error_response('Insufficient permissions', status=403)
        transactions = Transaction.objects.select_related('from_account', 'to_account', 'staff', 'created_by')
        if request.GET.get('type'):
            transactions = transactions.filter(transaction_type=request.GET['type'])
        if request.GET.get('category'):
            transactions = transactions.filter(category=request.GET['category'])
        account_id = int_param(request, 'account_id')
        if account_id:
            transactions = transactions.filter(Q(from_account_id=account_id) | Q(to_account_id=account_id))
        return paginated_response(request, transactions, serialize_transaction, default_limit=20)

    if not user.has_office_permission('finance', 'create'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = TransactionForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    attachments = data.get('attachments') or []
    if not isinstance(attachments, list):
        return error_response('attachments must be a list')

    try:
        txn = FinanceService.create_transaction(dict(form.cleaned_data, attachments=attachments), created_by=user)
    except ValidationError as e:
        return error_response(e.messages[0])
    return JsonResponse(serialize_transaction(txn), status=201)


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('finance:read')
def api_finance_summary(request):
    summary = FinanceService.summary()
    return JsonResponse({key: money(value) for key, value in summary.items()})


# ============================================
# Finance: Fee Summaries, Payments & Discounts
# ============================================

@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_student_payment_ratios(request, pk):
    try:
        student = Student.objects.get(pk=pk)
    except Student.DoesNotExist:
        return error_response('Student not found', status=404)

    academic_year = request.GET.get('academic_year') or FeeCalculator(get_fee_config()).current_academic_year()
    records = _records().filter(student=student, academic_year=academic_year)
    return JsonResponse({'academic_year': academic_year, 'results': [{
        'fee_type': r.fee_type.name,
        'fee_type_id': r.fee_type_id,
        'frequency': r.frequency,
        'amount_per_period': money(r.amount_due),
        'periods_paid': r.periods_paid,
        'total_periods': r.total_periods,
        'payment_ratio': r.payment_ratio(),
        'next_due_date': iso(r.next_due_date),
        'remaining_amount': money(r.remaining_amount()),
        'status': r.status,
    } for r in records]})


@csrf_exempt
@require_http_methods(["GET"])
@token_required
@require_permission('fees:read')
def api_payment_summaries(request):
    """Per-student totals for an academic year"""
    academic_year = request.GET.get('academic_year') or FeeCalculator(get_fee_config()).current_academic_year()
    students = Student.objects.filter(fee_records__academic_year=academic_year).select_related(
        'school_class').distinct().order_by('school_class__class_name', 'name')
    class_id = int_param(request, 'class_id')
    if class_id:
        students = students.filter(school_class_id=class_id)
    search = request.GET.get('search', '').strip()
    if search:
        students = students.filter(Q(name__icontains=search) | Q(admission_no__icontains=search))

    def summarize(student):
        records = list(student.fee_records.filter(academic_year=academic_year))
        yearly = sum((r.yearly_amount() for r in records), ZERO)
        paid = sum((r.total_paid() for r in records), ZERO)
        discount = sum((r.total_discount() for r in records), ZERO)
        statuses = {r.status for r in records}
        if statuses == {'paid'}:
            status = 'paid'
        elif 'overdue' in statuses:
            status = 'overdue'
        elif paid + discount > 0:
            status = 'partial'
        else:
            status = 'unpaid'
        return {
            'student': student.id,
            'student_name': student.name,
            'admission_no': student.admission_no,
            'class_name': student.school_class.class_name if student.school_class_id else None,
            'yearly_amount': money(yearly),
            'total_paid': money(paid),
            'total_discount': money(discount),
            'remaining_amount': money(max(ZERO, yearly - paid - discount)),
            'status': status,
        }

    return paginated_response(request, students, summarize, default_limit=20,
                              extra={'academic_year': academic_year})


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('fees:create')
@log_activity('fee_payment')
def api_payment_with_ratio(request):
    user = request.office_user
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = PaymentWithRatioForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    cleaned = form.cleaned_data
    try:
        record = PaymentService.pay_fee_type(
            cleaned['student'],
            cleaned['fee_type'],
            cleaned['amount'],
            payment_method=cleaned['payment_method'],
            payment_date=cleaned.get('payment_date'),
            discount=cleaned.get('discount'),
            discount_remarks=cleaned.get('discount_remarks') or '',
            account=cleaned.get('account'),
            received_by=cleaned.get('received_by') or user.staff,
            collected_by=user,
        )
    except ValidationError as e:
        return error_response(e.messages[0])

    latest = record.payments.order_by('-id').first()
    return JsonResponse({
        'success': True,
        'receipt_number': latest.receipt_number if latest else None,
        'updated_ratio': {
            'fee_type': record.fee_type_id,
            'payment_ratio': record.payment_ratio(),
            'status': record.status,
            'remaining_amount': money(record.remaining_amount()),
        },
    })


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('fees:update')
@log_activity('discount', 'apply')
def api_apply_discount(request):
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))

    form = DiscountForm(data)
    if not form.is_valid():
        return error_response(first_error(form))
    cleaned = form.cleaned_data
    try:
        DiscountService.apply_discount(
            cleaned['student'],
            cleaned['fee_type'],
            cleaned['discount_amount'],
            discount_reason=cleaned.get('discount_reason') or 'other',
            effective_from=cleaned.get('effective_from'),
            effective_to=cleaned.get('effective_to'),
        )
    except ValidationError as e:
        return error_response(e.messages[0])
    return JsonResponse({'success': True, 'message': 'Discount applied successfully'})


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('finance:create')
@log_activity('fee_records', 'recalculate')
def api_trigger_fee_recalculation(request):
    result = FeeRecordService.recalculate_overdue()
    return JsonResponse({'success': True, 'message': 'Fee recalculation completed successfully', **result})


@csrf_exempt
@require_http_methods(["POST"])
@token_required
@require_permission('finance:create')
@log_activity('fee_records', 'generate')
def api_trigger_auto_generation(request):
    result = FeeRecordService.auto_generate()
    return JsonResponse({'success': True, 'message': 'Auto fee generation completed successfully', **result})


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@token_required
@require_permission('fees:read', 'finance:update')
@log_activity('fee_config')
def api_fee_config(request):
    user = request.office_user
    if request.method == 'GET':
        if not user.has_office_permission('fees', 'read'):
            return error_response('Insufficient permissions', status=403)
        return JsonResponse(get_fee_config())

    if not user.has_office_permission('finance', 'update'):
        return error_response('Insufficient permissions', status=403)
    try:
        data = json_body(request)
    except InvalidJSON as e:
        return error_response(str(e))
    try:
        config = update_config('fees', data, user=user)
    except ValidationError as e:
        return error_response(e.messages[0])
    return JsonResponse({'success': True, 'message': 'Fee configuration updated successfully', 'config': config})
