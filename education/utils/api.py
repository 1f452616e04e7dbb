"""
Small helpers shared by the JSON API views
"""
import json
from datetime import date, datetime
from decimal import Decimal

from django.core.paginator import Paginator
from django.http import JsonResponse


class InvalidJSON(ValueError):
    pass


def json_body(request):
    """Request body as a dict; raises InvalidJSON for anything else"""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidJSON('Invalid JSON data')
    if not isinstance(data, dict):
        raise InvalidJSON('Invalid JSON data')
    return data


def int_param(request, name, default=None, minimum=None, maximum=None):
    value = request.GET.get(name)
    try:
        value = int(value) if value not in (None, '') else default
    except (TypeError, ValueError):
        value = default
    if value is not None and minimum is not None:
        value = max(value, minimum)
    if value is not None and maximum is not None:
        value = min(value, maximum)
    return value


def paginated_response(request, queryset, serialize, default_limit=10, max_limit=100, extra=None):
    page = int_param(request, 'page', 1, minimum=1)
    limit = int_param(request, 'limit', default_limit, minimum=1, maximum=max_limit)

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    payload = {
        'count': paginator.count,
        'results': [serialize(obj) for obj in page_obj],
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'total_pages': paginator.num_pages,
    }
    if extra:
        payload.update(extra)
    return JsonResponse(payload)


def error_response(message, status=400):
    return JsonResponse({'error': message}, status=status)


def money(value):
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value


def iso(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
