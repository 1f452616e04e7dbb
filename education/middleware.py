import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied, ObjectDoesNotExist
from django.http import Http404, JsonResponse

logger = logging.getLogger(__name__)


class ApiExceptionMiddleware:
    """Answer unhandled errors on /api/ paths with JSON instead of HTML error pages"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not request.path.startswith('/api/'):
            return None

        if isinstance(exception, PermissionDenied):
            return JsonResponse({'error': str(exception) or 'Insufficient permissions'}, status=403)
        if isinstance(exception, (Http404, ObjectDoesNotExist)):
            return JsonResponse({'error': str(exception) or 'Not found'}, status=404)

        logger.exception(f"Unhandled error on {request.method} {request.path}")
        payload = {'error': 'Internal server error'}
        if settings.DEBUG:
            payload['message'] = str(exception)
        return JsonResponse(payload, status=500)
