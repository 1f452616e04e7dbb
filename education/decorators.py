"""
Decorators for authenticating API requests and enforcing office permissions
"""
from functools import wraps

import jwt
from django.contrib.auth import get_user_model
from django.http import JsonResponse

from .auth import bearer_token, decode_token, touch_session


def token_required(view_func):
    """
    Authenticate the request from its Bearer token.

    401 when the token is missing or names an unknown/inactive user,
    403 when it cannot be decoded or has expired. On success the user is
    available as ``request.office_user`` and their session is refreshed.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token = bearer_token(request)
        if not token:
            return JsonResponse({'error': 'Access token required'}, status=401)

        try:
            payload = decode_token(token)
        except jwt.InvalidTokenError:
            return JsonResponse({'error': 'Invalid or expired token'}, status=403)

        User = get_user_model()
        try:
            user = User.objects.select_related('staff').get(pk=payload.get('user_id'))
        except User.DoesNotExist:
            return JsonResponse({'error': 'Invalid token'}, status=401)
        if not user.is_active:
            return JsonResponse({'error': 'Invalid token'}, status=401)

        touch_session(user, request)
        request.office_user = user
        request.user = user
        return view_func(request, *args, **kwargs)
    return wrapper


def require_permission(*permissions):
    """
    Allow the view when the user holds any of the "resource:action"
    permissions given. Administrators always pass. Must sit below
    @token_required.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = getattr(request, 'office_user', None)
            if user is None:
                return JsonResponse({'error': 'Authentication required'}, status=401)
            if user.is_admin():
                return view_func(request, *args, **kwargs)
            for permission in permissions:
                resource, action = permission.split(':')
                if user.has_office_permission(resource, action):
                    return view_func(request, *args, **kwargs)
            return JsonResponse({'error': 'Insufficient permissions'}, status=403)
        return wrapper
    return decorator

