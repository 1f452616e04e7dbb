"""
Activity logging for office actions
"""
import json
import logging
from functools import wraps

from django.db import DatabaseError
from django.utils import timezone

from .auth import client_ip, user_agent
from .models import ActivityLog
from .utils.google_sheets import mirror_activity

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = {'password', 'password_hash', 'current_password', 'new_password'}


def _scrub(data):
    if isinstance(data, dict):
        return {k: ('***' if k in SENSITIVE_FIELDS else _scrub(v)) for k, v in data.items()}
    if isinstance(data, list):
        return [_scrub(v) for v in data]
    return data


def record_activity(request, action, resource, resource_id='', details=None, user=None):
    """Write an ActivityLog row (and mirror it to Sheets). Never raises."""
    user = user or getattr(request, 'office_user', None)
    if user is None:
        return None
    try:
        log = ActivityLog.objects.create(
            user=user,
            username=user.username,
            alias=user.alias,
            action=action,
            resource=resource,
            resource_id=str(resource_id or ''),
            details=_scrub(details or {}),
            ip_address=client_ip(request),
            user_agent=user_agent(request),
            timestamp=timezone.now(),
        )
    except DatabaseError as e:
        logger.error(f"Failed to record activity {action} {resource} for {user.username}: {e}")
        return None
    mirror_activity([
        timezone.localtime(log.timestamp).strftime('%Y-%m-%d %H:%M:%S'),
        log.username, log.alias, log.action, log.resource, log.resource_id,
        json.dumps(log.details, default=str), log.ip_address or '',
    ])
    return log


METHOD_ACTIONS = {'POST': 'create', 'PUT': 'update', 'PATCH': 'update', 'DELETE': 'delete'}


def log_activity(resource, action=None):
    """
    Decorator recording an ActivityLog entry when the wrapped view answers
    a non-GET request with a 2xx status. Without ``action`` it is taken
    from the HTTP method.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            response = view_func(request, *args, **kwargs)
            if request.method in METHOD_ACTIONS and 200 <= response.status_code < 300:
                body = {}
                if request.content_type == 'application/json':
                    try:
                        body = json.loads(request.body or b'{}')
                    except (ValueError, UnicodeDecodeError):
                        body = {}
                resource_id = kwargs.get('pk') or ''
                if not resource_id and response.get('Content-Type', '').startswith('application/json'):
                    try:
                        resource_id = json.loads(response.content).get('id', '')
                    except (ValueError, AttributeError):
                        resource_id = ''
                record_activity(request, action or METHOD_ACTIONS[request.method], resource, resource_id, {
                    'method': request.method,
                    'path': request.path,
                    'body': body if isinstance(body, dict) else {},
                })
            return response
        return wrapper
    return decorator
