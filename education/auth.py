"""
Bearer token handling for the office API
"""
from datetime import timedelta

import jwt
from django.conf import settings
from django.utils import timezone

from .models import ActiveSession


def issue_token(user):
    now = timezone.now()
    payload = {
        'user_id': user.pk,
        'username': user.username,
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(days=settings.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token):
    """Payload of a valid token; raises jwt.InvalidTokenError otherwise"""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def bearer_token(request):
    header = request.headers.get('Authorization', '')
    parts = header.split(' ', 1)
    if len(parts) == 2 and parts[0].lower() == 'bearer' and parts[1].strip():
        return parts[1].strip()
    return None


def client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR') or None


def user_agent(request):
    return (request.headers.get('User-Agent') or '')[:255]


def start_session(user, request):
    now = timezone.now()
    session, _ = ActiveSession.objects.update_or_create(
        user=user,
        defaults={
            'username': user.username,
            'alias': user.alias,
            'login_time': now,
            'last_activity': now,
            'ip_address': client_ip(request),
            'user_agent': user_agent(request),
            'is_active': True,
        },
    )
    return session


def touch_session(user, request):
    """Refresh last activity; recreates the session row if it was purged"""
    updated = ActiveSession.objects.filter(user=user).update(
        last_activity=timezone.now(),
        ip_address=client_ip(request),
        user_agent=user_agent(request),
        is_active=True,
    )
    if not updated:
        start_session(user, request)


def end_session(user):
    ActiveSession.objects.filter(user=user).update(is_active=False)
