"""
Housekeeping jobs for sessions and the salary period.
"""
import logging

from celery import shared_task
from django.utils import timezone

from .config_store import current_salary_period, get_config
from .models import ActiveSession, Staff, StaffTransaction

logger = logging.getLogger(__name__)


@shared_task(name='education.purge_stale_sessions')
def purge_stale_sessions():
    deleted, _ = ActiveSession.objects.stale().delete()
    if deleted:
        logger.info(f"Purged {deleted} inactive sessions")
    return deleted


@shared_task(name='education.salary_period_check')
def salary_period_check():
    """
    Log the start of a new salary period on the configured reset day.
    Paid/unpaid status itself is read from StaffTransaction rows.
    """
    today = timezone.localdate()
    reset_day = get_config('salary')['salaryResetDay']
    month, year = current_salary_period(today, reset_day)
    active_staff = Staff.objects.filter(status='active').count()
    paid = StaffTransaction.objects.filter(
        month=month, year=year, transaction_type='salary', staff__status='active'
    ).count()
    if today.day == reset_day:
        logger.info(f"Salary period {month:02d}/{year} started: {active_staff} active staff to be paid")
    return {'month': month, 'year': year, 'active_staff': active_staff, 'paid': paid, 'unpaid': active_staff - paid}
