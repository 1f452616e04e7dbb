"""
Scheduled fee jobs, run by celery beat (see arohan/celery_app.py).
"""
import calendar
import logging

from celery import shared_task
from django.utils import timezone

from education.config_store import get_fee_config
from .services import FeeRecordService

logger = logging.getLogger(__name__)


def is_generation_due(schedule, now):
    """
    True when ``now`` falls in the configured generation hour. A day of
    month past the end of a short month runs on its last day.
    """
    if not schedule.get('enabled'):
        return False
    last_day = calendar.monthrange(now.year, now.month)[1]
    day = min(schedule.get('dayOfMonth', 1), last_day)
    return now.day == day and now.hour == schedule.get('hour', 0)


@shared_task(name='fees.run_schedule')
def run_fee_schedule():
    now = timezone.localtime()
    schedule = get_fee_config()['autoGeneration']
    if not is_generation_due(schedule, now):
        return {'ran': False}

    logger.info(f"Automatic fee generation started at {now:%Y-%m-%d %H:%M}")
    generated = FeeRecordService.auto_generate(today=now.date())
    recalculated = FeeRecordService.recalculate_overdue(today=now.date())
    return {'ran': True, 'generated': generated, 'recalculated': recalculated}


@shared_task(name='fees.recalculate_overdue')
def recalculate_overdue_fees():
    return FeeRecordService.recalculate_overdue()
