"""
Celery application for the Arohan school office.

Start a worker and the beat scheduler with:
    celery -A arohan worker -l info
    celery -A arohan beat -l info
"""
import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'arohan.settings')

app = Celery('arohan')

app.config_from_object('django.conf:settings', namespace='CELERY')

app.autodiscover_tasks()

# Fee generation checks the configured day/hour itself, so it only needs an hourly tick
app.conf.beat_schedule = {
    'fees-run-schedule': {
        'task': 'fees.run_schedule',
        'schedule': crontab(minute=0),
    },
    'fees-recalculate-overdue': {
        'task': 'fees.recalculate_overdue',
        'schedule': crontab(hour=1, minute=0),
    },
    'education-purge-stale-sessions': {
        'task': 'education.purge_stale_sessions',
        'schedule': crontab(minute=30),
    },
    'education-salary-period-check': {
        'task': 'education.salary_period_check',
        'schedule': crontab(hour=0, minute=5),
    },
}
