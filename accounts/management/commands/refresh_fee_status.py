"""
Management command to recompute the status of open fee records
"""
from django.core.management.base import BaseCommand

from accounts.services import FeeRecordService


class Command(BaseCommand):
    help = 'Recalculate unpaid/partial/overdue status of every open fee record'

    def handle(self, *args, **options):
        result = FeeRecordService.recalculate_overdue()
        self.stdout.write(self.style.SUCCESS(
            f"Checked {result['checked']} open records: {result['overdue']} overdue, {result['changed']} changed"
        ))
