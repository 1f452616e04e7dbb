"""
Management command to generate student fee records for an academic year
"""
from django.core.management.base import BaseCommand, CommandError

from accounts.services import FeeRecordService


class Command(BaseCommand):
    help = 'Generate missing fee records from the class fee structures'

    def add_arguments(self, parser):
        parser.add_argument(
            '--year',
            type=int,
            help='Calendar year of the generation month (defaults to today)',
        )
        parser.add_argument(
            '--month',
            type=int,
            help='Generation month 1-12 (defaults to today)',
        )
        parser.add_argument(
            '--class-id',
            type=int,
            action='append',
            dest='class_ids',
            help='Limit generation to a class; may be given more than once',
        )

    def handle(self, *args, **options):
        month = options.get('month')
        if month is not None and not 1 <= month <= 12:
            raise CommandError('--month must be between 1 and 12')

        result = FeeRecordService.generate_for_classes(
            class_ids=options.get('class_ids'),
            year=options.get('year'),
            month=month,
        )
        self.stdout.write(self.style.SUCCESS(
            f"{result['academic_year']}: {result['created']} fee records created, "
            f"{result['skipped']} skipped for {result['students']} students"
        ))
