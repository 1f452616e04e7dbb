"""
Management command to seed a fresh installation: an administrator, sample
classes and the common fee types.
"""
from datetime import date
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import ClassFeeStructure, FeeType
from education.config_store import get_config, update_config
from education.models import CustomUser, SchoolClass, Staff
from education.permissions import permissions_for_role

CLASS_NAMES = ['Class 1', 'Class 2', 'Class 3', 'Class 4', 'Class 5']

FEE_TYPES = [
    ('Tuition Fee', 'monthly', Decimal('5000.00'), 'Monthly tuition'),
    ('Transport Fee', 'monthly', Decimal('2000.00'), 'School bus'),
    ('Annual Fee', 'yearly', Decimal('10000.00'), 'Annual charges'),
    ('Admission Fee', 'one_time', Decimal('15000.00'), 'Charged once at admission'),
]


class Command(BaseCommand):
    help = 'Create the admin user, sample classes, fee types and class fee structures'

    def add_arguments(self, parser):
        parser.add_argument('--username', default='admin')
        parser.add_argument('--password', default='admin123')

    @transaction.atomic
    def handle(self, *args, **options):
        staff, created = Staff.objects.get_or_create(
            name='System Administrator',
            defaults={'role': 'staff', 'join_date': date.today(), 'salary': Decimal('0.00')},
        )
        if created:
            self.stdout.write(f"Created staff member {staff.name}")

        if not CustomUser.objects.filter(username=options['username']).exists():
            admin = CustomUser(
                username=options['username'],
                alias='Administrator',
                role='admin',
                staff=staff,
                permissions=permissions_for_role('admin'),
            )
            admin.set_password(options['password'])
            admin.save()
            self.stdout.write(self.style.SUCCESS(f"Created admin user '{admin.username}'"))
        else:
            self.stdout.write(f"User '{options['username']}' already exists")

        classes = []
        for name in CLASS_NAMES:
            school_class, created = SchoolClass.objects.get_or_create(class_name=name)
            classes.append(school_class)
            if created:
                self.stdout.write(f"Created {name}")

        fee_types = []
        for name, frequency, amount, description in FEE_TYPES:
            fee_type, _ = FeeType.objects.get_or_create(
                name=name,
                defaults={'frequency': frequency, 'default_amount': amount, 'description': description},
            )
            fee_types.append(fee_type)

        structures = 0
        for school_class in classes:
            for fee_type in fee_types:
                _, created = ClassFeeStructure.objects.get_or_create(
                    school_class=school_class, fee_type=fee_type,
                    defaults={'amount': fee_type.default_amount},
                )
                structures += int(created)

        # Each class moves to the next one; the last class graduates
        progression = get_config('year_progression')['progressionMap']
        if not progression:
            names = [c.class_name for c in classes]
            update_config('year_progression', {
                'progressionMap': {name: nxt for name, nxt in zip(names, names[1:] + [None])},
            })

        self.stdout.write(self.style.SUCCESS(
            f"Seeded {len(classes)} classes, {len(fee_types)} fee types and {structures} new class fee structures"
        ))
