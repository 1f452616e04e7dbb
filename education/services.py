"""
Year-end promotion of students to their next class.
"""
import logging

from django.db import transaction
from django.utils import timezone

from .config_store import get_config
from .models import SchoolClass, Student
from .utils.google_sheets import export_outstanding_fees, sheets_enabled

logger = logging.getLogger(__name__)


class PromotionService:

    @staticmethod
    def build_promotion_map(classes, progression_map):
        """
        class id -> next SchoolClass from the configured progression map.

        Classes mapped to None, missing from the map, or mapped to a class
        name that does not exist are absent from the result; their
        students graduate.
        """
        by_name = {cls.class_name: cls for cls in classes}
        promotion_map = {}
        for cls in classes:
            next_name = progression_map.get(cls.class_name)
            if next_name is None:
                continue
            next_class = by_name.get(next_name)
            if next_class is None:
                logger.warning(f"Next class '{next_name}' not found for '{cls.class_name}'; its students will graduate")
                continue
            promotion_map[cls.pk] = next_class
        return promotion_map

    @staticmethod
    def outstanding_report(students, now=None):
        """One export row per student with their open fee records"""
        from accounts.models import StudentFeeRecord
        from accounts.services import OPEN_STATUSES

        now = timezone.localtime(now)
        outstanding = {}
        for record in StudentFeeRecord.objects.filter(
            student__in=students, status__in=OPEN_STATUSES
        ).select_related('fee_type'):
            outstanding.setdefault(record.student_id, []).append(record)

        rows = []
        for student in students:
            records = outstanding.get(student.pk, [])
            total = sum((r.remaining_amount() for r in records), 0)
            details = '; '.join(
                f"{r.fee_type.name}: ₹{r.remaining_amount()} ({r.month})" for r in records
            )
            rows.append({
                'Student Name': student.name,
                'Admission No': student.admission_no,
                'Current Class': student.school_class.class_name if student.school_class_id else 'No Class',
                'Guardian Name': student.guardian_name,
                'Contact Number': student.guardian_contact,
                'Address': student.address,
                'Total Outstanding Fees': float(total),
                'Outstanding Fee Details': details or 'No Outstanding Fees',
                'Export Date': now.strftime('%d/%m/%Y'),
                'Export Time': now.strftime('%H:%M:%S'),
            })
        return rows

    @staticmethod
    def promote_year(academic_year=None, today=None):
        """
        Export outstanding fees, then move every active student up one
        class (billing the new class) or mark them passed.

        The class moves and new fee records commit together; the Sheets
        export happens before and never blocks the promotion.
        """
        from accounts.fee_calculator import FeeCalculator
        from accounts.services import FeeRecordService

        today = today or timezone.localdate()
        calculator = FeeCalculator()
        academic_year = academic_year or calculator.current_academic_year(today)
        calculator.academic_year_bounds(academic_year)

        export_enabled = sheets_enabled()
        students = list(Student.objects.filter(status='active').select_related('school_class'))
        logger.info(f"Year promotion started for {len(students)} active students")

        if not students:
            return {
                'message': 'No active students found for promotion',
                'promoted_students': 0,
                'graduated_students': 0,
                'outstanding_fees_exported': 0,
                'sheets_exported': False,
                'sheets_export_enabled': export_enabled,
            }

        report = PromotionService.outstanding_report(students)
        sheets_exported = export_outstanding_fees(report) if export_enabled else False

        progression = get_config('year_progression').get('progressionMap', {})
        promotion_map = PromotionService.build_promotion_map(list(SchoolClass.objects.all()), progression)

        promoted = []
        graduated = 0
        with transaction.atomic():
            for student in students:
                next_class = promotion_map.get(student.school_class_id)
                if next_class is not None:
                    student.school_class = next_class
                    student.save(update_fields=['school_class', 'updated_at'])
                    promoted.append(student)
                else:
                    student.status = 'passed'
                    student.save(update_fields=['status', 'updated_at'])
                    graduated += 1

            fee_result = FeeRecordService.generate_for_students(promoted, academic_year=academic_year, today=today)

        logger.info(
            f"Year promotion completed: {len(promoted)} promoted, {graduated} graduated, "
            f"{fee_result['created']} fee records created for {academic_year}"
        )
        return {
            'message': 'Year promotion completed successfully',
            'academic_year': academic_year,
            'promoted_students': len(promoted),
            'graduated_students': graduated,
            'fee_records_created': fee_result['created'],
            'outstanding_fees_exported': len(report),
            'sheets_exported': sheets_exported,
            'sheets_export_enabled': export_enabled,
        }
