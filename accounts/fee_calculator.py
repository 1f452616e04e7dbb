"""
Fee arithmetic: academic years, due-date schedules, periods covered and
record status. Everything is driven by the fee configuration document.
"""
import calendar
from datetime import date, timedelta
from decimal import Decimal

from django.utils import timezone

from education.config_store import get_fee_config


def payment_ratio(periods_paid, total_periods):
    return f"{periods_paid}/{total_periods}"


class FeeCalculator:
    def __init__(self, fee_config=None):
        self.config = fee_config or get_fee_config()

    @property
    def start_month(self):
        return self.config['academicYear']['startMonth']

    @property
    def grace_days(self):
        return self.config.get('gracePeriod', {}).get('days', 0)

    def frequency_config(self, frequency):
        frequencies = self.config['frequencies']
        if frequency not in frequencies:
            raise ValueError(f"Unknown fee frequency: {frequency}")
        return frequencies[frequency]

    def periods_per_year(self, frequency):
        return self.frequency_config(frequency)['periodsPerYear']

    def academic_year_for(self, year, month):
        """Label of the academic year a calendar month falls in"""
        if month >= self.start_month:
            return f"{year}-{year + 1}"
        return f"{year - 1}-{year}"

    def current_academic_year(self, today=None):
        today = today or timezone.localdate()
        return self.academic_year_for(today.year, today.month)

    @staticmethod
    def academic_year_bounds(academic_year):
        try:
            start, end = (int(part) for part in academic_year.split('-'))
        except (AttributeError, ValueError):
            raise ValueError(f"Academic year must look like 2024-2025, got {academic_year!r}")
        if end != start + 1:
            raise ValueError(f"Academic year must span consecutive years, got {academic_year!r}")
        return start, end

    def next_academic_year(self, academic_year):
        start, end = self.academic_year_bounds(academic_year)
        return f"{end}-{end + 1}"

    def _due_months(self, frequency):
        freq = self.frequency_config(frequency)
        periods = freq['periodsPerYear']
        if freq.get('dueMonths'):
            return list(freq['dueMonths'])[:periods]
        step = max(1, 12 // periods)
        return [(self.start_month - 1 + i * step) % 12 + 1 for i in range(periods)]

    def due_schedule(self, frequency, academic_year):
        """Ordered due dates of every period in the academic year"""
        start_year, end_year = self.academic_year_bounds(academic_year)
        due_day = self.frequency_config(frequency).get('dueDayOfMonth', 5)
        schedule = []
        for month in self._due_months(frequency):
            year = start_year if month >= self.start_month else end_year
            day = min(due_day, calendar.monthrange(year, month)[1])
            schedule.append(date(year, month, day))
        return sorted(schedule)

    def first_due_date(self, frequency, academic_year):
        return self.due_schedule(frequency, academic_year)[0]

    def next_due_date(self, frequency, academic_year, periods_paid=0):
        """Due date of the first uncovered period, None once the year is covered"""
        schedule = self.due_schedule(frequency, academic_year)
        if periods_paid >= len(schedule):
            return None
        return schedule[periods_paid]

    @staticmethod
    def periods_covered(amount_due, covered, total_periods):
        amount_due = Decimal(amount_due)
        if amount_due <= 0:
            return total_periods
        return min(total_periods, int(Decimal(covered) // amount_due))

    def is_overdue(self, next_due, today=None):
        if next_due is None:
            return False
        today = today or timezone.localdate()
        return today > next_due + timedelta(days=self.grace_days)

    def resolve_status(self, yearly_amount, covered, next_due, today=None):
        if covered >= yearly_amount:
            return 'paid'
        if self.is_overdue(next_due, today):
            return 'overdue'
        if covered > 0:
            return 'partial'
        return 'unpaid'

    payment_ratio = staticmethod(payment_ratio)
