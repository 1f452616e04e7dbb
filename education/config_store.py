"""
Editable configuration documents kept in SystemConfiguration.

Stored values are partial: reads always deep-merge them over DEFAULTS, so a
newly added default key shows up without a data migration.
"""
import copy
import logging
from datetime import date

from django.core.exceptions import ValidationError

from .models import SystemConfiguration

logger = logging.getLogger(__name__)

FEE_CONFIG_DEFAULTS = {
    'academicYear': {
        'startMonth': 4,  # April
        'endMonth': 3,    # March of the following year
    },
    'autoGeneration': {
        'enabled': True,
        'dayOfMonth': 1,
        'hour': 0,
        'minute': 0,
    },
    'frequencies': {
        'monthly': {'label': 'Monthly', 'periodsPerYear': 12, 'dueDayOfMonth': 5},
        'quarterly': {'label': 'Quarterly', 'periodsPerYear': 4, 'dueDayOfMonth': 5, 'dueMonths': [4, 7, 10, 1]},
        'biannual': {'label': 'Bi-Annual', 'periodsPerYear': 2, 'dueDayOfMonth': 5, 'dueMonths': [4, 10]},
        'yearly': {'label': 'Yearly', 'periodsPerYear': 1, 'dueDayOfMonth': 5, 'dueMonths': [4]},
        'one_time': {'label': 'One Time', 'periodsPerYear': 1, 'dueDayOfMonth': 5, 'dueMonths': [4]},
    },
    'gracePeriod': {
        'days': 10,
    },
    'defaultFeeTypes': [
        {'name': 'Tuition Fee', 'isCore': True},
        {'name': 'Transport Fee', 'isCore': False},
        {'name': 'Library Fee', 'isCore': False},
        {'name': 'Sports Fee', 'isCore': False},
        {'name': 'Exam Fee', 'isCore': False},
    ],
}

SALARY_CONFIG_DEFAULTS = {
    # Day of month from which the current month's salary counts as due
    'salaryResetDay': 1,
}

YEAR_PROGRESSION_DEFAULTS = {
    # class name -> next class name, or None for the final class
    'progressionMap': {},
}

DEFAULTS = {
    'fees': FEE_CONFIG_DEFAULTS,
    'salary': SALARY_CONFIG_DEFAULTS,
    'year_progression': YEAR_PROGRESSION_DEFAULTS,
}


def deep_merge(target, source):
    """Recursively merge ``source`` into a copy of ``target``; lists are replaced"""
    result = copy.deepcopy(target)
    for key, value in (source or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _check_int(value, name, low, high=None):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be a whole number")
    if value < low or (high is not None and value > high):
        if high is None:
            raise ValidationError(f"{name} must be at least {low}")
        raise ValidationError(f"{name} must be between {low} and {high}")


def _check_section(value, name):
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object")
    return value


def validate_fee_config(config):
    for field in ('academicYear', 'autoGeneration', 'frequencies'):
        if not config.get(field):
            raise ValidationError(f"Missing required config field: {field}")
        _check_section(config[field], field)

    _check_int(config['academicYear'].get('startMonth'), 'academicYear.startMonth', 1, 12)

    schedule = config['autoGeneration']
    _check_int(schedule.get('dayOfMonth'), 'dayOfMonth', 1, 31)
    _check_int(schedule.get('hour'), 'hour', 0, 23)
    _check_int(schedule.get('minute', 0), 'minute', 0, 59)

    for name, freq in config['frequencies'].items():
        _check_section(freq, f"frequencies.{name}")
        _check_int(freq.get('periodsPerYear'), f"{name}.periodsPerYear", 1, 12)
        _check_int(freq.get('dueDayOfMonth', 5), f"{name}.dueDayOfMonth", 1, 31)
        due_months = freq.get('dueMonths')
        if due_months is not None:
            if not isinstance(due_months, list) or not due_months:
                raise ValidationError(f"{name}.dueMonths must be a non-empty list")
            for month in due_months:
                _check_int(month, f"{name}.dueMonths", 1, 12)

    grace = _check_section(config.get('gracePeriod', {}), 'gracePeriod')
    _check_int(grace.get('days', 0), 'gracePeriod.days', 0)
    return True


def validate_salary_config(config):
    _check_int(config.get('salaryResetDay'), 'salaryResetDay', 1, 31)
    return True


def validate_year_progression(config):
    progression = config.get('progressionMap')
    if not isinstance(progression, dict):
        raise ValidationError("progressionMap must be an object of class name -> next class name")
    for current, nxt in progression.items():
        if nxt is not None and not isinstance(nxt, str):
            raise ValidationError(f"Next class for {current} must be a class name or null")
        if nxt == current:
            raise ValidationError(f"{current} cannot progress to itself")
    return True


VALIDATORS = {
    'fees': validate_fee_config,
    'salary': validate_salary_config,
    'year_progression': validate_year_progression,
}


def get_config(key):
    """Defaults merged with whatever has been stored for ``key``"""
    if key not in DEFAULTS:
        raise KeyError(key)
    stored = SystemConfiguration.objects.filter(key=key).values_list('value', flat=True).first()
    return deep_merge(DEFAULTS[key], stored or {})


def update_config(key, updates, user=None, merge=True):
    """
    Validate and persist a configuration document.

    With ``merge`` the updates are deep-merged over the current document,
    otherwise they replace it (still on top of the defaults).
    """
    if key not in DEFAULTS:
        raise KeyError(key)
    if not isinstance(updates, dict):
        raise ValidationError("Configuration must be a JSON object")

    base = get_config(key) if merge else DEFAULTS[key]
    new_config = deep_merge(base, updates)
    if key == 'year_progression' and 'progressionMap' in updates:
        progression = updates['progressionMap']
        if progression is not None and not isinstance(progression, dict):
            raise ValidationError("progressionMap must be an object of class name -> next class name")
        # Removing a class from the map must actually remove it
        new_config['progressionMap'] = dict(progression or {})
    VALIDATORS[key](new_config)

    SystemConfiguration.objects.update_or_create(
        key=key,
        defaults={'value': new_config, 'updated_by': user},
    )
    logger.info(f"Configuration '{key}' updated by {getattr(user, 'username', 'system')}")
    return new_config


def get_fee_config():
    return get_config('fees')


def current_salary_period(today=None, reset_day=None):
    """
    (month, year) whose salary is currently due: this month once the reset
    day has been reached, otherwise last month.
    """
    today = today or date.today()
    if reset_day is None:
        reset_day = get_config('salary')['salaryResetDay']
    if today.day >= reset_day:
        return today.month, today.year
    if today.month == 1:
        return 12, today.year - 1
    return today.month - 1, today.year
