"""
Input validation for accounts, health parameter readings, and thresholds.
"""
import math
from datetime import datetime, timezone
from email_validator import validate_email, EmailNotValidError

from medrecord.models.health_parameter import PARAMETER_TYPES
from medrecord.models.user import ROLE_CHOICES
from medrecord.services.health_analytics import parse_blood_pressure, parse_numeric_value
from medrecord.utils.errors import MalformedReadingValue


def parse_timestamp(value):
    """Parse an ISO-8601 timestamp into a naive UTC datetime. Returns None if invalid."""
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def validate_user(data: dict) -> list:
    """Validate account fields. Returns list of error strings (empty = valid)."""
    errors = []

    email = (data.get('email') or '').strip()
    if not email:
        errors.append('Email is required')
    else:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            errors.append('Invalid email format')

    if data.get('role') not in ROLE_CHOICES:
        errors.append(f"Role must be one of: {', '.join(ROLE_CHOICES)}")

    for field, label in (('first_name', 'First name'), ('last_name', 'Last name')):
        value = (data.get(field) or '').strip()
        if not value:
            errors.append(f'{label} is required')
        elif len(value) > 100:
            errors.append(f'{label} must be 100 characters or fewer')

    return errors


def validate_health_parameter(data: dict) -> list:
    """Validate a new reading. Returns list of error strings."""
    errors = []

    patient_id = data.get('patient_id')
    if patient_id is not None:
        try:
            int(patient_id)
        except (ValueError, TypeError):
            errors.append('Patient ID must be an integer')

    parameter_type = data.get('parameter_type')
    if parameter_type not in PARAMETER_TYPES:
        errors.append(f"Parameter type must be one of: {', '.join(PARAMETER_TYPES)}")

    value = data.get('value')
    if value is None or str(value).strip() == '':
        errors.append('Value is required')
    elif len(str(value).strip()) > 50:
        errors.append('Value must be 50 characters or fewer')
    elif parameter_type in PARAMETER_TYPES:
        errors.extend(_validate_value(parameter_type, value))

    unit = data.get('unit')
    if unit is None or str(unit).strip() == '':
        errors.append('Unit is required')
    elif len(str(unit)) > 20:
        errors.append('Unit must be 20 characters or fewer')

    notes = data.get('notes')
    if notes is not None:
        if not isinstance(notes, str):
            errors.append('Notes must be a string')
        elif len(notes) > 2000:
            errors.append('Notes must be 2000 characters or fewer')

    recorded_at = data.get('recorded_at')
    if recorded_at:
        parsed = parse_timestamp(recorded_at)
        if parsed is None:
            errors.append('Invalid recorded_at format')
        elif parsed > datetime.utcnow():
            errors.append('recorded_at cannot be in the future')

    return errors


def _validate_value(parameter_type, value) -> list:
    if parameter_type == 'blood_pressure':
        try:
            systolic, diastolic = parse_blood_pressure(value)
        except MalformedReadingValue:
            return ['Blood pressure must be formatted as systolic/diastolic, e.g. 120/80']
        errors = []
        if systolic < 60 or systolic > 300:
            errors.append('Systolic must be between 60 and 300')
        if diastolic < 30 or diastolic > 200:
            errors.append('Diastolic must be between 30 and 200')
        return errors

    try:
        number = parse_numeric_value(parameter_type, value)
    except MalformedReadingValue:
        return ['Value must be a number']
    if number < 0:
        return ['Value cannot be negative']
    if parameter_type == 'heart_rate' and (number < 20 or number > 300):
        return ['Heart rate must be between 20 and 300']
    return []


def validate_threshold(data: dict) -> list:
    """Validate a threshold upsert. Returns list of error strings."""
    errors = []

    if data.get('parameter_type') not in PARAMETER_TYPES:
        errors.append(f"Parameter type must be one of: {', '.join(PARAMETER_TYPES)}")

    bounds = {}
    for field, label in (('min_value', 'Minimum value'), ('max_value', 'Maximum value')):
        raw = data.get(field)
        if raw is None or isinstance(raw, bool):
            errors.append(f'{label} is required and must be numeric')
            continue
        try:
            number = float(raw)
        except (ValueError, TypeError):
            errors.append(f'{label} must be numeric')
            continue
        if not math.isfinite(number):
            errors.append(f'{label} must be a finite number')
            continue
        bounds[field] = number

    if len(bounds) == 2 and bounds['min_value'] > bounds['max_value']:
        errors.append('Minimum value cannot exceed maximum value')

    return errors
