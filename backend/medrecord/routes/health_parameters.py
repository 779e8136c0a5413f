"""
Health parameter routes: readings, statistics, trends, alerts and thresholds.
"""
import logging
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import SQLAlchemyError

from medrecord import db
from medrecord.models import User, HealthParameter, ParameterThreshold
from medrecord.services.health_analytics import HealthAnalytics, Period
from medrecord.services.reading_store import SQLReadingStore
from medrecord.utils.auth import token_required, roles_required, resolve_patient_id
from medrecord.utils.audit_logger import audit_log, audit_phi_access
from medrecord.utils.validators import (
    validate_health_parameter, validate_threshold, parse_timestamp,
)

logger = logging.getLogger(__name__)

health_parameters_bp = Blueprint('health_parameters', __name__)

MAX_PAGE_SIZE = 200


def get_store():
    """Reading store bound to the current request's session."""
    return SQLReadingStore(db.session)


def get_analytics():
    return HealthAnalytics(get_store())


def _parse_date_arg(name, end_of_day=False):
    """Accept YYYY-MM-DD or a full ISO timestamp. Returns (value, error)."""
    raw = request.args.get(name)
    if not raw:
        return None, None
    try:
        parsed = datetime.strptime(raw, '%Y-%m-%d')
        if end_of_day:
            parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
        return parsed, None
    except ValueError:
        parsed = parse_timestamp(raw)
        if parsed is None:
            return None, f'Invalid {name} format. Use YYYY-MM-DD or ISO-8601'
        return parsed, None


@health_parameters_bp.route('', methods=['GET'])
@token_required
@audit_phi_access('READ', 'health_parameter')
def list_health_parameters():
    """Return a patient's readings, newest first, with optional filters."""
    patient_id = resolve_patient_id(request.args.get('patient_id'))
    parameter_type = request.args.get('type')

    start_date, error = _parse_date_arg('start_date')
    if error:
        return jsonify({'error': error}), 400
    end_date, error = _parse_date_arg('end_date', end_of_day=True)
    if error:
        return jsonify({'error': error}), 400

    limit = max(1, min(request.args.get('limit', 50, type=int), MAX_PAGE_SIZE))
    offset = max(request.args.get('offset', 0, type=int), 0)

    total_count, readings = get_store().page_readings(
        patient_id, parameter_type=parameter_type, since=start_date, until=end_date,
        limit=limit, offset=offset,
    )

    audit_log('READ', 'health_parameter', resource_id=str(patient_id),
              details={'count': len(readings), 'type': parameter_type})

    return jsonify({
        'health_parameters': [r.to_dict() for r in readings],
        'total_count': total_count,
    }), 200


@health_parameters_bp.route('', methods=['POST'])
@token_required
@roles_required('patient', 'doctor')
@audit_phi_access('CREATE', 'health_parameter')
def create_health_parameter():
    """Record a reading for the caller (patient) or a named patient (doctor)."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    errors = validate_health_parameter(data)
    if errors:
        return jsonify({'error': errors}), 400

    patient_id = resolve_patient_id(data.get('patient_id'))

    patient = db.session.get(User, patient_id)
    if not patient or not patient.is_patient:
        return jsonify({'error': 'Patient not found'}), 404

    reading = HealthParameter(
        patient_id=patient_id,
        parameter_type=data['parameter_type'],
        value=str(data['value']).strip(),
        unit=str(data['unit']).strip(),
        recorded_at=parse_timestamp(data['recorded_at']) if data.get('recorded_at') else datetime.utcnow(),
        recorded_by=g.user_id,
    )
    reading.notes = data.get('notes')

    try:
        db.session.add(reading)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error('Recording health parameter failed for patient_id=%s', patient_id, exc_info=True)
        return jsonify({'error': 'Error recording health parameter'}), 500

    audit_log('CREATE', 'health_parameter', resource_id=str(reading.id),
              details={'patient_id': patient_id, 'parameter_type': reading.parameter_type})

    return jsonify({
        'message': 'Health parameter recorded successfully',
        'record': reading.to_dict(),
    }), 201


@health_parameters_bp.route('/stats', methods=['GET'])
@token_required
@audit_phi_access('READ', 'health_parameter_stats')
def get_stats():
    """Per-type count/average/min/max over the requested period (default month)."""
    patient_id = resolve_patient_id(request.args.get('patient_id'))
    period = Period.parse(request.args.get('period'))

    stats = get_analytics().statistics(
        patient_id, parameter_type=request.args.get('type'), period=period
    )

    audit_log('READ', 'health_parameter_stats', resource_id=str(patient_id),
              details={'period': period.value, 'types': len(stats)})

    return jsonify(stats), 200


@health_parameters_bp.route('/trends', methods=['GET'])
@token_required
@audit_phi_access('READ', 'health_parameter_trends')
def get_trends():
    """Bucketed trend series for one parameter type plus a direction summary."""
    patient_id = resolve_patient_id(request.args.get('patient_id'))
    period = Period.parse(request.args.get('period'))

    result = get_analytics().trends(patient_id, request.args.get('type'), period=period)

    audit_log('READ', 'health_parameter_trends', resource_id=str(patient_id),
              details={'period': period.value, 'type': result['parameter_type'],
                       'direction': result['analysis']['direction']})

    return jsonify(result), 200


@health_parameters_bp.route('/alerts', methods=['GET'])
@token_required
@audit_phi_access('READ', 'health_parameter_alerts')
def get_alerts():
    """Latest reading of each type that falls outside its normal range."""
    patient_id = resolve_patient_id(request.args.get('patient_id'))

    result = get_analytics().alerts(patient_id)

    audit_log('READ', 'health_parameter_alerts', resource_id=str(patient_id),
              details={'total_alerts': result['total_alerts']})

    return jsonify(result), 200


@health_parameters_bp.route('/thresholds', methods=['POST'])
@token_required
@roles_required('patient')
@audit_phi_access('UPDATE', 'parameter_threshold')
def set_threshold():
    """Create or replace the caller's threshold for one parameter type."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Request body is required'}), 400

    errors = validate_threshold(data)
    if errors:
        return jsonify({'error': errors}), 400

    try:
        threshold = ParameterThreshold.upsert(
            g.user_id, data['parameter_type'], data['min_value'], data['max_value']
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error('Setting threshold failed for patient_id=%s', g.user_id, exc_info=True)
        return jsonify({'error': 'Error setting thresholds'}), 500

    audit_log('UPDATE', 'parameter_threshold', resource_id=str(threshold.id),
              details={'parameter_type': threshold.parameter_type})

    return jsonify({
        'message': 'Thresholds updated successfully',
        'thresholds': {
            'parameter_type': threshold.parameter_type,
            'min_value': threshold.min_value,
            'max_value': threshold.max_value,
        },
    }), 200


@health_parameters_bp.route('/thresholds', methods=['GET'])
@token_required
@audit_phi_access('READ', 'parameter_threshold')
def list_thresholds():
    """Thresholds stored for a patient."""
    patient_id = resolve_patient_id(request.args.get('patient_id'))

    thresholds = get_store().thresholds_for(patient_id)

    audit_log('READ', 'parameter_threshold', resource_id=str(patient_id),
              details={'count': len(thresholds)})

    return jsonify({
        'thresholds': [thresholds[k].to_dict() for k in sorted(thresholds)],
    }), 200
