"""
Audit logging for PHI access.
Logs every read and write of health data with timestamp, user, action, and resource.
"""
import os
import logging
import structlog
from datetime import datetime, timezone
from flask import request, g, has_request_context
from functools import wraps

from medrecord.utils.errors import ApiError


def setup_audit_logging(app):
    """Configure structured JSON audit logging."""

    log_file = os.getenv('AUDIT_LOG_FILE', 'logs/audit.log')
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    audit_logger = logging.getLogger('audit')
    audit_logger.setLevel(logging.INFO)

    # Avoid stacking handlers when the factory runs more than once (tests)
    target = os.path.abspath(log_file)
    if not any(getattr(h, 'baseFilename', None) == target for h in audit_logger.handlers):
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        audit_logger.addHandler(file_handler)

    app.config['AUDIT_LOGGER'] = structlog.get_logger('audit')


def get_audit_logger():
    from flask import current_app
    return current_app.config.get('AUDIT_LOGGER', structlog.get_logger('audit'))


def audit_log(action: str, resource_type: str, resource_id: str = None,
              details: dict = None, user_id: str = None):
    """
    Log an audit event.

    Args:
        action: The action performed (CREATE, READ, UPDATE)
        resource_type: Type of resource accessed (health_parameter, parameter_threshold, ...)
        resource_id: ID of the specific resource (optional)
        details: Additional details about the action (optional)
        user_id: ID of the acting user (optional, uses g.user_id if not provided)
    """
    logger = get_audit_logger()

    if user_id is None:
        user_id = getattr(g, 'user_id', 'anonymous')

    if has_request_context():
        client_ip = request.remote_addr or 'unknown'
        user_agent = request.headers.get('User-Agent', 'unknown')
    else:
        client_ip = 'unknown'
        user_agent = 'unknown'

    log_entry = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'action': action,
        'resource_type': resource_type,
        'resource_id': resource_id,
        'user_id': user_id,
        'client_ip': client_ip,
        'user_agent': user_agent,
        'details': details or {}
    }

    logger.info("audit_event", **log_entry)



def _requested_patient_id():
    requested = request.args.get('patient_id')
    if requested is None and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            requested = body.get('patient_id')
    return str(requested) if requested is not None else None


def audit_phi_access(action: str, resource_type: str):
    """
    Decorator that records PHI access attempts that end in an API error.

    Successful accesses are logged by the route itself with their result
    details; this covers the requests that never reach that call.
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ApiError as error:
                audit_log(action, resource_type, resource_id=_requested_patient_id(),
                          details={'outcome': 'failed', 'code': error.code,
                                   'status': error.status_code})
                raise
        return wrapper
    return decorator
