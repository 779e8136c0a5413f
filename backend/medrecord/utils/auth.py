"""
Authorization utilities: bearer token verification and role checks.

Tokens are issued by the identity service and signed with JWT_SECRET_KEY.
"""
import os
import jwt
from functools import wraps
from flask import request, jsonify, g

from medrecord.utils.errors import MissingPatientIdentifier


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Returns None when invalid or expired."""
    secret = os.getenv('JWT_SECRET_KEY')
    if not secret:
        raise RuntimeError('JWT_SECRET_KEY environment variable is required')
    try:
        return jwt.decode(token, secret, algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def token_required(f):
    """Decorator to require a valid JWT token for a route.

    The caller's role is read from the user record, not from the token,
    so role changes and deactivations take effect immediately.
    """
    @wraps(f)
    def wrapper(*args, **kwargs):
        auth_header = request.headers.get('Authorization')
        if not auth_header:
            return jsonify({'error': 'Missing authorization header'}), 401

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != 'bearer':
            return jsonify({'error': 'Invalid authorization header format'}), 401

        payload = decode_token(parts[1])
        if not payload or payload.get('user_id') is None:
            return jsonify({'error': 'Invalid or expired token'}), 401

        from medrecord import db
        from medrecord.models.user import User
        user = db.session.get(User, payload['user_id'])
        if not user or not user.is_active:
            return jsonify({'error': 'Account is deactivated'}), 401

        g.user_id = user.id
        g.user_role = user.role

        return f(*args, **kwargs)
    return wrapper


def roles_required(*roles):
    """Decorator that restricts a route to the given roles. Use after token_required."""
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if getattr(g, 'user_role', None) not in roles:
                return jsonify({'error': 'Access denied for this role'}), 403
            return f(*args, **kwargs)
        return wrapper
    return decorator


def resolve_patient_id(requested=None) -> int:
    """Return the patient whose data the caller may access.

    Patients always get themselves; any requested ID is ignored. Other roles
    must name the patient explicitly.
    """
    if g.user_role == 'patient':
        return g.user_id

    if requested is None or requested == '':
        raise MissingPatientIdentifier()
    try:
        return int(requested)
    except (ValueError, TypeError):
        raise MissingPatientIdentifier('Patient ID must be an integer')
