"""
Pytest configuration for the medrecord backend.
"""
import base64
import os
import tempfile
from datetime import datetime, timedelta

import jwt
import pytest

# Environment must be in place BEFORE importing any app modules
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret'
os.environ['PHI_ENCRYPTION_KEY'] = base64.b64encode(b'k' * 32).decode('ascii')
os.environ['AUDIT_LOG_FILE'] = os.path.join(tempfile.mkdtemp(), 'audit.log')
os.environ.pop('FLASK_ENV', None)

from medrecord import create_app, db  # noqa: E402
from medrecord.models import User, HealthParameter  # noqa: E402


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv('DATABASE_URL', f"sqlite:///{tmp_path / 'test.db'}")
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {'n': 0}

    def _make_user(role='patient', is_active=True):
        counter['n'] += 1
        user = User(role=role, is_active=is_active)
        user.email = f'{role}{counter["n"]}@clinic.test'
        user.first_name = role.title()
        user.last_name = f'Number{counter["n"]}'
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def add_reading(app):
    def _add_reading(patient, parameter_type, value, recorded_at=None, unit='unit', notes=None):
        reading = HealthParameter(
            patient_id=patient.id,
            parameter_type=parameter_type,
            value=value,
            unit=unit,
            recorded_at=recorded_at or datetime.utcnow(),
            recorded_by=patient.id,
        )
        reading.notes = notes
        db.session.add(reading)
        db.session.commit()
        return reading

    return _add_reading


def make_token(user_id, expires_in=3600):
    payload = {
        'user_id': user_id,
        'exp': datetime.utcnow() + timedelta(seconds=expires_in),
        'iat': datetime.utcnow(),
    }
    return jwt.encode(payload, os.environ['JWT_SECRET_KEY'], algorithm='HS256')


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {'Authorization': f'Bearer {make_token(user.id)}'}
    return _auth_headers
