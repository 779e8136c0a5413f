"""
Health parameter reading model.
"""
import logging
from datetime import datetime
from medrecord import db
from medrecord.utils.encryption import encrypt_phi, decrypt_phi

logger = logging.getLogger(__name__)

PARAMETER_TYPES = ['blood_pressure', 'heart_rate', 'blood_sugar', 'temperature', 'weight']


class HealthParameter(db.Model):
    """
    A single timestamped measurement for a patient.
    Never updated after creation; a newer reading of the same type supersedes it.
    Blood pressure values are stored as "systolic/diastolic", every other
    type as a plain number.
    """
    __tablename__ = 'health_parameters'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    parameter_type = db.Column(db.String(30), nullable=False)
    value = db.Column(db.String(50), nullable=False)
    unit = db.Column(db.String(20), nullable=False)
    recorded_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # Free-text notes may contain PHI
    _notes_encrypted = db.Column('notes', db.Text, nullable=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "parameter_type IN ('blood_pressure', 'heart_rate', 'blood_sugar', 'temperature', 'weight')",
            name='ck_health_parameters_type',
        ),
        db.Index('ix_health_parameters_patient_type_recorded',
                 'patient_id', 'parameter_type', 'recorded_at'),
    )

    @property
    def notes(self) -> str:
        return decrypt_phi(self._notes_encrypted) if self._notes_encrypted else None

    @notes.setter
    def notes(self, value: str):
        self._notes_encrypted = encrypt_phi(value) if value else None

    def to_dict(self):
        try:
            notes = self.notes
        except Exception:
            logger.error('Decryption error for health_parameter_id=%s', self.id, exc_info=True)
            notes = None
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'parameter_type': self.parameter_type,
            'value': self.value,
            'unit': self.unit,
            'notes': notes,
            'recorded_by': self.recorded_by,
            'recorded_at': self.recorded_at.isoformat() if self.recorded_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<HealthParameter {self.id}: {self.parameter_type}={self.value}>'
