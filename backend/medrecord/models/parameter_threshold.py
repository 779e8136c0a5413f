"""
Patient-specific normal range for a health parameter.
"""
from datetime import datetime
from medrecord import db


class ParameterThreshold(db.Model):
    """At most one row per (patient, parameter_type); writes replace the existing row."""
    __tablename__ = 'parameter_thresholds'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    parameter_type = db.Column(db.String(30), nullable=False)
    min_value = db.Column(db.Float, nullable=False)
    max_value = db.Column(db.Float, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('patient_id', 'parameter_type', name='uq_parameter_thresholds_patient_type'),
    )

    @staticmethod
    def upsert(patient_id, parameter_type, min_value, max_value):
        """Insert or replace the threshold. Caller commits."""
        threshold = ParameterThreshold.query.filter_by(
            patient_id=patient_id, parameter_type=parameter_type
        ).first()
        if threshold is None:
            threshold = ParameterThreshold(patient_id=patient_id, parameter_type=parameter_type)
            db.session.add(threshold)
        threshold.min_value = float(min_value)
        threshold.max_value = float(max_value)
        threshold.updated_at = datetime.utcnow()
        return threshold

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'parameter_type': self.parameter_type,
            'min_value': self.min_value,
            'max_value': self.max_value,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<ParameterThreshold {self.patient_id}:{self.parameter_type} [{self.min_value}, {self.max_value}]>'
