"""
User model with encrypted PHI fields.
"""
import logging
from datetime import datetime
from medrecord import db
from medrecord.utils.encryption import encrypt_phi, decrypt_phi, hash_email

logger = logging.getLogger(__name__)

ROLE_CHOICES = ['patient', 'doctor', 'admin', 'biologist']


class User(db.Model):
    """
    Account record for every role. Name and email are encrypted at rest;
    credentials live with the identity service, not here.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)

    # Encrypted PHI fields (stored as encrypted base64 strings)
    _email_encrypted = db.Column('email', db.Text, nullable=False)
    _email_hash = db.Column('email_hash', db.String(64), nullable=False, unique=True, index=True)
    _first_name_encrypted = db.Column('first_name', db.Text, nullable=False)
    _last_name_encrypted = db.Column('last_name', db.Text, nullable=False)

    role = db.Column(db.String(20), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('patient', 'doctor', 'admin', 'biologist')",
            name='ck_users_role',
        ),
    )

    @property
    def email(self) -> str:
        return decrypt_phi(self._email_encrypted) if self._email_encrypted else None

    @email.setter
    def email(self, value: str):
        self._email_encrypted = encrypt_phi(value) if value else None
        self._email_hash = hash_email(value) if value else None

    @property
    def first_name(self) -> str:
        return decrypt_phi(self._first_name_encrypted) if self._first_name_encrypted else None

    @first_name.setter
    def first_name(self, value: str):
        self._first_name_encrypted = encrypt_phi(value) if value else None

    @property
    def last_name(self) -> str:
        return decrypt_phi(self._last_name_encrypted) if self._last_name_encrypted else None

    @last_name.setter
    def last_name(self, value: str):
        self._last_name_encrypted = encrypt_phi(value) if value else None

    @property
    def is_patient(self):
        return self.role == 'patient'

    def to_dict(self, include_phi=False):
        data = {
            'id': self.id,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_phi:
            for key in ('email', 'first_name', 'last_name'):
                try:
                    data[key] = getattr(self, key)
                except Exception:
                    logger.error(
                        'Decryption error for user_id=%s field=%s', self.id, key,
                        exc_info=True,
                    )
                    data[key] = None
        return data

    @staticmethod
    def find_by_email(email: str):
        """Find a user by email using deterministic HMAC hash for lookup."""
        return User.query.filter_by(_email_hash=hash_email(email)).first()

    def __repr__(self):
        return f'<User {self.id} {self.role}>'
