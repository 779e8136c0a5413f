from .encryption import encrypt_phi, decrypt_phi, hash_email
from .audit_logger import audit_log
from .auth import token_required, roles_required, resolve_patient_id
from .errors import ApiError
