"""
API error kinds rendered as {'error': description, 'code': category}.
"""


class ApiError(Exception):
    """Base class for errors reported to the caller."""
    status_code = 400
    code = 'bad_request'
    default_message = 'Bad request'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class MissingPatientIdentifier(ApiError):
    """Caller is not a patient and named no target patient."""
    status_code = 400
    code = 'missing_patient_id'
    default_message = 'Patient ID is required for non-patient users'


class MissingRequiredFilter(ApiError):
    status_code = 400
    code = 'missing_required_filter'
    default_message = 'A required filter is missing'


class StorageFailure(ApiError):
    """Underlying query failed. Never retried."""
    status_code = 500
    code = 'storage_failure'
    default_message = 'Database error'


class MalformedReadingValue(ApiError):
    status_code = 422
    code = 'malformed_reading_value'
    default_message = 'Reading value could not be parsed'
