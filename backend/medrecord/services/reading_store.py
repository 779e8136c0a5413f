"""
Storage capability consumed by HealthAnalytics.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError

from medrecord.models.health_parameter import HealthParameter, PARAMETER_TYPES
from medrecord.models.parameter_threshold import ParameterThreshold
from medrecord.utils.errors import StorageFailure

logger = logging.getLogger(__name__)


class ReadingStore:
    """Interface for reading a single patient's health parameters."""

    def fetch_readings(self, patient_id, parameter_type=None, since=None, until=None):
        """Readings ordered by recorded_at ascending, then id."""
        raise NotImplementedError

    def page_readings(self, patient_id, parameter_type=None, since=None, until=None,
                      limit=50, offset=0):
        """(total_count, readings) with readings newest first, sliced by limit/offset."""
        raise NotImplementedError

    def latest_readings(self, patient_id):
        """The newest reading of each parameter type; equal timestamps resolve to the highest id."""
        raise NotImplementedError

    def thresholds_for(self, patient_id):
        """Mapping of parameter_type to the patient's stored threshold."""
        raise NotImplementedError


class SQLReadingStore(ReadingStore):
    """ReadingStore backed by the SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    def _query(self, model):
        return self.session.query(model)

    def _readings_query(self, patient_id, parameter_type, since, until):
        query = self._query(HealthParameter).filter(HealthParameter.patient_id == patient_id)
        if parameter_type:
            query = query.filter(HealthParameter.parameter_type == parameter_type)
        if since is not None:
            query = query.filter(HealthParameter.recorded_at >= since)
        if until is not None:
            query = query.filter(HealthParameter.recorded_at <= until)
        return query

    def fetch_readings(self, patient_id, parameter_type=None, since=None, until=None):
        def load():
            query = self._readings_query(patient_id, parameter_type, since, until)
            return query.order_by(HealthParameter.recorded_at.asc(), HealthParameter.id.asc()).all()
        return self._run(load, 'fetch_readings', patient_id)

    def page_readings(self, patient_id, parameter_type=None, since=None, until=None,
                      limit=50, offset=0):
        def load():
            query = self._readings_query(patient_id, parameter_type, since, until)
            readings = (query
                        .order_by(HealthParameter.recorded_at.desc(), HealthParameter.id.desc())
                        .offset(offset)
                        .limit(limit)
                        .all())
            return query.count(), readings
        return self._run(load, 'page_readings', patient_id)

    def latest_readings(self, patient_id):
        def load():
            latest = []
            for ptype in PARAMETER_TYPES:
                reading = (self._query(HealthParameter)
                           .filter(HealthParameter.patient_id == patient_id,
                                   HealthParameter.parameter_type == ptype)
                           .order_by(HealthParameter.recorded_at.desc(), HealthParameter.id.desc())
                           .first())
                if reading is not None:
                    latest.append(reading)
            return latest
        return self._run(load, 'latest_readings', patient_id)

    def thresholds_for(self, patient_id):
        def load():
            return (self._query(ParameterThreshold)
                    .filter(ParameterThreshold.patient_id == patient_id)
                    .all())
        rows = self._run(load, 'thresholds_for', patient_id)
        return {t.parameter_type: t for t in rows}

    @staticmethod
    def _run(load, operation, patient_id):
        try:
            return load()
        except SQLAlchemyError:
            logger.error('Storage query %s failed for patient_id=%s', operation, patient_id, exc_info=True)
            raise StorageFailure()
