"""
Health metric analytics: window statistics, bucketed trends and threshold alerts.

All computation happens over readings returned by an injected ReadingStore,
so nothing here touches the database session directly.
"""
import logging
import math
from datetime import datetime
from enum import Enum

from dateutil.relativedelta import relativedelta

from medrecord.utils.errors import MalformedReadingValue, MissingRequiredFilter

logger = logging.getLogger(__name__)


class Period(Enum):
    DAY = 'day'
    WEEK = 'week'
    MONTH = 'month'
    YEAR = 'year'

    @classmethod
    def parse(cls, value):
        """Unknown or missing periods fall back to MONTH."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or '').strip().lower())
        except ValueError:
            return cls.MONTH

    @property
    def lookback(self) -> relativedelta:
        return _LOOKBACK[self]

    @property
    def bucket_format(self) -> str:
        return _BUCKET_FORMAT[self]

    def window_start(self, now: datetime) -> datetime:
        return now - self.lookback

    def bucket_key(self, recorded_at: datetime) -> str:
        return recorded_at.strftime(self.bucket_format)


_LOOKBACK = {
    Period.DAY: relativedelta(days=1),
    Period.WEEK: relativedelta(days=7),
    Period.MONTH: relativedelta(months=1),
    Period.YEAR: relativedelta(years=1),
}

# Hourly buckets carry the date so a 24h window spanning midnight sorts correctly
_BUCKET_FORMAT = {
    Period.DAY: '%Y-%m-%d %H:00',
    Period.WEEK: '%Y-%m-%d',
    Period.MONTH: '%Y-%m-%d',
    Period.YEAR: '%Y-%m',
}

# (low, high): below low is Low, above high is High
NORMAL_BANDS = {
    'blood_pressure': (90.0, 140.0),  # systolic
    'heart_rate': (60.0, 100.0),
    'blood_sugar': (70.0, 140.0),
}

TREND_CHANGE_LIMIT = 5.0

RECOMMENDATIONS = {
    'increasing': 'Consider monitoring more frequently',
    'decreasing': 'Consider monitoring more frequently',
    'stable': 'Continue current monitoring schedule',
    'insufficient_data': 'More data points needed for analysis',
}


def parse_blood_pressure(value):
    """Split a "systolic/diastolic" string into two ints."""
    text = str(value).strip() if value is not None else ''
    systolic, sep, diastolic = text.partition('/')
    if not sep:
        raise MalformedReadingValue(f'Blood pressure value {value!r} is missing the "/" separator')
    try:
        return int(systolic.strip()), int(diastolic.strip())
    except ValueError:
        raise MalformedReadingValue(f'Blood pressure value {value!r} is not numeric')


def parse_numeric_value(parameter_type, value) -> float:
    """Numeric view of a stored reading value.

    Blood pressure contributes its systolic component; every other type is
    parsed as a float.
    """
    if parameter_type == 'blood_pressure':
        return float(parse_blood_pressure(value)[0])
    try:
        number = float(str(value).strip())
    except (ValueError, TypeError):
        raise MalformedReadingValue(f'{parameter_type} value {value!r} is not numeric')
    if not math.isfinite(number):
        raise MalformedReadingValue(f'{parameter_type} value {value!r} is not finite')
    return number


def _numeric_or_none(reading):
    try:
        return parse_numeric_value(reading.parameter_type, reading.value)
    except MalformedReadingValue as exc:
        logger.warning('Skipping unparsable reading id=%s: %s', getattr(reading, 'id', None), exc.message)
        return None


def _aggregate(values):
    """average/minimum/maximum over parsed values; None when nothing parsed."""
    numbers = [v for v in values if v is not None]
    if not numbers:
        return None, None, None
    return sum(numbers) / len(numbers), min(numbers), max(numbers)


def analyze_trend(trends):
    """Classify a bucketed series by comparing its first and last bucket averages."""
    averages = [t['average_value'] for t in trends if t['average_value'] is not None]
    if len(averages) < 2:
        return _trend_result('insufficient_data', 0)

    first, last = averages[0], averages[-1]
    if first == 0:
        return _trend_result('insufficient_data', 0,
                             'Baseline average is zero; percentage change cannot be computed')

    change_percentage = round((last - first) / first * 100, 2)
    if change_percentage > TREND_CHANGE_LIMIT:
        direction = 'increasing'
    elif change_percentage < -TREND_CHANGE_LIMIT:
        direction = 'decreasing'
    else:
        direction = 'stable'
    return _trend_result(direction, change_percentage)


def _trend_result(direction, change_percentage, recommendation=None):
    return {
        'direction': direction,
        'change_percentage': change_percentage,
        'recommendation': recommendation or RECOMMENDATIONS[direction],
    }


def classify_reading(reading, threshold=None):
    """Return (status, band) for a reading.

    status is 'High', 'Low' or 'Normal'. band is None when the parameter
    type has no rule, otherwise a dict describing the range that was applied.
    A patient threshold takes precedence over the fixed band.
    """
    if threshold is not None:
        low, high = threshold.min_value, threshold.max_value
        source = 'patient'
    elif reading.parameter_type in NORMAL_BANDS:
        low, high = NORMAL_BANDS[reading.parameter_type]
        source = 'default'
    else:
        return 'Normal', None

    band = {'threshold_source': source, 'min_value': low, 'max_value': high}

    value = _numeric_or_none(reading)
    if value is None:
        return 'Normal', band
    if value > high:
        return 'High', band
    if value < low:
        return 'Low', band
    return 'Normal', band


class HealthAnalytics:
    """Read-only analytics over one patient's readings."""

    def __init__(self, store, now=None):
        self.store = store
        self._now = now or datetime.utcnow

    def statistics(self, patient_id, parameter_type=None, period=None):
        """count/average/minimum/maximum per parameter type within the period window."""
        period = Period.parse(period)
        since = period.window_start(self._now())
        readings = self.store.fetch_readings(patient_id, parameter_type=parameter_type, since=since)

        groups = {}
        for reading in readings:
            groups.setdefault(reading.parameter_type, []).append(reading)

        stats = []
        for ptype in sorted(groups):
            rows = groups[ptype]
            average, minimum, maximum = _aggregate(_numeric_or_none(r) for r in rows)
            stats.append({
                'parameter_type': ptype,
                'count': len(rows),
                'average': average,
                'minimum': minimum,
                'maximum': maximum,
            })
        return stats

    def trends(self, patient_id, parameter_type, period=None):
        if not parameter_type:
            raise MissingRequiredFilter('Parameter type is required for trend analysis')

        period = Period.parse(period)
        since = period.window_start(self._now())
        readings = self.store.fetch_readings(patient_id, parameter_type=parameter_type, since=since)

        buckets = {}
        for reading in readings:
            buckets.setdefault(period.bucket_key(reading.recorded_at), []).append(reading)

        trends = []
        for key in sorted(buckets):
            rows = buckets[key]
            average, minimum, maximum = _aggregate(_numeric_or_none(r) for r in rows)
            trends.append({
                'time_period': key,
                'average_value': average,
                'min_value': minimum,
                'max_value': maximum,
                'readings_count': len(rows),
            })

        return {
            'parameter_type': parameter_type,
            'period': period.value,
            'trends': trends,
            'analysis': analyze_trend(trends),
        }

    def alerts(self, patient_id):
        """Latest reading per type that falls outside its band."""
        thresholds = self.store.thresholds_for(patient_id)
        latest = self.store.latest_readings(patient_id)

        alerts = []
        for reading in sorted(latest, key=lambda r: r.parameter_type):
            status, band = classify_reading(reading, thresholds.get(reading.parameter_type))
            if status == 'Normal':
                continue
            alert = reading.to_dict()
            alert['status'] = status
            alert.update(band)
            alerts.append(alert)

        return {'alerts': alerts, 'total_alerts': len(alerts)}
