from .health_analytics import HealthAnalytics, Period
from .reading_store import ReadingStore, SQLReadingStore
