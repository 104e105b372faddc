"""SQLAlchemy 2.0 ORM models for DailyTrends.

Every model must be imported here to register with the ``Base`` metadata
before ``create_tables`` runs.
"""

from dailytrends.database import Base  # noqa: F401
from dailytrends.models.db.feed import FeedItemRecord, TimestampMixin  # noqa: F401
