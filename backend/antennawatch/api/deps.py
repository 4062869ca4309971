"""Dependencies for the API endpoints."""

from antennawatch.core.antenna_service import AntennaService, antenna_service
from antennawatch.core.feed_service import AntennaFeedService, feed_service


def get_antenna_service() -> AntennaService:
    """Antenna query and mutation service."""
    return antenna_service


def get_feed_service() -> AntennaFeedService:
    """Live feed service."""
    return feed_service
