"""Exceptions surfaced through the API layer."""

from typing import Optional


class AntennaWatchException(Exception):
    """Base exception for service-level failures."""

    def __init__(self, message: Optional[str] = None):
        """Create a new exception.

        Args:
            message: Optional human readable message
        """
        self.message = message or self.__class__.__doc__ or "Antennawatch error"
        super().__init__(self.message)


class NotFoundException(AntennaWatchException):
    """Requested resource does not exist."""


class StoreUnavailableException(AntennaWatchException):
    """The backing store could not be reached or rejected the statement."""
