"""Tail-specific exceptions for error handling."""

from typing import Optional


class TailError(Exception):
    """Base class for change-feed tail errors."""

    pass


class FetchError(TailError):
    """Raised when the cursor source fails to deliver rows.

    This is a non-recoverable error for the current cursor session - the
    reader moves to its failed state and never retries on its own. The
    owning subscription decides whether to open a new session.

    Examples:
    - Connection dropped mid-FETCH
    - Cursor invalidated by the server
    - Cursor could not be declared
    """

    pass


class ParseError(TailError):
    """Raised when a single fetched row cannot be decoded.

    This is a recoverable error - the row is dropped and logged, the rest of
    the fetch is delivered normally.
    """

    def __init__(self, message: str, record: Optional[object] = None):
        """Create a parse error.

        Args:
            message: What was wrong with the row
            record: The raw record, kept for logging
        """
        super().__init__(message)
        self.record = record


class BridgeTerminated(TailError):
    """Signals end-of-stream to the consumer side of the bridge.

    Not a failure by itself: ``cause`` is set when the producer ended because
    of an error, and is None when it ended cleanly or was closed.
    """

    def __init__(self, cause: Optional[BaseException] = None):
        """Create the terminal signal.

        Args:
            cause: The error that ended the producer, if any
        """
        message = "Producer terminated"
        if cause is not None:
            message = f"Producer terminated: {cause}"
        super().__init__(message)
        self.cause = cause
