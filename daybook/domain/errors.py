"""Error taxonomy for the recurrence and anchor engine.

None of these are fatal to the host: processors log them and move on to
the next independent unit of work.
"""


class DaybookError(Exception):
    """Base class for engine errors."""


class DecodeError(DaybookError):
    """A stored rule or record could not be turned into a domain value."""


class PersistenceError(DaybookError):
    """A fetch or commit against the store failed."""


class NotificationSchedulingError(DaybookError):
    """The notification scheduler refused or failed a request."""


class InvalidTaskError(DaybookError, ValueError):
    """A task write violates a data-model precondition."""
