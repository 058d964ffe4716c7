class TimecostError(Exception):
    """Base class for errors raised by the time and cost engines."""


class ValidationError(TimecostError):
    """Malformed input, rejected before any state is touched."""


class AuthorizationError(TimecostError):
    """The caller may not act on this object."""


class TimerConflictError(TimecostError):
    """Another active timer was created for the same user concurrently."""
