class SeriesError(Exception):
    """Base exception for py-series library."""
    pass


class ArgumentMismatchError(SeriesError, ValueError):
    """Raised when lengths or counts disagree (values vs labels, broadcast sizes)."""
    pass


class InvalidArgumentError(SeriesError, ValueError):
    """Raised for malformed ranges, steps, counts or uncoercible probes."""
    pass


class KeyNotFoundError(SeriesError, KeyError):
    """Raised when a label or group key is missing."""
    pass


class IndexOutOfRangeError(SeriesError, IndexError):
    """Raised for positions outside [0, len)."""
    pass


class InvalidOperationError(SeriesError, RuntimeError):
    """Raised for illegal state transitions."""
    pass


class InvalidCastError(SeriesError, TypeError):
    """Raised when a strict conversion fails."""
    pass


class TypeMismatchError(SeriesError, TypeError):
    """Raised when a value does not match the storage element type."""
    pass


class UnsupportedOperationError(SeriesError, NotImplementedError):
    """Raised when mutating an immutable index kind."""
    pass
