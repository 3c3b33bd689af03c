class BookingError(Exception):
    """Base for expected, caller-recoverable booking outcomes."""
    pass


class BookingNotFoundError(BookingError):
    """Raised when the event type, booking or action token cannot be resolved."""
    pass


class BookingValidationError(BookingError):
    """Raised for malformed timestamps or missing required input."""
    pass


class BookingConflictError(BookingError):
    """Raised when the requested slot is no longer available at commit time."""
    pass


class BookingGoneError(BookingError):
    """Raised when an action token is expired or already used for something else."""
    pass


class BookingUniqueConstraintError(RuntimeError):
    """Raised by storage adapters when (organizer, starts_at, ends_at) already exists."""
    pass
