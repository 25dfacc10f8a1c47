# scheduler/errors.py


class SchedulerError(Exception):
    """Base class for errors raised by the booking core."""


class ValidationError(SchedulerError):
    """Malformed input. Rejected before anything is written."""


class InvalidTransition(ValidationError):
    pass


class NotFound(SchedulerError):
    pass


class PersistenceFailure(SchedulerError):
    """The store could not complete the unit of work. Safe to retry."""

    retryable = True


class AdmissionConflict(PersistenceFailure):
    """Another writer touched the same (business, date) between read and commit."""


class InconsistentStateError(SchedulerError):
    """Stored data breaks an invariant the core relies on."""

    retryable = False


class AlreadyExists(SchedulerError):
    pass
