# agenda/errors.py


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling engine."""


class ScheduleConfigError(SchedulingError):
    """A stored weekly schedule or legacy hours config is malformed."""


class InvalidRequestError(SchedulingError):
    """The caller passed a request the engine cannot evaluate."""


class NotFoundError(SchedulingError):
    pass


class NoOccurrencesError(SchedulingError):
    """Every occurrence of a recurring series was skipped."""


class SeriesWriteError(SchedulingError):
    """The atomic insert of a series failed and nothing was persisted."""

    def __init__(self, message, attempted=()):
        super().__init__(message)
        self.attempted = list(attempted)
