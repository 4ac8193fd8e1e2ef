# resume_ab/errors.py


class ABTestingError(Exception):
    """Base class for errors raised by the experimentation engine."""


class NotFound(ABTestingError):
    """Experiment, variant or trial is missing or not owned by the caller."""


class NoVariantsAvailable(ABTestingError):
    """An assignment was attempted on an experiment with no active variants."""


class ValidationError(ABTestingError):
    """A numeric input is negative, non-finite or otherwise out of range."""
