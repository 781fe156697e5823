"""Exception types raised by SE-Sync."""


class SESyncError(Exception):
    """Base class for all SE-Sync errors."""


class ConfigurationError(SESyncError, ValueError):
    """Invalid measurements, rank, or formulation/preconditioner choice."""


class FactorizationError(SESyncError, RuntimeError):
    """A sparse factorization could not be computed."""


class DimensionMismatchError(SESyncError, ValueError):
    """A matrix argument has the wrong shape for this problem."""
