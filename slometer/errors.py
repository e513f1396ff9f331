"""Exceptions raised by SLOMeter."""


class SLOMeterError(Exception):
    """Base class for SLOMeter errors."""


class AccessDeniedError(SLOMeterError):
    """The session is not allowed to view telemetry."""


class UnknownCollectionError(SLOMeterError):
    """A document stream was asked for a collection it does not map."""
