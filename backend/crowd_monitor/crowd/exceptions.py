"""Exceptions raised by the crowd analytics core."""


class CrowdError(Exception):
    """Base exception for all crowd analytics errors."""
    pass


class ValidationError(CrowdError, ValueError):
    """Raised when a reading or pattern key is out of range."""
    pass


class StorageError(CrowdError):
    """Raised when the persistence layer fails."""
    pass


class SamplerTickError(CrowdError):
    """Raised when a single background sampling tick fails."""
    pass
