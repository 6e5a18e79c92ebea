"""Exception hierarchy for the syndic backend."""


class SyndicError(Exception):
    """Base exception for all syndicpro errors."""


class StoreError(SyndicError):
    """Raised when the data store rejects an operation."""


class StoreReadError(StoreError):
    """Raised when a select against the data store fails."""


class StoreWriteError(StoreError):
    """Raised when an insert, update or delete fails."""


class EntityNotFoundError(SyndicError):
    """Raised when a referenced row does not exist."""


class PermissionDeniedError(SyndicError):
    """Raised when the acting profile's role does not allow the operation."""


class SelfModificationError(PermissionDeniedError):
    """Raised when an admin tries to demote or delete their own profile."""
