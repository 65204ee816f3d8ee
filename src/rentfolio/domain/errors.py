# src/rentfolio/domain/errors.py


class RentfolioError(Exception):
    pass


class ValidationError(RentfolioError, ValueError):
    """Required input is missing or malformed; nothing was attempted."""


class NotFoundError(RentfolioError, LookupError):
    pass


class ForbiddenError(RentfolioError):
    """The operation is not allowed for the record's current status."""


class StorageError(RentfolioError):
    """The store reported a failed write."""
