from __future__ import annotations


class MarketplaceError(Exception):
    """
    Base for every failure a service reports to its caller.

    status_code / error are read by the HTTP exception handler in main.py;
    str(exc) carries the human-readable details.
    """

    status_code: int = 400
    error: str = "Request failed"


class ValidationError(MarketplaceError):
    status_code = 400
    error = "Invalid request"


class Unauthorized(MarketplaceError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(MarketplaceError):
    status_code = 403
    error = "Forbidden"


class NotFound(MarketplaceError):
    status_code = 404
    error = "Not found"


class Conflict(MarketplaceError):
    status_code = 409
    error = "Conflict"


class InsufficientInventory(MarketplaceError):
    status_code = 409
    error = "Not enough tickets available"


class StorageFailure(MarketplaceError):
    status_code = 500
    error = "Storage failure"
