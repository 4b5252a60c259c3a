"""Domain exceptions raised by the ride, bid and rating services."""

from typing import Any, Dict, Optional


class RideServiceError(Exception):
    """Base class for errors the caller can correct or retry."""

    code = "error"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class NotFoundError(RideServiceError):
    """Raised when a referenced ride, bid, driver or shipper does not exist."""

    code = "not_found"


class InvalidInputError(RideServiceError):
    """Raised for a missing required field or an out-of-range value."""

    code = "invalid_input"


class InvalidStateError(RideServiceError):
    """Raised when an operation is not valid for the entity's current status."""

    code = "invalid_state"


class ConflictError(RideServiceError):
    """Raised on a uniqueness violation or a lost accept race."""

    code = "conflict"
