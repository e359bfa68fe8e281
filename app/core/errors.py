"""
Reservation domain errors.

Every failure the lifecycle, capacity and Nova layers raise is a
ReservationError carrying an ErrorKind. Routes let them propagate; the
handler registered in app.main turns them into JSON responses using
STATUS_BY_KIND, so new kinds only need a row here.
"""

import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    EXTERNAL_API = "external_api"
    TABLE_ALREADY_OCCUPIED = "table_already_occupied"
    EXTERNAL_TIMEOUT = "external_timeout"
    PAYMENT = "payment"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.CONFIGURATION: 503,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.EXTERNAL_API: 502,
    ErrorKind.TABLE_ALREADY_OCCUPIED: 409,
    ErrorKind.EXTERNAL_TIMEOUT: 504,
    ErrorKind.PAYMENT: 402,
}


class ReservationError(Exception):
    """Base class for reservation domain failures"""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ConfigurationError(ReservationError):
    """Tenant or service configuration is missing"""
    kind = ErrorKind.CONFIGURATION


class ValidationError(ReservationError):
    kind = ErrorKind.VALIDATION


class NotFoundError(ReservationError):
    kind = ErrorKind.NOT_FOUND


class InvalidTransitionError(ReservationError):
    """Action not permitted from the reservation's current status"""
    kind = ErrorKind.INVALID_TRANSITION


class ExternalAPIError(ReservationError):
    """Non-2xx or transport failure from the Nova API"""
    kind = ErrorKind.EXTERNAL_API

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, extra)
        self.upstream_status = status_code
        self.body = body


class TableAlreadyOccupiedError(ExternalAPIError):
    """Nova refused the booking because the table is taken; refresh tables, do not retry"""
    kind = ErrorKind.TABLE_ALREADY_OCCUPIED


class ExternalTimeoutError(ExternalAPIError):
    kind = ErrorKind.EXTERNAL_TIMEOUT


class PaymentError(ReservationError):
    kind = ErrorKind.PAYMENT


def error_body(exc: ReservationError) -> Dict[str, Any]:
    body: Dict[str, Any] = {"detail": exc.message, "error": exc.kind.value}
    body.update(exc.extra)
    return body
