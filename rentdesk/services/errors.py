"""
Client-side error taxonomy.

Every failure coming out of the HTTP layer is an ApiError. Transport failures
(no response received) carry status_code=None so callers can branch on the
presence of a status code the same way they branch on HTTP errors.
"""
from typing import Any, Dict, Optional


CONNECTIVITY_MESSAGE = "Could not connect to the server. Check your connection and try again."
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
PERMISSION_DENIED_MESSAGE = "You do not have permission to perform this action."
SERVER_ERROR_MESSAGE = "The server encountered an error. Please try again later."


class ApiError(Exception):
    """Base class for every error raised by the API client"""

    default_message = "The request failed. Please try again later."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.payload = payload or {}
        self.message = message or self.payload.get("message") or self.default_message
        super().__init__(self.message)

    @property
    def has_response(self) -> bool:
        return self.status_code is not None

    @property
    def backend_message(self) -> Optional[str]:
        return self.payload.get("message")


class NetworkError(ApiError):
    """No HTTP response was received (timeout, refused connection, DNS...)"""

    default_message = CONNECTIVITY_MESSAGE

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or CONNECTIVITY_MESSAGE, status_code=None)


class SessionExpiredError(ApiError):
    default_message = SESSION_EXPIRED_MESSAGE

    def __init__(self, payload: Optional[Dict[str, Any]] = None):
        super().__init__(SESSION_EXPIRED_MESSAGE, status_code=401, payload=payload)


class PermissionDeniedError(ApiError):
    default_message = PERMISSION_DENIED_MESSAGE

    def __init__(self, payload: Optional[Dict[str, Any]] = None):
        super().__init__(PERMISSION_DENIED_MESSAGE, status_code=403, payload=payload)


class BadRequestError(ApiError):
    default_message = "The request was rejected by the server."


class NotFoundError(ApiError):
    default_message = "The requested record was not found."


class ConflictError(ApiError):
    default_message = "The record conflicts with an existing one."


class ServerError(ApiError):
    default_message = SERVER_ERROR_MESSAGE


class BillingOverlapError(BadRequestError):
    """A previous billing record already covers part of the requested period"""

    def __init__(self, message: Optional[str], payload: Dict[str, Any]):
        super().__init__(message, status_code=400, payload=payload)
        self.existing_billing: Dict[str, Any] = payload.get("existingBilling") or {}
        self.requested_period: Dict[str, Any] = payload.get("requestedPeriod") or {}


class BillingEmptyPeriodError(BadRequestError):
    """No billable line items exist for the requested period"""

    def __init__(self, message: Optional[str], payload: Dict[str, Any]):
        super().__init__(message, status_code=400, payload=payload)
        self.requested_period: Dict[str, Any] = payload.get("requestedPeriod") or {}


class ClientValidationError(Exception):
    """Input rejected locally, before any request is issued"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class AdminRequiredError(ClientValidationError):
    def __init__(self):
        super().__init__("Only administrators can perform this action.")


def parse_record_id(value: Any) -> int:
    """Validate a record id route parameter before it is used in a request"""
    if isinstance(value, bool):
        raise ClientValidationError("Invalid record id.", field="id")
    if isinstance(value, int):
        record_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        record_id = int(value.strip())
    else:
        raise ClientValidationError("Invalid record id.", field="id")
    if record_id <= 0:
        raise ClientValidationError("Invalid record id.", field="id")
    return record_id


def error_for_status(status_code: int, payload: Dict[str, Any]) -> ApiError:
    """Map an HTTP error response onto the taxonomy"""
    message = payload.get("message") or payload.get("detail")
    if status_code == 401:
        return SessionExpiredError(payload)
    if status_code == 403:
        return PermissionDeniedError(payload)
    if status_code == 400:
        return BadRequestError(message, status_code=400, payload=payload)
    if status_code == 404:
        return NotFoundError(message, status_code=404, payload=payload)
    if status_code == 409:
        return ConflictError(message, status_code=409, payload=payload)
    if status_code >= 500:
        return ServerError(SERVER_ERROR_MESSAGE, status_code=status_code, payload=payload)
    return ApiError(message, status_code=status_code, payload=payload)


def user_message(exc: Exception, fallback: Optional[str] = None) -> str:
    """Text shown to the user for a failed operation"""
    if isinstance(exc, ClientValidationError):
        return exc.message
    if isinstance(exc, (NetworkError, SessionExpiredError, PermissionDeniedError, ServerError)):
        return exc.message
    if isinstance(exc, ApiError):
        if exc.backend_message:
            return exc.backend_message
        return fallback or exc.message
    return fallback or ApiError.default_message
