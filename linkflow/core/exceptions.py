"""Custom exceptions for domain-specific errors"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# Validation Errors
class ValidationError(DomainException):
    """Raised when input validation fails"""

    pass


# User & Session Errors
class UserResolutionError(DomainException):
    """Raised when a user can be neither loaded nor created"""

    pass


class NoActiveUserError(DomainException):
    """Raised when an operation needs an active user and none is selected"""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Please create or select a user first",
            details=details,
        )


# Link Flow Errors
class FlowStateError(DomainException):
    """Raised when a link flow event arrives in a state that does not accept it"""

    def __init__(
        self, message: str, state: str, details: Optional[Dict[str, Any]] = None
    ):
        self.state = state
        super().__init__(message, details)


class FlowBusyError(FlowStateError):
    """Raised when a token request is made while another link attempt is in flight"""

    def __init__(self, state: str, details: Optional[Dict[str, Any]] = None):
        if state == "error":
            message = "The previous link attempt failed; reset the flow before requesting a new token"
        else:
            message = f"A link attempt is already in progress (state: {state})"
        super().__init__(
            message=message,
            state=state,
            details=details,
        )


class ItemSelectionError(DomainException):
    """Raised when update mode has no valid item to re-link"""

    pass


class TokenIssuanceError(DomainException):
    """Raised when the backend fails to issue a link token"""

    pass


class ExchangeError(DomainException):
    """Raised when the public token exchange fails"""

    pass


class WidgetExitError(DomainException):
    """Raised (or returned) when the linking widget closes with an error"""

    pass


class TransactionFetchError(DomainException):
    """Raised when transactions cannot be loaded"""

    pass


# External Service Errors
class ExternalServiceError(DomainException):
    """Raised when external service call fails"""

    pass


class BackendError(ExternalServiceError):
    """Raised when the aggregation backend rejects or fails a request"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class UserNotFoundError(BackendError):
    """Raised when the backend has no user under the requested id"""

    def __init__(self, user_id: int, message: str = "user not found", status_code: int = 404):
        self.user_id = user_id
        super().__init__(message, status_code=status_code, details={"user_id": user_id})
