"""
This file contains custom, application-specific exceptions.

Every exception carries the HTTP status and the public message it is
surfaced with; main.py turns them into responses. The class name is what
gets logged, the detail is what the caller sees.
"""
from typing import Any, Optional


class CampusLinkError(Exception):
    """Base class for all domain errors raised by the services."""
    status_code: int = 500
    detail: str = "An internal server error occurred."
    headers: Optional[dict[str, str]] = None

    def __init__(self, reason: Optional[str] = None):
        # 'reason' is for logs only and never reaches the client
        self.reason = reason or self.__class__.__name__
        super().__init__(self.reason)


# --- Authentication (always terminal, always the same public message) ---

class AuthenticationError(CampusLinkError):
    status_code = 401
    detail = "Could not validate credentials. Please log in again."
    headers = {"WWW-Authenticate": "Bearer"}

class MissingToken(AuthenticationError):
    pass

class InvalidToken(AuthenticationError):
    """Raised when a token's signature or encoding does not verify."""
    pass

class ExpiredToken(AuthenticationError):
    """Raised when a token is used after its expiry."""
    pass

class UserNotFound(AuthenticationError):
    """Raised when a token's subject no longer maps to a user."""
    pass

class UserInactive(AuthenticationError):
    pass

class TokenRevoked(AuthenticationError):
    pass


class InvalidCredentials(CampusLinkError):
    status_code = 401
    detail = "Incorrect email or password."
    headers = {"WWW-Authenticate": "Bearer"}

class TenantInactive(CampusLinkError):
    status_code = 403
    detail = "Your college subscription is not active."


# --- Authorization ---

class AuthorizationError(CampusLinkError):
    status_code = 403
    detail = "Access denied."

class InsufficientRole(AuthorizationError):
    """Raised when a user's role does not permit them to perform an action."""
    pass

class CrossTenantAccess(AuthorizationError):
    """
    Raised when a caller touches a resource owned by another college.
    Surfaced exactly like ResourceNotFound so foreign ids cannot be told apart from missing ones.
    """
    status_code = 404
    detail = "Resource not found."


class ResourceNotFound(CampusLinkError):
    status_code = 404
    detail = "Resource not found."


# --- Caller-correctable input ---

class ValidationError(CampusLinkError):
    status_code = 422
    detail = "Invalid input."

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.errors: list[dict[str, Any]] = [{"field": field, "message": message}]


# --- Ledger invariants ---

class LedgerInvariantError(CampusLinkError):
    status_code = 409
    detail = "The fee ledger rejected this operation."

class OverpaymentRejected(LedgerInvariantError):
    detail = "Payment exceeds balance due."

class DuplicateObligation(LedgerInvariantError):
    detail = "This fee is already assigned to the student."

class FeeDefinitionLocked(LedgerInvariantError):
    detail = "This fee already has payments recorded against it and can no longer be edited."

class PaymentAlreadyReversed(LedgerInvariantError):
    detail = "This payment has already been reversed."


# --- Other conflicts ---

class ConflictError(CampusLinkError):
    status_code = 409
    detail = "The request conflicts with existing data."

class DuplicateUser(ConflictError):
    detail = "A user with this email already exists in this college."

class SeatLimitReached(ConflictError):
    detail = "This college has reached its user limit."


# --- Storage ---

class TransientStoreError(CampusLinkError):
    """
    Connection-level storage failure. Callers may retry a bounded number of
    times; payment recording never retries on its own.
    """
    status_code = 503
    detail = "Temporary storage failure. Please retry."
    headers = {"Retry-After": "1"}

class StoreConfigurationError(CampusLinkError):
    """Raised when the configured database cannot run an operation at all."""
    pass


# --- Throttling ---

class TooManyAttempts(CampusLinkError):
    status_code = 429
    detail = "Too many attempts. Please try again later."
