"""Custom exceptions for the Orderflow application."""

from __future__ import annotations


class OrderflowError(Exception):
    """Base exception for Orderflow application."""

    def __init__(self, message: str = "", field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(OrderflowError):
    """Raised when input shape or range is invalid."""

    pass


class NotFoundError(OrderflowError):
    """Raised when a resource is not found or belongs to another parent."""

    pass


class ConflictError(OrderflowError):
    """Raised when a state-machine guard rejects the requested transition."""

    pass


class ArchivedError(ConflictError):
    """Raised when acting on an archived record."""

    pass


class ExpiredError(ConflictError):
    """Raised when acting on an expired quote."""

    pass


class AlreadyRejectedError(ConflictError):
    """Raised when acting on a quote that was already rejected."""

    pass


class AmountNotSetError(ConflictError):
    """Raised when accepting a change request that has no positive amount."""

    pass


class ConfigurationError(OrderflowError):
    """Raised when configuration is invalid."""

    pass


class AuthenticationError(OrderflowError):
    """Raised when authentication fails."""

    pass


class InvalidCredentialsError(AuthenticationError):
    """Raised for any failed login, whatever credential was presented."""

    pass


class InvalidOrExpiredTokenError(AuthenticationError):
    """Raised when a quote token does not resolve to a redeemable quote."""

    def __init__(self, message: str = "Invalid or expired token.", field: str | None = None) -> None:
        super().__init__(message, field)


class AuthorizationError(OrderflowError):
    """Raised when the actor lacks the role or ownership for an operation."""

    pass
