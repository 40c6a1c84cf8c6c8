"""Domain errors raised by the account store, balance ledger and share engine.

Each error carries the HTTP status the request handlers answer with, so the
boundary only has to translate ``exc.status_code`` and ``exc.detail``.
"""

from fastapi import status


class UserServiceError(Exception):
    """Base class for every error surfaced to the HTTP layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(UserServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "User does not exist."


class ConflictError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Email already in use."


class UnauthenticatedError(UserServiceError):
    # Same message for unknown email and wrong password.
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unable to authenticate: invalid email or password."


class InsufficientFundsError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Insufficient balance to purchase the shares."


class ShareNotFoundError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Unable to complete the transaction. User does not own the shares."


class AlreadySoldError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Unable to complete the transaction. The shares were already sold."


class InvalidInputError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."


class StoreError(UserServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Database error."


class HashError(UserServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Unable to hash the password."


class ServiceUnavailableError(UserServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Database service unavailable."


def error_to_http(exc: UserServiceError) -> tuple[int, str]:
    """Map a domain error to (status_code, detail) for the HTTP response."""
    return exc.status_code, exc.detail
