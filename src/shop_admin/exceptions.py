from __future__ import annotations


UNAUTHORIZED_MESSAGE = "Access token required"
NOT_AUTHENTICATED_MESSAGE = "Not authenticated"


class ShopAdminError(Exception):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.message = message
        self.status = status
        super().__init__(message)


class ApiError(ShopAdminError):
    """Base error for failures reported by, or on the way to, the remote API."""


class Unauthorized(ApiError):
    """The server answered 401; the stored token has already been dropped."""

    def __init__(self, message: str = UNAUTHORIZED_MESSAGE) -> None:
        super().__init__(message, status=401)


class RequestFailed(ApiError):
    """Non-2xx response other than 401, or an unreadable response body."""


class InvalidPayload(ApiError):
    """The request could not be built: the body does not encode or an upload file is unreadable."""


class NetworkError(ApiError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotAuthenticated(ShopAdminError):
    def __init__(self, message: str = NOT_AUTHENTICATED_MESSAGE) -> None:
        super().__init__(message)


def http_error_message(status: int) -> str:
    return f"HTTP error! status: {status}"


__all__ = [
    "UNAUTHORIZED_MESSAGE",
    "NOT_AUTHENTICATED_MESSAGE",
    "ShopAdminError",
    "ApiError",
    "Unauthorized",
    "RequestFailed",
    "NetworkError",
    "InvalidPayload",
    "NotAuthenticated",
    "http_error_message",
]
