"""
Exception hierarchy shared by the gateway, the session and the engine.

Gateway errors carry the HTTP status (when there was a response) and the
server's message. The engine never inspects the subtype: every
GatewayError is handled the same way (rollback + notification).
"""
from typing import Optional


class LookbookError(Exception):
    """Base class for every error raised by this package."""


class NotAuthenticatedError(LookbookError):
    def __init__(self, message: str = "authentication required") -> None:
        super().__init__(message)


class GatewayError(LookbookError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class GatewayNetworkError(GatewayError):
    """The request never produced a response (connect error, timeout, ...)."""


class GatewayAuthorizationError(GatewayError):
    """401 / 403 from the remote API."""


class GatewayNotFoundError(GatewayError):
    """404: the post or user no longer exists."""


class GatewayServerError(GatewayError):
    """Any other non-2xx response."""
