"""Error taxonomy shared by the gateway client, session manager and panel."""

from typing import Optional


class ApiError(Exception):
    """Base class for every failure surfaced by the API gateway."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NetworkUnavailable(ApiError):
    """No response was received (connection refused, DNS, timeout...)."""

    def __init__(self, message: str = "Backend unreachable", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class HttpError(ApiError):
    """A response was received but its status was not ok."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500


class SessionExpired(HttpError):
    """401 from the backend. The session store has already been invalidated."""

    def __init__(self, message: str = "Session expired"):
        super().__init__(401, message)


class MalformedResponse(ApiError):
    """The body could not be parsed into the expected shape."""


class NotAuthenticated(Exception):
    """Raised when an operation needs a session and none exists."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)
