"""Transport layer for the admin backend API."""

from .errors import (
    ApiError,
    HttpError,
    MalformedResponse,
    NetworkUnavailable,
    NotAuthenticated,
    SessionExpired,
)
from .client import GatewayClient, encode_query
from .endpoints import AdminApi, key_path

__all__ = [
    "ApiError",
    "HttpError",
    "MalformedResponse",
    "NetworkUnavailable",
    "NotAuthenticated",
    "SessionExpired",
    "GatewayClient",
    "encode_query",
    "AdminApi",
    "key_path",
]
