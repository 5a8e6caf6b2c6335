"""Authentication state: persisted record, verifiers and the session manager."""

from .persistence import SessionStore, StoreEvent
from .models import AuthResult, Session, SessionState
from .verifier import (
    CredentialVerifier,
    DemoCredentialVerifier,
    FallbackCredentialVerifier,
    RemoteCredentialVerifier,
    build_verifier,
)
from .manager import SessionManager

__all__ = [
    "SessionStore",
    "StoreEvent",
    "AuthResult",
    "Session",
    "SessionState",
    "CredentialVerifier",
    "DemoCredentialVerifier",
    "FallbackCredentialVerifier",
    "RemoteCredentialVerifier",
    "build_verifier",
    "SessionManager",
]
