"""Session models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class SessionState(str, Enum):
    """Authentication state of the console."""
    UNKNOWN = "unknown"                  # Initial, persisted record not yet checked
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"    # Login in flight
    AUTHENTICATED = "authenticated"


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as browsers store them
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """The authenticated identity held for the duration of a login."""
    user_id: str
    email: str
    role: str = "admin"
    display_name: str = ""
    login_time: datetime = None

    def __post_init__(self):
        if self.login_time is None:
            object.__setattr__(self, "login_time", datetime.now(timezone.utc))

    @classmethod
    def from_api(cls, user: dict, login_time: Optional[datetime] = None) -> "Session":
        """Build from the backend's ``user`` object (id, email, role, display_name)."""
        email = str(user.get("email") or "")
        return cls(
            user_id=str(user.get("id") or email),
            email=email,
            role=str(user.get("role") or "admin"),
            display_name=str(user.get("display_name") or email.split("@")[0]),
            login_time=login_time,
        )

    @classmethod
    def from_record(cls, record: dict) -> "Session":
        """Build from the persisted record."""
        return cls.from_api(record, login_time=_parse_time(record.get("loginTime")))

    def to_record(self) -> dict:
        """Persisted shape: {id, email, role, display_name, loginTime}."""
        return {
            "id": self.user_id,
            "email": self.email,
            "role": self.role,
            "display_name": self.display_name,
            "loginTime": self.login_time.isoformat(),
        }


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a login attempt. Never persisted."""
    success: bool
    user: Optional[Session] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, user: Session) -> "AuthResult":
        return cls(success=True, user=user)

    @classmethod
    def failed(cls, error: str) -> "AuthResult":
        return cls(success=False, error=error)
