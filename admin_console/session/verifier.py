"""Credential verification strategies for login."""

import hmac
from abc import ABC, abstractmethod

from ..api.errors import ApiError
from ..config import ConsoleConfig
from ..logging import get_logger
from .models import AuthResult, Session

logger = get_logger("session.verifier")


class CredentialVerifier(ABC):
    """Turns an email/password pair into an ``AuthResult``."""

    @abstractmethod
    async def verify(self, email: str, password: str) -> AuthResult:
        ...


class RemoteCredentialVerifier(CredentialVerifier):
    """Production verifier: ``POST /auth/login`` on the backend."""

    def __init__(self, api):
        self.api = api

    async def verify(self, email: str, password: str) -> AuthResult:
        try:
            data = await self.api.auth.login(email, password)
        except ApiError as e:
            return AuthResult.failed(e.message)

        if not isinstance(data, dict):
            return AuthResult.failed("Unexpected login response")
        user = data.get("user")
        if data.get("success") and isinstance(user, dict):
            return AuthResult.ok(Session.from_api(user))
        return AuthResult.failed(
            data.get("detail") or data.get("message") or data.get("error") or "Login failed"
        )


class DemoCredentialVerifier(CredentialVerifier):
    """Grants access to an explicitly configured set of demo accounts.

    Holds no built-in credentials and refuses to run in production.
    """

    def __init__(self, accounts: dict[str, str], environment: str = "development"):
        if environment.lower() in ("production", "prod"):
            raise ValueError("Demo credentials cannot be enabled in production")
        self._accounts = {email.lower(): password for email, password in accounts.items()}

    async def verify(self, email: str, password: str) -> AuthResult:
        expected = self._accounts.get(email.strip().lower())
        if expected is None or not hmac.compare_digest(expected, password):
            return AuthResult.failed("Invalid demo credentials")
        logger.warning(f"Granting demo access to {email}")
        return AuthResult.ok(Session.from_api({
            "id": f"demo:{email.lower()}",
            "email": email,
            "role": "demo",
        }))


class FallbackCredentialVerifier(CredentialVerifier):
    """Consults ``fallback`` only when ``primary`` did not succeed."""

    def __init__(self, primary: CredentialVerifier, fallback: CredentialVerifier):
        self.primary = primary
        self.fallback = fallback

    async def verify(self, email: str, password: str) -> AuthResult:
        result = await self.primary.verify(email, password)
        if result.success:
            return result
        fallback_result = await self.fallback.verify(email, password)
        if fallback_result.success:
            return fallback_result
        return result  # primary's error message wins


def build_verifier(config: ConsoleConfig, api) -> CredentialVerifier:
    """Production verifier, wrapped with demo fallback only when configured outside production."""
    remote = RemoteCredentialVerifier(api)
    if not config.demo_accounts:
        return remote
    if config.is_production:
        logger.warning("Ignoring configured demo accounts in production")
        return remote
    logger.info(f"Demo login fallback enabled for {len(config.demo_accounts)} account(s)")
    return FallbackCredentialVerifier(
        remote, DemoCredentialVerifier(config.demo_accounts, config.environment)
    )
