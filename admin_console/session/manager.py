"""
Session manager: the login/verify/logout state machine.

UNKNOWN -> UNAUTHENTICATED | AUTHENTICATED on initialize(); AUTHENTICATING
while a login is in flight; AUTHENTICATED -> UNAUTHENTICATED on logout or
when the gateway reports an expired session. The manager is the only
writer of the persisted record.
"""

from collections.abc import Callable
from typing import Optional

from ..api.errors import (
    ApiError,
    HttpError,
    MalformedResponse,
    NetworkUnavailable,
    NotAuthenticated,
    SessionExpired,
)
from ..logging import get_logger
from .models import AuthResult, Session, SessionState
from .persistence import SessionStore, StoreEvent
from .verifier import CredentialVerifier, RemoteCredentialVerifier

logger = get_logger("session.manager")

StateListener = Callable[[SessionState, Optional[Session]], None]


class SessionManager:
    """Owns the authentication state of one console process."""

    def __init__(
        self,
        api,
        store: SessionStore,
        verifier: Optional[CredentialVerifier] = None,
    ):
        self.api = api
        self.store = store
        self.verifier = verifier or RemoteCredentialVerifier(api)
        self.loading = True
        self._state = SessionState.UNKNOWN
        self._session: Optional[Session] = None
        self._listeners: list[StateListener] = []
        self._unsubscribe_store = store.subscribe(self._on_store_event)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def require_authenticated(self) -> Session:
        """Return the current session or raise ``NotAuthenticated``."""
        if self._state is not SessionState.AUTHENTICATED or self._session is None:
            raise NotAuthenticated()
        return self._session

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._unsubscribe_store()
        self._listeners.clear()

    async def initialize(self) -> SessionState:
        """Restore a persisted session, reconciling it with the backend.

        ``loading`` is cleared on every exit path.
        """
        self.loading = True
        try:
            await self._restore()
        finally:
            self.loading = False
        return self._state

    async def _restore(self) -> None:
        record = self.store.load()
        if record is None:
            self._set_state(SessionState.UNAUTHENTICATED)
            return

        cached = Session.from_record(record)
        try:
            data = await self.api.auth.verify()
        except NetworkUnavailable as e:
            self._trust_cached(cached, e)
            return
        except SessionExpired:
            # Gateway already deleted the record
            logger.info("Persisted session expired on the backend")
            self._set_state(SessionState.UNAUTHENTICATED)
            return
        except HttpError as e:
            if e.is_server_error:
                self._trust_cached(cached, e)
            else:
                logger.info(f"Session verify rejected ({e.status}): {e.message}")
                self._discard()
            return
        except MalformedResponse as e:
            self._trust_cached(cached, e)
            return

        if not isinstance(data, dict) or not data.get("valid"):
            logger.info(f"Persisted session for {cached.email} is no longer valid")
            self._discard()
            return

        user = data.get("user")
        session = cached
        if isinstance(user, dict) and user.get("email"):
            session = Session.from_api(user, login_time=cached.login_time)
            if session != cached:
                self.store.save(session.to_record())
        logger.info(f"Session verified for {session.email}", extra={"user_id": session.user_id})
        self._set_state(SessionState.AUTHENTICATED, session)

    def _trust_cached(self, cached: Session, error: ApiError) -> None:
        logger.warning(
            f"Could not verify session for {cached.email} ({error}); "
            "keeping cached session until the backend is reachable"
        )
        self._set_state(SessionState.AUTHENTICATED, cached)

    def _discard(self) -> None:
        self.store.clear()
        self._set_state(SessionState.UNAUTHENTICATED)

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate through the configured verifier and persist the session."""
        if self._state is SessionState.AUTHENTICATING:
            return AuthResult.failed("A login is already in progress")

        self._set_state(SessionState.AUTHENTICATING)
        try:
            result = await self.verifier.verify(email, password)
        except BaseException:
            self._settle_failed_login()
            raise

        if result.success and result.user is not None:
            self.store.save(result.user.to_record())
            self._set_state(SessionState.AUTHENTICATED, result.user)
            logger.info(
                f"Logged in as {result.user.email} ({result.user.role})",
                extra={"user_id": result.user.user_id},
            )
            return result

        logger.info(f"Login failed for {email}: {result.error}")
        self._settle_failed_login()
        return result

    def _settle_failed_login(self) -> None:
        # A failed login ends any earlier session, local record included
        if self.store.has_record:
            self.store.clear()
        self._set_state(SessionState.UNAUTHENTICATED)

    async def logout(self) -> None:
        """Best-effort remote logout; local state is cleared regardless."""
        try:
            await self.api.auth.logout()
        except ApiError as e:
            logger.debug(f"Remote logout failed (ignored): {e}")
        finally:
            self.store.clear()
            self._set_state(SessionState.UNAUTHENTICATED)
            logger.info("Logged out")

    def _on_store_event(self, event: StoreEvent) -> None:
        if event is StoreEvent.EXPIRED and self._state is not SessionState.UNAUTHENTICATED:
            logger.warning("Session expired, forcing logout")
            self._set_state(SessionState.UNAUTHENTICATED)

    def _set_state(self, state: SessionState, session: Optional[Session] = None) -> None:
        # A session exists only while authenticated
        if state is not SessionState.AUTHENTICATED:
            session = None
        changed = state is not self._state or session != self._session
        self._state = state
        self._session = session
        if not changed:
            return
        for listener in list(self._listeners):
            try:
                listener(state, session)
            except Exception:
                logger.exception("Session state listener failed")
