"""
Key-value observability panel.

Two poll streams run side by side: aggregate stats on a short cadence and
the key listing on a longer one. Key detail is fetched on demand, and
destructive operations go through a confirm/issue/reconcile command that
only touches local state after the backend confirms.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..api.errors import ApiError, MalformedResponse, NotAuthenticated, SessionExpired
from ..config import ConsoleConfig
from ..logging import get_logger
from ..session.persistence import StoreEvent
from .models import KeyDetail, KeyListing, StatsSnapshot
from .polling import PollStream

logger = get_logger("kv.panel")

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


class MutationPhase(str, Enum):
    """Lifecycle of a destructive operation."""
    PENDING = "pending"
    CANCELLED = "cancelled"      # User declined; nothing sent
    ISSUED = "issued"            # Request in flight
    CONFIRMED = "confirmed"      # Backend reported success; re-sync not applied
    RECONCILED = "reconciled"    # Forced re-poll applied on both streams
    FAILED = "failed"            # Backend refused or unreachable; local state untouched


@dataclass
class MutationCommand:
    """One destructive operation and how far it got."""
    action: str
    target: str
    phase: MutationPhase = MutationPhase.PENDING
    error: Optional[ApiError] = None

    @property
    def succeeded(self) -> bool:
        return self.phase in (MutationPhase.CONFIRMED, MutationPhase.RECONCILED)


async def _ask(confirm: Confirm, prompt: str) -> bool:
    answer = confirm(prompt)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


class KeyValuePanel:
    """Live view over the backend's cache/key store."""

    def __init__(
        self,
        api,
        session_manager,
        *,
        stats_interval: float = 2.0,
        keys_interval: float = 10.0,
        pattern: str = "*",
        prefix: Optional[str] = None,
        on_stats: Optional[Callable[[StatsSnapshot], None]] = None,
        on_keys: Optional[Callable[[KeyListing], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.api = api
        self.session_manager = session_manager
        self.pattern = pattern or "*"
        self.prefix = prefix or None
        self.on_stats = on_stats
        self.on_keys = on_keys
        self.on_error = on_error

        self.stats_stream: PollStream[StatsSnapshot] = PollStream(
            "stats", self._fetch_stats, stats_interval,
            on_update=self._apply_stats,
            on_error=lambda e: self._report(e, "Stats refresh failed"),
        )
        self.keys_stream: PollStream[KeyListing] = PollStream(
            "keys", self._fetch_keys, keys_interval,
            on_update=self._apply_keys,
            on_error=lambda e: self._report(e, "Key listing refresh failed"),
        )

        self.selected_key: Optional[str] = None
        self.key_detail: Optional[KeyDetail] = None
        self._detail_ticket = 0
        self._mounted = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    @classmethod
    def from_config(cls, config: ConsoleConfig, api, session_manager, **kwargs) -> "KeyValuePanel":
        kwargs.setdefault("stats_interval", config.stats_interval)
        kwargs.setdefault("keys_interval", config.keys_interval)
        return cls(api, session_manager, **kwargs)

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def stats(self) -> Optional[StatsSnapshot]:
        return self.stats_stream.latest

    @property
    def keys(self) -> Optional[KeyListing]:
        return self.keys_stream.latest

    # --- Lifecycle ---

    def mount(self, schedule: bool = True) -> None:
        """Start both poll streams. Requires an authenticated session."""
        self.session_manager.require_authenticated()
        if self._mounted:
            return
        self._mounted = True
        self._unsubscribe = self.session_manager.store.subscribe(self._on_store_event)
        self.stats_stream.start(schedule)
        self.keys_stream.start(schedule)
        logger.info(f"Panel mounted (pattern={self.pattern!r}, prefix={self.prefix!r})")

    async def unmount(self) -> None:
        """Stop both timers and drop anything still in flight."""
        self._teardown()
        await asyncio.gather(self.stats_stream.stop(), self.keys_stream.stop())

    def _teardown(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._mounted:
            logger.info("Panel unmounted")
        self._mounted = False
        self.stats_stream.cancel()
        self.keys_stream.cancel()
        self._clear_detail()

    def _on_store_event(self, event: StoreEvent) -> None:
        if event in (StoreEvent.CLEARED, StoreEvent.EXPIRED):
            self._teardown()

    def _require_mounted(self) -> None:
        if not self._mounted:
            raise NotAuthenticated("Panel is not mounted")

    # --- Polling ---

    async def _fetch_stats(self) -> StatsSnapshot:
        return StatsSnapshot.from_api(await self.api.kv.stats())

    async def _fetch_keys(self) -> KeyListing:
        # Filter captured at issue time
        pattern, prefix = self.pattern, self.prefix
        return KeyListing.from_api(await self.api.kv.keys(pattern, prefix))

    def _apply_stats(self, snapshot: StatsSnapshot) -> None:
        if self.on_stats:
            self.on_stats(snapshot)

    def _apply_keys(self, listing: KeyListing) -> None:
        if self.on_keys:
            self.on_keys(listing)

    async def refresh(self) -> bool:
        """Re-poll both streams now instead of waiting for the next tick.

        Both tickets are taken before the first await, so any fetch already
        in flight is outdated the moment this is called. Returns True when
        both results were applied.
        """
        self._require_mounted()
        stats_ticket = self.stats_stream.supersede()
        keys_ticket = self.keys_stream.supersede()
        results = await asyncio.gather(
            self.stats_stream.poll(stats_ticket),
            self.keys_stream.poll(keys_ticket),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return all(results)

    async def set_filter(self, pattern: str = "*", prefix: Optional[str] = None) -> None:
        """Change the listing filter; in-flight listings for the old filter are discarded."""
        self.pattern = pattern or "*"
        self.prefix = prefix or None
        if self._mounted:
            await self.keys_stream.poll()

    # --- Key detail ---

    async def load_key_detail(self, name: str) -> Optional[KeyDetail]:
        """Fetch and display one key. Returns None if it failed or was superseded."""
        self._require_mounted()
        self._detail_ticket += 1
        ticket = self._detail_ticket
        try:
            detail = KeyDetail.from_api(await self.api.kv.key(name))
        except SessionExpired:
            raise
        except ApiError as e:
            self._report(e, f"Could not load key {name!r}")
            return None

        if not self._mounted or ticket != self._detail_ticket:
            logger.debug(f"Detail for {name!r} superseded, discarded")
            return None
        self.selected_key = name
        self.key_detail = detail
        return detail

    def _clear_detail(self) -> None:
        self._detail_ticket += 1
        self.selected_key = None
        self.key_detail = None

    # --- Mutations ---

    async def delete_key(self, name: str, confirm: Confirm) -> MutationCommand:
        """Delete one key after user confirmation, then re-sync both streams."""
        command = MutationCommand("delete", name)

        def on_confirmed():
            if self.selected_key == name:
                self._clear_detail()

        return await self._execute(
            command,
            confirm,
            f'Delete key "{name}"? This cannot be undone.',
            lambda: self.api.kv.delete_key(name),
            on_confirmed,
        )

    async def flush(self, confirm: Confirm) -> MutationCommand:
        """Remove every key after user confirmation, then re-sync both streams."""
        return await self._execute(
            MutationCommand("flush", "*"),
            confirm,
            "Flush the entire key-space? This cannot be undone.",
            self.api.kv.flush,
            self._clear_detail,
        )

    async def _execute(
        self,
        command: MutationCommand,
        confirm: Confirm,
        prompt: str,
        issue: Callable[[], Awaitable[dict]],
        on_confirmed: Callable[[], None],
    ) -> MutationCommand:
        self._require_mounted()
        if not await _ask(confirm, prompt):
            command.phase = MutationPhase.CANCELLED
            return command

        self.session_manager.require_authenticated()
        command.phase = MutationPhase.ISSUED
        try:
            payload = await issue()
            if not isinstance(payload, dict):
                raise MalformedResponse(f"Unexpected {command.action} response")
            if payload.get("success") is False:
                raise ApiError(
                    payload.get("detail") or payload.get("message")
                    or payload.get("error") or f"{command.action} was refused"
                )
        except SessionExpired as e:
            command.phase = MutationPhase.FAILED
            command.error = e
            raise
        except ApiError as e:
            command.phase = MutationPhase.FAILED
            command.error = e
            self._report(e, f"Could not {command.action} {command.target!r}")
            return command

        command.phase = MutationPhase.CONFIRMED
        logger.info(f"{command.action} {command.target!r} confirmed by backend")
        on_confirmed()

        if self._mounted:
            if await self.refresh():
                command.phase = MutationPhase.RECONCILED
            else:
                logger.warning(f"{command.action} {command.target!r} confirmed but re-sync failed")
        return command

    def _report(self, error: ApiError, context: str = "") -> None:
        message = f"{context}: {error}" if context else str(error)
        logger.warning(message)
        if self.on_error:
            self.on_error(message)
