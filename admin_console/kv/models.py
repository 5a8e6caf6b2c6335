"""Wire models for the key-value observability endpoints."""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..api.errors import MalformedResponse
from .formatting import format_bytes, format_ttl


def _validate(model: type[BaseModel], payload: Any, what: str):
    if not isinstance(payload, dict):
        raise MalformedResponse(f"Expected a JSON object for {what}, got {type(payload).__name__}")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(f"Invalid {what} payload: {e.error_count()} error(s)") from e


class KeyEntry(BaseModel):
    """One entry of the key-space as of a single listing."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(alias="key")
    type: str = "unknown"
    ttl_seconds: Optional[int] = Field(default=None, alias="ttl")
    ttl_human: Optional[str] = None
    size_bytes: Optional[int] = Field(default=None, alias="size")

    @property
    def ttl_label(self) -> str:
        if self.ttl_human:
            return self.ttl_human
        return format_ttl(self.ttl_seconds)


class KeyDetail(KeyEntry):
    """A key plus its value; the value's shape follows ``type``."""

    value: Any = None

    @classmethod
    def from_api(cls, payload: Any) -> "KeyDetail":
        return _validate(cls, payload, "key detail")

    @property
    def size_label(self) -> str:
        return format_bytes(self.size_bytes)

    def render_value(self) -> str:
        """Text for display: strings verbatim, hashes/lists/sets/zsets as indented JSON."""
        if self.value is None:
            return ""
        if isinstance(self.value, (dict, list, tuple)):
            return json.dumps(self.value, indent=2, ensure_ascii=False, default=str)
        return str(self.value)


class KeyListing(BaseModel):
    """Result of one keys-listing poll."""
    model_config = ConfigDict(frozen=True)

    keys: list[KeyEntry] = Field(default_factory=list)
    total_count: int = 0

    @classmethod
    def from_api(cls, payload: Any) -> "KeyListing":
        listing = _validate(cls, payload, "key listing")
        if not listing.total_count and listing.keys:
            listing = listing.model_copy(update={"total_count": len(listing.keys)})
        return listing

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.keys]

    def __contains__(self, name: object) -> bool:
        return any(entry.name == name for entry in self.keys)


class StatsSnapshot(BaseModel):
    """Aggregate store statistics from one stats poll."""
    model_config = ConfigDict(frozen=True)

    connected: bool = False
    hit_rate: float = 0.0
    memory_used_human: str = "N/A"
    connected_clients: int = 0
    prefix_counts: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: Any) -> "StatsSnapshot":
        """Flatten ``{success, performance, memory, stats}`` into a snapshot."""
        if not isinstance(payload, dict):
            raise MalformedResponse(f"Expected a JSON object for stats, got {type(payload).__name__}")
        performance = payload.get("performance") or {}
        memory = payload.get("memory") or {}
        stats = payload.get("stats") or {}
        if not all(isinstance(section, dict) for section in (performance, memory, stats)):
            raise MalformedResponse("Invalid stats payload: sections must be objects")
        return _validate(cls, {
            "connected": bool(payload.get("success")),
            "hit_rate": performance.get("hit_rate") or 0.0,
            "memory_used_human": memory.get("used_memory_human") or "N/A",
            "connected_clients": stats.get("connected_clients") or 0,
            "prefix_counts": stats.get("prefix_counts") or {},
        }, "stats")
