"""Key-value store observability: poll streams, models and the panel."""

from .formatting import format_bytes, format_ttl
from .models import KeyDetail, KeyEntry, KeyListing, StatsSnapshot
from .polling import PollStream
from .panel import KeyValuePanel, MutationCommand, MutationPhase

__all__ = [
    "format_bytes",
    "format_ttl",
    "KeyDetail",
    "KeyEntry",
    "KeyListing",
    "StatsSnapshot",
    "PollStream",
    "KeyValuePanel",
    "MutationCommand",
    "MutationPhase",
]
