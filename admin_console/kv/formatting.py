"""Human-readable TTL and size labels for key-space entries."""

from typing import Optional

TTL_NO_EXPIRE = -1
TTL_EXPIRED = -2

_TTL_UNITS = (("d", 86400), ("h", 3600), ("m", 60), ("s", 1))
_BYTE_UNITS = ("B", "KB", "MB", "GB")


def format_ttl(seconds: Optional[int]) -> str:
    """
    Render a TTL largest unit first, dropping zero components.

    -1 means the key never expires, -2 that it is already gone.
    No rounding: 90061 -> "1d 1h 1m 1s", 90000 -> "1d 1h".
    """
    if seconds is None:
        return "unknown"
    if seconds == TTL_NO_EXPIRE:
        return "no expire"
    if seconds == TTL_EXPIRED:
        return "expired"
    seconds = int(seconds)
    if seconds <= 0:
        return "0s"

    parts = []
    remaining = seconds
    for suffix, size in _TTL_UNITS:
        value, remaining = divmod(remaining, size)
        if value:
            parts.append(f"{value}{suffix}")
    return " ".join(parts)


def format_bytes(n: Optional[int]) -> str:
    """Largest of B/KB/MB/GB (base 1024) with a value of at least 1, two decimals."""
    if not n or n < 0:
        return "0.00 B"
    value = float(n)
    for unit in _BYTE_UNITS:
        if value < 1024 or unit == _BYTE_UNITS[-1]:
            break
        value /= 1024
    return f"{value:.2f} {unit}"
