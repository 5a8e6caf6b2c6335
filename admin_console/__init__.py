"""Admin console core: session management and key-value store observability."""

__version__ = "0.1.0"
