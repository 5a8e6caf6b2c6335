"""Console configuration with CLI > env var > defaults precedence."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit


DEFAULT_API_URL = "http://localhost:8000/api/admin"
DEFAULT_STATE_DIR = Path.home() / ".admin_console"


def _parse_demo_accounts(raw: str) -> dict[str, str]:
    """Parse ``email:password,email:password`` into a mapping."""
    accounts: dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item or ":" not in item:
            continue
        email, password = item.split(":", 1)
        accounts[email.strip().lower()] = password
    return accounts


@dataclass
class ConsoleConfig:
    """Configuration for a console process."""
    api_url: str = ""
    state_dir: Path | None = None
    environment: str = ""
    request_timeout: float = 0.0

    # Observability panel poll cadences (seconds)
    stats_interval: float = 0.0
    keys_interval: float = 0.0

    # Non-production demo logins, never populated by default
    demo_accounts: dict[str, str] = field(default_factory=dict)

    log_dir: Path | None = None

    def __post_init__(self):
        # Apply env var defaults before CLI overrides
        if not self.api_url:
            self.api_url = os.getenv("ADMIN_CONSOLE_API_URL", DEFAULT_API_URL)
        self.api_url = self.api_url.rstrip("/")
        if self.state_dir is None:
            env_dir = os.getenv("ADMIN_CONSOLE_STATE_DIR")
            self.state_dir = Path(env_dir) if env_dir else DEFAULT_STATE_DIR
        self.state_dir = Path(self.state_dir).expanduser()
        if not self.environment:
            self.environment = os.getenv("ADMIN_CONSOLE_ENV", "development")
        if not self.request_timeout:
            self.request_timeout = float(os.getenv("ADMIN_CONSOLE_TIMEOUT", "10"))
        if not self.stats_interval:
            self.stats_interval = float(os.getenv("ADMIN_CONSOLE_STATS_INTERVAL", "2"))
        if not self.keys_interval:
            self.keys_interval = float(os.getenv("ADMIN_CONSOLE_KEYS_INTERVAL", "10"))
        if not self.demo_accounts:
            raw = os.getenv("ADMIN_CONSOLE_DEMO_ACCOUNTS", "")
            if raw:
                self.demo_accounts = _parse_demo_accounts(raw)
        if self.log_dir is None:
            env_log = os.getenv("ADMIN_CONSOLE_LOG_DIR")
            self.log_dir = Path(env_log) if env_log else self.state_dir / "logs"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @property
    def session_file(self) -> Path:
        return self.state_dir / "session.json"

    @property
    def cookie_file(self) -> Path:
        return self.state_dir / "cookies.json"

    @property
    def service_root(self) -> str:
        """Scheme and host of ``api_url``; the health probe lives there."""
        parts = urlsplit(self.api_url)
        return f"{parts.scheme}://{parts.netloc}"
