import asyncio
import logging

import pytest

from admin_console.kv.polling import PollStream
from admin_console.logging import LOGGER_ROOT, FileFormatter, get_logger, setup_logging
from admin_console.session import DemoCredentialVerifier, SessionManager, SessionStore


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.DEBUG)
        self.lines = []
        self.setFormatter(FileFormatter())

    def emit(self, record):
        self.lines.append(self.format(record))


@pytest.fixture
def console_logger():
    """The package logger, restored to its pristine state afterwards."""
    root = logging.getLogger(LOGGER_ROOT)
    saved = (root.level, list(root.handlers), root.propagate)
    yield root
    for handler in root.handlers:
        if handler not in saved[1]:
            handler.close()
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]
    root.propagate = saved[2]


@pytest.fixture
def captured(console_logger):
    handler = ListHandler()
    console_logger.setLevel(logging.DEBUG)
    console_logger.addHandler(handler)
    return handler.lines


def test_superseded_poll_is_logged_with_its_generation(captured):
    async def scenario():
        gate = asyncio.Event()

        async def fetch():
            await gate.wait()
            return "value"

        stream = PollStream("keys", fetch, interval=60)
        stream.start(schedule=False)
        first = asyncio.create_task(stream.poll())
        await asyncio.sleep(0)
        second = asyncio.create_task(stream.poll())
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

    asyncio.run(scenario())
    superseded = [line for line in captured if "superseded" in line]
    assert len(superseded) == 1
    assert "[CONSOLE.kv] DEBUG: keys poll superseded by #2, discarded generation=1" in superseded[0]


def test_login_is_logged_with_user_id(captured):
    async def scenario():
        manager = SessionManager(
            api=None,
            store=SessionStore(),
            verifier=DemoCredentialVerifier({"ops@example.com": "pw"}),
        )
        await manager.login("ops@example.com", "pw")

    asyncio.run(scenario())
    logins = [line for line in captured if "Logged in as" in line]
    assert logins and logins[0].endswith("user_id=demo:ops@example.com")
    assert "[CONSOLE.session] INFO:" in logins[0]


def test_setup_logging_writes_file_and_latest_link(console_logger, tmp_path):
    log_path = setup_logging(tmp_path / "logs", console_level=logging.CRITICAL)
    get_logger("cli").warning("disk almost full")
    for handler in console_logger.handlers:
        handler.flush()

    assert log_path.parent == tmp_path / "logs"
    assert "[CONSOLE.cli] WARNING: disk almost full" in log_path.read_text(encoding="utf-8")
    latest = tmp_path / "logs" / "latest.log"
    if latest.is_symlink():
        assert latest.resolve() == log_path.resolve()


def test_setup_logging_without_dir_is_console_only(console_logger):
    assert setup_logging(None) is None
    assert [type(h) for h in console_logger.handlers] == [logging.StreamHandler]
