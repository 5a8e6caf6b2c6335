"""Entry point for the admin console.

Usage:
    python -m admin_console [options] COMMAND ...

Commands:
    login --email EMAIL [--password PW]   Log in (prompts for the password when omitted)
    logout                                Log out and forget the local session
    whoami                                Verify the stored session and print it
    ping                                  Test the connection to the backend
    kv watch [--pattern P] [--prefix X]   Live stats and key listing until Ctrl-C
    kv show NAME                          Print one key with its value
    kv delete NAME [--yes]                Delete a key after confirmation
    kv flush [--yes]                      Delete every key after confirmation
    products list [--status S] [--page N] List products
    media upload FILE [--scope S] [--bucket B]

Options:
    --api-url URL      Admin API base URL (default: ADMIN_CONSOLE_API_URL or http://localhost:8000/api/admin)
    --state-dir DIR    Where the session record and cookies live (default: ~/.admin_console)
    --verbose          Debug output on the console
"""

import argparse
import asyncio
import getpass
import json
import logging
import signal
import sys
from pathlib import Path

from .api.errors import ApiError, NotAuthenticated, SessionExpired
from .config import ConsoleConfig
from .console import Console, open_console
from .kv.formatting import format_ttl
from .kv.models import KeyListing, StatsSnapshot
from .logging import get_logger, setup_logging
from .session.persistence import StoreEvent

logger = get_logger("cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_AUTH = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="admin-console", description="Admin Console")
    parser.add_argument("--api-url", default="", help="Admin API base URL")
    parser.add_argument("--state-dir", default=None, help="Session/cookie directory")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in")
    login.add_argument("--email", required=True)
    login.add_argument("--password", default=None)

    commands.add_parser("logout", help="Log out")
    commands.add_parser("whoami", help="Show the current session")
    commands.add_parser("ping", help="Test the backend connection")

    kv = commands.add_parser("kv", help="Key-value store")
    kv_commands = kv.add_subparsers(dest="kv_command", required=True)
    watch = kv_commands.add_parser("watch", help="Live stats and key listing")
    watch.add_argument("--pattern", default="*")
    watch.add_argument("--prefix", default=None)
    watch.add_argument("--duration", type=float, default=None, help="Stop after N seconds")
    show = kv_commands.add_parser("show", help="Show one key")
    show.add_argument("name")
    delete = kv_commands.add_parser("delete", help="Delete one key")
    delete.add_argument("name")
    delete.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    flush = kv_commands.add_parser("flush", help="Delete every key")
    flush.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    products = commands.add_parser("products", help="Products")
    product_commands = products.add_subparsers(dest="products_command", required=True)
    plist = product_commands.add_parser("list", help="List products")
    plist.add_argument("--status", default=None)
    plist.add_argument("--page", type=int, default=None)

    media = commands.add_parser("media", help="Media")
    media_commands = media.add_subparsers(dest="media_command", required=True)
    upload = media_commands.add_parser("upload", help="Upload a file")
    upload.add_argument("file", type=Path)
    upload.add_argument("--scope", default="general")
    upload.add_argument("--bucket", default="products")

    return parser


def config_from_args(args: argparse.Namespace) -> ConsoleConfig:
    return ConsoleConfig(
        api_url=args.api_url,
        state_dir=Path(args.state_dir) if args.state_dir else None,
    )


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _print_stats(stats: StatsSnapshot) -> None:
    status = "connected" if stats.connected else "disconnected"
    print(
        f"[stats] {status} | hit rate {stats.hit_rate}% | memory {stats.memory_used_human}"
        f" | clients {stats.connected_clients}"
    )
    for prefix, count in sorted(stats.prefix_counts.items()):
        print(f"          {prefix}: {count}")


def _print_keys(listing: KeyListing) -> None:
    print(f"[keys] {listing.total_count} key(s)")
    for entry in listing.keys:
        print(f"  {entry.name}  ({entry.type}, ttl {entry.ttl_label})")


async def _confirm_prompt(prompt: str) -> bool:
    answer = await asyncio.to_thread(input, f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _always_yes(prompt: str) -> bool:
    return True


async def _authenticated(console: Console) -> None:
    await console.sessions.initialize()
    console.sessions.require_authenticated()


async def cmd_login(console: Console, args) -> int:
    password = args.password
    if password is None:
        password = await asyncio.to_thread(getpass.getpass, "Password: ")
    result = await console.sessions.login(args.email, password)
    if not result.success:
        logger.error(f"Login failed: {result.error}")
        return EXIT_AUTH
    print(f"Logged in as {result.user.display_name} <{result.user.email}> ({result.user.role})")
    return EXIT_OK


async def cmd_logout(console: Console, args) -> int:
    await console.sessions.logout()
    print("Logged out")
    return EXIT_OK


async def cmd_whoami(console: Console, args) -> int:
    state = await console.sessions.initialize()
    session = console.sessions.session
    if session is None:
        print(f"{state.value}")
        return EXIT_AUTH
    print(f"{state.value}: {session.display_name} <{session.email}> ({session.role})")
    print(f"  since {session.login_time.isoformat()}")
    return EXIT_OK


async def cmd_ping(console: Console, args) -> int:
    result = await console.api.ping()
    _print_json(result)
    return EXIT_OK if result.get("success") else EXIT_ERROR


async def cmd_kv(console: Console, args) -> int:
    await _authenticated(console)

    if args.kv_command == "watch":
        return await _kv_watch(console, args)

    panel = console.panel(on_error=lambda message: logger.error(message))
    panel.mount(schedule=False)
    try:
        if args.kv_command == "show":
            detail = await panel.load_key_detail(args.name)
            if detail is None:
                return EXIT_ERROR
            print(f"key:  {detail.name}")
            print(f"type: {detail.type}")
            print(f"ttl:  {format_ttl(detail.ttl_seconds)}")
            print(f"size: {detail.size_label}")
            print(detail.render_value())
            return EXIT_OK

        confirm = _always_yes if args.yes else _confirm_prompt
        if args.kv_command == "delete":
            command = await panel.delete_key(args.name, confirm)
        else:
            command = await panel.flush(confirm)
        print(f"{command.action} {command.target}: {command.phase.value}")
        return EXIT_OK if command.succeeded or command.error is None else EXIT_ERROR
    finally:
        await panel.unmount()


async def _kv_watch(console: Console, args) -> int:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    panel = console.panel(
        pattern=args.pattern,
        prefix=args.prefix,
        on_stats=_print_stats,
        on_keys=_print_keys,
    )
    # A forced logout tears the panel down; stop waiting then too
    unsubscribe = console.store.subscribe(
        lambda event: shutdown_event.set() if event is StoreEvent.EXPIRED else None
    )
    panel.mount()
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=args.duration)
    except asyncio.TimeoutError:
        pass
    finally:
        unsubscribe()
        await panel.unmount()
    return EXIT_OK if console.sessions.is_authenticated else EXIT_AUTH


async def cmd_products(console: Console, args) -> int:
    await _authenticated(console)
    _print_json(await console.api.products.list(status=args.status, page=args.page))
    return EXIT_OK


async def cmd_media(console: Console, args) -> int:
    await _authenticated(console)
    _print_json(await console.api.media.upload(args.file, scope=args.scope, bucket=args.bucket))
    return EXIT_OK


COMMANDS = {
    "login": cmd_login,
    "logout": cmd_logout,
    "whoami": cmd_whoami,
    "ping": cmd_ping,
    "kv": cmd_kv,
    "products": cmd_products,
    "media": cmd_media,
}


async def run(config: ConsoleConfig, args: argparse.Namespace) -> int:
    async with open_console(config) as console:
        def on_store_event(event: StoreEvent):
            # A rejected login also answers 401; that is not an expiry
            if event is StoreEvent.EXPIRED and args.command != "login":
                print("Session expired. Run `admin-console login` to sign in again.", file=sys.stderr)

        console.store.subscribe(on_store_event)
        try:
            return await COMMANDS[args.command](console, args)
        except NotAuthenticated as e:
            logger.error(f"{e}. Run `admin-console login` first.")
            return EXIT_AUTH
        except SessionExpired:
            return EXIT_AUTH
        except ApiError as e:
            logger.error(str(e))
            return EXIT_ERROR


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    setup_logging(
        config.log_dir,
        console_level=logging.DEBUG if args.verbose else logging.INFO,
    )
    try:
        return asyncio.run(run(config, args))
    except KeyboardInterrupt:
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
