"""
Client entry point.

Loads configuration, configures logging, logs in (or rehydrates a stored
session), connects realtime, and streams state changes until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from .config import ClientConfig, load_config
from .errors import ApiError, RealtimeAuthError
from .session import ClientSession
from .signals import STATE_CHANGED


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(level)
        ),
    )


async def _run_session(config: ClientConfig, args: argparse.Namespace) -> int:
    log = structlog.get_logger()
    session = ClientSession(config)
    try:
        authenticated = await session.start()

        if args.logout:
            await session.logout()
            return 0

        if not authenticated:
            email, password = config.credentials.email, config.credentials.password
            if not email or not password:
                log.error(
                    "client.missing_credentials",
                    email_env=config.credentials.email_env,
                    password_env=config.credentials.password_env,
                )
                return 1
            await session.login(email, password)

        if args.search is not None:
            session.search.set_query(args.search)
            await session.search.wait_idle()
            print(session.store.search.suggestions.model_dump_json(indent=2))
            return 0

        def _log_change(slice_name: str) -> None:
            store = session.store
            log.info(
                "client.state_changed",
                slice=slice_name,
                unread=store.notifications.unread_count,
                workspaces=len(store.workspaces),
                connected=store.realtime.connected,
                rooms=sorted(store.realtime.rooms),
            )

        subscription = session.bus.subscribe(STATE_CHANGED, _log_change)
        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown.set)

        log.info("client.listening", unread=session.store.notifications.unread_count)
        await shutdown.wait()
        subscription.unsubscribe()
        return 0
    except (ApiError, RealtimeAuthError) as exc:
        log.error("client.failed", error=str(exc))
        return 1
    finally:
        await session.close()


def run() -> None:
    """CLI entry point for the client."""
    parser = argparse.ArgumentParser(description="Tasklane client")
    parser.add_argument(
        "-c", "--config",
        default="tasklane-client.yaml",
        help="Path to configuration file (default: tasklane-client.yaml)",
    )
    parser.add_argument("--search", metavar="QUERY", help="Run one search and print the suggestions")
    parser.add_argument("--logout", action="store_true", help="Forget the stored session and exit")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    structlog.get_logger().info("client.config_loaded", config_path=args.config)

    try:
        sys.exit(asyncio.run(_run_session(config, args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
