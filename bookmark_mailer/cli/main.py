"""Command line entry point: run, schedule or check the digest locally."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from bookmark_mailer.adapters.aws.parameter_store import ParameterStore
from bookmark_mailer.application.credentials import resolve_credentials
from bookmark_mailer.application.digest_runner import (
    default_client_factory,
    default_mailer_factory,
    run_digest,
)
from bookmark_mailer.config import AppConfig, load_config
from bookmark_mailer.core.logging_utils import generate_correlation_id, setup_json_logging
from bookmark_mailer.domain.exceptions import DigestError
from bookmark_mailer.services.scheduler import SchedulerService

if TYPE_CHECKING:
    from bookmark_mailer.application.use_cases.send_weekly_digest import DigestRunResult

logger = logging.getLogger(__name__)

__all__ = ["main", "parse_args"]


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        msg = f"expected an integer, got {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc
    if not 1 <= number <= 366:
        msg = "must be between 1 and 366"
        raise argparse.ArgumentTypeError(msg)
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="bookmark-mailer",
        description="Mail a weekly digest of recent Raindrop.io bookmarks",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level for this session.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one digest cycle now.")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the digest instead of sending it.",
    )
    run_parser.add_argument(
        "--days",
        type=_positive_int,
        help="Look back this many days instead of DIGEST_LOOKBACK_DAYS.",
    )

    subparsers.add_parser("serve", help="Run the digest on the DIGEST_SCHEDULE cron schedule.")
    subparsers.add_parser("check", help="Verify the Raindrop.io token and connectivity.")
    subparsers.add_parser("test-email", help="Send a test message through SES.")
    return parser.parse_args(argv)


def _print_result(result: DigestRunResult) -> None:
    if result.dry_run:
        print(f"Subject: {result.digest.subject}")
        print()
        print(result.digest.body)
        return
    print(json.dumps(result.stats.to_dict(), ensure_ascii=False, indent=2))


async def run_once(cfg: AppConfig, *, dry_run: bool, days: int | None) -> DigestRunResult:
    result = await run_digest(
        cfg,
        dry_run=dry_run,
        lookback_days=days,
        correlation_id=generate_correlation_id(),
    )
    _print_result(result)
    return result


async def serve(cfg: AppConfig, *, stop_event: asyncio.Event | None = None) -> None:
    """Start the scheduler and block until ``stop_event`` is set or the task is cancelled."""
    scheduler = SchedulerService(cfg)
    await scheduler.start()
    logger.info(
        "scheduler_waiting",
        extra={"next_run_time": str(scheduler.get_next_run_time())},
    )
    stop_event = stop_event or asyncio.Event()
    try:
        await stop_event.wait()
    finally:
        await scheduler.stop()


async def check_connection(cfg: AppConfig) -> bool:
    credentials = await resolve_credentials(cfg, ParameterStore(region=cfg.aws.region))
    async with default_client_factory(credentials, cfg) as client:
        await client.test_connection()
    print("Raindrop.io connection OK")
    return True


async def send_test_email(cfg: AppConfig) -> Any:
    credentials = await resolve_credentials(cfg, ParameterStore(region=cfg.aws.region))
    mailer = default_mailer_factory(credentials, cfg)
    result = await mailer.asend_test_email()
    print(f"Test email sent: {result.message_id}")
    return result


async def dispatch(args: argparse.Namespace, cfg: AppConfig) -> None:
    if args.command == "run":
        await run_once(cfg, dry_run=args.dry_run, days=args.days)
    elif args.command == "serve":
        await serve(cfg)
    elif args.command == "check":
        await check_connection(cfg)
    elif args.command == "test-email":
        await send_test_email(cfg)
    else:  # pragma: no cover - argparse rejects unknown commands
        msg = f"Unknown command: {args.command}"
        raise ValueError(msg)


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``bookmark-mailer`` and ``python -m bookmark_mailer``."""
    args = parse_args(argv)
    try:
        cfg = load_config()
    except DigestError as exc:
        setup_json_logging(args.log_level or "INFO")
        logger.error("cli_config_invalid", extra={"error": exc.message})
        print(f"error: {exc.message}", file=sys.stderr)
        return 1

    setup_json_logging(
        args.log_level or cfg.runtime.log_level,
        serialize=cfg.runtime.log_json,
    )
    try:
        asyncio.run(dispatch(args, cfg))
    except KeyboardInterrupt:  # pragma: no cover - user cancelled
        return 1
    except DigestError as exc:
        logger.error(
            "cli_command_failed",
            extra={"command": args.command, "kind": exc.kind.value, "error": exc.message},
        )
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
