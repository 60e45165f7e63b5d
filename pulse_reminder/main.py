"""Pulse reminder entry point.

Usage examples:
    # Run the host daemon (delivers reminders, picks up CLI changes)
    pulse-reminder run

    # Remind every day at 09:00
    pulse-reminder schedule "Check your pulse" "Time for your heart rate check" --at 09:00

    # What is registered right now
    pulse-reminder status

    # Stop reminding
    pulse-reminder cancel

    # Deliver immediately
    pulse-reminder show-now "Test" "It works"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pulse_reminder.config import settings

logger = logging.getLogger(__name__)


def _parse_time(value: str) -> tuple[int, int]:
    try:
        hour_text, minute_text = value.split(":", 1)
        return int(hour_text), int(minute_text)
    except ValueError as exc:
        msg = f"expected HH:MM, got {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulse-reminder", description="Daily reminder scheduling and delivery."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the host daemon")

    p_schedule = sub.add_parser("schedule", help="Schedule the daily reminder")
    p_schedule.add_argument("title")
    p_schedule.add_argument("message")
    p_schedule.add_argument("--at", dest="at", type=_parse_time, required=True, help="HH:MM")

    sub.add_parser("cancel", help="Cancel the daily reminder")
    sub.add_parser("status", help="Show registered reminder tasks")

    p_show = sub.add_parser("show-now", help="Deliver a notification immediately")
    p_show.add_argument("title")
    p_show.add_argument("message")
    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    from pulse_reminder.app import build_runtime, serve

    runtime = build_runtime()

    if args.command == "run":
        logger.info("Starting pulse reminder host (tag=%s)", runtime.commands.tag)
        await serve(runtime)
        return 0

    if args.command == "schedule":
        hour, minute = args.at
        result = await runtime.commands.schedule(args.title, args.message, hour, minute)
    elif args.command == "cancel":
        result = await runtime.commands.cancel()
    elif args.command == "status":
        result = await runtime.commands.status()
    else:
        result = await runtime.commands.show_now(args.title, args.message)

    print(result.to_json())
    return 0 if result.success else 1


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run the requested command."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    args = build_parser().parse_args(argv)
    return asyncio.run(_dispatch(args))


if __name__ == "__main__":
    sys.exit(main())
