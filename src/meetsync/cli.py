from __future__ import annotations

import argparse
import asyncio
import logging

from .bootstrap import configure_logging
from .config import get_settings
from .domain import CAPACITY
from .services import EventService, ServiceContext, build_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="meetsync command line interface.")
    parser.add_argument("--log-level", default=None, help="Override MEETSYNC_LOG_LEVEL.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API with live sync and recurrence.")
    serve_parser.add_argument("--host", default=settings.server.host)
    serve_parser.add_argument("--port", type=int, default=settings.server.port)
    serve_parser.add_argument("--offline", action="store_true", help="Keep state in memory instead of Supabase.")

    subparsers.add_parser("tick", help="Run one recurrence pass against the shared store and exit.")
    subparsers.add_parser("feed", help="Print the current category feed.")

    return parser


async def _tick_once(context: ServiceContext) -> bool:
    await context.start(run_recurrence=False)
    try:
        changed = context.recurrence.run_once()
        await context.events.flush()
    finally:
        await context.close()
    return changed


async def _print_feed(context: ServiceContext) -> None:
    await context.start(run_recurrence=False)
    try:
        for category, events in EventService(context).feed().items():
            print(f"{category.value}:")
            for event in events:
                seats = f"{len(event.participants)}/{CAPACITY}"
                print(f"  {event.date} {event.time or '--:--'}  {event.title}  [{seats}]")
    finally:
        await context.close()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(level=args.log_level)
    logger.info("meetsync CLI starting (%s)", args.command)
    settings = get_settings()

    if args.command == "serve":
        from .services.http import run_local_server

        context = ServiceContext(store=build_store(settings, offline=args.offline), settings=settings)
        run_local_server(context, host=args.host, port=args.port)
    elif args.command == "tick":
        context = ServiceContext(store=build_store(settings), settings=settings)
        changed = asyncio.run(_tick_once(context))
        logger.info("Recurrence pass finished (%s)", "events updated" if changed else "no changes")
    elif args.command == "feed":
        asyncio.run(_print_feed(ServiceContext(store=build_store(settings), settings=settings)))
    else:  # pragma: no cover - argparse enforces choices
        parser.print_help()


if __name__ == "__main__":
    main()
