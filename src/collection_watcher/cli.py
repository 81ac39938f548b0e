#!/usr/bin/env python3
"""
CLI for watching a collections tree.

Usage:
    collection-watcher watch --glob "collections/**/collection.json"
    collection-watcher list --cwd ./app
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import WatcherConfig
from .coordinator import LifecycleCoordinator
from .events import EventSink
from .loader import ModuleLoader
from .models import LifecycleEvent
from .registry import CollectionRegistry

logger = logging.getLogger("collection_watcher.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._handler)
            except NotImplementedError:
                # Windows event loops have no signal handlers.
                signal.signal(signum, lambda *_: loop.call_soon_threadsafe(self._handler))

    def _handler(self):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit.set()


def build_config(args) -> WatcherConfig:
    config = WatcherConfig.from_env()
    if args.glob:
        config.collections_glob = list(args.glob)
    if args.cwd:
        config.cwd = Path(args.cwd).resolve()
    return config


def log_event(event: LifecycleEvent) -> None:
    target = event.filename or event.collection.path
    logger.info(f'{event.event_type.value}: "{event.collection.name}" ({target})')


async def cmd_watch(args) -> int:
    """Load every collection, then watch for changes until interrupted."""
    config = build_config(args)
    if not config.cwd.is_dir():
        logger.error(f"Working directory does not exist: {config.cwd}")
        return 1

    events = EventSink()
    registry = CollectionRegistry(config, events)
    loader = ModuleLoader(events)
    shutdown = GracefulShutdown()

    async with LifecycleCoordinator(registry, loader, events=events, config=config) as coordinator:
        coordinator.add_listener(log_event)
        starting = asyncio.ensure_future(coordinator.start_all())

        await loader.load_all(registry)
        await starting

        logger.info(f"Watching {len(registry)} collection(s) under {config.cwd}")
        for pattern in config.collections_glob:
            logger.info(f"  - {pattern}")
        logger.info("Press Ctrl+C to stop")

        await shutdown.should_exit.wait()

    logger.info("Watcher stopped")
    return 0


def cmd_list(args) -> int:
    """Print the collections found by a single scan."""
    config = build_config(args)
    registry = CollectionRegistry(config, EventSink())

    collections = registry.find()
    if not collections:
        print("No collections found")
        return 0

    for name, collection in sorted(collections.items()):
        print(f"{name}")
        print(f"  manifest: {collection.path}")
        print(f"  logic:    {collection.logic_file}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collection-watcher",
        description="Watch collections and hot-reload them on change",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("watch", "Watch collections and reload them on change"),
        ("list", "List discovered collections"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--glob",
            action="append",
            help="Manifest glob, repeatable (default: collections/**/collection.json)",
        )
        sub.add_argument("--cwd", help="Base directory for relative globs")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "watch":
        return asyncio.run(cmd_watch(args))
    return cmd_list(args)


if __name__ == "__main__":
    sys.exit(main())
