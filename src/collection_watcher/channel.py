"""Shared plumbing for the manifest and logic watch channels."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from .config import WatcherConfig
from .events import EventSink
from .exceptions import SubscriptionError
from .fs_watcher import PathFilter, WatchSubscription
from .models import LifecycleEvent, RawEventType, RawFSEvent
from .protocols import RegistryProtocol, ReinitializerProtocol

logger = logging.getLogger(__name__)

LifecycleHandler = Callable[[LifecycleEvent], Awaitable[None]]


class WatchChannel:
    """
    Owns one watch subscription and turns its raw events into lifecycle events.

    Subclasses implement the per-event rules and say which roots to watch.
    """

    name = "channel"

    def __init__(
        self,
        registry: RegistryProtocol,
        events: EventSink,
        on_event: Optional[LifecycleHandler] = None,
        reinitializer: Optional[ReinitializerProtocol] = None,
        config: Optional[WatcherConfig] = None,
    ):
        """
        Initialize the channel.

        Args:
            registry: Resolves paths to collections
            events: Process-wide sink for info, warnings and errors
            on_event: Coroutine receiving every lifecycle event
            reinitializer: Hook refreshing path-to-route mappings
            config: Watcher configuration
        """
        self.registry = registry
        self.events = events
        self.on_event = on_event
        self.reinitializer = reinitializer
        self.config = config or WatcherConfig()
        self._subscription: Optional[WatchSubscription] = None
        self._starting: Optional[asyncio.Future] = None

    async def start(self) -> WatchSubscription:
        """
        Start watching, or return the subscription that already exists.

        Concurrent callers share one start; a failed start can be retried.

        Raises:
            SubscriptionError: If the subscription fails before it is ready
        """
        if self._starting is None:
            self._starting = asyncio.ensure_future(self._open())
        starting = self._starting
        try:
            return await asyncio.shield(starting)
        except Exception:
            if self._starting is starting:
                self._starting = None
            raise

    async def _open(self) -> WatchSubscription:
        subscription = WatchSubscription(
            self.name,
            self.watch_roots(),
            self.handle_event,
            self._on_watch_error,
            config=self.config,
            path_filter=self.path_filter(),
        )
        await subscription.start()
        self._subscription = subscription
        return subscription

    async def close(self) -> None:
        """Stop the subscription; a later start() creates a new one."""
        starting = self._starting
        subscription = self._subscription
        self._subscription = None
        self._starting = None
        if starting is not None and not starting.done():
            starting.cancel()
            try:
                subscription = await starting
            except (asyncio.CancelledError, SubscriptionError):
                pass
            self._subscription = None
        if subscription is not None:
            await subscription.close()

    @property
    def subscription(self) -> Optional[WatchSubscription]:
        return self._subscription

    def watch_roots(self) -> Iterable[Path]:
        raise NotImplementedError

    def path_filter(self) -> Optional[PathFilter]:
        return None

    async def handle_event(self, raw: RawFSEvent) -> None:
        """Apply the channel's rules to one raw event."""
        filename = self.registry.full_path_for_file(raw.path)
        logger.debug(f"[{self.name}] {raw.event_type.value}: {filename}")

        if raw.event_type == RawEventType.ADD:
            await self.on_add(filename)
        elif raw.event_type == RawEventType.CHANGE:
            await self.on_change(filename)
        elif raw.event_type == RawEventType.UNLINK:
            await self.on_unlink(filename)

    async def on_add(self, filename: Path) -> None:
        raise NotImplementedError

    async def on_change(self, filename: Path) -> None:
        raise NotImplementedError

    async def on_unlink(self, filename: Path) -> None:
        raise NotImplementedError

    async def emit(self, event: LifecycleEvent) -> None:
        logger.debug(
            f"[{self.name}] emit {event.event_type.value} "
            f'"{event.collection.name}" ({event.filename or event.collection.path})'
        )
        if self.on_event is not None:
            await self.on_event(event)

    async def reinitialize(self) -> None:
        if self.reinitializer is not None:
            await self.reinitializer.reinitialize()

    def _on_watch_error(self, error: BaseException) -> None:
        self.events.error(error)
