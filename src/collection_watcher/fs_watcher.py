"""Watch subscriptions built on the watchdog library."""

import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .config import WatcherConfig
from .exceptions import SubscriptionError
from .models import RawEventType, RawFSEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[RawFSEvent], Awaitable[None]]
ErrorHandler = Callable[[BaseException], None]
PathFilter = Callable[[Path], bool]


class EventDebouncer:
    """
    Debounces rapid notifications for the same path.

    Editors and atomic saves produce bursts (truncate + write, or
    unlink + create) for one logical change; this coalesces them before
    they reach a channel.
    """

    def __init__(self, debounce_ms: int = 50):
        """
        Initialize the debouncer.

        Args:
            debounce_ms: Debounce window in milliseconds
        """
        self.debounce_ms = debounce_ms
        self._pending: Dict[Path, RawFSEvent] = {}
        self._lock = threading.Lock()

    def add(self, event: RawFSEvent) -> None:
        """
        Add an event to the debouncer.

        Coalescing rules:
        - Multiple CHANGEs → single CHANGE (latest timestamp)
        - ADD then CHANGE → single ADD
        - ADD then UNLINK → cancel out (no event)
        - UNLINK then ADD → CHANGE (file replaced)
        - CHANGE then UNLINK → UNLINK

        Args:
            event: The raw event to add
        """
        with self._lock:
            path = event.path

            if path not in self._pending:
                self._pending[path] = event
                return

            existing = self._pending[path]

            if event.event_type == RawEventType.CHANGE:
                if existing.event_type == RawEventType.UNLINK:
                    self._pending[path] = event
                else:
                    existing.timestamp = event.timestamp

            elif event.event_type == RawEventType.UNLINK:
                if existing.event_type == RawEventType.ADD:
                    del self._pending[path]
                else:
                    self._pending[path] = event

            elif event.event_type == RawEventType.ADD:
                if existing.event_type == RawEventType.UNLINK:
                    self._pending[path] = RawFSEvent(
                        event_type=RawEventType.CHANGE,
                        path=path,
                        is_directory=event.is_directory,
                        timestamp=event.timestamp,
                    )
                else:
                    existing.timestamp = event.timestamp

    def flush(self, current_time: float) -> List[RawFSEvent]:
        """
        Flush events older than the debounce window.

        Args:
            current_time: Current timestamp

        Returns:
            List of events ready to deliver, in arrival order
        """
        window_sec = self.debounce_ms / 1000.0
        ready = []

        with self._lock:
            for path, event in list(self._pending.items()):
                if (current_time - event.timestamp) >= window_sec:
                    ready.append(event)
                    del self._pending[path]

        return ready

    def flush_all(self) -> List[RawFSEvent]:
        """Flush all pending events regardless of time."""
        with self._lock:
            events = list(self._pending.values())
            self._pending.clear()
            return events

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


class SubscriptionEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to RawFSEvent."""

    def __init__(self, subscription: "WatchSubscription"):
        super().__init__()
        self.subscription = subscription

    def on_created(self, event):
        is_dir = isinstance(event, DirCreatedEvent)
        self.subscription.push(RawEventType.ADD, Path(event.src_path), is_dir)

    def on_deleted(self, event):
        is_dir = isinstance(event, DirDeletedEvent)
        self.subscription.push(RawEventType.UNLINK, Path(event.src_path), is_dir)

    def on_modified(self, event):
        is_dir = isinstance(event, DirModifiedEvent)
        self.subscription.push(RawEventType.CHANGE, Path(event.src_path), is_dir)

    def on_moved(self, event):
        # A rename is reported as unlink of the source and add of the target.
        is_dir = isinstance(event, DirMovedEvent)
        self.subscription.push(RawEventType.UNLINK, Path(event.src_path), is_dir)
        self.subscription.push(RawEventType.ADD, Path(event.dest_path), is_dir)


def collapse_roots(roots: Iterable[Path]) -> List[Path]:
    """Drop roots that sit inside another root of the same set."""
    resolved = sorted({Path(r).resolve() for r in roots}, key=lambda p: len(p.parts))
    kept: List[Path] = []
    for root in resolved:
        if any(root == k or k in root.parents for k in kept):
            continue
        kept.append(root)
    return kept


class WatchSubscription:
    """
    A single watchdog observer over a set of roots.

    Raw notifications arrive on the observer thread, are filtered and
    debounced there, and are delivered one at a time to an async handler
    on the event loop that started the subscription. Directory events are
    never delivered.
    """

    def __init__(
        self,
        name: str,
        roots: Iterable[Path],
        handler: EventHandler,
        on_error: ErrorHandler,
        config: Optional[WatcherConfig] = None,
        path_filter: Optional[PathFilter] = None,
        debounce_ms: Optional[int] = None,
    ):
        """
        Initialize the subscription.

        Args:
            name: Label used in logs (e.g. "manifest", "logic")
            roots: Directories to watch
            handler: Coroutine called for each delivered event
            on_error: Callback for watch errors and handler failures
            config: Watcher configuration
            path_filter: Extra predicate a file path must satisfy
            debounce_ms: Override of config.debounce_ms
        """
        self.name = name
        self.config = config or WatcherConfig()
        self.roots = collapse_roots(roots)
        self.handler = handler
        self.on_error = on_error
        self.path_filter = path_filter
        self._debouncer = EventDebouncer(
            self.config.debounce_ms if debounce_ms is None else debounce_ms
        )
        self._observer: Optional[Observer] = None
        self._task: Optional[asyncio.Task] = None
        self._watched: List[Path] = []
        self._ready = False
        self._closed = False
        self._delivering = False

    def accepts(self, path: Path, is_directory: bool = False) -> bool:
        """Check whether a raw notification for path should be delivered."""
        if is_directory or self.config.should_ignore(path):
            return False
        if self.path_filter is not None and not self.path_filter(path):
            return False
        return True

    def push(self, event_type: RawEventType, path: Path, is_directory: bool = False) -> None:
        """Record a raw notification. Safe to call from any thread."""
        if self._closed or not self.accepts(path, is_directory):
            return

        event = RawFSEvent(event_type=event_type, path=path, is_directory=is_directory)
        logger.debug(f"[{self.name}] raw {event_type.value}: {path}")
        self._debouncer.add(event)

    async def start(self) -> "WatchSubscription":
        """
        Schedule the observer and begin delivering events.

        Returns:
            self, once every root is being watched

        Raises:
            SubscriptionError: If a root cannot be watched and permission
                errors are not being ignored
        """
        if self._ready:
            return self
        if self._closed:
            raise SubscriptionError(f"{self.name} subscription is closed")

        observer = Observer()
        event_handler = SubscriptionEventHandler(self)

        for root in self.roots:
            try:
                if not root.is_dir():
                    raise FileNotFoundError(f"watch root does not exist: {root}")
                observer.schedule(event_handler, str(root), recursive=self.config.recursive)
            except OSError as e:
                if not self.config.ignore_permission_errors:
                    raise SubscriptionError(f"Cannot watch {root}: {e}") from e
                logger.warning(f"[{self.name}] skipping watch root {root}: {e}")
                self.on_error(e)
                continue
            self._watched.append(root)

        try:
            observer.start()
        except OSError as e:
            raise SubscriptionError(f"Cannot start {self.name} watcher: {e}") from e

        self._observer = observer
        self._task = asyncio.get_running_loop().create_task(self._deliver_loop())
        self._ready = True
        logger.info(f"[{self.name}] watching {len(self._watched)} root(s)")
        return self

    async def _deliver_loop(self) -> None:
        """Periodically flush the debouncer and deliver ready events in order."""
        interval = self.config.flush_interval_ms / 1000.0
        observer_reported = False

        while not self._closed:
            await asyncio.sleep(interval)

            for event in self._debouncer.flush(time.time()):
                if self._closed:
                    return
                self._delivering = True
                try:
                    await self._deliver(event)
                finally:
                    self._delivering = False

            if self._observer is not None and not self._observer.is_alive() and not observer_reported:
                observer_reported = True
                self.on_error(SubscriptionError(f"{self.name} observer thread stopped"))

    async def _deliver(self, event: RawFSEvent) -> None:
        try:
            await self.handler(event)
        except Exception as e:
            logger.exception(f"[{self.name}] failed to handle {event.event_type.value} {event.path}")
            self.on_error(e)

    async def close(self) -> None:
        """
        Stop delivering events and release the observer.

        Events already handed to the handler run to completion; pending
        debounced events are discarded.
        """
        if self._closed:
            return
        self._closed = True
        self._debouncer.clear()

        if self._task is not None and self._task is not asyncio.current_task():
            if self._delivering:
                # Let the event being handled finish; the loop exits afterwards.
                await self._task
            else:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
        self._task = None

        if self._observer is not None:
            observer = self._observer
            self._observer = None
            observer.stop()
            await asyncio.to_thread(observer.join, self.config.shutdown_timeout_s)

        self._ready = False
        logger.info(f"[{self.name}] watcher closed")

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_watched_roots(self) -> List[Path]:
        return list(self._watched)

    def pending_count(self) -> int:
        return len(self._debouncer)
