"""Lifecycle coordinator: starts both watch channels and drives reloads."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from .config import WatcherConfig
from .events import READY_WATCHERS, EventSink
from .exceptions import SubscriptionError, WatcherNotRunningError
from .fs_watcher import WatchSubscription
from .gate import StartupGate
from .invalidator import invalidate
from .logic_channel import LogicWatchChannel
from .manifest_channel import ManifestWatchChannel
from .models import LifecycleEvent, LifecycleEventType
from .protocols import LoaderProtocol, RegistryProtocol, ReinitializerProtocol

logger = logging.getLogger(__name__)

Listener = Callable[[LifecycleEvent], Union[None, Awaitable[None]]]
Watchers = Tuple[WatchSubscription, WatchSubscription]


class LifecycleCoordinator:
    """
    Public entry point of the collection watcher.

    Waits for the startup gate, starts the manifest channel and then the
    logic channel (whose watch set comes from the collections known at that
    point), and turns their events into cache invalidation, loader calls
    and published lifecycle events.
    """

    def __init__(
        self,
        registry: RegistryProtocol,
        loader: LoaderProtocol,
        events: Optional[EventSink] = None,
        gate: Optional[StartupGate] = None,
        reinitializer: Optional[ReinitializerProtocol] = None,
        config: Optional[WatcherConfig] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            registry: Collection registry shared by both channels
            loader: Loads and unloads collection code
            events: Process-wide sink; a private one is created if omitted
            gate: Startup gate; defaults to one bound to the sink's
                all_collections_loaded signal
            reinitializer: Hook refreshing path-to-route mappings
            config: Watcher configuration
        """
        self.config = config or WatcherConfig()
        self.registry = registry
        self.loader = loader
        self.events = events or EventSink()
        self.gate = gate or StartupGate.from_sink(self.events)

        self.manifest_channel = ManifestWatchChannel(
            registry, self.events, self._on_channel_event, reinitializer, self.config
        )
        self.logic_channel = LogicWatchChannel(
            registry, self.events, self._on_channel_event, reinitializer, self.config
        )

        self._queues: List[asyncio.Queue] = []
        self._listeners: List[Listener] = []
        self._starting: Optional[asyncio.Future] = None
        self._watchers: Optional[Watchers] = None

    async def start_all(self) -> Watchers:
        """
        Start both channels once the startup gate has opened.

        Returns:
            (manifest subscription, logic subscription)

        Raises:
            SubscriptionError: If either subscription fails before it is ready
        """
        if self._starting is None:
            self._starting = asyncio.ensure_future(self._start_all())
        starting = self._starting
        try:
            return await asyncio.shield(starting)
        except Exception:
            if self._starting is starting:
                self._starting = None
            raise

    async def _start_all(self) -> Watchers:
        await self.gate.wait()

        manifest = await self.manifest_channel.start()
        try:
            logic = await self.logic_channel.start()
        except SubscriptionError:
            await self.manifest_channel.close()
            raise

        self._watchers = (manifest, logic)
        self.events.emit(READY_WATCHERS, self._watchers)
        self.events.info("Watchers ready")
        return self._watchers

    async def close(self) -> None:
        """
        Stop both channels.

        Loader calls already under way finish; nothing new is delivered.
        A start still waiting on the gate is cancelled.
        """
        starting = self._starting
        self._starting = None
        self._watchers = None
        if starting is not None and not starting.done():
            starting.cancel()
            try:
                await starting
            except (asyncio.CancelledError, SubscriptionError):
                pass

        await self.manifest_channel.close()
        await self.logic_channel.close()

    @property
    def is_running(self) -> bool:
        return self._watchers is not None

    @property
    def watchers(self) -> Watchers:
        if self._watchers is None:
            raise WatcherNotRunningError("Watchers have not been started")
        return self._watchers

    def subscribe(self, maxsize: int = 0) -> "asyncio.Queue[LifecycleEvent]":
        """
        Create a queue receiving every published lifecycle event in order.

        A full bounded queue drops the event with a warning.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> bool:
        if queue in self._queues:
            self._queues.remove(queue)
            return True
        return False

    def add_listener(self, listener: Listener) -> None:
        """Register a plain or async callback for every published event."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> bool:
        if listener in self._listeners:
            self._listeners.remove(listener)
            return True
        return False

    async def _on_channel_event(self, event: LifecycleEvent) -> None:
        collection = event.collection

        if event.event_type == LifecycleEventType.ADD:
            self.events.info(f'Collection "{collection.path}" has been added, initializing...')
            invalidate(self.loader, collection.logic_file)
            await self._publish(event)
            await self._request(self.loader.load, collection)

        elif event.event_type == LifecycleEventType.CHANGE:
            self.events.info(
                f'Scripts of the "{collection.name}" collection have been changed, reinitializing...'
            )
            # The logic module may import the changed file, so both go.
            invalidate(self.loader, self.registry.full_path_for_file(event.filename))
            invalidate(self.loader, collection.logic_file)
            await self._publish(event)
            await self._request(self.loader.load, collection)

        elif event.event_type == LifecycleEventType.UNLINK:
            self.events.info(f'Collection "{collection.path}" has been unlinked, removing...')
            invalidate(self.loader, collection.logic_file)
            await self._publish(event)
            await self._request(self.loader.unload, collection.name)

        elif event.event_type == LifecycleEventType.CHANGE_LOGIC:
            await self._publish(event)

    async def _publish(self, event: LifecycleEvent) -> None:
        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full; dropping {event.event_type.value} event")

        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"Lifecycle listener failed on {event.event_type.value}")
                self.events.error(e)

    async def _request(self, action: Callable[..., Awaitable[Any]], *args: Any) -> None:
        # Lifecycle events are never rolled back when the loader fails.
        try:
            await action(*args)
        except Exception as e:
            logger.exception(f"Loader request {getattr(action, '__name__', action)} failed")
            self.events.error(e)

    async def __aenter__(self) -> "LifecycleCoordinator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
