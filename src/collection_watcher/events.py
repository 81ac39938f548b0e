"""Process-wide signal bus for informational, warning and error signals."""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

INFO = "info"
WARN = "warn"
ERROR = "error"
ALL_COLLECTIONS_LOADED = "all_collections_loaded"
READY_WATCHERS = "ready_watchers"

Listener = Callable[..., None]


class EventSink:
    """
    Named-signal emitter shared by the registry, channels and coordinator.

    Every signal is also written to the module logger, so a sink with no
    listeners still leaves a trace of warnings and errors.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Tuple[Listener, bool]]] = defaultdict(list)
        self._lock = threading.Lock()

    def on(self, name: str, listener: Listener) -> "EventSink":
        """Register a listener for every emission of a signal."""
        with self._lock:
            self._listeners[name].append((listener, False))
        return self

    def once(self, name: str, listener: Listener) -> "EventSink":
        """Register a listener that is removed after its first call."""
        with self._lock:
            self._listeners[name].append((listener, True))
        return self

    def off(self, name: str, listener: Listener) -> bool:
        """
        Remove a listener.

        Returns:
            True if the listener was registered
        """
        with self._lock:
            entries = self._listeners.get(name, [])
            for i, (registered, _) in enumerate(entries):
                if registered == listener:
                    entries.pop(i)
                    return True
            return False

    def listener_count(self, name: str) -> int:
        with self._lock:
            return len(self._listeners.get(name, []))

    def emit(self, name: str, *args: Any) -> bool:
        """
        Call every listener registered for a signal, in registration order.

        A listener that raises is logged and does not prevent the remaining
        listeners from running.

        Returns:
            True if at least one listener was called
        """
        with self._lock:
            entries = list(self._listeners.get(name, []))
            if any(one_shot for _, one_shot in entries):
                self._listeners[name] = [e for e in self._listeners[name] if not e[1]]

        for listener, _ in entries:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{name}' failed")

        return bool(entries)

    def info(self, message: str) -> None:
        logger.info(message)
        self.emit(INFO, message)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.emit(WARN, message)

    def error(self, error: Any) -> None:
        logger.error(f"{error}")
        self.emit(ERROR, error)
