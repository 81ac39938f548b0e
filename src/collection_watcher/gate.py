"""One-shot barrier that holds watching back until the bulk load is done."""

import asyncio
import logging
from typing import Any, Optional

from .events import ALL_COLLECTIONS_LOADED, EventSink

logger = logging.getLogger(__name__)


class StartupGate:
    """
    Resolves exactly once, when the initial bulk collection load completes.

    There is no timeout: if the signal never arrives, wait() never returns
    and watching never starts. resolve() must be called on the event loop
    thread.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._result: Any = None

    @classmethod
    def from_sink(cls, sink: EventSink, signal: str = ALL_COLLECTIONS_LOADED) -> "StartupGate":
        """Create a gate resolved by the first emission of signal on sink."""
        gate = cls()
        sink.once(signal, gate.resolve)
        return gate

    def resolve(self, result: Optional[Any] = None) -> bool:
        """
        Open the gate.

        Returns:
            True on the first call, False if the gate was already open
        """
        if self._event.is_set():
            return False
        self._result = result
        self._event.set()
        logger.debug("Startup gate resolved")
        return True

    async def wait(self) -> Any:
        """Wait for the gate to open; returns the result passed to resolve()."""
        await self._event.wait()
        return self._result

    @property
    def is_resolved(self) -> bool:
        return self._event.is_set()
