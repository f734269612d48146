"""
Continuation predicates for the poll loop.

The poll loop asks its Loop once per iteration whether to keep going,
which lets signals or callers stop a worker between jobs.
"""

import asyncio
import logging
import signal
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Loop(ABC):
    """Decides whether the poll loop may run another iteration."""

    @abstractmethod
    def can_continue(self) -> bool:
        """Return False to stop the poll loop before the next reservation."""


class SimpleLoop(Loop):
    """Runs until stop() is called."""

    def __init__(self) -> None:
        self._stopped = False

    def stop(self) -> None:
        """Stop the poll loop at its next check."""
        self._stopped = True

    def can_continue(self) -> bool:
        return not self._stopped


class SignalLoop(SimpleLoop):
    """
    Stops on process signals.

    The job being handled when a signal arrives is finished and released
    before the loop exits.
    """

    DEFAULT_SIGNALS = (signal.SIGTERM, signal.SIGINT, signal.SIGHUP)

    def __init__(self, signals: tuple[signal.Signals, ...] = DEFAULT_SIGNALS):
        super().__init__()
        self._signals = signals

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Register signal handlers on the event loop.

        Args:
            loop: Event loop to register on. Defaults to the running loop.
        """
        loop = loop or asyncio.get_running_loop()
        for sig in self._signals:
            loop.add_signal_handler(sig, self._on_signal, sig)

    def uninstall(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Remove the handlers registered by install()."""
        loop = loop or asyncio.get_running_loop()
        for sig in self._signals:
            loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("Received signal, stopping", extra={"signal": sig.name})
        self.stop()
