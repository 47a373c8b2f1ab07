"""Cooperative stop for long CLI runs.

The first SIGINT/SIGTERM asks running loops to stop at the next task or
batch boundary; a second one exits immediately.
"""

import signal
import sys
import threading
from typing import Callable, List, Optional

from superscraper.logging_config import get_logger

__all__ = [
    "StopHandler",
    "get_stop_handler",
    "register_stop",
]

logger = get_logger("shutdown")


class StopHandler:
    """Forwards termination signals to registered stop callbacks.

    Usage:
        state = RunState()
        handler = get_stop_handler().install()
        handler.register_stop(state.request_stop)
        run_extraction(sources, extractor, state)
        handler.uninstall()
    """

    _instance: Optional["StopHandler"] = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._stop_requested = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._original_sigint = None
        self._original_sigterm = None
        self._installed = False

    @classmethod
    def get_instance(cls) -> "StopHandler":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def install(self) -> "StopHandler":
        """Install signal handlers. Returns self for chaining."""
        if self._installed:
            return self
        self._original_sigint = signal.getsignal(signal.SIGINT)
        self._original_sigterm = signal.getsignal(signal.SIGTERM)
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)
        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore the previous handlers and forget callbacks."""
        if self._installed:
            if self._original_sigint is not None:
                signal.signal(signal.SIGINT, self._original_sigint)
            if self._original_sigterm is not None:
                signal.signal(signal.SIGTERM, self._original_sigterm)
            self._installed = False
        self._callbacks.clear()
        self._stop_requested.clear()

    def _handle_signal(self, signum: int, frame) -> None:
        name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        print(f"\n⚠️  Received {name} - stopping after the current step...")
        print("    (Press Ctrl+C again to force quit)\n")
        self.request_stop()
        signal.signal(signum, self._force_exit)

    def _force_exit(self, signum: int, frame) -> None:
        print("\n❌ Force quitting...")
        sys.exit(1)

    def request_stop(self) -> None:
        """Set the flag and notify every registered callback once."""
        if self._stop_requested.is_set():
            return
        self._stop_requested.set()
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception as e:
                logger.warning(f"Stop callback failed: {e}")

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def register_stop(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` when a stop is requested (immediately if already)."""
        self._callbacks.append(callback)
        if self._stop_requested.is_set():
            callback()


def get_stop_handler() -> StopHandler:
    """The process-wide handler."""
    return StopHandler.get_instance()


def register_stop(callback: Callable[[], None]) -> None:
    get_stop_handler().register_stop(callback)
