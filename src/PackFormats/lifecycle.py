# === NAVMAP v1 ===
# {
#   "module": "PackFormats.lifecycle",
#   "purpose": "Flush-on-exit supervision for signals, uncaught faults, and loop errors",
#   "sections": [
#     {
#       "id": "processhooks",
#       "name": "ProcessHooks",
#       "anchor": "class-processhooks",
#       "kind": "class"
#     },
#     {
#       "id": "lifecyclesupervisor",
#       "name": "LifecycleSupervisor",
#       "anchor": "class-lifecyclesupervisor",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Lifecycle supervision for the mapping store.

Once a single version has been resolved the mapping on disk must reflect it,
however the process ends. :class:`LifecycleSupervisor` arms, once and before
any mutation:

- handlers for SIGINT, SIGTERM and (on Windows) SIGBREAK → flush, exit 130;
- a :data:`sys.excepthook` wrapper for uncaught faults → flush, exit 1;
- an asyncio loop exception handler for unretrieved task errors → flush, exit 1;
- an :mod:`atexit` flush as the final safety net.

Each handler flushes without ever raising and then terminates. A handler fires
at most once; if termination is already under way, later hooks only exit.
In-flight resolutions are not awaited: whatever has not completed is absent
from the mapping and gets re-planned on the next run.

Process-level registration goes through :class:`ProcessHooks` so tests can
substitute a recording fake.
"""

from __future__ import annotations

import asyncio
import atexit
import contextlib
import logging
import os
import signal
import sys
import threading
from types import TracebackType
from typing import Any, Callable, Dict, Iterator, List, Optional, Type

from .errors import PackFormatsError

__all__ = [
    "EXIT_OK",
    "EXIT_FAULT",
    "EXIT_INTERRUPTED",
    "ProcessHooks",
    "LifecycleSupervisor",
]

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAULT = 1
EXIT_INTERRUPTED = 130  # 128 + SIGINT

ExceptHook = Callable[[Type[BaseException], BaseException, Optional[TracebackType]], Any]


def _interrupt_signals() -> List[int]:
    names = ("SIGINT", "SIGTERM", "SIGBREAK")
    return [getattr(signal, name) for name in names if hasattr(signal, name)]


class ProcessHooks:
    """Host registration API used by the supervisor."""

    def install_signal(self, signum: int, handler: Callable[[int, Any], None]) -> Any:
        return signal.signal(signum, handler)

    def install_excepthook(self, hook: ExceptHook) -> ExceptHook:
        previous = sys.excepthook
        sys.excepthook = hook
        return previous

    def register_atexit(self, func: Callable[[], None]) -> None:
        atexit.register(func)

    def unregister_atexit(self, func: Callable[[], None]) -> None:
        atexit.unregister(func)

    def exit(self, status: int) -> None:
        sys.exit(status)

    def hard_exit(self, status: int) -> None:
        """Terminate from contexts where ``SystemExit`` would be swallowed."""

        for stream in (sys.stdout, sys.stderr):
            with contextlib.suppress(Exception):
                stream.flush()
        os._exit(status)


class LifecycleSupervisor:
    """Arms flush-on-exit behaviour around a flush callable."""

    def __init__(self, flush: Callable[[], Any], hooks: Optional[ProcessHooks] = None) -> None:
        self._flush = flush
        self.hooks = hooks or ProcessHooks()
        self._armed = False
        self._terminating = False
        self.fired: List[str] = []
        self._previous_signals: Dict[int, Any] = {}
        self._previous_excepthook: Optional[ExceptHook] = None

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        """Register every handler. Subsequent calls are no-ops."""

        if self._armed:
            return
        self._armed = True

        if threading.current_thread() is threading.main_thread():
            for signum in _interrupt_signals():
                self._previous_signals[signum] = self.hooks.install_signal(
                    signum, self._on_signal
                )
        else:
            LOGGER.warning("Not on the main thread; signal handlers were not installed")

        self._previous_excepthook = self.hooks.install_excepthook(self._on_uncaught)
        self.hooks.register_atexit(self.safe_flush)
        LOGGER.debug("Lifecycle handlers armed")

    def disarm(self) -> None:
        """Restore the handlers that were in place before :meth:`arm`."""

        if not self._armed:
            return
        for signum, previous in self._previous_signals.items():
            if previous is not None:
                self.hooks.install_signal(signum, previous)
        self._previous_signals.clear()
        if self._previous_excepthook is not None:
            self.hooks.install_excepthook(self._previous_excepthook)
            self._previous_excepthook = None
        self.hooks.unregister_atexit(self.safe_flush)
        self._armed = False

    def install_loop_handler(self, loop: asyncio.AbstractEventLoop) -> None:
        """Treat unhandled exceptions reported by ``loop`` as faults."""

        loop.set_exception_handler(self._on_loop_exception)

    def safe_flush(self) -> None:
        """Flush, logging instead of raising on failure."""

        try:
            self._flush()
        except Exception:  # noqa: BLE001 - handlers must never raise
            LOGGER.exception("Flush during shutdown failed")

    @contextlib.contextmanager
    def supervise(self) -> Iterator["LifecycleSupervisor"]:
        """Arm, run the body, and map its outcome to a flush and exit status."""

        self.arm()
        try:
            yield self
        except KeyboardInterrupt:
            LOGGER.warning("Interrupted")
            self._terminate("interrupt", EXIT_INTERRUPTED)
        except PackFormatsError as exc:
            LOGGER.error("%s", exc)
            self._terminate("fatal", EXIT_FAULT)
        except Exception:
            LOGGER.exception("Unhandled fault")
            self._terminate("fault", EXIT_FAULT)
        else:
            self.safe_flush()

    def _terminate(self, cause: str, status: int, *, hard: bool = False) -> None:
        exit_fn = self.hooks.hard_exit if hard else self.hooks.exit
        if self._terminating:
            exit_fn(status)
            return
        self._terminating = True
        self.fired.append(cause)
        self.safe_flush()
        exit_fn(status)

    def _on_signal(self, signum: int, frame: Any) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        LOGGER.warning("Received %s; flushing before exit", name)
        self._terminate(f"signal:{name}", EXIT_INTERRUPTED)

    def _on_uncaught(
        self,
        exc_type: Type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        # The interpreter is already exiting; status follows from the exception.
        if not self._terminating:
            self._terminating = True
            self.fired.append("uncaught")
            self.safe_flush()
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        LOGGER.error(
            "Unhandled asynchronous error: %s",
            context.get("message", "unknown"),
            exc_info=(type(exc), exc, exc.__traceback__) if exc is not None else None,
        )
        self._terminate("async", EXIT_FAULT, hard=True)
