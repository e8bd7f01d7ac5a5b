"""
Graceful shutdown coordination for migration runs.

Handles signal registration and the shutdown state machine. The coordinator
is a token handed to the runner; the runner observes it between batches and
drives the flush, so a write that started before the signal always finishes.

This module provides:
- ShutdownPhase: Enum of shutdown phases
- ShutdownReason: What triggered the shutdown
- ShutdownCoordinator: Signal handling and phase transitions

Example:
    >>> coordinator = ShutdownCoordinator()
    >>> coordinator.register_signals()
    >>> summary = await MigrationRunner(..., shutdown=coordinator).run()
    >>> coordinator.unregister_signals()
"""

import asyncio
import logging
import signal
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

logger = logging.getLogger(__name__)


class ShutdownPhase(Enum):
    """
    Phases of graceful shutdown.

    The sequence only moves forward:
    1. RUNNING: Normal operation, no shutdown requested
    2. SHUTDOWN_REQUESTED: Signal received, the current batch finishes
    3. FLUSHING: Checkpoint and identity map are being persisted
    4. EXITED: State persisted, the run is paused
    """

    RUNNING = "running"
    """Normal operation, no shutdown requested."""

    SHUTDOWN_REQUESTED = "shutdown_requested"
    """Shutdown requested; observed at the next batch boundary."""

    FLUSHING = "flushing"
    """Persisting checkpoint and identity map."""

    EXITED = "exited"
    """Flush complete."""


class ShutdownReason(Enum):
    """Reason for shutdown initiation."""

    SIGNAL_SIGTERM = "signal_sigterm"
    """Shutdown triggered by SIGTERM signal (container orchestrators, kill)."""

    SIGNAL_SIGINT = "signal_sigint"
    """Shutdown triggered by SIGINT signal (Ctrl+C)."""

    PROGRAMMATIC = "programmatic"
    """Shutdown triggered by application code via request_shutdown()."""


_SIGNAL_REASONS = {
    signal.SIGTERM: ShutdownReason.SIGNAL_SIGTERM,
    signal.SIGINT: ShutdownReason.SIGNAL_SIGINT,
}


@dataclass
class ShutdownCoordinator:
    """
    Coordinates graceful shutdown of a migration run.

    Handles:
    - Signal registration (SIGTERM, SIGINT)
    - Idempotent shutdown requests (a second signal is a logged no-op)
    - Phase transitions driven by the runner

    Attributes:
        requested_at: When shutdown was first requested, None while running
    """

    requested_at: datetime | None = None

    # Internal state
    _phase: ShutdownPhase = field(default=ShutdownPhase.RUNNING, repr=False)
    _shutdown_reason: ShutdownReason | None = field(default=None, repr=False)
    _signal_handlers_registered: bool = field(default=False, repr=False)

    @property
    def phase(self) -> ShutdownPhase:
        return self._phase

    @property
    def shutdown_reason(self) -> ShutdownReason | None:
        return self._shutdown_reason

    @property
    def shutdown_requested(self) -> bool:
        """True once shutdown was requested, in any later phase too."""
        return self._phase != ShutdownPhase.RUNNING

    def register_signals(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Register signal handlers for SIGTERM and SIGINT.

        Args:
            loop: Event loop to register handlers on. Defaults to the
                  running event loop.

        Note:
            On Windows, add_signal_handler is not implemented; the run then
            cannot be paused by a signal.
        """
        if self._signal_handlers_registered:
            logger.warning("Signal handlers already registered")
            return

        loop = loop or asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
                logger.debug("Registered signal handler", extra={"signal": sig.name})
            except NotImplementedError:
                logger.warning(
                    "Signal handling not supported on this platform",
                    extra={"signal": sig.name},
                )

        self._signal_handlers_registered = True

    def unregister_signals(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Remove the handlers installed by register_signals().

        Args:
            loop: Event loop to unregister handlers from. Defaults to
                  the running event loop.
        """
        if not self._signal_handlers_registered:
            return

        loop = loop or asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, ValueError):
                pass

        self._signal_handlers_registered = False

    def _handle_signal(self, sig: signal.Signals) -> None:
        self.request_shutdown(_SIGNAL_REASONS.get(sig, ShutdownReason.PROGRAMMATIC))

    def request_shutdown(self, reason: ShutdownReason = ShutdownReason.PROGRAMMATIC) -> bool:
        """
        Request a shutdown at the next batch boundary.

        Args:
            reason: What triggered the request

        Returns:
            True if this call changed the phase, False if shutdown was
            already requested.
        """
        if self._phase != ShutdownPhase.RUNNING:
            logger.warning(
                "Shutdown already in progress, ignoring repeated request",
                extra={"reason": reason.value, "current_phase": self._phase.value},
            )
            return False

        self._phase = ShutdownPhase.SHUTDOWN_REQUESTED
        self._shutdown_reason = reason
        self.requested_at = datetime.now(UTC)
        logger.info(
            "Shutdown requested, finishing the current batch",
            extra={"reason": reason.value},
        )
        return True

    def begin_flush(self) -> None:
        """
        Move from SHUTDOWN_REQUESTED to FLUSHING.

        Raises:
            ValueError: If shutdown was not requested or a flush already began.
        """
        self._transition(ShutdownPhase.SHUTDOWN_REQUESTED, ShutdownPhase.FLUSHING)

    def mark_exited(self) -> None:
        """
        Move from FLUSHING to EXITED.

        Raises:
            ValueError: If no flush is in progress.
        """
        self._transition(ShutdownPhase.FLUSHING, ShutdownPhase.EXITED)
        logger.info("Progress saved. Run again to resume.")

    def _transition(self, expected: ShutdownPhase, target: ShutdownPhase) -> None:
        if self._phase != expected:
            raise ValueError(
                f"Cannot move to {target.value} from {self._phase.value}; expected {expected.value}"
            )
        logger.debug(
            "Shutdown phase %s -> %s",
            self._phase.value,
            target.value,
        )
        self._phase = target


__all__ = [
    "ShutdownPhase",
    "ShutdownReason",
    "ShutdownCoordinator",
]
