"""
Session supervisor: restart the mempool session after every failure.

Each session starts with an empty PendingSet; in-flight correlation state is
discarded on reconnect. Transactions mined during an outage are not
recovered. The wait between sessions comes from a RetryPolicy (fixed 5s by
default; exponential backoff and a restart cap are opt-in).
"""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from typing import Any

from mempool_sentinel.config.settings import Settings
from mempool_sentinel.core.exceptions import TransportError
from mempool_sentinel.mempool.pending import PendingSet
from mempool_sentinel.mempool.session import Connector, MempoolSession
from mempool_sentinel.sentinel_logging import get_logger
from mempool_sentinel.sinks.base import SinkAdapter
from mempool_sentinel.stream.transport import connect_stream

logger = get_logger(__name__)

DEFAULT_RECONNECT_DELAY_SEC = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Delay before restart number `attempt` (1-based, consecutive failures):
    delay_sec * backoff_factor ** (attempt - 1), capped at max_delay_sec.
    max_restarts=None retries forever.
    """

    delay_sec: float = DEFAULT_RECONNECT_DELAY_SEC
    backoff_factor: float = 1.0
    max_delay_sec: float = 60.0
    max_restarts: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            delay_sec=settings.reconnect_delay_sec,
            backoff_factor=settings.reconnect_backoff_factor,
            max_delay_sec=max(settings.reconnect_max_delay_sec, settings.reconnect_delay_sec),
            max_restarts=settings.max_restarts,
        )

    def delay_for(self, attempt: int) -> float:
        attempt = max(1, attempt)
        return min(self.delay_sec * self.backoff_factor ** (attempt - 1), self.max_delay_sec)

    def allows(self, restarts: int) -> bool:
        return self.max_restarts is None or restarts <= self.max_restarts


@dataclass
class SupervisorState:
    """Mutable state for heartbeat and monitoring."""

    sessions_started: int = 0
    restarts: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    resolved_total: int = 0
    abandoned_total: int = 0
    exhausted: bool = False


class Supervisor:
    """
    Runs MempoolSession after MempoolSession until stop() or the retry
    policy is exhausted.
    """

    def __init__(
        self,
        settings: Settings,
        sinks: SinkAdapter,
        *,
        policy: RetryPolicy | None = None,
        connect: Connector = connect_stream,
    ) -> None:
        self._settings = settings
        self._sinks = sinks
        self._policy = policy if policy is not None else RetryPolicy.from_settings(settings)
        self._connect = connect
        self._stop = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self.state = SupervisorState()
        self.current_session: MempoolSession | None = None

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def start(self) -> None:
        """
        Run until shutdown (SIGINT/SIGTERM or stop requested). Blocks the calling thread.

        Signal handlers are installed only where supported (main thread).
        """
        def _handle_sig(signum: int, frame: Any) -> None:
            sig = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
            logger.info("supervisor_shutdown_signal", signal=sig)
            self.stop()

        try:
            signal.signal(signal.SIGINT, _handle_sig)
            if hasattr(signal, "SIGTERM"):
                signal.signal(signal.SIGTERM, _handle_sig)
        except (ValueError, OSError):
            # Signal only valid in main thread / not supported on this platform
            pass

        try:
            asyncio.run(self.run())
        except KeyboardInterrupt:
            logger.info("supervisor_keyboard_interrupt")

    def stop(self) -> None:
        """Request shutdown; safe to call from any thread or a signal handler."""
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(self._stop.set)
        else:
            self._stop.set()

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        logger.info(
            "supervisor_started",
            poll_interval_sec=self._settings.poll_interval_sec,
            reconnect_delay_sec=self._policy.delay_sec,
            backoff_factor=self._policy.backoff_factor,
            max_restarts=self._policy.max_restarts,
        )
        try:
            while not self._stop.is_set():
                await self._run_session()
                if self._stop.is_set():
                    break
                self.state.restarts += 1
                if not self._policy.allows(self.state.restarts):
                    self.state.exhausted = True
                    logger.error(
                        "supervisor_gave_up",
                        restarts=self.state.restarts - 1,
                        last_error=self.state.last_error,
                    )
                    break
                delay = self._policy.delay_for(self.state.consecutive_failures)
                logger.info(
                    "session_restarting",
                    delay_sec=round(delay, 2),
                    restart=self.state.restarts,
                    consecutive_failures=self.state.consecutive_failures,
                )
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.current_session = None
            logger.info(
                "supervisor_stopped",
                sessions=self.state.sessions_started,
                resolved_total=self.state.resolved_total,
            )

    async def _run_session(self) -> None:
        self.state.sessions_started += 1
        session = MempoolSession(
            self._settings,
            self._sinks,
            pending=PendingSet(
                max_age_ms=self._settings.max_pending_age_ms,
                retired_capacity=self._settings.retired_hash_capacity,
            ),
            connect=self._connect,
            stop_event=self._stop,
            session_id=self.state.sessions_started,
        )
        self.current_session = session
        try:
            await session.run()
            if not self._stop.is_set():
                self.state.last_error = "session ended without error"
                logger.warning("session_ended_unexpectedly", session=self.state.sessions_started)
        except TransportError as e:
            self.state.last_error = str(e)
            logger.warning(
                "session_transport_error",
                session=self.state.sessions_started,
                error_kind=type(e).__name__,
                error=str(e),
                dropped_pending=len(session.pending),
            )
        except Exception as e:
            self.state.last_error = str(e)
            logger.exception(
                "session_failed",
                session=self.state.sessions_started,
                error=str(e),
                dropped_pending=len(session.pending),
            )
        finally:
            self.state.resolved_total += session.stats.resolved
            self.state.abandoned_total += session.stats.abandoned
        if session.subscribed:
            self.state.consecutive_failures = 1
        else:
            self.state.consecutive_failures += 1
