"""
Round expiry scheduling for the Trivia Bot.
Arms one-shot round timers and re-validates game state when they fire.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Set

from .models import ExpiryCallback, Scheduler

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for round timer lifecycle events."""

    @staticmethod
    def log_timer_armed(channel_id: str, session_id: int, round_index: int, duration: float) -> None:
        logger.info(
            f"Timer lifecycle: ARMED - Channel {channel_id}, Session {session_id}, "
            f"Round {round_index}, Duration {duration}s",
            extra={
                'event_type': 'timer_armed',
                'channel_id': channel_id,
                'session_id': session_id,
                'round_index': round_index,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_fired(channel_id: str, session_id: int, round_index: int) -> None:
        logger.debug(
            f"Timer lifecycle: FIRED - Channel {channel_id}, Session {session_id}, Round {round_index}",
            extra={
                'event_type': 'timer_fired',
                'channel_id': channel_id,
                'session_id': session_id,
                'round_index': round_index,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_stale(channel_id: str, session_id: int, round_index: int, reason: str) -> None:
        """Log a timer that fired after its round was already resolved."""
        logger.debug(
            f"Timer lifecycle: STALE - Channel {channel_id}, Session {session_id}, "
            f"Round {round_index} ({reason})",
            extra={
                'event_type': 'timer_stale',
                'channel_id': channel_id,
                'session_id': session_id,
                'round_index': round_index,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_expired(channel_id: str, session_id: int, round_index: int) -> None:
        logger.info(
            f"Timer lifecycle: EXPIRED - Channel {channel_id}, Session {session_id}, Round {round_index}",
            extra={
                'event_type': 'timer_expired',
                'channel_id': channel_id,
                'session_id': session_id,
                'round_index': round_index,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: Optional[str], error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Channel {channel_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            },
            exc_info=True
        )


class AsyncioScheduler:
    """One-shot delayed callbacks on the running event loop. No per-call cancel."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def after(self, seconds: float, callback: Callable[[], Awaitable[None]]) -> None:
        """
        Run a coroutine callback once after a delay.

        Args:
            seconds: Delay before the callback runs
            callback: Zero-argument coroutine function
        """
        task = asyncio.create_task(self._run_later(seconds, callback))
        # Keep a reference until done so the task isn't garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_later(self, seconds: float, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(seconds)
        try:
            await callback()
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(None, "callback_error", str(e), "after")

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel all outstanding callbacks, used when the bot exits."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Scheduler shut down, {len(tasks)} pending timers cancelled")


class RoundScheduler:
    """
    Arms round expiry timers.

    A timer can't be cancelled once armed. Instead, when it fires it reloads
    the channel's active session and round state and only calls back if the
    game is still on the exact round it was armed for.
    """

    def __init__(self, store, scheduler: Scheduler):
        """
        Initialize the round scheduler.

        Args:
            store: SessionStore used to re-read game state
            scheduler: Primitive providing after(seconds, callback)
        """
        self.store = store
        self.scheduler = scheduler

    def arm(
        self,
        channel_id: str,
        session_id: int,
        round_index: int,
        timeout_seconds: float,
        on_expire: ExpiryCallback
    ) -> None:
        """
        Schedule the expiry of one round.

        Args:
            channel_id: Channel the game runs in
            session_id: Session the round belongs to
            round_index: Round index at arm time
            timeout_seconds: Seconds until the round expires
            on_expire: Called with (channel_id, session_id, round_index) if still current
        """
        TimerLifecycleLogger.log_timer_armed(channel_id, session_id, round_index, timeout_seconds)

        async def fire() -> None:
            await self._fire(channel_id, session_id, round_index, on_expire)

        self.scheduler.after(timeout_seconds, fire)

    async def _fire(self, channel_id: str, session_id: int, round_index: int, on_expire: ExpiryCallback) -> None:
        TimerLifecycleLogger.log_timer_fired(channel_id, session_id, round_index)

        if not await self.is_current(channel_id, session_id, round_index):
            return

        TimerLifecycleLogger.log_timer_expired(channel_id, session_id, round_index)
        await on_expire(channel_id, session_id, round_index)

    async def is_current(self, channel_id: str, session_id: int, round_index: int) -> bool:
        """Check that the channel is still playing the given session and round."""
        session = await self.store.get_active_session(channel_id)
        if session is None or not session.active:
            TimerLifecycleLogger.log_timer_stale(channel_id, session_id, round_index, "no active session")
            return False
        if session.id != session_id:
            TimerLifecycleLogger.log_timer_stale(channel_id, session_id, round_index, f"session is now {session.id}")
            return False

        state = await self.store.get_round_state(session_id)
        if state is None or state.round_index != round_index:
            current = state.round_index if state else None
            TimerLifecycleLogger.log_timer_stale(channel_id, session_id, round_index, f"round is now {current}")
            return False
        return True
