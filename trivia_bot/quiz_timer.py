"""
Countdown timer for trivia quizzes.
Runs one countdown per quiz and submits the quiz when time runs out.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(channel_id: Optional[int], duration: int) -> None:
        """Log countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Channel {channel_id}, Duration {duration}s",
            extra={
                'event_type': 'timer_countdown_start',
                'channel_id': channel_id,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(channel_id: Optional[int], remaining_time: int, total_duration: int) -> None:
        """Log a countdown refresh."""
        progress_percent = ((total_duration - remaining_time) / total_duration) * 100
        logger.debug(
            f"Timer lifecycle: UPDATE - Channel {channel_id}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
            extra={
                'event_type': 'timer_update',
                'channel_id': channel_id,
                'remaining_time': remaining_time,
                'total_duration': total_duration,
                'progress_percent': progress_percent,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(channel_id: Optional[int], completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Channel {channel_id}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'channel_id': channel_id,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: Optional[int], error_type: str, error_message: str, operation: str) -> None:
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
            }
        )


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class QuizTimer:
    """Manages the countdown for one quiz."""

    def __init__(self, channel_id: Optional[int] = None, update_interval: int = 5):
        """
        Initialize the timer.

        Args:
            channel_id: Discord channel identifier, used for logging
            update_interval: Seconds between update callbacks
        """
        self._task: Optional[asyncio.Task] = None
        self._remaining_time = 0
        self._total_duration = 0
        self._is_cancelled = False
        self._channel_id = channel_id
        self._update_interval = max(1, update_interval)

    async def start_countdown(
        self,
        duration: int,
        update_callback: Callable[[int], Awaitable[Any]],
        completion_callback: Callable[[], Awaitable[Any]]
    ) -> None:
        """
        Run a countdown with callbacks for updates and expiry.

        Args:
            duration: Timer duration in seconds
            update_callback: Awaited with the remaining time every update interval
            completion_callback: Awaited once when the countdown reaches zero
        """
        self._remaining_time = duration
        self._total_duration = duration
        self._is_cancelled = False

        TimerLifecycleLogger.log_timer_start(self._channel_id, duration)

        try:
            while self._remaining_time > 0 and not self._is_cancelled:
                if self._remaining_time % self._update_interval == 0 or self._remaining_time <= 5:
                    TimerLifecycleLogger.log_timer_update(
                        self._channel_id,
                        self._remaining_time,
                        self._total_duration
                    )
                    await update_callback(self._remaining_time)
                await asyncio.sleep(1)
                self._remaining_time -= 1

            if self._is_cancelled:
                TimerLifecycleLogger.log_timer_completion(self._channel_id, "cancelled", self._total_duration)
            else:
                TimerLifecycleLogger.log_timer_completion(self._channel_id, "natural_expiry", self._total_duration)
                await completion_callback()

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "asyncio_cancelled", self._total_duration)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._channel_id,
                "countdown_execution_error",
                str(e),
                "start_countdown"
            )
            raise

    def start(
        self,
        duration: int,
        update_callback: Callable[[int], Awaitable[Any]],
        completion_callback: Callable[[], Awaitable[Any]]
    ) -> asyncio.Task:
        """Start the countdown as a background task on the running loop."""
        self._task = asyncio.create_task(
            self.start_countdown(duration, update_callback, completion_callback)
        )
        return self._task

    def cancel(self) -> None:
        """
        Cancel the countdown.

        When called from inside the countdown task itself (for example from
        the completion callback) only the flag is set, so the callback can
        finish its own work.
        """
        self._is_cancelled = True
        if self._task and not self._task.done() and self._task is not _current_task():
            logger.debug(f"Cancelling timer task for channel {self._channel_id}")
            self._task.cancel()

    @property
    def is_cancelled(self) -> bool:
        """Check if timer is cancelled."""
        return self._is_cancelled

    @property
    def is_running(self) -> bool:
        """Check if the countdown task is still running."""
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def remaining_time(self) -> int:
        """Get remaining time in seconds."""
        return self._remaining_time
