"""
Quiz session controller for the Discord Trivia Bot.
Manages one quiz session per Discord channel and drives it through
fetching, answering, scoring and replay.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config_manager import ConfigManager
from .models import ScreenKind
from .quiz_session import (
    FetchInProgressError,
    InvalidAnswerError,
    InvalidTransitionError,
    QuizSession,
    QuizSessionError,
)
from .quiz_timer import QuizTimer
from .trivia_provider import DecodeFailure, NetworkFailure, TriviaProvider, TriviaProviderError


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Every public operation returns a result dictionary with a 'success' flag
    and, on failure, a 'user_message' suitable for showing in Discord.
    """

    def __init__(self, provider: TriviaProvider, config_manager: ConfigManager):
        """
        Initialize the quiz controller.

        Args:
            provider: Client used to fetch trivia questions
            config_manager: Source of default quiz options
        """
        self.logger = logging.getLogger(__name__)
        self.provider = provider
        self.config_manager = config_manager

        self._sessions: Dict[int, QuizSession] = {}
        self._timers: Dict[int, QuizTimer] = {}
        self._panels: Dict[int, List[Any]] = {}

        self.logger.info("QuizController initialized")

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        """Get the session for a channel, if any."""
        return self._sessions.get(channel_id)

    def has_session(self, channel_id: int) -> bool:
        return channel_id in self._sessions

    def open_session(self, channel_id: int) -> QuizSession:
        """
        Get the channel's session, creating one on the options screen if needed.

        Args:
            channel_id: Discord channel identifier

        Returns:
            The channel's QuizSession
        """
        session = self._sessions.get(channel_id)
        if session is None:
            session = QuizSession(self.config_manager.get_quiz_options(), channel_id=channel_id)
            self._sessions[channel_id] = session
            self.logger.info(f"Created quiz session for channel {channel_id}")
        return session

    def update_options(self, channel_id: int, **changes: Any) -> Dict[str, Any]:
        """
        Change the options draft of a channel's session.

        Args:
            channel_id: Discord channel identifier
            **changes: QuizOptions fields to replace

        Returns:
            Dictionary with success status, the updated options, or error information
        """
        session = self.open_session(channel_id)

        normalized = {}
        for name, value in changes.items():
            result = self.config_manager.validate_option(name, value)
            if not result['success']:
                return result
            normalized[name] = result['value']

        try:
            options = session.update_options(**normalized)
        except QuizSessionError as e:
            return self._handle_session_error(channel_id, e, "update options")

        return {
            'success': True,
            'message': f"Options updated for channel {channel_id}",
            'options': options
        }

    async def start_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Fetch questions for the channel's options and move to the quiz screen.

        The session stays on the options screen if the fetch fails. A result
        that arrives after the session was stopped is dropped.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with operation results and error information
        """
        session = self.open_session(channel_id)

        try:
            ticket = session.begin_fetch()
        except QuizSessionError as e:
            return self._handle_session_error(channel_id, e, "start quiz")

        try:
            questions = await self.provider.fetch_questions(ticket.options)
        except Exception as e:
            session.fail_fetch(ticket.token, e)
            return self._handle_session_error(channel_id, e, "start quiz")

        if not session.complete_fetch(ticket.token, questions):
            self.logger.info(f"Discarded questions for channel {channel_id}: session no longer waiting")
            return {
                'success': False,
                'stale': True,
                'error': "Fetch result arrived after the session moved on",
                'user_message': "ℹ️ The quiz was stopped before the questions arrived."
            }

        return {
            'success': True,
            'message': f"Quiz started with {len(session.questions)} questions",
            'session_info': self.get_session_progress(channel_id)
        }

    def select_answer(self, channel_id: int, index: int, answer: str) -> Dict[str, Any]:
        """
        Record the answer chosen for a question.

        Args:
            channel_id: Discord channel identifier
            index: Question position in the quiz
            answer: Selected answer text

        Returns:
            Dictionary with success status or error information
        """
        session = self._sessions.get(channel_id)
        if session is None:
            return self._handle_session_error(
                channel_id, SessionNotFoundError(f"No session in channel {channel_id}"), "select answer"
            )

        try:
            session.select_answer(index, answer)
        except QuizSessionError as e:
            return self._handle_session_error(channel_id, e, "select answer")

        return {
            'success': True,
            'message': f"Answer recorded for question {index + 1}",
            'answered': len(session.answers)
        }

    def submit_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Score the quiz and move to the results screen.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with success status and the ScoreReport under 'report'
        """
        session = self._sessions.get(channel_id)
        if session is None:
            return self._handle_session_error(
                channel_id, SessionNotFoundError(f"No session in channel {channel_id}"), "submit quiz"
            )

        try:
            report = session.submit()
        except QuizSessionError as e:
            return self._handle_session_error(channel_id, e, "submit quiz")

        self.cancel_timer(channel_id)

        return {
            'success': True,
            'message': f"Scored {report.score} out of {report.total}",
            'report': report
        }

    def play_again(self, channel_id: int) -> Dict[str, Any]:
        """
        Reset the session to the options screen, keeping the last-used options.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with success status and the retained options
        """
        session = self._sessions.get(channel_id)
        if session is None:
            return self._handle_session_error(
                channel_id, SessionNotFoundError(f"No session in channel {channel_id}"), "play again"
            )

        try:
            session.play_again()
        except QuizSessionError as e:
            return self._handle_session_error(channel_id, e, "play again")

        self.cancel_timer(channel_id)

        return {
            'success': True,
            'message': "Session reset to options",
            'options': session.options
        }

    def stop_session(self, channel_id: int) -> bool:
        """
        Stop and discard a channel's session.

        Any fetch still in flight is forgotten so its result is ignored.

        Args:
            channel_id: Discord channel identifier

        Returns:
            True if a session was stopped, False if none existed
        """
        session = self._sessions.pop(channel_id, None)
        if session is None:
            self.logger.warning(f"Cannot stop session for channel {channel_id}: no session exists")
            return False

        session.cancel_fetch()
        timer_cancelled = self.cancel_timer(channel_id)
        panels_stopped = self.stop_panels(channel_id)

        self.logger.info(
            f"Stopped session for channel {channel_id}, timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'timer_cancelled': timer_cancelled,
                'panels_stopped': panels_stopped
            }
        )
        return True

    def attach_panel(self, channel_id: int, panel: Any) -> None:
        """
        Track an interactive panel shown for a channel's session.

        Panels only need stop() and is_finished(); finished ones are dropped.
        """
        live = [p for p in self._panels.get(channel_id, []) if not p.is_finished()]
        live.append(panel)
        self._panels[channel_id] = live

    def stop_panels(self, channel_id: int) -> int:
        """
        Stop every live panel of a channel.

        Returns:
            Number of panels that were still listening
        """
        stopped = 0
        for panel in self._panels.pop(channel_id, []):
            if not panel.is_finished():
                panel.stop()
                stopped += 1
        return stopped

    def start_quiz_timer(
        self,
        channel_id: int,
        update_callback: Callable[[int], Awaitable[Any]],
        expiry_callback: Callable[[Dict[str, Any]], Awaitable[Any]],
        update_interval: int = 5
    ) -> bool:
        """
        Start the quiz countdown for a channel on the quiz screen.

        When the countdown expires while the session is still on the quiz
        screen, the quiz is submitted and expiry_callback receives the
        submit_quiz result.

        Args:
            channel_id: Discord channel identifier
            update_callback: Awaited with the remaining seconds
            expiry_callback: Awaited with the submit result on expiry
            update_interval: Seconds between update callbacks

        Returns:
            True if a timer was started
        """
        session = self._sessions.get(channel_id)
        if session is None or session.screen.kind is not ScreenKind.QUIZ:
            self.logger.warning(f"Not starting timer for channel {channel_id}: no quiz in progress")
            return False

        self.cancel_timer(channel_id)

        async def on_expired():
            await self._on_timer_expired(channel_id, session, expiry_callback)

        timer = QuizTimer(channel_id, update_interval)
        self._timers[channel_id] = timer
        timer.start(session.options.timer_seconds, update_callback, on_expired)
        return True

    async def _on_timer_expired(
        self,
        channel_id: int,
        session: QuizSession,
        expiry_callback: Callable[[Dict[str, Any]], Awaitable[Any]]
    ) -> None:
        if self._sessions.get(channel_id) is not session or session.screen.kind is not ScreenKind.QUIZ:
            self.logger.info(f"Timer expired for channel {channel_id} but the quiz is no longer running")
            return

        self.logger.info(f"Time is up for channel {channel_id}, submitting answers")
        result = self.submit_quiz(channel_id)
        await expiry_callback(result)

    def cancel_timer(self, channel_id: int) -> bool:
        """
        Cancel the quiz countdown of a channel.

        Returns:
            True if a timer was cancelled, False if no timer existed
        """
        timer = self._timers.pop(channel_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def get_timer(self, channel_id: int) -> Optional[QuizTimer]:
        return self._timers.get(channel_id)

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a channel's session.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Dictionary with progress info, None if no session exists
        """
        session = self._sessions.get(channel_id)
        if session is None:
            return None

        progress = session.progress()
        timer = self._timers.get(channel_id)
        progress['remaining_time'] = timer.remaining_time if timer and timer.is_running else None
        return progress

    def get_session_status_summary(self, channel_id: int) -> str:
        """
        Get a one-line status summary of a channel's session.

        Args:
            channel_id: Discord channel identifier

        Returns:
            Human-readable status string
        """
        progress = self.get_session_progress(channel_id)
        if progress is None:
            return "No quiz in this channel. Use /trivia to set one up."

        options = progress['options']
        settings = (f"{options.question_count} questions | {options.category_name} | "
                    f"{options.difficulty.label} | {options.question_type.label} | "
                    f"{options.timer_seconds}s")

        if progress['screen'] == ScreenKind.OPTIONS.value:
            state = "Loading questions" if progress['is_fetching'] else "Choosing options"
            return f"Status: {state} | {settings}"

        if progress['screen'] == ScreenKind.QUIZ.value:
            summary = f"Status: Quiz in progress | Answered {progress['answered']}/{progress['total_questions']}"
            if progress['remaining_time'] is not None:
                summary += f" | {progress['remaining_time']}s left"
            return summary

        report = self._sessions[channel_id].last_report
        return (f"Status: Finished | Score {report.score}/{report.total} "
                f"({report.percentage:.0f}%) | Missed {len(report.missed)}")

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log an error and turn it into a failure result.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error handling results
        """
        error_msg = f"Error in {operation} for channel {channel_id}: {error}"
        if isinstance(error, (QuizSessionError, QuizControllerError, TriviaProviderError)):
            self.logger.warning(error_msg)
        else:
            self.logger.error(error_msg, exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        """
        Generate user-friendly error messages.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            User-friendly error message
        """
        if isinstance(error, NetworkFailure):
            return "❌ Could not reach the trivia service. Please try again in a moment."

        elif isinstance(error, DecodeFailure):
            return f"❌ The quiz did not start: {error}."

        elif isinstance(error, FetchInProgressError):
            return "⏳ Questions are already loading for this channel."

        elif isinstance(error, InvalidAnswerError):
            return f"❌ {error}."

        elif isinstance(error, InvalidTransitionError):
            return "❌ That action is not available right now. Use `/status` to see where the quiz is."

        elif isinstance(error, SessionNotFoundError):
            return "❌ No quiz found in this channel. Set one up with `/trivia`."

        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."
