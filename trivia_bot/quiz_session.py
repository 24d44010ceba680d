"""
Quiz session state machine.

A session moves between three screens:

    OPTIONS --fetch--> QUIZ --submit--> RESULTS(score) --play again--> OPTIONS

Fetching happens outside the session. The session hands out a FetchTicket,
and only the result presented with the outstanding ticket is applied.
"""
import dataclasses
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from .models import (
    FetchTicket,
    QuizOptions,
    ScoreReport,
    Screen,
    ScreenKind,
    TriviaQuestion,
)
from .scorer import score_answers


logger = logging.getLogger(__name__)


class QuizSessionError(Exception):
    """Base exception for quiz session errors."""
    pass


class InvalidTransitionError(QuizSessionError):
    """Raised when an operation is not allowed on the current screen."""
    pass


class FetchInProgressError(QuizSessionError):
    """Raised when a fetch is requested while another is still outstanding."""
    pass


class InvalidAnswerError(QuizSessionError):
    """Raised when an answer does not belong to the question it is given for."""
    pass


class QuizSession:
    """
    All mutable state of one quiz round.

    The current screen, the options draft, the installed questions and the
    selected answers only change through the methods below.
    """

    def __init__(self, options: Optional[QuizOptions] = None, channel_id: Optional[int] = None):
        self.channel_id = channel_id
        self._options = options or QuizOptions()
        self._screen = Screen.options()
        self._questions: Tuple[TriviaQuestion, ...] = ()
        self._answers: Dict[int, str] = {}
        self._pending_token: Optional[int] = None
        self._token_counter = 0
        self._last_report: Optional[ScoreReport] = None

    @property
    def screen(self) -> Screen:
        return self._screen

    @property
    def options(self) -> QuizOptions:
        return self._options

    @property
    def questions(self) -> Tuple[TriviaQuestion, ...]:
        return self._questions

    @property
    def answers(self) -> Dict[int, str]:
        """Copy of the selected answers keyed by question index."""
        return dict(self._answers)

    @property
    def is_fetching(self) -> bool:
        return self._pending_token is not None

    @property
    def last_report(self) -> Optional[ScoreReport]:
        return self._last_report

    def _require(self, kind: ScreenKind, operation: str) -> None:
        if self._screen.kind is not kind:
            raise InvalidTransitionError(
                f"Cannot {operation} on the {self._screen.kind.value} screen"
            )

    def update_options(self, **changes: Any) -> QuizOptions:
        """
        Replace fields of the options draft.

        Raises:
            InvalidTransitionError: If not on the options screen or a fetch is running
            ValueError: If a new value is out of range
        """
        self._require(ScreenKind.OPTIONS, "change options")
        if self.is_fetching:
            raise InvalidTransitionError("Cannot change options while questions are loading")

        self._options = dataclasses.replace(self._options, **changes)
        logger.debug(f"Options updated for channel {self.channel_id}: {changes}")
        return self._options

    def begin_fetch(self) -> FetchTicket:
        """
        Freeze the current options and mark a fetch as outstanding.

        Raises:
            InvalidTransitionError: If not on the options screen
            FetchInProgressError: If a fetch is already outstanding
        """
        self._require(ScreenKind.OPTIONS, "start a quiz")
        if self.is_fetching:
            raise FetchInProgressError("Questions are already being fetched")

        self._token_counter += 1
        self._pending_token = self._token_counter
        logger.debug(f"Fetch {self._pending_token} started for channel {self.channel_id}")
        return FetchTicket(self._pending_token, self._options)

    def _is_awaited(self, token: int) -> bool:
        return (
            self._pending_token is not None
            and token == self._pending_token
            and self._screen.kind is ScreenKind.OPTIONS
        )

    def complete_fetch(self, token: int, questions: Sequence[TriviaQuestion]) -> bool:
        """
        Install fetched questions and move to the quiz screen.

        Returns:
            True if applied, False if the result was stale and ignored
        """
        if not self._is_awaited(token):
            logger.info(f"Ignoring stale fetch result {token} for channel {self.channel_id}")
            return False

        self._questions = tuple(questions)
        self._answers = {}
        self._last_report = None
        self._pending_token = None
        self._screen = Screen.quiz()
        logger.info(f"Quiz started for channel {self.channel_id} with {len(self._questions)} questions")
        return True

    def fail_fetch(self, token: int, error: Optional[Exception] = None) -> bool:
        """
        Record a failed fetch. The screen stays on options.

        Returns:
            True if the failure belonged to the outstanding fetch
        """
        if not self._is_awaited(token):
            logger.info(f"Ignoring stale fetch failure {token} for channel {self.channel_id}")
            return False

        self._pending_token = None
        logger.warning(f"Fetch {token} failed for channel {self.channel_id}: {error}")
        return True

    def cancel_fetch(self) -> None:
        """Forget the outstanding fetch so its late result is ignored."""
        if self._pending_token is not None:
            logger.debug(f"Fetch {self._pending_token} cancelled for channel {self.channel_id}")
        self._pending_token = None

    def select_answer(self, index: int, answer: str) -> None:
        """
        Select an answer for a question, replacing any previous choice.

        Raises:
            InvalidTransitionError: If not on the quiz screen
            InvalidAnswerError: If index or answer is not valid for this quiz
        """
        self._require(ScreenKind.QUIZ, "select an answer")

        if not 0 <= index < len(self._questions):
            raise InvalidAnswerError(f"Question index {index} out of range")

        question = self._questions[index]
        if answer not in question.answer_options:
            raise InvalidAnswerError(f"'{answer}' is not an option for question {index + 1}")

        self._answers[index] = answer

    def submit(self) -> ScoreReport:
        """
        Score the current answers and move to the results screen.

        Unanswered questions count as incorrect.
        """
        self._require(ScreenKind.QUIZ, "submit answers")

        report = score_answers(self._questions, self._answers)
        self._last_report = report
        self._screen = Screen.results(report.score)
        logger.info(
            f"Quiz submitted for channel {self.channel_id}: {report.score}/{report.total}"
        )
        return report

    def play_again(self) -> None:
        """Return to the options screen. Options keep their last-used values."""
        self._require(ScreenKind.RESULTS, "play again")

        self._questions = ()
        self._answers = {}
        self._last_report = None
        self._screen = Screen.options()
        logger.debug(f"Session reset for channel {self.channel_id}")

    def progress(self) -> Dict[str, Any]:
        """Snapshot of the session for status displays."""
        return {
            'screen': self._screen.kind.value,
            'score': self._screen.score,
            'answered': len(self._answers),
            'total_questions': len(self._questions),
            'is_fetching': self.is_fetching,
            'options': self._options,
        }
