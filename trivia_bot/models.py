"""
Core data models for the Discord Trivia Bot.
"""
import random
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, NamedTuple, Optional, Sequence, Tuple


MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 50
MIN_TIMER_SECONDS = 10
MAX_TIMER_SECONDS = 60
ANY_CATEGORY = 0

# Open Trivia DB category ids
CATEGORIES: Dict[int, str] = {
    ANY_CATEGORY: "Any Category",
    9: "General Knowledge",
    10: "Books",
    11: "Film",
    12: "Music",
    13: "Musicals & Theatres",
    14: "Television",
    15: "Video Games",
    16: "Board Games",
    17: "Science & Nature",
    18: "Computers",
    19: "Mathematics",
    20: "Mythology",
    21: "Sports",
    22: "Geography",
    23: "History",
    24: "Politics",
    25: "Art",
    26: "Celebrities",
    27: "Animals",
    28: "Vehicles",
    29: "Comics",
    30: "Gadgets",
    31: "Anime & Manga",
    32: "Cartoon & Animations",
}


class Difficulty(Enum):
    """Question difficulty as understood by the trivia API."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class QuestionType(Enum):
    """Question type as understood by the trivia API."""
    MULTIPLE = "multiple"
    BOOLEAN = "boolean"

    @property
    def label(self) -> str:
        return "Multiple Choice" if self is QuestionType.MULTIPLE else "True / False"


def _check_int_range(name: str, value, minimum: int, maximum: int) -> None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if not minimum <= value <= maximum:
        raise ValueError(f"{name} must be between {minimum} and {maximum}, got {value}")


@dataclass(frozen=True)
class QuizOptions:
    """Configuration snapshot for one quiz round."""
    question_count: int = 5
    category: int = 9
    difficulty: Difficulty = Difficulty.MEDIUM
    question_type: QuestionType = QuestionType.MULTIPLE
    timer_seconds: int = 30

    def __post_init__(self):
        _check_int_range("question_count", self.question_count, MIN_QUESTION_COUNT, MAX_QUESTION_COUNT)
        _check_int_range("timer_seconds", self.timer_seconds, MIN_TIMER_SECONDS, MAX_TIMER_SECONDS)

        if isinstance(self.category, bool) or not isinstance(self.category, int):
            raise ValueError(f"category must be an integer, got {type(self.category).__name__}")
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category id: {self.category}")

        # Accept raw API strings as well as enum members
        object.__setattr__(self, "difficulty", Difficulty(self.difficulty))
        object.__setattr__(self, "question_type", QuestionType(self.question_type))

    @property
    def category_name(self) -> str:
        return CATEGORIES[self.category]


@dataclass(frozen=True)
class TriviaQuestion:
    """One trivia question with its answer order fixed at construction."""
    question_text: str
    correct_answer: str
    incorrect_answers: Tuple[str, ...]
    answer_options: Tuple[str, ...]
    category: str = ""
    difficulty: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        object.__setattr__(self, "incorrect_answers", tuple(self.incorrect_answers))
        object.__setattr__(self, "answer_options", tuple(self.answer_options))

        expected = Counter(self.incorrect_answers + (self.correct_answer,))
        if Counter(self.answer_options) != expected:
            raise ValueError(
                "answer_options must contain every incorrect answer and the correct answer exactly once"
            )

    @classmethod
    def create(
        cls,
        question_text: str,
        correct_answer: str,
        incorrect_answers: Sequence[str],
        category: str = "",
        difficulty: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> "TriviaQuestion":
        """
        Build a question, shuffling the answers once.

        Args:
            question_text: Display text of the question
            correct_answer: The correct answer
            incorrect_answers: All wrong answers
            category: Category name reported by the provider
            difficulty: Difficulty reported by the provider
            rng: Optional random source, mainly for tests

        Returns:
            A TriviaQuestion whose answer_options never change afterwards
        """
        options = list(incorrect_answers) + [correct_answer]
        (rng or random).shuffle(options)
        return cls(
            question_text=question_text,
            correct_answer=correct_answer,
            incorrect_answers=tuple(incorrect_answers),
            answer_options=tuple(options),
            category=category,
            difficulty=difficulty,
        )


class ScreenKind(Enum):
    """The three panels a quiz session moves between."""
    OPTIONS = "options"
    QUIZ = "quiz"
    RESULTS = "results"


@dataclass(frozen=True)
class Screen:
    """Active screen; the final score travels with the RESULTS variant."""
    kind: ScreenKind
    score: Optional[int] = None

    def __post_init__(self):
        if self.kind is ScreenKind.RESULTS and self.score is None:
            raise ValueError("Results screen requires a score")
        if self.kind is not ScreenKind.RESULTS and self.score is not None:
            raise ValueError(f"{self.kind.value} screen cannot carry a score")

    @classmethod
    def options(cls) -> "Screen":
        return cls(ScreenKind.OPTIONS)

    @classmethod
    def quiz(cls) -> "Screen":
        return cls(ScreenKind.QUIZ)

    @classmethod
    def results(cls, score: int) -> "Screen":
        return cls(ScreenKind.RESULTS, score)


class MissedQuestion(NamedTuple):
    """A question answered wrongly or left unanswered."""
    question_text: str
    user_answer: Optional[str]
    correct_answer: str

    @property
    def display_answer(self) -> str:
        return self.user_answer if self.user_answer is not None else "No answer"


@dataclass(frozen=True)
class ScoreReport:
    """Outcome of a submitted quiz."""
    score: int
    total: int
    missed: Tuple[MissedQuestion, ...] = ()

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.score / self.total) * 100

    @property
    def is_perfect(self) -> bool:
        return not self.missed


class FetchTicket(NamedTuple):
    """Handle for one outstanding question fetch."""
    token: int
    options: QuizOptions
