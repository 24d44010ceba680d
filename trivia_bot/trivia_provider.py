"""
Open Trivia DB client for the Discord Trivia Bot.
Fetches raw questions over HTTP and decodes them into TriviaQuestion objects.
"""
import asyncio
import html
import logging
import random
import threading
from enum import IntEnum
from typing import Any, Dict, List, Optional

import requests

from .models import ANY_CATEGORY, QuizOptions, TriviaQuestion


logger = logging.getLogger(__name__)

OPENTDB_API_URL = "https://opentdb.com/api.php"
DEFAULT_TIMEOUT = 10.0


class ResponseCode(IntEnum):
    """Result codes returned in the provider's response body."""
    SUCCESS = 0
    NO_RESULTS = 1
    INVALID_PARAMETER = 2
    TOKEN_NOT_FOUND = 3
    TOKEN_EMPTY = 4
    RATE_LIMIT = 5


RESPONSE_CODE_MESSAGES = {
    ResponseCode.NO_RESULTS: "Not enough questions for the selected options",
    ResponseCode.INVALID_PARAMETER: "The trivia service rejected the quiz options",
    ResponseCode.TOKEN_NOT_FOUND: "Session token not found",
    ResponseCode.TOKEN_EMPTY: "Session token has returned all questions",
    ResponseCode.RATE_LIMIT: "Too many requests, please wait a few seconds",
}


class TriviaProviderError(Exception):
    """Base exception for trivia provider failures."""
    pass


class NetworkFailure(TriviaProviderError):
    """Raised when the HTTP request itself fails."""
    pass


class DecodeFailure(TriviaProviderError):
    """Raised when the response body is malformed or reports no usable results."""

    def __init__(self, message: str, response_code: Optional[int] = None):
        super().__init__(message)
        self.response_code = response_code


def decode_html(text: str) -> str:
    """Unescape HTML entities. Plain text is returned unchanged."""
    return html.unescape(text)


def build_query_params(options: QuizOptions) -> Dict[str, Any]:
    """
    Build the query string parameters for a quiz request.

    The category parameter is left out for "any category".
    """
    params: Dict[str, Any] = {"amount": options.question_count}
    if options.category != ANY_CATEGORY:
        params["category"] = options.category
    params["difficulty"] = options.difficulty.value
    params["type"] = options.question_type.value
    return params


def _require_string(record: Dict[str, Any], key: str) -> str:
    value = record.get(key)
    if not isinstance(value, str):
        raise DecodeFailure(f"Question field '{key}' must be a string, got {type(value).__name__}")
    return value


def parse_question(record: Any, rng: Optional[random.Random] = None) -> TriviaQuestion:
    """
    Build a TriviaQuestion from one raw result record.

    All text fields are decoded the same way so the correct answer stays
    comparable with the displayed answer options.

    Raises:
        DecodeFailure: If the record does not have the expected shape
    """
    if not isinstance(record, dict):
        raise DecodeFailure(f"Question record must be an object, got {type(record).__name__}")

    question_text = _require_string(record, "question")
    correct_answer = _require_string(record, "correct_answer")

    incorrect = record.get("incorrect_answers")
    if not isinstance(incorrect, list) or not all(isinstance(item, str) for item in incorrect):
        raise DecodeFailure("Question field 'incorrect_answers' must be a list of strings")

    category = record.get("category", "")
    difficulty = record.get("difficulty")

    return TriviaQuestion.create(
        question_text=decode_html(question_text),
        correct_answer=decode_html(correct_answer),
        incorrect_answers=[decode_html(answer) for answer in incorrect],
        category=decode_html(category) if isinstance(category, str) else "",
        difficulty=difficulty if isinstance(difficulty, str) else None,
        rng=rng,
    )


def parse_response(payload: Any, rng: Optional[random.Random] = None) -> List[TriviaQuestion]:
    """
    Decode a full response body into questions.

    Raises:
        DecodeFailure: If the body is malformed, reports a non-success code,
            or contains no questions
    """
    if not isinstance(payload, dict):
        raise DecodeFailure(f"Response must be a JSON object, got {type(payload).__name__}")

    response_code = payload.get("response_code")
    if isinstance(response_code, bool) or not isinstance(response_code, int):
        raise DecodeFailure("Response is missing an integer 'response_code'")

    if response_code != ResponseCode.SUCCESS:
        try:
            message = RESPONSE_CODE_MESSAGES[ResponseCode(response_code)]
        except ValueError:
            message = f"Unknown response code {response_code}"
        raise DecodeFailure(message, response_code=response_code)

    results = payload.get("results")
    if not isinstance(results, list):
        raise DecodeFailure("Response is missing the 'results' list", response_code=response_code)
    if not results:
        raise DecodeFailure("Response contained no questions", response_code=response_code)

    return [parse_question(record, rng) for record in results]


class TriviaProvider:
    """Client for the Open Trivia DB question endpoint."""

    def __init__(
        self,
        base_url: str = OPENTDB_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the provider.

        Args:
            base_url: Question endpoint URL
            timeout: Request timeout in seconds
            session: Optional requests session to reuse connections; requests
                made through it are serialized across worker threads
            rng: Optional random source used to shuffle answers
        """
        self.base_url = base_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._rng = rng
        # One request at a time on the shared session
        self._session_lock = threading.Lock()

    def fetch_questions_sync(self, options: QuizOptions) -> List[TriviaQuestion]:
        """
        Fetch and decode questions, blocking the calling thread.

        Raises:
            NetworkFailure: On transport errors or HTTP error statuses
            DecodeFailure: On malformed or unsuccessful responses
        """
        params = build_query_params(options)
        logger.info(f"Requesting questions from {self.base_url} with {params}")

        try:
            with self._session_lock:
                response = self._session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Network error fetching questions: {e}")
            raise NetworkFailure(str(e)) from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Trivia response was not valid JSON: {e}")
            raise DecodeFailure(f"Invalid JSON in response: {e}") from e

        try:
            questions = parse_response(payload, self._rng)
        except DecodeFailure as e:
            logger.error(f"Could not decode trivia response: {e}")
            raise

        logger.info(f"Fetched {len(questions)} questions")
        return questions

    async def fetch_questions(self, options: QuizOptions) -> List[TriviaQuestion]:
        """Fetch questions in a worker thread so the event loop keeps running."""
        return await asyncio.to_thread(self.fetch_questions_sync, options)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        with self._session_lock:
            self._session.close()
