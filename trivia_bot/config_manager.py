"""
Configuration manager for Discord Trivia Bot settings and parameters.
"""
import dataclasses
import logging
from typing import Optional, Dict, Any, List

from .models import (
    CATEGORIES,
    MAX_QUESTION_COUNT,
    MAX_TIMER_SECONDS,
    MIN_QUESTION_COUNT,
    MIN_TIMER_SECONDS,
    Difficulty,
    QuestionType,
    QuizOptions,
)
from .trivia_provider import DEFAULT_TIMEOUT, OPENTDB_API_URL


class ConfigManager:
    """Manages default quiz options and trivia API settings."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 5
    DEFAULT_CATEGORY = 9
    DEFAULT_DIFFICULTY = Difficulty.MEDIUM
    DEFAULT_QUESTION_TYPE = QuestionType.MULTIPLE
    DEFAULT_TIMER_SECONDS = 30
    DEFAULT_API_URL = OPENTDB_API_URL
    DEFAULT_REQUEST_TIMEOUT = DEFAULT_TIMEOUT

    # Validation limits
    MIN_REQUEST_TIMEOUT = 1
    MAX_REQUEST_TIMEOUT = 60

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._default_options = self._build_default_options()
        self._api_url = self.DEFAULT_API_URL
        self._request_timeout = self.DEFAULT_REQUEST_TIMEOUT

    def _build_default_options(self) -> QuizOptions:
        return QuizOptions(
            question_count=self.DEFAULT_QUESTION_COUNT,
            category=self.DEFAULT_CATEGORY,
            difficulty=self.DEFAULT_DIFFICULTY,
            question_type=self.DEFAULT_QUESTION_TYPE,
            timer_seconds=self.DEFAULT_TIMER_SECONDS
        )

    def get_quiz_options(self) -> QuizOptions:
        """
        Get the default options new sessions start from.

        Returns:
            QuizOptions with current defaults
        """
        return self._default_options

    @staticmethod
    def _failure(error_msg: str, user_message: str) -> Dict[str, Any]:
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def _validate_int(self, label: str, value: Any, minimum: int, maximum: int, unit: str = "") -> Optional[Dict[str, Any]]:
        """Return a failure dict for an invalid integer, or None if it is valid."""
        suffix = f" {unit}" if unit else ""

        if isinstance(value, bool) or not isinstance(value, int):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid input: Expected a number, got {type(value).__name__}")

        if value < minimum:
            error_msg = f"{label} must be at least {minimum}{suffix}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Too low: Minimum is {minimum}{suffix}")

        if value > maximum:
            error_msg = f"{label} cannot exceed {maximum}{suffix}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Too high: Maximum is {maximum}{suffix}")

        return None

    def validate_option(self, name: str, value: Any) -> Dict[str, Any]:
        """
        Validate a single quiz option and normalize its value.

        Args:
            name: QuizOptions field name
            value: Proposed value

        Returns:
            Dictionary with success status, normalized 'value' on success,
            and a user-friendly message on failure
        """
        if name == 'question_count':
            failure = self._validate_int("Question count", value, MIN_QUESTION_COUNT, MAX_QUESTION_COUNT)
            return failure or {'success': True, 'value': value}

        if name == 'timer_seconds':
            failure = self._validate_int("Timer duration", value, MIN_TIMER_SECONDS, MAX_TIMER_SECONDS, "seconds")
            return failure or {'success': True, 'value': value}

        if name == 'category':
            if isinstance(value, bool) or not isinstance(value, int) or value not in CATEGORIES:
                error_msg = f"Unknown category: {value}"
                self.logger.error(error_msg)
                return self._failure(error_msg, "❌ Unknown category. Pick one from the category list")
            return {'success': True, 'value': value}

        if name == 'difficulty':
            try:
                return {'success': True, 'value': Difficulty(value)}
            except ValueError:
                error_msg = f"Invalid difficulty: {value}"
                self.logger.error(error_msg)
                return self._failure(error_msg, "❌ Difficulty must be easy, medium or hard")

        if name == 'question_type':
            try:
                return {'success': True, 'value': QuestionType(value)}
            except ValueError:
                error_msg = f"Invalid question type: {value}"
                self.logger.error(error_msg)
                return self._failure(error_msg, "❌ Question type must be multiple or boolean")

        error_msg = f"Unknown quiz option: {name}"
        self.logger.error(error_msg)
        return self._failure(error_msg, f"❌ Unknown setting: {name}")

    def _set_default(self, name: str, value: Any, describe: str) -> Dict[str, Any]:
        result = self.validate_option(name, value)
        if not result['success']:
            return result

        new_value = result['value']
        self._default_options = dataclasses.replace(self._default_options, **{name: new_value})
        message = f"Default {describe} set to {self._describe_value(name, new_value)}"
        self.logger.info(message)
        return {
            'success': True,
            'message': message,
            'user_message': f"✅ {message}"
        }

    @staticmethod
    def _options_as_dict(options: QuizOptions) -> Dict[str, Any]:
        return {
            'question_count': options.question_count,
            'category': options.category,
            'difficulty': options.difficulty,
            'question_type': options.question_type,
            'timer_seconds': options.timer_seconds
        }

    @staticmethod
    def _describe_value(name: str, value: Any) -> str:
        if name == 'category':
            return CATEGORIES[value]
        if name in ('difficulty', 'question_type'):
            return value.label
        if name == 'timer_seconds':
            return f"{value} seconds"
        return str(value)

    def set_question_count(self, count: int) -> Dict[str, Any]:
        """Set the default number of questions (1-50)."""
        return self._set_default('question_count', count, "question count")

    def set_category(self, category: int) -> Dict[str, Any]:
        """Set the default category id (0 for any category)."""
        return self._set_default('category', category, "category")

    def set_difficulty(self, difficulty: Any) -> Dict[str, Any]:
        """Set the default difficulty from an enum member or its API string."""
        return self._set_default('difficulty', difficulty, "difficulty")

    def set_question_type(self, question_type: Any) -> Dict[str, Any]:
        """Set the default question type from an enum member or its API string."""
        return self._set_default('question_type', question_type, "question type")

    def set_timer_seconds(self, seconds: int) -> Dict[str, Any]:
        """Set the default quiz timer (10-60 seconds)."""
        return self._set_default('timer_seconds', seconds, "timer")

    def set_api_url(self, url: str) -> Dict[str, Any]:
        """
        Set the trivia question endpoint.

        Args:
            url: HTTP(S) URL of the question endpoint

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(url, str) or not url.strip():
            error_msg = "Trivia API URL cannot be empty"
            self.logger.error(error_msg)
            return self._failure(error_msg, "❌ API URL cannot be empty")

        if not url.startswith(("http://", "https://")):
            error_msg = f"Trivia API URL must start with http:// or https://, got {url}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid API URL: {url}")

        self._api_url = url.strip()
        self.logger.info(f"Trivia API URL set to {self._api_url}")
        return {
            'success': True,
            'message': f"Trivia API URL set to {self._api_url}",
            'user_message': f"✅ Trivia API URL set to {self._api_url}"
        }

    def get_api_url(self) -> str:
        """Get the trivia question endpoint."""
        return self._api_url

    def set_request_timeout(self, timeout: Any) -> Dict[str, Any]:
        """
        Set the HTTP request timeout in seconds.

        Args:
            timeout: Timeout in seconds (int or float)

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            error_msg = f"Request timeout must be a number, got {type(timeout).__name__}"
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ Invalid input: Expected a number, got {type(timeout).__name__}")

        if not self.MIN_REQUEST_TIMEOUT <= timeout <= self.MAX_REQUEST_TIMEOUT:
            error_msg = (f"Request timeout must be between {self.MIN_REQUEST_TIMEOUT} "
                         f"and {self.MAX_REQUEST_TIMEOUT} seconds")
            self.logger.error(error_msg)
            return self._failure(error_msg, f"❌ {error_msg}")

        self._request_timeout = float(timeout)
        self.logger.info(f"Request timeout set to {self._request_timeout} seconds")
        return {
            'success': True,
            'message': f"Request timeout set to {self._request_timeout} seconds",
            'user_message': f"✅ Request timeout set to {self._request_timeout} seconds"
        }

    def get_request_timeout(self) -> float:
        """Get the HTTP request timeout in seconds."""
        return self._request_timeout

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'quiz' and 'trivia_api' sections of a configuration dict.

        Invalid entries are logged and skipped so the defaults stay usable.

        Args:
            config: Parsed contents of config.json

        Returns:
            List of error messages for the entries that were rejected
        """
        errors = []
        quiz_config = config.get('quiz', {})
        api_config = config.get('trivia_api', {})

        setters = [
            ('default_question_count', quiz_config, self.set_question_count),
            ('default_category', quiz_config, self.set_category),
            ('default_difficulty', quiz_config, self.set_difficulty),
            ('default_question_type', quiz_config, self.set_question_type),
            ('default_timer_seconds', quiz_config, self.set_timer_seconds),
            ('base_url', api_config, self.set_api_url),
            ('timeout', api_config, self.set_request_timeout),
        ]

        for key, section, setter in setters:
            if key not in section:
                continue
            result = setter(section[key])
            if not result['success']:
                errors.append(f"{key}: {result['error']}")

        if errors:
            self.logger.warning(f"Configuration applied with {len(errors)} rejected entries")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._default_options = self._build_default_options()
        self._api_url = self.DEFAULT_API_URL
        self._request_timeout = self.DEFAULT_REQUEST_TIMEOUT
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        for name, value in self._options_as_dict(self._default_options).items():
            if not self.validate_option(name, value)['success']:
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {name.replace('_', ' ')}: {value}")

        if not self._api_url.startswith(("http://", "https://")):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid trivia API URL: {self._api_url}")

        if not self.MIN_REQUEST_TIMEOUT <= self._request_timeout <= self.MAX_REQUEST_TIMEOUT:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid request timeout: {self._request_timeout}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        options = self._default_options
        return (
            f"Default Quiz Settings:\n"
            f"• Questions: {options.question_count}\n"
            f"• Category: {options.category_name}\n"
            f"• Difficulty: {options.difficulty.label}\n"
            f"• Type: {options.question_type.label}\n"
            f"• Timer: {options.timer_seconds} seconds\n"
            f"• Trivia API: {self._api_url}"
        )
