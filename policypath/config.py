"""
Configuration management for PolicyPath.

This module centralizes all configuration settings:
- Secrets loaded from environment variables (.env supported)
- Sensible defaults for development
- Progression rewards and quiz thresholds in one place
- Thread-safe token tracking
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


@dataclass
class ModelConfig:
    """Mentor (LLM) configuration with OpenAI API settings."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    model_name: str = field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    )
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )

    chat_temperature: float = 0.7
    quiz_temperature: float = 0.5
    max_tokens: int = 1500

    # Guardrails
    max_retries: int = 2
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )

    # Reproducibility
    deterministic: bool = False

    def __post_init__(self):
        """Zero temperatures in deterministic mode."""
        if self.deterministic:
            self.chat_temperature = 0.0
            self.quiz_temperature = 0.0


@dataclass
class ConversationConfig:
    """Chat turn packaging and hidden-channel defaults."""

    product_name: str = "PolicyPath"
    greeting: str = (
        "Hello! I am your PolicyPath Tutor. "
        "Ask me anything about the Indian Constitution."
    )
    history_window: int = 3
    previous_reply_chars: int = 500

    vault_start_marker: str = "||VAULT_START||"
    vault_end_marker: str = "||VAULT_END||"
    default_title: str = "Constitutional Concept"

    @property
    def default_notes(self) -> str:
        return f"Mastered via {self.product_name}"


@dataclass
class QuizConfig:
    """Quiz generation and grading configuration."""

    max_questions: int = 10
    # Absolute score (over max_questions) a learner must exceed to earn the pass bonus
    pass_threshold: int = 5


@dataclass
class ProgressionConfig:
    """XP rewards and calendar settings for streaks."""

    login_xp: int = 10
    mastery_xp: int = 50
    quiz_pass_xp: int = 100
    timezone: str = field(default_factory=lambda: os.getenv("POLICYPATH_TZ", "UTC"))

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class PathConfig:
    """File system paths - single source of truth for all directories."""

    project_root: Path = field(default_factory=lambda: Path(__file__).parent.parent)
    data_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("POLICYPATH_DATA_DIR", str(Path(__file__).parent.parent / "data"))
        )
    )

    store_dir: Path = field(init=False)
    logs_dir: Path = field(init=False)

    def __post_init__(self):
        """Initialize computed paths."""
        self.store_dir = self.data_dir / "store"
        self.logs_dir = self.data_dir / "logs"

    def prepare_filesystem(self):
        """
        Create directories if they don't exist.

        Separated from __post_init__ to avoid side-effects on import.
        Call this explicitly from your app entrypoint.
        """
        for directory in [self.data_dir, self.store_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Logging and metrics configuration with env-driven pricing."""

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_tokens: bool = True

    cost_per_1k_input: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_INPUT", "0.00015"))
    )
    cost_per_1k_output: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_OUTPUT", "0.0006"))
    )


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from policypath.config import config

        api_key = config.model.api_key
        threshold = config.quiz.pass_threshold

        # Prepare filesystem (call once at startup)
        config.prepare_fs()
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.model = ModelConfig()
            cls._instance.conversation = ConversationConfig()
            cls._instance.quiz = QuizConfig()
            cls._instance.progression = ProgressionConfig()
            cls._instance.logging = LoggingConfig()
        return cls._instance

    def prepare_fs(self):
        """Prepare filesystem (create directories). Call once at startup."""
        self.paths.prepare_filesystem()

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.model.api_key:
            errors.append("OPENAI_API_KEY not set in environment")

        for name in ("chat_temperature", "quiz_temperature"):
            value = getattr(self.model, name)
            if not (0 <= value <= 2):
                errors.append(f"{name} must be in [0, 2], got {value}")

        if self.model.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0, got {self.model.request_timeout}")

        if self.conversation.history_window < 1:
            errors.append(
                f"history_window must be >= 1, got {self.conversation.history_window}"
            )

        if self.conversation.previous_reply_chars < 1:
            errors.append(
                f"previous_reply_chars must be >= 1, got {self.conversation.previous_reply_chars}"
            )

        if self.quiz.max_questions < 1:
            errors.append(f"quiz max_questions must be >= 1, got {self.quiz.max_questions}")

        if not (0 <= self.quiz.pass_threshold < self.quiz.max_questions):
            errors.append(
                f"quiz pass_threshold must be in [0, {self.quiz.max_questions}), "
                f"got {self.quiz.pass_threshold}"
            )

        for name in ("login_xp", "mastery_xp", "quiz_pass_xp"):
            if getattr(self.progression, name) < 0:
                errors.append(f"{name} must be >= 0, got {getattr(self.progression, name)}")

        try:
            self.progression.tzinfo
        except (KeyError, ValueError):
            errors.append(f"Unknown timezone: {self.progression.timezone}")

        return errors


# Global config instance
config = Config()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the configured log level to the ``policypath`` logger tree."""
    logging.basicConfig(
        level=(level or config.logging.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class TokenTracker:
    """
    Thread-safe tracker for token usage and estimated costs.

    Usage:
        from policypath.config import token_tracker

        token_tracker.add_tokens(input_tokens=100, output_tokens=50)
        print(token_tracker.summary())
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_calls = 0

    def add_tokens(self, input_tokens: int, output_tokens: int):
        """Add tokens from an API call (thread-safe)."""
        with self._lock:
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
            self.total_calls += 1

    def total_tokens(self) -> int:
        """Get total tokens used (thread-safe)."""
        with self._lock:
            return self.input_tokens + self.output_tokens

    def estimated_cost(self) -> float:
        """Calculate estimated cost in USD (thread-safe)."""
        with self._lock:
            return self._cost(self.input_tokens, self.output_tokens)

    @staticmethod
    def _cost(input_tokens: int, output_tokens: int) -> float:
        input_cost = (input_tokens / 1000) * config.logging.cost_per_1k_input
        output_cost = (output_tokens / 1000) * config.logging.cost_per_1k_output
        return input_cost + output_cost

    def summary(self) -> str:
        """Get formatted summary of usage."""
        stats = self.get_stats()
        return (
            "Token Usage Summary:\n"
            f"  API Calls: {stats['calls']}\n"
            f"  Input Tokens: {stats['input_tokens']:,}\n"
            f"  Output Tokens: {stats['output_tokens']:,}\n"
            f"  Total Tokens: {stats['total_tokens']:,}\n"
            f"  Estimated Cost: ${stats['estimated_cost']:.4f}"
        )

    def reset(self):
        """Reset counters (thread-safe)."""
        with self._lock:
            self.input_tokens = 0
            self.output_tokens = 0
            self.total_calls = 0

    def get_stats(self) -> dict:
        """Get current stats as dict (thread-safe)."""
        with self._lock:
            input_tokens = self.input_tokens
            output_tokens = self.output_tokens
            total_calls = self.total_calls

        return {
            "calls": total_calls,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "estimated_cost": self._cost(input_tokens, output_tokens),
        }


# Global token tracker instance
token_tracker = TokenTracker()
