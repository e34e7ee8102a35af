"""
Quiz data models.

A QuizSession is transient: only its ExamResult outlives it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Tuple


class QuizState(str, Enum):
    """Quiz lifecycle states (cyclic: idle -> loading -> active -> result -> idle)."""

    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"
    RESULT = "result"


@dataclass(frozen=True)
class QuizQuestion:
    """
    A single multiple-choice question. Immutable once generated.

    Attributes:
        question: Question text
        options: Ordered answer options (at least two)
        answer: The correct option, verbatim one of ``options``
    """
    question: str
    options: Tuple[str, ...]
    answer: str

    def validate(self) -> None:
        """
        Validate question integrity.

        Raises:
            ValueError: If validation fails
        """
        if not self.question.strip():
            raise ValueError("Quiz question text cannot be empty")
        if len(self.options) < 2:
            raise ValueError(
                f"Quiz question must have at least 2 options, got {len(self.options)}"
            )
        if self.answer not in self.options:
            raise ValueError(f"Answer {self.answer!r} is not one of the options")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "options": list(self.options),
            "answer": self.answer,
        }


@dataclass
class QuizSession:
    """
    Progress through one quiz.

    Invariant: 0 <= score <= index <= len(questions).
    """
    questions: Tuple[QuizQuestion, ...] = ()
    topics: Tuple[str, ...] = ()
    index: int = 0
    score: int = 0
    state: QuizState = QuizState.IDLE

    @property
    def current_question(self) -> QuizQuestion:
        return self.questions[self.index]

    @property
    def finished(self) -> bool:
        return bool(self.questions) and self.index == len(self.questions)


@dataclass(frozen=True)
class SubmitOutcome:
    """Result of grading one submitted option."""
    correct: bool
    correct_answer: str
    score: int
    index: int
    finished: bool


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ExamResult:
    """
    Append-only record of a completed quiz.

    Attributes:
        score: Correct answers
        total_questions: Questions asked
        topics_covered: Comma-separated vault titles the quiz drew from
        owner_id: Learner who took the quiz
        passed: Whether the pass bonus was earned
        created_at: ISO 8601 UTC timestamp
    """
    score: int
    total_questions: int
    topics_covered: str
    owner_id: str
    passed: bool = False
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "total_questions": self.total_questions,
            "topics_covered": self.topics_covered,
            "owner_id": self.owner_id,
            "passed": self.passed,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExamResult:
        return cls(
            score=data["score"],
            total_questions=data["total_questions"],
            topics_covered=data.get("topics_covered", ""),
            owner_id=data["owner_id"],
            passed=bool(data.get("passed", False)),
            created_at=data["created_at"],
        )
