"""
Data models for the tutoring engine.

- Message, TurnPayload: conversation log and mentor turn packaging
- VaultEntry, VaultPayload, Inserted, Duplicate: mastery vault records and outcomes
- QuizQuestion, QuizSession, QuizState, ExamResult: quiz lifecycle
- UserProfile, ProgressionEvent: XP and streak ledger
"""

from .conversation import Message, TurnPayload
from .vault import VaultEntry, VaultPayload, Inserted, Duplicate, VaultOutcome, normalize_title
from .quiz import QuizQuestion, QuizSession, QuizState, ExamResult, SubmitOutcome
from .profile import UserProfile, ProgressionEvent

__all__ = [
    "Message",
    "TurnPayload",
    "VaultEntry",
    "VaultPayload",
    "Inserted",
    "Duplicate",
    "VaultOutcome",
    "normalize_title",
    "QuizQuestion",
    "QuizSession",
    "QuizState",
    "ExamResult",
    "SubmitOutcome",
    "UserProfile",
    "ProgressionEvent",
]
