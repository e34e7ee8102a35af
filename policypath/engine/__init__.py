"""
Tutoring session engine (pure logic over the store and mentor collaborators).

- ResponseChannelParser: visible text vs hidden vault block
- MasteryVault: duplicate-suppressed vault writes
- QuizEngine: quiz lifecycle state machine
- ProgressionLedger / ProgressionService: XP and streak rules
- SessionOrchestrator: one request/response cycle per learner turn
"""

from .response_parser import ResponseChannelParser, ParsedResponse, strip_emphasis
from .progression import ProgressionLedger, ProgressionService
from .mastery_vault import MasteryVault
from .quiz_engine import QuizEngine, parse_quiz_payload
from .orchestrator import SessionOrchestrator, annotate

__all__ = [
    "ResponseChannelParser",
    "ParsedResponse",
    "strip_emphasis",
    "ProgressionLedger",
    "ProgressionService",
    "MasteryVault",
    "QuizEngine",
    "parse_quiz_payload",
    "SessionOrchestrator",
    "annotate",
]
