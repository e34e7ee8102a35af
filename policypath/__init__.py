"""
PolicyPath: conversational Indian-Constitution tutor with a mastery vault,
vault quizzes and XP/streak progression.
"""

from .config import config, configure_logging, token_tracker
from .errors import (
    PolicyPathError,
    TransportError,
    MalformedResponseError,
    EmptyVaultError,
    QuizStateError,
    SessionBusyError,
    NoSessionError,
    EmptyQueryError,
    DuplicateEntryError,
)
from .signals import (
    SignalBus,
    MasteryCommitted,
    DuplicateSuppressed,
    QuizStateChanged,
    ProgressionUpdated,
)
from .agents import ContextAssembler, MentorClient
from .engine import (
    ResponseChannelParser,
    MasteryVault,
    QuizEngine,
    ProgressionLedger,
    ProgressionService,
    SessionOrchestrator,
)
from .utils import InMemoryStore, JSONFileStore, TutoringStore

__version__ = "0.1.0"

__all__ = [
    "config",
    "configure_logging",
    "token_tracker",
    "PolicyPathError",
    "TransportError",
    "MalformedResponseError",
    "EmptyVaultError",
    "QuizStateError",
    "SessionBusyError",
    "NoSessionError",
    "EmptyQueryError",
    "DuplicateEntryError",
    "SignalBus",
    "MasteryCommitted",
    "DuplicateSuppressed",
    "QuizStateChanged",
    "ProgressionUpdated",
    "ContextAssembler",
    "MentorClient",
    "ResponseChannelParser",
    "MasteryVault",
    "QuizEngine",
    "ProgressionLedger",
    "ProgressionService",
    "SessionOrchestrator",
    "InMemoryStore",
    "JSONFileStore",
    "TutoringStore",
]
