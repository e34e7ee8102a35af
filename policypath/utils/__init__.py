"""
Utility modules for PolicyPath.

- validation: JSON Schema validation with auto-repair
- persistence: async conversation/vault/exam/profile storage
"""

from .validation import (
    SchemaValidator,
    ValidationResult,
    QUIZ_QUESTION_SCHEMA,
    PROFILE_SCHEMA,
)
from .persistence import (
    TutoringStore,
    InMemoryStore,
    JSONFileStore,
)

__all__ = [
    # Validation
    "SchemaValidator",
    "ValidationResult",
    "QUIZ_QUESTION_SCHEMA",
    "PROFILE_SCHEMA",
    # Persistence
    "TutoringStore",
    "InMemoryStore",
    "JSONFileStore",
]
