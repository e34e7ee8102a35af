"""
Mentor-facing agents.

- ContextAssembler: deterministic packaging of chat turns and quiz requests
- MentorClient: LangChain/OpenAI client for the remote mentor

Note: parsing, vault, quiz and progression logic live in policypath.engine
(pure logic, not agents)
"""

from .context_assembler import ContextAssembler, truncate
from .mentor import MentorClient

__all__ = [
    "ContextAssembler",
    "MentorClient",
    "truncate",
]
