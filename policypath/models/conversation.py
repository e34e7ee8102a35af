"""
Conversation data models.

A conversation is an append-only, ordered log of messages, persisted in full
per learner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

Role = Literal["user", "bot"]
TurnMode = Literal["chat", "quiz"]


@dataclass(frozen=True)
class Message:
    """
    One entry in the conversation log.

    Attributes:
        role: "user" or "bot"
        text: Visible message text
        citation: Optional source reference shown under the message
        saved: True when this bot reply committed a new vault entry
    """
    role: Role
    text: str
    citation: Optional[str] = None
    saved: bool = False

    def __post_init__(self):
        if self.role not in ("user", "bot"):
            raise ValueError(f"Unknown message role: {self.role!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        data: Dict[str, Any] = {"role": self.role, "text": self.text}
        if self.citation is not None:
            data["citation"] = self.citation
        if self.saved:
            data["saved"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        return cls(
            role=data["role"],
            text=data["text"],
            citation=data.get("citation"),
            saved=bool(data.get("saved", False)),
        )


@dataclass(frozen=True)
class TurnPayload:
    """
    Everything the mentor needs for one chat turn.

    Attributes:
        query: Full prompt text (instructions, previous reply, new input)
        history_context: Role-tagged lines of the recent history window
        previous_bot_text: Truncated last mentor reply, if any
        mode: Always "chat" for assembled turns
    """
    query: str
    history_context: str
    previous_bot_text: Optional[str] = None
    mode: TurnMode = "chat"

    def to_request(self) -> Dict[str, str]:
        """Wire shape of the mentor request."""
        return {
            "query": self.query,
            "historyContext": self.history_context,
            "mode": self.mode,
        }
