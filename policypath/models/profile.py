"""
Learner progression profile.

The profile is a frozen value: progression produces a full replacement
rather than mutating fields in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ProgressionEvent(str, Enum):
    """Events that can earn XP."""

    LOGIN = "login"
    MASTERY = "mastery"
    QUIZ_PASS = "quiz_pass"


@dataclass(frozen=True)
class UserProfile:
    """
    Gamified progression record, one per learner.

    Attributes:
        owner_id: Learner identifier
        xp: Cumulative experience points (>= 0)
        streak: Consecutive calendar days with activity (>= 0)
        last_active_date: Calendar day of the last credited activity
        topics_mastered: Number of vault entries ever committed (>= 0)
        display_name: Name shown on leaderboards
        created_at: ISO 8601 UTC timestamp
    """
    owner_id: str
    xp: int = 0
    streak: int = 0
    last_active_date: Optional[date] = None
    topics_mastered: int = 0
    display_name: str = "Anonymous Learner"
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __post_init__(self):
        for name in ("xp", "streak", "topics_mastered"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative: {getattr(self, name)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "xp": self.xp,
            "streak": self.streak,
            "last_active_date": self.last_active_date.isoformat() if self.last_active_date else None,
            "topics_mastered": self.topics_mastered,
            "display_name": self.display_name,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UserProfile:
        last_active = data.get("last_active_date")
        return cls(
            owner_id=data["owner_id"],
            xp=data.get("xp", 0),
            streak=data.get("streak", 0),
            last_active_date=date.fromisoformat(last_active) if last_active else None,
            topics_mastered=data.get("topics_mastered", 0),
            display_name=data.get("display_name", "Anonymous Learner"),
            created_at=data["created_at"],
        )
