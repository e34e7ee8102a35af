"""
Mastery vault data models.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Union

VaultStatus = Literal["Mastered"]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class VaultPayload:
    """Structured metadata carried on the hidden response channel."""
    title: str
    notes: str


@dataclass(frozen=True)
class VaultEntry:
    """
    A mastered concept owned by one learner. Never mutated after creation.

    Attributes:
        id: Entry identifier (ve-<uuid4>)
        title: Concept title, unique per owner ignoring case
        notes: Summary captured when the concept was mastered
        owner_id: Owning learner
        status: Always "Mastered"
        created_at: ISO 8601 UTC timestamp
    """
    title: str
    notes: str
    owner_id: str
    id: str = field(default_factory=lambda: f"ve-{uuid.uuid4()}")
    status: VaultStatus = "Mastered"
    created_at: str = field(default_factory=_utc_now)

    @property
    def title_key(self) -> str:
        return normalize_title(self.title)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "notes": self.notes,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VaultEntry:
        return cls(
            id=data["id"],
            title=data["title"],
            status=data.get("status", "Mastered"),
            notes=data.get("notes", ""),
            owner_id=data["owner_id"],
            created_at=data["created_at"],
        )


def normalize_title(title: str) -> str:
    """Comparison key for duplicate detection (case- and edge-whitespace-insensitive)."""
    return title.strip().casefold()


@dataclass(frozen=True)
class Inserted:
    """Outcome: the entry was written to the vault."""
    entry: VaultEntry


@dataclass(frozen=True)
class Duplicate:
    """Outcome: an entry with the same title already exists; nothing was written."""
    title: str


VaultOutcome = Union[Inserted, Duplicate]
