"""
Mastery Vault - the write path for mastered concepts.

Duplicate suppression is decided here, in two layers:
1. A case-insensitive scan of the caller's snapshot (no write on a hit).
2. The store's conditional insert, which catches entries added since the
   snapshot was taken (for example from a second tab).

Insert and mastery credit are two separate store writes, not one
transaction. If the credit fails after the insert landed, the entry stays
in the vault without its XP and the error propagates to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from ..errors import DuplicateEntryError
from ..models import Duplicate, Inserted, ProgressionEvent, VaultEntry, VaultOutcome, normalize_title
from ..signals import DuplicateSuppressed, MasteryCommitted, SignalBus
from ..utils.persistence import TutoringStore
from .progression import ProgressionService

_LOGGER = logging.getLogger(__name__)


class MasteryVault:
    """
    Commits hidden-channel payloads as vault entries.

    Each successful insert credits the mastery reward and emits
    MasteryCommitted; a duplicate emits DuplicateSuppressed and writes nothing.
    """

    def __init__(
        self,
        store: TutoringStore,
        progression: ProgressionService,
        signals: Optional[SignalBus] = None,
    ):
        self.store = store
        self.progression = progression
        self.signals = signals or progression.signals

    async def commit(
        self,
        owner_id: str,
        title: str,
        notes: str,
        existing: Sequence[VaultEntry],
        now: Optional[datetime] = None,
    ) -> VaultOutcome:
        """
        Insert a mastered concept unless the learner already has it.

        Args:
            owner_id: Learner the entry belongs to
            title: Concept title from the hidden channel
            notes: Concept summary from the hidden channel
            existing: Recent snapshot of the learner's vault
            now: Instant used for the progression credit

        Returns:
            Inserted(entry) or Duplicate(title)
        """
        title = title.strip()
        if not title:
            raise ValueError("Vault entry title cannot be empty")

        key = normalize_title(title)
        if any(entry.owner_id == owner_id and entry.title_key == key for entry in existing):
            return self._duplicate(title)

        entry = VaultEntry(title=title, notes=notes.strip(), owner_id=owner_id)
        try:
            await asyncio.shield(self._insert_and_credit(entry, now))
        except DuplicateEntryError:
            _LOGGER.info("Store rejected '%s' for %s; snapshot was stale", title, owner_id)
            return self._duplicate(title)

        _LOGGER.info("Vault entry '%s' committed for %s", title, owner_id)
        self.signals.emit(MasteryCommitted(entry))
        return Inserted(entry)

    async def _insert_and_credit(self, entry: VaultEntry, now: Optional[datetime]) -> None:
        await self.store.insert_vault_entry(entry)
        try:
            await self.progression.credit(entry.owner_id, ProgressionEvent.MASTERY, now)
        except Exception:
            _LOGGER.error("Vault entry '%s' saved for %s but mastery XP was not credited",
                          entry.title, entry.owner_id)
            raise

    def _duplicate(self, title: str) -> Duplicate:
        _LOGGER.debug("Duplicate vault title suppressed: %s", title)
        self.signals.emit(DuplicateSuppressed(title))
        return Duplicate(title)
