"""
Persistence collaborator for the tutoring engine.

Provides the key/value conversation log and the row collections (vault,
exam_results, profiles) behind one async interface. Two backends:

- InMemoryStore: process-local, for tests and demos
- JSONFileStore: one JSON document per learner and collection under data/store/

Guarantees shared by both backends:
- Every operation for one owner is serialised by a per-owner lock, so
  profile read-modify-write cycles never interleave.
- Vault inserts are conditional: a case-insensitive title that already
  exists for the owner raises DuplicateEntryError instead of writing.
- A write either fully lands or does not happen at all.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections import defaultdict
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, DefaultDict, Dict, List, Optional

from ..config import config
from ..errors import DuplicateEntryError, TransportError
from ..models import ExamResult, Message, UserProfile, VaultEntry, normalize_title
from .validation import profile_validator

_LOGGER = logging.getLogger(__name__)

HISTORY = "history"
VAULT = "vault"
EXAM_RESULTS = "exam_results"
PROFILES = "profiles"

ProfileMutator = Callable[[UserProfile], UserProfile]


class TutoringStore(ABC):
    """
    Async storage interface used by the engine.

    Subclasses only implement raw document reads and writes; locking,
    uniqueness and (de)serialisation live here.
    """

    def __init__(self):
        self._locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @abstractmethod
    async def _read(self, owner_id: str, collection: str) -> Optional[Any]:
        """Return the stored document, or None if absent."""

    @abstractmethod
    async def _write(self, owner_id: str, collection: str, document: Any) -> None:
        """Replace the stored document atomically."""

    # ==================== Conversation log ====================

    async def load_history(self, owner_id: str) -> List[Message]:
        async with self._locks[owner_id]:
            document = await self._read(owner_id, HISTORY)
        return [Message.from_dict(item) for item in document or []]

    async def save_history(self, owner_id: str, messages: List[Message]) -> None:
        async with self._locks[owner_id]:
            await self._write(owner_id, HISTORY, [m.to_dict() for m in messages])

    # ==================== Vault ====================

    async def list_vault(self, owner_id: str) -> List[VaultEntry]:
        async with self._locks[owner_id]:
            document = await self._read(owner_id, VAULT)
        return [VaultEntry.from_dict(item) for item in document or []]

    async def insert_vault_entry(self, entry: VaultEntry) -> VaultEntry:
        """
        Insert a vault entry unless its title already exists for the owner.

        Raises:
            DuplicateEntryError: If (owner_id, lower(title)) is taken
        """
        async with self._locks[entry.owner_id]:
            document = await self._read(entry.owner_id, VAULT) or []
            key = entry.title_key
            if any(normalize_title(item["title"]) == key for item in document):
                raise DuplicateEntryError(entry.owner_id, entry.title)
            await self._write(entry.owner_id, VAULT, document + [entry.to_dict()])
        return entry

    # ==================== Exam results ====================

    async def append_exam_result(self, result: ExamResult) -> ExamResult:
        async with self._locks[result.owner_id]:
            document = await self._read(result.owner_id, EXAM_RESULTS) or []
            await self._write(result.owner_id, EXAM_RESULTS, document + [result.to_dict()])
        return result

    async def list_exam_results(self, owner_id: str) -> List[ExamResult]:
        async with self._locks[owner_id]:
            document = await self._read(owner_id, EXAM_RESULTS)
        return [ExamResult.from_dict(item) for item in document or []]

    # ==================== Profiles ====================

    async def get_profile(self, owner_id: str) -> Optional[UserProfile]:
        async with self._locks[owner_id]:
            return await self._get_profile_unlocked(owner_id)

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Create a profile if none exists; returns the stored profile either way."""
        async with self._locks[profile.owner_id]:
            existing = await self._get_profile_unlocked(profile.owner_id)
            if existing is not None:
                return existing
            await self._write(profile.owner_id, PROFILES, profile.to_dict())
            return profile

    async def update_profile(self, owner_id: str, mutator: ProfileMutator) -> UserProfile:
        """
        Atomic read-modify-write of one learner's profile.

        The mutator receives the current profile (a fresh one if the learner
        has none yet) and returns its full replacement. Nothing is written
        when the mutator returns the same value.
        """
        async with self._locks[owner_id]:
            current = await self._get_profile_unlocked(owner_id) or UserProfile(owner_id=owner_id)
            updated = mutator(current)
            if updated.owner_id != owner_id:
                raise ValueError(f"Profile owner changed from {owner_id} to {updated.owner_id}")
            if updated != current:
                await self._write(owner_id, PROFILES, updated.to_dict())
            return updated

    async def _get_profile_unlocked(self, owner_id: str) -> Optional[UserProfile]:
        document = await self._read(owner_id, PROFILES)
        if document is None:
            return None
        result = profile_validator.validate(document)
        if not result.valid:
            raise TransportError(f"Stored profile for {owner_id} is invalid: {result.errors}")
        return UserProfile.from_dict(document)


class InMemoryStore(TutoringStore):
    """Process-local store. Documents are deep-copied in and out."""

    def __init__(self):
        super().__init__()
        self._documents: Dict[tuple, Any] = {}

    async def _read(self, owner_id: str, collection: str) -> Optional[Any]:
        return deepcopy(self._documents.get((owner_id, collection)))

    async def _write(self, owner_id: str, collection: str, document: Any) -> None:
        self._documents[(owner_id, collection)] = deepcopy(document)


class JSONFileStore(TutoringStore):
    """
    File-backed store: ``<root>/<sha256(owner_id)>/<collection>.json``.

    Owner directories are named by digest so that distinct ids never share
    files and no id can reach outside the root.

    Writes go to a temporary file in the same directory followed by
    ``os.replace``, so a crash or cancelled caller never leaves a
    half-written document behind.
    """

    def __init__(self, root_dir: Path | str | None = None):
        """
        Initialize file store.

        Args:
            root_dir: Directory to store documents (default: config.paths.store_dir)
        """
        super().__init__()
        self.root_dir = Path(root_dir) if root_dir else config.paths.store_dir
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def owner_dir(self, owner_id: str) -> Path:
        """Directory holding one learner's documents."""
        return self.root_dir / hashlib.sha256(owner_id.encode("utf-8")).hexdigest()

    def _path(self, owner_id: str, collection: str) -> Path:
        return self.owner_dir(owner_id) / f"{collection}.json"

    async def _read(self, owner_id: str, collection: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read_sync, self._path(owner_id, collection))

    async def _write(self, owner_id: str, collection: str, document: Any) -> None:
        await asyncio.to_thread(self._write_sync, self._path(owner_id, collection), document)

    @staticmethod
    def _read_sync(filepath: Path) -> Optional[Any]:
        if not filepath.exists():
            return None
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            _LOGGER.warning("Unreadable store document %s: %s", filepath, e)
            raise TransportError(f"Store document {filepath.name} is corrupted") from e
        except OSError as e:
            raise TransportError(f"Failed to read {filepath}: {e}") from e

    @staticmethod
    def _write_sync(filepath: Path, document: Any) -> None:
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=filepath.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, filepath)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise TransportError(f"Failed to save {filepath}: {e}") from e
