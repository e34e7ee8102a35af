"""
Session Orchestrator - one request/response cycle per learner turn.

Per chat turn:
1. ContextAssembler packages the recent history and the new input
2. The mentor answers
3. ResponseChannelParser splits visible text from the hidden vault block
4. MasteryVault commits the block (duplicate-checked) and credits mastery XP
5. The annotated reply and the learner's message are appended and saved

The orchestrator also carries the identity session (no session, no
operations) and the per-conversation busy flag that keeps turns serial.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from ..agents.context_assembler import ContextAssembler
from ..agents.mentor import MentorClient
from ..config import config
from ..errors import NoSessionError, SessionBusyError
from ..models import (
    Duplicate,
    ExamResult,
    Inserted,
    Message,
    ProgressionEvent,
    QuizSession,
    SubmitOutcome,
    UserProfile,
    VaultEntry,
    VaultOutcome,
)
from ..signals import SignalBus
from ..utils.persistence import TutoringStore
from .mastery_vault import MasteryVault
from .progression import ProgressionLedger, ProgressionService
from .quiz_engine import QuizEngine
from .response_parser import ResponseChannelParser

_LOGGER = logging.getLogger(__name__)


class SessionOrchestrator:
    """
    Composes the tutoring engine for a single conversation.

    Usage:
        orchestrator = SessionOrchestrator(store, MentorClient())
        await orchestrator.start_session("learner-42", display_name="Asha")
        reply = await orchestrator.ask("Explain Article 21")
        await orchestrator.start_quiz()
    """

    def __init__(
        self,
        store: TutoringStore,
        mentor: MentorClient,
        signals: Optional[SignalBus] = None,
        assembler: Optional[ContextAssembler] = None,
        parser: Optional[ResponseChannelParser] = None,
        ledger: Optional[ProgressionLedger] = None,
    ):
        self.store = store
        self.mentor = mentor
        self.signals = signals or SignalBus()
        self.assembler = assembler or ContextAssembler()
        self.parser = parser or ResponseChannelParser()
        self.progression = ProgressionService(store, ledger, self.signals)
        self.vault_writer = MasteryVault(store, self.progression, self.signals)
        self.quiz = self._new_quiz_engine()

        self.owner_id: Optional[str] = None
        self._history: List[Message] = []
        self._profile: Optional[UserProfile] = None
        self._busy = False

    # ==================== Identity Session ====================

    @property
    def active(self) -> bool:
        return self.owner_id is not None

    @property
    def busy(self) -> bool:
        return self._busy

    async def start_session(
        self,
        owner_id: str,
        display_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """
        Begin a session for an authenticated learner.

        Loads the conversation (seeding the greeting for new learners),
        makes sure a profile exists and credits the daily login.
        """
        if not owner_id:
            raise ValueError("owner_id cannot be empty")
        if self.active and self.owner_id != owner_id:
            self.end_session()

        history = await self.store.load_history(owner_id)
        if not history:
            history = [Message(role="bot", text=config.conversation.greeting)]

        profile = UserProfile(owner_id=owner_id)
        if display_name:
            profile = UserProfile(owner_id=owner_id, display_name=display_name)
        await self.store.create_profile(profile)

        self.owner_id = owner_id
        self._history = history
        self._profile = await self.progression.credit(owner_id, ProgressionEvent.LOGIN, now)
        _LOGGER.info("Session started for %s (%d messages)", owner_id, len(history))
        return self._profile

    def end_session(self) -> None:
        """Forget the current learner. Later operations raise NoSessionError."""
        if self.owner_id:
            _LOGGER.info("Session ended for %s", self.owner_id)
        self.owner_id = None
        self._history = []
        self._profile = None
        self._busy = False
        self.quiz = self._new_quiz_engine()

    def _new_quiz_engine(self) -> QuizEngine:
        return QuizEngine(
            self.store, self.progression, mentor=self.mentor, assembler=self.assembler, signals=self.signals
        )

    def _require_session(self) -> str:
        if not self.active:
            raise NoSessionError("Sign in to use the tutor")
        return self.owner_id

    @asynccontextmanager
    async def _turn(self):
        """Serialise turns: a second submission while one is in flight is rejected."""
        self._require_session()
        if self._busy:
            raise SessionBusyError("Still answering your previous message")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    # ==================== Chat ====================

    @property
    def history(self) -> List[Message]:
        return list(self._history)

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    async def ask(self, text: str, now: Optional[datetime] = None) -> Message:
        """
        Run one chat turn.

        Args:
            text: Learner's message
            now: Instant used for progression credits

        Returns:
            The mentor's (annotated) reply

        Raises:
            NoSessionError, SessionBusyError, EmptyQueryError, TransportError.
            On any error before the vault commit the conversation is left
            exactly as it was. If only the history save fails after a new
            vault entry was committed, the turn is kept in memory (so the
            learner sees the saved notice) and the error is still raised;
            the next successful save persists it.
        """
        async with self._turn():
            owner_id = self.owner_id
            payload = self.assembler.build_turn(self._history, text)
            raw = await self.mentor.ask(payload.query, payload.history_context, payload.mode)
            parsed = self.parser.parse(raw)

            reply_text = parsed.visible
            saved = False
            if parsed.hidden is not None:
                existing = await self.store.list_vault(owner_id)
                outcome = await self.vault_writer.commit(
                    owner_id, parsed.hidden.title, parsed.hidden.notes, existing, now
                )
                reply_text = annotate(reply_text, outcome)
                saved = isinstance(outcome, Inserted)
                if saved:
                    self._profile = await self.store.get_profile(owner_id)

            reply = Message(role="bot", text=reply_text, saved=saved)
            updated = self._history + [Message(role="user", text=text.strip()), reply]
            try:
                await self.store.save_history(owner_id, updated)
            except Exception:
                if saved:
                    # Vault entry and XP already landed; keep the turn so the
                    # learner sees it and the next save persists it.
                    _LOGGER.warning("History save failed after committing '%s' for %s",
                                    parsed.hidden.title, owner_id)
                    self._history = updated
                raise
            self._history = updated
            return reply

    @staticmethod
    def review_prompt(entry: VaultEntry) -> str:
        """Query used when the learner reopens a vault entry."""
        return f"Let's review my progress on {entry.title}"

    async def vault(self) -> List[VaultEntry]:
        return await self.store.list_vault(self._require_session())

    async def exam_results(self) -> List[ExamResult]:
        return await self.store.list_exam_results(self._require_session())

    # ==================== Quiz ====================

    async def start_quiz(self) -> QuizSession:
        """Generate a quiz from the learner's vault titles."""
        async with self._turn():
            entries = await self.store.list_vault(self.owner_id)
            return await self.quiz.start(self.owner_id, [entry.title for entry in entries])

    async def answer_quiz(self, option: str) -> SubmitOutcome:
        async with self._turn():
            outcome = await self.quiz.submit(option)
            if outcome.finished and self.quiz.last_result and self.quiz.last_result.passed:
                self._profile = await self.store.get_profile(self.owner_id)
            return outcome

    def close_quiz(self) -> None:
        self._require_session()
        self.quiz.close()


def annotate(visible: str, outcome: VaultOutcome) -> str:
    """Append the save / duplicate notice to the visible reply."""
    if isinstance(outcome, Inserted):
        notice = f"Saved to your Constitutional Vault: {outcome.entry.title}"
    elif isinstance(outcome, Duplicate):
        notice = f"Already in your Vault: {outcome.title}"
    else:
        return visible
    return f"{visible}\n\n{notice}" if visible else notice
