"""
Progression Ledger - XP and daily streak bookkeeping.

ProgressionLedger is the pure rule set: given a profile snapshot, an event
and the current instant, it returns the full replacement profile.
ProgressionService applies the ledger through the store's atomic
read-modify-write so that concurrent credits for one learner never
overwrite each other.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import config
from ..models import ProgressionEvent, UserProfile
from ..signals import ProgressionUpdated, SignalBus
from ..utils.persistence import TutoringStore

_LOGGER = logging.getLogger(__name__)


class ProgressionLedger:
    """
    Deterministic XP/streak rules.

    Rules:
    - LOGIN on the same calendar day as the last activity is a no-op.
    - Any other event on a new day recomputes the streak: +1 if the last
      activity was the previous day, otherwise reset to 1.
    - LOGIN (new day) earns login_xp; MASTERY earns mastery_xp and bumps
      topics_mastered; QUIZ_PASS earns quiz_pass_xp.
    - last_active_date moves to today on every event that is not a no-op.
    """

    def __init__(
        self,
        login_xp: Optional[int] = None,
        mastery_xp: Optional[int] = None,
        quiz_pass_xp: Optional[int] = None,
        tz: Optional[ZoneInfo] = None,
    ):
        prog = config.progression
        self.login_xp = prog.login_xp if login_xp is None else login_xp
        self.mastery_xp = prog.mastery_xp if mastery_xp is None else mastery_xp
        self.quiz_pass_xp = prog.quiz_pass_xp if quiz_pass_xp is None else quiz_pass_xp
        self.tz = tz or prog.tzinfo

    def calendar_day(self, now: datetime) -> date:
        """Calendar day of ``now`` in the ledger's timezone (naive times are taken as UTC)."""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz).date()

    def is_same_calendar_day(self, last_active: Optional[date], now: datetime) -> bool:
        return last_active is not None and last_active == self.calendar_day(now)

    def is_previous_calendar_day(self, last_active: Optional[date], now: datetime) -> bool:
        return last_active is not None and last_active == self.calendar_day(now) - timedelta(days=1)

    def apply_event(
        self, profile: UserProfile, event: ProgressionEvent, now: datetime
    ) -> UserProfile:
        """
        Compute the profile after one event.

        Args:
            profile: Current profile snapshot
            event: LOGIN, MASTERY or QUIZ_PASS
            now: Instant the event happened

        Returns:
            Full replacement profile (the same object for a same-day LOGIN)
        """
        event = ProgressionEvent(event)
        same_day = self.is_same_calendar_day(profile.last_active_date, now)

        if event is ProgressionEvent.LOGIN and same_day:
            return profile

        streak = profile.streak
        if not same_day:
            if self.is_previous_calendar_day(profile.last_active_date, now):
                streak += 1
            else:
                streak = 1

        xp = profile.xp
        topics_mastered = profile.topics_mastered
        if event is ProgressionEvent.LOGIN:
            xp += self.login_xp
        elif event is ProgressionEvent.MASTERY:
            xp += self.mastery_xp
            topics_mastered += 1
        elif event is ProgressionEvent.QUIZ_PASS:
            xp += self.quiz_pass_xp

        return replace(
            profile,
            xp=xp,
            streak=streak,
            topics_mastered=topics_mastered,
            last_active_date=self.calendar_day(now),
        )


class ProgressionService:
    """Applies ledger events to stored profiles and announces the result."""

    def __init__(
        self,
        store: TutoringStore,
        ledger: Optional[ProgressionLedger] = None,
        signals: Optional[SignalBus] = None,
    ):
        self.store = store
        self.ledger = ledger or ProgressionLedger()
        self.signals = signals or SignalBus()

    async def credit(
        self, owner_id: str, event: ProgressionEvent, now: Optional[datetime] = None
    ) -> UserProfile:
        """
        Apply one event to the learner's stored profile.

        The read-modify-write is shielded: once started it completes even if
        the caller is cancelled.
        """
        now = now or datetime.now(timezone.utc)
        before: list[UserProfile] = []

        def mutate(profile: UserProfile) -> UserProfile:
            before.append(profile)
            return self.ledger.apply_event(profile, event, now)

        updated = await asyncio.shield(self.store.update_profile(owner_id, mutate))

        if before and updated != before[0]:
            _LOGGER.info(
                "Credited %s to %s: xp %d -> %d, streak %d",
                ProgressionEvent(event).value, owner_id, before[0].xp, updated.xp, updated.streak,
            )
            self.signals.emit(ProgressionUpdated(updated))
        return updated
