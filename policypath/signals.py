"""
Signals emitted by the engine for a presentation layer to render.

The engine never renders anything itself; it only announces what happened.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Type, Union

from .models import QuizState, UserProfile, VaultEntry

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MasteryCommitted:
    entry: VaultEntry


@dataclass(frozen=True)
class DuplicateSuppressed:
    title: str


@dataclass(frozen=True)
class QuizStateChanged:
    state: QuizState


@dataclass(frozen=True)
class ProgressionUpdated:
    profile: UserProfile


Signal = Union[MasteryCommitted, DuplicateSuppressed, QuizStateChanged, ProgressionUpdated]
Handler = Callable[[Signal], None]


class SignalBus:
    """
    Synchronous signal dispatcher.

    Usage:
        bus = SignalBus()
        bus.connect(MasteryCommitted, lambda s: print("Saved", s.entry.title))
        bus.emit(MasteryCommitted(entry))

    A failing handler is logged and skipped so that rendering problems never
    undo an engine operation that already completed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: DefaultDict[Type, List[Handler]] = defaultdict(list)

    def connect(self, signal_type: Type, handler: Handler) -> None:
        with self._lock:
            self._handlers[signal_type].append(handler)

    def disconnect(self, signal_type: Type, handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers[signal_type]:
                self._handlers[signal_type].remove(handler)

    def emit(self, signal: Signal) -> None:
        with self._lock:
            handlers = list(self._handlers[type(signal)])

        for handler in handlers:
            try:
                handler(signal)
            except Exception:
                _LOGGER.exception("Signal handler failed for %s", type(signal).__name__)
