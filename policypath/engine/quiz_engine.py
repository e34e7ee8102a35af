"""
Quiz Engine - generates, runs and grades vault quizzes.

Lifecycle (cyclic):

    IDLE --begin(topics)--> LOADING --receive(payload)--> ACTIVE
    LOADING --abort / bad payload / mentor failure or cancellation--> IDLE
    ACTIVE --submit(option)--> ACTIVE | RESULT
    RESULT --close--> IDLE

Invariant after every transition: 0 <= score <= index <= len(questions).
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, List, Optional, Sequence, Tuple

from ..agents.context_assembler import ContextAssembler
from ..agents.mentor import MentorClient
from ..config import config
from ..errors import EmptyVaultError, MalformedResponseError, QuizStateError
from ..models import ExamResult, ProgressionEvent, QuizQuestion, QuizSession, QuizState, SubmitOutcome
from ..signals import QuizStateChanged, SignalBus
from ..utils.persistence import TutoringStore
from ..utils.validation import quiz_question_validator
from .progression import ProgressionService

_LOGGER = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def parse_quiz_payload(raw: str, max_questions: Optional[int] = None) -> Tuple[QuizQuestion, ...]:
    """
    Turn the mentor's quiz answer into questions.

    Accepts a bare JSON array, an array inside a code fence, an array
    embedded in surrounding prose, or an object with a "questions" array.
    Malformed items are dropped; the rest are truncated to ``max_questions``.

    Raises:
        MalformedResponseError: If no well-formed question can be recovered
    """
    max_questions = max_questions or config.quiz.max_questions
    data = _load_json(raw or "")

    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        raise MalformedResponseError("Quiz payload is not a list of questions")

    questions: List[QuizQuestion] = []
    for position, item in enumerate(data):
        question = _to_question(item)
        if question is None:
            _LOGGER.debug("Dropping malformed quiz item #%d", position)
            continue
        questions.append(question)
        if len(questions) == max_questions:
            break

    if not questions:
        raise MalformedResponseError("Quiz payload contained no well-formed questions")
    return tuple(questions)


def _load_json(raw: str) -> Any:
    candidates = []
    fenced = CODE_FENCE_PATTERN.search(raw)
    if fenced:
        candidates.append(fenced.group(1).strip())
    candidates.append(raw.strip())
    start, end = raw.find("["), raw.rfind("]")
    if start != -1 and end > start:
        candidates.append(raw[start:end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise MalformedResponseError("Quiz payload is not valid JSON")


def _to_question(item: Any) -> Optional[QuizQuestion]:
    result = quiz_question_validator.validate(item, auto_repair=True)
    if not result.valid:
        return None
    question = QuizQuestion(
        question=result.data["question"],
        options=tuple(result.data["options"]),
        answer=result.data["answer"],
    )
    try:
        question.validate()
    except ValueError:
        return None
    return question


class QuizEngine:
    """
    State machine for one learner's quiz.

    Usage:
        engine = QuizEngine(store, progression, mentor=mentor)
        await engine.start(owner_id, ["Article 21", "Article 14"])
        outcome = await engine.submit("Right to life")
        ...
        engine.close()
    """

    def __init__(
        self,
        store: TutoringStore,
        progression: ProgressionService,
        mentor: Optional[MentorClient] = None,
        assembler: Optional[ContextAssembler] = None,
        signals: Optional[SignalBus] = None,
        max_questions: Optional[int] = None,
        pass_threshold: Optional[int] = None,
    ):
        """
        Initialize quiz engine.

        Args:
            store: Persistence for exam results
            progression: Service that credits the quiz-pass reward
            mentor: Mentor used by start() to generate questions
            assembler: Builds the quiz-generation request
            signals: Bus for QuizStateChanged (default: the progression bus)
            max_questions: Question cap (default from config)
            pass_threshold: Score that must be exceeded to pass (default from config)
        """
        self.store = store
        self.progression = progression
        self.mentor = mentor
        self.assembler = assembler or ContextAssembler()
        self.signals = signals or progression.signals
        self.max_questions = max_questions or config.quiz.max_questions
        self.pass_threshold = config.quiz.pass_threshold if pass_threshold is None else pass_threshold

        self.owner_id: Optional[str] = None
        self.last_result: Optional[ExamResult] = None
        self._session = QuizSession()
        self._submitting = False

    # ==================== State Access ====================

    @property
    def state(self) -> QuizState:
        return self._session.state

    @property
    def session(self) -> QuizSession:
        return self._session

    def passed(self, score: int) -> bool:
        return score > self.pass_threshold

    # ==================== Transitions ====================

    def begin(self, topics: Sequence[str], owner_id: Optional[str] = None) -> None:
        """
        IDLE -> LOADING.

        Raises:
            QuizStateError: If a quiz is already loading, active or showing a result
            EmptyVaultError: If there are no topics to quiz on
        """
        self._require(QuizState.IDLE, "start a quiz")
        cleaned = tuple(dict.fromkeys(t.strip() for t in topics if t and t.strip()))
        if not cleaned:
            raise EmptyVaultError("Master at least one topic before taking a quiz")

        self.owner_id = owner_id or self.owner_id
        self.last_result = None
        self._transition(QuizSession(topics=cleaned, state=QuizState.LOADING))

    def receive(self, raw: str) -> QuizSession:
        """
        LOADING -> ACTIVE on a usable payload, LOADING -> IDLE otherwise.

        Raises:
            MalformedResponseError: If the payload has no well-formed question
        """
        self._require(QuizState.LOADING, "receive questions")
        try:
            questions = parse_quiz_payload(raw, self.max_questions)
        except MalformedResponseError:
            _LOGGER.warning("Quiz generation returned an unusable payload")
            self._reset()
            raise

        self._transition(
            QuizSession(questions=questions, topics=self._session.topics, state=QuizState.ACTIVE)
        )
        return self._session

    def abort(self) -> None:
        """LOADING -> IDLE."""
        self._require(QuizState.LOADING, "abort quiz loading")
        self._reset()

    async def start(self, owner_id: str, topics: Sequence[str]) -> QuizSession:
        """
        Generate a quiz from vault topics and make it active.

        Empty topics are rejected before any network call. On any mentor
        failure, cancellation or an unusable payload the engine returns to IDLE.
        """
        if self.mentor is None:
            raise RuntimeError("QuizEngine.start requires a mentor client")

        self.begin(topics, owner_id)
        query = self.assembler.build_quiz_query(self._session.topics, self.max_questions)
        try:
            raw = await self.mentor.ask(query, "", "quiz")
        except BaseException:
            self._reset()
            raise
        return self.receive(raw)

    async def submit(self, option: str) -> SubmitOutcome:
        """
        Grade one answer and advance.

        On the last question the ExamResult is persisted before the engine
        moves to RESULT; if that write fails the engine stays on the last
        question so the answer can be resubmitted. The write and the move to
        RESULT are shielded together: a cancelled caller still ends in RESULT
        with exactly one ExamResult stored.

        Raises:
            QuizStateError: Outside ACTIVE, or while another submit is in flight
        """
        self._require(QuizState.ACTIVE, "submit an answer")
        if self._submitting:
            raise QuizStateError("An answer is already being submitted")

        current = self._session
        question = current.current_question
        correct = option == question.answer
        score = current.score + (1 if correct else 0)
        index = current.index + 1
        finished = index == len(current.questions)

        if finished:
            result = ExamResult(
                score=score,
                total_questions=len(current.questions),
                topics_covered=", ".join(current.topics),
                owner_id=self.owner_id or "",
                passed=self.passed(score),
            )
            self._submitting = True
            await asyncio.shield(
                self._finish(result, QuizSession(current.questions, current.topics, index, score, QuizState.RESULT))
            )
        else:
            self._session = QuizSession(current.questions, current.topics, index, score, QuizState.ACTIVE)

        return SubmitOutcome(
            correct=correct,
            correct_answer=question.answer,
            score=score,
            index=index,
            finished=finished,
        )

    async def _finish(self, result: ExamResult, final: QuizSession) -> None:
        """Persist the ExamResult, move to RESULT and credit a pass, as one unit."""
        try:
            await self.store.append_exam_result(result)
            self.last_result = result
            self._transition(final)
        finally:
            self._submitting = False

        _LOGGER.info(
            "Quiz finished for %s: %d/%d (passed=%s)",
            self.owner_id, result.score, result.total_questions, result.passed,
        )
        if result.passed:
            await self.progression.credit(result.owner_id, ProgressionEvent.QUIZ_PASS)

    def close(self) -> None:
        """RESULT -> IDLE."""
        self._require(QuizState.RESULT, "close the quiz")
        self._reset()

    # ==================== Helpers ====================

    def _require(self, state: QuizState, action: str) -> None:
        if self._session.state is not state:
            raise QuizStateError(f"Cannot {action} while quiz is {self._session.state.value}")

    def _reset(self) -> None:
        self._transition(QuizSession())

    def _transition(self, session: QuizSession) -> None:
        changed = session.state is not self._session.state
        self._session = session
        if changed:
            self.signals.emit(QuizStateChanged(session.state))
