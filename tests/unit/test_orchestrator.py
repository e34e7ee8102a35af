"""
Unit tests for the session orchestrator.

The mentor is mocked; storage is the in-memory backend.
"""

import asyncio
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

from policypath.agents.mentor import MentorClient
from policypath.config import config
from policypath.engine.orchestrator import SessionOrchestrator, annotate
from policypath.engine.progression import ProgressionLedger
from policypath.errors import (
    EmptyQueryError,
    EmptyVaultError,
    NoSessionError,
    SessionBusyError,
    TransportError,
)
from policypath.models import Duplicate, Inserted, Message, QuizState, VaultEntry
from policypath.utils.persistence import InMemoryStore

from tests.conftest import make_quiz_payload

NOW = datetime(2024, 8, 15, 9, 0, tzinfo=timezone.utc)

MASTERY_REPLY = (
    "Great work! Article 21 guarantees life and personal liberty.\n"
    "||VAULT_START||Topic: **Article 21**\n"
    "Summary: Right to life and personal liberty.||VAULT_END||"
)


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared setup: a signed-in learner with a mocked mentor."""

    async def asyncSetUp(self):
        self.store = InMemoryStore()
        self.mentor = Mock(spec=MentorClient)
        self.mentor.ask = AsyncMock(return_value="Article 21 protects life. What does 'life' include?")
        self.orchestrator = SessionOrchestrator(
            self.store,
            self.mentor,
            ledger=ProgressionLedger(login_xp=10, mastery_xp=50, quiz_pass_xp=100, tz=timezone.utc),
        )
        await self.orchestrator.start_session("learner-1", display_name="Asha", now=NOW)


class TestIdentitySession(unittest.IsolatedAsyncioTestCase):
    """Operations require a session."""

    async def asyncSetUp(self):
        self.store = InMemoryStore()
        self.mentor = Mock(spec=MentorClient)
        self.mentor.ask = AsyncMock(return_value="hi")
        self.orchestrator = SessionOrchestrator(self.store, self.mentor)

    async def test_operations_rejected_without_session(self):
        with self.assertRaises(NoSessionError):
            await self.orchestrator.ask("hello")
        with self.assertRaises(NoSessionError):
            await self.orchestrator.vault()
        with self.assertRaises(NoSessionError):
            await self.orchestrator.start_quiz()
        with self.assertRaises(NoSessionError):
            await self.orchestrator.exam_results()
        self.mentor.ask.assert_not_awaited()

    async def test_empty_owner_rejected(self):
        with self.assertRaises(ValueError):
            await self.orchestrator.start_session("")

    async def test_new_learner_gets_greeting_and_profile(self):
        profile = await self.orchestrator.start_session("learner-9", display_name="Ravi", now=NOW)

        self.assertEqual(
            self.orchestrator.history, [Message(role="bot", text=config.conversation.greeting)]
        )
        self.assertEqual(profile.display_name, "Ravi")
        self.assertEqual(profile.xp, 10)
        self.assertEqual(profile.streak, 1)

    async def test_login_credited_once_per_day(self):
        await self.orchestrator.start_session("learner-9", now=NOW)
        again = await self.orchestrator.start_session("learner-9", now=NOW + timedelta(hours=3))
        self.assertEqual(again.xp, 10)

        next_day = await self.orchestrator.start_session("learner-9", now=NOW + timedelta(days=1))
        self.assertEqual(next_day.xp, 20)
        self.assertEqual(next_day.streak, 2)

    async def test_existing_history_is_loaded(self):
        saved = [Message(role="user", text="hi"), Message(role="bot", text="hello")]
        await self.store.save_history("learner-9", saved)
        await self.orchestrator.start_session("learner-9", now=NOW)
        self.assertEqual(self.orchestrator.history, saved)

    async def test_end_session(self):
        await self.orchestrator.start_session("learner-9", now=NOW)
        self.orchestrator.end_session()

        self.assertFalse(self.orchestrator.active)
        self.assertEqual(self.orchestrator.history, [])
        with self.assertRaises(NoSessionError):
            await self.orchestrator.ask("hello")


class TestChatTurn(OrchestratorTestCase):
    """Test SessionOrchestrator.ask."""

    async def test_plain_reply_appended_and_saved(self):
        reply = await self.orchestrator.ask("  Tell me about Article 21 ", now=NOW)

        self.assertEqual(reply.role, "bot")
        self.assertFalse(reply.saved)
        history = self.orchestrator.history
        self.assertEqual(len(history), 3)
        self.assertEqual(history[1], Message(role="user", text="Tell me about Article 21"))
        self.assertEqual(history[2], reply)
        self.assertEqual(await self.store.load_history("learner-1"), history)
        self.assertEqual(await self.store.list_vault("learner-1"), [])

    async def test_mentor_receives_assembled_turn(self):
        await self.orchestrator.ask("Tell me about Article 21", now=NOW)

        query, history_context, mode = self.mentor.ask.await_args.args
        self.assertEqual(mode, "chat")
        self.assertIn("Tell me about Article 21", query)
        self.assertIn(config.conversation.greeting, query)
        self.assertEqual(history_context, f"Mentor: {config.conversation.greeting}")

    async def test_hidden_block_commits_to_vault(self):
        self.mentor.ask.return_value = MASTERY_REPLY
        reply = await self.orchestrator.ask("Dignity", now=NOW)

        self.assertTrue(reply.saved)
        self.assertNotIn("||VAULT_START||", reply.text)
        self.assertTrue(reply.text.startswith("Great work!"))
        self.assertIn("Saved to your Constitutional Vault: Article 21", reply.text)

        (entry,) = await self.orchestrator.vault()
        self.assertEqual(entry.title, "Article 21")
        self.assertEqual(entry.notes, "Right to life and personal liberty.")
        self.assertEqual(self.orchestrator.profile.xp, 60)
        self.assertEqual(self.orchestrator.profile.topics_mastered, 1)

    async def test_repeated_mastery_is_suppressed(self):
        self.mentor.ask.return_value = MASTERY_REPLY
        await self.orchestrator.ask("Dignity", now=NOW)
        reply = await self.orchestrator.ask("Dignity again", now=NOW)

        self.assertFalse(reply.saved)
        self.assertIn("Already in your Vault: Article 21", reply.text)
        self.assertEqual(len(await self.orchestrator.vault()), 1)
        profile = await self.store.get_profile("learner-1")
        self.assertEqual(profile.xp, 60)

    async def test_empty_input_rejected_without_network(self):
        with self.assertRaises(EmptyQueryError):
            await self.orchestrator.ask("   ")
        self.mentor.ask.assert_not_awaited()
        self.assertFalse(self.orchestrator.busy)

    async def test_transport_error_leaves_history_unchanged(self):
        before = self.orchestrator.history
        self.mentor.ask.side_effect = TransportError("offline")

        with self.assertRaises(TransportError):
            await self.orchestrator.ask("Tell me about Article 14", now=NOW)

        self.assertEqual(self.orchestrator.history, before)
        self.assertEqual(await self.store.load_history("learner-1"), [])
        self.assertFalse(self.orchestrator.busy)

    async def test_history_save_failure_after_commit_keeps_turn(self):
        self.mentor.ask.return_value = MASTERY_REPLY
        save_history = self.store.save_history
        self.store.save_history = AsyncMock(side_effect=TransportError("disk full"))

        with self.assertRaises(TransportError):
            await self.orchestrator.ask("Dignity", now=NOW)

        (entry,) = await self.orchestrator.vault()
        self.assertEqual(entry.title, "Article 21")
        self.assertEqual(self.orchestrator.profile.xp, 60)
        reply = self.orchestrator.history[-1]
        self.assertTrue(reply.saved)
        self.assertIn("Saved to your Constitutional Vault: Article 21", reply.text)
        self.assertFalse(self.orchestrator.busy)

        # The next successful turn persists the kept one too
        self.store.save_history = save_history
        self.mentor.ask.return_value = "Shall we look at Article 14 next?"
        await self.orchestrator.ask("Yes", now=NOW)
        stored = await self.store.load_history("learner-1")
        self.assertEqual(stored, self.orchestrator.history)
        self.assertEqual([m.text for m in stored if m.role == "user"], ["Dignity", "Yes"])

    async def test_history_save_failure_without_commit_leaves_history(self):
        before = self.orchestrator.history
        self.store.save_history = AsyncMock(side_effect=TransportError("disk full"))

        with self.assertRaises(TransportError):
            await self.orchestrator.ask("Tell me about Article 14", now=NOW)

        self.assertEqual(self.orchestrator.history, before)

    async def test_second_submission_rejected_while_busy(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_ask(*args):
            started.set()
            await release.wait()
            return "Done."

        self.mentor.ask.side_effect = slow_ask
        first = asyncio.create_task(self.orchestrator.ask("first", now=NOW))
        await started.wait()

        self.assertTrue(self.orchestrator.busy)
        with self.assertRaises(SessionBusyError):
            await self.orchestrator.ask("second", now=NOW)

        release.set()
        reply = await first
        self.assertEqual(reply.text, "Done.")
        self.assertEqual([m.text for m in self.orchestrator.history[1:]], ["first", "Done."])

    def test_review_prompt(self):
        entry = VaultEntry(title="Preamble", notes="", owner_id="learner-1")
        self.assertEqual(
            SessionOrchestrator.review_prompt(entry), "Let's review my progress on Preamble"
        )


class TestQuizFlow(OrchestratorTestCase):
    """Quiz through the orchestrator."""

    async def test_empty_vault_rejected(self):
        with self.assertRaises(EmptyVaultError):
            await self.orchestrator.start_quiz()
        self.mentor.ask.assert_not_awaited()

    async def test_full_quiz_updates_profile(self):
        self.mentor.ask.return_value = MASTERY_REPLY
        await self.orchestrator.ask("Dignity", now=NOW)

        self.mentor.ask.return_value = make_quiz_payload(10, fenced=True)
        session = await self.orchestrator.start_quiz()
        self.assertEqual(self.orchestrator.quiz.state, QuizState.ACTIVE)
        self.assertIn("Article 21", self.mentor.ask.await_args.args[0])

        outcome = None
        for question in session.questions:
            outcome = await self.orchestrator.answer_quiz(question.answer)

        self.assertTrue(outcome.finished)
        self.assertEqual(outcome.score, 10)
        (result,) = await self.orchestrator.exam_results()
        self.assertTrue(result.passed)
        self.assertEqual(result.topics_covered, "Article 21")
        self.assertEqual(self.orchestrator.profile.xp, 160)

        self.orchestrator.close_quiz()
        self.assertEqual(self.orchestrator.quiz.state, QuizState.IDLE)


class TestAnnotate(unittest.TestCase):
    """Test annotate helper."""

    def test_inserted(self):
        entry = VaultEntry(title="Article 21", notes="", owner_id="u")
        self.assertEqual(
            annotate("Well done.", Inserted(entry)),
            "Well done.\n\nSaved to your Constitutional Vault: Article 21",
        )

    def test_duplicate_without_visible_text(self):
        self.assertEqual(annotate("", Duplicate("Article 21")), "Already in your Vault: Article 21")


if __name__ == "__main__":
    unittest.main()
