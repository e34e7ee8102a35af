"""
Unit tests for the persistence collaborator.

Tests both backends for round-trips, the vault uniqueness constraint,
profile read-modify-write and corrupted-document handling.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

from policypath.errors import DuplicateEntryError, TransportError
from policypath.models import ExamResult, Message, UserProfile, VaultEntry
from policypath.utils.persistence import InMemoryStore, JSONFileStore


class StoreContractMixin:
    """Behaviour every store backend must provide."""

    def make_store(self):
        raise NotImplementedError

    async def asyncSetUp(self):
        self.store = self.make_store()

    async def test_history_round_trip(self):
        messages = [
            Message(role="bot", text="Hello!"),
            Message(role="user", text="What is Article 21?"),
            Message(role="bot", text="Right to life.", saved=True, citation="Constitution of India"),
        ]
        await self.store.save_history("learner-1", messages)
        self.assertEqual(await self.store.load_history("learner-1"), messages)

    async def test_missing_history_is_empty(self):
        self.assertEqual(await self.store.load_history("nobody"), [])

    async def test_vault_insert_and_list(self):
        entry = VaultEntry(title="Article 21", notes="Right to life.", owner_id="learner-1")
        await self.store.insert_vault_entry(entry)
        self.assertEqual(await self.store.list_vault("learner-1"), [entry])
        self.assertEqual(await self.store.list_vault("learner-2"), [])

    async def test_vault_rejects_case_insensitive_duplicate(self):
        await self.store.insert_vault_entry(
            VaultEntry(title="Article 21", notes="", owner_id="learner-1")
        )
        with self.assertRaises(DuplicateEntryError):
            await self.store.insert_vault_entry(
                VaultEntry(title="  ARTICLE 21 ", notes="", owner_id="learner-1")
            )
        self.assertEqual(len(await self.store.list_vault("learner-1")), 1)

    async def test_vault_uniqueness_is_per_owner(self):
        await self.store.insert_vault_entry(VaultEntry(title="Article 21", notes="", owner_id="a"))
        await self.store.insert_vault_entry(VaultEntry(title="Article 21", notes="", owner_id="b"))
        self.assertEqual(len(await self.store.list_vault("b")), 1)

    async def test_exam_results_append_only(self):
        first = ExamResult(score=6, total_questions=10, topics_covered="Article 21", owner_id="learner-1")
        second = ExamResult(score=3, total_questions=10, topics_covered="Article 14", owner_id="learner-1")
        await self.store.append_exam_result(first)
        await self.store.append_exam_result(second)
        self.assertEqual(await self.store.list_exam_results("learner-1"), [first, second])

    async def test_create_profile_keeps_existing(self):
        original = await self.store.create_profile(UserProfile(owner_id="learner-1", xp=40))
        again = await self.store.create_profile(UserProfile(owner_id="learner-1", display_name="Other"))
        self.assertEqual(again, original)
        self.assertEqual(again.xp, 40)

    async def test_update_profile_replaces_whole_profile(self):
        await self.store.create_profile(UserProfile(owner_id="learner-1"))
        updated = await self.store.update_profile(
            "learner-1", lambda p: UserProfile(owner_id=p.owner_id, xp=p.xp + 5, created_at=p.created_at)
        )
        self.assertEqual(updated.xp, 5)
        self.assertEqual(await self.store.get_profile("learner-1"), updated)

    async def test_update_profile_cannot_change_owner(self):
        with self.assertRaises(ValueError):
            await self.store.update_profile("learner-1", lambda p: UserProfile(owner_id="someone-else"))
        self.assertIsNone(await self.store.get_profile("learner-1"))

    async def test_similar_owner_ids_do_not_share_records(self):
        await self.store.insert_vault_entry(
            VaultEntry(title="Secret", notes="", owner_id="asha@x.com")
        )
        await self.store.create_profile(UserProfile(owner_id="asha@x.com", xp=50))

        self.assertEqual(await self.store.list_vault("asha_x.com"), [])
        self.assertIsNone(await self.store.get_profile("asha_x.com"))
        await self.store.insert_vault_entry(
            VaultEntry(title="Secret", notes="", owner_id="asha_x.com")
        )
        self.assertEqual(len(await self.store.list_vault("asha@x.com")), 1)


class TestInMemoryStore(StoreContractMixin, unittest.IsolatedAsyncioTestCase):
    """InMemoryStore backend."""

    def make_store(self):
        return InMemoryStore()

    async def test_documents_are_copied(self):
        await self.store.save_history("learner-1", [Message(role="user", text="hi")])
        loaded = await self.store.load_history("learner-1")
        loaded.append(Message(role="bot", text="extra"))
        self.assertEqual(len(await self.store.load_history("learner-1")), 1)


class TestJSONFileStore(StoreContractMixin, unittest.IsolatedAsyncioTestCase):
    """JSONFileStore backend."""

    def make_store(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.temp_dir, ignore_errors=True)
        return JSONFileStore(self.temp_dir)

    async def test_files_are_written_per_owner(self):
        await self.store.save_history("learner-1", [Message(role="user", text="hi")])
        path = self.store.owner_dir("learner-1") / "history.json"
        self.assertTrue(path.exists())
        with open(path, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f), [{"role": "user", "text": "hi"}])
        self.assertEqual(list(path.parent.glob("*.tmp")), [])

    async def test_corrupted_document_raises_transport_error(self):
        path = self.store.owner_dir("learner-1") / "vault.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(TransportError):
            await self.store.list_vault("learner-1")

    async def test_invalid_profile_raises_transport_error(self):
        path = self.store.owner_dir("learner-1") / "profiles.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"owner_id": "learner-1", "xp": -5}), encoding="utf-8")
        with self.assertRaises(TransportError):
            await self.store.get_profile("learner-1")

    async def test_unsafe_owner_id_stays_inside_root(self):
        await self.store.save_history("../escape", [Message(role="user", text="hi")])
        written = list(self.temp_dir.rglob("history.json"))
        self.assertEqual(len(written), 1)
        self.assertTrue(written[0].is_relative_to(self.temp_dir))

    def test_owner_directories_are_distinct(self):
        owners = ["asha@x.com", "asha_x.com", "asha.x.com", "..", "__"]
        directories = {self.store.owner_dir(owner) for owner in owners}
        self.assertEqual(len(directories), len(owners))
        for directory in directories:
            self.assertEqual(directory.parent, self.temp_dir)


if __name__ == "__main__":
    unittest.main()
