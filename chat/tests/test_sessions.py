from dataclasses import replace
from datetime import datetime, timezone

from django.core.cache import cache
from django.test import SimpleTestCase

from chat.sessions import (
    DEFAULT_TITLE,
    ROLE_MODEL,
    ROLE_USER,
    STATUS_DRAFT,
    STATUS_PERSISTED,
    ChatMessage,
    ChatSession,
    DraftKey,
    PersistedKey,
    SessionOutbox,
    SessionReconciler,
    SessionRepository,
    derive_title,
    format_timestamp,
    parse_timestamp,
)
from tests.fakes import FakeTableStore
from utils.supabase_store import SESSIONS_TABLE


class TimestampTests(SimpleTestCase):
    def test_serialized_as_utc_with_milliseconds(self):
        dt = datetime(2025, 3, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
        self.assertEqual(format_timestamp(dt), "2025-03-01T12:30:05.123Z")

    def test_parse_accepts_z_offsets_and_epoch_millis(self):
        expected = datetime(2025, 3, 1, 12, 30, 5, 123000, tzinfo=timezone.utc)
        self.assertEqual(parse_timestamp("2025-03-01T12:30:05.123Z"), expected)
        self.assertEqual(parse_timestamp("2025-03-01T15:30:05.123+03:00"), expected)
        self.assertEqual(parse_timestamp(int(expected.timestamp() * 1000)), expected)

    def test_parse_rejects_garbage(self):
        with self.assertRaises(ValueError):
            parse_timestamp(None)
        with self.assertRaises(ValueError):
            parse_timestamp("yesterday")

    def test_parse_accepts_trimmed_fractional_digits(self):
        self.assertEqual(
            parse_timestamp("2025-01-01T12:00:00.12+00:00"),
            datetime(2025, 1, 1, 12, 0, 0, 120000, tzinfo=timezone.utc),
        )
        self.assertEqual(
            parse_timestamp("2025-01-01T12:00:00.1Z"),
            datetime(2025, 1, 1, 12, 0, 0, 100000, tzinfo=timezone.utc),
        )


class DeriveTitleTests(SimpleTestCase):
    def test_first_message_becomes_title(self):
        self.assertEqual(derive_title(DEFAULT_TITLE, "İş hayatım", 0), "İş hayatım")

    def test_welcome_message_does_not_block_title(self):
        self.assertEqual(derive_title(DEFAULT_TITLE, "Selam", 1), "Selam")

    def test_long_text_is_cut_at_thirty_chars(self):
        text = "Sürekli aynı ilişkiyi yaşıyorum ve çıkamıyorum"
        self.assertEqual(derive_title(DEFAULT_TITLE, text, 0), text[:30] + "...")

    def test_exactly_thirty_chars_kept(self):
        text = "x" * 30
        self.assertEqual(derive_title(DEFAULT_TITLE, text, 0), text)

    def test_custom_title_or_longer_history_unchanged(self):
        self.assertEqual(derive_title("Kariyer", "Selam", 0), "Kariyer")
        self.assertEqual(derive_title(DEFAULT_TITLE, "Selam", 2), DEFAULT_TITLE)


class ChatSessionModelTests(SimpleTestCase):
    def test_new_session_is_draft(self):
        s = ChatSession.new("u1")
        self.assertIsInstance(s.key, DraftKey)
        self.assertEqual(s.status, STATUS_DRAFT)
        self.assertEqual(s.title, DEFAULT_TITLE)
        self.assertNotIn("id", s.to_record())

    def test_persisted_record_carries_id(self):
        s = ChatSession.new("u1").persisted_as("abc")
        self.assertIsInstance(s.key, PersistedKey)
        self.assertEqual(s.to_record()["id"], "abc")

    def test_dict_round_trip_keeps_status_and_dirty_flag(self):
        s = ChatSession.new("u1").with_message(ChatMessage.create(ROLE_USER, "hi")).marked_dirty("down")
        back = ChatSession.from_dict(s.to_dict())
        self.assertEqual(back, s)

    def test_unknown_role_rejected(self):
        with self.assertRaises(ValueError):
            ChatMessage.create("assistant", "hi")

    def test_row_with_two_fractional_digits(self):
        s = ChatSession.from_record({
            "id": "r1", "user_id": "u1", "title": "t", "messages": [],
            "last_updated": "2025-01-01T12:00:00.12+00:00",
        })
        self.assertEqual(s.last_updated, datetime(2025, 1, 1, 12, 0, 0, 120000, tzinfo=timezone.utc))
        self.assertEqual(s.to_dict()["last_updated"], "2025-01-01T12:00:00.120Z")

    def test_message_without_timestamp_takes_session_time(self):
        s = ChatSession.from_record({
            "id": "r1", "user_id": "u1", "title": "t",
            "messages": [{"id": "m1", "role": "user", "text": "eski"}, {"role": "model", "text": "yanıt", "timestamp": ""}],
            "last_updated": "2024-06-01T08:00:00Z",
        })
        expected = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)
        self.assertEqual([m.timestamp for m in s.messages], [expected, expected])
        self.assertEqual(s.messages[0].text, "eski")


class SessionRepositoryTests(SimpleTestCase):
    def setUp(self):
        self.store = FakeTableStore()
        self.repo = SessionRepository(store=self.store)

    def test_messages_survive_save_and_fetch(self):
        session = ChatSession.new("u1")
        for i in range(7):
            role = ROLE_USER if i % 2 == 0 else ROLE_MODEL
            session = session.with_message(ChatMessage.create(role, f"mesaj {i}"))

        remote_id = self.repo.upsert(session)
        fetched = self.repo.get(remote_id, user_id="u1")

        self.assertEqual(len(fetched.messages), 7)
        for original, loaded in zip(session.messages, fetched.messages):
            self.assertEqual(loaded.role, original.role)
            self.assertEqual(loaded.text, original.text)
            self.assertEqual(loaded.timestamp, original.timestamp)

    def test_get_respects_owner_and_missing_rows(self):
        remote_id = self.repo.upsert(ChatSession.new("u1"))
        self.assertIsNone(self.repo.get(remote_id, user_id="someone-else"))
        self.assertIsNone(self.repo.get("does-not-exist"))

    def test_list_is_newest_first(self):
        older = replace(ChatSession.new("u1"), title="eski", last_updated=datetime(2025, 1, 1, tzinfo=timezone.utc))
        newer = replace(ChatSession.new("u1"), title="yeni", last_updated=datetime(2025, 1, 2, tzinfo=timezone.utc))
        self.repo.upsert(older)
        self.repo.upsert(newer)
        self.repo.upsert(ChatSession.new("u2"))
        titles = [s.title for s in self.repo.list_for_user("u1")]
        self.assertEqual(titles, ["yeni", "eski"])


class SessionReconcilerTests(SimpleTestCase):
    def setUp(self):
        cache.clear()
        self.store = FakeTableStore()
        self.reconciler = SessionReconciler(
            repository=SessionRepository(store=self.store), outbox=SessionOutbox()
        )

    def _draft(self, text="Selam"):
        return ChatSession.new("u1").with_message(ChatMessage.create(ROLE_USER, text))

    def test_draft_becomes_persisted_and_second_save_does_not_duplicate(self):
        draft = self._draft()
        saved = self.reconciler.save(draft)

        self.assertEqual(saved.status, STATUS_PERSISTED)
        self.assertNotEqual(saved.id, draft.id)
        self.assertFalse(saved.dirty)

        again = self.reconciler.save(saved.with_message(ChatMessage.create(ROLE_MODEL, "Merhaba")))
        self.assertEqual(again.id, saved.id)
        rows = self.store.rows(SESSIONS_TABLE)
        self.assertEqual(len(rows), 1)
        self.assertEqual(len(rows[0]["messages"]), 2)

    def test_failed_save_is_kept_dirty_then_flushed(self):
        self.store.fail("upsert", SESSIONS_TABLE)
        draft = self._draft()

        saved = self.reconciler.save(draft)
        self.assertTrue(saved.dirty)
        self.assertEqual(saved.status, STATUS_DRAFT)
        self.assertEqual(saved.last_error, "service unavailable")
        self.assertEqual([s.id for s in self.reconciler.outbox.pending("u1")], [draft.id])

        self.store.recover()
        results = self.reconciler.flush("u1")
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].status, STATUS_PERSISTED)
        self.assertEqual(self.reconciler.outbox.pending("u1"), [])
        self.assertEqual(len(self.store.rows(SESSIONS_TABLE)), 1)

    def test_load_finds_draft_in_outbox_and_by_alias(self):
        self.store.fail("upsert", SESSIONS_TABLE)
        parked = self.reconciler.save(self._draft())
        self.assertEqual(self.reconciler.load(parked.id, "u1"), parked)

        self.store.recover()
        persisted = self.reconciler.save(parked)
        loaded = self.reconciler.load(parked.id, "u1")
        self.assertEqual(loaded.id, persisted.id)
        self.assertEqual(loaded.status, STATUS_PERSISTED)

    def test_list_merges_remote_and_pending(self):
        remote = self.reconciler.save(self._draft("kayıtlı"))
        self.store.fail("upsert", SESSIONS_TABLE)
        pending = self.reconciler.save(self._draft("bekleyen"))

        listed = self.reconciler.list("u1")
        ids = {s.id for s in listed}
        self.assertEqual(ids, {remote.id, pending.id})
        self.assertTrue(next(s for s in listed if s.id == pending.id).dirty)
        self.assertEqual(listed, sorted(listed, key=lambda s: s.last_updated, reverse=True))

    def test_delete_local_only_draft_never_touches_store(self):
        self.store.fail("upsert", SESSIONS_TABLE)
        parked = self.reconciler.save(self._draft())
        self.reconciler.delete(parked.id, "u1")
        self.assertEqual(self.reconciler.outbox.pending("u1"), [])
        self.assertNotIn(("delete", SESSIONS_TABLE), self.store.calls)

    def test_delete_persisted_session(self):
        saved = self.reconciler.save(self._draft())
        self.reconciler.delete(saved.id, "u1")
        self.assertEqual(self.store.rows(SESSIONS_TABLE), [])

    def test_delete_by_draft_id_drops_parked_remote_copy(self):
        draft = self._draft()
        saved = self.reconciler.save(draft)
        self.store.fail("upsert", SESSIONS_TABLE)
        parked = self.reconciler.save(saved.with_message(ChatMessage.create(ROLE_MODEL, "Merhaba")))
        self.assertTrue(parked.dirty)

        self.store.recover()
        self.reconciler.delete(draft.id, "u1")

        self.assertEqual(self.reconciler.outbox.pending("u1"), [])
        self.assertEqual(self.reconciler.flush("u1"), [])
        self.assertEqual(self.store.rows(SESSIONS_TABLE), [])

    def test_aliases_are_per_user(self):
        outbox = self.reconciler.outbox
        outbox.alias("u1", "1700000000000-abcd", "remote-a")
        outbox.alias("u2", "1700000000000-abcd", "remote-b")
        self.assertEqual(outbox.resolve("u1", "1700000000000-abcd"), "remote-a")
        self.assertEqual(outbox.resolve("u2", "1700000000000-abcd"), "remote-b")
        self.assertEqual(outbox.resolve("u3", "1700000000000-abcd"), "1700000000000-abcd")

    def test_delete_ignores_other_users_sessions(self):
        saved = self.reconciler.save(self._draft())
        self.reconciler.delete(saved.id, "intruder")
        self.assertEqual(len(self.store.rows(SESSIONS_TABLE)), 1)
