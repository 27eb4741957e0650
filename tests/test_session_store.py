"""Tests for the per-agent session index."""

import json

from agentmem.session.store import SessionMetadata, SessionStore


def _make_store(tmp_path, agent_id="main") -> SessionStore:
    store = SessionStore(tmp_path, agent_id, count_tokens=len)
    store.init()
    return store


class TestSessionMetadata:
    def test_camel_case_round_trip(self):
        meta = SessionMetadata("s1", "main", "2026-01-01T00:00:00+00:00", "2026-01-01T00:00:00+00:00", 5, 2, 1)
        data = meta.to_dict()
        assert data == {
            "sessionId": "s1",
            "agentId": "main",
            "createdAt": "2026-01-01T00:00:00+00:00",
            "updatedAt": "2026-01-01T00:00:00+00:00",
            "totalTokens": 5,
            "entryCount": 2,
            "compactionCount": 1,
        }
        assert SessionMetadata.from_dict(data) == meta

    def test_from_dict_defaults_counters(self):
        meta = SessionMetadata.from_dict(
            {"sessionId": "s", "agentId": "a", "createdAt": "c", "updatedAt": "u"}
        )
        assert meta.total_tokens == 0
        assert meta.entry_count == 0


class TestCreateAndLoad:
    def test_create_session(self, tmp_path):
        store = _make_store(tmp_path)
        meta, transcript = store.create_session()

        assert meta.agent_id == "main"
        assert meta.created_at == meta.updated_at
        assert transcript.path == tmp_path / "agents" / "main" / "sessions" / f"{meta.session_id}.jsonl"
        assert transcript.path.exists()

        data = json.loads(store.sessions_file.read_text())
        assert data["sessions"][0]["sessionId"] == meta.session_id

    def test_session_ids_unique(self, tmp_path):
        store = _make_store(tmp_path)
        ids = {store.create_session()[0].session_id for _ in range(3)}
        assert len(ids) == 3

    def test_index_survives_reopen(self, tmp_path):
        store = _make_store(tmp_path)
        meta, _ = store.create_session()
        reopened = _make_store(tmp_path)
        assert reopened.get_session(meta.session_id) == meta

    def test_load_unknown_session(self, tmp_path):
        assert _make_store(tmp_path).load_session("nope") is None

    def test_load_session_reads_transcript(self, tmp_path):
        store = _make_store(tmp_path)
        meta, transcript = store.create_session()
        transcript.add_user_message("hello")

        loaded = store.load_session(meta.session_id)
        assert [e.content for e in loaded.entries] == ["hello"]

    def test_agents_are_isolated(self, tmp_path):
        a = _make_store(tmp_path, "a")
        b = _make_store(tmp_path, "b")
        meta, _ = a.create_session()
        assert b.get_session(meta.session_id) is None
        assert b.get_sessions() == []


class TestUpdate:
    def test_sync_from_transcript(self, tmp_path):
        store = _make_store(tmp_path)
        meta, transcript = store.create_session()
        transcript.add_user_message("hello")
        transcript.add_compaction("sum", [])

        synced = store.sync_from_transcript(meta.session_id, transcript)
        assert synced.total_tokens == 8
        assert synced.entry_count == 2
        assert synced.compaction_count == 1

        on_disk = json.loads(store.sessions_file.read_text())["sessions"][0]
        assert on_disk["totalTokens"] == 8

    def test_update_protects_identity_fields(self, tmp_path):
        store = _make_store(tmp_path)
        meta, _ = store.create_session()
        created = meta.created_at
        updated = store.update_session(
            meta.session_id, session_id="other", created_at="never", entry_count=3
        )
        assert updated.session_id == meta.session_id
        assert updated.created_at == created
        assert updated.entry_count == 3

    def test_update_unknown_session(self, tmp_path):
        assert _make_store(tmp_path).update_session("nope", entry_count=1) is None

    def test_most_recent_session(self, tmp_path):
        store = _make_store(tmp_path)
        first, _ = store.create_session()
        second, _ = store.create_session()
        store.get_session(first.session_id).updated_at = "2026-01-01T00:00:00+00:00"
        store.get_session(second.session_id).updated_at = "2026-01-02T00:00:00+00:00"
        assert store.get_most_recent_session().session_id == second.session_id

        store.get_session(first.session_id).updated_at = "2026-01-03T00:00:00+00:00"
        assert store.get_most_recent_session().session_id == first.session_id

    def test_most_recent_without_sessions(self, tmp_path):
        assert _make_store(tmp_path).get_most_recent_session() is None


class TestDeleteAndCorruption:
    def test_delete_keeps_transcript(self, tmp_path):
        store = _make_store(tmp_path)
        meta, transcript = store.create_session()
        assert store.delete_session(meta.session_id) is True
        assert store.get_session(meta.session_id) is None
        assert transcript.path.exists()
        assert store.delete_session(meta.session_id) is False

    def test_corrupt_index_reads_as_empty(self, tmp_path):
        store = SessionStore(tmp_path, "main")
        store.agent_dir.mkdir(parents=True)
        store.sessions_file.write_text("{broken")
        store.init()
        assert store.get_sessions() == []

    def test_wrong_shape_index_reads_as_empty(self, tmp_path):
        store = SessionStore(tmp_path, "main")
        store.agent_dir.mkdir(parents=True)
        store.sessions_file.write_text('["not", "an", "object"]')
        store.init()
        assert store.get_sessions() == []
