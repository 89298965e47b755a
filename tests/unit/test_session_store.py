"""
Unit Tests for the Session Store

Tests the single-snapshot contract for both the file and in-memory media.
"""

import json
import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "study_companion", "src"))

from study_companion.errors import PersistenceError
from study_companion.learning_style import LearningStyle
from study_companion.session_state import ChatMessage, ChatSender, SavedSessionSnapshot, Session
from study_companion.session_store import SessionStore


def make_snapshot(text: str = "Hello!") -> SavedSessionSnapshot:
    return SavedSessionSnapshot(
        session=Session(
            original_content="Content",
            summary="Summary",
            outline=("One",),
            key_questions=("Why?",),
        ),
        learning_style=LearningStyle.CORNELL_NOTES,
        chat_messages=[ChatMessage(sender=ChatSender.AI, text=text)],
    )


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return SessionStore()
    return SessionStore(str(tmp_path / "nested" / "saved_session.json"))


class TestSessionStore:
    """Test suite for SessionStore."""

    def test_empty_store(self, store):
        assert store.has_snapshot() is False
        assert store.get() is None

    def test_put_then_get(self, store):
        snapshot = make_snapshot()
        store.put(snapshot)

        assert store.has_snapshot() is True
        assert store.get() == snapshot

    def test_put_overwrites_single_snapshot(self, store):
        store.put(make_snapshot("first"))
        store.put(make_snapshot("second"))

        assert store.get().chat_messages[0].text == "second"

    def test_delete_is_idempotent(self, store):
        store.put(make_snapshot())
        store.delete()
        store.delete()

        assert store.has_snapshot() is False
        assert store.get() is None

    def test_corrupt_json_raises(self, store, plant_raw_snapshot):
        plant_raw_snapshot(store, "{not json")
        with pytest.raises(PersistenceError):
            store.get()

    def test_wrong_shape_raises(self, store, plant_raw_snapshot):
        plant_raw_snapshot(store, {"version": 1, "session": "oops"})
        with pytest.raises(PersistenceError):
            store.get()


class TestFileSessionStore:
    """File-specific behaviour."""

    def test_file_contents_are_json(self, tmp_path):
        path = tmp_path / "saved_session.json"
        store = SessionStore(str(path))
        store.put(make_snapshot())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["learning_style"] == "Cornell Notes"
        assert data["chat_messages"][0]["sender"] == "ai"

    def test_survives_new_store_instance(self, tmp_path):
        path = str(tmp_path / "saved_session.json")
        snapshot = make_snapshot()
        SessionStore(path).put(snapshot)

        reopened = SessionStore(path)
        assert reopened.has_snapshot() is True
        assert reopened.get() == snapshot

    def test_unwritable_target_raises_and_leaves_no_temp_files(self, tmp_path):
        target = tmp_path / "occupied"
        target.mkdir()
        store = SessionStore(str(target))

        with pytest.raises(PersistenceError):
            store.put(make_snapshot())
        assert [p.name for p in tmp_path.iterdir()] == ["occupied"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
