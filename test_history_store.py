"""Tests for the transcript: in-session history and the shared chat history file."""

import pytest

from aiva.orchestration.conversation import ConversationHistory
from aiva.storage.history_store import ChatHistoryStore


@pytest.fixture
def history_store(tmp_path):
    return ChatHistoryStore(str(tmp_path / "chathistory.json"))


def test_load_without_file_is_empty(history_store):
    assert history_store.load() == ([], None)


def test_save_then_load(history_store):
    history_store.save([
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "system", "content": "dropped"},
        {"role": "user", "content": 42},
        "junk",
    ])

    messages, error = history_store.load()

    assert error is None
    assert messages == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello!"},
    ]


def test_corrupt_file_reports_error(history_store):
    history_store.path.write_text("{broken", encoding="utf-8")

    messages, error = history_store.load()

    assert messages == []
    assert error


def test_history_joins_same_role_turns():
    history = ConversationHistory("s1")
    history.add_message("assistant", "Welcome")
    history.add_message("user", "first")
    history.add_message("user", "second")
    history.add_message("assistant", "ok")

    formatted = history.get_message_history()

    assert [m["role"] for m in formatted] == ["assistant", "user", "assistant"]
    assert formatted[1]["content"][0]["text"] == "first\n\nsecond"
    # The stored transcript keeps every message
    assert len(history) == 4


def test_history_skips_empty_and_rejects_unknown_roles():
    history = ConversationHistory()

    assert history.add_message("user", "   ") is None
    with pytest.raises(ValueError):
        history.add_message("system", "hi")
    assert len(history) == 0


def test_history_export_round_trip():
    history = ConversationHistory("s1")
    history.add_message("user", "hi")
    history.add_message("assistant", "Hello!")

    restored = ConversationHistory.from_export(history.export_to_dict())

    assert restored.session_id == "s1"
    assert restored.to_records() == history.to_records()
