"""Unit tests for conversation models and SQLite persistence."""

import pytest

from surviveai.models.conversation import (
    ChatMessage,
    Conversation,
    PerformanceMetrics,
    generate_id,
    generate_title,
)
from surviveai.storage.conversation_store import ConversationStore


@pytest.fixture
def store(tmp_path):
    return ConversationStore(str(tmp_path / "chat.db"))


def test_generate_title():
    assert generate_title("  Snake bite on my ankle  ") == "Snake bite on my ankle"
    long = "How do I build a shelter when it is raining and very windy outside?"
    assert generate_title(long) == long[:50] + "..."


def test_generate_id_prefix_and_uniqueness():
    ids = {generate_id("msg") for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("msg_") for i in ids)


def test_metrics_combine():
    first = PerformanceMetrics(tokens_per_second=10.0, time_to_first_token_ms=120.0, total_time_ms=1000.0, total_tokens=10)
    second = PerformanceMetrics(tokens_per_second=30.0, time_to_first_token_ms=50.0, total_time_ms=1000.0, total_tokens=30)

    combined = first.combine(second)

    assert combined.total_tokens == 40
    assert combined.total_time_ms == 2000.0
    assert combined.time_to_first_token_ms == 120.0
    assert combined.tokens_per_second == pytest.approx(20.0)


def test_message_fields_survive_storage(store):
    conversation = Conversation()
    store.save_conversation(conversation)
    message = ChatMessage(
        conversation_id=conversation.id,
        role="assistant",
        content="Boil it.",
        images=("file:///a.jpg",),
        source="knowledge-grounded",
        knowledge_entry_id="water-purification",
        metrics=PerformanceMetrics(total_tokens=5),
    )
    store.add_message(message)

    assert store.get_messages(conversation.id) == [message]


def test_save_and_list_conversations(store):
    older = Conversation(title="Older", updated_at=1000)
    newer = Conversation(title="Newer", updated_at=2000)
    store.save_conversation(older)
    store.save_conversation(newer)

    assert [c.title for c in store.list_conversations()] == ["Newer", "Older"]
    assert store.get_conversation(older.id) == older
    assert store.get_conversation("missing") is None


def test_save_conversation_updates_existing(store):
    conversation = Conversation()
    store.save_conversation(conversation)
    conversation.title = "Renamed"
    conversation.message_count = 3
    store.save_conversation(conversation)

    assert store.get_conversation(conversation.id).title == "Renamed"
    assert len(store.list_conversations()) == 1


def test_messages_persist_in_order(store):
    conversation = Conversation()
    store.save_conversation(conversation)
    first = ChatMessage(conversation_id=conversation.id, role="user", content="Help", timestamp=1)
    second = ChatMessage(
        conversation_id=conversation.id,
        role="assistant",
        content="Stay calm.",
        timestamp=2,
        source="model",
        metrics=PerformanceMetrics(tokens_per_second=12.5, total_tokens=3),
    )
    store.add_message(second)
    store.add_message(first)

    assert store.get_messages(conversation.id) == [first, second]


def test_delete_cascades_to_messages(store):
    conversation = Conversation()
    store.save_conversation(conversation)
    store.add_message(ChatMessage(conversation_id=conversation.id, role="user", content="Hi"))

    assert store.delete_conversation(conversation.id)
    assert store.get_messages(conversation.id) == []
    assert not store.delete_conversation(conversation.id)


def test_delete_messages_keeps_conversation(store):
    conversation = Conversation()
    store.save_conversation(conversation)
    store.add_message(ChatMessage(conversation_id=conversation.id, role="user", content="Hi"))

    assert store.delete_messages(conversation.id) == 1
    assert store.get_conversation(conversation.id) is not None


def test_in_memory_store_keeps_data():
    store = ConversationStore(":memory:")
    conversation = Conversation()
    store.save_conversation(conversation)

    assert store.get_conversation(conversation.id) == conversation
    store.close()
