"""Conversation service: persistence around the response orchestrator."""

import logging
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from surviveai.core.orchestrator import ResponseOrchestrator, SmartResponse
from surviveai.core.response_processor import StreamDisplay, clean_response
from surviveai.lib.errors import ConversationNotFoundError, EmptyResponseError
from surviveai.models.conversation import (
    PREVIEW_LENGTH,
    ChatMessage,
    Conversation,
    generate_title,
    now_ms,
)
from surviveai.models.device_context import DeviceContext
from surviveai.storage.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str], None]


class ConversationService:
    """Manages conversations and runs chat turns with persistence."""

    def __init__(self, storage: ConversationStore, orchestrator: ResponseOrchestrator):
        """Initialize conversation service.

        Args:
            storage: SQLite conversation store
            orchestrator: Turn orchestrator bound to the loaded model
        """
        self.storage = storage
        self.orchestrator = orchestrator

    def create_conversation(self) -> Conversation:
        conversation = Conversation()
        self.storage.save_conversation(conversation)
        logger.info(f"Created conversation {conversation.id}")
        return conversation

    def list_conversations(self) -> List[Conversation]:
        return self.storage.list_conversations()

    def get_conversation(self, conversation_id: str) -> Conversation:
        """Retrieve a conversation.

        Raises:
            ConversationNotFoundError: If no such conversation exists
        """
        conversation = self.storage.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def get_messages(self, conversation_id: str) -> List[ChatMessage]:
        self.get_conversation(conversation_id)
        return self.storage.get_messages(conversation_id)

    def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        conversation = self.get_conversation(conversation_id)
        conversation.title = title.strip() or conversation.title
        conversation.updated_at = now_ms()
        self.storage.save_conversation(conversation)
        return conversation

    def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation together with its messages."""
        if not self.storage.delete_conversation(conversation_id):
            raise ConversationNotFoundError(conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")

    def clear_conversation(self, conversation_id: str) -> Conversation:
        """Remove all messages but keep the conversation and its title."""
        conversation = self.get_conversation(conversation_id)
        removed = self.storage.delete_messages(conversation_id)
        conversation.message_count = 0
        conversation.preview = ""
        conversation.updated_at = now_ms()
        self.storage.save_conversation(conversation)
        logger.info(f"Cleared {removed} messages from {conversation_id}")
        return conversation

    async def send_message(
        self,
        conversation_id: str,
        content: str,
        context: Optional[DeviceContext] = None,
        images: Optional[Sequence[str]] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> ChatMessage:
        """Run one chat turn.

        The user message is persisted before generation, so it survives a
        failed turn.

        Args:
            conversation_id: Target conversation
            content: User message text
            context: Optional device context
            images: Optional image URIs for vision models
            on_update: Called with the cleaned display text while streaming

        Returns:
            The persisted assistant message

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            EmptyResponseError: If generation produced no visible text
            GenerationError: If generation failed or timed out
        """
        conversation = self.get_conversation(conversation_id)
        history = self.storage.get_messages(conversation_id)

        user_message = ChatMessage(
            conversation_id=conversation_id,
            role="user",
            content=content,
            images=tuple(images or ()),
        )
        self.storage.add_message(user_message)

        if not history:
            conversation.title = generate_title(content)
        conversation.message_count += 1
        conversation.preview = content[:PREVIEW_LENGTH]
        conversation.updated_at = now_ms()
        self.storage.save_conversation(conversation)

        display = StreamDisplay()

        def handle_token(token: str) -> None:
            visible = display.feed(token)
            if visible is not None and on_update:
                on_update(visible)

        result: SmartResponse = await self.orchestrator.generate_response(
            history + [user_message], on_token=handle_token, context=context
        )

        final = clean_response(result.response)
        if not final:
            raise EmptyResponseError()

        assistant_message = ChatMessage(
            conversation_id=conversation_id,
            role="assistant",
            content=final,
            source=result.source,
            knowledge_entry_id=result.knowledge_entry_id,
            metrics=result.metrics,
        )
        self.storage.add_message(assistant_message)

        conversation = replace(
            conversation,
            message_count=conversation.message_count + 1,
            preview=final[:PREVIEW_LENGTH],
            updated_at=now_ms(),
        )
        self.storage.save_conversation(conversation)
        return assistant_message
