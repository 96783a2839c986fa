"""Data types for conversation persistence."""

from dataclasses import dataclass

from verity_server.protocol.types import Message


@dataclass
class StoredMessage:
    """A persisted conversation message.

    Attributes:
        message_id: 10-char hex identifier
        role: "system", "user" or "assistant"
        content: Message text
        timestamp: Unix timestamp in seconds
    """

    message_id: str
    role: str
    content: str
    timestamp: int

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content, timestamp=self.timestamp)


@dataclass
class ConversationMetadata:
    """Metadata for a conversation."""

    conversation_id: str
    title: str
    model: str
    created_at: int
    updated_at: int
    message_count: int = 0
    format_version: str = "1.0"
