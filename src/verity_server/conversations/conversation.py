"""Conversation class: message history persisted as one JSON file.

A conversation file has the structure::

    {"metadata": {...}, "messages": [...]}

Messages are append-only.
"""

import json
import logging
import time
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Any

from verity_server.conversations.types import ConversationMetadata, StoredMessage
from verity_server.protocol.types import Message

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")
DEFAULT_TITLE = "New chat"


class Conversation:
    """A single conversation with its message history and metadata."""

    def __init__(
        self,
        metadata: ConversationMetadata,
        messages: list[StoredMessage] | None = None,
    ) -> None:
        self.metadata = metadata
        self.messages: list[StoredMessage] = messages or []

    @property
    def conversation_id(self) -> str:
        return self.metadata.conversation_id

    @classmethod
    def new(cls, model: str, title: str | None = None) -> "Conversation":
        now = int(time.time())
        metadata = ConversationMetadata(
            conversation_id=cls.generate_id(),
            title=title or DEFAULT_TITLE,
            model=model,
            created_at=now,
            updated_at=now,
        )
        return cls(metadata)

    def add_message(self, role: str, content: str, timestamp: int | None = None) -> StoredMessage:
        """Append a message and update the metadata.

        Raises:
            ValueError: If role is not system, user or assistant
        """
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown message role: {role}")

        message = StoredMessage(
            message_id=self.generate_id(),
            role=role,
            content=content,
            timestamp=timestamp if timestamp is not None else int(time.time()),
        )
        self.messages.append(message)
        self.metadata.message_count = len(self.messages)
        self.metadata.updated_at = int(time.time())
        return message

    def add_protocol_message(self, message: Message) -> StoredMessage:
        return self.add_message(message.role, message.content, message.timestamp)

    def protocol_messages(self) -> list[Message]:
        return [message.to_message() for message in self.messages]

    def rename(self, title: str) -> None:
        self.metadata.title = title.strip() or DEFAULT_TITLE
        self.metadata.updated_at = int(time.time())

    def get_preview(self, max_length: int = 100) -> str:
        """Return the first user message, truncated to max_length."""
        for message in self.messages:
            if message.role == "user":
                content = message.content
                if len(content) > max_length:
                    return content[: max_length - 3] + "..."
                return content
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": asdict(self.metadata),
            "messages": [asdict(message) for message in self.messages],
        }

    def save(self, conversations_dir: Path) -> None:
        conversations_dir.mkdir(parents=True, exist_ok=True)
        file_path = conversations_dir / f"{self.conversation_id}.json"
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved conversation {self.conversation_id} to {file_path}")

    @classmethod
    def load(cls, conversation_id: str, conversations_dir: Path) -> "Conversation":
        """Load a conversation from its JSON file.

        Raises:
            FileNotFoundError: If the conversation file doesn't exist
            ValueError: If the file contents are invalid
        """
        file_path = conversations_dir / f"{conversation_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Conversation {conversation_id} not found")

        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        try:
            metadata = ConversationMetadata(**data["metadata"])
            messages = [StoredMessage(**item) for item in data.get("messages", [])]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid conversation file {file_path.name}: {e}")
        return cls(metadata, messages)

    @staticmethod
    def generate_id() -> str:
        """Generate a 10-character hexadecimal identifier."""
        return uuid.uuid4().hex[:10]
