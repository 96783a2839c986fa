"""ConversationManager: CRUD over a directory of conversation files."""

import logging
from pathlib import Path

from verity_server.conversations.conversation import Conversation

logger = logging.getLogger(__name__)


class ConversationManager:
    """Creates, lists, loads and deletes conversations stored as JSON files."""

    def __init__(self, conversations_dir: Path) -> None:
        self.conversations_dir = conversations_dir
        self.conversations_dir.mkdir(parents=True, exist_ok=True)

    def create(self, model: str, title: str | None = None) -> Conversation:
        conversation = Conversation.new(model=model, title=title)
        conversation.save(self.conversations_dir)
        logger.info(f"Created conversation {conversation.conversation_id} with model {model}")
        return conversation

    def get(self, conversation_id: str) -> Conversation:
        """Load a conversation.

        Raises:
            FileNotFoundError: If the conversation doesn't exist
        """
        return Conversation.load(conversation_id, self.conversations_dir)

    def save(self, conversation: Conversation) -> None:
        conversation.save(self.conversations_dir)

    def list_conversations(self) -> list[Conversation]:
        """List all conversations, most recently updated first."""
        conversations = []
        for file_path in self.conversations_dir.glob("*.json"):
            try:
                conversations.append(Conversation.load(file_path.stem, self.conversations_dir))
            except (ValueError, OSError) as e:
                logger.warning(f"Skipping unreadable conversation file {file_path.name}: {e}")
        conversations.sort(key=lambda c: c.metadata.updated_at, reverse=True)
        return conversations

    def rename(self, conversation_id: str, title: str) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.rename(title)
        conversation.save(self.conversations_dir)
        return conversation

    def delete(self, conversation_id: str) -> None:
        """Delete a conversation.

        Raises:
            FileNotFoundError: If the conversation doesn't exist
        """
        file_path = self.conversations_dir / f"{conversation_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Conversation {conversation_id} not found")
        file_path.unlink()
        logger.info(f"Deleted conversation {conversation_id}")
