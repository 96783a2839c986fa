"""Conversation persistence.

Conversations are stored as one JSON file each; the turn protocol only
reads their history and appends the messages a turn produces.
"""

from verity_server.conversations.conversation import Conversation
from verity_server.conversations.manager import ConversationManager
from verity_server.conversations.types import ConversationMetadata, StoredMessage

__all__ = [
    "Conversation",
    "ConversationManager",
    "ConversationMetadata",
    "StoredMessage",
]
