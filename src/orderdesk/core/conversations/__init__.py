from .store import (
    CONVERSATIONS_TOPIC,
    DEFAULT_OWNER_NAME,
    ConversationStore,
    Increment,
    messages_topic,
    owner_name_for,
)

__all__ = [
    "CONVERSATIONS_TOPIC",
    "DEFAULT_OWNER_NAME",
    "ConversationStore",
    "Increment",
    "messages_topic",
    "owner_name_for",
]
