"""
Chat session repository.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .knowledge_repository import now_ms
from .models import ChatHistoryItem, ChatSession, Message
from ..db.collection import CollectionStore

CHAT_HISTORY = "chatHistory"

TITLE_WORDS = 5


def generate_chat_title(first_user_message: str) -> str:
    """
    Title a conversation after its first user message.

    Uses the first five words, with "..." appended when the message was
    longer; blank messages give "New Chat".
    """
    words = first_user_message.split()
    if not words:
        return "New Chat"
    title = " ".join(words[:TITLE_WORDS])
    if len(words) > TITLE_WORDS:
        title += "..."
    return title


class ChatSessionRepository:
    """
    Collection-backed repository for whole conversations.

    A session is always written in full; message order is kept exactly
    as given.
    """

    def __init__(self, store: CollectionStore[ChatSession]):
        self.store = store

    # ------------------------------------------------------------------
    # Creation / mutation
    # ------------------------------------------------------------------

    def save(self, session: ChatSession) -> None:
        self.store.put(session)

    def create_session(
        self,
        messages: Iterable[Message],
        *,
        first_message: str = "",
    ) -> ChatSession:
        """
        Persist a new conversation under a time-ordered id.

        The title is derived from `first_message`.
        """
        session = ChatSession(
            id=str(now_ms()),
            title=generate_chat_title(first_message or "Chat with attachments"),
            messages=list(messages),
        )
        self.save(session)
        return session

    def update_messages(
        self,
        session_id: str,
        messages: Iterable[Message],
    ) -> Optional[ChatSession]:
        """
        Replace the message list of an existing session.

        Returns the updated session, or None if `session_id` is unknown.
        """
        session = self.get(session_id)
        if session is None:
            return None
        updated = session.model_copy(update={"messages": list(messages)})
        self.save(updated)
        return updated

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self.store.get(session_id)

    def list_histories(self) -> List[ChatHistoryItem]:
        """Sidebar entries, newest conversation first."""
        sessions = sorted(self.store.get_all(), key=lambda s: s.id, reverse=True)
        return [ChatHistoryItem(id=s.id, title=s.title) for s in sessions]

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def delete(self, session_id: str) -> None:
        self.store.delete(session_id)

    def clear_all(self) -> None:
        self.store.clear()
