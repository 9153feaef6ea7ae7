"""
Tallman store - Repository package.

This package provides:
    - Data model records (KnowledgeItem, ChatSession, Message, User, ...)
    - Collection-backed repositories:
          * KnowledgeRepository
          * ChatSessionRepository
          * ApprovedUserRepository

The repositories expose a stable, domain-shaped interface on top of
CollectionStore and add the invariants each entity carries (protected
bootstrap admin, sidebar projection, first-start seeding).
"""

from .models import (
    ChatHistoryItem,
    ChatSession,
    KnowledgeItem,
    Message,
    Role,
    User,
    UserRole,
)
from .knowledge_repository import KNOWLEDGE, KnowledgeRepository
from .chat_repository import CHAT_HISTORY, ChatSessionRepository, generate_chat_title
from .user_repository import APPROVED_USERS, ApprovedUserRepository

__all__ = [
    # Data model records
    "ChatHistoryItem",
    "ChatSession",
    "KnowledgeItem",
    "Message",
    "Role",
    "User",
    "UserRole",

    # Collection names
    "KNOWLEDGE",
    "CHAT_HISTORY",
    "APPROVED_USERS",

    # Repositories
    "KnowledgeRepository",
    "ChatSessionRepository",
    "ApprovedUserRepository",
    "generate_chat_title",
]
