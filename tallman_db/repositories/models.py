from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


# ----------------------------------------------------------------------
# Knowledge
# ----------------------------------------------------------------------

class KnowledgeItem(BaseModel):
    """One fact. `timestamp` (epoch milliseconds) is its unique key."""

    model_config = ConfigDict(frozen=True)

    content: StrictStr
    timestamp: StrictInt = Field(ge=-(2 ** 63), le=2 ** 63 - 1)


# ----------------------------------------------------------------------
# Chat
# ----------------------------------------------------------------------

class Role(str, Enum):
    USER = "user"
    MODEL = "model"


class Message(BaseModel):
    role: Role
    content: str


class ChatSession(BaseModel):
    id: str      # epoch-ms string, so lexicographic order is chronological
    title: str
    messages: List[Message] = Field(default_factory=list)


class ChatHistoryItem(BaseModel):
    """Sidebar projection of a ChatSession; never stored."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str


# ----------------------------------------------------------------------
# Approved users
# ----------------------------------------------------------------------

class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    HOLD = "hold"


class User(BaseModel):
    username: str
    role: UserRole
