"""Conversation and memory models"""

from typing import Optional, List
from pydantic import BaseModel, Field

from pitchintel.models.completion import Role


class ConversationMessage(BaseModel):
    """Single message in a conversation"""
    role: Role
    content: str
    timestamp: float
    tokens: int = 0


class Conversation(BaseModel):
    """Bounded conversation history"""
    id: str
    messages: List[ConversationMessage] = Field(default_factory=list)
    created_at: float
    last_active: float
    system_prompt: Optional[str] = None

    # Always equals sum(m.tokens for m in messages)
    total_tokens: int = 0


class ConversationStats(BaseModel):
    """Aggregate numbers across all live conversations"""
    active_conversations: int = 0
    total_messages: int = 0
    total_tokens: int = 0
    average_messages_per_conversation: float = 0.0

    def to_response(self) -> dict:
        return {
            "activeConversations": self.active_conversations,
            "totalMessages": self.total_messages,
            "totalTokens": self.total_tokens,
            "averageMessagesPerConversation": self.average_messages_per_conversation,
        }
