"""Conversational memory manager"""

import logging
import math
import time
import uuid
from typing import Callable, Dict, List, Optional

from pitchintel.models.conversation import Conversation, ConversationMessage, ConversationStats
from pitchintel.storage.memory_store import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)

MAX_CONVERSATIONS = 100
CONVERSATION_TTL = 24 * 60 * 60  # 24 hours
MAX_MESSAGES_PER_CONVERSATION = 50
MAX_TOKENS_PER_CONVERSATION = 8000
TOKEN_TRIM_TARGET = 0.8
MIN_KEPT_MESSAGES = 2
APPENDABLE_ROLES = ("user", "assistant")


def estimate_tokens(text: str) -> int:
    """~4 characters per token"""
    return math.ceil(len(text) / 4)


class ConversationMemory:
    """
    Bounded per-session conversation histories

    Lifecycle: active -> trimmed (ceilings reached) -> expired (idle sweep)
    -> deleted. System messages survive every trim.
    """

    def __init__(
        self,
        max_conversations: int = MAX_CONVERSATIONS,
        max_messages: int = MAX_MESSAGES_PER_CONVERSATION,
        max_tokens: int = MAX_TOKENS_PER_CONVERSATION,
        ttl: float = CONVERSATION_TTL,
        store: Optional[KeyValueStore[Conversation]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_conversations = max_conversations
        self.max_messages = max_messages
        self.max_tokens = max_tokens
        self.ttl = ttl
        self.store: KeyValueStore[Conversation] = store if store is not None else InMemoryStore()
        self.clock = clock

    async def create_conversation(self, system_prompt: Optional[str] = None) -> str:
        """Create a new conversation, seeding it with the system prompt"""
        now = self.clock()
        conversation = Conversation(
            id=uuid.uuid4().hex,
            created_at=now,
            last_active=now,
            system_prompt=system_prompt,
        )
        if system_prompt:
            tokens = estimate_tokens(system_prompt)
            conversation.messages.append(
                ConversationMessage(role="system", content=system_prompt, timestamp=now, tokens=tokens)
            )
            conversation.total_tokens = tokens

        self.store.set(conversation.id, conversation)
        self._evict_over_capacity()
        return conversation.id

    async def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tokens: Optional[int] = None,
    ) -> bool:
        """Append a user or assistant message; False for an unknown conversation or role"""
        if role not in APPENDABLE_ROLES:
            return False

        conversation = self.store.get(conversation_id)
        if not conversation:
            return False

        now = self.clock()
        estimated = tokens if tokens else estimate_tokens(content)
        message = ConversationMessage(role=role, content=content, timestamp=now, tokens=estimated)

        if conversation.total_tokens + estimated > self.max_tokens:
            self._trim_tokens(conversation)

        conversation.messages.append(message)
        conversation.last_active = now
        conversation.total_tokens += estimated

        if len(conversation.messages) > self.max_messages:
            self._trim_messages(conversation)

        self.store.set(conversation_id, conversation)
        return True

    async def get_conversation(self, conversation_id: str) -> Optional[List[ConversationMessage]]:
        """Copy of the message list; touches last_active"""
        conversation = self.store.get(conversation_id)
        if not conversation:
            return None

        conversation.last_active = self.clock()
        self.store.set(conversation_id, conversation)
        return list(conversation.messages)

    async def get_formatted_messages(self, conversation_id: str) -> Optional[List[Dict[str, str]]]:
        """Get formatted messages for LLM"""
        messages = await self.get_conversation(conversation_id)
        if messages is None:
            return None

        return [{"role": msg.role, "content": msg.content} for msg in messages]

    async def delete_conversation(self, conversation_id: str) -> bool:
        return self.store.delete(conversation_id)

    async def clear_all(self):
        self.store.clear()

    def get(self, conversation_id: str) -> Optional[Conversation]:
        """Raw conversation, without touching last_active"""
        return self.store.get(conversation_id)

    def get_stats(self) -> ConversationStats:
        stats = ConversationStats(active_conversations=len(self.store))
        for conversation in self.store.values():
            stats.total_messages += len(conversation.messages)
            stats.total_tokens += conversation.total_tokens

        if stats.active_conversations:
            stats.average_messages_per_conversation = (
                stats.total_messages / stats.active_conversations
            )
        return stats

    def sweep_idle(self) -> int:
        """Remove conversations idle longer than the TTL"""
        now = self.clock()
        expired = [
            conv_id
            for conv_id, conversation in self.store.items()
            if now - conversation.last_active > self.ttl
        ]
        for conv_id in expired:
            self.store.delete(conv_id)
        return len(expired)

    def _trim_tokens(self, conversation: Conversation):
        """Drop oldest non-system messages until under 80% of the ceiling"""
        system_messages = [m for m in conversation.messages if m.role == "system"]
        other_messages = [m for m in conversation.messages if m.role != "system"]

        target = self.max_tokens * TOKEN_TRIM_TARGET
        while conversation.total_tokens > target and len(other_messages) > MIN_KEPT_MESSAGES:
            removed = other_messages.pop(0)
            conversation.total_tokens -= removed.tokens

        conversation.messages = system_messages + other_messages

    def _trim_messages(self, conversation: Conversation):
        """Keep system messages plus the most recent non-system ones"""
        system_messages = [m for m in conversation.messages if m.role == "system"]
        other_messages = [m for m in conversation.messages if m.role != "system"]

        keep_count = max(self.max_messages - len(system_messages), 0)
        cut = len(other_messages) - keep_count
        if cut <= 0:
            return

        removed, kept = other_messages[:cut], other_messages[cut:]
        conversation.total_tokens -= sum(m.tokens for m in removed)
        conversation.messages = system_messages + kept

    def _evict_over_capacity(self):
        overflow = len(self.store) - self.max_conversations
        if overflow <= 0:
            return

        by_activity = sorted(self.store.items(), key=lambda item: item[1].last_active)
        for conv_id, _ in by_activity[:overflow]:
            self.store.delete(conv_id)
        logger.info("Evicted %d least recently active conversations", overflow)
