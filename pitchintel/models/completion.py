"""Completion request/result models shared by the gateway, cache and service"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """Single chat message sent to the provider"""
    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Role: system, user, or assistant")
    content: str = Field("", description="Message content")


class CompletionRequest(BaseModel):
    """Immutable description of one provider call"""
    model_config = ConfigDict(frozen=True)

    messages: List[ChatMessage]
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2000
    max_input_tokens: int = 100000

    def to_provider_messages(self) -> List[dict]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


class CompletionResult(BaseModel):
    """Outcome of a successful provider call"""
    content: str = ""
    tokens_used: int = Field(0, ge=0)
    cost: float = Field(0.0, ge=0.0)

    def to_response(self) -> dict:
        return {
            "content": self.content,
            "tokensUsed": self.tokens_used,
            "cost": self.cost,
        }
