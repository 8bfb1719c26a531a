"""Pydantic models for API requests"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class IncomingMessage(BaseModel):
    """Chat message as sent by the frontend"""
    role: Literal["system", "user", "assistant"] = Field("user", description="Role of the message sender")
    content: Optional[str] = Field(None, description="Message content")
    text: Optional[str] = Field(None, description="Legacy alias for content")

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content or self.text or ""}


class AnalyzeSlidesRequest(BaseModel):
    """Slide analysis request"""
    messages: List[IncomingMessage] = Field(..., description="Prompt messages")


class ChatRequest(BaseModel):
    """Persona chat request"""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[IncomingMessage] = Field(..., description="Conversation messages")
    temperature: float = Field(0.8, ge=0, le=2)
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    persona: Optional[str] = Field(None, description="Persona key used when no system prompt is given")


class SlidesRequest(BaseModel):
    """Extracted page texts of a deck, in order"""
    slides: List[str] = Field(..., min_length=1)


class ScoreAnswerRequest(BaseModel):
    question: str
    answer: str
