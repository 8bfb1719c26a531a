"""
PitchIntel Service - Request Economics Orchestration

Every analysis and chat request flows through here:
limits check -> fingerprint -> cache hit (free) or gateway call ->
cache store, conversation append, usage record.
The FastAPI routes are thin wrappers over these methods.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pitchintel.analysis.analyzer import PitchAnalyzer
from pitchintel.analysis.personas import get_persona
from pitchintel.cache.response_cache import ResponseCache
from pitchintel.config.settings import Settings
from pitchintel.llm.client import LLMClient
from pitchintel.llm.errors import DailyLimitExceededError, UnknownConversationError
from pitchintel.memory.memory_manager import ConversationMemory
from pitchintel.models.completion import CompletionResult
from pitchintel.usage.token_tracker import TokenTracker

logger = logging.getLogger(__name__)


class PitchService:
    """Composes gateway, cache, tracker and conversation memory per request"""

    def __init__(
        self,
        client: LLMClient,
        cache: ResponseCache,
        tracker: TokenTracker,
        memory: ConversationMemory,
        settings: Optional[Settings] = None,
        tracer: Optional[Any] = None,
        slide_delay: float = 0.5,
    ):
        self.client = client
        self.cache = cache
        self.tracker = tracker
        self.memory = memory
        self.settings = settings or Settings()
        self.tracer = tracer
        self.analyzer = PitchAnalyzer(
            self._complete_result,
            slide_delay=slide_delay,
        )

    def check_limits(self):
        """
        Reject new work once today's budget is spent

        Raises:
            DailyLimitExceededError: cost or token limit reached
        """
        limits = self.tracker.check_daily_limits(
            self.settings.daily_cost_limit,
            self.settings.daily_token_limit,
        )
        if limits.cost_exceeded:
            raise DailyLimitExceededError(
                "cost", self.settings.daily_cost_limit, self.tracker.get_todays_usage()
            )
        if limits.tokens_exceeded:
            raise DailyLimitExceededError(
                "token", self.settings.daily_token_limit, self.tracker.get_todays_usage()
            )

    async def analyze_slides(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.check_limits()

        result, cached = await self._complete("analyze-slides", messages, temperature=0.7)
        return _respond(result, cached)

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.8,
        conversation_id: Optional[str] = None,
        system_prompt: Optional[str] = None,
        persona: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.check_limits()

        if not system_prompt and persona:
            selected = get_persona(persona)
            if selected:
                system_prompt = selected.system_prompt

        conv_id = conversation_id
        created = not conv_id
        if created:
            conv_id = await self.memory.create_conversation(system_prompt)

        history = await self.memory.get_formatted_messages(conv_id)
        if history is None:
            raise UnknownConversationError(conv_id)

        # The user turn is only stored once the model has answered it
        pending = None
        latest = messages[-1] if messages else None
        if latest and latest.get("role") == "user":
            pending = latest.get("content") or ""
            history.append({"role": "user", "content": pending})

        conversation = self.memory.get(conv_id)
        try:
            result, cached = await self._complete(
                "chat",
                history,
                temperature=temperature,
                system_prompt=conversation.system_prompt if conversation else None,
            )
        except Exception:
            if created:
                await self.memory.delete_conversation(conv_id)
            raise

        if pending is not None:
            await self.memory.add_message(conv_id, "user", pending)
        await self.memory.add_message(
            conv_id,
            "assistant",
            result.content,
            None if cached else result.tokens_used,
        )

        response = _respond(result, cached)
        response["conversationId"] = conv_id
        return response

    async def analyze_deck(self, slides: List[str]) -> List[Dict[str, Any]]:
        self.check_limits()
        analyses = await self.analyzer.analyze_deck(slides)
        return [a.model_dump() for a in analyses]

    async def build_report(self, slides: List[str]) -> Dict[str, Any]:
        self.check_limits()
        report = await self.analyzer.build_report(slides)
        return report.model_dump()

    async def score_answer(self, question: str, answer: str) -> Optional[Dict[str, Any]]:
        self.check_limits()
        scored = await self.analyzer.score_answer(question, answer)
        return scored.model_dump() if scored else None

    def usage_stats(self) -> Dict[str, Any]:
        limits = self.tracker.check_daily_limits(
            self.settings.daily_cost_limit,
            self.settings.daily_token_limit,
        )
        return {
            "usage": self.tracker.get_stats().to_response(),
            "cache": self.cache.get_stats(),
            "limits": {
                "dailyCostLimit": self.settings.daily_cost_limit,
                "dailyTokenLimit": self.settings.daily_token_limit,
                "maxRequestTokens": self.settings.max_request_tokens,
                "costExceeded": limits.cost_exceeded,
                "tokensExceeded": limits.tokens_exceeded,
            },
            "todaysUsage": self.tracker.get_todays_usage(),
        }

    def clear_cache(self) -> Dict[str, Any]:
        self.cache.clear()
        logger.info("Response cache cleared")
        return {"success": True, "message": "Cache cleared successfully"}

    async def clear_conversations(self) -> Dict[str, Any]:
        await self.memory.clear_all()
        logger.info("All conversations cleared")
        return {"success": True}

    async def delete_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return {"success": await self.memory.delete_conversation(conversation_id)}

    def conversation_stats(self) -> Dict[str, Any]:
        return self.memory.get_stats().to_response()

    async def _complete(
        self,
        endpoint: str,
        messages: List[Dict[str, Any]],
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
    ) -> Tuple[CompletionResult, bool]:
        """Serve from cache or call the gateway; returns (result, cached)"""
        fingerprint = self.cache.create_fingerprint(
            endpoint,
            {"messages": messages, "temperature": temperature, "system_prompt": system_prompt},
        )
        cached = await self.cache.get(fingerprint)
        if cached is not None:
            logger.debug("Cache hit for %s", endpoint)
            if self.tracer:
                self.tracer.trace_completion(
                    messages=messages,
                    model=self.client.default_model,
                    result=cached,
                    cached=True,
                    endpoint=endpoint,
                )
            return cached, True

        result = await self.client.complete(
            messages,
            temperature=temperature,
            max_input_tokens=self.settings.max_request_tokens,
        )
        await self.cache.set(fingerprint, result)
        self.tracker.track(endpoint, result.tokens_used, result.cost)
        return result, False

    async def _complete_result(
        self,
        endpoint: str,
        messages: List[Dict[str, Any]],
        temperature: float,
    ) -> CompletionResult:
        result, _ = await self._complete(endpoint, messages, temperature=temperature)
        return result


def _respond(result: CompletionResult, cached: bool) -> Dict[str, Any]:
    response = result.to_response()
    if cached:
        # Served from cache: nothing new was billed
        response["tokensUsed"] = 0
        response["cost"] = 0.0
        response["cached"] = True
    return response
