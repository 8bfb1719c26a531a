"""
LLM Client - Provider Access with Retry, Backoff and Cost Accounting

This module is the only place that talks to the completion provider. It
rejects oversized inputs before they are billed, retries rate-limited and
transient failures with exponential backoff, and prices every successful
call from the provider-reported token usage.
"""

import asyncio
import json
import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

import litellm

from pitchintel.llm.errors import (
    InputTooLargeError,
    PermanentProviderError,
    ProviderError,
    RateLimitedError,
    TransientProviderError,
)
from pitchintel.llm.pricing import DEFAULT_MODEL, MODEL_COSTS, ModelPricing, calculate_cost
from pitchintel.models.completion import ChatMessage, CompletionRequest, CompletionResult

logger = logging.getLogger(__name__)

CompletionFn = Callable[..., Awaitable[Any]]
MessageLike = Union[ChatMessage, Dict[str, Any]]

CHARS_PER_TOKEN = 3.5


class LLMClient:
    """
    Completion gateway

    Retry policy:
    1. 429 -> back off, remember the delay and sleep it before the next call
       made by this instance (shared backpressure)
    2. 5xx / 408 / timeout -> back off and retry
    3. Anything else -> fail immediately
    Delays double per attempt from `base_delay`, capped at `max_delay`.
    """

    def __init__(
        self,
        completion_fn: Optional[CompletionFn] = None,
        default_model: str = DEFAULT_MODEL,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        timeout_seconds: float = 60.0,
        api_key: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tracer: Optional[Any] = None,
    ):
        self.completion_fn = completion_fn or litellm.acompletion
        self.default_model = default_model
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key
        self.tracer = tracer
        self._sleep = sleep
        self.rate_limit_delay = 0.0

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Cheap length-based approximation, used for admission control only"""
        return math.ceil(len(text) / CHARS_PER_TOKEN)

    @staticmethod
    def get_supported_models() -> Dict[str, ModelPricing]:
        return dict(MODEL_COSTS)

    def build_request(
        self,
        messages: Sequence[MessageLike],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        max_input_tokens: int = 100000,
    ) -> CompletionRequest:
        return CompletionRequest(
            messages=[_to_chat_message(msg) for msg in messages],
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            max_input_tokens=max_input_tokens,
        )

    async def complete(
        self,
        messages: Sequence[MessageLike],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        max_input_tokens: int = 100000,
    ) -> CompletionResult:
        """Build a request from loose arguments and execute it"""
        request = self.build_request(
            messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            max_input_tokens=max_input_tokens,
        )
        return await self.execute(request)

    async def execute(self, request: CompletionRequest) -> CompletionResult:
        """
        Execute a completion request with retries

        Raises:
            InputTooLargeError: estimated input exceeds request.max_input_tokens
            ProviderError: non-retriable failure, or retry budget exhausted
        """
        provider_messages = request.to_provider_messages()
        estimated = self.estimate_tokens(json.dumps(provider_messages))
        if estimated > request.max_input_tokens:
            raise InputTooLargeError(estimated, request.max_input_tokens)

        params: Dict[str, Any] = {
            "model": request.model,
            "messages": provider_messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if self.api_key:
            params["api_key"] = self.api_key

        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        last_status: Optional[int] = None

        for attempt in range(attempts):
            if self.rate_limit_delay > 0:
                # Stays set while sleeping so concurrent calls back off too
                delay = self.rate_limit_delay
                await self._sleep(delay)
                if self.rate_limit_delay == delay:
                    self.rate_limit_delay = 0.0

            start_time = time.time()
            try:
                response = await asyncio.wait_for(
                    self.completion_fn(**params),
                    timeout=self.timeout_seconds,
                )
            except Exception as e:
                last_error = e
                last_status = _status_of(e)
                delay = self._backoff(attempt)
                retries_left = attempt < self.max_retries

                if last_status == 429:
                    # Honored by the next call on this instance, retry or not
                    self.rate_limit_delay = delay
                    if retries_left:
                        logger.warning(
                            "Rate limited, retrying in %.2fs (attempt %d/%d)",
                            delay, attempt + 1, attempts,
                        )
                        self._trace_retry(request.model, attempt + 1, delay, e)
                        continue
                    break

                if _is_transient(last_status) and retries_left:
                    logger.warning(
                        "Retriable error (%s), retrying in %.2fs (attempt %d/%d)",
                        last_status, delay, attempt + 1, attempts,
                    )
                    self._trace_retry(request.model, attempt + 1, delay, e)
                    await self._sleep(delay)
                    continue
                break

            result = self._to_result(request.model, response)
            latency_ms = (time.time() - start_time) * 1000
            logger.info(
                "LLM %s tokens=%d cost=$%.6f latency=%dms",
                request.model, result.tokens_used, result.cost, latency_ms,
            )
            if self.tracer:
                self.tracer.trace_completion(
                    messages=provider_messages,
                    model=request.model,
                    result=result,
                    latency_ms=latency_ms,
                )
            return result

        raise self._surface(request.model, last_error, last_status, attempt + 1)

    def _backoff(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _to_result(self, model: str, response: Any) -> CompletionResult:
        choices = _field(response, "choices") or []
        content = ""
        if choices:
            message = _field(choices[0], "message")
            content = _field(message, "content") or ""

        usage = _field(response, "usage")
        prompt_tokens = int(_field(usage, "prompt_tokens") or 0)
        completion_tokens = int(_field(usage, "completion_tokens") or 0)
        total_tokens = int(_field(usage, "total_tokens") or (prompt_tokens + completion_tokens))

        return CompletionResult(
            content=content,
            tokens_used=total_tokens,
            cost=calculate_cost(model, prompt_tokens, completion_tokens),
        )

    def _surface(
        self,
        model: str,
        error: Optional[Exception],
        status: Optional[int],
        attempts: int,
    ) -> ProviderError:
        message = f"LLM request failed: {error}" if error else "LLM request failed"
        if status == 429:
            surfaced: ProviderError = RateLimitedError(message, status, attempts)
        elif _is_transient(status):
            surfaced = TransientProviderError(message, status, attempts)
        else:
            surfaced = PermanentProviderError(message, status, attempts)

        logger.error("LLM request to %s failed after %d attempt(s): %s", model, attempts, error)
        if self.tracer:
            self.tracer.trace_error(error=str(error), model=model)
        surfaced.__cause__ = error
        return surfaced

    def _trace_retry(self, model: str, attempt: int, delay: float, error: Exception):
        if self.tracer:
            self.tracer.trace_retry(model=model, attempt=attempt, delay=delay, error=str(error))


def _status_of(error: Exception) -> Optional[int]:
    if isinstance(error, asyncio.TimeoutError):
        return 408
    if isinstance(error, litellm.RateLimitError):
        return 429
    if isinstance(error, litellm.Timeout):
        return 408
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    if isinstance(error, litellm.APIConnectionError):
        return 503
    return None


def _is_transient(status: Optional[int]) -> bool:
    return status is not None and (status >= 500 or status in (408, 429))


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _to_chat_message(msg: MessageLike) -> ChatMessage:
    if isinstance(msg, ChatMessage):
        return msg
    role = msg.get("role") or "user"
    content = msg.get("content") or msg.get("text") or ""
    return ChatMessage(role=role, content=content)
