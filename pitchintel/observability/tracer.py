"""
LangFuse Tracer - Observability Integration

Traces gateway completions, retries, cache hits and failures to LangFuse
when credentials are configured. Without credentials every method is a
no-op, and tracing failures are logged, never raised into a request.
"""

import logging
import os
from typing import Optional, List, Dict, Any

from langfuse import Langfuse

from pitchintel.models.completion import CompletionResult

logger = logging.getLogger(__name__)


class LangFuseTracer:
    """LangFuse tracer for observability"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        public_key: Optional[str] = None,
        host: Optional[str] = None,
    ):
        self.secret_key = secret_key or os.getenv("LANGFUSE_SECRET_KEY")
        self.public_key = public_key or os.getenv("LANGFUSE_PUBLIC_KEY")
        self.host = host or os.getenv("LANGFUSE_HOST", "http://localhost:3000")
        self.client: Optional[Langfuse] = None
        self.enabled = bool(self.secret_key and self.public_key)

    def initialize(self):
        """Initialize LangFuse client"""
        if not self.enabled:
            logger.info("LangFuse not configured. Tracing disabled.")
            return

        try:
            self.client = Langfuse(
                secret_key=self.secret_key,
                public_key=self.public_key,
                host=self.host,
            )
        except Exception:
            logger.exception("LangFuse initialization failed")
            self.enabled = False

    def shutdown(self):
        if self.client:
            self.client.flush()
            self.client = None

    @property
    def active(self) -> bool:
        return self.enabled and self.client is not None

    def trace_completion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        result: Optional[CompletionResult] = None,
        cached: bool = False,
        latency_ms: float = 0.0,
        endpoint: Optional[str] = None,
    ):
        """Trace a completion, served by the provider or the cache"""
        if not self.active:
            return

        try:
            trace = self.client.trace(
                name=endpoint or "chat_completion",
                metadata={"cached": cached},
            )
            trace.generation(
                name="llm_completion",
                model=model,
                input=messages,
                output=result.content if result else None,
                usage={"total": result.tokens_used, "unit": "TOKENS"} if result else None,
                metadata={
                    "cached": cached,
                    "latency_ms": latency_ms,
                    "cost": result.cost if result else 0.0,
                },
            )
        except Exception:
            logger.exception("Failed to trace completion")

    def trace_retry(
        self,
        model: str,
        attempt: int,
        delay: float,
        error: str,
    ):
        """Trace a backoff before retrying the provider"""
        if not self.active:
            return

        try:
            trace = self.client.trace(name="llm_retry")
            trace.event(
                name="provider_retry",
                metadata={
                    "model": model,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "error": error,
                },
            )
        except Exception:
            logger.exception("Failed to trace retry")

    def trace_error(
        self,
        error: str,
        model: str,
    ):
        """Trace a failure surfaced to the caller"""
        if not self.active:
            return

        try:
            trace = self.client.trace(name="chat_completion_error")
            trace.generation(
                name="llm_error",
                model=model,
                level="ERROR",
                status_message=error,
            )
        except Exception:
            logger.exception("Failed to trace error")
