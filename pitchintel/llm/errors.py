"""Exception hierarchy for the request-economics layer"""

from typing import Any, Dict, Optional


class PitchIntelError(Exception):
    """Base class for all PitchIntel errors"""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class InputTooLargeError(PitchIntelError):
    """Estimated input tokens exceed the per-request ceiling"""

    status_code = 413

    def __init__(self, estimated_tokens: int, max_input_tokens: int):
        super().__init__(
            f"Input too large: {estimated_tokens} tokens exceeds limit of {max_input_tokens}",
            {"estimatedTokens": estimated_tokens, "limit": max_input_tokens},
        )
        self.estimated_tokens = estimated_tokens
        self.max_input_tokens = max_input_tokens


class ProviderError(PitchIntelError):
    """The completion provider failed and the retry budget is spent"""

    status_code = 502

    def __init__(
        self,
        message: str,
        provider_status: Optional[int] = None,
        attempts: int = 1,
    ):
        super().__init__(message, {"attempts": attempts})
        self.provider_status = provider_status
        self.attempts = attempts


class RateLimitedError(ProviderError):
    """Provider kept answering 429 until retries ran out"""


class TransientProviderError(ProviderError):
    """5xx, request timeout or connection failure that outlived the retries"""


class PermanentProviderError(ProviderError):
    """Non-retriable provider failure (bad request, auth, unknown)"""


class MalformedModelOutputError(PitchIntelError):
    """Model output could not be parsed as the expected structured payload"""

    status_code = 502

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class DailyLimitExceededError(PitchIntelError):
    """Today's cost or token budget is used up"""

    status_code = 429

    def __init__(self, kind: str, limit: float, usage: Dict[str, Any]):
        super().__init__(
            f"Daily {kind} limit exceeded",
            {"limit": limit, "usage": usage},
        )
        self.kind = kind
        self.limit = limit
        self.usage = usage


class UnknownConversationError(PitchIntelError):
    """Conversation id is not (or no longer) held by the store"""

    status_code = 400

    def __init__(self, conversation_id: str):
        super().__init__("Invalid conversation ID", {"conversationId": conversation_id})
        self.conversation_id = conversation_id
