"""Runtime settings read from the environment"""

import os
from typing import Optional

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Policy inputs and tunables for the request-economics layer"""

    # Provider
    openai_api_key: Optional[str] = None
    default_model: str = "gpt-4o-mini"
    max_retries: int = Field(3, ge=0)
    retry_base_delay: float = Field(1.0, gt=0)
    retry_max_delay: float = Field(10.0, gt=0)
    request_timeout: float = Field(60.0, gt=0)

    # Cost protection
    daily_cost_limit: float = 50.0
    daily_token_limit: int = 10_000_000
    max_request_tokens: int = 50_000

    # Response cache
    cache_ttl: float = 30 * 60
    cache_max_size: int = 1000
    cache_sweep_interval: float = 5 * 60

    # Conversation memory
    max_conversations: int = 100
    max_messages_per_conversation: int = 50
    max_tokens_per_conversation: int = 8000
    conversation_ttl: float = 24 * 60 * 60
    conversation_sweep_interval: float = 30 * 60

    # HTTP
    frontend_url: str = "http://localhost:5173"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, keeping defaults for unset ones"""
        mapping = {
            "openai_api_key": "OPENAI_API_KEY",
            "default_model": "DEFAULT_MODEL",
            "max_retries": "MAX_RETRIES",
            "retry_base_delay": "RETRY_BASE_DELAY",
            "retry_max_delay": "RETRY_MAX_DELAY",
            "request_timeout": "TIMEOUT_SECONDS",
            "daily_cost_limit": "DAILY_COST_LIMIT",
            "daily_token_limit": "DAILY_TOKEN_LIMIT",
            "max_request_tokens": "MAX_REQUEST_TOKENS",
            "cache_ttl": "CACHE_TTL",
            "cache_max_size": "CACHE_MAX_SIZE",
            "cache_sweep_interval": "CACHE_SWEEP_INTERVAL",
            "max_conversations": "MAX_CONVERSATIONS",
            "max_messages_per_conversation": "MAX_MESSAGES_PER_CONVERSATION",
            "max_tokens_per_conversation": "MAX_TOKENS_PER_CONVERSATION",
            "conversation_ttl": "CONVERSATION_TTL",
            "conversation_sweep_interval": "CONVERSATION_SWEEP_INTERVAL",
            "frontend_url": "FRONTEND_URL",
            "host": "GATEWAY_HOST",
            "port": "GATEWAY_PORT",
            "log_level": "LOG_LEVEL",
        }
        values = {
            field: os.environ[env_name]
            for field, env_name in mapping.items()
            if os.environ.get(env_name)
        }
        values["debug"] = _env_bool("DEBUG")
        return cls(**values)
