"""Shared fixtures"""

import os

# Use litellm's bundled model cost map; its offline remote-fetch fallback can
# deadlock during import.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest

from fakes import FakeCompletion, ManualClock, SleepRecorder
from pitchintel.cache.response_cache import ResponseCache
from pitchintel.config.settings import Settings
from pitchintel.gateway.service import PitchService
from pitchintel.llm.client import LLMClient
from pitchintel.memory.memory_manager import ConversationMemory
from pitchintel.usage.token_tracker import TokenTracker


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def settings():
    return Settings(daily_cost_limit=50.0, daily_token_limit=10_000_000, max_request_tokens=50_000)


@pytest.fixture
def service(completion, clock, sleeps, settings):
    """Service wired with a fake provider and manual clock"""
    client = LLMClient(completion_fn=completion, sleep=sleeps)
    return PitchService(
        client=client,
        cache=ResponseCache(clock=clock),
        tracker=TokenTracker(clock=clock),
        memory=ConversationMemory(clock=clock),
        settings=settings,
        slide_delay=0,
    )
