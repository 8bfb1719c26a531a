"""Per-model pricing and cost computation"""

import logging
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class ModelPricing:
    """USD price per 1M tokens"""
    input: float
    output: float


MODEL_COSTS: Dict[str, ModelPricing] = {
    "gpt-4o-mini": ModelPricing(input=0.15, output=0.6),
    "gpt-4": ModelPricing(input=30.0, output=60.0),
    "gpt-4-turbo": ModelPricing(input=10.0, output=30.0),
    "gpt-4o": ModelPricing(input=2.5, output=10.0),
}


def get_pricing(model: str) -> ModelPricing:
    """Price for `model`, falling back to the default model's price"""
    pricing = MODEL_COSTS.get(model)
    if pricing is None:
        logger.warning("Unknown model pricing for %s, using %s pricing", model, DEFAULT_MODEL)
        pricing = MODEL_COSTS[DEFAULT_MODEL]
    return pricing


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    pricing = get_pricing(model)
    return (input_tokens * pricing.input + output_tokens * pricing.output) / 1_000_000
