"""Model tier → concrete model mapping."""

import logging
from dataclasses import dataclass

from skycast.config import settings

logger = logging.getLogger(__name__)

TIERS = ("fast", "advanced")


@dataclass(frozen=True)
class TierConfig:
    """Which model a tier runs on and whether it thinks before answering."""

    model: str
    thinking_budget: int = 0

    @property
    def thinking(self) -> bool:
        return self.thinking_budget > 0


def resolve_tier(tier: str) -> TierConfig:
    """Resolve a tier name. Unknown tiers fall back to ``fast``."""
    if tier == "advanced":
        return TierConfig(model=settings.advanced_model, thinking_budget=settings.thinking_budget)
    if tier != "fast":
        logger.warning("Unknown model tier '%s', using fast", tier)
    return TierConfig(model=settings.fast_model)


def friendly(model_id: str) -> str:
    """Return the tier name a model ID is configured for, or the ID itself."""
    if model_id == settings.fast_model:
        return "fast"
    if model_id == settings.advanced_model:
        return "advanced"
    return model_id
