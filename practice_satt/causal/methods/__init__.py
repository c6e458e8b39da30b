"""Propensity and potential-outcome models."""

from .base import EffectModel, EffectModelConfig
from .boosted import BoostedEffectModel
from .forest import ForestEffectModel
from .propensity import PropensityEstimator, PropensityModel

EFFECT_MODELS: dict[str, type[EffectModel]] = {
    "boosted": BoostedEffectModel,
    "forest": ForestEffectModel,
}


def create_effect_model(name: str, config: EffectModelConfig | None = None) -> EffectModel:
    """Instantiate a registered effect model by name."""
    name = name.lower().replace("-", "_").replace(" ", "_")
    if name not in EFFECT_MODELS:
        raise ValueError(f"Unknown effect model: {name}. Available: {list(EFFECT_MODELS.keys())}")
    return EFFECT_MODELS[name](config=config)


__all__ = [
    "EffectModel",
    "EffectModelConfig",
    "BoostedEffectModel",
    "ForestEffectModel",
    "PropensityEstimator",
    "PropensityModel",
    "EFFECT_MODELS",
    "create_effect_model",
]
