"""Lazy-loading registry for the diagnostic pipeline stages.

Global singletons, created and loaded on first use.
"""

import logging

from services.pipeline.base import BaseEngineService

logger = logging.getLogger(__name__)

_registry: dict[str, BaseEngineService] = {}


def _create_engine(name: str) -> BaseEngineService:
    """Factory: create a stage service by name with deferred imports."""
    if name == "s1_normalizer":
        from services.pipeline.s1_normalizer import NormalizerService
        return NormalizerService()
    elif name == "s2_pillar_aggregator":
        from services.pipeline.s2_pillar_aggregator import PillarAggregatorService
        return PillarAggregatorService()
    elif name == "s3_rule_engine":
        from services.pipeline.s3_rule_engine import RuleEngineService
        return RuleEngineService()
    elif name == "s4_evolution_tracker":
        from services.pipeline.s4_evolution_tracker import EvolutionTrackerService
        return EvolutionTrackerService()
    elif name == "s5_relevance_scorer":
        from services.pipeline.s5_relevance_scorer import RelevanceScorerService
        return RelevanceScorerService()
    elif name == "s6_prescriber":
        from services.pipeline.s6_prescriber import PrescriberService
        return PrescriberService()
    else:
        raise ValueError(f"Unknown engine: {name}")


def get_engine(name: str) -> BaseEngineService:
    """Get a stage service by name, creating and loading it on first access."""
    if name not in _registry:
        _registry[name] = _create_engine(name)
    svc = _registry[name]
    svc.ensure_loaded()
    return svc


def preload(*names: str) -> None:
    """Pre-load multiple stages (e.g. at startup)."""
    for name in names:
        get_engine(name)


def clear() -> None:
    """Drop all stage instances so settings are re-read. Useful for testing."""
    _registry.clear()
