"""Guided conversation flows - step catalogs, orchestration, and triggers."""

from .catalog import (
    DEFAULT_FLOW_TYPE,
    Difficulty,
    FlowCatalog,
    FlowStep,
    TroubleshootingSolution,
    rank_solutions,
)

__all__ = [
    "DEFAULT_FLOW_TYPE",
    "Difficulty",
    "FlowCatalog",
    "FlowStep",
    "TroubleshootingSolution",
    "rank_solutions",
]
