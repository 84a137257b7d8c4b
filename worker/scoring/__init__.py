"""Scoring package: criteria catalog, checks, rollups and gates."""

from importlib import import_module
from typing import Any

# Public name -> submodule defining it
_EXPORTS = {
    "ScoringEngine": "engine",
    "score": "engine",
    "Criterion": "criteria",
    "Category": "criteria",
    "Pillar": "criteria",
    "Impact": "criteria",
    "get_criteria": "criteria",
    "AuditScore": "models",
    "CheckResult": "models",
    "CheckStatus": "models",
    "Gate": "models",
    "FixItem": "models",
    "SiteContext": "models",
    "rollup_by_category": "rollups",
    "rollup_by_pillar": "rollups",
    "fix_first": "rollups",
    "evaluate_gates": "gates",
    "apply_gates": "gates",
    "compute_site_metrics": "site_level",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        return getattr(import_module(f"worker.scoring.{_EXPORTS[name]}"), name)
    raise AttributeError(f"module 'worker.scoring' has no attribute '{name}'")
