"""AI visibility package: daily scores, weekly rankings and GEO adjustment."""

from importlib import import_module
from typing import Any

# Public name -> submodule defining it
_EXPORTS = {
    "RollupEngine": "rollup",
    "parse_day": "rollup",
    "VisibilityStore": "store",
    "InMemoryVisibilityStore": "store",
    "SqlVisibilityStore": "store",
    "adjust": "geo_adjustment",
    "extract_citation_rates": "geo_adjustment",
    "detect_alerts": "alerts",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        return getattr(import_module(f"worker.visibility.{_EXPORTS[name]}"), name)
    raise AttributeError(f"module 'worker.visibility' has no attribute '{name}'")
