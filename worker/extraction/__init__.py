"""Page signal extraction package."""

from importlib import import_module
from typing import Any

# Public name -> submodule defining it
_EXPORTS = {
    "Extractor": "extractor",
    "SoupExtractor": "extractor",
    "extract": "extractor",
    "limits_from_settings": "extractor",
    "PageSignals": "signals",
    "ExtractionLimits": "signals",
    "EEATFlag": "signals",
    "JsonLdSummary": "jsonld",
    "parse_blocks": "jsonld",
    "iter_entities": "jsonld",
    "normalize_url": "urls",
    "registrable_domain": "urls",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        return getattr(import_module(f"worker.extraction.{_EXPORTS[name]}"), name)
    raise AttributeError(f"module 'worker.extraction' has no attribute '{name}'")
