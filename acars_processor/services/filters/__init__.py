"""Filters that veto messages before annotation and delivery."""
from acars_processor.services.filters.ai import OllamaFilter, OpenAIFilter
from acars_processor.services.filters.base import Filter, FilterResult
from acars_processor.services.filters.builtin import BuiltinFilter

__all__ = [
    "Filter",
    "FilterResult",
    "BuiltinFilter",
    "OllamaFilter",
    "OpenAIFilter",
]
