"""
Filter interface.

A filter looks at the flat message and decides whether to veto it. When it
cannot decide it raises FilterError and the step applies the filter's
filter_on_failure setting.
"""
from dataclasses import dataclass
from typing import Any, Mapping

from acars_processor.apmessage import APMessage, ap_key
from acars_processor.core.exceptions import MissingFieldError


@dataclass
class FilterResult:
    filtered: bool
    reason: str = ""


class Filter:
    """Base class for filters."""

    name = "filter"
    filter_on_failure = False

    async def filter(self, message: APMessage) -> FilterResult:
        raise NotImplementedError


def require(message: Mapping[str, Any], name: str, filter_name: str | None = None) -> Any:
    """Value of a canonical field, raising MissingFieldError when absent or null."""
    value = message.get(ap_key(name))
    if value is None:
        raise MissingFieldError(name, filter_name)
    return value


def require_number(message: Mapping[str, Any], name: str, filter_name: str | None = None) -> float:
    value = require(message, name, filter_name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MissingFieldError(name, filter_name)
    return float(value)


def require_string(message: Mapping[str, Any], name: str, filter_name: str | None = None) -> str:
    return str(require(message, name, filter_name))
