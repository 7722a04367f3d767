"""
Log Query Builder.

Validates raw filter parameters and turns them into a store predicate.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from gatehouse.core.errors import Err, ErrorKind, Ok, Result
from gatehouse.models import LogFilter


def parse_log_filter(raw: Mapping[str, Any]) -> Result[LogFilter]:
    """
    Validate raw query-string/body parameters into a ``LogFilter``.

    Unknown keys are ignored. ``from``/``to`` arrive as strings from the
    query string and are coerced to positive integers.
    """
    try:
        return Ok(LogFilter.model_validate(dict(raw)))
    except ValidationError as e:
        return Err(ErrorKind.VALIDATION, "Invalid query parameters", e)


def build_log_query(log_filter: LogFilter) -> dict[str, Any]:
    """
    Predicate for ``AuditStore.find``.

    An empty filter gives ``{}``. Callers must check ``is_empty()`` first
    and list instead of querying with an empty predicate.
    """
    query: dict[str, Any] = {}

    if log_filter.level is not None:
        query["level"] = log_filter.level.value
    if log_filter.resource_type is not None:
        query["resourceType"] = log_filter.resource_type

    timestamp: dict[str, int] = {}
    if log_filter.from_ is not None:
        timestamp["$gte"] = log_filter.from_
    if log_filter.to is not None:
        timestamp["$lte"] = log_filter.to
    if timestamp:
        query["timestamp"] = timestamp

    return query
