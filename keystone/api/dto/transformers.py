"""Small record transformers and helpers to chain them."""

from collections.abc import Callable, Mapping
from datetime import date
from functools import reduce
from typing import Any

from keystone.core.types import Record

type Transformer = Callable[[Mapping[str, Any]], Record]


def serialize_timestamps(data: Mapping[str, Any]) -> Record:
    """Turn every date/datetime value into an ISO-8601 string."""
    return {
        key: value.isoformat() if isinstance(value, date) else value
        for key, value in data.items()
    }


def remove_nulls(data: Mapping[str, Any]) -> Record:
    """Drop keys whose value is exactly ``None``."""
    return {key: value for key, value in data.items() if value is not None}


def empty_strings_to_null(data: Mapping[str, Any]) -> Record:
    return {key: None if value == "" else value for key, value in data.items()}


def trim_strings(data: Mapping[str, Any]) -> Record:
    return {
        key: value.strip() if isinstance(value, str) else value
        for key, value in data.items()
    }


def string_to_boolean(data: Mapping[str, Any]) -> Record:
    """Convert the literal strings ``"true"``/``"false"`` to booleans."""
    literals = {"true": True, "false": False}
    return {
        key: literals.get(value, value) if isinstance(value, str) else value
        for key, value in data.items()
    }


def compose(*transformers: Transformer) -> Transformer:
    """Chain transformers left to right."""

    def composed(data: Mapping[str, Any]) -> Record:
        return reduce(
            lambda acc, transformer: transformer(acc), transformers, dict(data)
        )

    return composed


clean_input = compose(trim_strings, empty_strings_to_null)
prepare_output = compose(serialize_timestamps, remove_nulls)
