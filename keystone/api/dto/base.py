"""Generic projection of records before they cross the API boundary.

``to_dto`` applies, in order of precedence:

1. ``exclude``: listed fields are always dropped
2. ``include``: when given, only listed fields survive
3. ``remove_nulls``: fields whose value is ``None`` are dropped
4. ``serialize_dates``: ``date``/``datetime`` values become ISO-8601 strings

Example:
    >>> to_dto({"id": 1, "password": "x", "name": None}, DTOOptions(
    ...     exclude=("password",), remove_nulls=True))
    {'id': 1}
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import date
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy import inspect as sa_inspect

from keystone.core.types import Record

# Characters escaped by ``sanitize`` and their HTML entities
HTML_ESCAPES: Mapping[str, str] = MappingProxyType(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2F;",
    }
)
_HTML_ESCAPE_TABLE = str.maketrans(dict(HTML_ESCAPES))

SECRET_FIELDS = ("password", "password_hash", "password_salt", "secret", "token")


class DTOOptions(BaseModel):
    """Options for ``to_dto``."""

    model_config = ConfigDict(frozen=True)

    exclude: tuple[str, ...] = ()
    include: tuple[str, ...] | None = None
    serialize_dates: bool = True
    remove_nulls: bool = False


def model_to_dict(instance: object) -> Record:
    """Read the mapped column values of an ORM instance into a dict."""
    mapper = sa_inspect(instance).mapper
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


def to_dto(data: Mapping[str, Any], options: DTOOptions | None = None) -> Record:
    """Project one record according to ``options``."""
    options = options or DTOOptions()
    result: Record = {}
    for key, value in data.items():
        if key in options.exclude:
            continue
        if options.include is not None and key not in options.include:
            continue
        if options.remove_nulls and value is None:
            continue
        if options.serialize_dates and isinstance(value, date):
            result[key] = value.isoformat()
            continue
        result[key] = value
    return result


def to_dtos(
    data: Iterable[Mapping[str, Any]], options: DTOOptions | None = None
) -> list[Record]:
    return [to_dto(item, options) for item in data]


def pick(data: Mapping[str, Any], fields: Iterable[str]) -> Record:
    """Keep only ``fields`` that are present in ``data``."""
    return {field: data[field] for field in fields if field in data}


def omit(data: Mapping[str, Any], fields: Iterable[str]) -> Record:
    """Drop ``fields`` from a copy of ``data``."""
    dropped = set(fields)
    return {key: value for key, value in data.items() if key not in dropped}


def sanitize(data: Mapping[str, Any]) -> Record:
    """HTML-escape every string value.

    Only needed where record values may be echoed into non-JSON contexts.
    """
    return {
        key: value.translate(_HTML_ESCAPE_TABLE) if isinstance(value, str) else value
        for key, value in data.items()
    }


def create_dto_transformer(
    options: DTOOptions,
) -> Callable[[Mapping[str, Any]], Record]:
    """Bind ``options`` into a reusable single-argument transformer."""

    def transform(data: Mapping[str, Any]) -> Record:
        return to_dto(data, options)

    return transform


DTO_TRANSFORMERS: Mapping[str, Callable[[Mapping[str, Any]], Record]] = (
    MappingProxyType(
        {
            "secure": create_dto_transformer(DTOOptions(exclude=SECRET_FIELDS)),
            "clean": create_dto_transformer(DTOOptions(remove_nulls=True)),
            "public": create_dto_transformer(
                DTOOptions(
                    exclude=(*SECRET_FIELDS, "deleted_at", "internal_notes"),
                    remove_nulls=True,
                )
            ),
        }
    )
)
