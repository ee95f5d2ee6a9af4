"""Shaping of entities into response records.

Handlers convert ORM rows into plain dictionaries here immediately before
serializing a response, dropping secrets and normalizing values.
"""

from keystone.api.dto.base import (
    DTO_TRANSFORMERS,
    DTOOptions,
    create_dto_transformer,
    model_to_dict,
    omit,
    pick,
    sanitize,
    to_dto,
    to_dtos,
)
from keystone.api.dto.transformers import (
    clean_input,
    compose,
    empty_strings_to_null,
    prepare_output,
    remove_nulls,
    serialize_timestamps,
    string_to_boolean,
    trim_strings,
)
from keystone.api.dto.users import UserDTO

__all__ = [
    "DTO_TRANSFORMERS",
    "DTOOptions",
    "UserDTO",
    "clean_input",
    "compose",
    "create_dto_transformer",
    "empty_strings_to_null",
    "model_to_dict",
    "omit",
    "pick",
    "prepare_output",
    "remove_nulls",
    "sanitize",
    "serialize_timestamps",
    "string_to_boolean",
    "to_dto",
    "to_dtos",
    "trim_strings",
]
