"""Unit tests for keystone/api/dto/transformers.py."""

from datetime import UTC, datetime

import pytest

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


@pytest.mark.unit
class TestTransformers:
    def test_serialize_timestamps(self) -> None:
        moment = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

        assert serialize_timestamps({"at": moment, "n": 1}) == {
            "at": "2024-05-01T12:00:00+00:00",
            "n": 1,
        }

    def test_remove_nulls_keeps_falsy_values(self) -> None:
        assert remove_nulls({"a": None, "b": 0, "c": "", "d": False}) == {
            "b": 0,
            "c": "",
            "d": False,
        }

    def test_empty_strings_to_null(self) -> None:
        assert empty_strings_to_null({"a": "", "b": " ", "c": 0}) == {
            "a": None,
            "b": " ",
            "c": 0,
        }

    def test_trim_strings(self) -> None:
        assert trim_strings({"a": "  x ", "b": 5}) == {"a": "x", "b": 5}

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("false", False), ("TRUE", "TRUE"), ("yes", "yes"), (1, 1)],
    )
    def test_string_to_boolean(self, value: object, expected: object) -> None:
        assert string_to_boolean({"flag": value}) == {"flag": expected}


@pytest.mark.unit
class TestCompose:
    def test_applies_left_to_right(self) -> None:
        def add_marker(data: dict[str, object]) -> dict[str, object]:
            return {**data, "marker": " set "}

        assert compose(add_marker, trim_strings)({}) == {"marker": "set"}
        assert compose(trim_strings, add_marker)({}) == {"marker": " set "}

    def test_empty_composition_copies(self) -> None:
        source = {"a": 1}
        result = compose()(source)

        assert result == source
        assert result is not source

    def test_clean_input(self) -> None:
        assert clean_input({"name": "   ", "email": " a@b.c "}) == {
            "name": None,
            "email": "a@b.c",
        }

    def test_prepare_output(self) -> None:
        moment = datetime(2024, 5, 1, tzinfo=UTC)

        assert prepare_output({"at": moment, "gone": None}) == {
            "at": "2024-05-01T00:00:00+00:00"
        }
