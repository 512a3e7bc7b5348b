"""Tests for fluxstudio.core.schema: declarative parameter schemas.

Tests cover:
- Runtime type checks (value_matches_type / describe_type).
- Discriminated parsing of ParameterSpec variants.
- Construction-time invariants (enum defaults, min <= max, default types,
  unique keys, required array items).
- ModelSchema helpers and immutability.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from fluxstudio.core.schema import (
    ArrayParameter,
    EnumParameter,
    ModelSchema,
    NumberParameter,
    StringParameter,
    ValidationRule,
    describe_type,
    is_option,
    parse_parameter,
    value_matches_type,
)


class TestValueMatchesType:
    """Runtime shape checks in schema vocabulary."""

    @pytest.mark.parametrize(
        "param_type,value",
        [
            ("string", "hello"),
            ("number", 3),
            ("number", 3.5),
            ("boolean", False),
            ("array", [1, 2]),
            ("object", {"a": 1}),
            ("image", "https://example.com/a.png"),
            ("file", b"raw-bytes"),
            ("json", {"nested": [1, "two", None]}),
            ("enum", "anything"),
        ],
    )
    def test_accepts_matching_values(self, param_type, value):
        """Values of the declared shape are accepted."""
        assert value_matches_type(param_type, value)

    def test_bool_is_not_a_number(self):
        """bool is an int subclass in Python but not a number here."""
        assert not value_matches_type("number", True)

    def test_string_is_not_a_number(self):
        """Numeric strings are not coerced."""
        assert not value_matches_type("number", "5")

    def test_json_rejects_non_serialisable(self):
        """Arbitrary objects are not JSON values."""
        assert not value_matches_type("json", {"x": object()})

    def test_is_option_compares_types(self):
        """Enum membership needs equal value and equal type."""
        assert is_option((1, 2), 1)
        assert not is_option((1, 2), True)
        assert not is_option((1, 2), 1.0)
        assert is_option(("a", "b"), "b")

    def test_describe_type(self):
        """describe_type names values the way violations report them."""
        assert describe_type(None) == "null"
        assert describe_type(True) == "boolean"
        assert describe_type(1.5) == "number"
        assert describe_type("x") == "string"
        assert describe_type([]) == "array"
        assert describe_type({}) == "object"


class TestParameterParsing:
    """ParameterSpec is discriminated by ``type``."""

    def test_string_variant(self):
        """A 'string' mapping builds a StringParameter."""
        param = parse_parameter({"key": "prompt", "type": "string", "required": True})
        assert isinstance(param, StringParameter)
        assert param.required is True

    def test_enum_variant_keeps_option_order(self):
        """Enum options stay in declaration order."""
        param = parse_parameter({"key": "format", "type": "enum", "options": ["png", "jpeg"]})
        assert isinstance(param, EnumParameter)
        assert param.options == ("png", "jpeg")

    def test_array_variant(self):
        """An array parameter carries its items description."""
        param = parse_parameter(
            {
                "key": "loras",
                "type": "array",
                "items": {"type": "object", "properties": {"path": {"type": "string"}}},
            }
        )
        assert isinstance(param, ArrayParameter)
        assert param.items.properties["path"].type == "string"

    def test_unknown_type_rejected(self):
        """Types outside the nine supported ones are rejected."""
        with pytest.raises(ValidationError):
            parse_parameter({"key": "x", "type": "date"})

    def test_number_without_default(self):
        """A parameter without a declared default reports has_default False."""
        param = parse_parameter({"key": "seed", "type": "number"})
        assert isinstance(param, NumberParameter)
        assert param.has_default is False


class TestParameterInvariants:
    """Invalid parameter definitions fail when built."""

    def test_enum_requires_options(self):
        """An enum without options is rejected."""
        with pytest.raises(ValidationError):
            parse_parameter({"key": "size", "type": "enum"})

    def test_enum_rejects_empty_options(self):
        """An enum with an empty options list is rejected."""
        with pytest.raises(ValidationError):
            parse_parameter({"key": "size", "type": "enum", "options": []})

    def test_enum_default_must_be_an_option(self):
        """An enum default outside its options is rejected."""
        with pytest.raises(ValidationError, match="not one of"):
            parse_parameter(
                {"key": "size", "type": "enum", "options": ["a", "b"], "default": "c"}
            )

    def test_enum_default_matches_by_type(self):
        """A boolean default does not pass for an integer option."""
        with pytest.raises(ValidationError, match="not one of"):
            parse_parameter({"key": "count", "type": "enum", "options": [1, 2], "default": True})

    def test_min_greater_than_max(self):
        """validation.min must not exceed validation.max."""
        with pytest.raises(ValidationError, match="must not exceed"):
            parse_parameter(
                {"key": "steps", "type": "number", "validation": {"min": 10, "max": 1}}
            )

    def test_min_equal_max_allowed(self):
        """A single-value range is fine."""
        param = parse_parameter(
            {"key": "steps", "type": "number", "validation": {"min": 4, "max": 4}}
        )
        assert param.validation.min == param.validation.max == 4

    def test_default_type_mismatch(self):
        """A default of the wrong type is rejected."""
        with pytest.raises(ValidationError, match="does not match declared type"):
            parse_parameter({"key": "steps", "type": "number", "default": "ten"})

    def test_nested_default_type_mismatch(self):
        """Nested property defaults are checked too."""
        with pytest.raises(ValidationError):
            parse_parameter(
                {
                    "key": "loras",
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"scale": {"type": "number", "default": "1"}},
                    },
                }
            )

    def test_array_requires_items(self):
        """An array parameter without items is rejected."""
        with pytest.raises(ValidationError):
            parse_parameter({"key": "loras", "type": "array"})

    def test_invalid_pattern(self):
        """A pattern that does not compile is rejected."""
        with pytest.raises(ValidationError):
            ValidationRule(pattern="[unclosed")


class TestModelSchema:
    """ModelSchema construction and helpers."""

    def test_duplicate_keys_rejected(self):
        """Parameter keys must be unique within a schema."""
        with pytest.raises(ValidationError, match="Duplicate key 'prompt'"):
            ModelSchema.model_validate(
                {
                    "name": "Dup",
                    "id": "fal-ai/dup",
                    "input_schema": [
                        {"key": "prompt", "type": "string"},
                        {"key": "prompt", "type": "string"},
                    ],
                }
            )

    def test_empty_id_rejected(self):
        """A schema needs a provider identifier."""
        with pytest.raises(ValidationError):
            ModelSchema.model_validate({"name": "X", "id": "", "input_schema": []})

    def test_get_parameter(self, sample_schema: ModelSchema):
        """Parameters are looked up by key."""
        assert sample_schema.get_parameter("num_images").type == "number"
        assert sample_schema.get_parameter("missing") is None

    def test_defaults(self, sample_schema: ModelSchema):
        """defaults() only contains parameters that declare one."""
        assert sample_schema.defaults() == {"num_images": 1}

    def test_schema_is_frozen(self, sample_schema: ModelSchema):
        """Schemas are immutable once built."""
        with pytest.raises(ValidationError):
            sample_schema.name = "Changed"

    def test_custom_rule_not_serialised(self):
        """Custom predicates are excluded from dumps."""
        schema = ModelSchema.model_validate(
            {
                "name": "Custom",
                "id": "fal-ai/custom",
                "input_schema": [
                    {
                        "key": "prompt",
                        "type": "string",
                        "validation": {"custom": lambda v: bool(v.strip())},
                    }
                ],
            }
        )
        dumped = schema.model_dump(mode="json", exclude_none=True)
        assert "custom" not in dumped["input_schema"][0].get("validation", {})
