"""Declarative parameter schemas for generation models.

A :class:`ModelSchema` describes everything the application needs to know
about one provider model: its display name, its provider identifier, the
ordered list of input parameters the form and the request builder work
from, and the shape of the provider's response.  No model gets its own
code; validation and request construction are driven entirely by this data.

Parameter Variants
------------------
:data:`ParameterSpec` is a tagged union discriminated by ``type``.  Each
variant carries only the fields that are legal for it:

- ``string``, ``number``, ``boolean``, ``image``, ``file``, ``json`` --
  scalar-ish parameters with optional ``validation`` bounds
- ``enum`` -- must carry a non-empty ``options`` tuple
- ``array`` -- must carry ``items`` (element type and, for object
  elements, a mapping of property definitions)
- ``object`` -- may carry nested ``properties``

Invariants are enforced when the schema is built, so an invalid catalog
entry fails at import time rather than on the first request:

- an enum ``default`` must be one of its ``options``
- ``validation.min`` must not exceed ``validation.max``
- a ``default`` must match the declared type
- parameter keys are unique within a schema

Usage
-----
::

    schema = ModelSchema.model_validate({
        "name": "Example",
        "id": "fal-ai/example",
        "input_schema": [
            {"key": "prompt", "type": "string", "required": True},
            {"key": "num_images", "type": "number", "default": 1,
             "validation": {"min": 1, "max": 4}},
        ],
    })
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

ParameterType = Literal[
    "string",
    "number",
    "boolean",
    "array",
    "object",
    "enum",
    "image",
    "file",
    "json",
]

def _is_json_value(value: Any) -> bool:
    if value is None or isinstance(value, (str, bool, int, float)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_json_value(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and _is_json_value(v) for k, v in value.items())
    return False


def value_matches_type(param_type: str, value: Any) -> bool:
    """Check a runtime value against a declared parameter type.

    ``enum`` accepts any value here; membership in ``options`` is a separate
    check.  ``bool`` is never accepted as a ``number`` even though it is an
    ``int`` subclass in Python.

    Args:
        param_type: One of the :data:`ParameterType` literals.
        value: Value supplied by the user.

    Returns:
        True if the value has the declared shape.
    """
    if param_type == "string":
        return isinstance(value, str)
    if param_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if param_type == "boolean":
        return isinstance(value, bool)
    if param_type == "array":
        return isinstance(value, (list, tuple))
    if param_type == "object":
        return isinstance(value, dict)
    if param_type in ("image", "file"):
        # URLs, data URIs, or raw bytes
        return isinstance(value, (str, bytes))
    if param_type == "json":
        return _is_json_value(value)
    return param_type == "enum"


def is_option(options: tuple[Any, ...], value: Any) -> bool:
    """Check enum membership by type as well as value.

    Plain ``in`` compares with ``==``, which would let ``True`` stand in for
    an option ``1`` and ``1.0`` for ``1``.
    """
    return any(type(option) is type(value) and option == value for option in options)


def describe_type(value: Any) -> str:
    """Name a value's runtime type in schema vocabulary."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class ValidationRule(BaseModel):
    """Optional bounds attached to a parameter or nested property.

    Attributes:
        min: Inclusive lower bound for numeric values.
        max: Inclusive upper bound for numeric values.
        pattern: Regular expression a string value must match (``re.search``).
        custom: Predicate returning True for acceptable values.  Never
            serialised.
    """

    model_config = ConfigDict(frozen=True)

    min: int | float | None = None
    max: int | float | None = None
    pattern: str | None = None
    custom: Callable[[Any], bool] | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def check_rule(self) -> ValidationRule:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"validation.min ({self.min}) must not exceed validation.max ({self.max})")
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"Invalid validation.pattern {self.pattern!r}: {e}") from e
        return self


class _DefaultMixin:
    """Shared default handling for parameters and nested properties."""

    @property
    def has_default(self) -> bool:
        """True when a non-null default was declared."""
        return "default" in self.model_fields_set and self.default is not None  # type: ignore[attr-defined]

    def _check_default_type(self) -> None:
        if self.has_default and not value_matches_type(self.type, self.default):  # type: ignore[attr-defined]
            raise ValueError(
                f"Default {self.default!r} does not match declared type '{self.type}'"  # type: ignore[attr-defined]
            )


class PropertyDefinition(_DefaultMixin, BaseModel):
    """One property of an object element inside an array parameter."""

    model_config = ConfigDict(frozen=True)

    type: ParameterType
    description: str | None = None
    required: bool = False
    default: Any = None
    validation: ValidationRule | None = None

    @model_validator(mode="after")
    def check_property(self) -> PropertyDefinition:
        self._check_default_type()
        return self


class ArrayItems(BaseModel):
    """Element description for an ``array`` parameter."""

    model_config = ConfigDict(frozen=True)

    type: ParameterType
    properties: dict[str, PropertyDefinition] | None = None


class _ParameterBase(_DefaultMixin, BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    description: str | None = None
    required: bool = False
    default: Any = None
    validation: ValidationRule | None = None

    @model_validator(mode="after")
    def check_parameter(self) -> _ParameterBase:
        self._check_default_type()
        return self


class StringParameter(_ParameterBase):
    type: Literal["string"] = "string"


class NumberParameter(_ParameterBase):
    type: Literal["number"] = "number"


class BooleanParameter(_ParameterBase):
    type: Literal["boolean"] = "boolean"


class ImageParameter(_ParameterBase):
    type: Literal["image"] = "image"


class FileParameter(_ParameterBase):
    type: Literal["file"] = "file"


class JsonParameter(_ParameterBase):
    type: Literal["json"] = "json"


class ObjectParameter(_ParameterBase):
    type: Literal["object"] = "object"
    properties: dict[str, PropertyDefinition] | None = None


class ArrayParameter(_ParameterBase):
    type: Literal["array"] = "array"
    items: ArrayItems


class EnumParameter(_ParameterBase):
    """Parameter restricted to an ordered set of literal options."""

    type: Literal["enum"] = "enum"
    options: tuple[Any, ...] = Field(min_length=1)

    @model_validator(mode="after")
    def check_options(self) -> EnumParameter:
        if self.has_default and not is_option(self.options, self.default):
            raise ValueError(
                f"Enum default {self.default!r} for '{self.key}' is not one of {list(self.options)}"
            )
        return self


ParameterSpec = Annotated[
    Union[
        StringParameter,
        NumberParameter,
        BooleanParameter,
        ArrayParameter,
        ObjectParameter,
        EnumParameter,
        ImageParameter,
        FileParameter,
        JsonParameter,
    ],
    Field(discriminator="type"),
]

_parameter_adapter: TypeAdapter = TypeAdapter(ParameterSpec)


def parse_parameter(data: dict[str, Any]) -> ParameterSpec:
    """Build the right ParameterSpec variant from a plain mapping."""
    return _parameter_adapter.validate_python(data)


def _check_unique_keys(parameters: tuple[Any, ...], field: str) -> None:
    seen: set[str] = set()
    for parameter in parameters:
        if parameter.key in seen:
            raise ValueError(f"Duplicate key '{parameter.key}' in {field}")
        seen.add(parameter.key)


class ModelSchema(BaseModel):
    """Static description of one provider model.

    Attributes:
        name: Display label (e.g. "Flux 1.1 Pro").
        id: Globally unique provider identifier (e.g. "fal-ai/flux-pro/v1.1").
        input_schema: Parameters in presentation and validation order.
        output_schema: Shape of the provider response.  Documentation only,
            never enforced on input.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    id: str = Field(min_length=1)
    input_schema: tuple[ParameterSpec, ...]
    output_schema: tuple[ParameterSpec, ...] = ()

    @model_validator(mode="after")
    def check_keys(self) -> ModelSchema:
        _check_unique_keys(self.input_schema, "input_schema")
        _check_unique_keys(self.output_schema, "output_schema")
        return self

    def get_parameter(self, key: str) -> ParameterSpec | None:
        return next((p for p in self.input_schema if p.key == key), None)

    def defaults(self) -> dict[str, Any]:
        """Return the declared defaults of every input parameter that has one."""
        return {p.key: p.default for p in self.input_schema if p.has_default}
