"""Request validation and construction driven by model schemas.

Given a :class:`~fluxstudio.core.schema.ModelSchema` and the raw values a
user entered, :func:`validate_request` produces either the parameter mapping
that is sent to the provider or the complete list of field-level violations.

Rules, applied to each input parameter in schema order:

1. absent key with a default -> the default is used
2. absent key, required, no default -> :class:`MissingRequiredField`
3. present value of the wrong shape -> :class:`TypeMismatch`
4. enum value outside ``options`` -> :class:`InvalidEnumValue`
5. number outside ``validation.min``/``max`` -> :class:`OutOfRange`; NaN and
   infinity never satisfy a bound and are rejected even without one
6. array elements with declared ``properties`` go through the same rules,
   reported under index-qualified keys such as ``loras[0].scale``

A ``None`` value counts as absent.  Keys the schema does not declare are
dropped from the output.  Violations are collected rather than raised on the
first problem so the caller can show every one of them at once.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .schema import ModelSchema, PropertyDefinition, describe_type, is_option, value_matches_type

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Violation taxonomy.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A single field-level validation problem."""

    key: str
    code: ClassVar[str] = "INVALID"

    @property
    def message(self) -> str:
        return f"Invalid value for '{self.key}'"

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class MissingRequiredField(Violation):
    code: ClassVar[str] = "MISSING_REQUIRED_FIELD"

    @property
    def message(self) -> str:
        return f"'{self.key}' is required"


@dataclass(frozen=True)
class TypeMismatch(Violation):
    expected: str
    actual: str
    code: ClassVar[str] = "TYPE_MISMATCH"

    @property
    def message(self) -> str:
        return f"'{self.key}' must be of type {self.expected}, got {self.actual}"


@dataclass(frozen=True)
class InvalidEnumValue(Violation):
    value: Any
    allowed: tuple[Any, ...]
    code: ClassVar[str] = "INVALID_ENUM_VALUE"

    @property
    def message(self) -> str:
        return f"'{self.key}' must be one of {list(self.allowed)}, got {self.value!r}"


@dataclass(frozen=True)
class OutOfRange(Violation):
    value: Any
    bound: str  # "min" or "max"
    limit: int | float
    code: ClassVar[str] = "OUT_OF_RANGE"

    @property
    def message(self) -> str:
        relation = "at least" if self.bound == "min" else "at most"
        return f"'{self.key}' must be {relation} {self.limit}, got {self.value}"


@dataclass(frozen=True)
class InvalidValue(Violation):
    """Failed ``pattern`` or custom predicate check."""

    value: Any
    reason: str
    code: ClassVar[str] = "INVALID_VALUE"

    @property
    def message(self) -> str:
        return f"'{self.key}' is invalid: {self.reason}"


class ParameterValidationError(Exception):
    """Raised by :func:`build_request` when the input has violations.

    The message lists every violation and is intended to be displayed
    directly to the user.
    """

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        super().__init__("; ".join(v.message for v in self.violations))

    def to_list(self) -> list[dict[str, Any]]:
        return [v.to_dict() for v in self.violations]


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_request`.

    ``parameters`` is only populated when there are no violations.
    """

    parameters: dict[str, Any] | None
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


# ---------------------------------------------------------------------------
# Checks.
# ---------------------------------------------------------------------------


def _check_value(key: str, spec: Any, value: Any, violations: list[Violation]) -> bool:
    """Run type, enum, bounds, pattern and custom checks for one value.

    ``spec`` is either a top-level parameter or a nested
    :class:`PropertyDefinition`; both expose ``type`` and ``validation``.
    """
    if not value_matches_type(spec.type, value):
        violations.append(TypeMismatch(key, expected=spec.type, actual=describe_type(value)))
        return False

    options = getattr(spec, "options", None)
    if spec.type == "enum" and options is not None and not is_option(options, value):
        violations.append(InvalidEnumValue(key, value=value, allowed=tuple(options)))
        return False

    rule = spec.validation
    if spec.type == "number" and not math.isfinite(value):
        if rule is not None and rule.min is not None:
            violations.append(OutOfRange(key, value=value, bound="min", limit=rule.min))
        elif rule is not None and rule.max is not None:
            violations.append(OutOfRange(key, value=value, bound="max", limit=rule.max))
        else:
            violations.append(InvalidValue(key, value=value, reason="must be a finite number"))
        return False

    if rule is None:
        return True

    valid = True
    if spec.type == "number":
        if rule.min is not None and value < rule.min:
            violations.append(OutOfRange(key, value=value, bound="min", limit=rule.min))
            valid = False
        elif rule.max is not None and value > rule.max:
            violations.append(OutOfRange(key, value=value, bound="max", limit=rule.max))
            valid = False

    if rule.pattern is not None and isinstance(value, str) and not re.search(rule.pattern, value):
        violations.append(
            InvalidValue(key, value=value, reason=f"does not match pattern {rule.pattern!r}")
        )
        valid = False

    if rule.custom is not None:
        try:
            accepted = bool(rule.custom(value))
            reason = "rejected by custom validation"
        except Exception as e:
            accepted = False
            reason = str(e) or "rejected by custom validation"
        if not accepted:
            violations.append(InvalidValue(key, value=value, reason=reason))
            valid = False

    return valid


def _build_properties(
    key: str,
    properties: Mapping[str, PropertyDefinition],
    raw: Mapping[str, Any],
    violations: list[Violation],
) -> dict[str, Any]:
    """Apply defaults and checks to the declared properties of one object."""
    built: dict[str, Any] = {}
    for name, prop in properties.items():
        prop_key = f"{key}.{name}"
        value = raw.get(name)

        if value is None:
            if prop.has_default:
                built[name] = prop.default
            elif prop.required:
                violations.append(MissingRequiredField(prop_key))
            continue

        if _check_value(prop_key, prop, value, violations):
            built[name] = _normalize_nested(prop_key, prop, value, violations)
    return built


def _normalize_nested(key: str, spec: Any, value: Any, violations: list[Violation]) -> Any:
    """Recurse into array elements and object properties where declared."""
    if spec.type == "array" and getattr(spec, "items", None) is not None:
        items = spec.items
        elements = []
        for index, element in enumerate(value):
            element_key = f"{key}[{index}]"
            if items.properties is not None:
                if not isinstance(element, dict):
                    violations.append(
                        TypeMismatch(element_key, expected="object", actual=describe_type(element))
                    )
                    continue
                elements.append(_build_properties(element_key, items.properties, element, violations))
            elif not value_matches_type(items.type, element):
                violations.append(
                    TypeMismatch(element_key, expected=items.type, actual=describe_type(element))
                )
            else:
                elements.append(element)
        return elements

    if spec.type == "object" and getattr(spec, "properties", None):
        return _build_properties(key, spec.properties, value, violations)

    return value


# ---------------------------------------------------------------------------
# Public API.
# ---------------------------------------------------------------------------


def validate_request(schema: ModelSchema, raw: Mapping[str, Any]) -> ValidationResult:
    """Validate raw user input against a model schema.

    Args:
        schema: Schema of the selected model.
        raw: Mapping of parameter key to user-supplied value.

    Returns:
        ValidationResult holding either the normalized parameters or every
        violation found.
    """
    violations: list[Violation] = []
    parameters: dict[str, Any] = {}

    for spec in schema.input_schema:
        value = raw.get(spec.key)

        if value is None:
            if spec.has_default:
                parameters[spec.key] = spec.default
            elif spec.required:
                violations.append(MissingRequiredField(spec.key))
            continue

        if _check_value(spec.key, spec, value, violations):
            parameters[spec.key] = _normalize_nested(spec.key, spec, value, violations)

    dropped = [k for k in raw if schema.get_parameter(k) is None]
    if dropped:
        logger.debug(f"Dropping undeclared parameters for {schema.id}: {dropped}")

    if violations:
        logger.info(f"Validation failed for {schema.id}: {[v.code for v in violations]}")
        return ValidationResult(parameters=None, violations=violations)

    return ValidationResult(parameters=parameters)


def build_request(schema: ModelSchema, raw: Mapping[str, Any]) -> dict[str, Any]:
    """Build the provider parameter mapping or raise.

    Args:
        schema: Schema of the selected model.
        raw: Mapping of parameter key to user-supplied value.

    Returns:
        Normalized parameter mapping containing only declared keys.

    Raises:
        ParameterValidationError: If any violation was found.
    """
    result = validate_request(schema, raw)
    if not result.ok:
        raise ParameterValidationError(result.violations)
    return result.parameters  # type: ignore[return-value]
