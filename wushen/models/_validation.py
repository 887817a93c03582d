"""Payload checks shared by the rule content models."""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, ClassVar, Mapping, Sequence


class ModelValidationError(ValueError):
    """Raised when a content payload cannot be turned into a model."""

    def __init__(self, model: type[Any], errors: Sequence[str]) -> None:
        self.model = model
        self.errors = list(errors)
        message = "; ".join(self.errors) if self.errors else "invalid payload"
        super().__init__(f"{model.__name__} payload rejected: {message}")


@dataclass(frozen=True)
class FieldSpec:
    expected: Any
    description: str
    required: bool = True
    allow_none: bool = False


@dataclass(frozen=True)
class SequenceSpec:
    item: Any


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(float(value))


def is_formula_value(value: Any) -> bool:
    """A formula value is a finite number or a non-empty expression string."""

    return is_finite_number(value) or is_non_empty_str(value)


def is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _matches_type(value: Any, expected: Any) -> bool:
    if isinstance(expected, SequenceSpec):
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            return False
        return all(_matches_type(item, expected.item) for item in value)
    if isinstance(expected, tuple):
        return any(_matches_type(value, part) for part in expected)
    if isinstance(expected, type):
        if expected is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected is float:
            return isinstance(value, Real) and not isinstance(value, bool)
        return isinstance(value, expected)
    return bool(expected(value))


class ModelValidator:
    """Base class for content payload validators."""

    model: ClassVar[type[Any]]
    fields: ClassVar[Mapping[str, FieldSpec]]

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            raise ModelValidationError(
                cls.model, [f"expected a mapping, received {type(data).__name__}"]
            )

        errors: list[str] = []
        normalized: dict[str, Any] = dict(data)
        for name, spec in cls.fields.items():
            value = data.get(name)
            if value is None:
                if name not in data and spec.required:
                    errors.append(f"missing '{name}' ({spec.description})")
                elif name in data and spec.required and not spec.allow_none:
                    errors.append(f"'{name}' cannot be null")
                continue
            if not _matches_type(value, spec.expected):
                errors.append(
                    f"'{name}' expected {spec.description}, received {type(value).__name__}"
                )

        if errors:
            raise ModelValidationError(cls.model, errors)
        return normalized


def validate_payload(cls: type[Any], data: Mapping[str, Any]) -> dict[str, Any]:
    """Run the validator registered on ``cls``, if any, and return a copy."""

    validator: type[ModelValidator] | None = getattr(cls, "validator", None)
    if validator is None:
        return dict(data)
    return validator.validate(data)


__all__ = [
    "FieldSpec",
    "ModelValidationError",
    "ModelValidator",
    "SequenceSpec",
    "is_finite_number",
    "is_formula_value",
    "is_non_empty_str",
    "is_non_negative_int",
    "validate_payload",
]
