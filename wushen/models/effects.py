"""Effect payloads attached to rule entries."""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any, ClassVar, Union

from ._validation import (
    FieldSpec,
    ModelValidationError,
    ModelValidator,
    is_formula_value,
    is_non_empty_str,
    validate_payload,
)
from .attributes import (
    AttributeTarget,
    FormulaValue,
    Operation,
    PanelTarget,
    coerce_formula_value,
)


@dataclass(frozen=True, slots=True)
class BattleRecordTemplate:
    """Text template used by the battle log when an effect fires."""

    template: str

    @classmethod
    def from_value(cls, value: Any) -> "BattleRecordTemplate | None":
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, Mapping) and isinstance(value.get("template"), str):
            return cls(value["template"])
        raise ValueError("battle_record_template expects a mapping with a 'template' string")

    def render(self, values: Mapping[str, str]) -> str:
        """Substitute ``{name}`` placeholders; unknown placeholders stay as written."""

        text = self.template
        for name, value in values.items():
            text = text.replace("{" + name + "}", value)
        return text

    def to_dict(self) -> dict[str, str]:
        return {"template": self.template}


@dataclass(frozen=True, slots=True)
class AttributeEffect:
    """Common shape of ``modify_attribute`` and ``modify_percentage``.

    Both kinds run through the same arithmetic; the percentage kind only tells
    the authoring UI to present ``value`` scaled by 100.
    """

    kind: ClassVar[str] = ""

    target: AttributeTarget
    value: FormulaValue
    operation: Operation
    target_panel: PanelTarget = PanelTarget.OWN
    can_exceed_limit: bool = False
    is_temporary: bool = False
    battle_record_template: BattleRecordTemplate | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", AttributeTarget.from_value(self.target))
        object.__setattr__(self, "operation", Operation.from_value(self.operation))
        object.__setattr__(self, "target_panel", PanelTarget.from_value(self.target_panel))
        object.__setattr__(self, "value", coerce_formula_value(self.value))
        object.__setattr__(self, "can_exceed_limit", bool(self.can_exceed_limit))
        object.__setattr__(self, "is_temporary", bool(self.is_temporary))

    def to_dict(self, *, include_value: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.kind,
            "target": self.target.value,
            "operation": self.operation.value,
            "target_panel": self.target_panel.value,
            "can_exceed_limit": self.can_exceed_limit,
            "is_temporary": self.is_temporary,
        }
        if include_value:
            payload["value"] = self.value
        if self.battle_record_template is not None:
            payload["battle_record_template"] = self.battle_record_template.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class ModifyAttribute(AttributeEffect):
    kind: ClassVar[str] = "modify_attribute"


@dataclass(frozen=True, slots=True)
class ModifyPercentage(AttributeEffect):
    kind: ClassVar[str] = "modify_percentage"


@dataclass(frozen=True, slots=True)
class ExtraAttack:
    """Asks the battle engine to resolve a supplementary attack."""

    kind: ClassVar[str] = "extra_attack"

    output: FormulaValue
    battle_record_template: BattleRecordTemplate | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "output", coerce_formula_value(self.output))

    def to_dict(self, *, include_value: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind, "output": self.output}
        if self.battle_record_template is not None:
            payload["battle_record_template"] = self.battle_record_template.to_dict()
        return payload


Effect = Union[ModifyAttribute, ModifyPercentage, ExtraAttack]


class AttributeEffectValidator(ModelValidator):
    model = AttributeEffect
    fields = {
        "type": FieldSpec(is_non_empty_str, "an effect type"),
        "target": FieldSpec(str, "an attribute target"),
        "value": FieldSpec(is_formula_value, "a number or formula string"),
        "operation": FieldSpec(str, "an operation"),
        "target_panel": FieldSpec(str, "'own' or 'opponent'", required=False),
        "can_exceed_limit": FieldSpec(bool, "a boolean flag", required=False),
        "is_temporary": FieldSpec(bool, "a boolean flag", required=False),
        "battle_record_template": FieldSpec(
            (str, Mapping), "a record template", required=False, allow_none=True
        ),
    }


class ExtraAttackValidator(ModelValidator):
    model = ExtraAttack
    fields = {
        "type": FieldSpec(is_non_empty_str, "an effect type"),
        "output": FieldSpec(is_formula_value, "a number or formula string"),
        "battle_record_template": FieldSpec(
            (str, Mapping), "a record template", required=False, allow_none=True
        ),
    }


AttributeEffect.validator = AttributeEffectValidator
ModifyAttribute.validator = AttributeEffectValidator
ModifyPercentage.validator = AttributeEffectValidator
ExtraAttack.validator = ExtraAttackValidator

EFFECT_TYPES: dict[str, type] = {
    ModifyAttribute.kind: ModifyAttribute,
    ModifyPercentage.kind: ModifyPercentage,
    ExtraAttack.kind: ExtraAttack,
}


def parse_effect(data: Mapping[str, Any] | Effect) -> Effect:
    """Build an effect from its ``type``-tagged wire shape."""

    if isinstance(data, (AttributeEffect, ExtraAttack)):
        return data
    if not isinstance(data, Mapping):
        raise ModelValidationError(AttributeEffect, ["effect must be a mapping"])
    kind = str(data.get("type", "")).strip().lower()
    effect_cls = EFFECT_TYPES.get(kind)
    if effect_cls is None:
        raise ModelValidationError(AttributeEffect, [f"unknown effect type {kind!r}"])
    payload = validate_payload(effect_cls, data)
    try:
        template = BattleRecordTemplate.from_value(payload.get("battle_record_template"))
        if effect_cls is ExtraAttack:
            return ExtraAttack(output=payload["output"], battle_record_template=template)
        return effect_cls(
            target=payload["target"],
            value=payload["value"],
            operation=payload["operation"],
            target_panel=payload.get("target_panel"),
            can_exceed_limit=payload.get("can_exceed_limit") or False,
            is_temporary=payload.get("is_temporary") or False,
            battle_record_template=template,
        )
    except ValueError as exc:
        raise ModelValidationError(effect_cls, [str(exc)]) from exc


def effect_value(effect: Effect) -> FormulaValue | None:
    """Return the tunable value of an effect, if it carries one."""

    if isinstance(effect, AttributeEffect):
        return effect.value
    return None


__all__ = [
    "AttributeEffect",
    "BattleRecordTemplate",
    "EFFECT_TYPES",
    "Effect",
    "ExtraAttack",
    "ModifyAttribute",
    "ModifyPercentage",
    "effect_value",
    "parse_effect",
]
