"""Condition expression trees.

On the wire a condition is an untagged union: the variant is chosen by the
key present in the mapping (``{"has_trait": "T1"}``, ``{"and": [...]}``).
:func:`parse_condition` maps that shape onto explicit dataclass variants and
:func:`condition_to_dict` maps it back, so the evaluator can dispatch on
types instead of probing keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from ._validation import (
    FieldSpec,
    ModelValidationError,
    ModelValidator,
    is_finite_number,
    is_formula_value,
    is_non_empty_str,
)
from .attributes import (
    BattleAttribute,
    CombatantSide,
    ComparisonOp,
    FormulaValue,
    ManualKind,
    OutcomeFlag,
    ProgressionAttribute,
    RuleSchema,
    coerce_formula_value,
)


@dataclass(frozen=True, slots=True)
class EquippedManualIs:
    """The manual equipped in ``slot`` has the given id."""

    slot: ManualKind
    manual_id: str


@dataclass(frozen=True, slots=True)
class EquippedManualTypeIs:
    slot: ManualKind
    manual_type: str


@dataclass(frozen=True, slots=True)
class HasTrait:
    trait_id: str


@dataclass(frozen=True, slots=True)
class AttributeComparison:
    """Progression-time comparison against a literal number."""

    attribute: ProgressionAttribute
    op: ComparisonOp
    value: float


@dataclass(frozen=True, slots=True)
class CombatantAttributeComparison:
    """Battle-time comparison of one combatant's attribute against a formula."""

    side: CombatantSide
    attribute: BattleAttribute
    op: ComparisonOp
    value: FormulaValue


@dataclass(frozen=True, slots=True)
class OpponentManualIs:
    slot: ManualKind
    manual_id: str


@dataclass(frozen=True, slots=True)
class OpponentManualTypeIs:
    slot: ManualKind
    manual_type: str


@dataclass(frozen=True, slots=True)
class OutcomeIs:
    flag: OutcomeFlag


@dataclass(frozen=True, slots=True)
class AllOf:
    conditions: tuple["Condition", ...] = ()


@dataclass(frozen=True, slots=True)
class AnyOf:
    conditions: tuple["Condition", ...] = ()


@dataclass(frozen=True, slots=True)
class UnknownCondition:
    """A shape this version does not understand. It never holds."""

    payload: Any = field(default=None, compare=False)
    reason: str = ""


Condition = Union[
    EquippedManualIs,
    EquippedManualTypeIs,
    HasTrait,
    AttributeComparison,
    CombatantAttributeComparison,
    OpponentManualIs,
    OpponentManualTypeIs,
    OutcomeIs,
    AllOf,
    AnyOf,
    UnknownCondition,
]

PROGRESSION_LEAVES = (EquippedManualIs, EquippedManualTypeIs, HasTrait, AttributeComparison)
BATTLE_LEAVES = (CombatantAttributeComparison, OpponentManualIs, OpponentManualTypeIs, OutcomeIs)


_EQUIPPED_ID_KEYS = {
    "internal_is": ManualKind.INTERNAL,
    "attack_skill_is": ManualKind.ATTACK_SKILL,
    "defense_skill_is": ManualKind.DEFENSE_SKILL,
}
_EQUIPPED_TYPE_KEYS = {
    "internal_type_is": ManualKind.INTERNAL,
    "attack_skill_type_is": ManualKind.ATTACK_SKILL,
    "defense_skill_type_is": ManualKind.DEFENSE_SKILL,
}
_OPPONENT_ID_KEYS = {
    "opponent_internal_is": ManualKind.INTERNAL,
    "opponent_attack_skill_is": ManualKind.ATTACK_SKILL,
    "opponent_defense_skill_is": ManualKind.DEFENSE_SKILL,
}
_OPPONENT_TYPE_KEYS = {
    "opponent_internal_type_is": ManualKind.INTERNAL,
    "opponent_attack_skill_type_is": ManualKind.ATTACK_SKILL,
    "opponent_defense_skill_type_is": ManualKind.DEFENSE_SKILL,
}
_COMPARISON_SIDES = {
    "self_attribute_comparison": CombatantSide.SELF,
    "opponent_attribute_comparison": CombatantSide.OPPONENT,
}
_FLAG_KEYS = {flag.value: flag for flag in OutcomeFlag}


class AttributeComparisonValidator(ModelValidator):
    model = AttributeComparison
    fields = {
        "attribute": FieldSpec(str, "an attribute name"),
        "op": FieldSpec(str, "a comparison operator"),
        "value": FieldSpec(is_finite_number, "a literal number"),
    }


class CombatantAttributeComparisonValidator(ModelValidator):
    model = CombatantAttributeComparison
    fields = {
        "attribute": FieldSpec(str, "a battle attribute name"),
        "op": FieldSpec(str, "a comparison operator"),
        "value": FieldSpec(is_formula_value, "a number or formula string"),
    }


AttributeComparison.validator = AttributeComparisonValidator
CombatantAttributeComparison.validator = CombatantAttributeComparisonValidator


def _unknown(payload: Any, reason: str, *, strict: bool) -> UnknownCondition:
    if strict:
        raise ModelValidationError(UnknownCondition, [reason])
    return UnknownCondition(payload=payload, reason=reason)


def _require_str(key: str, value: Any) -> str:
    if not is_non_empty_str(value):
        raise ValueError(f"'{key}' expects a non-empty string")
    return str(value).strip()


def _parse_children(key: str, value: Any, *, strict: bool) -> tuple[Condition, ...]:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"'{key}' expects a list of conditions")
    return tuple(parse_condition(item, strict=strict) for item in value)


def _parse_leaf(key: str, value: Any) -> Condition:
    if key in _EQUIPPED_ID_KEYS:
        return EquippedManualIs(_EQUIPPED_ID_KEYS[key], _require_str(key, value))
    if key in _EQUIPPED_TYPE_KEYS:
        return EquippedManualTypeIs(_EQUIPPED_TYPE_KEYS[key], _require_str(key, value))
    if key == "has_trait":
        return HasTrait(_require_str(key, value))
    if key == "attribute_comparison":
        payload = AttributeComparisonValidator.validate(value)
        return AttributeComparison(
            attribute=ProgressionAttribute.from_value(payload["attribute"]),
            op=ComparisonOp.from_value(payload["op"]),
            value=float(payload["value"]),
        )
    if key in _COMPARISON_SIDES:
        payload = CombatantAttributeComparisonValidator.validate(value)
        return CombatantAttributeComparison(
            side=_COMPARISON_SIDES[key],
            attribute=BattleAttribute.from_value(payload["attribute"]),
            op=ComparisonOp.from_value(payload["op"]),
            value=coerce_formula_value(payload["value"]),
        )
    if key in _OPPONENT_ID_KEYS:
        return OpponentManualIs(_OPPONENT_ID_KEYS[key], _require_str(key, value))
    if key in _OPPONENT_TYPE_KEYS:
        return OpponentManualTypeIs(_OPPONENT_TYPE_KEYS[key], _require_str(key, value))
    return OutcomeIs(_FLAG_KEYS[key])


_LEAF_KEYS = frozenset(
    [
        *_EQUIPPED_ID_KEYS,
        *_EQUIPPED_TYPE_KEYS,
        "has_trait",
        "attribute_comparison",
        *_COMPARISON_SIDES,
        *_OPPONENT_ID_KEYS,
        *_OPPONENT_TYPE_KEYS,
        *_FLAG_KEYS,
    ]
)


def parse_condition(data: Any, *, strict: bool = False) -> Condition | None:
    """Build a condition variant from its wire shape.

    ``None`` stays ``None`` (no condition). Shapes that cannot be recognised
    become :class:`UnknownCondition` unless ``strict`` is set, in which case
    :class:`ModelValidationError` is raised.
    """

    if data is None:
        return None
    if isinstance(data, (AllOf, AnyOf, UnknownCondition, *PROGRESSION_LEAVES, *BATTLE_LEAVES)):
        return data
    if isinstance(data, str):
        # Unit battle flags may be serialised as a bare string.
        flag = _FLAG_KEYS.get(data.strip())
        if flag is not None:
            return OutcomeIs(flag)
        return _unknown(data, f"unrecognised condition {data!r}", strict=strict)
    if not isinstance(data, Mapping):
        return _unknown(data, f"condition must be a mapping, got {type(data).__name__}", strict=strict)

    try:
        if "and" in data:
            return AllOf(_parse_children("and", data["and"], strict=strict))
        if "or" in data:
            return AnyOf(_parse_children("or", data["or"], strict=strict))
        for key in data:
            if key in _LEAF_KEYS:
                return _parse_leaf(key, data[key])
    except ModelValidationError as exc:
        if strict:
            raise
        return UnknownCondition(payload=data, reason=str(exc))
    except ValueError as exc:
        return _unknown(data, str(exc), strict=strict)

    keys = ", ".join(map(str, data)) or "<empty>"
    return _unknown(data, f"no recognised condition key among: {keys}", strict=strict)


def condition_to_dict(condition: Condition | None) -> Any:
    """Serialise a condition back to its wire shape."""

    if condition is None:
        return None
    if isinstance(condition, AllOf):
        return {"and": [condition_to_dict(item) for item in condition.conditions]}
    if isinstance(condition, AnyOf):
        return {"or": [condition_to_dict(item) for item in condition.conditions]}
    if isinstance(condition, EquippedManualIs):
        return {f"{condition.slot.value}_is": condition.manual_id}
    if isinstance(condition, EquippedManualTypeIs):
        return {f"{condition.slot.value}_type_is": condition.manual_type}
    if isinstance(condition, HasTrait):
        return {"has_trait": condition.trait_id}
    if isinstance(condition, AttributeComparison):
        return {
            "attribute_comparison": {
                "attribute": condition.attribute.value,
                "op": condition.op.value,
                "value": condition.value,
            }
        }
    if isinstance(condition, CombatantAttributeComparison):
        return {
            f"{condition.side.value}_attribute_comparison": {
                "attribute": condition.attribute.value,
                "op": condition.op.value,
                "value": condition.value,
            }
        }
    if isinstance(condition, OpponentManualIs):
        return {f"opponent_{condition.slot.value}_is": condition.manual_id}
    if isinstance(condition, OpponentManualTypeIs):
        return {f"opponent_{condition.slot.value}_type_is": condition.manual_type}
    if isinstance(condition, OutcomeIs):
        return {condition.flag.value: None}
    return condition.payload


def condition_schemas(condition: Condition | None) -> frozenset[RuleSchema]:
    """Return the fact schemas the leaves of ``condition`` require."""

    if condition is None:
        return frozenset()
    if isinstance(condition, (AllOf, AnyOf)):
        found: set[RuleSchema] = set()
        for child in condition.conditions:
            found |= condition_schemas(child)
        return frozenset(found)
    if isinstance(condition, PROGRESSION_LEAVES):
        return frozenset({RuleSchema.PROGRESSION})
    if isinstance(condition, BATTLE_LEAVES):
        return frozenset({RuleSchema.BATTLE})
    return frozenset()


__all__ = [
    "AllOf",
    "AnyOf",
    "AttributeComparison",
    "BATTLE_LEAVES",
    "CombatantAttributeComparison",
    "Condition",
    "EquippedManualIs",
    "EquippedManualTypeIs",
    "HasTrait",
    "OpponentManualIs",
    "OpponentManualTypeIs",
    "OutcomeIs",
    "PROGRESSION_LEAVES",
    "UnknownCondition",
    "condition_schemas",
    "condition_to_dict",
    "parse_condition",
]
