"""Story and event reward payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Optional, Union

from ._validation import (
    FieldSpec,
    ModelValidationError,
    ModelValidator,
    is_formula_value,
    is_non_empty_str,
    validate_payload,
)
from .attributes import FormulaValue, ManualKind, Operation, ProgressionAttribute, coerce_formula_value


@dataclass(frozen=True, slots=True)
class AttributeReward:
    kind: ClassVar[str] = "attribute"

    target: ProgressionAttribute
    value: FormulaValue
    operation: Operation = Operation.ADD
    can_exceed_limit: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", ProgressionAttribute.from_value(self.target))
        object.__setattr__(self, "operation", Operation.from_value(self.operation))
        object.__setattr__(self, "value", coerce_formula_value(self.value))
        object.__setattr__(self, "can_exceed_limit", bool(self.can_exceed_limit))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "target": self.target.value,
            "value": self.value,
            "operation": self.operation.value,
            "can_exceed_limit": self.can_exceed_limit,
        }


@dataclass(frozen=True, slots=True)
class TraitReward:
    kind: ClassVar[str] = "trait"

    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "id": self.id}


@dataclass(frozen=True, slots=True)
class StartTraitPoolReward:
    """Adds a trait to the account-wide pool offered when a new game starts."""

    kind: ClassVar[str] = "start_trait_pool"

    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "id": self.id}


@dataclass(frozen=True, slots=True)
class ManualReward:
    """Grants one specific manual; ``manual_kind`` doubles as the wire tag."""

    manual_kind: ManualKind
    id: str

    def __post_init__(self) -> None:
        kind = ManualKind.from_value(self.manual_kind)
        if kind is ManualKind.ANY:
            raise ValueError("A manual reward needs a concrete manual kind")
        object.__setattr__(self, "manual_kind", kind)

    @property
    def kind(self) -> str:
        return self.manual_kind.value

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "id": self.id}


@dataclass(frozen=True, slots=True)
class RandomManualReward:
    kind: ClassVar[str] = "random_manual"

    manual_kind: ManualKind = ManualKind.ANY
    rarity: Optional[int] = None
    manual_type: Optional[str] = None
    count: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "manual_kind",
            ManualKind.from_value(self.manual_kind, default=ManualKind.ANY),
        )
        object.__setattr__(self, "count", max(0, int(self.count)))
        if self.rarity is not None:
            object.__setattr__(self, "rarity", int(self.rarity))
        if self.manual_type is not None:
            object.__setattr__(self, "manual_type", str(self.manual_type).strip() or None)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.kind,
            "manual_kind": self.manual_kind.value,
            "count": self.count,
        }
        if self.rarity is not None:
            payload["rarity"] = self.rarity
        if self.manual_type is not None:
            payload["manual_type"] = self.manual_type
        return payload


Reward = Union[
    AttributeReward,
    TraitReward,
    StartTraitPoolReward,
    ManualReward,
    RandomManualReward,
]


class AttributeRewardValidator(ModelValidator):
    model = AttributeReward
    fields = {
        "target": FieldSpec(str, "an attribute name"),
        "value": FieldSpec(is_formula_value, "a number or formula string"),
        "operation": FieldSpec(str, "an operation", required=False),
        "can_exceed_limit": FieldSpec(bool, "a boolean flag", required=False),
    }


class IdRewardValidator(ModelValidator):
    model = TraitReward
    fields = {"id": FieldSpec(is_non_empty_str, "a non-empty id")}


class RandomManualRewardValidator(ModelValidator):
    model = RandomManualReward
    fields = {
        "manual_kind": FieldSpec(str, "a manual kind", required=False, allow_none=True),
        "rarity": FieldSpec(int, "an integer rarity", required=False, allow_none=True),
        "manual_type": FieldSpec(str, "a manual type", required=False, allow_none=True),
        "count": FieldSpec(int, "an integer draw count", required=False),
    }


AttributeReward.validator = AttributeRewardValidator
TraitReward.validator = IdRewardValidator
StartTraitPoolReward.validator = IdRewardValidator
ManualReward.validator = IdRewardValidator
RandomManualReward.validator = RandomManualRewardValidator

_MANUAL_TAGS = {
    ManualKind.INTERNAL.value: ManualKind.INTERNAL,
    ManualKind.ATTACK_SKILL.value: ManualKind.ATTACK_SKILL,
    ManualKind.DEFENSE_SKILL.value: ManualKind.DEFENSE_SKILL,
}


def parse_reward(data: Mapping[str, Any] | Reward) -> Reward:
    """Build a reward from its ``type``-tagged wire shape."""

    if isinstance(
        data,
        (AttributeReward, TraitReward, StartTraitPoolReward, ManualReward, RandomManualReward),
    ):
        return data
    if not isinstance(data, Mapping):
        raise ModelValidationError(AttributeReward, ["reward must be a mapping"])
    kind = str(data.get("type", "")).strip().lower()
    try:
        if kind == AttributeReward.kind:
            payload = validate_payload(AttributeReward, data)
            return AttributeReward(
                target=payload["target"],
                value=payload["value"],
                operation=payload.get("operation") or Operation.ADD,
                can_exceed_limit=payload.get("can_exceed_limit") or False,
            )
        if kind == TraitReward.kind:
            return TraitReward(validate_payload(TraitReward, data)["id"].strip())
        if kind == StartTraitPoolReward.kind:
            return StartTraitPoolReward(validate_payload(StartTraitPoolReward, data)["id"].strip())
        if kind in _MANUAL_TAGS:
            payload = validate_payload(ManualReward, data)
            return ManualReward(_MANUAL_TAGS[kind], payload["id"].strip())
        if kind == RandomManualReward.kind:
            payload = validate_payload(RandomManualReward, data)
            count = payload.get("count")
            return RandomManualReward(
                manual_kind=payload.get("manual_kind"),
                rarity=payload.get("rarity"),
                manual_type=payload.get("manual_type"),
                count=1 if count is None else count,
            )
    except ModelValidationError:
        raise
    except ValueError as exc:
        raise ModelValidationError(AttributeReward, [str(exc)]) from exc
    raise ModelValidationError(AttributeReward, [f"unknown reward type {kind!r}"])


__all__ = [
    "AttributeReward",
    "ManualReward",
    "RandomManualReward",
    "Reward",
    "StartTraitPoolReward",
    "TraitReward",
    "parse_reward",
]
