"""Enumerations shared by conditions, effects and rewards."""

from __future__ import annotations

import math
from enum import Enum
from numbers import Real
from typing import Union

FormulaValue = Union[float, int, str]


def coerce_formula_value(value: object) -> FormulaValue:
    """Normalise a wire formula value to ``float`` or a stripped ``str``."""

    if isinstance(value, bool):
        raise ValueError("Formula value cannot be a boolean")
    if isinstance(value, Real):
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"Formula value must be finite, received {value!r}")
        return number
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Formula expression cannot be empty")
        return text
    raise ValueError(f"Unsupported formula value: {value!r}")


class RuleSchema(str, Enum):
    """Fact schema a trigger is evaluated against."""

    PROGRESSION = "progression"
    BATTLE = "battle"


class Trigger(str, Enum):
    """Game moments that make an entry eligible to fire."""

    GAME_START = "game_start"
    TRAIT_ACQUIRED = "trait_acquired"
    READING_MANUAL = "reading_manual"
    CULTIVATING_INTERNAL = "cultivating_internal"
    CULTIVATING_ATTACK = "cultivating_attack"
    CULTIVATING_DEFENSE = "cultivating_defense"
    INTERNAL_LEVEL_UP = "internal_level_up"
    ATTACK_LEVEL_UP = "attack_level_up"
    DEFENSE_LEVEL_UP = "defense_level_up"
    SWITCHING_CULTIVATION = "switching_cultivation"
    BATTLE_START = "battle_start"
    BEFORE_ATTACK = "before_attack"
    AFTER_ATTACK = "after_attack"
    BEFORE_DEFENSE = "before_defense"
    AFTER_DEFENSE = "after_defense"
    ROUND_END = "round_end"

    @property
    def schema(self) -> RuleSchema:
        if self in _BATTLE_TRIGGERS:
            return RuleSchema.BATTLE
        return RuleSchema.PROGRESSION

    @property
    def is_battle(self) -> bool:
        return self.schema is RuleSchema.BATTLE

    @classmethod
    def from_value(cls, value: "Trigger | str") -> "Trigger":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown trigger: {value!r}") from exc


_BATTLE_TRIGGERS = frozenset(
    {
        Trigger.BATTLE_START,
        Trigger.BEFORE_ATTACK,
        Trigger.AFTER_ATTACK,
        Trigger.BEFORE_DEFENSE,
        Trigger.AFTER_DEFENSE,
        Trigger.ROUND_END,
    }
)


class ComparisonOp(str, Enum):
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    EQUAL = "equal"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"

    def compare(self, left: float, right: float) -> bool:
        # Exact comparison; the three dimensions are integers.
        if self is ComparisonOp.LESS_THAN:
            return left < right
        if self is ComparisonOp.LESS_THAN_OR_EQUAL:
            return left <= right
        if self is ComparisonOp.EQUAL:
            return left == right
        if self is ComparisonOp.GREATER_THAN:
            return left > right
        return left >= right

    @property
    def symbol(self) -> str:
        return _OP_SYMBOLS[self]

    @classmethod
    def from_value(cls, value: "ComparisonOp | str") -> "ComparisonOp":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member, symbol in _OP_SYMBOLS.items():
            if normalized == symbol:
                return member
        if normalized == "==":
            return cls.EQUAL
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown comparison operator: {value!r}") from exc


_OP_SYMBOLS = {
    ComparisonOp.LESS_THAN: "<",
    ComparisonOp.LESS_THAN_OR_EQUAL: "<=",
    ComparisonOp.EQUAL: "=",
    ComparisonOp.GREATER_THAN: ">",
    ComparisonOp.GREATER_THAN_OR_EQUAL: ">=",
}


class Operation(str, Enum):
    """Arithmetic applied by effects and attribute rewards."""

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"
    MULTIPLY = "multiply"

    def apply(self, current: float, value: float) -> float:
        if self is Operation.ADD:
            return current + value
        if self is Operation.SUBTRACT:
            return current - value
        if self is Operation.SET:
            return value
        return current * value

    @classmethod
    def from_value(cls, value: "Operation | str") -> "Operation":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown operation: {value!r}") from exc


class PanelTarget(str, Enum):
    OWN = "own"
    OPPONENT = "opponent"

    @classmethod
    def from_value(cls, value: "PanelTarget | str | None") -> "PanelTarget":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.OWN
        normalized = str(value).strip().lower()
        if normalized == "self":
            return cls.OWN
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown panel target: {value!r}") from exc


THREE_DIMENSIONS: tuple[str, ...] = ("comprehension", "bone_structure", "physique")


class AttributeTarget(str, Enum):
    """Attributes an effect may modify."""

    COMPREHENSION = "comprehension"
    BONE_STRUCTURE = "bone_structure"
    PHYSIQUE = "physique"
    MAX_HP = "max_hp"
    HP = "hp"
    MAX_QI = "max_qi"
    QI = "qi"
    BASE_ATTACK = "base_attack"
    BASE_DEFENSE = "base_defense"
    MAX_QI_OUTPUT_RATE = "max_qi_output_rate"
    QI_OUTPUT_RATE = "qi_output_rate"
    ATTACK_SPEED = "attack_speed"
    QI_RECOVERY_RATE = "qi_recovery_rate"
    CHARGE_TIME = "charge_time"
    DAMAGE_BONUS = "damage_bonus"
    DAMAGE_REDUCTION = "damage_reduction"
    MAX_DAMAGE_REDUCTION = "max_damage_reduction"
    MARTIAL_ARTS_ATTAINMENT_GAIN = "martial_arts_attainment_gain"
    CULTIVATION_EXP_GAIN = "cultivation_exp_gain"
    QI_GAIN = "qi_gain"
    QI_LOSS_RATE = "qi_loss_rate"

    @property
    def is_three_dimension(self) -> bool:
        return self.value in THREE_DIMENSIONS

    @classmethod
    def from_value(cls, value: "AttributeTarget | str") -> "AttributeTarget":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown attribute target: {value!r}") from exc


class ProgressionAttribute(str, Enum):
    """Attributes compared by progression conditions and attribute rewards."""

    COMPREHENSION = "comprehension"
    BONE_STRUCTURE = "bone_structure"
    PHYSIQUE = "physique"
    MARTIAL_ARTS_ATTAINMENT = "martial_arts_attainment"

    @property
    def is_three_dimension(self) -> bool:
        return self.value in THREE_DIMENSIONS

    @classmethod
    def from_value(cls, value: "ProgressionAttribute | str") -> "ProgressionAttribute":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown attribute: {value!r}") from exc


class BattleAttribute(str, Enum):
    """Combatant attributes compared by battle conditions."""

    HP = "hp"
    QI = "qi"
    COMPREHENSION = "comprehension"
    BONE_STRUCTURE = "bone_structure"
    PHYSIQUE = "physique"
    MARTIAL_ARTS_ATTAINMENT = "martial_arts_attainment"
    QI_QUALITY = "qi_quality"

    @classmethod
    def from_value(cls, value: "BattleAttribute | str") -> "BattleAttribute":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown battle attribute: {value!r}") from exc


class ManualKind(str, Enum):
    """Manual families; ``ANY`` is only meaningful for random draws."""

    INTERNAL = "internal"
    ATTACK_SKILL = "attack_skill"
    DEFENSE_SKILL = "defense_skill"
    ANY = "any"

    def expand(self) -> tuple["ManualKind", ...]:
        if self is ManualKind.ANY:
            return MANUAL_SLOTS
        return (self,)

    @classmethod
    def from_value(
        cls, value: "ManualKind | str | None", *, default: "ManualKind | None" = None
    ) -> "ManualKind":
        if isinstance(value, cls):
            return value
        if value is None:
            if default is not None:
                return default
            raise ValueError("Manual kind cannot be None")
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        if default is not None:
            return default
        raise ValueError(f"Unknown manual kind: {value}")


MANUAL_SLOTS: tuple[ManualKind, ...] = (
    ManualKind.INTERNAL,
    ManualKind.ATTACK_SKILL,
    ManualKind.DEFENSE_SKILL,
)


class CombatantSide(str, Enum):
    SELF = "self"
    OPPONENT = "opponent"


class OutcomeFlag(str, Enum):
    """Attack resolution outcomes usable as battle conditions."""

    ATTACK_BROKE_QI_DEFENSE = "attack_broke_qi_defense"
    ATTACK_DID_NOT_BREAK_QI_DEFENSE = "attack_did_not_break_qi_defense"
    SUCCESSFULLY_DEFENDED_WITH_QI = "successfully_defended_with_qi"
    FAILED_TO_DEFEND_WITH_QI = "failed_to_defend_with_qi"


__all__ = [
    "AttributeTarget",
    "BattleAttribute",
    "CombatantSide",
    "ComparisonOp",
    "FormulaValue",
    "MANUAL_SLOTS",
    "ManualKind",
    "Operation",
    "OutcomeFlag",
    "PanelTarget",
    "ProgressionAttribute",
    "RuleSchema",
    "THREE_DIMENSIONS",
    "Trigger",
    "coerce_formula_value",
]
