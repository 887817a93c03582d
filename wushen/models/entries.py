"""Rule entries and the realm tiers that carry them."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

from ._validation import (
    FieldSpec,
    ModelValidationError,
    ModelValidator,
    SequenceSpec,
    is_non_empty_str,
    is_non_negative_int,
    validate_payload,
)
from .attributes import AttributeTarget, RuleSchema, Trigger
from .conditions import (
    Condition,
    condition_schemas,
    condition_to_dict,
    parse_condition,
)
from .effects import Effect, ExtraAttack, parse_effect


class EntryValidationError(ValueError):
    """Raised when an entry's effects are not allowed for its trigger."""

    def __init__(self, trigger: Trigger, problems: Iterable[str]) -> None:
        self.trigger = trigger
        self.problems = list(problems)
        super().__init__(f"entry on {trigger.value}: " + "; ".join(self.problems))


_THREE_D = (
    AttributeTarget.COMPREHENSION,
    AttributeTarget.BONE_STRUCTURE,
    AttributeTarget.PHYSIQUE,
)
_AFTER_ACTION_TARGETS = frozenset(
    {
        AttributeTarget.HP,
        AttributeTarget.QI,
        AttributeTarget.BASE_ATTACK,
        AttributeTarget.BASE_DEFENSE,
        AttributeTarget.ATTACK_SPEED,
        AttributeTarget.CHARGE_TIME,
        AttributeTarget.QI_RECOVERY_RATE,
        AttributeTarget.DAMAGE_BONUS,
        AttributeTarget.DAMAGE_REDUCTION,
        AttributeTarget.MAX_DAMAGE_REDUCTION,
    }
)
_BEFORE_ACTION_TARGETS = frozenset(
    {
        AttributeTarget.HP,
        AttributeTarget.QI,
        AttributeTarget.BASE_ATTACK,
        AttributeTarget.BASE_DEFENSE,
        AttributeTarget.DAMAGE_BONUS,
        AttributeTarget.DAMAGE_REDUCTION,
    }
)
_CULTIVATING_TARGETS = frozenset({AttributeTarget.CULTIVATION_EXP_GAIN})

ALLOWED_TARGETS: Mapping[Trigger, frozenset[AttributeTarget]] = MappingProxyType(
    {
        Trigger.GAME_START: frozenset(_THREE_D),
        Trigger.TRAIT_ACQUIRED: frozenset(_THREE_D),
        Trigger.READING_MANUAL: frozenset({AttributeTarget.MARTIAL_ARTS_ATTAINMENT_GAIN}),
        Trigger.CULTIVATING_INTERNAL: _CULTIVATING_TARGETS,
        Trigger.CULTIVATING_ATTACK: _CULTIVATING_TARGETS,
        Trigger.CULTIVATING_DEFENSE: _CULTIVATING_TARGETS,
        Trigger.INTERNAL_LEVEL_UP: frozenset(
            {AttributeTarget.QI_GAIN, AttributeTarget.MARTIAL_ARTS_ATTAINMENT_GAIN, *_THREE_D}
        ),
        Trigger.ATTACK_LEVEL_UP: frozenset(
            {AttributeTarget.MARTIAL_ARTS_ATTAINMENT_GAIN, *_THREE_D}
        ),
        Trigger.DEFENSE_LEVEL_UP: frozenset(
            {AttributeTarget.MARTIAL_ARTS_ATTAINMENT_GAIN, *_THREE_D}
        ),
        Trigger.SWITCHING_CULTIVATION: frozenset({AttributeTarget.QI_LOSS_RATE}),
        Trigger.BATTLE_START: frozenset(
            {
                AttributeTarget.MAX_HP,
                AttributeTarget.HP,
                AttributeTarget.MAX_QI,
                AttributeTarget.QI,
                AttributeTarget.BASE_ATTACK,
                AttributeTarget.BASE_DEFENSE,
                AttributeTarget.MAX_QI_OUTPUT_RATE,
                AttributeTarget.QI_OUTPUT_RATE,
                AttributeTarget.ATTACK_SPEED,
                AttributeTarget.QI_RECOVERY_RATE,
                AttributeTarget.CHARGE_TIME,
                AttributeTarget.DAMAGE_BONUS,
                AttributeTarget.DAMAGE_REDUCTION,
                AttributeTarget.MAX_DAMAGE_REDUCTION,
            }
        ),
        Trigger.BEFORE_ATTACK: _BEFORE_ACTION_TARGETS,
        Trigger.BEFORE_DEFENSE: _BEFORE_ACTION_TARGETS,
        Trigger.AFTER_ATTACK: _AFTER_ACTION_TARGETS,
        Trigger.AFTER_DEFENSE: _AFTER_ACTION_TARGETS,
        Trigger.ROUND_END: _AFTER_ACTION_TARGETS,
    }
)

EXTRA_ATTACK_TRIGGERS = frozenset({Trigger.AFTER_ATTACK, Trigger.AFTER_DEFENSE})


@dataclass(slots=True)
class Entry:
    """One authored rule: trigger, optional condition, effects, trigger cap."""

    trigger: Trigger
    effects: List[Effect] = field(default_factory=list)
    condition: Optional[Condition] = None
    max_triggers: Optional[int] = None
    entry_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.trigger = Trigger.from_value(self.trigger)
        self.effects = [parse_effect(effect) for effect in self.effects]
        self.condition = parse_condition(self.condition)
        if self.max_triggers is not None:
            self.max_triggers = max(0, int(self.max_triggers))
        if self.entry_id is not None:
            self.entry_id = str(self.entry_id).strip() or None

    def validate(self) -> None:
        """Check the effects against what the trigger allows.

        Raises :class:`EntryValidationError` listing every problem found.
        """

        allowed = ALLOWED_TARGETS.get(self.trigger, frozenset())
        problems: list[str] = []
        for index, effect in enumerate(self.effects, start=1):
            if isinstance(effect, ExtraAttack):
                if self.trigger not in EXTRA_ATTACK_TRIGGERS:
                    problems.append(f"effect #{index}: extra_attack is not allowed here")
                continue
            if effect.target not in allowed:
                problems.append(
                    f"effect #{index}: target {effect.target.value} is not allowed here"
                )
        if not self.trigger.is_battle and RuleSchema.BATTLE in condition_schemas(self.condition):
            problems.append("condition uses battle facts on a progression trigger")
        if problems:
            raise EntryValidationError(self.trigger, problems)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "trigger": self.trigger.value,
            "condition": condition_to_dict(self.condition),
            "effects": [effect.to_dict() for effect in self.effects],
            "max_triggers": self.max_triggers,
        }
        if self.entry_id:
            payload["entry_id"] = self.entry_id
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Entry":
        payload = validate_payload(cls, data)
        try:
            return cls(
                trigger=payload["trigger"],
                effects=list(payload.get("effects") or []),
                condition=payload.get("condition"),
                max_triggers=payload.get("max_triggers"),
                entry_id=payload.get("entry_id"),
            )
        except ModelValidationError:
            raise
        except ValueError as exc:
            raise ModelValidationError(cls, [str(exc)]) from exc


class EntryValidator(ModelValidator):
    model = Entry
    fields = {
        "trigger": FieldSpec(is_non_empty_str, "a trigger name"),
        "effects": FieldSpec(SequenceSpec(dict), "a list of effects"),
        "condition": FieldSpec((dict, list, str), "a condition", required=False, allow_none=True),
        "max_triggers": FieldSpec(
            is_non_negative_int, "a non-negative trigger cap", required=False, allow_none=True
        ),
        "entry_id": FieldSpec(str, "an entry id", required=False, allow_none=True),
    }


Entry.validator = EntryValidator


_REALM_CORE_FIELDS = ("level", "exp_required", "entries")


@dataclass(slots=True)
class Realm:
    """One tier of a manual: its own entries plus tier-specific stats."""

    level: int
    entries: List[Entry] = field(default_factory=list)
    exp_required: float = 0.0
    stats: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        try:
            self.level = max(0, int(self.level))
        except (TypeError, ValueError):
            self.level = 0
        try:
            self.exp_required = max(0.0, float(self.exp_required))
        except (TypeError, ValueError):
            self.exp_required = 0.0
        self.entries = [
            entry if isinstance(entry, Entry) else Entry.from_dict(entry)
            for entry in self.entries
        ]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"level": self.level, "exp_required": self.exp_required}
        payload.update(self.stats)
        payload["entries"] = [entry.to_dict() for entry in self.entries]
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Realm":
        payload = validate_payload(cls, data)
        stats: dict[str, float] = {}
        for key, value in payload.items():
            if key in _REALM_CORE_FIELDS:
                continue
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                stats[str(key)] = float(value)
        return cls(
            level=payload["level"],
            entries=list(payload.get("entries") or []),
            exp_required=payload.get("exp_required", 0.0),
            stats=stats,
        )


class RealmValidator(ModelValidator):
    model = Realm
    fields = {
        "level": FieldSpec(int, "an integer realm level"),
        "exp_required": FieldSpec(float, "a numeric exp threshold", required=False),
        "entries": FieldSpec(SequenceSpec(dict), "a list of entries", required=False),
    }


Realm.validator = RealmValidator


__all__ = [
    "ALLOWED_TARGETS",
    "EXTRA_ATTACK_TRIGGERS",
    "Entry",
    "EntryValidationError",
    "Realm",
]
