"""Read-only fact views and the numeric panels effects act upon."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from ..constants import ATTACK_VARIABLES, PANEL_ALIASES, PANEL_VARIABLES
from .attributes import MANUAL_SLOTS, THREE_DIMENSIONS, ManualKind
from .character import Character, ManualPools


@dataclass(slots=True)
class BattlePanel:
    """Resolved battle stats of one combatant."""

    name: str = ""
    comprehension: int = 0
    bone_structure: int = 0
    physique: int = 0
    martial_arts_attainment: float = 0.0
    base_attack: float = 0.0
    base_defense: float = 0.0
    max_hp: float = 0.0
    hp: float = 0.0
    max_qi: float = 0.0
    qi: float = 0.0
    max_qi_output_rate: float = 0.0
    qi_output_rate: float = 0.0
    damage_bonus: float = 0.0
    damage_reduction: float = 0.0
    max_damage_reduction: float = 0.0
    power: float = 0.0
    defense_power: float = 0.0
    qi_quality: float = 0.0
    attack_speed: float = 0.0
    qi_recovery_rate: float = 0.0
    charge_time: float = 0.0
    traits: frozenset[str] = frozenset()
    internal_id: Optional[str] = None
    internal_type: Optional[str] = None
    attack_skill_id: Optional[str] = None
    attack_skill_type: Optional[str] = None
    defense_skill_id: Optional[str] = None
    defense_skill_type: Optional[str] = None

    def __post_init__(self) -> None:
        self.traits = frozenset(self.traits)

    def stat(self, name: str) -> float:
        return float(getattr(self, PANEL_ALIASES.get(name, name)))

    def has_stat(self, name: str) -> bool:
        return name in _PANEL_STATS

    def equipped(self, kind: ManualKind) -> str | None:
        return getattr(self, f"{kind.value}_id")

    def equipped_type(self, kind: ManualKind) -> str | None:
        return getattr(self, f"{kind.value}_type")

    def bindings(self, prefix: str) -> dict[str, float]:
        """Expose every panel stat as ``{prefix}_{name}`` formula variables."""

        return {f"{prefix}_{name}": self.stat(name) for name in PANEL_VARIABLES}

    def progression_view(self) -> "ProgressionFacts":
        return ProgressionFacts(
            comprehension=self.comprehension,
            bone_structure=self.bone_structure,
            physique=self.physique,
            martial_arts_attainment=self.martial_arts_attainment,
            traits=self.traits,
            equipped={kind: self.equipped(kind) for kind in MANUAL_SLOTS},
            equipped_types={kind: self.equipped_type(kind) for kind in MANUAL_SLOTS},
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BattlePanel":
        known = {item.name for item in fields(cls)}
        payload = {key: value for key, value in data.items() if key in known}
        payload["traits"] = frozenset(payload.get("traits") or ())
        return cls(**payload)


_PANEL_STATS = frozenset(
    item.name
    for item in fields(BattlePanel)
    if item.name != "name" and item.name != "traits" and not item.name.endswith(("_id", "_type"))
)


@dataclass(frozen=True, slots=True)
class AttackResult:
    """Outcome of one resolved attack, as reported by the battle engine."""

    total_output: float = 0.0
    total_defense: float = 0.0
    reduced_output: float = 0.0
    hp_damage: float = 0.0
    attacker_qi_consumed: float = 0.0
    defender_qi_consumed: float = 0.0
    broke_qi_defense: bool = False

    def bindings(self) -> dict[str, float]:
        values = (
            self.total_output,
            self.total_defense,
            self.reduced_output,
            self.hp_damage,
            self.attacker_qi_consumed,
            self.defender_qi_consumed,
            1.0 if self.broke_qi_defense else 0.0,
        )
        return {name: float(value) for name, value in zip(ATTACK_VARIABLES, values)}


@dataclass(slots=True)
class CultivationPanel:
    """Values progression-time entries adjust before the game applies them."""

    comprehension: int = 0
    bone_structure: int = 0
    physique: int = 0
    martial_arts_attainment_gain: float = 0.0
    cultivation_exp_gain: float = 0.0
    qi_gain: float = 0.0
    qi_loss_rate: float = 0.0

    def stat(self, name: str) -> float:
        return float(getattr(self, name))

    def has_stat(self, name: str) -> bool:
        return name in _CULTIVATION_STATS

    @classmethod
    def from_character(cls, character: Character, **gains: float) -> "CultivationPanel":
        return cls(
            comprehension=character.three_d.comprehension,
            bone_structure=character.three_d.bone_structure,
            physique=character.three_d.physique,
            **gains,
        )


_CULTIVATION_STATS = frozenset(item.name for item in fields(CultivationPanel))


@dataclass(frozen=True, slots=True)
class ProgressionFacts:
    """What progression-time conditions and formulas may look at."""

    comprehension: int = 0
    bone_structure: int = 0
    physique: int = 0
    martial_arts_attainment: float = 0.0
    traits: frozenset[str] = frozenset()
    equipped: Mapping[ManualKind, Optional[str]] = field(default_factory=dict)
    equipped_types: Mapping[ManualKind, Optional[str]] = field(default_factory=dict)

    def attribute(self, name: str) -> float:
        return float(getattr(self, name))

    def bindings(self) -> dict[str, float]:
        x, y, z = (float(getattr(self, name)) for name in THREE_DIMENSIONS)
        a = float(self.martial_arts_attainment)
        values = {"x": x, "y": y, "z": z, "a": a, "A": a}
        values.update(
            {
                "self_x": x,
                "self_y": y,
                "self_z": z,
                "self_a": a,
                "self_comprehension": x,
                "self_bone_structure": y,
                "self_physique": z,
                "self_martial_arts_attainment": a,
            }
        )
        return values

    @classmethod
    def from_character(
        cls, character: Character, pools: ManualPools | None = None
    ) -> "ProgressionFacts":
        equipped: dict[ManualKind, Optional[str]] = {}
        equipped_types: dict[ManualKind, Optional[str]] = {}
        for kind in MANUAL_SLOTS:
            manual_id = character.manuals(kind).equipped
            equipped[kind] = manual_id
            manual = pools.find(kind, manual_id) if pools and manual_id else None
            equipped_types[kind] = manual.manual_type if manual else None
        return cls(
            comprehension=character.three_d.comprehension,
            bone_structure=character.three_d.bone_structure,
            physique=character.three_d.physique,
            martial_arts_attainment=character.martial_arts_attainment,
            traits=frozenset(character.traits),
            equipped=equipped,
            equipped_types=equipped_types,
        )


@dataclass(frozen=True, slots=True)
class BattleFacts:
    """What battle-time conditions and formulas may look at.

    ``attack_broke_qi_defense`` and ``successfully_defended_with_qi`` stay
    ``None`` outside the attack/defense steps, in which case neither the
    positive nor the negative outcome condition holds.
    """

    own: BattlePanel
    opponent: Optional[BattlePanel] = None
    attack_result: Optional[AttackResult] = None
    attack_broke_qi_defense: Optional[bool] = None
    successfully_defended_with_qi: Optional[bool] = None

    def panel(self, side: str) -> BattlePanel | None:
        return self.own if side == "self" else self.opponent

    def bindings(self) -> dict[str, float]:
        values = self.own.bindings("self")
        if self.opponent is not None:
            values.update(self.opponent.bindings("opponent"))
        if self.attack_result is not None:
            values.update(self.attack_result.bindings())
        return values

    def progression_view(self) -> ProgressionFacts:
        return self.own.progression_view()


__all__ = [
    "AttackResult",
    "BattleFacts",
    "BattlePanel",
    "CultivationPanel",
    "ProgressionFacts",
]
