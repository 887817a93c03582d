"""Characters, traits and the manuals they can learn."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from ._validation import (
    FieldSpec,
    ModelValidator,
    SequenceSpec,
    is_non_empty_str,
    validate_payload,
)
from .attributes import MANUAL_SLOTS, THREE_DIMENSIONS, ManualKind
from .entries import Entry, Realm


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(slots=True)
class OwnedManual:
    id: str
    level: int = 0
    exp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "level": self.level, "exp": self.exp}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OwnedManual":
        return cls(
            id=str(data["id"]),
            level=max(0, _as_int(data.get("level"))),
            exp=max(0.0, _as_float(data.get("exp"))),
        )


@dataclass(slots=True)
class ManualCollection:
    """Manuals of one family a character owns, plus the equipped one."""

    owned: List[OwnedManual] = field(default_factory=list)
    equipped: Optional[str] = None

    def owns(self, manual_id: str) -> bool:
        return any(item.id == manual_id for item in self.owned)

    def get(self, manual_id: str) -> OwnedManual | None:
        for item in self.owned:
            if item.id == manual_id:
                return item
        return None

    def equipped_entry(self) -> OwnedManual | None:
        if self.equipped is None:
            return None
        return self.get(self.equipped)

    def to_dict(self) -> dict[str, Any]:
        return {"owned": [item.to_dict() for item in self.owned], "equipped": self.equipped}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ManualCollection":
        if not data:
            return cls()
        owned: list[OwnedManual] = []
        for item in data.get("owned") or []:
            if isinstance(item, Mapping) and item.get("id"):
                owned.append(OwnedManual.from_dict(item))
        equipped = data.get("equipped")
        return cls(owned=owned, equipped=str(equipped) if equipped else None)


@dataclass(slots=True)
class ThreeDimensional:
    comprehension: int = 0
    bone_structure: int = 0
    physique: int = 0

    def get(self, name: str) -> int:
        return getattr(self, name)

    def to_dict(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in THREE_DIMENSIONS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ThreeDimensional":
        data = data or {}
        return cls(**{name: _as_int(data.get(name)) for name in THREE_DIMENSIONS})


@dataclass(slots=True)
class Character:
    id: str
    name: str
    three_d: ThreeDimensional = field(default_factory=ThreeDimensional)
    traits: List[str] = field(default_factory=list)
    internals: ManualCollection = field(default_factory=ManualCollection)
    attack_skills: ManualCollection = field(default_factory=ManualCollection)
    defense_skills: ManualCollection = field(default_factory=ManualCollection)
    action_points: int = 0
    martial_arts_attainment: float = 0.0
    max_qi: float = 0.0
    qi: float = 0.0
    cultivation_history: List[dict[str, Any]] = field(default_factory=list)

    def manuals(self, kind: ManualKind | str) -> ManualCollection:
        kind = ManualKind.from_value(kind)
        if kind is ManualKind.INTERNAL:
            return self.internals
        if kind is ManualKind.ATTACK_SKILL:
            return self.attack_skills
        if kind is ManualKind.DEFENSE_SKILL:
            return self.defense_skills
        raise ValueError("A character has no 'any' manual slot")

    def has_trait(self, trait_id: str) -> bool:
        return trait_id in self.traits

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "three_d": self.three_d.to_dict(),
            "traits": list(self.traits),
            "internals": self.internals.to_dict(),
            "attack_skills": self.attack_skills.to_dict(),
            "defense_skills": self.defense_skills.to_dict(),
            "action_points": self.action_points,
            "cultivation_history": [dict(item) for item in self.cultivation_history],
            "max_qi": self.max_qi,
            "qi": self.qi,
            "martial_arts_attainment": self.martial_arts_attainment,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Character":
        payload = validate_payload(cls, data)
        traits: list[str] = []
        for trait_id in payload.get("traits") or []:
            if trait_id and trait_id not in traits:
                traits.append(str(trait_id))
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            three_d=ThreeDimensional.from_dict(payload.get("three_d")),
            traits=traits,
            internals=ManualCollection.from_dict(payload.get("internals")),
            attack_skills=ManualCollection.from_dict(payload.get("attack_skills")),
            defense_skills=ManualCollection.from_dict(payload.get("defense_skills")),
            action_points=_as_int(payload.get("action_points")),
            martial_arts_attainment=_as_float(payload.get("martial_arts_attainment")),
            max_qi=_as_float(payload.get("max_qi")),
            qi=_as_float(payload.get("qi")),
            cultivation_history=[
                dict(item)
                for item in payload.get("cultivation_history") or []
                if isinstance(item, Mapping)
            ],
        )


class CharacterValidator(ModelValidator):
    model = Character
    fields = {
        "id": FieldSpec(is_non_empty_str, "a non-empty character id"),
        "name": FieldSpec(str, "a character name"),
        "three_d": FieldSpec(dict, "a mapping of the three dimensions", required=False),
        "traits": FieldSpec(SequenceSpec(str), "a list of trait ids", required=False),
        "internals": FieldSpec(dict, "owned internals", required=False),
        "attack_skills": FieldSpec(dict, "owned attack skills", required=False),
        "defense_skills": FieldSpec(dict, "owned defense skills", required=False),
        "action_points": FieldSpec(int, "an integer action point total", required=False),
        "martial_arts_attainment": FieldSpec(float, "a numeric attainment", required=False),
    }


Character.validator = CharacterValidator


@dataclass(slots=True)
class Trait:
    id: str
    name: str
    description: str = ""
    entries: List[Entry] = field(default_factory=list)
    in_start_pool: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "in_start_pool": self.in_start_pool,
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Trait":
        payload = validate_payload(cls, data)
        return cls(
            id=payload["id"].strip(),
            name=str(payload["name"]),
            description=str(payload.get("description") or ""),
            entries=[Entry.from_dict(item) for item in payload.get("entries") or []],
            in_start_pool=bool(payload.get("in_start_pool")),
        )


class TraitValidator(ModelValidator):
    model = Trait
    fields = {
        "id": FieldSpec(is_non_empty_str, "a non-empty trait id"),
        "name": FieldSpec(str, "a trait name"),
        "description": FieldSpec(str, "a description", required=False, allow_none=True),
        "entries": FieldSpec(SequenceSpec(dict), "a list of entries", required=False),
        "in_start_pool": FieldSpec(bool, "a boolean flag", required=False, allow_none=True),
    }


Trait.validator = TraitValidator


@dataclass(slots=True)
class Manual:
    """An internal art, attack skill or defense skill with its realm ladder."""

    id: str
    name: str
    kind: ManualKind
    rarity: int = 1
    manual_type: str = ""
    description: str = ""
    cultivation_formula: str = ""
    realms: List[Realm] = field(default_factory=list)
    log_template: Optional[str] = None

    def __post_init__(self) -> None:
        self.kind = ManualKind.from_value(self.kind)
        if self.kind is ManualKind.ANY:
            raise ValueError("A manual needs a concrete kind")

    def realm_at_level(self, level: int) -> Realm | None:
        """Return the realm unlocked at ``level`` (1-based), if any."""

        if 1 <= level <= len(self.realms):
            return self.realms[level - 1]
        return None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "rarity": self.rarity,
            "manual_type": self.manual_type,
            "cultivation_formula": self.cultivation_formula,
            "realms": [realm.to_dict() for realm in self.realms],
        }
        if self.log_template is not None:
            payload["log_template"] = self.log_template
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], kind: ManualKind | str) -> "Manual":
        payload = validate_payload(cls, data)
        return cls(
            id=payload["id"].strip(),
            name=str(payload["name"]),
            kind=kind,
            rarity=_as_int(payload.get("rarity"), 1),
            manual_type=str(payload.get("manual_type") or ""),
            description=str(payload.get("description") or ""),
            cultivation_formula=str(payload.get("cultivation_formula") or ""),
            realms=[Realm.from_dict(item) for item in payload.get("realms") or []],
            log_template=payload.get("log_template"),
        )


class ManualValidator(ModelValidator):
    model = Manual
    fields = {
        "id": FieldSpec(is_non_empty_str, "a non-empty manual id"),
        "name": FieldSpec(str, "a manual name"),
        "rarity": FieldSpec(int, "an integer rarity", required=False),
        "manual_type": FieldSpec(str, "a manual type", required=False, allow_none=True),
        "cultivation_formula": FieldSpec(str, "a formula string", required=False, allow_none=True),
        "realms": FieldSpec(SequenceSpec(dict), "a list of realms", required=False),
        "log_template": FieldSpec(str, "a log template", required=False, allow_none=True),
    }


Manual.validator = ManualValidator


@dataclass(slots=True)
class ManualPools:
    """Every manual the loaded content offers, grouped by family."""

    internals: List[Manual] = field(default_factory=list)
    attack_skills: List[Manual] = field(default_factory=list)
    defense_skills: List[Manual] = field(default_factory=list)

    def pool(self, kind: ManualKind | str) -> List[Manual]:
        kind = ManualKind.from_value(kind)
        if kind is ManualKind.INTERNAL:
            return self.internals
        if kind is ManualKind.ATTACK_SKILL:
            return self.attack_skills
        if kind is ManualKind.DEFENSE_SKILL:
            return self.defense_skills
        raise ValueError("Pick a concrete manual kind")

    def find(self, kind: ManualKind | str, manual_id: str) -> Manual | None:
        for manual in self.pool(kind):
            if manual.id == manual_id:
                return manual
        return None

    def iter_all(self) -> Iterable[Manual]:
        for kind in MANUAL_SLOTS:
            yield from self.pool(kind)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManualPools":
        return cls(
            internals=[
                Manual.from_dict(item, ManualKind.INTERNAL) for item in data.get("internals") or []
            ],
            attack_skills=[
                Manual.from_dict(item, ManualKind.ATTACK_SKILL)
                for item in data.get("attack_skills") or []
            ],
            defense_skills=[
                Manual.from_dict(item, ManualKind.DEFENSE_SKILL)
                for item in data.get("defense_skills") or []
            ],
        )


__all__ = [
    "Character",
    "Manual",
    "ManualCollection",
    "ManualPools",
    "OwnedManual",
    "ThreeDimensional",
    "Trait",
]
