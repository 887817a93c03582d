"""Shared constants used by the rule engine and its models."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

# Martial arts attainment granted the first time a manual is read, indexed by
# rarity - 1. Rarities above the table reuse its last value.
READING_GAIN_BY_RARITY: tuple[float, ...] = (5.0, 10.0, 20.0, 35.0, 50.0)

# Ceiling for comprehension, bone structure and physique unless an effect is
# allowed to exceed it.
THREE_DIMENSION_LIMIT = 100

DEFAULT_MAX_FORMULA_LENGTH = 256
DEFAULT_MAX_FORMULA_DEPTH = 32

# Value bound to every variable when previewing a formula in the editor.
PREVIEW_BINDING_VALUE = 10.0

# Panel stats exposed to battle formulas, once per combatant prefix.
PANEL_VARIABLES: tuple[str, ...] = (
    "x",
    "y",
    "z",
    "a",
    "comprehension",
    "bone_structure",
    "physique",
    "martial_arts_attainment",
    "max_hp",
    "hp",
    "max_qi",
    "qi",
    "base_attack",
    "base_defense",
    "max_qi_output_rate",
    "qi_output_rate",
    "damage_bonus",
    "damage_reduction",
    "max_damage_reduction",
    "power",
    "defense_power",
    "qi_quality",
    "attack_speed",
    "qi_recovery_rate",
    "charge_time",
)

COMBATANT_PREFIXES: tuple[str, ...] = ("self", "opponent")

ATTACK_VARIABLES: tuple[str, ...] = (
    "attack_total_output",
    "attack_total_defense",
    "attack_reduced_output",
    "attack_hp_damage",
    "attack_attacker_qi_consumed",
    "attack_defender_qi_consumed",
    "attack_broke_qi_defense",
)

# Manual experience formulas see the bare three dimensions and attainment.
# ``A`` is an alias of ``a`` kept for older content.
CULTIVATION_VARIABLES: tuple[str, ...] = ("x", "y", "z", "a", "A")

# The short aliases map onto these panel fields.
PANEL_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "x": "comprehension",
        "y": "bone_structure",
        "z": "physique",
        "a": "martial_arts_attainment",
    }
)

_STAT_LABELS = {
    "x": "Comprehension",
    "y": "Bone Structure",
    "z": "Physique",
    "a": "Martial Arts Attainment",
    "comprehension": "Comprehension",
    "bone_structure": "Bone Structure",
    "physique": "Physique",
    "martial_arts_attainment": "Martial Arts Attainment",
    "max_hp": "Max HP",
    "hp": "HP",
    "max_qi": "Max Qi",
    "qi": "Qi",
    "base_attack": "Base Attack",
    "base_defense": "Base Defense",
    "max_qi_output_rate": "Max Qi Output Rate",
    "qi_output_rate": "Qi Output Rate",
    "damage_bonus": "Damage Bonus",
    "damage_reduction": "Damage Reduction",
    "max_damage_reduction": "Max Damage Reduction",
    "power": "Power",
    "defense_power": "Defense Power",
    "qi_quality": "Qi Quality",
    "attack_speed": "Attack Speed",
    "qi_recovery_rate": "Qi Recovery Rate",
    "charge_time": "Charge Time",
}

_PREFIX_LABELS = {"self": "Own", "opponent": "Opponent"}

_BASE_VARIABLE_LABELS: dict[str, str] = {
    f"{prefix}_{name}": f"{_PREFIX_LABELS[prefix]} {label}"
    for prefix in COMBATANT_PREFIXES
    for name, label in _STAT_LABELS.items()
}
_BASE_VARIABLE_LABELS.update(
    {
        "attack_total_output": "Attack Total Output",
        "attack_total_defense": "Attack Total Defense",
        "attack_reduced_output": "Attack Reduced Output",
        "attack_hp_damage": "Attack HP Damage",
        "attack_attacker_qi_consumed": "Attacker Qi Consumed",
        "attack_defender_qi_consumed": "Defender Qi Consumed",
        "attack_broke_qi_defense": "Broke Qi Defense (1/0)",
        "x": "Comprehension",
        "y": "Bone Structure",
        "z": "Physique",
        "a": "Martial Arts Attainment",
        "A": "Martial Arts Attainment",
    }
)

# Human readable names substituted by ``annotate``.
VARIABLE_LABELS: Mapping[str, str] = MappingProxyType(_BASE_VARIABLE_LABELS)


__all__ = [
    "ATTACK_VARIABLES",
    "COMBATANT_PREFIXES",
    "CULTIVATION_VARIABLES",
    "DEFAULT_MAX_FORMULA_DEPTH",
    "DEFAULT_MAX_FORMULA_LENGTH",
    "PANEL_ALIASES",
    "PANEL_VARIABLES",
    "PREVIEW_BINDING_VALUE",
    "READING_GAIN_BY_RARITY",
    "THREE_DIMENSION_LIMIT",
    "VARIABLE_LABELS",
]
