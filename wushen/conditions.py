"""Condition evaluation over progression and battle facts."""

from __future__ import annotations

import logging
from typing import Any, Union

from .formula import BATTLE_VOCABULARY, resolve
from .models.attributes import CombatantSide, OutcomeFlag
from .models.conditions import (
    AllOf,
    AnyOf,
    AttributeComparison,
    CombatantAttributeComparison,
    Condition,
    EquippedManualIs,
    EquippedManualTypeIs,
    HasTrait,
    OpponentManualIs,
    OpponentManualTypeIs,
    OutcomeIs,
    UnknownCondition,
    parse_condition,
)
from .models.panel import BattleFacts, ProgressionFacts

log = logging.getLogger(__name__)

Facts = Union[ProgressionFacts, BattleFacts]


def evaluate_condition(condition: Condition | Any | None, facts: Facts) -> bool:
    """Return whether ``condition`` holds for ``facts``.

    ``None`` holds vacuously. Wire-shaped mappings are parsed first; anything
    that cannot be understood is false.
    """

    if condition is None:
        return True
    parsed = parse_condition(condition)
    if parsed is None:
        return True
    return _evaluate(parsed, facts)


def _evaluate(condition: Condition, facts: Facts) -> bool:
    if isinstance(condition, AllOf):
        return all(_evaluate(child, facts) for child in condition.conditions)
    if isinstance(condition, AnyOf):
        return any(_evaluate(child, facts) for child in condition.conditions)
    if isinstance(condition, UnknownCondition):
        log.debug("Unknown condition never holds: %s", condition.reason)
        return False
    if isinstance(facts, BattleFacts):
        return _evaluate_battle_leaf(condition, facts)
    return _evaluate_progression_leaf(condition, facts)


def _evaluate_progression_leaf(condition: Condition, facts: ProgressionFacts) -> bool:
    if isinstance(condition, EquippedManualIs):
        return facts.equipped.get(condition.slot) == condition.manual_id
    if isinstance(condition, EquippedManualTypeIs):
        return facts.equipped_types.get(condition.slot) == condition.manual_type
    if isinstance(condition, HasTrait):
        return condition.trait_id in facts.traits
    if isinstance(condition, AttributeComparison):
        current = facts.attribute(condition.attribute.value)
        return condition.op.compare(current, condition.value)
    # Battle leaves have nothing to look at outside a battle.
    return False


def _evaluate_battle_leaf(condition: Condition, facts: BattleFacts) -> bool:
    if isinstance(condition, CombatantAttributeComparison):
        panel = facts.own if condition.side is CombatantSide.SELF else facts.opponent
        if panel is None:
            return False
        result = resolve(condition.value, facts.bindings(), BATTLE_VOCABULARY)
        if not result.ok:
            log.warning(
                "Condition formula %r failed: %s", condition.value, result.error
            )
            return False
        return condition.op.compare(panel.stat(condition.attribute.value), result.value)
    if isinstance(condition, OpponentManualIs):
        if facts.opponent is None:
            return False
        return facts.opponent.equipped(condition.slot) == condition.manual_id
    if isinstance(condition, OpponentManualTypeIs):
        if facts.opponent is None:
            return False
        return facts.opponent.equipped_type(condition.slot) == condition.manual_type
    if isinstance(condition, OutcomeIs):
        return _outcome_holds(condition.flag, facts)
    return _evaluate_progression_leaf(condition, facts.progression_view())


def _outcome_holds(flag: OutcomeFlag, facts: BattleFacts) -> bool:
    if flag is OutcomeFlag.ATTACK_BROKE_QI_DEFENSE:
        return facts.attack_broke_qi_defense is True
    if flag is OutcomeFlag.ATTACK_DID_NOT_BREAK_QI_DEFENSE:
        return facts.attack_broke_qi_defense is False
    if flag is OutcomeFlag.SUCCESSFULLY_DEFENDED_WITH_QI:
        return facts.successfully_defended_with_qi is True
    return facts.successfully_defended_with_qi is False


__all__ = ["Facts", "evaluate_condition"]
