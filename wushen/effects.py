"""Applying entry effects to panels."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, TypeVar, Union

from .conditions import Facts
from .config import DEFAULT_CONFIG, RulesConfig
from .formula import BATTLE_VOCABULARY, PROGRESSION_VOCABULARY, Vocabulary, resolve
from .models._validation import ModelValidationError
from .models.attributes import AttributeTarget, Operation, PanelTarget
from .models.effects import AttributeEffect, Effect, ExtraAttack, parse_effect
from .models.panel import BattleFacts, BattlePanel, CultivationPanel

log = logging.getLogger(__name__)

Panel = Union[BattlePanel, CultivationPanel]
PanelT = TypeVar("PanelT", BattlePanel, CultivationPanel)


def apply_operation(current: float, value: float, operation: Operation | str) -> float:
    return Operation.from_value(operation).apply(current, value)


def bounded_value(
    current: float,
    proposed: float,
    *,
    three_dimension: bool,
    can_exceed_limit: bool,
    limit: float | None = None,
) -> float:
    """Apply the ceiling and floor rules to a freshly computed value.

    The three dimensions are capped at ``limit`` unless the change may exceed
    it, and a value already at the cap is left alone when the change would
    push it higher. Everything is floored at zero; the three dimensions are
    whole numbers.
    """

    if limit is None:
        limit = DEFAULT_CONFIG.attribute_limit
    if not math.isfinite(proposed):
        return current
    capped = three_dimension and not can_exceed_limit
    if capped and current >= limit and proposed > limit:
        return current
    applied = max(0.0, proposed)
    if capped:
        applied = min(applied, limit)
    if three_dimension:
        return math.floor(applied)
    return applied


@dataclass(frozen=True, slots=True)
class TemporaryChange:
    """A change the battle engine must undo when the scope ends."""

    panel: PanelTarget
    target: AttributeTarget
    before: float
    after: float


@dataclass(frozen=True, slots=True)
class ExtraAttackRequest:
    output: float
    effect: ExtraAttack


@dataclass(slots=True)
class AppliedEffects:
    panel: Panel
    opponent: Optional[BattlePanel] = None
    extra_attacks: List[ExtraAttackRequest] = field(default_factory=list)
    temporary_changes: List[TemporaryChange] = field(default_factory=list)
    skipped: int = 0


def _vocabulary_for(facts: Facts) -> Vocabulary:
    if isinstance(facts, BattleFacts):
        return BATTLE_VOCABULARY
    return PROGRESSION_VOCABULARY


def _apply_attribute(
    panel: PanelT,
    effect: AttributeEffect,
    value: float,
    limit: float,
) -> tuple[PanelT, float, float]:
    name = effect.target.value
    current = panel.stat(name)
    updated = bounded_value(
        current,
        apply_operation(current, value, effect.operation),
        three_dimension=effect.target.is_three_dimension,
        can_exceed_limit=effect.can_exceed_limit,
        limit=limit,
    )
    if effect.target.is_three_dimension:
        updated = int(updated)
    if updated == current:
        return panel, current, current
    return replace(panel, **{name: updated}), current, updated


def apply_effects(
    panel: Panel,
    effects: Iterable[Effect | dict],
    facts: Facts,
    opponent: BattlePanel | None = None,
    *,
    config: RulesConfig | None = None,
) -> AppliedEffects:
    """Apply ``effects`` in order and return the resulting panels.

    Formula values are resolved against the ``facts`` snapshot. Neither input
    panel is modified. Effects whose formula cannot be resolved, whose target
    the panel does not carry, that aim at a missing opponent or that do not
    parse are skipped.
    """

    config = config or DEFAULT_CONFIG
    vocabulary = _vocabulary_for(facts)
    bindings = facts.bindings()
    outcome = AppliedEffects(panel=panel, opponent=opponent)

    for raw in effects:
        try:
            effect = parse_effect(raw)
        except ModelValidationError as exc:
            log.warning("Skipping effect %r: %s", raw, exc)
            outcome.skipped += 1
            continue
        if isinstance(effect, ExtraAttack):
            result = resolve(effect.output, bindings, vocabulary, config=config)
            if result.ok:
                output = float(result.value)
            else:
                log.warning(
                    "Extra attack output %r failed (%s); using %s",
                    effect.output,
                    result.error,
                    config.formula_fallback,
                )
                output = config.formula_fallback
            outcome.extra_attacks.append(ExtraAttackRequest(output, effect))
            continue

        side = effect.target_panel
        target_panel = outcome.opponent if side is PanelTarget.OPPONENT else outcome.panel
        if target_panel is None:
            log.debug("Skipping %s on missing opponent", effect.target.value)
            outcome.skipped += 1
            continue
        if not target_panel.has_stat(effect.target.value):
            log.debug("Skipping %s: not on %s", effect.target.value, type(target_panel).__name__)
            outcome.skipped += 1
            continue
        result = resolve(effect.value, bindings, vocabulary, config=config)
        if not result.ok:
            log.warning("Effect value %r failed: %s", effect.value, result.error)
            outcome.skipped += 1
            continue

        updated, before, after = _apply_attribute(
            target_panel, effect, float(result.value), config.attribute_limit
        )
        if side is PanelTarget.OPPONENT:
            outcome.opponent = updated
        else:
            outcome.panel = updated
        if effect.is_temporary:
            outcome.temporary_changes.append(TemporaryChange(side, effect.target, before, after))

    return outcome


__all__ = [
    "AppliedEffects",
    "ExtraAttackRequest",
    "Panel",
    "TemporaryChange",
    "apply_effects",
    "apply_operation",
    "bounded_value",
]
