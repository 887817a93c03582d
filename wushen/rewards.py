"""Applying story and event rewards to a character."""

from __future__ import annotations

import copy
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence

from .config import DEFAULT_CONFIG, RulesConfig
from .constants import READING_GAIN_BY_RARITY
from .effects import apply_operation, bounded_value
from .executor import EntryExecutor
from .formula import PROGRESSION_VOCABULARY, resolve
from .models._validation import ModelValidationError
from .models.attributes import ManualKind, Trigger
from .models.character import Character, Manual, ManualPools, OwnedManual
from .models.panel import CultivationPanel, ProgressionFacts
from .models.rewards import (
    AttributeReward,
    ManualReward,
    RandomManualReward,
    Reward,
    StartTraitPoolReward,
    TraitReward,
    parse_reward,
)

log = logging.getLogger(__name__)


class _Chooser(Protocol):
    def choice(self, seq: Sequence[Any]) -> Any: ...


def reading_gain(rarity: int) -> float:
    """Martial arts attainment earned by reading a manual of ``rarity``."""

    if rarity <= 0:
        return 0.0
    index = min(rarity, len(READING_GAIN_BY_RARITY)) - 1
    return READING_GAIN_BY_RARITY[index]


@dataclass(slots=True)
class RewardOutcome:
    character: Character
    start_trait_pool: List[str] = field(default_factory=list)
    granted_manuals: List[tuple[ManualKind, str]] = field(default_factory=list)
    skipped: int = 0


def _apply_attribute(
    character: Character, reward: AttributeReward, config: RulesConfig, pools: ManualPools
) -> None:
    facts = ProgressionFacts.from_character(character, pools)
    result = resolve(reward.value, facts.bindings(), PROGRESSION_VOCABULARY, config=config)
    if not result.ok:
        log.warning("Attribute reward value %r failed: %s", reward.value, result.error)
        return
    target = reward.target
    if target.is_three_dimension:
        current = float(character.three_d.get(target.value))
    else:
        current = character.martial_arts_attainment
    applied = bounded_value(
        current,
        apply_operation(current, float(result.value), reward.operation),
        three_dimension=target.is_three_dimension,
        can_exceed_limit=reward.can_exceed_limit,
        limit=config.attribute_limit,
    )
    if target.is_three_dimension:
        setattr(character.three_d, target.value, int(applied))
    else:
        character.martial_arts_attainment = applied


def _reading_gain_for(
    character: Character,
    manual: Manual,
    pools: ManualPools,
    executor: EntryExecutor | None,
    config: RulesConfig,
) -> float:
    base = reading_gain(manual.rarity)
    if executor is None:
        return base
    panel = CultivationPanel.from_character(character, martial_arts_attainment_gain=base)
    facts = ProgressionFacts.from_character(character, pools)
    applied = executor.apply(Trigger.READING_MANUAL, panel, facts, config=config)
    return applied.panel.martial_arts_attainment_gain


def _grant_manual(
    character: Character,
    manual: Manual,
    pools: ManualPools,
    executor: EntryExecutor | None,
    config: RulesConfig,
) -> bool:
    collection = character.manuals(manual.kind)
    if collection.owns(manual.id):
        return False
    collection.owned.append(OwnedManual(id=manual.id, level=0, exp=0.0))
    if collection.equipped is None:
        collection.equipped = manual.id
    gain = _reading_gain_for(character, manual, pools, executor, config)
    character.martial_arts_attainment += gain
    log.debug("Granted %s %s (+%s attainment)", manual.kind.value, manual.id, gain)
    return True


def _manual_candidates(
    character: Character, pools: ManualPools, reward: RandomManualReward
) -> list[Manual]:
    candidates: list[Manual] = []
    for kind in reward.manual_kind.expand():
        owned = character.manuals(kind)
        for manual in pools.pool(kind):
            if owned.owns(manual.id):
                continue
            if reward.rarity and manual.rarity != reward.rarity:
                continue
            if reward.manual_type and manual.manual_type != reward.manual_type:
                continue
            candidates.append(manual)
    return candidates


def apply_rewards(
    character: Character,
    rewards: Iterable[Reward | Mapping[str, Any]] | None,
    pools: ManualPools,
    *,
    start_trait_pool: Iterable[str] = (),
    rng: Optional[_Chooser] = None,
    executor: EntryExecutor | None = None,
    config: RulesConfig | None = None,
) -> RewardOutcome:
    """Fold ``rewards`` over a copy of ``character``, left to right.

    ``start_trait_pool`` is the account-wide list ``start_trait_pool``
    rewards append to; the updated list is returned on the outcome. Rewards
    naming manuals absent from ``pools`` are ignored. Rewards that do not
    parse are skipped and counted on ``skipped``.
    """

    config = config or DEFAULT_CONFIG
    chooser: _Chooser = rng if rng is not None else random
    outcome = RewardOutcome(
        character=copy.deepcopy(character),
        start_trait_pool=list(dict.fromkeys(start_trait_pool)),
    )
    current = outcome.character

    for raw in rewards or ():
        try:
            reward = parse_reward(raw)
        except ModelValidationError as exc:
            log.warning("Skipping reward %r: %s", raw, exc)
            outcome.skipped += 1
            continue
        if isinstance(reward, AttributeReward):
            _apply_attribute(current, reward, config, pools)
        elif isinstance(reward, TraitReward):
            if reward.id not in current.traits:
                current.traits.append(reward.id)
        elif isinstance(reward, StartTraitPoolReward):
            if reward.id not in outcome.start_trait_pool:
                outcome.start_trait_pool.append(reward.id)
        elif isinstance(reward, ManualReward):
            manual = pools.find(reward.manual_kind, reward.id)
            if manual is None:
                log.debug("Reward names unknown %s %s", reward.kind, reward.id)
                continue
            if _grant_manual(current, manual, pools, executor, config):
                outcome.granted_manuals.append((manual.kind, manual.id))
        elif isinstance(reward, RandomManualReward):
            for _ in range(reward.count):
                candidates = _manual_candidates(current, pools, reward)
                if not candidates:
                    log.debug("Random manual pool exhausted")
                    break
                manual = chooser.choice(candidates)
                if _grant_manual(current, manual, pools, executor, config):
                    outcome.granted_manuals.append((manual.kind, manual.id))

    return outcome


__all__ = ["RewardOutcome", "apply_rewards", "reading_gain"]
