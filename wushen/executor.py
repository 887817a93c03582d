"""Registry that fires entries for a trigger and tracks their trigger caps."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from .conditions import Facts, evaluate_condition
from .config import RulesConfig
from .effects import AppliedEffects, Panel, apply_effects
from .models.attributes import MANUAL_SLOTS, Trigger
from .models.character import Character, ManualPools, Trait
from .models.effects import Effect
from .models.entries import Entry
from .models.panel import BattlePanel

log = logging.getLogger(__name__)

UNKNOWN_SOURCE = "unknown"


@dataclass(slots=True)
class _Registration:
    entry: Entry
    source_id: str
    count: int = 0

    def can_trigger(self) -> bool:
        cap = self.entry.max_triggers
        return cap is None or self.count < cap


@dataclass(frozen=True, slots=True)
class FiredEffect:
    effect: Effect
    source_id: str
    entry: Entry


class EntryExecutor:
    """Holds the active entries of one character, indexed by trigger."""

    def __init__(self) -> None:
        self._by_trigger: dict[Trigger, list[_Registration]] = defaultdict(list)

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_trigger.values())

    def add_entry(self, entry: Entry | Mapping, source_id: str = UNKNOWN_SOURCE) -> None:
        if not isinstance(entry, Entry):
            entry = Entry.from_dict(entry)
        self._by_trigger[entry.trigger].append(_Registration(entry, source_id))

    def add_entries(self, entries: Iterable[Entry | Mapping], source_id: str = UNKNOWN_SOURCE) -> None:
        for entry in entries:
            self.add_entry(entry, source_id)

    def entries_for(self, trigger: Trigger | str) -> list[tuple[Entry, str]]:
        trigger = Trigger.from_value(trigger)
        return [(item.entry, item.source_id) for item in self._by_trigger.get(trigger, [])]

    def fire(self, trigger: Trigger | str, facts: Facts) -> list[FiredEffect]:
        """Collect the effects of every entry that fires for ``trigger``.

        An entry fires when it is under its trigger cap and its condition
        holds; firing counts against the cap.
        """

        trigger = Trigger.from_value(trigger)
        fired: list[FiredEffect] = []
        for item in self._by_trigger.get(trigger, []):
            if not item.can_trigger():
                continue
            if not evaluate_condition(item.entry.condition, facts):
                continue
            item.count += 1
            fired.extend(FiredEffect(effect, item.source_id, item.entry) for effect in item.entry.effects)
        if fired:
            log.debug("%s fired %d effect(s)", trigger.value, len(fired))
        return fired

    def apply(
        self,
        trigger: Trigger | str,
        panel: Panel,
        facts: Facts,
        opponent: BattlePanel | None = None,
        *,
        config: RulesConfig | None = None,
    ) -> AppliedEffects:
        """Fire ``trigger`` and apply the resulting effects to ``panel``."""

        fired = self.fire(trigger, facts)
        return apply_effects(
            panel, [item.effect for item in fired], facts, opponent, config=config
        )

    def reset_triggers(self) -> None:
        for items in self._by_trigger.values():
            for item in items:
                item.count = 0

    @classmethod
    def from_sources(
        cls,
        traits: Sequence[Trait],
        character: Optional[Character] = None,
        pools: Optional[ManualPools] = None,
    ) -> "EntryExecutor":
        """Aggregate trait entries and the current realm of each equipped manual."""

        executor = cls()
        for trait in traits:
            executor.add_entries(trait.entries, f"trait:{trait.id}")
        if character is None or pools is None:
            return executor
        for kind in MANUAL_SLOTS:
            owned = character.manuals(kind).equipped_entry()
            if owned is None:
                continue
            manual = pools.find(kind, owned.id)
            if manual is None:
                log.debug("Equipped %s %s is not in the loaded pools", kind.value, owned.id)
                continue
            realm = manual.realm_at_level(owned.level)
            if realm is not None:
                executor.add_entries(realm.entries, f"{kind.value}:{manual.id}")
        return executor


__all__ = ["EntryExecutor", "FiredEffect", "UNKNOWN_SOURCE"]
