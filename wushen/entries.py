"""Entry identity across realms and propagation of realm edits.

Every manual carries an ordered ladder of realms and authors usually repeat a
rule in several of them, tuning only its numbers. Entry ids let the editor
recognise "the same rule" in later realms so that additions, deletions and
structural edits made in one realm can be pushed forward to the realms after
it. Realms may be :class:`~wushen.models.entries.Realm` objects, other objects
exposing ``entries`` or plain mappings; every other field is carried through
untouched and inputs are never modified.

Stored entries that no longer parse are kept exactly as they are. They take
no part in id matching or propagation.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, is_dataclass, replace
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

from .models._validation import ModelValidationError
from .models.conditions import condition_to_dict
from .models.effects import AttributeEffect, effect_value
from .models.entries import Entry

log = logging.getLogger(__name__)

RealmT = TypeVar("RealmT")
EntryItem = Union[Entry, Mapping[str, Any]]


def new_entry_id() -> str:
    return str(uuid.uuid4())


def _try_entry(item: Any) -> Entry | None:
    if isinstance(item, Entry):
        return item
    try:
        return Entry.from_dict(item)
    except ModelValidationError:
        return None


def _as_item(item: Any) -> EntryItem:
    entry = _try_entry(item)
    if entry is None:
        log.warning("Keeping unparseable entry as stored: %r", item)
        return item
    return entry


def _only_entries(items: Iterable[Any]) -> list[Entry]:
    return [item for item in items if isinstance(item, Entry)]


def clone_entry(entry: Entry) -> Entry:
    return copy.deepcopy(entry)


def ensure_entry_id(entry: Entry) -> Entry:
    if entry.entry_id:
        return entry
    return replace(entry, entry_id=new_entry_id())


def ensure_entries_have_ids(entries: Iterable[EntryItem]) -> tuple[list[EntryItem], bool]:
    changed = False
    ensured: list[EntryItem] = []
    for raw in entries:
        item = _as_item(raw)
        if isinstance(item, Entry) and not item.entry_id:
            item = replace(item, entry_id=new_entry_id())
            changed = True
        ensured.append(item)
    return ensured, changed


def realm_items(realm: Any) -> list[EntryItem]:
    """Parsed entries of ``realm``, with unparseable payloads left in place."""

    raw = realm.get("entries") if isinstance(realm, Mapping) else getattr(realm, "entries", None)
    return [_as_item(item) for item in raw or []]


def realm_entries(realm: Any) -> list[Entry]:
    return _only_entries(realm_items(realm))


def with_entries(realm: RealmT, entries: Sequence[EntryItem]) -> RealmT:
    """Return a copy of ``realm`` holding ``entries``.

    Mapping realms keep each stored entry payload that still describes the
    same entry, so unchanged entries are not rewritten.
    """

    if isinstance(realm, Mapping):
        stored = [(raw, _try_entry(raw)) for raw in realm.get("entries") or []]

        def payload(item: EntryItem) -> Any:
            if not isinstance(item, Entry):
                return item
            for raw, parsed in stored:
                if parsed is not None and parsed == item:
                    return raw
            return item.to_dict()

        updated = dict(realm)
        updated["entries"] = [payload(item) for item in entries]
        return updated  # type: ignore[return-value]
    if is_dataclass(realm):
        return replace(realm, entries=list(entries))
    clone = copy.copy(realm)
    clone.entries = list(entries)
    return clone


def _effect_shape(effect: Any) -> Any:
    return effect.to_dict(include_value=False)


def is_entry_structure_equal(prev: Entry, other: Entry) -> bool:
    """Same trigger, condition and effect shapes; values and caps may differ."""

    if prev.trigger is not other.trigger:
        return False
    if condition_to_dict(prev.condition) != condition_to_dict(other.condition):
        return False
    if len(prev.effects) != len(other.effects):
        return False
    return all(
        _effect_shape(left) == _effect_shape(right)
        for left, right in zip(prev.effects, other.effects)
    )


def is_entry_value_equal(prev: Entry, other: Entry) -> bool:
    """Same trigger cap and the same value on every effect position."""

    if prev.max_triggers != other.max_triggers:
        return False
    if len(prev.effects) != len(other.effects):
        return False
    return all(
        effect_value(left) == effect_value(right)
        for left, right in zip(prev.effects, other.effects)
    )


def is_entry_value_only_change(prev: Entry, other: Entry) -> bool:
    return is_entry_structure_equal(prev, other) and not is_entry_value_equal(prev, other)


def _match_previous(
    items: Sequence[EntryItem], previous: Sequence[Entry]
) -> tuple[list[EntryItem], bool]:
    # The first structurally equal previous entry wins and cannot match twice.
    # Ids the realm already holds are never handed out again.
    used = {item.entry_id for item in _only_entries(items) if item.entry_id}
    changed = False
    matched: list[EntryItem] = []
    for item in items:
        if not isinstance(item, Entry) or item.entry_id:
            matched.append(item)
            continue
        changed = True
        source = next(
            (
                candidate
                for candidate in previous
                if candidate.entry_id
                and candidate.entry_id not in used
                and is_entry_structure_equal(candidate, item)
            ),
            None,
        )
        if source is not None:
            used.add(source.entry_id)
            matched.append(replace(item, entry_id=source.entry_id))
        else:
            matched.append(replace(item, entry_id=new_entry_id()))
    return matched, changed


def ensure_entry_ids_in_realms(realms: Sequence[RealmT]) -> tuple[list[RealmT], bool]:
    """Give every entry an id, inheriting ids from the previous realm.

    Entries of the first realm without an id get a fresh one. In later realms
    an entry without an id takes the id of the first unclaimed, structurally
    equal entry of the realm before it, or a fresh id when there is none.
    Realms that already have every id are returned as they are.
    """

    changed = False
    previous: list[Entry] = []
    updated: list[RealmT] = []
    for index, realm in enumerate(realms):
        items = realm_items(realm)
        if index == 0:
            items, realm_changed = ensure_entries_have_ids(items)
        else:
            items, realm_changed = _match_previous(items, previous)
        previous = _only_entries(items)
        if realm_changed:
            changed = True
            updated.append(with_entries(realm, items))
        else:
            updated.append(realm)
    return updated, changed


def merge_entries_from_previous(
    entries: Iterable[EntryItem],
    previous_entries: Iterable[EntryItem],
) -> tuple[list[EntryItem], int]:
    """Carry forward previous-realm entries the current list does not have yet.

    Returns the merged list and the number of entries appended.
    """

    ensured, _ = ensure_entries_have_ids(previous_entries)
    previous = _only_entries(ensured)
    current, _ = _match_previous([_as_item(item) for item in entries], previous)
    existing = {entry.entry_id for entry in _only_entries(current)}
    additions = [clone_entry(entry) for entry in previous if entry.entry_id not in existing]
    return [*current, *additions], len(additions)


def apply_entry_structure(source: Entry, target: Entry) -> Entry:
    """Copy the shape of ``source`` onto ``target``.

    ``target`` keeps its trigger cap and, position by position, its own value
    wherever both effects carry one.
    """

    effects = []
    for index, effect in enumerate(source.effects):
        effect = copy.deepcopy(effect)
        if isinstance(effect, AttributeEffect) and index < len(target.effects):
            own = target.effects[index]
            if isinstance(own, AttributeEffect):
                effect = replace(effect, value=own.value)
        effects.append(effect)
    return Entry(
        trigger=source.trigger,
        effects=effects,
        condition=copy.deepcopy(source.condition),
        max_triggers=target.max_triggers,
        entry_id=source.entry_id or target.entry_id,
    )


def add_entry_to_later_realms(
    realms: Sequence[RealmT], start_index: int, entry: Entry
) -> tuple[list[RealmT], int]:
    entry = ensure_entry_id(entry)
    added = 0
    updated: list[RealmT] = []
    for index, realm in enumerate(realms):
        if index <= start_index:
            updated.append(realm)
            continue
        items = realm_items(realm)
        if any(item.entry_id == entry.entry_id for item in _only_entries(items)):
            updated.append(realm)
            continue
        added += 1
        updated.append(with_entries(realm, [*items, clone_entry(entry)]))
    return updated, added


def remove_entry_from_later_realms(
    realms: Sequence[RealmT], start_index: int, entry_id: str
) -> tuple[list[RealmT], int]:
    removed = 0
    updated: list[RealmT] = []
    for index, realm in enumerate(realms):
        if index <= start_index:
            updated.append(realm)
            continue
        items = realm_items(realm)
        kept = [
            item for item in items if not (isinstance(item, Entry) and item.entry_id == entry_id)
        ]
        if len(kept) == len(items):
            updated.append(realm)
            continue
        removed += len(items) - len(kept)
        updated.append(with_entries(realm, kept))
    return updated, removed


def sync_entry_structure_to_later_realms(
    realms: Sequence[RealmT], start_index: int, source: Entry
) -> tuple[list[RealmT], int]:
    if not source.entry_id:
        return list(realms), 0
    synced = 0
    updated: list[RealmT] = []
    for index, realm in enumerate(realms):
        if index <= start_index:
            updated.append(realm)
            continue
        items = realm_items(realm)
        hits = 0
        rebuilt: list[EntryItem] = []
        for item in items:
            if isinstance(item, Entry) and item.entry_id == source.entry_id:
                hits += 1
                rebuilt.append(apply_entry_structure(source, item))
            else:
                rebuilt.append(item)
        synced += hits
        updated.append(with_entries(realm, rebuilt) if hits else realm)
    return updated, synced


class RealmEntryChangeKind(str, Enum):
    VALUE = "value"
    STRUCTURE = "structure"
    ADD = "add"
    DELETE = "delete"
    INHERIT = "inherit"

    @classmethod
    def from_value(cls, value: "RealmEntryChangeKind | str") -> "RealmEntryChangeKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown realm entry change: {value!r}") from exc


@dataclass(slots=True)
class RealmEntryChange:
    realms: List[Any]
    notice: Optional[str] = None


def _find(entries: Sequence[Entry], entry_id: str) -> Entry | None:
    for entry in entries:
        if entry.entry_id == entry_id:
            return entry
    return None


def apply_realm_entry_change(
    realms: Sequence[RealmT],
    index: int,
    next_realm: RealmT,
    kind: RealmEntryChangeKind | str | None = None,
    entry_id: str | None = None,
    propagate: bool = True,
) -> RealmEntryChange:
    """Replace realm ``index`` with ``next_realm`` and propagate the edit.

    Every realm is id-stamped first. When ``kind`` is given and ``propagate``
    is set, an ``add``, ``delete`` or ``structure`` change for ``entry_id`` is
    pushed to the realms after ``index``; nothing at or before ``index`` is
    touched. The notice describes what happened and is meant for display.
    An ``index`` outside the realm list changes nothing.
    """

    if not 0 <= index < len(realms):
        log.warning("Realm index %s is outside %s realms; ignoring edit", index, len(realms))
        return RealmEntryChange(list(realms))

    ensured, _ = ensure_entry_ids_in_realms(realms)
    next_items, stamped = ensure_entries_have_ids(realm_items(next_realm))
    next_entries = _only_entries(next_items)
    patched = with_entries(next_realm, next_items) if stamped else next_realm
    updated: list[RealmT] = [patched if idx == index else realm for idx, realm in enumerate(ensured)]

    if kind is None:
        return RealmEntryChange(updated)
    kind = RealmEntryChangeKind.from_value(kind)
    notice: str | None = None

    if kind is RealmEntryChangeKind.ADD:
        if not propagate:
            notice = "Added the entry to this realm only"
        elif entry_id:
            entry = _find(next_entries, entry_id)
            if entry is not None:
                updated, added = add_entry_to_later_realms(updated, index, entry)
                if added:
                    notice = f"Synced the new entry to later realms ({added})"
    elif kind is RealmEntryChangeKind.DELETE:
        if not propagate:
            notice = "Deleted the entry from this realm only"
        elif entry_id:
            updated, removed = remove_entry_from_later_realms(updated, index, entry_id)
            if removed:
                notice = f"Synced the deletion to later realms ({removed})"
    elif kind is RealmEntryChangeKind.STRUCTURE and entry_id:
        if not propagate:
            notice = "Changed the entry structure in this realm only"
        else:
            entry = _find(next_entries, entry_id)
            if entry is not None:
                updated, synced = sync_entry_structure_to_later_realms(updated, index, entry)
                if synced:
                    notice = f"Synced the entry structure to later realms ({synced})"
    elif kind is RealmEntryChangeKind.INHERIT:
        notice = "Inherited new entries from the previous realm"

    if notice:
        log.debug("Realm %s: %s", index, notice)
    return RealmEntryChange(updated, notice)


__all__ = [
    "RealmEntryChange",
    "RealmEntryChangeKind",
    "add_entry_to_later_realms",
    "apply_entry_structure",
    "apply_realm_entry_change",
    "clone_entry",
    "ensure_entries_have_ids",
    "ensure_entry_id",
    "ensure_entry_ids_in_realms",
    "is_entry_structure_equal",
    "is_entry_value_equal",
    "is_entry_value_only_change",
    "merge_entries_from_previous",
    "new_entry_id",
    "realm_entries",
    "realm_items",
    "remove_entry_from_later_realms",
    "sync_entry_structure_to_later_realms",
    "with_entries",
]
