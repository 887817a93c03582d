from pathlib import Path
import sys

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from wushen.entries import (
    apply_entry_structure,
    apply_realm_entry_change,
    ensure_entries_have_ids,
    ensure_entry_ids_in_realms,
    is_entry_structure_equal,
    is_entry_value_only_change,
    merge_entries_from_previous,
    realm_entries,
    sync_entry_structure_to_later_realms,
)
from wushen.models.entries import Entry, Realm


def _make_entry(value=10, entry_id=None, target="hp", **overrides) -> Entry:
    params = dict(
        trigger="battle_start",
        effects=[
            {"type": "modify_attribute", "target": target, "value": value, "operation": "add"}
        ],
        condition=None,
        max_triggers=None,
        entry_id=entry_id,
    )
    params.update(overrides)
    return Entry(**params)


def _make_realms(count=5, **entry_kwargs) -> list[Realm]:
    return [
        Realm(level=index + 1, entries=[_make_entry(value=10 * (index + 1), entry_id="e1", **entry_kwargs)])
        for index in range(count)
    ]


def _ids(realm) -> list[str]:
    return [entry.entry_id for entry in realm_entries(realm)]


def test_value_only_change_keeps_the_id():
    before = _make_entry(value=10, entry_id="e1")
    after = _make_entry(value=25, entry_id="e1")

    realms, changed = ensure_entry_ids_in_realms([Realm(level=1, entries=[after])])

    assert is_entry_structure_equal(before, after)
    assert is_entry_value_only_change(before, after)
    assert not changed
    assert _ids(realms[0]) == ["e1"]


def test_structure_change_is_not_value_only():
    before = _make_entry(entry_id="e1")

    assert not is_entry_value_only_change(before, _make_entry(target="qi", entry_id="e1"))
    assert not is_entry_value_only_change(before, _make_entry(entry_id="e1"))
    assert not is_entry_structure_equal(before, _make_entry(condition={"has_trait": "T1"}))
    assert is_entry_structure_equal(before, _make_entry(max_triggers=3))


def test_missing_ids_are_minted_once():
    entries, changed = ensure_entries_have_ids([_make_entry(), _make_entry(entry_id="keep")])
    again, changed_again = ensure_entries_have_ids(entries)

    assert changed
    assert entries[0].entry_id and entries[1].entry_id == "keep"
    assert not changed_again
    assert [entry.entry_id for entry in again] == [entry.entry_id for entry in entries]


def test_later_realms_inherit_ids_first_match_wins():
    realms = [
        Realm(level=1, entries=[_make_entry(value=1, entry_id="a"), _make_entry(value=2, entry_id="b")]),
        Realm(level=2, entries=[_make_entry(value=5), _make_entry(value=6), _make_entry(value=7)]),
    ]

    updated, changed = ensure_entry_ids_in_realms(realms)
    second = _ids(updated[1])

    assert changed
    assert second[:2] == ["a", "b"]
    assert second[2] not in {"a", "b", None}
    assert _ids(realms[1]) == [None, None, None]


def test_unmatched_entries_get_fresh_ids():
    realms = [
        Realm(level=1, entries=[_make_entry(entry_id="a")]),
        Realm(level=2, entries=[_make_entry(target="qi")]),
    ]

    updated, _ = ensure_entry_ids_in_realms(realms)

    assert _ids(updated[1])[0] != "a"


def test_mapping_realms_keep_extra_fields():
    realms = [
        {"level": 1, "exp_required": 100, "power": 3.5, "entries": [_make_entry().to_dict()]},
        {"level": 2, "exp_required": 300, "power": 7.0, "entries": [_make_entry(value=20).to_dict()]},
    ]

    updated, changed = ensure_entry_ids_in_realms(realms)

    assert changed
    assert updated[1]["power"] == 7.0
    assert updated[1]["exp_required"] == 300
    assert updated[0]["entries"][0]["entry_id"] == updated[1]["entries"][0]["entry_id"]
    assert "entry_id" not in realms[0]["entries"][0]


def test_delete_propagates_only_forward():
    realms = _make_realms()
    edited = Realm(level=3, entries=[])

    change = apply_realm_entry_change(realms, 2, edited, "delete", "e1")

    assert [_ids(realm) for realm in change.realms] == [["e1"], ["e1"], [], [], []]
    assert change.notice == "Synced the deletion to later realms (2)"
    assert _ids(realms[3]) == ["e1"]


def test_propagation_can_be_disabled():
    realms = _make_realms()
    edited = Realm(level=3, entries=[])

    change = apply_realm_entry_change(realms, 2, edited, "delete", "e1", propagate=False)

    assert [_ids(realm) for realm in change.realms] == [["e1"], ["e1"], [], ["e1"], ["e1"]]
    assert change.notice == "Deleted the entry from this realm only"


def test_add_propagates_and_is_idempotent():
    realms = _make_realms(count=3)
    fresh = _make_entry(target="qi", entry_id="e2")
    edited = Realm(level=1, entries=[*realm_entries(realms[0]), fresh])

    change = apply_realm_entry_change(realms, 0, edited, "add", "e2")
    again = apply_realm_entry_change(change.realms, 0, change.realms[0], "add", "e2")

    assert [_ids(realm) for realm in change.realms] == [["e1", "e2"]] * 3
    assert change.notice == "Synced the new entry to later realms (2)"
    assert [_ids(realm) for realm in again.realms] == [["e1", "e2"]] * 3
    assert again.notice is None


def test_add_without_propagation():
    realms = _make_realms(count=2)
    edited = Realm(level=1, entries=[_make_entry(entry_id="e1"), _make_entry(target="qi", entry_id="e2")])

    change = apply_realm_entry_change(realms, 0, edited, "add", "e2", propagate=False)

    assert _ids(change.realms[1]) == ["e1"]
    assert change.notice == "Added the entry to this realm only"


def test_structure_sync_keeps_target_values_and_caps():
    realms = _make_realms(count=3)
    realms[2] = Realm(level=3, entries=[_make_entry(value=30, entry_id="e1", max_triggers=4)])
    edited = Realm(
        level=1,
        entries=[
            _make_entry(
                value=99,
                entry_id="e1",
                trigger="before_attack",
                condition={"attack_broke_qi_defense": None},
                max_triggers=1,
            )
        ],
    )

    change = apply_realm_entry_change(realms, 0, edited, "structure", "e1")
    synced = [realm_entries(realm)[0] for realm in change.realms]

    assert change.notice == "Synced the entry structure to later realms (2)"
    assert [entry.trigger.value for entry in synced] == ["before_attack"] * 3
    assert [entry.effects[0].value for entry in synced] == [99.0, 20.0, 30.0]
    assert [entry.max_triggers for entry in synced] == [1, None, 4]
    assert all(entry.condition == synced[0].condition for entry in synced)


def test_structure_sync_without_id_does_nothing():
    realms = _make_realms(count=2)

    updated, synced = sync_entry_structure_to_later_realms(realms, 0, _make_entry(target="qi"))

    assert synced == 0
    assert updated == realms


def test_apply_entry_structure_fills_new_effects_from_source():
    source = _make_entry(value=1, entry_id="e1")
    source.effects.append(source.effects[0])
    target = _make_entry(value=50, entry_id="e1", max_triggers=2)

    rebuilt = apply_entry_structure(source, target)

    assert [effect.value for effect in rebuilt.effects] == [50.0, 1.0]
    assert rebuilt.max_triggers == 2


def test_merge_appends_missing_previous_entries():
    previous = [_make_entry(entry_id="a"), _make_entry(target="qi", entry_id="b")]
    current = [_make_entry(value=40)]

    merged, added = merge_entries_from_previous(current, previous)

    assert added == 1
    assert [entry.entry_id for entry in merged] == ["a", "b"]
    assert merged[0].effects[0].value == 40.0
    assert merged[1] is not previous[1]


def test_inherit_reports_a_notice():
    realms = _make_realms(count=2)

    change = apply_realm_entry_change(realms, 1, realms[1], "inherit")

    assert change.notice == "Inherited new entries from the previous realm"


def test_no_kind_only_stamps_ids():
    realms = [Realm(level=1, entries=[_make_entry()]), Realm(level=2, entries=[_make_entry()])]

    change = apply_realm_entry_change(realms, 1, realms[1])

    assert change.notice is None
    assert all(_ids(realm)[0] for realm in change.realms)


def test_inherited_id_never_duplicates_one_already_in_the_realm():
    realms = [
        Realm(level=1, entries=[_make_entry(value=10, entry_id="E")]),
        Realm(level=2, entries=[_make_entry(value=20, entry_id="E"), _make_entry(value=30)]),
    ]

    updated, changed = ensure_entry_ids_in_realms(realms)
    second = _ids(updated[1])

    assert changed
    assert second[0] == "E"
    assert second[1] not in {"E", None}


def test_merge_does_not_reuse_an_id_already_present():
    previous = [_make_entry(entry_id="a")]
    current = [_make_entry(value=5, entry_id="a"), _make_entry(value=6)]

    merged, added = merge_entries_from_previous(current, previous)
    ids = [entry.entry_id for entry in merged]

    assert added == 0
    assert ids[0] == "a"
    assert len(set(ids)) == 2


def test_unparseable_entries_are_carried_through():
    broken = {"effects": [{"type": "future_effect"}]}
    realms = [
        {"level": 1, "entries": [_make_entry(entry_id="e1").to_dict()]},
        {"level": 2, "entries": [_make_entry(value=20, entry_id="e1").to_dict(), broken]},
    ]

    change = apply_realm_entry_change(realms, 0, {"level": 1, "entries": []}, "delete", "e1")

    assert change.notice == "Synced the deletion to later realms (1)"
    assert change.realms[1]["entries"] == [broken]
    assert realm_entries(change.realms[1]) == []


def test_untouched_mapping_entries_keep_their_stored_shape():
    stored = {
        "trigger": "battle_start",
        "effects": [{"type": "modify_attribute", "target": "hp", "value": 10, "operation": "add"}],
        "entry_id": "e1",
    }
    extra = {
        "trigger": "battle_start",
        "effects": [{"type": "modify_attribute", "target": "qi", "value": 5, "operation": "add"}],
        "entry_id": "e2",
    }
    realms = [
        {"level": 1, "entries": [stored, extra]},
        {"level": 2, "entries": [stored, extra]},
        {"level": 3, "entries": [stored]},
    ]
    edited = {"level": 1, "entries": [stored]}

    change = apply_realm_entry_change(realms, 0, edited, "delete", "e2")

    assert change.realms[0] is edited
    assert change.realms[1]["entries"] == [stored]
    assert change.realms[2] is realms[2]
    assert "condition" not in change.realms[1]["entries"][0]
    assert "target_panel" not in change.realms[1]["entries"][0]["effects"][0]


@pytest.mark.parametrize("index", [-1, 3])
def test_index_outside_the_realms_changes_nothing(index):
    realms = _make_realms(count=3)

    change = apply_realm_entry_change(realms, index, Realm(level=9, entries=[]), "delete", "e1")

    assert change.realms == realms
    assert change.notice is None
