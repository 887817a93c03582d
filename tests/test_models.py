from pathlib import Path
import sys

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from wushen.models._validation import ModelValidationError
from wushen.models.attributes import ComparisonOp, ManualKind, PanelTarget, RuleSchema, Trigger
from wushen.models.character import Character, Manual, ManualPools, Trait
from wushen.models.entries import ALLOWED_TARGETS, Entry, EntryValidationError, Realm


def _entry_payload(**overrides) -> dict:
    payload = {
        "trigger": "after_attack",
        "condition": {"opponent_attribute_comparison": {"attribute": "hp", "op": "<", "value": "opponent_max_hp * 0.3"}},
        "effects": [
            {
                "type": "modify_attribute",
                "target": "damage_bonus",
                "value": 0.2,
                "operation": "add",
                "is_temporary": True,
                "battle_record_template": {"template": "{self_name} presses the attack"},
            }
        ],
        "max_triggers": 1,
        "entry_id": "e-7",
    }
    payload.update(overrides)
    return payload


def test_entry_round_trip_keeps_wire_shape():
    entry = Entry.from_dict(_entry_payload())

    data = entry.to_dict()

    assert data["trigger"] == "after_attack"
    assert data["max_triggers"] == 1
    assert data["entry_id"] == "e-7"
    assert data["condition"]["opponent_attribute_comparison"]["op"] == "less_than"
    assert data["effects"][0]["target_panel"] == "own"
    assert data["effects"][0]["battle_record_template"] == {"template": "{self_name} presses the attack"}
    assert Entry.from_dict(data) == entry


def test_entry_without_id_omits_it():
    data = Entry.from_dict(_entry_payload(entry_id=None)).to_dict()

    assert "entry_id" not in data
    assert data["condition"] is not None


@pytest.mark.parametrize(
    "payload",
    [
        {"trigger": "sunrise", "effects": []},
        {"effects": []},
        {"trigger": "battle_start", "effects": [{"type": "modify_attribute"}]},
        {"trigger": "battle_start", "effects": [], "max_triggers": -1},
        {"trigger": "battle_start", "effects": "hp"},
    ],
)
def test_entry_from_dict_rejects_bad_payloads(payload):
    with pytest.raises(ModelValidationError):
        Entry.from_dict(payload)


def test_validate_accepts_allowed_targets():
    Entry.from_dict(_entry_payload()).validate()
    Entry.from_dict(
        {
            "trigger": "reading_manual",
            "effects": [
                {
                    "type": "modify_percentage",
                    "target": "martial_arts_attainment_gain",
                    "value": 0.5,
                    "operation": "multiply",
                }
            ],
        }
    ).validate()


def test_validate_lists_every_problem():
    entry = Entry.from_dict(
        {
            "trigger": "game_start",
            "condition": {"attack_broke_qi_defense": None},
            "effects": [
                {"type": "modify_attribute", "target": "hp", "value": 1, "operation": "add"},
                {"type": "extra_attack", "output": 5},
            ],
        }
    )

    with pytest.raises(EntryValidationError) as excinfo:
        entry.validate()

    assert excinfo.value.trigger is Trigger.GAME_START
    assert len(excinfo.value.problems) == 3


@pytest.mark.parametrize(
    "trigger, allowed",
    [("after_attack", True), ("after_defense", True), ("before_attack", False), ("round_end", False)],
)
def test_extra_attack_triggers(trigger, allowed):
    entry = Entry(trigger=trigger, effects=[{"type": "extra_attack", "output": "self_power"}])

    if allowed:
        entry.validate()
    else:
        with pytest.raises(EntryValidationError):
            entry.validate()


def test_every_trigger_has_allowed_targets():
    assert set(ALLOWED_TARGETS) == set(Trigger)


def test_trigger_schema():
    assert Trigger.ROUND_END.is_battle
    assert Trigger.BATTLE_START.schema is RuleSchema.BATTLE
    assert not Trigger.SWITCHING_CULTIVATION.is_battle
    assert Trigger.from_value(" Game_Start ") is Trigger.GAME_START


def test_comparison_op_accepts_symbols():
    assert ComparisonOp.from_value("<=") is ComparisonOp.LESS_THAN_OR_EQUAL
    assert ComparisonOp.from_value("==") is ComparisonOp.EQUAL
    assert ComparisonOp.GREATER_THAN.symbol == ">"
    with pytest.raises(ValueError):
        ComparisonOp.from_value("!=")


def test_panel_target_defaults_to_own():
    assert PanelTarget.from_value(None) is PanelTarget.OWN
    assert PanelTarget.from_value("self") is PanelTarget.OWN


def test_realm_collects_extra_stats():
    realm = Realm.from_dict(
        {"level": 2, "exp_required": 150, "power": 4, "qi_quality": 1.5, "note": "text", "entries": []}
    )

    assert realm.stats == {"power": 4.0, "qi_quality": 1.5}
    assert realm.to_dict() == {
        "level": 2,
        "exp_required": 150.0,
        "power": 4.0,
        "qi_quality": 1.5,
        "entries": [],
    }


def test_manual_realm_lookup_is_one_based():
    manual = Manual.from_dict(
        {"id": "taiji", "name": "Taiji Fist", "realms": [{"level": 1}, {"level": 2}]},
        "attack_skill",
    )

    assert manual.kind is ManualKind.ATTACK_SKILL
    assert manual.realm_at_level(0) is None
    assert manual.realm_at_level(2).level == 2
    assert manual.realm_at_level(3) is None


def test_manual_rejects_any_kind():
    with pytest.raises(ValueError):
        Manual(id="x", name="X", kind="any")


def test_manual_pools_from_dict():
    pools = ManualPools.from_dict(
        {
            "internals": [{"id": "wudang", "name": "Wudang Internal"}],
            "defense_skills": [{"id": "bell", "name": "Golden Bell"}],
        }
    )

    assert [manual.id for manual in pools.iter_all()] == ["wudang", "bell"]
    assert pools.find("defense_skill", "bell").kind is ManualKind.DEFENSE_SKILL
    assert pools.find(ManualKind.INTERNAL, "bell") is None


def test_character_from_dict_dedupes_traits():
    character = Character.from_dict(
        {
            "id": "c9",
            "name": "Huang Rong",
            "three_d": {"comprehension": 90, "bone_structure": 50},
            "traits": ["clever", "clever", "cook"],
            "internals": {"owned": [{"id": "peach", "level": 1}, {"level": 3}], "equipped": "peach"},
        }
    )

    assert character.traits == ["clever", "cook"]
    assert character.three_d.physique == 0
    assert [item.id for item in character.internals.owned] == ["peach"]
    assert character.internals.equipped_entry().level == 1
    assert Character.from_dict(character.to_dict()) == character


def test_character_requires_an_id():
    with pytest.raises(ModelValidationError):
        Character.from_dict({"name": "Nobody"})


def test_trait_from_dict_parses_entries():
    trait = Trait.from_dict(
        {
            "id": "cook",
            "name": "Cook",
            "in_start_pool": True,
            "entries": [_entry_payload(entry_id=None)],
        }
    )

    assert trait.in_start_pool
    assert trait.entries[0].trigger is Trigger.AFTER_ATTACK
    assert trait.to_dict()["entries"][0]["max_triggers"] == 1
