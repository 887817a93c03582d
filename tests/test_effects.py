from pathlib import Path
import sys

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from wushen.config import RulesConfig
from wushen.effects import apply_effects, bounded_value
from wushen.models._validation import ModelValidationError
from wushen.models.attributes import AttributeTarget, Operation, PanelTarget
from wushen.models.effects import ExtraAttack, ModifyAttribute, ModifyPercentage, parse_effect
from wushen.models.panel import (
    AttackResult,
    BattleFacts,
    BattlePanel,
    CultivationPanel,
    ProgressionFacts,
)


def _make_panel(**overrides) -> BattlePanel:
    params = dict(
        name="Linghu Chong",
        comprehension=60,
        bone_structure=100,
        physique=40,
        max_hp=300.0,
        hp=120.0,
        max_qi=150.0,
        qi=90.0,
        base_attack=25.0,
        damage_bonus=0.1,
    )
    params.update(overrides)
    return BattlePanel(**params)


def _battle_facts(own: BattlePanel, opponent: BattlePanel | None = None) -> BattleFacts:
    return BattleFacts(own=own, opponent=opponent)


def _modify(target, value, operation="add", **extra) -> dict:
    payload = {"type": "modify_attribute", "target": target, "value": value, "operation": operation}
    payload.update(extra)
    return payload


def _apply_one(panel: BattlePanel, effect: dict, **kwargs):
    return apply_effects(panel, [effect], _battle_facts(panel), **kwargs)


@pytest.mark.parametrize(
    "current, effect, expected",
    [
        (100, _modify("bone_structure", 5), 100),
        (60, _modify("bone_structure", 5), 65),
        (60, _modify("bone_structure", 50), 100),
        (100, _modify("bone_structure", 10, can_exceed_limit=True), 110),
        (100, _modify("bone_structure", 10, "subtract"), 90),
        (60, _modify("bone_structure", 80, "subtract"), 0),
        (60, _modify("bone_structure", 2.7), 62),
    ],
)
def test_three_dimension_limit(current, effect, expected):
    panel = _make_panel(bone_structure=current)

    outcome = _apply_one(panel, effect)

    assert outcome.panel.bone_structure == expected
    assert isinstance(outcome.panel.bone_structure, int)


def test_value_over_limit_is_left_alone_by_capped_increase():
    panel = _make_panel(physique=120)

    outcome = _apply_one(panel, _modify("physique", 5))

    assert outcome.panel.physique == 120


def test_attribute_limit_follows_config():
    panel = _make_panel(comprehension=60)

    outcome = _apply_one(panel, _modify("comprehension", 30), config=RulesConfig(attribute_limit=80))

    assert outcome.panel.comprehension == 80


def test_non_dimension_targets_floor_at_zero_without_cap():
    panel = _make_panel(hp=120.0, base_attack=25.0)

    outcome = apply_effects(
        panel,
        [_modify("hp", 500, "subtract"), _modify("base_attack", 1000)],
        _battle_facts(panel),
    )

    assert outcome.panel.hp == 0.0
    assert outcome.panel.base_attack == pytest.approx(1025.0)


def test_multiply_and_set_operations():
    panel = _make_panel()

    outcome = apply_effects(
        panel,
        [_modify("max_hp", 1.5, "multiply"), _modify("qi", 10, "set")],
        _battle_facts(panel),
    )

    assert outcome.panel.max_hp == pytest.approx(450.0)
    assert outcome.panel.qi == pytest.approx(10.0)


def test_percentage_effect_matches_attribute_effect():
    panel = _make_panel()
    percentage = dict(_modify("damage_bonus", 0.25), type="modify_percentage")

    by_attribute = _apply_one(panel, _modify("damage_bonus", 0.25))
    by_percentage = _apply_one(panel, percentage)

    assert isinstance(parse_effect(percentage), ModifyPercentage)
    assert by_percentage.panel == by_attribute.panel
    assert by_percentage.panel.damage_bonus == pytest.approx(0.35)


def test_formula_values_use_the_facts_snapshot():
    panel = _make_panel(hp=100.0)
    effects = [_modify("hp", "self_hp * 0.5"), _modify("hp", "self_hp * 0.5")]

    outcome = apply_effects(panel, effects, _battle_facts(panel))

    assert outcome.panel.hp == pytest.approx(200.0)


def test_opponent_effects_change_the_opponent_panel():
    own = _make_panel()
    opponent = _make_panel(name="Tian Boguang", hp=80.0)
    effect = _modify("hp", "self_base_attack", "subtract", target_panel="opponent")

    outcome = apply_effects(own, [effect], _battle_facts(own, opponent), opponent)

    assert outcome.opponent.hp == pytest.approx(55.0)
    assert outcome.panel == own


def test_opponent_effect_without_opponent_is_skipped():
    panel = _make_panel()
    effect = _modify("hp", 10, "subtract", target_panel="opponent")

    outcome = _apply_one(panel, effect)

    assert outcome.opponent is None
    assert outcome.skipped == 1
    assert outcome.panel == panel


def test_inputs_are_not_mutated():
    own = _make_panel()
    opponent = _make_panel(name="Tian Boguang")

    outcome = apply_effects(
        own,
        [_modify("hp", 50), _modify("hp", 50, "subtract", target_panel="opponent")],
        _battle_facts(own, opponent),
        opponent,
    )

    assert (own.hp, opponent.hp) == (120.0, 120.0)
    assert (outcome.panel.hp, outcome.opponent.hp) == (170.0, 70.0)


def test_unresolvable_formula_skips_only_that_effect():
    panel = _make_panel(hp=120.0, qi=90.0)
    effects = [_modify("hp", "self_luck * 2"), _modify("qi", "1 / (self_hp - self_hp)"), _modify("qi", 5)]

    outcome = apply_effects(panel, effects, _battle_facts(panel))

    assert outcome.panel.hp == pytest.approx(120.0)
    assert outcome.panel.qi == pytest.approx(95.0)
    assert outcome.skipped == 2


def test_unknown_or_malformed_effects_are_skipped():
    panel = _make_panel(hp=120.0)
    effects = [
        {"type": "future_effect", "target": "hp", "value": 1},
        _modify("hp", 10),
        {"type": "modify_attribute", "target": "hp", "operation": "add"},
        _modify("hp", 5),
    ]

    outcome = apply_effects(panel, effects, _battle_facts(panel))

    assert outcome.panel.hp == pytest.approx(135.0)
    assert outcome.skipped == 2


def test_target_missing_from_panel_is_skipped():
    panel = _make_panel()

    outcome = _apply_one(panel, _modify("qi_gain", 5))

    assert outcome.skipped == 1
    assert outcome.panel == panel


def test_extra_attack_requests_are_collected():
    own = _make_panel()
    facts = BattleFacts(
        own=own,
        attack_result=AttackResult(total_output=40.0, hp_damage=30.0, broke_qi_defense=True),
    )
    effects = [
        {"type": "extra_attack", "output": "attack_hp_damage * 0.5"},
        {"type": "extra_attack", "output": "self_unknown"},
    ]

    outcome = apply_effects(own, effects, facts, config=RulesConfig(formula_fallback=1.5))

    assert [request.output for request in outcome.extra_attacks] == [15.0, 1.5]
    assert isinstance(outcome.extra_attacks[0].effect, ExtraAttack)
    assert outcome.panel == own


def test_temporary_changes_are_reported():
    panel = _make_panel()
    effects = [
        _modify("base_attack", 5, is_temporary=True),
        _modify("hp", 5),
    ]

    outcome = apply_effects(panel, effects, _battle_facts(panel))

    assert len(outcome.temporary_changes) == 1
    change = outcome.temporary_changes[0]
    assert change.panel is PanelTarget.OWN
    assert change.target is AttributeTarget.BASE_ATTACK
    assert (change.before, change.after) == (25.0, 30.0)


def test_progression_effects_use_progression_bindings():
    panel = CultivationPanel(comprehension=50, martial_arts_attainment_gain=20.0)
    facts = ProgressionFacts(comprehension=50, martial_arts_attainment=8.0)
    effect = _modify("martial_arts_attainment_gain", "self_x * 0.1 + a")

    outcome = apply_effects(panel, [effect], facts)

    assert outcome.panel.martial_arts_attainment_gain == pytest.approx(33.0)
    assert panel.martial_arts_attainment_gain == 20.0


def test_battle_only_targets_are_skipped_on_cultivation_panel():
    panel = CultivationPanel(cultivation_exp_gain=4.0)

    outcome = apply_effects(panel, [_modify("hp", 10)], ProgressionFacts())

    assert outcome.skipped == 1


def test_parse_effect_rejects_bad_payloads():
    with pytest.raises(ModelValidationError):
        parse_effect({"type": "heal", "target": "hp", "value": 1, "operation": "add"})
    with pytest.raises(ModelValidationError):
        parse_effect(_modify("luck", 1))
    with pytest.raises(ModelValidationError):
        parse_effect(_modify("hp", 1, "divide"))
    with pytest.raises(ModelValidationError):
        parse_effect({"type": "modify_attribute", "target": "hp", "operation": "add"})


def test_parse_effect_defaults():
    effect = parse_effect(_modify("hp", "self_hp", target_panel="self"))

    assert isinstance(effect, ModifyAttribute)
    assert effect.target_panel is PanelTarget.OWN
    assert effect.operation is Operation.ADD
    assert effect.can_exceed_limit is False
    assert effect.is_temporary is False


@pytest.mark.parametrize(
    "current, proposed, kwargs, expected",
    [
        (100, 105, {"three_dimension": True, "can_exceed_limit": False}, 100),
        (99, 104, {"three_dimension": True, "can_exceed_limit": False}, 100),
        (100, 110, {"three_dimension": True, "can_exceed_limit": True}, 110),
        (5, -3, {"three_dimension": False, "can_exceed_limit": False}, 0.0),
        (5, 250.5, {"three_dimension": False, "can_exceed_limit": False}, 250.5),
        (5, float("inf"), {"three_dimension": False, "can_exceed_limit": False}, 5),
        (10, 30, {"three_dimension": True, "can_exceed_limit": False, "limit": 20}, 20),
    ],
)
def test_bounded_value(current, proposed, kwargs, expected):
    assert bounded_value(current, proposed, **kwargs) == expected
