"""Battle log lines for fired effects."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from .models.attributes import AttributeTarget, Operation
from .models.effects import AttributeEffect, BattleRecordTemplate, Effect, ExtraAttack
from .models.panel import AttackResult, BattlePanel

DEFAULT_OPPONENT_NAME = "the opponent"

TARGET_LABELS: Mapping[AttributeTarget, str] = MappingProxyType(
    {
        AttributeTarget.HP: "HP",
        AttributeTarget.MAX_HP: "max HP",
        AttributeTarget.QI: "qi",
        AttributeTarget.MAX_QI: "max qi",
        AttributeTarget.BASE_ATTACK: "base attack",
        AttributeTarget.BASE_DEFENSE: "base defense",
        AttributeTarget.DAMAGE_BONUS: "damage bonus",
        AttributeTarget.DAMAGE_REDUCTION: "damage reduction",
        AttributeTarget.ATTACK_SPEED: "attack speed",
        AttributeTarget.QI_RECOVERY_RATE: "qi recovery rate",
        AttributeTarget.CHARGE_TIME: "charge time",
        AttributeTarget.COMPREHENSION: "comprehension",
        AttributeTarget.BONE_STRUCTURE: "bone structure",
        AttributeTarget.PHYSIQUE: "physique",
        AttributeTarget.MAX_QI_OUTPUT_RATE: "max qi output rate",
        AttributeTarget.QI_OUTPUT_RATE: "qi output rate",
        AttributeTarget.MAX_DAMAGE_REDUCTION: "max damage reduction",
        AttributeTarget.MARTIAL_ARTS_ATTAINMENT_GAIN: "martial arts attainment gain",
        AttributeTarget.CULTIVATION_EXP_GAIN: "cultivation exp gain",
        AttributeTarget.QI_GAIN: "qi gain",
        AttributeTarget.QI_LOSS_RATE: "qi lost when switching",
    }
)

OPERATION_LABELS: Mapping[Operation, str] = MappingProxyType(
    {
        Operation.ADD: "increased by",
        Operation.SUBTRACT: "decreased by",
        Operation.SET: "set to",
        Operation.MULTIPLY: "multiplied by",
    }
)


def format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def record_values(
    entry_id: str,
    own: BattlePanel,
    opponent: Optional[BattlePanel] = None,
    attack_result: Optional[AttackResult] = None,
    target: Optional[AttributeTarget] = None,
    value: Optional[str] = None,
    operation: Optional[Operation] = None,
) -> dict[str, str]:
    """Placeholder values available to a battle record template."""

    values = {
        "self_name": own.name,
        "entry_id": entry_id,
        "opponent_name": opponent.name if opponent is not None else DEFAULT_OPPONENT_NAME,
    }
    if target is not None:
        values["target"] = TARGET_LABELS[target]
    if value is not None:
        values["value"] = value
        values["output"] = value
    if operation is not None:
        values["operation"] = OPERATION_LABELS[operation]
    if attack_result is not None:
        values.update(
            {
                "hp_damage": f"{attack_result.hp_damage:.1f}",
                "total_output": f"{attack_result.total_output:.1f}",
                "total_defense": f"{attack_result.total_defense:.1f}",
                "reduced_output": f"{attack_result.reduced_output:.1f}",
                "attacker_qi_consumed": f"{attack_result.attacker_qi_consumed:.1f}",
                "defender_qi_consumed": f"{attack_result.defender_qi_consumed:.1f}",
                "broke_qi_defense": "yes" if attack_result.broke_qi_defense else "no",
            }
        )
    return values


def describe_effect(effect: Effect, amount: float, own_name: str) -> str:
    """Default log line for an effect that has no template of its own."""

    if isinstance(effect, ExtraAttack):
        return f"{own_name} launches an extra attack ({format_value(amount)} output)"
    label = TARGET_LABELS[effect.target]
    verb = OPERATION_LABELS[effect.operation]
    return f"{own_name}'s {label} {verb} {format_value(amount)}"


def render_record(
    effect: Effect,
    amount: float,
    entry_id: str,
    own: BattlePanel,
    opponent: Optional[BattlePanel] = None,
    attack_result: Optional[AttackResult] = None,
) -> str:
    """Render the log line for a fired effect."""

    template: BattleRecordTemplate | None = effect.battle_record_template
    if template is None:
        return describe_effect(effect, amount, own.name)
    if isinstance(effect, AttributeEffect):
        values = record_values(
            entry_id,
            own,
            opponent,
            attack_result,
            target=effect.target,
            value=format_value(amount),
            operation=effect.operation,
        )
    else:
        values = record_values(entry_id, own, opponent, attack_result, value=format_value(amount))
    return template.render(values)


__all__ = [
    "DEFAULT_OPPONENT_NAME",
    "OPERATION_LABELS",
    "TARGET_LABELS",
    "describe_effect",
    "format_value",
    "record_values",
    "render_record",
]
