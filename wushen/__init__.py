"""Rule engine for a wuxia cultivation game.

Entries pair a trigger with an optional condition and a list of effects.
This package decides when conditions hold, applies effects and story rewards,
resolves formula values and keeps entries consistent across manual realms.
"""

from __future__ import annotations

from .conditions import evaluate_condition
from .effects import AppliedEffects, apply_effects
from .entries import RealmEntryChange, apply_realm_entry_change, ensure_entry_ids_in_realms
from .executor import EntryExecutor
from .formula import (
    FormulaError,
    FormulaResult,
    FormulaSyntaxError,
    InvalidVariable,
    NonFiniteResult,
    annotate,
    resolve,
    validate_formula,
)
from .rewards import RewardOutcome, apply_rewards

__all__ = [
    "AppliedEffects",
    "EntryExecutor",
    "FormulaError",
    "FormulaResult",
    "FormulaSyntaxError",
    "InvalidVariable",
    "NonFiniteResult",
    "RealmEntryChange",
    "RewardOutcome",
    "annotate",
    "apply_effects",
    "apply_realm_entry_change",
    "apply_rewards",
    "ensure_entry_ids_in_realms",
    "evaluate_condition",
    "resolve",
    "validate_formula",
]
