"""Formula values: literal numbers or small arithmetic expressions.

Expressions are parsed by a tokenizer and a recursive-descent parser over a
closed grammar::

    expr  := term (('+' | '-') term)*
    term  := unary (('*' | '/') unary)*
    unary := ('+' | '-') unary | atom
    atom  := number | variable | '(' expr ')'

Nothing is handed to ``eval``; the only names an expression can reach are the
variables of the vocabulary it is compiled against.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

from .config import DEFAULT_CONFIG, RulesConfig
from .constants import (
    ATTACK_VARIABLES,
    COMBATANT_PREFIXES,
    CULTIVATION_VARIABLES,
    PANEL_VARIABLES,
    PREVIEW_BINDING_VALUE,
    VARIABLE_LABELS,
)

log = logging.getLogger(__name__)


class FormulaError(ValueError):
    """Base class for every problem a formula can report."""


class InvalidVariable(FormulaError):
    def __init__(self, name: str, position: int) -> None:
        self.name = name
        self.position = position
        super().__init__(f"Unknown variable '{name}' at position {position}")


class FormulaSyntaxError(FormulaError):
    def __init__(self, position: int, message: str) -> None:
        self.position = position
        self.message = message
        super().__init__(f"{message} at position {position}")


class NonFiniteResult(FormulaError):
    def __init__(self, message: str = "Formula did not produce a finite number") -> None:
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class Vocabulary:
    name: str
    variables: frozenset[str]

    def __contains__(self, name: object) -> bool:
        return name in self.variables


def _prefixed(prefixes: Iterable[str]) -> list[str]:
    return [f"{prefix}_{name}" for prefix in prefixes for name in PANEL_VARIABLES]


BATTLE_VOCABULARY = Vocabulary(
    "battle", frozenset([*_prefixed(COMBATANT_PREFIXES), *ATTACK_VARIABLES])
)
CULTIVATION_VOCABULARY = Vocabulary("cultivation", frozenset(CULTIVATION_VARIABLES))
# Progression-time entries see their own character only.
PROGRESSION_VOCABULARY = Vocabulary(
    "progression", frozenset([*_prefixed(("self",)), *CULTIVATION_VARIABLES])
)

VOCABULARIES: Mapping[str, Vocabulary] = {
    vocabulary.name: vocabulary
    for vocabulary in (BATTLE_VOCABULARY, CULTIVATION_VOCABULARY, PROGRESSION_VOCABULARY)
}


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    text: str
    position: int


_TOKEN_PATTERN = re.compile(
    r"(?P<number>\d+(?:\.\d+)?|\.\d+)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>[-+*/()])"
    r"|(?P<space>\s+)"
)


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise FormulaSyntaxError(position, f"Unexpected character {text[position]!r}")
        kind = match.lastgroup or ""
        if kind != "space":
            tokens.append(_Token(kind, match.group(), position))
        position = match.end()
    tokens.append(_Token("end", "", len(text)))
    return tokens


@dataclass(frozen=True, slots=True)
class _Number:
    value: float


@dataclass(frozen=True, slots=True)
class _Variable:
    name: str


@dataclass(frozen=True, slots=True)
class _Unary:
    op: str
    operand: "_Node"


@dataclass(frozen=True, slots=True)
class _Binary:
    op: str
    left: "_Node"
    right: "_Node"


_Node = Union[_Number, _Variable, _Unary, _Binary]


class _Parser:
    def __init__(self, tokens: list[_Token], vocabulary: Vocabulary, max_depth: int) -> None:
        self.tokens = tokens
        self.vocabulary = vocabulary
        self.max_depth = max_depth
        self.index = 0
        self.depth = 0
        self.variables: list[str] = []

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _descend(self, position: int) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise FormulaSyntaxError(position, f"Formula nests deeper than {self.max_depth} levels")

    def parse(self) -> _Node:
        if self.current.kind == "end":
            raise FormulaSyntaxError(0, "Formula is empty")
        node = self._expr()
        if self.current.kind != "end":
            raise FormulaSyntaxError(
                self.current.position, f"Unexpected {self.current.text!r}"
            )
        return node

    def _expr(self) -> _Node:
        node = self._term()
        while self.current.kind == "op" and self.current.text in "+-":
            op = self._advance().text
            node = _Binary(op, node, self._term())
        return node

    def _term(self) -> _Node:
        node = self._unary()
        while self.current.kind == "op" and self.current.text in "*/":
            op = self._advance().text
            node = _Binary(op, node, self._unary())
        return node

    def _unary(self) -> _Node:
        token = self.current
        if token.kind == "op" and token.text in "+-":
            self._advance()
            self._descend(token.position)
            operand = self._unary()
            self.depth -= 1
            return _Unary(token.text, operand)
        return self._atom()

    def _atom(self) -> _Node:
        token = self._advance()
        if token.kind == "number":
            return _Number(float(token.text))
        if token.kind == "name":
            if token.text not in self.vocabulary:
                raise InvalidVariable(token.text, token.position)
            if token.text not in self.variables:
                self.variables.append(token.text)
            return _Variable(token.text)
        if token.kind == "op" and token.text == "(":
            self._descend(token.position)
            node = self._expr()
            closing = self._advance()
            if closing.kind != "op" or closing.text != ")":
                raise FormulaSyntaxError(closing.position, "Expected ')'")
            self.depth -= 1
            return node
        if token.kind == "end":
            raise FormulaSyntaxError(token.position, "Unexpected end of formula")
        raise FormulaSyntaxError(token.position, f"Unexpected {token.text!r}")


def _evaluate(node: _Node, bindings: Mapping[str, float]) -> float:
    if isinstance(node, _Number):
        return node.value
    if isinstance(node, _Variable):
        return float(bindings.get(node.name, 0.0))
    if isinstance(node, _Unary):
        operand = _evaluate(node.operand, bindings)
        return -operand if node.op == "-" else operand
    left = _evaluate(node.left, bindings)
    right = _evaluate(node.right, bindings)
    if node.op == "+":
        return left + right
    if node.op == "-":
        return left - right
    if node.op == "*":
        return left * right
    if right == 0:
        raise NonFiniteResult("Division by zero")
    return left / right


@dataclass(frozen=True, slots=True)
class CompiledFormula:
    """A parsed expression ready to be evaluated many times."""

    source: str
    vocabulary: Vocabulary
    variables: tuple[str, ...]
    _root: _Node

    def evaluate(self, bindings: Mapping[str, float]) -> float:
        value = _evaluate(self._root, bindings)
        if not math.isfinite(value):
            raise NonFiniteResult()
        return value


def compile_formula(
    text: str,
    vocabulary: Vocabulary = BATTLE_VOCABULARY,
    *,
    config: RulesConfig | None = None,
) -> CompiledFormula:
    """Parse ``text`` against ``vocabulary``; raises :class:`FormulaError`."""

    config = config or DEFAULT_CONFIG
    source = text.strip()
    if len(source) > config.max_formula_length:
        raise FormulaSyntaxError(
            config.max_formula_length,
            f"Formula is longer than {config.max_formula_length} characters",
        )
    parser = _Parser(_tokenize(source), vocabulary, config.max_formula_depth)
    root = parser.parse()
    return CompiledFormula(source, vocabulary, tuple(parser.variables), root)


@dataclass(frozen=True, slots=True)
class FormulaResult:
    """Either a resolved number or the error that prevented it."""

    value: Optional[float] = None
    error: Optional[FormulaError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> float:
        if self.error is not None:
            raise self.error
        return float(self.value or 0.0)


def resolve(
    value: float | int | str,
    bindings: Mapping[str, float],
    vocabulary: Vocabulary = BATTLE_VOCABULARY,
    *,
    config: RulesConfig | None = None,
) -> FormulaResult:
    """Resolve a formula value. Never raises; errors come back on the result."""

    if isinstance(value, bool):
        return FormulaResult(error=FormulaSyntaxError(0, "Booleans are not formula values"))
    if isinstance(value, (int, float)):
        number = float(value)
        if not math.isfinite(number):
            return FormulaResult(error=NonFiniteResult())
        return FormulaResult(value=number)
    if not isinstance(value, str):
        return FormulaResult(
            error=FormulaSyntaxError(0, f"Expected a number or formula, got {type(value).__name__}")
        )
    try:
        return FormulaResult(value=compile_formula(value, vocabulary, config=config).evaluate(bindings))
    except FormulaError as exc:
        return FormulaResult(error=exc)


def resolve_or_default(
    value: float | int | str,
    bindings: Mapping[str, float],
    default: float | None = None,
    vocabulary: Vocabulary = BATTLE_VOCABULARY,
    *,
    config: RulesConfig | None = None,
) -> float:
    config = config or DEFAULT_CONFIG
    result = resolve(value, bindings, vocabulary, config=config)
    if result.ok:
        return float(result.value)
    fallback = config.formula_fallback if default is None else default
    log.warning("Formula %r failed (%s); using %s", value, result.error, fallback)
    return fallback


@dataclass(frozen=True, slots=True)
class AnnotatedFormula:
    text: str
    variables: tuple[str, ...]


def annotate(
    expression: str,
    labels: Mapping[str, str] | None = None,
) -> AnnotatedFormula:
    """Replace known variables in ``expression`` with human-readable labels.

    Longer names are matched first and only whole identifiers are replaced,
    so ``self_bone_structure`` never yields a partial ``self_b...`` match.
    """

    merged = dict(VARIABLE_LABELS)
    if labels:
        merged.update(labels)
    if not expression or not merged:
        return AnnotatedFormula(expression, ())
    names = sorted(merged, key=len, reverse=True)
    pattern = re.compile(r"\b(" + "|".join(re.escape(name) for name in names) + r")\b")
    used: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in used:
            used.append(name)
        return merged[name]

    return AnnotatedFormula(pattern.sub(_replace, expression), tuple(used))


@dataclass(frozen=True, slots=True)
class FormulaValidation:
    valid: bool
    error: Optional[str] = None
    preview: Optional[float] = None


def validate_formula(
    expression: str,
    vocabulary: Vocabulary = BATTLE_VOCABULARY,
    *,
    config: RulesConfig | None = None,
) -> FormulaValidation:
    """Authoring-time check of an expression.

    The formula must parse, reference only ``vocabulary`` and evaluate to a
    finite number with every variable bound to 1. ``preview`` is the value
    with every variable bound to 10, when that is finite.
    """

    if not expression or not expression.strip():
        return FormulaValidation(False, "Formula cannot be empty")
    try:
        compiled = compile_formula(expression, vocabulary, config=config)
        compiled.evaluate({name: 1.0 for name in vocabulary.variables})
    except FormulaError as exc:
        return FormulaValidation(False, str(exc))
    try:
        preview: float | None = compiled.evaluate(
            {name: PREVIEW_BINDING_VALUE for name in vocabulary.variables}
        )
    except NonFiniteResult:
        preview = None
    return FormulaValidation(True, None, preview)


def format_formula_preview(
    expression: str, vocabulary: Vocabulary = CULTIVATION_VOCABULARY
) -> str:
    validation = validate_formula(expression, vocabulary)
    if not validation.valid:
        return validation.error or "Invalid formula"
    if validation.preview is not None:
        shown = ", ".join(f"{name}={PREVIEW_BINDING_VALUE:g}" for name in sorted(vocabulary.variables))
        if len(vocabulary.variables) > 5:
            shown = f"every variable={PREVIEW_BINDING_VALUE:g}"
        return f"Preview ({shown}): {validation.preview:.2f}"
    return "Formula is valid"


def cultivation_bindings(x: float, y: float, z: float, a: float) -> dict[str, float]:
    """Bindings for a manual's experience formula."""

    return {"x": float(x), "y": float(y), "z": float(z), "a": float(a), "A": float(a)}


__all__ = [
    "AnnotatedFormula",
    "BATTLE_VOCABULARY",
    "CULTIVATION_VOCABULARY",
    "CompiledFormula",
    "FormulaError",
    "FormulaResult",
    "FormulaSyntaxError",
    "FormulaValidation",
    "InvalidVariable",
    "NonFiniteResult",
    "PROGRESSION_VOCABULARY",
    "VOCABULARIES",
    "Vocabulary",
    "annotate",
    "compile_formula",
    "cultivation_bindings",
    "format_formula_preview",
    "resolve",
    "resolve_or_default",
    "validate_formula",
]
