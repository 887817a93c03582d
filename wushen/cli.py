"""Command line helpers for content authors."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .config import RulesConfig
from .formula import VOCABULARIES, annotate, format_formula_preview, validate_formula


def _command_check_formula(args: argparse.Namespace) -> int:
    config = RulesConfig.from_env()
    vocabulary = VOCABULARIES[args.vocabulary]
    validation = validate_formula(args.expression, vocabulary, config=config)
    if not validation.valid:
        print(f"Invalid formula: {validation.error}", file=sys.stderr)
        return 1
    print(format_formula_preview(args.expression, vocabulary))
    return 0


def _command_annotate(args: argparse.Namespace) -> int:
    config = RulesConfig.from_env()
    annotated = annotate(args.expression, config.load_labels())
    print(annotated.text)
    if annotated.variables:
        print("Variables: " + ", ".join(annotated.variables))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wushen", description="Check and explain rule formulas."
    )
    subparsers = parser.add_subparsers(dest="command")

    check_parser = subparsers.add_parser(
        "check-formula", help="Validate a formula and show its preview value"
    )
    check_parser.add_argument("expression", help="Formula to check")
    check_parser.add_argument(
        "--vocabulary",
        choices=sorted(VOCABULARIES),
        default="battle",
        help="Variable set the formula may use (default: battle)",
    )
    check_parser.set_defaults(func=_command_check_formula)

    annotate_parser = subparsers.add_parser(
        "annotate", help="Show a formula with readable variable names"
    )
    annotate_parser.add_argument("expression", help="Formula to annotate")
    annotate_parser.set_defaults(func=_command_annotate)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 0
    return args.func(args)


__all__ = ["build_parser", "main"]
