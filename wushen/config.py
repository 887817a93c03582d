"""Rule engine configuration utilities."""

from __future__ import annotations

import logging
import math
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .constants import (
    DEFAULT_MAX_FORMULA_DEPTH,
    DEFAULT_MAX_FORMULA_LENGTH,
    THREE_DIMENSION_LIMIT,
)

log = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r", name, raw)
        return default
    if not math.isfinite(value):
        log.warning("Ignoring non-finite %s=%r", name, raw)
        return default
    return value


@dataclass(slots=True)
class RulesConfig:
    max_formula_length: int = DEFAULT_MAX_FORMULA_LENGTH
    max_formula_depth: int = DEFAULT_MAX_FORMULA_DEPTH
    formula_fallback: float = 0.0
    attribute_limit: int = THREE_DIMENSION_LIMIT
    labels_path: Path | None = None

    @classmethod
    def from_env(cls) -> "RulesConfig":
        max_formula_length = _env_int("WUSHEN_MAX_FORMULA_LENGTH", DEFAULT_MAX_FORMULA_LENGTH)
        max_formula_depth = _env_int("WUSHEN_MAX_FORMULA_DEPTH", DEFAULT_MAX_FORMULA_DEPTH)
        formula_fallback = _env_float("WUSHEN_FORMULA_FALLBACK", 0.0)
        attribute_limit = _env_int("WUSHEN_ATTRIBUTE_LIMIT", THREE_DIMENSION_LIMIT)
        labels = os.getenv("WUSHEN_LABELS_PATH", "").strip()

        if max_formula_length <= 0:
            max_formula_length = DEFAULT_MAX_FORMULA_LENGTH
        max_formula_depth = max(1, max_formula_depth)
        attribute_limit = max(0, attribute_limit)

        return cls(
            max_formula_length=max_formula_length,
            max_formula_depth=max_formula_depth,
            formula_fallback=formula_fallback,
            attribute_limit=attribute_limit,
            labels_path=Path(labels) if labels else None,
        )

    def load_labels(self) -> Mapping[str, str]:
        """Read variable label overrides from ``labels_path``.

        The file is TOML with a ``[labels]`` table of ``variable = "Label"``
        pairs. A missing or unreadable file yields no overrides.
        """

        if self.labels_path is None:
            return {}
        try:
            with self.labels_path.open("rb") as handle:
                data = tomllib.load(handle)
        except FileNotFoundError:
            log.warning("Label file %s does not exist", self.labels_path)
            return {}
        except (OSError, tomllib.TOMLDecodeError) as exc:
            log.warning("Could not read label file %s: %s", self.labels_path, exc)
            return {}
        table = data.get("labels", data)
        if not isinstance(table, Mapping):
            return {}
        return {
            str(key): str(value)
            for key, value in table.items()
            if isinstance(value, str) and value.strip()
        }


DEFAULT_CONFIG = RulesConfig()


__all__ = ["DEFAULT_CONFIG", "RulesConfig"]
