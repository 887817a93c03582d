from pathlib import Path
import logging
import sys

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from wushen import cli
from wushen.config import RulesConfig
from wushen.constants import DEFAULT_MAX_FORMULA_DEPTH, DEFAULT_MAX_FORMULA_LENGTH

_ENV_NAMES = (
    "WUSHEN_MAX_FORMULA_LENGTH",
    "WUSHEN_MAX_FORMULA_DEPTH",
    "WUSHEN_FORMULA_FALLBACK",
    "WUSHEN_ATTRIBUTE_LIMIT",
    "WUSHEN_LABELS_PATH",
)


def _clear_env(monkeypatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_from_env_defaults(monkeypatch):
    _clear_env(monkeypatch)

    config = RulesConfig.from_env()

    assert config == RulesConfig()
    assert config.max_formula_length == DEFAULT_MAX_FORMULA_LENGTH
    assert config.max_formula_depth == DEFAULT_MAX_FORMULA_DEPTH
    assert config.attribute_limit == 100
    assert config.labels_path is None


def test_from_env_reads_overrides(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("WUSHEN_MAX_FORMULA_LENGTH", "64")
    monkeypatch.setenv("WUSHEN_MAX_FORMULA_DEPTH", "4")
    monkeypatch.setenv("WUSHEN_FORMULA_FALLBACK", "2.5")
    monkeypatch.setenv("WUSHEN_ATTRIBUTE_LIMIT", "150")
    monkeypatch.setenv("WUSHEN_LABELS_PATH", str(tmp_path / "labels.toml"))

    config = RulesConfig.from_env()

    assert config.max_formula_length == 64
    assert config.max_formula_depth == 4
    assert config.formula_fallback == 2.5
    assert config.attribute_limit == 150
    assert config.labels_path == tmp_path / "labels.toml"


def test_from_env_normalises_bad_values(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("WUSHEN_MAX_FORMULA_LENGTH", "0")
    monkeypatch.setenv("WUSHEN_MAX_FORMULA_DEPTH", "-3")
    monkeypatch.setenv("WUSHEN_FORMULA_FALLBACK", "nan")
    monkeypatch.setenv("WUSHEN_ATTRIBUTE_LIMIT", "lots")

    config = RulesConfig.from_env()

    assert config.max_formula_length == DEFAULT_MAX_FORMULA_LENGTH
    assert config.max_formula_depth == 1
    assert config.formula_fallback == 0.0
    assert config.attribute_limit == 100


def test_load_labels_from_toml(tmp_path):
    path = tmp_path / "labels.toml"
    path.write_text('[labels]\nself_hp = "Vitality"\nopponent_hp = ""\n', encoding="utf-8")

    labels = RulesConfig(labels_path=path).load_labels()

    assert labels == {"self_hp": "Vitality"}


def test_load_labels_missing_or_broken_file(tmp_path):
    broken = tmp_path / "broken.toml"
    broken.write_text("self_hp = ", encoding="utf-8")

    assert RulesConfig().load_labels() == {}
    assert RulesConfig(labels_path=tmp_path / "missing.toml").load_labels() == {}
    assert RulesConfig(labels_path=broken).load_labels() == {}


def test_cli_check_formula(monkeypatch, capsys):
    _clear_env(monkeypatch)

    assert cli.main(["check-formula", "x + y", "--vocabulary", "cultivation"]) == 0
    out = capsys.readouterr().out
    assert out.strip().endswith("20.00")


def test_cli_check_formula_reports_errors(monkeypatch, capsys):
    _clear_env(monkeypatch)

    assert cli.main(["check-formula", "self_luck * 2"]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Invalid formula" in captured.err
    assert "self_luck" in captured.err


def test_cli_annotate_uses_label_file(monkeypatch, tmp_path, capsys):
    _clear_env(monkeypatch)
    path = tmp_path / "labels.toml"
    path.write_text('[labels]\nself_hp = "Vitality"\n', encoding="utf-8")
    monkeypatch.setenv("WUSHEN_LABELS_PATH", str(path))

    assert cli.main(["annotate", "self_hp + opponent_qi"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == ["Vitality + Opponent Qi", "Variables: self_hp, opponent_qi"]


def test_cli_without_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "check-formula" in capsys.readouterr().out


def test_cli_configures_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    assert cli.main([]) == 0
    assert calls == [{"level": logging.INFO}]
