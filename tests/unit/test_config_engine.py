import shutil
from decimal import Decimal
from pathlib import Path

import pytest

from piggy.domain.errors import InvalidConfigurationError, UnknownPresetError
from piggy.domain.models import RoundupRule
from piggy.domain.services.config_engine import ConfigEngine

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


def _config_copy(tmp_path: Path) -> Path:
    target = tmp_path / "config"
    shutil.copytree(CONFIG_DIR, target)
    return target


@pytest.mark.unit
def test_loads_repository_config(config_engine):
    assert set(config_engine.presets) == {"safe", "balanced", "growth"}
    assert config_engine.default_preset_name == "balanced"
    assert config_engine.default_rule == RoundupRule(
        round_to_nearest=Decimal("10"),
        min_roundup=Decimal("1"),
        max_roundup=Decimal("50"),
    )
    assert config_engine.weekly_target == Decimal("200")
    assert config_engine.unit_precision == 6
    assert config_engine.min_order_units == Decimal("1")
    assert config_engine.fallback_prices["NIFTYBEES"] == Decimal("285.5")


@pytest.mark.unit
def test_balanced_preset(config_engine):
    preset = config_engine.get_preset("balanced")
    assert preset.min_sweep_amount == Decimal("100")
    assert preset.target_weights() == {"NIFTYBEES": Decimal("70"), "GOLDBEES": Decimal("30")}


@pytest.mark.unit
def test_unknown_preset(config_engine):
    with pytest.raises(UnknownPresetError) as exc:
        config_engine.get_preset("yolo")
    assert "yolo" in str(exc.value)
    # Still a KeyError for callers doing dict-style lookups
    assert isinstance(exc.value, KeyError)


@pytest.mark.unit
def test_validate_rule_rejects_unoffered_step(config_engine):
    rule = RoundupRule(round_to_nearest=Decimal("15"), min_roundup=Decimal("1"), max_roundup=Decimal("50"))
    with pytest.raises(InvalidConfigurationError):
        config_engine.validate_rule(rule)


@pytest.mark.unit
def test_missing_file_fails_fast(tmp_path):
    config_dir = _config_copy(tmp_path)
    (config_dir / "presets.yml").unlink()
    with pytest.raises(FileNotFoundError):
        ConfigEngine(config_dir).load_all()


@pytest.mark.unit
def test_weights_not_summing_to_hundred(tmp_path):
    config_dir = _config_copy(tmp_path)
    (config_dir / "presets.yml").write_text(
        "presets:\n"
        "  balanced:\n"
        "    min_sweep_amount: 100\n"
        "    allocations:\n"
        "      - {symbol: NIFTYBEES, weight_pct: 70}\n"
        "      - {symbol: GOLDBEES, weight_pct: 20}\n",
        encoding="utf-8",
    )
    with pytest.raises(InvalidConfigurationError):
        ConfigEngine(config_dir).load_all()


@pytest.mark.unit
def test_default_preset_must_exist(tmp_path):
    config_dir = _config_copy(tmp_path)
    app_yml = config_dir / "app.yml"
    app_yml.write_text(
        app_yml.read_text(encoding="utf-8").replace("default_preset: balanced", "default_preset: yolo"),
        encoding="utf-8",
    )
    with pytest.raises(InvalidConfigurationError):
        ConfigEngine(config_dir).load_all()


@pytest.mark.unit
def test_malformed_yaml(tmp_path):
    config_dir = _config_copy(tmp_path)
    (config_dir / "app.yml").write_text("roundup: [unclosed\n", encoding="utf-8")
    with pytest.raises(InvalidConfigurationError):
        ConfigEngine(config_dir).load_all()


@pytest.mark.unit
def test_missing_app_setting(config_engine):
    with pytest.raises(InvalidConfigurationError):
        config_engine.get_app_setting("sweep", "nope")
    assert config_engine.get_app_setting("sweep", "nope", default=3) == 3
