"""
CONFIG ENGINE
Load, validate, and expose piggy configuration

RESPONSIBILITIES:
- Load YAML configuration files (app.yml, presets.yml)
- Validate round-up rules and portfolio presets
- Expose read-only typed objects

RULES:
- No defaults if a config file is missing
- Fail fast on invalid config
- Deterministic output
"""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from piggy.domain.errors import InvalidConfigurationError, UnknownPresetError
from piggy.domain.models import AllocationRule, PortfolioPreset, RoundupRule
from piggy.utils.formatting import to_decimal

logger = logging.getLogger(__name__)


class ConfigEngine:
    """
    Configuration Engine
    Single source of truth for rule and preset configuration
    """

    def __init__(self, config_dir: Path):
        """Initialize with config directory"""
        self.config_dir = Path(config_dir)
        self._app_config: Dict[str, Any] = None
        self._presets: Dict[str, PortfolioPreset] = None
        self._default_rule: RoundupRule = None

    def load_all(self) -> None:
        """Load all configuration files"""
        self._load_app_config()
        self._load_presets()
        self._validate_all()
        logger.info(
            "Configuration loaded | presets=%s default_preset=%s",
            ",".join(self._presets),
            self.default_preset_name,
        )

    def _read_yaml(self, filename: str) -> Dict[str, Any]:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise InvalidConfigurationError(f"Malformed YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidConfigurationError(f"{path} must contain a mapping")
        return data

    def _load_app_config(self) -> None:
        """Load application config from app.yml"""
        self._app_config = self._read_yaml("app.yml")

        rule_data = self.get_app_setting("roundup", "default_rule")
        self._default_rule = self.rule_from_mapping(rule_data)

    def _load_presets(self) -> None:
        """Load portfolio presets from presets.yml"""
        data = self._read_yaml("presets.yml")
        presets_data = data.get("presets")
        if not presets_data:
            raise InvalidConfigurationError("presets.yml defines no presets")

        presets = {}
        for name, preset_data in presets_data.items():
            presets[name] = self.preset_from_mapping(name, preset_data)
        self._presets = presets

    def _validate_all(self) -> None:
        """Cross-file validation"""
        if self.default_preset_name not in self._presets:
            raise InvalidConfigurationError(
                f"Default preset '{self.default_preset_name}' is not defined in presets.yml"
            )

        allowed = self.allowed_round_to_nearest
        if allowed and self._default_rule.round_to_nearest not in allowed:
            raise InvalidConfigurationError(
                f"Default round_to_nearest {self._default_rule.round_to_nearest} "
                f"is not one of {allowed}"
            )

        if self.unit_precision < 0:
            raise InvalidConfigurationError("sweep.unit_precision cannot be negative")
        if self.min_order_units < Decimal("0"):
            raise InvalidConfigurationError("sweep.min_order_units cannot be negative")

    # ------------------------------------------------------------
    # Builders (also used at the settings-update boundary)
    # ------------------------------------------------------------

    @staticmethod
    def rule_from_mapping(data: Dict[str, Any]) -> RoundupRule:
        """Build a RoundupRule from a config/settings mapping"""
        if not isinstance(data, dict):
            raise InvalidConfigurationError("Round-up rule must be a mapping")
        try:
            return RoundupRule(
                round_to_nearest=to_decimal(data["round_to_nearest"]),
                min_roundup=to_decimal(data["min_roundup"]),
                max_roundup=to_decimal(data["max_roundup"]),
            )
        except KeyError as e:
            raise InvalidConfigurationError(f"Round-up rule missing field: {e.args[0]}") from e

    @staticmethod
    def preset_from_mapping(name: str, data: Dict[str, Any]) -> PortfolioPreset:
        """Build a PortfolioPreset from a config mapping"""
        if not isinstance(data, dict):
            raise InvalidConfigurationError(f"Preset {name} must be a mapping")
        try:
            allocations = [
                AllocationRule(
                    symbol=item["symbol"],
                    weight_pct=to_decimal(item["weight_pct"]),
                    name=item.get("name", item["symbol"]),
                    asset_type=item.get("type", "etf"),
                )
                for item in data.get("allocations") or []
            ]
            min_sweep = to_decimal(data["min_sweep_amount"])
        except KeyError as e:
            raise InvalidConfigurationError(f"Preset {name} missing field: {e.args[0]}") from e

        return PortfolioPreset(
            name=name,
            allocations=tuple(allocations),
            min_sweep_amount=min_sweep,
        )

    def validate_rule(self, rule: RoundupRule) -> RoundupRule:
        """Reject rules whose step is not an offered choice"""
        allowed = self.allowed_round_to_nearest
        if allowed and rule.round_to_nearest not in allowed:
            raise InvalidConfigurationError(
                f"round_to_nearest must be one of {[str(a) for a in allowed]}"
            )
        return rule

    # ------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------

    @property
    def default_rule(self) -> RoundupRule:
        return self._default_rule

    @property
    def allowed_round_to_nearest(self) -> List[Decimal]:
        values = self._app_config.get("roundup", {}).get("allowed_round_to_nearest") or []
        return [to_decimal(v) for v in values]

    @property
    def presets(self) -> Dict[str, PortfolioPreset]:
        return dict(self._presets)

    def get_preset(self, name: str) -> PortfolioPreset:
        """Get preset by name"""
        try:
            return self._presets[name]
        except KeyError:
            raise UnknownPresetError(name) from None

    @property
    def default_preset_name(self) -> str:
        return self.get_app_setting("sweep", "default_preset")

    @property
    def weekly_target(self) -> Decimal:
        return to_decimal(self.get_app_setting("savings", "weekly_target"))

    @property
    def unit_precision(self) -> int:
        return int(self.get_app_setting("sweep", "unit_precision"))

    @property
    def min_order_units(self) -> Decimal:
        return to_decimal(self.get_app_setting("sweep", "min_order_units"))

    @property
    def rebalance_tolerance_pct(self) -> Decimal:
        return to_decimal(self.get_app_setting("rebalance", "tolerance_pct"))

    @property
    def fallback_prices(self) -> Dict[str, Decimal]:
        prices = self._app_config.get("market_data", {}).get("fallback_prices") or {}
        return {symbol: to_decimal(price) for symbol, price in prices.items()}

    def get_app_setting(self, *keys: str, default: Optional[Any] = None) -> Any:
        """
        Nested lookup into app.yml

        Raises:
            InvalidConfigurationError: key path missing and no default given
        """
        node: Any = self._app_config
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                if default is not None:
                    return default
                raise InvalidConfigurationError(f"Missing app setting: {'.'.join(keys)}")
            node = node[key]
        return node
