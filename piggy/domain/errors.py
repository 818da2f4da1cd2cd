"""
Domain errors

Only programmer/configuration errors raise. Data-shape irregularities
(missing prices, empty ledgers, zero balances) resolve to empty results.
"""


class InvalidConfigurationError(ValueError):
    """Rule, preset or config file is malformed"""


class UnknownPresetError(KeyError):
    """Requested portfolio preset is not configured"""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown portfolio preset: {self.name}"
