"""
Price feed factory
"""

from piggy.domain.services.config_engine import ConfigEngine
from piggy.infrastructure.market_data.static_provider import StaticPriceFeed
from piggy.infrastructure.market_data.types import PriceFeed


def get_price_feed(config_engine: ConfigEngine) -> PriceFeed:
    """Build the configured price feed"""
    provider = config_engine.get_app_setting("market_data", "provider", default="static")
    if provider == "static":
        return StaticPriceFeed(config_engine.fallback_prices)
    raise ValueError(f"Unsupported market data provider: {provider}")
