"""
Static price feed
Serves configured reference prices; used in development and as fallback.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Mapping

logger = logging.getLogger(__name__)


class StaticPriceFeed:
    """Price feed backed by a fixed symbol -> price map"""

    def __init__(self, prices: Mapping[str, Decimal]):
        self._prices = dict(prices)

    async def get_current_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        missing = [s for s in symbols if s not in self._prices]
        if missing:
            logger.warning("No static price for %s", ",".join(missing))
        return {s: self._prices[s] for s in symbols if s in self._prices}

