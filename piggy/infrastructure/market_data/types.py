"""
Price feed protocol for type hints.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Protocol


class PriceFeed(Protocol):
    async def get_current_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        """symbol -> price; symbols without a quote are simply absent"""
        ...
