"""
PORTFOLIO VALUATOR
Holdings from executed orders → valuation and returns

RESPONSIBILITIES:
- Maintain weighted-average cost basis per symbol
- Refresh market prices without touching cost basis
- Aggregate invested / current / gains
- Cross-check the holdings cache against order history

RULES:
- Buy-only: no realized P&L, no partial sells
- Full precision internally, rounding is a presentation concern
- Empty portfolio → zeros, never NaN/Infinity
"""

import logging
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Iterable, List, Mapping, Optional

from piggy.domain.models import (
    AssetBreakdown,
    Holding,
    HoldingDiscrepancy,
    Order,
    PortfolioPreset,
    PortfolioReturns,
    RebalanceAction,
    RebalanceRecommendation,
)
from piggy.utils.formatting import to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _pct(part: Decimal, whole: Decimal) -> Decimal:
    return part / whole * HUNDRED if whole > ZERO else ZERO


class PortfolioValuator:
    """Portfolio Valuator - pure functions over holdings"""

    @staticmethod
    def update_holding(
        existing: Optional[Holding],
        new_units,
        new_price,
        symbol: Optional[str] = None,
    ) -> Holding:
        """
        Fold one purchase into a holding

        Args:
            existing: Current holding, or None for a first purchase
            new_units: Units bought (positive)
            new_price: Execution price per unit
            symbol: Required when `existing` is None

        Returns:
            New Holding; current_price becomes the trade price
        """
        new_units = to_decimal(new_units)
        new_price = to_decimal(new_price)
        if new_units <= ZERO:
            raise ValueError("Purchased units must be positive")
        if new_price <= ZERO:
            raise ValueError("Purchase price must be positive")

        if existing is None:
            if not symbol:
                raise ValueError("symbol is required for a new holding")
            return Holding(
                symbol=symbol,
                units=new_units,
                avg_cost=new_price,
                current_price=new_price,
            )

        if symbol and symbol != existing.symbol:
            raise ValueError(f"Cannot apply {symbol} purchase to {existing.symbol} holding")

        total_units = existing.units + new_units
        total_cost = existing.units * existing.avg_cost + new_units * new_price
        return Holding(
            symbol=existing.symbol,
            units=total_units,
            avg_cost=total_cost / total_units,
            current_price=new_price,
        )

    @staticmethod
    def refresh_prices(
        holdings: Iterable[Holding],
        prices: Mapping[str, Decimal],
    ) -> List[Holding]:
        """
        Apply a price tick; symbols without a positive price keep their last price
        """
        refreshed = []
        for holding in holdings:
            raw = prices.get(holding.symbol) if prices else None
            price = to_decimal(raw) if raw is not None else None
            if price is None or price <= ZERO:
                refreshed.append(holding)
                continue
            refreshed.append(Holding(
                symbol=holding.symbol,
                units=holding.units,
                avg_cost=holding.avg_cost,
                current_price=price,
            ))
        return refreshed

    def apply_orders(
        self,
        holdings: Mapping[str, Holding],
        orders: Iterable[Order],
    ) -> Dict[str, Holding]:
        """Fold orders, in sequence, into a symbol -> holding map"""
        updated = dict(holdings)
        for order in orders:
            updated[order.symbol] = self.update_holding(
                updated.get(order.symbol),
                order.quantity,
                order.price,
                symbol=order.symbol,
            )
        return updated

    def rebuild_holdings(self, orders: Iterable[Order]) -> Dict[str, Holding]:
        """Recompute the holdings cache from order history alone"""
        return self.apply_orders({}, orders)

    @staticmethod
    def reconcile(
        holdings: Mapping[str, Holding],
        orders: Iterable[Order],
        tolerance=Decimal("0.01"),
    ) -> List[HoldingDiscrepancy]:
        """
        Compare cached holdings with the cost basis implied by orders

        Returns:
            One discrepancy per symbol whose units differ or whose
            units * avg_cost differs from Σ order.amount by more than tolerance
        """
        tolerance = to_decimal(tolerance)
        expected_units: Dict[str, Decimal] = {}
        expected_cost: Dict[str, Decimal] = {}
        for order in orders:
            expected_units[order.symbol] = expected_units.get(order.symbol, ZERO) + order.quantity
            expected_cost[order.symbol] = expected_cost.get(order.symbol, ZERO) + order.amount

        issues = []
        for symbol in sorted(set(holdings) | set(expected_units)):
            holding = holdings.get(symbol)
            units = holding.units if holding else ZERO
            cost = holding.invested_amount if holding else ZERO
            want_units = expected_units.get(symbol, ZERO)
            want_cost = expected_cost.get(symbol, ZERO)
            if units != want_units or abs(cost - want_cost) > tolerance:
                issues.append(HoldingDiscrepancy(
                    symbol=symbol,
                    holding_units=units,
                    expected_units=want_units,
                    holding_cost=cost,
                    expected_cost=want_cost,
                ))
        return issues

    @staticmethod
    def calculate_holding_value(holding: Holding) -> Decimal:
        return holding.units * holding.current_price

    def calculate_portfolio_value(self, holdings: Iterable[Holding]) -> Decimal:
        return sum((self.calculate_holding_value(h) for h in holdings), ZERO)

    @staticmethod
    def calculate_returns(holdings: Iterable[Holding]) -> PortfolioReturns:
        """
        Aggregate invested, current value and gains

        gains_percent is exactly 0 for an empty or zero-cost portfolio.
        """
        invested = ZERO
        current = ZERO
        for holding in holdings:
            invested += holding.units * holding.avg_cost
            current += holding.units * holding.current_price

        gains = current - invested
        return PortfolioReturns(
            current=current,
            invested=invested,
            gains=gains,
            gains_percent=_pct(gains, invested),
        )

    @staticmethod
    def asset_breakdown(
        holdings: Iterable[Holding],
        preset: Optional[PortfolioPreset] = None,
    ) -> List[AssetBreakdown]:
        """Per-asset cost, value, P&L and allocation against the preset target"""
        holdings = list(holdings)
        targets = preset.target_weights() if preset else {}
        total_value = sum((h.current_value for h in holdings), ZERO)

        breakdown = []
        for holding in holdings:
            total_cost = holding.invested_amount
            value = holding.current_value
            pnl = value - total_cost
            breakdown.append(AssetBreakdown(
                symbol=holding.symbol,
                units=holding.units,
                avg_cost=holding.avg_cost,
                current_price=holding.current_price,
                total_cost=total_cost,
                current_value=value,
                unrealized_pnl=pnl,
                unrealized_pnl_percent=_pct(pnl, total_cost),
                allocation_percent=_pct(value, total_value),
                target_percent=targets.get(holding.symbol, ZERO),
            ))
        return breakdown

    def rebalance_recommendations(
        self,
        holdings: Iterable[Holding],
        preset: PortfolioPreset,
        tolerance_pct=Decimal("5"),
    ) -> List[RebalanceRecommendation]:
        """
        Advisory drift correction per held asset

        An asset whose allocation drifts from target by more than
        `tolerance_pct` percentage points gets a buy/sell of whole units.
        """
        tolerance_pct = to_decimal(tolerance_pct)
        assets = self.asset_breakdown(holdings, preset)
        total_value = sum((a.current_value for a in assets), ZERO)

        recommendations = []
        for asset in assets:
            target_value = total_value * asset.target_percent / HUNDRED
            difference = target_value - asset.current_value

            action = RebalanceAction.HOLD
            units = 0
            if abs(asset.drift) > tolerance_pct:
                action = RebalanceAction.BUY if difference > ZERO else RebalanceAction.SELL
                if asset.current_price > ZERO:
                    units = int((abs(difference) / asset.current_price).to_integral_value(
                        rounding=ROUND_FLOOR
                    ))

            recommendations.append(RebalanceRecommendation(
                symbol=asset.symbol,
                current_value=asset.current_value,
                target_value=target_value,
                difference_value=difference,
                action=action,
                recommended_units=units,
            ))

        logger.debug(
            "Rebalance check | preset=%s drifted=%d",
            preset.name,
            sum(1 for r in recommendations if r.action != RebalanceAction.HOLD),
        )
        return recommendations


def update_holding(existing: Optional[Holding], new_units, new_price, symbol: Optional[str] = None) -> Holding:
    """Functional form of PortfolioValuator.update_holding"""
    return PortfolioValuator.update_holding(existing, new_units, new_price, symbol=symbol)


def calculate_returns(holdings: Iterable[Holding]) -> PortfolioReturns:
    """Functional form of PortfolioValuator.calculate_returns"""
    return PortfolioValuator.calculate_returns(holdings)
