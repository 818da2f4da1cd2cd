"""
Piggy Service
Orchestrates the pure round-up / sweep / valuation core around storage.

Callers own persistence: this service fetches state, calls the core,
and writes results back within the caller's session/transaction.
Sweeps are the exception and commit before releasing the per-user lock.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.models import (
    AssetBreakdown,
    Holding,
    HoldingDiscrepancy,
    LedgerEntry,
    PortfolioPreset,
    RebalanceRecommendation,
    RoundupRule,
    SweepResult,
    Transaction,
    UserSettings,
)
from piggy.domain.services.config_engine import ConfigEngine
from piggy.domain.services.portfolio_valuator import PortfolioValuator
from piggy.domain.services.roundup_engine import RoundupEngine
from piggy.domain.services.sweep_engine import SweepEngine
from piggy.infrastructure.db.repositories.holding_repository import HoldingRepository
from piggy.infrastructure.db.repositories.ledger_repository import LedgerRepository
from piggy.infrastructure.db.repositories.order_repository import OrderRepository
from piggy.infrastructure.db.repositories.settings_repository import UserSettingsRepository
from piggy.infrastructure.db.repositories.transaction_repository import TransactionRepository
from piggy.infrastructure.market_data.types import PriceFeed
from piggy.utils.formatting import format_currency, format_percentage, to_decimal
from piggy.utils.time import now_ist_naive

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
PRICE_TICK = Decimal("0.0001")

# One sweep at a time per user within this process
_SWEEP_LOCKS: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _sweep_lock(user_id: str) -> asyncio.Lock:
    lock = _SWEEP_LOCKS.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _SWEEP_LOCKS[user_id] = lock
    return lock


@dataclass(frozen=True)
class PiggyDashboard:
    """Read-only values for UI/reporting, recomputed on every request"""
    user_id: str
    settings: UserSettings
    piggy_balance: Decimal
    portfolio_value: Decimal
    total_invested: Decimal
    total_gains: Decimal
    gains_percent: Decimal
    weekly_target: Decimal
    weekly_progress: Decimal
    weekly_progress_pct: Decimal
    weekly_roundup_count: int
    sweep_eligible: bool
    min_sweep_amount: Decimal
    assets: List[AssetBreakdown] = field(default_factory=list)
    prices_missing: List[str] = field(default_factory=list)


class PiggyService:
    """Per-session facade over the piggy core"""

    def __init__(
        self,
        session: AsyncSession,
        config_engine: ConfigEngine,
        price_feed: PriceFeed,
    ):
        self.session = session
        self.config_engine = config_engine
        self.price_feed = price_feed
        self.valuator = PortfolioValuator()

        self.transactions = TransactionRepository(session)
        self.ledger = LedgerRepository(session)
        self.orders = OrderRepository(session)
        self.holdings = HoldingRepository(session)
        self.user_settings = UserSettingsRepository(session)

    # ------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------

    async def get_settings(self, user_id: str) -> UserSettings:
        """Stored settings, or configured defaults for a new user"""
        stored = await self.user_settings.get(user_id)
        if stored is not None:
            return stored
        return UserSettings(
            user_id=user_id,
            roundup_rule=self.config_engine.default_rule,
            portfolio_preset=self.config_engine.default_preset_name,
            auto_invest_enabled=True,
            weekly_target=self.config_engine.weekly_target,
        )

    async def update_settings(
        self,
        user_id: str,
        round_to_nearest=None,
        min_roundup=None,
        max_roundup=None,
        portfolio_preset: Optional[str] = None,
        auto_invest_enabled: Optional[bool] = None,
        weekly_target=None,
    ) -> UserSettings:
        """
        Apply a partial settings change

        A new rule replaces the old one wholesale; round-up credits are
        recomputed from transactions on the next read.

        Raises:
            InvalidConfigurationError: rule is invalid
            UnknownPresetError: preset is not configured
        """
        current = await self.get_settings(user_id)
        rule = current.roundup_rule
        new_rule = RoundupRule(
            round_to_nearest=rule.round_to_nearest if round_to_nearest is None else round_to_nearest,
            min_roundup=rule.min_roundup if min_roundup is None else min_roundup,
            max_roundup=rule.max_roundup if max_roundup is None else max_roundup,
        )
        self.config_engine.validate_rule(new_rule)

        preset_name = current.portfolio_preset if portfolio_preset is None else portfolio_preset
        self.config_engine.get_preset(preset_name)

        updated = replace(
            current,
            roundup_rule=new_rule,
            portfolio_preset=preset_name,
            auto_invest_enabled=(
                current.auto_invest_enabled if auto_invest_enabled is None else auto_invest_enabled
            ),
            weekly_target=current.weekly_target if weekly_target is None else to_decimal(weekly_target),
        )
        await self.user_settings.save(updated)

        if new_rule != rule:
            logger.info(
                "Round-up rule changed for %s: %s/%s/%s -> %s/%s/%s",
                user_id,
                rule.round_to_nearest, rule.min_roundup, rule.max_roundup,
                new_rule.round_to_nearest, new_rule.min_roundup, new_rule.max_roundup,
            )
        return updated

    # ------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------

    async def ingest_transaction(self, user_id: str, transaction: Transaction) -> Tuple[bool, Decimal]:
        """
        Record a transaction from the transaction source

        Returns:
            (stored, round-up under the active rule); duplicates are not stored
        """
        user_settings = await self.get_settings(user_id)
        stored = await self.transactions.add(user_id, transaction)
        if not stored:
            logger.info("Duplicate transaction %s for %s ignored", transaction.id, user_id)
            return False, ZERO

        engine = RoundupEngine(user_settings.roundup_rule, user_id=user_id)
        credits = engine.process_transactions([transaction])
        roundup = credits[0].amount if credits else ZERO
        logger.info(
            "Transaction %s stored | amount=%s roundup=%s upi_ref=%s",
            transaction.id,
            transaction.amount,
            roundup,
            transaction.upi_ref or "-",
        )
        return True, roundup

    async def top_up(self, user_id: str, amount) -> LedgerEntry:
        """Credit a manual top-up"""
        preset = await self._preset_for(user_id)
        entry = SweepEngine(preset, user_id=user_id).create_topup(amount)
        await self.ledger.append(entry)
        logger.info("Manual top-up %s for %s", format_currency(entry.amount, 2), user_id)
        return entry

    async def load_ledger(self, user_id: str, rule: Optional[RoundupRule] = None) -> List[LedgerEntry]:
        """Stored debits/top-ups plus round-up credits under the active rule"""
        if rule is None:
            rule = (await self.get_settings(user_id)).roundup_rule
        stored = await self.ledger.list_for_user(user_id)
        transactions = await self.transactions.list_for_user(user_id)
        return RoundupEngine(rule, user_id=user_id).rebuild_ledger(stored, transactions)

    # ------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------

    async def sweep(
        self,
        user_id: str,
        prices: Optional[Mapping[str, Decimal]] = None,
        amount=None,
    ) -> SweepResult:
        """
        Invest the piggy balance per the active preset

        Orders, the debit entry and the holding updates are committed
        together while the user is locked, so concurrent sweeps see each
        other's debits. Only the invested total is debited.
        """
        async with _sweep_lock(user_id):
            result = await self._sweep_locked(user_id, prices, amount)
            await self.session.commit()
        return result

    async def _sweep_locked(
        self,
        user_id: str,
        prices: Optional[Mapping[str, Decimal]],
        amount,
    ) -> SweepResult:
        user_settings = await self._lock_user(user_id)
        preset = self.config_engine.get_preset(user_settings.portfolio_preset)
        ledger = await self.load_ledger(user_id, user_settings.roundup_rule)

        symbols = [a.symbol for a in preset.allocations]
        prices, _ = await self._resolve_prices(symbols, prices)

        engine = self._sweep_engine(preset, user_id)
        result = engine.sweep(ledger, prices, amount=amount, now=now_ist_naive())
        if not result.executed:
            return result

        await self.ledger.append(result.debit_entry)
        await self.orders.create_batch(user_id, result.orders, debit_entry_id=result.debit_entry.id)

        holdings = await self.holdings.get_all(user_id)
        updated = self.valuator.apply_orders(holdings, result.orders)
        await self.holdings.upsert_many(user_id, updated.values())

        logger.info(
            "Sweep executed for %s | invested=%s residual=%s",
            user_id,
            format_currency(result.invested_amount, 2),
            format_currency(result.residual_amount, 2),
        )
        return result

    # ------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------

    async def refresh_holdings(
        self,
        user_id: str,
        prices: Optional[Mapping[str, Decimal]] = None,
    ) -> Tuple[List[Holding], List[str]]:
        """
        Apply a price tick to the holdings cache

        Returns:
            (holdings, symbols without a price)
        """
        holdings = await self.holdings.get_all(user_id)
        prices, missing = await self._resolve_prices(list(holdings), prices)
        refreshed = self.valuator.refresh_prices(holdings.values(), prices)
        await self.holdings.upsert_many(user_id, refreshed)
        return refreshed, missing

    async def rebuild_holdings(self, user_id: str) -> List[HoldingDiscrepancy]:
        """
        Reconcile the holdings cache with order history and rebuild on mismatch

        Last known market prices are carried over to the rebuilt holdings.
        """
        holdings = await self.holdings.get_all(user_id)
        orders = await self.orders.list_for_user(user_id)
        issues = self.valuator.reconcile(holdings, orders)
        if not issues:
            return issues

        for issue in issues:
            logger.warning(
                "Holding %s for %s out of sync: units %s vs %s, cost %s vs %s",
                issue.symbol,
                user_id,
                issue.holding_units,
                issue.expected_units,
                issue.holding_cost,
                issue.expected_cost,
            )

        rebuilt = self.valuator.rebuild_holdings(orders)
        last_prices = {s: h.current_price for s, h in holdings.items()}
        rebuilt_list = self.valuator.refresh_prices(rebuilt.values(), last_prices)
        await self.holdings.replace_all(user_id, rebuilt_list)
        return issues

    async def rebalance(
        self,
        user_id: str,
        prices: Optional[Mapping[str, Decimal]] = None,
    ) -> List[RebalanceRecommendation]:
        """Advisory buy/sell/hold per held asset"""
        preset = await self._preset_for(user_id)
        holdings = await self.holdings.get_all(user_id)
        prices, _ = await self._resolve_prices(list(holdings), prices)
        refreshed = self.valuator.refresh_prices(holdings.values(), prices)
        return self.valuator.rebalance_recommendations(
            refreshed,
            preset,
            tolerance_pct=self.config_engine.rebalance_tolerance_pct,
        )

    async def get_dashboard(
        self,
        user_id: str,
        prices: Optional[Mapping[str, Decimal]] = None,
        now: Optional[datetime] = None,
    ) -> PiggyDashboard:
        """Derived balances and returns; nothing here is cached"""
        user_settings = await self.get_settings(user_id)
        preset = self.config_engine.get_preset(user_settings.portfolio_preset)
        ledger = await self.load_ledger(user_id, user_settings.roundup_rule)

        holdings = await self.holdings.get_all(user_id)
        prices, missing = await self._resolve_prices(list(holdings), prices)
        refreshed = self.valuator.refresh_prices(holdings.values(), prices)

        engine = self._sweep_engine(preset, user_id)
        balance = engine.calculate_balance(ledger)
        returns = self.valuator.calculate_returns(refreshed)
        weekly = RoundupEngine.weekly_progress(ledger, user_settings.weekly_target, now=now)
        logger.debug(
            "Dashboard for %s | balance=%s value=%s gains=%s",
            user_id,
            format_currency(balance, 2),
            format_currency(returns.current, 2),
            format_percentage(returns.gains_percent),
        )

        return PiggyDashboard(
            user_id=user_id,
            settings=user_settings,
            piggy_balance=balance,
            portfolio_value=returns.current,
            total_invested=returns.invested,
            total_gains=returns.gains,
            gains_percent=returns.gains_percent,
            weekly_target=weekly.target,
            weekly_progress=weekly.amount,
            weekly_progress_pct=weekly.percentage,
            weekly_roundup_count=weekly.roundup_count,
            sweep_eligible=engine.is_sweep_eligible(balance),
            min_sweep_amount=preset.min_sweep_amount,
            assets=self.valuator.asset_breakdown(refreshed, preset),
            prices_missing=missing,
        )

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    async def _preset_for(self, user_id: str) -> PortfolioPreset:
        user_settings = await self.get_settings(user_id)
        return self.config_engine.get_preset(user_settings.portfolio_preset)

    async def _lock_user(self, user_id: str) -> UserSettings:
        """Row-lock the user's settings, creating them from defaults if needed"""
        locked = await self.user_settings.lock(user_id)
        if locked is None:
            await self.user_settings.save(await self.get_settings(user_id))
            locked = await self.user_settings.lock(user_id)
        return locked

    def _sweep_engine(self, preset: PortfolioPreset, user_id: str) -> SweepEngine:
        return SweepEngine(
            preset,
            min_order_units=self.config_engine.min_order_units,
            unit_precision=self.config_engine.unit_precision,
            user_id=user_id,
        )

    async def _resolve_prices(
        self,
        symbols: List[str],
        override: Optional[Mapping[str, Decimal]],
    ) -> Tuple[Dict[str, Decimal], List[str]]:
        """Caller-supplied prices win; the feed fills the rest. Quoted to the stored tick."""
        prices: Dict[str, Decimal] = {
            s: to_decimal(p) for s, p in (override or {}).items() if p is not None
        }
        wanted = [s for s in symbols if s not in prices]
        if wanted:
            prices.update(await self.price_feed.get_current_prices(wanted))
        prices = {
            s: to_decimal(p).quantize(PRICE_TICK, rounding=ROUND_HALF_UP) for s, p in prices.items()
        }

        missing = [s for s in symbols if s not in prices]
        if missing:
            logger.warning("Prices missing for %s", ",".join(missing))
        return prices, missing
