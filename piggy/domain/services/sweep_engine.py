"""
SWEEP ENGINE
Convert piggy balance → fractional ETF buy orders

RESPONSIBILITIES:
- Fold the ledger into the investable balance
- Split a sweep amount across the preset allocation
- Convert each slice into units at the current price
- Debit the ledger for what was actually invested
- NO SCHEDULING, NO HOLDINGS

RULES:
- Balance is recomputed from the full ledger on every call
- Allocation slices are floored to whole rupees
- Units are floored to 6 decimal places
- Missing prices skip the slice, never raise
- Σ order amounts ≤ sweep amount; the residual stays in the balance
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_FLOOR
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from piggy.domain.models import (
    LedgerEntry,
    LedgerEntryType,
    Order,
    PortfolioPreset,
    SweepResult,
)
from piggy.utils.formatting import to_decimal
from piggy.utils.time import now_ist_naive

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_UNIT_PRECISION = 6


class SweepEngine:
    """
    Sweep Engine
    Decides what to buy given that a sweep is happening
    """

    def __init__(
        self,
        preset: PortfolioPreset,
        min_order_units: Decimal = Decimal("1"),
        unit_precision: int = DEFAULT_UNIT_PRECISION,
        user_id: str = "current_user",
    ):
        """
        Args:
            preset: Allocation and minimum sweep threshold
            min_order_units: Units a slice must afford before it is bought
                (1 = at least one whole unit, 0 = any fraction)
            unit_precision: Decimal places kept on order quantities
            user_id: Owner recorded on emitted ledger entries
        """
        if not isinstance(preset, PortfolioPreset):
            raise TypeError(f"preset must be a PortfolioPreset, got {type(preset).__name__}")
        min_order_units = to_decimal(min_order_units)
        if min_order_units < ZERO:
            raise ValueError("min_order_units cannot be negative")
        if unit_precision < 0:
            raise ValueError("unit_precision cannot be negative")

        self.preset = preset
        self.min_order_units = min_order_units
        self.unit_step = Decimal(1).scaleb(-unit_precision)
        self.user_id = user_id

    @staticmethod
    def calculate_balance(ledger: Iterable[LedgerEntry]) -> Decimal:
        """
        Credits minus debits over the full ledger

        Pure fold with no cached state; references are ignored.
        """
        return sum((entry.signed_amount for entry in ledger), ZERO)

    def is_sweep_eligible(self, balance) -> bool:
        """Balance has reached the preset minimum (and is positive)"""
        balance = to_decimal(balance)
        return balance > ZERO and balance >= self.preset.min_sweep_amount

    def create_orders(self, amount, prices: Mapping[str, Decimal]) -> List[Order]:
        """
        Split an amount across the preset and convert to orders

        Args:
            amount: ₹ to invest
            prices: symbol -> current price (missing symbols are skipped)

        Returns:
            One order per allocation that produced a positive unit count
        """
        orders, _ = self._plan_orders(to_decimal(amount), prices, now_ist_naive())
        return orders

    def sweep(
        self,
        ledger: Iterable[LedgerEntry],
        prices: Mapping[str, Decimal],
        amount=None,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        """
        Run one sweep against a ledger snapshot

        The debit entry carries only the invested total. The residual
        left by flooring stays in the balance for the next sweep.

        Args:
            ledger: Consistent ledger snapshot (caller serializes writers)
            prices: symbol -> current price
            amount: ₹ to invest (default: full balance, capped at balance)
            now: Timestamp for emitted orders/entries

        Returns:
            SweepResult; empty (no debit) when ineligible or nothing bought
        """
        now = now or now_ist_naive()
        balance = self.calculate_balance(ledger)
        requested = balance if amount is None else min(to_decimal(amount), balance)

        if not self.is_sweep_eligible(balance) or requested <= ZERO:
            logger.info(
                "Sweep skipped | preset=%s balance=%s min=%s",
                self.preset.name,
                balance,
                self.preset.min_sweep_amount,
            )
            return SweepResult(
                orders=(),
                requested_amount=max(requested, ZERO),
                invested_amount=ZERO,
                residual_amount=max(requested, ZERO),
            )

        orders, skipped = self._plan_orders(requested, prices, now)
        invested = sum((o.amount for o in orders), ZERO)

        debit = None
        if orders:
            debit = LedgerEntry(
                id=f"invest_{uuid.uuid4().hex}",
                user_id=self.user_id,
                amount=invested,
                type=LedgerEntryType.INVESTMENT_DEBIT,
                timestamp=now,
            )

        logger.info(
            "Sweep planned | preset=%s requested=%s invested=%s orders=%d skipped=%s",
            self.preset.name,
            requested,
            invested,
            len(orders),
            ",".join(skipped) or "-",
        )

        return SweepResult(
            orders=tuple(orders),
            requested_amount=requested,
            invested_amount=invested,
            residual_amount=requested - invested,
            debit_entry=debit,
            skipped_symbols=tuple(skipped),
        )

    def create_topup(self, amount, now: Optional[datetime] = None) -> LedgerEntry:
        """Manual top-up credit"""
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise ValueError("Top-up amount must be positive")
        return LedgerEntry(
            id=f"topup_{uuid.uuid4().hex}",
            user_id=self.user_id,
            amount=amount,
            type=LedgerEntryType.MANUAL_TOPUP,
            timestamp=now or now_ist_naive(),
        )

    def _plan_orders(
        self,
        amount: Decimal,
        prices: Mapping[str, Decimal],
        now: datetime,
    ) -> Tuple[List[Order], List[str]]:
        orders: List[Order] = []
        skipped: List[str] = []

        if amount <= ZERO:
            return orders, skipped

        for allocation in self.preset.allocations:
            symbol = allocation.symbol
            if allocation.weight_pct <= ZERO:
                continue

            # Floor to whole rupees so slices never overdraw the balance
            alloc_amount = (amount * allocation.weight_pct / HUNDRED).to_integral_value(
                rounding=ROUND_FLOOR
            )

            price = self._price_for(symbol, prices)
            if price is None:
                logger.warning("Price unavailable for %s, slice skipped", symbol)
                skipped.append(symbol)
                continue

            if alloc_amount <= ZERO or alloc_amount < price * self.min_order_units:
                logger.debug(
                    "Slice too small for %s: ₹%s at ₹%s", symbol, alloc_amount, price
                )
                skipped.append(symbol)
                continue

            units = self._floor_units(alloc_amount, price)
            if units <= ZERO:
                skipped.append(symbol)
                continue

            orders.append(Order(
                id=f"order_{uuid.uuid4().hex[:12]}_{symbol}",
                symbol=symbol,
                quantity=units,
                amount=units * price,
                price=price,
                timestamp=now,
            ))

        return orders, skipped

    def _floor_units(self, amount: Decimal, price: Decimal) -> Decimal:
        """Units affordable with `amount`, floored to unit precision"""
        return (amount / price).quantize(self.unit_step, rounding=ROUND_DOWN)

    @staticmethod
    def _price_for(symbol: str, prices: Mapping[str, Decimal]) -> Optional[Decimal]:
        raw = prices.get(symbol) if prices else None
        if raw is None:
            return None
        price = to_decimal(raw)
        if price <= ZERO:
            return None
        return price


def calculate_balance(ledger: Iterable[LedgerEntry]) -> Decimal:
    """Functional form of SweepEngine.calculate_balance"""
    return SweepEngine.calculate_balance(ledger)


def create_orders(
    amount,
    preset: PortfolioPreset,
    prices: Dict[str, Decimal],
    min_order_units: Decimal = Decimal("1"),
) -> List[Order]:
    """Functional form of SweepEngine.create_orders"""
    return SweepEngine(preset, min_order_units=min_order_units).create_orders(amount, prices)
