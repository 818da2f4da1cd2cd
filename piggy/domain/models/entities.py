"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies

All monetary fields are Decimal. Inputs given as int/float/str are
coerced once here, at the core boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Tuple

from piggy.domain.errors import InvalidConfigurationError
from piggy.utils.formatting import quantize_money, to_decimal
from piggy.utils.time import now_ist_naive

ZERO = Decimal("0")
HUNDRED = Decimal("100")
WEIGHT_TOLERANCE = Decimal("0.01")


def _coerce(instance, *names: str) -> None:
    """Coerce the named fields of a frozen dataclass to Decimal"""
    for name in names:
        object.__setattr__(instance, name, to_decimal(getattr(instance, name)))


class TransactionDirection(str, Enum):
    """Money flow direction of a UPI transaction"""
    DEBIT = "debit"
    CREDIT = "credit"


class LedgerEntryType(str, Enum):
    """Piggy ledger entry kind"""
    ROUNDUP_CREDIT = "roundup_credit"
    INVESTMENT_DEBIT = "investment_debit"
    MANUAL_TOPUP = "manual_topup"

    @property
    def is_credit(self) -> bool:
        return self in (LedgerEntryType.ROUNDUP_CREDIT, LedgerEntryType.MANUAL_TOPUP)


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    PENDING = "pending"
    FILLED = "filled"
    FAILED = "failed"


class RebalanceAction(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class Transaction:
    """External debit/credit event - Immutable"""
    id: str
    amount: Decimal
    timestamp: datetime
    merchant: str = ""
    category: str = ""
    direction: TransactionDirection = TransactionDirection.DEBIT
    upi_ref: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Transaction id cannot be empty")
        amount = to_decimal(self.amount)
        if not amount.is_finite():
            raise ValueError(f"Transaction amount must be finite, got {amount}")
        try:
            # Stored at paisa precision; credits are recomputed from the stored value
            object.__setattr__(self, "amount", quantize_money(amount))
        except InvalidOperation as e:
            raise ValueError(f"Transaction amount out of range: {amount}") from e
        object.__setattr__(self, "direction", TransactionDirection(self.direction))


@dataclass(frozen=True)
class RoundupRule:
    """Round-up configuration - Immutable, replaced on every settings change"""
    round_to_nearest: Decimal
    min_roundup: Decimal
    max_roundup: Decimal

    def __post_init__(self):
        _coerce(self, "round_to_nearest", "min_roundup", "max_roundup")
        if self.round_to_nearest <= ZERO:
            raise InvalidConfigurationError(
                f"round_to_nearest must be positive, got {self.round_to_nearest}"
            )
        if self.min_roundup < ZERO:
            raise InvalidConfigurationError(
                f"min_roundup cannot be negative, got {self.min_roundup}"
            )
        if self.max_roundup < self.min_roundup:
            raise InvalidConfigurationError(
                f"max_roundup ({self.max_roundup}) must be >= min_roundup ({self.min_roundup})"
            )


@dataclass(frozen=True)
class LedgerEntry:
    """
    Append-only accounting record - Immutable

    `amount` is a non-negative magnitude; `type` carries the sign.
    """
    id: str
    user_id: str
    amount: Decimal
    type: LedgerEntryType
    timestamp: datetime
    reference: Optional[str] = None

    def __post_init__(self):
        _coerce(self, "amount")
        object.__setattr__(self, "type", LedgerEntryType(self.type))
        if self.amount < ZERO:
            raise ValueError("Ledger amount must be a non-negative magnitude")

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type.is_credit else -self.amount


@dataclass(frozen=True)
class AllocationRule:
    """Single slice of a preset"""
    symbol: str
    weight_pct: Decimal
    name: str = ""
    asset_type: str = "etf"

    def __post_init__(self):
        if not self.symbol:
            raise InvalidConfigurationError("Allocation symbol cannot be empty")
        _coerce(self, "weight_pct")
        if not ZERO <= self.weight_pct <= HUNDRED:
            raise InvalidConfigurationError(
                f"{self.symbol} weight must be between 0 and 100, got {self.weight_pct}"
            )


@dataclass(frozen=True)
class PortfolioPreset:
    """Named target allocation plus the minimum sweepable balance - Immutable"""
    name: str
    allocations: Tuple[AllocationRule, ...]
    min_sweep_amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "allocations", tuple(self.allocations))
        _coerce(self, "min_sweep_amount")
        if self.min_sweep_amount < ZERO:
            raise InvalidConfigurationError("min_sweep_amount cannot be negative")

        symbols = [a.symbol for a in self.allocations]
        if len(symbols) != len(set(symbols)):
            raise InvalidConfigurationError(f"Duplicate symbols in preset {self.name}")

        # An all-zero preset is a valid no-op sweep target
        total = self.total_weight
        if total != ZERO and abs(total - HUNDRED) > WEIGHT_TOLERANCE:
            raise InvalidConfigurationError(
                f"Preset {self.name} weights must sum to 100, got {total}"
            )

    @property
    def total_weight(self) -> Decimal:
        return sum((a.weight_pct for a in self.allocations), ZERO)

    def target_weights(self) -> dict[str, Decimal]:
        """symbol -> weight percentage"""
        return {a.symbol: a.weight_pct for a in self.allocations}


@dataclass(frozen=True)
class Order:
    """Sweep decision to buy one symbol - Immutable"""
    id: str
    symbol: str
    quantity: Decimal
    amount: Decimal
    price: Decimal
    side: OrderSide = OrderSide.BUY
    status: OrderStatus = OrderStatus.PENDING
    timestamp: datetime = field(default_factory=now_ist_naive)

    def __post_init__(self):
        _coerce(self, "quantity", "amount", "price")
        object.__setattr__(self, "side", OrderSide(self.side))
        object.__setattr__(self, "status", OrderStatus(self.status))
        if self.quantity <= ZERO:
            raise ValueError("Order quantity must be positive")
        if self.price <= ZERO:
            raise ValueError("Order price must be positive")


@dataclass(frozen=True)
class Holding:
    """Per-symbol position - Immutable snapshot, replaced on every change"""
    symbol: str
    units: Decimal
    avg_cost: Decimal
    current_price: Decimal

    def __post_init__(self):
        _coerce(self, "units", "avg_cost", "current_price")
        if self.units < ZERO:
            raise ValueError("Holding units cannot be negative")

    @property
    def current_value(self) -> Decimal:
        return self.units * self.current_price

    @property
    def invested_amount(self) -> Decimal:
        return self.units * self.avg_cost


@dataclass(frozen=True)
class PortfolioReturns:
    """Aggregate valuation, full precision"""
    current: Decimal
    invested: Decimal
    gains: Decimal
    gains_percent: Decimal


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep"""
    orders: Tuple[Order, ...]
    requested_amount: Decimal
    invested_amount: Decimal
    residual_amount: Decimal
    debit_entry: Optional[LedgerEntry] = None
    skipped_symbols: Tuple[str, ...] = ()

    @property
    def executed(self) -> bool:
        return bool(self.orders)


@dataclass(frozen=True)
class WeeklyProgress:
    """Round-up savings since the start of the week"""
    target: Decimal
    amount: Decimal
    percentage: Decimal
    roundup_count: int


@dataclass(frozen=True)
class AssetBreakdown:
    """Per-asset view of the portfolio against its preset"""
    symbol: str
    units: Decimal
    avg_cost: Decimal
    current_price: Decimal
    total_cost: Decimal
    current_value: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    allocation_percent: Decimal
    target_percent: Decimal

    @property
    def drift(self) -> Decimal:
        return self.allocation_percent - self.target_percent


@dataclass(frozen=True)
class RebalanceRecommendation:
    """Advisory drift correction for one asset"""
    symbol: str
    current_value: Decimal
    target_value: Decimal
    difference_value: Decimal
    action: RebalanceAction
    recommended_units: int


@dataclass(frozen=True)
class HoldingDiscrepancy:
    """Holding cache that disagrees with its order history"""
    symbol: str
    holding_units: Decimal
    expected_units: Decimal
    holding_cost: Decimal
    expected_cost: Decimal


@dataclass(frozen=True)
class UserSettings:
    """Active per-user configuration - replaced, never mutated"""
    user_id: str
    roundup_rule: RoundupRule
    portfolio_preset: str
    auto_invest_enabled: bool = True
    weekly_target: Decimal = Decimal("200")

    def __post_init__(self):
        _coerce(self, "weekly_target")
        if self.weekly_target < ZERO:
            raise InvalidConfigurationError("weekly_target cannot be negative")
