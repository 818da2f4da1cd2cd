"""
API schemas for the piggy routes

Money is accepted as Decimal and returned as float rounded to paisa;
unit quantities keep 6 decimal places.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from piggy.domain.models import (
    AssetBreakdown,
    Holding,
    LedgerEntry,
    Order,
    RebalanceRecommendation,
    UserSettings,
)
from piggy.utils.formatting import quantize_money

UNITS = Decimal("0.000001")


def money(value: Decimal) -> float:
    return float(quantize_money(value))


def units(value: Decimal) -> float:
    return float(value.quantize(UNITS))


# -------------------------------------------------------------------
# Requests
# -------------------------------------------------------------------

class TransactionRequest(BaseModel):
    """UPI transaction pushed by the transaction source"""
    id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., max_digits=12, decimal_places=2, description="Transaction amount in ₹")
    timestamp: Optional[datetime] = Field(None, description="Defaults to now (IST)")
    merchant: str = ""
    category: str = ""
    direction: Literal["debit", "credit"] = "debit"
    upi_ref: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    """Partial settings change; omitted fields keep their value"""
    round_to_nearest: Optional[Decimal] = None
    min_roundup: Optional[Decimal] = None
    max_roundup: Optional[Decimal] = None
    portfolio_preset: Optional[str] = None
    auto_invest_enabled: Optional[bool] = None
    weekly_target: Optional[Decimal] = Field(None, ge=0)


class PricesRequest(BaseModel):
    """Optional price override (symbol -> ₹); the feed fills gaps"""
    prices: Optional[Dict[str, Decimal]] = None


class SweepRequest(PricesRequest):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2, description="Default: full piggy balance")


class TopUpRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Top-up in ₹")


# -------------------------------------------------------------------
# Responses
# -------------------------------------------------------------------

class RoundupRuleResponse(BaseModel):
    round_to_nearest: float
    min_roundup: float
    max_roundup: float


class SettingsResponse(BaseModel):
    user_id: str
    roundup_rule: RoundupRuleResponse
    portfolio_preset: str
    auto_invest_enabled: bool
    weekly_target: float

    @classmethod
    def from_domain(cls, s: UserSettings) -> "SettingsResponse":
        return cls(
            user_id=s.user_id,
            roundup_rule=RoundupRuleResponse(
                round_to_nearest=money(s.roundup_rule.round_to_nearest),
                min_roundup=money(s.roundup_rule.min_roundup),
                max_roundup=money(s.roundup_rule.max_roundup),
            ),
            portfolio_preset=s.portfolio_preset,
            auto_invest_enabled=s.auto_invest_enabled,
            weekly_target=money(s.weekly_target),
        )


class IngestResponse(BaseModel):
    transaction_id: str
    stored: bool
    roundup: float


class LedgerEntryResponse(BaseModel):
    id: str
    amount: float
    type: str
    reference: Optional[str]
    timestamp: datetime

    @classmethod
    def from_domain(cls, e: LedgerEntry) -> "LedgerEntryResponse":
        return cls(
            id=e.id,
            amount=money(e.amount),
            type=e.type.value,
            reference=e.reference,
            timestamp=e.timestamp,
        )


class LedgerResponse(BaseModel):
    balance: float
    entries: List[LedgerEntryResponse]


class OrderResponse(BaseModel):
    id: str
    symbol: str
    side: str
    quantity: float
    price: float
    amount: float
    status: str

    @classmethod
    def from_domain(cls, o: Order) -> "OrderResponse":
        return cls(
            id=o.id,
            symbol=o.symbol,
            side=o.side.value,
            quantity=units(o.quantity),
            price=money(o.price),
            amount=money(o.amount),
            status=o.status.value,
        )


class SweepResponse(BaseModel):
    executed: bool
    requested_amount: float
    invested_amount: float
    residual_amount: float
    orders: List[OrderResponse]
    skipped_symbols: List[str]


class HoldingResponse(BaseModel):
    symbol: str
    units: float
    avg_cost: float
    current_price: float
    current_value: float

    @classmethod
    def from_domain(cls, h: Holding) -> "HoldingResponse":
        return cls(
            symbol=h.symbol,
            units=units(h.units),
            avg_cost=money(h.avg_cost),
            current_price=money(h.current_price),
            current_value=money(h.current_value),
        )


class HoldingsResponse(BaseModel):
    holdings: List[HoldingResponse]
    prices_missing: List[str] = []


class AssetResponse(BaseModel):
    symbol: str
    units: float
    avg_cost: float
    current_price: float
    total_cost: float
    current_value: float
    unrealized_pnl: float
    unrealized_pnl_percent: float
    allocation_percent: float
    target_percent: float

    @classmethod
    def from_domain(cls, a: AssetBreakdown) -> "AssetResponse":
        return cls(
            symbol=a.symbol,
            units=units(a.units),
            avg_cost=money(a.avg_cost),
            current_price=money(a.current_price),
            total_cost=money(a.total_cost),
            current_value=money(a.current_value),
            unrealized_pnl=money(a.unrealized_pnl),
            unrealized_pnl_percent=money(a.unrealized_pnl_percent),
            allocation_percent=money(a.allocation_percent),
            target_percent=money(a.target_percent),
        )


class DashboardResponse(BaseModel):
    user_id: str
    piggy_balance: float
    portfolio_value: float
    total_invested: float
    total_gains: float
    gains_percent: float
    weekly_target: float
    weekly_progress: float
    weekly_progress_pct: float
    weekly_roundup_count: int
    sweep_eligible: bool
    min_sweep_amount: float
    portfolio_preset: str
    assets: List[AssetResponse]
    prices_missing: List[str]


class RebalanceItemResponse(BaseModel):
    symbol: str
    action: str
    current_value: float
    target_value: float
    difference_value: float
    recommended_units: int

    @classmethod
    def from_domain(cls, r: RebalanceRecommendation) -> "RebalanceItemResponse":
        return cls(
            symbol=r.symbol,
            action=r.action.value,
            current_value=money(r.current_value),
            target_value=money(r.target_value),
            difference_value=money(r.difference_value),
            recommended_units=r.recommended_units,
        )


class ReconcileResponse(BaseModel):
    rebuilt: bool
    symbols: List[str]


class AllocationResponse(BaseModel):
    symbol: str
    name: str
    weight_pct: float
    type: str


class PresetResponse(BaseModel):
    name: str
    min_sweep_amount: float
    allocations: List[AllocationResponse]
