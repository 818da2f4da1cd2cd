"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    LedgerEntryType,
    OrderSide,
    OrderStatus,
    RebalanceAction,
    TransactionDirection,

    # Entities
    AllocationRule,
    AssetBreakdown,
    Holding,
    HoldingDiscrepancy,
    LedgerEntry,
    Order,
    PortfolioPreset,
    PortfolioReturns,
    RebalanceRecommendation,
    RoundupRule,
    SweepResult,
    Transaction,
    UserSettings,
    WeeklyProgress,
)

__all__ = [
    # Enums
    "LedgerEntryType",
    "OrderSide",
    "OrderStatus",
    "RebalanceAction",
    "TransactionDirection",

    # Entities
    "AllocationRule",
    "AssetBreakdown",
    "Holding",
    "HoldingDiscrepancy",
    "LedgerEntry",
    "Order",
    "PortfolioPreset",
    "PortfolioReturns",
    "RebalanceRecommendation",
    "RoundupRule",
    "SweepResult",
    "Transaction",
    "UserSettings",
    "WeeklyProgress",
]
