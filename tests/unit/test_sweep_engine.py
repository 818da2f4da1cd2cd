"""
Unit Tests for SweepEngine

Balance fold, allocation slicing, residual handling and the
round-up -> sweep -> holdings cycle.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from piggy.domain.errors import InvalidConfigurationError
from piggy.domain.models import (
    AllocationRule,
    LedgerEntry,
    LedgerEntryType,
    PortfolioPreset,
    RoundupRule,
    Transaction,
)
from piggy.domain.services.portfolio_valuator import PortfolioValuator
from piggy.domain.services.roundup_engine import RoundupEngine
from piggy.domain.services.sweep_engine import SweepEngine, calculate_balance, create_orders

NOW = datetime(2026, 10, 19, 15, 0)
PRICES = {"NIFTYBEES": Decimal("285.50"), "GOLDBEES": Decimal("65.25")}


@pytest.fixture
def balanced() -> PortfolioPreset:
    return PortfolioPreset(
        name="balanced",
        allocations=(
            AllocationRule(symbol="NIFTYBEES", weight_pct=Decimal("70")),
            AllocationRule(symbol="GOLDBEES", weight_pct=Decimal("30")),
        ),
        min_sweep_amount=Decimal("100"),
    )


def _entry(entry_id: str, amount, entry_type: LedgerEntryType) -> LedgerEntry:
    return LedgerEntry(
        id=entry_id,
        user_id="current_user",
        amount=Decimal(str(amount)),
        type=entry_type,
        timestamp=NOW,
    )


def _topup(amount) -> LedgerEntry:
    return _entry(f"topup_{amount}", amount, LedgerEntryType.MANUAL_TOPUP)


@pytest.mark.unit
class TestBalance:

    def test_credits_minus_debits(self):
        ledger = [
            _entry("r1", 3, LedgerEntryType.ROUNDUP_CREDIT),
            _topup(100),
            _entry("d1", 50, LedgerEntryType.INVESTMENT_DEBIT),
        ]
        assert calculate_balance(ledger) == Decimal("53")

    def test_fold_is_pure(self):
        ledger = [_topup(100), _entry("d1", "33.3", LedgerEntryType.INVESTMENT_DEBIT)]
        assert calculate_balance(ledger) == calculate_balance(ledger) == Decimal("66.7")

    def test_empty_ledger(self):
        assert calculate_balance([]) == Decimal("0")


@pytest.mark.unit
class TestCreateOrders:

    def test_never_overspends(self, balanced):
        price_sets = [
            PRICES,
            {"NIFTYBEES": Decimal("1.01"), "GOLDBEES": Decimal("0.99")},
            {"NIFTYBEES": Decimal("3333.33"), "GOLDBEES": Decimal("7")},
        ]
        for prices in price_sets:
            for amount in [0, 1, 99, 100, 141, 200, 999, Decimal("12345.67")]:
                for min_units in (Decimal("0"), Decimal("1")):
                    orders = create_orders(amount, balanced, prices, min_order_units=min_units)
                    assert sum(o.amount for o in orders) <= Decimal(str(amount))

    def test_missing_price_skips_slice(self, balanced):
        orders = create_orders(1000, balanced, {"NIFTYBEES": Decimal("285.50")})
        assert [o.symbol for o in orders] == ["NIFTYBEES"]

    def test_zero_weight_preset_is_noop(self):
        idle = PortfolioPreset(
            name="idle",
            allocations=(AllocationRule(symbol="NIFTYBEES", weight_pct=Decimal("0")),),
            min_sweep_amount=Decimal("0"),
        )
        assert create_orders(500, idle, PRICES) == []

    def test_slice_below_one_unit_skipped_by_default(self, balanced):
        # ₹140 cannot buy a whole NIFTYBEES at ₹285.50
        orders = create_orders(200, balanced, PRICES)
        assert orders == []

    def test_units_floored_to_six_decimals(self, balanced):
        orders = create_orders(1000, balanced, PRICES)
        by_symbol = {o.symbol: o for o in orders}

        assert by_symbol["NIFTYBEES"].quantity == Decimal("2.451838")
        assert by_symbol["GOLDBEES"].quantity == Decimal("4.597701")
        assert by_symbol["NIFTYBEES"].amount == Decimal("2.451838") * Decimal("285.50")

    def test_weights_must_sum_to_hundred(self):
        with pytest.raises(InvalidConfigurationError):
            PortfolioPreset(
                name="broken",
                allocations=(
                    AllocationRule(symbol="NIFTYBEES", weight_pct=Decimal("70")),
                    AllocationRule(symbol="GOLDBEES", weight_pct=Decimal("20")),
                ),
                min_sweep_amount=Decimal("100"),
            )


@pytest.mark.unit
class TestSweep:

    def test_below_minimum_is_skipped(self, balanced):
        result = SweepEngine(balanced).sweep([_topup(50)], PRICES, now=NOW)

        assert not result.executed
        assert result.debit_entry is None
        assert result.requested_amount == Decimal("50")
        assert result.residual_amount == Decimal("50")

    def test_non_positive_balance_is_ineligible(self):
        safe = PortfolioPreset(
            name="safe",
            allocations=(AllocationRule(symbol="GOLDBEES", weight_pct=Decimal("100")),),
            min_sweep_amount=Decimal("0"),
        )
        engine = SweepEngine(safe)
        assert not engine.is_sweep_eligible(Decimal("0"))
        assert engine.is_sweep_eligible(Decimal("0.01"))

    def test_debits_only_invested_total(self, balanced):
        engine = SweepEngine(balanced)
        ledger = [_topup(1000)]

        result = engine.sweep(ledger, PRICES, now=NOW)

        assert result.executed
        assert result.debit_entry.type == LedgerEntryType.INVESTMENT_DEBIT
        assert result.debit_entry.amount == result.invested_amount
        assert result.invested_amount <= Decimal("1000")
        assert result.residual_amount == Decimal("1000") - result.invested_amount
        assert engine.calculate_balance(ledger + [result.debit_entry]) == result.residual_amount

    def test_amount_capped_at_balance(self, balanced):
        result = SweepEngine(balanced).sweep([_topup(500)], PRICES, amount=800, now=NOW)
        assert result.requested_amount == Decimal("500")

    def test_partial_amount(self, balanced):
        result = SweepEngine(balanced).sweep([_topup(5000)], PRICES, amount=1000, now=NOW)
        assert result.requested_amount == Decimal("1000")
        assert result.invested_amount <= Decimal("1000")

    def test_missing_price_reported_not_raised(self, balanced):
        result = SweepEngine(balanced).sweep(
            [_topup(1000)], {"GOLDBEES": Decimal("65.25")}, now=NOW
        )
        assert [o.symbol for o in result.orders] == ["GOLDBEES"]
        assert result.skipped_symbols == ("NIFTYBEES",)

    def test_nothing_bought_leaves_ledger_untouched(self, balanced):
        result = SweepEngine(balanced).sweep([_topup(200)], PRICES, now=NOW)
        assert not result.executed
        assert result.debit_entry is None
        assert result.residual_amount == Decimal("200")

    def test_topup_must_be_positive(self, balanced):
        engine = SweepEngine(balanced)
        with pytest.raises(ValueError):
            engine.create_topup(0)
        entry = engine.create_topup("250.50", now=NOW)
        assert entry.type == LedgerEntryType.MANUAL_TOPUP
        assert entry.amount == Decimal("250.50")

    def test_negative_min_order_units_rejected(self, balanced):
        with pytest.raises(ValueError):
            SweepEngine(balanced, min_order_units=Decimal("-1"))


@pytest.mark.unit
def test_full_cycle_roundups_to_holdings(balanced):
    rule = RoundupRule(
        round_to_nearest=Decimal("10"),
        min_roundup=Decimal("1"),
        max_roundup=Decimal("50"),
    )
    roundups = RoundupEngine(rule)
    assert roundups.calculate_roundup(127) == Decimal("3")

    # 3 + 21 * 9 + 8 = ₹200
    txns = [Transaction(id="t0", amount=Decimal("127"), timestamp=NOW)]
    txns += [Transaction(id=f"t{i}", amount=Decimal("101"), timestamp=NOW) for i in range(1, 22)]
    txns.append(Transaction(id="t22", amount=Decimal("102"), timestamp=NOW))
    ledger = roundups.process_transactions(txns)

    engine = SweepEngine(balanced, min_order_units=Decimal("0"))
    assert engine.calculate_balance(ledger) == Decimal("200")

    result = engine.sweep(ledger, PRICES, now=NOW)
    by_symbol = {o.symbol: o for o in result.orders}

    assert by_symbol["NIFTYBEES"].quantity == Decimal("0.490367")
    assert by_symbol["GOLDBEES"].quantity == Decimal("0.919540")
    assert by_symbol["NIFTYBEES"].amount <= Decimal("140")
    assert by_symbol["GOLDBEES"].amount <= Decimal("60")
    assert Decimal("0") <= result.residual_amount < Decimal("0.01")

    holdings = PortfolioValuator().apply_orders({}, result.orders)
    assert holdings["NIFTYBEES"].units == Decimal("0.490367")
    assert holdings["NIFTYBEES"].avg_cost == Decimal("285.50")
    assert holdings["GOLDBEES"].units == Decimal("0.919540")
    assert holdings["GOLDBEES"].avg_cost == Decimal("65.25")

    after = ledger + [result.debit_entry]
    assert engine.calculate_balance(after) == result.residual_amount
