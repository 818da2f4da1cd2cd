"""
ROUNDUP ENGINE
Convert UPI debits → spare-change credits

RESPONSIBILITIES:
- Compute the round-up of a single amount under a rule
- Emit one roundup_credit ledger entry per eligible debit
- Recompute all round-up credits when the rule changes
- NO BALANCES, NO PRICES

RULES:
- Exact multiples round up by zero
- Round-ups below min_roundup are dropped, not floored up
- Round-ups above max_roundup are capped
- Credit ids derive from the transaction id (recomputation is idempotent)
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Iterable, List, Optional

from piggy.domain.models import (
    LedgerEntry,
    LedgerEntryType,
    RoundupRule,
    Transaction,
    TransactionDirection,
    WeeklyProgress,
)
from piggy.utils.formatting import PAISA, to_decimal
from piggy.utils.time import now_ist_naive, to_ist_naive, week_start

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DEFAULT_USER_ID = "current_user"
ROUNDUP_ID_PREFIX = "roundup_"


def roundup_entry_id(transaction_id: str) -> str:
    """Deterministic ledger id for the credit derived from a transaction"""
    return f"{ROUNDUP_ID_PREFIX}{transaction_id}"


class RoundupEngine:
    """
    Roundup Engine
    Stateless apart from the rule it is bound to
    """

    def __init__(self, rule: RoundupRule, user_id: str = DEFAULT_USER_ID):
        """
        Args:
            rule: Validated round-up rule
            user_id: Owner recorded on emitted ledger entries
        """
        if not isinstance(rule, RoundupRule):
            raise TypeError(f"rule must be a RoundupRule, got {type(rule).__name__}")
        self.rule = rule
        self.user_id = user_id

    def calculate_roundup(self, amount) -> Decimal:
        """
        Spare change for one amount

        Args:
            amount: Transaction amount in ₹

        Returns:
            Round-up in ₹, 2 decimal places; 0 when not eligible
        """
        try:
            return self._roundup(to_decimal(amount))
        except InvalidOperation:
            # NaN, or too large for the decimal context
            logger.warning("Round-up skipped for out-of-range amount %s", amount)
            return ZERO

    def _roundup(self, amount: Decimal) -> Decimal:
        if amount <= ZERO:
            return ZERO

        step = self.rule.round_to_nearest
        remainder = amount % step
        if remainder == ZERO:
            return ZERO

        raw = step - remainder
        if raw < self.rule.min_roundup:
            return ZERO

        result = min(raw, self.rule.max_roundup).quantize(PAISA, rounding=ROUND_HALF_UP)
        # Rounding must not push past the configured bounds
        if result > self.rule.max_roundup:
            result = self.rule.max_roundup.quantize(PAISA, rounding=ROUND_DOWN)
        if result <= ZERO or result < self.rule.min_roundup:
            return ZERO
        return result

    def process_transactions(self, transactions: Iterable[Transaction]) -> List[LedgerEntry]:
        """
        Emit round-up credits for a batch, in input order

        Credits and zero round-ups produce no entry. A transaction id seen
        twice is credited once.
        """
        entries: List[LedgerEntry] = []
        seen: set[str] = set()

        for txn in transactions:
            if txn.id in seen:
                logger.debug("Duplicate transaction %s ignored", txn.id)
                continue
            seen.add(txn.id)

            if txn.direction != TransactionDirection.DEBIT:
                continue

            roundup = self.calculate_roundup(txn.amount)
            if roundup == ZERO:
                continue

            entries.append(LedgerEntry(
                id=roundup_entry_id(txn.id),
                user_id=self.user_id,
                amount=roundup,
                type=LedgerEntryType.ROUNDUP_CREDIT,
                timestamp=to_ist_naive(txn.timestamp),
                reference=txn.id,
            ))

        return entries

    def rebuild_ledger(
        self,
        ledger: Iterable[LedgerEntry],
        transactions: Iterable[Transaction],
    ) -> List[LedgerEntry]:
        """
        Replace every round-up credit with ones computed under this rule

        Top-ups and investment debits are kept as-is and in order; fresh
        credits follow them.
        """
        kept = [e for e in ledger if e.type != LedgerEntryType.ROUNDUP_CREDIT]
        credits = self.process_transactions(transactions)
        logger.debug(
            "Ledger rebuilt: %d kept entries, %d round-up credits",
            len(kept),
            len(credits),
        )
        return kept + credits

    @staticmethod
    def find_orphaned_references(
        ledger: Iterable[LedgerEntry],
        transactions: Iterable[Transaction],
    ) -> List[LedgerEntry]:
        """
        Round-up credits whose reference matches no known transaction

        Cosmetic only; the balance fold ignores references.
        """
        known = {t.id for t in transactions}
        return [
            e for e in ledger
            if e.type == LedgerEntryType.ROUNDUP_CREDIT
            and e.reference is not None
            and e.reference not in known
        ]

    @staticmethod
    def weekly_progress(
        ledger: Iterable[LedgerEntry],
        target,
        now: Optional[datetime] = None,
    ) -> WeeklyProgress:
        """
        Round-up savings since Sunday 00:00 IST

        Args:
            ledger: Full ledger (round-up credits included)
            target: Weekly savings goal in ₹
            now: Reference time (default: current IST time)
        """
        target = to_decimal(target)
        start = week_start(now or now_ist_naive())

        amount = ZERO
        count = 0
        for entry in ledger:
            if entry.type != LedgerEntryType.ROUNDUP_CREDIT:
                continue
            if to_ist_naive(entry.timestamp) < start:
                continue
            amount += entry.amount
            count += 1

        percentage = amount / target * Decimal("100") if target > ZERO else ZERO
        return WeeklyProgress(
            target=target,
            amount=amount,
            percentage=percentage,
            roundup_count=count,
        )


def calculate_roundup(amount, rule: RoundupRule) -> Decimal:
    """Functional form of RoundupEngine.calculate_roundup"""
    return RoundupEngine(rule).calculate_roundup(amount)


def process_transactions(
    transactions: Iterable[Transaction],
    rule: RoundupRule,
    user_id: str = DEFAULT_USER_ID,
) -> List[LedgerEntry]:
    """Functional form of RoundupEngine.process_transactions"""
    return RoundupEngine(rule, user_id=user_id).process_transactions(transactions)
