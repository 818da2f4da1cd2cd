"""
Transaction Repository
Insert-only store of ingested UPI transactions
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.models import Transaction, TransactionDirection
from piggy.infrastructure.db.models import TransactionModel
from piggy.utils.time import to_ist_naive


class TransactionRepository:
    """Repository for Transaction"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def add(self, user_id: str, transaction: Transaction) -> bool:
        """
        Store a transaction

        Returns:
            False if this user already has a transaction with the same id
        """
        existing = await self.get(user_id, transaction.id)
        if existing is not None:
            return False

        model = TransactionModel(
            user_id=user_id,
            txn_id=transaction.id,
            amount=transaction.amount,
            direction=transaction.direction.value,
            merchant=transaction.merchant,
            category=transaction.category,
            upi_ref=transaction.upi_ref,
            occurred_at=to_ist_naive(transaction.timestamp),
        )
        self.session.add(model)
        await self.session.flush()
        return True

    async def get(self, user_id: str, txn_id: str) -> Optional[Transaction]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .where(TransactionModel.txn_id == txn_id)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_user(self, user_id: str) -> List[Transaction]:
        """All transactions of a user, oldest first"""
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .order_by(TransactionModel.occurred_at, TransactionModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: TransactionModel) -> Transaction:
        return Transaction(
            id=model.txn_id,
            amount=model.amount,
            timestamp=model.occurred_at,
            merchant=model.merchant or "",
            category=model.category or "",
            direction=TransactionDirection(model.direction),
            upi_ref=model.upi_ref,
        )
