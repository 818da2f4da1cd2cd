"""
Ledger Repository
Insert-only store of manual top-ups and investment debits
"""

from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.models import LedgerEntry, LedgerEntryType
from piggy.infrastructure.db.models import LedgerEntryModel


class LedgerRepository:
    """
    Repository for stored ledger entries

    Round-up credits are rejected: they are recomputed from
    transactions under the active rule on every read.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def append(self, entry: LedgerEntry) -> None:
        """Append one entry"""
        if entry.type == LedgerEntryType.ROUNDUP_CREDIT:
            raise ValueError("Round-up credits are derived from transactions, not stored")

        self.session.add(LedgerEntryModel(
            entry_id=entry.id,
            user_id=entry.user_id,
            amount=entry.amount,
            entry_type=entry.type.value,
            reference=entry.reference,
            created_at=entry.timestamp,
        ))
        await self.session.flush()

    async def append_many(self, entries: Iterable[LedgerEntry]) -> None:
        for entry in entries:
            await self.append(entry)

    async def list_for_user(self, user_id: str) -> List[LedgerEntry]:
        """Stored entries of a user in append order"""
        result = await self.session.execute(
            select(LedgerEntryModel)
            .where(LedgerEntryModel.user_id == user_id)
            .order_by(LedgerEntryModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: LedgerEntryModel) -> LedgerEntry:
        return LedgerEntry(
            id=model.entry_id,
            user_id=model.user_id,
            amount=model.amount,
            type=LedgerEntryType(model.entry_type),
            timestamp=model.created_at,
            reference=model.reference,
        )
