"""
Holding Repository
Upsert cache of per-symbol positions
"""

from typing import Dict, Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.models import Holding
from piggy.infrastructure.db.models import HoldingModel


class HoldingRepository:
    """Repository for Holding"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def get_all(self, user_id: str) -> Dict[str, Holding]:
        """symbol -> holding"""
        result = await self.session.execute(
            select(HoldingModel)
            .where(HoldingModel.user_id == user_id)
            .order_by(HoldingModel.symbol)
        )
        return {m.symbol: self._to_domain(m) for m in result.scalars().all()}

    async def upsert_many(self, user_id: str, holdings: Iterable[Holding]) -> None:
        """Insert or overwrite holdings by symbol"""
        result = await self.session.execute(
            select(HoldingModel).where(HoldingModel.user_id == user_id)
        )
        existing = {m.symbol: m for m in result.scalars().all()}

        for holding in holdings:
            model = existing.get(holding.symbol)
            if model is None:
                self.session.add(HoldingModel(
                    user_id=user_id,
                    symbol=holding.symbol,
                    units=holding.units,
                    avg_cost=holding.avg_cost,
                    current_price=holding.current_price,
                ))
                continue
            model.units = holding.units
            model.avg_cost = holding.avg_cost
            model.current_price = holding.current_price

        await self.session.flush()

    async def replace_all(self, user_id: str, holdings: Iterable[Holding]) -> None:
        """Drop the cache for a user and write it again (used after a rebuild)"""
        await self.session.execute(
            delete(HoldingModel).where(HoldingModel.user_id == user_id)
        )
        await self.session.flush()
        await self.upsert_many(user_id, holdings)

    @staticmethod
    def _to_domain(model: HoldingModel) -> Holding:
        return Holding(
            symbol=model.symbol,
            units=model.units,
            avg_cost=model.avg_cost,
            current_price=model.current_price,
        )
