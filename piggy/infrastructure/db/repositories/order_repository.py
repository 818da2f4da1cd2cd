"""
Order Repository
Insert-only store of sweep orders
"""

from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.models import Order, OrderSide, OrderStatus
from piggy.infrastructure.db.models import OrderModel


class OrderRepository:
    """Repository for Order"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create_batch(
        self,
        user_id: str,
        orders: Iterable[Order],
        debit_entry_id: Optional[str] = None,
    ) -> int:
        """
        Store the orders of one sweep

        Returns:
            Number of orders stored
        """
        count = 0
        for order in orders:
            self.session.add(OrderModel(
                order_id=order.id,
                user_id=user_id,
                symbol=order.symbol,
                side=order.side.value,
                quantity=order.quantity,
                price=order.price,
                amount=order.amount,
                status=order.status.value,
                debit_entry_id=debit_entry_id,
                created_at=order.timestamp,
            ))
            count += 1
        await self.session.flush()
        return count

    async def list_for_user(self, user_id: str) -> List[Order]:
        """Order history of a user, oldest first"""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at, OrderModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: OrderModel) -> Order:
        return Order(
            id=model.order_id,
            symbol=model.symbol,
            quantity=model.quantity,
            amount=model.amount,
            price=model.price,
            side=OrderSide(model.side),
            status=OrderStatus(model.status),
            timestamp=model.created_at,
        )
