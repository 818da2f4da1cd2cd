import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from piggy.domain.services.sweep_engine import SweepEngine
from piggy.infrastructure.db.repositories.order_repository import OrderRepository
from piggy.infrastructure.market_data.static_provider import StaticPriceFeed
from piggy.services.piggy_service import PiggyService


@pytest.fixture()
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def make_service(config_engine):
    feed = StaticPriceFeed(config_engine.fallback_prices)

    def factory(session: AsyncSession) -> PiggyService:
        return PiggyService(session, config_engine, feed)

    return factory


async def _top_up(session_maker, make_service, user_id: str, amount: str) -> None:
    async with session_maker() as session:
        await make_service(session).top_up(user_id, Decimal(amount))
        await session.commit()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_concurrent_sweeps_do_not_overdraw(session_maker, make_service):
    await _top_up(session_maker, make_service, "u1", "1000")
    prices = {"NIFTYBEES": Decimal("100"), "GOLDBEES": Decimal("50")}

    async def run_sweep():
        async with session_maker() as session:
            return await make_service(session).sweep("u1", prices=prices)

    results = await asyncio.gather(run_sweep(), run_sweep())

    assert sorted(r.executed for r in results) == [False, True]
    executed = next(r for r in results if r.executed)
    assert executed.invested_amount == Decimal("1000")

    async with session_maker() as session:
        service = make_service(session)
        balance = SweepEngine.calculate_balance(await service.load_ledger("u1"))
        orders = await OrderRepository(session).list_for_user("u1")

    assert balance == Decimal("0")
    assert len(orders) == len(executed.orders) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sweeps_for_different_users_both_execute(session_maker, make_service):
    await _top_up(session_maker, make_service, "u1", "1000")
    await _top_up(session_maker, make_service, "u2", "1000")

    async def run_sweep(user_id):
        async with session_maker() as session:
            return await make_service(session).sweep(user_id)

    results = await asyncio.gather(run_sweep("u1"), run_sweep("u2"))
    assert all(r.executed for r in results)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_amount_matches_stored_price(session_maker, make_service):
    await _top_up(session_maker, make_service, "u1", "1000")

    async with session_maker() as session:
        result = await make_service(session).sweep(
            "u1", prices={"NIFTYBEES": Decimal("285.123456")}
        )
    assert result.executed

    async with session_maker() as session:
        stored = {o.symbol: o for o in await OrderRepository(session).list_for_user("u1")}

    nifty = stored["NIFTYBEES"]
    assert nifty.price == Decimal("285.1235")
    for order in stored.values():
        assert order.amount == order.quantity * order.price

    by_symbol = {o.symbol: o for o in result.orders}
    assert by_symbol["NIFTYBEES"].amount == stored["NIFTYBEES"].amount
