"""
Piggy API Routes
Round-ups, piggy balance, sweeps and portfolio for one user
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from piggy.domain.errors import InvalidConfigurationError, UnknownPresetError
from piggy.domain.models import Transaction, TransactionDirection
from piggy.domain.schemas.piggy import (
    AssetResponse,
    DashboardResponse,
    HoldingResponse,
    HoldingsResponse,
    IngestResponse,
    LedgerEntryResponse,
    LedgerResponse,
    OrderResponse,
    PricesRequest,
    RebalanceItemResponse,
    ReconcileResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    SweepRequest,
    SweepResponse,
    TopUpRequest,
    TransactionRequest,
    money,
)
from piggy.domain.services.sweep_engine import SweepEngine
from piggy.infrastructure.db.database import get_db
from piggy.services.piggy_service import PiggyService
from piggy.utils.time import now_ist_naive

logger = logging.getLogger(__name__)
router = APIRouter()


def get_piggy_service(request: Request, db: AsyncSession = Depends(get_db)) -> PiggyService:
    config_engine = getattr(request.app.state, "config_engine", None)
    price_feed = getattr(request.app.state, "price_feed", None)
    if config_engine is None or price_feed is None:
        raise HTTPException(status_code=503, detail="Configuration not loaded")
    return PiggyService(db, config_engine, price_feed)


# -------------------------------------------------------------------
# Settings
# -------------------------------------------------------------------

@router.get("/{user_id}/settings", response_model=SettingsResponse)
async def get_settings(user_id: str, service: PiggyService = Depends(get_piggy_service)):
    return SettingsResponse.from_domain(await service.get_settings(user_id))


@router.put("/{user_id}/settings", response_model=SettingsResponse)
async def update_settings(
    user_id: str,
    body: SettingsUpdateRequest,
    service: PiggyService = Depends(get_piggy_service),
):
    try:
        updated = await service.update_settings(user_id, **body.model_dump())
    except InvalidConfigurationError as e:
        logger.warning("Settings update rejected for %s: %s", user_id, e)
        raise HTTPException(status_code=422, detail=str(e))
    except UnknownPresetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SettingsResponse.from_domain(updated)


# -------------------------------------------------------------------
# Transactions & ledger
# -------------------------------------------------------------------

@router.post("/{user_id}/transactions", response_model=IngestResponse)
async def ingest_transaction(
    user_id: str,
    body: TransactionRequest,
    service: PiggyService = Depends(get_piggy_service),
):
    transaction = Transaction(
        id=body.id,
        amount=body.amount,
        timestamp=body.timestamp or now_ist_naive(),
        merchant=body.merchant,
        category=body.category,
        direction=TransactionDirection(body.direction),
        upi_ref=body.upi_ref,
    )
    stored, roundup = await service.ingest_transaction(user_id, transaction)
    return IngestResponse(transaction_id=body.id, stored=stored, roundup=money(roundup))


@router.get("/{user_id}/ledger", response_model=LedgerResponse)
async def get_ledger(user_id: str, service: PiggyService = Depends(get_piggy_service)):
    ledger = await service.load_ledger(user_id)
    return LedgerResponse(
        balance=money(SweepEngine.calculate_balance(ledger)),
        entries=[LedgerEntryResponse.from_domain(e) for e in ledger],
    )


@router.post("/{user_id}/topup", response_model=LedgerEntryResponse)
async def top_up(
    user_id: str,
    body: TopUpRequest,
    service: PiggyService = Depends(get_piggy_service),
):
    try:
        entry = await service.top_up(user_id, body.amount)
    except UnknownPresetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return LedgerEntryResponse.from_domain(entry)


# -------------------------------------------------------------------
# Sweep
# -------------------------------------------------------------------

@router.post("/{user_id}/sweep", response_model=SweepResponse)
async def sweep(
    user_id: str,
    body: SweepRequest,
    service: PiggyService = Depends(get_piggy_service),
):
    try:
        result = await service.sweep(user_id, prices=body.prices, amount=body.amount)
    except UnknownPresetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SweepResponse(
        executed=result.executed,
        requested_amount=money(result.requested_amount),
        invested_amount=money(result.invested_amount),
        residual_amount=money(result.residual_amount),
        orders=[OrderResponse.from_domain(o) for o in result.orders],
        skipped_symbols=list(result.skipped_symbols),
    )


# -------------------------------------------------------------------
# Portfolio
# -------------------------------------------------------------------

@router.get("/{user_id}/dashboard", response_model=DashboardResponse)
async def get_dashboard(user_id: str, service: PiggyService = Depends(get_piggy_service)):
    try:
        d = await service.get_dashboard(user_id)
    except UnknownPresetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DashboardResponse(
        user_id=d.user_id,
        piggy_balance=money(d.piggy_balance),
        portfolio_value=money(d.portfolio_value),
        total_invested=money(d.total_invested),
        total_gains=money(d.total_gains),
        gains_percent=money(d.gains_percent),
        weekly_target=money(d.weekly_target),
        weekly_progress=money(d.weekly_progress),
        weekly_progress_pct=money(d.weekly_progress_pct),
        weekly_roundup_count=d.weekly_roundup_count,
        sweep_eligible=d.sweep_eligible,
        min_sweep_amount=money(d.min_sweep_amount),
        portfolio_preset=d.settings.portfolio_preset,
        assets=[AssetResponse.from_domain(a) for a in d.assets],
        prices_missing=d.prices_missing,
    )


@router.post("/{user_id}/holdings/refresh", response_model=HoldingsResponse)
async def refresh_holdings(
    user_id: str,
    body: PricesRequest,
    service: PiggyService = Depends(get_piggy_service),
):
    holdings, missing = await service.refresh_holdings(user_id, prices=body.prices)
    return HoldingsResponse(
        holdings=[HoldingResponse.from_domain(h) for h in holdings],
        prices_missing=missing,
    )


@router.post("/{user_id}/holdings/rebuild", response_model=ReconcileResponse)
async def rebuild_holdings(user_id: str, service: PiggyService = Depends(get_piggy_service)):
    issues = await service.rebuild_holdings(user_id)
    return ReconcileResponse(rebuilt=bool(issues), symbols=[i.symbol for i in issues])


@router.post("/{user_id}/rebalance", response_model=List[RebalanceItemResponse])
async def rebalance(
    user_id: str,
    body: PricesRequest,
    service: PiggyService = Depends(get_piggy_service),
):
    try:
        recommendations = await service.rebalance(user_id, prices=body.prices)
    except UnknownPresetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [RebalanceItemResponse.from_domain(r) for r in recommendations]
