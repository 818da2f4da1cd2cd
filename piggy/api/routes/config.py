"""
Config API Routes
Read-only view of presets and round-up choices
"""

from typing import List

from fastapi import APIRouter, HTTPException, Request

from piggy.domain.errors import UnknownPresetError
from piggy.domain.models import PortfolioPreset
from piggy.domain.schemas.piggy import AllocationResponse, PresetResponse, RoundupRuleResponse, money
from piggy.domain.services.config_engine import ConfigEngine

router = APIRouter()


def _config_engine(request: Request) -> ConfigEngine:
    config_engine = getattr(request.app.state, "config_engine", None)
    if config_engine is None:
        raise HTTPException(status_code=503, detail="Configuration not loaded")
    return config_engine


def _preset_response(preset: PortfolioPreset) -> PresetResponse:
    return PresetResponse(
        name=preset.name,
        min_sweep_amount=money(preset.min_sweep_amount),
        allocations=[
            AllocationResponse(
                symbol=a.symbol,
                name=a.name,
                weight_pct=float(a.weight_pct),
                type=a.asset_type,
            )
            for a in preset.allocations
        ],
    )


@router.get("/presets", response_model=List[PresetResponse])
async def list_presets(request: Request):
    engine = _config_engine(request)
    return [_preset_response(p) for p in engine.presets.values()]


@router.get("/presets/{name}", response_model=PresetResponse)
async def get_preset(name: str, request: Request):
    engine = _config_engine(request)
    try:
        return _preset_response(engine.get_preset(name))
    except UnknownPresetError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/roundup")
async def roundup_options(request: Request):
    engine = _config_engine(request)
    rule = engine.default_rule
    return {
        "default_rule": RoundupRuleResponse(
            round_to_nearest=money(rule.round_to_nearest),
            min_roundup=money(rule.min_roundup),
            max_roundup=money(rule.max_roundup),
        ),
        "allowed_round_to_nearest": [float(v) for v in engine.allowed_round_to_nearest],
    }
