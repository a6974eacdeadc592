import asyncio
from dataclasses import asdict

from fastapi import APIRouter

from scenario_engine.schemas import (
    DeltaRequest,
    PointRequest,
    RiskProfileRequest,
    SimulationRequest,
    StressRequest,
)
from scenario_engine.services.deterministic import calculate_deltas, run_deterministic_point
from scenario_engine.services.monte_carlo import run_monte_carlo_simulation
from scenario_engine.services.risk import compute_risk_profile
from scenario_engine.services.sensitivity import compute_sensitivity_profile
from scenario_engine.services.stress import run_stress_test
from scenario_engine.utils.json_safety import sanitize_floats


router = APIRouter()


def _simulate(data: SimulationRequest):
    return run_monte_carlo_simulation(data.levers, data.baseline, sensitivity_mode=data.sensitivity_mode)


def _risk_profile(data: RiskProfileRequest):
    # Without an explicit multiple, value the company at the baseline's own multiple
    ev_multiple = data.ev_multiple if data.ev_multiple is not None else data.baseline.revenue_multiple
    return compute_risk_profile(_simulate(data), ev_multiple=ev_multiple)


def _stress(data: StressRequest):
    return run_stress_test(data.levers, data.baseline, data.sigma, data.runs)


def _sensitivity(data: SimulationRequest):
    return compute_sensitivity_profile(data.levers, data.baseline)


@router.post("/monte-carlo")
async def api_monte_carlo(data: SimulationRequest):
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, _simulate, data)
    return sanitize_floats(result.to_dict())


@router.post("/risk-profile")
async def api_risk_profile(data: RiskProfileRequest):
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, _risk_profile, data)
    return sanitize_floats(result.to_dict())


@router.post("/point")
async def api_point(data: PointRequest):
    return sanitize_floats(run_deterministic_point(data.levers, data.baseline).to_dict())


@router.post("/deltas")
async def api_deltas(data: DeltaRequest):
    base = run_deterministic_point(data.base_levers, data.baseline)
    scenario = run_deterministic_point(data.scenario_levers, data.baseline)
    return sanitize_floats({
        "base": base.to_dict(),
        "scenario": scenario.to_dict(),
        "deltas": [asdict(d) for d in calculate_deltas(base, scenario)],
    })


@router.post("/stress")
async def api_stress(data: StressRequest):
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, _stress, data)
    return sanitize_floats(result.to_dict())


@router.post("/sensitivity")
async def api_sensitivity(data: SimulationRequest):
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, _sensitivity, data)
    return sanitize_floats(result.to_dict())


@router.get("/health")
async def health():
    return {"status": "ok"}
