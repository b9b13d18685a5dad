from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Query
from redis.exceptions import RedisError

from api.config import Settings, get_settings
from api.models import (
    ChangesPayload,
    ChangesResponse,
    InsightsPayload,
    InsightsResponse,
    ScenarioResponse,
    SensitivityRow,
    StatementResponse,
    StatusResponse,
)
from api.serialize import to_jsonable
from app_logging import configure_logging, get_logger
from scenario_engine import ScenarioRateError
from services.insights_service import InsightsService, InsightsValidationError, get_kv_store, store_status
from services.statement_service import StatementService
from statement_config import DEFAULT_TEMPLATE
from statement_data import StatementNotFoundError


configure_logging(get_settings().log_level)
logger = get_logger(__name__)

app = FastAPI(title="Cash Flow Dashboard API", version="0.1.0")


@lru_cache(maxsize=4)
def _statement_service(data_dir: str) -> StatementService:
    return StatementService(data_dir)


def get_statement_service(settings: Settings = Depends(get_settings)) -> StatementService:
    return _statement_service(str(settings.data_dir))


def get_insights_service(settings: Settings = Depends(get_settings)) -> InsightsService:
    return InsightsService(get_kv_store(settings))


@app.get("/health")
def health() -> dict:
    return {"ok": True}


@app.get("/v1/status", response_model=StatusResponse)
def get_status(settings: Settings = Depends(get_settings)):
    return store_status(settings)


@app.get("/v1/insights", response_model=InsightsResponse)
def get_insights(svc: InsightsService = Depends(get_insights_service)):
    return {"insights": svc.get_insights()}


@app.post("/v1/insights", response_model=InsightsResponse)
def save_insights(payload: InsightsPayload, svc: InsightsService = Depends(get_insights_service)):
    try:
        saved = svc.save_insights(payload.insights)
    except InsightsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (RedisError, OSError) as e:
        logger.error("Failed to save insights: %s", e)
        raise HTTPException(status_code=500, detail="Failed to save insights")
    return {"insights": saved}


@app.get("/v1/changes", response_model=ChangesResponse)
def get_changes(svc: InsightsService = Depends(get_insights_service)):
    return {"changes": [c.to_dict() for c in svc.get_changes()]}


@app.post("/v1/changes", response_model=ChangesResponse)
def save_changes(payload: ChangesPayload, svc: InsightsService = Depends(get_insights_service)):
    try:
        saved = svc.save_changes([c.model_dump() for c in payload.changes])
    except InsightsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (RedisError, OSError) as e:
        logger.error("Failed to save changes: %s", e)
        raise HTTPException(status_code=500, detail="Failed to save changes")
    return {"changes": [c.to_dict() for c in saved]}


@app.get("/v1/statements/{tab}", response_model=StatementResponse)
def get_statement(
    tab: str,
    expand_all: bool | None = Query(None, description="Expand (true) or collapse (false) every header row"),
    svc: StatementService = Depends(get_statement_service),
):
    try:
        statement = svc.get_statement(tab)
    except StatementNotFoundError:
        raise HTTPException(status_code=404, detail=f"Statement '{tab}' not found")
    tree = svc.get_tree(tab, statement=statement, expand_all=expand_all)
    return {
        "tab": tab.upper(),
        "headers": statement.headers,
        "rows": statement.rows,
        "tree": to_jsonable(tree),
    }


@app.get("/v1/scenarios/cashflow", response_model=ScenarioResponse)
def run_cashflow_scenario(
    rate: float = Query(DEFAULT_TEMPLATE.reference_rate, description="Online growth rate in percent"),
    expand_all: bool | None = Query(None),
    svc: StatementService = Depends(get_statement_service),
):
    try:
        outcome = svc.run_scenario(rate)
    except ScenarioRateError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StatementNotFoundError:
        raise HTTPException(status_code=404, detail="Cash flow statement not found")
    tree = svc.get_tree("CF", statement=outcome.cashflow.statement, expand_all=expand_all)
    return {
        "rate": outcome.rate,
        "cashflow": to_jsonable(outcome.cashflow),
        "cashloan": to_jsonable(outcome.cashloan),
        "tree": to_jsonable(tree),
    }


@app.get("/v1/scenarios/cashflow/sensitivity", response_model=list[SensitivityRow])
def get_sensitivity(svc: StatementService = Depends(get_statement_service)):
    try:
        table = svc.sensitivity_table()
    except StatementNotFoundError:
        raise HTTPException(status_code=404, detail="Cash flow statement not found")
    return to_jsonable(table)
