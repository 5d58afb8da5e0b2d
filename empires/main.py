# empires/main.py
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from empires import config
from empires.database import engine
from empires.errors import GameRuleError, StorageError
from empires.logging import get_logger, setup_logging
from empires.routes.catalog import router as catalog_router
from empires.routes.game import router as game_router
from empires.routes.villages import router as villages_router

setup_logging(config.LOG_LEVEL)
log = get_logger(__name__)

app = FastAPI(title="Empires Village Server", version="0.1.0")

app.include_router(catalog_router)
app.include_router(villages_router)
app.include_router(game_router)


@app.exception_handler(GameRuleError)
def game_rule_error_handler(request: Request, exc: GameRuleError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StorageError)
def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    log.error("request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal storage failure"})


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/db-ping")
def db_ping() -> dict:
    with engine.connect() as conn:
        result = conn.execute(text("SELECT 1")).scalar_one()
    return {"db": "ok", "select_1": result}
