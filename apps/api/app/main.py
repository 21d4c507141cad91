from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import auto_create_schema, get_app_version, get_sweep_interval_seconds
from app.core.db import db_health, init_db
from app.core.errors import ForceError
from app.core.observability import configure_logging, emit, request_id_var
from app.modules.artifacts.router import router as artifacts_router
from app.modules.blocks.router import router as blocks_router
from app.modules.blocks.service import auto_expire_sweep
from app.modules.checkpoints.router import router as checkpoints_router
from app.modules.failure_log.router import router as failure_log_router
from app.modules.reliability.router import router as reliability_router

configure_logging()

_last_error: Optional[str] = None


async def _sweep_loop(interval: float) -> None:
    global _last_error
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(auto_expire_sweep)
        except Exception as e:
            # the loop outlives any single pass
            _last_error = f"{type(e).__name__}: {e}"
            emit("error", "block.sweep.error", _last_error, module=__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if auto_create_schema():
        init_db()

    task: Optional[asyncio.Task] = None
    interval = get_sweep_interval_seconds()
    if interval > 0:
        task = asyncio.create_task(_sweep_loop(interval))
        emit("info", "block.sweep.scheduled", f"expiry sweep every {interval}s", module=__name__)
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


app = FastAPI(title="FORCE Execution Kernel API", version=get_app_version(), lifespan=lifespan)

# === OBSERVABILITY FOUNDATIONS ===
# Contract locks:
# - /health keys: status, version, db, last_error_summary
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: error, message, request_id, details


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


@app.middleware("http")
async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
    request.state.request_id = rid
    token = request_id_var.set(rid)
    emit("info", "http.request.start", f"{request.method} {request.url.path}", module=__name__)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit("error", "http.request.exception", str(e), module=__name__)
        raise
    finally:
        request_id_var.reset(token)
    resp.headers["X-Request-Id"] = rid
    emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp,'status_code',None)}",
         module=__name__, request_id=rid)
    return resp


@app.exception_handler(ForceError)
async def _force_exc_handler(request: Request, exc: ForceError):
    rid = getattr(request.state, "request_id", None)
    emit("warning", "enforcement.blocked", exc.message, module=__name__, request_id=rid, code=exc.code)
    return _err_envelope(exc.error, exc.message, rid, exc.to_details(), exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    rid = getattr(request.state, "request_id", None)
    return _err_envelope("http_error", str(exc.detail), rid, {"status_code": exc.status_code}, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    rid = getattr(request.state, "request_id", None)
    return _err_envelope("validation_error", "request validation failed", rid, exc.errors(), 422)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    global _last_error
    rid = getattr(request.state, "request_id", None)
    _last_error = f"{type(exc).__name__}: {exc}"
    emit("error", "http.request.unhandled", _last_error, module=__name__, request_id=rid)
    return _err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)
# === END OBSERVABILITY FOUNDATIONS ===


@app.get("/health")
def health():
    db = db_health()
    return {
        "status": "ok" if db.get("status") == "ok" else "degraded",
        "version": get_app_version(),
        "db": db,
        "last_error_summary": _last_error,
    }


app.include_router(artifacts_router)
app.include_router(blocks_router)
app.include_router(failure_log_router)
app.include_router(checkpoints_router)
app.include_router(reliability_router)
