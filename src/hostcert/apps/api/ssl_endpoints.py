from __future__ import annotations

import json
import logging
from typing import Any

import pydantic
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from hostcert.services.ssl import (
    AuthorityError,
    NotFound,
    PollExhausted,
    ReconciliationEngine,
    StoreError,
    ValidationError,
)

_log = logging.getLogger("hostcert.api")

router = APIRouter(prefix="/ssl", tags=["ssl"])


class CreateSSLRequest(BaseModel):
    hostname: str = Field(..., min_length=1)


class UpdateSSLRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ssl_settings: dict[str, Any] | None = Field(default=None, alias="sslSettings")


def get_engine(request: Request) -> ReconciliationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeError("reconciliation engine is not initialised")
    return engine


async def _json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


@router.post("")
async def create_ssl(request: Request, engine: ReconciliationEngine = Depends(get_engine)) -> dict:
    try:
        payload = CreateSSLRequest.model_validate(await _json_body(request))
    except pydantic.ValidationError as exc:
        raise ValidationError("hostname required") from exc
    record = await engine.create(payload.hostname)
    return _ok(record.as_dict())


@router.get("")
async def list_ssl(engine: ReconciliationEngine = Depends(get_engine)) -> dict:
    records = await engine.list()
    return _ok([record.as_dict() for record in records])


@router.get("/{hostname}")
async def read_ssl(hostname: str, engine: ReconciliationEngine = Depends(get_engine)) -> dict:
    record = await engine.read(hostname)
    return _ok(record.as_dict())


@router.get("/{hostname}/recheck")
async def recheck_ssl(hostname: str, engine: ReconciliationEngine = Depends(get_engine)) -> dict:
    record = await engine.recheck(hostname)
    return _ok(record.as_dict())


@router.put("/{record_id}")
async def update_ssl(record_id: str, request: Request, engine: ReconciliationEngine = Depends(get_engine)) -> dict:
    try:
        payload = UpdateSSLRequest.model_validate(await _json_body(request))
    except pydantic.ValidationError as exc:
        raise ValidationError("sslSettings must be an object") from exc
    record = await engine.update_settings(record_id, payload.ssl_settings)
    return _ok(record.as_dict())


@router.delete("/{record_id}")
async def delete_ssl(record_id: str, engine: ReconciliationEngine = Depends(get_engine)) -> dict:
    result = await engine.delete(record_id)
    return _ok(result)


# ---------------------------------------------------------------------------
# error envelope
# ---------------------------------------------------------------------------
def _failure(status_code: int, error: Any, message: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


async def _on_validation(request: Request, exc: ValidationError) -> JSONResponse:
    return _failure(400, str(exc), str(exc))


async def _on_not_found(request: Request, exc: NotFound) -> JSONResponse:
    return _failure(404, str(exc), str(exc))


async def _on_authority(request: Request, exc: AuthorityError) -> JSONResponse:
    _log.warning("authority error path=%s status_code=%s", request.url.path, exc.status_code)
    return _failure(500, exc.body if exc.body is not None else str(exc))


async def _on_poll_exhausted(request: Request, exc: PollExhausted) -> JSONResponse:
    _log.warning("status poll exhausted path=%s id=%s", request.url.path, exc.record_id)
    return _failure(500, exc.body if exc.body is not None else str(exc))


async def _on_store(request: Request, exc: StoreError) -> JSONResponse:
    _log.error("certificate store error path=%s: %s", request.url.path, exc)
    return _failure(500, str(exc))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _on_validation)
    app.add_exception_handler(NotFound, _on_not_found)
    app.add_exception_handler(AuthorityError, _on_authority)
    app.add_exception_handler(PollExhausted, _on_poll_exhausted)
    app.add_exception_handler(StoreError, _on_store)
