# varsim/main.py
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram, make_asgi_app
from pydantic import TypeAdapter, ValidationError
from starlette.requests import Request
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from varsim.binding import AddressSpace, BindingManager
from varsim.catalogue import Catalogue
from varsim.config import Settings, configure_logging
from varsim.errors import (
    BindError, CatalogueSyncError, ConflictError, DefinitionError, NotFoundError,
)
from varsim.opcua_server import SimulationServer
from varsim.schemas import Variable, VariableCreate, VariableUpdate, VariableValue
from varsim.seed import seed
from varsim.store import VariableStore

log = logging.getLogger("varsim")

# ---------- metrics ----------
REQ_LATENCY = Histogram(
    "api_request_seconds",
    "Request latency (s)",
    ["path", "method"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5)
)
REQ_TOTAL = Counter(
    "api_requests_total",
    "Total API requests",
    ["path", "method", "status"]
)
ERROR_TOTAL = Counter(
    "api_errors_total",
    "Total application errors",
    ["exception"]
)
MUTATIONS_TOTAL = Counter("catalogue_mutations_total", "Catalogue mutations", ["kind"])

_IMPORT_ADAPTER = TypeAdapter(List[Variable])

router = APIRouter()


def _catalogue(request: Request) -> Catalogue:
    return request.app.state.catalogue


# ---------- middleware to record metrics ----------
async def metrics_middleware(request: Request, call_next):
    # don't self-instrument the /metrics scrape
    if request.url.path.startswith("/metrics"):
        return await call_next(request)

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        ERROR_TOTAL.labels(exception=exc.__class__.__name__).inc()
        log.exception("Unhandled error %s %s", request.method, request.url.path)
        return JSONResponse({"detail": "internal error"}, status_code=HTTP_500_INTERNAL_SERVER_ERROR)
    finally:
        dur = time.perf_counter() - start
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        status = response.status_code if response is not None else 500
        REQ_LATENCY.labels(path=path, method=request.method).observe(dur)
        REQ_TOTAL.labels(path=path, method=request.method, status=str(status)).inc()


# ---------- error mapping ----------
def _error(status_code: int):
    async def handler(request: Request, exc: Exception):
        ERROR_TOTAL.labels(exception=exc.__class__.__name__).inc()
        return JSONResponse({"detail": str(exc)}, status_code=status_code)
    return handler


async def _sync_error(request: Request, exc: CatalogueSyncError):
    ERROR_TOTAL.labels(exception=exc.__class__.__name__).inc()
    return JSONResponse(
        {"detail": str(exc), "catalogueUpdated": True, "bindingsUpdated": False},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
    )


# ---------- basic endpoints ----------
@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/version")
def version(request: Request):
    settings: Settings = request.app.state.settings
    return {"service": settings.service, "version": settings.version}


# ---------- variables ----------
@router.get("/variables", response_model=List[Variable], tags=["OPC UA Variables"])
def list_variables(request: Request):
    return _catalogue(request).list_all()


@router.get("/variables/{variable_id}", response_model=Variable, tags=["OPC UA Variables"])
def get_variable(variable_id: str, request: Request):
    return _catalogue(request).get(variable_id)


@router.get("/variables/{variable_id}/value", response_model=VariableValue,
            tags=["OPC UA Variables"])
def get_variable_value(variable_id: str, request: Request):
    """Value the OPC UA server would answer with right now."""
    variable, value = _catalogue(request).current_value(variable_id)
    return VariableValue(id=variable.id, nodeId=variable.nodeId,
                         dataType=variable.dataType, value=value)


@router.post("/variables", response_model=Variable, status_code=201, tags=["OPC UA Variables"])
async def create_variable(body: VariableCreate, request: Request):
    variable = await _catalogue(request).create(body)
    MUTATIONS_TOTAL.labels(kind="create").inc()
    return variable


@router.put("/variables/{variable_id}", response_model=Variable, tags=["OPC UA Variables"])
async def update_variable(variable_id: str, body: VariableUpdate, request: Request):
    variable = await _catalogue(request).update(variable_id, body)
    MUTATIONS_TOTAL.labels(kind="update").inc()
    return variable


@router.delete("/variables/{variable_id}", tags=["OPC UA Variables"])
async def delete_variable(variable_id: str, request: Request):
    await _catalogue(request).delete(variable_id)
    MUTATIONS_TOTAL.labels(kind="delete").inc()
    return {"ok": True}


# ---------- database operations ----------
@router.get("/db/export", tags=["Database Operations"])
def export_database(request: Request):
    filename, variables = _catalogue(request).export()
    return JSONResponse(
        [v.model_dump(mode="json") for v in variables],
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/db/import", status_code=201, tags=["Database Operations"])
async def import_database(request: Request, file: Optional[UploadFile] = File(None)):
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    raw = await file.read()
    try:
        payload = json.loads(raw.decode("utf-8"))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON format")
    try:
        variables = _IMPORT_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid variable data: {e.error_count()} error(s)")
    try:
        await _catalogue(request).import_(variables)
    except ConflictError as e:
        raise HTTPException(status_code=400, detail=str(e))
    MUTATIONS_TOTAL.labels(kind="import").inc()
    return {"message": "Database imported successfully", "count": len(variables)}


@router.delete("/db/clear", tags=["Database Operations"])
async def clear_database(request: Request):
    await _catalogue(request).clear()
    MUTATIONS_TOTAL.labels(kind="clear").inc()
    return {"message": "Database cleared successfully"}


@router.post("/db/resync", tags=["Database Operations"])
async def resync(request: Request):
    count = await _catalogue(request).resync()
    return {"ok": True, "variables": count}


# ---------- app ----------
def create_app(settings: Optional[Settings] = None,
               address_space: Optional[AddressSpace] = None) -> FastAPI:
    """Build the API. An injected address space is started and stopped by its owner."""
    settings = settings or Settings.from_env()
    owns_server = address_space is None
    if owns_server:
        address_space = SimulationServer(
            settings.opcua_endpoint, settings.opcua_server_name, settings.opcua_namespace_uri,
        )
    store = VariableStore(settings.db_path)
    manager = BindingManager(timeout=settings.rebuild_timeout)
    catalogue = Catalogue(store, manager, address_space)

    # ---------- lifecycle ----------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("starting service=%s version=%s", settings.service, settings.version)
        if settings.seed_on_startup:
            seed(store)
        if owns_server:
            await address_space.start()
        try:
            count = await catalogue.resync()
            log.info("bound %d variables", count)
        except BindError as e:
            log.error("initial rebuild failed: %s", e)
        try:
            yield
        finally:
            if owns_server:
                await address_space.stop()
            log.info("stopped service=%s", settings.service)

    app = FastAPI(title=f"{settings.service} OPC UA Server API", version=settings.version,
                  lifespan=lifespan)
    app.state.settings = settings
    app.state.address_space = address_space
    app.state.manager = manager
    app.state.catalogue = catalogue

    app.middleware("http")(metrics_middleware)
    app.add_exception_handler(NotFoundError, _error(404))
    app.add_exception_handler(ConflictError, _error(409))
    app.add_exception_handler(DefinitionError, _error(422))
    app.add_exception_handler(BindError, _error(503))
    app.add_exception_handler(CatalogueSyncError, _sync_error)
    app.include_router(router)
    # expose Prometheus metrics
    app.mount("/metrics", make_asgi_app())
    return app


def run() -> None:
    settings = Settings.from_env()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    run()
