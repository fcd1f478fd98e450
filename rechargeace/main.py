from contextlib import asynccontextmanager
import time

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from rechargeace.routers import metrics, plans, recommend
from rechargeace.services.catalog import get_catalog
from rechargeace.utils import slog
from rechargeace.utils.logging import setup_logging
from rechargeace.utils.metrics import record_endpoint

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Load the catalog once at process start; a broken catalog fails startup
    get_catalog()
    yield


app = FastAPI(
    title="RechargeAce",
    description="Mobile recharge plan recommendations with repeat-purchase value analysis.",
    lifespan=lifespan,
)


@app.middleware("http")
async def _logging_middleware(request, call_next):
    start = time.perf_counter()
    req_id = slog.new_request_id()
    client_ip = request.client.host if request.client else None
    try:
        response = await call_next(request)
    except Exception as e:
        latency_ms = int((time.perf_counter() - start) * 1000)
        ctx = getattr(request.state, "log_context", {})
        slog.log_event(
            "request.error",
            request_id=req_id,
            path=str(request.url.path),
            method=request.method,
            latency_ms=latency_ms,
            client_ip=client_ip,
            error=str(e),
            **(ctx or {}),
        )
        raise
    latency_ms = int((time.perf_counter() - start) * 1000)
    ctx = getattr(request.state, "log_context", {}) or {}
    ctx.setdefault("rate_limited", response.status_code == 429)
    slog.finalize_request_log(
        request_id=req_id,
        method=request.method,
        path=str(request.url.path),
        status=response.status_code,
        latency_ms=latency_ms,
        client_ip=client_ip,
        ctx=ctx,
    )
    # route template, not the raw path; unmatched paths (404s) are not tracked
    route_path = getattr(request.scope.get("route"), "path", None)
    if route_path:
        record_endpoint(method=request.method, path=route_path, latency_ms=latency_ms)
    response.headers["X-Request-ID"] = req_id
    return response


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(recommend.router)
app.include_router(plans.router)
app.include_router(metrics.router)
