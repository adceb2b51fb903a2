import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .collector import Collector
from .config import Settings
from .metrics import Counters


def normalize_prefix(prefix: str) -> str:
    prefix = (prefix or "").strip().rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix


def _probe(request: Request):
    # seconds since the request reached the app
    return {"responseTime": time.perf_counter() - request.state.received_at}


def create_app(settings: Settings, counters: Counters, collector: Optional[Collector] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if collector is not None:
            collector.start()
        try:
            yield
        finally:
            if collector is not None:
                # shutdown waits for a running cycle; keep it off the event loop
                await asyncio.to_thread(collector.stop)

    app = FastAPI(title="Alibaba Cloud Exporter", version="1.0.0", lifespan=lifespan)

    @app.middleware("http")
    async def stamp_request(request: Request, call_next):
        request.state.received_at = time.perf_counter()
        return await call_next(request)

    router = APIRouter(prefix=normalize_prefix(settings.http.route_prefix))

    @router.get("/metrics")
    def metrics():
        output, ctype = counters.scrape()
        return Response(content=output, media_type=ctype)

    @router.get("/liveness")
    def liveness(request: Request):
        return _probe(request)

    @router.get("/readiness")
    def readiness(request: Request):
        return _probe(request)

    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse({"message": "Not found"}, status_code=404)
        return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code)

    return app
