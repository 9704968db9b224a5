# latency_proxy/app.py
from __future__ import annotations

import time
import traceback
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from loguru import logger

from . import __version__
from . import config as CFG
from .errors import InvalidQuery, NotReady
from .log import log_request, setup_logging
from .refresher import Refresher, SnapshotStore
from .service import LatencyService


def _params(request: Request) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for k, v in request.query_params.multi_items():
        out.setdefault(k, []).append(v)
    return out


def create_app(service: LatencyService, refresher: Optional[Refresher] = None,
               cors: bool = CFG.CORS, debug: bool = CFG.DEBUG) -> FastAPI:
    app = FastAPI(title=CFG.NAME, version=__version__)
    app.state.service = service
    app.state.refresher = refresher

    if cors:
        app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"])

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        if refresher is not None:
            refresher.start()
            logger.info("Refreshing {} SeedLink server(s) every {}s",
                        len(refresher.endpoints), refresher.interval)

    @app.on_event("shutdown")
    async def on_shutdown():
        if refresher is not None:
            refresher.stop()

    # -------------------------------------------------------------------------
    # Request log
    # -------------------------------------------------------------------------
    @app.middleware("http")
    async def access_log(request: Request, call_next):
        t0 = time.monotonic()
        response = await call_next(request)
        client = request.headers.get("x-forwarded-for") or (request.client.host if request.client else None)
        log_request(
            method=request.method,
            query=request.url.query,
            path=request.url.path,
            client=client,
            agent=request.headers.get("user-agent"),
            statusCode=response.status_code,
            type="HTTP Request",
            msRequestTime=int((time.monotonic() - t0) * 1000),
            nLatencies=getattr(request.state, "n_latencies", 0),
        )
        return response

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------
    @app.get("/version", response_class=PlainTextResponse)
    async def version():
        return __version__

    @app.get("/")
    async def latencies(request: Request):
        svc: LatencyService = request.app.state.service
        try:
            records = svc.query(_params(request))
        except NotReady as e:
            return PlainTextResponse(str(e), status_code=503)
        except InvalidQuery as e:
            msg = traceback.format_exc() if debug else str(e)
            return PlainTextResponse(msg, status_code=400)

        request.state.n_latencies = len(records)
        if not records:
            return Response(status_code=204)
        return JSONResponse([r.to_json() for r in records])

    return app


def build() -> FastAPI:
    store = SnapshotStore()
    refresher = Refresher(
        CFG.SERVERS, store,
        interval=CFG.REFRESH_INTERVAL,
        sort=CFG.SORT_LATENCIES,
        workers=CFG.POLL_WORKERS,
        connect_timeout=CFG.CONNECT_TIMEOUT,
        read_timeout=CFG.READ_TIMEOUT,
    )
    return create_app(LatencyService(store), refresher)


def main() -> None:
    setup_logging(CFG.LOG_DIR, debug=CFG.DEBUG)
    app = build()
    logger.info("{} {} starting on {}:{}", CFG.NAME, __version__, CFG.HOST, CFG.PORT)
    uvicorn.run(app, host=CFG.HOST, port=CFG.PORT, log_level="warning")


# -----------------------------------------------------------------------------
# Entrypoint
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    main()
