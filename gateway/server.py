from __future__ import annotations

import logging
import typing as t

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from sidecar import config as sidecar_config
from sidecar import logging as slog
from sidecar.app import Sidecar
from sidecar.errors import SidecarError
from sidecar.version import __version__

from . import deps
from .errors import RpcError, http_status_hint, to_error
from .jsonrpc import MethodRegistry, make_router
from .metrics import http_metrics_middleware, mount_metrics
from .routes import register_rpc_methods
from .routes import router as tx_router

# -----------------------------------------------------------------------------
# Logger
# -----------------------------------------------------------------------------
log = logging.getLogger("sidecar.gateway.server")

_RPC_HINT = {
    "error": "Method not allowed",
    "hint": "Send JSON-RPC requests as POST with application/json to / or /rpc.",
    "examples": {
        "single": {"jsonrpc": "2.0", "method": "tx", "params": {"hash": "ABCD..."}, "id": 1},
        "search": {
            "jsonrpc": "2.0",
            "method": "tx_search",
            "params": {"query": "tx.hash='ABCD...'"},
            "id": "s",
        },
        "batch": [
            {"jsonrpc": "2.0", "method": "rpc.listMethods", "id": "a"},
            {"jsonrpc": "2.0", "method": "abci_simulate", "params": ["<base64 tx>"], "id": "b"},
        ],
    },
}


def create_app(
    cfg: sidecar_config.SidecarConfig | None = None,
    sidecar: Sidecar | None = None,
) -> FastAPI:
    """
    Build the FastAPI app with:
      - /cosmos/tx/v1beta1/{txs,simulate,txs/{hash}}  (REST)
      - / and /rpc  (JSON-RPC, POST)
      - /metrics
      - /healthz, /version

    When `sidecar` is given it is used as-is and left open on shutdown;
    otherwise one is built from `cfg` during startup.
    """
    cfg = cfg or sidecar_config.load()

    app = FastAPI(
        title="Horizon Sidecar",
        version=__version__,
        lifespan=deps.lifespan_for(cfg),
    )
    app.state.sidecar = None
    app.state.config = cfg
    if sidecar is not None:
        deps.attach_sidecar(app, sidecar)

    @app.middleware("http")
    async def _method_not_allowed_hint(
        request: Request, call_next: t.Callable[[Request], t.Awaitable[Response]]
    ):
        if request.url.path.rstrip("/") == "/rpc" and request.method not in {"POST", "OPTIONS"}:
            return JSONResponse(_RPC_HINT, status_code=405, headers={"Allow": "POST"})
        return await call_next(request)

    @app.exception_handler(SidecarError)
    async def _sidecar_error_handler(request: Request, exc: SidecarError) -> JSONResponse:
        status = http_status_hint(exc)
        if status >= 500:
            log.warning("request failed", extra={"path": request.url.path, "code": exc.to_dict()["code"]})
        return JSONResponse(to_error(exc).to_dict(), status_code=status)

    @app.exception_handler(RpcError)
    async def _rpc_error_handler(request: Request, exc: RpcError) -> JSONResponse:
        return JSONResponse(exc.to_dict(), status_code=http_status_hint(exc))

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.gateway.cors_origins),
        allow_credentials=False,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    # --- Health endpoints ---
    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        return JSONResponse({"ok": True, "version": __version__})

    @app.get("/version")
    async def version() -> JSONResponse:
        return JSONResponse({"version": __version__, "protocol": cfg.chain.protocol})

    @app.get("/")
    async def index() -> JSONResponse:
        return JSONResponse(
            {
                "name": "Horizon Sidecar",
                "version": __version__,
                "endpoints": [
                    "/rpc",
                    "/cosmos/tx/v1beta1/txs",
                    "/cosmos/tx/v1beta1/simulate",
                    "/metrics",
                    "/healthz",
                ],
                "chainId": cfg.chain.chain_id,
                "chainName": cfg.chain.chain_name,
            }
        )

    # --- REST + JSON-RPC ---
    app.include_router(tx_router)
    app.include_router(make_router(register_rpc_methods(MethodRegistry())))

    # --- Metrics ---
    if cfg.gateway.metrics_enabled:
        app.add_middleware(http_metrics_middleware)
        mount_metrics(app)

    return app


# -----------------------------------------------------------------------------
# Entrypoint (uvicorn)
# -----------------------------------------------------------------------------
def main() -> None:
    cfg = sidecar_config.load()
    slog.configure(level=cfg.log_level)
    app = create_app(cfg)
    # Lazy import uvicorn so the module is importable in tests without uvicorn installed
    import uvicorn

    uvicorn.run(
        app,
        host=cfg.gateway.host,
        port=cfg.gateway.port,
        log_level=cfg.log_level.lower(),
        workers=1,
    )


if __name__ == "__main__":
    main()
