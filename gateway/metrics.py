from __future__ import annotations

"""
Prometheus metrics for the sidecar gateway.

- Exposes a /metrics endpoint (text/plain; version=0.0.4).
- HTTP request counters & latency histograms via middleware.
- JSON-RPC method-level metrics via explicit hooks.
- Bridge counters driven by sidecar events through `PrometheusSink`.
- Optional multiprocess mode if PROMETHEUS_MULTIPROC_DIR is set.

Usage
-----
from gateway.metrics import mount_metrics, http_metrics_middleware, PrometheusSink

app = FastAPI()
mount_metrics(app)                        # adds GET /metrics
app.add_middleware(http_metrics_middleware)

sidecar = Sidecar(chain=..., store=..., sink=MultiSink(LoggingSink(), PrometheusSink()))
"""

import os
import time
import typing as t

from fastapi import APIRouter, FastAPI, Request
from prometheus_client import (CONTENT_TYPE_LATEST, REGISTRY,
                               CollectorRegistry, Counter, Histogram,
                               generate_latest)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


def _registry() -> CollectorRegistry:
    mp_dir = os.getenv("PROMETHEUS_MULTIPROC_DIR")
    if mp_dir:
        from prometheus_client import multiprocess  # type: ignore

        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY


REG = _registry()


# ---- Metric definitions ----------------------------------------------------

HTTP_REQUESTS = Counter(
    "sidecar_http_requests_total",
    "Total HTTP requests by method and path and status.",
    ["method", "path", "status"],
    registry=REG,
)
HTTP_LATENCY = Histogram(
    "sidecar_http_request_duration_seconds",
    "HTTP request duration in seconds by method and path.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
    registry=REG,
)

JSONRPC_CALLS = Counter(
    "sidecar_jsonrpc_requests_total",
    "Total JSON-RPC method calls by method, status and code.",
    ["method", "status", "code"],
    registry=REG,
)
JSONRPC_LATENCY = Histogram(
    "sidecar_jsonrpc_request_duration_seconds",
    "JSON-RPC method latency in seconds by method.",
    ["method"],
    buckets=(0.001, 0.003, 0.0075, 0.015, 0.03, 0.06, 0.12, 0.25, 0.5, 1, 2, 5, 30),
    registry=REG,
)

# Bridge events
BROADCASTS = Counter(
    "sidecar_broadcasts_total",
    "Transactions accepted by the chain and recorded as origins.",
    registry=REG,
)
BROADCAST_FAILURES = Counter(
    "sidecar_broadcast_failures_total",
    "Broadcasts that failed, by sidecar error code.",
    ["code"],
    registry=REG,
)
HASH_MISMATCHES = Counter(
    "sidecar_hash_mismatches_total",
    "Broadcasts where the native identifier differed from the computed hash.",
    registry=REG,
)
RESULTS = Counter(
    "sidecar_results_total",
    "Resolved transaction results by outcome (ok|failed).",
    ["outcome"],
    registry=REG,
)
ORIGINS_MISSING = Counter(
    "sidecar_origins_missing_total",
    "Resolved results with no stored origin.",
    registry=REG,
)
INCONSISTENCIES = Counter(
    "sidecar_protocol_inconsistencies_total",
    "Extrinsics with zero or several terminal events.",
    registry=REG,
)
SIMULATIONS = Counter(
    "sidecar_simulations_total",
    "Completed simulations.",
    registry=REG,
)
SEARCHES = Counter(
    "sidecar_searches_total",
    "Hash lookups by whether a result was found.",
    ["found"],
    registry=REG,
)


# ---- HTTP Middleware -------------------------------------------------------

_TX_PREFIX = "/cosmos/tx/v1beta1/txs/"


def _short_path(path: str) -> str:
    """Collapse per-hash paths so labels stay bounded."""
    if path.startswith(_TX_PREFIX):
        return _TX_PREFIX + "{hash}"
    if path in (
        "/",
        "/rpc",
        "/metrics",
        "/healthz",
        "/version",
        "/cosmos/tx/v1beta1/txs",
        "/cosmos/tx/v1beta1/simulate",
    ):
        return path
    return "/other"


class _HttpMetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        method = request.method.upper()
        path = _short_path(request.url.path)

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            HTTP_REQUESTS.labels(method=method, path=path, status="500").inc()
            HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - start)
            raise

        HTTP_REQUESTS.labels(method=method, path=path, status=str(response.status_code)).inc()
        HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - start)
        return response


http_metrics_middleware = _HttpMetricsMiddleware


# ---- JSON-RPC helper -------------------------------------------------------


class _RpcObservation:
    __slots__ = ("_method", "_start", "_ended")

    def __init__(self, method: str) -> None:
        self._method = method
        self._start = time.perf_counter()
        self._ended = False

    def _finish(self, status: str, code: str = "0") -> None:
        if self._ended:
            return
        self._ended = True
        JSONRPC_CALLS.labels(method=self._method, status=status, code=code).inc()
        JSONRPC_LATENCY.labels(method=self._method).observe(time.perf_counter() - self._start)

    def ok(self) -> None:
        self._finish("ok", "0")

    def error(self, code: str = "internal") -> None:
        self._finish("error", code)


class _RpcMetrics:
    def observe_jsonrpc(self, method: str) -> _RpcObservation:
        return _RpcObservation(method=method)


rpc_metrics = _RpcMetrics()


# ---- Sidecar event sink ----------------------------------------------------


class PrometheusSink:
    """
    ObservabilitySink that bumps counters for bridge events. Unknown events are
    ignored; pair it with `sidecar.logging.LoggingSink` through `MultiSink`.
    """

    def emit(self, event: str, **fields: t.Any) -> None:
        if event == "broadcast.submitted":
            BROADCASTS.inc()
        elif event == "broadcast.failed":
            err = fields.get("error", "unknown")
            BROADCAST_FAILURES.labels(code=str(getattr(err, "value", err))).inc()
        elif event == "broadcast.hash_mismatch":
            HASH_MISMATCHES.inc()
        elif event == "result.resolved":
            RESULTS.labels(outcome="ok" if fields.get("code") == 0 else "failed").inc()
        elif event == "result.origin_missing":
            ORIGINS_MISSING.inc()
        elif event == "result.protocol_inconsistency":
            INCONSISTENCIES.inc()
        elif event == "simulate.completed":
            SIMULATIONS.inc()
        elif event == "search.lookup":
            SEARCHES.labels(found="true" if fields.get("found") else "false").inc()


# ---- /metrics endpoint -----------------------------------------------------


def _metrics_handler() -> Response:
    media_type = (
        CONTENT_TYPE_LATEST.decode()
        if isinstance(CONTENT_TYPE_LATEST, (bytes, bytearray))
        else CONTENT_TYPE_LATEST
    )
    return Response(content=generate_latest(REG), media_type=media_type)


def mount_metrics(app: FastAPI) -> None:
    """Mount GET /metrics on the provided FastAPI app."""
    router = APIRouter()
    router.add_api_route("/metrics", _metrics_handler, methods=["GET"], include_in_schema=False)
    app.include_router(router)


__all__ = [
    "mount_metrics",
    "http_metrics_middleware",
    "rpc_metrics",
    "PrometheusSink",
    "HTTP_REQUESTS",
    "HTTP_LATENCY",
    "JSONRPC_CALLS",
    "JSONRPC_LATENCY",
    "BROADCASTS",
    "BROADCAST_FAILURES",
    "HASH_MISMATCHES",
    "RESULTS",
    "ORIGINS_MISSING",
    "INCONSISTENCIES",
    "SIMULATIONS",
    "SEARCHES",
]
