"""
Sidecar gateway: JSON-RPC 2.0 Dispatcher
========================================

Features
--------
• JSON-RPC 2.0: single & batch, named & positional params, notifications.
• Structured error mapping (standard codes + bridge codes via gateway.errors).
• Sync handlers run in Starlette's threadpool; async handlers are awaited.
• Arg binding with context injection for parameters named "ctx"/"context".
• Responses: {"jsonrpc":"2.0", "id":..., "result":...} or {"error":...}.

Each app owns a `MethodRegistry`; `make_router(registry)` exposes it over HTTP
POST at "/" and "/rpc".
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import (Any, Awaitable, Callable, Dict, List, Optional, Tuple,
                    Union)

from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from .errors import (InvalidParams, InvalidRequest, MethodNotFound, ParseError,
                     RpcError, to_error)
from .metrics import rpc_metrics

log = logging.getLogger(__name__)

Json = Dict[str, Any]
Params = Union[List[Any], Dict[str, Any]]
CallableLike = Union[Callable[..., Any], Callable[..., Awaitable[Any]]]


# --------------------------------------------------------------------------------------
# Context
# --------------------------------------------------------------------------------------


@dataclass
class Context:
    """
    Per-request context passed to methods that accept an argument named
    'ctx' or 'context'. `app_state` is the FastAPI app's state (holds the Sidecar).
    """

    app_state: Any
    received_at_ms: int
    client: Optional[Tuple[str, int]]
    headers: Dict[str, str]


def _now_ms() -> int:
    return int(time.time() * 1000)


# --------------------------------------------------------------------------------------
# Method registry
# --------------------------------------------------------------------------------------


class MethodRegistry:
    """Name → callable registry with decorator sugar."""

    def __init__(self) -> None:
        self._methods: Dict[str, CallableLike] = {}

    def method(self, name: str, *, replace: bool = False) -> Callable[[CallableLike], CallableLike]:
        def deco(fn: CallableLike) -> CallableLike:
            if not isinstance(name, str) or not name:
                raise ValueError("Method name must be non-empty string")
            if name in self._methods and not replace:
                raise ValueError(f"Method already registered: {name}")
            self._methods[name] = fn
            log.debug("JSON-RPC register %s → %s.%s", name, fn.__module__, fn.__name__)
            return fn

        return deco

    def register(self, name: str, fn: CallableLike, *, replace: bool = False) -> None:
        self.method(name, replace=replace)(fn)

    def get(self, name: str) -> CallableLike:
        fn = self._methods.get(name)
        if fn is None:
            raise MethodNotFound(name)
        return fn

    @property
    def names(self) -> List[str]:
        return sorted(self._methods.keys())


# --------------------------------------------------------------------------------------
# Arg binding & execution
# --------------------------------------------------------------------------------------


def _bind_call_args(
    fn: CallableLike, params: Optional[Params], ctx: Context
) -> Tuple[List[Any], Dict[str, Any]]:
    sig = inspect.signature(fn)
    args_obj: Params = [] if params is None else params

    try:
        if isinstance(args_obj, list):
            bound = sig.bind_partial(*args_obj)
        else:
            bound = sig.bind_partial(**args_obj)
    except TypeError as e:
        raise InvalidParams(str(e))

    for want in ("ctx", "context"):
        if want in sig.parameters and want not in bound.arguments:
            bound.arguments[want] = ctx

    # Every required parameter must be supplied
    for name, p in sig.parameters.items():
        if (
            name not in bound.arguments
            and p.default is inspect.Parameter.empty
            and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
        ):
            raise InvalidParams(f"missing required param: {name}")

    return list(bound.args), dict(bound.kwargs)


async def _invoke(fn: CallableLike, args: List[Any], kwargs: Dict[str, Any]) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn(*args, **kwargs)
    return await run_in_threadpool(fn, *args, **kwargs)


# --------------------------------------------------------------------------------------
# Core dispatch
# --------------------------------------------------------------------------------------


_NO_ID = object()  # sentinel for notification


def _validate_id(id_val: Any) -> Any:
    if id_val is None or isinstance(id_val, (str, int, float)):
        return id_val
    raise InvalidRequest("id must be string, number, or null")


def _validate_request_obj(obj: Json) -> Tuple[str, Optional[Params], Any]:
    """Structural validation; returns (method, params, id). Method existence is checked later."""
    if not isinstance(obj, dict):
        raise InvalidRequest("Request must be an object")

    if obj.get("jsonrpc") != "2.0":
        raise InvalidRequest("jsonrpc must be '2.0'")

    method = obj.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequest("method must be a non-empty string")

    params: Optional[Params] = obj.get("params")
    if params is not None and not isinstance(params, (list, dict)):
        raise InvalidParams()

    id_present = "id" in obj
    req_id = obj.get("id") if id_present else _NO_ID
    if id_present:
        _validate_id(req_id)
    return method, params, req_id


def _error_obj(exc: BaseException) -> Json:
    return to_error(exc).to_dict()


async def dispatch_one(registry: MethodRegistry, obj: Json, ctx: Context) -> Optional[Json]:
    """Dispatch a single request object. Returns None for notifications."""
    method_name = obj.get("method") if isinstance(obj, dict) else None
    obs = rpc_metrics.observe_jsonrpc(str(method_name or "invalid"))
    try:
        method_name, params, req_id = _validate_request_obj(obj)
        fn = registry.get(method_name)
        args, kwargs = _bind_call_args(fn, params, ctx)
        result = await _invoke(fn, args, kwargs)
        obs.ok()
        if req_id is _NO_ID:
            return None
        return {"jsonrpc": "2.0", "id": req_id, "result": result}
    except Exception as exc:
        err = _error_obj(exc)
        obs.error(str(err["code"]))
        if not isinstance(exc, RpcError) and err["code"] == -32603:
            log.exception("Unhandled error in JSON-RPC method %s", method_name)
        req_id = obj.get("id", _NO_ID) if isinstance(obj, dict) else None
        if req_id is _NO_ID:
            log.debug("Error in notification %s: %s", method_name, exc)
            return None
        return {"jsonrpc": "2.0", "id": req_id, "error": err}


async def dispatch(
    registry: MethodRegistry, payload: Union[Json, List[Any]], ctx: Context
) -> Union[Json, List[Json], None]:
    """Dispatch an already-parsed payload (single object or batch)."""
    if isinstance(payload, list):
        if len(payload) == 0:
            return {"jsonrpc": "2.0", "id": None, "error": _error_obj(InvalidRequest("empty batch"))}

        results: List[Optional[Json]] = []
        for obj in payload:
            if isinstance(obj, dict):
                results.append(await dispatch_one(registry, obj, ctx))
            else:
                results.append(
                    {"jsonrpc": "2.0", "id": None, "error": _error_obj(InvalidRequest("Request must be an object"))}
                )
        out = [r for r in results if r is not None]
        return out or None

    if isinstance(payload, dict):
        return await dispatch_one(registry, payload, ctx)

    return {
        "jsonrpc": "2.0",
        "id": None,
        "error": _error_obj(InvalidRequest("payload must be object or array")),
    }


# --------------------------------------------------------------------------------------
# FastAPI router
# --------------------------------------------------------------------------------------


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"))


def make_router(registry: MethodRegistry) -> APIRouter:
    router = APIRouter()

    async def jsonrpc_endpoint(request: Request) -> Response:
        body = await request.body()
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            err = {"jsonrpc": "2.0", "id": None, "error": ParseError("malformed JSON").to_dict()}
            return Response(content=_dumps(err), media_type="application/json")

        client = request.client
        ctx = Context(
            app_state=request.app.state,
            received_at_ms=_now_ms(),
            client=(client.host, client.port) if client else None,
            headers={k.lower(): v for k, v in request.headers.items()},
        )
        result = await dispatch(registry, payload, ctx)
        if result is None:
            return Response(status_code=204)
        return Response(content=_dumps(result), media_type="application/json")

    for path in ("/", "/rpc"):
        router.add_api_route(path, jsonrpc_endpoint, methods=["POST"], include_in_schema=False)
    return router


__all__ = [
    "Context",
    "MethodRegistry",
    "dispatch",
    "dispatch_one",
    "make_router",
]
