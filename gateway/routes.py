"""
Gateway routes
==============

REST (Cosmos gRPC-gateway paths)
--------------------------------
POST /cosmos/tx/v1beta1/txs        {"tx_bytes": b64, "mode": ...} → {"tx_response": TxResponse}
POST /cosmos/tx/v1beta1/simulate   {"tx_bytes": b64}              → {"gas_info", "result"}
GET  /cosmos/tx/v1beta1/txs/{hash}                                → {"tx_response": indexed tx} | 404

JSON-RPC (CometBFT method names)
--------------------------------
broadcast_tx_sync(tx)      → {"code", "data", "log", "codespace", "hash"}
tx_search(query, ...)      → {"txs": [...], "total_count": n}
tx(hash)                   → indexed tx, or NotFound (-32004)
abci_simulate(tx)          → {"gas_info", "result"}
rpc.listMethods()          → sorted method names

REST handlers are plain functions so FastAPI runs the blocking chain and
storage calls in its threadpool. Errors propagate as `SidecarError` and are
shaped by the exception handler installed in `gateway.server`.
"""

from __future__ import annotations

import typing as t

from fastapi import APIRouter, Depends

from sidecar.app import Sidecar
from sidecar.errors import ChainUnavailable

from .deps import get_sidecar
from .errors import NotFound
from .jsonrpc import Context, MethodRegistry
from .models import (BroadcastResponseView, BroadcastTxRequest,
                     GetTxResponseView, SimulateRequest, SimulateResponseView)

TX_PREFIX = "/cosmos/tx/v1beta1"

router = APIRouter(prefix=TX_PREFIX, tags=["tx"])


# -----------------------------------------------------------------------------
# REST
# -----------------------------------------------------------------------------


@router.post("/txs", response_model=BroadcastResponseView)
def broadcast_tx(body: BroadcastTxRequest, sc: Sidecar = Depends(get_sidecar)) -> t.Dict[str, t.Any]:
    ack = sc.broadcast.broadcast_tx(body.tx_bytes)
    return {"tx_response": ack.to_wire()}


@router.post("/simulate", response_model=SimulateResponseView)
def simulate_tx(body: SimulateRequest, sc: Sidecar = Depends(get_sidecar)) -> t.Dict[str, t.Any]:
    return sc.simulation.simulate(body.tx_bytes).to_wire()


@router.get("/txs/{tx_hash}", response_model=GetTxResponseView)
def get_tx(tx_hash: str, sc: Sidecar = Depends(get_sidecar)) -> t.Dict[str, t.Any]:
    record = sc.search.get_tx(tx_hash)
    if record is None:
        raise NotFound("tx", hash=tx_hash)
    return {"tx_response": record.to_wire()}


# -----------------------------------------------------------------------------
# JSON-RPC
# -----------------------------------------------------------------------------


def _sidecar(ctx: Context) -> Sidecar:
    sc = getattr(ctx.app_state, "sidecar", None)
    if sc is None:
        raise ChainUnavailable("sidecar not initialized")
    return sc


def broadcast_tx_sync(tx: str, *, ctx: Context) -> t.Dict[str, t.Any]:
    ack = _sidecar(ctx).broadcast.broadcast_tx(tx)
    return {"code": 0, "data": "", "log": "", "codespace": "", "hash": ack.txhash.upper()}


def tx_search(
    query: str,
    prove: bool = False,
    page: t.Optional[t.Union[int, str]] = None,
    per_page: t.Optional[t.Union[int, str]] = None,
    order_by: t.Optional[str] = None,
    *,
    ctx: Context,
) -> t.Dict[str, t.Any]:
    # A hash query yields at most one result; paging and ordering are accepted for
    # client compatibility and have nothing to act on.
    return _sidecar(ctx).search.search_query(query).to_wire()


def tx(hash: str, prove: bool = False, *, ctx: Context) -> t.Dict[str, t.Any]:
    record = _sidecar(ctx).search.get_tx(hash)
    if record is None:
        raise NotFound("tx", hash=hash)
    return record.to_wire()


def abci_simulate(tx: str, *, ctx: Context) -> t.Dict[str, t.Any]:
    return _sidecar(ctx).simulation.simulate(tx).to_wire()


def register_rpc_methods(registry: MethodRegistry) -> MethodRegistry:
    registry.register("broadcast_tx_sync", broadcast_tx_sync)
    registry.register("tx_search", tx_search)
    registry.register("tx", tx)
    registry.register("abci_simulate", abci_simulate)
    registry.register("rpc.listMethods", lambda: registry.names)
    return registry


__all__ = [
    "router",
    "register_rpc_methods",
    "broadcast_tx_sync",
    "tx_search",
    "tx",
    "abci_simulate",
]
