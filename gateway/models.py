"""
Gateway models: typed JSON shapes accepted and returned by the REST routes.
These are *views* over `sidecar.types.records` and keep Cosmos field names
(`txhash`, `gas_wanted`, `raw_log`, ...) stable for clients and SDKs.

Includes:
- JSON-RPC 2.0 envelopes (request/response/error)
- Broadcast / simulate request bodies
- TxResponse, indexed tx result and simulation views

Validation:
- `tx_bytes` must be non-empty; base64 strictness is enforced by the core codec
  so both REST and JSON-RPC report the same InputError.
- Broadcast `mode` is one of the Cosmos BroadcastMode names.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------------------------------------------
# JSON-RPC envelopes
# -----------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    model_config = ConfigDict(frozen=True, str_max_length=1_000_000)
    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Union[list[Any], dict[str, Any]]] = None
    id: Optional[Union[int, str]] = None


class JsonRpcError(BaseModel):
    model_config = ConfigDict(frozen=True)
    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcResponse(BaseModel):
    model_config = ConfigDict(frozen=True)
    jsonrpc: Literal["2.0"] = "2.0"
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None
    id: Optional[Union[int, str]] = None


# -----------------------------------------------------------------------------
# Request bodies
# -----------------------------------------------------------------------------

BroadcastMode = Literal[
    "BROADCAST_MODE_UNSPECIFIED",
    "BROADCAST_MODE_BLOCK",
    "BROADCAST_MODE_SYNC",
    "BROADCAST_MODE_ASYNC",
]


class BroadcastTxRequest(BaseModel):
    """
    Body of `POST /cosmos/tx/v1beta1/txs`. Every mode is answered synchronously
    with the storage hash; inclusion is observed later through search.
    """

    model_config = ConfigDict(frozen=True)
    tx_bytes: str = Field(min_length=1)
    mode: BroadcastMode = "BROADCAST_MODE_SYNC"


class SimulateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)
    tx_bytes: str = Field(min_length=1)


# -----------------------------------------------------------------------------
# Response views
# -----------------------------------------------------------------------------


class AttributeView(BaseModel):
    model_config = ConfigDict(frozen=True)
    key: str
    value: str


class EventView(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: str
    attributes: List[AttributeView] = Field(default_factory=list)


class TxResultView(BaseModel):
    model_config = ConfigDict(frozen=True)
    code: int
    data: str = ""
    log: str = ""
    info: str = ""
    gas_wanted: str
    gas_used: str
    events: List[EventView] = Field(default_factory=list)
    codespace: str = ""


class IndexedTxView(BaseModel):
    """Indexed result of one transaction; hash is upper-case hex."""

    model_config = ConfigDict(frozen=True)
    hash: str
    height: str
    index: int
    tx_result: TxResultView
    tx: str


class TxResponseView(BaseModel):
    """Cosmos `TxResponse` as returned by the broadcast endpoint."""

    model_config = ConfigDict(frozen=True)
    height: str = "0"
    txhash: str
    codespace: str = ""
    code: int = 0
    data: str = ""
    raw_log: str = ""
    logs: List[Any] = Field(default_factory=list)
    info: str = ""
    gas_wanted: str = "0"
    gas_used: str = "0"
    tx: Optional[Any] = None
    timestamp: str = ""
    events: List[EventView] = Field(default_factory=list)


class BroadcastResponseView(BaseModel):
    model_config = ConfigDict(frozen=True)
    tx_response: TxResponseView


class GetTxResponseView(BaseModel):
    model_config = ConfigDict(frozen=True)
    tx_response: IndexedTxView


class GasInfoView(BaseModel):
    model_config = ConfigDict(frozen=True)
    gas_wanted: str
    gas_used: str


class SimulateResultView(BaseModel):
    model_config = ConfigDict(frozen=True)
    data: str = ""
    log: str = ""
    events: List[EventView] = Field(default_factory=list)
    msg_responses: List[Any] = Field(default_factory=list)


class SimulateResponseView(BaseModel):
    model_config = ConfigDict(frozen=True)
    gas_info: GasInfoView
    result: SimulateResultView


__all__ = [
    "JsonRpcRequest",
    "JsonRpcError",
    "JsonRpcResponse",
    "BroadcastMode",
    "BroadcastTxRequest",
    "SimulateRequest",
    "AttributeView",
    "EventView",
    "TxResultView",
    "IndexedTxView",
    "TxResponseView",
    "BroadcastResponseView",
    "GetTxResponseView",
    "GasInfoView",
    "SimulateResultView",
    "SimulateResponseView",
]
