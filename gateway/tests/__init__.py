"""
Test utilities for the sidecar gateway.

Usage in tests:
    from gateway.tests import new_test_client, rpc_call

    def test_health():
        client, _, _ = new_test_client()
        assert client.get("/healthz").json()["ok"] is True

    def test_rpc_example():
        client, chain, _ = new_test_client()
        res = rpc_call(client, "broadcast_tx_sync", {"tx": "ZHVtbXk="})
        assert chain.submitted == ["0x64756d6d79"]
"""
from __future__ import annotations

import typing as t

from fastapi.testclient import TestClient

from gateway import server as gateway_server
from sidecar import config as sidecar_config
from sidecar.app import Sidecar
from sidecar.tests import FakeChain, new_store


def make_test_config(**gateway_overrides: t.Any) -> sidecar_config.SidecarConfig:
    return sidecar_config.SidecarConfig(
        gateway=sidecar_config.GatewayConfig(port=0, **gateway_overrides),
        db_uri="memory://",
        log_level="ERROR",
        follower=sidecar_config.FollowerConfig(enabled=False),
    )


def new_test_client(
    chain: FakeChain | None = None, **gateway_overrides: t.Any
) -> tuple[TestClient, FakeChain, Sidecar]:
    """
    Create a TestClient bound to a fresh app around an in-memory Sidecar.
    Returns (client, chain, sidecar).
    """
    chain = chain or FakeChain()
    sc = Sidecar(chain=chain, store=new_store())
    app = gateway_server.create_app(make_test_config(**gateway_overrides), sidecar=sc)
    return TestClient(app), chain, sc


def rpc_call(
    client: TestClient,
    method: str,
    params: t.Any | None = None,
    *,
    id: t.Any = 1,
    expect_error: bool = False,
    path: str = "/rpc",
) -> dict:
    """
    POST a JSON-RPC request and return the parsed response.
    Set expect_error=True to assert an 'error' object is present.
    """
    payload: dict = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        payload["params"] = params
    resp = client.post(path, json=payload)
    assert resp.status_code == 200, f"HTTP {resp.status_code}: {resp.text}"
    data = resp.json()
    if expect_error:
        assert "error" in data, f"expected JSON-RPC error, got {data}"
    else:
        assert "result" in data, f"expected JSON-RPC result, got {data}"
    return data


__all__ = ["make_test_config", "new_test_client", "rpc_call"]
