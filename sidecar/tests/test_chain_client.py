from __future__ import annotations

import json

import httpx
import pytest

from sidecar.chain.client import ChainClient, HttpChainClient, to_chain_event
from sidecar.chain.profiles import COSM, COSMOS
from sidecar.errors import ChainUnavailable, DecodeError, SubmissionError
from sidecar.tests import FakeChain, tx_raw
from sidecar.types.chain import ChainEvent


def _client(handler, profile=COSMOS, **kwargs) -> HttpChainClient:
    return HttpChainClient(
        "http://node.test/", profile=profile, transport=httpx.MockTransport(handler), **kwargs
    )


def _ok(result):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        handler.calls.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    handler.calls = []
    return handler


def test_fake_and_http_clients_satisfy_protocol():
    assert isinstance(FakeChain(), ChainClient)
    assert isinstance(_client(_ok("0x00")), ChainClient)


@pytest.mark.parametrize("profile, method", [(COSMOS, "cosmos_broadcastTx"), (COSM, "cosm_broadcastTx")])
def test_submit_uses_profile_namespace(profile, method):
    handler = _ok("0x" + "aa" * 32)
    with _client(handler, profile=profile) as client:
        assert client.submit("0x64756d6d79") == "0x" + "aa" * 32
    call = handler.calls[0]
    assert call["method"] == method
    assert call["params"] == ["0x64756d6d79"]
    assert call["jsonrpc"] == "2.0"


def test_request_ids_increase():
    handler = _ok("0x01")
    client = _client(handler)
    client.submit("0x00")
    client.submit("0x00")
    assert [c["id"] for c in handler.calls] == [1, 2]


def test_submit_rpc_error_is_submission_error():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": 1010, "message": "Invalid Transaction"}})

    with pytest.raises(SubmissionError) as ei:
        _client(handler).submit("0x00")
    assert ei.value.data["rpc_code"] == 1010


def test_submit_transport_error_is_submission_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(SubmissionError) as ei:
        _client(handler).submit("0x00")
    assert isinstance(ei.value.cause, httpx.ConnectError)


@pytest.mark.parametrize("result", ["", 5, None, {"hash": "0x"}])
def test_submit_bad_identifier(result):
    with pytest.raises(DecodeError):
        _client(_ok(result)).submit("0x00")


def test_response_without_result_or_error():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1})

    with pytest.raises(DecodeError):
        _client(handler).submit("0x00")


def test_simulate_transport_failure_is_chain_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ChainUnavailable):
        _client(handler).simulate("0x00")


def test_simulate_rejection_is_submission_error():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "bad tx"}})

    with pytest.raises(SubmissionError):
        _client(handler).simulate("0x00")


def test_simulate_returns_mapping():
    reply = {"gas_info": {"gas_wanted": 1, "gas_used": 1}, "events": []}
    handler = _ok(reply)
    assert _client(handler).simulate("0x00") == reply
    assert handler.calls[0]["method"] == "cosmos_simulate"
    with pytest.raises(DecodeError):
        _client(_ok([1, 2])).simulate("0x00")


def test_events_come_from_injected_source():
    seen = []

    def source(block_hash):
        seen.append(block_hash)
        return [
            {"event": {"section": "cosmos", "method": "Executed", "data": [1, 1, []]}, "phase": {"applyExtrinsic": 0}},
            ChainEvent("system", "ExtrinsicSuccess", []),
        ]

    events = _client(_ok(None), events_source=source).events_at("0xbeef")
    assert seen == ["0xbeef"]
    assert [e.name for e in events] == ["cosmos::Executed", "system::ExtrinsicSuccess"]
    assert events[0].phase == {"applyExtrinsic": 0}


def test_events_without_source():
    with pytest.raises(ChainUnavailable):
        _client(_ok(None)).events_at("0xbeef")


@pytest.mark.parametrize("rec", [{"phase": 1}, {"event": {"section": "x"}}, "nope"])
def test_malformed_event_records(rec):
    with pytest.raises(DecodeError):
        to_chain_event(rec)


def test_fee_metadata_is_decoded_locally():
    assert _client(_ok(None)).decode_tx_fee_metadata(tx_raw(4242)).gas_limit == 4242
