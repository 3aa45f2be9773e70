from __future__ import annotations

import base64

import pytest
import requests

from sector_recovery.chain.address import resolve_provider
from sector_recovery.chain.client import CancelToken, LotusClient, build_chain_client, parse_api_info
from sector_recovery.chain.types import (
    EMPTY_TIPSET_KEY,
    DomainSeparationTag,
    RegisteredSealProof,
    TipsetKey,
)
from sector_recovery.config import ChainConfig
from sector_recovery.errors import Cancelled, ChainQueryFailed

PROVIDER = resolve_provider("f01000")


class _StubResponse:
    def __init__(self, status_code: int = 200, body: object = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self) -> object:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class _StubSession:
    def __init__(self, responses: list[object]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, object]] = []

    def post(self, url: str, **kwargs: object) -> object:
        self.calls.append({"url": url, **kwargs})
        if not self._responses:
            raise AssertionError("no stub responses configured")
        next_item = self._responses.pop(0)
        if isinstance(next_item, Exception):
            raise next_item
        return next_item

    def close(self) -> None:
        pass


def _result(value: object) -> _StubResponse:
    return _StubResponse(body={"jsonrpc": "2.0", "id": 1, "result": value})


def _client(*responses: object, token: str | None = "secret") -> tuple[LotusClient, _StubSession]:
    session = _StubSession(list(responses))
    client = LotusClient(
        api_url="http://127.0.0.1:1234/rpc/v1",
        api_token=token,
        timeout_seconds=7.5,
        session=session,  # type: ignore[arg-type]
    )
    return client, session


def test_call_sends_json_rpc_envelope_with_bearer_token() -> None:
    client, session = _client(_result({"SectorSize": 34359738368}))

    assert client.get_provider_sector_size(PROVIDER) == 34359738368

    call = session.calls[0]
    assert call["url"] == "http://127.0.0.1:1234/rpc/v1"
    assert call["timeout"] == 7.5
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["json"]["method"] == "Filecoin.StateMinerInfo"
    assert call["json"]["params"] == ["f01000", []]
    assert call["json"]["jsonrpc"] == "2.0"


def test_committed_sector_info_parses_and_absent_is_none() -> None:
    client, session = _client(
        _result({"SectorNumber": 5, "SealProof": 8, "SealedCID": {"/": "bagboea-5"}, "Activation": 200}),
        _result(None),
    )

    info = client.get_committed_sector_info(PROVIDER, 5)

    assert info is not None
    assert info.seal_proof == RegisteredSealProof.STACKED_DRG_32GIB_V1_1
    assert info.sealed_cid == "bagboea-5"
    assert info.activation == 200
    assert client.get_committed_sector_info(PROVIDER, 6) is None
    assert session.calls[1]["json"]["params"] == ["f01000", 6, []]


def test_pre_commit_info_reads_nested_info_and_epoch() -> None:
    client, _ = _client(
        _result(
            {
                "Info": {"SectorNumber": 3, "SealProof": 8, "SealedCID": {"/": "bagboea-3"}},
                "PreCommitDeposit": "1000",
                "PreCommitEpoch": 150,
            }
        )
    )

    info = client.get_pre_committed_sector_info(PROVIDER, 3)

    assert info is not None
    assert info.pre_commit_epoch == 150
    assert info.sealed_cid == "bagboea-3"


def test_tipset_lookup_passes_search_start_key() -> None:
    client, session = _client(_result({"Cids": [{"/": "bafy-a"}, {"/": "bafy-b"}], "Height": 190}))

    tipset = client.get_tipset_at_epoch(200, TipsetKey(("bafy-head",)))

    assert tipset.key == TipsetKey(("bafy-a", "bafy-b"))
    assert tipset.height == 190
    assert session.calls[0]["json"]["params"] == [200, [{"/": "bafy-head"}]]


def test_randomness_request_encodes_entropy_and_decodes_result() -> None:
    ticket = bytes(range(32))
    client, session = _client(_result(base64.b64encode(ticket).decode("ascii")))

    value = client.derive_seal_randomness(
        DomainSeparationTag.SEAL_RANDOMNESS, 200, PROVIDER.to_cbor(), EMPTY_TIPSET_KEY
    )

    assert value == ticket
    assert session.calls[0]["json"]["params"] == [5, 200, "QwDoBw==", []]


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
        _StubResponse(status_code=401, text="unauthorized"),
        _StubResponse(body={"jsonrpc": "2.0", "id": 1, "error": {"code": 1, "message": "actor not found"}}),
        _StubResponse(body=ValueError("not json")),
        _result({"NoSectorSize": True}),
    ],
)
def test_transport_and_payload_errors_become_chain_query_failed(response: object) -> None:
    client, _ = _client(response)

    with pytest.raises(ChainQueryFailed) as excinfo:
        client.get_provider_sector_size(PROVIDER)

    assert excinfo.value.method == "Filecoin.StateMinerInfo"


def test_unknown_seal_proof_is_rejected() -> None:
    client, _ = _client(_result({"SectorNumber": 5, "SealProof": 99, "SealedCID": {"/": "x"}, "Activation": 1}))

    with pytest.raises(ChainQueryFailed):
        client.get_committed_sector_info(PROVIDER, 5)


@pytest.mark.parametrize("size", [True, 200.7, "34359738368", None])
def test_non_integer_fields_are_rejected(size: object) -> None:
    client, _ = _client(_result({"SectorSize": size}))

    with pytest.raises(ChainQueryFailed):
        client.get_provider_sector_size(PROVIDER)


def test_negative_activation_is_rejected() -> None:
    client, _ = _client(_result({"SectorNumber": 5, "SealProof": 8, "SealedCID": {"/": "x"}, "Activation": -1}))

    with pytest.raises(ChainQueryFailed) as excinfo:
        client.get_committed_sector_info(PROVIDER, 5)

    assert "Activation" in str(excinfo.value)


def test_negative_pre_commit_epoch_is_rejected() -> None:
    client, _ = _client(
        _result(
            {
                "Info": {"SectorNumber": 3, "SealProof": 8, "SealedCID": {"/": "bagboea-3"}},
                "PreCommitEpoch": -10,
            }
        )
    )

    with pytest.raises(ChainQueryFailed):
        client.get_pre_committed_sector_info(PROVIDER, 3)


def test_cancelled_client_issues_no_request() -> None:
    token = CancelToken()
    session = _StubSession([])
    client = LotusClient(api_url="http://node/rpc/v1", session=session, cancel_token=token)  # type: ignore[arg-type]
    token.cancel()

    with pytest.raises(Cancelled):
        client.get_provider_sector_size(PROVIDER)
    assert session.calls == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("tok:/ip4/10.0.0.5/tcp/1234/http", ("http://10.0.0.5:1234/rpc/v1", "tok")),
        ("/dns/lotus.local/tcp/443/https", ("https://lotus.local:443/rpc/v1", None)),
        ("tok:/ip6/::1/tcp/1234/ws", ("http://[::1]:1234/rpc/v1", "tok")),
        ("tok:http://node:1234/rpc/v1", ("http://node:1234/rpc/v1", "tok")),
    ],
)
def test_parse_api_info(value: str, expected: tuple[str, str | None]) -> None:
    assert parse_api_info(value) == expected


def test_parse_api_info_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_api_info("token-without-endpoint")


def test_build_chain_client_prefers_api_info_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_FULLNODE_API_INFO", "envtoken:/ip4/127.0.0.9/tcp/2345/http")
    config = ChainConfig(api_url="http://ignored/rpc/v1", api_token="cfg", api_info_env="TEST_FULLNODE_API_INFO")

    client = build_chain_client(config, session=_StubSession([]))  # type: ignore[arg-type]

    assert client.api_url == "http://127.0.0.9:2345/rpc/v1"
    assert client.api_token == "envtoken"


def test_build_chain_client_falls_back_to_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TEST_FULLNODE_API_INFO", raising=False)
    config = ChainConfig(api_url="http://node/rpc/v1", api_token="cfg", timeout_sec=3, api_info_env="TEST_FULLNODE_API_INFO")

    client = build_chain_client(config, session=_StubSession([]))  # type: ignore[arg-type]

    assert (client.api_url, client.api_token, client.timeout_seconds) == ("http://node/rpc/v1", "cfg", 3)
