"""Lotus full-node JSON-RPC client for the chain-state queries used in recovery."""

from __future__ import annotations

import base64
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any

import requests

from sector_recovery.chain.address import ProviderIdentity
from sector_recovery.chain.types import (
    DomainSeparationTag,
    OnChainSectorInfo,
    PreCommitInfo,
    RegisteredSealProof,
    Tipset,
    TipsetKey,
)
from sector_recovery.config import ChainConfig
from sector_recovery.errors import Cancelled, ChainQueryFailed

LOGGER = logging.getLogger(__name__)

RPC_PATH = "/rpc/v1"


class CancelToken:
    """Cooperative cancellation flag shared between the caller and the client."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, method: str) -> None:
        if self._event.is_set():
            raise Cancelled(f"run cancelled before {method}")


def multiaddr_to_url(multiaddr: str) -> str:
    """Convert a Lotus API multiaddr such as ``/ip4/127.0.0.1/tcp/1234/http`` to an RPC URL."""

    parts = [part for part in multiaddr.strip().split("/") if part]
    if len(parts) < 4 or parts[2] != "tcp":
        raise ValueError(f"unsupported API multiaddr: {multiaddr!r}")
    host_kind, host, _, port = parts[:4]
    if host_kind not in {"ip4", "ip6", "dns", "dns4", "dns6"}:
        raise ValueError(f"unsupported API multiaddr host kind: {host_kind!r}")
    if not port.isdigit():
        raise ValueError(f"invalid API multiaddr port: {port!r}")
    transport = parts[4] if len(parts) > 4 else "http"
    scheme = "https" if transport in {"https", "wss"} else "http"
    if host_kind == "ip6":
        host = f"[{host}]"
    return f"{scheme}://{host}:{port}{RPC_PATH}"


def parse_api_info(value: str) -> tuple[str, str | None]:
    """Split a ``FULLNODE_API_INFO`` value into ``(rpc_url, token)``.

    Accepts ``token:/ip4/.../tcp/.../http``, a bare multiaddr, or
    ``token:http://host:port/rpc/v1``.
    """

    text = value.strip()
    if not text:
        raise ValueError("empty API info")
    if text.startswith("/"):
        return multiaddr_to_url(text), None
    if text.startswith(("http://", "https://")):
        return text, None
    token, separator, endpoint = text.partition(":")
    if not separator or not endpoint:
        raise ValueError("API info must be '<token>:<multiaddr>'")
    if endpoint.startswith("/"):
        return multiaddr_to_url(endpoint), token or None
    if endpoint.startswith(("http://", "https://")):
        return endpoint, token or None
    raise ValueError(f"unsupported API endpoint in API info: {endpoint!r}")


def _cid(value: Any, method: str) -> str:
    if isinstance(value, dict) and isinstance(value.get("/"), str):
        return value["/"]
    raise ChainQueryFailed(method, f"expected CID object, got {value!r}")


def _int_field(payload: dict[str, Any], key: str, method: str) -> int:
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ChainQueryFailed(method, f"missing or non-integer field {key!r}: {value!r}")
    return value


def _epoch_field(payload: dict[str, Any], key: str, method: str) -> int:
    value = _int_field(payload, key, method)
    if value < 0:
        raise ChainQueryFailed(method, f"negative epoch in field {key!r}: {value}")
    return value


def _seal_proof(payload: dict[str, Any], method: str) -> RegisteredSealProof:
    raw = _int_field(payload, "SealProof", method)
    try:
        return RegisteredSealProof(raw)
    except ValueError as exc:
        raise ChainQueryFailed(method, f"unknown seal proof type {raw}") from exc


@dataclass
class LotusClient:
    """Synchronous Lotus JSON-RPC client.

    Every query checks the cancel token first and is bounded by
    ``timeout_seconds``. Failures never retry; they surface as
    ``ChainQueryFailed`` for the caller to classify.
    """

    api_url: str
    api_token: str | None = None
    timeout_seconds: float = 60.0
    session: requests.Session | None = None
    cancel_token: CancelToken = field(default_factory=CancelToken)

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._session = self.session or requests.Session()
        self._request_id = 0

    def close(self) -> None:
        if self.session is None:
            self._session.close()

    def call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its ``result`` member."""

        self.cancel_token.raise_if_cancelled(method)
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        LOGGER.debug("chain.call method=%s id=%s", method, self._request_id)
        try:
            response = self._session.post(
                self.api_url, json=payload, headers=headers, timeout=self.timeout_seconds
            )
        except requests.Timeout as exc:
            raise ChainQueryFailed(method, f"timeout after {self.timeout_seconds}s") from exc
        except requests.RequestException as exc:
            raise ChainQueryFailed(method, str(exc)[:256]) from exc

        if response.status_code >= 400:
            detail = (response.text or "")[:256]
            raise ChainQueryFailed(method, f"http_{response.status_code} {detail}".strip())
        try:
            body = response.json()
        except ValueError as exc:
            raise ChainQueryFailed(method, "invalid JSON-RPC response body") from exc
        if not isinstance(body, dict):
            raise ChainQueryFailed(method, "JSON-RPC response is not an object")
        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise ChainQueryFailed(method, str(message))
        return body.get("result")

    def get_provider_sector_size(self, provider: ProviderIdentity) -> int:
        method = "Filecoin.StateMinerInfo"
        result = self.call(method, [str(provider), []])
        if not isinstance(result, dict):
            raise ChainQueryFailed(method, "empty miner info")
        return _int_field(result, "SectorSize", method)

    def get_committed_sector_info(
        self, provider: ProviderIdentity, sector_number: int
    ) -> OnChainSectorInfo | None:
        method = "Filecoin.StateSectorGetInfo"
        result = self.call(method, [str(provider), sector_number, []])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise ChainQueryFailed(method, "sector info is not an object")
        return OnChainSectorInfo(
            sector_number=_int_field(result, "SectorNumber", method),
            seal_proof=_seal_proof(result, method),
            sealed_cid=_cid(result.get("SealedCID"), method),
            activation=_epoch_field(result, "Activation", method),
        )

    def get_pre_committed_sector_info(
        self, provider: ProviderIdentity, sector_number: int
    ) -> PreCommitInfo | None:
        method = "Filecoin.StateSectorPreCommitInfo"
        result = self.call(method, [str(provider), sector_number, []])
        if result is None:
            return None
        info = result.get("Info") if isinstance(result, dict) else None
        if not isinstance(info, dict):
            raise ChainQueryFailed(method, "pre-commit info is missing its Info member")
        return PreCommitInfo(
            sector_number=_int_field(info, "SectorNumber", method),
            seal_proof=_seal_proof(info, method),
            sealed_cid=_cid(info.get("SealedCID"), method),
            pre_commit_epoch=_epoch_field(result, "PreCommitEpoch", method),
        )

    def get_tipset_at_epoch(self, epoch: int, search_from: TipsetKey) -> Tipset:
        method = "Filecoin.ChainGetTipSetByHeight"
        result = self.call(method, [epoch, search_from.to_json()])
        if not isinstance(result, dict) or not isinstance(result.get("Cids"), list):
            raise ChainQueryFailed(method, "tipset response is missing Cids")
        cids = tuple(_cid(item, method) for item in result["Cids"])
        if not cids:
            raise ChainQueryFailed(method, "tipset response has no block CIDs")
        return Tipset(key=TipsetKey(cids), height=_epoch_field(result, "Height", method))

    def derive_seal_randomness(
        self,
        tag: DomainSeparationTag,
        epoch: int,
        entropy: bytes,
        tipset_key: TipsetKey,
    ) -> bytes:
        method = "Filecoin.StateGetRandomnessFromTickets"
        params = [int(tag), epoch, base64.b64encode(entropy).decode("ascii"), tipset_key.to_json()]
        result = self.call(method, params)
        if not isinstance(result, str):
            raise ChainQueryFailed(method, "randomness response is not a base64 string")
        try:
            return base64.b64decode(result, validate=True)
        except ValueError as exc:
            raise ChainQueryFailed(method, "randomness response is not valid base64") from exc


def build_chain_client(
    config: ChainConfig,
    *,
    cancel_token: CancelToken | None = None,
    session: requests.Session | None = None,
    logger: logging.Logger | None = None,
) -> LotusClient:
    """Build a client from settings, preferring the Lotus API info environment variable."""

    effective_logger = logger or LOGGER
    api_url = config.api_url
    api_token = config.api_token
    api_info = os.getenv(config.api_info_env) if config.api_info_env else None
    if api_info:
        try:
            api_url, info_token = parse_api_info(api_info)
        except ValueError as exc:
            raise ChainQueryFailed("api_info", f"{config.api_info_env}: {exc}") from exc
        api_token = info_token or api_token
        effective_logger.info("chain.endpoint source=%s url=%s", config.api_info_env, api_url)
    else:
        effective_logger.info("chain.endpoint source=settings url=%s", api_url)

    return LotusClient(
        api_url=api_url,
        api_token=api_token,
        timeout_seconds=config.timeout_sec,
        session=session,
        cancel_token=cancel_token or CancelToken(),
    )
