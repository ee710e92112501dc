from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Callable, Iterable

import requests

from .errors import KeyNotFoundError, StoreClientError

STATUS_PATH = "/v3/maintenance/status"
PUT_PATH = "/v3/kv/put"
RANGE_PATH = "/v3/kv/range"
DEFAULT_RECONFIGURE_PATH = "/v3/cluster/member/joint"


@dataclass(frozen=True)
class EndpointStatus:
    """Leadership view reported by a single endpoint."""

    leader_id: int
    member_id: int

    @property
    def is_leader(self) -> bool:
        return self.leader_id != 0 and self.leader_id == self.member_id


class StoreClient:
    """Minimal client for the etcd v3 JSON gateway.

    Every failure (transport, HTTP status, gateway error payload or an
    undecodable body) is raised as :class:`StoreClientError`.
    """

    def __init__(
        self,
        endpoint: str,
        session: requests.Session | None = None,
        reconfigure_path: str = DEFAULT_RECONFIGURE_PATH,
    ) -> None:
        self._endpoint = endpoint
        self._base_url = normalise_endpoint(endpoint)
        self._session = session or requests.Session()
        self._reconfigure_path = reconfigure_path

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def status(self, timeout: float) -> EndpointStatus:
        payload = self._post(STATUS_PATH, {}, timeout)
        header = payload.get("header") or {}
        return EndpointStatus(
            leader_id=_as_uint(payload.get("leader")),
            member_id=_as_uint(header.get("member_id")),
        )

    def write(self, key: str, value: str, timeout: float) -> None:
        self._post(PUT_PATH, {"key": _b64(key), "value": _b64(value)}, timeout)

    def read(self, key: str, timeout: float) -> bytes:
        payload = self._post(RANGE_PATH, {"key": _b64(key)}, timeout)
        kvs = payload.get("kvs") or []
        if not kvs:
            raise KeyNotFoundError(f"key {key!r} not found on {self._endpoint}")
        if len(kvs) != 1:
            raise StoreClientError(
                f"expected a single value for {key!r} on {self._endpoint}, got {len(kvs)}"
            )
        try:
            return base64.b64decode(kvs[0].get("value", ""))
        except (TypeError, ValueError) as exc:
            raise StoreClientError(f"undecodable value for {key!r}: {exc}") from exc

    def reconfigure(self, member_ids: Iterable[int], timeout: float) -> None:
        body = {"members": [{"ID": str(member_id)} for member_id in member_ids]}
        self._post(self._reconfigure_path, body, timeout)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> StoreClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _post(self, path: str, body: dict[str, Any], timeout: float) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.post(url, json=body, timeout=timeout)
        except requests.RequestException as exc:
            raise StoreClientError(f"{url}: {exc}") from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError as exc:
            raise StoreClientError(
                f"{url}: undecodable response (HTTP {response.status_code})"
            ) from exc

        if not isinstance(payload, dict):
            raise StoreClientError(f"{url}: unexpected response body {payload!r}")
        if response.status_code >= 400 or "error" in payload:
            message = payload.get("message") or payload.get("error") or response.reason
            raise StoreClientError(f"{url}: HTTP {response.status_code}: {message}")
        return payload


ClientFactory = Callable[[str], StoreClient]


def create_client(
    endpoint: str, reconfigure_path: str = DEFAULT_RECONFIGURE_PATH
) -> StoreClient:
    return StoreClient(endpoint, reconfigure_path=reconfigure_path)


def normalise_endpoint(endpoint: str) -> str:
    endpoint = endpoint.strip().rstrip("/")
    if not endpoint:
        raise StoreClientError("empty endpoint")
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    return endpoint


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _as_uint(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise StoreClientError(f"invalid member id {value!r}") from exc


__all__ = [
    "ClientFactory",
    "DEFAULT_RECONFIGURE_PATH",
    "EndpointStatus",
    "StoreClient",
    "create_client",
    "normalise_endpoint",
]
