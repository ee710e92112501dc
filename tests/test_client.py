"""Tests for the etcd JSON gateway client."""

import base64
import json

import pytest
import requests

from reconbench.client import StoreClient, normalise_endpoint
from reconbench.errors import KeyNotFoundError, StoreClientError


def _b64(text):
    return base64.b64encode(text.encode()).decode()


class FakeResponse:
    def __init__(self, payload, status_code=200, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self.content = b"" if payload is None else json.dumps(payload).encode()
        self._payload = payload

    def json(self):
        return json.loads(self.content)


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class TestStoreClient:
    def test_status_parses_uint64_strings(self):
        session = FakeSession(
            FakeResponse({"header": {"member_id": "18446744073709551615"}, "leader": "42"})
        )
        client = StoreClient("10.0.0.1:2379", session=session)

        status = client.status(timeout=3)

        assert status.leader_id == 42
        assert status.member_id == 18446744073709551615
        assert not status.is_leader
        assert session.calls[0]["url"] == "http://10.0.0.1:2379/v3/maintenance/status"
        assert session.calls[0]["timeout"] == 3

    def test_status_without_leader_reports_zero(self):
        session = FakeSession(FakeResponse({"header": {"member_id": "7"}}))
        status = StoreClient("e:1", session=session).status(timeout=1)
        assert status.leader_id == 0

    def test_write_encodes_key_and_value(self):
        session = FakeSession(FakeResponse({"header": {}}))
        StoreClient("http://e:2379", session=session).write("thread-0-1", "1", timeout=300)

        call = session.calls[0]
        assert call["url"] == "http://e:2379/v3/kv/put"
        assert call["json"] == {"key": _b64("thread-0-1"), "value": _b64("1")}

    def test_read_returns_decoded_value(self):
        session = FakeSession(
            FakeResponse({"kvs": [{"key": _b64("measurement"), "value": _b64('{"a": 1}')}], "count": "1"})
        )
        value = StoreClient("e:2379", session=session).read("measurement", timeout=5)
        assert value == b'{"a": 1}'

    def test_read_missing_key(self):
        session = FakeSession(FakeResponse({"header": {}}))
        with pytest.raises(KeyNotFoundError):
            StoreClient("e:2379", session=session).read("measurement", timeout=5)

    def test_reconfigure_sends_member_ids(self):
        session = FakeSession(FakeResponse({}))
        client = StoreClient("e:2379", session=session, reconfigure_path="/v3/cluster/member/joint")

        client.reconfigure([101, 202], timeout=300)

        call = session.calls[0]
        assert call["url"] == "http://e:2379/v3/cluster/member/joint"
        assert call["json"] == {"members": [{"ID": "101"}, {"ID": "202"}]}

    def test_http_error_raises(self):
        session = FakeSession(
            FakeResponse({"error": "etcdserver: request timed out", "code": 14}, status_code=503, reason="Unavailable")
        )
        with pytest.raises(StoreClientError, match="request timed out"):
            StoreClient("e:2379", session=session).write("k", "v", timeout=1)

    def test_transport_error_raises(self):
        session = FakeSession(requests.ConnectionError("refused"))
        with pytest.raises(StoreClientError, match="refused"):
            StoreClient("e:2379", session=session).status(timeout=1)

    def test_context_manager_closes_session(self):
        session = FakeSession()
        with StoreClient("e:2379", session=session):
            pass
        assert session.closed


@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("127.0.0.1:2379", "http://127.0.0.1:2379"),
        ("https://node:2379/", "https://node:2379"),
        (" node:2379 ", "http://node:2379"),
    ],
)
def test_normalise_endpoint(endpoint, expected):
    assert normalise_endpoint(endpoint) == expected


def test_normalise_empty_endpoint():
    with pytest.raises(StoreClientError):
        normalise_endpoint("  ")
