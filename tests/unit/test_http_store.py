"""
Unit tests for the HTTP remote store client.

The requests session is mocked; no network access is made.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest
import requests

from ledger.core.exceptions import (
    DuplicateNameError, RemoteNetworkError, RemoteStoreError, RemoteTimeoutError,
)
from ledger.core.models import ParsedPartyInput, Snapshot
from ledger.store.http_store import HttpRemoteStore
from ledger.transfer.codec import encode_snapshot


def make_response(status_code=200, payload=None, text=None):
    response = Mock()
    response.status_code = status_code
    response.reason = "Reason"
    if payload is not None:
        body = json.dumps(payload)
        response.content = body.encode("utf-8")
        response.text = body
        response.json.return_value = payload
    else:
        response.content = (text or "").encode("utf-8")
        response.text = text or ""
        response.json.side_effect = ValueError("no json")
    return response


@pytest.fixture
def session():
    mock = Mock(spec=requests.Session)
    mock.headers = {}
    return mock


@pytest.fixture
def store(session):
    return HttpRemoteStore(
        "https://ledger.example.com/api/",
        max_retries=3,
        backoff_factor=0,
        api_token="secret",
        session=session,
    )


class TestHttpRemoteStore:
    """Tests for HttpRemoteStore requests and responses."""

    def test_session_headers(self, store, session):
        assert session.headers["Authorization"] == "Bearer secret"
        assert session.headers["Accept"] == "application/json"

    def test_generate_id(self, store, session):
        session.request.return_value = make_response(payload={"id": "P000042"})

        party_id = asyncio.run(store.generate_id("Acme", "555"))

        assert party_id == "P000042"
        method, url = session.request.call_args[0]
        assert method == "POST"
        assert url == "https://ledger.example.com/api/parties/id"
        assert json.loads(session.request.call_args[1]["data"]) == {"name": "Acme", "phone": "555"}

    def test_generate_id_without_id(self, store, session):
        session.request.return_value = make_response(payload={})

        with pytest.raises(RemoteStoreError, match="no id"):
            asyncio.run(store.generate_id("Acme", "555"))

    def test_create_party_sends_wire_fields(self, store, session):
        session.request.return_value = make_response(status_code=201, text="")
        fields = ParsedPartyInput(name="Acme", address="1 Rd", phone="5", tax_id="PAN1", due_amount=2 ** 70)

        asyncio.run(store.create_party("P1", fields))

        body = json.loads(session.request.call_args[1]["data"])
        assert body == {
            "id": "P1", "name": "Acme", "address": "1 Rd", "phone": "5",
            "pan": "PAN1", "dueAmount": str(2 ** 70),
        }

    def test_conflict_is_duplicate_name(self, store, session):
        session.request.return_value = make_response(409, {"error": "Party already exists"})

        with pytest.raises(DuplicateNameError, match="already exists") as exc_info:
            asyncio.run(store.generate_id("Acme", ""))

        assert exc_info.value.status_code == 409

    def test_connection_error_is_network_error(self, store, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(RemoteNetworkError):
            asyncio.run(store.generate_id("Acme", ""))

        # POST is never retried
        assert session.request.call_count == 1

    def test_timeout_is_timeout_error(self, store, session):
        session.request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(RemoteTimeoutError):
            asyncio.run(store.create_party("P1", ParsedPartyInput("A", "", "", "X", 0)))

    def test_get_is_retried(self, store, session, sample_snapshot):
        session.request.side_effect = [
            requests.exceptions.ConnectionError("blip"),
            make_response(503, {"error": "warming up"}),
            make_response(payload=encode_snapshot(sample_snapshot)),
        ]

        snapshot = asyncio.run(store.export_snapshot())

        assert snapshot == sample_snapshot
        assert session.request.call_count == 3

    def test_retries_exhausted(self, store, session):
        session.request.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(RemoteNetworkError):
            asyncio.run(store.export_snapshot())

        assert session.request.call_count == 3

    def test_client_error_not_retried(self, store, session):
        session.request.return_value = make_response(403, {"message": "forbidden"})

        with pytest.raises(RemoteStoreError, match="forbidden") as exc_info:
            asyncio.run(store.export_snapshot())

        assert exc_info.value.status_code == 403
        assert session.request.call_count == 1

    def test_get_all_parties(self, store, session, sample_snapshot):
        session.request.return_value = make_response(payload=encode_snapshot(sample_snapshot)["parties"])

        pairs = asyncio.run(store.get_all_parties())

        assert [pid for pid, _ in pairs] == ["A", "B"]
        assert pairs[0][1] == sample_snapshot.parties["A"]

    def test_apply_snapshot_puts_wire_json(self, store, session, sample_snapshot):
        session.request.return_value = make_response(status_code=204, text="")

        asyncio.run(store.apply_snapshot(sample_snapshot))

        method, url = session.request.call_args[0]
        assert method == "PUT"
        assert url.endswith("/import")
        assert json.loads(session.request.call_args[1]["data"]) == encode_snapshot(sample_snapshot)

    def test_invalid_json_body(self, store, session):
        session.request.return_value = make_response(200, text="<html>")

        with pytest.raises(RemoteStoreError, match="invalid JSON"):
            asyncio.run(store.export_snapshot())

    def test_name_and_close(self, store, session):
        assert store.get_name() == "http:https://ledger.example.com/api"

        asyncio.run(store.close())

        session.close.assert_called_once()

    def test_empty_export_decodes(self, store, session):
        session.request.return_value = make_response(payload={"parties": [], "partyVisitRecords": []})

        assert asyncio.run(store.export_snapshot()) == Snapshot()


class TestHttpSessionPerThread:
    """Tests for the per-thread sessions used when no session is injected."""

    EMPTY_EXPORT = {"parties": [], "partyVisitRecords": []}

    def _store(self, created):
        def factory():
            session = Mock(spec=requests.Session)
            session.headers = {}
            session.request.return_value = make_response(payload=self.EMPTY_EXPORT)
            created.append(session)
            return session

        return HttpRemoteStore(
            "https://ledger.example.com/api",
            backoff_factor=0,
            api_token="secret",
            session_factory=factory,
        )

    def test_each_worker_thread_gets_its_own_session(self):
        created = []
        store = self._store(created)

        # Every asyncio.run call brings up a fresh default executor thread
        asyncio.run(store.export_snapshot())
        asyncio.run(store.export_snapshot())

        assert len(created) == 2
        assert created[0] is not created[1]
        for session in created:
            assert session.request.call_count == 1
            assert session.headers["Authorization"] == "Bearer secret"
            assert session.headers["User-Agent"] == "PartyLedger/0.1"

    def test_session_reused_within_a_thread(self):
        created = []
        store = self._store(created)

        async def export_twice():
            asyncio.get_running_loop().set_default_executor(ThreadPoolExecutor(max_workers=1))
            await store.export_snapshot()
            await store.export_snapshot()

        asyncio.run(export_twice())

        assert len(created) == 1
        assert created[0].request.call_count == 2

    def test_close_closes_every_thread_session(self):
        created = []
        store = self._store(created)
        asyncio.run(store.export_snapshot())
        asyncio.run(store.export_snapshot())

        asyncio.run(store.close())

        for session in created:
            session.close.assert_called_once()
