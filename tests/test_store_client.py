from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from datastore.mock_store import MockDocumentStore
from models.records import Credential
from services.errors import StoreRejected, StoreUnavailable
from services.store_client import StoreWriteClient

BASE_URL = "https://example-db.test"
CREDENTIAL = Credential(token="tok-1", obtained_at=datetime.now(timezone.utc), user_id="u1")


def _client(store: MockDocumentStore) -> StoreWriteClient:
    return StoreWriteClient(BASE_URL + "/", timeout=1.0, transport=store.transport())


def test_url_for_normalizes_slashes() -> None:
    client = StoreWriteClient(BASE_URL + "/")
    try:
        assert client.url_for("/devices/D1/current/") == f"{BASE_URL}/devices/D1/current.json"
    finally:
        asyncio.run(client.aclose())


def test_write_at_attaches_credential_as_query_parameter() -> None:
    store = MockDocumentStore()
    client = _client(store)

    async def scenario():
        try:
            return await client.write_at("devices/D1/current", {"value": 1}, CREDENTIAL)
        finally:
            await client.aclose()

    result = asyncio.run(scenario())

    assert result.ok is True
    assert result.status_code == 200
    assert result.path == "devices/D1/current"
    assert store.requests == [("PUT", "devices/D1/current", "tok-1")]
    assert store.get("devices/D1/current") == {"value": 1}


def test_write_at_without_credential_is_unauthenticated() -> None:
    store = MockDocumentStore()
    client = _client(store)

    async def scenario():
        try:
            return await client.write_at("test", {"test": True}, None, leg="test")
        finally:
            await client.aclose()

    result = asyncio.run(scenario())

    assert result.ok is True
    assert result.leg == "test"
    assert store.requests == [("PUT", "test", None)]


def test_write_at_overwrites_existing_document() -> None:
    store = MockDocumentStore()
    client = _client(store)

    async def scenario() -> None:
        try:
            await client.write_at("devices/D1/current", {"value": 1}, None)
            await client.write_at("devices/D1/current", {"value": 2}, None)
        finally:
            await client.aclose()

    asyncio.run(scenario())

    assert store.get("devices/D1/current") == {"value": 2}
    assert store.writes_to("devices/D1/current") == 2


def test_write_at_raises_store_rejected_with_status_and_body() -> None:
    store = MockDocumentStore(valid_tokens={"other"})
    client = _client(store)

    async def scenario():
        try:
            return await client.write_at("devices/D1/current", {"value": 1}, CREDENTIAL)
        finally:
            await client.aclose()

    with pytest.raises(StoreRejected) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.status_code == 401
    assert "Permission denied" in excinfo.value.body
    assert excinfo.value.path == "devices/D1/current"


def test_write_at_raises_store_unavailable_on_transport_error() -> None:
    store = MockDocumentStore()
    store.take_offline("devices")
    client = _client(store)

    async def scenario():
        try:
            return await client.write_at("devices/D1/current", {"value": 1}, None)
        finally:
            await client.aclose()

    with pytest.raises(StoreUnavailable) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.status_code is None
    assert store.get("devices/D1/current") is None


def test_read_at_returns_stored_document() -> None:
    store = MockDocumentStore()
    store.put("devices/D1/current", {"temperature": 21.0})
    client = _client(store)

    async def scenario():
        try:
            found = await client.read_at("devices/D1/current", None)
            missing = await client.read_at("devices/D2/current", None)
            return found, missing
        finally:
            await client.aclose()

    found, missing = asyncio.run(scenario())

    assert found == {"temperature": 21.0}
    assert missing is None


def test_url_for_escapes_each_segment() -> None:
    client = StoreWriteClient(BASE_URL)
    try:
        assert client.url_for("devices/victim?x/current") == f"{BASE_URL}/devices/victim%3Fx/current.json"
        assert client.url_for("devices/a%2Fb/history/1") == f"{BASE_URL}/devices/a%252Fb/history/1.json"
        assert client.url_for("devices/r&d lab/current") == f"{BASE_URL}/devices/r%26d%20lab/current.json"
    finally:
        asyncio.run(client.aclose())


def test_write_at_keeps_url_significant_characters_inside_the_key() -> None:
    store = MockDocumentStore()
    client = _client(store)

    async def scenario():
        try:
            await client.write_at("devices/victim?x/current", {"value": 1}, CREDENTIAL)
            await client.write_at("devices/a%2Fb/current", {"value": 2}, CREDENTIAL)
        finally:
            await client.aclose()

    asyncio.run(scenario())

    assert store.get("devices/victim?x/current") == {"value": 1}
    assert store.get("devices/a%2Fb/current") == {"value": 2}
    assert store.keys() == ["devices/a%2Fb/current", "devices/victim?x/current"]
    assert [token for _, _, token in store.requests] == ["tok-1", "tok-1"]


def test_write_at_maps_undecodable_response_to_unavailable() -> None:
    def garbled(request):
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")

    client = StoreWriteClient(BASE_URL, timeout=1.0, transport=httpx.MockTransport(garbled))

    async def scenario():
        try:
            await client.write_at("devices/D1/current", {"value": 1}, CREDENTIAL)
        finally:
            await client.aclose()

    with pytest.raises(StoreUnavailable) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.path == "devices/D1/current"
    assert excinfo.value.status_code is None
