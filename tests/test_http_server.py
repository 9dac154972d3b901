"""Tests for the actor and WebFinger HTTP endpoints."""

import pytest
import pytest_asyncio
from aiohttp import test_utils

from activitypub_finger.http_server import create_app, start_http_server
from activitypub_finger.signature import HttpSignature

BASE_URL = "https://finger.example.com"
ACTOR_URL = "https://finger.example.com/gateway"


@pytest_asyncio.fixture
async def http_client(identity):
    """Test client for the gateway application."""
    app = create_app(identity, server_name="finger.example.com", base_url=BASE_URL + "/")
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    yield client
    await client.close()


class TestActorEndpoint:
    """Tests for the actor document."""

    @pytest.mark.asyncio
    async def test_actor(self, http_client, identity):
        """Test the actor document carries the signing key."""
        response = await http_client.get("/gateway")

        assert response.status == 200
        assert response.content_type == "application/ld+json"
        data = await response.json(content_type=None)
        assert data["id"] == ACTOR_URL
        assert data["type"] == "Person"
        assert data["preferredUsername"] == "gateway"
        assert data["publicKey"]["id"] == f"{ACTOR_URL}#main-key"
        assert data["publicKey"]["owner"] == ACTOR_URL
        assert data["publicKey"]["publicKeyPem"] == HttpSignature(identity).get_public_key_pem()

    @pytest.mark.asyncio
    async def test_unknown_user(self, http_client):
        """Test other paths are not served."""
        response = await http_client.get("/someone-else")
        assert response.status == 404


class TestWebFingerEndpoint:
    """Tests for WebFinger discovery."""

    @pytest.mark.asyncio
    async def test_webfinger(self, http_client):
        """Test the JRD for the local account."""
        response = await http_client.get(
            "/.well-known/webfinger",
            params={"resource": "acct:gateway@finger.example.com"},
        )

        assert response.status == 200
        assert response.content_type == "application/jrd+json"
        data = await response.json(content_type=None)
        assert data["subject"] == "acct:gateway@finger.example.com"
        assert data["aliases"] == [ACTOR_URL]
        self_links = [link for link in data["links"] if link["rel"] == "self"]
        assert self_links == [
            {"rel": "self", "type": "application/activity+json", "href": ACTOR_URL},
        ]

    @pytest.mark.asyncio
    async def test_webfinger_by_actor_url(self, http_client):
        """Test the actor URL is accepted as resource."""
        response = await http_client.get(
            "/.well-known/webfinger",
            params={"resource": ACTOR_URL},
        )
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_webfinger_without_resource(self, http_client):
        """Test the local account is served when no resource is given."""
        response = await http_client.get("/.well-known/webfinger")

        assert response.status == 200
        data = await response.json(content_type=None)
        assert data["subject"] == "acct:gateway@finger.example.com"

    @pytest.mark.asyncio
    async def test_webfinger_unknown_resource(self, http_client):
        """Test other accounts are not found."""
        response = await http_client.get(
            "/.well-known/webfinger",
            params={"resource": "acct:alice@finger.example.com"},
        )
        assert response.status == 404


class TestStartHttpServer:
    """Tests for start_http_server."""

    @pytest.mark.asyncio
    async def test_start_and_cleanup(self, identity, unused_tcp_port):
        """Test the runner serves on the requested port."""
        app = create_app(identity, server_name="finger.example.com", base_url=BASE_URL)

        runner = await start_http_server(app, "127.0.0.1", unused_tcp_port)
        try:
            assert runner.addresses
        finally:
            await runner.cleanup()
