"""Pytest configuration and fixtures for the Finger gateway tests."""

import pytest

from activitypub_finger.config import GatewayConfig
from activitypub_finger.identity import Identity


@pytest.fixture
def config(tmp_path) -> GatewayConfig:
    """Create test configuration."""
    return GatewayConfig(
        finger={
            "host": "127.0.0.1",
            "port": 7979,
            "default_address": "@BoD@mastodon.social",
            "default_address_alias": "BoD",
        },
        http={
            "server_name": "finger.example.com",
            "host": "127.0.0.1",
            "port": 8043,
        },
        identity={
            "private_key_path": str(tmp_path / "identity.pem"),
        },
    )


@pytest.fixture(scope="session")
def identity(tmp_path_factory) -> Identity:
    """Identity with a generated key, shared across tests."""
    key_path = tmp_path_factory.mktemp("identity") / "identity.pem"
    identity = Identity(private_key_path=str(key_path), user_name="gateway")
    identity.load()
    return identity


@pytest.fixture
def note_data() -> dict:
    """Sample Note object as served by Mastodon."""
    return {
        "id": "https://mastodon.social/users/alice/statuses/1",
        "type": "Note",
        "attributedTo": "https://mastodon.social/users/alice",
        "inReplyTo": None,
        "published": "2024-01-15T14:30:00Z",
        "content": "<p>Hello from Mastodon!</p><p>Second paragraph</p>",
        "attachment": [],
    }
