"""
Shared test configuration and fixtures.
"""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Configure ESI before importing app
with patch.dict(
    os.environ,
    {
        "ESI_CLIENT_ID": "test-client-id",
        "ESI_CLIENT_SECRET": "test-client-secret",
        "BASE_URL": "http://testserver",
    },
):
    from esi_auth.main import app
    from esi_auth.oauth.config import ESIConfig, get_esi_config

    get_esi_config.cache_clear()
    test_config = get_esi_config()

app.dependency_overrides[get_esi_config] = lambda: test_config

client = TestClient(app)

ESI_TOKEN_URL = "https://login.eveonline.com/oauth/token"
ESI_VERIFY_URL = "https://login.eveonline.com/oauth/verify"


@pytest.fixture
def esi_config():
    """ESI configuration with test credentials and default endpoints."""
    return ESIConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        base_url="http://testserver",
    )


@pytest.fixture
def token_response():
    """Token endpoint response as returned by ESI."""
    return {
        "access_token": "test-access-token",
        "token_type": "Bearer",
        "expires_in": 1199,
        "refresh_token": "test-refresh-token",
    }


@pytest.fixture
def identity_response():
    """Verify endpoint response for a character."""
    return {
        "CharacterID": 123,
        "CharacterName": "Foo",
        "ExpiresOn": "2026-10-18T12:00:00",
        "Scopes": "a,b",
        "TokenType": "Character",
        "CharacterOwnerHash": "owner-hash",
    }
