"""
Unit tests for the ESI OAuth2 client.
"""

import base64
import logging
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from respx import MockRouter

from esi_auth.core.exceptions import (
    ProviderError,
    ProviderRejectedError,
    TransportError,
    UnauthorizedError,
)
from esi_auth.core.models import Token
from esi_auth.infrastructure.esi_client import ESIOAuthClient
from esi_auth.oauth.config import ClientOverride, ESIConfig, PROVIDER_NAME


TOKEN_URL = "https://login.eveonline.com/oauth/token"
VERIFY_URL = "https://login.eveonline.com/oauth/verify"


def query_of(url: str) -> dict[str, list[str]]:
    return parse_qs(urlparse(url).query, keep_blank_values=True)


@pytest.fixture
def esi_client(esi_config):
    return ESIOAuthClient(esi_config)


class TestBuildAuthorizeUrl:
    """Tests for build_authorize_url."""

    def test_contains_required_params(self, esi_client):
        """Test the URL carries client_id, scope, response_type and redirect_uri."""
        url = esi_client.build_authorize_url(
            "esi-skills.read_skills.v1", redirect_uri="http://testserver/auth/esi/callback"
        )

        assert url.startswith("https://login.eveonline.com/oauth/authorize?")
        query = query_of(url)
        assert query["client_id"] == ["test-client-id"]
        assert query["scope"] == ["esi-skills.read_skills.v1"]
        assert query["response_type"] == ["code"]
        assert query["redirect_uri"] == ["http://testserver/auth/esi/callback"]

    def test_no_state_when_not_given(self, esi_client):
        """Test state is omitted unless provided."""
        url = esi_client.build_authorize_url("a", redirect_uri="http://cb")

        assert "state" not in query_of(url)

    def test_state_when_given(self, esi_client):
        """Test state is URL-encoded when provided."""
        url = esi_client.build_authorize_url("a", state="s t&u")

        assert query_of(url)["state"] == ["s t&u"]
        assert "s+t%26u" in url

    def test_empty_scope_is_present(self, esi_client):
        """Test an empty scope still produces a scope parameter."""
        url = esi_client.build_authorize_url("")

        assert query_of(url)["scope"] == [""]

    def test_scope_with_spaces_is_encoded(self, esi_client):
        """Test a space-separated scope string round-trips."""
        url = esi_client.build_authorize_url("a b")

        assert query_of(url)["scope"] == ["a b"]

    def test_scope_list_comma_delimiter(self, esi_client):
        """Test a scope list is comma-joined by default."""
        url = esi_client.build_authorize_url(["a", "b"])

        assert query_of(url)["scope"] == ["a,b"]

    def test_scope_list_space_delimiter(self):
        """Test a scope list is space-joined when configured."""
        config = ESIConfig(client_id="id", client_secret="secret", scope_delimiter=" ")

        url = ESIOAuthClient(config).build_authorize_url(["a", "b"])

        assert query_of(url)["scope"] == ["a b"]

    def test_send_redirect_uri_false(self):
        """Test redirect_uri is never sent when disabled."""
        config = ESIConfig(client_id="id", client_secret="secret", send_redirect_uri=False)

        url = ESIOAuthClient(config).build_authorize_url("a", redirect_uri="http://cb")

        assert "redirect_uri" not in query_of(url)

    def test_client_override(self, esi_client):
        """Test a complete override replaces the configured client_id."""
        url = esi_client.build_authorize_url(
            "a", client_override=ClientOverride("other-id", "other-secret")
        )

        assert query_of(url)["client_id"] == ["other-id"]

    def test_incomplete_client_override_ignored(self, esi_client):
        """Test an override without secret is ignored."""
        url = esi_client.build_authorize_url("a", client_override=ClientOverride("other-id"))

        assert query_of(url)["client_id"] == ["test-client-id"]


class TestExchangeCodeForToken:
    """Tests for exchange_code_for_token."""

    @pytest.mark.asyncio
    async def test_success(self, esi_client, respx_mock: MockRouter, token_response):
        """Test a valid code yields a Token and uses Basic auth."""
        route = respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=token_response)
        )

        token = await esi_client.exchange_code_for_token("abc")

        assert isinstance(token, Token)
        assert token.access_token == "test-access-token"
        assert token.expires_at is not None

        request = route.calls.last.request
        expected = base64.b64encode(b"test-client-id:test-client-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Accept"] == "application/json"
        body = parse_qs(request.content.decode())
        assert body["grant_type"] == ["authorization_code"]
        assert body["code"] == ["abc"]

    @pytest.mark.asyncio
    async def test_redirect_uri_sent(self, esi_client, respx_mock: MockRouter, token_response):
        """Test the redirect URI is included in the token request."""
        route = respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=token_response)
        )

        await esi_client.exchange_code_for_token("abc", redirect_uri="http://cb")

        body = parse_qs(route.calls.last.request.content.decode())
        assert body["redirect_uri"] == ["http://cb"]

    @pytest.mark.asyncio
    async def test_client_override_basic_auth(
        self, esi_client, respx_mock: MockRouter, token_response
    ):
        """Test the override credentials are used for Basic auth."""
        route = respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=token_response)
        )

        await esi_client.exchange_code_for_token(
            "abc", client_override=ClientOverride("other-id", "other-secret")
        )

        expected = base64.b64encode(b"other-id:other-secret").decode()
        assert route.calls.last.request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_error_payload(self, esi_client, respx_mock: MockRouter):
        """Test an OAuth2 error payload raises ProviderRejectedError."""
        respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                400,
                json={"access_token": None, "error": "invalid_grant", "error_description": "x"},
            )
        )

        with pytest.raises(ProviderRejectedError) as exc_info:
            await esi_client.exchange_code_for_token("abc")

        assert exc_info.value.code == "invalid_grant"
        assert exc_info.value.description == "x"

    @pytest.mark.asyncio
    async def test_missing_access_token(self, esi_client, respx_mock: MockRouter):
        """Test a body without an access token is rejected."""
        respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": None})
        )

        with pytest.raises(ProviderRejectedError) as exc_info:
            await esi_client.exchange_code_for_token("abc")

        assert exc_info.value.code == "invalid_token_response"

    @pytest.mark.asyncio
    async def test_server_error(self, esi_client, respx_mock: MockRouter):
        """Test a 5xx raises ProviderError with the status."""
        respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(503))

        with pytest.raises(ProviderError) as exc_info:
            await esi_client.exchange_code_for_token("abc")

        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_network_error(self, esi_client, respx_mock: MockRouter):
        """Test a connection failure raises TransportError."""
        respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("Connection failed"))

        with pytest.raises(TransportError, match="Connection failed"):
            await esi_client.exchange_code_for_token("abc")

    @pytest.mark.asyncio
    async def test_timeout(self, esi_client, respx_mock: MockRouter):
        """Test a timeout raises TransportError."""
        respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(TransportError):
            await esi_client.exchange_code_for_token("abc")

    @pytest.mark.asyncio
    async def test_uses_configured_timeout(self, respx_mock: MockRouter, token_response):
        """Test the configured timeout is applied to the token request."""
        config = ESIConfig(client_id="id", client_secret="secret", timeout=2.5)
        route = respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=token_response)
        )

        await ESIOAuthClient(config).exchange_code_for_token("abc")

        assert route.calls.last.request.extensions["timeout"] == httpx.Timeout(2.5).as_dict()


class TestFetchIdentity:
    """Tests for fetch_identity."""

    @pytest.mark.asyncio
    async def test_success_bearer_header(
        self, esi_client, respx_mock: MockRouter, identity_response
    ):
        """Test the identity is returned and the token sent as bearer."""
        route = respx_mock.get(VERIFY_URL).mock(
            return_value=httpx.Response(200, json=identity_response)
        )

        identity = await esi_client.fetch_identity(Token(access_token="tok"))

        assert identity == identity_response
        assert route.calls.last.request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_token_in_query(self, respx_mock: MockRouter, identity_response):
        """Test the token is sent as a query parameter when configured."""
        config = ESIConfig(client_id="id", client_secret="secret", token_placement="uri")
        route = respx_mock.get(url__startswith=VERIFY_URL).mock(
            return_value=httpx.Response(200, json=identity_response)
        )

        await ESIOAuthClient(config).fetch_identity(Token(access_token="tok"))

        request = route.calls.last.request
        assert query_of(str(request.url))["access_token"] == ["tok"]
        assert "Authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_custom_verify_url(self, esi_client, respx_mock: MockRouter):
        """Test an explicit verify URL is used."""
        respx_mock.get("https://sso.example.com/verify").mock(
            return_value=httpx.Response(200, json={"CharacterID": 1})
        )

        identity = await esi_client.fetch_identity(
            Token(access_token="tok"), "https://sso.example.com/verify"
        )

        assert identity == {"CharacterID": 1}

    @pytest.mark.asyncio
    async def test_unauthorized(self, esi_client, respx_mock: MockRouter):
        """Test a 401 raises UnauthorizedError."""
        respx_mock.get(VERIFY_URL).mock(return_value=httpx.Response(401))

        with pytest.raises(UnauthorizedError):
            await esi_client.fetch_identity(Token(access_token="tok"))

    @pytest.mark.asyncio
    async def test_other_status(self, esi_client, respx_mock: MockRouter):
        """Test other non-2xx statuses raise ProviderError."""
        respx_mock.get(VERIFY_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(ProviderError) as exc_info:
            await esi_client.fetch_identity(Token(access_token="tok"))

        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_non_object_body(self, esi_client, respx_mock: MockRouter):
        """Test a JSON array body raises ProviderError."""
        respx_mock.get(VERIFY_URL).mock(return_value=httpx.Response(200, json=[1, 2]))

        with pytest.raises(ProviderError, match="not a JSON object"):
            await esi_client.fetch_identity(Token(access_token="tok"))

    @pytest.mark.asyncio
    async def test_network_error(self, esi_client, respx_mock: MockRouter):
        """Test a connection failure raises TransportError."""
        respx_mock.get(VERIFY_URL).mock(side_effect=httpx.ConnectError("Connection failed"))

        with pytest.raises(TransportError):
            await esi_client.fetch_identity(Token(access_token="tok"))

    @pytest.mark.asyncio
    async def test_timeout(self, esi_client, respx_mock: MockRouter):
        """Test a timeout raises TransportError."""
        respx_mock.get(VERIFY_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(TransportError, match="timed out"):
            await esi_client.fetch_identity(Token(access_token="tok"))

    @pytest.mark.asyncio
    async def test_uses_configured_timeout(self, respx_mock: MockRouter, identity_response):
        """Test the configured timeout is applied to the verify request."""
        config = ESIConfig(client_id="id", client_secret="secret", timeout=2.5)
        route = respx_mock.get(VERIFY_URL).mock(
            return_value=httpx.Response(200, json=identity_response)
        )

        await ESIOAuthClient(config).fetch_identity(Token(access_token="tok"))

        assert route.calls.last.request.extensions["timeout"] == httpx.Timeout(2.5).as_dict()

    @pytest.mark.asyncio
    async def test_short_lived_token_reaches_verify(
        self, esi_client, respx_mock: MockRouter, identity_response
    ):
        """Test a token expiring within a minute is still sent to ESI."""
        route = respx_mock.get(VERIFY_URL).mock(
            return_value=httpx.Response(200, json=identity_response)
        )
        token = Token.from_oauth_response({"access_token": "tok", "expires_in": 30})

        identity = await esi_client.fetch_identity(token)

        assert route.called
        assert identity == identity_response
        assert route.calls.last.request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_expired_token_left_to_esi(self, esi_client, respx_mock: MockRouter):
        """Test an already expired token is rejected by ESI, not locally."""
        route = respx_mock.get(VERIFY_URL).mock(return_value=httpx.Response(401))
        token = Token(access_token="tok", expires_at=1)

        with pytest.raises(UnauthorizedError):
            await esi_client.fetch_identity(token)

        assert route.called

    @pytest.mark.asyncio
    async def test_logs_carry_provider_name(self, esi_client, respx_mock: MockRouter, caplog):
        """Test verify endpoint errors are logged with the provider name."""
        respx_mock.get(VERIFY_URL).mock(return_value=httpx.Response(503))

        with caplog.at_level(logging.ERROR, logger="esi_auth.infrastructure.esi_client"):
            with pytest.raises(ProviderError):
                await esi_client.fetch_identity(Token(access_token="tok"))

        record = caplog.records[-1]
        assert record.provider == PROVIDER_NAME
        assert record.status == 503
