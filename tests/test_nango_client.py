"""Tests for the Nango REST client."""

import json

import httpx
import pytest

from voice_onboarding.config import NangoConfig
from voice_onboarding.errors import ConfigurationError, NangoAPIError
from voice_onboarding.services.nango_client import NangoClient

CONFIG = NangoConfig(secret_key="nango-secret", host="https://nango.test/", timeout_sec=5.0)


def _client(handler) -> NangoClient:
    return NangoClient(CONFIG, transport=httpx.MockTransport(handler))


class TestConnectSession:
    @pytest.mark.asyncio
    async def test_creates_session_for_end_user(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                201, json={"data": {"token": "tok", "expires_at": "2030-01-01T00:00:00Z"}}
            )

        session = await _client(handler).create_connect_session(
            "user-1", "a@b.com", "Ann", ["squareup-sandbox"]
        )

        assert session["token"] == "tok"
        request = seen[0]
        assert str(request.url) == "https://nango.test/connect/sessions"
        assert request.headers["Authorization"] == "Bearer nango-secret"
        assert json.loads(request.content) == {
            "end_user": {"id": "user-1", "email": "a@b.com", "display_name": "Ann"},
            "allowed_integrations": ["squareup-sandbox"],
        }

    @pytest.mark.asyncio
    async def test_error_response_raises(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": "invalid_body", "message": "bad"}})

        with pytest.raises(NangoAPIError, match="bad") as exc_info:
            await _client(handler).create_connect_session("u", None, None, ["x"])
        assert exc_info.value.status == 400


class TestCredentials:
    @pytest.mark.asyncio
    async def test_access_token_from_connection(self):
        def handler(request):
            assert request.url.path == "/connection/conn-1"
            assert request.url.params["provider_config_key"] == "squareup"
            return httpx.Response(200, json={"credentials": {"access_token": "sq-token"}})

        token = await _client(handler).get_access_token("conn-1", "squareup")
        assert token == "sq-token"

    @pytest.mark.asyncio
    async def test_missing_access_token_raises(self):
        def handler(request):
            return httpx.Response(200, json={"credentials": {}})

        with pytest.raises(NangoAPIError, match="No access token"):
            await _client(handler).get_access_token("conn-1", "squareup")

    def test_secret_key_is_required(self):
        with pytest.raises(ConfigurationError):
            NangoClient(NangoConfig(secret_key=""))
