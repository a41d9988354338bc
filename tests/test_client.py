"""
Secure channel tests.

Requests go either to httpx.MockTransport handlers (protocol details)
or to the in-process reference license server from conftest.py.

Usage:
    python -m pytest tests/test_client.py -v
"""

import asyncio
import json
import uuid
from unittest.mock import MagicMock, patch

import httpx
import pytest

from chipa_license_validator import config
from chipa_license_validator.client import SecureChannel, SecureResponse, parse_license_id
from chipa_license_validator.errors import (
    DecryptionError,
    EncodeError,
    IdentifierParsingError,
    ParsingError,
    RequestError,
    ResponseError,
)
from chipa_license_validator.security import ApiError, ValidationResult, Version, encryptor_for

from conftest import EXPIRED_LICENSE, TEST_BASE_URL, VALID_LICENSE

OTHER_LICENSE = uuid.UUID("9b2c7d1e-4f3a-4b8c-9d0e-1f2a3b4c5d6e")


def mock_channel(handler) -> SecureChannel:
    return SecureChannel(TEST_BASE_URL, Version.V1, transport=httpx.MockTransport(handler))


# =============================================================================
# SecureResponse
# =============================================================================

class TestSecureResponse:

    def test_json_decodes_model(self):
        response = SecureResponse(200, '{"success": "ok", "token": "abc"}')
        assert response.json(ValidationResult).token == "abc"

    def test_json_without_body_is_parsing_error(self):
        with pytest.raises(ParsingError):
            SecureResponse(200, None).json(ValidationResult)

    def test_json_wrong_shape_is_parsing_error(self):
        with pytest.raises(ParsingError):
            SecureResponse(200, '{"unexpected": true}').json(ValidationResult)
        with pytest.raises(ParsingError):
            SecureResponse(500, "not json").json(ApiError)

    @pytest.mark.parametrize("status, success", [(200, True), (204, True), (302, False), (404, False), (500, False)])
    def test_is_success(self, status, success):
        assert SecureResponse(status).is_success is success


# =============================================================================
# Identifier parsing
# =============================================================================

def test_parse_license_id():
    assert parse_license_id(str(VALID_LICENSE)) == VALID_LICENSE


@pytest.mark.parametrize("text", ["", "not-a-uuid", "550e8400-e29b-41d4-a716", None])
def test_parse_license_id_rejects_malformed(text):
    with pytest.raises(IdentifierParsingError):
        parse_license_id(text)


# =============================================================================
# send_secure
# =============================================================================

def test_request_carries_encrypted_header_and_protocol_version():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(204)

    asyncio.run(mock_channel(handler).send_secure(f"{TEST_BASE_URL}/ping", "GET", VALID_LICENSE))

    request = seen["request"]
    enc = encryptor_for(Version.V1)
    assert request.method == "GET"
    assert request.headers[config.PROTOCOL_VERSION_HEADER] == "v1"
    assert enc.verify_header(VALID_LICENSE, request.headers["Authorization"])
    assert "Content-Type" not in request.headers
    assert request.content == b""


def test_request_body_is_encrypted_under_correlation_id():
    enc = encryptor_for(Version.V1)

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Content-Type"] == "application/json"
        received = json.loads(enc.decrypt(VALID_LICENSE, request.content.decode()))
        return httpx.Response(200, text=enc.encrypt(VALID_LICENSE, json.dumps({"echo": received})))

    response = asyncio.run(
        mock_channel(handler).send_secure(f"{TEST_BASE_URL}/echo", "POST", VALID_LICENSE, body={"agents": [1, 2]})
    )

    assert response.status == 200
    assert json.loads(response.body) == {"echo": {"agents": [1, 2]}}


def test_request_body_accepts_pydantic_model():
    enc = encryptor_for(Version.V1)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=enc.encrypt(VALID_LICENSE, enc.decrypt(VALID_LICENSE, request.content.decode())))

    response = asyncio.run(
        mock_channel(handler).send_secure(
            f"{TEST_BASE_URL}/echo", "POST", VALID_LICENSE, body=ApiError(error="boom"),
        )
    )
    assert response.json(ApiError).error == "boom"


def test_unserializable_body_is_encode_error():
    handler = MagicMock()

    with pytest.raises(EncodeError):
        asyncio.run(mock_channel(handler).send_secure(f"{TEST_BASE_URL}/x", "POST", VALID_LICENSE, body={"a": object()}))
    handler.assert_not_called()


def test_empty_response_body_skips_decryption():
    spy = MagicMock(wraps=encryptor_for(Version.V1))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    with patch("chipa_license_validator.client.encryptor_for", return_value=spy):
        response = asyncio.run(mock_channel(handler).send_secure(f"{TEST_BASE_URL}/x", "GET", VALID_LICENSE))

    assert response == SecureResponse(status=200, body=None)
    spy.encrypt_header.assert_called_once_with(VALID_LICENSE)
    spy.decrypt.assert_not_called()


def test_unencrypted_response_is_decryption_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(DecryptionError):
        asyncio.run(mock_channel(handler).send_secure(f"{TEST_BASE_URL}/x", "GET", VALID_LICENSE))


def test_transport_failure_is_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RequestError):
        asyncio.run(mock_channel(handler).send_secure(f"{TEST_BASE_URL}/x", "GET", VALID_LICENSE))


def test_timeout_is_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(RequestError):
        asyncio.run(mock_channel(handler).send_secure(f"{TEST_BASE_URL}/x", "GET", VALID_LICENSE))


def test_concurrent_calls_use_isolated_key_scopes():
    bodies = {}

    def handler(request: httpx.Request) -> httpx.Response:
        bodies[request.url.path] = request.content.decode()
        return httpx.Response(204)

    channel = mock_channel(handler)

    async def run():
        await asyncio.gather(
            channel.send_secure(f"{TEST_BASE_URL}/a", "POST", VALID_LICENSE, body={"request": "token"}),
            channel.send_secure(f"{TEST_BASE_URL}/b", "POST", OTHER_LICENSE, body={"request": "token"}),
        )

    asyncio.run(run())

    enc = encryptor_for(Version.V1)
    assert bodies["/a"] != bodies["/b"]
    assert json.loads(enc.decrypt(VALID_LICENSE, bodies["/a"])) == {"request": "token"}
    assert json.loads(enc.decrypt(OTHER_LICENSE, bodies["/b"])) == {"request": "token"}
    with pytest.raises(DecryptionError):
        enc.decrypt(OTHER_LICENSE, bodies["/a"])


# =============================================================================
# Configuration
# =============================================================================

def test_set_url_returns_copy():
    channel = SecureChannel("http://one.test/", Version.V2)
    moved = channel.set_url("http://two.test")

    assert channel.base_url == "http://one.test"
    assert moved.base_url == "http://two.test"
    assert moved.version == Version.V2
    assert moved is not channel


def test_channel_rejects_unknown_version():
    with pytest.raises(DecryptionError):
        SecureChannel(TEST_BASE_URL, 42)


# =============================================================================
# validate_license (reference server)
# =============================================================================

class TestValidateLicense:

    def test_valid_license_returns_token(self, channel):
        token = asyncio.run(channel.validate_license(VALID_LICENSE, "my-app"))
        assert token == f"token:{VALID_LICENSE}:my-app"

    def test_accepts_license_string(self, channel):
        token = asyncio.run(channel.validate_license(str(VALID_LICENSE), "other-app"))
        assert token == f"token:{VALID_LICENSE}:other-app"

    def test_unknown_license_raises_server_message(self, channel):
        with pytest.raises(ResponseError) as exc:
            asyncio.run(channel.validate_license(OTHER_LICENSE, "my-app"))
        assert str(exc.value) == "License not found"
        assert exc.value.status == 404

    def test_unauthorized_application(self, channel):
        with pytest.raises(ResponseError) as exc:
            asyncio.run(channel.validate_license(VALID_LICENSE, "rogue-app"))
        assert str(exc.value) == "Application 'rogue-app' not authorized"
        assert exc.value.status == 403

    def test_expired_license(self, channel):
        with pytest.raises(ResponseError, match="License expired"):
            asyncio.run(channel.validate_license(EXPIRED_LICENSE, "my-app"))

    def test_malformed_license_string(self, channel):
        with pytest.raises(IdentifierParsingError):
            asyncio.run(channel.validate_license("not-a-uuid", "my-app"))

    def test_version_mismatch_is_rejected_by_server(self, license_server):
        channel = SecureChannel(TEST_BASE_URL, Version.V2, transport=httpx.ASGITransport(app=license_server))
        # The server answers under its own (V1) scope, which a V2 client cannot open
        with pytest.raises(DecryptionError):
            asyncio.run(channel.validate_license(VALID_LICENSE, "my-app"))

    def test_concurrent_validations(self, channel):
        async def run():
            return await asyncio.gather(
                channel.validate_license(VALID_LICENSE, "my-app"),
                channel.validate_license(VALID_LICENSE, "other-app"),
                channel.validate_license(OTHER_LICENSE, "my-app"),
                return_exceptions=True,
            )

        first, second, third = asyncio.run(run())
        assert first == f"token:{VALID_LICENSE}:my-app"
        assert second == f"token:{VALID_LICENSE}:other-app"
        assert isinstance(third, ResponseError)


def test_validate_url_and_method():
    enc = encryptor_for(Version.V1)
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, text=enc.encrypt(VALID_LICENSE, '{"success": "ok", "token": "t"}'))

    asyncio.run(mock_channel(handler).validate_license(VALID_LICENSE, "my-app"))

    request = seen["request"]
    assert request.method == "GET"
    assert str(request.url) == f"{TEST_BASE_URL}/subscriptions/validateapp/{VALID_LICENSE}/my-app"


def test_validate_follows_redirects():
    enc = encryptor_for(Version.V1)
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if not request.url.path.startswith("/v2/"):
            return httpx.Response(302, headers={"Location": f"{TEST_BASE_URL}/v2{request.url.path}"})
        assert enc.verify_header(VALID_LICENSE, request.headers["Authorization"])
        return httpx.Response(200, text=enc.encrypt(VALID_LICENSE, '{"success": "ok", "token": "moved"}'))

    token = asyncio.run(mock_channel(handler).validate_license(VALID_LICENSE, "my-app"))

    assert token == "moved"
    assert paths == [
        f"/subscriptions/validateapp/{VALID_LICENSE}/my-app",
        f"/v2/subscriptions/validateapp/{VALID_LICENSE}/my-app",
    ]


def test_validate_success_with_wrong_shape_is_parsing_error():
    enc = encryptor_for(Version.V1)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=enc.encrypt(VALID_LICENSE, '{"token": 123}'))

    with pytest.raises(ParsingError):
        asyncio.run(mock_channel(handler).validate_license(VALID_LICENSE, "my-app"))


def test_validate_error_without_body_is_parsing_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(ParsingError):
        asyncio.run(mock_channel(handler).validate_license(VALID_LICENSE, "my-app"))
