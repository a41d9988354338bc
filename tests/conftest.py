"""
Shared fixtures: a reference Chipa License Server (FastAPI) served in-process
through httpx.ASGITransport, so no network is required.
"""

import json
import uuid
from typing import Any, Dict

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from chipa_license_validator import config
from chipa_license_validator.api import LicenseClient
from chipa_license_validator.client import SecureChannel
from chipa_license_validator.security import Version, encryptor_for

TEST_BASE_URL = "http://license.test"
VALID_LICENSE = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")
EXPIRED_LICENSE = uuid.UUID("6fa459ea-ee8a-3ca4-894e-db77e160355e")


def build_license_server(licenses: Dict[uuid.UUID, Dict[str, Any]], version: Version = Version.V1) -> FastAPI:
    """
    Minimal license server speaking the secure exchange protocol.

    Every response body (success or error) is encrypted under the
    license id scope.
    """
    app = FastAPI()
    encryptor = encryptor_for(version)

    def encrypted(license_id: uuid.UUID, status: int, payload: dict) -> PlainTextResponse:
        return PlainTextResponse(
            encryptor.encrypt(license_id, json.dumps(payload)),
            status_code=status,
        )

    @app.get("/subscriptions/validateapp/{license_id}/{application}")
    async def validate_app(license_id: uuid.UUID, application: str, request: Request):
        if request.headers.get(config.PROTOCOL_VERSION_HEADER) != config.PROTOCOL_VERSION:
            return encrypted(license_id, 400, {"error": "Unsupported protocol version"})

        token = request.headers.get("Authorization", "")
        if not encryptor.verify_header(license_id, token, max_age=60):
            return encrypted(license_id, 401, {"error": "Invalid authorization header"})

        entry = licenses.get(license_id)
        if entry is None:
            return encrypted(license_id, 404, {"error": "License not found"})
        if application not in entry["applications"]:
            return encrypted(license_id, 403, {"error": f"Application '{application}' not authorized"})
        if entry.get("expired"):
            return encrypted(license_id, 403, {"error": "License expired"})

        return encrypted(license_id, 200, {
            "success": "License valid",
            "token": f"token:{license_id}:{application}",
        })

    return app


@pytest.fixture
def license_server() -> FastAPI:
    return build_license_server({
        VALID_LICENSE: {"applications": {"my-app", "other-app"}},
        EXPIRED_LICENSE: {"applications": {"my-app"}, "expired": True},
    })


@pytest.fixture
def channel(license_server) -> SecureChannel:
    return SecureChannel(
        TEST_BASE_URL,
        Version.V1,
        transport=httpx.ASGITransport(app=license_server),
    )


@pytest.fixture
def license_client(channel) -> LicenseClient:
    return LicenseClient(application="my-app", channel=channel)
