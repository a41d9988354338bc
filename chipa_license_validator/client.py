"""
Chipa Secure Channel
Encrypted request/response exchange with the Chipa License Server.

Every request is scoped by a correlation identifier (the license UUID):
- Authorization: token derived from the identifier
- X-Protocol-Version: v1
- Request and response bodies encrypted under the identifier scope

No session state survives a call, so one SecureChannel can serve any
number of concurrent validations.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from . import config
from .errors import (
    EncodeError,
    IdentifierParsingError,
    ParsingError,
    RequestError,
    ResponseError,
)
from .security import ApiError, ValidationResult, Version, encryptor_for

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class SecureResponse:
    """Status plus decrypted body (None when the server sent no body)."""
    status: int
    body: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def json(self, model: Type[ModelT]) -> ModelT:
        """Decode the decrypted body into model."""
        if self.body is None:
            raise ParsingError("Expected body to be some, found none")
        try:
            return model.model_validate_json(self.body)
        except ValidationError as e:
            raise ParsingError(f"Unexpected response body for {model.__name__}: {e}") from e


def parse_license_id(license: str) -> uuid.UUID:
    """Parse a license UUID string."""
    try:
        return uuid.UUID(license)
    except (ValueError, AttributeError, TypeError) as e:
        raise IdentifierParsingError(f"Invalid license UUID '{license}': {e}") from e


class SecureChannel:
    """
    Client side of the secure exchange.

    Holds only immutable configuration; an httpx.AsyncClient is opened
    per call.
    """

    def __init__(
        self,
        base_url: str,
        version: Version,
        timeout: float = config.REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._version = Version.from_wire(int(version))
        self._timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"SecureChannel(base_url={self._base_url!r}, version={self._version.name})"

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def version(self) -> Version:
        return self._version

    def set_url(self, url: str) -> "SecureChannel":
        """Return a copy pointing at url. This channel is left unchanged."""
        return SecureChannel(url, self._version, self._timeout, self._transport)

    async def send_secure(
        self,
        url: str,
        method: str,
        correlation_id: uuid.UUID,
        body: Any = None,
    ) -> SecureResponse:
        """
        Send one encrypted request.

        Args:
            url: Absolute request URL
            method: HTTP method
            correlation_id: Key scope for this request/response pair
            body: Optional JSON-serializable value (or pydantic model)

        Returns:
            SecureResponse with the decrypted body, or body=None if the
            server sent nothing

        Raises:
            EncodeError: body is not JSON-serializable
            RequestError: Transport failure
            DecryptionError: Response body cannot be decrypted
        """
        encryptor = encryptor_for(self._version)

        headers = {
            "Authorization": encryptor.encrypt_header(correlation_id),
            config.PROTOCOL_VERSION_HEADER: config.PROTOCOL_VERSION,
        }

        content = None
        if body is not None:
            if isinstance(body, BaseModel):
                text = body.model_dump_json()
            else:
                try:
                    text = json.dumps(body)
                except (TypeError, ValueError) as e:
                    raise EncodeError(f"Request body is not JSON-serializable: {e}") from e
            headers["Content-Type"] = "application/json"
            content = encryptor.encrypt(correlation_id, text)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as e:
            logger.error(f"Secure request {method} {url} failed: {e}")
            raise RequestError(f"Request to {url} failed: {e}") from e

        if not response.text:
            return SecureResponse(status=response.status_code, body=None)

        return SecureResponse(
            status=response.status_code,
            body=encryptor.decrypt(correlation_id, response.text),
        )

    async def validate_license(
        self,
        license_id: Union[uuid.UUID, str],
        application: str,
    ) -> str:
        """
        Exchange a license id and application name for a validation token.

        Raises:
            IdentifierParsingError: license_id is not a valid UUID
            ResponseError: Server rejected the license (message from server)
            ParsingError: Response body has an unexpected shape
            RequestError: Transport failure
        """
        if not isinstance(license_id, uuid.UUID):
            license_id = parse_license_id(license_id)

        url = f"{self._base_url}/subscriptions/validateapp/{license_id}/{quote(application, safe='')}"
        response = await self.send_secure(url, "GET", license_id)

        if response.is_success:
            token = response.json(ValidationResult).token
            logger.info(f"License validated for application '{application}'")
            return token

        error = response.json(ApiError)
        logger.warning(f"License rejected for application '{application}' (HTTP {response.status}): {error}")
        raise ResponseError(error.error, status=response.status)
