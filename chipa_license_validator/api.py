"""
Chipa License Validator - Public Client

High-level client for applications. All failures surface as
LicenseValidationError carrying the underlying message.
"""

from typing import Optional

from . import config
from .client import SecureChannel, parse_license_id
from .errors import ChipaError
from .security import Version


class LicenseValidationError(Exception):
    """
    Raised when license validation fails for any reason:
    - Invalid license UUID format
    - Network connectivity issues
    - Server-side validation failures (expired, unauthorized application)
    """
    pass


class LicenseClient:
    """
    A client for validating licenses against the Chipa License Server.

    The application name can be fixed at construction time or passed to
    each validate_license() call.

    Example:
        client = LicenseClient("https://license.example.com", application="my-app")
        try:
            token = await client.validate_license("550e8400-e29b-41d4-a716-446655440000")
        except LicenseValidationError as e:
            print(f"License validation failed: {e}")
    """

    def __init__(
        self,
        base_url: str = config.DEFAULT_BASE_URL,
        application: Optional[str] = None,
        version: Optional[Version] = None,
        channel: Optional[SecureChannel] = None,
    ):
        self.application = application
        if channel is None:
            if version is None:
                version = Version.from_wire(config.DEFAULT_VERSION)
            channel = SecureChannel(base_url, version)
        self._channel = channel

    def __repr__(self) -> str:
        return f"LicenseClient(base_url={self.base_url!r}, application={self.application!r})"

    @property
    def base_url(self) -> str:
        return self._channel.base_url

    def set_url(self, url: str) -> "LicenseClient":
        """
        Return a new client pointing at url.

        Application and version are kept; this client is unchanged.
        """
        return LicenseClient(application=self.application, channel=self._channel.set_url(url))

    async def validate_license(self, license: str, application: Optional[str] = None) -> str:
        """
        Validate a license for an application.

        Args:
            license: License UUID string
            application: Application identifier (defaults to the one given at construction)

        Returns:
            The validation token issued by the server

        Raises:
            LicenseValidationError: If validation fails for any reason
        """
        app = application or self.application
        if not app:
            raise LicenseValidationError("No application name given")

        try:
            return await self._channel.validate_license(parse_license_id(license), app)
        except ChipaError as e:
            raise LicenseValidationError(str(e)) from e
