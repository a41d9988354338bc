"""
Chipa License Validator
Secure envelopes for data at rest (.chipa containers) and in transit
(license validation against the Chipa License Server).

Security Model: Authenticated Encryption + version-scoped key derivation
Library: PyNaCl (libsodium binding), pydantic, httpx
"""

from .api import LicenseClient, LicenseValidationError
from .client import SecureChannel, SecureResponse, parse_license_id
from .container import ChipaFile, peek_version
from .errors import (
    ChipaError,
    DecodeError,
    DecryptionError,
    EncodeError,
    EncryptionError,
    FileAccessError,
    IdentifierParsingError,
    InvalidFileFormatError,
    ParsingError,
    RequestError,
    ResponseError,
    UnsupportedVersionError,
)
from .security import Version, encryptor_for

__version__ = "0.1.0"

__all__ = [
    'LicenseClient',
    'LicenseValidationError',
    'SecureChannel',
    'SecureResponse',
    'parse_license_id',
    'ChipaFile',
    'peek_version',
    'ChipaError',
    'DecodeError',
    'DecryptionError',
    'EncodeError',
    'EncryptionError',
    'FileAccessError',
    'IdentifierParsingError',
    'InvalidFileFormatError',
    'ParsingError',
    'RequestError',
    'ResponseError',
    'UnsupportedVersionError',
    'Version',
    'encryptor_for',
]
