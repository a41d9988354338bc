"""
Chipa License Validator - Error Taxonomy

Every failure surfaced by the container codec and the secure channel is one
of the classes below. All of them derive from ChipaError so callers can catch
the whole family at once.
"""


class ChipaError(Exception):
    """Base exception for all container and exchange failures."""
    pass


# =============================================================================
# Payload Serialization
# =============================================================================

class EncodeError(ChipaError):
    """Raised when a payload cannot be serialized."""
    pass


class DecodeError(ChipaError):
    """Raised when bytes cannot be deserialized into the requested shape."""
    pass


# =============================================================================
# Cryptography
# =============================================================================

class EncryptionError(ChipaError):
    """Raised when encryption fails."""
    pass


class DecryptionError(ChipaError):
    """Raised on wrong keys, corrupted ciphertext or tampered data."""
    pass


class UnsupportedVersionError(DecryptionError):
    """Raised when a numeric version tag does not map to a known Version."""

    def __init__(self, value: int):
        self.value = value
        super().__init__(f"Unsupported version tag: {value}")


# =============================================================================
# Container Files
# =============================================================================

class InvalidFileFormatError(ChipaError):
    """Raised when a file cannot be a container (extension, size)."""
    pass


class FileAccessError(ChipaError):
    """Raised when the filesystem refuses a read or write."""
    pass


# =============================================================================
# Secure Exchange
# =============================================================================

class RequestError(ChipaError):
    """Raised when the transport fails (connect, timeout, protocol)."""
    pass


class ResponseError(ChipaError):
    """
    Raised when the server answers with a non-success status.

    str(error) is exactly the message sent by the server.
    """

    def __init__(self, error: str, status: int = 0):
        self.error = error
        self.status = status
        super().__init__(error)


class ParsingError(ChipaError):
    """Raised when a decrypted response body does not have the expected shape."""
    pass


class IdentifierParsingError(ChipaError):
    """Raised when a correlation identifier is not a valid UUID."""
    pass
