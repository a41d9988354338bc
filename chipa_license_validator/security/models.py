"""
Chipa Secure Envelope - Pydantic Models
Strict schemas for the container record and the license server responses.
"""

import base64
import binascii

from pydantic import BaseModel, Field, field_validator


class ContainerRecord(BaseModel):
    """
    Serialized form of an envelope inside the container layer.

    body holds the payload-layer ciphertext, Base64URL encoded.
    """
    version: int = Field(..., ge=0, le=0xFFFF, description="Numeric protocol version")
    body: str = Field(..., description="Base64URL encoded payload ciphertext")

    @field_validator('body')
    @classmethod
    def validate_body(cls, v: str) -> str:
        """Body must be valid Base64URL."""
        try:
            base64.urlsafe_b64decode(v)
        except (binascii.Error, ValueError):
            raise ValueError("body must be Base64URL encoded")
        return v

    @classmethod
    def from_ciphertext(cls, version: int, ciphertext: bytes) -> "ContainerRecord":
        return cls(version=version, body=base64.urlsafe_b64encode(ciphertext).decode("ascii"))

    def ciphertext(self) -> bytes:
        return base64.urlsafe_b64decode(self.body)


class ValidationResult(BaseModel):
    """Decrypted body of a successful license validation."""
    success: str = Field(..., description="Server status text (unused by callers)")
    token: str = Field(..., description="Signed validation token")


class ApiError(BaseModel):
    """Decrypted body of a rejected request."""
    error: str = Field(..., description="Human-readable failure reason")

    def __str__(self) -> str:
        return self.error
