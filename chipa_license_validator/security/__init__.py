"""
Chipa Secure Envelope
Versioned encryption capabilities shared by the container codec and the
secure channel.

Security Model: Authenticated Encryption (NaCl SecretBox) + scoped key derivation
Library: PyNaCl (libsodium binding)
"""

from .crypto_engine import Encryptor, V1Encryptor, V2Encryptor, encryptor_for
from .models import ApiError, ContainerRecord, ValidationResult
from .payload_codec import JsonPayloadCodec, codec_for
from .versions import Version

__all__ = [
    'Encryptor',
    'V1Encryptor',
    'V2Encryptor',
    'encryptor_for',
    'ApiError',
    'ContainerRecord',
    'ValidationResult',
    'JsonPayloadCodec',
    'codec_for',
    'Version',
]
