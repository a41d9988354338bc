"""
Chipa Secure Envelope - Crypto Engine
Encryption capabilities selected by protocol Version.

Security Architecture:
- Encryption: NaCl SecretBox (XSalsa20 + Poly1305), nonce stored in front of the ciphertext
- Key derivation: keyed BLAKE2b bound to the shared security secret
- V2 caller keys: Argon2id with a random per-file salt
- Scopes:
    caller key      -> payload layer of .chipa files
    version (base)  -> container layer of .chipa files
    correlation id  -> request/response bodies and the Authorization header
"""

import base64
import binascii
import hmac
import time
import uuid
from types import MappingProxyType
from typing import Mapping, Optional, Protocol

import nacl.utils
from nacl.encoding import RawEncoder
from nacl.exceptions import CryptoError
from nacl.hash import blake2b
from nacl.pwhash import argon2id
from nacl.secret import SecretBox

from .. import config
from ..errors import DecryptionError, EncryptionError
from .versions import Version


class Encryptor(Protocol):
    """Capability contract every Version implementation provides."""

    version: Version

    def encrypt_bytes(self, key: str, plaintext: bytes) -> bytes: ...

    def decrypt_bytes(self, key: str, ciphertext: bytes) -> bytes: ...

    def base_encrypt_bytes(self, plaintext: bytes) -> bytes: ...

    def base_decrypt_bytes(self, ciphertext: bytes) -> bytes: ...

    def encrypt_header(self, id: uuid.UUID) -> str: ...

    def verify_header(self, id: uuid.UUID, token: str, max_age: Optional[int] = None) -> bool: ...

    def encrypt(self, id: uuid.UUID, plaintext: str) -> str: ...

    def decrypt(self, id: uuid.UUID, ciphertext: str) -> str: ...


# =============================================================================
# Primitives
# =============================================================================

def _secret_key() -> bytes:
    """Compress the configured secret into a 64-byte BLAKE2b key."""
    return blake2b(config.SECURITY_SECRET, digest_size=64, encoder=RawEncoder)


def _derive_key(material: bytes, person: bytes) -> bytes:
    """Derive a SecretBox key for one scope. person must be at most 16 bytes."""
    return blake2b(
        material,
        digest_size=SecretBox.KEY_SIZE,
        key=_secret_key(),
        person=person,
        encoder=RawEncoder,
    )


def _seal(key: bytes, plaintext: bytes) -> bytes:
    try:
        return bytes(SecretBox(key).encrypt(plaintext))
    except CryptoError as e:
        raise EncryptionError(f"Encryption failed: {e}") from e


def _open(key: bytes, ciphertext: bytes) -> bytes:
    try:
        return SecretBox(key).decrypt(ciphertext)
    except CryptoError as e:
        raise DecryptionError(
            "Decryption failed. Possible causes: "
            "wrong key, corrupted data, or tampered ciphertext."
        ) from e


def _seal_text(key: bytes, plaintext: str) -> str:
    return base64.urlsafe_b64encode(_seal(key, plaintext.encode("utf-8"))).decode("ascii")


def _open_text(key: bytes, ciphertext: str) -> str:
    try:
        raw = base64.urlsafe_b64decode(ciphertext.strip())
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Invalid ciphertext encoding: {e}") from e
    plaintext = _open(key, raw)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted body is not valid UTF-8") from e


def _build_header(key: bytes, id: uuid.UUID) -> str:
    """
    Build the Authorization token.

    Format (before encryption): "{uuid}:{unix_timestamp}"
    """
    return _seal_text(key, f"{id}:{int(time.time())}")


def _check_header(key: bytes, id: uuid.UUID, token: str, max_age: Optional[int]) -> bool:
    try:
        claim = _open_text(key, token)
    except DecryptionError:
        return False

    claimed_id, _, issued_at = claim.rpartition(":")
    if not hmac.compare_digest(claimed_id.encode("utf-8"), str(id).encode("utf-8")):
        return False
    if max_age is not None:
        try:
            age = time.time() - int(issued_at)
        except ValueError:
            return False
        if age > max_age:
            return False
    return True


# =============================================================================
# Version 1
# =============================================================================

class V1Encryptor:
    """
    Version 1 capability.

    All three scopes use keyed BLAKE2b derivation with their own
    personalisation string, so a key from one scope never opens another.
    """

    version = Version.V1

    FILE_SCOPE = b"chipa-v1-file"
    BASE_SCOPE = b"chipa-v1-base"
    EXCHANGE_SCOPE = b"chipa-v1-xchg"

    def encrypt_bytes(self, key: str, plaintext: bytes) -> bytes:
        return _seal(self._file_key(key), plaintext)

    def decrypt_bytes(self, key: str, ciphertext: bytes) -> bytes:
        return _open(self._file_key(key), ciphertext)

    def base_encrypt_bytes(self, plaintext: bytes) -> bytes:
        return _seal(self._base_key(), plaintext)

    def base_decrypt_bytes(self, ciphertext: bytes) -> bytes:
        return _open(self._base_key(), ciphertext)

    def encrypt_header(self, id: uuid.UUID) -> str:
        return _build_header(self._exchange_key(id), id)

    def verify_header(self, id: uuid.UUID, token: str, max_age: Optional[int] = None) -> bool:
        return _check_header(self._exchange_key(id), id, token, max_age)

    def encrypt(self, id: uuid.UUID, plaintext: str) -> str:
        return _seal_text(self._exchange_key(id), plaintext)

    def decrypt(self, id: uuid.UUID, ciphertext: str) -> str:
        return _open_text(self._exchange_key(id), ciphertext)

    def _file_key(self, key: str) -> bytes:
        return _derive_key(key.encode("utf-8"), self.FILE_SCOPE)

    def _base_key(self) -> bytes:
        return _derive_key(int(self.version).to_bytes(2, "big"), self.BASE_SCOPE)

    def _exchange_key(self, id: uuid.UUID) -> bytes:
        return _derive_key(id.bytes, self.EXCHANGE_SCOPE)


# =============================================================================
# Version 2
# =============================================================================

class V2Encryptor:
    """
    Version 2 capability.

    Caller keys are stretched with Argon2id. Each payload gets a fresh
    salt, stored as the first 16 bytes of the ciphertext:

        [salt (16)][nonce (24)][ciphertext + MAC]
    """

    version = Version.V2

    BASE_SCOPE = b"chipa-v2-base"
    EXCHANGE_SCOPE = b"chipa-v2-xchg"

    OPSLIMIT = argon2id.OPSLIMIT_INTERACTIVE
    MEMLIMIT = argon2id.MEMLIMIT_INTERACTIVE

    def encrypt_bytes(self, key: str, plaintext: bytes) -> bytes:
        salt = nacl.utils.random(argon2id.SALTBYTES)
        return salt + _seal(self._file_key(key, salt), plaintext)

    def decrypt_bytes(self, key: str, ciphertext: bytes) -> bytes:
        if len(ciphertext) < argon2id.SALTBYTES:
            raise DecryptionError("Ciphertext too short to contain a key salt")
        salt = ciphertext[:argon2id.SALTBYTES]
        return _open(self._file_key(key, salt), ciphertext[argon2id.SALTBYTES:])

    def base_encrypt_bytes(self, plaintext: bytes) -> bytes:
        return _seal(self._base_key(), plaintext)

    def base_decrypt_bytes(self, ciphertext: bytes) -> bytes:
        return _open(self._base_key(), ciphertext)

    def encrypt_header(self, id: uuid.UUID) -> str:
        return _build_header(self._exchange_key(id), id)

    def verify_header(self, id: uuid.UUID, token: str, max_age: Optional[int] = None) -> bool:
        return _check_header(self._exchange_key(id), id, token, max_age)

    def encrypt(self, id: uuid.UUID, plaintext: str) -> str:
        return _seal_text(self._exchange_key(id), plaintext)

    def decrypt(self, id: uuid.UUID, ciphertext: str) -> str:
        return _open_text(self._exchange_key(id), ciphertext)

    def _file_key(self, key: str, salt: bytes) -> bytes:
        try:
            return argon2id.kdf(
                SecretBox.KEY_SIZE,
                key.encode("utf-8"),
                salt,
                opslimit=self.OPSLIMIT,
                memlimit=self.MEMLIMIT,
            )
        except CryptoError as e:
            raise EncryptionError(f"Key derivation failed: {e}") from e

    def _base_key(self) -> bytes:
        return _derive_key(int(self.version).to_bytes(2, "big"), self.BASE_SCOPE)

    def _exchange_key(self, id: uuid.UUID) -> bytes:
        return _derive_key(id.bytes, self.EXCHANGE_SCOPE)


# =============================================================================
# Dispatch
# =============================================================================

_ENCRYPTORS: Mapping[Version, Encryptor] = MappingProxyType({
    Version.V1: V1Encryptor(),
    Version.V2: V2Encryptor(),
})


def encryptor_for(version: Version) -> Encryptor:
    """Return the capability for a Version. Unknown tags raise UnsupportedVersionError."""
    return _ENCRYPTORS[Version.from_wire(int(version))]
