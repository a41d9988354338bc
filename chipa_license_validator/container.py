"""
Chipa Container Format (.chipa)
Encrypted on-disk storage for arbitrary serializable payloads.

File layout:
    [2 bytes: version, big-endian][N bytes: base-encrypted ContainerRecord]

Two encryption layers:
1. Payload layer: payload -> codec -> encrypt_bytes(key)
2. Container layer: ContainerRecord{version, body} -> base_encrypt_bytes()

The version prefix is never encrypted; it selects the decryption scheme.
"""

import logging
import os
import struct
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from pydantic import ValidationError

from . import config
from .errors import (
    DecodeError,
    DecryptionError,
    FileAccessError,
    InvalidFileFormatError,
)
from .security import ContainerRecord, Version, codec_for, encryptor_for

logger = logging.getLogger(__name__)

VERSION_PREFIX_FORMAT = ">H"
VERSION_PREFIX_SIZE = struct.calcsize(VERSION_PREFIX_FORMAT)  # 2 bytes

PathLike = Union[str, os.PathLike]


def _expected_suffix() -> str:
    return f".{config.CONTAINER_EXTENSION}"


def _require_extension(path: Path) -> None:
    """Reject paths without the container extension. Load never rewrites paths."""
    if path.suffix != _expected_suffix():
        found = path.suffix or "none"
        raise InvalidFileFormatError(
            f"Expected file to end with {_expected_suffix()}, found '{found}'"
        )


def _read_container(path: PathLike) -> Tuple[Version, bytes]:
    """Read a container file and split it into (Version, encrypted record)."""
    path = Path(path)
    _require_extension(path)

    try:
        data = path.read_bytes()
    except OSError as e:
        raise FileAccessError(f"Cannot read container file {path}: {e}") from e

    if len(data) < VERSION_PREFIX_SIZE:
        raise InvalidFileFormatError(
            f"File is too small ({len(data)} bytes, need >= {VERSION_PREFIX_SIZE})"
        )

    (raw_version,) = struct.unpack(VERSION_PREFIX_FORMAT, data[:VERSION_PREFIX_SIZE])
    return Version.from_wire(raw_version), data[VERSION_PREFIX_SIZE:]


def peek_version(path: PathLike) -> Version:
    """
    Return the version of a container without decrypting it.

    Applies the same extension and size checks as ChipaFile.load().
    """
    version, _ = _read_container(path)
    return version


class ChipaFile:
    """
    An envelope: {version, body}.

    body holds the codec-serialized payload in plaintext while in memory;
    it is only encrypted by save().
    """

    def __init__(self, version: Version, body: bytes):
        self._version = Version.from_wire(int(version))
        self._body = bytes(body)

    def __repr__(self) -> str:
        return f"ChipaFile(version={self._version.name}, body=<{len(self._body)} bytes>)"

    @property
    def version(self) -> Version:
        return self._version

    @property
    def body(self) -> bytes:
        return self._body

    @classmethod
    def new(cls, version: Version, payload: Any, type_: Optional[Any] = None) -> "ChipaFile":
        """
        Create an envelope for payload using the codec pinned to version.

        Args:
            version: Protocol version (selects codec and encryption)
            payload: Any value the payload codec can serialize
            type_: Declared payload type (defaults to type(payload))
        """
        version = Version.from_wire(int(version))
        return cls(version, codec_for(version).encode(payload, type_))

    def save(self, path: PathLike, key: str) -> Path:
        """
        Encrypt and write the envelope to a .chipa file.

        A missing or different extension is replaced with .chipa.
        Any existing file is truncated.

        Args:
            path: Destination path
            key: Caller key for the payload layer

        Returns:
            The path actually written
        """
        encryptor = encryptor_for(self._version)

        record = ContainerRecord.from_ciphertext(
            int(self._version),
            encryptor.encrypt_bytes(key, self._body),
        )
        record_bytes = record.model_dump_json().encode("utf-8")
        data_encrypted = encryptor.base_encrypt_bytes(record_bytes)

        path = Path(path)
        if path.suffix != _expected_suffix():
            path = path.with_suffix(_expected_suffix())

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(struct.pack(VERSION_PREFIX_FORMAT, int(self._version)))
                f.write(data_encrypted)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise FileAccessError(f"Couldn't create {_expected_suffix()} file {path}: {e}") from e

        logger.info(f"Saved container {path} ({self._version.name}, {len(data_encrypted) + VERSION_PREFIX_SIZE} bytes)")
        return path

    @classmethod
    def load(cls, path: PathLike, key: str) -> "ChipaFile":
        """
        Read and decrypt a .chipa file.

        Raises:
            InvalidFileFormatError: Wrong extension or file shorter than 2 bytes
            UnsupportedVersionError: Unknown version prefix
            DecryptionError: Wrong key, corrupted or tampered file
            DecodeError: Container record cannot be parsed
            FileAccessError: File cannot be read
        """
        version, encrypted = _read_container(path)
        encryptor = encryptor_for(version)

        record_bytes = encryptor.base_decrypt_bytes(encrypted)
        try:
            record = ContainerRecord.model_validate_json(record_bytes)
        except ValidationError as e:
            raise DecodeError(f"Invalid container record: {e}") from e

        if record.version != int(version):
            raise DecryptionError(
                f"Version mismatch: prefix says {int(version)}, record says {record.version}"
            )

        body = encryptor.decrypt_bytes(key, record.ciphertext())
        logger.info(f"Loaded container {path} ({version.name})")
        return cls(version, body)

    def read(self, type_: Any) -> Any:
        """Deserialize the payload as type_. Shape mismatches raise DecodeError."""
        return codec_for(self._version).decode(self._body, type_)

    def write(self, value: Any, type_: Optional[Any] = None) -> None:
        """Replace the in-memory payload. The file on disk is not touched."""
        self._body = codec_for(self._version).encode(value, type_)
