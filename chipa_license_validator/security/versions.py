"""
Chipa Secure Envelope - Version Tags

Each Version selects one encryption capability and one payload codec.
The numeric value is what goes on the wire (2 bytes, big-endian).
"""

from enum import IntEnum

from ..errors import UnsupportedVersionError


class Version(IntEnum):
    """Closed set of protocol versions."""
    V1 = 1   # BLAKE2b key derivation + XSalsa20-Poly1305
    V2 = 2   # Argon2id caller keys + XSalsa20-Poly1305

    @classmethod
    def from_wire(cls, value: int) -> "Version":
        """
        Map a numeric tag to a Version.

        Unknown values fail closed, they never fall back to a known version.
        """
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedVersionError(value) from None
