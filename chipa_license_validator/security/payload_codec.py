"""
Chipa Secure Envelope - Payload Codec

The payload codec is separate from the envelope format and is pinned per
Version, so files written by one release stay readable by the next.
Adding a new codec means adding a new Version.
"""

from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from ..errors import DecodeError, EncodeError
from .versions import Version


class JsonPayloadCodec:
    """
    JSON payload codec built on pydantic TypeAdapter.

    Any type pydantic understands can be stored: builtins, Optional,
    tuples, sets, dicts, dataclasses, BaseModel and discriminated unions.
    read() validates the decoded JSON against the requested type.
    """

    name = "json-pydantic-v1"

    def encode(self, value: Any, type_: Optional[Any] = None) -> bytes:
        """
        Serialize value. type_ defaults to type(value).

        A value that does not match type_ is rejected rather than written
        as-is. inf and nan are stored as the JSON constants Infinity/NaN,
        which decode() accepts, so floats never degrade to null.
        """
        try:
            adapter = TypeAdapter(type_ if type_ is not None else type(value))
            data = adapter.dump_python(value, warnings="error")
            return to_json(data, inf_nan_mode="constants")
        except (PydanticSchemaGenerationError, PydanticSerializationError) as e:
            raise EncodeError(f"Cannot serialize {type(value).__name__}: {e}") from e

    def decode(self, data: bytes, type_: Any) -> Any:
        """Deserialize data as type_. Shape mismatches raise DecodeError."""
        try:
            adapter = TypeAdapter(type_)
        except PydanticSchemaGenerationError as e:
            raise DecodeError(f"Unsupported payload type {type_!r}: {e}") from e
        try:
            return adapter.validate_json(data)
        except ValidationError as e:
            raise DecodeError(f"Payload does not match {type_!r}: {e}") from e


_CODECS: Mapping[Version, JsonPayloadCodec] = MappingProxyType({
    Version.V1: JsonPayloadCodec(),
    Version.V2: JsonPayloadCodec(),
})


def codec_for(version: Version) -> JsonPayloadCodec:
    """Return the payload codec pinned to a Version."""
    return _CODECS[Version.from_wire(int(version))]
