"""
Value serialization for bucket files.

A Codec turns caller values into a structural payload when they are
stored, turns payloads back into whatever type the caller asks for when
they are read, and converts a whole bucket document to and from bytes.

JSONCodec is the default: orjson handles bytes, pydantic handles shapes.
Because values are decoded by shape, a value stored as one type can be
read back as another type with a compatible structure (a dataclass stored,
a dict or a pydantic model read). Incompatible shapes raise
CacheDecodeError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import orjson
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from filecache.exceptions import CacheDecodeError, CacheEncodeError


class Codec(ABC):
    """Abstract interface for value and document serialization."""

    @abstractmethod
    def encode(self, value: Any) -> Any:
        """Convert a value into its structural payload."""
        ...

    @abstractmethod
    def decode(self, payload: Any, as_type: Any = Any) -> Any:
        """Convert a payload into an instance of ``as_type``."""
        ...

    @abstractmethod
    def dumps(self, document: dict[str, Any]) -> bytes:
        """Serialize a whole bucket document."""
        ...

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        """Deserialize a whole bucket document."""
        ...


@lru_cache(maxsize=256)
def _type_adapter(as_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(as_type)


class JSONCodec(Codec):
    """JSON codec backed by orjson and pydantic.

    Payloads are JSON-compatible Python values (dicts, lists, strings,
    numbers, booleans, None). Anything pydantic knows how to serialize can
    be stored: dataclasses, BaseModel instances, datetimes, enums, UUIDs,
    paths, sets and tuples.
    """

    def __init__(self, indent: bool = False) -> None:
        """Initialize the codec.

        Args:
            indent: Pretty-print bucket files with two-space indentation.
        """
        self._options = orjson.OPT_NON_STR_KEYS
        if indent:
            self._options |= orjson.OPT_INDENT_2

    def encode(self, value: Any) -> Any:
        """Encode a value into a payload the bucket document can hold.

        The payload is also serialized once, so values pydantic accepts but
        orjson cannot write (integers beyond 64 bits) fail here rather than
        when the bucket is saved.

        Raises:
            CacheEncodeError: If the value cannot be represented as JSON.
        """
        try:
            payload = to_jsonable_python(value)
            orjson.dumps(payload, option=self._options)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise CacheEncodeError(
                f"Cannot encode value: {e}",
                context={"value_type": type(value).__name__},
            ) from e
        return payload

    def decode(self, payload: Any, as_type: Any = Any) -> Any:
        """Decode a payload into ``as_type``.

        The payload goes through a JSON round trip so the caller always
        receives fresh objects that share nothing with the cache's memory.

        Raises:
            CacheDecodeError: If the payload's shape does not fit ``as_type``.
        """
        try:
            adapter = _type_adapter(as_type)
        except TypeError:
            # unhashable type expressions skip the adapter cache
            adapter = TypeAdapter(as_type)
        try:
            return adapter.validate_json(orjson.dumps(payload, option=orjson.OPT_NON_STR_KEYS))
        except ValidationError as e:
            raise CacheDecodeError(
                f"Stored value does not match requested type: {e.error_count()} error(s)",
                context={"as_type": _type_name(as_type), "first_error": e.errors()[0]["msg"]},
            ) from e
        except orjson.JSONEncodeError as e:
            raise CacheDecodeError(
                f"Stored payload is not serializable: {e}",
                context={"as_type": _type_name(as_type)},
            ) from e

    def dumps(self, document: dict[str, Any]) -> bytes:
        try:
            return orjson.dumps(document, option=self._options)
        except orjson.JSONEncodeError as e:
            raise CacheEncodeError(f"Cannot serialize bucket document: {e}") from e

    def loads(self, data: bytes) -> Any:
        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise CacheDecodeError(f"Malformed bucket document: {e}") from e


def _type_name(as_type: Any) -> str:
    return getattr(as_type, "__name__", None) or repr(as_type)
