"""Payload codecs translating document metadata to store payload values."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Protocol
from uuid import UUID

_TYPE_KEY = "__minirag_type__"


class VectorPayloadCodec(Protocol):
    """Codec interface for payload and filter serialization."""

    def serialize(
        self,
        payload: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None: ...

    def deserialize(
        self,
        payload: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None: ...

    def serialize_filters(
        self,
        filters: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None: ...


@dataclass(frozen=True)
class IdentityVectorPayloadCodec:
    """Default codec; copies mappings without touching values."""

    def serialize(
        self,
        payload: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None:
        return None if payload is None else dict(payload)

    def deserialize(
        self,
        payload: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None:
        return None if payload is None else dict(payload)

    def serialize_filters(
        self,
        filters: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None:
        return None if filters is None else dict(filters)


@dataclass(frozen=True)
class JsonVectorPayloadCodec:
    """Codec for stores that only accept scalar metadata values (e.g. Chroma).

    `None`, `bool`, `int`, `float` and plain `str` values pass through. Other
    values (`dict`, `list`, `tuple`, `datetime`, `date`, `Decimal`, `UUID`,
    `Enum`) are stored as prefixed JSON text and restored on read. Enum members
    are restored as their underlying value.
    """

    prefix: str = "__minirag_json__:"

    def serialize(
        self,
        payload: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None:
        if payload is None:
            return None
        return {str(key): self._encode(value) for key, value in payload.items()}

    def deserialize(
        self,
        payload: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None:
        if payload is None:
            return None
        return {str(key): self._decode(value) for key, value in payload.items()}

    def serialize_filters(
        self,
        filters: Mapping[str, Any] | None,
    ) -> Mapping[str, Any] | None:
        return self.serialize(filters)

    def _encode(self, value: Any) -> Any:
        if isinstance(value, Enum):
            value = value.value
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, str) and not value.startswith(self.prefix):
            return value
        if isinstance(value, str):
            tagged: Any = {_TYPE_KEY: "str", "value": value}
        else:
            tagged = _to_jsonable(value)
        return self.prefix + json.dumps(tagged, separators=(",", ":"), sort_keys=True)

    def _decode(self, value: Any) -> Any:
        if not isinstance(value, str) or not value.startswith(self.prefix):
            return value
        return _from_jsonable(json.loads(value[len(self.prefix) :]))


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return _to_jsonable(value.value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return {_TYPE_KEY: "datetime", "value": value.isoformat()}
    if isinstance(value, date):
        return {_TYPE_KEY: "date", "value": value.isoformat()}
    if isinstance(value, Decimal):
        return {_TYPE_KEY: "decimal", "value": str(value)}
    if isinstance(value, UUID):
        return {_TYPE_KEY: "uuid", "value": str(value)}
    if isinstance(value, tuple):
        return {_TYPE_KEY: "tuple", "items": [_to_jsonable(item) for item in value]}
    if isinstance(value, list):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _to_jsonable(item) for key, item in value.items()}

    raise TypeError(
        "JsonVectorPayloadCodec cannot serialize metadata value of type "
        f"{type(value).__name__}."
    )


_DECODERS = {
    "str": str,
    "datetime": datetime.fromisoformat,
    "date": date.fromisoformat,
    "decimal": Decimal,
    "uuid": UUID,
}


def _from_jsonable(value: Any) -> Any:
    if isinstance(value, list):
        return [_from_jsonable(item) for item in value]
    if not isinstance(value, dict):
        return value

    codec_type = value.get(_TYPE_KEY)
    if codec_type in _DECODERS and set(value) == {_TYPE_KEY, "value"}:
        return _DECODERS[codec_type](str(value["value"]))
    if codec_type == "tuple" and set(value) == {_TYPE_KEY, "items"}:
        return tuple(_from_jsonable(item) for item in value["items"])

    return {str(key): _from_jsonable(item) for key, item in value.items()}
