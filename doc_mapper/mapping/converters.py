"""Built-in scalar and map-key conversions.

Every built-in scalar type has exactly one canonical document form:

    bool, int, float, str, bytes, datetime, ObjectId  ->  stored as is
    date                                              ->  datetime at midnight
    Decimal, UUID                                     ->  canonical str
    Enum subclasses                                   ->  member name

Decode checks the stored value's kind and never coerces across kinds. Encode
widens an int to float where a float is declared; decode does not.

Key ids outside a typed reference use BSON's self-describing forms (UUID as
subtype-4 Binary, Decimal as Decimal128) so they load back without knowing
the referenced entity.

Map keys are rendered to strings and parsed back with the declared key type.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from bson import ObjectId
from bson.binary import UUID_SUBTYPE, Binary
from bson.decimal128 import Decimal128
from bson.errors import InvalidId

from doc_mapper.core.document import DOCUMENT_SCALARS


class ConversionError(ValueError):
    """A value does not have the kind its declared type requires."""


def _expect(value: Any, kinds: type | tuple[type, ...], label: str) -> None:
    if isinstance(value, bool) and bool not in (kinds if isinstance(kinds, tuple) else (kinds,)):
        raise ConversionError(f"expected {label}, got bool")
    if not isinstance(value, kinds):
        raise ConversionError(f"expected {label}, got {type(value).__name__}")


def _identity(kinds: type | tuple[type, ...], label: str) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        _expect(value, kinds, label)
        return value

    return convert


def _encode_float(value: Any) -> float:
    _expect(value, (int, float), "float")
    return float(value)


def _encode_bytes(value: Any) -> bytes:
    _expect(value, (bytes, bytearray, memoryview), "bytes")
    return bytes(value)


def _encode_date(value: Any) -> datetime:
    if isinstance(value, datetime) or not isinstance(value, date):
        raise ConversionError(f"expected date, got {type(value).__name__}")
    return datetime(value.year, value.month, value.day)


def _decode_date(value: Any) -> date:
    _expect(value, datetime, "datetime")
    return value.date()


def _encode_decimal(value: Any) -> str:
    _expect(value, Decimal, "Decimal")
    return str(value)


def _decode_decimal(value: Any) -> Decimal:
    _expect(value, str, "str")
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ConversionError(f"invalid Decimal {value!r}") from e


def _encode_uuid(value: Any) -> str:
    _expect(value, UUID, "UUID")
    return str(value)


def _decode_uuid(value: Any) -> UUID:
    _expect(value, str, "str")
    try:
        return UUID(value)
    except ValueError as e:
        raise ConversionError(f"invalid UUID {value!r}") from e


# type -> (encode, decode)
_SCALARS: dict[type, tuple[Callable[[Any], Any], Callable[[Any], Any]]] = {
    bool: (_identity(bool, "bool"), _identity(bool, "bool")),
    int: (_identity(int, "int"), _identity(int, "int")),
    float: (_encode_float, _identity(float, "float")),
    str: (_identity(str, "str"), _identity(str, "str")),
    bytes: (_encode_bytes, _identity(bytes, "bytes")),
    datetime: (_identity(datetime, "datetime"), _identity(datetime, "datetime")),
    date: (_encode_date, _decode_date),
    Decimal: (_encode_decimal, _decode_decimal),
    UUID: (_encode_uuid, _decode_uuid),
    ObjectId: (_identity(ObjectId, "ObjectId"), _identity(ObjectId, "ObjectId")),
}


def _is_enum(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Enum)


def is_scalar_type(tp: Any) -> bool:
    """Check whether ``tp`` is in the built-in scalar table."""
    return tp in _SCALARS or _is_enum(tp)


def encode_scalar(tp: Any, value: Any) -> Any:
    """Convert a value of declared type ``tp`` to its document form."""
    if _is_enum(tp):
        if not isinstance(value, tp):
            raise ConversionError(f"expected {tp.__name__}, got {type(value).__name__}")
        return value.name
    try:
        encode, _ = _SCALARS[tp]
    except KeyError:
        raise ConversionError(f"unsupported scalar type {tp!r}") from None
    return encode(value)


def decode_scalar(tp: Any, value: Any) -> Any:
    """Convert a stored value back to declared type ``tp``."""
    if _is_enum(tp):
        _expect(value, str, "str")
        try:
            return tp[value]
        except KeyError:
            raise ConversionError(f"{value!r} is not a member of {tp.__name__}") from None
    try:
        _, decode = _SCALARS[tp]
    except KeyError:
        raise ConversionError(f"unsupported scalar type {tp!r}") from None
    return decode(value)


# --- Key ids ---


def is_tagged_key_id(value: Any) -> bool:
    """Check whether a stored Key id carries its own type."""
    return isinstance(value, Decimal128) or (
        isinstance(value, Binary) and value.subtype == UUID_SUBTYPE
    )


def encode_key_id(value: Any) -> Any:
    """Document form of a Key id whose entity type may be unknown on load."""
    if value is None or isinstance(value, DOCUMENT_SCALARS):
        return value
    if isinstance(value, UUID):
        return Binary.from_uuid(value)
    if isinstance(value, Decimal):
        try:
            return Decimal128(value)
        except ArithmeticError as e:
            raise ConversionError(f"Decimal {value} does not fit in Decimal128") from e
    return encode_scalar(type(value), value)


def decode_key_id(value: Any) -> Any:
    """Invert ``encode_key_id`` for the self-describing forms."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE:
        return value.as_uuid()
    return value


# --- Map keys ---


def _parse_bool(text: str) -> bool:
    if text == "True":
        return True
    if text == "False":
        return False
    raise ValueError(text)


def _parse_object_id(text: str) -> ObjectId:
    try:
        return ObjectId(text)
    except InvalidId as e:
        raise ValueError(text) from e


_KEY_PARSERS: dict[type, Callable[[str], Any]] = {
    str: str,
    bool: _parse_bool,
    int: int,
    float: float,
    Decimal: Decimal,
    UUID: UUID,
    ObjectId: _parse_object_id,
}


def supports_key_type(tp: Any) -> bool:
    """Check whether ``tp`` has an invertible string rendering."""
    return tp is Any or tp in _KEY_PARSERS or _is_enum(tp)


def render_key(tp: Any, key: Any) -> str:
    """Render a domain map key to its storage key."""
    if tp is Any:
        if isinstance(key, str):
            return key
        raise ConversionError(f"untyped mapping keys must be str, got {type(key).__name__}")
    if _is_enum(tp):
        if not isinstance(key, tp):
            raise ConversionError(f"expected {tp.__name__} key, got {type(key).__name__}")
        return key.name
    if tp not in _KEY_PARSERS:
        raise ConversionError(f"no invertible string rendering for {tp!r}")
    _expect(key, tp, tp.__name__)
    if tp is float:
        return repr(key)
    return str(key)


def parse_key(tp: Any, text: str) -> Any:
    """Invert ``render_key``."""
    if tp is Any:
        return text
    if _is_enum(tp):
        try:
            return tp[text]
        except KeyError:
            raise ConversionError(f"{text!r} is not a member of {tp.__name__}") from None
    try:
        parse = _KEY_PARSERS[tp]
    except KeyError:
        raise ConversionError(f"no invertible string rendering for {tp!r}") from None
    try:
        return parse(text)
    except (ValueError, InvalidOperation) as e:
        raise ConversionError(f"cannot parse {text!r} as {tp.__name__}") from e
