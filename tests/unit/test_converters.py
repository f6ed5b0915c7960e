"""Unit tests for scalar and map-key conversions."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import pytest
from bson import ObjectId
from bson.binary import Binary
from bson.decimal128 import Decimal128

from doc_mapper.mapping.converters import (
    ConversionError,
    decode_key_id,
    decode_scalar,
    encode_key_id,
    encode_scalar,
    is_scalar_type,
    is_tagged_key_id,
    parse_key,
    render_key,
    supports_key_type,
)


class Color(Enum):
    RED = 1
    GREEN = 2


class TestScalars:
    def test_scalar_table(self) -> None:
        for tp in (bool, int, float, str, bytes, datetime, date, Decimal, UUID, ObjectId, Color):
            assert is_scalar_type(tp)
        assert not is_scalar_type(complex)
        assert not is_scalar_type(list)

    def test_native_values_stored_as_is(self) -> None:
        oid = ObjectId()
        now = datetime(2024, 5, 1, 12, 30)
        assert encode_scalar(ObjectId, oid) is oid
        assert encode_scalar(datetime, now) == now
        assert encode_scalar(bytes, bytearray(b"ab")) == b"ab"

    def test_date_stored_as_midnight_datetime(self) -> None:
        stored = encode_scalar(date, date(2024, 2, 29))
        assert stored == datetime(2024, 2, 29)
        assert decode_scalar(date, stored) == date(2024, 2, 29)

    def test_decimal_and_uuid_stored_as_text(self) -> None:
        value = UUID("12345678-1234-5678-1234-567812345678")
        assert encode_scalar(Decimal, Decimal("1.50")) == "1.50"
        assert decode_scalar(Decimal, "1.50") == Decimal("1.50")
        assert encode_scalar(UUID, value) == str(value)
        assert decode_scalar(UUID, str(value)) == value

    def test_enum_stored_by_name(self) -> None:
        assert encode_scalar(Color, Color.GREEN) == "GREEN"
        assert decode_scalar(Color, "GREEN") is Color.GREEN

    def test_int_widens_to_float_on_encode_only(self) -> None:
        assert encode_scalar(float, 3) == 3.0
        assert isinstance(encode_scalar(float, 3), float)
        with pytest.raises(ConversionError, match="expected float, got int"):
            decode_scalar(float, 3)

    def test_bool_is_not_an_int(self) -> None:
        with pytest.raises(ConversionError, match="got bool"):
            encode_scalar(int, True)
        with pytest.raises(ConversionError):
            decode_scalar(float, False)

    def test_no_cross_kind_coercion(self) -> None:
        with pytest.raises(ConversionError, match="expected int, got str"):
            decode_scalar(int, "5")
        with pytest.raises(ConversionError):
            decode_scalar(str, 5)

    def test_invalid_text_forms(self) -> None:
        with pytest.raises(ConversionError, match="invalid UUID"):
            decode_scalar(UUID, "not-a-uuid")
        with pytest.raises(ConversionError, match="invalid Decimal"):
            decode_scalar(Decimal, "abc")
        with pytest.raises(ConversionError, match="not a member"):
            decode_scalar(Color, "BLUE")

    def test_unsupported_type(self) -> None:
        with pytest.raises(ConversionError, match="unsupported scalar type"):
            encode_scalar(complex, 1j)


class TestMapKeys:
    def test_supported_key_types(self) -> None:
        for tp in (str, int, float, bool, Decimal, UUID, ObjectId, Color, Any):
            assert supports_key_type(tp)
        assert not supports_key_type(date)
        assert not supports_key_type(tuple[int, int])

    def test_int_keys(self) -> None:
        assert render_key(int, 2) == "2"
        assert parse_key(int, "2") == 2

    def test_float_keys_keep_precision(self) -> None:
        text = render_key(float, 0.1)
        assert parse_key(float, text) == 0.1

    def test_bool_keys(self) -> None:
        assert render_key(bool, False) == "False"
        assert parse_key(bool, "True") is True
        with pytest.raises(ConversionError):
            parse_key(bool, "yes")

    def test_enum_and_object_id_keys(self) -> None:
        oid = ObjectId()
        assert render_key(Color, Color.RED) == "RED"
        assert parse_key(Color, "RED") is Color.RED
        assert parse_key(ObjectId, render_key(ObjectId, oid)) == oid

    def test_untyped_keys_must_be_strings(self) -> None:
        assert render_key(Any, "a") == "a"
        with pytest.raises(ConversionError, match="must be str"):
            render_key(Any, 1)

    def test_key_kind_is_checked(self) -> None:
        with pytest.raises(ConversionError):
            render_key(int, "2")
        with pytest.raises(ConversionError, match="cannot parse"):
            parse_key(int, "two")


class TestKeyIds:
    def test_document_scalars_stored_as_is(self) -> None:
        oid = ObjectId()
        assert encode_key_id(oid) is oid
        assert encode_key_id("a1") == "a1"
        assert encode_key_id(None) is None
        assert not is_tagged_key_id("a1")

    def test_uuid_and_decimal_describe_themselves(self) -> None:
        value = UUID("12345678-1234-5678-1234-567812345678")
        stored = encode_key_id(value)
        assert isinstance(stored, Binary)
        assert is_tagged_key_id(stored)
        assert decode_key_id(stored) == value
        assert decode_key_id(encode_key_id(Decimal("1.50"))) == Decimal("1.50")
        assert is_tagged_key_id(Decimal128("1.50"))

    def test_other_scalars_use_canonical_form(self) -> None:
        assert encode_key_id(date(2024, 1, 2)) == datetime(2024, 1, 2)
        assert encode_key_id(Color.RED) == "RED"
        assert not is_tagged_key_id(Binary(b"raw"))

    def test_unsupported_id(self) -> None:
        with pytest.raises(ConversionError):
            encode_key_id(object())
