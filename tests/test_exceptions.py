"""Unit tests for avrolite.exceptions module."""

import pytest

from avrolite.exceptions import (
    AvroliteException,
    AvroliteSerializationException,
    ConfigurationException,
    CorruptFileError,
    DecodingError,
    EncodingError,
    IllegalStateException,
    SchemaParseException,
    SchemaResolutionError,
)
from avrolite.schema import parse_schema


class TestAvroliteException:
    """Tests for the base exception."""

    def test_message(self):
        e = AvroliteException("something failed")
        assert str(e) == "something failed"
        assert e.cause is None

    def test_cause(self):
        cause = ValueError("inner")
        e = AvroliteException("outer", cause=cause)
        assert e.cause is cause

    def test_default_message(self):
        assert str(AvroliteException()) == ""


class TestHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc_class",
        [IllegalStateException, ConfigurationException, SchemaParseException, AvroliteSerializationException],
    )
    def test_direct_subclasses(self, exc_class):
        assert issubclass(exc_class, AvroliteException)

    @pytest.mark.parametrize(
        "exc_class",
        [EncodingError, DecodingError, SchemaResolutionError, CorruptFileError],
    )
    def test_serialization_errors(self, exc_class):
        assert issubclass(exc_class, AvroliteSerializationException)
        assert issubclass(exc_class, AvroliteException)

    def test_catch_by_base(self):
        with pytest.raises(AvroliteException):
            raise CorruptFileError("bad sync")


class TestSchemaResolutionError:
    """Tests for SchemaResolutionError."""

    def test_carries_schemas(self):
        writer = parse_schema("int")
        reader = parse_schema("string")
        e = SchemaResolutionError("cannot resolve", writer_schema=writer, reader_schema=reader)
        assert str(e) == "cannot resolve"
        assert e.writer_schema is writer
        assert e.reader_schema is reader

    def test_schemas_optional(self):
        e = SchemaResolutionError("cannot resolve")
        assert e.writer_schema is None
        assert e.reader_schema is None
