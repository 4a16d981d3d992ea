"""Datum writers and readers.

:class:`DatumWriter` serializes a value against a schema through an
:class:`~avrolite.serialization.api.Encoder`. :class:`DatumReader` reads it
back through a :class:`~avrolite.serialization.api.Decoder`, either with the
writer schema alone or resolved against a different reader schema.

Example:
    >>> data = encode(writer_schema, record)
    >>> decode(writer_schema, data) == record
    True
    >>> newer = decode_resolved(writer_schema, reader_schema, data)
"""

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, Optional, Tuple

from avrolite.exceptions import DecodingError, EncodingError, SchemaResolutionError
from avrolite.logging import get_logger
from avrolite.schema import (
    INT_MAX_VALUE,
    INT_MIN_VALUE,
    LONG_MAX_VALUE,
    LONG_MIN_VALUE,
    Field,
    RecordSchema,
    Schema,
    SchemaType,
    UnionSchema,
)
from avrolite.serialization.api import Decoder, Encoder
from avrolite.serialization.binary import BinaryDecoder, BinaryEncoder
from avrolite.serialization.resolver import resolve_union_branch, schemas_match
from avrolite.value import GenericRecord, copy_default

_logger = get_logger("resolver")


def validate(schema: Schema, datum: Any) -> bool:
    """Check whether ``datum`` can be written with ``schema``."""
    t = schema.type
    if t == SchemaType.ARRAY:
        return is_sequence(datum) and all(validate(schema.items, d) for d in datum)
    if t == SchemaType.MAP:
        return isinstance(datum, Mapping) and all(
            isinstance(k, str) and validate(schema.values, v) for k, v in datum.items()
        )
    if t == SchemaType.UNION:
        index = find_branch(schema, datum)
        return index is not None and validate(schema.schemas[index], datum)
    if t == SchemaType.RECORD:
        if not accepts(schema, datum):
            return False
        return all(validate(f.type, datum[f.name]) for f in schema.fields if f.name in datum)
    return accepts(schema, datum)


def accepts(schema: Schema, datum: Any) -> bool:
    """Check the outer shape of ``datum`` against ``schema``.

    Primitives and enums are checked fully. Arrays and maps are checked by
    kind, records by name or by the presence of their required fields.
    Nested values are not inspected.
    """
    t = schema.type
    if t == SchemaType.NULL:
        return datum is None
    if t == SchemaType.BOOLEAN:
        return isinstance(datum, bool)
    if t == SchemaType.INT:
        return _is_int(datum) and INT_MIN_VALUE <= datum <= INT_MAX_VALUE
    if t == SchemaType.LONG:
        return _is_int(datum) and LONG_MIN_VALUE <= datum <= LONG_MAX_VALUE
    if t in (SchemaType.FLOAT, SchemaType.DOUBLE):
        return _is_int(datum) or isinstance(datum, float)
    if t == SchemaType.BYTES:
        return isinstance(datum, (bytes, bytearray))
    if t == SchemaType.STRING:
        return isinstance(datum, str)
    if t == SchemaType.ENUM:
        return isinstance(datum, str) and datum in schema.symbols
    if t == SchemaType.ARRAY:
        return is_sequence(datum)
    if t == SchemaType.MAP:
        return isinstance(datum, Mapping)
    if t == SchemaType.UNION:
        return any(accepts(branch, datum) for branch in schema.schemas)
    if t == SchemaType.RECORD:
        return is_record(schema, datum) and all(
            f.name in datum or f.has_default for f in schema.fields
        )
    return False


def find_branch(schema: UnionSchema, datum: Any) -> Optional[int]:
    """Get the index of the union branch that ``datum`` is written through.

    The first branch whose outer shape accepts the value wins. Only when
    several branches do, such as two array branches, are their contents
    compared, and the first one the value fully fits is taken.
    """
    candidates = [i for i, branch in enumerate(schema.schemas) if accepts(branch, datum)]
    if len(candidates) <= 1:
        return candidates[0] if candidates else None
    for index in candidates:
        if validate(schema.schemas[index], datum):
            return index
    return None


def _is_int(datum: Any) -> bool:
    return isinstance(datum, int) and not isinstance(datum, bool)


def is_sequence(datum: Any) -> bool:
    """Check whether ``datum`` can be written as an array."""
    return isinstance(datum, Sequence) and not isinstance(datum, (str, bytes, bytearray))


def is_record(schema: RecordSchema, datum: Any) -> bool:
    """Check whether ``datum`` can be written as a ``schema`` record.

    Generic records must carry the schema's full name; plain mappings are
    taken as they are.
    """
    if isinstance(datum, GenericRecord):
        return datum.type_name == schema.fullname
    return isinstance(datum, Mapping)


class DatumWriter:
    """Writes values conforming to a schema.

    Records are written field by field in schema order, without names. A
    record field missing from the value is written with its declared default.
    """

    def __init__(self, schema: Schema):
        self._schema = schema

    @property
    def schema(self) -> Schema:
        return self._schema

    def write(self, datum: Any, encoder: Encoder) -> None:
        """Write ``datum`` to ``encoder``.

        Raises:
            EncodingError: If the value does not match the schema.
        """
        try:
            self._write(self._schema, datum, encoder)
        except RecursionError as e:
            raise EncodingError("Value is nested too deeply to encode", cause=e)

    def _write(self, schema: Schema, datum: Any, encoder: Encoder) -> None:
        t = schema.type
        if t == SchemaType.NULL:
            if datum is not None:
                raise _mismatch(schema, datum)
            encoder.write_null()
        elif t == SchemaType.BOOLEAN:
            if not isinstance(datum, bool):
                raise _mismatch(schema, datum)
            encoder.write_boolean(datum)
        elif t == SchemaType.INT:
            if not _is_int(datum):
                raise _mismatch(schema, datum)
            encoder.write_int(datum)
        elif t == SchemaType.LONG:
            if not _is_int(datum):
                raise _mismatch(schema, datum)
            encoder.write_long(datum)
        elif t in (SchemaType.FLOAT, SchemaType.DOUBLE):
            if not (_is_int(datum) or isinstance(datum, float)):
                raise _mismatch(schema, datum)
            if t == SchemaType.FLOAT:
                encoder.write_float(float(datum))
            else:
                encoder.write_double(float(datum))
        elif t == SchemaType.BYTES:
            if not isinstance(datum, (bytes, bytearray)):
                raise _mismatch(schema, datum)
            encoder.write_bytes(bytes(datum))
        elif t == SchemaType.STRING:
            if not isinstance(datum, str):
                raise _mismatch(schema, datum)
            encoder.write_string(datum)
        elif t == SchemaType.ENUM:
            if not isinstance(datum, str) or datum not in schema.symbols:
                raise EncodingError(f"{datum!r} is not a symbol of enum {schema.fullname}")
            encoder.write_int(schema.symbols.index(datum))
        elif t == SchemaType.ARRAY:
            if not is_sequence(datum):
                raise _mismatch(schema, datum)
            if datum:
                encoder.write_long(len(datum))
                for item in datum:
                    self._write(schema.items, item, encoder)
            encoder.write_long(0)
        elif t == SchemaType.MAP:
            if not isinstance(datum, Mapping):
                raise _mismatch(schema, datum)
            if datum:
                encoder.write_long(len(datum))
                for key, value in datum.items():
                    if not isinstance(key, str):
                        raise EncodingError(f"Map keys must be strings, got {key!r}")
                    encoder.write_string(key)
                    self._write(schema.values, value, encoder)
            encoder.write_long(0)
        elif t == SchemaType.UNION:
            index = find_branch(schema, datum)
            if index is None:
                raise EncodingError(f"{_short(datum)} matches no branch of union {schema}")
            encoder.write_long(index)
            self._write(schema.schemas[index], datum, encoder)
        elif t == SchemaType.RECORD:
            self._write_record(schema, datum, encoder)
        else:
            raise EncodingError(f"Unsupported schema type {t}")

    def _write_record(self, schema: RecordSchema, datum: Any, encoder: Encoder) -> None:
        if not is_record(schema, datum):
            raise _mismatch(schema, datum)
        for f in schema.fields:
            if f.name in datum:
                value = datum[f.name]
            elif f.has_default:
                value = f.default
            else:
                raise EncodingError(f"Missing required field '{f.name}' of record {schema.fullname}")
            try:
                self._write(f.type, value, encoder)
            except EncodingError as e:
                raise EncodingError(f"Field '{f.name}' of {schema.fullname}: {e}", cause=e)


def _mismatch(schema: Schema, datum: Any) -> EncodingError:
    return EncodingError(f"{_short(datum)} is not a valid {schema.type.value}")


def _short(datum: Any) -> str:
    text = repr(datum)
    if len(text) > 60:
        text = text[:57] + "..."
    return f"{type(datum).__name__} {text}"


class DatumReader:
    """Reads values written with a writer schema.

    Without a reader schema, values are reproduced exactly as written. With
    one, the writer and reader schemas are walked in lockstep: bytes are
    consumed as the writer schema dictates and values are shaped as the
    reader schema declares.

    Args:
        writer_schema: The schema the data was written with.
        reader_schema: The schema values are returned under, if different.
    """

    def __init__(self, writer_schema: Schema, reader_schema: Optional[Schema] = None):
        self._writer_schema = writer_schema
        self._reader_schema = reader_schema
        self._field_plans: Dict[Tuple[int, int], Dict[str, Field]] = {}

    @property
    def writer_schema(self) -> Schema:
        return self._writer_schema

    @property
    def reader_schema(self) -> Schema:
        return self._reader_schema or self._writer_schema

    def read(self, decoder: Decoder) -> Any:
        """Read one value.

        Raises:
            DecodingError: If the input is malformed or truncated.
            SchemaResolutionError: If the value cannot be shaped as the
                reader schema.
        """
        try:
            if self._reader_schema is None:
                return self.read_plain(self._writer_schema, decoder)
            return self.read_resolved(self._writer_schema, self._reader_schema, decoder)
        except RecursionError as e:
            raise DecodingError("Value is nested too deeply to decode", cause=e)

    def read_plain(self, schema: Schema, decoder: Decoder) -> Any:
        """Read a value using only the schema it was written with."""
        t = schema.type
        if t == SchemaType.NULL:
            return decoder.read_null()
        if t == SchemaType.BOOLEAN:
            return decoder.read_boolean()
        if t == SchemaType.INT:
            return decoder.read_int()
        if t == SchemaType.LONG:
            return decoder.read_long()
        if t == SchemaType.FLOAT:
            return decoder.read_float()
        if t == SchemaType.DOUBLE:
            return decoder.read_double()
        if t == SchemaType.BYTES:
            return decoder.read_bytes()
        if t == SchemaType.STRING:
            return decoder.read_string()
        if t == SchemaType.ENUM:
            return _symbol(schema, decoder)
        if t == SchemaType.ARRAY:
            items = []
            _read_blocks(decoder, lambda: items.append(self.read_plain(schema.items, decoder)))
            return items
        if t == SchemaType.MAP:
            entries = {}

            def read_entry():
                key = decoder.read_string()
                entries[key] = self.read_plain(schema.values, decoder)

            _read_blocks(decoder, read_entry)
            return entries
        if t == SchemaType.UNION:
            return self.read_plain(_branch(schema, decoder), decoder)
        if t == SchemaType.RECORD:
            return GenericRecord(
                schema, {f.name: self.read_plain(f.type, decoder) for f in schema.fields}
            )
        raise DecodingError(f"Unsupported schema type {t}")

    def read_resolved(self, writer: Schema, reader: Schema, decoder: Decoder) -> Any:
        """Read a value written as ``writer`` and shape it as ``reader``."""
        if writer.type == SchemaType.UNION:
            return self.read_resolved(_branch(writer, decoder), reader, decoder)
        if reader.type == SchemaType.UNION:
            branch = resolve_union_branch(writer, reader)
            if branch is None:
                raise SchemaResolutionError(
                    f"No branch of reader union {reader} matches writer type {writer}",
                    writer_schema=writer,
                    reader_schema=reader,
                )
            return self.read_resolved(writer, branch, decoder)
        if not schemas_match(writer, reader):
            raise SchemaResolutionError(
                f"Writer type {writer} cannot be read as {reader}",
                writer_schema=writer,
                reader_schema=reader,
            )

        t = writer.type
        if t == SchemaType.RECORD:
            return self._read_record(writer, reader, decoder)
        if t == SchemaType.ENUM:
            symbol = _symbol(writer, decoder)
            if symbol in reader.symbols:
                return symbol
            if reader.default is not None:
                return reader.default
            raise SchemaResolutionError(
                f"Symbol '{symbol}' is not in reader enum {reader.fullname}",
                writer_schema=writer,
                reader_schema=reader,
            )
        if t == SchemaType.ARRAY:
            items = []
            _read_blocks(
                decoder,
                lambda: items.append(self.read_resolved(writer.items, reader.items, decoder)),
            )
            return items
        if t == SchemaType.MAP:
            entries = {}

            def read_entry():
                key = decoder.read_string()
                entries[key] = self.read_resolved(writer.values, reader.values, decoder)

            _read_blocks(decoder, read_entry)
            return entries
        return _promote(self.read_plain(writer, decoder), writer.type, reader.type)

    def _read_record(self, writer: RecordSchema, reader: RecordSchema, decoder: Decoder) -> GenericRecord:
        plan = self._field_plan(writer, reader)
        values: Dict[str, Any] = {}
        for writer_field in writer.fields:
            reader_field = plan.get(writer_field.name)
            if reader_field is None:
                # No field markers in the data, so unwanted fields are still consumed.
                self.read_plain(writer_field.type, decoder)
                continue
            values[reader_field.name] = self.read_resolved(writer_field.type, reader_field.type, decoder)

        fields = {}
        for reader_field in reader.fields:
            if reader_field.name in values:
                fields[reader_field.name] = values[reader_field.name]
            elif reader_field.has_default:
                fields[reader_field.name] = copy_default(reader_field.default)
            else:
                raise SchemaResolutionError(
                    f"Reader field '{reader_field.name}' of {reader.fullname} has no default "
                    f"and is missing from writer {writer.fullname}",
                    writer_schema=writer,
                    reader_schema=reader,
                )
        return GenericRecord(reader, fields)

    def _field_plan(self, writer: RecordSchema, reader: RecordSchema) -> Dict[str, Field]:
        """Map writer field names to the reader fields they feed."""
        key = (id(writer), id(reader))
        plan = self._field_plans.get(key)
        if plan is None:
            plan = {}
            for reader_field in reader.fields:
                writer_field = reader.find_writer_counterpart(writer, reader_field)
                if writer_field is None:
                    _logger.debug(
                        "Reader field '%s' of %s is not written; default %s",
                        reader_field.name,
                        reader.fullname,
                        "will be used" if reader_field.has_default else "is missing",
                    )
                    continue
                plan.setdefault(writer_field.name, reader_field)
            for writer_field in writer.fields:
                if writer_field.name not in plan:
                    _logger.debug(
                        "Writer field '%s' of %s is unknown to the reader and will be skipped",
                        writer_field.name,
                        writer.fullname,
                    )
            self._field_plans[key] = plan
        return plan


def _read_blocks(decoder: Decoder, read_item: Callable[[], None]) -> None:
    while True:
        count = decoder.read_long()
        if count == 0:
            return
        if count < 0:
            # A negative count is followed by the block size in bytes.
            count = -count
            decoder.read_long()
        for _ in range(count):
            read_item()


def _branch(schema: UnionSchema, decoder: Decoder) -> Schema:
    index = decoder.read_long()
    if not 0 <= index < len(schema.schemas):
        raise DecodingError(f"Union branch index {index} out of range for {schema}")
    return schema.schemas[index]


def _symbol(schema, decoder: Decoder) -> str:
    index = decoder.read_int()
    if not 0 <= index < len(schema.symbols):
        raise DecodingError(f"Enum index {index} out of range for {schema.fullname}")
    return schema.symbols[index]


def _promote(value: Any, writer_type: SchemaType, reader_type: SchemaType) -> Any:
    if writer_type == reader_type or reader_type == SchemaType.LONG:
        return value
    if reader_type in (SchemaType.FLOAT, SchemaType.DOUBLE):
        return float(value)
    if reader_type == SchemaType.BYTES:
        return value.encode("utf-8")
    if reader_type == SchemaType.STRING:
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingError(f"Bytes are not valid UTF-8 for a string reader: {e}", cause=e)
    return value


def encode(schema: Schema, datum: Any) -> bytes:
    """Serialize ``datum`` against ``schema``.

    Raises:
        EncodingError: If the value does not match the schema.
    """
    encoder = BinaryEncoder()
    DatumWriter(schema).write(datum, encoder)
    return encoder.to_bytes()


def decode(writer_schema: Schema, data: bytes) -> Any:
    """Deserialize ``data`` using the schema it was written with.

    Raises:
        DecodingError: If the data is malformed, truncated or has trailing bytes.
    """
    return _decode_all(DatumReader(writer_schema), data)


def decode_resolved(writer_schema: Schema, reader_schema: Schema, data: bytes) -> Any:
    """Deserialize ``data`` written with ``writer_schema`` as ``reader_schema``.

    Raises:
        DecodingError: If the data is malformed, truncated or has trailing bytes.
        SchemaResolutionError: If the schemas cannot be reconciled for this value.
    """
    return _decode_all(DatumReader(writer_schema, reader_schema), data)


def _decode_all(reader: DatumReader, data: bytes) -> Any:
    decoder = BinaryDecoder(data)
    value = reader.read(decoder)
    if not decoder.at_end():
        raise DecodingError(f"{len(data) - decoder.position()} trailing bytes after value")
    return value
