"""JSON text encoding.

Renders values as human-readable JSON driven by the same schemas as the
binary format, for inspection and export:

- records become objects with fields in schema order;
- arrays become lists and maps become objects;
- bytes become strings whose code points are the byte values;
- enums become their symbol;
- a union value becomes ``null`` for the null branch and otherwise an
  object with a single key naming the branch: ``{"string": "x"}``.

The text encoding is tied to the writer schema; there is no resolution.

Example:
    Basic usage::

        from avrolite.serialization.json import encode_text, decode_text

        text = encode_text(employee_schema, record)
        same = decode_text(employee_schema, text)
"""

import json as json_module
from collections.abc import Mapping
from typing import Any, Optional, TextIO

from avrolite.exceptions import DecodingError, EncodingError
from avrolite.schema import Schema, SchemaType, branch_name
from avrolite.serialization.datum import find_branch, is_record, is_sequence, validate
from avrolite.value import GenericRecord, copy_default


def to_json_value(schema: Schema, datum: Any) -> Any:
    """Convert a value into its JSON-compatible form.

    Raises:
        EncodingError: If the value does not match the schema.
    """
    t = schema.type
    if t == SchemaType.UNION:
        index = find_branch(schema, datum)
        if index is None:
            raise EncodingError(f"{datum!r} matches no branch of union {schema}")
        branch = schema.schemas[index]
        if branch.type == SchemaType.NULL:
            return None
        return {branch_name(branch): to_json_value(branch, datum)}
    if t == SchemaType.RECORD:
        if not is_record(schema, datum):
            raise EncodingError(f"{type(datum).__name__} is not a valid record {schema.fullname}")
        result = {}
        for f in schema.fields:
            if f.name in datum:
                value = datum[f.name]
            elif f.has_default:
                value = f.default
            else:
                raise EncodingError(f"Missing required field '{f.name}' of record {schema.fullname}")
            result[f.name] = to_json_value(f.type, value)
        return result
    if t == SchemaType.ARRAY:
        if not is_sequence(datum):
            raise EncodingError(f"{type(datum).__name__} is not a valid array")
        return [to_json_value(schema.items, item) for item in datum]
    if t == SchemaType.MAP:
        if not isinstance(datum, Mapping):
            raise EncodingError(f"{type(datum).__name__} is not a valid map")
        result = {}
        for key, value in datum.items():
            if not isinstance(key, str):
                raise EncodingError(f"Map keys must be strings, got {key!r}")
            result[key] = to_json_value(schema.values, value)
        return result
    if not validate(schema, datum):
        raise EncodingError(f"{datum!r} is not a valid {t.value}")
    if t == SchemaType.BYTES:
        return bytes(datum).decode("latin-1")
    if t in (SchemaType.FLOAT, SchemaType.DOUBLE):
        return float(datum)
    return datum


def from_json_value(schema: Schema, obj: Any) -> Any:
    """Convert the JSON-compatible form produced by :func:`to_json_value` back into a value.

    Raises:
        DecodingError: If ``obj`` does not match the schema.
    """
    t = schema.type
    if t == SchemaType.UNION:
        if obj is None:
            for branch in schema.schemas:
                if branch.type == SchemaType.NULL:
                    return None
            raise DecodingError(f"null is not allowed by union {schema}")
        if not isinstance(obj, dict) or len(obj) != 1:
            raise DecodingError(f"Union value must be an object with one key, got {obj!r}")
        (name, value), = obj.items()
        for branch in schema.schemas:
            if branch_name(branch) == name:
                return from_json_value(branch, value)
        raise DecodingError(f"'{name}' is not a branch of union {schema}")
    if t == SchemaType.RECORD:
        if not isinstance(obj, dict):
            raise DecodingError(f"Record {schema.fullname} must be an object, got {obj!r}")
        fields = {}
        for f in schema.fields:
            if f.name in obj:
                fields[f.name] = from_json_value(f.type, obj[f.name])
            elif f.has_default:
                fields[f.name] = copy_default(f.default)
            else:
                raise DecodingError(f"Missing field '{f.name}' of record {schema.fullname}")
        return GenericRecord(schema, fields)
    if t == SchemaType.ARRAY:
        if not isinstance(obj, list):
            raise DecodingError(f"Array must be a list, got {obj!r}")
        return [from_json_value(schema.items, item) for item in obj]
    if t == SchemaType.MAP:
        if not isinstance(obj, dict):
            raise DecodingError(f"Map must be an object, got {obj!r}")
        return {k: from_json_value(schema.values, v) for k, v in obj.items()}
    if t == SchemaType.BYTES:
        if not isinstance(obj, str):
            raise DecodingError(f"Bytes must be a string, got {obj!r}")
        try:
            return obj.encode("latin-1")
        except UnicodeEncodeError as e:
            raise DecodingError(f"Bytes string has code points above 255: {e}", cause=e)
    if t in (SchemaType.FLOAT, SchemaType.DOUBLE) and validate(schema, obj):
        return float(obj)
    if not validate(schema, obj):
        raise DecodingError(f"{obj!r} is not a valid {t.value}")
    return obj


def encode_text(schema: Schema, datum: Any, indent: Optional[int] = None, sort_keys: bool = False) -> str:
    """Render a value as JSON text.

    Args:
        schema: The schema the value conforms to.
        datum: The value to render.
        indent: Indentation for pretty printing; compact output when None.
        sort_keys: Sort object keys instead of keeping schema field order.

    Raises:
        EncodingError: If the value does not match the schema.
    """
    separators = (",", ":") if indent is None else (",", ": ")
    try:
        return json_module.dumps(
            to_json_value(schema, datum), indent=indent, sort_keys=sort_keys, separators=separators
        )
    except RecursionError as e:
        raise EncodingError("Value is nested too deeply to encode", cause=e)


def decode_text(schema: Schema, text: str) -> Any:
    """Parse JSON text produced by :func:`encode_text`.

    Raises:
        DecodingError: If the text is not valid JSON or does not match the schema.
    """
    try:
        obj = json_module.loads(text)
    except json_module.JSONDecodeError as e:
        raise DecodingError(f"Failed to parse JSON: {e}", cause=e)
    except RecursionError as e:
        raise DecodingError("JSON text is nested too deeply", cause=e)
    try:
        return from_json_value(schema, obj)
    except RecursionError as e:
        raise DecodingError("Value is nested too deeply to decode", cause=e)


class JsonEncoder:
    """Writes a sequence of values to a text stream, one JSON document per line.

    Args:
        stream: A writable text stream.
        schema: The schema every value conforms to.
        indent: Indentation for pretty printing.
        sort_keys: Sort object keys instead of keeping schema field order.
    """

    def __init__(self, stream: TextIO, schema: Schema, indent: Optional[int] = None, sort_keys: bool = False):
        self._stream = stream
        self._schema = schema
        self._indent = indent
        self._sort_keys = sort_keys
        self._count = 0

    @property
    def count(self) -> int:
        """Get the number of values written."""
        return self._count

    def write(self, datum: Any) -> None:
        """Write one value followed by a newline.

        Raises:
            EncodingError: If the value does not match the schema.
        """
        text = encode_text(self._schema, datum, indent=self._indent, sort_keys=self._sort_keys)
        self._stream.write(text)
        self._stream.write("\n")
        self._count += 1

    def flush(self) -> None:
        self._stream.flush()
