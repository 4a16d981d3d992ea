"""Schema model.

A schema is an immutable tree of :class:`Schema` nodes built from an
already-parsed structural description (the dict/list/str form produced by
``json.loads`` on an ``.avsc`` document)::

    from avrolite.schema import parse_schema

    employee = parse_schema({
        "type": "record",
        "name": "Employee",
        "fields": [
            {"name": "name", "type": "string"},
            {"name": "age", "type": "int"},
            {"name": "emails", "type": {"type": "array", "items": "string"}},
            {"name": "boss", "type": ["Employee", "null"]},
        ],
    })

Named types (records and enums) are registered in a :class:`Names` registry
before their contents are parsed, so a record may refer to itself.
"""

import json
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from avrolite.exceptions import SchemaParseException
from avrolite.logging import get_logger
from avrolite.value import GenericRecord

_logger = get_logger("schema")

_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

INT_MIN_VALUE = -(1 << 31)
INT_MAX_VALUE = (1 << 31) - 1
LONG_MIN_VALUE = -(1 << 63)
LONG_MAX_VALUE = (1 << 63) - 1


class SchemaType(Enum):
    """Type identifiers for schema nodes."""

    NULL = "null"
    BOOLEAN = "boolean"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    BYTES = "bytes"
    STRING = "string"
    RECORD = "record"
    ENUM = "enum"
    ARRAY = "array"
    MAP = "map"
    UNION = "union"


PRIMITIVE_TYPES = frozenset(
    t.value
    for t in (
        SchemaType.NULL,
        SchemaType.BOOLEAN,
        SchemaType.INT,
        SchemaType.LONG,
        SchemaType.FLOAT,
        SchemaType.DOUBLE,
        SchemaType.BYTES,
        SchemaType.STRING,
    )
)


class _NoDefault:
    """Marker for a field that declares no default value."""

    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __bool__(self) -> bool:
        return False


NO_DEFAULT = _NoDefault()


class Schema:
    """Base class for all schema nodes."""

    def __init__(self, schema_type: SchemaType):
        self._type = schema_type

    @property
    def type(self) -> SchemaType:
        """Get the type identifier of this node."""
        return self._type

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        """Get the structural description of this schema.

        Args:
            seen: Full names of named types already emitted. Named types
                found in ``seen`` are emitted by name only.

        Returns:
            A JSON-compatible str, list or dict.
        """
        raise NotImplementedError

    def __str__(self) -> str:
        return json.dumps(self.to_json(), separators=(",", ":"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return False
        return self.to_json() == other.to_json()

    def __hash__(self) -> int:
        return hash(str(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self})"


class PrimitiveSchema(Schema):
    """Schema for null, boolean, int, long, float, double, bytes and string."""

    def __init__(self, type_name: str):
        if type_name not in PRIMITIVE_TYPES:
            raise SchemaParseException(f"'{type_name}' is not a primitive type")
        super().__init__(SchemaType(type_name))

    @property
    def name(self) -> str:
        return self._type.value

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        return self._type.value


class NamedSchema(Schema):
    """Base class for schema nodes that are registered by name."""

    def __init__(
        self,
        schema_type: SchemaType,
        name: str,
        namespace: Optional[str] = None,
        aliases: Iterable[str] = (),
        doc: Optional[str] = None,
    ):
        super().__init__(schema_type)
        if not isinstance(name, str) or not name:
            raise SchemaParseException(f"{schema_type.value} schema requires a name")
        if "." in name:
            namespace, name = name.rsplit(".", 1)
        _check_name(name)
        self._name = name
        self._namespace = namespace or None
        self._aliases = tuple(_fullname(a, self._namespace) for a in aliases)
        self._doc = doc

    @property
    def name(self) -> str:
        return self._name

    @property
    def namespace(self) -> Optional[str]:
        return self._namespace

    @property
    def fullname(self) -> str:
        return _fullname(self._name, self._namespace)

    @property
    def aliases(self) -> Tuple[str, ...]:
        """Get the alias full names this type also answers to."""
        return self._aliases

    @property
    def doc(self) -> Optional[str]:
        return self._doc

    def matches_name(self, other: "NamedSchema") -> bool:
        """Check whether data written as ``other`` may be read as this type."""
        return other.fullname == self.fullname or other.fullname in self._aliases

    def _named_json(self, seen: Optional[Set[str]]) -> Tuple[bool, Dict[str, Any]]:
        if seen is not None and self.fullname in seen:
            return True, {}
        if seen is not None:
            seen.add(self.fullname)
        description: Dict[str, Any] = {"type": self._type.value, "name": self._name}
        if self._namespace:
            description["namespace"] = self._namespace
        if self._aliases:
            description["aliases"] = list(self._aliases)
        if self._doc:
            description["doc"] = self._doc
        return False, description


class Field:
    """A record field: name, type and optional default.

    ``default`` holds the parsed default value, or :data:`NO_DEFAULT` when the
    description declares none. A default of ``None`` is a real default.
    """

    def __init__(
        self,
        name: str,
        schema: Schema,
        index: int,
        default: Any = NO_DEFAULT,
        json_default: Any = NO_DEFAULT,
        aliases: Iterable[str] = (),
        doc: Optional[str] = None,
    ):
        _check_name(name)
        self._name = name
        self._schema = schema
        self._index = index
        self._default = default
        self._json_default = json_default
        self._aliases = tuple(aliases)
        self._doc = doc

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> Schema:
        return self._schema

    @property
    def index(self) -> int:
        return self._index

    @property
    def default(self) -> Any:
        return self._default

    @property
    def has_default(self) -> bool:
        return self._default is not NO_DEFAULT

    @property
    def aliases(self) -> Tuple[str, ...]:
        return self._aliases

    @property
    def doc(self) -> Optional[str]:
        return self._doc

    def to_json(self, seen: Optional[Set[str]] = None) -> Dict[str, Any]:
        description: Dict[str, Any] = {"name": self._name, "type": self._schema.to_json(seen)}
        if self.has_default:
            description["default"] = self._json_default
        if self._aliases:
            description["aliases"] = list(self._aliases)
        if self._doc:
            description["doc"] = self._doc
        return description

    def __repr__(self) -> str:
        return f"Field(name={self._name!r}, type={self._schema}, default={self._default!r})"


class RecordSchema(NamedSchema):
    """Schema for records: an ordered list of uniquely named fields."""

    def __init__(
        self,
        name: str,
        namespace: Optional[str] = None,
        fields: Optional[List[Field]] = None,
        aliases: Iterable[str] = (),
        doc: Optional[str] = None,
    ):
        super().__init__(SchemaType.RECORD, name, namespace, aliases, doc)
        self._fields: Tuple[Field, ...] = ()
        self._field_map: Dict[str, Field] = {}
        if fields is not None:
            self._set_fields(fields)

    def _set_fields(self, fields: List[Field]) -> None:
        field_map: Dict[str, Field] = {}
        for f in fields:
            if f.name in field_map:
                raise SchemaParseException(f"Duplicate field '{f.name}' in record {self.fullname}")
            field_map[f.name] = f
        self._fields = tuple(fields)
        self._field_map = field_map

    @property
    def fields(self) -> Tuple[Field, ...]:
        return self._fields

    @property
    def field_map(self) -> Dict[str, Field]:
        return dict(self._field_map)

    def get_field(self, name: str) -> Optional[Field]:
        """Get a field by name."""
        return self._field_map.get(name)

    def find_writer_counterpart(self, writer: "RecordSchema", reader_field: Field) -> Optional[Field]:
        """Find the writer field that feeds ``reader_field``, by name or alias."""
        found = writer.get_field(reader_field.name)
        if found is not None:
            return found
        for alias in reader_field.aliases:
            found = writer.get_field(alias)
            if found is not None:
                return found
        return None

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        if seen is None:
            seen = set()
        already, description = self._named_json(seen)
        if already:
            return self.fullname
        description["fields"] = [f.to_json(seen) for f in self._fields]
        return description


class EnumSchema(NamedSchema):
    """Schema for enumerations of symbols."""

    def __init__(
        self,
        name: str,
        symbols: Iterable[str],
        namespace: Optional[str] = None,
        aliases: Iterable[str] = (),
        doc: Optional[str] = None,
        default: Optional[str] = None,
    ):
        super().__init__(SchemaType.ENUM, name, namespace, aliases, doc)
        symbols = tuple(symbols)
        if not symbols:
            raise SchemaParseException(f"Enum {self.fullname} declares no symbols")
        if len(set(symbols)) != len(symbols):
            raise SchemaParseException(f"Duplicate symbol in enum {self.fullname}")
        for symbol in symbols:
            _check_name(symbol)
        if default is not None and default not in symbols:
            raise SchemaParseException(f"Enum default '{default}' is not a symbol of {self.fullname}")
        self._symbols = symbols
        self._default = default

    @property
    def symbols(self) -> Tuple[str, ...]:
        return self._symbols

    @property
    def default(self) -> Optional[str]:
        """Get the symbol used for unknown writer symbols, if any."""
        return self._default

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        if seen is None:
            seen = set()
        already, description = self._named_json(seen)
        if already:
            return self.fullname
        description["symbols"] = list(self._symbols)
        if self._default is not None:
            description["default"] = self._default
        return description


class ArraySchema(Schema):
    """Schema for arrays of a single item type."""

    def __init__(self, items: Schema):
        super().__init__(SchemaType.ARRAY)
        self._items = items

    @property
    def items(self) -> Schema:
        return self._items

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        return {"type": "array", "items": self._items.to_json(seen)}


class MapSchema(Schema):
    """Schema for maps from string keys to a single value type."""

    def __init__(self, values: Schema):
        super().__init__(SchemaType.MAP)
        self._values = values

    @property
    def values(self) -> Schema:
        return self._values

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        return {"type": "map", "values": self._values.to_json(seen)}


class UnionSchema(Schema):
    """Schema for values that may take one of several branch types.

    A union used for optional values lists ``"null"`` as one of its branches.
    """

    def __init__(self, schemas: Iterable[Schema]):
        super().__init__(SchemaType.UNION)
        schemas = tuple(schemas)
        if not schemas:
            raise SchemaParseException("Union declares no branches")
        seen_names: Set[str] = set()
        for branch in schemas:
            if isinstance(branch, UnionSchema):
                raise SchemaParseException("Unions may not immediately contain other unions")
            name = branch_name(branch)
            if name in seen_names:
                raise SchemaParseException(f"Duplicate '{name}' branch in union")
            seen_names.add(name)
        self._schemas = schemas

    @property
    def schemas(self) -> Tuple[Schema, ...]:
        return self._schemas

    def to_json(self, seen: Optional[Set[str]] = None) -> Any:
        return [s.to_json(seen) for s in self._schemas]


def branch_name(schema: Schema) -> str:
    """Get the name identifying a schema among union branches."""
    if isinstance(schema, NamedSchema):
        return schema.fullname
    return schema.type.value


class Names:
    """Registry of named types, consulted while a schema is being parsed."""

    def __init__(self, default_namespace: Optional[str] = None):
        self._names: Dict[str, NamedSchema] = {}
        self.default_namespace = default_namespace

    def add(self, schema: NamedSchema) -> None:
        """Register a named type.

        Raises:
            SchemaParseException: If the name is already registered or
                shadows a primitive type.
        """
        if schema.name in PRIMITIVE_TYPES or schema.fullname in PRIMITIVE_TYPES:
            raise SchemaParseException(f"'{schema.fullname}' may not redefine a primitive type")
        if schema.fullname in self._names:
            raise SchemaParseException(f"Type '{schema.fullname}' is already defined")
        self._names[schema.fullname] = schema

    def get(self, name: str, namespace: Optional[str] = None) -> Optional[NamedSchema]:
        """Look up a type by name, relative to ``namespace`` first."""
        if "." not in name:
            ns = namespace if namespace is not None else self.default_namespace
            found = self._names.get(_fullname(name, ns))
            if found is not None:
                return found
        return self._names.get(name)

    def __contains__(self, fullname: object) -> bool:
        return fullname in self._names

    def __len__(self) -> int:
        return len(self._names)


def parse_schema(
    description: Union[str, list, dict],
    names: Optional[Names] = None,
    namespace: Optional[str] = None,
) -> Schema:
    """Build a schema from its structural description.

    Args:
        description: A type name, a list of branches (union) or a dict.
        names: Registry of already defined named types. A new one is
            created when omitted.
        namespace: Enclosing namespace used to resolve unqualified names.

    Returns:
        The root schema node.

    Raises:
        SchemaParseException: If the description is malformed.
    """
    if names is None:
        names = Names()
    if isinstance(description, str):
        if description in PRIMITIVE_TYPES:
            return PrimitiveSchema(description)
        found = names.get(description, namespace)
        if found is None:
            raise SchemaParseException(f"Unknown type '{description}'")
        return found
    if isinstance(description, list):
        return UnionSchema(parse_schema(d, names, namespace) for d in description)
    if not isinstance(description, dict):
        raise SchemaParseException(f"Cannot parse schema from {type(description).__name__}")

    type_name = description.get("type")
    if isinstance(type_name, (dict, list)):
        return parse_schema(type_name, names, namespace)
    if type_name in PRIMITIVE_TYPES:
        return PrimitiveSchema(type_name)
    if type_name in ("record", "error"):
        return _parse_record(description, names, namespace)
    if type_name == "enum":
        schema = EnumSchema(
            _require(description, "name"),
            description.get("symbols", ()),
            namespace=description.get("namespace", namespace),
            aliases=description.get("aliases", ()),
            doc=description.get("doc"),
            default=description.get("default"),
        )
        names.add(schema)
        return schema
    if type_name == "array":
        return ArraySchema(parse_schema(_require(description, "items"), names, namespace))
    if type_name == "map":
        return MapSchema(parse_schema(_require(description, "values"), names, namespace))
    if isinstance(type_name, str):
        found = names.get(type_name, namespace)
        if found is not None:
            return found
    raise SchemaParseException(f"Unknown type '{type_name}'")


def _parse_record(description: dict, names: Names, namespace: Optional[str]) -> RecordSchema:
    record = RecordSchema(
        _require(description, "name"),
        namespace=description.get("namespace", namespace),
        aliases=description.get("aliases", ()),
        doc=description.get("doc"),
    )
    # Registered before the fields so that fields may refer to the record itself.
    names.add(record)

    field_descriptions = _require(description, "fields")
    if not isinstance(field_descriptions, list):
        raise SchemaParseException(f"Fields of record {record.fullname} must be a list")

    fields = []
    for index, fd in enumerate(field_descriptions):
        if not isinstance(fd, dict):
            raise SchemaParseException(f"Field description must be a dict, got {fd!r}")
        field_name = _require(fd, "name")
        field_type = parse_schema(_require(fd, "type"), names, record.namespace)
        default = json_default = NO_DEFAULT
        if "default" in fd:
            json_default = fd["default"]
            try:
                default = default_to_value(field_type, json_default)
            except (SchemaParseException, ValueError, TypeError) as e:
                raise SchemaParseException(
                    f"Invalid default for field '{field_name}' of {record.fullname}: {e}",
                    cause=e,
                )
        fields.append(
            Field(
                field_name,
                field_type,
                index,
                default=default,
                json_default=json_default,
                aliases=fd.get("aliases", ()),
                doc=fd.get("doc"),
            )
        )
    record._set_fields(fields)
    _logger.debug("Parsed record %s with %d fields", record.fullname, len(fields))
    return record


def default_to_value(schema: Schema, default: Any) -> Any:
    """Convert a default from its JSON form into a value for ``schema``.

    A union default always describes the first branch. A bytes default is a
    string whose code points are the byte values.

    Raises:
        SchemaParseException: If the default does not fit the schema.
    """
    t = schema.type
    if t == SchemaType.UNION:
        return default_to_value(schema.schemas[0], default)
    if t == SchemaType.NULL:
        if default is not None:
            raise SchemaParseException(f"null default must be null, got {default!r}")
        return None
    if t == SchemaType.BOOLEAN:
        if not isinstance(default, bool):
            raise SchemaParseException(f"boolean default expected, got {default!r}")
        return default
    if t in (SchemaType.INT, SchemaType.LONG):
        if isinstance(default, bool) or not isinstance(default, int):
            raise SchemaParseException(f"{t.value} default expected, got {default!r}")
        low, high = (INT_MIN_VALUE, INT_MAX_VALUE) if t == SchemaType.INT else (LONG_MIN_VALUE, LONG_MAX_VALUE)
        if not low <= default <= high:
            raise SchemaParseException(f"{t.value} default out of range: {default}")
        return default
    if t in (SchemaType.FLOAT, SchemaType.DOUBLE):
        if isinstance(default, bool) or not isinstance(default, (int, float)):
            raise SchemaParseException(f"{t.value} default expected, got {default!r}")
        return float(default)
    if t == SchemaType.BYTES:
        if not isinstance(default, str):
            raise SchemaParseException(f"bytes default must be a string, got {default!r}")
        return default.encode("latin-1")
    if t == SchemaType.STRING:
        if not isinstance(default, str):
            raise SchemaParseException(f"string default expected, got {default!r}")
        return default
    if t == SchemaType.ENUM:
        if default not in schema.symbols:
            raise SchemaParseException(f"'{default}' is not a symbol of {schema.fullname}")
        return default
    if t == SchemaType.ARRAY:
        if not isinstance(default, list):
            raise SchemaParseException(f"array default must be a list, got {default!r}")
        return [default_to_value(schema.items, d) for d in default]
    if t == SchemaType.MAP:
        if not isinstance(default, dict):
            raise SchemaParseException(f"map default must be an object, got {default!r}")
        return {k: default_to_value(schema.values, v) for k, v in default.items()}
    if t == SchemaType.RECORD:
        if not isinstance(default, dict):
            raise SchemaParseException(f"record default must be an object, got {default!r}")
        fields = {}
        for f in schema.fields:
            if f.name in default:
                fields[f.name] = default_to_value(f.type, default[f.name])
            elif f.has_default:
                fields[f.name] = f.default
            else:
                raise SchemaParseException(f"record default is missing field '{f.name}'")
        return GenericRecord(schema, fields)
    raise SchemaParseException(f"Unsupported schema type {t}")


def parse(json_text: str) -> Schema:
    """Parse a schema from JSON text.

    Raises:
        SchemaParseException: If the text is not valid JSON or not a valid schema.
    """
    try:
        description = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise SchemaParseException(f"Schema is not valid JSON: {e}", cause=e)
    return parse_schema(description)


def load_schema(path: str) -> Schema:
    """Load a schema from a JSON (``.avsc``) file.

    Raises:
        SchemaParseException: If the file cannot be read or parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise SchemaParseException(f"Failed to read schema file {path}: {e}", cause=e)
    return parse(text)


def _require(description: dict, key: str) -> Any:
    if key not in description:
        raise SchemaParseException(f"Schema description is missing '{key}': {description!r}")
    return description[key]


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise SchemaParseException(f"Invalid name {name!r}")


def _fullname(name: str, namespace: Optional[str]) -> str:
    if "." in name or not namespace:
        return name
    return f"{namespace}.{name}"
