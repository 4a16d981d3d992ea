"""Generic record values.

Values are plain Python objects: ``None``, ``bool``, ``int``, ``float``,
``bytes``, ``str``, ``list`` (arrays), ``dict`` (maps) and
:class:`GenericRecord` for records. Enum values are their symbol strings.
A value only has meaning next to the schema node it is written with.
"""

from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Tuple

if TYPE_CHECKING:
    from avrolite.schema import RecordSchema


class GenericRecord:
    """A schema-tagged record value.

    GenericRecord maps field names to values and stands in for any
    application object, so the encoders never depend on application classes.
    Fields may hold other GenericRecords, which is how recursive structures
    such as an employee's boss are expressed.

    Example:
        >>> rec = GenericRecord(employee_schema, {"name": "Joe", "age": 31})
        >>> rec["emails"] = ["joe@abc.com"]
        >>> rec["name"]
        'Joe'
    """

    def __init__(self, schema: "RecordSchema", fields: Dict[str, Any] = None):
        self._schema = schema
        self._fields: Dict[str, Any] = dict(fields) if fields else {}

    @property
    def schema(self) -> "RecordSchema":
        """Get the record schema this value is tagged with."""
        return self._schema

    @property
    def type_name(self) -> str:
        """Get the full name of the record type."""
        return self._schema.fullname

    def has_field(self, field_name: str) -> bool:
        """Check if the record schema declares a field with the given name."""
        return self._schema.get_field(field_name) is not None

    def get_field_names(self) -> List[str]:
        """Get all field names declared by the schema, in order."""
        return [f.name for f in self._schema.fields]

    def get(self, field_name: str, default: Any = None) -> Any:
        return self._fields.get(field_name, default)

    def keys(self):
        return self._fields.keys()

    def items(self):
        return self._fields.items()

    def __getitem__(self, field_name: str) -> Any:
        return self._fields[field_name]

    def __setitem__(self, field_name: str, value: Any) -> None:
        if self._schema.get_field(field_name) is None:
            raise KeyError(f"Field '{field_name}' does not exist in schema {self.type_name}")
        self._fields[field_name] = value

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def to_dict(self) -> Dict[str, Any]:
        """Convert this record, and any nested records, to plain dictionaries."""
        return {name: _plain(value) for name, value in self._fields.items()}

    def new_builder(self) -> "GenericRecordBuilder":
        """Create a new builder initialized from this record."""
        return GenericRecordBuilder(self._schema).from_record(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenericRecord):
            return False
        return self.type_name == other.type_name and self._fields == other._fields

    def __hash__(self) -> int:
        return hash((self.type_name, tuple(sorted(self._fields))))

    def __repr__(self) -> str:
        return f"GenericRecord(type_name={self.type_name!r}, fields={self._fields!r})"


def _plain(value: Any) -> Any:
    if isinstance(value, GenericRecord):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class GenericRecordBuilder:
    """Builder for creating GenericRecord instances.

    Fields that are never set take the default declared by the schema when
    :meth:`build` is called. Fields without a default must be set.
    """

    def __init__(self, schema: "RecordSchema"):
        self._schema = schema
        self._fields: Dict[str, Any] = {}

    def from_record(self, record: GenericRecord) -> "GenericRecordBuilder":
        """Initialize builder from an existing record."""
        self._fields = dict(record.items())
        return self

    def set(self, field_name: str, value: Any) -> "GenericRecordBuilder":
        """Set a field value."""
        if self._schema.get_field(field_name) is None:
            raise KeyError(f"Field '{field_name}' does not exist in schema {self._schema.fullname}")
        self._fields[field_name] = value
        return self

    def clear(self, field_name: str) -> "GenericRecordBuilder":
        """Unset a field so that it falls back to its default."""
        self._fields.pop(field_name, None)
        return self

    def missing_fields(self) -> Tuple[str, ...]:
        """Get the names of unset fields that have no default."""
        return tuple(
            f.name
            for f in self._schema.fields
            if f.name not in self._fields and not f.has_default
        )

    def build(self) -> GenericRecord:
        """Build the GenericRecord.

        Raises:
            ValueError: If a field without a default was never set.
        """
        missing = self.missing_fields()
        if missing:
            raise ValueError(f"Fields without defaults must be set: {', '.join(missing)}")
        fields = {}
        for f in self._schema.fields:
            if f.name in self._fields:
                fields[f.name] = self._fields[f.name]
            else:
                fields[f.name] = copy_default(f.default)
        return GenericRecord(self._schema, fields)


def copy_default(value: Any) -> Any:
    """Copy a parsed default so callers never share mutable default values."""
    if isinstance(value, GenericRecord):
        return GenericRecord(value.schema, {k: copy_default(v) for k, v in value.items()})
    if isinstance(value, list):
        return [copy_default(v) for v in value]
    if isinstance(value, dict):
        return {k: copy_default(v) for k, v in value.items()}
    return value
