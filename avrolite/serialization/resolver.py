"""Schema resolution rules.

Data is always laid out by the writer schema; the reader schema only decides
what the decoded values look like. This module holds the rules deciding
whether a writer node can be read as a reader node:

- identical primitive types match;
- int may be read as long, float or double; long as float or double;
  float as double; string and bytes as each other;
- records and enums match when the reader's full name, or one of its
  aliases, equals the writer's full name;
- arrays and maps match when their item or value types match;
- a writer type may be read as a union that has a matching branch. The
  first branch of the same type wins; failing that, the first branch
  reachable by promotion;
- a written union is resolved per value, on the branch actually written.

:func:`check_compatibility` applies the same rules to whole schemas up
front, without any data.
"""

from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from avrolite.schema import NamedSchema, Schema, SchemaType, UnionSchema

PROMOTIONS: Dict[SchemaType, FrozenSet[SchemaType]] = {
    SchemaType.INT: frozenset({SchemaType.LONG, SchemaType.FLOAT, SchemaType.DOUBLE}),
    SchemaType.LONG: frozenset({SchemaType.FLOAT, SchemaType.DOUBLE}),
    SchemaType.FLOAT: frozenset({SchemaType.DOUBLE}),
    SchemaType.STRING: frozenset({SchemaType.BYTES}),
    SchemaType.BYTES: frozenset({SchemaType.STRING}),
}


def can_promote(writer_type: SchemaType, reader_type: SchemaType) -> bool:
    """Check whether a writer primitive type may be widened to the reader's."""
    return reader_type in PROMOTIONS.get(writer_type, frozenset())


def schemas_match(writer: Schema, reader: Schema) -> bool:
    """Check whether data written as ``writer`` may be read as ``reader``.

    Unions on either side always match here; they are decided per value.
    Record fields are not inspected, records match on their names.
    """
    w, r = writer.type, reader.type
    if w == SchemaType.UNION or r == SchemaType.UNION:
        return True
    if w != r:
        return can_promote(w, r)
    if w in (SchemaType.RECORD, SchemaType.ENUM):
        return reader.matches_name(writer)
    if w == SchemaType.ARRAY:
        return schemas_match(writer.items, reader.items)
    if w == SchemaType.MAP:
        return schemas_match(writer.values, reader.values)
    return True


def resolve_union_branch(writer: Schema, reader: UnionSchema) -> Optional[Schema]:
    """Pick the reader union branch that receives a non-union writer value.

    Returns:
        The chosen branch, or None when no branch can hold the value.
    """
    for branch in reader.schemas:
        if branch.type == writer.type and schemas_match(writer, branch):
            return branch
    for branch in reader.schemas:
        if can_promote(writer.type, branch.type):
            return branch
    return None


def check_compatibility(writer: Schema, reader: Schema) -> List[str]:
    """List the reasons data written with ``writer`` may fail to read as ``reader``.

    A writer union branch that the reader cannot hold is reported even though
    records written through the other branches still read fine.

    Returns:
        Human readable problems, each prefixed with the location in the
        reader schema. An empty list means the schemas are compatible.
    """
    problems: List[str] = []
    _check(writer, reader, "", problems, set())
    return problems


def _check(
    writer: Schema,
    reader: Schema,
    path: str,
    problems: List[str],
    visited: Set[Tuple[str, str]],
) -> None:
    location = path or "/"
    if writer.type == SchemaType.UNION:
        for branch in writer.schemas:
            _check(branch, reader, path, problems, visited)
        return
    if reader.type == SchemaType.UNION:
        branch = resolve_union_branch(writer, reader)
        if branch is None:
            problems.append(f"{location}: no branch of reader union {reader} matches writer type {writer}")
            return
        _check(writer, branch, path, problems, visited)
        return
    # Containers are compared by kind here; their contents are checked below.
    if writer.type in (SchemaType.ARRAY, SchemaType.MAP):
        matched = writer.type == reader.type
    else:
        matched = schemas_match(writer, reader)
    if not matched:
        problems.append(f"{location}: writer type {_describe(writer)} cannot be read as {_describe(reader)}")
        return

    if writer.type == SchemaType.RECORD:
        key = (writer.fullname, reader.fullname)
        if key in visited:
            return
        visited.add(key)
        for reader_field in reader.fields:
            writer_field = reader.find_writer_counterpart(writer, reader_field)
            field_path = f"{path}/{reader_field.name}"
            if writer_field is None:
                if not reader_field.has_default:
                    problems.append(
                        f"{field_path}: reader field has no default and is missing from writer {writer.fullname}"
                    )
                continue
            _check(writer_field.type, reader_field.type, field_path, problems, visited)
    elif writer.type == SchemaType.ENUM:
        missing = [s for s in writer.symbols if s not in reader.symbols]
        if missing and reader.default is None:
            problems.append(f"{location}: reader enum {reader.fullname} lacks symbols {missing}")
    elif writer.type == SchemaType.ARRAY:
        _check(writer.items, reader.items, f"{path}/items", problems, visited)
    elif writer.type == SchemaType.MAP:
        _check(writer.values, reader.values, f"{path}/values", problems, visited)


def _describe(schema: Schema) -> str:
    if isinstance(schema, NamedSchema):
        return f"{schema.type.value} {schema.fullname}"
    return schema.type.value
