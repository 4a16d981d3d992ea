#!/usr/bin/env python3
"""Employee records with schema evolution example.

Writes three employees, each reporting to the previous one, to a container
file with the first version of the Employee schema, then reads them back
twice: once as written, and once with a newer schema that renames ``age``
to ``yrs`` and adds a ``gender`` field with a default. Finally the same
records are exported as JSON lines.

Topics covered:
- Adapting application objects to GenericRecord
- Recursive schemas (an employee's boss is an employee)
- Container files with metadata
- Reading with a different reader schema
- JSON text output
"""

import io
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

from avrolite import GenericRecord, RecordSchema, parse_schema
from avrolite import datafile
from avrolite.logging import configure_logging
from avrolite.serialization.json import JsonEncoder


EMPLOYEE_SCHEMA = parse_schema({
    "type": "record",
    "name": "Employee",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "age", "type": "int"},
        {"name": "emails", "type": {"type": "array", "items": "string"}, "default": []},
        {"name": "boss", "type": ["null", "Employee"], "default": None},
    ],
})

EMPLOYEE_SCHEMA_V2 = parse_schema({
    "type": "record",
    "name": "Employee",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "yrs", "type": "int", "aliases": ["age"]},
        {"name": "gender", "type": "string", "default": "unknown"},
        {"name": "emails", "type": {"type": "array", "items": "string"}, "default": []},
        {"name": "boss", "type": ["null", "Employee"], "default": None},
    ],
})


# -----------------------------------------------------------------------------
# Domain Classes
# -----------------------------------------------------------------------------


@dataclass
class Employee:
    """An employee as the application sees it."""

    name: str
    age: int
    emails: List[str] = field(default_factory=list)
    boss: Optional["Employee"] = None

    def to_record(self, schema: RecordSchema = EMPLOYEE_SCHEMA) -> GenericRecord:
        record = GenericRecord(schema)
        record["name"] = self.name
        record["age"] = self.age
        record["emails"] = list(self.emails)
        if self.boss is not None:
            record["boss"] = self.boss.to_record(schema)
        return record


def sample_employees() -> List[Employee]:
    joe = Employee("Joe", 31, ["joe@abc.com", "joe@gmail.com"])
    jane = Employee("Jane", 30, boss=joe)
    zoe = Employee("Zoe", 21, boss=jane)
    return [joe, jane, zoe]


# -----------------------------------------------------------------------------
# Examples
# -----------------------------------------------------------------------------


def write_employees(path: str, people: List[Employee]) -> None:
    """Write employees to a container file."""
    metadata = {"Meta-Key0": "Meta-Value0", "Meta-Key1": "Meta-Value1"}
    with datafile.create(path, EMPLOYEE_SCHEMA, metadata) as writer:
        for person in people:
            writer.append(person.to_record())
    print(f"Wrote {len(people)} employees to {path}")


def read_as_written(path: str) -> None:
    """Read employees back with the schema stored in the file."""
    schema, metadata, reader = datafile.open(path)
    print(f"Writer schema: {schema}")
    for key, value in metadata.items():
        print(f"  {key} = {value.decode('utf-8')}")
    with reader:
        for record in reader:
            print(f"Name {record['name']} Age {record['age']} @ {record['emails']}")


def read_evolved(path: str) -> None:
    """Read employees back with the newer schema."""
    _, _, reader = datafile.open(path, reader_schema=EMPLOYEE_SCHEMA_V2)
    with reader:
        for record in reader:
            print(
                f"Name {record['name']} {record['yrs']} yrs old "
                f"Gender {record['gender']} @ {record['emails']}"
            )


def export_json(people: List[Employee]) -> str:
    """Render employees as JSON lines."""
    out = io.StringIO()
    encoder = JsonEncoder(out, EMPLOYEE_SCHEMA)
    for person in people:
        encoder.write(person.to_record())
    return out.getvalue()


def main():
    configure_logging(level=logging.INFO)
    people = sample_employees()
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "employees.avl")
        write_employees(path, people)
        read_as_written(path)
        read_evolved(path)
    print(export_json(people), end="")


if __name__ == "__main__":
    main()
