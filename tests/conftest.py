"""Shared pytest fixtures for avrolite tests."""

import logging

import pytest

from avrolite.logging import AVROLITE_ROOT_LOGGER
from avrolite.schema import parse_schema
from avrolite.value import GenericRecord


EMPLOYEE = {
    "type": "record",
    "name": "Employee",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "age", "type": "int"},
        {"name": "emails", "type": {"type": "array", "items": "string"}},
        {"name": "boss", "type": ["null", "Employee"], "default": None},
    ],
}

EMPLOYEE_V2 = {
    "type": "record",
    "name": "Employee",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "yrs", "type": "int", "aliases": ["age"]},
        {"name": "gender", "type": "string", "default": "unknown"},
        {"name": "emails", "type": {"type": "array", "items": "string"}},
        {"name": "boss", "type": ["null", "Employee"], "default": None},
    ],
}


@pytest.fixture
def employee_schema():
    """The Employee schema records are written with."""
    return parse_schema(EMPLOYEE)


@pytest.fixture
def employee_schema_v2():
    """A newer Employee schema: age renamed to yrs, gender added."""
    return parse_schema(EMPLOYEE_V2)


@pytest.fixture
def employees(employee_schema):
    """Joe, Jane reporting to Joe, and Zoe reporting to Jane."""
    joe = GenericRecord(
        employee_schema,
        {"name": "Joe", "age": 31, "emails": ["joe@abc.com", "joe@gmail.com"], "boss": None},
    )
    jane = GenericRecord(employee_schema, {"name": "Jane", "age": 30, "emails": [], "boss": joe})
    zoe = GenericRecord(employee_schema, {"name": "Zoe", "age": 21, "emails": [], "boss": jane})
    return [joe, jane, zoe]


@pytest.fixture
def point_schema():
    """A small record of primitive fields."""
    return parse_schema({
        "type": "record",
        "name": "Point",
        "namespace": "geo",
        "fields": [
            {"name": "x", "type": "int"},
            {"name": "y", "type": "int"},
            {"name": "label", "type": "string"},
        ],
    })


@pytest.fixture
def container_path(tmp_path):
    """Path for a container file inside the test's temporary directory."""
    return str(tmp_path / "employees.avl")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler and level changes made to the avrolite logger."""
    root = logging.getLogger(AVROLITE_ROOT_LOGGER)
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
