"""Tests for datum writers, readers and schema resolution."""

import pytest

from avrolite.exceptions import DecodingError, EncodingError, SchemaResolutionError
from avrolite.schema import parse_schema
from avrolite.serialization import datum as datum_module
from avrolite.serialization.binary import BinaryDecoder, BinaryEncoder, encode_long
from avrolite.serialization.datum import (
    DatumReader,
    DatumWriter,
    decode,
    decode_resolved,
    encode,
    find_branch,
    validate,
)
from avrolite.value import GenericRecord


SAMPLES = {"long": 1, "double": 1.0, "string": "x", "boolean": True, "int": 1}


def record_schema(name, fields, **extra):
    description = {"type": "record", "name": name, "fields": fields}
    description.update(extra)
    return parse_schema(description)


class TestRoundTrip:
    """Values decode to what was encoded."""

    def test_employees(self, employee_schema, employees):
        for employee in employees:
            assert decode(employee_schema, encode(employee_schema, employee)) == employee

    def test_nested_boss_chain(self, employee_schema, employees):
        zoe = decode(employee_schema, encode(employee_schema, employees[2]))
        assert zoe["boss"]["name"] == "Jane"
        assert zoe["boss"]["boss"]["name"] == "Joe"
        assert zoe["boss"]["boss"]["boss"] is None

    @pytest.mark.parametrize(
        "schema,value",
        [
            ("null", None),
            ("boolean", True),
            ("int", -17),
            ("long", 1 << 40),
            ("double", 2.5),
            ("float", 0.25),
            ("bytes", b"\x00\x01\xff"),
            ("string", "naïve"),
            ({"type": "array", "items": "long"}, [1, -2, 3]),
            ({"type": "array", "items": "int"}, []),
            ({"type": "map", "values": "string"}, {"a": "x", "b": "y"}),
            ({"type": "map", "values": "int"}, {}),
            (["null", "string"], None),
            (["null", "string"], "set"),
            ({"type": "enum", "name": "Suit", "symbols": ["SPADES", "HEARTS"]}, "HEARTS"),
        ],
    )
    def test_values(self, schema, value):
        parsed = parse_schema(schema)
        assert decode(parsed, encode(parsed, value)) == value

    def test_plain_dict_is_accepted_as_record(self, point_schema):
        data = encode(point_schema, {"x": 1, "y": 2, "label": "p"})
        assert decode(point_schema, data) == GenericRecord(point_schema, {"x": 1, "y": 2, "label": "p"})

    def test_resolving_with_identical_schema(self, employee_schema, employees):
        for employee in employees:
            data = encode(employee_schema, employee)
            assert decode_resolved(employee_schema, employee_schema, data) == decode(employee_schema, data)


class TestEncoding:
    """Tests for the binary layout and encoding failures."""

    def test_record_layout_is_positional(self, point_schema):
        data = encode(point_schema, {"x": 1, "y": -1, "label": "ab"})
        assert data == b"\x02\x01\x04ab"

    def test_array_layout(self):
        schema = parse_schema({"type": "array", "items": "int"})
        assert encode(schema, [1, 2]) == b"\x04\x02\x04\x00"
        assert encode(schema, []) == b"\x00"

    def test_union_layout(self):
        schema = parse_schema(["null", "string"])
        assert encode(schema, None) == b"\x00"
        assert encode(schema, "a") == b"\x02\x02a"

    def test_missing_field_uses_default(self, employee_schema):
        data = encode(employee_schema, {"name": "Joe", "age": 31, "emails": []})
        assert decode(employee_schema, data)["boss"] is None

    def test_missing_field_without_default(self, employee_schema):
        with pytest.raises(EncodingError) as exc_info:
            encode(employee_schema, {"name": "Joe", "emails": []})
        assert "Missing required field 'age'" in str(exc_info.value)

    def test_field_error_names_field(self, employee_schema):
        with pytest.raises(EncodingError) as exc_info:
            encode(employee_schema, {"name": "Joe", "age": 1 << 40, "emails": []})
        assert "Field 'age' of Employee" in str(exc_info.value)

    @pytest.mark.parametrize(
        "schema,value",
        [
            ("int", True),
            ("int", 1.5),
            ("long", "1"),
            ("string", b"x"),
            ("bytes", "x"),
            ("boolean", 1),
            ("null", 0),
            ({"type": "array", "items": "int"}, "abc"),
            ({"type": "map", "values": "int"}, [1]),
            ({"type": "map", "values": "int"}, {1: 1}),
            (["null", "int"], "x"),
            ({"type": "enum", "name": "Suit", "symbols": ["SPADES"]}, "CLUBS"),
        ],
    )
    def test_invalid_values(self, schema, value):
        with pytest.raises(EncodingError):
            encode(parse_schema(schema), value)

    def test_record_of_other_type(self, employee_schema, point_schema):
        point = GenericRecord(point_schema, {"x": 1, "y": 2, "label": "p"})
        with pytest.raises(EncodingError):
            encode(employee_schema, point)

    def test_union_picks_first_valid_branch(self):
        schema = parse_schema(["long", "double"])
        assert find_branch(schema, 3) == 0
        assert find_branch(schema, 3.5) == 1
        assert find_branch(schema, "x") is None

    def test_union_of_same_kind_uses_contents(self):
        schema = parse_schema([
            {"type": "array", "items": "int"},
            {"type": "array", "items": "string"},
        ])
        assert find_branch(schema, [1, 2]) == 0
        assert find_branch(schema, ["x"]) == 1
        assert find_branch(schema, [b"x"]) is None
        assert encode(schema, ["x"]) == b"\x02\x02\x02x\x00"

    def test_union_branch_chosen_by_shape(self, monkeypatch, employee_schema):
        boss = None
        for depth in range(50):
            boss = {"name": f"E{depth}", "age": depth, "emails": [], "boss": boss}

        calls = []
        original = datum_module.validate

        def counting_validate(schema, value):
            calls.append(schema)
            return original(schema, value)

        monkeypatch.setattr(datum_module, "validate", counting_validate)
        data = encode(employee_schema, boss)
        assert calls == []
        assert decode(employee_schema, data)["boss"]["name"] == "E48"

    def test_nested_too_deeply(self, employee_schema):
        boss = None
        for depth in range(5000):
            boss = {"name": "E", "age": depth, "emails": [], "boss": boss}
        with pytest.raises(EncodingError) as exc_info:
            encode(employee_schema, boss)
        assert "nested too deeply" in str(exc_info.value)

    def test_validate(self, employee_schema, employees):
        assert validate(employee_schema, employees[2]) is True
        assert validate(employee_schema, {"name": "Joe"}) is False
        assert validate(parse_schema("int"), 1 << 31) is False
        assert validate(parse_schema("double"), 1) is True


class TestDecoding:
    """Tests for decoding failures and block forms."""

    def test_trailing_bytes(self, point_schema):
        data = encode(point_schema, {"x": 1, "y": 2, "label": "p"}) + b"\x00"
        with pytest.raises(DecodingError) as exc_info:
            decode(point_schema, data)
        assert "trailing" in str(exc_info.value)

    def test_truncated(self, employee_schema, employees):
        data = encode(employee_schema, employees[0])
        with pytest.raises(DecodingError):
            decode(employee_schema, data[:-3])

    def test_bad_union_index(self):
        with pytest.raises(DecodingError):
            decode(parse_schema(["null", "int"]), encode_long(2))

    def test_nested_too_deeply(self):
        schema = record_schema("Node", [{"name": "next", "type": ["null", "Node"]}])
        with pytest.raises(DecodingError) as exc_info:
            decode(schema, b"\x02" * 5000 + b"\x00")
        assert "nested too deeply" in str(exc_info.value)

    def test_bad_enum_index(self):
        schema = parse_schema({"type": "enum", "name": "Suit", "symbols": ["SPADES"]})
        with pytest.raises(DecodingError):
            decode(schema, encode_long(1))

    def test_negative_block_count(self):
        schema = parse_schema({"type": "array", "items": "int"})
        data = encode_long(-2) + encode_long(2) + encode_long(1) + encode_long(2) + b"\x00"
        assert decode(schema, data) == [1, 2]

    def test_multiple_blocks(self):
        schema = parse_schema({"type": "map", "values": "int"})
        data = (
            encode_long(1) + b"\x02a" + encode_long(1)
            + encode_long(1) + b"\x02b" + encode_long(2)
            + b"\x00"
        )
        assert decode(schema, data) == {"a": 1, "b": 2}

    def test_reader_consumes_exactly_one_value(self, employee_schema, employees):
        encoder = BinaryEncoder()
        writer = DatumWriter(employee_schema)
        for employee in employees:
            writer.write(employee, encoder)

        decoder = BinaryDecoder(encoder.to_bytes())
        reader = DatumReader(employee_schema)
        assert [reader.read(decoder)["name"] for _ in employees] == ["Joe", "Jane", "Zoe"]
        assert decoder.at_end()


class TestFieldResolution:
    """Reader schemas that add, drop or rename fields."""

    def test_added_field_takes_default(self, employee_schema, employees):
        reader = record_schema(
            "Employee",
            [
                {"name": "name", "type": "string"},
                {"name": "age", "type": "int"},
                {"name": "emails", "type": {"type": "array", "items": "string"}},
                {"name": "boss", "type": ["null", "Employee"], "default": None},
                {"name": "gender", "type": "string", "default": "unknown"},
            ],
        )
        result = decode_resolved(employee_schema, reader, encode(employee_schema, employees[0]))
        assert result.schema is reader
        assert result.to_dict() == {
            "name": "Joe",
            "age": 31,
            "emails": ["joe@abc.com", "joe@gmail.com"],
            "boss": None,
            "gender": "unknown",
        }

    def test_alias_and_default(self, employee_schema, employee_schema_v2, employees):
        result = decode_resolved(employee_schema, employee_schema_v2, encode(employee_schema, employees[2]))
        assert list(result) == ["name", "yrs", "gender", "emails", "boss"]
        assert result["yrs"] == 21
        assert result["gender"] == "unknown"
        assert result["boss"]["yrs"] == 30
        assert result["boss"].schema is employee_schema_v2
        assert result["boss"]["boss"]["name"] == "Joe"

    def test_dropped_field_is_skipped(self, employee_schema, employees):
        reader = record_schema(
            "Employee",
            [
                {"name": "name", "type": "string"},
                {"name": "boss", "type": ["null", "Employee"], "default": None},
            ],
        )
        encoder = BinaryEncoder()
        writer = DatumWriter(employee_schema)
        for employee in employees:
            writer.write(employee, encoder)

        decoder = BinaryDecoder(encoder.to_bytes())
        datum_reader = DatumReader(employee_schema, reader)
        results = [datum_reader.read(decoder) for _ in employees]
        assert decoder.at_end()
        assert [r.to_dict() for r in results][0] == {"name": "Joe", "boss": None}
        assert results[2]["boss"].to_dict() == {"name": "Jane", "boss": {"name": "Joe", "boss": None}}

    def test_added_field_without_default(self, employee_schema, employees):
        reader = record_schema(
            "Employee",
            [
                {"name": "name", "type": "string"},
                {"name": "salary", "type": "long"},
            ],
        )
        data = encode(employee_schema, employees[0])
        with pytest.raises(SchemaResolutionError) as exc_info:
            decode_resolved(employee_schema, reader, data)
        assert "salary" in str(exc_info.value)
        assert exc_info.value.reader_schema is reader
        assert exc_info.value.writer_schema is employee_schema

    def test_default_values_are_copies(self, point_schema):
        reader = record_schema(
            "Point",
            [
                {"name": "x", "type": "int"},
                {"name": "tags", "type": {"type": "array", "items": "string"}, "default": []},
            ],
            namespace="geo",
        )
        data = encode(point_schema, {"x": 1, "y": 2, "label": "p"})
        first = decode_resolved(point_schema, reader, data)
        first["tags"].append("changed")
        second = decode_resolved(point_schema, reader, data)
        assert second["tags"] == []

    def test_record_name_mismatch(self, point_schema):
        reader = record_schema("Location", [{"name": "x", "type": "int"}])
        data = encode(point_schema, {"x": 1, "y": 2, "label": "p"})
        with pytest.raises(SchemaResolutionError):
            decode_resolved(point_schema, reader, data)

    def test_record_matched_by_alias(self, point_schema):
        reader = record_schema("Location", [{"name": "x", "type": "int"}], aliases=["geo.Point"])
        data = encode(point_schema, {"x": 1, "y": 2, "label": "p"})
        assert decode_resolved(point_schema, reader, data).to_dict() == {"x": 1}


class TestPromotion:
    """Numeric and string/bytes promotions."""

    @pytest.mark.parametrize(
        "writer,reader,value,expected",
        [
            ("int", "long", 7, 7),
            ("int", "float", 7, 7.0),
            ("int", "double", -7, -7.0),
            ("long", "float", 1 << 20, float(1 << 20)),
            ("long", "double", 1 << 40, float(1 << 40)),
            ("float", "double", 0.5, 0.5),
            ("string", "bytes", "hé", "hé".encode("utf-8")),
            ("bytes", "string", b"abc", "abc"),
        ],
    )
    def test_promotions(self, writer, reader, value, expected):
        w, r = parse_schema(writer), parse_schema(reader)
        result = decode_resolved(w, r, encode(w, value))
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize(
        "writer,reader",
        [("long", "int"), ("double", "float"), ("string", "int"), ("boolean", "int"), ("int", "string")],
    )
    def test_no_other_coercion(self, writer, reader):
        w, r = parse_schema(writer), parse_schema(reader)
        with pytest.raises(SchemaResolutionError):
            decode_resolved(w, r, encode(w, SAMPLES[writer]))

    def test_invalid_utf8_bytes_read_as_string(self):
        w, r = parse_schema("bytes"), parse_schema("string")
        with pytest.raises(DecodingError):
            decode_resolved(w, r, encode(w, b"\xff"))

    def test_promoted_record_field(self, employee_schema, employees):
        reader = record_schema(
            "Employee",
            [
                {"name": "name", "type": "string"},
                {"name": "age", "type": "double"},
            ],
        )
        result = decode_resolved(employee_schema, reader, encode(employee_schema, employees[0]))
        assert result["age"] == 31.0


class TestUnionResolution:
    """Unions on either side of resolution."""

    def test_writer_union_to_plain_reader(self):
        w, r = parse_schema(["null", "string"]), parse_schema("string")
        assert decode_resolved(w, r, encode(w, "x")) == "x"

    def test_writer_union_branch_not_readable(self):
        w, r = parse_schema(["null", "string"]), parse_schema("string")
        with pytest.raises(SchemaResolutionError):
            decode_resolved(w, r, encode(w, None))

    def test_plain_writer_to_reader_union(self):
        w, r = parse_schema("string"), parse_schema(["null", "string"])
        assert decode_resolved(w, r, encode(w, "x")) == "x"

    def test_reader_union_by_promotion(self):
        w, r = parse_schema("int"), parse_schema(["null", "double"])
        result = decode_resolved(w, r, encode(w, 3))
        assert result == 3.0
        assert isinstance(result, float)

    def test_reader_union_prefers_exact_type(self):
        w, r = parse_schema("int"), parse_schema(["double", "int"])
        result = decode_resolved(w, r, encode(w, 3))
        assert result == 3
        assert isinstance(result, int)

    def test_reader_union_without_match(self):
        w, r = parse_schema("boolean"), parse_schema(["null", "string"])
        with pytest.raises(SchemaResolutionError):
            decode_resolved(w, r, encode(w, True))

    def test_union_to_union(self):
        w = parse_schema(["null", "int", "string"])
        r = parse_schema(["string", "long", "null"])
        assert decode_resolved(w, r, encode(w, 5)) == 5
        assert decode_resolved(w, r, encode(w, "s")) == "s"
        assert decode_resolved(w, r, encode(w, None)) is None


class TestEnumResolution:
    """Enum symbol resolution."""

    WRITER = {"type": "enum", "name": "Suit", "symbols": ["SPADES", "HEARTS", "CLUBS"]}

    def test_symbol_kept(self):
        w = parse_schema(self.WRITER)
        r = parse_schema({"type": "enum", "name": "Suit", "symbols": ["HEARTS", "SPADES"]})
        assert decode_resolved(w, r, encode(w, "SPADES")) == "SPADES"

    def test_unknown_symbol_uses_reader_default(self):
        w = parse_schema(self.WRITER)
        r = parse_schema({
            "type": "enum",
            "name": "Suit",
            "symbols": ["SPADES", "HEARTS", "OTHER"],
            "default": "OTHER",
        })
        assert decode_resolved(w, r, encode(w, "CLUBS")) == "OTHER"

    def test_unknown_symbol_without_default(self):
        w = parse_schema(self.WRITER)
        r = parse_schema({"type": "enum", "name": "Suit", "symbols": ["SPADES", "HEARTS"]})
        with pytest.raises(SchemaResolutionError):
            decode_resolved(w, r, encode(w, "CLUBS"))


class TestCollectionResolution:
    """Arrays and maps resolve their items."""

    def test_array_items_promoted(self):
        w = parse_schema({"type": "array", "items": "int"})
        r = parse_schema({"type": "array", "items": "long"})
        assert decode_resolved(w, r, encode(w, [1, 2, 3])) == [1, 2, 3]

    def test_map_values_promoted(self):
        w = parse_schema({"type": "map", "values": "float"})
        r = parse_schema({"type": "map", "values": "double"})
        assert decode_resolved(w, r, encode(w, {"a": 0.5})) == {"a": 0.5}

    def test_array_of_records(self, point_schema):
        w = parse_schema({"type": "array", "items": point_schema.to_json()})
        r = parse_schema({
            "type": "array",
            "items": {
                "type": "record",
                "name": "Point",
                "namespace": "geo",
                "fields": [{"name": "label", "type": "string"}],
            },
        })
        points = [{"x": 1, "y": 2, "label": "a"}, {"x": 3, "y": 4, "label": "b"}]
        assert [p["label"] for p in decode_resolved(w, r, encode(w, points))] == ["a", "b"]

    def test_array_read_as_map(self):
        w = parse_schema({"type": "array", "items": "int"})
        r = parse_schema({"type": "map", "values": "int"})
        with pytest.raises(SchemaResolutionError):
            decode_resolved(w, r, encode(w, [1]))
