"""avrolite: schema-driven binary serialization with schema evolution."""

from avrolite.schema import (
    Schema,
    SchemaType,
    PrimitiveSchema,
    NamedSchema,
    Field,
    RecordSchema,
    EnumSchema,
    ArraySchema,
    MapSchema,
    UnionSchema,
    Names,
    parse_schema,
    parse,
    load_schema,
)
from avrolite.value import GenericRecord, GenericRecordBuilder
from avrolite.exceptions import (
    AvroliteException,
    AvroliteSerializationException,
    IllegalStateException,
    ConfigurationException,
    SchemaParseException,
    EncodingError,
    DecodingError,
    SchemaResolutionError,
    CorruptFileError,
)
from avrolite.config import AvroliteConfig, ContainerConfig, TextConfig
from avrolite.serialization import (
    BinaryEncoder,
    BinaryDecoder,
    DatumWriter,
    DatumReader,
    JsonEncoder,
    encode,
    decode,
    decode_resolved,
    encode_text,
    decode_text,
    check_compatibility,
)
from avrolite.datafile import DataFileWriter, DataFileReader

__all__ = [
    # Schema
    "Schema",
    "SchemaType",
    "PrimitiveSchema",
    "NamedSchema",
    "Field",
    "RecordSchema",
    "EnumSchema",
    "ArraySchema",
    "MapSchema",
    "UnionSchema",
    "Names",
    "parse_schema",
    "parse",
    "load_schema",
    # Values
    "GenericRecord",
    "GenericRecordBuilder",
    # Exceptions
    "AvroliteException",
    "AvroliteSerializationException",
    "IllegalStateException",
    "ConfigurationException",
    "SchemaParseException",
    "EncodingError",
    "DecodingError",
    "SchemaResolutionError",
    "CorruptFileError",
    # Configuration
    "AvroliteConfig",
    "ContainerConfig",
    "TextConfig",
    # Serialization
    "BinaryEncoder",
    "BinaryDecoder",
    "DatumWriter",
    "DatumReader",
    "JsonEncoder",
    "encode",
    "decode",
    "decode_resolved",
    "encode_text",
    "decode_text",
    "check_compatibility",
    # Container files
    "DataFileWriter",
    "DataFileReader",
]

__version__ = "0.1.0"
