"""avrolite serialization package."""

from avrolite.serialization.api import Decoder, Encoder
from avrolite.serialization.binary import BinaryDecoder, BinaryEncoder
from avrolite.serialization.datum import (
    DatumReader,
    DatumWriter,
    decode,
    decode_resolved,
    encode,
    validate,
)
from avrolite.serialization.json import JsonEncoder, decode_text, encode_text
from avrolite.serialization.resolver import check_compatibility

__all__ = [
    "Encoder",
    "Decoder",
    "BinaryEncoder",
    "BinaryDecoder",
    "DatumWriter",
    "DatumReader",
    "encode",
    "decode",
    "decode_resolved",
    "validate",
    "JsonEncoder",
    "encode_text",
    "decode_text",
    "check_compatibility",
]
