"""Binary encoding primitives.

Integers are written as zig-zag variable-length integers: the sign is
folded into the lowest bit and the result is emitted seven bits at a time,
least significant group first, with the high bit of each byte flagging a
continuation. Floats and doubles are fixed-width little-endian. Strings and
bytes are prefixed with their length as a variable-length integer.
"""

import io
import struct
from typing import BinaryIO, Union

from avrolite.exceptions import DecodingError, EncodingError
from avrolite.schema import INT_MAX_VALUE, INT_MIN_VALUE, LONG_MAX_VALUE, LONG_MIN_VALUE
from avrolite.serialization.api import Decoder, Encoder

MAX_VARINT_BYTES = 10

# Upper bound on a single read from the underlying stream.
READ_CHUNK_SIZE = 1 << 16

_FLOAT = struct.Struct("<f")
_DOUBLE = struct.Struct("<d")


def zigzag_encode(value: int) -> int:
    """Fold the sign of a 64-bit integer into its lowest bit."""
    return (value << 1) ^ (value >> 63)


def zigzag_decode(value: int) -> int:
    """Reverse :func:`zigzag_encode`."""
    return (value >> 1) ^ -(value & 1)


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as a variable-length integer."""
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_long(value: int) -> bytes:
    """Encode a signed integer as a zig-zag variable-length integer."""
    return encode_varint(zigzag_encode(value))


class BinaryEncoder(Encoder):
    """Encoder writing the binary format to an in-memory buffer."""

    def __init__(self):
        self._buffer = bytearray()

    def write_null(self) -> None:
        pass

    def write_boolean(self, value: bool) -> None:
        self._buffer.append(1 if value else 0)

    def write_int(self, value: int) -> None:
        if not INT_MIN_VALUE <= value <= INT_MAX_VALUE:
            raise EncodingError(f"{value} is out of range for int")
        self._buffer.extend(encode_long(value))

    def write_long(self, value: int) -> None:
        if not LONG_MIN_VALUE <= value <= LONG_MAX_VALUE:
            raise EncodingError(f"{value} is out of range for long")
        self._buffer.extend(encode_long(value))

    def write_float(self, value: float) -> None:
        try:
            self._buffer.extend(_FLOAT.pack(value))
        except (struct.error, OverflowError) as e:
            raise EncodingError(f"Cannot write {value!r} as float: {e}", cause=e)

    def write_double(self, value: float) -> None:
        try:
            self._buffer.extend(_DOUBLE.pack(value))
        except (struct.error, OverflowError) as e:
            raise EncodingError(f"Cannot write {value!r} as double: {e}", cause=e)

    def write_bytes(self, value: bytes) -> None:
        self._buffer.extend(encode_long(len(value)))
        self._buffer.extend(value)

    def write_string(self, value: str) -> None:
        try:
            encoded = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"Cannot encode string as UTF-8: {e}", cause=e)
        self.write_bytes(encoded)

    def write_raw(self, value: bytes) -> None:
        self._buffer.extend(value)

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)

    def reset(self) -> None:
        """Discard everything written so far."""
        self._buffer.clear()

    def truncate(self, size: int) -> None:
        """Drop everything written after the first ``size`` bytes."""
        del self._buffer[size:]

    def __len__(self) -> int:
        return len(self._buffer)


class BinaryDecoder(Decoder):
    """Decoder reading the binary format from bytes or a binary stream.

    Any read that runs past the end of the input raises
    :class:`~avrolite.exceptions.DecodingError`.
    """

    def __init__(self, source: Union[bytes, bytearray, memoryview, BinaryIO]):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self._stream = source

    def read_null(self) -> None:
        return None

    def read_boolean(self) -> bool:
        value = self.read_raw(1)[0]
        if value > 1:
            raise DecodingError(f"Invalid boolean byte {value:#x}")
        return value == 1

    def read_int(self) -> int:
        value = self.read_long()
        if not INT_MIN_VALUE <= value <= INT_MAX_VALUE:
            raise DecodingError(f"{value} is out of range for int")
        return value

    def read_long(self) -> int:
        result = 0
        shift = 0
        while True:
            b = self.read_raw(1)[0]
            # The last of the ten bytes carries only the 64th bit.
            if shift == 7 * (MAX_VARINT_BYTES - 1) and b > 1:
                if b & 0x80:
                    raise DecodingError(f"Variable-length integer longer than {MAX_VARINT_BYTES} bytes")
                raise DecodingError("Variable-length integer does not fit in 64 bits")
            result |= (b & 0x7F) << shift
            if not b & 0x80:
                return zigzag_decode(result)
            shift += 7

    def read_float(self) -> float:
        return _FLOAT.unpack(self.read_raw(4))[0]

    def read_double(self) -> float:
        return _DOUBLE.unpack(self.read_raw(8))[0]

    def read_bytes(self) -> bytes:
        length = self.read_long()
        if length < 0:
            raise DecodingError(f"Negative length {length}")
        return self.read_raw(length)

    def read_string(self) -> str:
        data = self.read_bytes()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingError(f"Invalid UTF-8 string: {e}", cause=e)

    def read_raw(self, length: int) -> bytes:
        if length <= READ_CHUNK_SIZE:
            data = self._stream.read(length)
        else:
            chunks = []
            remaining = length
            while remaining:
                chunk = self._stream.read(min(remaining, READ_CHUNK_SIZE))
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
            data = b"".join(chunks)
        if len(data) != length:
            raise DecodingError(
                f"Unexpected end of data: wanted {length} bytes, got {len(data)}"
            )
        return data

    def position(self) -> int:
        return self._stream.tell()

    def at_end(self) -> bool:
        """Check whether the input is exhausted, without consuming anything."""
        pos = self._stream.tell()
        more = self._stream.read(1)
        self._stream.seek(pos)
        return not more
