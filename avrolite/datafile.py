"""Container files.

A container file holds a sequence of records written with a single writer
schema, together with the schema itself and arbitrary metadata, so it can be
read without any outside knowledge.

Layout::

    header := magic ("AVL\\x01")
              writer schema JSON (length-prefixed string)
              (key: string, value: bytes)* ""     metadata, empty key ends it
              sync marker (16 random bytes)
    block  := record count (long)
              payload size in bytes (long)
              payload (records encoded back to back)
              sync marker (same 16 bytes as in the header)

Example:
    Writing and reading back::

        from avrolite import datafile

        with datafile.create("people.avl", schema, {"Meta-Key0": "Meta-Value0"}) as writer:
            for person in people:
                writer.append(person)

        schema, metadata, reader = datafile.open("people.avl")
        with reader:
            for record in reader:
                print(record["name"])

Handles are not thread-safe. Use one writer per file and close it on every
exit path, or buffered records are lost.
"""

import io
import os
from typing import Any, BinaryIO, Dict, Optional, Tuple, Union

from avrolite.config import ContainerConfig
from avrolite.exceptions import (
    CorruptFileError,
    DecodingError,
    EncodingError,
    IllegalStateException,
    SchemaParseException,
)
from avrolite.logging import get_logger
from avrolite.schema import Schema, parse
from avrolite.serialization.binary import BinaryDecoder, BinaryEncoder
from avrolite.serialization.datum import DatumReader, DatumWriter

_logger = get_logger("datafile")

MAGIC = b"AVL\x01"
SYNC_SIZE = 16

Target = Union[str, "os.PathLike[str]", BinaryIO]
Metadata = Dict[str, Union[bytes, str]]


def _open_target(target: Target, mode: str) -> Tuple[BinaryIO, bool]:
    if isinstance(target, (str, os.PathLike)):
        return io.open(target, mode), True
    return target, False


def _metadata_bytes(metadata: Optional[Metadata]) -> Dict[str, bytes]:
    result: Dict[str, bytes] = {}
    for key, value in (metadata or {}).items():
        if not isinstance(key, str) or not key:
            raise ValueError(f"Metadata keys must be non-empty strings, got {key!r}")
        if isinstance(value, str):
            value = value.encode("utf-8")
        if not isinstance(value, (bytes, bytearray)):
            raise ValueError(f"Metadata value for '{key}' must be bytes or str")
        result[key] = bytes(value)
    return result


class DataFileWriter:
    """Writes records to a container file.

    The header, holding the writer schema, the metadata and a freshly
    generated sync marker, is written as soon as the writer is created.
    Records are buffered into a block that is written out once it reaches
    the configured size or record count, on :meth:`flush` and on
    :meth:`close`.

    Args:
        target: Path or writable binary file object. Paths are opened, and
            later closed, by the writer.
        schema: The writer schema every appended record must conform to.
        metadata: Key/value pairs stored in the header. String values are
            stored UTF-8 encoded.
        config: Block flushing thresholds.
    """

    def __init__(
        self,
        target: Target,
        schema: Schema,
        metadata: Optional[Metadata] = None,
        config: Optional[ContainerConfig] = None,
        sync_marker: Optional[bytes] = None,
    ):
        self._schema = schema
        self._metadata = _metadata_bytes(metadata)
        self._config = config or ContainerConfig()
        self._datum_writer = DatumWriter(schema)
        self._buffer = BinaryEncoder()
        self._block_count = 0
        self._records_written = 0
        self._blocks_written = 0
        self._closed = False
        self._file, self._owns_file = _open_target(target, "wb")
        if sync_marker is None:
            self._sync_marker = os.urandom(SYNC_SIZE)
            try:
                self._write_header()
            except Exception:
                if self._owns_file:
                    self._file.close()
                raise
        else:
            # Appending to an existing file whose header is already in place.
            self._sync_marker = sync_marker

    @classmethod
    def open_for_append(cls, path: Union[str, "os.PathLike[str]"], config: Optional[ContainerConfig] = None) -> "DataFileWriter":
        """Reopen an existing container file to append more records.

        The file's schema, metadata and sync marker are kept; new blocks are
        written after the existing ones.
        """
        with DataFileReader(path) as reader:
            schema = reader.writer_schema
            metadata = reader.metadata
            sync_marker = reader.sync_marker
        f = io.open(path, "ab")
        writer = cls(f, schema, metadata, config, sync_marker=sync_marker)
        writer._owns_file = True
        _logger.debug("Reopened %s for appending", path)
        return writer

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def metadata(self) -> Dict[str, bytes]:
        return dict(self._metadata)

    @property
    def sync_marker(self) -> bytes:
        return self._sync_marker

    @property
    def records_written(self) -> int:
        """Get the number of records appended, flushed or not."""
        return self._records_written

    @property
    def closed(self) -> bool:
        return self._closed

    def _write_header(self) -> None:
        header = BinaryEncoder()
        header.write_raw(MAGIC)
        header.write_string(str(self._schema))
        for key, value in self._metadata.items():
            header.write_string(key)
            header.write_bytes(value)
        header.write_string("")
        header.write_raw(self._sync_marker)
        self._file.write(header.to_bytes())
        _logger.debug("Wrote container header with %d metadata entries", len(self._metadata))

    def append(self, datum: Any) -> None:
        """Encode a record into the current block.

        Raises:
            EncodingError: If the record does not match the writer schema.
                Previously appended records are unaffected.
            IllegalStateException: If the writer is closed.
        """
        self._check_open()
        mark = len(self._buffer)
        try:
            self._datum_writer.write(datum, self._buffer)
        except EncodingError:
            self._buffer.truncate(mark)
            raise
        self._block_count += 1
        self._records_written += 1

        limit = self._config.max_block_records
        if len(self._buffer) >= self._config.sync_interval or (limit and self._block_count >= limit):
            self.flush()

    def flush(self) -> int:
        """Write the current block, if it holds any record, and flush the file.

        Returns:
            The file position after the last written block.
        """
        self._check_open()
        if self._block_count:
            payload = self._buffer.to_bytes()
            block = BinaryEncoder()
            block.write_long(self._block_count)
            block.write_long(len(payload))
            block.write_raw(payload)
            block.write_raw(self._sync_marker)
            self._file.write(block.to_bytes())
            self._blocks_written += 1
            _logger.debug(
                "Flushed block %d with %d records (%d bytes)",
                self._blocks_written,
                self._block_count,
                len(payload),
            )
            self._buffer.reset()
            self._block_count = 0
        self._file.flush()
        return self._file.tell()

    def close(self) -> None:
        """Flush buffered records and close the file. Safe to call twice."""
        if self._closed:
            return
        try:
            self.flush()
        finally:
            self._closed = True
            if self._owns_file:
                self._file.close()
        _logger.debug(
            "Closed container writer after %d records in %d blocks",
            self._records_written,
            self._blocks_written,
        )

    def _check_open(self) -> None:
        if self._closed:
            raise IllegalStateException("Container writer is closed")

    def __enter__(self) -> "DataFileWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class DataFileReader:
    """Reads records from a container file, one block at a time.

    Each block's trailing sync marker is checked against the header before
    any of its records is returned.

    Args:
        source: Path or readable, seekable binary file object.
        reader_schema: Schema that iteration shapes records into. Records
            are returned as written when omitted.

    Raises:
        CorruptFileError: If the file is not a container file.
    """

    def __init__(self, source: Target, reader_schema: Optional[Schema] = None):
        self._file, self._owns_file = _open_target(source, "rb")
        self._reader_schema = reader_schema
        self._closed = False
        self._block_decoder: Optional[BinaryDecoder] = None
        self._block_remaining = 0
        self._blocks_read = 0
        try:
            self._read_header()
        except Exception:
            self.close()
            raise
        self._datum_reader = DatumReader(self._writer_schema)
        self._resolving_reader: Optional[DatumReader] = None

    @property
    def writer_schema(self) -> Schema:
        return self._writer_schema

    @property
    def reader_schema(self) -> Optional[Schema]:
        return self._reader_schema

    @property
    def metadata(self) -> Dict[str, bytes]:
        return dict(self._metadata)

    def get_meta(self, key: str) -> Optional[bytes]:
        """Get a metadata value by key."""
        return self._metadata.get(key)

    @property
    def sync_marker(self) -> bytes:
        return self._sync_marker

    @property
    def closed(self) -> bool:
        return self._closed

    def _read_header(self) -> None:
        decoder = BinaryDecoder(self._file)
        try:
            magic = decoder.read_raw(len(MAGIC))
        except DecodingError as e:
            raise CorruptFileError("File is too short to be a container file", cause=e)
        if magic != MAGIC:
            raise CorruptFileError(f"Not a container file: bad magic {magic!r}")

        schema_text = decoder.read_string()
        try:
            self._writer_schema = parse(schema_text)
        except SchemaParseException as e:
            raise CorruptFileError(f"Embedded writer schema is invalid: {e}", cause=e)

        self._metadata: Dict[str, bytes] = {}
        while True:
            key = decoder.read_string()
            if not key:
                break
            self._metadata[key] = decoder.read_bytes()
        self._sync_marker = decoder.read_raw(SYNC_SIZE)
        _logger.debug(
            "Read container header: schema %s, %d metadata entries",
            getattr(self._writer_schema, "fullname", self._writer_schema.type.value),
            len(self._metadata),
        )

    def _load_block(self) -> bool:
        decoder = BinaryDecoder(self._file)
        while not decoder.at_end():
            count = decoder.read_long()
            size = decoder.read_long()
            if count < 0 or size < 0:
                raise DecodingError(f"Invalid block header: count {count}, size {size}")
            payload = decoder.read_raw(size)
            marker = decoder.read_raw(SYNC_SIZE)
            if marker != self._sync_marker:
                raise CorruptFileError(f"Sync marker mismatch after block {self._blocks_read + 1}")
            self._blocks_read += 1
            if count == 0:
                continue
            self._block_decoder = BinaryDecoder(payload)
            self._block_remaining = count
            return True
        return False

    def _finish_block(self) -> None:
        if self._block_decoder is not None and not self._block_decoder.at_end():
            raise DecodingError(f"Block {self._blocks_read} has bytes left after its last record")
        self._block_decoder = None

    def has_next(self) -> bool:
        """Check whether another record is available, loading the next block if needed.

        Raises:
            CorruptFileError: If the next block's sync marker does not match.
            DecodingError: If the next block is truncated.
        """
        self._check_open()
        while self._block_remaining == 0:
            self._finish_block()
            if not self._load_block():
                return False
        return True

    def next(self) -> Any:
        """Read the next record exactly as written.

        Raises:
            StopIteration: If there are no more records.
        """
        return self._next_with(self._datum_reader)

    def next_resolved(self, reader_schema: Schema) -> Any:
        """Read the next record shaped as ``reader_schema``.

        Raises:
            StopIteration: If there are no more records.
            SchemaResolutionError: If the record cannot be shaped as the
                reader schema. :meth:`skip_block` moves on to the next block.
        """
        reader = self._resolving_reader
        if reader is None or reader.reader_schema is not reader_schema:
            reader = DatumReader(self._writer_schema, reader_schema)
            self._resolving_reader = reader
        return self._next_with(reader)

    def _next_with(self, reader: DatumReader) -> Any:
        if not self.has_next():
            raise StopIteration
        value = reader.read(self._block_decoder)
        self._block_remaining -= 1
        return value

    def skip_block(self) -> None:
        """Discard the remaining records of the current block."""
        self._block_decoder = None
        self._block_remaining = 0

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_file:
            self._file.close()

    def _check_open(self) -> None:
        if self._closed:
            raise IllegalStateException("Container reader is closed")

    def __iter__(self) -> "DataFileReader":
        return self

    def __next__(self) -> Any:
        if self._reader_schema is None:
            return self.next()
        return self.next_resolved(self._reader_schema)

    def __enter__(self) -> "DataFileReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create(
    target: Target,
    schema: Schema,
    metadata: Optional[Metadata] = None,
    config: Optional[ContainerConfig] = None,
) -> DataFileWriter:
    """Create a container file for writing.

    See :class:`DataFileWriter`.
    """
    return DataFileWriter(target, schema, metadata, config)


def open(source: Target, reader_schema: Optional[Schema] = None) -> Tuple[Schema, Dict[str, bytes], DataFileReader]:
    """Open a container file for reading.

    Returns:
        The writer schema, the metadata and the reader handle, positioned
        at the first block.
    """
    reader = DataFileReader(source, reader_schema)
    return reader.writer_schema, reader.metadata, reader


def open_for_append(path: Union[str, "os.PathLike[str]"], config: Optional[ContainerConfig] = None) -> DataFileWriter:
    """Reopen an existing container file to append more records."""
    return DataFileWriter.open_for_append(path, config)
