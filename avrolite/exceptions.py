"""avrolite exceptions.

This module defines the exception hierarchy for avrolite. All exceptions
inherit from :class:`AvroliteException`.

Example:
    Handling read errors::

        from avrolite.exceptions import (
            AvroliteException,
            CorruptFileError,
            SchemaResolutionError,
        )

        try:
            record = reader.next_resolved(reader_schema)
        except SchemaResolutionError as e:
            print(f"Record does not fit the reader schema: {e}")
        except CorruptFileError:
            print("File is damaged")
        except AvroliteException as e:
            print(f"avrolite error: {e}")
"""


class AvroliteException(Exception):
    """Base class for all avrolite exceptions.

    Args:
        message: The error message describing the exception.
        cause: The underlying exception that caused this error, if any.

    Attributes:
        cause: The underlying cause of this exception, if any.
    """

    def __init__(self, message: str = "", cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class IllegalStateException(AvroliteException):
    """Raised when an operation is invoked on an illegal state.

    Example:
        - Appending to a container writer that was already closed
        - Reading from a closed container reader
    """
    pass


class ConfigurationException(AvroliteException):
    """Raised when there is a configuration error.

    Example:
        - Non-positive sync interval
        - Unreadable or malformed YAML configuration file
    """
    pass


class SchemaParseException(AvroliteException):
    """Raised when a schema description cannot be turned into a schema.

    Example:
        - Unknown type name
        - Duplicate field names within a record
        - Default value that does not match the field type
    """
    pass


class AvroliteSerializationException(AvroliteException):
    """Base class for errors raised while encoding or decoding data."""
    pass


class EncodingError(AvroliteSerializationException):
    """Raised when a value does not match the schema it is written with.

    Fatal for the value being written; blocks already written to a
    container are not affected.
    """
    pass


class DecodingError(AvroliteSerializationException):
    """Raised when a byte stream is malformed or truncated.

    After this error the position of the underlying stream is unreliable.
    """
    pass


class SchemaResolutionError(AvroliteSerializationException):
    """Raised when writer data cannot be read under a reader schema.

    This happens when the reader requires a field that the writer did not
    write and declares no default for it, or when the writer and reader
    types cannot be reconciled by the promotion rules.

    Args:
        message: The error message.
        writer_schema: The writer side schema node that failed to resolve.
        reader_schema: The reader side schema node that failed to resolve.

    Attributes:
        writer_schema: The writer schema node involved, if known.
        reader_schema: The reader schema node involved, if known.
    """

    def __init__(self, message: str, writer_schema=None, reader_schema=None):
        super().__init__(message)
        self._writer_schema = writer_schema
        self._reader_schema = reader_schema

    @property
    def writer_schema(self):
        """Get the writer schema node involved in the failure."""
        return self._writer_schema

    @property
    def reader_schema(self):
        """Get the reader schema node involved in the failure."""
        return self._reader_schema


class CorruptFileError(AvroliteSerializationException):
    """Raised when a container file fails an integrity check.

    Raised on a bad magic marker or when a block's trailing sync marker does
    not match the marker stored in the file header. There is no attempt to
    recover by skipping to the next block.
    """
    pass
