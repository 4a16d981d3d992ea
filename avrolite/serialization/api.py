"""Serialization API interfaces.

This module defines the low-level interfaces that datum readers and writers
use to move primitive values in and out of an encoded stream. The binary
format implements them in :mod:`avrolite.serialization.binary`.

Datum writers never write field names or type tags for records: the layout
of encoded data is dictated entirely by the writer schema, so only
primitives, counts and branch indexes pass through these interfaces.

Example:
    Writing a record by hand::

        from avrolite.serialization.binary import BinaryEncoder

        encoder = BinaryEncoder()
        encoder.write_string("Joe")
        encoder.write_int(31)
        data = encoder.to_bytes()
"""

from abc import ABC, abstractmethod


class Encoder(ABC):
    """Interface for writing encoded data.

    Provides methods for writing primitive values to an output buffer.
    Used by datum writers during serialization.
    """

    @abstractmethod
    def write_null(self) -> None:
        """Write a null value. Null values occupy no space."""
        pass

    @abstractmethod
    def write_boolean(self, value: bool) -> None:
        """Write a boolean value.

        Args:
            value: The boolean value to write.
        """
        pass

    @abstractmethod
    def write_int(self, value: int) -> None:
        """Write a 32-bit integer value.

        Args:
            value: The integer value.
        """
        pass

    @abstractmethod
    def write_long(self, value: int) -> None:
        """Write a 64-bit integer value.

        Args:
            value: The long value.
        """
        pass

    @abstractmethod
    def write_float(self, value: float) -> None:
        """Write a 32-bit float value.

        Args:
            value: The float value.
        """
        pass

    @abstractmethod
    def write_double(self, value: float) -> None:
        """Write a 64-bit double value.

        Args:
            value: The double value.
        """
        pass

    @abstractmethod
    def write_bytes(self, value: bytes) -> None:
        """Write a length-prefixed byte string.

        Args:
            value: The bytes to write.
        """
        pass

    @abstractmethod
    def write_string(self, value: str) -> None:
        """Write a length-prefixed UTF-8 string.

        Args:
            value: The string to write.
        """
        pass

    @abstractmethod
    def write_raw(self, value: bytes) -> None:
        """Write bytes verbatim, without a length prefix.

        Args:
            value: The bytes to write.
        """
        pass

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Get everything written so far.

        Returns:
            The encoded bytes.
        """
        pass


class Decoder(ABC):
    """Interface for reading encoded data.

    Provides methods for reading primitive values from an input stream.
    Used by datum readers during deserialization.
    """

    @abstractmethod
    def read_null(self) -> None:
        """Read a null value.

        Returns:
            Always None.
        """
        pass

    @abstractmethod
    def read_boolean(self) -> bool:
        """Read a boolean value.

        Returns:
            The boolean value read from the stream.
        """
        pass

    @abstractmethod
    def read_int(self) -> int:
        """Read a 32-bit integer value.

        Returns:
            The integer value.
        """
        pass

    @abstractmethod
    def read_long(self) -> int:
        """Read a 64-bit integer value.

        Returns:
            The long value.
        """
        pass

    @abstractmethod
    def read_float(self) -> float:
        """Read a 32-bit float value.

        Returns:
            The float value.
        """
        pass

    @abstractmethod
    def read_double(self) -> float:
        """Read a 64-bit double value.

        Returns:
            The double value.
        """
        pass

    @abstractmethod
    def read_bytes(self) -> bytes:
        """Read a length-prefixed byte string.

        Returns:
            The bytes.
        """
        pass

    @abstractmethod
    def read_string(self) -> str:
        """Read a length-prefixed UTF-8 string.

        Returns:
            The string value.
        """
        pass

    @abstractmethod
    def read_raw(self, length: int) -> bytes:
        """Read exactly ``length`` bytes verbatim.

        Args:
            length: Number of bytes to read.

        Returns:
            The bytes.
        """
        pass

    @abstractmethod
    def position(self) -> int:
        """Get current read position in the stream.

        Returns:
            The current byte position.
        """
        pass
