"""
Endianness-aware typed reads over a byte slice.

ByteOrderView wraps one structure's bytes together with the byte order
they were written in. It never mutates its source; every read returns a
fresh value.
"""

import struct
from datetime import datetime, timezone

from .errors import BoundsOrIoError
from .types import Endianness

# struct codes for the signed integer of each width
_SIGNED_CODES = {1: "b", 2: "h", 4: "i", 8: "q"}


class ByteOrderView:
    """Typed reader over a byte slice with a declared byte order.

    Offsets are relative to the start of the slice. base_offset is where the
    slice began in the file and is only used to report absolute offsets in
    errors.
    """

    def __init__(
        self,
        data: bytes | bytearray,
        endianness: Endianness,
        *,
        path=None,
        base_offset: int = 0,
    ):
        self._data = bytes(data)
        self._endianness = endianness
        self._path = path
        self._base_offset = base_offset

    @property
    def endianness(self) -> Endianness:
        return self._endianness

    @property
    def path(self):
        return self._path

    @property
    def base_offset(self) -> int:
        return self._base_offset

    def __len__(self) -> int:
        return len(self._data)

    def _check(self, offset: int, length: int) -> None:
        if offset < 0 or length < 0 or offset + length > len(self._data):
            raise BoundsOrIoError(
                self._base_offset + offset,
                length,
                self._path,
                reason=f"outside {len(self._data)}-byte buffer",
            )

    # =========================================================================
    # Integer reads
    # =========================================================================

    def read_signed(self, offset: int, width: int) -> int:
        """Read a signed integer of width bytes (1, 2, 4 or 8)."""
        code = _SIGNED_CODES.get(width)
        if code is None:
            raise ValueError(f"Unsupported integer width: {width}")
        self._check(offset, width)
        (value,) = struct.unpack_from(self._endianness.value + code, self._data, offset)
        return value

    def read_unsigned(self, offset: int, width: int) -> int:
        """Read an unsigned integer of width bytes (1, 2, 4 or 8).

        The signed value is read first; a negative result is reinterpreted
        as the same two's-complement bit pattern, so the result always lies
        in [0, 2**(8*width) - 1].
        """
        value = self.read_signed(offset, width)
        if value < 0:
            value &= (1 << (8 * width)) - 1
        return value

    def read_i8(self, offset: int) -> int:
        return self.read_signed(offset, 1)

    def read_u8(self, offset: int) -> int:
        return self.read_unsigned(offset, 1)

    def read_i16(self, offset: int) -> int:
        return self.read_signed(offset, 2)

    def read_u16(self, offset: int) -> int:
        return self.read_unsigned(offset, 2)

    def read_i32(self, offset: int) -> int:
        return self.read_signed(offset, 4)

    def read_u32(self, offset: int) -> int:
        return self.read_unsigned(offset, 4)

    def read_i64(self, offset: int) -> int:
        return self.read_signed(offset, 8)

    def read_u64(self, offset: int) -> int:
        return self.read_unsigned(offset, 8)

    # =========================================================================
    # Other reads
    # =========================================================================

    def read_bytes(self, offset: int, size: int) -> bytes:
        """Return size raw bytes starting at offset, undecoded."""
        self._check(offset, size)
        return self._data[offset : offset + size]

    def read_cstring(self, offset: int) -> str:
        """Read a null-terminated ASCII string that lies inside the view."""
        self._check(offset, 0)
        end = self._data.find(b"\x00", offset)
        if end < 0:
            raise BoundsOrIoError(
                self._base_offset + offset,
                len(self._data) - offset,
                self._path,
                reason="unterminated string",
            )
        return self._data[offset:end].decode("ascii", errors="replace")

    def read_timestamp(self, offset: int) -> datetime:
        """Read a u32 count of seconds since the Unix epoch as a UTC datetime.

        The format does not record a time zone; UTC is assumed.
        """
        seconds = self.read_u32(offset)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    def __repr__(self) -> str:
        return (
            f"ByteOrderView(length={len(self._data)}, "
            f"endianness={self._endianness.name}, base_offset={self._base_offset:#x})"
        )
