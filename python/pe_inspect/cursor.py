"""
Bounds-checked random access over a binary file.

FileCursor owns the open file handle for one decode. Use it as a context
manager so the handle is released on every exit path:

    with FileCursor(Path("foo.dll")) as cursor:
        header = cursor.seek_and_read(0x80, 24)
"""

import io
import logging
import os
from pathlib import Path
from typing import BinaryIO

from .byte_view import ByteOrderView
from .errors import BoundsOrIoError, ResourceReleaseError
from .types import Endianness

logger = logging.getLogger(__name__)


class FileCursor:
    """Seek-and-read access to a file, with errors carrying offset/length/path."""

    def __init__(self, path: Path | str):
        self._path = self._real_path(Path(path))
        try:
            self._handle: BinaryIO | None = open(self._path, "rb")
        except OSError as e:
            raise BoundsOrIoError(
                0, 0, self._path, reason=f"unable to open file ({e.strerror})"
            ) from e
        try:
            self._size = os.fstat(self._handle.fileno()).st_size
        except OSError as e:
            self._handle.close()
            raise BoundsOrIoError(0, 0, self._path, reason="unable to stat file") from e
        logger.debug("Opened %s (%d bytes)", self._path, self._size)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, path: Path | str | None = None):
        """Create a cursor over an in-memory buffer."""
        cursor = cls.__new__(cls)
        cursor._path = path
        cursor._handle = io.BytesIO(bytes(data))
        cursor._size = len(data)
        return cursor

    @staticmethod
    def _real_path(path: Path) -> Path:
        try:
            return path.resolve(strict=True)
        except OSError:
            return path

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def path(self) -> Path | str | None:
        return self._path

    @property
    def size(self) -> int:
        """Length of the underlying file in bytes."""
        return self._size

    @property
    def closed(self) -> bool:
        return self._handle is None

    # =========================================================================
    # Reads
    # =========================================================================

    def _require_open(self, offset: int, length: int) -> BinaryIO:
        if self._handle is None:
            raise BoundsOrIoError(offset, length, self._path, reason="file is closed")
        return self._handle

    def seek_and_read(self, offset: int, length: int) -> bytes:
        """Read exactly length bytes starting at offset."""
        handle = self._require_open(offset, length)
        if offset < 0 or length < 0 or offset + length > self._size:
            raise BoundsOrIoError(
                offset, length, self._path, reason=f"file is {self._size} bytes"
            )
        try:
            handle.seek(offset)
            data = handle.read(length)
        except OSError as e:
            raise BoundsOrIoError(offset, length, self._path, reason=str(e)) from e
        if len(data) != length:
            raise BoundsOrIoError(
                offset, length, self._path, reason=f"short read ({len(data)} bytes)"
            )
        return data

    def read_byte_at(self, offset: int) -> int:
        """Read one unsigned byte."""
        return self.seek_and_read(offset, 1)[0]

    def read_view(
        self, offset: int, length: int, endianness: Endianness
    ) -> ByteOrderView:
        """Read length bytes and wrap them in a ByteOrderView."""
        data = self.seek_and_read(offset, length)
        return ByteOrderView(data, endianness, path=self._path, base_offset=offset)

    def read_cstring(self, offset: int) -> str:
        """Read a null-terminated ASCII string starting at offset.

        There is no length limit; a string with no terminator before the end
        of the file fails on the first read past the end.
        """
        handle = self._require_open(offset, 1)
        buf = bytearray()
        position = offset
        try:
            handle.seek(offset)
            while True:
                b = handle.read(1)
                if not b:
                    raise BoundsOrIoError(
                        position,
                        1,
                        self._path,
                        reason=f"unterminated string starting at {offset:#x}",
                    )
                if b == b"\x00":
                    break
                buf += b
                position += 1
        except OSError as e:
            raise BoundsOrIoError(position, 1, self._path, reason=str(e)) from e
        return buf.decode("ascii", errors="replace")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Release the file handle. Calling close more than once is a no-op."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.close()
        except OSError as e:
            raise ResourceReleaseError(self._path) from e

    def __enter__(self) -> "FileCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        # A decode error is already propagating; it takes precedence
        try:
            self.close()
        except ResourceReleaseError as e:
            logger.warning("%s (while handling %s)", e, exc_type.__name__)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"FileCursor(path={self._path!s}, size={self._size}, {state})"
