"""
Exceptions raised while decoding a PE binary.

Every failure is fatal to the decode in progress. Each exception keeps the
context needed to diagnose it (offset, length, path or field name) as
attributes as well as in its message.
"""

from pathlib import Path


class PeDecodeError(ValueError):
    """Base class for all PE decoding failures."""

    pass


def _where(path: Path | str | None) -> str:
    return f" in {path}" if path is not None else ""


class SignatureMismatch(PeDecodeError):
    """Raised when the bytes at the signature pointer are not "PE\\0\\0"."""

    def __init__(self, path: Path | str | None, offset: int, found: bytes):
        self.path = path
        self.offset = offset
        self.found = found
        super().__init__(
            f"{path} is not a valid PE binary (signature mismatch at "
            f"{offset:#x}: {found!r})"
        )


class UnknownVariant(PeDecodeError):
    """Raised when the optional header magic is neither PE32 nor PE32+."""

    def __init__(self, magic: int, path: Path | str | None = None):
        self.magic = magic
        self.path = path
        super().__init__(
            f"Magic number was 0x{magic:04x}{_where(path)}. "
            f"Should have been 0x010b or 0x020b."
        )


class ReservedFieldViolation(PeDecodeError):
    """Raised when a must-be-zero field holds a non-zero value."""

    def __init__(self, field: str, value: int, path: Path | str | None = None):
        self.field = field
        self.value = value
        self.path = path
        super().__init__(f"{field} must be zero{_where(path)} (was {value:#x})")


class BoundsOrIoError(PeDecodeError):
    """Raised when a read falls outside the data or the I/O layer fails."""

    def __init__(
        self,
        offset: int,
        length: int,
        path: Path | str | None = None,
        reason: str | None = None,
    ):
        self.offset = offset
        self.length = length
        self.path = path
        self.reason = reason
        msg = f"Error reading {length} bytes at offset {offset:#x}{_where(path)}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnmappedRvaError(BoundsOrIoError):
    """Raised when an RVA does not fall inside any section's raw data."""

    def __init__(self, rva: int, path: Path | str | None = None):
        self.rva = rva
        super().__init__(rva, 0, path, reason=f"RVA 0x{rva:x} not in any section")


class ResourceReleaseError(PeDecodeError):
    """Raised when the underlying file handle cannot be closed."""

    def __init__(self, path: Path | str | None):
        self.path = path
        super().__init__(f"Unable to close file {path}")


class SectionCountError(PeDecodeError):
    """Raised when a header declares more sections than allowed."""

    def __init__(self, count: int, maximum: int, path: Path | str | None = None):
        self.count = count
        self.maximum = maximum
        self.path = path
        super().__init__(
            f"NumberOfSections ({count}) exceeds maximum ({maximum}){_where(path)}"
        )
