"""
Export directory decoding.

The export directory is found through the first data directory entry. Its
40-byte header points at three parallel tables; this module reads two of
them (the name pointer table and the ordinal table) to pair each exported
name with its ordinal.

RVAs are turned into file offsets by an RvaResolver. In RvaMode.IDENTITY an
RVA is used directly as a file offset. That matches how images whose export
data sits at equal raw and virtual offsets are laid out, but is wrong for
most linker output, where .edata/.rdata has PointerToRawData !=
VirtualAddress. RvaMode.SECTION maps RVAs through the section table instead.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from .byte_view import ByteOrderView
from .cursor import FileCursor
from .errors import ReservedFieldViolation, UnmappedRvaError
from .layouts import EXPORT_DIRECTORY_LAYOUT, ExportDirectoryField as X, read_field
from .optional_header import DirectoryTable
from .options import RvaMode
from .sections import Section, section_rva_to_file_offset
from .types import EXPORT_DIRECTORY_SIZE, Endianness, Version

logger = logging.getLogger(__name__)

NAME_POINTER_SIZE = 4
ORDINAL_SIZE = 2


class RvaResolver:
    """Turns RVAs into file offsets according to an RvaMode."""

    def __init__(
        self,
        mode: RvaMode = RvaMode.IDENTITY,
        sections: Mapping[str, Section] | None = None,
        size_of_headers: int = 0,
        path=None,
    ):
        self.mode = mode
        self._sections = sections or {}
        self._size_of_headers = size_of_headers
        self._path = path

    def __call__(self, rva: int) -> int:
        if self.mode is RvaMode.IDENTITY:
            return rva
        offset = section_rva_to_file_offset(
            self._sections, rva, self._size_of_headers
        )
        if offset is None:
            raise UnmappedRvaError(rva, self._path)
        return offset


@dataclass(frozen=True, order=True)
class ExportEntry:
    """An exported symbol name and its ordinal table value."""

    name: str
    ordinal: int


@dataclass(frozen=True)
class ExportDirectory:
    """Export directory table (IMAGE_EXPORT_DIRECTORY) plus resolved names."""

    ExportFlags: int  # Reserved, must be zero
    TimeDateStamp: datetime
    Version: Version
    Name: str  # DLL name recorded by the linker
    NameRva: int
    OrdinalBase: int
    AddressTableEntries: int
    NumberOfNamePointers: int
    ExportAddressTableRva: int
    NamePointerRva: int
    OrdinalTableRva: int
    Exports: tuple[ExportEntry, ...]  # Sorted by name

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.Exports]

    def find(self, name: str) -> ExportEntry | None:
        for entry in self.Exports:
            if entry.name == name:
                return entry
        return None

    def biased_ordinal(self, entry: ExportEntry) -> int:
        """Ordinal as seen by importers (table value plus OrdinalBase)."""
        return entry.ordinal + self.OrdinalBase


def _read_u32_table(
    cursor: FileCursor, offset: int, count: int, endianness: Endianness
) -> list[int]:
    view = cursor.read_view(offset, NAME_POINTER_SIZE * count, endianness)
    return [view.read_u32(i * NAME_POINTER_SIZE) for i in range(count)]


def _read_u16_table(
    cursor: FileCursor, offset: int, count: int, endianness: Endianness
) -> list[int]:
    view = cursor.read_view(offset, ORDINAL_SIZE * count, endianness)
    return [view.read_u16(i * ORDINAL_SIZE) for i in range(count)]


def _collect_exports(names: list[str], ordinals: list[int]) -> tuple[ExportEntry, ...]:
    """Pair names with ordinals, keeping the first entry for a repeated name."""
    by_name: dict[str, ExportEntry] = {}
    for name, ordinal in zip(names, ordinals):
        if name in by_name:
            logger.warning(
                "Duplicate export name %r (ordinal %d) ignored", name, ordinal
            )
            continue
        by_name[name] = ExportEntry(name, ordinal)
    return tuple(sorted(by_name.values()))


def decode_export_header(view: ByteOrderView) -> dict:
    """Decode the fixed fields of a 40-byte export directory header.

    Raises:
        ReservedFieldViolation: If the export flags are non-zero
    """
    layout = EXPORT_DIRECTORY_LAYOUT
    flags = read_field(view, layout, X.EXPORT_FLAGS, signed=True)
    if flags != 0:
        raise ReservedFieldViolation("ExportFlags", flags, view.path)

    return {
        "ExportFlags": flags,
        "TimeDateStamp": view.read_timestamp(layout[X.TIME_DATE_STAMP].offset),
        "Version": Version(
            read_field(view, layout, X.MAJOR_VERSION),
            read_field(view, layout, X.MINOR_VERSION),
        ),
        "NameRva": read_field(view, layout, X.NAME_RVA),
        "OrdinalBase": read_field(view, layout, X.ORDINAL_BASE),
        "AddressTableEntries": read_field(
            view, layout, X.NUMBER_OF_ADDRESS_TABLE_ENTRIES
        ),
        "NumberOfNamePointers": read_field(view, layout, X.NUMBER_OF_NAME_POINTERS),
        "ExportAddressTableRva": read_field(view, layout, X.EXPORT_ADDRESS_TABLE_RVA),
        "NamePointerRva": read_field(view, layout, X.NAME_POINTER_RVA),
        "OrdinalTableRva": read_field(view, layout, X.ORDINAL_TABLE_RVA),
    }


def decode_export_directory(
    cursor: FileCursor,
    directories: DirectoryTable,
    endianness: Endianness,
    resolve: RvaResolver | None = None,
) -> ExportDirectory | None:
    """Decode the export directory and resolve every exported name.

    Returns:
        The export directory, or None if the image has no export directory
        entry (VirtualAddress == 0)

    Raises:
        ReservedFieldViolation: If the export flags are non-zero
        BoundsOrIoError: If any table or string lies outside the file
    """
    resolve = resolve or RvaResolver()
    entry = directories.exports
    if entry.VirtualAddress == 0:
        logger.debug("No export directory")
        return None

    header_offset = resolve(entry.VirtualAddress)
    view = cursor.read_view(header_offset, EXPORT_DIRECTORY_SIZE, endianness)
    fields = decode_export_header(view)

    count = fields["NumberOfNamePointers"]
    if count > fields["AddressTableEntries"]:
        logger.warning(
            "Export name count %d exceeds address table entries %d",
            count,
            fields["AddressTableEntries"],
        )

    names: list[str] = []
    ordinals: list[int] = []
    if count:
        name_rvas = _read_u32_table(
            cursor, resolve(fields["NamePointerRva"]), count, endianness
        )
        ordinals = _read_u16_table(
            cursor, resolve(fields["OrdinalTableRva"]), count, endianness
        )
        names = [cursor.read_cstring(resolve(rva)) for rva in name_rvas]

    module_name = cursor.read_cstring(resolve(fields["NameRva"]))
    exports = _collect_exports(names, ordinals)
    logger.debug(
        "Export directory at %#x: %s exports %d names",
        header_offset,
        module_name,
        len(exports),
    )
    return ExportDirectory(Name=module_name, Exports=exports, **fields)
