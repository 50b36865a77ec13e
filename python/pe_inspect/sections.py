"""
Section table decoding.

The section table starts right after the optional header and holds
NumberOfSections consecutive 40-byte IMAGE_SECTION_HEADER records. Sections
are returned keyed by name in ascending name order; a later record with a
name already seen replaces the earlier one.
"""

import logging
from dataclasses import dataclass
from typing import ClassVar, Iterable, Mapping

from .byte_view import ByteOrderView
from .errors import BoundsOrIoError
from .layouts import SECTION_LAYOUT, SectionField
from .types import (
    SECTION_HEADER_SIZE,
    SECTION_NAME_SIZE,
    SectionCharacteristic,
    decode_section_flags,
)

logger = logging.getLogger(__name__)


def decode_section_name(raw: bytes) -> str:
    """Decode an 8-byte section name field.

    The name is the prefix up to the first null byte, or all 8 bytes when
    the name fills the field with no terminator.
    """
    null_pos = raw.find(b"\x00")
    if null_pos >= 0:
        raw = raw[:null_pos]
    return raw.decode("ascii", errors="replace")


@dataclass(frozen=True)
class Section:
    """PE/COFF section header (IMAGE_SECTION_HEADER)."""

    Name: str
    RawName: bytes  # 8 bytes, null-padded (NOT null-terminated if 8 chars)
    VirtualSize: int  # Size in memory (can be > SizeOfRawData)
    VirtualAddress: int  # RVA of section
    SizeOfRawData: int  # Size in file (rounded to FileAlignment)
    PointerToRawData: int  # File offset
    PointerToRelocations: int  # Usually 0 for executables
    PointerToLinenumbers: int  # Deprecated, usually 0
    NumberOfRelocations: int
    NumberOfLinenumbers: int
    Characteristics: frozenset[SectionCharacteristic]
    RawCharacteristics: int

    SIZE: ClassVar[int] = SECTION_HEADER_SIZE

    @classmethod
    def from_view(cls, view: ByteOrderView, offset: int = 0) -> "Section":
        """Decode one section record starting at offset within view."""
        layout = SECTION_LAYOUT

        def field(name: SectionField) -> int:
            spec = layout[name]
            return view.read_unsigned(offset + spec.offset, spec.width)

        name_spec = layout[SectionField.NAME]
        raw_name = view.read_bytes(offset + name_spec.offset, SECTION_NAME_SIZE)
        characteristics = field(SectionField.CHARACTERISTICS)

        return cls(
            Name=decode_section_name(raw_name),
            RawName=raw_name,
            VirtualSize=field(SectionField.VIRTUAL_SIZE),
            VirtualAddress=field(SectionField.VIRTUAL_ADDRESS),
            SizeOfRawData=field(SectionField.SIZE_OF_RAW_DATA),
            PointerToRawData=field(SectionField.POINTER_TO_RAW_DATA),
            PointerToRelocations=field(SectionField.POINTER_TO_RELOCATIONS),
            PointerToLinenumbers=field(SectionField.POINTER_TO_LINE_NUMBERS),
            NumberOfRelocations=field(SectionField.NUMBER_OF_RELOCATIONS),
            NumberOfLinenumbers=field(SectionField.NUMBER_OF_LINE_NUMBERS),
            Characteristics=decode_section_flags(characteristics),
            RawCharacteristics=characteristics,
        )

    @property
    def end_rva(self) -> int:
        """RVA of end of section in memory.

        Falls back to SizeOfRawData when VirtualSize is zero.
        """
        return self.VirtualAddress + (self.VirtualSize or self.SizeOfRawData)

    @property
    def end_file_offset(self) -> int:
        """File offset of end of section data."""
        return self.PointerToRawData + self.SizeOfRawData

    @property
    def is_code(self) -> bool:
        """Check if this section contains code."""
        return SectionCharacteristic.CNT_CODE in self.Characteristics

    @property
    def is_readable(self) -> bool:
        """Check if this section is readable."""
        return SectionCharacteristic.MEM_READ in self.Characteristics

    @property
    def is_writable(self) -> bool:
        """Check if this section is writable."""
        return SectionCharacteristic.MEM_WRITE in self.Characteristics

    @property
    def is_executable(self) -> bool:
        """Check if this section is executable."""
        return SectionCharacteristic.MEM_EXECUTE in self.Characteristics

    @property
    def is_discardable(self) -> bool:
        return SectionCharacteristic.MEM_DISCARDABLE in self.Characteristics

    def contains_rva(self, rva: int) -> bool:
        """Check if an RVA falls within this section."""
        return self.VirtualAddress <= rva < self.end_rva

    def rva_to_file_offset(self, rva: int) -> int | None:
        """Map an RVA inside this section to a file offset.

        Returns None if the RVA is outside the section or past its raw data
        (e.g. the zero-filled tail of a BSS-like section).
        """
        if not self.contains_rva(rva):
            return None
        section_offset = rva - self.VirtualAddress
        if section_offset >= self.SizeOfRawData:
            return None
        return self.PointerToRawData + section_offset


def decode_section_table(view: ByteOrderView, count: int) -> dict[str, Section]:
    """Decode count section records from a view of exactly count * 40 bytes.

    Returns:
        Sections keyed by name, iterated in ascending name order

    Raises:
        BoundsOrIoError: If the view is not exactly count * 40 bytes long
    """
    expected = count * SECTION_HEADER_SIZE
    if len(view) != expected:
        raise BoundsOrIoError(
            view.base_offset,
            expected,
            view.path,
            reason=f"section table for {count} sections is {len(view)} bytes",
        )

    by_name: dict[str, Section] = {}
    for index in range(count):
        section = Section.from_view(view, index * SECTION_HEADER_SIZE)
        if section.Name in by_name:
            logger.warning(
                "Duplicate section name %r at index %d replaces earlier entry",
                section.Name,
                index,
            )
        by_name[section.Name] = section

    logger.debug("Decoded %d section headers", count)
    return dict(sorted(by_name.items()))


def find_section_for_rva(sections: Iterable[Section], rva: int) -> Section | None:
    """Return the section whose virtual range contains rva, if any."""
    for section in sections:
        if section.contains_rva(rva):
            return section
    return None


def section_rva_to_file_offset(
    sections: Mapping[str, Section], rva: int, size_of_headers: int = 0
) -> int | None:
    """Convert an RVA to a file offset using the section table.

    RVAs inside the headers (below SizeOfHeaders) map to themselves.

    Returns:
        File offset, or None if the RVA has no raw data behind it
    """
    if rva < size_of_headers:
        return rva
    section = find_section_for_rva(sections.values(), rva)
    if section is None:
        return None
    return section.rva_to_file_offset(rva)
