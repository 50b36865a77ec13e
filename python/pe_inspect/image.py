"""
Decoded PE image aggregate.

PeImage runs the decode pipeline once and keeps the results:

    image = PeImage.load(Path("foo.dll"))

    image.coff_header.Machine
    image.optional_header.Variant
    image.find_section(".text")
    image.exported_names

The stages run strictly in order: locate the signature, decode the COFF
header, the optional header, the section table and finally the export
directory. The file is opened once and closed on every exit path.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .cursor import FileCursor
from .errors import SectionCountError
from .exports import ExportDirectory, RvaResolver, decode_export_directory
from .headers import CoffHeader, detect_endianness, locate_signature
from .optional_header import OptionalHeader, decode_optional_header
from .options import DecodeOptions
from .sections import Section, decode_section_table
from .types import (
    COFF_HEADER_SIZE,
    PE_SIGNATURE,
    SECTION_HEADER_SIZE,
    Endianness,
    PeVariant,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeImage:
    """Everything decoded from one PE file."""

    path: Path | str | None
    endianness: Endianness
    pe_offset: int  # File offset of the PE signature
    coff_header: CoffHeader
    optional_header: OptionalHeader
    sections: Mapping[str, Section]  # Read-only, ascending name order
    export_directory: ExportDirectory | None

    @classmethod
    def load(cls, path: Path | str, options: DecodeOptions | None = None) -> "PeImage":
        """Decode a PE file from disk."""
        with FileCursor(path) as cursor:
            return cls.decode(cursor, options)

    @classmethod
    def from_bytes(
        cls,
        data: bytes | bytearray,
        options: DecodeOptions | None = None,
        path: Path | str | None = None,
    ) -> "PeImage":
        """Decode a PE image held in memory."""
        with FileCursor.from_bytes(data, path) as cursor:
            return cls.decode(cursor, options)

    @classmethod
    def decode(cls, cursor: FileCursor, options: DecodeOptions | None = None):
        """Run the full decode pipeline over an open cursor."""
        options = options or DecodeOptions()

        pe_offset = locate_signature(cursor, options.signature_pointer_width)
        endianness = detect_endianness(cursor, pe_offset)
        logger.debug("%s is %s-endian", cursor.path, endianness.name.lower())

        coff_offset = pe_offset + len(PE_SIGNATURE)
        coff_header = CoffHeader.from_view(
            cursor.read_view(coff_offset, COFF_HEADER_SIZE, endianness)
        )

        opt_offset = coff_offset + COFF_HEADER_SIZE
        optional_header = decode_optional_header(
            cursor.read_view(opt_offset, coff_header.SizeOfOptionalHeader, endianness)
        )

        count = coff_header.NumberOfSections
        if options.max_sections is not None and count > options.max_sections:
            raise SectionCountError(count, options.max_sections, cursor.path)
        section_offset = opt_offset + coff_header.SizeOfOptionalHeader
        sections = decode_section_table(
            cursor.read_view(section_offset, count * SECTION_HEADER_SIZE, endianness),
            count,
        )

        resolver = RvaResolver(
            options.rva_mode,
            sections,
            optional_header.SizeOfHeaders,
            cursor.path,
        )
        export_directory = decode_export_directory(
            cursor, optional_header.DataDirectories, endianness, resolver
        )

        return cls(
            path=cursor.path,
            endianness=endianness,
            pe_offset=pe_offset,
            coff_header=coff_header,
            optional_header=optional_header,
            sections=MappingProxyType(sections),
            export_directory=export_directory,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def variant(self) -> PeVariant:
        return self.optional_header.Variant

    @property
    def is_dll(self) -> bool:
        """Check if this is a DLL."""
        return self.coff_header.is_dll

    @property
    def exported_names(self) -> list[str]:
        if self.export_directory is None:
            return []
        return self.export_directory.names

    def find_section(self, name: str) -> Section | None:
        """Find a section by name.

        Names longer than 8 characters are compared by their first 8.
        """
        return self.sections.get(name[:8])


def read_pe(path: Path | str, options: DecodeOptions | None = None) -> PeImage:
    """Decode the PE file at path."""
    return PeImage.load(path, options)
