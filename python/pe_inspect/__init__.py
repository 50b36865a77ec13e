"""
pe-inspect: Read-only decoder for Portable Executable (PE/COFF) binaries.

This package decodes the headers of Windows executables and DLLs: the COFF
file header, the PE32/PE32+ optional header with its data directories, the
section table and the export directory.

The whole pipeline runs from one call:

    from pe_inspect import read_pe

    image = read_pe("foo.dll")
    image.optional_header.Variant
    image.sections[".text"].VirtualAddress
    image.exported_names

Decoding is configured with DecodeOptions:

    from pe_inspect import DecodeOptions, RvaMode

    image = read_pe("foo.dll", DecodeOptions(rva_mode=RvaMode.SECTION))

Every decoding failure raises a subclass of PeDecodeError.
"""

from .errors import (
    PeDecodeError,
    SignatureMismatch,
    UnknownVariant,
    ReservedFieldViolation,
    BoundsOrIoError,
    UnmappedRvaError,
    ResourceReleaseError,
    SectionCountError,
)
from .exports import ExportDirectory, ExportEntry
from .headers import CoffHeader
from .image import PeImage, read_pe
from .optional_header import DirectoryTable, OptionalHeader
from .options import DecodeOptions, RvaMode
from .report import format_image, image_to_dict, pack_image, unpack_summary
from .sections import Section
from .types import (
    DirectoryEntry,
    Endianness,
    MachineType,
    PeVariant,
)

__all__ = [
    # Decoding
    "read_pe",
    "PeImage",
    "DecodeOptions",
    "RvaMode",
    # Structures
    "CoffHeader",
    "OptionalHeader",
    "DirectoryTable",
    "Section",
    "ExportDirectory",
    "ExportEntry",
    "DirectoryEntry",
    "Endianness",
    "MachineType",
    "PeVariant",
    # Reports
    "image_to_dict",
    "format_image",
    "pack_image",
    "unpack_summary",
    # Errors
    "PeDecodeError",
    "SignatureMismatch",
    "UnknownVariant",
    "ReservedFieldViolation",
    "BoundsOrIoError",
    "UnmappedRvaError",
    "ResourceReleaseError",
    "SectionCountError",
]
