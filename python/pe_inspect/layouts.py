"""
Field offset tables for each PE structure.

Each layout maps a symbolic field to its (offset, width) in bytes, relative
to the start of its structure. Layouts are built once at import time and are
read-only. The two optional header variants differ only in their tables;
decoding code looks fields up here instead of branching on the variant.
"""

from enum import Enum, auto
from types import MappingProxyType
from typing import Mapping, NamedTuple

from .byte_view import ByteOrderView
from .types import DATA_DIRECTORY_SIZE, DirectoryEntry, PeVariant


class FieldSpec(NamedTuple):
    """Location of one field inside its structure."""

    offset: int
    width: int

    @property
    def end(self) -> int:
        return self.offset + self.width


Layout = Mapping[Enum, FieldSpec]


class CoffField(Enum):
    MACHINE = auto()
    NUMBER_OF_SECTIONS = auto()
    TIME_DATE_STAMP = auto()
    POINTER_TO_SYMBOL_TABLE = auto()
    NUMBER_OF_SYMBOLS = auto()
    SIZE_OF_OPTIONAL_HEADER = auto()
    CHARACTERISTICS = auto()


class OptionalHeaderField(Enum):
    MAGIC = auto()
    MAJOR_LINKER_VERSION = auto()
    MINOR_LINKER_VERSION = auto()
    SIZE_OF_CODE = auto()
    SIZE_OF_INITIALIZED_DATA = auto()
    SIZE_OF_UNINITIALIZED_DATA = auto()
    ADDRESS_OF_ENTRY_POINT = auto()
    BASE_OF_CODE = auto()
    BASE_OF_DATA = auto()  # PE32 only
    IMAGE_BASE = auto()
    SECTION_ALIGNMENT = auto()
    FILE_ALIGNMENT = auto()
    MAJOR_OPERATING_SYSTEM_VERSION = auto()
    MINOR_OPERATING_SYSTEM_VERSION = auto()
    MAJOR_IMAGE_VERSION = auto()
    MINOR_IMAGE_VERSION = auto()
    MAJOR_SUBSYSTEM_VERSION = auto()
    MINOR_SUBSYSTEM_VERSION = auto()
    WIN32_VERSION_VALUE = auto()
    SIZE_OF_IMAGE = auto()
    SIZE_OF_HEADERS = auto()
    CHECKSUM = auto()
    SUBSYSTEM = auto()
    DLL_CHARACTERISTICS = auto()
    SIZE_OF_STACK_RESERVE = auto()
    SIZE_OF_STACK_COMMIT = auto()
    SIZE_OF_HEAP_RESERVE = auto()
    SIZE_OF_HEAP_COMMIT = auto()
    LOADER_FLAGS = auto()
    NUMBER_OF_RVA_AND_SIZES = auto()


class SectionField(Enum):
    NAME = auto()
    VIRTUAL_SIZE = auto()
    VIRTUAL_ADDRESS = auto()
    SIZE_OF_RAW_DATA = auto()
    POINTER_TO_RAW_DATA = auto()
    POINTER_TO_RELOCATIONS = auto()
    POINTER_TO_LINE_NUMBERS = auto()
    NUMBER_OF_RELOCATIONS = auto()
    NUMBER_OF_LINE_NUMBERS = auto()
    CHARACTERISTICS = auto()


class ExportDirectoryField(Enum):
    EXPORT_FLAGS = auto()
    TIME_DATE_STAMP = auto()
    MAJOR_VERSION = auto()
    MINOR_VERSION = auto()
    NAME_RVA = auto()
    ORDINAL_BASE = auto()
    NUMBER_OF_ADDRESS_TABLE_ENTRIES = auto()
    NUMBER_OF_NAME_POINTERS = auto()
    EXPORT_ADDRESS_TABLE_RVA = auto()
    NAME_POINTER_RVA = auto()
    ORDINAL_TABLE_RVA = auto()


def _freeze(entries: dict) -> Layout:
    return MappingProxyType(entries)


def _with_directories(entries: dict, table_offset: int) -> Layout:
    """Append the 16 (RVA, size) directory slots starting at table_offset."""
    for entry in DirectoryEntry:
        entries[entry] = FieldSpec(
            table_offset + entry.value * DATA_DIRECTORY_SIZE, DATA_DIRECTORY_SIZE
        )
    return _freeze(entries)


# =============================================================================
# Layout tables
# =============================================================================

COFF_HEADER_LAYOUT: Layout = _freeze(
    {
        CoffField.MACHINE: FieldSpec(0, 2),
        CoffField.NUMBER_OF_SECTIONS: FieldSpec(2, 2),
        CoffField.TIME_DATE_STAMP: FieldSpec(4, 4),
        CoffField.POINTER_TO_SYMBOL_TABLE: FieldSpec(8, 4),
        CoffField.NUMBER_OF_SYMBOLS: FieldSpec(12, 4),
        CoffField.SIZE_OF_OPTIONAL_HEADER: FieldSpec(16, 2),
        CoffField.CHARACTERISTICS: FieldSpec(18, 2),
    }
)

_F = OptionalHeaderField

# Fields whose location is the same in both variants
_SHARED_PREFIX = {
    _F.MAGIC: FieldSpec(0, 2),
    _F.MAJOR_LINKER_VERSION: FieldSpec(2, 1),
    _F.MINOR_LINKER_VERSION: FieldSpec(3, 1),
    _F.SIZE_OF_CODE: FieldSpec(4, 4),
    _F.SIZE_OF_INITIALIZED_DATA: FieldSpec(8, 4),
    _F.SIZE_OF_UNINITIALIZED_DATA: FieldSpec(12, 4),
    _F.ADDRESS_OF_ENTRY_POINT: FieldSpec(16, 4),
    _F.BASE_OF_CODE: FieldSpec(20, 4),
    _F.SECTION_ALIGNMENT: FieldSpec(32, 4),
    _F.FILE_ALIGNMENT: FieldSpec(36, 4),
    _F.MAJOR_OPERATING_SYSTEM_VERSION: FieldSpec(40, 2),
    _F.MINOR_OPERATING_SYSTEM_VERSION: FieldSpec(42, 2),
    _F.MAJOR_IMAGE_VERSION: FieldSpec(44, 2),
    _F.MINOR_IMAGE_VERSION: FieldSpec(46, 2),
    _F.MAJOR_SUBSYSTEM_VERSION: FieldSpec(48, 2),
    _F.MINOR_SUBSYSTEM_VERSION: FieldSpec(50, 2),
    _F.WIN32_VERSION_VALUE: FieldSpec(52, 4),
    _F.SIZE_OF_IMAGE: FieldSpec(56, 4),
    _F.SIZE_OF_HEADERS: FieldSpec(60, 4),
    _F.CHECKSUM: FieldSpec(64, 4),
    _F.SUBSYSTEM: FieldSpec(68, 2),
    _F.DLL_CHARACTERISTICS: FieldSpec(70, 2),
}

PE32_OPTIONAL_HEADER_LAYOUT: Layout = _with_directories(
    {
        **_SHARED_PREFIX,
        _F.BASE_OF_DATA: FieldSpec(24, 4),
        _F.IMAGE_BASE: FieldSpec(28, 4),
        _F.SIZE_OF_STACK_RESERVE: FieldSpec(72, 4),
        _F.SIZE_OF_STACK_COMMIT: FieldSpec(76, 4),
        _F.SIZE_OF_HEAP_RESERVE: FieldSpec(80, 4),
        _F.SIZE_OF_HEAP_COMMIT: FieldSpec(84, 4),
        _F.LOADER_FLAGS: FieldSpec(88, 4),
        _F.NUMBER_OF_RVA_AND_SIZES: FieldSpec(92, 4),
    },
    table_offset=96,
)

PE32_PLUS_OPTIONAL_HEADER_LAYOUT: Layout = _with_directories(
    {
        **_SHARED_PREFIX,
        _F.IMAGE_BASE: FieldSpec(24, 8),
        _F.SIZE_OF_STACK_RESERVE: FieldSpec(72, 8),
        _F.SIZE_OF_STACK_COMMIT: FieldSpec(80, 8),
        _F.SIZE_OF_HEAP_RESERVE: FieldSpec(88, 8),
        _F.SIZE_OF_HEAP_COMMIT: FieldSpec(96, 8),
        _F.LOADER_FLAGS: FieldSpec(104, 4),
        _F.NUMBER_OF_RVA_AND_SIZES: FieldSpec(108, 4),
    },
    table_offset=112,
)

OPTIONAL_HEADER_LAYOUTS: Mapping[PeVariant, Layout] = MappingProxyType(
    {
        PeVariant.STD: PE32_OPTIONAL_HEADER_LAYOUT,
        PeVariant.PLUS: PE32_PLUS_OPTIONAL_HEADER_LAYOUT,
    }
)

SECTION_LAYOUT: Layout = _freeze(
    {
        SectionField.NAME: FieldSpec(0, 8),
        SectionField.VIRTUAL_SIZE: FieldSpec(8, 4),
        SectionField.VIRTUAL_ADDRESS: FieldSpec(12, 4),
        SectionField.SIZE_OF_RAW_DATA: FieldSpec(16, 4),
        SectionField.POINTER_TO_RAW_DATA: FieldSpec(20, 4),
        SectionField.POINTER_TO_RELOCATIONS: FieldSpec(24, 4),
        SectionField.POINTER_TO_LINE_NUMBERS: FieldSpec(28, 4),
        SectionField.NUMBER_OF_RELOCATIONS: FieldSpec(32, 2),
        SectionField.NUMBER_OF_LINE_NUMBERS: FieldSpec(34, 2),
        SectionField.CHARACTERISTICS: FieldSpec(36, 4),
    }
)

EXPORT_DIRECTORY_LAYOUT: Layout = _freeze(
    {
        ExportDirectoryField.EXPORT_FLAGS: FieldSpec(0, 4),
        ExportDirectoryField.TIME_DATE_STAMP: FieldSpec(4, 4),
        ExportDirectoryField.MAJOR_VERSION: FieldSpec(8, 2),
        ExportDirectoryField.MINOR_VERSION: FieldSpec(10, 2),
        ExportDirectoryField.NAME_RVA: FieldSpec(12, 4),
        ExportDirectoryField.ORDINAL_BASE: FieldSpec(16, 4),
        ExportDirectoryField.NUMBER_OF_ADDRESS_TABLE_ENTRIES: FieldSpec(20, 4),
        ExportDirectoryField.NUMBER_OF_NAME_POINTERS: FieldSpec(24, 4),
        ExportDirectoryField.EXPORT_ADDRESS_TABLE_RVA: FieldSpec(28, 4),
        ExportDirectoryField.NAME_POINTER_RVA: FieldSpec(32, 4),
        ExportDirectoryField.ORDINAL_TABLE_RVA: FieldSpec(36, 4),
    }
)


# =============================================================================
# Helper Functions
# =============================================================================


def read_field(
    view: ByteOrderView,
    layout: Layout,
    field: Enum,
    *,
    signed: bool = False,
    default: int | None = None,
) -> int:
    """Read an integer field through a layout table.

    If default is given, a field missing from the layout yields default
    instead of raising KeyError.
    """
    spec = layout.get(field)
    if spec is None:
        if default is None:
            raise KeyError(f"{field.name} is not part of this layout")
        return default
    if signed:
        return view.read_signed(spec.offset, spec.width)
    return view.read_unsigned(spec.offset, spec.width)
