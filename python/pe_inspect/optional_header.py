"""
Optional header decoding for PE32 and PE32+ images.

The optional header comes in two size classes selected by its magic number:

- PE32 (0x10B, PeVariant.STD): 4-byte ImageBase, a BaseOfData field, and
  4-byte stack/heap reserve and commit sizes.
- PE32+ (0x20B, PeVariant.PLUS): 8-byte ImageBase, no BaseOfData, and
  8-byte stack/heap sizes.

Both are decoded by the same function. The variant picks a layout table from
layouts.OPTIONAL_HEADER_LAYOUTS and every field is read through it.
"""

import logging
from dataclasses import dataclass
from typing import Iterator

from .byte_view import ByteOrderView
from .errors import ReservedFieldViolation, UnknownVariant
from .layouts import (
    OPTIONAL_HEADER_LAYOUTS,
    Layout,
    OptionalHeaderField as F,
    read_field,
)
from .types import (
    IMAGE_NUMBEROF_DIRECTORY_ENTRIES,
    DataDirectory,
    DirectoryEntry,
    DllCharacteristic,
    MemSize,
    PeVariant,
    Version,
    WindowsSubsystem,
    decode_flags,
)

logger = logging.getLogger(__name__)

MAGIC_OFFSET = 0


@dataclass(frozen=True)
class DirectoryTable:
    """The 16 data directory entries, indexed by DirectoryEntry."""

    entries: tuple[DataDirectory, ...]

    def __post_init__(self):
        if len(self.entries) != IMAGE_NUMBEROF_DIRECTORY_ENTRIES:
            raise ValueError(
                f"Directory table needs {IMAGE_NUMBEROF_DIRECTORY_ENTRIES} "
                f"entries, got {len(self.entries)}"
            )

    def __getitem__(self, entry: DirectoryEntry) -> DataDirectory:
        return self.entries[entry.value]

    def __iter__(self) -> Iterator[tuple[DirectoryEntry, DataDirectory]]:
        for entry in DirectoryEntry:
            yield entry, self.entries[entry.value]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def exports(self) -> DataDirectory:
        return self[DirectoryEntry.EXPORT]

    @property
    def imports(self) -> DataDirectory:
        return self[DirectoryEntry.IMPORT]

    @property
    def relocations(self) -> DataDirectory:
        return self[DirectoryEntry.BASE_RELOCATION]

    @property
    def clr_runtime_header(self) -> DataDirectory:
        return self[DirectoryEntry.CLR_RUNTIME_HEADER]


@dataclass(frozen=True)
class OptionalHeader:
    """PE32 / PE32+ optional header (IMAGE_OPTIONAL_HEADER[64]).

    This header is required for executable images despite its name.
    The "optional" refers to object files which don't have it.

    Variant tags which size class the header was decoded as. BaseOfData is 0
    for PE32+ images, which have no such field.
    """

    Variant: PeVariant
    Magic: int
    LinkerVersion: Version
    SizeOfCode: int
    SizeOfInitializedData: int
    SizeOfUninitializedData: int
    AddressOfEntryPoint: int
    BaseOfCode: int
    BaseOfData: int  # PE32 only
    ImageBase: int  # 4 bytes for PE32, 8 bytes for PE32+
    SectionAlignment: int
    FileAlignment: int
    OperatingSystemVersion: Version
    ImageVersion: Version
    SubsystemVersion: Version
    Win32VersionValue: int  # Reserved, must be zero
    SizeOfImage: int
    SizeOfHeaders: int
    CheckSum: int
    Subsystem: WindowsSubsystem
    DllCharacteristics: frozenset[DllCharacteristic]
    RawDllCharacteristics: int
    StackMemory: MemSize
    HeapMemory: MemSize
    LoaderFlags: int  # Reserved, must be zero
    NumberOfRvaAndSizes: int
    DataDirectories: DirectoryTable
    Size: int  # Declared length of the header in bytes

    @property
    def is_plus(self) -> bool:
        """Check if this is a PE32+ (64-bit) header."""
        return self.Variant is PeVariant.PLUS

    @property
    def has_aslr(self) -> bool:
        """Check if ASLR (dynamic base) is enabled."""
        return DllCharacteristic.DYNAMIC_BASE in self.DllCharacteristics


def read_variant(view: ByteOrderView) -> PeVariant:
    """Select the header variant from the magic number.

    Raises:
        UnknownVariant: If the magic is neither 0x10B nor 0x20B
    """
    magic = view.read_u16(MAGIC_OFFSET)
    try:
        return PeVariant(magic)
    except ValueError:
        raise UnknownVariant(magic, view.path) from None


def _version(view: ByteOrderView, layout: Layout, major: F, minor: F) -> Version:
    return Version(read_field(view, layout, major), read_field(view, layout, minor))


def _mem_size(view: ByteOrderView, layout: Layout, reserve: F, commit: F) -> MemSize:
    return MemSize(read_field(view, layout, reserve), read_field(view, layout, commit))


def _read_directories(view: ByteOrderView, layout: Layout) -> DirectoryTable:
    """Read each (RVA, size) slot; slots past the end of the header are empty."""
    entries = []
    for entry in DirectoryEntry:
        spec = layout[entry]
        if spec.end > len(view):
            entries.append(DataDirectory(0, 0))
            continue
        entries.append(
            DataDirectory(
                VirtualAddress=view.read_u32(spec.offset),
                Size=view.read_u32(spec.offset + 4),
            )
        )
    return DirectoryTable(tuple(entries))


def _require_zero(view: ByteOrderView, name: str, value: int) -> None:
    if value != 0:
        raise ReservedFieldViolation(name, value, view.path)


def decode_optional_header(view: ByteOrderView) -> OptionalHeader:
    """Decode an optional header from a view of exactly SizeOfOptionalHeader bytes.

    Raises:
        UnknownVariant: If the magic number is not recognised
        ReservedFieldViolation: If LoaderFlags or Win32VersionValue is non-zero
        BoundsOrIoError: If the view is too short for the fixed fields
    """
    variant = read_variant(view)
    layout = OPTIONAL_HEADER_LAYOUTS[variant]
    logger.debug("Optional header is %s (%d bytes)", variant.name, len(view))

    dll_characteristics = read_field(view, layout, F.DLL_CHARACTERISTICS)
    win32_version = read_field(view, layout, F.WIN32_VERSION_VALUE)
    loader_flags = read_field(view, layout, F.LOADER_FLAGS)

    header = OptionalHeader(
        Variant=variant,
        Magic=variant.value,
        LinkerVersion=_version(
            view, layout, F.MAJOR_LINKER_VERSION, F.MINOR_LINKER_VERSION
        ),
        SizeOfCode=read_field(view, layout, F.SIZE_OF_CODE),
        SizeOfInitializedData=read_field(view, layout, F.SIZE_OF_INITIALIZED_DATA),
        SizeOfUninitializedData=read_field(view, layout, F.SIZE_OF_UNINITIALIZED_DATA),
        AddressOfEntryPoint=read_field(view, layout, F.ADDRESS_OF_ENTRY_POINT),
        BaseOfCode=read_field(view, layout, F.BASE_OF_CODE),
        BaseOfData=read_field(view, layout, F.BASE_OF_DATA, default=0),
        ImageBase=read_field(view, layout, F.IMAGE_BASE),
        SectionAlignment=read_field(view, layout, F.SECTION_ALIGNMENT),
        FileAlignment=read_field(view, layout, F.FILE_ALIGNMENT),
        OperatingSystemVersion=_version(
            view,
            layout,
            F.MAJOR_OPERATING_SYSTEM_VERSION,
            F.MINOR_OPERATING_SYSTEM_VERSION,
        ),
        ImageVersion=_version(
            view, layout, F.MAJOR_IMAGE_VERSION, F.MINOR_IMAGE_VERSION
        ),
        SubsystemVersion=_version(
            view, layout, F.MAJOR_SUBSYSTEM_VERSION, F.MINOR_SUBSYSTEM_VERSION
        ),
        Win32VersionValue=win32_version,
        SizeOfImage=read_field(view, layout, F.SIZE_OF_IMAGE),
        SizeOfHeaders=read_field(view, layout, F.SIZE_OF_HEADERS),
        CheckSum=read_field(view, layout, F.CHECKSUM),
        Subsystem=WindowsSubsystem.from_code(read_field(view, layout, F.SUBSYSTEM)),
        DllCharacteristics=decode_flags(DllCharacteristic, dll_characteristics),
        RawDllCharacteristics=dll_characteristics,
        StackMemory=_mem_size(
            view, layout, F.SIZE_OF_STACK_RESERVE, F.SIZE_OF_STACK_COMMIT
        ),
        HeapMemory=_mem_size(
            view, layout, F.SIZE_OF_HEAP_RESERVE, F.SIZE_OF_HEAP_COMMIT
        ),
        LoaderFlags=loader_flags,
        NumberOfRvaAndSizes=read_field(view, layout, F.NUMBER_OF_RVA_AND_SIZES),
        DataDirectories=_read_directories(view, layout),
        Size=len(view),
    )

    _require_zero(view, "LoaderFlags", loader_flags)
    _require_zero(view, "Win32VersionValue", win32_version)
    return header
