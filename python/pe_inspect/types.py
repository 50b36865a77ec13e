"""
PE/COFF constants and flag enumerations.

This module holds the numeric constants of the Portable Executable format
and the enums the decoders map raw header values onto: machine types,
subsystems, the optional-header variant, data directory purposes and the
three characteristics bitfields.

References:
- Microsoft PE/COFF Specification
- https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, TypeVar

# =============================================================================
# Constants
# =============================================================================

# PE Signature
PE_SIGNATURE = b"PE\x00\x00"
PE_SIGNATURE_OFFSET_LOCATION = 0x3C  # Offset in DOS header where e_lfanew lives

# Optional header magic
IMAGE_NT_OPTIONAL_HDR32_MAGIC = 0x10B
IMAGE_NT_OPTIONAL_HDR64_MAGIC = 0x20B  # PE32+

# Structure sizes
COFF_HEADER_SIZE = 20
SECTION_HEADER_SIZE = 40
SECTION_NAME_SIZE = 8
DATA_DIRECTORY_SIZE = 8
EXPORT_DIRECTORY_SIZE = 40
IMAGE_NUMBEROF_DIRECTORY_ENTRIES = 16

# Section alignment field (bits 20-23 of section characteristics)
IMAGE_SCN_ALIGN_MASK = 0x00F00000


# =============================================================================
# Enumerations
# =============================================================================


class Endianness(Enum):
    """Byte order of multi-byte fields."""

    BIG = ">"
    LITTLE = "<"


class PeVariant(Enum):
    """Optional header size class, selected by the magic number."""

    STD = IMAGE_NT_OPTIONAL_HDR32_MAGIC  # PE32
    PLUS = IMAGE_NT_OPTIONAL_HDR64_MAGIC  # PE32+


class MachineType(Enum):
    """Target machine (IMAGE_FILE_MACHINE_*)."""

    UNKNOWN = 0x0000
    ALPHA = 0x0184
    ALPHA64 = 0x0284
    AXP64 = 0x0284  # Alias of ALPHA64
    AM33 = 0x01D3
    AMD64 = 0x8664
    ARM = 0x01C0
    ARM64 = 0xAA64
    ARMNT = 0x01C4
    EBC = 0x0EBC
    I386 = 0x014C
    IA64 = 0x0200
    LOONGARCH32 = 0x6232
    LOONGARCH64 = 0x6264
    M32R = 0x9041
    MIPS16 = 0x0266
    MIPSFPU = 0x0366
    MIPSFPU16 = 0x0466
    POWERPC = 0x01F0
    POWERPCFP = 0x01F1
    R4000 = 0x0166
    RISCV32 = 0x5032
    RISCV64 = 0x5064
    RISCV128 = 0x5128
    SH3 = 0x01A2
    SH3DSP = 0x01A3
    SH4 = 0x01A6
    SH5 = 0x01A8
    THUMB = 0x01C2
    WCEMIPSV2 = 0x0169

    @classmethod
    def from_code(cls, code: int) -> "MachineType":
        """Look up a machine code; unrecognized codes map to UNKNOWN."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class WindowsSubsystem(Enum):
    """Subsystem required to run the image (IMAGE_SUBSYSTEM_*)."""

    UNKNOWN = 0
    NATIVE = 1
    WINDOWS_GUI = 2
    WINDOWS_CUI = 3
    OS2_CUI = 5
    POSIX_CUI = 7
    NATIVE_WINDOWS = 8
    WINDOWS_CE_GUI = 9
    EFI_APPLICATION = 10
    EFI_BOOT_SERVICE_DRIVER = 11
    EFI_RUNTIME_DRIVER = 12
    EFI_ROM = 13
    XBOX = 14
    WINDOWS_BOOT_APPLICATION = 16

    @classmethod
    def from_code(cls, code: int) -> "WindowsSubsystem":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class DirectoryEntry(Enum):
    """Data directory slots, in table order (IMAGE_DIRECTORY_ENTRY_*)."""

    EXPORT = 0
    IMPORT = 1
    RESOURCE = 2
    EXCEPTION = 3
    CERTIFICATE = 4
    BASE_RELOCATION = 5
    DEBUG = 6
    ARCHITECTURE = 7
    GLOBAL_POINTER = 8
    TLS = 9
    LOAD_CONFIG = 10
    BOUND_IMPORT = 11
    IMPORT_ADDRESS = 12
    DELAY_IMPORT = 13
    CLR_RUNTIME_HEADER = 14
    RESERVED = 15


class FileCharacteristic(Enum):
    """COFF header characteristics (IMAGE_FILE_*)."""

    RELOCS_STRIPPED = 0x0001
    EXECUTABLE_IMAGE = 0x0002
    LINE_NUMS_STRIPPED = 0x0004
    LOCAL_SYMS_STRIPPED = 0x0008
    AGGRESSIVE_WS_TRIM = 0x0010
    LARGE_ADDRESS_AWARE = 0x0020
    RESERVED = 0x0040
    BYTES_REVERSED_LO = 0x0080
    MACHINE_32BIT = 0x0100
    DEBUG_STRIPPED = 0x0200
    REMOVABLE_RUN_FROM_SWAP = 0x0400
    NET_RUN_FROM_SWAP = 0x0800
    SYSTEM = 0x1000
    DLL = 0x2000
    UP_SYSTEM_ONLY = 0x4000
    BYTES_REVERSED_HI = 0x8000


class DllCharacteristic(Enum):
    """Optional header DLL characteristics (IMAGE_DLLCHARACTERISTICS_*)."""

    HIGH_ENTROPY_VA = 0x0020
    DYNAMIC_BASE = 0x0040  # ASLR
    FORCE_INTEGRITY = 0x0080
    NX_COMPAT = 0x0100
    NO_ISOLATION = 0x0200
    NO_SEH = 0x0400
    NO_BIND = 0x0800
    APPCONTAINER = 0x1000
    WDM_DRIVER = 0x2000
    GUARD_CF = 0x4000
    TERMINAL_SERVER_AWARE = 0x8000


class SectionCharacteristic(Enum):
    """Section header characteristics (IMAGE_SCN_*).

    MEM_16BIT shares its value with MEM_PURGEABLE and is an alias of it.
    The ALIGN_* members are values of a 4-bit field, not single bits.
    """

    TYPE_NO_PAD = 0x00000008
    CNT_CODE = 0x00000020
    CNT_INITIALIZED_DATA = 0x00000040
    CNT_UNINITIALIZED_DATA = 0x00000080
    LNK_OTHER = 0x00000100
    LNK_INFO = 0x00000200
    LNK_REMOVE = 0x00000800
    LNK_COMDAT = 0x00001000
    GPREL = 0x00008000
    MEM_PURGEABLE = 0x00020000
    MEM_16BIT = 0x00020000
    MEM_LOCKED = 0x00040000
    MEM_PRELOAD = 0x00080000
    ALIGN_1BYTES = 0x00100000
    ALIGN_2BYTES = 0x00200000
    ALIGN_4BYTES = 0x00300000
    ALIGN_8BYTES = 0x00400000
    ALIGN_16BYTES = 0x00500000
    ALIGN_32BYTES = 0x00600000
    ALIGN_64BYTES = 0x00700000
    ALIGN_128BYTES = 0x00800000
    ALIGN_256BYTES = 0x00900000
    ALIGN_512BYTES = 0x00A00000
    ALIGN_1024BYTES = 0x00B00000
    ALIGN_2048BYTES = 0x00C00000
    ALIGN_4096BYTES = 0x00D00000
    ALIGN_8192BYTES = 0x00E00000
    LNK_NRELOC_OVFL = 0x01000000
    MEM_DISCARDABLE = 0x02000000
    MEM_NOT_CACHED = 0x04000000
    MEM_NOT_PAGED = 0x08000000
    MEM_SHARED = 0x10000000
    MEM_EXECUTE = 0x20000000
    MEM_READ = 0x40000000
    MEM_WRITE = 0x80000000


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class Version:
    """A major/minor version pair."""

    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class MemSize:
    """Reserve and commit sizes for the stack or the heap."""

    reserve: int
    commit: int


@dataclass(frozen=True)
class DataDirectory:
    """Data directory entry (IMAGE_DATA_DIRECTORY)."""

    VirtualAddress: int  # RVA of the data
    Size: int  # Size of the data

    @property
    def is_present(self) -> bool:
        """Check if this data directory is present."""
        return self.VirtualAddress != 0 or self.Size != 0


# =============================================================================
# Helper Functions
# =============================================================================

E = TypeVar("E", bound=Enum)


def decode_flags(flag_type: type[E], value: int) -> frozenset[E]:
    """Return the members of flag_type whose bit is set in value.

    Bits without a named member are ignored.
    """
    return frozenset(flag for flag in flag_type if value & flag.value)


def decode_section_flags(value: int) -> frozenset[SectionCharacteristic]:
    """Decode a section characteristics field.

    Single-bit flags are tested by mask. The alignment field is matched
    by value, so at most one ALIGN_* member is reported.
    """
    align = value & IMAGE_SCN_ALIGN_MASK
    flags = set()
    for flag in SectionCharacteristic:
        if flag.value & IMAGE_SCN_ALIGN_MASK:
            if align == flag.value:
                flags.add(flag)
        elif value & flag.value:
            flags.add(flag)
    return frozenset(flags)


def flag_names(flags: Iterable[Enum]) -> list[str]:
    """Sorted member names, for display and serialization."""
    return sorted(flag.name for flag in flags)
