"""
PE signature location and COFF file header decoding.

The signature pointer lives at offset 60 of the legacy DOS header. The
machine field that follows the signature also tells us the file's byte
order: read big-endian, a recognised machine code means the file really is
big-endian; anything else (the UNKNOWN result) means little-endian, which
is what native toolchains produce.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from .byte_view import ByteOrderView
from .cursor import FileCursor
from .errors import SignatureMismatch
from .layouts import COFF_HEADER_LAYOUT, CoffField, read_field
from .types import (
    COFF_HEADER_SIZE,
    PE_SIGNATURE,
    PE_SIGNATURE_OFFSET_LOCATION,
    Endianness,
    FileCharacteristic,
    MachineType,
    decode_flags,
)

logger = logging.getLogger(__name__)


def read_signature_pointer(cursor: FileCursor, width: int = 1) -> int:
    """Read the pointer to the PE signature from the DOS header.

    With width=1 only the low byte at offset 60 is used. width=4 reads the
    full little-endian e_lfanew field.
    """
    if width == 1:
        return cursor.read_byte_at(PE_SIGNATURE_OFFSET_LOCATION)
    view = cursor.read_view(PE_SIGNATURE_OFFSET_LOCATION, width, Endianness.LITTLE)
    return view.read_unsigned(0, width)


def locate_signature(cursor: FileCursor, pointer_width: int = 1) -> int:
    """Find and verify the PE signature.

    Returns:
        File offset of the "PE\\0\\0" signature

    Raises:
        SignatureMismatch: If the four bytes at the pointer are not the signature
    """
    offset = read_signature_pointer(cursor, pointer_width)
    found = cursor.seek_and_read(offset, len(PE_SIGNATURE))
    if found != PE_SIGNATURE:
        raise SignatureMismatch(cursor.path, offset, found)
    logger.debug("PE signature at %#x", offset)
    return offset


def detect_endianness(cursor: FileCursor, pe_offset: int) -> Endianness:
    """Decide the file's byte order from the machine field after the signature."""
    machine_offset = pe_offset + len(PE_SIGNATURE)
    code = cursor.read_view(machine_offset, 2, Endianness.BIG).read_u16(0)
    if MachineType.from_code(code) is MachineType.UNKNOWN:
        return Endianness.LITTLE
    return Endianness.BIG


@dataclass(frozen=True)
class CoffHeader:
    """COFF file header (IMAGE_FILE_HEADER).

    This 20-byte header comes right after the PE signature.
    """

    Machine: MachineType  # UNKNOWN for unrecognised codes
    MachineCode: int  # Raw machine value
    NumberOfSections: int
    TimeDateStamp: datetime
    PointerToSymbolTable: int  # Usually 0 for executables
    NumberOfSymbols: int  # Usually 0 for executables
    SizeOfOptionalHeader: int
    Characteristics: frozenset[FileCharacteristic]
    RawCharacteristics: int

    SIZE: ClassVar[int] = COFF_HEADER_SIZE

    @classmethod
    def from_view(cls, view: ByteOrderView) -> "CoffHeader":
        """Decode the header from a 20-byte view."""
        layout = COFF_HEADER_LAYOUT
        machine_code = read_field(view, layout, CoffField.MACHINE)
        characteristics = read_field(view, layout, CoffField.CHARACTERISTICS)
        stamp = layout[CoffField.TIME_DATE_STAMP]

        return cls(
            Machine=MachineType.from_code(machine_code),
            MachineCode=machine_code,
            NumberOfSections=read_field(view, layout, CoffField.NUMBER_OF_SECTIONS),
            TimeDateStamp=view.read_timestamp(stamp.offset),
            PointerToSymbolTable=read_field(
                view, layout, CoffField.POINTER_TO_SYMBOL_TABLE, signed=True
            ),
            NumberOfSymbols=read_field(
                view, layout, CoffField.NUMBER_OF_SYMBOLS, signed=True
            ),
            SizeOfOptionalHeader=read_field(
                view, layout, CoffField.SIZE_OF_OPTIONAL_HEADER
            ),
            Characteristics=decode_flags(FileCharacteristic, characteristics),
            RawCharacteristics=characteristics,
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes | bytearray,
        endianness: Endianness = Endianness.LITTLE,
        offset: int = 0,
    ) -> "CoffHeader":
        """Decode the header from binary data at offset."""
        view = ByteOrderView(data[offset : offset + cls.SIZE], endianness)
        return cls.from_view(view)

    @property
    def is_dll(self) -> bool:
        """Check if this is a DLL."""
        return FileCharacteristic.DLL in self.Characteristics

    @property
    def is_executable(self) -> bool:
        """Check if this is an executable image."""
        return FileCharacteristic.EXECUTABLE_IMAGE in self.Characteristics
