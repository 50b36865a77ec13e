"""Tests for PE constants, enums and value objects."""

import pytest

from pe_inspect.errors import (
    BoundsOrIoError,
    PeDecodeError,
    SectionCountError,
    UnmappedRvaError,
)
from pe_inspect.types import (
    DataDirectory,
    DllCharacteristic,
    FileCharacteristic,
    MachineType,
    MemSize,
    Version,
    WindowsSubsystem,
    decode_flags,
    flag_names,
)


class TestMachineType:
    """Tests for machine code lookup."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            (0x014C, MachineType.I386),
            (0x8664, MachineType.AMD64),
            (0xAA64, MachineType.ARM64),
            (0x5064, MachineType.RISCV64),
            (0x6264, MachineType.LOONGARCH64),
        ],
    )
    def test_known_codes(self, code, expected):
        """Test recognized machine codes."""
        assert MachineType.from_code(code) is expected

    def test_unknown_code(self):
        """Test unrecognized codes map to UNKNOWN."""
        assert MachineType.from_code(0x4C01) is MachineType.UNKNOWN

    def test_table_size(self):
        """Test the full machine table is present, AXP64 being an alias."""
        assert len(MachineType) == 29
        assert MachineType.AXP64 is MachineType.ALPHA64


class TestFlags:
    """Tests for bitfield decoding."""

    def test_decode_file_flags(self):
        """Test every set bit with a name is reported."""
        flags = decode_flags(FileCharacteristic, 0x2102)
        assert flags == {
            FileCharacteristic.EXECUTABLE_IMAGE,
            FileCharacteristic.MACHINE_32BIT,
            FileCharacteristic.DLL,
        }

    def test_unnamed_bits_ignored(self):
        """Test bits without a DllCharacteristic member are dropped."""
        assert decode_flags(DllCharacteristic, 0x0001 | 0x0040) == {
            DllCharacteristic.DYNAMIC_BASE
        }

    def test_flag_counts(self):
        """Test the named flag tables."""
        assert len(FileCharacteristic) == 16
        assert len(DllCharacteristic) == 11

    def test_flag_names_sorted(self):
        """Test flag_names returns sorted member names."""
        flags = {FileCharacteristic.DLL, FileCharacteristic.EXECUTABLE_IMAGE}
        assert flag_names(flags) == ["DLL", "EXECUTABLE_IMAGE"]


class TestValueObjects:
    """Tests for small value types."""

    def test_version_str(self):
        """Test versions format as major.minor."""
        assert str(Version(10, 0)) == "10.0"

    def test_mem_size(self):
        """Test memory sizes compare by value."""
        assert MemSize(0x100000, 0x1000) == MemSize(0x100000, 0x1000)

    def test_data_directory_presence(self):
        """Test a directory is present if either field is non-zero."""
        assert not DataDirectory(0, 0).is_present
        assert DataDirectory(0x1000, 0).is_present
        assert DataDirectory(0, 8).is_present

    def test_subsystem_lookup(self):
        """Test subsystem lookup with fallback."""
        assert WindowsSubsystem.from_code(3) is WindowsSubsystem.WINDOWS_CUI
        assert WindowsSubsystem.from_code(4) is WindowsSubsystem.UNKNOWN


class TestErrorHierarchy:
    """Tests for the exception taxonomy."""

    def test_unmapped_rva_is_bounds_error(self):
        """Test UnmappedRvaError is a BoundsOrIoError."""
        error = UnmappedRvaError(0x3000, "x.dll")
        assert isinstance(error, BoundsOrIoError)
        assert error.rva == 0x3000
        assert "0x3000" in str(error)

    def test_all_are_value_errors(self):
        """Test every decode error is a ValueError."""
        error = SectionCountError(300, 256)
        assert isinstance(error, PeDecodeError)
        assert isinstance(error, ValueError)
        assert "300" in str(error)
