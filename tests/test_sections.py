"""Tests for section table decoding."""

import logging
import struct

import pytest

from pe_inspect.byte_view import ByteOrderView
from pe_inspect.errors import BoundsOrIoError
from pe_inspect.sections import (
    Section,
    decode_section_name,
    decode_section_table,
    find_section_for_rva,
    section_rva_to_file_offset,
)
from pe_inspect.types import (
    Endianness,
    SectionCharacteristic,
    decode_section_flags,
)
from pe_test_utils import (
    IMAGE_SCN_CNT_CODE,
    IMAGE_SCN_MEM_EXECUTE,
    IMAGE_SCN_MEM_READ,
    IMAGE_SCN_MEM_WRITE,
)


def make_section_record(
    name: bytes,
    virtual_address: int = 0x1000,
    virtual_size: int = 0x100,
    raw_pointer: int = 0x400,
    raw_size: int = 0x200,
    characteristics: int = IMAGE_SCN_MEM_READ,
    endianness: Endianness = Endianness.LITTLE,
) -> bytes:
    data = bytearray(40)
    data[0:8] = name.ljust(8, b"\x00")[:8]
    struct.pack_into(
        endianness.value + "IIIIIIHHI",
        data,
        8,
        virtual_size,
        virtual_address,
        raw_size,
        raw_pointer,
        0,
        0,
        0,
        0,
        characteristics,
    )
    return bytes(data)


def _table(*records: bytes, endianness=Endianness.LITTLE) -> ByteOrderView:
    return ByteOrderView(b"".join(records), endianness)


class TestSectionName:
    """Tests for 8-byte name decoding."""

    def test_full_width_name(self):
        """Test a name using all 8 bytes has no terminator and keeps 8 chars."""
        assert decode_section_name(b".textbss") == ".textbss"

    @pytest.mark.parametrize("k", range(8))
    def test_zero_at_index(self, k):
        """Test a zero byte at index k yields a k-character name."""
        raw = bytearray(b"ABCDEFGH")
        raw[k] = 0
        assert len(decode_section_name(bytes(raw))) == k

    def test_bytes_after_terminator_ignored(self):
        """Test garbage after the first null is dropped."""
        assert decode_section_name(b".rsrc\x00xy") == ".rsrc"


class TestSectionRecord:
    """Tests for single section header parsing."""

    def test_parse_section(self):
        """Test parsing a section record."""
        record = make_section_record(
            b".text",
            virtual_address=0x1000,
            virtual_size=0x234,
            raw_pointer=0x400,
            raw_size=0x400,
            characteristics=(
                IMAGE_SCN_CNT_CODE | IMAGE_SCN_MEM_READ | IMAGE_SCN_MEM_EXECUTE
            ),
        )

        section = Section.from_view(ByteOrderView(record, Endianness.LITTLE))
        assert section.Name == ".text"
        assert section.RawName == b".text\x00\x00\x00"
        assert section.VirtualAddress == 0x1000
        assert section.VirtualSize == 0x234
        assert section.PointerToRawData == 0x400
        assert section.SizeOfRawData == 0x400
        assert section.is_code
        assert section.is_readable
        assert section.is_executable
        assert not section.is_writable
        assert not section.is_discardable

    def test_big_endian_record(self):
        """Test a big-endian record decodes to the same values."""
        record = make_section_record(
            b".data", virtual_address=0x2000, endianness=Endianness.BIG
        )

        section = Section.from_view(ByteOrderView(record, Endianness.BIG))
        assert section.VirtualAddress == 0x2000
        assert section.RawCharacteristics == IMAGE_SCN_MEM_READ

    def test_rva_helpers(self):
        """Test end_rva, contains_rva and rva_to_file_offset."""
        record = make_section_record(
            b".rdata",
            virtual_address=0x2000,
            virtual_size=0x300,
            raw_pointer=0x600,
            raw_size=0x200,
        )
        section = Section.from_view(ByteOrderView(record, Endianness.LITTLE))

        assert section.end_rva == 0x2300
        assert section.end_file_offset == 0x800
        assert section.contains_rva(0x2000)
        assert not section.contains_rva(0x2300)
        assert section.rva_to_file_offset(0x2010) == 0x610
        # Inside the virtual range but past the raw data
        assert section.rva_to_file_offset(0x2250) is None
        assert section.rva_to_file_offset(0x1FFF) is None

    def test_zero_virtual_size_uses_raw_size(self):
        """Test end_rva falls back to SizeOfRawData when VirtualSize is 0."""
        record = make_section_record(
            b".bss", virtual_address=0x3000, virtual_size=0, raw_size=0x200
        )
        section = Section.from_view(ByteOrderView(record, Endianness.LITTLE))
        assert section.end_rva == 0x3200


class TestSectionTable:
    """Tests for decoding the whole table."""

    def test_empty_table(self):
        """Test zero sections need zero bytes."""
        assert decode_section_table(_table(), 0) == {}

    def test_requires_exact_length(self):
        """Test a short view is a bounds error carrying the table offset."""
        view = ByteOrderView(
            make_section_record(b".text"),
            Endianness.LITTLE,
            path="short.dll",
            base_offset=0x178,
        )

        with pytest.raises(BoundsOrIoError, match="80 bytes") as exc_info:
            decode_section_table(view, 2)

        assert exc_info.value.offset == 0x178
        assert exc_info.value.length == 80
        assert exc_info.value.path == "short.dll"

    def test_sorted_by_name(self):
        """Test sections are returned in ascending name order."""
        view = _table(
            make_section_record(b".text"),
            make_section_record(b".data"),
            make_section_record(b".rsrc"),
        )

        sections = decode_section_table(view, 3)
        assert list(sections) == [".data", ".rsrc", ".text"]

    def test_duplicate_names_last_wins(self, caplog):
        """Test a later record with the same name replaces the earlier one."""
        view = _table(
            make_section_record(b".data", virtual_address=0x1000),
            make_section_record(b".data", virtual_address=0x5000),
        )

        with caplog.at_level(logging.WARNING, logger="pe_inspect.sections"):
            sections = decode_section_table(view, 2)

        assert len(sections) == 1
        assert sections[".data"].VirtualAddress == 0x5000
        assert "Duplicate section name" in caplog.text

    def test_find_section_for_rva(self):
        """Test locating the section that covers an RVA."""
        sections = decode_section_table(
            _table(
                make_section_record(b".text", virtual_address=0x1000),
                make_section_record(b".data", virtual_address=0x2000),
            ),
            2,
        )

        assert find_section_for_rva(sections.values(), 0x2050).Name == ".data"
        assert find_section_for_rva(sections.values(), 0x9000) is None

    def test_section_rva_to_file_offset(self):
        """Test RVA mapping through the table, including header RVAs."""
        sections = decode_section_table(
            _table(
                make_section_record(
                    b".edata", virtual_address=0x3000, raw_pointer=0x600
                )
            ),
            1,
        )

        assert section_rva_to_file_offset(sections, 0x3020, 0x400) == 0x620
        assert section_rva_to_file_offset(sections, 0x80, 0x400) == 0x80
        assert section_rva_to_file_offset(sections, 0x8000, 0x400) is None


class TestSectionCharacteristics:
    """Tests for section flag decoding."""

    def test_single_bit_flags(self):
        """Test single-bit flags are decoded by mask."""
        flags = decode_section_flags(
            IMAGE_SCN_CNT_CODE | IMAGE_SCN_MEM_READ | IMAGE_SCN_MEM_WRITE
        )
        assert flags == {
            SectionCharacteristic.CNT_CODE,
            SectionCharacteristic.MEM_READ,
            SectionCharacteristic.MEM_WRITE,
        }

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0x00100000, SectionCharacteristic.ALIGN_1BYTES),
            (0x00300000, SectionCharacteristic.ALIGN_4BYTES),
            (0x00500000, SectionCharacteristic.ALIGN_16BYTES),
            (0x00D00000, SectionCharacteristic.ALIGN_4096BYTES),
            (0x00E00000, SectionCharacteristic.ALIGN_8192BYTES),
        ],
    )
    def test_alignment_field(self, value, expected):
        """Test the alignment field reports exactly one ALIGN_* member."""
        flags = decode_section_flags(value | IMAGE_SCN_MEM_READ)
        align = {f for f in flags if f.name.startswith("ALIGN_")}
        assert align == {expected}

    def test_no_alignment(self):
        """Test an empty alignment field reports no ALIGN_* member."""
        flags = decode_section_flags(IMAGE_SCN_MEM_READ)
        assert not any(f.name.startswith("ALIGN_") for f in flags)

    def test_16bit_alias(self):
        """Test MEM_16BIT and MEM_PURGEABLE are the same member."""
        assert SectionCharacteristic.MEM_16BIT is SectionCharacteristic.MEM_PURGEABLE
        assert SectionCharacteristic.MEM_PURGEABLE in decode_section_flags(0x00020000)
