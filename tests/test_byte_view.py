"""Tests for endianness-aware typed reads."""

import struct
from datetime import datetime, timezone

import pytest

from pe_inspect.byte_view import ByteOrderView
from pe_inspect.errors import BoundsOrIoError
from pe_inspect.types import Endianness


class TestEndiannessSymmetry:
    """A value reads the same from its big- and little-endian encodings."""

    @pytest.mark.parametrize(
        "width,value",
        [
            (2, 0x1234),
            (2, 0xFFFE),
            (4, 0x12345678),
            (4, 0x80000001),
            (8, 0x0123456789ABCDEF),
            (8, 0xFEDCBA9876543210),
        ],
    )
    def test_unsigned_symmetry(self, width, value):
        """Test reversed bytes under the other byte order give the same value."""
        big = value.to_bytes(width, "big")
        little = big[::-1]

        assert ByteOrderView(big, Endianness.BIG).read_unsigned(0, width) == value
        assert ByteOrderView(little, Endianness.LITTLE).read_unsigned(0, width) == value

    def test_signed_symmetry(self):
        """Test negative values decode identically in both byte orders."""
        big = struct.pack(">i", -123456)
        little = struct.pack("<i", -123456)

        assert ByteOrderView(big, Endianness.BIG).read_i32(0) == -123456
        assert ByteOrderView(little, Endianness.LITTLE).read_i32(0) == -123456


class TestUnsignedReads:
    """Tests for unsigned widening of values with the sign bit set."""

    @pytest.mark.parametrize("width", [1, 2, 4, 8])
    def test_sign_bit_set_is_never_negative(self, width):
        """Test all-ones and sign-bit-only patterns stay in the upper half."""
        all_ones = ByteOrderView(b"\xff" * width, Endianness.LITTLE).read_unsigned(
            0, width
        )
        assert all_ones == 2 ** (width * 8) - 1

        sign_only = ByteOrderView(
            (1 << (width * 8 - 1)).to_bytes(width, "little"), Endianness.LITTLE
        ).read_unsigned(0, width)
        assert 2 ** (width * 8 - 1) <= sign_only <= 2 ** (width * 8) - 1

    def test_typed_wrappers(self):
        """Test fixed-width helpers agree with struct."""
        data = struct.pack("<BHIQ", 0xFF, 0xFFFF, 0xFFFFFFFF, 0xFFFFFFFFFFFFFFFF)
        view = ByteOrderView(data, Endianness.LITTLE)

        assert view.read_u8(0) == 0xFF
        assert view.read_i8(0) == -1
        assert view.read_u16(1) == 0xFFFF
        assert view.read_i16(1) == -1
        assert view.read_u32(3) == 0xFFFFFFFF
        assert view.read_i32(3) == -1
        assert view.read_u64(7) == 0xFFFFFFFFFFFFFFFF
        assert view.read_i64(7) == -1

    def test_unsupported_width_raises(self):
        """Test that a width without a struct code raises ValueError."""
        view = ByteOrderView(b"\x00" * 8, Endianness.LITTLE)

        with pytest.raises(ValueError, match="width"):
            view.read_unsigned(0, 3)


class TestOtherReads:
    """Tests for byte, string and timestamp reads."""

    def test_read_bytes_is_verbatim(self):
        """Test raw bytes are returned unchanged regardless of byte order."""
        view = ByteOrderView(b"\x01\x02\x03\x04", Endianness.BIG)
        assert view.read_bytes(1, 2) == b"\x02\x03"

    def test_read_cstring(self):
        """Test reading a null-terminated string inside the view."""
        view = ByteOrderView(b"xxAlpha\x00Beta\x00", Endianness.LITTLE)
        assert view.read_cstring(2) == "Alpha"
        assert view.read_cstring(8) == "Beta"

    def test_unterminated_cstring_raises(self):
        """Test a string running off the end of the view raises."""
        view = ByteOrderView(b"Alpha", Endianness.LITTLE)

        with pytest.raises(BoundsOrIoError, match="unterminated"):
            view.read_cstring(0)

    def test_read_timestamp(self):
        """Test timestamps decode as UTC datetimes."""
        view = ByteOrderView(struct.pack(">I", 86400), Endianness.BIG)
        assert view.read_timestamp(0) == datetime(1970, 1, 2, tzinfo=timezone.utc)


class TestBounds:
    """Tests for out-of-range reads."""

    def test_read_past_end_raises(self):
        """Test reading past the end raises BoundsOrIoError."""
        view = ByteOrderView(b"\x00\x00", Endianness.LITTLE)

        with pytest.raises(BoundsOrIoError):
            view.read_u32(0)

    def test_error_reports_absolute_offset(self):
        """Test errors carry the file offset, not the view-relative one."""
        view = ByteOrderView(
            b"\x00" * 4, Endianness.LITTLE, path="foo.dll", base_offset=0x100
        )

        with pytest.raises(BoundsOrIoError) as exc_info:
            view.read_u32(2)

        assert exc_info.value.offset == 0x102
        assert exc_info.value.length == 4
        assert exc_info.value.path == "foo.dll"
        assert "foo.dll" in str(exc_info.value)

    def test_negative_offset_raises(self):
        """Test that negative offsets are rejected."""
        view = ByteOrderView(b"\x00" * 4, Endianness.LITTLE)

        with pytest.raises(BoundsOrIoError):
            view.read_u8(-1)
