import pathlib

import pytest

from pe_inspect.options import RVA_MODE_ENV
from pe_test_utils import MACHINE_UNRECOGNIZED, build_pe


@pytest.fixture(autouse=True)
def clean_rva_mode_env(monkeypatch):
    """Keep a developer's $PE_INSPECT_RVA_MODE out of the tests."""
    monkeypatch.delenv(RVA_MODE_ENV, raising=False)


@pytest.fixture
def minimal_pe_bytes() -> bytearray:
    """
    Smallest image the decoder accepts.

    Little-endian, signature at 0x40, an unrecognized machine code, no
    sections, and a 96-byte PE32 optional header that stops right before
    the data directory table.
    """
    return build_pe(
        machine=MACHINE_UNRECOGNIZED,
        size_of_optional_header=96,
        sections=[],
    )


@pytest.fixture
def write_binary(tmp_path: pathlib.Path):
    """Factory writing image bytes to a file under tmp_path."""

    def _write(data: bytes | bytearray, name: str = "test.dll") -> pathlib.Path:
        path = tmp_path / name
        path.write_bytes(bytes(data))
        return path

    return _write
