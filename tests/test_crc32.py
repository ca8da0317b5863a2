import pytest

from btrstream.crc32 import calculate_crc32, crc32c, validate_crc32
from btrstream.errors import InvalidChecksumError
from btrstream.protocol import CmdHeader, SendCommand


def test_standard_check_value():
    # CRC-32C check value for "123456789" with the usual init and final inversion.
    assert crc32c(b"123456789", 0xFFFFFFFF) ^ 0xFFFFFFFF == 0xE3069283


def test_empty_data_returns_seed():
    assert crc32c(b"", 0) == 0
    assert crc32c(b"", 1234) == 1234


def test_single_byte_matches_table_entry():
    assert crc32c(b"\x01", 0) == 0xF26B8303
    assert crc32c(b"\x80", 0) == 0x82F63B78


def test_incremental_equals_whole():
    data = b"some command payload"
    partial = crc32c(data[:7], 0)
    assert crc32c(data[7:], partial) == crc32c(data, 0)


def test_calculate_then_validate_round_trip():
    data = b"\x0f\x00\x03\x00abc"
    header = CmdHeader(length=len(data), command=SendCommand.MKFILE, crc=0)
    crc = calculate_crc32(header, data)
    validate_crc32(CmdHeader(len(data), SendCommand.MKFILE, crc), data)
    assert crc == crc32c(header.pack() + data)


def test_validate_rejects_wrong_crc():
    data = b"payload"
    header = CmdHeader(len(data), SendCommand.WRITE, 0)
    crc = calculate_crc32(header, data)
    with pytest.raises(InvalidChecksumError):
        validate_crc32(CmdHeader(len(data), SendCommand.WRITE, crc ^ 1), data)


def test_validate_rejects_changed_data():
    data = b"payload"
    crc = calculate_crc32(CmdHeader(len(data), SendCommand.WRITE, 0), data)
    with pytest.raises(InvalidChecksumError):
        validate_crc32(CmdHeader(len(data), SendCommand.WRITE, crc), b"paylaod")