import struct
from datetime import datetime, timezone

import pytest

from errors import RecordFormatError
from metadata import (
    LEGACY_RECORD_SIZE,
    RecycleBinEntry,
    datetime_to_filetime,
    decode_record,
    encode_record,
    filetime_to_datetime,
    is_legacy_layout,
    read_record,
)

WHEN = datetime(2023, 11, 5, 8, 30, 15, 123456, tzinfo=timezone.utc)
PATH = "C:\\Users\\alex\\Documents\\report.docx"


def test_filetime_unix_epoch():
    assert filetime_to_datetime(116444736000000000) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_filetime_truncates_sub_microsecond_ticks():
    assert filetime_to_datetime(116444736000000009) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_filetime_roundtrip():
    assert filetime_to_datetime(datetime_to_filetime(WHEN)) == WHEN


def test_negative_filetime_rejected():
    with pytest.raises(RecordFormatError):
        filetime_to_datetime(-1)


def test_modern_record_layout():
    data = encode_record(PATH, WHEN, size=42)
    assert len(data) == 28 + (len(PATH) + 1) * 2
    assert struct.unpack_from("<qq", data, 0) == (2, 42)
    assert struct.unpack_from("<i", data, 24)[0] == len(PATH) + 1
    assert decode_record(data) == (WHEN, PATH)


def test_legacy_and_modern_decode_to_same_values():
    legacy = encode_record(PATH, WHEN, legacy=True)
    modern = encode_record(PATH, WHEN)
    assert len(legacy) == LEGACY_RECORD_SIZE
    assert is_legacy_layout(legacy)
    assert not is_legacy_layout(modern)
    assert decode_record(legacy) == decode_record(modern) == (WHEN, PATH)


def test_non_ascii_path():
    path = "D:\\daten\\§$%&()=`'_;üöä€ß.txt"
    assert decode_record(encode_record(path, WHEN))[1] == path
    assert decode_record(encode_record(path, WHEN, legacy=True))[1] == path


def test_legacy_rejects_long_path():
    with pytest.raises(ValueError):
        encode_record("C:\\" + "x" * 300, WHEN, legacy=True)


def test_modern_record_of_exactly_544_bytes_reads_as_modern():
    path = "C:\\" + "a" * 254
    data = encode_record(path, WHEN)
    assert len(data) == LEGACY_RECORD_SIZE
    assert not is_legacy_layout(data)
    assert decode_record(data) == (WHEN, path)


def test_known_ambiguity_legacy_path_u0102():
    # bytes 24..27 of this legacy record equal a modern count of 258
    data = encode_record("\u0102", WHEN, legacy=True)
    assert len(data) == LEGACY_RECORD_SIZE
    assert not is_legacy_layout(data)
    assert decode_record(data)[1] != "\u0102"


@pytest.mark.parametrize("data", [
    b"",
    b"\x02" + b"\x00" * 10,
    b"\x00" * 24,
])
def test_truncated_records(data):
    with pytest.raises(RecordFormatError):
        decode_record(data)


def test_count_longer_than_buffer():
    data = encode_record(PATH, WHEN)[:-10]
    with pytest.raises(RecordFormatError):
        decode_record(data)


def test_zero_count():
    data = encode_record(PATH, WHEN)
    data = data[:24] + struct.pack("<i", 0) + data[28:]
    with pytest.raises(RecordFormatError):
        decode_record(data)


def test_empty_path_rejected():
    with pytest.raises(RecordFormatError):
        decode_record(encode_record("", WHEN))


def test_text_file_is_not_a_record():
    with pytest.raises(RecordFormatError):
        decode_record(b"invalid")


def test_read_record(tmp_path):
    path = tmp_path / "$IABC123.txt"
    path.write_bytes(encode_record(PATH, WHEN))
    assert read_record(str(path)) == (WHEN, PATH)


def test_entry_suffix():
    entry = RecycleBinEntry(PATH, WHEN, "/bin/$IABC123.txt", "/bin/$RABC123.txt")
    assert entry.suffix == "ABC123.txt"
