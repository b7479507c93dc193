# metadata.py
# $I metadata records: decoding, encoding and the entry value types

from __future__ import annotations
import os
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple

from errors import RecordFormatError

METADATA_PREFIX = "$I"
BACKUP_PREFIX = "$R"

# Vista/7/8 write version 1 records, Windows 10 and later write version 2
LEGACY_VERSION = 1
MODERN_VERSION = 2

TIMESTAMP_OFFSET = 16
PATH_OFFSET_LEGACY = 24
PATH_OFFSET_MODERN = 28
LEGACY_PATH_BYTES = 520
LEGACY_RECORD_SIZE = PATH_OFFSET_LEGACY + LEGACY_PATH_BYTES  # 544

FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)

_HEADER = struct.Struct("<qqq")   # version, payload size, deletion file-time
_COUNT = struct.Struct("<i")


@dataclass(frozen=True)
class RecycleBinEntry:
    """One deleted item: where it came from, when, and its two files in the bin."""
    original_path: str
    deleted_at: datetime
    metadata_path: str
    backup_path: str
    # raw 100ns ticks; deleted_at drops the last digit
    filetime: int = 0

    @property
    def suffix(self) -> str:
        return os.path.basename(self.metadata_path)[len(METADATA_PREFIX):]


@dataclass(frozen=True)
class ParseFailure:
    metadata_path: str
    cause: BaseException


# ===============
# File-time
# ===============

def filetime_to_datetime(ticks: int) -> datetime:
    """Convert 100ns ticks since 1601-01-01 UTC to an aware UTC datetime.

    Sub-microsecond ticks are truncated (datetime resolution).
    """
    if ticks < 0:
        raise RecordFormatError(f"negative file-time {ticks}")
    try:
        return FILETIME_EPOCH + timedelta(microseconds=ticks // 10)
    except OverflowError as e:
        raise RecordFormatError(f"file-time {ticks} out of range") from e


def datetime_to_filetime(value: datetime) -> int:
    # naive datetimes are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - FILETIME_EPOCH) // timedelta(microseconds=1) * 10


# ===============
# Decoding
# ===============

def is_legacy_layout(data: bytes) -> bool:
    """Return True when `data` should be read as a fixed 544-byte record.

    A 544-byte record is only treated as modern when its character count
    at offset 24 declares a path that fills the remaining 516 bytes exactly.
    A legacy record whose path is the single character U+0102 has the same
    bytes at that offset and is therefore read as modern.
    """
    if len(data) != LEGACY_RECORD_SIZE:
        return False
    (count,) = _COUNT.unpack_from(data, PATH_OFFSET_LEGACY)
    return count * 2 != LEGACY_RECORD_SIZE - PATH_OFFSET_MODERN


def _decode_utf16(raw: bytes) -> str:
    try:
        return raw.decode("utf-16-le", errors="surrogatepass")
    except UnicodeDecodeError as e:
        raise RecordFormatError(f"original path is not valid UTF-16: {e}") from e


def decode_record_filetime(data: bytes) -> Tuple[int, str]:
    """Decode a metadata record into (file-time ticks, original_path).

    Raises RecordFormatError for truncated records, impossible character
    counts or an empty path.
    """
    if len(data) < PATH_OFFSET_LEGACY:
        raise RecordFormatError(f"record is {len(data)} bytes, header needs {PATH_OFFSET_LEGACY}")

    _version, _size, ticks = _HEADER.unpack_from(data, 0)
    filetime_to_datetime(ticks)  # range check

    if is_legacy_layout(data):
        path = _decode_utf16(data[PATH_OFFSET_LEGACY:LEGACY_RECORD_SIZE]).split("\x00", 1)[0]
    else:
        if len(data) < PATH_OFFSET_MODERN:
            raise RecordFormatError(f"record is {len(data)} bytes, path length needs {PATH_OFFSET_MODERN}")
        (count,) = _COUNT.unpack_from(data, PATH_OFFSET_LEGACY)
        # count includes the terminating NUL
        end = PATH_OFFSET_MODERN + (count - 1) * 2
        if count < 1 or end > len(data):
            raise RecordFormatError(f"path length {count} does not fit a {len(data)}-byte record")
        path = _decode_utf16(data[PATH_OFFSET_MODERN:end])

    if not path:
        raise RecordFormatError("record has an empty original path")
    return ticks, path


def decode_record(data: bytes) -> Tuple[datetime, str]:
    """Decode a metadata record into (deleted_at, original_path)."""
    ticks, path = decode_record_filetime(data)
    return filetime_to_datetime(ticks), path


def read_record_bytes(metadata_path: str) -> bytes:
    with open(metadata_path, 'rb') as f:
        return f.read()


def read_record(metadata_path: str) -> Tuple[datetime, str]:
    """Read and decode the metadata file at `metadata_path`."""
    return decode_record(read_record_bytes(metadata_path))


# ===============
# Encoding
# ===============

def encode_record(original_path: str, deleted_at: datetime,
                  size: int = 0, legacy: bool = False) -> bytes:
    """Build a metadata record the way the shell writes one.

    `legacy=True` yields the fixed 544-byte version 1 layout, which only
    holds paths of up to 259 UTF-16 code units.
    """
    ticks = datetime_to_filetime(deleted_at)
    encoded = original_path.encode("utf-16-le", errors="surrogatepass")
    if legacy:
        if len(encoded) + 2 > LEGACY_PATH_BYTES:
            raise ValueError(f"path too long for a legacy record: {original_path!r}")
        return _HEADER.pack(LEGACY_VERSION, size, ticks) + encoded.ljust(LEGACY_PATH_BYTES, b"\x00")
    count = len(encoded) // 2 + 1
    return _HEADER.pack(MODERN_VERSION, size, ticks) + _COUNT.pack(count) + encoded + b"\x00\x00"
