# parsers/recycle_parser.py
"""
Decoder for Windows 10+ Recycle Bin $I metadata files.

Layout (all little-endian):
  - 8 bytes: header / version (uint64, not validated)
  - 8 bytes: original file size (uint64)
  - 8 bytes: deletion time FILETIME, low uint32 then high uint32
  - 4 bytes: file name length (uint32)
  - remainder: original path in UTF-16-LE (null-terminated)
"""

import os
import struct
import logging
from dataclasses import dataclass
from typing import NamedTuple, List, Dict, Any

from exceptions import InsufficientData, FileAccessError
from utils import read_file, normalize_timestamp

logger = logging.getLogger(__name__)

# 100-ns ticks per millisecond / milliseconds per day
TICKS_PER_MS = 10_000
MS_PER_DAY = 86_400_000
# days between 1601-01-01 and 1970-01-01
DAYS_1601_TO_1970 = 134_774


class SystemTime(NamedTuple):
    """Calendar breakdown of a FILETIME, always UTC."""
    year: int
    month: int
    day_of_week: int  # 0 = Sunday
    day: int
    hour: int
    minute: int
    second: int
    milliseconds: int


def _civil_from_days(days):
    # days since 1970-01-01 -> (year, month, day), proleptic Gregorian
    z = days + 719_468
    era = z // 146_097
    doe = z - era * 146_097
    yoe = (doe - doe // 1460 + doe // 36_524 - doe // 146_096) // 365
    doy = doe - (365 * yoe + yoe // 4 - yoe // 100)
    mp = (5 * doy + 2) // 153
    day = doy - (153 * mp + 2) // 5 + 1
    month = mp + 3 if mp < 10 else mp - 9
    year = yoe + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


def filetime_to_system_time(ticks: int) -> SystemTime:
    """
    Convert a FILETIME tick count (100-ns intervals since 1601-01-01 UTC)
    into calendar fields without calling into the host OS.
    """
    total_ms = ticks // TICKS_PER_MS
    days, ms_of_day = divmod(total_ms, MS_PER_DAY)
    year, month, day = _civil_from_days(days - DAYS_1601_TO_1970)

    secs_of_day, milliseconds = divmod(ms_of_day, 1000)
    hour, rem = divmod(secs_of_day, 3600)
    minute, second = divmod(rem, 60)

    # 1601-01-01 was a Monday
    day_of_week = (days + 1) % 7

    return SystemTime(year, month, day_of_week, day, hour, minute, second, milliseconds)


@dataclass(frozen=True)
class Record:
    """
    A decoded $I record. `calendar_time` is derived from `deletion_time`
    on every access and never stored.
    """
    header: int
    file_size: int
    deletion_time: int
    name_length: int
    file_name: str

    @property
    def calendar_time(self) -> SystemTime:
        return filetime_to_system_time(self.deletion_time)


class _Cursor:
    """Sequential little-endian reader over a byte buffer."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, fmt: str, field: str) -> int:
        size = struct.calcsize(fmt)
        if self.offset + size > len(self.data):
            raise InsufficientData(field, self.offset, size, len(self.data) - self.offset)
        (value,) = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += size
        return value

    def rest(self) -> bytes:
        out = self.data[self.offset:]
        self.offset = len(self.data)
        return out


def _decode_utf16_lossy(raw: bytes) -> str:
    # drop an incomplete trailing code unit
    if len(raw) % 2:
        raw = raw[:-1]
    return raw.decode("utf-16-le", errors="replace")


def decode(buffer: bytes) -> Record:
    """
    Decode one $I record from `buffer`.

    Raises InsufficientData when the fixed header is cut short. The name
    region is everything after the header; `name_length` is kept as read and
    does not bound it. Invalid UTF-16 becomes U+FFFD rather than an error.
    """
    cur = _Cursor(bytes(buffer))
    header = cur.read("<Q", "header")
    file_size = cur.read("<Q", "file_size")
    low = cur.read("<I", "deletion_time_low")
    high = cur.read("<I", "deletion_time_high")
    name_length = cur.read("<I", "name_length")
    file_name = _decode_utf16_lossy(cur.rest()).rstrip("\x00")

    return Record(
        header=header,
        file_size=file_size,
        deletion_time=(high << 32) | low,
        name_length=name_length,
        file_name=file_name,
    )


def format_record(record: Record) -> str:
    st = record.calendar_time
    return (
        f"{record.file_name} | Deleted on "
        f"{st.day}/{st.month}/{st.year} {st.hour}:{st.minute}:{st.second} UTC"
    )


def record_to_row(path, record: Record) -> Dict[str, Any]:
    """Flatten a Record into the artifact row used by exports and the web API."""
    return {
        "artifact_type": "recycle_i",
        "name": os.path.basename(path),
        "path": path,
        "timestamp": normalize_timestamp(record.calendar_time),
        "file_size": record.file_size,
        "original_path": record.file_name,
        "line": format_record(record),
    }


def parse_i_file(path) -> List[Dict[str, Any]]:
    """
    Parse a $I file from disk. Returns a list with a single row on success,
    an empty list when the file can't be read or decoded.
    """
    try:
        record = decode(read_file(path))
    except (FileAccessError, InsufficientData) as e:
        logger.warning(f"Failed to parse $I file {path}: {e}")
        return []
    return [record_to_row(path, record)]
