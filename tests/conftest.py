import struct

import pytest

# 2020-01-01 00:00:00 UTC
NEW_YEAR_2020 = 132223104000000000


def build_i_record(name="C:\\Users\\me\\file.txt", ticks=NEW_YEAR_2020, size=1234,
                   header=2, name_length=None, raw_name=None):
    """Assemble the bytes of a Windows 10 $I file."""
    if raw_name is None:
        raw_name = (name + "\x00").encode("utf-16-le")
    if name_length is None:
        # byte count of the encoded name, terminator included
        name_length = len(raw_name)
    return (
        struct.pack("<QQII", header, size, ticks & 0xFFFFFFFF, ticks >> 32)
        + struct.pack("<I", name_length)
        + raw_name
    )


@pytest.fixture
def i_record():
    return build_i_record


@pytest.fixture
def recycle_bin(tmp_path):
    """A fake $Recycle.Bin with two $I files, their $R pair and a short $I file."""
    sid = tmp_path / "$Recycle.Bin" / "S-1-5-21-1000"
    sid.mkdir(parents=True)
    (sid / "$IABC123.txt").write_bytes(build_i_record("C:\\docs\\notes.txt", size=10))
    (sid / "$RABC123.txt").write_bytes(b"deleted content")
    # 2021-06-15 12:30:45 UTC
    (sid / "$IDEF456.jpg").write_bytes(build_i_record("C:\\pics\\cat.jpg", ticks=132682338450000000, size=2048))
    (sid / "$IBROKEN.bin").write_bytes(b"\x02\x00\x00")
    (sid / "desktop.ini").write_bytes(b"[.ShellClassInfo]")
    return tmp_path / "$Recycle.Bin"
