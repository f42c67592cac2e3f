# utils.py
from exceptions import FileAccessError


def read_file(path):
    """
    Read the whole file into memory.
    Raises FileAccessError carrying the OS error message on failure.
    """
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        reason = f"{e.strerror} (os error {e.errno})" if e.errno else str(e)
        raise FileAccessError(path, reason) from e


def normalize_timestamp(ts):
    """
    Normalize a SystemTime to strict ISO8601 UTC with trailing Z.
    Years past 9999 are written out in full, None -> None.
    """
    if ts is None:
        return None
    return (
        f"{ts.year:04d}-{ts.month:02d}-{ts.day:02d}"
        f"T{ts.hour:02d}:{ts.minute:02d}:{ts.second:02d}.{ts.milliseconds:03d}Z"
    )
