# exceptions.py
"""
Exception types raised while reading and decoding $I files.
"""


class InfotrashError(Exception):
    """Base exception for all infotrash errors."""
    pass


class FileAccessError(InfotrashError):
    """Raised when an input file is missing, unreadable or not permitted."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read file {path}: {reason}")


class InsufficientData(InfotrashError):
    """Raised when a buffer ends before the fixed $I header is complete."""

    def __init__(self, field, offset, needed, available):
        self.field = field
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f"not enough data for {field} at offset {offset}: "
            f"need {needed} bytes, {available} available"
        )
