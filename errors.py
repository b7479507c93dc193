# errors.py
# Exceptions raised by the recycle bin engine

from __future__ import annotations


class RecycleBinError(Exception):
    """Base class for every error raised by this package."""


class NoTrashDirectory(RecycleBinError):
    """No trash root exists for the identity on any volume."""


class RecordFormatError(RecycleBinError, ValueError):
    """A metadata record is truncated or declares an impossible path."""


class InvalidEntry(RecycleBinError, ValueError):
    """An entry's files are not inside a managed trash root."""


class NotFound(RecycleBinError, LookupError):
    pass


class RestoreConflict(RecycleBinError, FileExistsError):
    pass


class SettingsError(RecycleBinError):
    pass
