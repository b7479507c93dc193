# recycle.py
# Recycle bin engine: list, restore, permanently delete and empty $Recycle.Bin roots

from __future__ import annotations
import os
import random
import shutil
import string
import logging
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Tuple, Union

import scanner
from errors import InvalidEntry, NoTrashDirectory, NotFound, RestoreConflict
from metadata import (
    BACKUP_PREFIX,
    METADATA_PREFIX,
    ParseFailure,
    RecycleBinEntry,
    datetime_to_filetime,
    encode_record,
)
from scanner import ErrorSink

logger = logging.getLogger(__name__)

SUFFIX_CHARS = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 6


def _remove_path(path: str) -> bool:
    """Delete a file or a whole directory tree. Return False if it was already gone."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        return False
    return True


def _newest(entries: Iterable[RecycleBinEntry]) -> Optional[RecycleBinEntry]:
    # raw ticks break microsecond ties, then the greatest metadata file name wins
    return max(entries,
               key=lambda e: (e.deleted_at, e.filetime, os.path.basename(e.metadata_path)),
               default=None)


class RecycleBin:
    """The recycle bin of one identity across every volume that has one.

    Trash roots are discovered once, at construction. Build a new instance
    to pick up volumes mounted later.
    """

    def __init__(self, identity: str, volumes: Optional[Iterable[str]] = None):
        self.identity = identity
        self.roots: Tuple[str, ...] = tuple(scanner.discover_roots(identity, volumes))
        self._error_handlers: List[ErrorSink] = []

    # ------------- Error channel -------------
    def add_error_handler(self, handler: ErrorSink) -> None:
        """Register `handler` to receive every ParseFailure of every listing."""
        self._error_handlers.append(handler)

    def remove_error_handler(self, handler: ErrorSink) -> None:
        self._error_handlers.remove(handler)

    def _report(self, failure: ParseFailure, on_error: Optional[ErrorSink]) -> None:
        for handler in list(self._error_handlers):
            handler(failure)
        if on_error is not None:
            on_error(failure)

    # ------------- Listing -------------
    def iter_entries(self, on_error: Optional[ErrorSink] = None) -> Iterator[RecycleBinEntry]:
        """Lazily scan every root. Malformed records go to the error handlers and `on_error`."""
        return scanner.scan_entries(self.roots, lambda failure: self._report(failure, on_error))

    def get_entries(self, on_error: Optional[ErrorSink] = None) -> List[RecycleBinEntry]:
        return list(self.iter_entries(on_error))

    def find_latest(self, original_path: Union[str, os.PathLike]) -> RecycleBinEntry:
        """Return the most recently deleted entry for `original_path`."""
        original_path = os.fspath(original_path)
        entry = _newest(e for e in self.iter_entries() if e.original_path == original_path)
        if entry is None:
            raise NotFound(f"no recycle bin entry for {original_path!r}")
        return entry

    # ------------- Validation -------------
    def _is_managed(self, path: str, prefix: str) -> bool:
        if not os.path.basename(path).startswith(prefix):
            return False
        parent = os.path.normcase(os.path.dirname(os.path.abspath(path)))
        return any(parent == os.path.normcase(root) for root in self.roots)

    def _validate(self, entry: RecycleBinEntry) -> None:
        if not (self._is_managed(entry.metadata_path, METADATA_PREFIX)
                and self._is_managed(entry.backup_path, BACKUP_PREFIX)):
            raise InvalidEntry(f"entry {entry.metadata_path!r} is not in a recycle bin of {self.identity!r}")

    # ------------- Restore -------------
    def restore(self, target: Union[RecycleBinEntry, str, os.PathLike]) -> RecycleBinEntry:
        """Move a deleted item back to its original location.

        `target` is an entry, or an original path whose newest entry is used.
        Returns the entry that was restored; it is stale afterwards.
        """
        entry = self.find_latest(target) if isinstance(target, (str, os.PathLike)) else target
        self._validate(entry)

        destination = entry.original_path
        if os.path.lexists(destination):
            raise RestoreConflict(f"cannot restore {entry.backup_path!r}: {destination!r} already exists")

        parent = os.path.dirname(destination)
        if parent and not os.path.isdir(parent):
            logger.info("Recreating missing directory %s", parent)
            os.makedirs(parent, exist_ok=True)

        # same volume, so this is a rename and keeps timestamps and attributes
        shutil.move(entry.backup_path, destination)
        logger.info("Restored %s", destination)

        try:
            os.remove(entry.metadata_path)
        except OSError as e:
            # payload is back; the orphaned record goes away on the next empty()
            logger.warning("Restored %s but could not remove %s: %s", destination, entry.metadata_path, e)
        return entry

    # ------------- Deletion -------------
    def delete_permanently(self, entry: RecycleBinEntry) -> None:
        """Remove an entry's payload and metadata record. Irreversible."""
        self._validate(entry)
        if not _remove_path(entry.backup_path):
            logger.debug("Payload %s was already gone", entry.backup_path)
        _remove_path(entry.metadata_path)
        logger.info("Permanently deleted %s (%s)", entry.original_path, entry.suffix)

    def empty(self) -> int:
        """Delete everything directly inside every root. Return the number of items removed."""
        removed = 0
        for root in self.roots:
            try:
                names = os.listdir(root)
            except OSError as e:
                # volume went away after discovery
                logger.warning("Cannot empty trash root %s: %s", root, e)
                continue
            for name in names:
                if _remove_path(os.path.join(root, name)):
                    removed += 1
            logger.info("Emptied %s", root)
        return removed

    # ------------- Send to recycle bin -------------
    def _root_for(self, path: str) -> str:
        best: Optional[str] = None
        best_len = -1
        for root in self.roots:
            volume = os.path.dirname(os.path.dirname(root))
            try:
                inside = os.path.commonpath([os.path.normcase(volume), os.path.normcase(path)]) == os.path.normcase(volume)
            except ValueError:
                # different drives
                continue
            if inside and len(volume) > best_len:
                best, best_len = root, len(volume)
        if best is None:
            raise NoTrashDirectory(f"no recycle bin of {self.identity!r} on the volume of {path!r}")
        return best

    def _new_suffix(self, root: str, extension: str) -> str:
        while True:
            suffix = "".join(random.choices(SUFFIX_CHARS, k=SUFFIX_LENGTH)) + extension
            if not (os.path.lexists(os.path.join(root, BACKUP_PREFIX + suffix))
                    or os.path.lexists(os.path.join(root, METADATA_PREFIX + suffix))):
                return suffix

    def send(self, path: str) -> RecycleBinEntry:
        """Move `path` into the recycle bin of its volume and write its $I record."""
        source = os.path.abspath(path)
        if not os.path.lexists(source):
            raise NotFound(f"{source!r} does not exist")

        root = self._root_for(source)
        suffix = self._new_suffix(root, os.path.splitext(os.path.basename(source))[1])
        metadata_path = os.path.join(root, METADATA_PREFIX + suffix)
        backup_path = os.path.join(root, BACKUP_PREFIX + suffix)

        deleted_at = datetime.now(timezone.utc)
        filetime = datetime_to_filetime(deleted_at)
        record = encode_record(source, deleted_at, size=scanner.payload_size(source))
        with open(metadata_path, 'wb') as f:
            f.write(record)
        try:
            shutil.move(source, backup_path)
        except OSError:
            os.remove(metadata_path)
            raise
        logger.info("Moved %s to recycle bin as %s", source, backup_path)
        return RecycleBinEntry(source, deleted_at, metadata_path, backup_path, filetime)
