# scanner.py
# Trash-root discovery and streaming pairing of $R payloads with $I records

from __future__ import annotations
import os
import logging
from typing import Callable, Generator, Iterable, List, Optional

import psutil

from errors import NoTrashDirectory, RecordFormatError
from metadata import (
    BACKUP_PREFIX,
    METADATA_PREFIX,
    ParseFailure,
    RecycleBinEntry,
    decode_record_filetime,
    filetime_to_datetime,
    read_record_bytes,
)

logger = logging.getLogger(__name__)

RECYCLE_DIR_NAME = "$Recycle.Bin"

ErrorSink = Callable[[ParseFailure], None]


# ===============
# Discovery
# ===============

def mounted_volumes() -> List[str]:
    """Mount points of the mounted volumes, in the order psutil reports them."""
    return [part.mountpoint for part in psutil.disk_partitions(all=False)]


def trash_root(volume: str, identity: str) -> str:
    return os.path.join(volume, RECYCLE_DIR_NAME, identity)


def discover_roots(identity: str, volumes: Optional[Iterable[str]] = None) -> List[str]:
    """Return every existing trash root for `identity`, one per volume at most.

    `volumes` defaults to the mounted volumes. Raises NoTrashDirectory when
    no volume has a root for the identity.
    """
    if not identity or os.sep in identity or (os.altsep and os.altsep in identity):
        raise ValueError(f"invalid identity {identity!r}")
    if volumes is None:
        volumes = mounted_volumes()

    roots: List[str] = []
    seen = set()
    for volume in volumes:
        candidate = os.path.abspath(trash_root(volume, identity))
        key = os.path.normcase(candidate)
        if key in seen:
            continue
        seen.add(key)
        if os.path.isdir(candidate):
            logger.debug("Found trash root %s", candidate)
            roots.append(candidate)

    if not roots:
        raise NoTrashDirectory(f"no recycle bin for identity {identity!r} on any volume")
    return roots


def walk_files(root: str) -> Generator[str, None, None]:
    """Yield full file paths under `root` (streaming)."""
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            yield os.path.join(dirpath, name)


def payload_size(path: str) -> int:
    """Size in bytes of a file, or of every file below a directory."""
    if not os.path.isdir(path):
        return os.path.getsize(path)
    total = 0
    for file_path in walk_files(path):
        try:
            total += os.path.getsize(file_path)
        except OSError:
            # skip unreadable files
            continue
    return total


# ===============
# Entry catalog (streaming)
# ===============

def backup_names(root: str) -> Generator[str, None, None]:
    """Yield names of $R payloads directly inside `root`, sorted."""
    try:
        names = sorted(os.listdir(root))
    except OSError as e:
        # volume went away after discovery
        logger.warning("Cannot list trash root %s: %s", root, e)
        return
    for name in names:
        if name.startswith(BACKUP_PREFIX):
            yield name


def scan_entries(roots: Iterable[str],
                 on_error: Optional[ErrorSink] = None) -> Generator[RecycleBinEntry, None, None]:
    """Yield a RecycleBinEntry for each decodable $R/$I pair under `roots`.

    Pairs whose $I record is missing, unreadable or malformed are skipped
    and reported to `on_error` as a ParseFailure. The filesystem is
    re-scanned on every call.
    """
    for root in roots:
        for name in backup_names(root):
            suffix = name[len(BACKUP_PREFIX):]
            metadata_path = os.path.join(root, METADATA_PREFIX + suffix)
            try:
                ticks, original_path = decode_record_filetime(read_record_bytes(metadata_path))
                deleted_at = filetime_to_datetime(ticks)
            except (OSError, RecordFormatError) as e:
                logger.warning("Skipping unreadable metadata record %s: %s", metadata_path, e)
                if on_error is not None:
                    on_error(ParseFailure(metadata_path, e))
                continue
            logger.debug("Decoded %s -> %s", metadata_path, original_path)
            yield RecycleBinEntry(
                original_path=original_path,
                deleted_at=deleted_at,
                metadata_path=metadata_path,
                backup_path=os.path.join(root, name),
                filetime=ticks,
            )
