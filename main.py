# main.py
# recyclebin – command-line front end around recycle.py

from __future__ import annotations
import os
import sys
import argparse
import logging
from typing import List, Optional

import settings as settings_mod
from errors import RecycleBinError
from metadata import ParseFailure
from recycle import RecycleBin

APP_TITLE = "recyclebin"

logger = logging.getLogger(__name__)


def _report_failure(failure: ParseFailure) -> None:
    print(f"[!] Unreadable record {failure.metadata_path}: {failure.cause}", file=sys.stderr)


# ------------- Commands -------------
def cmd_list(bin_: RecycleBin) -> int:
    entries = bin_.get_entries(on_error=_report_failure)
    if not entries:
        print("[*] Recycle bin is empty.")
        return 0

    print(f"Found {len(entries)} item(s):\n")
    for i, entry in enumerate(sorted(entries, key=lambda e: e.deleted_at), start=1):
        print(f"{i:>4}. {entry.original_path}")
        print(f"     Deleted  : {entry.deleted_at.astimezone().isoformat(timespec='seconds')}")
        print(f"     Stored as: {entry.backup_path}")
        print()
    return 0


def cmd_restore(bin_: RecycleBin, path: str) -> int:
    entry = bin_.restore(os.path.abspath(path))
    print(f"[+] Restored {entry.original_path}")
    return 0


def cmd_delete(bin_: RecycleBin, path: str, dry_run: bool) -> int:
    entry = bin_.find_latest(os.path.abspath(path))
    if dry_run:
        print(f"[DRY RUN] Would permanently delete {entry.original_path} ({entry.backup_path}).")
        print("Re-run with --force to delete it.")
        return 0
    bin_.delete_permanently(entry)
    print(f"[+] Permanently deleted {entry.original_path}")
    return 0


def cmd_empty(bin_: RecycleBin, dry_run: bool) -> int:
    if dry_run:
        print(f"[DRY RUN] Would empty {len(bin_.roots)} recycle bin folder(s):")
        for root in bin_.roots:
            print(f" - {root}")
        print("Re-run with --force to actually empty.")
        return 0
    removed = bin_.empty()
    print(f"[+] Emptied recycle bin ({removed} item(s) removed).")
    return 0


def cmd_config(args: argparse.Namespace, current: settings_mod.Settings) -> int:
    if args.sid:
        current.identity = args.sid
    if args.volume:
        current.volumes = list(args.volume)
    settings_mod.save_settings(current, args.settings)
    print(f"[+] Saved settings to {args.settings}")
    return 0


# ------------- Entry point -------------
def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog=APP_TITLE, description="List, restore, delete or empty $Recycle.Bin items.")
    ap.add_argument("--settings", default=settings_mod.SETTINGS_FILE, help="Settings file (JSON)")
    ap.add_argument("--sid", help="Identity (security identifier) whose recycle bin to use")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="Show items in the recycle bin")

    r = sub.add_parser("restore", help="Restore the newest item deleted from PATH")
    r.add_argument("path")

    d = sub.add_parser("delete", help="Permanently delete the newest item deleted from PATH")
    d.add_argument("path")
    d.add_argument("--force", action="store_true", help="Actually delete (otherwise dry-run)")

    e = sub.add_parser("empty", help="Empty the recycle bin (permanent)")
    e.add_argument("--force", action="store_true", help="Actually empty (otherwise dry-run)")

    c = sub.add_parser("config", help="Save --sid and volumes as defaults")
    c.add_argument("--volume", action="append", help="Volume root to search (repeatable)")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        current = settings_mod.load_settings(args.settings)
    except RecycleBinError as e:
        print(f"[!] {e}", file=sys.stderr)
        return 1

    level = logging.DEBUG if args.verbose else getattr(logging, current.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")

    if args.cmd == "config":
        return cmd_config(args, current)

    identity = args.sid or current.identity
    if not identity:
        print("[!] No identity given: pass --sid or set 'identity' in the settings file.", file=sys.stderr)
        return 2

    try:
        bin_ = RecycleBin(identity, current.volumes or None)
        if args.cmd == "list":
            return cmd_list(bin_)
        if args.cmd == "restore":
            return cmd_restore(bin_, args.path)
        if args.cmd == "delete":
            return cmd_delete(bin_, args.path, dry_run=not args.force)
        if args.cmd == "empty":
            return cmd_empty(bin_, dry_run=not args.force)
    except (RecycleBinError, ValueError) as e:
        logger.debug("Command %s failed", args.cmd, exc_info=True)
        print(f"[!] {e}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
