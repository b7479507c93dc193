import os
from datetime import datetime, timezone

import pytest

from metadata import encode_record
from recycle import RecycleBin
from scanner import trash_root

SID = "S-1-5-21-1004336348-1177238915-682003330-1001"


@pytest.fixture
def volume(tmp_path):
    vol = tmp_path / "vol"
    vol.mkdir()
    return vol


@pytest.fixture
def root(volume):
    path = trash_root(str(volume), SID)
    os.makedirs(path)
    return path


@pytest.fixture
def bin_(root, volume):
    return RecycleBin(SID, volumes=[str(volume)])


@pytest.fixture
def plant(root):
    """Write a $R payload and its $I record as if the shell had deleted a file."""
    def _plant(suffix, original_path, deleted_at=None, content="test", legacy=False):
        if deleted_at is None:
            deleted_at = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        backup = os.path.join(root, "$R" + suffix)
        with open(backup, "w", encoding="utf-8") as f:
            f.write(content)
        with open(os.path.join(root, "$I" + suffix), "wb") as f:
            f.write(encode_record(str(original_path), deleted_at, size=len(content), legacy=legacy))
        return backup
    return _plant
