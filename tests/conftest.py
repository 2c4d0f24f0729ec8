"""
Shared fixtures.

GAME_ATLAS_HOME is pointed at a throwaway directory before game_atlas is
imported, so the config file, the log file and the default catalog never
touch the real per-user data directory.
"""

import os
import tempfile

os.environ.setdefault("GAME_ATLAS_HOME", tempfile.mkdtemp(prefix="game-atlas-tests-"))

from pathlib import Path  # noqa: E402

import pytest  # noqa: E402

from game_atlas.constants import ItemType, Launcher  # noqa: E402
from game_atlas.database import CatalogStore  # noqa: E402
from game_atlas.models import CandidateEntry  # noqa: E402

MB = 1024 * 1024


def make_executable(path: Path, size: int = MB) -> Path:
    """Create a sparse file of the given size (only st_size matters to the walker)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.truncate(size)
    return path


def make_candidate(id, name, launcher=Launcher.STEAM, **fields) -> CandidateEntry:
    item_type = fields.pop("item_type", None)
    if item_type is None:
        item_type = ItemType.APP if launcher in (Launcher.DESKTOP, Launcher.MANUAL) else ItemType.GAME
    return CandidateEntry(id=id, name=name, launcher=launcher, item_type=item_type, **fields)


@pytest.fixture
def store(tmp_path):
    return CatalogStore(tmp_path / "games.json")
