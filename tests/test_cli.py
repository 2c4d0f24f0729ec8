"""
Tests for the command line entry point
"""

import pytest

from game_atlas.catalog import merge
from game_atlas.constants import Launcher

from conftest import make_candidate, make_executable

import main


@pytest.fixture
async def catalog(store):
    await store.update(lambda records: merge([
        make_candidate("steam_620", "Portal 2", steam_app_id="620"),
        make_candidate("gog_1", "Celeste", Launcher.GOG),
    ], records))
    return store


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])


@pytest.mark.parametrize("argv,expected", [
    (["scan"], None),
    (["scan", "--deep"], True),
    (["scan", "--no-deep"], False),
])
def test_deep_scan_flag(argv, expected):
    assert main.build_parser().parse_args(argv).deep is expected


@pytest.mark.asyncio
async def test_list_and_favorite(catalog, capsys):
    path = str(catalog.path)
    assert await main.main(["--catalog", path, "favorite", "gog_1"]) == 0
    assert await main.main(["--catalog", path, "list", "--favorites"]) == 0

    out = capsys.readouterr().out
    assert "gog_1 added to favorites" in out
    assert "Celeste" in out
    assert "Portal 2" not in out
    assert "1 entries" in out


@pytest.mark.asyncio
async def test_unknown_id_fails_cleanly(catalog):
    assert await main.main(["--catalog", str(catalog.path), "favorite", "steam_1"]) == 1


@pytest.mark.asyncio
async def test_explain_exit_code(store, capsys):
    path = str(store.path)
    assert await main.main(["--catalog", path, "explain", "unins000.exe", r"D:\Games\Hades"]) == 1
    assert "rejected by name_blacklist" in capsys.readouterr().out
    assert await main.main(["--catalog", path, "explain", "Hades.exe", r"D:\Games\Hades"]) == 0


@pytest.mark.asyncio
async def test_scan_folder_add(store, tmp_path, capsys):
    make_executable(tmp_path / "Apps" / "Discord" / "Discord.exe")
    code = await main.main(["--catalog", str(store.path), "scan-folder", str(tmp_path / "Apps"), "--add"])

    assert code == 0
    assert "Catalog now holds 1 entries" in capsys.readouterr().out
    [record] = await store.load()
    assert record.launcher == Launcher.DESKTOP


@pytest.mark.asyncio
async def test_backup_and_restore(catalog, capsys):
    path = str(catalog.path)
    assert await main.main(["--catalog", path, "backup"]) == 0
    [backup] = catalog.list_backups()

    await catalog.clear()
    assert await main.main(["--catalog", path, "restore", str(backup)]) == 0
    assert [r.id for r in await catalog.load()] == ["steam_620", "gog_1"]
    assert "Restored 2 entries" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_backup_without_catalog(store):
    assert await main.main(["--catalog", str(store.path), "backup"]) == 1
