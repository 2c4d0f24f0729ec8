"""
Game Atlas - command line entry point
Scans installed launchers and folders into one catalog
"""

import sys
import asyncio
import argparse
from contextlib import AsyncExitStack
from pathlib import Path

from game_atlas import __version__
from game_atlas.artwork import SteamStoreLookup
from game_atlas.config import config_manager
from game_atlas.constants import LAUNCHER_DISPLAY_NAMES
from game_atlas.database import CatalogStore
from game_atlas.exceptions import GameAtlasError
from game_atlas.launch import LaunchTarget, build_launch_target, build_store_uri, open_target
from game_atlas.logger import setup_logger
from game_atlas.pipeline import ScanSession
from game_atlas.playtime import ProcessWatcher
from game_atlas.stats import build_stats_providers, refresh_stats

logger = setup_logger()


async def print_progress(current: int, total: int, message: str):
    logger.info(f"[{current}/{total}] {message}")


async def cmd_scan(args, store: CatalogStore) -> int:
    async with AsyncExitStack() as stack:
        lookup = None
        if config_manager.is_artwork_enrichment_enabled() and not args.no_artwork:
            lookup = await stack.enter_async_context(SteamStoreLookup())

        session = ScanSession(
            store,
            lookup=lookup,
            deep_scan=args.deep,
            progress_callback=print_progress,
        )
        records = await session.run_full_scan()

    report = session.last_report
    for source in report.sources:
        detail = f" ({source.error})" if source.error else ""
        print(f"  {source.source:<18} {source.status:<10} {source.candidate_count}{detail}")
    print(f"{report.summary()}: {report.inserted} new, {report.updated} updated, {len(records)} total")
    return 0


async def cmd_scan_folder(args, store: CatalogStore) -> int:
    session = ScanSession(store, adapters=[], deep_scan=False)
    candidates = await session.run_folder_scan(Path(args.folder), args.max_depth)
    for candidate in candidates:
        print(f"  {candidate.name:<40} {candidate.executable_path}")
    print(f"{len(candidates)} candidates found in {args.folder}")

    if args.add and candidates:
        records = await session.add_candidates(candidates)
        print(f"Catalog now holds {len(records)} entries")
    return 0


async def cmd_explain(args, store: CatalogStore) -> int:
    session = ScanSession(store, adapters=[], deep_scan=False)
    verdict = session.explain(args.file_name, args.directory)
    status = "accepted" if verdict.accepted else "rejected"
    print(f"{status} by {verdict.rule}: {verdict.reason}")
    return 0 if verdict.accepted else 1


async def cmd_list(args, store: CatalogStore) -> int:
    records = await store.load()
    if args.favorites:
        records = [r for r in records if r.is_favorite]
    for record in sorted(records, key=lambda r: r.name.lower()):
        star = "*" if record.is_favorite else " "
        minutes = record.play_time.total_minutes if record.play_time else 0
        print(f"{star} {record.name:<40} {LAUNCHER_DISPLAY_NAMES[record.launcher]:<16} {minutes:>6}m  {record.id}")
    print(f"{len(records)} entries")
    return 0


async def cmd_favorite(args, store: CatalogStore) -> int:
    is_favorite = await store.toggle_favorite(args.id)
    print(f"{args.id} {'added to' if is_favorite else 'removed from'} favorites")
    return 0


async def cmd_launch(args, store: CatalogStore) -> int:
    record = await store.get(args.id)
    if args.store:
        uri = build_store_uri(record)
        if uri is None:
            print(f"{record.name} has no store page")
            return 1
        await open_target(LaunchTarget("uri", uri))
        return 0

    target = build_launch_target(record)
    if target is None:
        print(f"Don't know how to launch {record.name}")
        return 1
    await open_target(target)

    if args.track:
        watcher = ProcessWatcher(store)
        if watcher.track(record):
            print(f"Tracking playtime for {record.name}, press Ctrl+C to stop")
            try:
                await watcher.run()
            finally:
                watcher.stop()
    return 0


async def cmd_stats(args, store: CatalogStore) -> int:
    providers = build_stats_providers()
    try:
        updated = await refresh_stats(store, providers)
    finally:
        for provider in set(providers.values()):
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
    print(f"Stats refreshed for {updated} entries")
    return 0


async def cmd_backup(args, store: CatalogStore) -> int:
    backup = await store.create_backup()
    if backup is None:
        print("Nothing to back up yet")
        return 1
    print(f"Backup written to {backup}")
    return 0


async def cmd_list_backups(args, store: CatalogStore) -> int:
    for backup in store.list_backups():
        print(backup)
    return 0


async def cmd_restore(args, store: CatalogStore) -> int:
    records = await store.restore_backup(Path(args.backup))
    print(f"Restored {len(records)} entries from {args.backup}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="game-atlas", description="Unified game library catalog")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--catalog", help="Catalog file (defaults to the app data directory)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Scan every launcher and merge into the catalog")
    scan.add_argument(
        "--deep", action=argparse.BooleanOptionalAction, default=None,
        help="Include or skip the deep drive scan (defaults to the DeepScan setting)",
    )
    scan.add_argument("--no-artwork", action="store_true", help="Skip artwork lookups")
    scan.set_defaults(handler=cmd_scan)

    scan_folder = subparsers.add_parser("scan-folder", help="Find executables in one folder")
    scan_folder.add_argument("folder")
    scan_folder.add_argument("--max-depth", type=int, default=None)
    scan_folder.add_argument("--add", action="store_true", help="Add the results to the catalog")
    scan_folder.set_defaults(handler=cmd_scan_folder)

    explain = subparsers.add_parser("explain", help="Show why an executable would be kept or excluded")
    explain.add_argument("file_name")
    explain.add_argument("directory")
    explain.set_defaults(handler=cmd_explain)

    list_cmd = subparsers.add_parser("list", help="List catalog entries")
    list_cmd.add_argument("--favorites", action="store_true")
    list_cmd.set_defaults(handler=cmd_list)

    favorite = subparsers.add_parser("favorite", help="Toggle an entry's favorite flag")
    favorite.add_argument("id")
    favorite.set_defaults(handler=cmd_favorite)

    launch = subparsers.add_parser("launch", help="Launch an entry through its launcher")
    launch.add_argument("id")
    launch.add_argument("--store", action="store_true", help="Open the store page instead")
    launch.add_argument("--track", action="store_true", help="Track playtime until interrupted")
    launch.set_defaults(handler=cmd_launch)

    stats = subparsers.add_parser("stats", help="Refresh playtime and achievements from launchers")
    stats.set_defaults(handler=cmd_stats)

    backup = subparsers.add_parser("backup", help="Back up the catalog")
    backup.set_defaults(handler=cmd_backup)

    list_backups = subparsers.add_parser("list-backups", help="List catalog backups")
    list_backups.set_defaults(handler=cmd_list_backups)

    restore = subparsers.add_parser("restore", help="Restore the catalog from a backup")
    restore.add_argument("backup")
    restore.set_defaults(handler=cmd_restore)

    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    store = CatalogStore(Path(args.catalog) if args.catalog else None)
    try:
        return await args.handler(args, store)
    except GameAtlasError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


def run():
    logger.info(f"Game Atlas {__version__} starting...")
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
