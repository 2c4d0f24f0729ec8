from enum import StrEnum


class Launcher(StrEnum):
    STEAM = "steam"
    EPIC = "epic"
    XBOX = "xbox"
    EA = "ea"
    UBISOFT = "ubisoft"
    GOG = "gog"
    DESKTOP = "desktop"
    MANUAL = "manual"


class ItemType(StrEnum):
    GAME = "game"
    APP = "app"


class StatsProvenance(StrEnum):
    LAUNCHER = "launcher"
    ATLAS = "atlas"
    UNKNOWN = "unknown"


# Richest metadata source first; used when the same title is found twice
LAUNCHER_PRIORITY = (
    Launcher.STEAM,
    Launcher.EPIC,
    Launcher.XBOX,
    Launcher.EA,
    Launcher.UBISOFT,
    Launcher.GOG,
    Launcher.DESKTOP,
    Launcher.MANUAL,
)

LAUNCHER_RANK = {launcher: rank for rank, launcher in enumerate(LAUNCHER_PRIORITY)}

# Category seeded onto a record the first time it enters the catalog
LAUNCHER_CATEGORY_MAP = {
    Launcher.STEAM: "Steam",
    Launcher.EPIC: "Epic Games",
    Launcher.XBOX: "Xbox",
    Launcher.EA: "EA App",
    Launcher.UBISOFT: "Ubisoft Connect",
    Launcher.GOG: "GOG",
    Launcher.DESKTOP: "Desktop Apps",
    Launcher.MANUAL: "Uncategorized",
}

LAUNCHER_DISPLAY_NAMES = {
    Launcher.STEAM: "Steam",
    Launcher.EPIC: "Epic Games",
    Launcher.XBOX: "Xbox",
    Launcher.EA: "EA App",
    Launcher.UBISOFT: "Ubisoft Connect",
    Launcher.GOG: "GOG Galaxy",
    Launcher.DESKTOP: "Folder scan",
    Launcher.MANUAL: "Deep scan",
}

FILESYSTEM_LAUNCHERS = frozenset({Launcher.DESKTOP, Launcher.MANUAL})


def default_item_type(launcher: Launcher) -> ItemType:
    """Launcher-sourced entries are games, filesystem finds are apps."""
    if launcher in FILESYSTEM_LAUNCHERS:
        return ItemType.APP
    return ItemType.GAME
