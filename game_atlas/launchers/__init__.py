from .base import LauncherAdapter
from .ea import EAAdapter
from .epic import EpicAdapter
from .gog import GogAdapter
from .steam import SteamAdapter
from .ubisoft import UbisoftAdapter
from .xbox import XboxAdapter


def default_adapters():
    """One adapter per supported launcher, in launcher priority order."""
    return [
        SteamAdapter(),
        EpicAdapter(),
        XboxAdapter(),
        EAAdapter(),
        UbisoftAdapter(),
        GogAdapter(),
    ]


__all__ = [
    "LauncherAdapter",
    "SteamAdapter",
    "EpicAdapter",
    "XboxAdapter",
    "EAAdapter",
    "UbisoftAdapter",
    "GogAdapter",
    "default_adapters",
]
