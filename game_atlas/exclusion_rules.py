"""
Exclusion Rules
Data tables consumed by the name/path classifier.

Every table entry pairs a pattern with the reason it rejects (or accepts) a
candidate, so the rule set can grow without touching classifier logic and
each rule can be tested on its own. Path fragments are matched against the
lower-cased directory with forward slashes, wrapped in leading and trailing
"/" so that segment boundaries can be expressed as "/name/".
"""

import re
from typing import NamedTuple, Pattern, Tuple


class ExclusionRule(NamedTuple):
    pattern: Pattern
    reason: str


def _rules(reason: str, *patterns: str) -> Tuple[ExclusionRule, ...]:
    return tuple(ExclusionRule(re.compile(p, re.IGNORECASE), reason) for p in patterns)


# =============================================================================
# Path rules
# =============================================================================

# OS installation, component store, system data, recycle bin, driver store.
# The configured SystemRoot is added by the classifier at runtime.
SYSTEM_PATH_FRAGMENTS: Tuple[str, ...] = (
    ":/windows/",
    "/windows/system32/",
    "/windows/syswow64/",
    "/windows/winsxs/",
    "/windows/servicing/",
    "/system32/",
    "/syswow64/",
    "/winsxs/",
    "/driverstore/",
    "/$recycle.bin/",
    "/recycler/",
    "/system volume information/",
    "/windows.old/",
    "/$windows.~bt/",
    "/$windows.~ws/",
    "/programdata/microsoft/",
    "/appdata/local/microsoft/",
    "/appdata/local/packages/",
    "/appdata/local/temp/",
    "/program files/windowsapps/",
    "/program files/common files/",
    "/program files (x86)/common files/",
    "/program files/windows defender/",
    "/program files/internet explorer/",
    "/program files (x86)/internet explorer/",
    "/program files (x86)/microsoft/edge/",
)

# Store-packaged framework components live in GUID-named folders or in
# opaque hash-named folders under a first-party publisher
GUID_SEGMENT = re.compile(r"/[{(]?[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-", re.IGNORECASE)
OPAQUE_SEGMENT = re.compile(
    r"(?<![a-z0-9])(?=[a-z0-9]*\d)(?=[a-z0-9]*[a-z])[a-z0-9]{13,}(?![a-z0-9])",
    re.IGNORECASE,
)
FIRST_PARTY_PUBLISHER_MARKERS: Tuple[str, ...] = ("microsoft",)

# Non-content subfolders shipped next to games
UTILITY_FOLDER_RULES = (
    _rules(
        "redistributable folder",
        r"/_?commonredist/",
        r"/redist(?:ributables?)?/",
        r"/_redist/",
        r"/directx/",
        r"/vcredist[^/]*/",
        r"/dotnet(?:fx)?[^/]*/",
        r"/physx/",
    )
    + _rules(
        "support tools folder",
        r"/__installer/",
        r"/prereq(?:uisite)?s?/",
    )
    # Generic folder names that also appear as library roots; only the
    # folder holding the executable counts
    + _rules(
        "support tools folder",
        r"/support/$",
        r"/tools/$",
        r"/installers?/$",
        r"/_?setup(?:files)?/$",
    )
    + _rules(
        "driver bundle folder",
        r"/drivers?/$",
    )
    + _rules(
        "anti-cheat folder",
        r"/easyanticheat(?:_eos)?/",
        r"/battleye/",
        r"/punkbuster/",
    )
)

# Launcher-managed game-content folders, trusted enough to skip the
# numeric/alphabetic heuristics
TRUSTED_CONTENT_FRAGMENTS: Tuple[str, ...] = (
    "/steamapps/common/",
    "/epic games/",
    "/gog games/",
    "/gog galaxy/games/",
    "/ubisoft game launcher/games/",
    "/ea games/",
    "/xboxgames/",
)


# =============================================================================
# Name rules (file name without extension)
# =============================================================================

NAME_BLACKLIST: Tuple[ExclusionRule, ...] = (
    _rules(
        "installer or uninstaller",
        r"^unins\d*$",
        r"uninstall",
        r"^setup",
        r"setup(?:_?x?(?:64|86))?$",
        r"install",
        r"^instmsi",
        r"^msiexec",
    )
    + _rules(
        "redistributable",
        r"vc_?redist",
        r"^vcrun",
        r"dotnet",
        r"^ndp\d",
        r"^dxsetup$",
        r"^dxwebsetup$",
        r"physx",
        r"redist",
        r"directx",
        r"^oalinst$",
        r"^ue\dprereq",
        r"prereq",
    )
    + _rules(
        "patcher or updater",
        r"update",
        r"patch",
        r"^upgrade",
    )
    + _rules(
        "crash reporter or diagnostics",
        r"crash",
        r"report",
        r"diagnos",
        r"troubleshoot",
        r"debug",
        r"^dump",
        r"^bugsplat",
    )
    + _rules(
        "helper or service process",
        r"helper",
        r"service",
        r"daemon",
        r"agent$",
        r"broker",
        r"server$",
        r"^host$",
        r"worker",
        r"^svc",
        r"svc$",
    )
    + _rules(
        "anti-cheat or security tool",
        r"anti-?cheat",
        r"battleye",
        r"^be(?:service|launcher)",
        r"easyanticheat",
        r"vanguard",
        r"security",
        r"protection",
        r"protect$",
        r"scanner",
        r"antivirus",
        r"firewall",
        r"defender",
    )
    + _rules(
        "overlay or telemetry agent",
        r"overlay",
        r"telemetry",
        r"analytics",
        r"^cefprocess",
        r"^cef",
        r"webhelper",
        r"webview",
        r"renderer$",
    )
    + _rules(
        "system utility",
        r"^edge",
        r"^msedge",
        r"cortana",
        r"searchui",
        r"^dwm$",
        r"^explorer$",
        r"^taskmgr$",
        r"^regedit$",
        r"vbox",
        r"vmware",
        r"^conhost$",
        r"^rundll",
    )
    + _rules(
        "documentation",
        r"manual",
        r"readme",
        r"license",
        r"^eula",
    )
    + _rules(
        "curated exclusion",
        r"config",
        r"settings$",
        r"handler",
        r"dialog",
        r"client$",
        r"benchmark",
        r"bootstrap",
        r"register",
        r"activation",
        r"^launchpad",
        r"^sandbox",
        r"^test",
        r"^x(?:86|64)$",
    )
    + _rules(
        "noise",
        r"_{3,}",
        r"-{3,}",
        r"\$\{",
    )
)

# Synthetic installer artifacts
OPAQUE_NAME_RULES: Tuple[ExclusionRule, ...] = _rules(
    "opaque identifier",
    r"^[{(]?[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}[)}]?$",
    r"^(?=.*\d)[0-9a-f]{8,}$",
    r"^\d{6,}$",
)

GENERIC_STEMS = frozenset({"app", "main", "run", "start", "launcher", "game"})

# Non-game tools that otherwise look like plausible titles
TOOL_KEYWORDS: Tuple[ExclusionRule, ...] = (
    _rules(
        "archiver",
        r"7z",
        r"7zip",
        r"winrar",
        r"^rar$",
        r"^unrar",
        r"winzip",
        r"peazip",
    )
    + _rules(
        "interpreter or runtime",
        r"python",
        r"^pythonw?\d*$",
        r"^javaw?$",
        r"^java",
        r"^node$",
        r"^perl",
        r"^ruby",
        r"^php",
        r"^lua\d*$",
        r"^cmd$",
        r"powershell",
        r"^pwsh$",
        r"^bash$",
    )
    + _rules(
        "editor or viewer",
        r"notepad",
        r"editor",
        r"viewer",
        r"converter",
        r"^wordpad$",
        r"^mspaint$",
        r"^calc$",
    )
)

# Known-good applications the user is likely to want tracked even though
# they fail the generic heuristics. Substring match unless listed as exact.
WHITELIST_KEYWORDS: Tuple[str, ...] = (
    "spotify",
    "discord",
    "slack",
    "vscode",
    "chrome",
    "firefox",
    "chatgpt",
    "telegram",
    "whatsapp",
    "zoom",
    "teams",
    "obs64",
    "obs32",
    "photoshop",
    "illustrator",
    "premiere",
    "aftereffects",
    "afterfx",
    "notion",
    "obsidian",
    "blender",
    "unity",
    "unreal",
)
WHITELIST_EXACT = frozenset({"code", "obs"})
