"""Exception types raised by the scan pipeline and the catalog store."""


class GameAtlasError(Exception):
    """Base class for all game_atlas errors."""


class CatalogStoreError(GameAtlasError):
    """The persisted catalog could not be read or written.

    This is the one failure that surfaces to the caller of a scan: losing the
    catalog silently is never acceptable.
    """


class RecordNotFoundError(GameAtlasError, KeyError):
    """No catalog record has the requested id."""


class ScanInProgressError(GameAtlasError):
    """A scan was requested while another one on the same session is running."""


class ScanCancelledError(GameAtlasError):
    """The scan's cancel token was set; nothing was written to the catalog."""


class LookupFailedError(GameAtlasError):
    """Transient failure of the artwork lookup (network error, bad response)."""
