"""
Error taxonomy for the live album reconciliation engine.

Every error carries a stable ``code`` so tool responses can expose a
machine-readable reason next to the human-readable message.
"""


class LiveAlbumError(Exception):
    """Base exception for live and smart album operations."""

    code = "live_album_error"


class InvalidDefinition(LiveAlbumError):
    """A definition failed validation and was not persisted."""

    code = "invalid_definition"


class DefinitionNotFound(LiveAlbumError):
    """No definition or collection matches the requested id or name."""

    code = "not_found"


class MalformedMetadata(LiveAlbumError):
    """A collection description is not validly serialized live album metadata."""

    code = "malformed_metadata"


class NotLive(LiveAlbumError):
    """Metadata parsed but does not carry the live album marker."""

    code = "not_live"


class AlreadyLive(LiveAlbumError):
    """The collection already carries live album metadata."""

    code = "already_live"


class DestinationUnresolved(LiveAlbumError):
    """No destination collection id or name could be determined."""

    code = "destination_unresolved"


class SearchFailed(LiveAlbumError):
    """The catalog search call failed."""

    code = "search_failed"


class FetchCurrentFailed(LiveAlbumError):
    """Reading the current contents of the destination collection failed."""

    code = "fetch_current_failed"


class ApplyFailed(LiveAlbumError):
    """A bulk add or remove call failed outright."""

    code = "apply_failed"


class PersistenceFailed(LiveAlbumError):
    """Writing a definition or its run statistics failed."""

    code = "persistence_failed"


class CatalogError(Exception):
    """Raised by catalog clients when a remote call fails."""

    code = "catalog_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
