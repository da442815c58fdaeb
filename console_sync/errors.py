"""
Console Sync error types

Every failure the reconciliation engine can report maps to one of these
classes. The error code is what ends up in a pass summary, the status
code is what the HTTP layer answers with.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for sync operations"""

    error_code = "SYNC_ERROR"
    status_code = 500

    def __init__(self, message: str, error_code: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(SyncError):
    """Raised when a required setting is missing"""

    error_code = "CONFIGURATION_ERROR"
    status_code = 503


class NotAuthenticated(SyncError):
    """Raised when no user can be resolved for the caller"""

    error_code = "NOT_AUTHENTICATED"
    status_code = 401


class FetchFailed(SyncError):
    """Raised when a list call against the agent or the catalog fails.

    Distinct from an empty result: a pass that sees this must not treat
    the missing list as "nothing exists".
    """

    error_code = "FETCH_FAILED"
    status_code = 502


class CatalogError(SyncError):
    """Raised for catalog write failures that are not Conflict/NotFound"""

    error_code = "CATALOG_ERROR"
    status_code = 502


class Conflict(CatalogError):
    """Raised when a create collides with an existing natural key"""

    error_code = "CONFLICT"
    status_code = 409


class NotFound(CatalogError):
    """Raised when an update/delete targets a row that no longer exists"""

    error_code = "NOT_FOUND"
    status_code = 404


class MalformedIdentifier(SyncError):
    """Raised when a natural key cannot be derived from a resource or row"""

    error_code = "MALFORMED_IDENTIFIER"
    status_code = 422


class AmbiguousLocalState(SyncError):
    """Two local resources derive the same natural key"""

    error_code = "AMBIGUOUS_LOCAL_STATE"
    status_code = 409


class AmbiguousRemoteState(SyncError):
    """Two catalog rows for one user share a natural key"""

    error_code = "AMBIGUOUS_REMOTE_STATE"
    status_code = 409
