"""Domain error taxonomy.

Backing-store failures are not wrapped: they surface as the driver's own
``sqlalchemy.exc.SQLAlchemyError`` after the store adapter has logged them.
"""


class CatalogError(Exception):
    """Base class for errors raised by the catalog core."""


class ValidationError(CatalogError):
    """Malformed candidate, review or query input. Raised before any write."""


class NotFoundError(CatalogError):
    """A referenced book, library or history document does not exist."""


class ConflictError(CatalogError):
    """A uniqueness constraint rejected a write, or a transform kept losing races."""


class AssetFetchError(CatalogError):
    """A cover image could not be downloaded. Always non-fatal to the caller."""
