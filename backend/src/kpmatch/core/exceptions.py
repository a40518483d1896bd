"""Error taxonomy for release resolution.

Collaborators raise these; the resolution pipeline catches them where the
call is made and degrades to "no result" for that strategy. Nothing here is
fatal to a batch.
"""


class KPMatchError(Exception):
    """Base class for all kpmatch errors."""


class FetchError(KPMatchError):
    """A remote call (page fetch, catalog search or lookup) failed."""


class PageFetchError(FetchError):
    """The release detail page could not be fetched."""


class CatalogError(FetchError):
    """The catalog API returned an error or could not be reached."""


class CatalogNotFoundError(CatalogError):
    """The catalog has no record with the requested identifier."""


class IdentifierParseError(KPMatchError):
    """The release page carries no usable catalog identifier."""
