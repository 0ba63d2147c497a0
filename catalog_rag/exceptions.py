"""Exception hierarchy for catalog-rag."""


class CatalogRAGError(Exception):
    """Base class for all catalog-rag errors."""


class FilterParseError(CatalogRAGError, ValueError):
    """Raised when a dict filter has a shape that cannot be interpreted."""


class EmbeddingError(CatalogRAGError):
    """Raised when the embedding provider returns an error or a malformed payload."""
