"""Remote sources of flow documents."""

from .fetch import FetchError, fetch_document, normalize_url
from .catalog import CatalogClient, CatalogFile

__all__ = [
    "CatalogClient",
    "CatalogFile",
    "FetchError",
    "fetch_document",
    "normalize_url",
]
