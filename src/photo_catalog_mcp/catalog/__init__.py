"""
Asset catalog collaborator.

The engine only depends on the ``CatalogClient`` protocol; the Immich REST
implementation is what the server wires in at startup.
"""

from .client import CatalogClient, ImmichCatalogClient
from .models import Asset, Collection

__all__ = [
    "Asset",
    "CatalogClient",
    "Collection",
    "ImmichCatalogClient",
]
