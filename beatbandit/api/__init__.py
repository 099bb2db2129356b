"""
Catalog API clients.
"""

from .base_client import BaseAPIClient, CatalogEndpointUnavailable, CatalogServiceError
from .catalog_client import CatalogService, SpotifyCatalogClient
from .rate_limiter import UnifiedRateLimiter

__all__ = [
    "BaseAPIClient",
    "CatalogEndpointUnavailable",
    "CatalogServiceError",
    "CatalogService",
    "SpotifyCatalogClient",
    "UnifiedRateLimiter",
]
