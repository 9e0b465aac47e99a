"""CJ Dropshipping integration."""

from dropship_service.integrations.cj.client import (
    CJClient,
    RateLimiter,
    close_cj_client,
    get_cj_client,
)

__all__ = ["CJClient", "RateLimiter", "close_cj_client", "get_cj_client"]
