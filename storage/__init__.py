"""
Storage package: HTTP transport with rate-limit retries and the SQLite response cache.
"""

from .cache import Cache, cached_post
from .retry import configure_retry, post_with_retries

__all__ = ["Cache", "cached_post", "configure_retry", "post_with_retries"]
