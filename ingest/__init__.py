"""
Ingest package: the Linear client, cursor pagination and the issue/activity collectors.
"""

from .linear import LinearClient
from .pagination import collect_all

__all__ = ["LinearClient", "collect_all"]
