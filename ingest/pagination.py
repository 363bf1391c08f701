"""
Cursor pagination collector: drains a paginated remote collection into one ordered list.
"""

import logging
from typing import Any, Callable, List, Optional

from errors import RemoteFetchError
from normalize.models import Page

logger = logging.getLogger(__name__)

PageFetcher = Callable[[Optional[str], int], Page]


def collect_all(fetch_page: PageFetcher, page_size: int = 250, label: str = 'records') -> List[Any]:
    """Fetch every page of a collection and return all records in page order.

    fetch_page(cursor, page_size) must return a Page. Collection stops when a page reports
    has_more=False or comes back empty; the empty-page check guards against a remote that
    keeps reporting has_more forever. A page with has_more=True whose next_cursor is missing or
    unchanged raises RemoteFetchError instead of refetching the same page.

    Any failure is raised as RemoteFetchError carrying the cursor of the failing page and the
    number of records collected before it; partial results are never returned.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    records: List[Any] = []
    cursor: Optional[str] = None
    pages = 0
    while True:
        try:
            page = fetch_page(cursor, page_size)
        except RemoteFetchError as ex:
            # keep the subclass (UnsupportedFeature) and attach our position
            ex.cursor = cursor
            ex.collected = len(records)
            raise
        except Exception as ex:
            raise RemoteFetchError(f"failed to fetch {label} page after {len(records)} records: {ex}", cursor=cursor, collected=len(records)) from ex

        pages += 1
        records.extend(page.records)
        if not page.has_more or not page.records:
            break
        # a page claiming more records must move the cursor forward
        if not page.next_cursor or page.next_cursor == cursor:
            raise RemoteFetchError(
                f"{label} page reported more records without advancing the cursor (after {len(records)} records)",
                cursor=cursor,
                collected=len(records),
            )
        cursor = page.next_cursor

    logger.debug("collected %d %s in %d page(s)", len(records), label, pages)
    return records


__all__ = ["collect_all", "PageFetcher"]
