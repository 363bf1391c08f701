"""
Issue set builder: issues assigned to and created by one user within an optional window.
"""
import logging
from typing import List, Optional, Tuple

from normalize.dates import TimeWindow
from normalize.models import Issue, IssueFilter
from .pagination import collect_all

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 250


def assigned_filter(user_id: str, window: Optional[TimeWindow] = None) -> IssueFilter:
    """Assigned issues are windowed on updatedAt."""
    return IssueFilter(assignee_id=user_id, updated_at=window.comparator() if window else None)


def created_filter(user_id: str, window: Optional[TimeWindow] = None) -> IssueFilter:
    """Created issues are windowed on createdAt."""
    return IssueFilter(creator_id=user_id, created_at=window.comparator() if window else None)


def fetch_issues(client, issue_filter: IssueFilter, page_size: int = DEFAULT_PAGE_SIZE, label: str = 'issues') -> List[Issue]:
    return collect_all(lambda cursor, size: client.list_issues(issue_filter, size, cursor), page_size, label)


def build_issue_sets(client, user_id: str, window: Optional[TimeWindow] = None, page_size: int = DEFAULT_PAGE_SIZE) -> Tuple[List[Issue], List[Issue]]:
    """Return (assigned issues, created issues) for a user, each in remote order.

    RemoteFetchError from either collection propagates to the caller.
    """
    assigned = fetch_issues(client, assigned_filter(user_id, window), page_size, 'assigned issues')
    created = fetch_issues(client, created_filter(user_id, window), page_size, 'created issues')
    logger.info("user %s: %d assigned, %d created", user_id, len(assigned), len(created))
    return assigned, created
