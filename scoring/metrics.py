"""
Per-user issue metrics: assigned/created counts and merged-PR evidence with dedup.
"""
import logging
from typing import Iterable, Optional, Set

from correlate.merge_evidence import MergeEvidenceClassifier
from correlate.models import IssueStats
from ingest.issues import build_issue_sets, DEFAULT_PAGE_SIZE
from normalize.dates import TimeWindow
from normalize.models import Issue, User

logger = logging.getLogger(__name__)


def count_merged(classifier: MergeEvidenceClassifier, assigned: Iterable[Issue], created: Iterable[Issue]) -> int:
    """Count issues with merged-PR evidence across both lists.

    Assigned issues are classified first; a created issue whose id was already seen is not
    classified again, so an issue the user both created and is assigned to counts at most once.
    """
    merged = 0
    seen: Set[str] = set()
    for issue in assigned:
        seen.add(issue.issue_id)
        if classifier.has_merged_pr(issue):
            merged += 1
    for issue in created:
        if issue.issue_id in seen:
            continue
        seen.add(issue.issue_id)
        if classifier.has_merged_pr(issue):
            merged += 1
    return merged


def compute_user_issue_stats(client, user: User, window: Optional[TimeWindow] = None, page_size: int = DEFAULT_PAGE_SIZE, classifier: Optional[MergeEvidenceClassifier] = None) -> IssueStats:
    """Fetch a user's issue sets and fold them into a fresh IssueStats.

    Any RemoteFetchError propagates so the caller can drop the user as a whole.
    """
    classifier = classifier or MergeEvidenceClassifier(client)
    assigned, created = build_issue_sets(client, user.user_id, window, page_size)
    merged = count_merged(classifier, assigned, created)
    stats = IssueStats(user.user_id, user.name, user.email, assigned=len(assigned), created=len(created), with_merged_prs=merged)
    logger.debug("stats for %s: %r", user.name, stats)
    return stats
