"""
Stats reducer helpers: team totals and ranking over per-user IssueStats.
"""
from typing import Iterable, List

from correlate.models import IssueStats, TeamSummary


def summarize(stats: Iterable[IssueStats]) -> TeamSummary:
    """Element-wise sum of the given per-user stats. Callers pass only successfully processed users."""
    summary = TeamSummary()
    for s in stats:
        summary.total_developers += 1
        summary.total_issues_assigned += s.assigned
        summary.total_issues_created += s.created
        summary.total_issues_with_merged_prs += s.with_merged_prs
        summary.total_issues_handled += s.total_handled
    return summary


def rank(stats: Iterable[IssueStats]) -> List[IssueStats]:
    """Descending by total handled. sorted() is stable, so ties keep encounter order."""
    return sorted(stats, key=lambda s: s.total_handled, reverse=True)
