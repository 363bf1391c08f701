"""
Activity aggregator: one user's comments and reactions, joined per issue, plus the issues
they created and are assigned to.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from correlate.models import ActivityRecord, InteractionRecord
from errors import RemoteFetchError
from normalize.dates import TimeWindow
from normalize.models import ActivityFilter, Issue, IssueFilter, Reaction, User
from .pagination import collect_all

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


def _since_comparator(since: Optional[datetime]):
    return TimeWindow(since=since).comparator() if since else None


def _state_name(client, issue: Issue) -> Optional[str]:
    state = issue.state if issue.state is not None else client.get_issue_state(issue)
    return state.name if state else None


def fetch_comments(client, user: User, since: Optional[datetime] = None, page_size: int = DEFAULT_PAGE_SIZE):
    flt = ActivityFilter(user_id=user.user_id, created_at=_since_comparator(since))
    return collect_all(lambda cursor, size: client.list_comments(flt, size, cursor), page_size, 'comments')


def fetch_reactions(client, user: User, since: Optional[datetime] = None, page_size: int = DEFAULT_PAGE_SIZE, warnings: Optional[List[str]] = None) -> List[Reaction]:
    """Reactions are optional: any remote failure degrades to an empty list plus a warning."""
    flt = ActivityFilter(user_id=user.user_id, created_at=_since_comparator(since))
    try:
        return collect_all(lambda cursor, size: client.list_reactions(flt, size, cursor), page_size, 'reactions')
    except RemoteFetchError as ex:
        msg = f"Could not fetch reactions: {ex}. Reactions may not be available in this workspace."
        logger.warning(msg)
        if warnings is not None:
            warnings.append(msg)
        return []


def group_by_issue(items) -> Dict[str, list]:
    """Group comments or reactions by issue id, keeping first-seen order; items without an issue are dropped."""
    grouped: Dict[str, list] = {}
    for item in items:
        if item.issue_id:
            grouped.setdefault(item.issue_id, []).append(item)
    return grouped


def join_interactions(client, comments, reactions_by_issue: Dict[str, List[Reaction]], warnings: Optional[List[str]] = None) -> List[InteractionRecord]:
    """Build one InteractionRecord per issue touched by a comment or a reaction.

    Each issue is fetched once even when both a comment and a reaction exist on it. An issue
    that cannot be fetched is skipped with a warning.
    """
    comments_by_issue = group_by_issue(comments)
    # ordered union: comment issues first, then reaction-only issues
    issue_ids = list(dict.fromkeys(list(comments_by_issue) + list(reactions_by_issue)))

    interactions: List[InteractionRecord] = []
    for issue_id in issue_ids:
        try:
            issue = client.get_issue(issue_id)
            state = _state_name(client, issue)
        except Exception as ex:
            msg = f"Could not fetch issue {issue_id}: {ex}"
            logger.warning(msg)
            if warnings is not None:
                warnings.append(msg)
            continue
        ref = issue.ref()
        ref['state'] = state
        interactions.append(InteractionRecord(ref, comments_by_issue.get(issue_id, []), reactions_by_issue.get(issue_id, []), issue.updated_at))
    return interactions


def _issue_summary(issue: Issue) -> Dict[str, Optional[str]]:
    summary = issue.ref()
    summary.update({'created_at': issue.created_at, 'updated_at': issue.updated_at, 'description': issue.description})
    return summary


def build_activity(client, user: User, since: Optional[datetime] = None, page_size: int = DEFAULT_PAGE_SIZE) -> ActivityRecord:
    """Collect a user's activity since an optional cutoff.

    Comment and issue collection failures propagate as RemoteFetchError; reaction and per-issue
    failures are recorded in ActivityRecord.warnings.
    """
    record = ActivityRecord(user)

    record.comments = fetch_comments(client, user, since, page_size)
    logger.info("%s: %d comment(s)", user.name, len(record.comments))

    reactions = fetch_reactions(client, user, since, page_size, record.warnings)
    reactions_by_issue = group_by_issue(reactions)
    record.reactions = [r for r in reactions if r.issue_id]

    record.interactions = join_interactions(client, record.comments, reactions_by_issue, record.warnings)
    logger.info("%s: %d issue interaction(s)", user.name, len(record.interactions))

    updated = _since_comparator(since)
    assigned = collect_all(lambda cursor, size: client.list_issues(IssueFilter(assignee_id=user.user_id, updated_at=updated), size, cursor), page_size, 'assigned issues')
    for issue in assigned:
        summary = _issue_summary(issue)
        summary['state'] = _state_name(client, issue)
        record.issue_assignments.append(summary)

    created = collect_all(lambda cursor, size: client.list_issues(IssueFilter(creator_id=user.user_id, updated_at=updated), size, cursor), page_size, 'created issues')
    record.issue_creations = [_issue_summary(i) for i in created]
    logger.info("%s: %d created, %d assigned", user.name, len(record.issue_creations), len(record.issue_assignments))
    return record
