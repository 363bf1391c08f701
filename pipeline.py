"""
Report pipeline: resolve users -> fetch issue sets / activity -> classify -> reduce.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from correlate.identity import resolve_user, resolve_users
from correlate.merge_evidence import MergeEvidenceClassifier
from correlate.models import ActivityRecord, IssueStats, TeamReport
from errors import NoTargetUsers
from ingest.activity import build_activity
from ingest.pagination import collect_all
from normalize.dates import TimeWindow
from normalize.models import User
from scoring.metrics import compute_user_issue_stats
from scoring.utils import rank, summarize

logger = logging.getLogger(__name__)

USERS_PAGE_SIZE = 50


def fetch_all_users(client, page_size: int = USERS_PAGE_SIZE) -> List[User]:
    users = collect_all(lambda cursor, size: client.list_users(size, cursor), page_size, 'users')
    logger.info("Found %d users in workspace", len(users))
    return users


def find_workspace_user(client, email: str, page_size: int = USERS_PAGE_SIZE) -> User:
    """Fetch all users and resolve one email; raises UserNotFound."""
    return resolve_user(fetch_all_users(client, page_size), email)


def _user_stats_or_none(client, user: User, window: Optional[TimeWindow], page_size: int) -> Optional[IssueStats]:
    try:
        # one classifier per user so no state crosses user boundaries
        return compute_user_issue_stats(client, user, window, page_size, MergeEvidenceClassifier(client))
    except Exception as ex:
        logger.warning("Error processing %s: %s", user.name, ex)
        return None


def build_team_report(
    client,
    emails: Optional[Sequence[str]] = None,
    window: Optional[TimeWindow] = None,
    page_size: int = 250,
    workers: int = 1,
    users: Optional[Sequence[User]] = None,
) -> TeamReport:
    """Build the team issues report.

    emails selects team members (unmatched ones are warnings); None or empty means every
    workspace user. Users whose fetch fails are left out of both the stats and the totals.
    Raises NoTargetUsers when nobody is left to report on.
    """
    all_users = list(users) if users is not None else fetch_all_users(client)
    if not all_users:
        raise NoTargetUsers("No users found in workspace")

    not_found: List[str] = []
    if emails:
        targets, not_found = resolve_users(all_users, emails)
    else:
        targets = all_users
    if not targets:
        raise NoTargetUsers("No users found to generate report for")

    logger.info("Generating report for %d developer(s)", len(targets))
    if workers and workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() yields in submission order, keeping the pre-ranking order deterministic
            results = list(pool.map(lambda u: _user_stats_or_none(client, u, window, page_size), targets))
    else:
        results = [_user_stats_or_none(client, u, window, page_size) for u in targets]

    team_stats: List[IssueStats] = []
    failed: List[str] = []
    for user, stats in zip(targets, results):
        if stats is None:
            failed.append(user.name)
        else:
            team_stats.append(stats)

    return TeamReport(
        generated_at=datetime.now(timezone.utc).isoformat(),
        date_range=(window or TimeWindow()).to_dict(),
        team_stats=rank(team_stats),
        summary=summarize(team_stats),
        not_found=not_found,
        failed_users=failed,
    )


def build_user_activity(client, email: str, since: Optional[datetime] = None, page_size: int = 100, users: Optional[Sequence[User]] = None) -> ActivityRecord:
    """Resolve one email (UserNotFound if nobody matches) and collect that user's activity."""
    user = resolve_user(list(users), email) if users is not None else find_workspace_user(client, email)
    logger.info("Fetching activity for %s (%s)", user.name, user.email)
    return build_activity(client, user, since, page_size)
