"""
Derived report models: per-user issue stats, activity records and the team report.
"""
from typing import Any, Dict, List, Optional

from normalize.models import User, Comment, Reaction


class IssueStats:
    """
    Issue counters for one user in one run.
    """

    def __init__(self, user_id: str, user_name: str, user_email: Optional[str] = None, assigned: int = 0, created: int = 0, with_merged_prs: int = 0):
        self.user_id = user_id
        self.user_name = user_name
        self.user_email = user_email
        self.assigned = assigned
        self.created = created
        self.with_merged_prs = with_merged_prs

    @property
    def total_handled(self) -> int:
        return self.assigned + self.created

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'user_name': self.user_name,
            'user_email': self.user_email,
            'assigned': self.assigned,
            'created': self.created,
            'with_merged_prs': self.with_merged_prs,
            'total_handled': self.total_handled,
        }

    def __str__(self):
        return (
            f"{self.user_name}: "
            f"Assigned: {self.assigned}, "
            f"Created: {self.created}, "
            f"Merged PRs: {self.with_merged_prs}, "
            f"Total: {self.total_handled}"
        )

    def __repr__(self):
        return f"IssueStats({self.user_name!r}, assigned={self.assigned}, created={self.created}, with_merged_prs={self.with_merged_prs})"


class TeamSummary:
    """
    Element-wise totals over the successfully processed users.
    """

    def __init__(self, total_developers: int = 0, total_issues_assigned: int = 0, total_issues_created: int = 0, total_issues_with_merged_prs: int = 0, total_issues_handled: int = 0):
        self.total_developers = total_developers
        self.total_issues_assigned = total_issues_assigned
        self.total_issues_created = total_issues_created
        self.total_issues_with_merged_prs = total_issues_with_merged_prs
        self.total_issues_handled = total_issues_handled

    def to_dict(self) -> Dict[str, int]:
        return dict(vars(self))


class TeamReport:
    """
    Ranked per-user stats plus team totals for one window.
    """

    def __init__(self, generated_at: str, date_range: Dict[str, Any], team_stats: List[IssueStats], summary: TeamSummary, not_found: Optional[List[str]] = None, failed_users: Optional[List[str]] = None):
        self.generated_at = generated_at
        self.date_range = date_range
        self.team_stats = team_stats
        self.summary = summary
        self.not_found = not_found or []
        self.failed_users = failed_users or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generated_at': self.generated_at,
            'date_range': self.date_range,
            'team_stats': [s.to_dict() for s in self.team_stats],
            'summary': self.summary.to_dict(),
            'not_found': list(self.not_found),
            'failed_users': list(self.failed_users),
        }


class InteractionRecord:
    """
    One issue together with all of one user's comments and reactions on it.
    """

    def __init__(self, issue: Dict[str, Any], comments: List[Comment], reactions: List[Reaction], last_updated: Optional[str]):
        self.issue = issue  # id, identifier, title, url, state
        self.comments = comments
        self.reactions = reactions
        self.last_updated = last_updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            'issue': self.issue,
            'comments': [{'id': c.comment_id, 'body': c.body, 'created_at': c.created_at} for c in self.comments],
            'reactions': [{'emoji': r.emoji, 'created_at': r.created_at} for r in self.reactions],
            'last_updated': self.last_updated,
        }


class ActivityRecord:
    """
    Everything one user did in the window: comments, reactions, interactions, creations, assignments.
    """

    def __init__(self, user: User):
        self.user = user
        self.comments: List[Comment] = []
        self.reactions: List[Reaction] = []
        self.interactions: List[InteractionRecord] = []
        self.issue_creations: List[Dict[str, Any]] = []
        self.issue_assignments: List[Dict[str, Any]] = []
        self.warnings: List[str] = []

    def total(self) -> int:
        return len(self.comments) + len(self.interactions) + len(self.issue_creations) + len(self.issue_assignments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user': self.user.to_dict(),
            'comments': [c.to_dict() for c in self.comments],
            'reactions': [r.to_dict() for r in self.reactions],
            'interactions': [i.to_dict() for i in self.interactions],
            'issue_creations': list(self.issue_creations),
            'issue_assignments': list(self.issue_assignments),
            'warnings': list(self.warnings),
        }
