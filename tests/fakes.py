"""
In-memory stand-in for ingest.linear.LinearClient used across the test suite.
Collections are paged with integer-offset cursors so pagination paths are exercised.
"""
from collections import Counter

from errors import RemoteFetchError
from normalize.models import Attachment, Comment, Issue, Page, Reaction, User, WorkflowState


def make_user(uid, name=None, email=None):
    return User(uid, name or uid.title(), email if email is not None else f"{uid}@example.com")


def make_issue(iid, state=None, identifier=None, title=None, updated_at='2024-10-02T09:00:00.000Z'):
    return Issue(
        iid,
        identifier or f"ENG-{iid}",
        title or f"Issue {iid}",
        url=f"https://linear.app/acme/issue/ENG-{iid}",
        created_at='2024-10-01T09:00:00.000Z',
        updated_at=updated_at,
        state=WorkflowState(state) if state else None,
    )


def pr_attachment(issue_id, metadata=None, url=None, title='Fix things', subtitle=None, subtype=None):
    return Attachment(issue_id, url or f"https://github.com/acme/app/pull/{issue_id}", title=title, subtitle=subtitle, subtype=subtype, metadata=metadata)


def make_comment(cid, issue, body='Looks good', created_at='2024-10-03T10:00:00.000Z'):
    return Comment(cid, body, created_at, issue=issue.ref() if issue else None)


def make_reaction(rid, issue, emoji='+1', created_at='2024-10-03T11:00:00.000Z'):
    return Reaction(rid, emoji, created_at, issue=issue.ref() if issue else None)


def paged(items, page_size, cursor):
    start = int(cursor or 0)
    chunk = list(items[start:start + page_size])
    end = start + len(chunk)
    return Page(chunk, has_more=end < len(items), next_cursor=str(end))


class FakeLinearClient:
    """Answers every client call from dictionaries; values that are exceptions are raised."""

    def __init__(self, users=None, assigned=None, created=None, comments=None, reactions=None, issues=None, attachments=None, states=None, workflow_states=None, fail_users=()):
        self.users = users or []
        self.assigned = assigned or {}
        self.created = created or {}
        self.comments = comments or {}
        self.reactions = reactions or {}
        self.issues = issues or {}
        self.attachments = attachments or {}
        self.states = states or {}
        self.workflow_states = workflow_states or []
        self.fail_users = set(fail_users)
        self.cache = None
        self.calls = Counter()

    def list_users(self, page_size=50, cursor=None):
        self.calls['list_users'] += 1
        return paged(self.users, page_size, cursor)

    def list_issues(self, filter, page_size=250, cursor=None):
        self.calls['list_issues'] += 1
        user_id = filter.assignee_id or filter.creator_id
        if user_id in self.fail_users:
            raise RemoteFetchError(f"issues for {user_id} failed", status=500)
        source = self.assigned if filter.assignee_id else self.created
        return paged(source.get(user_id, []), page_size, cursor)

    def list_comments(self, filter, page_size=100, cursor=None):
        self.calls['list_comments'] += 1
        return paged(self.comments.get(filter.user_id, []), page_size, cursor)

    def list_reactions(self, filter, page_size=100, cursor=None):
        self.calls['list_reactions'] += 1
        value = self.reactions.get(filter.user_id, [])
        if isinstance(value, Exception):
            raise value
        return paged(value, page_size, cursor)

    def list_workflow_states(self, page_size=50, cursor=None):
        self.calls['list_workflow_states'] += 1
        return paged(self.workflow_states, page_size, cursor)

    def get_issue(self, issue_id):
        self.calls['get_issue'] += 1
        value = self.issues.get(issue_id)
        if value is None:
            raise RemoteFetchError(f"issue {issue_id} not found")
        if isinstance(value, Exception):
            raise value
        return value

    def get_issue_state(self, issue):
        self.calls['get_issue_state'] += 1
        if issue.state is not None:
            return issue.state
        value = self.states.get(issue.issue_id)
        if isinstance(value, Exception):
            raise value
        return WorkflowState(value) if isinstance(value, str) else value

    def get_issue_attachments(self, issue):
        self.calls['get_issue_attachments'] += 1
        value = self.attachments.get(issue.issue_id, [])
        if isinstance(value, Exception):
            raise value
        return value
