"""
Linear GraphQL client.
Implements the remote operations the report pipeline needs: paged listings of users, issues,
comments, reactions and workflow states, plus lazy per-issue lookups (state, attachments).
"""

import logging
from typing import List, Dict, Any, Optional

from errors import ConfigError, RemoteFetchError, UnsupportedFeature
from normalize.models import Page, Issue, WorkflowState, Attachment, IssueFilter, ActivityFilter
from normalize.util import (
    normalize_user,
    normalize_issue,
    normalize_state,
    normalize_attachment,
    normalize_comment,
    normalize_reaction,
)
from storage.cache import Cache, cached_post

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"

PAGE_INFO = "pageInfo { hasNextPage endCursor }"

ISSUE_FIELDS = """
      id
      identifier
      title
      description
      url
      createdAt
      updatedAt
      state { id name type }
      creator { id }
      assignee { id }
"""

USERS_QUERY = """
query Users($first: Int!, $after: String) {
  users(first: $first, after: $after) {
    nodes { id name email }
    %s
  }
}
""" % PAGE_INFO

ISSUES_QUERY = """
query Issues($filter: IssueFilter, $first: Int!, $after: String) {
  issues(filter: $filter, first: $first, after: $after) {
    nodes {%s}
    %s
  }
}
""" % (ISSUE_FIELDS, PAGE_INFO)

COMMENTS_QUERY = """
query Comments($filter: CommentFilter, $first: Int!, $after: String) {
  comments(filter: $filter, first: $first, after: $after) {
    nodes {
      id
      body
      createdAt
      user { id }
      issue { id identifier title url }
    }
    %s
  }
}
""" % PAGE_INFO

REACTIONS_QUERY = """
query Reactions($filter: ReactionFilter, $first: Int!, $after: String) {
  reactions(filter: $filter, first: $first, after: $after) {
    nodes {
      id
      emoji
      createdAt
      user { id }
      issue { id identifier title url }
    }
    %s
  }
}
""" % PAGE_INFO

ISSUE_QUERY = """
query Issue($id: String!) {
  issue(id: $id) {%s}
}
""" % ISSUE_FIELDS

ISSUE_STATE_QUERY = """
query IssueState($id: String!) {
  issue(id: $id) { state { id name type } }
}
"""

ATTACHMENTS_QUERY = """
query IssueAttachments($id: String!, $first: Int!) {
  issue(id: $id) {
    attachments(first: $first) {
      nodes { id url title subtitle sourceType metadata }
    }
  }
}
"""

WORKFLOW_STATES_QUERY = """
query WorkflowStates($first: Int!, $after: String) {
  workflowStates(first: $first, after: $after) {
    nodes { id name type }
    %s
  }
}
""" % PAGE_INFO

# GraphQL error codes/messages meaning "this workspace or schema cannot serve the field"
_UNSUPPORTED_CODES = {"FEATURE_NOT_ACCESSIBLE", "GRAPHQL_VALIDATION_FAILED", "FORBIDDEN"}
_UNSUPPORTED_MARKERS = ("cannot query field", "not available", "not enabled", "unknown type")


def _is_unsupported(errors: List[Dict[str, Any]]) -> bool:
    for err in errors:
        code = ((err or {}).get('extensions') or {}).get('code') or ''
        message = ((err or {}).get('message') or '').lower()
        if code in _UNSUPPORTED_CODES or any(m in message for m in _UNSUPPORTED_MARKERS):
            return True
    return False


class LinearClient:
    """Minimal Linear client. Every component receives an instance explicitly.

    api_key is sent as-is in the Authorization header; access_token (OAuth) is sent as a Bearer token.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        cache: Optional[Cache] = None,
        timeout: Optional[float] = None,
        attachments_page_size: int = 50,
    ):
        if not api_key and not access_token:
            raise ConfigError("Please set either LINEAR_API_KEY or LINEAR_ACCESS_TOKEN")
        self.base_url = base_url or LINEAR_API_URL
        self.headers = {
            "Authorization": api_key if api_key else f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.cache = cache
        self.timeout = timeout
        self.attachments_page_size = attachments_page_size

    def _query(self, query: str, variables: Dict[str, Any], operation: str) -> Dict[str, Any]:
        """Run one GraphQL operation and return its data dict, raising on any failure."""
        payload = {"query": query, "variables": variables}
        res = cached_post(self.base_url, self.headers, payload, cache=self.cache, timeout=self.timeout, operation=operation)
        status = res.get('status', 0)
        body = res.get('response')
        errors = body.get('errors') if isinstance(body, dict) else None
        if errors:
            messages = '; '.join((e or {}).get('message', '') for e in errors)
            if _is_unsupported(errors):
                raise UnsupportedFeature(f"{operation} is not supported by this workspace: {messages}", status=status)
            raise RemoteFetchError(f"{operation} failed: {messages}", status=status)
        if status != 200 or not isinstance(body, dict) or not isinstance(body.get('data'), dict):
            raise RemoteFetchError(f"{operation} failed with HTTP {status}", status=status)
        return body['data']

    def _page(self, query: str, root: str, variables: Dict[str, Any], normalize, operation: str) -> Page:
        data = self._query(query, variables, operation)
        conn = data.get(root) or {}
        page_info = conn.get('pageInfo') or {}
        records = [normalize(n) for n in (conn.get('nodes') or []) if isinstance(n, dict)]
        return Page(records, has_more=bool(page_info.get('hasNextPage')), next_cursor=page_info.get('endCursor'))

    @staticmethod
    def _paging(page_size: int, cursor: Optional[str]) -> Dict[str, Any]:
        variables: Dict[str, Any] = {"first": page_size}
        if cursor:
            variables["after"] = cursor
        return variables

    def list_users(self, page_size: int = 50, cursor: Optional[str] = None) -> Page:
        return self._page(USERS_QUERY, 'users', self._paging(page_size, cursor), normalize_user, 'users')

    def list_issues(self, filter: IssueFilter, page_size: int = 250, cursor: Optional[str] = None) -> Page:
        variables = self._paging(page_size, cursor)
        variables["filter"] = filter.to_graphql()
        return self._page(ISSUES_QUERY, 'issues', variables, normalize_issue, 'issues')

    def list_comments(self, filter: ActivityFilter, page_size: int = 100, cursor: Optional[str] = None) -> Page:
        variables = self._paging(page_size, cursor)
        variables["filter"] = filter.to_graphql()
        return self._page(COMMENTS_QUERY, 'comments', variables, normalize_comment, 'comments')

    def list_reactions(self, filter: ActivityFilter, page_size: int = 100, cursor: Optional[str] = None) -> Page:
        """Raises UnsupportedFeature when reactions cannot be queried in this workspace."""
        variables = self._paging(page_size, cursor)
        variables["filter"] = filter.to_graphql()
        return self._page(REACTIONS_QUERY, 'reactions', variables, normalize_reaction, 'reactions')

    def list_workflow_states(self, page_size: int = 50, cursor: Optional[str] = None) -> Page:
        return self._page(WORKFLOW_STATES_QUERY, 'workflowStates', self._paging(page_size, cursor), normalize_state, 'workflowStates')

    def get_issue(self, issue_id: str) -> Issue:
        data = self._query(ISSUE_QUERY, {"id": issue_id}, 'issue')
        raw = data.get('issue')
        if not isinstance(raw, dict):
            raise RemoteFetchError(f"issue {issue_id} not found")
        return normalize_issue(raw)

    def get_issue_state(self, issue: Issue) -> Optional[WorkflowState]:
        """Return the issue's workflow state, using the snapshot's state when it was loaded with one."""
        if issue.state is not None:
            return issue.state
        data = self._query(ISSUE_STATE_QUERY, {"id": issue.issue_id}, 'issueState')
        return normalize_state((data.get('issue') or {}).get('state'))

    def get_issue_attachments(self, issue: Issue) -> List[Attachment]:
        data = self._query(ATTACHMENTS_QUERY, {"id": issue.issue_id, "first": self.attachments_page_size}, 'attachments')
        nodes = ((data.get('issue') or {}).get('attachments') or {}).get('nodes') or []
        return [normalize_attachment(n, issue.issue_id) for n in nodes if isinstance(n, dict)]
