"""
Unified data models for Linear entities.
"""

from typing import List, Optional, Dict, Any


class User:
    """
    Workspace member. email is the case-insensitive lookup key and may be missing.
    """
    def __init__(self, user_id: str, name: str, email: Optional[str] = None):
        self.user_id = user_id
        self.name = name
        self.email = email

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.user_id, 'name': self.name, 'email': self.email}

    def __repr__(self):
        return f"User({self.user_id!r}, {self.name!r}, {self.email!r})"


class WorkflowState:
    """
    Named status bucket with a coarse type (completed, canceled, started, ...).
    """
    def __init__(self, name: str, type: Optional[str] = None, state_id: Optional[str] = None):
        self.name = name
        self.type = type
        self.state_id = state_id

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.state_id, 'name': self.name, 'type': self.type}


class Issue:
    """
    Read-only issue snapshot. state is None when the issue was loaded without its state.
    """
    def __init__(self, issue_id: str, identifier: str, title: str, description: str = '', url: Optional[str] = None, created_at: Optional[str] = None, updated_at: Optional[str] = None, state: Optional[WorkflowState] = None, creator_id: Optional[str] = None, assignee_id: Optional[str] = None):
        self.issue_id = issue_id
        self.identifier = identifier  # team-prefixed key, e.g. ENG-42
        self.title = title
        self.description = description
        self.url = url
        self.created_at = created_at
        self.updated_at = updated_at
        self.state = state
        self.creator_id = creator_id
        self.assignee_id = assignee_id

    def ref(self) -> Dict[str, Any]:
        """Identifying fields used when joining comments/reactions to their issue."""
        return {'id': self.issue_id, 'identifier': self.identifier, 'title': self.title, 'url': self.url}

    def __repr__(self):
        return f"Issue({self.issue_id!r}, {self.identifier!r})"


class Attachment:
    """
    Link attached to an issue by an integration. metadata shape depends on the integration.
    """
    def __init__(self, issue_id: str, url: str, title: Optional[str] = None, subtitle: Optional[str] = None, subtype: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None, attachment_id: Optional[str] = None):
        self.attachment_id = attachment_id
        self.issue_id = issue_id
        self.url = url
        self.title = title
        self.subtitle = subtitle
        self.subtype = subtype
        self.metadata = metadata


class Comment:
    """
    Comment authored by one user on one issue. issue is the joined issue ref dict.
    """
    def __init__(self, comment_id: str, body: str, created_at: Optional[str], user_id: Optional[str] = None, issue: Optional[Dict[str, Any]] = None):
        self.comment_id = comment_id
        self.body = body
        self.created_at = created_at
        self.user_id = user_id
        self.issue = issue

    @property
    def issue_id(self) -> Optional[str]:
        return (self.issue or {}).get('id')

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.comment_id, 'body': self.body, 'created_at': self.created_at, 'issue': self.issue}


class Reaction:
    """
    Emoji reaction by one user on one issue.
    """
    def __init__(self, reaction_id: str, emoji: str, created_at: Optional[str], user_id: Optional[str] = None, issue: Optional[Dict[str, Any]] = None):
        self.reaction_id = reaction_id
        self.emoji = emoji
        self.created_at = created_at
        self.user_id = user_id
        self.issue = issue

    @property
    def issue_id(self) -> Optional[str]:
        return (self.issue or {}).get('id')

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.reaction_id, 'emoji': self.emoji, 'created_at': self.created_at, 'issue': self.issue}


class Page:
    """
    One page of a cursor-paginated collection.
    """
    def __init__(self, records: List[Any], has_more: bool = False, next_cursor: Optional[str] = None):
        self.records = records
        self.has_more = has_more
        self.next_cursor = next_cursor


class IssueFilter:
    """
    Filter for issue listings. created_at / updated_at are comparator dicts such as {'gte': ..., 'lte': ...}.
    """
    def __init__(self, assignee_id: Optional[str] = None, creator_id: Optional[str] = None, created_at: Optional[Dict[str, str]] = None, updated_at: Optional[Dict[str, str]] = None):
        self.assignee_id = assignee_id
        self.creator_id = creator_id
        self.created_at = created_at
        self.updated_at = updated_at

    def to_graphql(self) -> Dict[str, Any]:
        gql: Dict[str, Any] = {}
        if self.assignee_id:
            gql['assignee'] = {'id': {'eq': self.assignee_id}}
        if self.creator_id:
            gql['creator'] = {'id': {'eq': self.creator_id}}
        if self.created_at:
            gql['createdAt'] = dict(self.created_at)
        if self.updated_at:
            gql['updatedAt'] = dict(self.updated_at)
        return gql


class ActivityFilter:
    """
    Filter for comment and reaction listings.
    """
    def __init__(self, user_id: Optional[str] = None, created_at: Optional[Dict[str, str]] = None):
        self.user_id = user_id
        self.created_at = created_at

    def to_graphql(self) -> Dict[str, Any]:
        gql: Dict[str, Any] = {}
        if self.user_id:
            gql['user'] = {'id': {'eq': self.user_id}}
        if self.created_at:
            gql['createdAt'] = dict(self.created_at)
        return gql
