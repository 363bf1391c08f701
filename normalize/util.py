"""
Normalization utility helpers.
Small helpers to turn raw GraphQL node dicts into normalize.models entities.
"""
from typing import Dict, Any, Optional
from normalize.models import User, Issue, WorkflowState, Attachment, Comment, Reaction


def normalize_line_terminators(text: Optional[str]) -> Optional[str]:
    """Canonicalize U+2028, U+2029, CRLF and CR to a single LF.

    Indentation-based text rendering splits on '\\n' only, so every other terminator must go.
    """
    if not text:
        return text
    return (
        text.replace('\u2028', '\n')
        .replace('\u2029', '\n')
        .replace('\r\n', '\n')
        .replace('\r', '\n')
    )


def _ref_id(raw: Any) -> Optional[str]:
    if isinstance(raw, dict):
        return raw.get('id')
    return None


def normalize_user(raw: Dict[str, Any]) -> User:
    return User(user_id=str(raw.get('id') or ''), name=raw.get('name') or raw.get('displayName') or '', email=raw.get('email') or None)


def normalize_state(raw: Optional[Dict[str, Any]]) -> Optional[WorkflowState]:
    if not isinstance(raw, dict) or not raw.get('name'):
        return None
    return WorkflowState(name=raw.get('name'), type=raw.get('type'), state_id=raw.get('id'))


def normalize_issue(raw: Dict[str, Any]) -> Issue:
    """Create an Issue from a raw Linear issue node.
    Missing optional fields become None; description is line-terminator normalized.
    """
    return Issue(
        issue_id=str(raw.get('id') or ''),
        identifier=raw.get('identifier') or '',
        title=raw.get('title') or '',
        description=normalize_line_terminators(raw.get('description') or ''),
        url=raw.get('url'),
        created_at=raw.get('createdAt'),
        updated_at=raw.get('updatedAt'),
        state=normalize_state(raw.get('state')),
        creator_id=_ref_id(raw.get('creator')),
        assignee_id=_ref_id(raw.get('assignee')),
    )


def _issue_ref(raw: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict) or not raw.get('id'):
        return None
    return {'id': raw.get('id'), 'identifier': raw.get('identifier'), 'title': raw.get('title'), 'url': raw.get('url')}


def normalize_attachment(raw: Dict[str, Any], issue_id: str) -> Attachment:
    metadata = raw.get('metadata')
    return Attachment(
        issue_id=issue_id,
        url=raw.get('url') or '',
        title=raw.get('title'),
        subtitle=raw.get('subtitle'),
        # Linear exposes the integration subtype as sourceType
        subtype=raw.get('subtype') or raw.get('sourceType'),
        metadata=metadata if isinstance(metadata, dict) else None,
        attachment_id=raw.get('id'),
    )


def normalize_comment(raw: Dict[str, Any]) -> Comment:
    return Comment(
        comment_id=str(raw.get('id') or ''),
        body=normalize_line_terminators(raw.get('body') or ''),
        created_at=raw.get('createdAt'),
        user_id=_ref_id(raw.get('user')),
        issue=_issue_ref(raw.get('issue')),
    )


def normalize_reaction(raw: Dict[str, Any]) -> Reaction:
    return Reaction(
        reaction_id=str(raw.get('id') or ''),
        emoji=raw.get('emoji') or '',
        created_at=raw.get('createdAt'),
        user_id=_ref_id(raw.get('user')),
        issue=_issue_ref(raw.get('issue')),
    )
