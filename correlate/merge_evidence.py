"""
Merge evidence classifier: decides whether an issue has at least one merged pull/merge request.

Decision procedure, first decisive tier wins, short-circuiting on the first merged attachment:
1. no attachments -> not merged (the issue state is never fetched)
2. attachments that do not look like a pull/merge request are skipped
3. recognized metadata shapes (state/merged/status) that signal merged -> merged
4. otherwise the issue workflow state named Done/Completed/Merged -> merged
5. nothing decisive -> not merged

Errors on a single attachment skip that attachment; an error listing attachments means not merged.
"""
import logging
from typing import Any, Dict, List, Optional

from normalize.models import Attachment, Issue, WorkflowState

logger = logging.getLogger(__name__)

PR_URL_MARKERS = ('/pull/', '/pulls/', '/merge_requests/')
PR_TEXT_MARKERS = ('pull request', 'merge request')
PR_SUBTYPE_MARKERS = ('pull', 'merge')
# exact, case-sensitive
DONE_STATE_NAMES = frozenset(('Done', 'Completed', 'Merged'))

TIER_NO_ATTACHMENTS = 'no_attachments'
TIER_ATTACHMENTS_ERROR = 'attachments_error'
TIER_METADATA = 'metadata'
TIER_STATE_FALLBACK = 'state_fallback'
TIER_NO_EVIDENCE = 'no_evidence'


# --- recognized metadata shapes ---

class StateField:
    """metadata.state, e.g. GitHub/GitLab 'open' | 'closed' | 'merged'."""
    kind = 'state'

    def __init__(self, value: Any):
        self.value = value

    def signals_merged(self) -> bool:
        return self.value == 'merged'


class MergedFlag:
    """metadata.merged boolean (GitHub)."""
    kind = 'merged'

    def __init__(self, value: Any):
        self.value = value

    def signals_merged(self) -> bool:
        return self.value is True


class StatusField:
    """metadata.status used by some integrations."""
    kind = 'status'

    def __init__(self, value: Any):
        self.value = value

    def signals_merged(self) -> bool:
        return self.value == 'merged'


class Unrecognized:
    """Metadata present but carrying none of the known fields."""
    kind = 'unrecognized'

    def __init__(self, keys: List[str]):
        self.keys = keys

    def signals_merged(self) -> bool:
        return False


_SHAPES = (('state', StateField), ('merged', MergedFlag), ('status', StatusField))


def parse_metadata(metadata: Optional[Dict[str, Any]]) -> List[Any]:
    """Map an attachment metadata dict to its evidence shapes.

    Returns [] when there is no metadata, [Unrecognized] when none of the known keys is present.
    """
    if not isinstance(metadata, dict) or not metadata:
        return []
    shapes = [cls(metadata[key]) for key, cls in _SHAPES if key in metadata]
    return shapes or [Unrecognized(sorted(metadata.keys()))]


def is_code_change_attachment(att: Attachment) -> bool:
    url = att.url or ''
    if any(m in url for m in PR_URL_MARKERS):
        return True
    for text in (att.title, att.subtitle):
        lowered = (text or '').lower()
        if any(m in lowered for m in PR_TEXT_MARKERS):
            return True
    subtype = (att.subtype or '').lower()
    return any(m in subtype for m in PR_SUBTYPE_MARKERS)


def is_done_state(state: Optional[WorkflowState]) -> bool:
    return state is not None and state.name in DONE_STATE_NAMES


class MergeDecision:
    """Outcome of one classification: the boolean plus which tier decided it."""

    def __init__(self, merged: bool, tier: str, attachment_url: Optional[str] = None):
        self.merged = merged
        self.tier = tier
        self.attachment_url = attachment_url

    def __bool__(self):
        return self.merged

    def __repr__(self):
        return f"MergeDecision(merged={self.merged}, tier={self.tier!r}, attachment_url={self.attachment_url!r})"


class MergeEvidenceClassifier:
    """Classifies issues using attachments and workflow state fetched through the given client."""

    def __init__(self, client):
        self.client = client

    def has_merged_pr(self, issue: Issue) -> bool:
        return self.classify(issue).merged

    def classify(self, issue: Issue) -> MergeDecision:
        try:
            attachments = self.client.get_issue_attachments(issue) or []
        except Exception as ex:
            logger.debug("%s: could not list attachments (%s); treating as not merged", issue.identifier, ex)
            return MergeDecision(False, TIER_ATTACHMENTS_ERROR)

        if not attachments:
            return MergeDecision(False, TIER_NO_ATTACHMENTS)

        state_holder: List[Optional[WorkflowState]] = []
        for att in attachments:
            try:
                decision = self._classify_attachment(issue, att, state_holder)
            except Exception as ex:
                logger.debug("%s: error checking attachment %s: %s", issue.identifier, getattr(att, 'url', None), ex)
                continue
            if decision is not None:
                return decision
        return MergeDecision(False, TIER_NO_EVIDENCE)

    def _state(self, issue: Issue, holder: List[Optional[WorkflowState]]) -> Optional[WorkflowState]:
        # fetched at most once per classification
        if not holder:
            holder.append(self.client.get_issue_state(issue))
        return holder[0]

    def _classify_attachment(self, issue: Issue, att: Attachment, holder: List[Optional[WorkflowState]]) -> Optional[MergeDecision]:
        logger.debug("%s: attachment url=%s title=%s subtitle=%s subtype=%s metadata=%s", issue.identifier, att.url, att.title, att.subtitle, att.subtype, att.metadata)
        if not is_code_change_attachment(att):
            return None

        shapes = parse_metadata(att.metadata)
        if any(s.signals_merged() for s in shapes):
            logger.debug("%s: merged per metadata (%s)", issue.identifier, ','.join(s.kind for s in shapes))
            return MergeDecision(True, TIER_METADATA, att.url)

        state = self._state(issue, holder)
        if is_done_state(state):
            logger.debug("%s: state %s with PR attachment; likely merged", issue.identifier, state.name)
            return MergeDecision(True, TIER_STATE_FALLBACK, att.url)
        logger.debug("%s: state %s; not merged", issue.identifier, state.name if state else 'unknown')
        return None


def has_merged_pr(client, issue: Issue) -> bool:
    """Convenience wrapper: classify one issue with a throwaway classifier."""
    return MergeEvidenceClassifier(client).has_merged_pr(issue)


__all__ = [
    "StateField",
    "MergedFlag",
    "StatusField",
    "Unrecognized",
    "parse_metadata",
    "is_code_change_attachment",
    "is_done_state",
    "MergeDecision",
    "MergeEvidenceClassifier",
    "has_merged_pr",
]
