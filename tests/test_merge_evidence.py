import pytest

from correlate.merge_evidence import (
    MergeEvidenceClassifier,
    MergedFlag,
    StateField,
    StatusField,
    TIER_ATTACHMENTS_ERROR,
    TIER_METADATA,
    TIER_NO_ATTACHMENTS,
    TIER_NO_EVIDENCE,
    TIER_STATE_FALLBACK,
    Unrecognized,
    has_merged_pr,
    is_code_change_attachment,
    parse_metadata,
)
from errors import RemoteFetchError
from normalize.models import Attachment
from fakes import FakeLinearClient, make_issue, pr_attachment


def classify(attachments, state=None, issue_state=None):
    issue = make_issue('1', state=issue_state)
    client = FakeLinearClient(attachments={'1': attachments}, states={'1': state} if state else {})
    return MergeEvidenceClassifier(client).classify(issue), client


# --- metadata shapes ---

def test_parse_metadata_shapes():
    assert parse_metadata(None) == []
    assert parse_metadata({}) == []
    shapes = parse_metadata({'state': 'merged', 'merged': True, 'status': 'open'})
    assert [type(s) for s in shapes] == [StateField, MergedFlag, StatusField]
    unknown = parse_metadata({'number': 12, 'draft': False})
    assert len(unknown) == 1 and isinstance(unknown[0], Unrecognized)
    assert unknown[0].keys == ['draft', 'number']


@pytest.mark.parametrize('metadata,expected', [
    ({'state': 'merged'}, True),
    ({'state': 'closed'}, False),
    ({'merged': True}, True),
    ({'merged': 'true'}, False),
    ({'status': 'merged'}, True),
    ({'status': 'Merged'}, False),
    ({'reviewers': []}, False),
])
def test_metadata_signals(metadata, expected):
    assert any(s.signals_merged() for s in parse_metadata(metadata)) is expected


@pytest.mark.parametrize('att,expected', [
    (Attachment('1', 'https://github.com/a/b/pull/3'), True),
    (Attachment('1', 'https://github.com/a/b/pulls/3'), True),
    (Attachment('1', 'https://gitlab.com/a/b/-/merge_requests/3'), True),
    (Attachment('1', 'https://example.com/doc', title='Pull Request #3'), True),
    (Attachment('1', 'https://example.com/doc', subtitle='merge request by bob'), True),
    (Attachment('1', 'https://example.com/doc', subtype='githubPullRequest'), True),
    (Attachment('1', 'https://example.com/doc', title='Design doc'), False),
    (Attachment('1', 'https://figma.com/file/xyz'), False),
])
def test_code_change_attachment_detection(att, expected):
    assert is_code_change_attachment(att) is expected


# --- decision tiers ---

def test_no_attachments_never_fetches_state():
    decision, client = classify([], state='Done')
    assert not decision
    assert decision.tier == TIER_NO_ATTACHMENTS
    assert client.calls['get_issue_state'] == 0


def test_attachment_listing_error_is_not_merged():
    decision, _ = classify(RemoteFetchError('attachments down'))
    assert decision.merged is False
    assert decision.tier == TIER_ATTACHMENTS_ERROR


def test_merged_metadata_wins_without_state_lookup():
    decision, client = classify([pr_attachment('1', {'state': 'merged'})], state='In Progress')
    assert decision.merged is True
    assert decision.tier == TIER_METADATA
    assert decision.attachment_url == 'https://github.com/acme/app/pull/1'
    assert client.calls['get_issue_state'] == 0


@pytest.mark.parametrize('state', ['Done', 'Completed', 'Merged'])
def test_done_state_fallback(state):
    decision, _ = classify([pr_attachment('1', {'state': 'closed'})], state=state)
    assert decision.merged is True
    assert decision.tier == TIER_STATE_FALLBACK


@pytest.mark.parametrize('state', ['done', 'In Review', 'Canceled'])
def test_state_names_are_exact(state):
    decision, _ = classify([pr_attachment('1')], state=state)
    assert decision.merged is False
    assert decision.tier == TIER_NO_EVIDENCE


def test_non_pr_attachments_are_ignored():
    decision, client = classify([Attachment('1', 'https://figma.com/file/x', metadata={'state': 'merged'})], state='Done')
    assert decision.merged is False
    assert decision.tier == TIER_NO_EVIDENCE
    assert client.calls['get_issue_state'] == 0


def test_state_fetched_once_per_classification():
    attachments = [pr_attachment('1', {'state': 'open'}, url=f"https://github.com/a/b/pull/{n}") for n in range(4)]
    decision, client = classify(attachments, state='In Progress')
    assert decision.merged is False
    assert client.calls['get_issue_state'] == 1


def test_loaded_state_used_for_fallback():
    decision, _ = classify([pr_attachment('1')], issue_state='Done')
    assert decision.tier == TIER_STATE_FALLBACK


def test_state_error_skips_attachment_and_continues():
    issue = make_issue('1')
    client = FakeLinearClient(attachments={'1': [pr_attachment('1'), pr_attachment('1', {'merged': True})]}, states={'1': RemoteFetchError('state down')})
    decision = MergeEvidenceClassifier(client).classify(issue)
    assert decision.merged is True
    assert decision.tier == TIER_METADATA


def test_module_level_has_merged_pr():
    issue = make_issue('7')
    client = FakeLinearClient(attachments={'7': [pr_attachment('7', {'status': 'merged'})]})
    assert has_merged_pr(client, issue) is True
