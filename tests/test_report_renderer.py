import csv
import io
import json

import pytest

from correlate.models import ActivityRecord, InteractionRecord, IssueStats, TeamReport, TeamSummary
from report.renderer import (
    render_activity_json,
    render_activity_summary,
    render_activity_text,
    render_team,
    render_team_csv,
    render_team_html,
    render_team_markdown,
    render_team_text,
)
from scoring.utils import rank, summarize
from fakes import make_comment, make_issue, make_reaction, make_user


def sample_report(stats=None):
    stats = stats if stats is not None else [
        IssueStats('u2', 'Bob <b>', 'bob@example.com', assigned=1, created=0, with_merged_prs=0),
        IssueStats('u1', 'Alice', 'alice@example.com', assigned=3, created=2, with_merged_prs=2),
    ]
    return TeamReport(
        generated_at='2024-11-01T12:30:00+00:00',
        date_range={'since': '2024-10-01T00:00:00+00:00', 'until': '2024-10-31T23:59:59.999999+00:00', 'month_name': 'October 2024'},
        team_stats=rank(stats),
        summary=summarize(stats),
        not_found=['zed@example.com'],
    )


def test_team_text_table():
    out = render_team_text(sample_report())
    assert 'TEAM ISSUES REPORT' in out
    assert 'Date Range: October 2024' in out
    assert 'Total Issues with Merged PRs: 2' in out
    assert 'Emails not found: zed@example.com' in out
    lines = out.splitlines()
    header = next(i for i, line in enumerate(lines) if 'Developer Name' in line)
    assert lines[header + 2].split() == ['Alice', '3', '2', '2', '5']
    assert lines[header + 3].split()[-4:] == ['1', '0', '0', '1']


def test_team_text_empty():
    report = sample_report(stats=[])
    assert 'No data found' in render_team_text(report)
    assert report.summary.total_developers == 0


def test_team_markdown_and_csv():
    report = sample_report()
    md = render_team_markdown(report)
    assert '| Alice | 3 | 2 | 2 | 5 |' in md
    rows = list(csv.DictReader(io.StringIO(render_team_csv(report))))
    assert [r['user_name'] for r in rows] == ['Alice', 'Bob <b>']
    assert rows[0]['total_handled'] == '5'


def test_team_json_roundtrip():
    parsed = json.loads(render_team(sample_report(), 'json'))
    assert parsed['summary']['total_issues_handled'] == 6
    assert parsed['team_stats'][0]['user_name'] == 'Alice'
    assert parsed['not_found'] == ['zed@example.com']


def test_team_html_escapes_names():
    html = render_team_html(sample_report())
    assert '<table>' in html
    assert 'Bob &lt;b&gt;' in html
    assert 'October 2024' in html


def test_render_team_rejects_unknown_format():
    with pytest.raises(ValueError):
        render_team(sample_report(), 'pdf')


def sample_activity():
    user = make_user('u1', 'Alice')
    issue = make_issue('1', state='Done')
    record = ActivityRecord(user)
    record.comments = [make_comment('c1', issue, body='first line\nsecond line')]
    record.reactions = [make_reaction('r1', issue, emoji='tada')]
    ref = dict(issue.ref(), state='Done')
    record.interactions = [InteractionRecord(ref, record.comments, record.reactions, issue.updated_at)]
    record.issue_creations = [dict(issue.ref(), created_at=issue.created_at, updated_at=issue.updated_at, description='')]
    record.warnings = ['Could not fetch reactions']
    return record


def test_activity_text_indents_every_body_line():
    out = render_activity_text(sample_activity())
    assert 'ACTIVITY REPORT FOR ALICE' in out
    assert '         first line' in out.splitlines()
    assert '         second line' in out.splitlines()
    assert 'Reaction emojis: tada' in out
    assert 'ISSUES ASSIGNED (0):' in out
    assert 'No issues assigned' in out
    assert '   - Could not fetch reactions' in out


def test_activity_summary_and_json():
    activity = sample_activity()
    assert 'Issue Interactions: 1' in render_activity_summary(activity)
    parsed = json.loads(render_activity_json(activity))
    assert parsed['user']['email'] == 'u1@example.com'
    assert parsed['interactions'][0]['issue']['state'] == 'Done'
    assert parsed['comments'][0]['body'] == 'first line\nsecond line'


def test_summary_type():
    assert isinstance(sample_report().summary, TeamSummary)
