import pytest

from errors import NoTargetUsers, UserNotFound
from normalize.dates import days_back_window
from pipeline import build_team_report, build_user_activity, find_workspace_user
from fakes import FakeLinearClient, make_comment, make_issue, make_user, pr_attachment


def team_client():
    users = [make_user('u1', 'Alice', 'alice@example.com'), make_user('u2', 'Bob', 'bob@example.com'), make_user('u3', 'Carol', 'carol@example.com')]
    return FakeLinearClient(
        users=users,
        assigned={'u1': [make_issue('1'), make_issue('2')]},
        attachments={'1': [pr_attachment('1', {'state': 'merged'})], '2': [pr_attachment('2', {'state': 'open'})]},
        states={'2': 'In Review'},
        fail_users={'u3'},
    )


@pytest.mark.parametrize('workers', [1, 4])
def test_team_report_drops_failed_users(workers):
    report = build_team_report(team_client(), window=days_back_window(30), workers=workers)
    assert [s.user_name for s in report.team_stats] == ['Alice', 'Bob']
    alice = report.team_stats[0]
    assert (alice.assigned, alice.created, alice.with_merged_prs) == (2, 0, 1)
    assert report.summary.total_developers == 2
    assert report.summary.total_issues_with_merged_prs == 1
    assert report.summary.total_issues_handled == 2
    assert report.failed_users == ['Carol']
    assert report.date_range['since'] is not None


def test_team_report_with_emails_records_not_found():
    report = build_team_report(team_client(), emails=['bob@example.com', 'zed@example.com'])
    assert [s.user_name for s in report.team_stats] == ['Bob']
    assert report.not_found == ['zed@example.com']
    assert report.date_range == {'since': None, 'until': None, 'month_name': None}


def test_team_report_counts_a_user_once_when_emails_overlap():
    report = build_team_report(team_client(), emails=['alice@example.com', 'alice'])
    assert [s.user_name for s in report.team_stats] == ['Alice']
    assert report.summary.total_developers == 1
    assert report.summary.total_issues_assigned == 2
    assert report.not_found == []


def test_team_report_no_targets():
    with pytest.raises(NoTargetUsers):
        build_team_report(team_client(), emails=['zed@example.com'])


def test_team_report_empty_workspace():
    with pytest.raises(NoTargetUsers):
        build_team_report(FakeLinearClient(users=[]))


def test_team_report_to_dict_is_json_ready():
    d = build_team_report(team_client()).to_dict()
    assert d['team_stats'][0]['total_handled'] == 2
    assert d['summary']['total_developers'] == 2


def test_find_workspace_user_pages_through_users():
    users = [make_user(f"u{i}") for i in range(120)]
    client = FakeLinearClient(users=users)
    assert find_workspace_user(client, 'u117@example.com').user_id == 'u117'
    assert client.calls['list_users'] == 3
    with pytest.raises(UserNotFound):
        find_workspace_user(client, 'nobody@example.com')


def test_build_user_activity():
    issue = make_issue('9', state='Todo')
    client = FakeLinearClient(users=[make_user('u1', 'Alice', 'alice@example.com')], comments={'u1': [make_comment('c1', issue)]}, issues={'9': issue})
    activity = build_user_activity(client, 'ALICE@example.com')
    assert activity.user.user_id == 'u1'
    assert len(activity.interactions) == 1
    assert activity.interactions[0].issue['state'] == 'Todo'


def test_build_user_activity_unknown_email():
    with pytest.raises(UserNotFound):
        build_user_activity(FakeLinearClient(users=[make_user('u1')]), 'zed@example.com')
