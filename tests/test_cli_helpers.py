import json
import os
import webbrowser
from pathlib import Path

import pytest

import cli
from cli import _write_report_file, activity_report_name, parse_activity_days, slugify, team_report_name, write_team_output
from errors import ConfigError
from storage.cache import Cache
from fakes import FakeLinearClient, make_comment, make_issue, make_user, pr_attachment
from test_report_renderer import sample_report


def test_write_report_file_creates_file(tmp_path):
    base = str(tmp_path / 'nested' / 'out_report')
    out = _write_report_file(base, 'txt', 'hello world', open_html=False)
    p = Path(f"{base}.txt")
    assert out == str(p)
    assert p.read_text(encoding='utf-8') == 'hello world'


def test_write_report_file_keeps_existing_extension(tmp_path):
    out = _write_report_file(str(tmp_path / 'report.csv'), 'csv', 'a,b\r\n')
    assert out.endswith('report.csv')
    assert Path(out).read_bytes() == b'a,b\r\n'


def test_write_report_file_opens_html(monkeypatch, tmp_path):
    called = {}

    def fake_open(url):
        called['url'] = url
        return True

    monkeypatch.setattr(webbrowser, 'open', fake_open)
    _write_report_file(str(tmp_path / 'out_report2'), 'html', '<html><body>ok</body></html>', open_html=True)
    assert called['url'].startswith('file://')


def test_report_names():
    assert slugify('Jane.Doe@Example.com') == 'jane_doe_example_com'
    assert team_report_name('reports', 'October 2024') == os.path.join('reports', 'team_issues_report_october_2024')
    assert os.path.basename(team_report_name('reports')).startswith('team_issues_report_20')
    assert os.path.basename(activity_report_name('r', 'a.b@x.com')).startswith('activity_report_a_b_x_com_')


def test_parse_activity_days():
    assert parse_activity_days(None, 30) == 30
    assert parse_activity_days('all', 30) == 0
    assert parse_activity_days('7', 30) == 7
    with pytest.raises(ConfigError):
        parse_activity_days('soon', 30)
    with pytest.raises(ConfigError):
        parse_activity_days('-3', 30)


def test_write_team_output_export_all(tmp_path, capsys):
    written = write_team_output(sample_report(), 'text', str(tmp_path / 'team'), export_all=True)
    assert sorted(os.path.basename(p) for p in written) == ['team.csv', 'team.html', 'team.json', 'team.md', 'team.txt']
    assert json.loads(Path(tmp_path / 'team.json').read_text(encoding='utf-8'))['summary']['total_developers'] == 2
    assert 'TEAM ISSUES REPORT' in capsys.readouterr().out


def _cli_client():
    users = [make_user('u1', 'Alice', 'alice@example.com'), make_user('u2', 'Bob', 'bob@example.com')]
    issue = make_issue('1', state='Done')
    return FakeLinearClient(
        users=users,
        assigned={'u1': [issue]},
        attachments={'1': [pr_attachment('1')]},
        comments={'u1': [make_comment('c1', issue)]},
        issues={'1': issue},
        workflow_states=[issue.state],
    )


@pytest.fixture
def fake_cli(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for var in ('LINEAR_API_KEY', 'LINEAR_ACCESS_TOKEN', 'TEAM_EMAILS', 'LINEAR_CACHE'):
        monkeypatch.delenv(var, raising=False)
    client = _cli_client()
    monkeypatch.setattr(cli, '_make_client', lambda settings: client)
    return client


def test_main_team_month(fake_cli, tmp_path, capsys):
    rc = cli.main(['--reports-dir', str(tmp_path / 'reports'), 'team', '--month', 'October 2024', '--format', 'md'])
    assert rc == 0
    report = tmp_path / 'reports' / 'team_issues_report_october_2024.md'
    assert '| Alice | 1 | 0 | 1 | 1 |' in report.read_text(encoding='utf-8')
    assert 'October 2024' in capsys.readouterr().out


def test_main_team_missing_email_warns(fake_cli, tmp_path, capsys):
    rc = cli.main(['--reports-dir', str(tmp_path), 'team', 'bob@example.com', 'zed@example.com', '--days', '0'])
    assert rc == 0
    assert 'zed@example.com not found' in capsys.readouterr().out


def test_main_team_invalid_month(fake_cli, capsys):
    assert cli.main(['team', '--month', 'Smarch']) == 1
    assert 'Invalid month' in capsys.readouterr().err


def test_main_activity_writes_text_and_json(fake_cli, tmp_path):
    rc = cli.main(['--reports-dir', str(tmp_path / 'out'), 'activity', 'alice@example.com', '--days', 'all', '--json'])
    assert rc == 0
    names = sorted(p.suffix for p in (tmp_path / 'out').iterdir())
    assert names == ['.json', '.txt']


def test_main_activity_unknown_user(fake_cli, capsys):
    assert cli.main(['activity', 'nobody@example.com']) == 1
    err = capsys.readouterr().err
    assert 'not found' in err
    assert 'Alice (alice@example.com)' in err


def test_main_states_and_diagnose(fake_cli, capsys):
    assert cli.main(['states']) == 0
    assert 'Done' in capsys.readouterr().out
    assert cli.main(['diagnose', 'alice@example.com']) == 0
    out = capsys.readouterr().out
    assert 'comments: 1' in out
    assert 'assigned issues: 1' in out


def test_main_requires_credentials(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('LINEAR_API_KEY', raising=False)
    monkeypatch.delenv('LINEAR_ACCESS_TOKEN', raising=False)
    assert cli.main(['states']) == 1
    assert 'LINEAR_API_KEY' in capsys.readouterr().err


def test_cache_info(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    path = str(tmp_path / 'c.db')
    with Cache(path) as cache:
        cache.set('k', {'v': 1}, 'users')
    assert cli.main(['--cache', path, '--cache-info']) == 0
    assert json.loads(capsys.readouterr().out)['count'] == 1
    assert cli.main(['--cache', path, '--cache-clear', '--force']) == 0
    with Cache(path) as cache:
        assert cache.stats()['count'] == 0


def test_make_client_applies_cache_ttl(tmp_path):
    settings = {'api_key': 'k', 'access_token': None, 'timeout': 30.0, 'cache_path': str(tmp_path / 'c.db'), 'cache_ttl': 120.0}
    client = cli._make_client(settings)
    try:
        assert client.cache.ttl_seconds == 120.0
    finally:
        client.cache.close()
    client = cli._make_client(dict(settings, cache_ttl=0))
    try:
        assert client.cache.ttl_seconds is None
    finally:
        client.cache.close()


def test_cache_ttl_flag_reaches_settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('LINEAR_CACHE_TTL', raising=False)
    args = cli.build_parser().parse_args(['--cache-ttl', '60', 'states'])
    assert cli._settings_from_args(args)['cache_ttl'] == 60.0
