"""
CLI entry point for linear-report. Wires the pipeline: settings -> ingest -> correlate -> score -> report
"""

import argparse
import json
import logging
import os
import re
import sys
import webbrowser
from datetime import datetime, timezone

from errors import ConfigError, ReportError, UserNotFound
from ingest.linear import LinearClient
from ingest.pagination import collect_all
from normalize.dates import days_back_window, month_window
from normalize.models import ActivityFilter, IssueFilter
from pipeline import build_team_report, build_user_activity, find_workspace_user
from report.renderer import render_activity_json, render_activity_summary, render_activity_text, render_team
from settings import load_settings, require_credentials
from storage.cache import Cache
from storage.retry import configure_retry

logger = logging.getLogger(__name__)

TEAM_FORMATS = ('text', 'md', 'csv', 'json', 'html')
EXT_MAP = {'text': 'txt', 'md': 'md', 'csv': 'csv', 'json': 'json', 'html': 'html'}
DIAGNOSE_SAMPLE_SIZE = 10


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def slugify(text: str) -> str:
    """Lowercase and collapse every run of non-alphanumerics to '_'."""
    return re.sub(r'[^a-z0-9]+', '_', (text or '').lower()).strip('_')


def _today() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%d')


def team_report_name(reports_dir: str, month_name=None) -> str:
    """Base path (no extension) for a team report: reports/team_issues_report_<date|month-slug>."""
    suffix = slugify(month_name) if month_name else _today()
    return os.path.join(reports_dir, f"team_issues_report_{suffix}")


def activity_report_name(reports_dir: str, email: str) -> str:
    return os.path.join(reports_dir, f"activity_report_{slugify(email)}_{_today()}")


# --- cache management ---

def _print_cache_get(cache: Cache, key: str):
    entry = cache.get(key)
    if entry is None:
        print(f"Cache key not found: {key}")
    else:
        _print_json(entry)


def _confirm(prompt: str) -> bool:
    return input(prompt).strip().lower() in ('y', 'yes')


def _remove_cache_key(cache: Cache, key: str, force: bool):
    if not force and not _confirm(f"Remove cache key '{key}' from {cache.path}? [y/N]: "):
        print("Aborted cache key removal.")
        return
    removed = cache.delete_key(key)
    if removed:
        print(f"Removed {removed} row(s) for key: {key}")
    else:
        print(f"Cache key not found: {key}")


def _clear_cache(cache: Cache, force: bool):
    if not force and not _confirm(f"Clear the cache at {cache.path}? This cannot be undone. [y/N]: "):
        print("Aborted cache clear.")
        return
    cache.clear()
    print(f"Cleared cache at {cache.path}")


def _cache_action_requested(args) -> bool:
    return bool(args.cache_info or args.cache_clear or args.cache_list or args.cache_get or args.cache_remove)


def _handle_cache_actions(args, settings):
    """Run a cache inspection/management flag if one was given.

    Returns True when an action ran (the CLI should exit), False otherwise.
    """
    if not _cache_action_requested(args):
        return False
    with Cache(settings.get('cache_path') or 'cache.db') as cache:
        flag_actions = [
            (args.cache_info, lambda: _print_json(cache.stats())),
            (args.cache_clear, lambda: _clear_cache(cache, args.force)),
            (args.cache_list, lambda: _print_json(cache.list_keys(limit=1000))),
            (bool(args.cache_get), lambda: _print_cache_get(cache, args.cache_get)),
            (bool(args.cache_remove), lambda: _remove_cache_key(cache, args.cache_remove, args.force)),
        ]
        for enabled, handler in flag_actions:
            if enabled:
                handler()
                break
    return True


# --- output ---

def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def _write_report_file(path_base: str, ext: str, content: str, open_html: bool = False) -> str:
    """Write rendered content to <path_base>.<ext>, creating the directory, and optionally open HTML."""
    out_path = path_base if path_base.lower().endswith(f".{ext}") else f"{path_base}.{ext}"
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' keeps csv's \r\n intact
    with open(out_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Wrote report to {out_path}")
    if open_html and ext == 'html':
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print('Failed to open browser automatically; file saved at', out_path)
    return out_path


def write_team_output(report, fmt: str, path_base: str, export_all: bool = False, open_html: bool = False):
    """Print the text report to the console and write the requested format(s) to disk."""
    print(render_team(report, 'text'))
    formats = TEAM_FORMATS if export_all else (fmt,)
    return [_write_report_file(path_base, EXT_MAP[f], render_team(report, f), open_html=open_html) for f in formats]


# --- commands ---

def cache_ttl(settings):
    """TTL in seconds for the response cache; 0 or unset disables expiry."""
    ttl = settings.get('cache_ttl')
    return float(ttl) if ttl and float(ttl) > 0 else None


def _make_client(settings) -> LinearClient:
    require_credentials(settings)
    cache = Cache(settings['cache_path'], ttl_seconds=cache_ttl(settings)) if settings.get('cache_path') else None
    return LinearClient(
        api_key=settings.get('api_key'),
        access_token=settings.get('access_token'),
        cache=cache,
        timeout=settings.get('timeout'),
    )


def _close_client(client):
    if client is not None and client.cache is not None:
        client.cache.close()


def _team_window(args, settings):
    if args.month:
        window = month_window(args.month)
        if window is None:
            raise ConfigError(f"Invalid month: {args.month!r}. Use e.g. 'October', 'Oct 2024', '10' or '2024-10'.")
        return window
    days = args.days if args.days is not None else settings['days_back']
    return days_back_window(days)


def _team_emails(args, settings):
    if args.emails:
        return args.emails
    if args.all:
        return None
    return settings.get('team_emails') or None


def cmd_team(args, settings, client) -> int:
    window = _team_window(args, settings)
    emails = _team_emails(args, settings)
    print(f"Generating team issues report ({window.describe()})...")
    report = build_team_report(
        client,
        emails=emails,
        window=window,
        page_size=settings['page_size'],
        workers=settings['workers'],
    )
    for email in report.not_found:
        print(f"Warning: user with email {email} not found")
    base = args.out_file.strip() or team_report_name(settings['reports_dir'], window.month_name)
    write_team_output(report, args.format, base, export_all=args.export_all, open_html=args.open)
    return 0


def parse_activity_days(value, default_days):
    """'all' (or 0) means no cutoff; anything else must be a positive day count."""
    if value is None:
        return default_days
    if str(value).strip().lower() == 'all':
        return 0
    try:
        days = int(value)
    except ValueError:
        raise ConfigError(f"Invalid --days value: {value!r}. Use a number of days or 'all'.") from None
    if days < 0:
        raise ConfigError(f"Invalid --days value: {value!r}. Use a number of days or 'all'.")
    return days


def cmd_activity(args, settings, client) -> int:
    days = parse_activity_days(args.days, settings['days_back'])
    window = days_back_window(days)
    activity = build_user_activity(client, args.email, window.since, settings['activity_page_size'])

    print(f"Found user: {activity.user.name} ({activity.user.email})")
    print(render_activity_summary(activity))
    for warning in activity.warnings:
        print(f"Warning: {warning}")
    base = args.out_file.strip() or activity_report_name(settings['reports_dir'], args.email)
    _write_report_file(base, 'txt', render_activity_text(activity))
    if args.json:
        _write_report_file(base, 'json', render_activity_json(activity))
    return 0


def _all_states(client):
    return collect_all(lambda cursor, size: client.list_workflow_states(size, cursor), 50, 'workflow states')


def cmd_states(args, settings, client) -> int:
    states = _all_states(client)
    print(f"Workflow states ({len(states)}):")
    for state in states:
        print(f"   {state.name} ({state.type})")
    return 0


def cmd_diagnose(args, settings, client) -> int:
    """One sample page per collection: enough to check credentials, filters and state names."""
    window = days_back_window(args.days)
    user = find_workspace_user(client, args.email)
    print(f"User: {user.name} ({user.email}) id={user.user_id}")
    print(f"Window: {window.describe()}")

    comparator = window.comparator()
    samples = [
        ('comments', lambda: client.list_comments(ActivityFilter(user_id=user.user_id, created_at=comparator), DIAGNOSE_SAMPLE_SIZE)),
        ('assigned issues', lambda: client.list_issues(IssueFilter(assignee_id=user.user_id, updated_at=comparator), DIAGNOSE_SAMPLE_SIZE)),
        ('created issues', lambda: client.list_issues(IssueFilter(creator_id=user.user_id, created_at=comparator), DIAGNOSE_SAMPLE_SIZE)),
    ]
    for label, fetch in samples:
        try:
            page = fetch()
        except ReportError as ex:
            print(f"   {label}: error: {ex}")
            continue
        more = ' (more available)' if page.has_more else ''
        print(f"   {label}: {len(page.records)}{more}")

    states = _all_states(client)
    print(f"Workflow states: {', '.join(s.name for s in states)}")
    return 0


COMMANDS = {
    'team': cmd_team,
    'activity': cmd_activity,
    'states': cmd_states,
    'diagnose': cmd_diagnose,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='linear-report', description="Linear team issues and user activity reports")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file (default: ./linear_report.yaml if present)")
    parser.add_argument("--api-key", type=str, default=None, help="Linear API key (overrides LINEAR_API_KEY)")
    parser.add_argument("--access-token", type=str, default=None, help="Linear OAuth access token (overrides LINEAR_ACCESS_TOKEN)")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--reports-dir", type=str, default=None, help="Directory for generated report files")
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    # retry knobs; LINEAR_MAX_RETRIES, LINEAR_BACKOFF_BASE and LINEAR_MAX_BACKOFF set the defaults
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum retries on rate limiting")
    parser.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds")
    parser.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds")
    parser.add_argument("--cache", type=str, default=None, help="Path to SQLite cache file (optional)")
    parser.add_argument("--cache-ttl", type=float, default=None, help="Seconds before a cached response is refetched (0 = never expire; default 3600)")
    parser.add_argument("--cache-info", action="store_true", help="Show cache statistics")
    parser.add_argument("--cache-clear", action="store_true", help="Clear the persistent cache")
    parser.add_argument("--cache-list", action="store_true", help="List cache keys")
    parser.add_argument("--cache-get", type=str, default="", help="Show a specific cache entry")
    parser.add_argument("--cache-remove", type=str, default="", help="Remove a specific cache key")
    parser.add_argument("--force", action="store_true", help="Skip confirmation for --cache-clear / --cache-remove")
    parser.add_argument("--debug-pr-metadata", action="store_true", default=None, help="Log attachment metadata while classifying merge evidence")

    sub = parser.add_subparsers(dest="command")

    team = sub.add_parser("team", help="Team issues report (assigned, created, merged PRs)")
    team.add_argument("emails", nargs="*", help="Team member emails (default: TEAM_EMAILS / config, else all users)")
    team.add_argument("--all", action="store_true", help="Report on every workspace user, ignoring configured team emails")
    period = team.add_mutually_exclusive_group()
    period.add_argument("--days", type=int, default=None, help="Days back to include (0 = all time)")
    period.add_argument("--month", type=str, default=None, help="Calendar month, e.g. 'October', 'Oct 2024', '2024-10'")
    team.add_argument("--format", choices=TEAM_FORMATS, default="text", help="Report file format")
    team.add_argument("--export-all", action="store_true", help="Write text, md, csv, json and html copies")
    team.add_argument("--out-file", type=str, default="", help="Output path without extension")
    team.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    team.add_argument("--workers", type=int, default=None, help="Users processed in parallel")

    activity = sub.add_parser("activity", help="One user's comments, reactions and issues")
    activity.add_argument("email", help="User email (exact or partial match)")
    activity.add_argument("--days", type=str, default=None, help="Days back to include, or 'all'")
    activity.add_argument("--json", action="store_true", help="Also write a JSON report")
    activity.add_argument("--out-file", type=str, default="", help="Output path without extension")

    sub.add_parser("states", help="List the workspace's workflow states")

    diagnose = sub.add_parser("diagnose", help="Sample counts for one user and the workflow state list")
    diagnose.add_argument("email", help="User email (exact or partial match)")
    diagnose.add_argument("--days", type=int, default=30, help="Days back to sample")
    return parser


def _settings_from_args(args):
    overrides = {
        'api_key': args.api_key,
        'access_token': args.access_token,
        'log_level': args.log_level,
        'reports_dir': args.reports_dir,
        'timeout': args.timeout,
        'max_retries': args.max_retries,
        'cache_path': args.cache,
        'cache_ttl': args.cache_ttl,
        'workers': getattr(args, 'workers', None),
        'debug_pr_metadata': args.debug_pr_metadata,
    }
    return load_settings(args.config, overrides)


def _configure_logging(settings):
    level = getattr(logging, str(settings.get('log_level') or 'WARNING').upper(), logging.WARNING)
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')
    if settings.get('debug_pr_metadata'):
        logging.getLogger('correlate.merge_evidence').setLevel(logging.DEBUG)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ConfigError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 1
    _configure_logging(settings)
    configure_retry(max_retries=settings['max_retries'], backoff_base=args.backoff_base, max_backoff=args.max_backoff)

    if _handle_cache_actions(args, settings):
        return 0
    if not args.command:
        parser.print_help()
        return 1

    client = None
    try:
        client = _make_client(settings)
        return COMMANDS[args.command](args, settings, client)
    except UserNotFound as ex:
        print(f"Error: {ex}", file=sys.stderr)
        if ex.sample:
            print("Available users (first 10):", file=sys.stderr)
            for line in ex.sample:
                print(f"   - {line}", file=sys.stderr)
        return 1
    except ReportError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 1
    finally:
        _close_client(client)


if __name__ == "__main__":
    sys.exit(main())
