"""
Report renderer: text, Markdown, CSV, JSON and HTML output for team reports, and text/JSON
output for user activity records.
HTML is rendered with Jinja2 from report/templates/team_report.html.j2.
"""

from typing import List, Optional
from datetime import datetime
import os
import json
import io
import csv

from jinja2 import Environment, FileSystemLoader, select_autoescape

from correlate.models import ActivityRecord, TeamReport

RULE = '=' * 80
TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), 'templates')
COLUMNS = ('Assigned', 'Created', 'Merged PRs', 'Total')
COL_WIDTH = 12


def _fmt_ts(ts: Optional[str]) -> str:
    """Render an ISO-8601 timestamp as 'YYYY-MM-DD HH:MM' (UTC as reported); unparsable values pass through."""
    if not ts:
        return ''
    try:
        return datetime.fromisoformat(ts.replace('Z', '+00:00')).strftime('%Y-%m-%d %H:%M')
    except ValueError:
        return ts


def _date_range_label(date_range: dict) -> str:
    if date_range.get('month_name'):
        return date_range['month_name']
    since, until = date_range.get('since'), date_range.get('until')
    if since and until:
        return f"{since[:10]} to {until[:10]}"
    if since:
        return f"Since {since[:10]}"
    if until:
        return f"Until {until[:10]}"
    return 'All time'


def _indent_lines(text: str, prefix: str = ' ' * 9) -> List[str]:
    return [f"{prefix}{line}" for line in (text or '').split('\n')]


# --- team report ---

def _summary_lines(report: TeamReport) -> List[str]:
    s = report.summary
    return [
        f"   Total Developers: {s.total_developers}",
        f"   Total Issues Assigned: {s.total_issues_assigned}",
        f"   Total Issues Created: {s.total_issues_created}",
        f"   Total Issues with Merged PRs: {s.total_issues_with_merged_prs}",
        f"   Total Issues Handled: {s.total_issues_handled}",
    ]


def _stats_table_lines(report: TeamReport) -> List[str]:
    name_width = max([len(s.user_name) for s in report.team_stats] + [len('Developer Name')]) + 2
    lines = ['   ' + 'Developer Name'.ljust(name_width) + ''.join(c.rjust(COL_WIDTH) for c in COLUMNS)]
    lines.append('   ' + '-' * (name_width + COL_WIDTH * len(COLUMNS)))
    for s in report.team_stats:
        values = (s.assigned, s.created, s.with_merged_prs, s.total_handled)
        lines.append('   ' + s.user_name.ljust(name_width) + ''.join(str(v).rjust(COL_WIDTH) for v in values))
    return lines


def render_team_text(report: TeamReport) -> str:
    """Plain-text team report with a fixed-width developer table."""
    out = ['', RULE, 'TEAM ISSUES REPORT', RULE]
    out.append(f"Generated: {_fmt_ts(report.generated_at)}")
    out.append(f"Date Range: {_date_range_label(report.date_range)}")
    out.extend([RULE, '', 'SUMMARY:'])
    out.extend(_summary_lines(report))
    if report.not_found:
        out.append(f"   Emails not found: {', '.join(report.not_found)}")
    if report.failed_users:
        out.append(f"   Users skipped after errors: {', '.join(report.failed_users)}")
    out.extend(['', 'DEVELOPER STATISTICS:', ''])
    if not report.team_stats:
        out.append('   No data found for the specified criteria.')
        return '\n'.join(out) + '\n'
    out.extend(_stats_table_lines(report))
    out.extend(['', RULE])
    return '\n'.join(out) + '\n'


def render_team_markdown(report: TeamReport) -> str:
    md = ["# Team Issues Report\n"]
    md.append(f"- Generated: {_fmt_ts(report.generated_at)}")
    md.append(f"- Date Range: {_date_range_label(report.date_range)}")
    md.append("")
    md.append("## Summary\n")
    s = report.summary
    md.append(f"- Total Developers: **{s.total_developers}**")
    md.append(f"- Total Issues Assigned: **{s.total_issues_assigned}**")
    md.append(f"- Total Issues Created: **{s.total_issues_created}**")
    md.append(f"- Total Issues with Merged PRs: **{s.total_issues_with_merged_prs}**")
    md.append(f"- Total Issues Handled: **{s.total_issues_handled}**")
    md.append("")
    md.append("## Developers\n")
    if not report.team_stats:
        md.append("_No data found for the specified criteria._")
        return "\n".join(md)
    md.append("| Developer | Assigned | Created | Merged PRs | Total |")
    md.append("|---|---:|---:|---:|---:|")
    for st in report.team_stats:
        md.append(f"| {st.user_name} | {st.assigned} | {st.created} | {st.with_merged_prs} | {st.total_handled} |")
    return "\n".join(md)


def render_team_csv(report: TeamReport) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['user_id', 'user_name', 'user_email', 'assigned', 'created', 'with_merged_prs', 'total_handled'])
    for s in report.team_stats:
        writer.writerow([s.user_id, s.user_name, s.user_email or '', s.assigned, s.created, s.with_merged_prs, s.total_handled])
    return output.getvalue()


def render_team_json(report: TeamReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def render_team_html(report: TeamReport) -> str:
    env = Environment(loader=FileSystemLoader(TEMPLATES_DIR), autoescape=select_autoescape(['html', 'xml', 'j2']))
    tmpl = env.get_template('team_report.html.j2')
    return tmpl.render(
        report=report,
        summary=report.summary,
        generated_at=_fmt_ts(report.generated_at),
        date_range=_date_range_label(report.date_range),
    )


TEAM_RENDERERS = {
    'text': render_team_text,
    'txt': render_team_text,
    'md': render_team_markdown,
    'markdown': render_team_markdown,
    'csv': render_team_csv,
    'json': render_team_json,
    'html': render_team_html,
}


def render_team(report: TeamReport, fmt: str = 'text') -> str:
    """Main team render function; unknown formats raise ValueError."""
    renderer = TEAM_RENDERERS.get((fmt or 'text').lower())
    if renderer is None:
        raise ValueError(f"Unsupported format: {fmt}")
    return renderer(report)


# --- user activity ---

def _comment_section(activity: ActivityRecord) -> List[str]:
    out = [f"COMMENTS ({len(activity.comments)}):"]
    if not activity.comments:
        return out + ['   No comments found']
    for idx, c in enumerate(activity.comments, 1):
        issue = c.issue or {}
        out.append('')
        out.append(f"   {idx}. Issue: {issue.get('identifier')} - {issue.get('title')}")
        out.append(f"      Date: {_fmt_ts(c.created_at)}")
        out.append(f"      URL: {issue.get('url')}")
        out.append('      Comment:')
        out.extend(_indent_lines(c.body))
    return out


def _interaction_section(activity: ActivityRecord) -> List[str]:
    out = [f"ISSUE INTERACTIONS ({len(activity.interactions)}):"]
    if not activity.interactions:
        return out + ['   No issue interactions found']
    for idx, it in enumerate(activity.interactions, 1):
        out.append('')
        out.append(f"   {idx}. Issue: {it.issue.get('identifier')} - {it.issue.get('title')}")
        out.append(f"      State: {it.issue.get('state')}")
        out.append(f"      Comments: {len(it.comments)}")
        out.append(f"      Reactions: {len(it.reactions)}")
        if it.reactions:
            out.append(f"      Reaction emojis: {', '.join(r.emoji for r in it.reactions)}")
        out.append(f"      Last Updated: {_fmt_ts(it.last_updated)}")
        out.append(f"      URL: {it.issue.get('url')}")
    return out


def _issue_section(title: str, issues: List[dict], empty: str, assigned: bool) -> List[str]:
    out = [f"{title} ({len(issues)}):"]
    if not issues:
        return out + [f"   {empty}"]
    for idx, issue in enumerate(issues, 1):
        out.append('')
        if assigned:
            out.append(f"   {idx}. {issue.get('identifier')} - {issue.get('title')} [{issue.get('state')}]")
            if issue.get('updated_at'):
                out.append(f"      Updated: {_fmt_ts(issue.get('updated_at'))}")
        else:
            out.append(f"   {idx}. {issue.get('identifier')} - {issue.get('title')}")
            out.append(f"      Created: {_fmt_ts(issue.get('created_at'))}")
        if issue.get('description'):
            out.append('      Description:')
            out.extend(_indent_lines(issue['description']))
    return out


def render_activity_text(activity: ActivityRecord) -> str:
    """Plain-text activity report; multi-line bodies are indented line by line."""
    out = ['', RULE, f"ACTIVITY REPORT FOR {activity.user.name.upper()}", RULE, '']
    out.extend(_comment_section(activity))
    out.append('')
    out.extend(_interaction_section(activity))
    out.append('')
    out.extend(_issue_section('ISSUES CREATED', activity.issue_creations, 'No issues created', assigned=False))
    out.append('')
    out.extend(_issue_section('ISSUES ASSIGNED', activity.issue_assignments, 'No issues assigned', assigned=True))
    out.extend(['', RULE, '', 'SUMMARY:'])
    out.append(f"   Total Comments: {len(activity.comments)}")
    out.append(f"   Issue Interactions: {len(activity.interactions)}")
    out.append(f"   Issues Created: {len(activity.issue_creations)}")
    out.append(f"   Issues Assigned: {len(activity.issue_assignments)}")
    if activity.warnings:
        out.append('')
        out.append('WARNINGS:')
        out.extend(f"   - {w}" for w in activity.warnings)
    out.append(RULE)
    return '\n'.join(out) + '\n'


def render_activity_summary(activity: ActivityRecord) -> str:
    """Short console summary."""
    return '\n'.join([
        RULE,
        f"ACTIVITY SUMMARY FOR {activity.user.name.upper()}",
        RULE,
        f"   Total Comments: {len(activity.comments)}",
        f"   Issue Interactions: {len(activity.interactions)}",
        f"   Issues Created: {len(activity.issue_creations)}",
        f"   Issues Assigned: {len(activity.issue_assignments)}",
        RULE,
    ])


def render_activity_json(activity: ActivityRecord) -> str:
    return json.dumps(activity.to_dict(), indent=2)
