"""
Report renderer: generate text/Markdown/CSV/JSON/HTML summaries of cycle-time metrics and tickets.
HTML is rendered with Jinja2 using report/templates/report.html.j2.
"""

import csv
import io
import json
import os
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from normalize.models import Duration, Ticket
from normalize.util import ticket_to_dict
from scoring.metrics import metrics_to_dict

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')


def _phase_rows(metrics: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Group flat <phase>_<stat> keys into one row per phase, preserving order."""
    rows: Dict[str, Dict[str, Any]] = {}
    for key, value in metrics.items():
        if not isinstance(value, Duration):
            continue
        phase, _, stat = key.rpartition('_')
        rows.setdefault(phase, {'phase': phase})[stat] = value
    return list(rows.values())


def _ticket_phases(tickets: Sequence[Ticket]) -> List[str]:
    phases: List[str] = []
    for t in tickets:
        for name in t.durations:
            if name not in phases:
                phases.append(name)
    return phases


def render_text(metrics: Optional[Dict[str, Any]] = None, tickets: Optional[Sequence[Ticket]] = None) -> str:
    """Render a simple plain-text summary."""
    lines = []
    if metrics:
        lines.append(f"org: {metrics.get('org') or ''}")
        lines.append(f"tickets: {metrics.get('n', 0)}")
        for row in _phase_rows(metrics):
            stats = ', '.join(f"{stat} {d.human}" for stat, d in row.items() if stat != 'phase')
            lines.append(f"{row['phase']}: {stats}")
    for t in tickets or []:
        spans = ', '.join(f"{name}={d.human or '-'}" for name, d in t.durations.items())
        lines.append(f"{t.repo}#{t.id} [{t.kind}] {spans}")
    return "\n".join(lines)


def render_markdown(metrics: Optional[Dict[str, Any]] = None, tickets: Optional[Sequence[Ticket]] = None) -> str:
    """Render Markdown tables for the metrics summary and/or the ticket list."""
    md = []
    if metrics:
        rows = _phase_rows(metrics)
        stats = [s for s in ('mean', 'median', 'max') if any(s in r for r in rows)]
        md.append("# Cycle Time Summary\n")
        md.append(f"- Org: **{metrics.get('org') or ''}**")
        md.append(f"- Tickets: **{metrics.get('n', 0)}**\n")
        md.append("| phase | " + " | ".join(stats) + " |")
        md.append("|---|" + "---|" * len(stats))
        for r in rows:
            md.append(f"| {r['phase']} | " + " | ".join(r[s].human if s in r else '' for s in stats) + " |")
    if tickets:
        phases = _ticket_phases(tickets)
        if md:
            md.append("")
        md.append("## Tickets\n")
        md.append("| ticket | kind | " + " | ".join(phases) + " |")
        md.append("|---|---|" + "---|" * len(phases))
        for t in tickets:
            cells = [t.durations[p].human if p in t.durations else '' for p in phases]
            md.append(f"| {t.repo}#{t.id} | {t.kind} | " + " | ".join(cells) + " |")
    return "\n".join(md)


def render_csv(metrics: Optional[Dict[str, Any]] = None, tickets: Optional[Sequence[Ticket]] = None) -> str:
    """Render tickets as CSV (one row each, seconds per phase); without tickets render the metrics rows."""
    output = io.StringIO()
    writer = csv.writer(output)
    if tickets:
        phases = _ticket_phases(tickets)
        writer.writerow(['id', 'org', 'repo', 'kind', 'opened', 'closed'] + phases)
        for t in tickets:
            writer.writerow([t.id, t.org, t.repo, t.kind, t.opened or '', t.closed or ''] + [t.durations[p].seconds if p in t.durations else '' for p in phases])
    elif metrics:
        writer.writerow(['phase', 'stat', 'seconds', 'human'])
        for r in _phase_rows(metrics):
            for stat, d in r.items():
                if stat != 'phase':
                    writer.writerow([r['phase'], stat, d.seconds, d.human])
    return output.getvalue()


def render_json(metrics: Optional[Dict[str, Any]] = None, tickets: Optional[Sequence[Ticket]] = None) -> str:
    """Export metrics and/or tickets as JSON."""
    doc: Dict[str, Any] = {}
    if metrics is not None:
        doc['metrics'] = metrics_to_dict(metrics)
    if tickets is not None:
        doc['tickets'] = [ticket_to_dict(t) for t in tickets]
    return json.dumps(doc, indent=2)


def render_html(
    metrics: Optional[Dict[str, Any]] = None,
    tickets: Optional[Sequence[Ticket]] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    env = Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(['html', 'xml', 'j2']))
    tmpl = env.get_template('report.html.j2')
    context = {
        'metrics': metrics or {},
        'rows': _phase_rows(metrics or {}),
        'tickets': list(tickets or []),
        'phases': _ticket_phases(tickets or []),
        'generated_at': generated_at,
        'scope': scope,
    }
    return tmpl.render(**context)


def render(
    metrics: Optional[Dict[str, Any]] = None,
    tickets: Optional[Sequence[Ticket]] = None,
    fmt: str = 'text',
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    """Main render function; unknown formats fall back to plain text."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(metrics, tickets)
    if fmt_l == 'csv':
        return render_csv(metrics, tickets)
    if fmt_l in ('html', 'htm'):
        return render_html(metrics, tickets, generated_at=generated_at, scope=scope)
    if fmt_l == 'json':
        return render_json(metrics, tickets)
    return render_text(metrics, tickets)
