"""
Phase durations between ticket milestones.
Missing or unparsable milestones yield a zero Duration instead of an error so one
incomplete ticket never aborts a batch.
"""
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

from errors import ConfigurationError
from normalize.models import ZERO_DURATION, Duration, Ticket

# phase name -> (start milestone, end milestone)
PHASES: Dict[str, Tuple[str, str]] = {
    'reaction_time': ('opened', 'assigned'),
    'coding_time': ('opened', 'review_requested'),
    'waiting_review': ('review_requested', 'first_review'),
    'reviewing_time': ('first_review', 'approved'),
    'waiting_release': ('approved', 'closed'),
    'lead_time': ('opened', 'closed'),
    'cycle_time': ('assigned', 'closed'),
}

# the set reported when no phases are configured
DEFAULT_PHASES = ('reaction_time', 'cycle_time', 'lead_time')

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC. Returns None when absent or invalid."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def humanize(seconds: float) -> str:
    """Render seconds as e.g. '3d 04h 10m' (minute resolution, '-' prefix when negative)."""
    sign = '-' if seconds < 0 else ''
    total_minutes = int(abs(seconds) // 60)
    days, rem = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem, 60)
    return f"{sign}{days}d {hours:02d}h {minutes:02d}m"


def as_duration(seconds: float) -> Duration:
    return Duration(float(seconds), humanize(seconds))


def duration(start, end) -> Duration:
    """Elapsed time from start to end. Negative results are kept as-is."""
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    if start_dt is None or end_dt is None:
        return ZERO_DURATION
    return as_duration((end_dt - start_dt).total_seconds())


def check_phases(phases: Iterable[str]) -> Tuple[str, ...]:
    """Validate phase names against PHASES, preserving order."""
    names = tuple(phases)
    unknown = [p for p in names if p not in PHASES]
    if unknown:
        raise ConfigurationError(f"Unknown phase(s): {', '.join(unknown)}. Known phases: {', '.join(PHASES)}")
    return names


def with_durations(ticket: Ticket, phases: Optional[Iterable[str]] = None) -> Ticket:
    """Return a copy of ticket with durations recomputed from its milestones."""
    names = check_phases(phases) if phases is not None else tuple(PHASES)
    durations = {}
    for name in names:
        start_field, end_field = PHASES[name]
        durations[name] = duration(getattr(ticket, start_field), getattr(ticket, end_field))
    return replace(ticket, durations=durations)
