"""
Aggregate phase durations across a ticket batch.
"""
import statistics
from typing import Any, Dict, Iterable, List, Optional, Sequence

from normalize.models import Duration, Ticket
from .durations import as_duration, check_phases


def _phase_seconds(tickets: Iterable[Ticket], phase: str) -> List[float]:
    """Seconds for phase on every ticket; a ticket without the phase counts as 0."""
    values = []
    for ticket in tickets:
        d = ticket.durations.get(phase)
        values.append(float(d.seconds) if d is not None else 0.0)
    return values


def aggregate(tickets: Sequence[Ticket], phase: str, include_max: bool = False) -> Dict[str, Duration]:
    """Return mean and median (and max when asked) of a phase across tickets.

    An empty batch yields zero for every statistic.
    """
    values = _phase_seconds(tickets, phase)
    if values:
        mean = statistics.mean(values)
        median = statistics.median(values)
        peak = max(values)
    else:
        mean = median = peak = 0.0
    result = {'mean': as_duration(mean), 'median': as_duration(median)}
    if include_max:
        result['max'] = as_duration(peak)
    return result


def compute_metrics(tickets: Sequence[Ticket], phases: Iterable[str], include_max: bool = False, org: Optional[str] = None) -> Dict[str, Any]:
    """Flat metrics mapping: n, org and <phase>_mean/_median[/_max] for each phase."""
    tickets = list(tickets)
    metrics: Dict[str, Any] = {'n': len(tickets), 'org': org}
    for phase in check_phases(phases):
        for stat, value in aggregate(tickets, phase, include_max=include_max).items():
            metrics[f"{phase}_{stat}"] = value
    return metrics


def metrics_to_dict(metrics: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-friendly mirror of compute_metrics output."""
    return {k: (v.to_dict() if isinstance(v, Duration) else v) for k, v in metrics.items()}
