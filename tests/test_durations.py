import pytest

from errors import ConfigurationError
from normalize.models import ZERO_DURATION, Ticket
from scoring.durations import PHASES, duration, humanize, parse_timestamp, with_durations


@pytest.mark.parametrize(
    'start,end,seconds',
    [
        ('2023-01-01T00:00:00Z', '2023-01-01T02:00:00Z', 7200),
        ('2023-01-01T00:00:00Z', '2023-01-03T00:00:00Z', 172800),
        ('2023-01-01T00:00:00+02:00', '2023-01-01T00:00:00Z', 7200),
        ('2023-01-01T00:00:00', '2023-01-01T00:00:30Z', 30),
    ],
)
def test_duration_seconds(start, end, seconds):
    assert duration(start, end).seconds == seconds


def test_negative_duration_is_not_clamped():
    d = duration('2023-01-03T00:00:00Z', '2023-01-01T00:00:00Z')
    assert d.seconds == -172800
    assert d.human == '-2d 00h 00m'


@pytest.mark.parametrize(
    'start,end',
    [
        (None, '2023-01-01T00:00:00Z'),
        ('2023-01-01T00:00:00Z', None),
        (None, None),
        ('', '2023-01-01T00:00:00Z'),
        ('not-a-date', '2023-01-01T00:00:00Z'),
        ('2023-01-01T00:00:00Z', '2023-13-45T99:00:00Z'),
        (12345, '2023-01-01T00:00:00Z'),
    ],
)
def test_missing_or_invalid_endpoint_gives_zero(start, end):
    assert duration(start, end) == ZERO_DURATION
    assert duration(start, end).human == ''


def test_humanize():
    assert humanize(0) == '0d 00h 00m'
    assert humanize(3 * 86400 + 4 * 3600 + 10 * 60 + 59) == '3d 04h 10m'
    assert humanize(-90) == '-0d 00h 01m'


def test_parse_timestamp_accepts_z_suffix():
    dt = parse_timestamp('2023-01-01T00:00:00Z')
    assert dt is not None
    assert dt.utcoffset().total_seconds() == 0
    assert parse_timestamp('garbage') is None


@pytest.mark.parametrize('text', ['2023-01-01T00:00:00.1Z', '2023-01-01T00:00:00.12Z', '2023-01-01T00:00:00.1234567Z'])
def test_parse_timestamp_accepts_any_fraction_length(text):
    dt = parse_timestamp(text)
    assert dt is not None
    assert dt.replace(microsecond=0) == parse_timestamp('2023-01-01T00:00:00Z')


def test_fractional_timestamps_give_real_durations():
    assert duration('2023-01-01T00:00:00.12Z', '2023-01-01T01:00:00.12Z').seconds == 3600


def test_with_durations_computes_every_phase_by_default():
    ticket = Ticket(
        id=1,
        org='acme',
        repo='api',
        opened='2023-01-01T00:00:00Z',
        assigned='2023-01-01T01:00:00Z',
        review_requested='2023-01-01T03:00:00Z',
        first_review='2023-01-01T04:00:00Z',
        approved='2023-01-01T06:00:00Z',
        closed='2023-01-01T10:00:00Z',
    )
    result = with_durations(ticket)
    assert set(result.durations) == set(PHASES)
    assert result.durations['reaction_time'].seconds == 3600
    assert result.durations['coding_time'].seconds == 3 * 3600
    assert result.durations['waiting_review'].seconds == 3600
    assert result.durations['reviewing_time'].seconds == 2 * 3600
    assert result.durations['waiting_release'].seconds == 4 * 3600
    assert result.durations['lead_time'].seconds == 10 * 3600
    assert result.durations['cycle_time'].seconds == 9 * 3600
    # the input value is left untouched
    assert ticket.durations == {}


def test_with_durations_subset_and_unknown_phase():
    ticket = Ticket(id=1, org='acme', repo='api', opened='2023-01-01T00:00:00Z')
    assert list(with_durations(ticket, ['lead_time']).durations) == ['lead_time']
    with pytest.raises(ConfigurationError):
        with_durations(ticket, ['lead_time', 'coffee_break'])


def test_durations_are_recomputed_not_reused():
    ticket = with_durations(Ticket(id=1, org='acme', repo='api', opened='2023-01-01T00:00:00Z', closed='2023-01-02T00:00:00Z'))
    changed = with_durations(Ticket(id=1, org='acme', repo='api', opened='2023-01-01T00:00:00Z', closed='2023-01-03T00:00:00Z', durations=ticket.durations))
    assert changed.durations['lead_time'].seconds == 172800
