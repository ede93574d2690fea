import csv
import io
import json
import unittest

from normalize.models import Ticket
from report import renderer
from report.renderer import render, render_csv, render_html, render_markdown
from scoring.durations import with_durations
from scoring.metrics import compute_metrics


def _tickets():
    return [
        with_durations(Ticket(id=1, org='acme', repo='api', title='<b>bold</b>', opened='2023-01-01T00:00:00Z', assigned='2023-01-01T02:00:00Z', closed='2023-01-03T00:00:00Z'), ['reaction_time', 'lead_time']),
        with_durations(Ticket(id=2, org='acme', repo='api', kind='pull_request', opened='2023-01-01T00:00:00Z'), ['reaction_time', 'lead_time']),
    ]


def _metrics(include_max=False):
    return compute_metrics(_tickets(), ['reaction_time', 'lead_time'], include_max=include_max, org='acme')


class TestRenderer(unittest.TestCase):
    def test_text(self):
        out = render(metrics=_metrics(), fmt='text')
        self.assertIn('org: acme', out)
        self.assertIn('tickets: 2', out)
        self.assertIn('lead_time: mean 1d 00h 00m, median 1d 00h 00m', out)

    def test_text_tickets(self):
        out = render(tickets=_tickets(), fmt='unknown-format')
        self.assertIn('api#1 [issue] reaction_time=0d 02h 00m, lead_time=2d 00h 00m', out)
        self.assertIn('api#2 [pull_request] reaction_time=-', out)

    def test_markdown(self):
        md = render_markdown(_metrics(include_max=True), _tickets())
        self.assertIn('# Cycle Time Summary', md)
        self.assertIn('| phase | mean | median | max |', md)
        self.assertIn('| reaction_time | 0d 01h 00m | 0d 01h 00m | 0d 02h 00m |', md)
        self.assertIn('| api#1 | issue | 0d 02h 00m | 2d 00h 00m |', md)

    def test_csv_tickets(self):
        rows = list(csv.reader(io.StringIO(render_csv(tickets=_tickets()))))
        self.assertEqual(rows[0], ['id', 'org', 'repo', 'kind', 'opened', 'closed', 'reaction_time', 'lead_time'])
        self.assertEqual(rows[1][6:], ['7200.0', '172800.0'])

    def test_csv_metrics(self):
        rows = list(csv.reader(io.StringIO(render_csv(metrics=_metrics()))))
        self.assertEqual(rows[0], ['phase', 'stat', 'seconds', 'human'])
        self.assertIn(['lead_time', 'mean', '86400.0', '1d 00h 00m'], rows)

    def test_json(self):
        doc = json.loads(render(metrics=_metrics(), tickets=_tickets(), fmt='json'))
        self.assertEqual(doc['metrics']['n'], 2)
        self.assertEqual(doc['tickets'][0]['durations']['reaction_time']['seconds'], 7200.0)

    def test_html_escapes_titles(self):
        html = render_html(_metrics(include_max=True), _tickets(), generated_at='now', scope='acme/api')
        self.assertIn('<h1>Cycle Time Report</h1>', html)
        self.assertIn('Scope: acme/api', html)
        self.assertIn('&lt;b&gt;bold&lt;/b&gt;', html)
        self.assertIn('<th>max</th>', html)

    def test_html_without_data(self):
        self.assertIn('No data available.', render(fmt='html'))

    def test_phase_rows_group_stats(self):
        rows = renderer._phase_rows(_metrics())
        self.assertEqual([r['phase'] for r in rows], ['reaction_time', 'lead_time'])
        self.assertEqual(sorted(k for k in rows[0] if k != 'phase'), ['mean', 'median'])


if __name__ == '__main__':
    unittest.main()
