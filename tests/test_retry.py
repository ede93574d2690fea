import unittest
from unittest.mock import Mock, patch

import requests

from errors import UpstreamFetchError
from storage import retry
from storage.retry import configure_retry, get_json, reset_retry


def _resp(status, body=None, headers=None):
    resp = Mock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.json.return_value = body
    resp.text = str(body)
    return resp


class TestGetJson(unittest.TestCase):
    def tearDown(self):
        reset_retry()

    def test_success_returns_body(self):
        with patch('storage.retry.requests.get', return_value=_resp(200, [{'number': 1}])) as mocked_get:
            self.assertEqual(get_json('http://example.com', params={'page': 1}), [{'number': 1}])
            self.assertEqual(mocked_get.call_args.kwargs['params'], {'page': 1})

    def test_retries_rate_limit_then_succeeds(self):
        responses = [_resp(429, {'message': 'slow down'}, {'Retry-After': '0'}), _resp(200, {'ok': True})]
        with patch('storage.retry.requests.get', side_effect=responses) as mocked_get, patch('storage.retry.time.sleep') as mocked_sleep:
            self.assertEqual(get_json('http://example.com', max_retries=3, backoff_jitter=0), {'ok': True})
            self.assertEqual(mocked_get.call_count, 2)
            self.assertEqual(mocked_sleep.call_count, 1)

    def test_non_retryable_status_raises_immediately(self):
        with patch('storage.retry.requests.get', return_value=_resp(404, {'message': 'Not Found'})) as mocked_get:
            with self.assertRaises(UpstreamFetchError) as ctx:
                get_json('http://example.com/missing', max_retries=3)
            self.assertEqual(mocked_get.call_count, 1)
            self.assertEqual(ctx.exception.status, 404)
            self.assertIn('Not Found', str(ctx.exception))

    def test_exhausted_retries_raise(self):
        with patch('storage.retry.requests.get', return_value=_resp(503, {'message': 'unavailable'})) as mocked_get, patch('storage.retry.time.sleep'):
            with self.assertRaises(UpstreamFetchError) as ctx:
                get_json('http://example.com', max_retries=2, backoff_base=0, backoff_jitter=0)
            self.assertEqual(mocked_get.call_count, 2)
            self.assertEqual(ctx.exception.status, 503)

    def test_transport_error_is_retried_and_wrapped(self):
        with patch('storage.retry.requests.get', side_effect=requests.ConnectionError('refused')), patch('storage.retry.time.sleep'):
            with self.assertRaises(UpstreamFetchError) as ctx:
                get_json('http://example.com', max_retries=2, backoff_base=0, backoff_jitter=0)
            self.assertIsNone(ctx.exception.status)

    def test_forbidden_with_exhausted_quota_is_retried(self):
        limited = _resp(403, {'message': 'API rate limit exceeded'}, {'X-RateLimit-Remaining': '0', 'X-RateLimit-Reset': '0'})
        with patch('storage.retry.requests.get', side_effect=[limited, _resp(200, [])]), patch('storage.retry.time.sleep'):
            self.assertEqual(get_json('http://example.com', max_retries=2, backoff_jitter=0), [])

    def test_configure_retry_sets_attempts(self):
        configure_retry(max_retries=1)
        with patch('storage.retry.requests.get', return_value=_resp(503, {})) as mocked_get:
            with self.assertRaises(UpstreamFetchError):
                get_json('http://example.com')
            self.assertEqual(mocked_get.call_count, 1)

    def test_parse_retry_after(self):
        self.assertEqual(retry._parse_retry_after('5'), 5.0)
        self.assertIsNone(retry._parse_retry_after(''))
        self.assertIsNone(retry._parse_retry_after('not a date'))
        self.assertEqual(retry._parse_retry_after('Wed, 21 Oct 2015 07:28:00 GMT'), 0.0)


if __name__ == '__main__':
    unittest.main()
