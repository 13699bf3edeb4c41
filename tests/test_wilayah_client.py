#!/usr/bin/env python3
"""
Tests for the region lookup client (wilayah_client.py).

Run with:
    python -m pytest tests/test_wilayah_client.py
"""
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api_client import ApiError
from wilayah_client import WilayahCache, WilayahClient


class _FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _make_response(json_data=None, status=200):
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.json.return_value = json_data
    return resp


# ===========================================================================
# WilayahCache
# ===========================================================================

class TestWilayahCache(unittest.TestCase):

    def test_hit_within_ttl(self):
        clock = _FakeClock()
        cache = WilayahCache(ttl=60, clock=clock)
        cache.set('provinces', [1])
        clock.now += 59
        self.assertEqual(cache.get('provinces'), [1])

    def test_expired_entry_dropped(self):
        clock = _FakeClock()
        cache = WilayahCache(ttl=60, clock=clock)
        cache.set('provinces', [1])
        clock.now += 61
        self.assertIsNone(cache.get('provinces'))
        self.assertEqual(len(cache), 0)

    def test_clear(self):
        cache = WilayahCache()
        cache.set('a', 1)
        cache.clear()
        self.assertIsNone(cache.get('a'))


# ===========================================================================
# WilayahClient
# ===========================================================================

class TestWilayahClient(unittest.TestCase):

    @patch('wilayah_client.requests.Session')
    def test_provinces_returns_data_list(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.get.return_value = _make_response(
            {'data': [{'code': '32', 'name': 'JAWA BARAT'}], 'meta': {}})
        client = WilayahClient('http://h/api/wilayah/')
        self.assertEqual(client.get_provinces(), [{'code': '32', 'name': 'JAWA BARAT'}])
        self.assertEqual(session.get.call_args[0][0], 'http://h/api/wilayah/provinces')

    @patch('wilayah_client.requests.Session')
    def test_lists_are_cached_per_code(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.get.return_value = _make_response({'data': [{'code': '32.73', 'name': 'BANDUNG'}]})
        client = WilayahClient('http://h/api/wilayah')
        client.get_regencies('32')
        client.get_regencies('32')
        self.assertEqual(session.get.call_count, 1)
        client.get_regencies('31')
        self.assertEqual(session.get.call_count, 2)

    @patch('wilayah_client.requests.Session')
    def test_expired_cache_refetches(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.get.return_value = _make_response({'data': []})
        clock = _FakeClock()
        client = WilayahClient('http://h/api/wilayah', cache=WilayahCache(ttl=10, clock=clock))
        client.get_districts('32.73')
        clock.now += 11
        client.get_districts('32.73')
        self.assertEqual(session.get.call_count, 2)

    @patch('wilayah_client.requests.Session')
    def test_list_http_error_raises(self, mock_session_cls):
        mock_session_cls.return_value.get.return_value = _make_response(status=502)
        client = WilayahClient('http://h/api/wilayah')
        with self.assertRaises(ApiError) as ctx:
            client.get_villages('32.73.01')
        self.assertEqual(ctx.exception.status_code, 502)

    @patch('wilayah_client.requests.Session')
    def test_list_transport_error_raises(self, mock_session_cls):
        mock_session_cls.return_value.get.side_effect = requests.Timeout('slow')
        client = WilayahClient('http://h/api/wilayah')
        with self.assertRaises(ApiError):
            client.get_provinces()

    @patch('wilayah_client.requests.Session')
    def test_get_name(self, mock_session_cls):
        mock_session_cls.return_value.get.return_value = _make_response(
            {'kode': '32', 'nama': 'JAWA BARAT'})
        client = WilayahClient('http://h/api/wilayah')
        self.assertEqual(client.get_name('32'), 'JAWA BARAT')

    @patch('wilayah_client.requests.Session')
    def test_get_name_falls_back_to_code(self, mock_session_cls):
        mock_session_cls.return_value.get.return_value = _make_response(status=404)
        client = WilayahClient('http://h/api/wilayah')
        self.assertEqual(client.get_name('99'), '99')
        self.assertEqual(client.get_name(''), '')

    @patch('wilayah_client.requests.Session')
    def test_get_names(self, mock_session_cls):
        session = mock_session_cls.return_value
        session.post.return_value = _make_response({'32': 'JAWA BARAT'})
        client = WilayahClient('http://h/api/wilayah')
        self.assertEqual(client.get_names({'32': 'provinsi'}), {'32': 'JAWA BARAT'})
        self.assertEqual(session.post.call_args[1]['json'], {'32': 'provinsi'})

    @patch('wilayah_client.requests.Session')
    def test_get_names_failure_returns_input(self, mock_session_cls):
        mock_session_cls.return_value.post.side_effect = requests.ConnectionError('down')
        client = WilayahClient('http://h/api/wilayah')
        self.assertEqual(client.get_names({'32': 'provinsi'}), {'32': 'provinsi'})

    @patch('wilayah_client.requests.Session')
    def test_malformed_json(self, mock_session_cls):
        session = mock_session_cls.return_value
        bad = _make_response(status=200)
        bad.json.side_effect = ValueError('bad json')
        session.get.return_value = bad
        session.post.return_value = bad
        client = WilayahClient('http://h/api/wilayah')
        with self.assertRaises(ApiError):
            client.get_provinces()
        self.assertEqual(client.get_name('32'), '32')
        self.assertEqual(client.get_names({'32': 'provinsi'}), {'32': 'provinsi'})

    def test_to_options(self):
        self.assertEqual(WilayahClient.to_options([{'code': '32', 'name': 'JAWA BARAT'}]),
                         [{'value': '32', 'label': 'JAWA BARAT'}])


if __name__ == '__main__':
    unittest.main()
