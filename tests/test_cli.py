#!/usr/bin/env python3
"""
Tests for configuration loading and the alumni.py command line.

Run with:
    python -m pytest tests/test_cli.py
"""
import io
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import alumni
from api_client import ApiError


class TmpDirMixin:
    """Creates and removes a temp directory for each test."""

    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self._orig_dir = os.getcwd()
        os.chdir(self._tmpdir)

    def tearDown(self):
        os.chdir(self._orig_dir)
        shutil.rmtree(self._tmpdir, ignore_errors=True)


def _make_portal(authenticated=True):
    portal = MagicMock()
    portal.auth.is_authenticated.return_value = authenticated
    portal.config = dict(alumni.DEFAULT_CONFIG)
    portal.birthday.load_upcoming.return_value = [
        {'namaLengkap': 'Ani', 'tanggalLahir': '1990-01-01', 'status': 'PENDING'}]
    portal.birthday.today_birthdays.return_value = []
    portal.birthday.send_today.return_value = {'type': 'success', 'message': 'ok'}
    return portal


# ===========================================================================
# Configuration
# ===========================================================================

class TestLoadConfig(TmpDirMixin, unittest.TestCase):

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = alumni.load_config('missing.json')
        self.assertEqual(config['api_url'], 'http://localhost:8080/api')
        self.assertEqual(config['wilayah_api_url'], 'http://localhost:8080/api/wilayah')

    def test_file_then_env(self):
        with open('config.json', 'w', encoding='utf-8') as fh:
            json.dump({'api_url': 'http://file/api', 'request_timeout': 30}, fh)
        with patch.dict(os.environ, {'ALUMNI_REQUEST_TIMEOUT': '5'}, clear=True):
            config = alumni.load_config('config.json')
        self.assertEqual(config['api_url'], 'http://file/api')
        self.assertEqual(config['request_timeout'], 5)
        self.assertEqual(config['wilayah_api_url'], 'http://file/api/wilayah')

    def test_env_overrides_file(self):
        with open('config.json', 'w', encoding='utf-8') as fh:
            json.dump({'api_url': 'http://file/api'}, fh)
        with patch.dict(os.environ, {'ALUMNI_API_URL': 'http://env/api'}, clear=True):
            config = alumni.load_config('config.json')
        self.assertEqual(config['api_url'], 'http://env/api')

    def test_corrupt_file_ignored(self):
        with open('config.json', 'w', encoding='utf-8') as fh:
            fh.write('{oops')
        with patch.dict(os.environ, {}, clear=True):
            config = alumni.load_config('config.json')
        self.assertEqual(config['default_page_size'], 10)

    def test_bad_timeout_falls_back(self):
        with patch.dict(os.environ, {'ALUMNI_REQUEST_TIMEOUT': 'slow'}, clear=True):
            config = alumni.load_config('missing.json')
        self.assertEqual(config['request_timeout'], alumni.DEFAULT_CONFIG['request_timeout'])


class TestUrlHelpers(unittest.TestCase):

    CONFIG = dict(alumni.DEFAULT_CONFIG)

    def test_get_api_url(self):
        self.assertEqual(alumni.get_api_url(self.CONFIG, '/biografi'),
                         'http://localhost:8080/api/biografi')
        self.assertEqual(alumni.get_api_url(self.CONFIG, 'api/temp-files/upload'),
                         'http://localhost:8080/api/temp-files/upload')

    def test_get_image_url(self):
        self.assertEqual(alumni.get_image_url(self.CONFIG, 'foto.jpg'),
                         'http://localhost:8080/api/images/foto.jpg')
        self.assertEqual(alumni.get_image_url(self.CONFIG, 'https://cdn/x.jpg'),
                         'https://cdn/x.jpg')
        self.assertEqual(alumni.get_image_url(self.CONFIG, None), '')

    def test_status_label(self):
        self.assertEqual(alumni.status_label('SENT'), 'Terkirim')
        self.assertEqual(alumni.status_label('OTHER'), 'OTHER')
        self.assertEqual(alumni.status_label(None), '')


# ===========================================================================
# main()
# ===========================================================================

class TestMain(TmpDirMixin, unittest.TestCase):

    def _run(self, argv, portal, env=None):
        with patch('alumni.AlumniPortal', return_value=portal), \
                patch.dict(os.environ, env or {}, clear=True), \
                patch('sys.stdout', io.StringIO()) as out:
            code = alumni.main(argv)
        return code, out.getvalue()

    def test_no_action_prints_help(self):
        with patch('alumni.AlumniPortal') as portal_cls, patch('sys.stdout', io.StringIO()) as out:
            self.assertEqual(alumni.main([]), 0)
        portal_cls.assert_not_called()
        self.assertIn('--send-today', out.getvalue())

    def test_send_today(self):
        portal = _make_portal()
        code, out = self._run(['--send-today'], portal)
        self.assertEqual(code, 0)
        self.assertIn('ok', out)
        portal.birthday.send_today.assert_called_once()

    def test_upcoming_defaults_to_config_days(self):
        portal = _make_portal()
        code, out = self._run(['--upcoming'], portal)
        self.assertEqual(code, 0)
        portal.birthday.load_upcoming.assert_called_once_with(30)
        self.assertIn('Ani', out)

    def test_upcoming_explicit_days(self):
        portal = _make_portal()
        self._run(['--upcoming', '7'], portal)
        portal.birthday.load_upcoming.assert_called_once_with(7)

    def test_not_logged_in_without_credentials(self):
        portal = _make_portal(authenticated=False)
        code, out = self._run(['--today'], portal)
        self.assertEqual(code, 1)
        self.assertIn('not logged in', out)
        portal.birthday.today_birthdays.assert_not_called()

    def test_login_from_environment(self):
        portal = _make_portal(authenticated=False)
        portal.auth.login.return_value = {'fullName': 'Admin'}
        code, out = self._run(['--today'], portal,
                              env={'ALUMNI_USERNAME': 'admin', 'ALUMNI_PASSWORD': 'pw'})
        self.assertEqual(code, 0)
        portal.auth.login.assert_called_once_with('admin', 'pw')
        self.assertIn('Logged in as Admin', out)

    def test_login_failure(self):
        portal = _make_portal(authenticated=False)
        portal.auth.login.side_effect = ApiError('Login failed', 401)
        code, _ = self._run(['--today'], portal,
                            env={'ALUMNI_USERNAME': 'admin', 'ALUMNI_PASSWORD': 'pw'})
        self.assertEqual(code, 1)

    def test_api_error_returns_1(self):
        portal = _make_portal()
        portal.api.birthday.get_statistics.side_effect = ApiError('Server error', 500)
        code, out = self._run(['--stats', '2025'], portal)
        self.assertEqual(code, 1)
        self.assertIn('Server error', out)

    def test_stats(self):
        portal = _make_portal()
        portal.api.birthday.get_statistics.return_value = {'totalBirthdays': 4, 'sent': 2}
        code, out = self._run(['--stats'], portal)
        self.assertEqual(code, 0)
        self.assertIn('Statistik Ulang Tahun', out)


if __name__ == '__main__':
    unittest.main()
