#!/usr/bin/env python3
"""
Tests for the birthday notification admin services.

Run with:
    python -m pytest tests/test_birthday_service.py
"""
import datetime
import os
import sys
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api_client import ApiError
from app.services import BirthdayService, BirthdaySettingsService, ValidationError
from app.services.birthday_service import (
    birthday_countdown_label, build_filter, days_until_birthday, past_card_label,
    statistics_from, status_badge, upcoming_card_label,
)
from app.services.birthday_settings_service import (
    cron_to_time, normalize_settings, time_to_cron,
)

TODAY = datetime.date(2025, 6, 15)


def _make_service(biografi=None, upcoming=None):
    birthday_api = MagicMock()
    biografi_api = MagicMock()
    biografi_api.get_all.return_value = {'content': biografi or []}
    birthday_api.get_upcoming.return_value = upcoming or []
    return BirthdayService(birthday_api, biografi_api), birthday_api, biografi_api


def _make_notification(nid, biografi_id, date, status='PENDING', **extra):
    item = {'id': nid, 'biografiId': biografi_id, 'notificationDate': date,
            'status': status, 'namaLengkap': f'Alumni {biografi_id}'}
    item.update(extra)
    return item


# ===========================================================================
# Date labels
# ===========================================================================

class TestDateLabels(unittest.TestCase):

    def test_days_until_birthday_today(self):
        self.assertEqual(days_until_birthday('1990-06-15', TODAY), 0)

    def test_days_until_birthday_later_this_year(self):
        self.assertEqual(days_until_birthday('1990-06-20', TODAY), 5)

    def test_days_until_birthday_passed_rolls_to_next_year(self):
        self.assertEqual(days_until_birthday('1990-06-14', TODAY), 364)

    def test_days_until_birthday_leap_day(self):
        self.assertEqual(days_until_birthday('1992-02-29', datetime.date(2025, 2, 28)), 1)

    def test_days_until_birthday_invalid(self):
        self.assertIsNone(days_until_birthday('', TODAY))
        self.assertIsNone(days_until_birthday('not-a-date', TODAY))

    def test_countdown_label(self):
        self.assertEqual(birthday_countdown_label('1990-06-15T00:00:00', TODAY), 'Hari ini!')
        self.assertEqual(birthday_countdown_label('1990-06-16', TODAY), 'Besok')
        self.assertEqual(birthday_countdown_label('1990-06-25', TODAY), '10 hari lagi')
        self.assertEqual(birthday_countdown_label(None, TODAY), '-')

    def test_upcoming_card_label(self):
        self.assertEqual(upcoming_card_label('2025-06-15', TODAY), 'Hari Ini!')
        self.assertEqual(upcoming_card_label('2025-06-16', TODAY), 'Besok')
        self.assertEqual(upcoming_card_label('2025-06-18', TODAY), '3 hari lagi')

    def test_past_card_label(self):
        self.assertEqual(past_card_label('2025-06-15', TODAY), 'Hari ini')
        self.assertEqual(past_card_label('2025-06-14', TODAY), 'Kemarin')
        self.assertEqual(past_card_label('2025-06-05', TODAY), '10 hari lalu')


class TestStatusBadge(unittest.TestCase):

    def test_known_statuses(self):
        self.assertEqual(status_badge('SENT'), 'Sudah Terkirim')
        self.assertEqual(status_badge('FAILED'), 'Gagal Kirim')
        self.assertEqual(status_badge('EXCLUDED'), 'Dikecualikan')

    def test_pending_countdown(self):
        self.assertEqual(status_badge('PENDING', '2025-06-15', TODAY), 'Hari ini')
        self.assertEqual(status_badge('PENDING', '2025-06-17', TODAY), '2 hari lagi')

    def test_pending_in_past(self):
        self.assertEqual(status_badge('PENDING', '2025-06-10', TODAY), 'Menunggu')

    def test_unknown_status_treated_as_pending(self):
        self.assertEqual(status_badge('WEIRD'), 'Menunggu')


class TestHelpers(unittest.TestCase):

    def test_statistics_from(self):
        items = [
            {'status': 'SENT'}, {'status': 'RESENT'}, {'status': 'PENDING'},
            {'status': 'FAILED', 'isExcluded': True},
        ]
        stats = statistics_from(items, 2025)
        self.assertEqual(stats, {'totalBirthdays': 4, 'sent': 2, 'pending': 1,
                                 'failed': 1, 'excluded': 1, 'year': 2025})

    def test_build_filter_defaults_and_drops_empty(self):
        result = build_filter(2025, status='', nama='Budi', page=2)
        self.assertEqual(result, {'year': 2025, 'page': 2, 'size': 10,
                                  'sortBy': 'notificationDate', 'sortDirection': 'desc',
                                  'nama': 'Budi'})


# ===========================================================================
# BirthdayService - loading
# ===========================================================================

class TestBirthdayLoading(unittest.TestCase):

    def test_upcoming_sorted_ascending(self):
        service, birthday_api, _ = _make_service()
        birthday_api.get_upcoming.return_value = [
            _make_notification(1, 1, '2025-06-20'),
            _make_notification(2, 2, '2025-06-16'),
        ]
        items = service.load_upcoming(7)
        self.assertEqual([n['id'] for n in items], [2, 1])
        birthday_api.get_upcoming.assert_called_once_with(7)

    def test_past_sorted_descending(self):
        service, birthday_api, _ = _make_service()
        birthday_api.get_past.return_value = [
            _make_notification(1, 1, '2025-06-01'),
            _make_notification(2, 2, '2025-06-10'),
        ]
        self.assertEqual([n['id'] for n in service.load_past()], [2, 1])
        birthday_api.get_past.assert_called_once_with(30)

    def test_today_birthdays_from_biografi(self):
        biografi = [
            {'biografiId': 1, 'namaLengkap': 'Ani', 'tanggalLahir': '1995-06-15',
             'nomorTelepon': '0812'},
            {'biografiId': 2, 'namaLengkap': 'Budi', 'tanggalLahir': '1995-06-16'},
            {'biografiId': 1, 'namaLengkap': 'Ani', 'tanggalLahir': '1995-06-15'},
        ]
        service, _, _ = _make_service(biografi=biografi)
        items = service.today_birthdays(TODAY)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]['biografiId'], 1)
        self.assertEqual(items[0]['status'], 'PENDING')
        self.assertEqual(items[0]['age'], 30)
        self.assertEqual(items[0]['notificationDate'], '2025-06-15')

    def test_today_birthdays_merges_existing_notification(self):
        biografi = [{'biografiId': 1, 'namaLengkap': 'Ani', 'tanggalLahir': '1995-06-15'}]
        upcoming = [_make_notification(77, 1, '2025-06-15', 'SENT', sentAt='2025-06-15T08:00')]
        service, _, _ = _make_service(biografi=biografi, upcoming=upcoming)
        item = service.today_birthdays(TODAY)[0]
        self.assertEqual(item['id'], 77)
        self.assertEqual(item['status'], 'SENT')
        self.assertEqual(item['statusDisplayName'], 'Sudah Terkirim')

    def test_today_birthdays_without_matches_skips_lookup(self):
        service, birthday_api, _ = _make_service(biografi=[])
        self.assertEqual(service.today_birthdays(TODAY), [])
        birthday_api.get_upcoming.assert_not_called()

    def test_today_birthdays_survives_notification_error(self):
        biografi = [{'biografiId': 1, 'namaLengkap': 'Ani', 'tanggalLahir': '1995-06-15'}]
        service, birthday_api, _ = _make_service(biografi=biografi)
        birthday_api.get_upcoming.side_effect = ApiError('down', 503)
        items = service.today_birthdays(TODAY)
        self.assertEqual(items[0]['status'], 'PENDING')

    def test_load_tab_unknown(self):
        service, _, _ = _make_service()
        with self.assertRaises(ValueError):
            service.load_tab('archive')

    def test_load_tab_notifications(self):
        service, birthday_api, _ = _make_service()
        birthday_api.get_notifications.return_value = {
            'content': [_make_notification(1, 1, '2025-06-15')], 'totalPages': 3}
        birthday_api.get_statistics.return_value = {'totalBirthdays': 9}
        result = service.load_tab('notifications', TODAY, year=2025)
        self.assertEqual(result['totalPages'], 3)
        self.assertEqual(result['statistics'], {'totalBirthdays': 9})
        birthday_api.get_statistics.assert_called_once_with(2025)

    def test_load_dashboard_settings_error(self):
        service, birthday_api, _ = _make_service()
        birthday_api.get_past.return_value = []
        birthday_api.get_notifications.return_value = {'content': [], 'totalPages': 0}
        birthday_api.get_statistics.return_value = {}
        birthday_api.get_settings.side_effect = ApiError('nope', 500)
        result = service.load_dashboard(TODAY)
        self.assertIsNone(result['settings'])
        for tab in ('today', 'upcoming', 'past', 'notifications'):
            self.assertIn(tab, result)


# ===========================================================================
# BirthdayService - actions
# ===========================================================================

class TestBirthdayActions(unittest.TestCase):

    def test_send_selected_today_requires_selection(self):
        service, birthday_api, _ = _make_service()
        result = service.send_selected_today([], [], TODAY)
        self.assertEqual(result['type'], 'warning')
        birthday_api.send_to_biografi.assert_not_called()

    def test_bulk_actions_require_selection(self):
        items = [_make_notification(1, 10, '2025-06-15')]
        for action in ('bulk_exclude', 'bulk_resend', 'send_today_selected'):
            for selection in ([], None, set()):
                with self.subTest(action=action, selection=selection):
                    service, birthday_api, _ = _make_service()
                    result = getattr(service, action)(selection, items)
                    self.assertEqual(result['type'], 'warning')
                    self.assertEqual(result['message'], 'Pilih notifikasi terlebih dahulu')
                    birthday_api.send_to_biografi.assert_not_called()
                    birthday_api.toggle_biografi_exclusion.assert_not_called()

    def test_send_selected_today_filters_due_pending(self):
        service, birthday_api, _ = _make_service()
        upcoming = [
            _make_notification(1, 10, '2025-06-15'),
            _make_notification(2, 11, '2025-06-16'),
            _make_notification(3, 12, '2025-06-15', 'SENT'),
        ]
        result = service.send_selected_today([10, 11, 12], upcoming, TODAY)
        self.assertEqual(result['type'], 'success')
        self.assertEqual(result['message'], '1 notifikasi berhasil dikirim!')
        birthday_api.send_to_biografi.assert_called_once_with(10)

    def test_send_selected_today_nothing_due(self):
        service, _, _ = _make_service()
        upcoming = [_make_notification(2, 11, '2025-06-16')]
        result = service.send_selected_today([11], upcoming, TODAY)
        self.assertEqual(result['message'], 'Tidak ada notifikasi untuk dikirim')

    def test_send_today_selected(self):
        service, birthday_api, _ = _make_service()
        items = [_make_notification(1, 10, '2025-06-15'),
                 _make_notification(2, 11, '2025-06-15', 'SENT')]
        result = service.send_today_selected([10, 11], items)
        self.assertEqual(result['message'], '1 notifikasi berhasil dikirim!')
        birthday_api.send_to_biografi.assert_called_once_with(10)

    def test_send_error_becomes_error_toast(self):
        service, birthday_api, _ = _make_service()
        birthday_api.send_to_biografi.side_effect = ApiError('WA gateway down', 502)
        items = [_make_notification(1, 10, '2025-06-15')]
        result = service.send_today_selected([10], items)
        self.assertEqual(result['type'], 'error')
        self.assertEqual(result['description'], 'WA gateway down')

    def test_toggle_exclude_messages(self):
        service, birthday_api, _ = _make_service()
        self.assertEqual(service.toggle_exclude(10, True)['message'],
                         'Notifikasi berhasil dikecualikan dari pengiriman ulang tahun!')
        self.assertEqual(service.toggle_exclude(10, False)['message'],
                         'Notifikasi berhasil disertakan dalam pengiriman ulang tahun!')
        birthday_api.toggle_biografi_exclusion.assert_called_with(10, False)

    def test_bulk_exclude(self):
        service, birthday_api, _ = _make_service()
        items = [_make_notification(1, 10, '2025-06-15'), _make_notification(2, 11, '2025-06-16')]
        result = service.bulk_exclude([11], items)
        self.assertEqual(result['message'], '1 notifikasi berhasil dikecualikan!')
        birthday_api.toggle_biografi_exclusion.assert_called_once_with(11, True)

    def test_bulk_resend_uses_notification_ids(self):
        service, birthday_api, _ = _make_service()
        past = [_make_notification(1, 10, '2025-06-10', 'FAILED'),
                _make_notification(2, 11, '2025-06-11', 'SENT')]
        result = service.bulk_resend([2], past)
        self.assertEqual(result['message'], '1 notifikasi berhasil dikirim ulang!')
        birthday_api.send_to_biografi.assert_called_once_with(11)

    def test_generate(self):
        service, birthday_api, _ = _make_service()
        result = service.generate(2026)
        self.assertEqual(result['type'], 'success')
        self.assertIn('2026', result['message'])
        birthday_api.generate.assert_called_once_with(2026)

    def test_single_actions_report_errors(self):
        service, birthday_api, _ = _make_service()
        birthday_api.send_test.side_effect = ApiError('x')
        birthday_api.reset_to_pending.side_effect = ApiError('x')
        birthday_api.send_to_biografi.side_effect = ApiError('x')
        birthday_api.send_today.side_effect = ApiError('x')
        self.assertEqual(service.send_test(1)['type'], 'error')
        self.assertEqual(service.reset_to_pending(1)['type'], 'error')
        self.assertEqual(service.resend(1)['type'], 'error')
        self.assertEqual(service.send_today()['type'], 'error')


# ===========================================================================
# Settings
# ===========================================================================

class TestCron(unittest.TestCase):

    def test_cron_to_time(self):
        self.assertEqual(cron_to_time('0 5 9 * * *'), ('9', '05'))

    def test_cron_to_time_fallback(self):
        self.assertEqual(cron_to_time(''), ('8', '00'))

    def test_time_to_cron(self):
        self.assertEqual(time_to_cron('7', '30'), '0 30 7 * * *')
        self.assertEqual(time_to_cron(18, 5), '0 05 18 * * *')

    def test_time_to_cron_invalid(self):
        with self.assertRaises(ValidationError):
            time_to_cron(24, 0)
        with self.assertRaises(ValidationError):
            time_to_cron('x', 0)

    def test_normalize_clamps_days(self):
        self.assertEqual(normalize_settings({'daysAhead': 99})['daysAhead'], 30)
        self.assertEqual(normalize_settings({'daysAhead': -3})['daysAhead'], 0)

    def test_normalize_rejects_timezone(self):
        with self.assertRaises(ValidationError):
            normalize_settings({'timezone': 'Europe/Paris'})


class TestBirthdaySettingsService(unittest.TestCase):

    def _make(self):
        api = MagicMock()
        return BirthdaySettingsService(api), api

    def test_load(self):
        service, api = self._make()
        api.get.return_value = {'notificationTime': '0 15 7 * * *',
                                'attachmentImageUrl': 'x.png'}
        result = service.load()
        self.assertEqual((result['hour'], result['minute']), ('7', '15'))
        self.assertEqual(result['imagePreview'], 'x.png')

    def test_save_with_image(self):
        service, api = self._make()
        api.upload_image.return_value = 'birthday/new.png'
        image = ('new.png', object(), 'image/png')
        result = service.save({'enabled': True, 'hour': 9, 'minute': 0}, image)
        self.assertEqual(result['type'], 'success')
        sent = api.update.call_args[0][0]
        self.assertEqual(sent['notificationTime'], '0 00 9 * * *')
        self.assertEqual(sent['attachmentImageUrl'], 'birthday/new.png')
        self.assertNotIn('hour', sent)

    def test_save_error(self):
        service, api = self._make()
        api.update.side_effect = ApiError('boom', 500)
        self.assertEqual(service.save({})['type'], 'error')

    def test_send_test_blank_phone(self):
        service, api = self._make()
        with self.assertRaises(ValidationError):
            service.send_test('  ')
        api.send_test_notification.assert_not_called()

    def test_send_test_result(self):
        service, api = self._make()
        api.send_test_notification.return_value = {'success': False, 'message': 'Nomor salah'}
        result = service.send_test('0812')
        self.assertEqual(result['type'], 'error')
        self.assertEqual(result['description'], 'Nomor salah')


if __name__ == '__main__':
    unittest.main()
