#!/usr/bin/env python3
"""
Tests for the alumni profile (biografi detail) service and display helpers.

Run with:
    python -m pytest tests/test_biografi_profile.py
"""
import datetime
import os
import sys
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api_client import ApiError
from app.services import BiografiProfileService, ValidationError
from app.services.biografi_profile_service import (
    alumni_year, calculate_medical_experience, calculate_work_experience, contact_phone,
    format_date, format_phone_for_whatsapp, latest_work_experience,
    primary_academic_record, social_links, whatsapp_url,
)

TODAY = datetime.date(2025, 6, 15)


def _make_biografi(**overrides):
    biografi = {
        'biografiId': 7,
        'namaLengkap': 'Siti Rahma',
        'nim': '1501',
        'status': 'AKTIF',
        'alumniTahun': '2015',
        'email': 'siti@example.com',
        'nomorTelepon': '0811',
        'tanggalLahir': '1993-03-05',
        'jenisKelamin': 'PEREMPUAN',
        'provinsi': '32',
        'kota': '32.73',
    }
    biografi.update(overrides)
    return biografi


def _make_service(biografi=None, names=None):
    biografi_api = MagicMock()
    views_api = MagicMock()
    wilayah_api = MagicMock()
    biografi_api.get_by_id.return_value = biografi if biografi is not None else _make_biografi()
    wilayah_api.convert_biografi_location.return_value = names or {}
    service = BiografiProfileService(biografi_api, views_api, wilayah_api)
    return service, biografi_api, views_api, wilayah_api


# ===========================================================================
# Display helpers
# ===========================================================================

class TestFormatting(unittest.TestCase):

    def test_format_date(self):
        self.assertEqual(format_date('2024-03-05'), '5 Maret 2024')
        self.assertEqual(format_date('2024-12-31T10:00:00'), '31 Desember 2024')
        self.assertEqual(format_date(None), 'Tidak ditentukan')
        self.assertEqual(format_date('kemarin'), 'kemarin')

    def test_whatsapp_phone(self):
        self.assertEqual(format_phone_for_whatsapp('0812-3456-789'), '628123456789')
        self.assertEqual(format_phone_for_whatsapp('+62 812 345'), '62812345')
        self.assertEqual(format_phone_for_whatsapp('812345'), '62812345')
        self.assertEqual(format_phone_for_whatsapp('21555'), '6221555')
        self.assertEqual(format_phone_for_whatsapp(None), '')

    def test_whatsapp_url(self):
        self.assertEqual(whatsapp_url('0812'), 'https://wa.me/62812')

    def test_contact_phone_priority(self):
        self.assertEqual(contact_phone({'nomorWa': '1', 'nomorHp': '2', 'nomorTelepon': '3'}), '1')
        self.assertEqual(contact_phone({'nomorHp': '2', 'nomorTelepon': '3'}), '2')
        self.assertEqual(contact_phone({'nomorTelepon': '3'}), '3')
        self.assertIsNone(contact_phone({}))

    def test_alumni_year(self):
        self.assertEqual(alumni_year({'alumniTahun': 2010}), '2010')
        self.assertEqual(alumni_year({'tanggalLulus': '2012-08-01'}), '2012')
        self.assertEqual(alumni_year({}), 'N/A')

    def test_social_links(self):
        links = social_links({'instagram': 'https://ig/x', 'telegram': '', 'linkedin': 'https://li/x'})
        self.assertEqual([l['platform'] for l in links], ['Instagram', 'LinkedIn'])


class TestExperience(unittest.TestCase):

    def test_no_items(self):
        self.assertEqual(calculate_work_experience([], TODAY), 'Tidak ada pengalaman')
        self.assertEqual(calculate_medical_experience(None, TODAY), 'Tidak ada spesialisasi')

    def test_less_than_a_month(self):
        items = [{'tanggalMulai': '2025-06-01', 'tanggalSelesai': '2025-06-20'}]
        self.assertEqual(calculate_work_experience(items, TODAY), 'Kurang dari 1 bulan')

    def test_months_and_years(self):
        self.assertEqual(calculate_work_experience(
            [{'tanggalMulai': '2025-01-01', 'tanggalSelesai': '2025-04-01'}], TODAY), '3 bulan')
        self.assertEqual(calculate_work_experience(
            [{'tanggalMulai': '2020-06-01', 'tanggalSelesai': '2022-06-01'}], TODAY), '2 tahun')
        self.assertEqual(calculate_work_experience(
            [{'tanggalMulai': '2020-01-01', 'tanggalSelesai': '2021-03-01'},
             {'tanggalMulai': '2022-01-01', 'tanggalSelesai': '2022-02-01'}], TODAY),
            '1 tahun 3 bulan')

    def test_open_ended_runs_until_today(self):
        items = [{'tanggalMulai': '2024-06-01'}]
        self.assertEqual(calculate_work_experience(items, TODAY), '1 tahun')

    def test_medical_uses_tanggal_akhir(self):
        items = [{'tanggalMulai': '2019-01-01', 'tanggalAkhir': '2023-07-01'}]
        self.assertEqual(calculate_medical_experience(items, TODAY), '4 tahun 6 bulan')


class TestRecords(unittest.TestCase):

    def test_latest_work_experience(self):
        b = {'workExperiences': [{'posisi': 'A', 'tanggalMulai': '2018-01-01'},
                                 {'posisi': 'B', 'tanggalMulai': '2021-01-01'}]}
        self.assertEqual(latest_work_experience(b)['posisi'], 'B')
        self.assertIsNone(latest_work_experience({}))

    def test_primary_academic_prefers_higher_level(self):
        b = {'academicRecords': [
            {'jenjangPendidikan': 'S1', 'programStudi': 'Kedokteran', 'tanggalLulus': '2015-08-01'},
            {'jenjangPendidikan': 'S2', 'programStudi': 'Epidemiologi', 'tanggalLulus': '2014-01-01'},
        ]}
        record = primary_academic_record(b)
        self.assertEqual(record['jenjangPendidikan'], 'S2')
        self.assertTrue(record['hasAcademicRecords'])

    def test_primary_academic_fallback(self):
        record = primary_academic_record({'jurusan': 'Umum', 'ipk': 3.5})
        self.assertFalse(record['hasAcademicRecords'])
        self.assertEqual(record['jurusan'], 'Umum')


# ===========================================================================
# BiografiProfileService
# ===========================================================================

class TestBiografiProfileService(unittest.TestCase):

    def test_load_merges_location_names_and_tracks(self):
        service, _, views_api, _ = _make_service(names={'provinsiNama': 'JAWA BARAT'})
        user = {'id': 3, 'fullName': 'Admin Satu', 'username': 'admin', 'email': 'a@x'}
        result = service.load(7, user)
        self.assertEqual(result['activeTab'], 'overview')
        self.assertEqual(result['biografi']['provinsiNama'], 'JAWA BARAT')
        views_api.track.assert_called_once_with(
            7, {'userId': 3, 'userName': 'Admin Satu', 'userEmail': 'a@x'})

    def test_load_anonymous_not_tracked(self):
        service, _, views_api, _ = _make_service()
        service.load(7)
        views_api.track.assert_not_called()

    def test_track_failure_does_not_break_load(self):
        service, _, views_api, _ = _make_service()
        views_api.track.side_effect = ApiError('down', 500)
        result = service.load(7, {'id': 1, 'username': 'u'})
        self.assertEqual(result['biografi']['namaLengkap'], 'Siti Rahma')

    def test_track_view_username_fallback(self):
        service, _, views_api, _ = _make_service()
        self.assertTrue(service.track_view(7, {'id': 1, 'username': 'budi'}))
        self.assertEqual(views_api.track.call_args[0][1]['userName'], 'budi')

    def test_load_error_propagates(self):
        service, biografi_api, _, _ = _make_service()
        biografi_api.get_by_id.side_effect = ApiError('Not found', 404)
        with self.assertRaises(ApiError):
            service.load(99)

    def test_view_history_content(self):
        service, _, views_api, _ = _make_service()
        views_api.get_history.return_value = {'content': [{'userName': 'x'}]}
        self.assertEqual(service.view_history(7, size=5), [{'userName': 'x'}])
        views_api.get_history.assert_called_once_with(7, size=5)

    def test_unknown_tab(self):
        service, _, _, _ = _make_service()
        with self.assertRaises(ValidationError):
            service.tab_view(_make_biografi(), 'finance')

    def test_overview_tab(self):
        service, _, _, _ = _make_service()
        b = _make_biografi(nomorWa='0812', workExperiences=[
            {'posisi': 'Dokter', 'perusahaan': 'RS', 'tanggalMulai': '2023-06-01'}])
        view = service.tab_view(b, 'overview', TODAY)
        self.assertEqual(view['whatsappUrl'], 'https://wa.me/62812')
        self.assertEqual(view['posisi'], 'Dokter')
        self.assertEqual(view['totalPengalaman'], '2 tahun')

    def test_personal_tab(self):
        service, _, _, _ = _make_service()
        b = _make_biografi(hobi='Membaca, , Futsal', kotaNama='KOTA BANDUNG')
        view = service.tab_view(b, 'personal', TODAY)
        self.assertEqual(view['tanggalLahir'], '5 Maret 1993')
        self.assertEqual(view['jenisKelamin'], 'Perempuan')
        self.assertEqual(view['hobi'], ['Membaca', 'Futsal'])
        self.assertEqual(view['kota'], 'KOTA BANDUNG')

    def test_medical_tab_empty(self):
        service, _, _, _ = _make_service()
        view = service.tab_view(_make_biografi(), 'medical', TODAY)
        self.assertEqual(view['totalSpesialisasi'], 'Tidak ada spesialisasi')


if __name__ == '__main__':
    unittest.main()
