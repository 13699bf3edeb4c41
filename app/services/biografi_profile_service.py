"""Alumni profile (biografi) detail page: tabs, view tracking, display helpers."""
import datetime
import re
from typing import Any, Dict, Iterable, List, Optional

from api_client import ApiError
from .base import BaseService, ValidationError, parse_date

TABS = ('overview', 'personal', 'academic', 'professional', 'medical', 'achievements')

MONTHS_ID = (
    'Januari', 'Februari', 'Maret', 'April', 'Mei', 'Juni',
    'Juli', 'Agustus', 'September', 'Oktober', 'November', 'Desember',
)

SOCIAL_PLATFORMS = (
    ('Instagram', 'instagram'),
    ('TikTok', 'tiktok'),
    ('YouTube', 'youtube'),
    ('LinkedIn', 'linkedin'),
    ('Facebook', 'facebook'),
    ('Telegram', 'telegram'),
)

# Education levels ranked for picking the headline academic record.
_LEVEL_PRIORITY = {
    'S3': 3, 'Doktor': 3, 'Doctoral': 3,
    'S2': 2, 'Master': 2, 'Magister': 2,
    'S1': 1, 'Sarjana': 1, 'Bachelor': 1,
}


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def format_date(value: Any) -> str:
    """``2024-03-05`` → ``5 Maret 2024``; blank → ``Tidak ditentukan``."""
    if not value:
        return 'Tidak ditentukan'
    day = parse_date(value)
    if day is None:
        return str(value)
    return f'{day.day} {MONTHS_ID[day.month - 1]} {day.year}'


def format_phone_for_whatsapp(phone: Optional[str]) -> str:
    """Normalise an Indonesian phone number to the ``62…`` international form."""
    digits = re.sub(r'[^0-9]', '', phone or '')
    if digits.startswith('08'):
        return '62' + digits[1:]
    if digits.startswith('8'):
        return '62' + digits
    if digits.startswith('62'):
        return digits
    if digits:
        return '62' + digits
    return digits


def whatsapp_url(phone: Optional[str]) -> str:
    return f'https://wa.me/{format_phone_for_whatsapp(phone)}'


def contact_phone(biografi: Dict[str, Any]) -> Optional[str]:
    return biografi.get('nomorWa') or biografi.get('nomorHp') or biografi.get('nomorTelepon')


def _total_months(items: Iterable[Dict[str, Any]], end_key: str,
                  today: datetime.date) -> int:
    total = 0
    for item in items:
        start = parse_date(item.get('tanggalMulai'))
        if start is None:
            continue
        end = parse_date(item.get(end_key)) or today
        total += (end.year - start.year) * 12 + (end.month - start.month)
    return total


def _duration_label(total_months: int) -> str:
    if total_months == 0:
        return 'Kurang dari 1 bulan'
    years, months = divmod(total_months, 12)
    if years == 0:
        return f'{months} bulan'
    if months == 0:
        return f'{years} tahun'
    return f'{years} tahun {months} bulan'


def calculate_work_experience(items: Optional[List[Dict[str, Any]]],
                              today: Optional[datetime.date] = None) -> str:
    """Total length of ``workExperiences``; open-ended jobs run until *today*."""
    if not items:
        return 'Tidak ada pengalaman'
    return _duration_label(_total_months(items, 'tanggalSelesai',
                                         today or datetime.date.today()))


def calculate_medical_experience(items: Optional[List[Dict[str, Any]]],
                                 today: Optional[datetime.date] = None) -> str:
    if not items:
        return 'Tidak ada spesialisasi'
    return _duration_label(_total_months(items, 'tanggalAkhir',
                                         today or datetime.date.today()))


def social_links(biografi: Dict[str, Any]) -> List[Dict[str, str]]:
    return [
        {'platform': platform, 'url': biografi[key], 'icon': key}
        for platform, key in SOCIAL_PLATFORMS
        if biografi.get(key)
    ]


def latest_work_experience(biografi: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    items = biografi.get('workExperiences') or []
    if not items:
        return None
    return max(items, key=lambda w: parse_date(w.get('tanggalMulai')) or datetime.date.min)


def primary_academic_record(biografi: Dict[str, Any]) -> Dict[str, Any]:
    """Highest-level academic record (latest graduation breaks ties).

    Falls back to the flat fields on the biografi when no records exist.
    """
    records = biografi.get('academicRecords') or []
    if not records:
        return {
            'jurusan': biografi.get('jurusan'),
            'programStudi': biografi.get('programStudi'),
            'tanggalLulus': biografi.get('tanggalLulus'),
            'ipk': biografi.get('ipk'),
            'universitas': None,
            'jenjangPendidikan': None,
            'hasAcademicRecords': False,
        }
    primary = max(records, key=lambda r: (
        _LEVEL_PRIORITY.get(r.get('jenjangPendidikan'), 0),
        parse_date(r.get('tanggalLulus')) or datetime.date.min,
    ))
    return {
        'jurusan': primary.get('programStudi') or biografi.get('jurusan'),
        'programStudi': primary.get('programStudi') or biografi.get('programStudi'),
        'tanggalLulus': primary.get('tanggalLulus') or biografi.get('tanggalLulus'),
        'ipk': primary.get('ipk') or biografi.get('ipk'),
        'universitas': primary.get('universitas'),
        'jenjangPendidikan': primary.get('jenjangPendidikan'),
        'hasAcademicRecords': True,
    }


def alumni_year(biografi: Dict[str, Any]) -> str:
    if biografi.get('alumniTahun'):
        return str(biografi['alumniTahun'])
    graduated = parse_date(biografi.get('tanggalLulus'))
    return str(graduated.year) if graduated else 'N/A'


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class BiografiProfileService(BaseService):
    """Loads one biografi, records the view and shapes each tab.

    Args:
        biografi_api: :class:`alumni_api.BiografiAPI`.
        views_api:    :class:`alumni_api.BiografiViewAPI`.
        wilayah_api:  :class:`alumni_api.WilayahAPI` for region names.
    """

    def __init__(self, biografi_api: Any, views_api: Any, wilayah_api: Any) -> None:
        super().__init__()
        self._biografi = biografi_api
        self._views = views_api
        self._wilayah = wilayah_api

    def load(self, biografi_id: int,
             user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Fetch the profile, resolve its region names and track the visit.

        Only signed-in visitors are tracked; tracking errors never reach
        the caller.

        Raises:
            ApiError: the biografi could not be fetched.
        """
        biografi = dict(self._biografi.get_by_id(biografi_id) or {})
        biografi.update(self._wilayah.convert_biografi_location(biografi))
        if user:
            self.track_view(biografi_id, user)
        return {'biografi': biografi, 'activeTab': 'overview'}

    def track_view(self, biografi_id: int, user: Dict[str, Any]) -> bool:
        user_info = {
            'userId': user.get('id'),
            'userName': user.get('fullName') or user.get('username'),
            'userEmail': user.get('email'),
        }
        try:
            self._views.track(biografi_id, user_info)
        except ApiError as exc:
            self._log.error("Error tracking view of biografi %s: %s", biografi_id, exc)
            return False
        return True

    def view_stats(self, biografi_id: int) -> Dict[str, Any]:
        return self._views.get_stats(biografi_id) or {}

    def view_history(self, biografi_id: int, size: int = 20) -> List[Dict[str, Any]]:
        page = self._views.get_history(biografi_id, size=size) or {}
        return page.get('content') or []

    def tab_view(self, biografi: Dict[str, Any], tab: str,
                 today: Optional[datetime.date] = None) -> Dict[str, Any]:
        """Fields shown on *tab* for an already-loaded biografi.

        Raises:
            ValidationError: *tab* is not one of :data:`TABS`.
        """
        if tab not in TABS:
            raise ValidationError(f'Tab tidak dikenal: {tab}')
        return getattr(self, f'_tab_{tab}')(biografi, today or datetime.date.today())

    # -- tabs -------------------------------------------------------------

    def _tab_overview(self, b: Dict[str, Any], today: datetime.date) -> Dict[str, Any]:
        latest = latest_work_experience(b) or {}
        phone = contact_phone(b)
        return {
            'namaLengkap': b.get('namaLengkap'),
            'nim': b.get('nim'),
            'status': b.get('status'),
            'alumniTahun': alumni_year(b),
            'email': b.get('email'),
            'phone': phone,
            'whatsappUrl': whatsapp_url(phone) if phone else None,
            'foto': b.get('fotoProfil') or b.get('foto'),
            'posisi': latest.get('posisi') or b.get('posisiJabatan') or b.get('pekerjaanSaatIni'),
            'perusahaan': latest.get('perusahaan') or b.get('perusahaanSaatIni'),
            'totalPengalaman': calculate_work_experience(b.get('workExperiences'), today),
            'akademik': primary_academic_record(b),
            'jumlahPrestasi': len(b.get('achievements') or []),
            'socialLinks': social_links(b),
        }

    def _tab_personal(self, b: Dict[str, Any], today: datetime.date) -> Dict[str, Any]:
        gender = b.get('jenisKelamin')
        return {
            'tanggalLahir': format_date(b.get('tanggalLahir')),
            'tempatLahir': b.get('tempatLahir'),
            'jenisKelamin': (None if not gender
                             else 'Laki-laki' if gender == 'LAKI_LAKI' else 'Perempuan'),
            'agama': b.get('agama'),
            'alamat': b.get('alamat'),
            'kelurahan': b.get('kelurahanNama'),
            'kecamatan': b.get('kecamatanNama'),
            'kota': b.get('kotaNama') or b.get('kota'),
            'provinsi': b.get('provinsiNama'),
            'kodePos': b.get('kodePos'),
            'hobi': [h.strip() for h in (b.get('hobi') or '').split(',') if h.strip()],
            'catatan': b.get('catatan'),
        }

    def _tab_academic(self, b: Dict[str, Any], today: datetime.date) -> Dict[str, Any]:
        return {
            'utama': primary_academic_record(b),
            'academicRecords': b.get('academicRecords') or [],
            'pendidikanLanjutan': b.get('pendidikanLanjutan'),
        }

    def _tab_professional(self, b: Dict[str, Any], today: datetime.date) -> Dict[str, Any]:
        return {
            'pekerjaanSaatIni': b.get('posisiJabatan') or b.get('pekerjaanSaatIni'),
            'perusahaanSaatIni': b.get('perusahaanSaatIni'),
            'tanggalMasukKerja': format_date(b.get('tanggalMasukKerja')),
            'tanggalKeluarKerja': format_date(b.get('tanggalKeluarKerja')),
            'workExperiences': b.get('workExperiences') or [],
            'totalPengalaman': calculate_work_experience(b.get('workExperiences'), today),
        }

    def _tab_medical(self, b: Dict[str, Any], today: datetime.date) -> Dict[str, Any]:
        items = b.get('spesialisasiKedokteran') or []
        return {
            'spesialisasiKedokteran': items,
            'totalSpesialisasi': calculate_medical_experience(items, today),
        }

    def _tab_achievements(self, b: Dict[str, Any], today: datetime.date) -> Dict[str, Any]:
        return {
            'prestasi': b.get('prestasi'),
            'achievements': b.get('achievements') or [],
        }
