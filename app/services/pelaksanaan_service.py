"""Four-step edit wizard for an activity's execution record (pelaksanaan).

Steps: status → dokumentasi → peserta → review.  Every step is optional;
"completed" only drives the progress bar.  The final save sends the status
and the participant list concurrently and reports partial failures.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from api_client import ApiError
from .auth_service import is_admin_user
from .base import BaseService, ValidationError, toast

STATUSES = ('PENDING', 'SUKSES', 'GAGAL')
STATUS_BADGES = {'PENDING': 'Pending', 'SUKSES': 'Sukses', 'GAGAL': 'Gagal'}

STEPS = (
    {'id': 'status', 'label': 'Status', 'description': 'Update status pelaksanaan'},
    {'id': 'dokumentasi', 'label': 'Dokumentasi', 'description': 'Upload foto kegiatan'},
    {'id': 'peserta', 'label': 'Peserta', 'description': 'Daftar kehadiran peserta'},
    {'id': 'review', 'label': 'Selesai', 'description': 'Review dan simpan'},
)

MAX_IMAGE_SIZE = 10 * 1024 * 1024
MAX_VIDEO_SIZE = 100 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp')
ALLOWED_VIDEO_TYPES = ('video/mp4', 'video/webm', 'video/avi', 'video/mov')

UNSUPPORTED_FORMAT_MESSAGE = ('Format file tidak didukung. Gunakan format gambar '
                              '(JPG, PNG, WebP) atau video (MP4, WebM).')


def status_badge(status: Optional[str]) -> str:
    return STATUS_BADGES.get(status or '', 'Unknown')


def format_file_size(size: int) -> str:
    """``10485760`` → ``10 MB``; at most two decimals, trailing zeros dropped."""
    if size == 0:
        return '0 Bytes'
    units = ('Bytes', 'KB', 'MB', 'GB')
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f'{value:.2f}'.rstrip('0').rstrip('.')
    return f'{text} {units[index]}'


def validate_file(content_type: str, size: int) -> None:
    """Check a documentation upload.

    Size is checked before type; images may be 10MB, anything else 100MB.

    Raises:
        ValidationError: with the message to show the user.
    """
    max_size = MAX_IMAGE_SIZE if content_type in ALLOWED_IMAGE_TYPES else MAX_VIDEO_SIZE
    if size > max_size:
        raise ValidationError(f'Ukuran file terlalu besar. Maksimal {format_file_size(max_size)}.')
    if content_type not in ALLOWED_IMAGE_TYPES + ALLOWED_VIDEO_TYPES:
        raise ValidationError(UNSUPPORTED_FORMAT_MESSAGE)


def can_edit(user: Optional[Dict[str, Any]], usulan: Optional[Dict[str, Any]]) -> bool:
    """Admins edit everything; otherwise only the proposer of the usulan."""
    if not user:
        return False
    if is_admin_user(user):
        return True
    if not usulan:
        return False
    own_biografi = (user.get('biografi') or {}).get('biografiId')
    if own_biografi and usulan.get('biografiId'):
        return own_biografi == usulan['biografiId']
    if user.get('email') and usulan.get('emailPengusul'):
        return user['email'] == usulan['emailPengusul']
    return False


def participant_from_alumni(alumni: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'biografiId': alumni.get('biografiId'),
        'namaAlumni': alumni.get('namaLengkap'),
        'emailAlumni': alumni.get('email'),
        'hadir': True,
        'catatan': '',
    }


class PelaksanaanService(BaseService):
    """Edit state for one pelaksanaan, backed by
    :class:`alumni_api.PelaksanaanAPI`."""

    def __init__(self, pelaksanaan_api: Any) -> None:
        super().__init__()
        self._api = pelaksanaan_api
        self.pelaksanaan: Optional[Dict[str, Any]] = None
        self.status = 'PENDING'
        self.catatan = ''
        self.dokumentasi: List[Dict[str, Any]] = []
        self.participants: List[Dict[str, Any]] = []
        self.current_step = 0

    @property
    def pelaksanaan_id(self) -> int:
        if self.pelaksanaan is None:
            raise ValidationError('Data pelaksanaan belum dimuat')
        return self.pelaksanaan['id']

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, pelaksanaan_id: int) -> Dict[str, Any]:
        """Fetch the record, its participants and its documentation.

        Raises:
            ApiError: the pelaksanaan itself could not be fetched.
        """
        data = self._api.get_by_id(pelaksanaan_id) or {}
        self.pelaksanaan = data
        self.status = data.get('status') or 'PENDING'
        self.catatan = data.get('catatan') or ''
        self.participants = self._load_participants(pelaksanaan_id, data)
        self.dokumentasi = self._load_dokumentasi(pelaksanaan_id)
        return data

    def _load_participants(self, pelaksanaan_id: int,
                           data: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            summaries = self._api.get_participants(pelaksanaan_id) or []
        except ApiError as exc:
            self._log.info("Participants endpoint unavailable (%s); using embedded data", exc)
        else:
            # The summary's "id" is the biografi id.
            return [
                {'id': p.get('id'), 'biografiId': p.get('id'), 'namaAlumni': p.get('nama'),
                 'emailAlumni': '', 'hadir': bool(p.get('hadir')), 'catatan': ''}
                for p in summaries
            ]
        if data.get('alumniPeserta'):
            return list(data['alumniPeserta'])
        return [
            {
                'id': p.get('id'),
                'biografiId': (p.get('biografi') or {}).get('biografiId') or p.get('id'),
                'namaAlumni': p.get('nama') or (p.get('biografi') or {}).get('namaLengkap'),
                'emailAlumni': p.get('email'),
                'hadir': p.get('status') == 'HADIR',
                'catatan': '',
            }
            for p in data.get('peserta') or []
        ]

    def _load_dokumentasi(self, pelaksanaan_id: int) -> List[Dict[str, Any]]:
        try:
            return self._api.get_dokumentasi(pelaksanaan_id) or []
        except ApiError as exc:
            self._log.info("No dokumentasi data available: %s", exc)
            return []

    # ------------------------------------------------------------------
    # Stepper
    # ------------------------------------------------------------------

    def is_step_completed(self, step: int) -> bool:
        if step == 0:
            return self.status != 'PENDING' or bool(self.catatan.strip())
        if step == 1:
            return bool(self.dokumentasi)
        if step == 2:
            return bool(self.participants)
        return False

    def is_step_valid(self, step: int) -> bool:
        return 0 <= step < len(STEPS)

    def progress(self) -> float:
        completed = sum(1 for i in range(len(STEPS)) if self.is_step_completed(i))
        return completed / len(STEPS) * 100

    def next_step(self) -> None:
        self.current_step = min(self.current_step + 1, len(STEPS) - 1)

    def prev_step(self) -> None:
        self.current_step = max(self.current_step - 1, 0)

    def go_to_step(self, step: int) -> None:
        if not self.is_step_valid(step):
            raise ValidationError(f'Langkah {step} tidak ada')
        self.current_step = step

    def step_message(self, step: int) -> Dict[str, str]:
        if step == 0:
            if self.status == 'PENDING' and not self.catatan.strip():
                return {'type': 'info',
                        'message': 'Opsional: Tambahkan catatan untuk memberikan detail lebih lanjut'}
            return {'type': 'success', 'message': 'Status pelaksanaan sudah diatur'}
        if step == 1:
            if not self.dokumentasi:
                return {'type': 'info',
                        'message': 'Opsional: Upload foto atau video kegiatan untuk dokumentasi'}
            return {'type': 'success', 'message': f'{len(self.dokumentasi)} dokumentasi tersedia'}
        if step == 2:
            if not self.participants:
                return {'type': 'info', 'message': 'Opsional: Tambahkan daftar peserta yang hadir'}
            return {'type': 'success', 'message': f'{len(self.participants)} peserta terpilih'}
        if step == 3:
            return {'type': 'info', 'message': 'Tinjau semua perubahan sebelum menyimpan'}
        return {'type': 'info', 'message': ''}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(self, status: str, catatan: Optional[str] = None) -> None:
        if status not in STATUSES:
            raise ValidationError(f'Status tidak valid: {status}')
        self.status = status
        if catatan is not None:
            self.catatan = catatan

    def save_status(self) -> Dict[str, Any]:
        try:
            self._put_status()
        except ApiError as exc:
            self._log.error("Error updating pelaksanaan %s: %s", self.pelaksanaan_id, exc)
            return toast('error', 'Gagal memperbarui status pelaksanaan')
        return toast('success', 'Status pelaksanaan berhasil diperbarui')

    def _put_status(self) -> Any:
        catatan = self.catatan if self.catatan.strip() else None
        return self._api.update_status(self.pelaksanaan_id, self.status, catatan)

    # ------------------------------------------------------------------
    # Dokumentasi
    # ------------------------------------------------------------------

    def add_dokumentasi(self, judul: str, deskripsi: str,
                        file: Tuple[str, BinaryIO, str, int],
                        user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Upload one photo/video.

        Args:
            file: ``(filename, stream, content_type, size)``.

        Raises:
            ValidationError: the file is too large or of the wrong type.
        """
        filename, stream, content_type, size = file
        validate_file(content_type, size)
        user = user or {}
        fields = {
            'judul': judul or None,
            'deskripsi': deskripsi or None,
            'namaUploader': ((user.get('biografi') or {}).get('namaLengkap')
                             or user.get('email') or 'Anonymous'),
            'emailUploader': user.get('email'),
        }
        try:
            self._api.add_dokumentasi(self.pelaksanaan_id, fields,
                                      (filename, stream, content_type))
        except ApiError as exc:
            self._log.error("Error adding dokumentasi: %s", exc)
            return toast('error', 'Gagal menambahkan dokumentasi')
        self.dokumentasi = self._load_dokumentasi(self.pelaksanaan_id)
        return toast('success', 'Dokumentasi berhasil ditambahkan')

    def delete_dokumentasi(self, dokumentasi_id: int) -> Dict[str, Any]:
        try:
            self._api.delete_dokumentasi(dokumentasi_id)
        except ApiError as exc:
            self._log.error("Error deleting dokumentasi %s: %s", dokumentasi_id, exc)
            return toast('error', 'Gagal menghapus dokumentasi')
        self.dokumentasi = [d for d in self.dokumentasi if d.get('id') != dokumentasi_id]
        return toast('success', 'Dokumentasi berhasil dihapus')

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def is_selected(self, biografi_id: Any) -> bool:
        return any(p['biografiId'] == biografi_id for p in self.participants)

    def add_participant(self, alumni: Dict[str, Any]) -> bool:
        if self.is_selected(alumni.get('biografiId')):
            return False
        self.participants.append(participant_from_alumni(alumni))
        return True

    def remove_participant(self, biografi_id: Any) -> None:
        self.participants = [p for p in self.participants if p['biografiId'] != biografi_id]

    def toggle_attendance(self, biografi_id: Any) -> None:
        for p in self.participants:
            if p['biografiId'] == biografi_id:
                p['hadir'] = not p['hadir']

    def mark_all(self, hadir: bool) -> None:
        for p in self.participants:
            p['hadir'] = hadir

    def select_all_visible(self, alumni: List[Dict[str, Any]]) -> int:
        """Add every alumni not yet selected; returns how many were added."""
        return sum(1 for a in alumni if self.add_participant(a))

    def toggle_selection(self, alumni: Dict[str, Any]) -> bool:
        """Select or unselect *alumni*; returns the new selection state."""
        if self.is_selected(alumni.get('biografiId')):
            self.remove_participant(alumni.get('biografiId'))
            return False
        self.add_participant(alumni)
        return True

    def attendance_counts(self) -> Dict[str, int]:
        hadir = sum(1 for p in self.participants if p['hadir'])
        return {'total': len(self.participants), 'hadir': hadir,
                'tidakHadir': len(self.participants) - hadir}

    def participants_payload(self) -> List[Dict[str, Any]]:
        return [
            {'biografi': {'biografiId': p['biografiId']}, 'hadir': p['hadir'],
             'catatan': p.get('catatan') or ''}
            for p in self.participants
        ]

    # ------------------------------------------------------------------
    # Final save
    # ------------------------------------------------------------------

    def save_all(self) -> Dict[str, Any]:
        """Save status and participants concurrently.

        A failed status save is an error; a failed participant save after a
        successful status save is reported as a partial success.
        """
        pelaksanaan_id = self.pelaksanaan_id
        with ThreadPoolExecutor(max_workers=2) as pool:
            status_future = pool.submit(self._put_status)
            participant_future = None
            if self.participants:
                participant_future = pool.submit(
                    self._api.save_participants, pelaksanaan_id, self.participants_payload())
        try:
            status_future.result()
        except ApiError as exc:
            self._log.error("Error saving pelaksanaan %s: %s", pelaksanaan_id, exc)
            return toast('error', 'Gagal menyimpan perubahan')
        if participant_future is not None:
            try:
                participant_future.result()
            except ApiError as exc:
                self._log.error("Failed to save participants, but status was saved: %s", exc)
                return toast('warning', 'Status tersimpan, tapi gagal menyimpan peserta')
        return toast('success', 'Semua perubahan berhasil disimpan!')

    def snapshot(self) -> Dict[str, Any]:
        return {
            'pelaksanaan': self.pelaksanaan,
            'status': self.status,
            'statusBadge': status_badge(self.status),
            'catatan': self.catatan,
            'dokumentasi': self.dokumentasi,
            'participants': self.participants,
            'attendance': self.attendance_counts(),
            'currentStep': self.current_step,
            'step': STEPS[self.current_step],
            'stepMessage': self.step_message(self.current_step),
            'progress': self.progress(),
        }
