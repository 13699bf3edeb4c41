"""Three-step wizard for creating a report type (jenis laporan) with its stages."""
from typing import Any, BinaryIO, Dict, List, Optional

from api_client import ApiError
from .base import BaseService, ValidationError, toast

STEPS = ('Informasi Dasar', 'Tahapan Laporan', 'Preview & Konfirmasi')
STATUSES = ('AKTIF', 'TIDAK_AKTIF', 'DRAFT')
STATUS_DISPLAY = {'AKTIF': 'Aktif', 'TIDAK_AKTIF': 'Tidak Aktif', 'DRAFT': 'Draft'}
LAYOUTS = (1, 2, 3, 4, 5)

FILE_TYPE_OPTIONS: Dict[str, List[str]] = {
    'PDF': ['pdf'],
    'Word': ['doc', 'docx'],
    'Excel': ['xlsx', 'xls', 'csv'],
    'Image': ['jpg', 'jpeg', 'png', 'gif'],
    'Video': ['mp4', 'avi', 'mov'],
    'Other': ['txt', 'zip', 'rar'],
}
ALL_FILE_TYPES = [t for group in FILE_TYPE_OPTIONS.values() for t in group]
PREVIEWABLE = ('jpg', 'jpeg', 'png', 'gif', 'mp4', 'avi', 'mov')
MAX_TEMPLATE_SIZE = 50 * 1024 * 1024

SAMPLE_TAHAPAN = [
    ('Pengajuan Proposal',
     'Tahap awal pengajuan proposal penelitian dengan dokumen lengkap', ['pdf', 'docx']),
    ('Review Akademik',
     'Proses review akademik oleh tim reviewer yang berpengalaman', ['pdf', 'doc']),
    ('Perbaikan Dokumen',
     'Tahap perbaikan dokumen berdasarkan masukan dari reviewer', ['pdf', 'docx', 'txt']),
    ('Approval Final', 'Persetujuan final dari pihak yang berwenang', ['pdf']),
    ('Publikasi', 'Tahap publikasi hasil penelitian', ['pdf', 'jpg', 'png']),
]


def _text(value: Any) -> str:
    """Form text as a string; a missing value becomes empty."""
    return '' if value is None else str(value)


def display_name(server_name: str) -> str:
    """Original file name from a temp-storage name.

    Temp files are stored as ``YYYYMMDD_HHMMSS_<original>``; anything with
    fewer than three ``_``-separated parts is returned unchanged.
    """
    parts = (server_name or '').split('_')
    if len(parts) >= 3:
        return '_'.join(parts[2:]) or server_name
    return server_name


def can_preview(file_name: str) -> bool:
    extension = (file_name or '').rsplit('.', 1)[-1].lower()
    return extension in PREVIEWABLE


class JenisLaporanWizard(BaseService):
    """State and rules of the create-jenis-laporan wizard.

    Tahapan are addressed by their 0-based position in :attr:`tahapan_list`;
    every structural change renumbers ``urutanTahapan`` and
    ``layoutPosition`` from 1.

    Args:
        jenis_laporan_api: :class:`alumni_api.JenisLaporanAPI`.
        temp_file_api:     :class:`alumni_api.TempFileAPI`.
    """

    def __init__(self, jenis_laporan_api: Any, temp_file_api: Any) -> None:
        super().__init__()
        self._api = jenis_laporan_api
        self._temp = temp_file_api
        self.current_step = 0
        self.nama = ''
        self.deskripsi = ''
        self.status = 'AKTIF'
        self.layout = 1
        self.tahapan_list: List[Dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Basic info + navigation
    # ------------------------------------------------------------------

    def set_basic_info(self, nama: Optional[str] = None, deskripsi: Optional[str] = None,
                       status: Optional[str] = None) -> None:
        if status is not None and status not in STATUSES:
            raise ValidationError(f'Status tidak valid: {status}')
        if nama is not None:
            self.nama = _text(nama)
        if deskripsi is not None:
            self.deskripsi = _text(deskripsi)
        if status is not None:
            self.status = status

    def set_layout(self, per_row: int) -> None:
        if per_row not in LAYOUTS:
            raise ValidationError('Layout harus antara 1 dan 5 per baris')
        self.layout = per_row

    def validate_step1(self) -> bool:
        return bool(self.nama.strip()) and bool(self.deskripsi.strip())

    def validate_step2(self) -> bool:
        return bool(self.tahapan_list) and all(
            t['nama'].strip() and t['deskripsi'].strip() for t in self.tahapan_list
        )

    def can_proceed(self) -> bool:
        if self.current_step == 0:
            return self.validate_step1()
        if self.current_step == 1:
            return self.validate_step2()
        return False

    def next_step(self) -> bool:
        """Advance one step; returns False when the current step is incomplete."""
        if not self.can_proceed():
            return False
        self.current_step = min(self.current_step + 1, len(STEPS) - 1)
        return True

    def prev_step(self) -> None:
        self.current_step = max(self.current_step - 1, 0)

    def progress(self) -> float:
        return self.current_step / (len(STEPS) - 1) * 100

    # ------------------------------------------------------------------
    # Tahapan list
    # ------------------------------------------------------------------

    def add_tahapan(self, nama: str = '', deskripsi: str = '',
                    jenis_file_izin: Optional[List[str]] = None) -> Dict[str, Any]:
        position = len(self.tahapan_list) + 1
        tahapan = {
            'nama': _text(nama),
            'deskripsi': _text(deskripsi),
            'jenisFileIzin': list(jenis_file_izin or []),
            'urutanTahapan': position,
            'layoutPosition': position,
        }
        self.tahapan_list.append(tahapan)
        return tahapan

    def add_sample_tahapan(self) -> None:
        """Replace the list with the five demo stages."""
        self.tahapan_list = []
        for nama, deskripsi, types in SAMPLE_TAHAPAN:
            self.add_tahapan(nama, deskripsi, types)

    def update_tahapan(self, index: int, **fields: Any) -> Dict[str, Any]:
        tahapan = self._get(index)
        allowed = {'nama', 'deskripsi', 'jenisFileIzin'}
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError(f"Field tidak dikenal: {', '.join(sorted(unknown))}")
        for key in ('nama', 'deskripsi'):
            if key in fields:
                fields[key] = _text(fields[key])
        if 'jenisFileIzin' in fields:
            fields['jenisFileIzin'] = list(fields['jenisFileIzin'] or [])
        tahapan.update(fields)
        return tahapan

    def remove_tahapan(self, index: int) -> None:
        tahapan = self._get(index)
        if tahapan.get('templateFileName'):
            self._cleanup([tahapan['templateFileName']])
        del self.tahapan_list[index]
        self._renumber()

    def move_tahapan(self, index: int, direction: str) -> bool:
        """Swap with the neighbour above/below; False when already at the edge."""
        if direction not in ('up', 'down'):
            raise ValidationError("Arah harus 'up' atau 'down'")
        self._get(index)
        target = index - 1 if direction == 'up' else index + 1
        if not 0 <= target < len(self.tahapan_list):
            return False
        items = self.tahapan_list
        items[index], items[target] = items[target], items[index]
        self._renumber()
        return True

    def move_to_position(self, index: int, new_position: int) -> bool:
        """Move a stage to 1-based *new_position*; out-of-range positions are ignored."""
        if new_position < 1 or new_position > len(self.tahapan_list):
            return False
        tahapan = self.tahapan_list.pop(self._index(index))
        self.tahapan_list.insert(new_position - 1, tahapan)
        self._renumber()
        return True

    def layout_grid(self, items_per_row: Optional[int] = None) -> List[List[Dict[str, Any]]]:
        """Stages chunked into rows (defaults to :attr:`layout` per row)."""
        per_row = items_per_row or self.layout
        if per_row not in LAYOUTS:
            raise ValidationError("Layout harus antara 1 dan 5 per baris")
        return [self.tahapan_list[i:i + per_row]
                for i in range(0, len(self.tahapan_list), per_row)]

    def _renumber(self) -> None:
        for position, tahapan in enumerate(self.tahapan_list, start=1):
            tahapan['urutanTahapan'] = position
            tahapan['layoutPosition'] = position

    def _index(self, index: int) -> int:
        if not 0 <= index < len(self.tahapan_list):
            raise ValidationError(f'Tahapan {index} tidak ditemukan')
        return index

    def _get(self, index: int) -> Dict[str, Any]:
        return self.tahapan_list[self._index(index)]

    # ------------------------------------------------------------------
    # Allowed file types
    # ------------------------------------------------------------------

    def toggle_file_type(self, index: int, file_type: str) -> List[str]:
        types = self._get(index)['jenisFileIzin']
        if file_type in types:
            types.remove(file_type)
        else:
            types.append(file_type)
        return types

    def toggle_file_type_group(self, index: int, group: str) -> List[str]:
        """Clear the whole group if fully selected, otherwise add its missing types."""
        group_types = self._group(group)
        tahapan = self._get(index)
        if self.is_group_selected(index, group):
            tahapan['jenisFileIzin'] = [t for t in tahapan['jenisFileIzin'] if t not in group_types]
        else:
            tahapan['jenisFileIzin'] = tahapan['jenisFileIzin'] + [
                t for t in group_types if t not in tahapan['jenisFileIzin']
            ]
        return tahapan['jenisFileIzin']

    def is_group_selected(self, index: int, group: str) -> bool:
        types = self._get(index)['jenisFileIzin']
        return all(t in types for t in self._group(group))

    def is_group_partially_selected(self, index: int, group: str) -> bool:
        types = self._get(index)['jenisFileIzin']
        hits = sum(1 for t in self._group(group) if t in types)
        return 0 < hits < len(self._group(group))

    def select_all(self, index: int) -> None:
        self._get(index)['jenisFileIzin'] = list(ALL_FILE_TYPES)

    def clear_all(self, index: int) -> None:
        self._get(index)['jenisFileIzin'] = []

    @staticmethod
    def _group(group: str) -> List[str]:
        if group not in FILE_TYPE_OPTIONS:
            raise ValidationError(f'Grup file tidak dikenal: {group}')
        return FILE_TYPE_OPTIONS[group]

    # ------------------------------------------------------------------
    # Template files (temp storage)
    # ------------------------------------------------------------------

    def upload_template(self, index: int, filename: str, stream: BinaryIO, size: int,
                        content_type: str = 'application/octet-stream') -> Dict[str, Any]:
        """Upload a template file for one stage, replacing any previous one.

        Raises:
            ValidationError: the file exceeds 50MB.
            ApiError:        temp storage rejected the upload.
        """
        tahapan = self._get(index)
        if size > MAX_TEMPLATE_SIZE:
            raise ValidationError('Ukuran file maksimal 50MB')
        server_name = self._temp.upload(filename, stream, content_type)
        if tahapan.get('templateFileName'):
            self._cleanup([tahapan['templateFileName']])
        tahapan.update({
            'templateFileName': server_name,
            'originalFileName': filename,
            'fileSize': size,
        })
        return toast('success', 'Upload berhasil', description=f'File {filename} berhasil diupload')

    def remove_template(self, index: int) -> None:
        tahapan = self._get(index)
        name = tahapan.pop('templateFileName', None)
        tahapan.pop('originalFileName', None)
        tahapan.pop('fileSize', None)
        if name:
            try:
                self._temp.delete(name)
            except ApiError as exc:
                self._log.error("Failed to delete temp file %s: %s", name, exc)

    def template_info(self, index: int) -> Optional[Dict[str, Any]]:
        name = self._get(index).get('templateFileName')
        if not name:
            return None
        shown = display_name(name)
        return {
            'fileName': name,
            'displayName': shown,
            'canPreview': can_preview(shown),
            'previewUrl': self._temp.preview_url(name),
            'downloadUrl': self._temp.download_url(name),
        }

    def temp_file_names(self) -> List[str]:
        return [t['templateFileName'] for t in self.tahapan_list if t.get('templateFileName')]

    def _cleanup(self, names: List[str]) -> None:
        if not names:
            return
        try:
            self._temp.bulk_delete(names)
        except ApiError as exc:
            self._log.error("Error cleaning up temp files: %s", exc)

    # ------------------------------------------------------------------
    # Preview / submit
    # ------------------------------------------------------------------

    def build_request(self) -> Dict[str, Any]:
        return {
            'nama': self.nama,
            'deskripsi': self.deskripsi,
            'status': self.status,
            'tahapanList': [
                {
                    'nama': t['nama'],
                    'deskripsi': t['deskripsi'],
                    'templateTahapan': t.get('templateFileName') or '',
                    'urutanTahapan': t['urutanTahapan'],
                    'jenisFileIzin': list(t['jenisFileIzin']),
                    'status': 'AKTIF',
                }
                for t in self.tahapan_list
            ],
        }

    def preview(self) -> Dict[str, Any]:
        return {
            'nama': self.nama,
            'deskripsi': self.deskripsi,
            'status': self.status,
            'statusDisplay': STATUS_DISPLAY.get(self.status, self.status),
            'layout': self.layout,
            'rows': self.layout_grid(),
            'jumlahTahapan': len(self.tahapan_list),
        }

    def submit(self) -> Dict[str, Any]:
        """Create the jenis laporan, then drop the temp files it referenced."""
        if not self.validate_step1():
            raise ValidationError('Nama dan deskripsi jenis laporan harus diisi')
        if not self.validate_step2():
            raise ValidationError('Minimal satu tahapan dengan nama dan deskripsi harus diisi')
        try:
            created = self._api.create(self.build_request())
        except ApiError as exc:
            self._log.error("Error creating jenis laporan: %s", exc)
            return toast('error', 'Error', description=exc.message or 'Gagal membuat jenis laporan')
        self._cleanup(self.temp_file_names())
        return toast('success', 'Sukses', description='Jenis laporan berhasil dibuat', data=created)

    def cancel(self) -> None:
        self._cleanup(self.temp_file_names())

    def snapshot(self) -> Dict[str, Any]:
        return {
            'currentStep': self.current_step,
            'stepTitle': STEPS[self.current_step],
            'canProceed': self.can_proceed(),
            'progress': self.progress(),
            'nama': self.nama,
            'deskripsi': self.deskripsi,
            'status': self.status,
            'layout': self.layout,
            'tahapanList': self.tahapan_list,
        }
