"""Birthday notification settings: schedule, message template, attachment image."""
from typing import Any, BinaryIO, Dict, Optional, Tuple

from api_client import ApiError
from .base import BaseService, ValidationError, toast

DEFAULT_CRON = '0 0 8 * * *'
DEFAULT_TIMEZONE = 'Asia/Jakarta'
TIMEZONES = ('Asia/Jakarta', 'Asia/Makassar', 'Asia/Jayapura', 'UTC')
MAX_DAYS_AHEAD = 30

DEFAULT_SETTINGS: Dict[str, Any] = {
    'enabled': False,
    'notificationTime': DEFAULT_CRON,
    'timezone': DEFAULT_TIMEZONE,
    'message': '',
    'daysAhead': 0,
}


def cron_to_time(cron: str) -> Tuple[str, str]:
    """Return ``(hour, minute)`` from a ``"sec min hour * * *"`` expression.

    The minute is zero-padded; the hour is returned as written.  Expressions
    with fewer than three fields fall back to the default 08:00.
    """
    parts = (cron or '').split()
    if len(parts) < 3:
        parts = DEFAULT_CRON.split()
    return parts[2], parts[1].zfill(2)


def time_to_cron(hour: Any, minute: Any) -> str:
    """Build the daily cron expression for *hour*:*minute*.

    Raises:
        ValidationError: hour/minute are not valid clock values.
    """
    try:
        h, m = int(hour), int(minute)
    except (TypeError, ValueError) as exc:
        raise ValidationError('Jam notifikasi tidak valid') from exc
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValidationError('Jam notifikasi tidak valid')
    return f'0 {m:02d} {h} * * *'


def normalize_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Fill defaults, clamp ``daysAhead`` to 0..30 and check the timezone."""
    merged = dict(DEFAULT_SETTINGS)
    merged.update({k: v for k, v in (settings or {}).items() if v is not None})
    if merged['timezone'] not in TIMEZONES:
        raise ValidationError(f"Zona waktu tidak didukung: {merged['timezone']}")
    try:
        days = int(merged.get('daysAhead') or 0)
    except (TypeError, ValueError):
        days = 0
    merged['daysAhead'] = max(0, min(days, MAX_DAYS_AHEAD))
    return merged


class BirthdaySettingsService(BaseService):
    """Reads and saves the settings through
    :class:`alumni_api.BirthdaySettingsAPI`."""

    def __init__(self, settings_api: Any) -> None:
        super().__init__()
        self._api = settings_api

    def load(self) -> Dict[str, Any]:
        """Current settings plus the parsed ``hour``/``minute`` for the form."""
        settings = self._api.get() or {}
        hour, minute = cron_to_time(settings.get('notificationTime', DEFAULT_CRON))
        return {'settings': settings, 'hour': hour, 'minute': minute,
                'imagePreview': settings.get('attachmentImageUrl') or ''}

    def save(self, settings: Dict[str, Any],
             image: Optional[Tuple[str, BinaryIO, str]] = None) -> Dict[str, Any]:
        """Upload *image* (if any), then persist the settings.

        Args:
            settings: Form values; ``hour``/``minute`` keys, when present,
                      replace ``notificationTime``.
            image:    ``(filename, stream, content_type)`` of a new attachment.
        """
        settings = dict(settings)
        hour, minute = settings.pop('hour', None), settings.pop('minute', None)
        if hour is not None and minute is not None:
            settings['notificationTime'] = time_to_cron(hour, minute)
        settings = normalize_settings(settings)
        try:
            if image:
                settings['attachmentImageUrl'] = self._api.upload_image(*image)
            self._api.update(settings)
        except ApiError as exc:
            self._log.error("Saving birthday settings failed: %s", exc)
            return toast('error', 'Gagal menyimpan pengaturan', description=exc.message)
        return toast('success', 'Pengaturan berhasil disimpan!',
                     description='Pengaturan notifikasi ulang tahun telah diperbarui')

    def reset_defaults(self) -> Dict[str, Any]:
        try:
            self._api.reset_defaults()
        except ApiError as exc:
            return toast('error', 'Gagal reset pengaturan', description=exc.message)
        return toast('success', 'Pengaturan berhasil direset ke default!')

    def send_test(self, phone_number: str) -> Dict[str, Any]:
        """Send a test WhatsApp message to *phone_number*.

        Raises:
            ValidationError: the phone number is blank.
        """
        if not (phone_number or '').strip():
            raise ValidationError('Nomor handphone harus diisi')
        try:
            result = self._api.send_test_notification(phone_number) or {}
        except ApiError as exc:
            return toast('error', 'Gagal mengirim test notifikasi', description=exc.message)
        if result.get('success'):
            return toast('success', 'Test notifikasi berhasil!', description=result.get('message'))
        return toast('error', 'Test notifikasi gagal', description=result.get('message'))
