"""Business logic for the birthday-notification admin page."""
import datetime
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

from api_client import ApiError
from .base import BaseService, parse_date, toast

STATUS_DISPLAY = {
    'PENDING': 'Menunggu',
    'SENT': 'Sudah Terkirim',
    'FAILED': 'Gagal Kirim',
    'EXCLUDED': 'Dikecualikan',
    'RESENT': 'Dikirim Ulang',
}

TABS = ('today', 'upcoming', 'past', 'notifications')

_NO_SELECTION = 'Pilih notifikasi terlebih dahulu'
_NOTHING_TO_SEND = 'Tidak ada notifikasi untuk dikirim'


def days_until_birthday(tanggal_lahir: Any, today: Optional[datetime.date] = None) -> Optional[int]:
    """Days from *today* to the next occurrence of the birthday (0 = today)."""
    birth = parse_date(tanggal_lahir)
    if birth is None:
        return None
    today = today or datetime.date.today()
    upcoming = _birthday_in_year(birth, today.year)
    if upcoming < today:
        upcoming = _birthday_in_year(birth, today.year + 1)
    return (upcoming - today).days


def _birthday_in_year(birth: datetime.date, year: int) -> datetime.date:
    try:
        return birth.replace(year=year)
    except ValueError:
        # 29 February in a non-leap year
        return datetime.date(year, 3, 1)


def birthday_countdown_label(tanggal_lahir: Any, today: Optional[datetime.date] = None) -> str:
    """Label for the "Durasi Ulang Tahun" table column."""
    days = days_until_birthday(tanggal_lahir, today)
    if days is None:
        return '-'
    if days == 0:
        return 'Hari ini!'
    if days == 1:
        return 'Besok'
    return f'{days} hari lagi'


def days_between(start: Any, end: Any) -> Optional[int]:
    """Whole days from *start* to *end*, ignoring time of day."""
    a, b = parse_date(start), parse_date(end)
    if a is None or b is None:
        return None
    return (b - a).days


def upcoming_card_label(notification_date: Any, today: Optional[datetime.date] = None) -> str:
    days = days_between(today or datetime.date.today(), notification_date)
    if days == 0:
        return 'Hari Ini!'
    if days == 1:
        return 'Besok'
    return f'{days} hari lagi'


def past_card_label(notification_date: Any, today: Optional[datetime.date] = None) -> str:
    days = days_between(notification_date, today or datetime.date.today())
    if days == 0:
        return 'Hari ini'
    if days == 1:
        return 'Kemarin'
    return f'{days} hari lalu'


def status_badge(status: str, notification_date: Any = None,
                 today: Optional[datetime.date] = None) -> str:
    """Badge text for a notification row.

    ``PENDING`` rows with a date that is today or ahead show a countdown
    instead of the generic "Menunggu".  Unknown statuses render as PENDING.
    """
    if status not in STATUS_DISPLAY or status == 'PENDING':
        days = None
        if notification_date:
            days = days_between(today or datetime.date.today(), notification_date)
        if days is not None and days >= 0:
            return 'Hari ini' if days == 0 else f'{days} hari lagi'
        return STATUS_DISPLAY['PENDING']
    return STATUS_DISPLAY[status]


def statistics_from(notifications: List[Dict[str, Any]],
                    year: Optional[int] = None) -> Dict[str, int]:
    """Summarise a notification list the way the statistic cards show it."""
    return {
        'totalBirthdays': len(notifications),
        'sent': sum(1 for n in notifications if n.get('status') in ('SENT', 'RESENT')),
        'pending': sum(1 for n in notifications if n.get('status') == 'PENDING'),
        'failed': sum(1 for n in notifications if n.get('status') == 'FAILED'),
        'excluded': sum(1 for n in notifications if n.get('isExcluded')),
        'year': year or datetime.date.today().year,
    }


def build_filter(year: Optional[int] = None, **state: Any) -> Dict[str, Any]:
    """Merge the notification-table filter state with its defaults.

    Keys whose value is ``''`` or ``None`` are dropped so they never reach
    the query string.
    """
    merged: Dict[str, Any] = {
        'year': year if year is not None else datetime.date.today().year,
        'page': 0,
        'size': 10,
        'sortBy': 'notificationDate',
        'sortDirection': 'desc',
    }
    merged.update(state)
    return {k: v for k, v in merged.items() if v is not None and v != ''}


def _sort_by_date(items: List[Dict[str, Any]], reverse: bool) -> List[Dict[str, Any]]:
    return sorted(
        items,
        key=lambda n: parse_date(n.get('notificationDate')) or datetime.date.min,
        reverse=reverse,
    )


class BirthdayService(BaseService):
    """Loads the birthday tabs and runs the admin actions.

    Every action returns a toast dict (see :func:`app.services.base.toast`);
    API failures become ``error`` toasts rather than exceptions, matching
    how the page reports them.

    Args:
        birthday_api: :class:`alumni_api.BirthdayAPI`.
        biografi_api: :class:`alumni_api.BiografiAPI`, used for the
                      "today" view.
        max_workers:  Thread-pool size for tab fan-out.
    """

    def __init__(self, birthday_api: Any, biografi_api: Any,
                 upcoming_days: int = 7, past_days: int = 30,
                 max_workers: int = 4) -> None:
        super().__init__()
        self._birthday = birthday_api
        self._biografi = biografi_api
        self.upcoming_days = upcoming_days
        self.past_days = past_days
        self._max_workers = max_workers

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_notifications(self, **filter_state: Any) -> Dict[str, Any]:
        data = self._birthday.get_notifications(build_filter(**filter_state)) or {}
        return {'content': data.get('content') or [], 'totalPages': data.get('totalPages') or 0}

    def load_upcoming(self, days: Optional[int] = None) -> List[Dict[str, Any]]:
        data = self._birthday.get_upcoming(days or self.upcoming_days) or []
        return _sort_by_date(data, reverse=False)

    def load_past(self, days: Optional[int] = None) -> List[Dict[str, Any]]:
        data = self._birthday.get_past(days or self.past_days) or []
        return _sort_by_date(data, reverse=True)

    def today_birthdays(self, today: Optional[datetime.date] = None) -> List[Dict[str, Any]]:
        """Alumni whose birthday is *today*, merged with existing notifications.

        Biografi records are the source of truth for who has a birthday;
        notification status comes from ``upcoming(365)`` when available.
        """
        today = today or datetime.date.today()
        page = self._biografi.get_all(0, 1000, 'namaLengkap', 'asc') or {}
        seen = set()
        converted: List[Dict[str, Any]] = []
        for bio in page.get('content') or []:
            birth = parse_date(bio.get('tanggalLahir'))
            if birth is None or (birth.month, birth.day) != (today.month, today.day):
                continue
            if bio.get('biografiId') in seen:
                continue
            seen.add(bio.get('biografiId'))
            converted.append(self._to_notification(bio, birth, today))

        if not converted:
            return []

        try:
            existing = self._birthday.get_upcoming(365) or []
        except ApiError as exc:
            self._log.warning("Could not load existing notifications: %s", exc)
            return converted

        todays = {
            n.get('biografiId'): n for n in existing
            if parse_date(n.get('notificationDate')) == today
        }
        merged = []
        for item in converted:
            match = todays.get(item['biografiId'])
            if match:
                item = dict(item)
                item.update({
                    'id': match.get('id'),
                    'status': match.get('status'),
                    'statusDisplayName': match.get('statusDisplayName')
                    or STATUS_DISPLAY.get(match.get('status'), 'Menunggu'),
                    'message': match.get('message'),
                    'sentAt': match.get('sentAt'),
                    'errorMessage': match.get('errorMessage'),
                    'isExcluded': match.get('isExcluded'),
                    'notificationDate': match.get('notificationDate'),
                })
            merged.append(item)
        return merged

    @staticmethod
    def _to_notification(bio: Dict[str, Any], birth: datetime.date,
                         today: datetime.date) -> Dict[str, Any]:
        return {
            'id': bio.get('biografiId'),
            'biografiId': bio.get('biografiId'),
            'namaLengkap': bio.get('namaLengkap'),
            'nomorTelepon': bio.get('nomorTelepon') or bio.get('nomorHp') or bio.get('nomorWa') or '',
            'email': bio.get('email'),
            'tanggalLahir': bio.get('tanggalLahir'),
            'notificationDate': today.isoformat(),
            'year': today.year,
            'status': 'PENDING',
            'statusDisplayName': 'Menunggu',
            'message': '',
            'isExcluded': False,
            'createdAt': bio.get('createdAt'),
            'updatedAt': bio.get('updatedAt'),
            'age': today.year - birth.year,
        }

    def load_tab(self, tab: str, today: Optional[datetime.date] = None,
                 **filter_state: Any) -> Dict[str, Any]:
        """Return ``{'tab', 'items', 'statistics'[, 'totalPages']}`` for one tab.

        Raises:
            ValueError: *tab* is not one of :data:`TABS`.
        """
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab}")
        if tab == 'notifications':
            year = filter_state.get('year') or (today or datetime.date.today()).year
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                page_future = pool.submit(self.load_notifications, **filter_state)
                stats_future = pool.submit(self._birthday.get_statistics, year)
                page = page_future.result()
                stats = stats_future.result()
            return {'tab': tab, 'items': page['content'],
                    'totalPages': page['totalPages'], 'statistics': stats}
        if tab == 'upcoming':
            items = self.load_upcoming(filter_state.get('days'))
        elif tab == 'past':
            items = self.load_past(filter_state.get('days'))
        else:
            items = self.today_birthdays(today)
        return {'tab': tab, 'items': items, 'statistics': statistics_from(items)}

    def load_dashboard(self, today: Optional[datetime.date] = None) -> Dict[str, Any]:
        """Load every tab plus the settings concurrently."""
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = {tab: pool.submit(self.load_tab, tab, today) for tab in TABS}
            settings_future = pool.submit(self._birthday.get_settings)
            result = {tab: future.result() for tab, future in futures.items()}
            try:
                result['settings'] = settings_future.result()
            except ApiError as exc:
                self._log.error("Could not load birthday settings: %s", exc)
                result['settings'] = None
        return result

    # ------------------------------------------------------------------
    # Bulk actions
    # ------------------------------------------------------------------

    def send_selected_today(self, selected: Iterable[int], upcoming: List[Dict[str, Any]],
                            today: Optional[datetime.date] = None) -> Dict[str, Any]:
        """Send the selected upcoming items that are due today and still pending.

        *selected* holds ``biografiId`` values.
        """
        selected = set(selected or ())
        if not selected:
            return toast('warning', _NO_SELECTION,
                         description='Pilih minimal satu notifikasi untuk dikirim hari ini')
        today = today or datetime.date.today()
        items = [
            n for n in upcoming
            if n.get('biografiId') in selected
            and parse_date(n.get('notificationDate')) == today
            and n.get('status') == 'PENDING'
        ]
        if not items:
            return toast('warning', _NOTHING_TO_SEND,
                         description='Tidak ada notifikasi hari ini yang dipilih untuk dikirim')
        return self._send_each(items, f'{len(items)} notifikasi berhasil dikirim!',
                               'Gagal mengirim notifikasi')

    def send_today_selected(self, selected: Iterable[int],
                            today_items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Send the selected pending items from the "today" tab."""
        selected = set(selected or ())
        if not selected:
            return toast('warning', _NO_SELECTION,
                         description='Pilih minimal satu notifikasi untuk dikirim')
        items = [n for n in today_items
                 if n.get('biografiId') in selected and n.get('status') == 'PENDING']
        if not items:
            return toast('warning', _NOTHING_TO_SEND,
                         description='Tidak ada notifikasi yang dipilih untuk dikirim')
        return self._send_each(items, f'{len(items)} notifikasi berhasil dikirim!',
                               'Gagal mengirim notifikasi')

    def bulk_exclude(self, selected: Iterable[int],
                     items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Exclude the selected alumni (by ``biografiId``) from automatic sends."""
        selected = set(selected or ())
        if not selected:
            return toast('warning', _NO_SELECTION,
                         description='Pilih minimal satu notifikasi untuk dikecualikan')
        chosen = [n for n in items if n.get('biografiId') in selected]
        try:
            for n in chosen:
                self._birthday.toggle_biografi_exclusion(n['biografiId'], True)
        except ApiError as exc:
            self._log.error("Bulk exclude failed: %s", exc)
            return toast('error', 'Gagal mengecualikan notifikasi', description=exc.message)
        return toast('success', f'{len(chosen)} notifikasi berhasil dikecualikan!',
                     description='Alumni terpilih dikecualikan dari notifikasi otomatis')

    def bulk_resend(self, selected: Iterable[int],
                    past: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Resend past notifications; *selected* holds notification ``id`` values."""
        selected = set(selected or ())
        if not selected:
            return toast('warning', _NO_SELECTION,
                         description='Pilih minimal satu notifikasi untuk dikirim ulang')
        items = [n for n in past if n.get('id') in selected]
        if not items:
            return toast('warning', _NOTHING_TO_SEND,
                         description='Tidak ada notifikasi yang dipilih')
        return self._send_each(items, f'{len(items)} notifikasi berhasil dikirim ulang!',
                               'Gagal mengirim ulang notifikasi')

    def _send_each(self, items: List[Dict[str, Any]], success: str,
                   failure: str) -> Dict[str, Any]:
        try:
            for n in items:
                self._birthday.send_to_biografi(n['biografiId'])
        except ApiError as exc:
            self._log.error("%s: %s", failure, exc)
            return toast('error', failure, description=exc.message)
        return toast('success', success,
                     description='Notifikasi telah berhasil dikirim ke WhatsApp')

    # ------------------------------------------------------------------
    # Single actions
    # ------------------------------------------------------------------

    def resend(self, biografi_id: int) -> Dict[str, Any]:
        try:
            self._birthday.send_to_biografi(biografi_id)
        except ApiError as exc:
            return toast('error', 'Gagal mengirim ulang notifikasi', description=exc.message)
        return toast('success', 'Notifikasi berhasil dikirim ulang!',
                     description='Notifikasi ulang tahun telah dikirim ke WhatsApp')

    def toggle_exclude(self, biografi_id: int, exclude: bool) -> Dict[str, Any]:
        try:
            self._birthday.toggle_biografi_exclusion(biografi_id, exclude)
        except ApiError as exc:
            return toast('error', 'Gagal mengubah status notifikasi', description=exc.message)
        action = 'dikecualikan dari' if exclude else 'disertakan dalam'
        return toast('success', f'Notifikasi berhasil {action} pengiriman ulang tahun!')

    def generate(self, year: int) -> Dict[str, Any]:
        try:
            self._birthday.generate(year)
        except ApiError as exc:
            return toast('error', 'Gagal membuat notifikasi', description=exc.message)
        return toast('success', f'Notifikasi ulang tahun untuk tahun {year} berhasil dibuat!',
                     description='Semua notifikasi telah berhasil dibuat untuk alumni')

    def send_today(self) -> Dict[str, Any]:
        """Ask the backend to send every notification due today."""
        try:
            self._birthday.send_today()
        except ApiError as exc:
            return toast('error', 'Gagal mengirim notifikasi hari ini', description=exc.message)
        return toast('success', 'Notifikasi hari ini berhasil dikirim!')

    def send_test(self, biografi_id: int) -> Dict[str, Any]:
        try:
            self._birthday.send_test(biografi_id)
        except ApiError as exc:
            return toast('error', 'Gagal mengirim test notifikasi', description=exc.message)
        return toast('success', 'Test notifikasi berhasil dikirim!')

    def reset_to_pending(self, biografi_id: int) -> Dict[str, Any]:
        try:
            self._birthday.reset_to_pending(biografi_id)
        except ApiError as exc:
            return toast('error', 'Gagal mereset status notifikasi', description=exc.message)
        return toast('success', 'Status notifikasi berhasil direset ke Menunggu')

