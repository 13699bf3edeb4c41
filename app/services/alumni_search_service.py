"""Alumni lookup for picking activity participants.

Filter dropdowns are loaded in one parallel fan-out; location filters are
chosen by *name* in the UI and translated to region *codes* before the
search request is sent.
"""
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional

from alumni_api import LOCATION_LEVELS
from api_client import ApiError
from .base import BaseService, toast

FILTER_OPTION_FIELDS = ('spesialisasi', 'pekerjaan')
ALL = 'all'


class Debouncer:
    """Run only the last of a burst of calls, *wait* seconds after it.

    Usage::

        debounce = Debouncer(0.3)
        debounce(service.search, filters)   # replaced by the next call
        debounce(service.search, filters)   # this one runs
    """

    def __init__(self, wait: float = 0.3) -> None:
        self.wait = wait
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def __call__(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.wait, fn, args=args, kwargs=kwargs)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        timer = self._timer
        return timer is not None and timer.is_alive()


def location_code(name: Optional[str], mappings: Dict[str, str]) -> Optional[str]:
    """Code for a selected location *name*; ``None`` for "all" or unknown names."""
    if not name or name == ALL:
        return None
    return mappings.get(name)


class AlumniSearchService(BaseService):
    """Search active alumni through :class:`alumni_api.BiografiAPI`."""

    def __init__(self, biografi_api: Any, max_workers: int = 8) -> None:
        super().__init__()
        self._api = biografi_api
        self._max_workers = max_workers
        self.filter_options: Dict[str, List[Any]] = {f: [] for f in FILTER_OPTION_FIELDS}
        self.location_options: Dict[str, List[str]] = {lvl: [] for lvl in LOCATION_LEVELS}
        self.location_mappings: Dict[str, Dict[str, str]] = {lvl: {} for lvl in LOCATION_LEVELS}

    # ------------------------------------------------------------------
    # Dropdown data
    # ------------------------------------------------------------------

    def load_options(self) -> Dict[str, Any]:
        """Fetch filter options, location lists and name→code mappings.

        Returns the loaded data plus a ``toasts`` list describing any group
        that failed.
        """
        jobs: Dict[tuple, Callable[[], Any]] = {}
        for field in FILTER_OPTION_FIELDS:
            jobs[('filter', field)] = lambda f=field: self._api.get_filter_options(f)
        for level in LOCATION_LEVELS:
            jobs[('location', level)] = lambda lv=level: self._api.get_filter_options(lv)
            jobs[('mapping', level)] = lambda lv=level: self._api.get_location_mappings(lv)

        failed = set()
        with ThreadPoolExecutor(max_workers=self._max_workers,
                                thread_name_prefix='alumni_options') as executor:
            future_map = {executor.submit(fn): key for key, fn in jobs.items()}
            for future in as_completed(future_map):
                kind, name = future_map[future]
                try:
                    result = future.result()
                except ApiError as exc:
                    self._log.error("Error loading %s options for %s: %s", kind, name, exc)
                    failed.add(kind)
                    continue
                if kind == 'filter':
                    self.filter_options[name] = result or []
                elif kind == 'location':
                    self.location_options[name] = result or []
                else:
                    self.location_mappings[name] = result or {}

        toasts = []
        if 'filter' in failed:
            toasts.append(toast('error', 'Gagal memuat opsi filter'))
        if failed & {'location', 'mapping'}:
            toasts.append(toast('error', 'Gagal memuat data lokasi'))
        return {
            'filterOptions': self.filter_options,
            'locationOptions': self.location_options,
            'locationMappings': self.location_mappings,
            'toasts': toasts,
        }

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def build_filter(self, filters: Optional[Dict[str, Any]] = None,
                     locations: Optional[Dict[str, str]] = None,
                     page: int = 0, size: int = 10) -> Dict[str, Any]:
        """Server-side filter request for active alumni sorted by name.

        *filters* holds ``nama``, ``nomorTelepon``, ``alumniTahun``,
        ``spesialisasi`` and ``pekerjaan``; *locations* maps each level to a
        selected location name (or ``'all'``).
        """
        request: Dict[str, Any] = {}
        for key, value in (filters or {}).items():
            if value not in (None, ''):
                request[key] = value
        for level in LOCATION_LEVELS:
            code = location_code((locations or {}).get(level), self.location_mappings[level])
            if code:
                request[level] = code
        request.update({
            'status': 'AKTIF',
            'page': page,
            'size': size,
            'sortBy': 'namaLengkap',
            'sortDirection': 'asc',
        })
        return request

    def search(self, filters: Optional[Dict[str, Any]] = None,
               locations: Optional[Dict[str, str]] = None,
               page: int = 0, size: int = 10) -> Dict[str, Any]:
        try:
            response = self._api.search(self.build_filter(filters, locations, page, size)) or {}
        except ApiError as exc:
            self._log.error("Error loading alumni data: %s", exc)
            return {'content': [], 'totalPages': 0, 'totalElements': 0,
                    'toast': toast('error', 'Gagal memuat data alumni')}
        return {
            'content': response.get('content') or [],
            'totalPages': response.get('totalPages') or 0,
            'totalElements': response.get('totalElements') or 0,
        }

    # ------------------------------------------------------------------
    # Client-side filtering
    # ------------------------------------------------------------------

    def filter_local(self, alumni: List[Dict[str, Any]], term: str = '',
                     locations: Optional[Dict[str, str]] = None,
                     selected_ids: Optional[set] = None) -> List[Dict[str, Any]]:
        """Narrow an already-fetched page.

        Matches *term* against name or email, each selected location against
        the alumni's region code, and drops alumni already in *selected_ids*.
        """
        term = (term or '').lower()
        locations = locations or {}
        selected_ids = selected_ids or set()
        result = []
        for item in alumni:
            if item.get('biografiId') in selected_ids:
                continue
            if term and term not in (item.get('namaLengkap') or '').lower() \
                    and term not in (item.get('email') or '').lower():
                continue
            if not all(self._matches_location(item, level, locations.get(level))
                       for level in LOCATION_LEVELS):
                continue
            result.append(item)
        return result

    def _matches_location(self, item: Dict[str, Any], level: str,
                          selected: Optional[str]) -> bool:
        if not selected or selected == ALL:
            return True
        # An unmapped name is compared as-is.
        code = self.location_mappings[level].get(selected, selected)
        return bool(item.get(level)) and item.get(level) == code

    def location_name(self, level: str, code: Optional[str]) -> Optional[str]:
        if not code:
            return None
        for name, mapped in self.location_mappings.get(level, {}).items():
            if mapped == code:
                return name
        return code
