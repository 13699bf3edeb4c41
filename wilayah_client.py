"""
wilayah_client.py
=================
Client for the backend's Indonesian region proxy (``/api/wilayah``), which
fronts wilayah.id.

Regions form a four-level tree, each level keyed by the parent's code:

* provinces → regencies (kota/kabupaten) → districts (kecamatan) →
  villages (kelurahan/desa, with ``postal_code``)

List responses arrive as ``{"data": [...], "meta": {...}}``; only ``data`` is
returned.  List calls are cached for 24 hours per code.

Usage
-----
::

    from wilayah_client import WilayahClient

    wilayah = WilayahClient('http://localhost:8080/api/wilayah')
    options = WilayahClient.to_options(wilayah.get_provinces())
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from api_client import ApiError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
CACHE_TTL_SECONDS = 24 * 60 * 60
_DEFAULT_TIMEOUT = 15


class WilayahCache:
    """In-memory ``key → value`` store whose entries expire after *ttl* seconds."""

    def __init__(self, ttl: float = CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class WilayahClient:
    """Region lookups through the backend proxy.

    Args:
        base_url: Proxy root, e.g. ``http://localhost:8080/api/wilayah``.
        timeout:  HTTP request timeout in seconds.
        cache:    Shared :class:`WilayahCache`; a private one is created
                  when omitted.
    """

    def __init__(self, base_url: str, timeout: int = _DEFAULT_TIMEOUT,
                 cache: Optional[WilayahCache] = None) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.cache = cache if cache is not None else WilayahCache()
        self.session = requests.Session()
        self._log = logging.getLogger('alumni.wilayah')

    # ------------------------------------------------------------------
    # Region lists
    # ------------------------------------------------------------------

    def get_provinces(self) -> List[Dict[str, Any]]:
        return self._cached_list('provinces', '/provinces')

    def get_regencies(self, province_code: str) -> List[Dict[str, Any]]:
        return self._cached_list(f'regencies-{province_code}', f'/regencies/{province_code}')

    def get_districts(self, regency_code: str) -> List[Dict[str, Any]]:
        return self._cached_list(f'districts-{regency_code}', f'/districts/{regency_code}')

    def get_villages(self, district_code: str) -> List[Dict[str, Any]]:
        """Villages of a district; each item carries ``postal_code``."""
        return self._cached_list(f'villages-{district_code}', f'/villages/{district_code}')

    def _cached_list(self, key: str, endpoint: str) -> List[Dict[str, Any]]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        data = (self._get(endpoint) or {}).get('data') or []
        self.cache.set(key, data)
        return data

    def _get(self, endpoint: str) -> Any:
        url = f'{self.base_url}{endpoint}'
        try:
            response = self.session.get(url, headers={'Accept': 'application/json'},
                                        timeout=self.timeout)
        except requests.RequestException as exc:
            self._log.error("Wilayah API error for %s: %s", endpoint, exc)
            raise ApiError(f'Failed to fetch from wilayah API proxy: {exc}') from exc
        if not response.ok:
            self._log.error("Wilayah API error for %s: HTTP %s", endpoint, response.status_code)
            raise ApiError(f'Failed to fetch from wilayah API proxy: {response.status_code}',
                           status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Wilayah API returned invalid JSON for %s: %s", endpoint, exc)
            raise ApiError('Invalid response from wilayah API proxy',
                           status_code=response.status_code) from exc

    # ------------------------------------------------------------------
    # Code → name
    # ------------------------------------------------------------------

    def get_name(self, code: Optional[str]) -> str:
        """Name for a region *code*; the code itself when the lookup fails."""
        if not code:
            return ''
        try:
            data = self._get(f'/name/{code}') or {}
        except ApiError as exc:
            self._log.warning("Failed to get name for kode %s: %s", code, exc)
            return code
        if not isinstance(data, dict):
            return code
        return data.get('nama') or code

    def get_names(self, kode_map: Dict[str, str]) -> Dict[str, str]:
        """Batch lookup; the input map is returned unchanged on failure."""
        url = f'{self.base_url}/names'
        try:
            response = self.session.post(url, json=kode_map,
                                         headers={'Accept': 'application/json'},
                                         timeout=self.timeout)
        except requests.RequestException as exc:
            self._log.warning("Error getting wilayah names: %s", exc)
            return kode_map
        if not response.ok:
            self._log.warning("Failed to get names: %s", response.status_code)
            return kode_map
        try:
            names = response.json()
        except ValueError as exc:
            self._log.warning("Invalid wilayah names response: %s", exc)
            return kode_map
        return names if isinstance(names, dict) else kode_map

    @staticmethod
    def to_options(items: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        """``[{code, name}]`` → combobox ``[{value, label}]``."""
        return [{'value': item['code'], 'label': item['name']} for item in items]
