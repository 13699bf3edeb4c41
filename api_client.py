"""
api_client.py
=============
HTTP core shared by every backend resource wrapper in the alumni portal.

The backend is a Spring Boot REST service.  Two URL roots are in play:

* ``api_url``      – ``http://localhost:8080/api`` (resource endpoints such
  as ``/biografi`` or ``/admin/birthday/upcoming``)
* ``backend_url``  – ``http://localhost:8080`` (routes that are written with
  an explicit ``api/`` prefix, e.g. ``/api/temp-files/upload``)

Authentication
--------------
A bearer token is read from the session store (see
:class:`app.repositories.SessionRepository`) on every request.  When the
backend answers **401** the stored token and user are removed and the
``auth:token-expired`` event is emitted on the client's :class:`EventBus`
before :class:`AuthExpiredError` is raised.

Usage
-----
::

    from api_client import ApiClient, EventBus

    events = EventBus()
    client = ApiClient("http://localhost:8080/api",
                       backend_url="http://localhost:8080",
                       session_store=store, events=events)
    page = client.request("/biografi", params={"page": 0, "size": 10})
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_DEFAULT_TIMEOUT = 15  # seconds
TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"
TOKEN_EXPIRED_EVENT = "auth:token-expired"
_TOKEN_EXPIRED_MESSAGE = (
    "Token tidak valid atau telah kedaluwarsa. Silakan login kembali."
)


class ApiError(Exception):
    """Raised when the backend answers with a non-2xx status or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class AuthExpiredError(ApiError):
    """Raised on HTTP 401 after the local session has been cleared."""


class EventBus:
    """Tiny synchronous publish/subscribe hub.

    Stands in for the browser ``window`` events the portal relies on
    (``auth:token-expired``).  Callbacks run in subscription order; a
    callback that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, payload: Any = None) -> int:
        """Invoke every listener of *event*.  Returns the number notified."""
        notified = 0
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(payload)
                notified += 1
            except Exception as exc:
                logger.error("Listener for %s failed: %s", event, exc)
        return notified


def build_api_url(api_url: str, backend_url: str, path: str) -> str:
    """Resolve *path* against the right URL root.

    A single leading ``/`` is stripped; paths that then start with ``api/``
    are joined onto *backend_url*, everything else onto *api_url*.
    """
    clean = path[1:] if path.startswith("/") else path
    if clean.startswith("api/"):
        return f"{backend_url.rstrip('/')}/{clean}"
    return f"{api_url.rstrip('/')}/{clean}"


def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop ``None`` and empty-string values from a query/filter dict."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None and v != ""}


class ApiClient:
    """Authenticated JSON client for the alumni backend."""

    def __init__(
        self,
        api_url: str,
        backend_url: Optional[str] = None,
        session_store: Any = None,
        events: Optional[EventBus] = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        """
        Args:
            api_url:       Base URL of the REST API (``.../api``).
            backend_url:   Backend root used for ``api/``-prefixed paths.
                           Defaults to *api_url* minus a trailing ``/api``.
            session_store: Object with ``get``/``remove`` for the auth
                           token and user; ``None`` means anonymous.
            events:        Event bus receiving ``auth:token-expired``.
            timeout:       HTTP request timeout in seconds.
        """
        if not api_url:
            raise ValueError("api_url must not be empty")
        self.api_url = api_url.rstrip("/")
        if backend_url is None:
            backend_url = self.api_url[:-4] if self.api_url.endswith("/api") else self.api_url
        self.backend_url = backend_url.rstrip("/")
        self.session_store = session_store
        self.events = events or EventBus()
        self._timeout = timeout
        self._session = requests.Session()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def url_for(self, path: str) -> str:
        return build_api_url(self.api_url, self.backend_url, path)

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call *endpoint* and return the decoded JSON body.

        Args:
            endpoint: Path such as ``/biografi/12`` or ``/api/temp-files/upload``.
            method:   HTTP verb.
            json:     JSON request body.
            params:   Query parameters; empty values are dropped.
            data:     Form fields (``application/x-www-form-urlencoded`` or
                      multipart when *files* is given).
            files:    Multipart file parts.

        Returns:
            Decoded JSON, or ``None`` for 204 / empty / non-JSON responses.

        Raises:
            AuthExpiredError: The backend answered 401.
            ApiError:         Any other non-2xx status or a transport error.
        """
        return self.raw_request(self.url_for(endpoint), method=method, json=json,
                                params=params, data=data, files=files)

    def raw_request(
        self,
        url: str,
        method: str = "GET",
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Like :meth:`request` but against an absolute *url*."""
        headers = self._headers(json_body=files is None and data is None)
        logger.debug("%s %s", method, url)
        try:
            resp = self._session.request(
                method,
                url,
                headers=headers,
                json=json,
                params=clean_params(params),
                data=data,
                files=files,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(f"Request to {url} failed: {exc}") from exc

        if resp.status_code == 401:
            self._handle_unauthorized(resp)
        if not resp.ok:
            raise self._error_from(resp)
        return self._decode(resp)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, json_body: bool = True) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        token = self._token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _token(self) -> Optional[str]:
        if self.session_store is None:
            return None
        return self.session_store.get(TOKEN_KEY)

    def _handle_unauthorized(self, resp: requests.Response) -> None:
        try:
            body = resp.json()
        except ValueError:
            body = {"error": "Unauthorized"}
        if not isinstance(body, dict):
            body = {"error": "Unauthorized"}
        if self.session_store is not None:
            self.session_store.remove(TOKEN_KEY)
            self.session_store.remove(USER_KEY)
        logger.warning("Backend rejected the session token; clearing it")
        self.events.emit(TOKEN_EXPIRED_EVENT, body)
        raise AuthExpiredError(body.get("error") or _TOKEN_EXPIRED_MESSAGE,
                               status_code=401, payload=body)

    @staticmethod
    def _error_from(resp: requests.Response) -> ApiError:
        text = resp.text or ""
        message = f"HTTP {resp.status_code}: {text}"
        payload: Dict[str, Any] = {}
        try:
            decoded = resp.json()
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            payload = decoded
            message = decoded.get("error") or decoded.get("message") or message
        return ApiError(message, status_code=resp.status_code, payload=payload)

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        if resp.status_code == 204 or resp.headers.get("content-length") == "0":
            return None
        content_type = resp.headers.get("content-type", "")
        if "application/json" not in content_type:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON from {resp.url}: {exc}",
                           status_code=resp.status_code) from exc
