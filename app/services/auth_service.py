"""Sign-in state for the portal (token + user profile)."""
from typing import Any, Dict, Optional

from api_client import (
    ApiClient, ApiError, EventBus, TOKEN_EXPIRED_EVENT, TOKEN_KEY, USER_KEY,
)
from ..repositories.session_repository import SessionRepository
from .base import BaseService, ValidationError


class AuthService(BaseService):
    """Logs users in and out, delegating storage to
    :class:`~app.repositories.session_repository.SessionRepository`.

    The service listens for ``auth:token-expired`` on the client's event bus
    and logs out when the backend rejects the token.
    """

    def __init__(self, client: ApiClient, session_repo: SessionRepository,
                 events: Optional[EventBus] = None,
                 login_endpoint: str = '/api/auth/login') -> None:
        super().__init__()
        self._client = client
        self._repo = session_repo
        self._login_endpoint = login_endpoint
        self._events = events or client.events
        self._events.subscribe(TOKEN_EXPIRED_EVENT, self._on_token_expired)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """Authenticate and persist the returned token and user.

        Returns:
            The user dict from the backend.

        Raises:
            ValidationError: *username* or *password* is blank.
            ApiError: The backend refused the credentials.
        """
        if not (username or '').strip() or not password:
            raise ValidationError('Username dan password harus diisi')
        try:
            data = self._client.request(
                self._login_endpoint, method='POST',
                json={'username': username, 'password': password},
            ) or {}
        except ApiError as exc:
            raise ApiError(exc.payload.get('error') or 'Login failed',
                           status_code=exc.status_code, payload=exc.payload) from exc
        token = data.get('token')
        if not token:
            raise ApiError('Login failed', payload=data)
        self._repo.set(TOKEN_KEY, token)
        self._repo.set(USER_KEY, data.get('user') or {})
        self._log.info("User %s logged in", username)
        return data.get('user') or {}

    def logout(self) -> None:
        self._repo.remove(TOKEN_KEY)
        self._repo.remove(USER_KEY)

    def is_authenticated(self) -> bool:
        return bool(self._repo.get(USER_KEY) and self._repo.get(TOKEN_KEY))

    def current_user(self) -> Optional[Dict[str, Any]]:
        return self._repo.get(USER_KEY)

    def token(self) -> Optional[str]:
        return self._repo.get(TOKEN_KEY)

    def is_admin(self) -> bool:
        return is_admin_user(self.current_user())

    def _on_token_expired(self, _payload: Any) -> None:
        self._log.info("Session expired; logging out")
        self.logout()


def is_admin_user(user: Optional[Dict[str, Any]]) -> bool:
    """Return True when *user* carries the ``ADMIN`` role."""
    if not user:
        return False
    return ((user.get('role') or {}).get('roleName')) == 'ADMIN'
