"""Repository for the signed-in session ({"auth_token": str, "auth_user": dict})."""
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

# The file holds a bearer token
SESSION_FILE_MODE = 0o600


class SessionRepository:
    """Keeps the bearer token and user profile between runs.

    Schema::

        {
            "auth_token": "<jwt>",
            "auth_user":  {"id": 1, "username": "admin", "role": {...}, ...}
        }

    Pass ``file_path=None`` for a purely in-memory session (used by the web
    layer, where the server process holds one login).  On disk the file is
    readable by its owner only and is replaced in one rename, so a crash
    never leaves a half-written token behind.
    """

    def __init__(self, file_path: Optional[str] = '.alumni_session.json') -> None:
        self.file_path = file_path
        self._log = logging.getLogger('alumni.repository.session')
        self.data: Dict[str, Any] = self._read() if file_path else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.save()

    def remove(self, key: str) -> bool:
        if key not in self.data:
            return False
        del self.data[key]
        self.save()
        return True

    def clear(self) -> None:
        self.data = {}
        self.save()

    def save(self) -> None:
        if not self.file_path:
            return
        if not self.data:
            self._delete_file()
            return
        dir_name = os.path.dirname(os.path.abspath(self.file_path))
        os.makedirs(dir_name, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        try:
            os.chmod(tmp_path, SESSION_FILE_MODE)
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(self.data, fh, indent=2)
            os.replace(tmp_path, self.file_path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _read(self) -> Dict[str, Any]:
        """Stored session, or an empty one when the file is missing or unusable."""
        if not os.path.exists(self.file_path):
            return {}
        try:
            with open(self.file_path, 'r', encoding='utf-8') as fh:
                stored = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            self._log.warning("Could not load session from %s: %s", self.file_path, exc)
            return {}
        if not isinstance(stored, dict):
            self._log.warning("Ignoring session file %s: not a JSON object", self.file_path)
            return {}
        return stored

    def _delete_file(self) -> None:
        try:
            os.remove(self.file_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            self._log.warning("Could not remove session file %s: %s", self.file_path, exc)
