"""Local persistence for the alumni portal."""
from .session_repository import SessionRepository

__all__ = [
    'SessionRepository',
]
