"""Bearer-token session for the hardware store API."""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import SessionData

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FILE = Path.home() / ".storefront_session.json"


class AuthManager:
    """
    Keeps the login token between runs.

    The session lives in a JSON file readable only by the owner. A token in
    STOREFRONT_TOKEN overrides whatever the file holds.
    """

    def __init__(self, session_file: Optional[str] = None) -> None:
        self.session_file = str(session_file or DEFAULT_SESSION_FILE)
        self.session = self._read_session_file()
        self._load_token_from_env()

    @property
    def _path(self) -> Path:
        return Path(self.session_file)

    def _read_session_file(self) -> SessionData:
        if not self._path.exists():
            return SessionData()
        try:
            return SessionData.model_validate_json(self._path.read_text())
        except ValidationError:
            logger.warning(f"Ignoring unreadable session file {self.session_file}")
            return SessionData()

    def _write_session_file(self) -> None:
        self._path.write_text(self.session.model_dump_json())
        self._path.chmod(0o600)

    def save_session(
        self,
        token: str,
        refresh_token: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> None:
        """
        Remember a freshly issued token.

        Args:
            token: Bearer token returned by login or registration
            refresh_token: Refresh token, if issued
            user_id: Account ID
            user_email: Account email address
        """
        self.session = SessionData(
            token=token,
            refresh_token=refresh_token,
            user_id=user_id,
            user_email=user_email,
            is_authenticated=True,
        )
        self._write_session_file()
        logger.info(f"Session saved to {self.session_file}")

    def get_session(self) -> SessionData:
        return self.session

    def clear_session(self) -> None:
        """Forget the token and delete the session file."""
        self.session = SessionData()
        if self._path.exists():
            self._path.unlink()
            logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated and bool(self.session.token)

    def get_token(self) -> Optional[str]:
        return self.session.token

    def _load_token_from_env(self) -> None:
        """Adopt a token issued out of band, e.g. copied from a browser session."""
        token = os.environ.get("STOREFRONT_TOKEN")
        if not token:
            return

        logger.info("✓ Loaded authentication token from environment")
        self.session = SessionData(
            token=token,
            user_email=os.environ.get("STOREFRONT_EMAIL"),
            is_authenticated=True,
        )
        self._write_session_file()
