"""Google OAuth2 credentials for the Gmail and Calendar connectors."""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from modern.config import settings

logger = logging.getLogger(__name__)


class NotConnectedError(RuntimeError):
    """A Google connector has no usable credentials."""


class GoogleAuthManager:
    """Holds OAuth credentials for one token file and builds API services.

    Singleton accessed via ``GoogleAuthManager.get()``. Credentials are cached
    in memory and refreshed (and written back to the token file) whenever
    they have expired.
    """

    _instance: GoogleAuthManager | None = None

    SCOPES = [
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/calendar.events",
    ]

    def __init__(self, token_path: Path | None = None) -> None:
        self._token_path = Path(token_path or settings.google_token_path)
        self._credentials: Credentials | None = None

    @classmethod
    def get(cls) -> GoogleAuthManager:
        """Return the shared manager, creating it lazily."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def enabled(self) -> bool:
        """True if the token file exists on disk."""
        return self._token_path.exists()

    # -- credential management ------------------------------------------------

    def _load_credentials(self) -> Credentials:
        """Load credentials from the token file, refreshing if expired."""
        if not self._token_path.exists():
            msg = (
                f"Google is not connected: no token file at {self._token_path}. "
                "Run `python scripts/google_auth.py` to authenticate."
            )
            raise NotConnectedError(msg)

        creds = Credentials.from_authorized_user_file(str(self._token_path), self.SCOPES)

        if creds.expired and creds.refresh_token:
            logger.info("Refreshing expired Google credentials")
            try:
                creds.refresh(Request())
            except RefreshError as exc:
                msg = f"Google is not connected: token refresh failed ({exc})"
                raise NotConnectedError(msg) from exc
            self._token_path.write_text(creds.to_json(), encoding="utf-8")
            logger.info("Google credentials refreshed and saved")

        return creds

    def _get_credentials(self) -> Credentials:
        """Return cached credentials, loading/refreshing as needed."""
        if self._credentials is None or (
            self._credentials.expired and self._credentials.refresh_token
        ):
            self._credentials = self._load_credentials()
        return self._credentials

    # -- service builders -----------------------------------------------------

    def gmail(self):  # noqa: ANN201
        """Build a Gmail API service."""
        return build("gmail", "v1", credentials=self._get_credentials())

    def calendar(self):  # noqa: ANN201
        """Build a Calendar API service."""
        return build("calendar", "v3", credentials=self._get_credentials())
