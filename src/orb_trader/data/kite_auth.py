"""Kite Connect login: login URL, request-token exchange, daily token reuse."""
from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path

from kiteconnect import KiteConnect

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = "data/.kite_access_token"


class KiteSession:
    """Owns one KiteConnect client and its access token.

    Kite access tokens expire every trading day, so a persisted token is only
    reused when it was issued today.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        token_file: str | Path = DEFAULT_TOKEN_FILE,
    ) -> None:
        self._api_secret = api_secret
        self._token_file = Path(token_file)
        self._kite = KiteConnect(api_key=api_key)
        self._access_token: str | None = None
        self._restore_token()

    @property
    def api_key(self) -> str:
        return self._kite.api_key

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    def get_login_url(self) -> str:
        return self._kite.login_url()

    def generate_session(self, request_token: str) -> dict:
        """Exchange *request_token* for today's access token and persist it."""
        session_data: dict = self._kite.generate_session(
            request_token, api_secret=self._api_secret
        )
        self._access_token = session_data["access_token"]
        self._kite.set_access_token(self._access_token)
        self._persist_token()
        logger.info(f"Kite session created for user {session_data.get('user_id', '?')}")
        return session_data

    def get_kite(self) -> KiteConnect:
        """Authenticated client. Raises ``RuntimeError`` before login."""
        if not self.is_authenticated:
            raise RuntimeError(
                "Not authenticated. Call generate_session() with a valid request_token first."
            )
        return self._kite

    def _persist_token(self) -> None:
        self._token_file.parent.mkdir(parents=True, exist_ok=True)
        self._token_file.write_text(json.dumps({
            "access_token": self._access_token,
            "date": date.today().isoformat(),
        }))

    def _restore_token(self) -> None:
        if not self._token_file.exists():
            return
        try:
            data = json.loads(self._token_file.read_text())
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unreadable token file {self._token_file}")
            return
        if data.get("date") != date.today().isoformat():
            logger.info("Saved Kite token is from a previous day, login required")
            return
        token = data.get("access_token")
        if token:
            self._access_token = token
            self._kite.set_access_token(token)
            logger.info("Reusing today's Kite access token")
