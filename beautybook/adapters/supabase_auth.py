"""
Supabase authentication (email + password) with a cached refresh token.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import requests
from keyring.errors import KeyringError
from rich.console import Console

from ..config import SupabaseConfig
from ..domain.exceptions import AuthenticationError


logger = logging.getLogger(__name__)

console = Console()


KEYRING_SERVICE_NAME = "beautybook"


class SupabaseAuthenticator:
    """
    Signs a professional in against Supabase Auth and keeps the session.

    The session (access token, refresh token and user id) is cached in the
    system keyring, falling back to a plaintext file with 0600 permissions
    when no keyring backend works. A cached session is refreshed on demand,
    so the password is only needed once.
    """

    def __init__(self, config: SupabaseConfig, cache_file: Path | None = None):
        """
        Initialize the authenticator.

        Args:
            config: URL, anon key and timeout of the Supabase project
            cache_file: Optional path to the session cache file
        """
        self.auth_url = f"{config.url}/auth/v1"
        self.anon_key = config.anon_key
        self.timeout = config.timeout_seconds

        self.cache_file = cache_file or Path.home() / ".beautybook_session.json"
        self._key_identifier = config.url
        self._keyring_supported = True
        self._cache_backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None
        self.session_data: Dict[str, Any] = self._load_cache()

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self._cache_backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when the cache falls back to plaintext storage."""
        return self._insecure_storage_warning

    def current_user_id(self) -> str | None:
        """Id of the signed-in user, or None when there is no session."""
        user = self.session_data.get("user") or {}
        return user.get("id")

    def is_logged_in(self) -> bool:
        return self.current_user_id() is not None

    def sign_in(self, email: str, password: str) -> str:
        """
        Sign in with email and password.

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        data = self._token_request("password", {"email": email, "password": password})
        console.print("[bold green]✓ Login realizado com sucesso![/bold green]")
        return data["access_token"]

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token by refreshing the cached session.

        Raises:
            AuthenticationError: If there is no session or the refresh fails
        """
        refresh_token = self.session_data.get("refresh_token")
        if not refresh_token:
            raise AuthenticationError("Nenhuma sessão ativa. Execute 'beautybook login' primeiro.")

        if not force_refresh and self.session_data.get("access_token_fresh"):
            return self.session_data["access_token"]

        data = self._token_request("refresh_token", {"refresh_token": refresh_token})
        return data["access_token"]

    def _token_request(self, grant_type: str, payload: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.auth_url}/token",
                params={"grant_type": grant_type},
                headers={"apikey": self.anon_key, "Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Authentication failed: {exc}") from exc

        if "access_token" not in data:
            error = data.get("error_description") or data.get("msg") or "Unknown error"
            raise AuthenticationError(f"Authentication failed: {error}")

        self.session_data = {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "user": data.get("user") or {},
            "access_token_fresh": True,
        }
        self._save_cache()
        return data

    def _load_cache(self) -> Dict[str, Any]:
        """Load the cached session from keyring or disk if it exists."""
        serialized = self._load_cache_from_keyring()
        if serialized is None:
            serialized = self._load_cache_from_file()

        if serialized:
            try:
                data = json.loads(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize session cache: %s", exc)
            else:
                # Cached access tokens may have expired; refresh before use.
                data["access_token_fresh"] = False
                return data

        return {}

    def _load_cache_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_cache_from_file(self) -> Optional[str]:
        if self.cache_file.exists():
            try:
                with open(self.cache_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load session cache file %s: %s", self.cache_file, exc)
        return None

    def _save_cache(self) -> None:
        """Save the session to the configured backend."""
        serialized = json.dumps(
            {key: value for key, value in self.session_data.items() if key != "access_token_fresh"}
        )

        if self._keyring_supported and self._save_cache_to_keyring(serialized):
            return

        self._save_cache_to_file(serialized)

    def _save_cache_to_keyring(self, serialized: str) -> bool:
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self._key_identifier, serialized)
            self._cache_backend = "keyring"
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_cache_to_file(self, serialized: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save session cache to %s: %s", self.cache_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext cache.",
                reason,
            )
        self._keyring_supported = False
        self._cache_backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext cache at {self.cache_file}."
            )

    def clear_cache(self) -> None:
        """Forget the cached session (sign out locally)."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove credentials from keyring: %s", exc)
        self.session_data = {}
        console.print("[green]Sessão encerrada. Faça login novamente para acessar o painel.[/green]")
