"""Registry ("Orbit") connection settings.

Settings saved from the admin UI live in a small JSON file; the API key is
encrypted at rest with AES-256-GCM (key = SHA-256 of ORBIT_ENCRYPTION_KEY,
random 96-bit nonce per write).  When no file exists the ORBIT_* environment
variables are used instead.

File layout:

  {
    "baseUrl": "https://orbit.example.org",
    "lobId": "lob-123",
    "apiKeyEncrypted": "<base64(nonce || ciphertext)>",
    "updatedAt": "2026-01-01T00:00:00+00:00"
  }

The API key never leaves this module except in the outgoing request headers
built by OrbitRegistryClient.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

import httpx
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.config import SETTINGS
from app.services.errors import ValidationError

logger = logging.getLogger(__name__)

SettingsSource = Literal["file", "env", "none"]

_NONCE_BYTES = 12
_HEALTH_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class OrbitSettings:
    base_url: str | None = None
    lob_id: str | None = None
    api_key: str | None = None
    source: SettingsSource = "none"

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.lob_id and self.api_key)

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-lob-id": self.lob_id or "",
            "x-api-key": self.api_key or "",
        }


@dataclass(frozen=True, slots=True)
class ConnectionTestResult:
    success: bool
    message: str
    status_code: int | None = None


class OrbitSettingsStore:
    def __init__(
        self,
        path: str | Path,
        encryption_key: str,
        *,
        fallback: OrbitSettings | None = None,
    ) -> None:
        self._path = Path(path)
        self._aead = AESGCM(hashlib.sha256(encryption_key.encode()).digest())
        self._fallback = fallback or OrbitSettings()
        self._cached: tuple[tuple[int, int] | None, OrbitSettings] | None = None

    # -- encryption --------------------------------------------------------

    def _encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(_NONCE_BYTES)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode(), None)
        return base64.b64encode(nonce + ciphertext).decode()

    def _decrypt(self, token: str) -> str | None:
        try:
            raw = base64.b64decode(token)
            plaintext = self._aead.decrypt(raw[:_NONCE_BYTES], raw[_NONCE_BYTES:], None)
        except (InvalidTag, ValueError):
            logger.warning("Stored registry API key could not be decrypted")
            return None
        return plaintext.decode()

    # -- file ----------------------------------------------------------------

    def _read_file(self) -> dict[str, Any] | None:
        if not self._path.exists():
            return None
        try:
            doc = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("Could not read registry settings file %s", self._path)
            return None
        return doc if isinstance(doc, dict) else None

    def _signature(self) -> tuple[int, int] | None:
        try:
            st = self._path.stat()
        except OSError:
            return None
        return st.st_mtime_ns, st.st_size

    def load(self) -> OrbitSettings:
        """Effective settings: the settings file first, then the environment.

        The file is read and decrypted again only when its mtime or size
        changes.
        """
        signature = self._signature()
        if self._cached is not None and self._cached[0] == signature:
            return self._cached[1]
        current = self._read_settings()
        self._cached = (signature, current)
        return current

    def _read_settings(self) -> OrbitSettings:
        doc = self._read_file()
        if doc is not None and doc.get("baseUrl"):
            encrypted = doc.get("apiKeyEncrypted")
            return OrbitSettings(
                base_url=str(doc["baseUrl"]).rstrip("/"),
                lob_id=doc.get("lobId") or None,
                api_key=self._decrypt(encrypted) if encrypted else None,
                source="file",
            )
        if self._fallback.base_url:
            return OrbitSettings(
                base_url=self._fallback.base_url,
                lob_id=self._fallback.lob_id,
                api_key=self._fallback.api_key,
                source="env",
            )
        return OrbitSettings()

    def save(
        self, *, base_url: str, lob_id: str, api_key: str | None = None
    ) -> OrbitSettings:
        """Write settings to the file.  A missing api_key keeps the stored one."""
        base_url = (base_url or "").strip().rstrip("/")
        lob_id = (lob_id or "").strip()
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"base URL must be an http(s) URL (got {base_url!r})")
        if not lob_id:
            raise ValidationError("LOB id is required")

        existing = self._read_file() or {}
        if api_key:
            encrypted = self._encrypt(api_key.strip())
        else:
            encrypted = existing.get("apiKeyEncrypted")

        doc = {
            "baseUrl": base_url,
            "lobId": lob_id,
            "apiKeyEncrypted": encrypted,
            "updatedAt": datetime.now(UTC).isoformat(),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
        self._cached = None
        logger.info("Registry settings saved base_url=%s lob_id=%s", base_url, lob_id)
        return self.load()

    def clear(self) -> None:
        """Remove file-stored settings; environment settings apply again."""
        if self._path.exists():
            self._path.unlink()
            self._cached = None
            logger.info("Registry settings file removed")

    def status(self) -> dict[str, Any]:
        current = self.load()
        return {
            "configured": current.is_configured,
            "source": current.source,
            "baseUrl": current.base_url,
            "lobId": current.lob_id,
            "hasApiKey": bool(current.api_key),
        }

    # -- connectivity ----------------------------------------------------

    async def test_connection(
        self, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> ConnectionTestResult:
        current = self.load()
        if not current.is_configured:
            return ConnectionTestResult(False, "Registry is not configured")

        url = f"{current.base_url}/api/health"
        try:
            async with httpx.AsyncClient(
                timeout=_HEALTH_TIMEOUT_SECONDS, transport=transport
            ) as client:
                response = await client.get(url, headers=current.headers())
        except httpx.TimeoutException:
            return ConnectionTestResult(False, "Connection timed out")
        except httpx.HTTPError as e:
            logger.warning("Registry connection test failed: %s", e)
            return ConnectionTestResult(False, f"Connection failed: {e}")

        code = response.status_code
        if code in (401, 403):
            return ConnectionTestResult(False, "Authentication failed", code)
        if code == 404:
            # Reachable and authenticated, the deployment just has no health route.
            return ConnectionTestResult(True, "Connected (no health endpoint)", code)
        if response.is_success:
            return ConnectionTestResult(True, "Connected", code)
        return ConnectionTestResult(False, f"Registry returned HTTP {code}", code)


orbit_settings_store = OrbitSettingsStore(
    SETTINGS.orbit_settings_path,
    SETTINGS.orbit_encryption_key,
    fallback=OrbitSettings(
        base_url=SETTINGS.orbit_base_url,
        lob_id=SETTINGS.orbit_lob_id,
        api_key=SETTINGS.orbit_api_key,
        source="env",
    ),
)
