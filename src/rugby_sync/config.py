"""Runtime configuration for the sync tooling.

`SyncSettings` is a plain Pydantic model; :meth:`SyncSettings.from_env`
overlays ``RUGBY_SYNC_*`` environment variables on the defaults.  The API
key is not part of the settings: it comes from a
:class:`~rugby_sync.utils.credentials.CredentialProvider` handed to
:func:`build_connector`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from rugby_sync.ingest.connectors.api_sports import CDN_HOST, DEFAULT_BASE_URL, MEDIA_HOST, ApiSportsConnector
from rugby_sync.ingest.connectors.base import AuthenticationError
from rugby_sync.utils.credentials import API_KEY_ENV_VAR, CredentialProvider

# Environment variable -> settings field.
_ENV_FIELDS: dict[str, str] = {
    "RUGBY_SYNC_DATA_DIR": "data_dir",
    "RUGBY_SYNC_BASE_URL": "base_url",
    "RUGBY_SYNC_TIMEOUT": "timeout",
    "RUGBY_SYNC_REQUESTS_PER_MINUTE": "requests_per_minute",
    "RUGBY_SYNC_MAX_RETRIES": "max_retries",
}


class SyncSettings(BaseModel):
    """Settings shared by the CLI, the connector and the repository."""

    data_dir: Path = Path("data/")
    base_url: str = DEFAULT_BASE_URL
    media_host: str = MEDIA_HOST
    cdn_host: str = CDN_HOST
    timeout: float = Field(default=30.0, gt=0)
    requests_per_minute: int = Field(default=10, ge=0)
    max_retries: int = Field(default=3, ge=1)

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncSettings:
        """Build settings from ``RUGBY_SYNC_*`` variables; *overrides* win.

        Raises:
            pydantic.ValidationError: A variable holds an invalid value.
        """
        values: dict[str, Any] = {
            field: os.environ[var] for var, field in _ENV_FIELDS.items() if os.environ.get(var)
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def build_connector(settings: SyncSettings, credentials: CredentialProvider) -> ApiSportsConnector:
    """Create an :class:`ApiSportsConnector` from *settings* and a stored API key.

    Raises:
        AuthenticationError: No API key is stored.
    """
    api_key = credentials.get()
    if not api_key:
        msg = f"no API key found. Run 'python sync.py credentials set <key>' or set {API_KEY_ENV_VAR}."
        raise AuthenticationError(msg)
    return ApiSportsConnector(
        api_key,
        base_url=settings.base_url,
        timeout=settings.timeout,
        requests_per_minute=settings.requests_per_minute,
        max_retries=settings.max_retries,
    )
