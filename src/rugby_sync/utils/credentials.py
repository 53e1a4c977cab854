"""API key storage behind a small ``CredentialProvider`` interface.

Providers are passed explicitly to whatever builds a connector; nothing
here touches global state except :class:`EnvCredentialProvider`, whose
scope is the current process environment.

``default_credential_provider()`` looks at the ``RUGBY_API_KEY``
environment variable first and falls back to a per-user key file;
``set``/``clear`` act on the key file so a stored key survives the process.
"""

from __future__ import annotations

import abc
import os
from collections.abc import Sequence
from pathlib import Path

API_KEY_ENV_VAR = "RUGBY_API_KEY"


def _default_key_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "rugby_sync" / "api_key"


def _validate(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("API key cannot be empty")
    return value.strip()


class CredentialProvider(abc.ABC):
    """Read, store and forget the upstream API key."""

    name: str = "credentials"

    @abc.abstractmethod
    def get(self) -> str | None:
        """Return the stored key, or ``None`` when no non-blank key is stored."""

    @abc.abstractmethod
    def set(self, value: str) -> None:
        """Store *value* as the key.

        Raises:
            ValueError: *value* is empty or blank.
        """

    @abc.abstractmethod
    def clear(self) -> None:
        """Forget the stored key (no-op when none is stored)."""


class EnvCredentialProvider(CredentialProvider):
    """Key held in an environment variable of the current process."""

    name = "environment variable"

    def __init__(self, variable: str = API_KEY_ENV_VAR) -> None:
        self._variable = variable

    def get(self) -> str | None:
        value = os.environ.get(self._variable, "").strip()
        return value or None

    def set(self, value: str) -> None:
        os.environ[self._variable] = _validate(value)

    def clear(self) -> None:
        os.environ.pop(self._variable, None)


class FileCredentialProvider(CredentialProvider):
    """Key held in a user-only (mode 0600) file."""

    name = "key file"

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _default_key_path()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str | None:
        try:
            value = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return value or None

    def set(self, value: str) -> None:
        key = _validate(value)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(key)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


class ChainedCredentialProvider(CredentialProvider):
    """Read from several providers in order; write to the primary one.

    Args:
        primary: Provider that ``set``/``clear`` act on.
        fallbacks: Providers consulted, in order, before *primary* on ``get``.
    """

    name = "chained"

    def __init__(self, primary: CredentialProvider, fallbacks: Sequence[CredentialProvider] = ()) -> None:
        self._primary = primary
        self._fallbacks = list(fallbacks)

    @property
    def providers(self) -> list[CredentialProvider]:
        return [*self._fallbacks, self._primary]

    def get(self) -> str | None:
        for provider in self.providers:
            value = provider.get()
            if value:
                return value
        return None

    def set(self, value: str) -> None:
        self._primary.set(value)

    def clear(self) -> None:
        self._primary.clear()

    def sources(self) -> list[str]:
        """Names of the providers that currently hold a key."""
        return [provider.name for provider in self.providers if provider.get()]


def default_credential_provider() -> ChainedCredentialProvider:
    """Environment variable first, then the per-user key file."""
    return ChainedCredentialProvider(FileCredentialProvider(), [EnvCredentialProvider()])
