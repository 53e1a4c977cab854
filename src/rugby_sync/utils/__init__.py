"""Shared utilities module."""

from __future__ import annotations

from rugby_sync.utils.credentials import (
    ChainedCredentialProvider,
    CredentialProvider,
    EnvCredentialProvider,
    FileCredentialProvider,
    default_credential_provider,
)
from rugby_sync.utils.logger import (
    DEBUG,
    NORMAL,
    QUIET,
    VERBOSE,
    configure_logging,
    get_logger,
)

__all__ = [
    "DEBUG",
    "NORMAL",
    "QUIET",
    "VERBOSE",
    "ChainedCredentialProvider",
    "CredentialProvider",
    "EnvCredentialProvider",
    "FileCredentialProvider",
    "configure_logging",
    "default_credential_provider",
    "get_logger",
]
