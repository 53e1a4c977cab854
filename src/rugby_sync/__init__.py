"""Incremental local cache of api-sports.io rugby data."""

from __future__ import annotations

__version__ = "0.1.0"
