"""Infra layer utilities (storage, sheets, properties, cache, credentials)."""

from .cache import CacheBackend, InMemoryCache, SQLiteCache
from .credentials import resolve_credential, validate_credential
from .properties import PropertyStore
from .sheets import SheetRow, SheetStore
from .storage import SQLiteManager
from .workbook import Workbook

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "PropertyStore",
    "SQLiteCache",
    "SQLiteManager",
    "SheetRow",
    "SheetStore",
    "Workbook",
    "resolve_credential",
    "validate_credential",
]
