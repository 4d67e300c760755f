from __future__ import annotations

import pytest

from conftest import API_KEY
from hoya_harvest.errors import CredentialError
from hoya_harvest.infra.credentials import CREDENTIAL_PROPERTY, resolve_credential, validate_credential


def test_environment_wins_and_is_cached(workbook) -> None:
    env_key = "Z" * 40
    credential = resolve_credential(API_KEY, workbook.properties, environ={"SERPAPI_API_KEY": env_key})
    assert credential == env_key
    assert workbook.properties.get(CREDENTIAL_PROPERTY) == env_key


def test_cached_property_is_last_resort(workbook) -> None:
    workbook.properties.set(CREDENTIAL_PROPERTY, API_KEY)
    assert resolve_credential(None, workbook.properties, environ={}) == API_KEY


def test_missing_credential_raises(workbook) -> None:
    with pytest.raises(CredentialError):
        resolve_credential(None, workbook.properties, environ={})


def test_malformed_credential_is_not_cached(workbook) -> None:
    with pytest.raises(CredentialError):
        resolve_credential("not-a-key", workbook.properties, environ={})
    assert workbook.properties.get(CREDENTIAL_PROPERTY) is None


def test_validate_strips_whitespace() -> None:
    assert validate_credential(f"  {API_KEY}\n") == API_KEY
