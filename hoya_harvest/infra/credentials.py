"""API credential lookup and validation."""

from __future__ import annotations

import os
import re
from typing import Mapping

from ..errors import CredentialError
from .properties import PropertyStore

CREDENTIAL_ENV_VAR = "SERPAPI_API_KEY"
CREDENTIAL_PROPERTY = "credential.api_key"
CREDENTIAL_PATTERN = re.compile(r"^[A-Za-z0-9]{32,}$")


def validate_credential(value: str | None) -> str:
    candidate = (value or "").strip()
    if not candidate:
        raise CredentialError("API credential is missing")
    if not CREDENTIAL_PATTERN.match(candidate):
        raise CredentialError("API credential does not look like a valid key")
    return candidate


def resolve_credential(
    configured: str | None,
    properties: PropertyStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Return the first available credential: environment, config, then cached property.

    A credential that validates is cached in the property store so later
    invocations (timer re-triggers) can run without the environment.
    """

    environ = os.environ if environ is None else environ
    candidates = [environ.get(CREDENTIAL_ENV_VAR), configured]
    if properties is not None:
        candidates.append(properties.get(CREDENTIAL_PROPERTY))
    present = [value for value in candidates if value and value.strip()]
    if not present:
        raise CredentialError(
            f"No API credential found; set {CREDENTIAL_ENV_VAR} or api_key in the config"
        )
    credential = validate_credential(present[0])
    if properties is not None and properties.get(CREDENTIAL_PROPERTY) != credential:
        properties.set(CREDENTIAL_PROPERTY, credential)
    return credential


__all__ = [
    "CREDENTIAL_ENV_VAR",
    "CREDENTIAL_PATTERN",
    "CREDENTIAL_PROPERTY",
    "resolve_credential",
    "validate_credential",
]
