"""
draftgraph Secret Resolution — ``resolve_secret(key) -> bytes | None``.

The core never talks to a credential backend directly. It asks a resolver
for raw key bytes and treats ``None`` as "no key configured".

Provides:
    - SecretResolver: protocol consumed by the chunked asset store
    - EnvSecretResolver: base64-encoded values from environment variables
    - MappingSecretResolver: in-memory values (tests, dependency injection)
    - CompositeSecretResolver: first resolver that returns a value wins
    - CredentialStoreResolver: looks a key up in a host credential store
      under its configured target name (e.g. git-cms-prod-enc-key)

OS credential stores (Keychain, secret-tool, Windows Credential Manager)
plug in by implementing CredentialStore.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Dict, List, Mapping, Optional, Protocol, runtime_checkable

from draftgraph.engine.errors import CmsValidationError

logger = logging.getLogger("draftgraph.engine.secrets")


@runtime_checkable
class SecretResolver(Protocol):
    """Protocol for resolving a secret name to raw bytes."""

    def resolve_secret(self, key: str) -> Optional[bytes]:
        ...


def decode_secret(value: str, key: str) -> bytes:
    """Decode a base64 (standard or URL-safe) secret value."""
    raw = value.strip()
    padded = raw + "=" * (-len(raw) % 4)
    try:
        if "-" in raw or "_" in raw:
            return base64.urlsafe_b64decode(padded)
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        raise CmsValidationError(
            f"Secret '{key}' is not valid base64",
            code="encryption_key_invalid",
            field=key,
        )


class EnvSecretResolver:
    """
    Resolve secrets from environment variables.

    Values are base64-encoded key material, e.g.
    ``CHUNK_ENC_KEY=$(head -c 32 /dev/urandom | base64)``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    def resolve_secret(self, key: str) -> Optional[bytes]:
        environ = self._environ if self._environ is not None else os.environ
        value = environ.get(key)
        if not value:
            return None
        return decode_secret(value, key)


class MappingSecretResolver:
    """Resolve secrets from an in-memory mapping of raw bytes."""

    def __init__(self, secrets: Optional[Dict[str, bytes]] = None):
        self._secrets: Dict[str, bytes] = dict(secrets or {})

    def set(self, key: str, value: bytes) -> None:
        self._secrets[key] = value

    def resolve_secret(self, key: str) -> Optional[bytes]:
        return self._secrets.get(key)


class CompositeSecretResolver:
    """
    Combine multiple resolvers.

    Tries each resolver in order until one returns a value.
    """

    def __init__(self, resolvers: Optional[List[SecretResolver]] = None):
        self.resolvers = resolvers or [EnvSecretResolver()]

    def resolve_secret(self, key: str) -> Optional[bytes]:
        for resolver in self.resolvers:
            value = resolver.resolve_secret(key)
            if value is not None:
                logger.debug(f"Secret '{key}' resolved by {type(resolver).__name__}")
                return value
        return None


@runtime_checkable
class CredentialStore(Protocol):
    """Host credential backend: returns the stored (base64) value for a target."""

    def lookup(self, target: str) -> Optional[str]:
        ...


class CredentialStoreResolver:
    """
    Resolve secrets through a host credential store.

    ``targets`` maps secret names to credential-store targets; names without
    a target are not looked up.
    """

    def __init__(self, store: CredentialStore, targets: Optional[Mapping[str, str]] = None):
        self._store = store
        self._targets: Dict[str, str] = dict(targets or {})

    def resolve_secret(self, key: str) -> Optional[bytes]:
        target = self._targets.get(key)
        if target is None:
            return None
        value = self._store.lookup(target)
        if not value:
            return None
        return decode_secret(value, key)


def build_secret_resolver(
    extra: Optional[List[SecretResolver]] = None,
    credential_store: Optional[CredentialStore] = None,
    targets: Optional[Mapping[str, str]] = None,
) -> SecretResolver:
    """Environment first, then the credential store, then any extra backends."""
    resolvers: List[SecretResolver] = [EnvSecretResolver()]
    if credential_store is not None:
        resolvers.append(CredentialStoreResolver(credential_store, targets))
    resolvers.extend(extra or [])
    return CompositeSecretResolver(resolvers)
