"""DID resolution: turn a DID into the public key it publishes.

Subjects that are identified by a DID verify signatures by asking a
:class:`DIDResolver` for the key and its algorithm. Two methods are built
in:

- ``did:key`` is self-describing, so it resolves offline.
- ``did:web`` fetches the DID document over HTTPS
  (``https://<host>/.well-known/did.json`` or ``https://<host>/<path>/did.json``).

Example:
    >>> resolver = UniversalResolver()
    >>> key = await resolver.resolve("did:key:z6Mk...")
    >>> key.algorithm
    <SignatureAlgorithm.ED25519: 'EdDSA'>
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from urllib.parse import unquote

import aiohttp

from .config import get_config
from .encoding import (
    MULTICODEC_ED25519_PUB,
    b64url_decode,
    base58_decode,
    ed25519_key_from_did_key,
    multibase_decode,
)
from .errors import SubjectError, SubjectErrorKind

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DID_WEB_PREFIX = "did:web:"
DID_KEY_PREFIX = "did:key:"
WELL_KNOWN_DID_DOCUMENT = "/.well-known/did.json"


class SignatureAlgorithm(str, Enum):
    """Signature algorithms a resolved key can be used with."""

    ED25519 = "EdDSA"


@dataclass(frozen=True)
class ResolvedKey:
    """A public key published by a DID, with the algorithm it verifies."""

    did: str
    public_key: bytes
    algorithm: SignatureAlgorithm
    verification_method: str | None = None


@runtime_checkable
class DIDResolver(Protocol):
    """Resolves a DID (optionally with a ``#fragment``) to a key."""

    async def resolve(self, did: str) -> ResolvedKey: ...


def _resolution_error(did: str, message: str) -> SubjectError:
    return SubjectError(message, kind=SubjectErrorKind.RESOLUTION, subject=did)


# =============================================================================
# DID:KEY
# =============================================================================


class KeyResolver:
    """Resolver for Ed25519 ``did:key`` identifiers (no network)."""

    async def resolve(self, did: str) -> ResolvedKey:
        try:
            public_key = ed25519_key_from_did_key(did)
        except ValueError as e:
            raise _resolution_error(did, f"Cannot resolve {did}: {e}") from e

        bare = did.split("#", 1)[0]
        fragment = bare[len(DID_KEY_PREFIX):]
        return ResolvedKey(
            did=bare,
            public_key=public_key,
            algorithm=SignatureAlgorithm.ED25519,
            verification_method=f"{bare}#{fragment}",
        )


# =============================================================================
# DID:WEB
# =============================================================================


def did_web_document_url(did: str) -> str:
    """Map a did:web identifier to the URL of its DID document."""
    bare = did.split("#", 1)[0]
    if not bare.startswith(DID_WEB_PREFIX):
        raise _resolution_error(did, f"Not a did:web identifier: {did}")

    parts = bare[len(DID_WEB_PREFIX):].split(":")
    host = unquote(parts[0])
    if not host:
        raise _resolution_error(did, f"did:web identifier has no host: {did}")

    if len(parts) == 1:
        return f"https://{host}{WELL_KNOWN_DID_DOCUMENT}"
    path = "/".join(unquote(p) for p in parts[1:])
    return f"https://{host}/{path}/did.json"


def _key_from_method(method: dict[str, Any]) -> bytes | None:
    jwk = method.get("publicKeyJwk")
    if isinstance(jwk, dict):
        if jwk.get("kty") == "OKP" and jwk.get("crv") == "Ed25519" and "x" in jwk:
            return b64url_decode(jwk["x"])
        return None

    multibase = method.get("publicKeyMultibase")
    if isinstance(multibase, str):
        decoded = multibase_decode(multibase)
        if decoded.startswith(MULTICODEC_ED25519_PUB) and len(decoded) == 34:
            return decoded[2:]
        return decoded if len(decoded) == 32 else None

    b58 = method.get("publicKeyBase58")
    if isinstance(b58, str):
        decoded = base58_decode(b58)
        return decoded if len(decoded) == 32 else None

    return None


def select_ed25519_key(document: dict[str, Any], did: str) -> tuple[bytes, str]:
    """Pick the Ed25519 key named by ``did``'s fragment from a DID document.

    Without a fragment the first usable verification method wins.

    Returns:
        Tuple of (raw public key, verification method id)
    """
    bare, _, fragment = did.partition("#")
    methods = document.get("verificationMethod") or []

    for method in methods:
        if not isinstance(method, dict):
            continue
        method_id = str(method.get("id", ""))
        if fragment and method_id not in (f"{bare}#{fragment}", f"#{fragment}"):
            continue
        try:
            key = _key_from_method(method)
        except ValueError as e:
            raise _resolution_error(did, f"Malformed key in DID document: {e}") from e
        if key is not None:
            return key, method_id

    raise _resolution_error(did, f"No Ed25519 verification method found for {did}")


class WebResolver:
    """Resolver for ``did:web`` identifiers."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
    ):
        self._session = session
        self.timeout = timeout if timeout is not None else get_config().did_web_timeout_seconds

    async def fetch_document(self, url: str) -> dict[str, Any]:
        """Fetch and decode a DID document."""
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        if self._session is not None:
            async with self._session.get(url, timeout=client_timeout) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

        async with aiohttp.ClientSession() as session:
            async with session.get(url, timeout=client_timeout) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

    async def resolve(self, did: str) -> ResolvedKey:
        url = did_web_document_url(did)
        try:
            document = await self.fetch_document(url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Failed to fetch DID document for {did} from {url}: {e}")
            raise _resolution_error(did, f"Could not fetch DID document for {did}: {e}") from e

        if not isinstance(document, dict):
            raise _resolution_error(did, f"DID document for {did} is not a JSON object")

        public_key, method_id = select_ed25519_key(document, did)
        return ResolvedKey(
            did=did.split("#", 1)[0],
            public_key=public_key,
            algorithm=SignatureAlgorithm.ED25519,
            verification_method=method_id,
        )


# =============================================================================
# DISPATCH
# =============================================================================


class UniversalResolver:
    """Dispatches resolution by DID method."""

    def __init__(self, resolvers: dict[str, DIDResolver] | None = None):
        if resolvers is None:
            resolvers = {"key": KeyResolver(), "web": WebResolver()}
        self.resolvers: dict[str, DIDResolver] = resolvers

    async def resolve(self, did: str) -> ResolvedKey:
        parts = did.split(":", 2)
        if len(parts) < 3 or parts[0] != "did":
            raise SubjectError(f"Malformed DID: {did}", kind=SubjectErrorKind.MALFORMED, subject=did)

        resolver = self.resolvers.get(parts[1])
        if resolver is None:
            raise _resolution_error(did, f"Unsupported DID method: {parts[1]}")
        return await resolver.resolve(did)


_default_resolver: UniversalResolver | None = None


def get_default_resolver() -> UniversalResolver:
    """Process-wide resolver used when a subject is given none."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = UniversalResolver()
    return _default_resolver
