"""Subjects: the identities a claim is made about.

A subject knows its DID, the human-facing form used inside statement text,
and how to check a signature made by that identity. Only signature checking
is asynchronous (DID-based subjects may have to resolve a key over the
network); ``did()`` and ``display_id()`` are pure.

Variants:
- :class:`DidSubject` -- any DID whose key a resolver can produce
- :class:`DidWebSubject` -- an Ed25519 key named inside a did:web / did:key document
- :class:`Eip155Subject` -- an Ethereum address (EIP-191 personal_sign)
- :class:`SolanaSubject` -- a Solana address (raw Ed25519)
- :class:`TezosSubject` -- a Tezos address (verification not implemented)
- :class:`HandleSubject` -- a social handle, display only
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from eth_account import Account
from eth_account.messages import encode_defunct

from .encoding import base58_decode, decode_hex
from .errors import SubjectError, SubjectErrorKind
from .resolver import DIDResolver, SignatureAlgorithm, get_default_resolver

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# did:pkh network reference for Solana mainnet
SOLANA_NETWORK = "4sGjMW1sUnHzSxGspuhpqLDx6wiyjNtZ"

TITLE_WEB_KEY = "Ed25519 Web Key"
TITLE_ETHEREUM = "Ethereum Address"
TITLE_SOLANA = "Solana Address"
TITLE_TEZOS = "Tezos Address"
TITLE_DID = "DID ID"


def title_for_did(did: str) -> str:
    """Human-readable title used in statement text for a DID."""
    if did.startswith("did:web"):
        return TITLE_WEB_KEY
    if did.startswith("did:pkh:eip155"):
        return TITLE_ETHEREUM
    if did.startswith("did:pkh:solana"):
        return TITLE_SOLANA
    if did.startswith("did:pkh:tz"):
        return TITLE_TEZOS
    return TITLE_DID


def verify_ed25519(public_key: bytes, statement: str, signature: str, subject: str) -> None:
    """Check a hex Ed25519 signature over the UTF-8 statement bytes.

    Raises:
        SubjectError: With kind ``validation`` on any mismatch.
    """
    try:
        sig = decode_hex(signature, expected_length=64)
    except ValueError as e:
        raise SubjectError(f"Signature is not 64 hex bytes: {e}", subject=subject) from e

    try:
        key = Ed25519PublicKey.from_public_bytes(public_key)
    except ValueError as e:
        raise SubjectError(f"Could not build public key: {e}", subject=subject) from e

    try:
        key.verify(sig, statement.encode("utf-8"))
    except InvalidSignature as e:
        raise SubjectError("Signature does not match statement", subject=subject) from e


# =============================================================================
# BASE
# =============================================================================


class Subject(ABC):
    """An identity that signatures can be checked against."""

    @abstractmethod
    def did(self) -> str:
        """The subject's DID."""

    @abstractmethod
    def display_id(self) -> str:
        """The form of the identifier embedded in statement text."""

    def statement_title(self) -> str:
        return title_for_did(self.did())

    def verification_method(self) -> str:
        return f"{self.did()}#controller"

    @abstractmethod
    async def valid_signature(self, statement: str, signature: str) -> None:
        """Check ``signature`` over ``statement``.

        Raises:
            SubjectError: If the signature does not verify, the key cannot be
                resolved, or the backend is not implemented.
        """

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Wire form of the subject."""


# =============================================================================
# DID SUBJECTS
# =============================================================================


@dataclass
class DidSubject(Subject):
    """A subject identified by a DID whose key is found through a resolver."""

    did_id: str
    resolver: DIDResolver | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.did_id.startswith("did:") or self.did_id.count(":") < 2:
            raise SubjectError(
                f"Malformed DID: {self.did_id}",
                kind=SubjectErrorKind.MALFORMED,
                subject=self.did_id,
            )

    def did(self) -> str:
        return self.did_id

    def display_id(self) -> str:
        return self.did_id

    def verification_method(self) -> str:
        if self.did_id.startswith("did:key:"):
            return f"{self.did_id}#{self.did_id[len('did:key:'):]}"
        return super().verification_method()

    async def valid_signature(self, statement: str, signature: str) -> None:
        resolver = self.resolver or get_default_resolver()
        resolved = await resolver.resolve(self.did_id)
        if resolved.algorithm != SignatureAlgorithm.ED25519:
            raise SubjectError(
                f"Unsupported signature algorithm: {resolved.algorithm}",
                kind=SubjectErrorKind.UNIMPLEMENTED,
                subject=self.did_id,
            )
        verify_ed25519(resolved.public_key, statement, signature, self.did_id)

    def to_dict(self) -> dict[str, Any]:
        return {"did": self.did_id}


@dataclass
class DidWebSubject(Subject):
    """An Ed25519 key published under a did:web (or did:key) identifier."""

    did_id: str
    key_name: str = "controller"
    resolver: DIDResolver | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.did_id.startswith(("did:web:", "did:key:")):
            raise SubjectError(
                f"Only did:web and did:key Ed25519 keys are supported, got: {self.did_id}",
                kind=SubjectErrorKind.MALFORMED,
                subject=self.did_id,
            )

    def did(self) -> str:
        return self.did_id

    def display_id(self) -> str:
        return self.did_id.removeprefix("did:web:")

    def verification_method(self) -> str:
        return f"{self.did_id}#{self.key_name}"

    async def valid_signature(self, statement: str, signature: str) -> None:
        resolver = self.resolver or get_default_resolver()
        resolved = await resolver.resolve(self.verification_method())
        verify_ed25519(resolved.public_key, statement, signature, self.did_id)

    def to_dict(self) -> dict[str, Any]:
        return {"web": {"ed25519": {"did": self.did_id, "key_name": self.key_name}}}


# =============================================================================
# CHAIN ADDRESS SUBJECTS
# =============================================================================


@dataclass
class Eip155Subject(Subject):
    """An Ethereum address; signatures are EIP-191 ``personal_sign``."""

    address: str
    chain_id: str = "1"

    def did(self) -> str:
        return f"did:pkh:eip155:{self.chain_id}:{self.address}"

    def display_id(self) -> str:
        return self.address

    def verification_method(self) -> str:
        return f"{self.did()}#blockchainAccountId"

    async def valid_signature(self, statement: str, signature: str) -> None:
        try:
            sig = decode_hex(signature, expected_length=65)
        except ValueError as e:
            raise SubjectError(
                f"Could not decode signature: {e}", subject=self.address
            ) from e

        try:
            recovered = Account.recover_message(encode_defunct(text=statement), signature=sig)
        except Exception as e:  # Intentionally broad: key recovery raises backend-specific errors
            raise SubjectError(f"Could not recover signer: {e}", subject=self.address) from e

        if recovered.lower() != self.address.lower():
            logger.debug(f"Recovered {recovered}, expected {self.address}")
            raise SubjectError("Signature not signed by subject address", subject=self.address)

    def to_dict(self) -> dict[str, Any]:
        return {"pkh": {"eip155": {"address": self.address, "chain_id": self.chain_id}}}


@dataclass
class SolanaSubject(Subject):
    """A Solana address; the base58 address is the Ed25519 public key."""

    address: str

    def did(self) -> str:
        return f"did:pkh:solana:{SOLANA_NETWORK}:{self.address}"

    def display_id(self) -> str:
        return self.address

    async def valid_signature(self, statement: str, signature: str) -> None:
        try:
            public_key = base58_decode(self.address)
        except ValueError as e:
            raise SubjectError(
                f"Failed to decode address from base58: {e}",
                kind=SubjectErrorKind.MALFORMED,
                subject=self.address,
            ) from e
        verify_ed25519(public_key, statement, signature, self.address)

    def to_dict(self) -> dict[str, Any]:
        return {"pkh": {"solana": {"address": self.address}}}


@dataclass
class TezosSubject(Subject):
    """A Tezos address. Signature checks are not supported yet."""

    address: str

    def did(self) -> str:
        return f"did:pkh:tz:{self.address}"

    def display_id(self) -> str:
        return self.address

    def verification_method(self) -> str:
        return f"{self.did()}#TezosMethod2021"

    async def valid_signature(self, statement: str, signature: str) -> None:
        raise SubjectError(
            "Tezos signature verification is not implemented",
            kind=SubjectErrorKind.UNIMPLEMENTED,
            subject=self.address,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"pkh": {"tz": {"address": self.address}}}


# =============================================================================
# HANDLE SUBJECTS
# =============================================================================


@dataclass
class HandleSubject(Subject):
    """A social handle shown in statements; it has no DID and no key."""

    platform: str
    handle: str

    def did(self) -> str:
        raise SubjectError(
            f"{self.platform} handles have no DID",
            kind=SubjectErrorKind.SUBJECT_TYPE,
            subject=self.handle,
        )

    def display_id(self) -> str:
        return f"@{self.handle.lstrip('@')}"

    def statement_title(self) -> str:
        return f"{self.platform} handle"

    def verification_method(self) -> str:
        return self.did()

    async def valid_signature(self, statement: str, signature: str) -> None:
        raise SubjectError(
            f"{self.platform} handles cannot verify signatures",
            kind=SubjectErrorKind.SUBJECT_TYPE,
            subject=self.handle,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"handle": {"platform": self.platform, "handle": self.handle}}


# =============================================================================
# WIRE FORMAT
# =============================================================================


def subject_from_dict(data: dict[str, Any], resolver: DIDResolver | None = None) -> Subject:
    """Parse the wire form of a subject, including the nested legacy forms.

    Accepted shapes::

        {"did": "did:key:z6Mk..."}
        {"pkh": {"eip155": {"address": "0x...", "chain_id": "1"}}}
        {"pkh": {"solana": {"address": "..."}}}
        {"pkh": {"tz": {"address": "tz1..."}}}
        {"web": {"ed25519": {"did": "did:web:...", "key_name": "controller"}}}
        {"handle": {"platform": "Twitter", "handle": "..."}}
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise SubjectError("Subject must be an object with exactly one key", kind=SubjectErrorKind.MALFORMED)

    (tag, body), = data.items()
    try:
        if tag == "did":
            return DidSubject(body, resolver=resolver)
        if tag == "pkh":
            (chain, inner), = body.items()
            if chain == "eip155":
                return Eip155Subject(inner["address"], str(inner.get("chain_id", "1")))
            if chain == "solana":
                return SolanaSubject(inner["address"])
            if chain == "tz":
                return TezosSubject(inner["address"])
        elif tag == "web":
            inner = body["ed25519"]
            return DidWebSubject(inner["did"], inner.get("key_name", "controller"), resolver=resolver)
        elif tag == "handle":
            return HandleSubject(body["platform"], body["handle"])
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SubjectError(f"Malformed subject {data!r}: {e}", kind=SubjectErrorKind.MALFORMED) from e

    raise SubjectError(f"Unknown subject type: {tag}", kind=SubjectErrorKind.SUBJECT_TYPE)


def subject_from_did(did: str, resolver: DIDResolver | None = None) -> Subject:
    """Build the most specific subject for a DID string."""
    parts = did.split(":")
    if len(parts) == 5 and parts[:3] == ["did", "pkh", "eip155"]:
        return Eip155Subject(address=parts[4], chain_id=parts[3])
    if len(parts) == 5 and parts[:3] == ["did", "pkh", "solana"]:
        return SolanaSubject(address=parts[4])
    if len(parts) == 4 and parts[:3] == ["did", "pkh", "tz"]:
        return TezosSubject(address=parts[3])
    return DidSubject(did, resolver=resolver)
