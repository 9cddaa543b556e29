"""Signers: subjects that also hold signing authority.

Every signer is a valid :class:`~rebase.subject.Subject` for its own
identifier, so ``await signer.valid_signature(m, await signer.sign(m))``
always succeeds. Private key material never leaves the signer and is never
part of its wire form.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_account import Account
from eth_account.messages import encode_defunct

from .encoding import ed25519_did_key, ed25519_public_jwk
from .errors import SignerError, SignerErrorKind
from .resolver import ResolvedKey, SignatureAlgorithm
from .subject import (
    DidWebSubject,
    Eip155Subject,
    Subject,
    TezosSubject,
    verify_ed25519,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofOptions:
    """Proof metadata handed to the credential envelope issuer."""

    verification_method: str
    proof_purpose: str = "assertionMethod"

    def to_dict(self) -> dict[str, str]:
        return {
            "verificationMethod": self.verification_method,
            "proofPurpose": self.proof_purpose,
        }


class Signer(Subject):
    """A subject that can produce signatures.

    Subject behavior is delegated to :meth:`as_subject`, so a signer is
    described and verified exactly like the identity it signs for.
    """

    name: str

    @abstractmethod
    async def sign(self, message: str) -> str:
        """Sign ``message`` and return the encoded signature.

        Raises:
            SignerError: If the backend cannot sign.
        """

    @abstractmethod
    def as_subject(self) -> Subject:
        """The subject this signer signs for."""

    @abstractmethod
    def proof_options(self) -> ProofOptions | None:
        """Verification metadata for credential envelopes, if any."""

    def id(self) -> str:
        return self.as_subject().display_id()

    def as_did(self) -> str:
        return self.as_subject().did()

    def did(self) -> str:
        return self.as_subject().did()

    def display_id(self) -> str:
        return self.as_subject().display_id()

    def statement_title(self) -> str:
        return self.as_subject().statement_title()

    def verification_method(self) -> str:
        return self.as_subject().verification_method()

    async def valid_signature(self, statement: str, signature: str) -> None:
        await self.as_subject().valid_signature(statement, signature)

    def to_dict(self) -> dict[str, Any]:
        return self.as_subject().to_dict()


# =============================================================================
# ED25519
# =============================================================================


class _StaticKeyResolver:
    """Resolves a signer's own DID to the key it holds."""

    def __init__(self, did: str, public_key: bytes):
        self._did = did
        self._public_key = public_key

    async def resolve(self, did: str) -> ResolvedKey:
        return ResolvedKey(
            did=self._did,
            public_key=self._public_key,
            algorithm=SignatureAlgorithm.ED25519,
            verification_method=did if "#" in did else None,
        )


class Ed25519Signer(Signer):
    """Ed25519 key published as a JWK under did:web, or as a did:key.

    Signatures are hex encoded.
    """

    def __init__(
        self,
        private_key: Ed25519PrivateKey,
        did: str | None = None,
        key_name: str = "controller",
    ):
        self._private_key = private_key
        self.public_key_bytes = private_key.public_key().public_bytes(
            encoding=Encoding.Raw,
            format=PublicFormat.Raw,
        )
        if did is None:
            did = ed25519_did_key(self.public_key_bytes)
            key_name = did[len("did:key:"):]
        elif not did.startswith(("did:web:", "did:key:")):
            raise SignerError(
                f"Ed25519 signers must use did:web or did:key, got: {did}",
                kind=SignerErrorKind.INVALID_ID,
                signer_id=did,
            )
        self.name = "Ed25519 Web Key" if did.startswith("did:web:") else "Ed25519 Key"
        self._did = did
        self.key_name = key_name
        self._subject = DidWebSubject(
            did,
            key_name,
            resolver=_StaticKeyResolver(did, self.public_key_bytes),
        )

    @classmethod
    def generate(cls, did: str | None = None, key_name: str = "controller") -> Ed25519Signer:
        """Create a signer with a fresh key."""
        return cls(Ed25519PrivateKey.generate(), did=did, key_name=key_name)

    @classmethod
    def from_private_bytes(
        cls,
        private_key_bytes: bytes,
        did: str | None = None,
        key_name: str = "controller",
    ) -> Ed25519Signer:
        try:
            private_key = Ed25519PrivateKey.from_private_bytes(private_key_bytes)
        except ValueError as e:
            raise SignerError(f"Invalid Ed25519 private key: {e}", kind=SignerErrorKind.INVALID_ID) from e
        return cls(private_key, did=did, key_name=key_name)

    async def sign(self, message: str) -> str:
        return self._private_key.sign(message.encode("utf-8")).hex()

    def as_subject(self) -> Subject:
        return self._subject

    def proof_options(self) -> ProofOptions:
        return ProofOptions(verification_method=f"{self._did}#{self.key_name}")

    async def valid_signature(self, statement: str, signature: str) -> None:
        verify_ed25519(self.public_key_bytes, statement, signature, self._did)

    def public_jwk(self) -> dict[str, str]:
        return ed25519_public_jwk(self.public_key_bytes)

    def did_document(self) -> dict[str, Any]:
        """DID document to publish for a did:web signer."""
        method_id = f"{self._did}#{self.key_name}"
        return {
            "@context": [
                "https://www.w3.org/ns/did/v1",
                "https://w3id.org/security/suites/jws-2020/v1",
            ],
            "id": self._did,
            "verificationMethod": [
                {
                    "id": method_id,
                    "type": "JsonWebKey2020",
                    "controller": self._did,
                    "publicKeyJwk": self.public_jwk(),
                }
            ],
            "assertionMethod": [method_id],
        }

    def __repr__(self) -> str:
        return f"Ed25519Signer(did={self._did!r}, key_name={self.key_name!r})"


# =============================================================================
# ETHEREUM
# =============================================================================


class EthereumSigner(Signer):
    """Ethereum account signing plaintext with EIP-191 ``personal_sign``."""

    name = "Ethereum Address"

    def __init__(self, private_key: str | bytes, chain_id: str = "1"):
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise SignerError(f"Invalid Ethereum private key: {e}", kind=SignerErrorKind.INVALID_ID) from e
        self.chain_id = chain_id
        self._subject = Eip155Subject(address=self._account.address, chain_id=chain_id)

    @classmethod
    def generate(cls, chain_id: str = "1") -> EthereumSigner:
        return cls(Account.create().key, chain_id=chain_id)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign(self, message: str) -> str:
        try:
            signed = Account.sign_message(encode_defunct(text=message), private_key=self._account.key)
        except (ValueError, TypeError) as e:
            raise SignerError(f"Failed to sign message: {e}", signer_id=self.address) from e
        return "0x" + bytes(signed.signature).hex()

    def as_subject(self) -> Subject:
        return self._subject

    def proof_options(self) -> ProofOptions:
        return ProofOptions(verification_method=self._subject.verification_method())

    def __repr__(self) -> str:
        return f"EthereumSigner(address={self.address!r}, chain_id={self.chain_id!r})"


# =============================================================================
# TEZOS
# =============================================================================


class TezosSigner(Signer):
    """Placeholder for Tezos plaintext signing; every operation is unimplemented."""

    name = "Tezos Address"

    def __init__(self, address: str):
        self._subject = TezosSubject(address)

    async def sign(self, message: str) -> str:
        raise SignerError(
            "Tezos signing is not implemented",
            kind=SignerErrorKind.UNIMPLEMENTED,
            signer_id=self._subject.address,
        )

    def as_subject(self) -> Subject:
        return self._subject

    def proof_options(self) -> ProofOptions | None:
        return None

    def __repr__(self) -> str:
        return f"TezosSigner(address={self._subject.address!r})"
