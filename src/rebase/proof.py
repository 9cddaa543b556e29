"""Proofs: a statement plus the signature(s) and locators that back it.

A proof never verifies anything in ``to_content``; that method only copies
already-validated text and signatures into a :mod:`rebase.content` object.
Verification is ordered one level up, in :mod:`rebase.witness`:

1. :meth:`Proof.check_statement` -- recompute the statement text and
   require it to equal the submitted text exactly
2. :meth:`Proof.verify_signatures` -- every required signature against its
   subject
3. (witness kinds) fetch third-party evidence
4. :meth:`Proof.to_content`
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from .content import (
    AttestationContent,
    Content,
    DnsVerificationContent,
    EmailVerificationContent,
    GitHubVerificationContent,
    NftOwnershipContent,
    PoapOwnershipContent,
    RedditVerificationContent,
    SameControllerAssertionContent,
    SoundCloudVerificationContent,
    TwitterVerificationContent,
    TwoKeyContent,
    WitnessedSelfIssuedContent,
)
from .errors import ProofError, ProofErrorKind, StatementError, SubjectError
from .recap import Delegation
from .statement import (
    AttestationStatement,
    DnsVerificationStatement,
    EmailVerificationStatement,
    GitHubVerificationStatement,
    NftOwnershipStatement,
    PoapOwnershipStatement,
    RedditVerificationStatement,
    SameControllerAssertionStatement,
    SoundCloudVerificationStatement,
    Statement,
    TwitterVerificationStatement,
    TwoKeyStatement,
    WitnessedSelfIssuedStatement,
    statement_from_dict,
)
from .subject import Subject, subject_from_did

logger = logging.getLogger(__name__)

GIST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{32}$")
TWEET_URL_PATTERN = re.compile(r"^https://(?:www\.)?(?:twitter|x)\.com/[^/?#]+/status/(\d+)/?(?:\?.*)?$")


# =============================================================================
# BASE
# =============================================================================


@dataclass
class Proof(ABC):
    """A statement with the signature a subject made over its text."""

    statement_type: ClassVar[type[Statement]]
    # In-memory field name -> wire field name, where they differ
    wire_fields: ClassVar[dict[str, str]] = {}

    statement: Statement
    signature: str

    def __post_init__(self) -> None:
        if not isinstance(self.statement, self.statement_type):
            raise ProofError(
                f"{type(self).__name__} requires a {self.statement_type.__name__}, "
                f"got {type(self.statement).__name__}",
                kind=ProofErrorKind.STATEMENT,
            )

    @property
    def tag(self) -> str:
        if isinstance(self.statement, AttestationStatement):
            return self.statement.kind_tag
        return self.statement.tag

    def generate_statement(self) -> str:
        """The text that should have been signed."""
        return self.statement.generate_statement()

    def check_statement(self, statement_text: str) -> str:
        """Require ``statement_text`` to be exactly the regenerated text.

        Raises:
            ProofError: ``statement_mismatch`` on any difference, or
                ``statement`` if the statement cannot be generated.
        """
        try:
            expected = self.generate_statement()
        except StatementError as e:
            raise ProofError(f"Could not generate statement: {e.message}") from e

        if statement_text != expected:
            raise ProofError(
                "Submitted statement does not match the generated statement",
                kind=ProofErrorKind.STATEMENT_MISMATCH,
            )
        return expected

    def signed_pairs(self, statement_text: str) -> list[tuple[Subject, str, str]]:
        """(subject, signed text, signature) triples that must all verify."""
        return [(self.statement.subjects()[0], statement_text, self.signature)]

    async def verify_signatures(self, statement_text: str) -> None:
        """Check every required signature, in order.

        Raises:
            ProofError: ``subject`` kind, chained to the failing SubjectError.
        """
        for subject, text, signature in self.signed_pairs(statement_text):
            try:
                await subject.valid_signature(text, signature)
            except SubjectError as e:
                raise ProofError(f"Signature check failed: {e.message}", kind=ProofErrorKind.SUBJECT) from e

    @abstractmethod
    def to_content(self, statement: str, signature: str) -> Content:
        """Materialize content from previously validated text and signature."""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.tag, "statement": self.statement.to_dict()}
        for name, value in self._extra_fields().items():
            data[self.wire_fields.get(name, name)] = value
        return data

    def _extra_fields(self) -> dict[str, Any]:
        return {"signature": self.signature}


# =============================================================================
# LINKING PROOFS
# =============================================================================


@dataclass
class DnsVerificationProof(Proof):
    statement_type: ClassVar[type[Statement]] = DnsVerificationStatement
    statement: DnsVerificationStatement

    def to_content(self, statement: str, signature: str, dns_server: str | None = None) -> DnsVerificationContent:
        return DnsVerificationContent(
            domain=self.statement.domain,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
            dns_server=dns_server,
        )


@dataclass
class EmailVerificationProof(Proof):
    """Email proof; ``challenge`` is the ``{issuer_sig}:::{timestamp}`` code from the email."""

    statement_type: ClassVar[type[Statement]] = EmailVerificationStatement
    statement: EmailVerificationStatement
    challenge: str = ""

    def to_content(self, statement: str, signature: str) -> EmailVerificationContent:
        return EmailVerificationContent(
            email=self.statement.email,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )

    def _extra_fields(self) -> dict[str, Any]:
        return {"signature": self.signature, "challenge": self.challenge}


@dataclass
class GitHubVerificationProof(Proof):
    statement_type: ClassVar[type[Statement]] = GitHubVerificationStatement
    statement: GitHubVerificationStatement
    gist_id: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not GIST_ID_PATTERN.match(self.gist_id):
            raise ProofError(f"gist id invalid: {self.gist_id!r}")

    def to_content(self, statement: str, signature: str) -> GitHubVerificationContent:
        return GitHubVerificationContent(
            gist_id=self.gist_id,
            handle=self.statement.handle,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )

    def _extra_fields(self) -> dict[str, Any]:
        return {"signature": self.signature, "gist_id": self.gist_id}


@dataclass
class TwitterVerificationProof(Proof):
    statement_type: ClassVar[type[Statement]] = TwitterVerificationStatement
    statement: TwitterVerificationStatement
    tweet_url: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not TWEET_URL_PATTERN.match(self.tweet_url):
            raise ProofError(f"tweet url invalid: {self.tweet_url!r}")

    @property
    def tweet_id(self) -> str:
        match = TWEET_URL_PATTERN.match(self.tweet_url)
        assert match is not None
        return match.group(1)

    def to_content(self, statement: str, signature: str) -> TwitterVerificationContent:
        return TwitterVerificationContent(
            handle=self.statement.handle,
            tweet_url=self.tweet_url,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )

    def _extra_fields(self) -> dict[str, Any]:
        return {"signature": self.signature, "tweet_url": self.tweet_url}


@dataclass
class RedditVerificationProof(Proof):
    statement_type: ClassVar[type[Statement]] = RedditVerificationStatement
    statement: RedditVerificationStatement

    def to_content(self, statement: str, signature: str) -> RedditVerificationContent:
        return RedditVerificationContent(
            handle=self.statement.handle,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )


@dataclass
class SoundCloudVerificationProof(Proof):
    statement_type: ClassVar[type[Statement]] = SoundCloudVerificationStatement
    statement: SoundCloudVerificationStatement

    def to_content(self, statement: str, signature: str) -> SoundCloudVerificationContent:
        return SoundCloudVerificationContent(
            permalink=self.statement.permalink,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )


# =============================================================================
# OWNERSHIP PROOFS
# =============================================================================


@dataclass
class NftOwnershipProof(Proof):
    """``signature`` is over the witness challenge, not the bare statement."""

    statement_type: ClassVar[type[Statement]] = NftOwnershipStatement
    statement: NftOwnershipStatement

    def to_content(self, statement: str, signature: str) -> NftOwnershipContent:
        return NftOwnershipContent(
            contract_address=self.statement.contract_address,
            network=self.statement.network.value,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )


@dataclass
class PoapOwnershipProof(Proof):
    """``signature`` is over the witness challenge, not the bare statement."""

    statement_type: ClassVar[type[Statement]] = PoapOwnershipStatement
    statement: PoapOwnershipStatement

    def to_content(self, statement: str, signature: str) -> PoapOwnershipContent:
        return PoapOwnershipContent(
            event_id=self.statement.event_id,
            subject=self.statement.subject,
            statement=statement,
            signature=signature,
        )


# =============================================================================
# TWO-SIGNATURE PROOFS
# =============================================================================


@dataclass
class SameControllerAssertionProof(Proof):
    statement_type: ClassVar[type[Statement]] = SameControllerAssertionStatement
    wire_fields: ClassVar[dict[str, str]] = {"signature": "signature1"}
    statement: SameControllerAssertionStatement
    signature2: str = ""

    def signed_pairs(self, statement_text: str) -> list[tuple[Subject, str, str]]:
        return [
            (self.statement.id1, statement_text, self.signature),
            (self.statement.id2, statement_text, self.signature2),
        ]

    def to_content(self, statement: str, signature: str) -> SameControllerAssertionContent:
        return SameControllerAssertionContent(
            id1=self.statement.id1,
            id2=self.statement.id2,
            statement=statement,
            signature1=signature,
            signature2=self.signature2,
        )

    def _extra_fields(self) -> dict[str, Any]:
        return {"signature": self.signature, "signature2": self.signature2}


@dataclass
class TwoKeyProof(Proof):
    statement_type: ClassVar[type[Statement]] = TwoKeyStatement
    wire_fields: ClassVar[dict[str, str]] = {"signature": "signature1"}
    statement: TwoKeyStatement
    signature2: str = ""

    def signed_pairs(self, statement_text: str) -> list[tuple[Subject, str, str]]:
        return [
            (self.statement.subject1, statement_text, self.signature),
            (self.statement.subject2, statement_text, self.signature2),
        ]

    def to_content(self, statement: str, signature: str) -> TwoKeyContent:
        return TwoKeyContent(
            subject1=self.statement.subject1,
            subject2=self.statement.subject2,
            statement=statement,
            signature1=signature,
            signature2=self.signature2,
        )

    def _extra_fields(self) -> dict[str, Any]:
        return {"signature": self.signature, "signature2": self.signature2}


# =============================================================================
# ATTESTATION PROOFS
# =============================================================================


@dataclass
class AttestationProof(Proof):
    statement_type: ClassVar[type[Statement]] = AttestationStatement
    statement: AttestationStatement

    def __post_init__(self) -> None:
        super().__post_init__()
        if isinstance(self.statement, WitnessedSelfIssuedStatement):
            raise ProofError("Witnessed statements need a WitnessedSelfIssuedProof")

    def to_content(self, statement: str, signature: str) -> AttestationContent:
        return AttestationContent(
            attestation_type=self.statement.attestation_type,
            subject=self.statement.subject,
            fields=dict(self.statement.fields),
            statement=statement,
            signature=signature,
        )


@dataclass
class DelegatedAttestationProof(Proof):
    """An attestation signed by a session key under a :class:`Delegation`.

    The signature is checked against ``delegation.delegate_did``, not the
    attestation subject.
    """

    statement_type: ClassVar[type[Statement]] = AttestationStatement
    statement: AttestationStatement
    delegation: Delegation | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if isinstance(self.statement, WitnessedSelfIssuedStatement):
            raise ProofError("Witnessed statements cannot be delegated")
        if self.delegation is None:
            raise ProofError("Delegated attestations need a delegation")

    @property
    def tag(self) -> str:
        return f"delegated_{self.statement.kind_tag}"

    def delegate(self) -> Subject:
        assert self.delegation is not None
        try:
            return subject_from_did(self.delegation.delegate_did)
        except SubjectError as e:
            raise ProofError(f"Invalid delegate: {e.message}", kind=ProofErrorKind.SUBJECT) from e

    def signed_pairs(self, statement_text: str) -> list[tuple[Subject, str, str]]:
        return [(self.delegate(), statement_text, self.signature)]

    def to_content(self, statement: str, signature: str) -> AttestationContent:
        assert self.delegation is not None
        return AttestationContent(
            attestation_type=self.statement.attestation_type,
            subject=self.statement.subject,
            fields=dict(self.statement.fields),
            statement=statement,
            signature=signature,
            delegate=self.delegation.delegate_did,
        )

    def _extra_fields(self) -> dict[str, Any]:
        assert self.delegation is not None
        return {"signature": self.signature, "delegation": self.delegation.to_dict()}


@dataclass
class WitnessedSelfIssuedProof(Proof):
    statement_type: ClassVar[type[Statement]] = WitnessedSelfIssuedStatement
    statement: WitnessedSelfIssuedStatement

    def to_content(self, statement: str, signature: str) -> WitnessedSelfIssuedContent:
        return WitnessedSelfIssuedContent(
            attestation_type=self.statement.attestation_type,
            subject=self.statement.subject,
            fields=dict(self.statement.fields),
            statement=statement,
            signature=signature,
        )


# =============================================================================
# WIRE TABLE
# =============================================================================

PROOF_TYPES: dict[type[Statement], type[Proof]] = {
    DnsVerificationStatement: DnsVerificationProof,
    EmailVerificationStatement: EmailVerificationProof,
    GitHubVerificationStatement: GitHubVerificationProof,
    TwitterVerificationStatement: TwitterVerificationProof,
    RedditVerificationStatement: RedditVerificationProof,
    SoundCloudVerificationStatement: SoundCloudVerificationProof,
    NftOwnershipStatement: NftOwnershipProof,
    PoapOwnershipStatement: PoapOwnershipProof,
    SameControllerAssertionStatement: SameControllerAssertionProof,
    TwoKeyStatement: TwoKeyProof,
    AttestationStatement: AttestationProof,
    WitnessedSelfIssuedStatement: WitnessedSelfIssuedProof,
}


def proof_from_dict(data: dict[str, Any]) -> Proof:
    """Rebuild a proof from its wire form.

    Raises:
        ProofError: If the object is malformed.
        StatementError: If the embedded statement is malformed.
    """
    if not isinstance(data, dict) or not isinstance(data.get("statement"), dict):
        raise ProofError("Proof must be an object with a statement")

    statement = statement_from_dict(data["statement"])
    tag = data.get("type", "")

    if isinstance(tag, str) and tag.startswith("delegated_"):
        if type(statement) is not AttestationStatement:
            raise ProofError(f"Delegated proofs need an attestation statement, got {statement.tag}")
        proof_cls: type[Proof] = DelegatedAttestationProof
    else:
        proof_cls = PROOF_TYPES[type(statement)]

    kwargs: dict[str, Any] = {}
    by_wire = {wire: name for name, wire in proof_cls.wire_fields.items()}
    for key, value in data.items():
        if key in ("type", "statement"):
            continue
        kwargs[by_wire.get(key, key)] = value

    if "delegation" in kwargs:
        kwargs["delegation"] = Delegation.from_dict(kwargs["delegation"])

    try:
        proof = proof_cls(statement=statement, **kwargs)
    except TypeError as e:
        raise ProofError(f"Malformed {tag} proof: {e}") from e

    if tag != proof.tag:
        raise ProofError(f"Proof type {tag!r} does not match its statement, expected {proof.tag!r}")
    return proof
