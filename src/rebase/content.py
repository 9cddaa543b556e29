"""Content: the materialized payload of a verified claim.

A content object is only ever built from a proof whose statement text and
signature(s) were already checked. It shapes that claim into the pieces an
external credential issuer needs -- JSON-LD context, type list, credential
subject and evidence -- and does no verification of its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

from .errors import ContentError, SubjectError
from .recap import AttestationType
from .subject import Subject

# =============================================================================
# CONSTANTS
# =============================================================================

CREDENTIALS_V1 = "https://www.w3.org/2018/credentials/v1"
REBASE_CONTEXT_V1 = "https://spec.rebase.xyz/contexts/v1"
SCHEMA_ORG = "https://schema.org/"

DEFAULT_CONTEXT = [CREDENTIALS_V1, REBASE_CONTEXT_V1, SCHEMA_ORG]


def utc_timestamp() -> str:
    """Current time as RFC 3339 with millisecond precision and a ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _did(subject: Subject) -> str:
    try:
        return subject.did()
    except SubjectError as e:
        raise ContentError(f"Cannot build credential subject: {e.message}") from e


def _evidence(evidence_type: str, **properties: Any) -> list[dict[str, Any]]:
    return [{"type": [evidence_type], **properties}]


# =============================================================================
# BASE
# =============================================================================


class Content(ABC):
    """Verified claim content, ready for envelope issuance."""

    credential_type: ClassVar[str]

    def context(self) -> list[Any]:
        return list(DEFAULT_CONTEXT)

    def types(self) -> list[str]:
        return ["VerifiableCredential", self.credential_type]

    @abstractmethod
    def subject_json(self) -> dict[str, Any]:
        """The ``credentialSubject`` object."""

    def evidence(self) -> list[dict[str, Any]] | None:
        return None

    def to_credential_payload(
        self,
        issuer: str,
        issuance_date: str | None = None,
        credential_id: str | None = None,
    ) -> dict[str, Any]:
        """Unsigned credential body handed to the envelope issuer."""
        payload: dict[str, Any] = {
            "@context": self.context(),
            "type": self.types(),
            "issuer": issuer,
            "issuanceDate": issuance_date or utc_timestamp(),
            "credentialSubject": self.subject_json(),
        }
        if credential_id:
            payload["id"] = credential_id
        evidence = self.evidence()
        if evidence:
            payload["evidence"] = evidence
        return payload


# =============================================================================
# LINKING CLAIMS
# =============================================================================


@dataclass
class DnsVerificationContent(Content):
    credential_type: ClassVar[str] = "DnsVerification"

    domain: str
    subject: Subject
    statement: str
    signature: str
    dns_server: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {
            "id": _did(self.subject),
            "sameAs": f"dns:{self.domain}",
            "domain": self.domain,
        }

    def evidence(self) -> list[dict[str, Any]]:
        if self.dns_server is None:
            return _evidence("DnsVerificationMessage", timestamp=self.timestamp)
        return _evidence(
            "DnsVerificationMessage",
            timestamp=self.timestamp,
            dnsServer=self.dns_server,
        )


@dataclass
class EmailVerificationContent(Content):
    credential_type: ClassVar[str] = "EmailVerification"

    email: str
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject), "sameAs": self.email}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence("EmailVerificationMessage", email=self.email, timestamp=self.timestamp)


@dataclass
class GitHubVerificationContent(Content):
    credential_type: ClassVar[str] = "GitHubVerification"

    gist_id: str
    handle: str
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject), "sameAs": f"https://github.com/{self.handle}"}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "GitHubVerificationMessage",
            handle=self.handle,
            timestamp=self.timestamp,
            gistId=self.gist_id,
        )


@dataclass
class TwitterVerificationContent(Content):
    credential_type: ClassVar[str] = "TwitterVerification"

    handle: str
    tweet_url: str
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def tweet_id(self) -> str:
        tweet_id = self.tweet_url.rstrip("/").rsplit("/", 1)[-1].split("?", 1)[0]
        if not tweet_id.isdigit():
            raise ContentError(f"Could not find tweet id in {self.tweet_url}")
        return tweet_id

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject), "sameAs": f"https://twitter.com/{self.handle}"}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "TwitterVerificationPublicTweet",
            handle=self.handle,
            timestamp=self.timestamp,
            tweetId=self.tweet_id,
        )


@dataclass
class RedditVerificationContent(Content):
    credential_type: ClassVar[str] = "RedditVerification"

    handle: str
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject), "sameAs": f"https://reddit.com/user/{self.handle}/"}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence("RedditVerificationMessage", handle=self.handle, timestamp=self.timestamp)


@dataclass
class SoundCloudVerificationContent(Content):
    credential_type: ClassVar[str] = "SoundCloudVerification"

    permalink: str
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {
            "id": _did(self.subject),
            "sameAs": f"https://soundcloud.com/{self.permalink}",
        }

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "SoundCloudVerificationMessage",
            permalink=self.permalink,
            timestamp=self.timestamp,
        )


# =============================================================================
# OWNERSHIP CLAIMS
# =============================================================================


@dataclass
class NftOwnershipContent(Content):
    credential_type: ClassVar[str] = "NftOwnershipVerification"

    contract_address: str
    network: str
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject), "owns_asset_from": self.contract_address}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "NftOwnershipMessage",
            contract_address=self.contract_address,
            network=self.network,
            statement=self.statement,
            signature=self.signature,
            timestamp=self.timestamp,
        )


@dataclass
class PoapOwnershipContent(Content):
    credential_type: ClassVar[str] = "PoapOwnershipVerification"

    event_id: int
    subject: Subject
    statement: str
    signature: str
    timestamp: str = field(default_factory=utc_timestamp)

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject), "event_id": self.event_id}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "PoapOwnershipMessage",
            event_id=self.event_id,
            statement=self.statement,
            signature=self.signature,
            timestamp=self.timestamp,
        )


# =============================================================================
# TWO-SIGNATURE CLAIMS
# =============================================================================


@dataclass
class SameControllerAssertionContent(Content):
    credential_type: ClassVar[str] = "SameControllerAssertion"

    id1: Subject
    id2: Subject
    statement: str
    signature1: str
    signature2: str

    def subject_json(self) -> dict[str, Any]:
        return {"id1": _did(self.id1), "id2": _did(self.id2)}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "SameControllerEvidence",
            signature1=self.signature1,
            signature2=self.signature2,
            statement=self.statement,
        )


@dataclass
class TwoKeyContent(Content):
    credential_type: ClassVar[str] = "SelfSignedControl"

    subject1: Subject
    subject2: Subject
    statement: str
    signature1: str
    signature2: str

    def subject_json(self) -> dict[str, Any]:
        return {"id": _did(self.subject1), "sameAs": _did(self.subject2)}

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence(
            "SelfSignedControlVerification",
            signature1=self.signature1,
            signature2=self.signature2,
            statement=self.statement,
        )


# =============================================================================
# ATTESTATIONS
# =============================================================================


@dataclass
class AttestationContent(Content):
    """Self-issued attestation; ``delegate`` is set when a session key signed."""

    attestation_type: AttestationType
    subject: Subject
    fields: dict[str, Any]
    statement: str
    signature: str
    delegate: str | None = None

    @property
    def credential_type(self) -> str:  # type: ignore[override]
        if self.delegate is None:
            return self.attestation_type.value
        return self.attestation_type.value.removesuffix("Attestation") + "DelegatedAttestation"

    def subject_json(self) -> dict[str, Any]:
        subject: dict[str, Any] = {k: v for k, v in self.fields.items() if v is not None}
        subject["type"] = [self.credential_type]
        subject["id"] = _did(self.subject)
        if self.delegate is not None:
            subject["delegate"] = self.delegate
        return subject


@dataclass
class WitnessedSelfIssuedContent(Content):
    attestation_type: AttestationType
    subject: Subject
    fields: dict[str, Any]
    statement: str
    signature: str

    @property
    def credential_type(self) -> str:  # type: ignore[override]
        return "Witnessed" + self.attestation_type.value.removesuffix("Attestation")

    def subject_json(self) -> dict[str, Any]:
        subject: dict[str, Any] = {k: v for k, v in self.fields.items() if v is not None}
        subject["type"] = [self.credential_type]
        subject["id"] = _did(self.subject)
        return subject

    def evidence(self) -> list[dict[str, Any]]:
        return _evidence("WitnessedSelfIssuedEvidence", signature=self.signature)
