"""Statements: the canonical, signable text of an unverified claim.

Each claim kind is one dataclass. ``generate_statement()`` is pure and
deterministic: the exact text it returns is what a subject signs, what a
witness posts publicly, and what a verifier re-derives for comparison, so
any change to these templates invalidates every existing signature.

Wire form
---------
Statements serialize to a flat object discriminated by ``"type"``. The tags
and the wire names of fields are fixed in this module; new kinds add tags,
they never rename existing ones::

    {"type": "dns_verification", "domain": "example.com", "prefix": "rebase",
     "subject": {"did": "did:key:z6Mk..."}}
"""

from __future__ import annotations

import dataclasses
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar

from .config import get_config
from .errors import StatementError, SubjectError
from .recap import AttestationType
from .subject import Subject, subject_from_dict

# =============================================================================
# CONSTANTS
# =============================================================================

ATTESTATION_HEADER = "Sign a copy of your data to turn it into a Verifiable Credential:\n"

SOUNDCLOUD_PROFILE_URL = "https://soundcloud.com/"

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))$"
)


class AlchemyNetwork(str, Enum):
    """Networks supported by NFT ownership claims."""

    ETH_MAINNET = "eth-mainnet"
    POLYGON_MAINNET = "polygon-mainnet"


def parse_rfc3339(value: str) -> datetime:
    """Strictly parse an RFC 3339 timestamp into an aware datetime.

    Raises:
        ValueError: If ``value`` is not RFC 3339 or names an impossible time.
    """
    match = _RFC3339.match(value)
    if not match:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction = match.group(7) or ""
    microsecond = int((fraction + "000000")[:6])

    if match.group(8):
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(match.group(10)), minutes=int(match.group(11)))
        tz = timezone(-offset if match.group(9) == "-" else offset)

    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)


def _display(subject: Subject) -> tuple[str, str]:
    try:
        return subject.statement_title(), subject.display_id()
    except SubjectError as e:
        raise StatementError(f"Cannot describe subject: {e.message}", field="subject") from e


def _subject_did(subject: Subject) -> str:
    try:
        return subject.did()
    except SubjectError as e:
        raise StatementError(f"Subject has no DID: {e.message}", field="subject") from e


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise StatementError(f"{name} must be a non-empty string", field=name, value=value)
    return value


def _json_value(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# BASE
# =============================================================================


class Statement(ABC):
    """A claim that can render its canonical text."""

    tag: ClassVar[str]
    # In-memory field name -> wire field name, where they differ
    wire_fields: ClassVar[dict[str, str]] = {}

    @abstractmethod
    def generate_statement(self) -> str:
        """Canonical text to be signed.

        Raises:
            StatementError: If a claim field is malformed.
        """

    @abstractmethod
    def subjects(self) -> tuple[Subject, ...]:
        """Subjects whose signatures the claim needs, in signing order."""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.tag}
        for f in dataclasses.fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, Subject):
                value = value.to_dict()
            elif isinstance(value, Enum):
                value = value.value
            data[self.wire_fields.get(f.name, f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Statement:
        by_wire = {wire: name for name, wire in cls.wire_fields.items()}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key == "type":
                continue
            name = by_wire.get(key, key)
            kwargs[name] = value

        for f in dataclasses.fields(cls):  # type: ignore[arg-type]
            if f.name in kwargs and f.type in ("Subject", Subject):
                kwargs[f.name] = subject_from_dict(kwargs[f.name])
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise StatementError(f"Malformed {cls.tag} statement: {e}") from e


# =============================================================================
# SINGLE-SUBJECT LINKING CLAIMS
# =============================================================================


@dataclass
class DnsVerificationStatement(Statement):
    tag: ClassVar[str] = "dns_verification"

    domain: str
    subject: Subject
    prefix: str = field(default_factory=lambda: get_config().dns_txt_prefix)

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def generate_statement(self) -> str:
        domain = _require_text("domain", self.domain)
        _, display_id = _display(self.subject)
        return f"{domain} is linked to {display_id}"


@dataclass
class EmailVerificationStatement(Statement):
    tag: ClassVar[str] = "email_verification"

    email: str
    subject: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def generate_statement(self) -> str:
        email = _require_text("email", self.email)
        if "@" not in email:
            raise StatementError("email must contain '@'", field="email", value=email)
        title, display_id = _display(self.subject)
        return f"{email} is linked to the {title} {display_id}"


@dataclass
class GitHubVerificationStatement(Statement):
    tag: ClassVar[str] = "github_verification"

    handle: str
    subject: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def generate_statement(self) -> str:
        handle = _require_text("handle", self.handle)
        title, display_id = _display(self.subject)
        return (
            f"I am attesting that this GitHub handle {handle} "
            f"is linked to the {title} {display_id}"
        )


@dataclass
class TwitterVerificationStatement(Statement):
    tag: ClassVar[str] = "twitter_verification"

    handle: str
    subject: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def generate_statement(self) -> str:
        handle = _require_text("handle", self.handle)
        title, display_id = _display(self.subject)
        return (
            f"I am attesting that this twitter handle @{handle} "
            f"is linked to the {title} {display_id}"
        )


@dataclass
class RedditVerificationStatement(Statement):
    tag: ClassVar[str] = "reddit_verification"

    handle: str
    subject: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def generate_statement(self) -> str:
        handle = _require_text("handle", self.handle)
        title, display_id = _display(self.subject)
        return (
            f"I am attesting that this Reddit handle {handle} "
            f"is linked to the {title} {display_id}"
        )


@dataclass
class SoundCloudVerificationStatement(Statement):
    tag: ClassVar[str] = "soundcloud_verification"

    permalink: str
    subject: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    @property
    def profile_url(self) -> str:
        return f"{SOUNDCLOUD_PROFILE_URL}{self.permalink}"

    def generate_statement(self) -> str:
        _require_text("permalink", self.permalink)
        title, display_id = _display(self.subject)
        return (
            f"I am attesting that this SoundCloud profile {self.profile_url} "
            f"is linked to the {title} {display_id}"
        )


# =============================================================================
# OWNERSHIP CLAIMS
# =============================================================================


@dataclass
class NftOwnershipStatement(Statement):
    tag: ClassVar[str] = "nft_ownership_verification"

    contract_address: str
    network: AlchemyNetwork
    issued_at: str
    subject: Subject

    def __post_init__(self) -> None:
        if not isinstance(self.network, AlchemyNetwork):
            try:
                self.network = AlchemyNetwork(self.network)
            except ValueError as e:
                raise StatementError(
                    f"Unsupported network: {self.network}", field="network", value=self.network
                ) from e

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def issued_at_datetime(self) -> datetime:
        try:
            return parse_rfc3339(self.issued_at)
        except ValueError as e:
            raise StatementError(str(e), field="issued_at", value=self.issued_at) from e

    def generate_statement(self) -> str:
        self.issued_at_datetime()
        contract = _require_text("contract_address", self.contract_address)
        title, display_id = _display(self.subject)
        return (
            f"The {title} {display_id} owns an asset from the contract {contract} "
            f"on the network {self.network.value} at time of {self.issued_at}"
        )


@dataclass
class PoapOwnershipStatement(Statement):
    tag: ClassVar[str] = "poap_ownership_verification"

    event_id: int
    issued_at: str
    subject: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def issued_at_datetime(self) -> datetime:
        try:
            return parse_rfc3339(self.issued_at)
        except ValueError as e:
            raise StatementError(str(e), field="issued_at", value=self.issued_at) from e

    def generate_statement(self) -> str:
        self.issued_at_datetime()
        if isinstance(self.event_id, bool) or not isinstance(self.event_id, int):
            raise StatementError("event_id must be an integer", field="event_id", value=self.event_id)
        title, display_id = _display(self.subject)
        return (
            f"The {title} {display_id} has a POAP for event id {self.event_id} "
            f"at time of {self.issued_at}"
        )


# =============================================================================
# TWO-SUBJECT CLAIMS
# =============================================================================


def _linking_text(first: Subject, second: Subject) -> str:
    title1, id1 = _display(first)
    title2, id2 = _display(second)
    return f"I am attesting that {title1} {id1} is linked to {title2} {id2}"


@dataclass
class SameControllerAssertionStatement(Statement):
    tag: ClassVar[str] = "same_controller_assertion"

    id1: Subject
    id2: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.id1, self.id2)

    def generate_statement(self) -> str:
        return _linking_text(self.id1, self.id2)


@dataclass
class TwoKeyStatement(Statement):
    tag: ClassVar[str] = "two_key"
    wire_fields: ClassVar[dict[str, str]] = {"subject1": "key_1", "subject2": "key_2"}

    subject1: Subject
    subject2: Subject

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject1, self.subject2)

    def generate_statement(self) -> str:
        return _linking_text(self.subject1, self.subject2)


# =============================================================================
# ATTESTATIONS
# =============================================================================

# key -> (required, accepted types); "id" is always the subject DID
KEY_MAPS: dict[AttestationType, dict[str, tuple[bool, tuple[type, ...]]]] = {
    AttestationType.BASIC_IMAGE: {
        "id": (True, (str,)),
        "src": (True, (str,)),
    },
    AttestationType.BASIC_POST: {
        "body": (True, (str,)),
        "id": (True, (str,)),
        "title": (True, (str,)),
        "reply_to": (False, (str,)),
    },
    AttestationType.BASIC_PROFILE: {
        "description": (False, (str,)),
        "id": (True, (str,)),
        "image": (False, (str,)),
        "username": (True, (str,)),
        "website": (False, (str,)),
    },
    AttestationType.BASIC_TAG: {
        "id": (True, (str,)),
        "users": (True, (list,)),
        "post": (True, (str,)),
    },
    AttestationType.BOOK_REVIEW: {
        "id": (True, (str,)),
        "link": (True, (str,)),
        "rating": (True, (int,)),
        "review": (True, (str,)),
        "title": (True, (str,)),
    },
    AttestationType.DAPP_PREFERENCES: {
        "id": (True, (str,)),
        "dark_mode": (True, (bool,)),
    },
    AttestationType.FOLLOW: {
        "id": (True, (str,)),
        "target": (True, (str,)),
    },
    AttestationType.LIKE: {
        "id": (True, (str,)),
        "target": (True, (str,)),
    },
    AttestationType.PROGRESS_BOOK_LINK: {
        "id": (True, (str,)),
        "link": (True, (str,)),
        "progress": (True, (int,)),
    },
}


def validate_attestation(attestation_type: AttestationType, content: dict[str, Any]) -> None:
    """Check a field map against the keys allowed for its kind.

    Raises:
        StatementError: On a missing required key, an unknown key, or a value
            of the wrong type.
    """
    key_map = KEY_MAPS[attestation_type]
    for key, (required, _) in sorted(key_map.items()):
        if required and key not in content:
            raise StatementError(f"Could not find required entry {key}", field=key)

    for key, value in content.items():
        if key not in key_map:
            raise StatementError(f"Found unknown key in content: {key}", field=key)
        _, types = key_map[key]
        # bool is an int subclass; only accept it where bool is expected
        if isinstance(value, bool) and bool not in types:
            raise StatementError(f"Entry {key} has the wrong type", field=key, value=value)
        if not isinstance(value, types):
            raise StatementError(f"Entry {key} has the wrong type", field=key, value=value)


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class AttestationStatement(Statement):
    """A self-issued attestation signed by the subject (or a delegate)."""

    tag: ClassVar[str] = "attestation"
    header: ClassVar[str | None] = ATTESTATION_HEADER

    attestation_type: AttestationType
    subject: Subject
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.attestation_type, AttestationType):
            try:
                self.attestation_type = AttestationType(self.attestation_type)
            except ValueError as e:
                raise StatementError(
                    f"Unknown attestation type: {self.attestation_type}",
                    field="attestation_type",
                ) from e
        if "id" in self.fields:
            raise StatementError(
                "The id entry is set from the subject and cannot be supplied",
                field="id",
                value=self.fields["id"],
            )

    @property
    def kind_tag(self) -> str:
        return _snake(self.attestation_type.value)

    def subjects(self) -> tuple[Subject, ...]:
        return (self.subject,)

    def to_statement(self) -> tuple[AttestationType, dict[str, Any]]:
        """The attestation type and its field map, ``id`` included."""
        content = {k: v for k, v in self.fields.items() if v is not None}
        content["id"] = _subject_did(self.subject)
        return self.attestation_type, content

    def generate_statement(self) -> str:
        attestation_type, content = self.to_statement()
        validate_attestation(attestation_type, content)
        lines = sorted(f"{key}:{_json_value(value)}" for key, value in content.items())
        if self.header is not None:
            lines.insert(0, self.header)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind_tag, "subject": self.subject.to_dict(), **self.fields}


@dataclass
class WitnessedSelfIssuedStatement(AttestationStatement):
    """An attestation whose signature is countersigned by a witness."""

    tag: ClassVar[str] = "witnessed_self_issued"
    header: ClassVar[str | None] = None

    @property
    def kind_tag(self) -> str:
        base = self.attestation_type.value.removesuffix("Attestation")
        return f"witnessed_{_snake(base)}"


# =============================================================================
# WIRE TABLE
# =============================================================================

STATEMENT_TYPES: dict[str, type[Statement]] = {
    cls.tag: cls
    for cls in (
        DnsVerificationStatement,
        EmailVerificationStatement,
        GitHubVerificationStatement,
        TwitterVerificationStatement,
        RedditVerificationStatement,
        SoundCloudVerificationStatement,
        NftOwnershipStatement,
        PoapOwnershipStatement,
        SameControllerAssertionStatement,
        TwoKeyStatement,
    )
}

ATTESTATION_TAGS: dict[str, tuple[type[AttestationStatement], AttestationType]] = {}
for _t in AttestationType:
    ATTESTATION_TAGS[_snake(_t.value)] = (AttestationStatement, _t)
    ATTESTATION_TAGS[f"witnessed_{_snake(_t.value.removesuffix('Attestation'))}"] = (
        WitnessedSelfIssuedStatement,
        _t,
    )
del _t


def statement_from_dict(data: dict[str, Any]) -> Statement:
    """Rebuild a statement from its wire form.

    Raises:
        StatementError: On an unknown tag or malformed fields.
    """
    tag = data.get("type") if isinstance(data, dict) else None
    if tag in STATEMENT_TYPES:
        return STATEMENT_TYPES[tag].from_dict(data)

    if tag in ATTESTATION_TAGS:
        cls, attestation_type = ATTESTATION_TAGS[tag]
        body = {k: v for k, v in data.items() if k not in ("type", "subject")}
        if "subject" not in data:
            raise StatementError(f"Malformed {tag} statement: missing subject", field="subject")
        return cls(attestation_type, subject_from_dict(data["subject"]), body)

    raise StatementError(f"Unknown statement type: {tag}", field="type", value=tag)
