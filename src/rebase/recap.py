"""Capability actions for delegated attestation signing.

A session key may be allowed to sign only some kinds of attestation. The
capability itself lives outside this package; what lives here is the fixed
table between :class:`AttestationType` members and the opaque action strings
that appear in such a capability, plus a check of a :class:`Delegation`
against one attestation.

Example:
    >>> to_action(AttestationType.BASIC_POST)
    'issue/basic_post_attestation'
    >>> from_action_string("issue/like_attestation")
    <AttestationType.LIKE: 'LikeAttestation'>
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .errors import CapabilityError

ACTION_NAMESPACE = "issue"


class AttestationType(str, Enum):
    """Attestation kinds that can be self-issued or delegated."""

    BASIC_IMAGE = "BasicImageAttestation"
    BASIC_POST = "BasicPostAttestation"
    BASIC_PROFILE = "BasicProfileAttestation"
    BASIC_TAG = "BasicTagAttestation"
    BOOK_REVIEW = "BookReviewAttestation"
    DAPP_PREFERENCES = "DappPreferencesAttestation"
    FOLLOW = "FollowAttestation"
    LIKE = "LikeAttestation"
    PROGRESS_BOOK_LINK = "ProgressBookLinkAttestation"


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


_ACTIONS: dict[AttestationType, str] = {
    t: f"{ACTION_NAMESPACE}/{_snake_case(t.value)}" for t in AttestationType
}
_BY_ACTION: dict[str, AttestationType] = {action: t for t, action in _ACTIONS.items()}


def to_action(attestation_type: AttestationType) -> str:
    """Action string that authorizes issuing ``attestation_type``."""
    return _ACTIONS[attestation_type]


def from_action_string(action: str) -> AttestationType | None:
    """Inverse of :func:`to_action`; unknown actions give None."""
    return _BY_ACTION.get(action)


def actions_for(types: Iterable[AttestationType]) -> list[str]:
    return sorted(to_action(t) for t in types)


@dataclass
class Delegation:
    """A capability granted by ``delegator`` to the key ``delegate_did``.

    ``actions`` holds action strings; unknown actions are kept as-is and
    simply never match an attestation type.
    """

    delegator: str
    delegate_did: str
    actions: set[str] = field(default_factory=set)
    not_before: datetime | None = None
    expires_at: datetime | None = None

    @property
    def attestation_types(self) -> set[AttestationType]:
        return {t for a in self.actions if (t := from_action_string(a)) is not None}

    def allows(self, attestation_type: AttestationType) -> bool:
        return to_action(attestation_type) in self.actions

    def to_dict(self) -> dict:
        return {
            "delegator": self.delegator,
            "delegate_did": self.delegate_did,
            "actions": sorted(self.actions),
            "not_before": self.not_before.isoformat() if self.not_before else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Delegation:
        return cls(
            delegator=data["delegator"],
            delegate_did=data["delegate_did"],
            actions=set(data.get("actions", [])),
            not_before=datetime.fromisoformat(data["not_before"]) if data.get("not_before") else None,
            expires_at=datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None,
        )


def authorize(
    delegation: Delegation,
    attestation_type: AttestationType,
    subject_did: str,
    now: datetime | None = None,
) -> None:
    """Check that ``delegation`` covers issuing one attestation.

    Raises:
        CapabilityError: If the action is not granted, the delegation is not
            valid at ``now``, or the attestation is about someone other than
            the delegator.
    """
    now = now or datetime.now(UTC)
    action = to_action(attestation_type)

    if delegation.not_before is not None and now < delegation.not_before:
        raise CapabilityError("Capability is not valid yet", action=action)
    if delegation.expires_at is not None and now >= delegation.expires_at:
        raise CapabilityError("Capability has expired", action=action)
    if not delegation.allows(attestation_type):
        raise CapabilityError(
            f"Capability does not authorize issuance of {attestation_type.value}",
            action=action,
        )
    if subject_did.lower() != delegation.delegator.lower():
        raise CapabilityError(
            f"Attestation subject is {subject_did} but the delegator is {delegation.delegator}",
            action=action,
        )
