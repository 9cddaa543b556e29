# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Exception hierarchy for Rebase.

Every fallible step in the statement, proof and witness pipeline raises one
of these types. Witness flows map each of them to a stable rejection reason
code, so callers can tell a malformed claim apart from a forged signature or
an unreachable evidence source.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class RejectionReason(str, Enum):
    """Stable reason codes reported by a rejected witness flow."""

    INVALID_REQUEST = "invalid_request"
    STATEMENT = "statement"
    STATEMENT_MISMATCH = "statement_mismatch"
    INVALID_SIGNATURE = "invalid_signature"
    UNIMPLEMENTED = "unimplemented"
    DID_UNRESOLVABLE = "did_unresolvable"
    EVIDENCE_UNREACHABLE = "evidence_unreachable"
    EVIDENCE_MISMATCH = "evidence_mismatch"
    CAPABILITY = "capability"
    EXPIRED = "expired"
    ABORTED = "aborted"


class SubjectErrorKind(str, Enum):
    MALFORMED = "malformed"
    RESOLUTION = "resolution"
    VALIDATION = "validation"
    UNIMPLEMENTED = "unimplemented"
    SUBJECT_TYPE = "subject_type"


class SignerErrorKind(str, Enum):
    INVALID_ID = "invalid_id"
    SIGN = "sign"
    INVALID_SIGNATURE = "invalid_signature"
    UNIMPLEMENTED = "unimplemented"


class ProofErrorKind(str, Enum):
    STATEMENT_MISMATCH = "statement_mismatch"
    STATEMENT = "statement"
    SUBJECT = "subject"
    CONTENT = "content"


class RebaseError(Exception):
    """Base exception for all Rebase errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class StatementError(RebaseError):
    """Raised when a claim cannot be turned into statement text.

    Raised when:
    - A claim field is missing or malformed
    - An ownership timestamp is not strict RFC 3339
    - The subject cannot produce its display form
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class SubjectError(RebaseError):
    """Raised by subject identity and signature checks.

    The ``kind`` separates a signature that does not verify
    (``validation``) from a backend that is not supported at all
    (``unimplemented``).
    """

    def __init__(
        self,
        message: str,
        kind: SubjectErrorKind = SubjectErrorKind.VALIDATION,
        subject: str | None = None,
    ):
        details: dict[str, Any] = {"kind": kind.value}
        if subject:
            details["subject"] = subject
        super().__init__(message, details)
        self.kind = kind
        self.subject = subject

    @property
    def is_unimplemented(self) -> bool:
        return self.kind == SubjectErrorKind.UNIMPLEMENTED


class SignerError(RebaseError):
    """Raised when a signer cannot produce or check a signature."""

    def __init__(
        self,
        message: str,
        kind: SignerErrorKind = SignerErrorKind.SIGN,
        signer_id: str | None = None,
    ):
        details: dict[str, Any] = {"kind": kind.value}
        if signer_id:
            details["signer_id"] = signer_id
        super().__init__(message, details)
        self.kind = kind
        self.signer_id = signer_id

    @property
    def is_unimplemented(self) -> bool:
        return self.kind == SignerErrorKind.UNIMPLEMENTED


class ProofError(RebaseError):
    """Raised when a proof does not match its statement or cannot be materialized."""

    def __init__(self, message: str, kind: ProofErrorKind = ProofErrorKind.STATEMENT):
        super().__init__(message, {"kind": kind.value})
        self.kind = kind


class ContentError(RebaseError):
    """Raised when credential content cannot be shaped.

    Not reachable for well-formed proofs; kept for schema validation of
    content payloads.
    """

    pass


class CapabilityError(RebaseError):
    """Raised when a delegated capability does not cover a request."""

    def __init__(self, message: str, action: str | None = None):
        details = {}
        if action:
            details["action"] = action
        super().__init__(message, details)
        self.action = action


class FlowError(RebaseError):
    """Raised when a witness flow rejects a proof.

    ``reason`` is the stable code of the first failing stage and ``stage``
    names the flow state that was being entered when the failure happened.
    """

    def __init__(
        self,
        reason: RejectionReason,
        message: str,
        stage: str | None = None,
    ):
        details: dict[str, Any] = {"reason": reason.value}
        if stage:
            details["stage"] = stage
        super().__init__(message, details)
        self.reason = reason
        self.stage = stage


def reason_for(error: Exception) -> RejectionReason:
    """Map any pipeline error onto the rejection reason a flow reports."""
    if isinstance(error, FlowError):
        return error.reason
    if isinstance(error, (SubjectError, SignerError)):
        if error.is_unimplemented:
            return RejectionReason.UNIMPLEMENTED
        if isinstance(error, SubjectError) and error.kind in (
            SubjectErrorKind.MALFORMED,
            SubjectErrorKind.SUBJECT_TYPE,
        ):
            return RejectionReason.INVALID_REQUEST
        if isinstance(error, SubjectError) and error.kind == SubjectErrorKind.RESOLUTION:
            return RejectionReason.DID_UNRESOLVABLE
        return RejectionReason.INVALID_SIGNATURE
    if isinstance(error, StatementError):
        return RejectionReason.STATEMENT
    if isinstance(error, ProofError):
        if error.kind == ProofErrorKind.STATEMENT_MISMATCH:
            return RejectionReason.STATEMENT_MISMATCH
        if isinstance(error.__cause__, Exception):
            return reason_for(error.__cause__)
        return RejectionReason.STATEMENT
    if isinstance(error, CapabilityError):
        return RejectionReason.CAPABILITY
    return RejectionReason.INVALID_REQUEST
