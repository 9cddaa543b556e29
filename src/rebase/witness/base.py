# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Witness flow base class and outcomes.

A flow walks one proof through a fixed sequence of states::

    STATEMENT_REQUESTED -> STATEMENT_SIGNED -> EVIDENCE_FETCHED -> VERIFIED

with REJECTED reachable from every state after the first.

Within :meth:`Flow.validate_proof` the order is always:

1. regenerate the statement and require exact equality with the submitted text
2. verify every required signature
3. fetch third-party evidence and require the statement to be found in it
4. materialize :class:`~rebase.content.Content`

Any failure short-circuits with a :class:`~rebase.errors.FlowError` carrying
the reason code of the first failing stage. Nothing is retried.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from ..content import Content
from ..errors import FlowError, RebaseError, RejectionReason, reason_for
from ..logging import correlation_context
from ..proof import Proof
from ..statement import Statement

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================


class FlowState(str, Enum):
    """States of a witness flow."""

    STATEMENT_REQUESTED = "statement_requested"
    STATEMENT_SIGNED = "statement_signed"
    EVIDENCE_FETCHED = "evidence_fetched"
    VERIFIED = "verified"
    REJECTED = "rejected"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class Instructions:
    """Human-facing guidance for each step of a flow."""

    statement: str
    signature: str
    witness: str
    statement_fields: list[str] = field(default_factory=list)
    proof_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement": self.statement,
            "signature": self.signature,
            "witness": self.witness,
            "statement_fields": self.statement_fields,
            "proof_fields": self.proof_fields,
        }


@dataclass
class StatementResponse:
    """Text the caller must sign, and the delimiter to post it with, if any."""

    statement: str
    delimiter: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"statement": self.statement, "delimiter": self.delimiter}


@dataclass
class FlowOutcome:
    """Result of :meth:`Flow.verify`.

    ``content`` is only ever set on a verified outcome. ``stage`` is the state
    that was being entered when a rejection happened.
    """

    verified: bool
    stage: FlowState
    reason: RejectionReason | None = None
    error: str | None = None
    content: Content | None = None
    correlation_id: str | None = None
    duration_ms: float = 0.0

    @property
    def rejected(self) -> bool:
        return not self.verified

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "verified": self.verified,
            "stage": self.stage.value,
            "reason": self.reason.value if self.reason else None,
            "error": self.error,
            "correlation_id": self.correlation_id,
            "duration_ms": self.duration_ms,
        }
        if self.content is not None:
            data["types"] = self.content.types()
            data["credential_subject"] = self.content.subject_json()
            data["evidence"] = self.content.evidence()
        return data


@dataclass
class _Progress:
    stage: FlowState = FlowState.STATEMENT_REQUESTED


# =============================================================================
# FLOW
# =============================================================================


def field_names(cls: type) -> list[str]:
    if not dataclasses.is_dataclass(cls):
        return []
    return [f.name for f in dataclasses.fields(cls)]


class Flow(ABC):
    """One witness protocol for one claim kind.

    Subclasses set ``statement_type`` and ``proof_type`` and override the
    hooks they need: :meth:`prepare_statement` for statement-time checks,
    :meth:`check_signatures` for non-standard signed text,
    :meth:`check_evidence` for third-party confirmation, and
    :meth:`build_content` when content needs what the flow observed.
    """

    statement_type: ClassVar[type[Statement]]
    proof_type: ClassVar[type[Proof]]

    @abstractmethod
    def instructions(self) -> Instructions:
        """Guidance shown to the claimant."""

    def _instructions(self, statement: str, signature: str, witness: str) -> Instructions:
        return Instructions(
            statement=statement,
            signature=signature,
            witness=witness,
            statement_fields=field_names(self.statement_type),
            proof_fields=field_names(self.proof_type),
        )

    # -------------------------------------------------------------------------
    # Statement step
    # -------------------------------------------------------------------------

    async def statement(self, statement: Statement) -> StatementResponse:
        """Return the text the claimant must sign.

        Raises:
            FlowError: If the statement is of the wrong kind or malformed.
        """
        if not isinstance(statement, self.statement_type):
            raise FlowError(
                RejectionReason.INVALID_REQUEST,
                f"{type(self).__name__} expects a {self.statement_type.__name__}",
                stage=FlowState.STATEMENT_REQUESTED.value,
            )
        try:
            await self.prepare_statement(statement)
            return await self.build_statement_response(statement)
        except FlowError as e:
            if e.stage is None:
                e.stage = FlowState.STATEMENT_REQUESTED.value
                e.details["stage"] = e.stage
            raise
        except RebaseError as e:
            raise FlowError(reason_for(e), e.message, stage=FlowState.STATEMENT_REQUESTED.value) from e

    async def prepare_statement(self, statement: Statement) -> None:
        """Statement-time checks; no-op by default."""

    async def build_statement_response(self, statement: Statement) -> StatementResponse:
        return StatementResponse(statement=statement.generate_statement())

    # -------------------------------------------------------------------------
    # Proof step
    # -------------------------------------------------------------------------

    async def check_signatures(self, proof: Proof, statement_text: str) -> None:
        await proof.verify_signatures(statement_text)

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        """Confirm the statement against third-party evidence; no-op by default."""

    def build_content(self, proof: Proof, statement_text: str) -> Content:
        return proof.to_content(statement_text, proof.signature)

    async def validate_proof(self, proof: Proof, statement_text: str | None = None) -> Content:
        """Run the verification sequence and return materialized content.

        Args:
            proof: The submitted proof.
            statement_text: The text the claimant says they signed. Defaults
                to the regenerated statement.

        Raises:
            FlowError: With the reason code of the first failing stage.
        """
        return await self._validate(proof, statement_text, _Progress())

    async def _validate(self, proof: Proof, statement_text: str | None, progress: _Progress) -> Content:
        if not isinstance(proof, self.proof_type):
            raise FlowError(
                RejectionReason.INVALID_REQUEST,
                f"{type(self).__name__} expects a {self.proof_type.__name__}",
                stage=progress.stage.value,
            )

        try:
            progress.stage = FlowState.STATEMENT_SIGNED
            if statement_text is None:
                text = proof.generate_statement()
            else:
                text = proof.check_statement(statement_text)
            await self.check_signatures(proof, text)

            progress.stage = FlowState.EVIDENCE_FETCHED
            await self.check_evidence(proof, text)

            progress.stage = FlowState.VERIFIED
            return self.build_content(proof, text)
        except FlowError as e:
            if e.stage is None:
                e.stage = progress.stage.value
                e.details["stage"] = e.stage
            raise
        except RebaseError as e:
            raise FlowError(reason_for(e), e.message, stage=progress.stage.value) from e

    async def verify(
        self,
        proof: Proof,
        statement_text: str | None = None,
        timeout: float | None = None,
        correlation_id: str | None = None,
    ) -> FlowOutcome:
        """Validate a proof and report the outcome instead of raising.

        A ``timeout`` bounds the whole sequence, evidence fetch included; when
        it expires the outcome is rejected with reason ``aborted`` and no
        content.
        """
        progress = _Progress()
        start = time.monotonic()

        with correlation_context(correlation_id) as cid:
            logger.info(f"Verifying {proof.tag} proof with {type(self).__name__}")
            try:
                content = await asyncio.wait_for(self._validate(proof, statement_text, progress), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Verification aborted after {timeout}s at {progress.stage.value}")
                return FlowOutcome(
                    verified=False,
                    stage=progress.stage,
                    reason=RejectionReason.ABORTED,
                    error=f"Verification did not finish within {timeout}s",
                    correlation_id=cid,
                    duration_ms=(time.monotonic() - start) * 1000,
                )
            except FlowError as e:
                logger.info(f"Proof rejected at {progress.stage.value}: {e.reason.value}: {e.message}")
                return FlowOutcome(
                    verified=False,
                    stage=progress.stage,
                    reason=e.reason,
                    error=e.message,
                    correlation_id=cid,
                    duration_ms=(time.monotonic() - start) * 1000,
                )

            logger.info(f"Proof verified: {proof.tag}")
            return FlowOutcome(
                verified=True,
                stage=FlowState.VERIFIED,
                content=content,
                correlation_id=cid,
                duration_ms=(time.monotonic() - start) * 1000,
            )


# =============================================================================
# HELPERS
# =============================================================================


def check_window(issued_at: datetime, max_elapsed_minutes: int, now: datetime | None = None) -> None:
    """Require ``issued_at`` to be in the past and within the window.

    Raises:
        FlowError: ``invalid_request`` for a bad window or a future timestamp,
            ``expired`` once the window has passed.
    """
    if max_elapsed_minutes <= 0:
        raise FlowError(
            RejectionReason.INVALID_REQUEST,
            "Max elapsed minutes must be set to a number greater than 0",
        )
    now = now or datetime.now(UTC)
    if issued_at > now:
        raise FlowError(RejectionReason.INVALID_REQUEST, "Timestamp provided comes from the future")
    if (now - issued_at).total_seconds() > max_elapsed_minutes * 60:
        raise FlowError(RejectionReason.EXPIRED, "Validation window has expired")
