# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Rebase - portable, verifiable identity-linking attestations.

A party proves that it controls two identities (a DID key, a chain address,
a domain, a social handle, an email address, an NFT or POAP holding) and the
claim is packaged as credential content that anyone can re-check.

Pipeline:
  Statement (canonical, signable text)
    -> Proof (statement + signature(s) + locators)
    -> Content (verified payload for an external credential issuer)

Witness flows in :mod:`rebase.witness` order the checks: statement text,
then signatures, then third-party evidence, then content.
"""

__version__ = "0.1.0"

from .content import Content
from .crosskey import crosskey_claim, default_statement, verify_crosskey_claim
from .errors import (
    CapabilityError,
    ContentError,
    FlowError,
    ProofError,
    RebaseError,
    RejectionReason,
    SignerError,
    StatementError,
    SubjectError,
)
from .proof import Proof, proof_from_dict
from .recap import AttestationType, Delegation, authorize, from_action_string, to_action
from .signer import Ed25519Signer, EthereumSigner, ProofOptions, Signer, TezosSigner
from .statement import Statement, statement_from_dict
from .subject import (
    DidSubject,
    DidWebSubject,
    Eip155Subject,
    HandleSubject,
    SolanaSubject,
    Subject,
    TezosSubject,
    subject_from_dict,
    subject_from_did,
)

__all__ = [
    "__version__",
    # Errors
    "CapabilityError",
    "ContentError",
    "FlowError",
    "ProofError",
    "RebaseError",
    "RejectionReason",
    "SignerError",
    "StatementError",
    "SubjectError",
    # Subjects and signers
    "DidSubject",
    "DidWebSubject",
    "Eip155Subject",
    "HandleSubject",
    "SolanaSubject",
    "Subject",
    "TezosSubject",
    "subject_from_dict",
    "subject_from_did",
    "Ed25519Signer",
    "EthereumSigner",
    "ProofOptions",
    "Signer",
    "TezosSigner",
    # Pipeline
    "Content",
    "Proof",
    "Statement",
    "proof_from_dict",
    "statement_from_dict",
    # Capabilities
    "AttestationType",
    "Delegation",
    "authorize",
    "from_action_string",
    "to_action",
    # Cross-key
    "crosskey_claim",
    "default_statement",
    "verify_crosskey_claim",
]
