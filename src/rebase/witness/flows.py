# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Witness flows, one per claim kind.

Linking flows (DNS, GitHub, Twitter, Reddit, SoundCloud) confirm that the
signed statement was published somewhere only the claimed identity controls.
Ownership flows (NFT, POAP) confirm holdings with an indexer and bind the
claim to a short-lived witness challenge. The email flow mails an
issuer-signed challenge. The remaining flows have no third-party evidence and
only check signatures.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from ..config import get_config
from ..content import DnsVerificationContent, utc_timestamp
from ..errors import FlowError, RejectionReason
from ..proof import (
    AttestationProof,
    DelegatedAttestationProof,
    DnsVerificationProof,
    EmailVerificationProof,
    GitHubVerificationProof,
    NftOwnershipProof,
    PoapOwnershipProof,
    Proof,
    RedditVerificationProof,
    SameControllerAssertionProof,
    SoundCloudVerificationProof,
    TwitterVerificationProof,
    TwoKeyProof,
    WitnessedSelfIssuedProof,
)
from ..recap import authorize
from ..signer import Signer
from ..statement import (
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
    parse_rfc3339,
)
from ..subject import Eip155Subject, Subject
from .base import Flow, Instructions, StatementResponse, check_window
from .fetchers import (
    DnsResolverFetcher,
    DnsTxtFetcher,
    EmailSender,
    FetchedPost,
    GistFetcher,
    HttpEvidenceFetcher,
    NftOwnerFetcher,
    PoapOwnerFetcher,
    RedditFetcher,
    SendGridEmailSender,
    SoundCloudFetcher,
    TweetFetcher,
)

logger = logging.getLogger(__name__)


def _mismatch(message: str) -> FlowError:
    return FlowError(RejectionReason.EVIDENCE_MISMATCH, message)


def _require_statement(post: FetchedPost, statement: str, where: str) -> None:
    if not post.contains(statement):
        raise _mismatch(f"Statement not found in {where}")


def _require_author(post: FetchedPost, handle: str, where: str) -> None:
    if post.author is None or post.author.lower() != handle.lstrip("@").lower():
        raise _mismatch(f"{where} belongs to {post.author}, not {handle}")


# =============================================================================
# DNS
# =============================================================================


class DnsFlow(Flow):
    """Statement published as a TXT record at ``_{prefix}.{domain}``.

    Any one record under the prefix equal to the statement is enough.
    """

    statement_type: ClassVar[type[Statement]] = DnsVerificationStatement
    proof_type: ClassVar[type[Proof]] = DnsVerificationProof

    def __init__(self, fetcher: DnsTxtFetcher | None = None, dns_server: str | None = None):
        self.fetcher = fetcher or DnsResolverFetcher()
        self.dns_server = dns_server

    def instructions(self) -> Instructions:
        prefix = get_config().dns_txt_prefix
        return self._instructions(
            statement="Enter the domain you want to link to your identifier.",
            signature="Sign the statement shown, which names your domain and identifier.",
            witness=(
                f"Add a TXT record named _{prefix} under your domain whose value is exactly the "
                "statement. DNS changes can take a few minutes to propagate."
            ),
        )

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        statement = proof.statement
        assert isinstance(statement, DnsVerificationStatement)
        records = await self.fetcher.fetch_dns_txt(statement.domain, statement.prefix)
        if statement_text not in records:
            raise _mismatch(f"No TXT record under {statement.prefix} matches the statement for {statement.domain}")
        logger.debug(f"Matched TXT record for {statement.domain}")

    def build_content(self, proof: Proof, statement_text: str) -> DnsVerificationContent:
        assert isinstance(proof, DnsVerificationProof)
        dns_server = self.dns_server
        if dns_server is None and isinstance(self.fetcher, DnsResolverFetcher):
            dns_server = self.fetcher.dns_server()
        return proof.to_content(statement_text, proof.signature, dns_server=dns_server)


# =============================================================================
# EMAIL
# =============================================================================


class EmailFlow(Flow):
    """The witness mails an issuer-signed, timestamped challenge to the address.

    The claimant submits that challenge (``{issuer_sig}{delimiter}{timestamp}``)
    alongside their own signature over the statement.
    """

    statement_type: ClassVar[type[Statement]] = EmailVerificationStatement
    proof_type: ClassVar[type[Proof]] = EmailVerificationProof

    def __init__(
        self,
        issuer: Signer,
        sender: EmailSender | None = None,
        challenge_delimiter: str | None = None,
        max_elapsed_minutes: int | None = None,
        subject_name: str | None = None,
    ):
        config = get_config()
        self.issuer = issuer
        self.sender = sender or SendGridEmailSender()
        self.challenge_delimiter = challenge_delimiter or config.challenge_delimiter
        self.max_elapsed_minutes = (
            max_elapsed_minutes if max_elapsed_minutes is not None else config.max_elapsed_minutes
        )
        self.subject_name = subject_name or config.email_subject_name

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the email address you want to link to your identifier.",
            signature="Sign the statement shown, which names your email address and identifier.",
            witness="Copy the challenge from the email the witness sent you into the challenge field.",
        )

    def email_subject(self, statement: EmailVerificationStatement) -> str:
        subject = statement.subject
        return f"Verifying ownership of {subject.statement_title()} {subject.display_id()} for {self.subject_name}"

    async def build_statement_response(self, statement: Statement) -> StatementResponse:
        assert isinstance(statement, EmailVerificationStatement)
        text = statement.generate_statement()
        timestamp = utc_timestamp()
        challenge = await self.issuer.sign(f"{text}{self.challenge_delimiter}{timestamp}")
        body = (
            "Paste the following into the challenge field on the witness page that sent this email:"
            f"\n\n{challenge}{self.challenge_delimiter}{timestamp}"
        )
        await self.sender.send(statement.email, self.email_subject(statement), body)
        return StatementResponse(statement=text)

    async def check_signatures(self, proof: Proof, statement_text: str) -> None:
        assert isinstance(proof, EmailVerificationProof)
        parts = proof.challenge.split(self.challenge_delimiter)
        if len(parts) != 2:
            raise FlowError(RejectionReason.INVALID_REQUEST, "Challenge in unexpected format")

        issuer_signature, timestamp = parts
        try:
            issued_at = parse_rfc3339(timestamp)
        except ValueError as e:
            raise FlowError(RejectionReason.INVALID_REQUEST, f"Challenge timestamp invalid: {e}") from e
        check_window(issued_at, self.max_elapsed_minutes)

        await self.issuer.valid_signature(
            f"{statement_text}{self.challenge_delimiter}{timestamp}",
            issuer_signature,
        )
        await proof.verify_signatures(statement_text)


# =============================================================================
# SOCIAL PLATFORMS
# =============================================================================


class GitHubFlow(Flow):
    """Statement and signature posted in a public gist owned by the handle."""

    statement_type: ClassVar[type[Statement]] = GitHubVerificationStatement
    proof_type: ClassVar[type[Proof]] = GitHubVerificationProof

    def __init__(self, fetcher: GistFetcher | None = None, delimiter: str | None = None):
        self.fetcher = fetcher or HttpEvidenceFetcher()
        self.delimiter = delimiter or get_config().post_delimiter

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the GitHub handle you want to link to your identifier.",
            signature="Sign the statement shown, which names your GitHub handle and identifier.",
            witness="Create a public gist containing the statement followed by the signature.",
        )

    async def build_statement_response(self, statement: Statement) -> StatementResponse:
        return StatementResponse(statement=statement.generate_statement(), delimiter=self.delimiter)

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        assert isinstance(proof, GitHubVerificationProof)
        post = await self.fetcher.fetch_gist(proof.gist_id)
        _require_author(post, proof.statement.handle, f"Gist {proof.gist_id}")
        _require_statement(post, statement_text, f"gist {proof.gist_id}")


class TwitterFlow(Flow):
    """Statement and signature tweeted from the handle."""

    statement_type: ClassVar[type[Statement]] = TwitterVerificationStatement
    proof_type: ClassVar[type[Proof]] = TwitterVerificationProof

    def __init__(self, fetcher: TweetFetcher | None = None, delimiter: str | None = None):
        self.fetcher = fetcher or HttpEvidenceFetcher()
        self.delimiter = delimiter or get_config().post_delimiter

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the Twitter handle you want to link to your identifier.",
            signature="Sign the statement shown, which names your Twitter handle and identifier.",
            witness="Tweet the statement followed by the signature, then submit the tweet URL.",
        )

    async def build_statement_response(self, statement: Statement) -> StatementResponse:
        return StatementResponse(statement=statement.generate_statement(), delimiter=self.delimiter)

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        assert isinstance(proof, TwitterVerificationProof)
        post = await self.fetcher.fetch_tweet(proof.tweet_id)
        _require_author(post, proof.statement.handle, f"Tweet {proof.tweet_id}")
        _require_statement(post, statement_text, f"tweet {proof.tweet_id}")


class RedditFlow(Flow):
    """Statement placed in the public description of the Reddit profile."""

    statement_type: ClassVar[type[Statement]] = RedditVerificationStatement
    proof_type: ClassVar[type[Proof]] = RedditVerificationProof

    def __init__(self, fetcher: RedditFetcher | None = None):
        self.fetcher = fetcher or HttpEvidenceFetcher()

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the Reddit handle you want to link to your identifier.",
            signature="Sign the statement shown, which names your Reddit handle and identifier.",
            witness="Put the statement in the About section of your Reddit profile.",
        )

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        statement = proof.statement
        assert isinstance(statement, RedditVerificationStatement)
        post = await self.fetcher.fetch_reddit_profile(statement.handle)
        if post.author is not None:
            _require_author(post, statement.handle, "Reddit profile")
        _require_statement(post, statement_text, f"Reddit profile of {statement.handle}")


class SoundCloudFlow(Flow):
    """Statement placed in the bio of the SoundCloud profile."""

    statement_type: ClassVar[type[Statement]] = SoundCloudVerificationStatement
    proof_type: ClassVar[type[Proof]] = SoundCloudVerificationProof

    def __init__(self, fetcher: SoundCloudFetcher | None = None):
        self.fetcher = fetcher or HttpEvidenceFetcher()

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the SoundCloud profile you want to link to your identifier.",
            signature="Sign the statement shown, which names your SoundCloud profile and identifier.",
            witness="Put the statement in the Bio section of your SoundCloud profile.",
        )

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        statement = proof.statement
        assert isinstance(statement, SoundCloudVerificationStatement)
        post = await self.fetcher.fetch_soundcloud_profile(statement.permalink)
        _require_statement(post, statement_text, f"SoundCloud profile {statement.profile_url}")


# =============================================================================
# OWNERSHIP
# =============================================================================


def _eip155_subject(subject: Subject) -> Eip155Subject:
    if not isinstance(subject, Eip155Subject):
        raise FlowError(RejectionReason.INVALID_REQUEST, "Ownership checks only support Ethereum addresses")
    return subject


class _OwnershipFlow(Flow):
    """Shared witness-challenge handling for NFT and POAP ownership.

    The statement response is ``statement + delimiter + issuer_sig`` and the
    claimant signs that whole text. The issuer signature is re-derived at
    validation time, so issuer signing must be deterministic.
    """

    def __init__(
        self,
        issuer: Signer,
        challenge_delimiter: str | None = None,
        max_elapsed_minutes: int | None = None,
    ):
        config = get_config()
        self.issuer = issuer
        self.challenge_delimiter = challenge_delimiter or config.challenge_delimiter
        self.max_elapsed_minutes = (
            max_elapsed_minutes if max_elapsed_minutes is not None else config.max_elapsed_minutes
        )

    def sanity_check(self, statement: NftOwnershipStatement | PoapOwnershipStatement) -> Eip155Subject:
        check_window(statement.issued_at_datetime(), self.max_elapsed_minutes)
        return _eip155_subject(statement.subject)

    async def challenge(self, statement_text: str) -> str:
        issuer_signature = await self.issuer.sign(statement_text)
        return f"{statement_text}{self.challenge_delimiter}{issuer_signature}"

    async def prepare_statement(self, statement: Statement) -> None:
        assert isinstance(statement, (NftOwnershipStatement, PoapOwnershipStatement))
        self.sanity_check(statement)

    async def build_statement_response(self, statement: Statement) -> StatementResponse:
        return StatementResponse(statement=await self.challenge(statement.generate_statement()))

    async def check_signatures(self, proof: Proof, statement_text: str) -> None:
        statement = proof.statement
        assert isinstance(statement, (NftOwnershipStatement, PoapOwnershipStatement))
        self.sanity_check(statement)
        await proof.verify_signatures(await self.challenge(statement_text))


class NftOwnershipFlow(_OwnershipFlow):
    statement_type: ClassVar[type[Statement]] = NftOwnershipStatement
    proof_type: ClassVar[type[Proof]] = NftOwnershipProof

    def __init__(
        self,
        issuer: Signer,
        fetcher: NftOwnerFetcher | None = None,
        challenge_delimiter: str | None = None,
        max_elapsed_minutes: int | None = None,
    ):
        super().__init__(issuer, challenge_delimiter, max_elapsed_minutes)
        self.fetcher = fetcher or HttpEvidenceFetcher()

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the contract address and network of the asset you hold.",
            signature="Sign the challenge shown, which states that you own the asset.",
            witness="Submit the statement and signature to the witness to issue a credential.",
        )

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        statement = proof.statement
        assert isinstance(statement, NftOwnershipStatement)
        owner = _eip155_subject(statement.subject)
        owned = await self.fetcher.fetch_nft_owner(
            statement.contract_address,
            statement.network.value,
            owner.address,
        )
        if not owned:
            raise _mismatch(f"Found no owned NFTs from contract {statement.contract_address}")


class PoapOwnershipFlow(_OwnershipFlow):
    statement_type: ClassVar[type[Statement]] = PoapOwnershipStatement
    proof_type: ClassVar[type[Proof]] = PoapOwnershipProof

    def __init__(
        self,
        issuer: Signer,
        fetcher: PoapOwnerFetcher | None = None,
        challenge_delimiter: str | None = None,
        max_elapsed_minutes: int | None = None,
    ):
        super().__init__(issuer, challenge_delimiter, max_elapsed_minutes)
        self.fetcher = fetcher or HttpEvidenceFetcher()

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the event id of the POAP you hold.",
            signature="Sign the challenge shown, which states that you hold the POAP.",
            witness="Submit the statement and signature to the witness to issue a credential.",
        )

    async def check_evidence(self, proof: Proof, statement_text: str) -> None:
        statement = proof.statement
        assert isinstance(statement, PoapOwnershipStatement)
        owner = _eip155_subject(statement.subject)
        if not await self.fetcher.fetch_poap_owner(statement.event_id, owner.address):
            raise _mismatch(f"Found no POAP for event {statement.event_id}")


# =============================================================================
# SIGNATURE-ONLY FLOWS
# =============================================================================


class SameControllerFlow(Flow):
    """Both identities sign the same linking statement."""

    statement_type: ClassVar[type[Statement]] = SameControllerAssertionStatement
    proof_type: ClassVar[type[Proof]] = SameControllerAssertionProof

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Enter the two identities you want to link.",
            signature="Sign the statement shown with each identity, in the order entered.",
            witness="Submit both signatures to the witness.",
        )


class TwoKeyFlow(SameControllerFlow):
    statement_type: ClassVar[type[Statement]] = TwoKeyStatement
    proof_type: ClassVar[type[Proof]] = TwoKeyProof


class AttestationFlow(Flow):
    """Self-issued attestation signed by its own subject."""

    statement_type: ClassVar[type[Statement]] = AttestationStatement
    proof_type: ClassVar[type[Proof]] = AttestationProof

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Fill out the attestation form.",
            signature="Sign the plain-text rendering of the attestation.",
            witness="Submit the attestation and signature to the witness to issue a credential.",
        )


class DelegatedAttestationFlow(AttestationFlow):
    """Attestation signed by a session key the subject delegated to."""

    proof_type: ClassVar[type[Proof]] = DelegatedAttestationProof

    def instructions(self) -> Instructions:
        return self._instructions(
            statement="Fill out the attestation form.",
            signature="The session key holding the delegation signs the attestation.",
            witness="Submit the attestation, signature and delegation to the witness.",
        )

    async def check_signatures(self, proof: Proof, statement_text: str) -> None:
        assert isinstance(proof, DelegatedAttestationProof) and proof.delegation is not None
        statement = proof.statement
        authorize(proof.delegation, statement.attestation_type, statement.subject.did())
        await proof.verify_signatures(statement_text)


class WitnessedSelfIssuedFlow(AttestationFlow):
    statement_type: ClassVar[type[Statement]] = WitnessedSelfIssuedStatement
    proof_type: ClassVar[type[Proof]] = WitnessedSelfIssuedProof
