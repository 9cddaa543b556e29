"""Tests for rebase.witness.flows - end-to-end flows with mocked evidence."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rebase.config import clear_config_cache
from rebase.content import (
    AttestationContent,
    DnsVerificationContent,
    EmailVerificationContent,
    GitHubVerificationContent,
    NftOwnershipContent,
    PoapOwnershipContent,
    TwoKeyContent,
    WitnessedSelfIssuedContent,
)
from rebase.errors import FlowError, RejectionReason
from rebase.proof import (
    AttestationProof,
    DelegatedAttestationProof,
    DnsVerificationProof,
    EmailVerificationProof,
    GitHubVerificationProof,
    NftOwnershipProof,
    PoapOwnershipProof,
    RedditVerificationProof,
    SameControllerAssertionProof,
    SoundCloudVerificationProof,
    TwitterVerificationProof,
    TwoKeyProof,
    WitnessedSelfIssuedProof,
)
from rebase.recap import AttestationType, Delegation, actions_for
from rebase.signer import Ed25519Signer, EthereumSigner
from rebase.statement import (
    AlchemyNetwork,
    AttestationStatement,
    DnsVerificationStatement,
    EmailVerificationStatement,
    GitHubVerificationStatement,
    NftOwnershipStatement,
    PoapOwnershipStatement,
    RedditVerificationStatement,
    SameControllerAssertionStatement,
    SoundCloudVerificationStatement,
    TwitterVerificationStatement,
    TwoKeyStatement,
    WitnessedSelfIssuedStatement,
)
from rebase.witness import (
    AttestationFlow,
    DelegatedAttestationFlow,
    DnsResolverFetcher,
    DnsFlow,
    EmailFlow,
    FetchedPost,
    FlowState,
    GitHubFlow,
    NftOwnershipFlow,
    PoapOwnershipFlow,
    RedditFlow,
    SameControllerFlow,
    SoundCloudFlow,
    TwitterFlow,
    TwoKeyFlow,
    WitnessedSelfIssuedFlow,
)

GIST_ID = "0123456789abcdef0123456789abcdef"
TWEET_URL = "https://twitter.com/alice/status/1234567890"
CONTRACT = "0xAbC0000000000000000000000000000000000001"


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# DNS
# =============================================================================


class TestDnsFlow:
    @pytest.fixture
    def fetcher(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    async def proof(self, did_key_subject, ed25519_signer) -> DnsVerificationProof:
        statement = DnsVerificationStatement("example.com", did_key_subject)
        return DnsVerificationProof(statement, await ed25519_signer.sign(statement.generate_statement()))

    async def test_any_matching_record_is_enough(self, fetcher, proof):
        text = proof.generate_statement()
        fetcher.fetch_dns_txt.return_value = ["v=spf1 -all", "wrong", text]

        content = await DnsFlow(fetcher).validate_proof(proof, text)

        assert isinstance(content, DnsVerificationContent)
        assert content.domain == "example.com"

    async def test_no_matching_record(self, fetcher, proof):
        fetcher.fetch_dns_txt.return_value = ["wrong"]

        outcome = await DnsFlow(fetcher).verify(proof)

        assert outcome.reason == RejectionReason.EVIDENCE_MISMATCH
        assert outcome.stage == FlowState.EVIDENCE_FETCHED
        assert outcome.content is None

    async def test_record_must_equal_statement(self, fetcher, proof):
        fetcher.fetch_dns_txt.return_value = [proof.generate_statement() + " "]
        assert (await DnsFlow(fetcher).verify(proof)).rejected

    async def test_custom_prefix(self, fetcher, did_key_subject, ed25519_signer):
        statement = DnsVerificationStatement("example.com", did_key_subject, prefix="proof")
        text = statement.generate_statement()
        fetcher.fetch_dns_txt.return_value = [text]

        await DnsFlow(fetcher).validate_proof(DnsVerificationProof(statement, await ed25519_signer.sign(text)))

        fetcher.fetch_dns_txt.assert_awaited_once_with("example.com", "proof")

    async def test_configured_prefix(self, fetcher, monkeypatch, did_key_subject, ed25519_signer):
        monkeypatch.setenv("REBASE_DNS_TXT_PREFIX", "proof")
        clear_config_cache()
        statement = DnsVerificationStatement("example.com", did_key_subject)
        text = statement.generate_statement()
        fetcher.fetch_dns_txt.return_value = [text]

        flow = DnsFlow(fetcher)
        await flow.validate_proof(DnsVerificationProof(statement, await ed25519_signer.sign(text)))

        assert statement.prefix == "proof"
        fetcher.fetch_dns_txt.assert_awaited_once_with("example.com", "proof")
        assert "_proof" in flow.instructions().witness

    async def test_evidence_names_configured_server(self, fetcher, proof):
        fetcher.fetch_dns_txt.return_value = [proof.generate_statement()]

        content = await DnsFlow(fetcher, dns_server="192.0.2.53").validate_proof(proof)

        assert content.evidence()[0]["dnsServer"] == "192.0.2.53"

    async def test_evidence_omits_unknown_server(self, fetcher, proof):
        fetcher.fetch_dns_txt.return_value = [proof.generate_statement()]

        content = await DnsFlow(fetcher).validate_proof(proof)

        assert content.dns_server is None
        assert "dnsServer" not in content.evidence()[0]

    async def test_evidence_names_resolver_nameservers(self, proof):
        rdata = MagicMock()
        rdata.strings = [proof.generate_statement().encode()]
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=[rdata])
        fetcher = DnsResolverFetcher(nameservers=["9.9.9.9", "1.1.1.1"], timeout=1.0)

        with patch("dns.asyncresolver.Resolver", return_value=resolver):
            content = await DnsFlow(fetcher).validate_proof(proof)

        assert content.evidence()[0]["dnsServer"] == "9.9.9.9,1.1.1.1"


# =============================================================================
# EMAIL
# =============================================================================


class TestEmailFlow:
    @pytest.fixture
    def sender(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    def flow(self, issuer, sender) -> EmailFlow:
        return EmailFlow(issuer, sender=sender, max_elapsed_minutes=15)

    @pytest.fixture
    def statement(self, web_signer) -> EmailVerificationStatement:
        return EmailVerificationStatement("alice@example.com", web_signer.as_subject())

    async def test_full_exchange(self, flow, sender, statement, web_signer):
        response = await flow.statement(statement)
        to_addr, subject, body = sender.send.call_args.args
        challenge = body.rsplit("\n\n", 1)[-1]

        assert to_addr == "alice@example.com"
        assert subject == "Verifying ownership of Ed25519 Web Key example.com for Rebase"
        assert challenge.count(":::") == 1

        proof = EmailVerificationProof(statement, await web_signer.sign(response.statement), challenge)
        content = await flow.validate_proof(proof, response.statement)

        assert isinstance(content, EmailVerificationContent)
        assert content.subject_json()["sameAs"] == "alice@example.com"

    async def test_expired_challenge(self, flow, issuer, statement, web_signer):
        text = statement.generate_statement()
        issued = _iso(datetime.now(UTC) - timedelta(minutes=30))
        challenge = f"{await issuer.sign(f'{text}:::{issued}')}:::{issued}"
        proof = EmailVerificationProof(statement, await web_signer.sign(text), challenge)

        outcome = await flow.verify(proof, text)
        assert outcome.reason == RejectionReason.EXPIRED

    async def test_challenge_format(self, flow, statement, web_signer):
        text = statement.generate_statement()
        proof = EmailVerificationProof(statement, await web_signer.sign(text), "no-delimiter-here")

        assert (await flow.verify(proof, text)).reason == RejectionReason.INVALID_REQUEST

    async def test_forged_challenge(self, flow, statement, web_signer, other_ed25519_signer):
        text = statement.generate_statement()
        issued = _iso(datetime.now(UTC))
        forged = await other_ed25519_signer.sign(f"{text}:::{issued}")
        proof = EmailVerificationProof(statement, await web_signer.sign(text), f"{forged}:::{issued}")

        assert (await flow.verify(proof, text)).reason == RejectionReason.INVALID_SIGNATURE

    async def test_send_failure_rejects_statement(self, flow, sender, statement):
        sender.send.side_effect = FlowError(RejectionReason.EVIDENCE_UNREACHABLE, "smtp down")
        with pytest.raises(FlowError) as exc:
            await flow.statement(statement)
        assert exc.value.stage == FlowState.STATEMENT_REQUESTED.value


# =============================================================================
# SOCIAL PLATFORMS
# =============================================================================


class TestGitHubFlow:
    @pytest.fixture
    def fetcher(self) -> AsyncMock:
        return AsyncMock()

    async def _proof(self, signer, handle="alice") -> GitHubVerificationProof:
        statement = GitHubVerificationStatement(handle, signer.as_subject())
        return GitHubVerificationProof(statement, await signer.sign(statement.generate_statement()), GIST_ID)

    async def test_statement_response_has_delimiter(self, fetcher, eth_signer):
        response = await GitHubFlow(fetcher, delimiter="\n\n").statement(
            GitHubVerificationStatement("alice", eth_signer.as_subject())
        )
        assert response.delimiter == "\n\n"

    async def test_verified(self, fetcher, eth_signer):
        proof = await self._proof(eth_signer)
        text = proof.generate_statement()
        fetcher.fetch_gist.return_value = FetchedPost(author="Alice", bodies=[f"{text}\n\n{proof.signature}"])

        content = await GitHubFlow(fetcher).validate_proof(proof, text)

        assert isinstance(content, GitHubVerificationContent)
        fetcher.fetch_gist.assert_awaited_once_with(GIST_ID)

    async def test_wrong_owner(self, fetcher, eth_signer):
        proof = await self._proof(eth_signer)
        fetcher.fetch_gist.return_value = FetchedPost(author="mallory", bodies=[proof.generate_statement()])

        assert (await GitHubFlow(fetcher).verify(proof)).reason == RejectionReason.EVIDENCE_MISMATCH

    async def test_statement_not_in_gist(self, fetcher, eth_signer):
        proof = await self._proof(eth_signer)
        fetcher.fetch_gist.return_value = FetchedPost(author="alice", bodies=["something else"])

        assert (await GitHubFlow(fetcher).verify(proof)).reason == RejectionReason.EVIDENCE_MISMATCH

    async def test_unreachable(self, fetcher, eth_signer):
        proof = await self._proof(eth_signer)
        fetcher.fetch_gist.side_effect = FlowError(RejectionReason.EVIDENCE_UNREACHABLE, "503")

        assert (await GitHubFlow(fetcher).verify(proof)).reason == RejectionReason.EVIDENCE_UNREACHABLE


class TestTwitterFlow:
    async def test_verified(self, eth_signer):
        statement = TwitterVerificationStatement("alice", eth_signer.as_subject())
        text = statement.generate_statement()
        proof = TwitterVerificationProof(statement, await eth_signer.sign(text), TWEET_URL)
        fetcher = AsyncMock()
        fetcher.fetch_tweet.return_value = FetchedPost(author="alice", bodies=[f"{text}\n\n{proof.signature}"])

        outcome = await TwitterFlow(fetcher).verify(proof, text)

        assert outcome.verified
        assert outcome.content.evidence()[0]["tweetId"] == "1234567890"
        fetcher.fetch_tweet.assert_awaited_once_with("1234567890")

    async def test_retweet_by_other_account(self, eth_signer):
        statement = TwitterVerificationStatement("alice", eth_signer.as_subject())
        text = statement.generate_statement()
        proof = TwitterVerificationProof(statement, await eth_signer.sign(text), TWEET_URL)
        fetcher = AsyncMock()
        fetcher.fetch_tweet.return_value = FetchedPost(author="bob", bodies=[text])

        assert (await TwitterFlow(fetcher).verify(proof)).rejected


class TestRedditFlow:
    async def test_verified_without_author(self, web_signer):
        statement = RedditVerificationStatement("alice", web_signer.as_subject())
        text = statement.generate_statement()
        fetcher = AsyncMock()
        fetcher.fetch_reddit_profile.return_value = FetchedPost(author=None, bodies=[f"about me: {text}"])

        outcome = await RedditFlow(fetcher).verify(RedditVerificationProof(statement, await web_signer.sign(text)))

        assert outcome.verified
        fetcher.fetch_reddit_profile.assert_awaited_once_with("alice")

    async def test_other_author(self, web_signer):
        statement = RedditVerificationStatement("alice", web_signer.as_subject())
        text = statement.generate_statement()
        fetcher = AsyncMock()
        fetcher.fetch_reddit_profile.return_value = FetchedPost(author="bob", bodies=[text])

        outcome = await RedditFlow(fetcher).verify(RedditVerificationProof(statement, await web_signer.sign(text)))
        assert outcome.reason == RejectionReason.EVIDENCE_MISMATCH


class TestSoundCloudFlow:
    async def test_verified(self, web_signer):
        statement = SoundCloudVerificationStatement("alice-music", web_signer.as_subject())
        text = statement.generate_statement()
        fetcher = AsyncMock()
        fetcher.fetch_soundcloud_profile.return_value = FetchedPost(author="alice-music", bodies=[text])

        outcome = await SoundCloudFlow(fetcher).verify(
            SoundCloudVerificationProof(statement, await web_signer.sign(text))
        )
        assert outcome.verified

    async def test_case_sensitive_containment(self, web_signer):
        statement = SoundCloudVerificationStatement("alice-music", web_signer.as_subject())
        text = statement.generate_statement()
        fetcher = AsyncMock()
        fetcher.fetch_soundcloud_profile.return_value = FetchedPost(author="alice-music", bodies=[text.lower()])

        outcome = await SoundCloudFlow(fetcher).verify(
            SoundCloudVerificationProof(statement, await web_signer.sign(text))
        )
        assert outcome.reason == RejectionReason.EVIDENCE_MISMATCH


# =============================================================================
# OWNERSHIP
# =============================================================================


class TestNftOwnershipFlow:
    @pytest.fixture
    def fetcher(self) -> AsyncMock:
        fetcher = AsyncMock()
        fetcher.fetch_nft_owner.return_value = True
        return fetcher

    @pytest.fixture
    def flow(self, issuer, fetcher) -> NftOwnershipFlow:
        return NftOwnershipFlow(issuer, fetcher, max_elapsed_minutes=15)

    def _statement(self, signer, issued_at: str) -> NftOwnershipStatement:
        return NftOwnershipStatement(CONTRACT, AlchemyNetwork.ETH_MAINNET, issued_at, signer.as_subject())

    async def test_signs_challenge(self, flow, fetcher, eth_signer, recent_timestamp):
        statement = self._statement(eth_signer, recent_timestamp)
        response = await flow.statement(statement)

        assert response.statement.startswith(statement.generate_statement() + ":::")

        proof = NftOwnershipProof(statement, await eth_signer.sign(response.statement))
        content = await flow.validate_proof(proof, statement.generate_statement())

        assert isinstance(content, NftOwnershipContent)
        assert content.network == "eth-mainnet"
        fetcher.fetch_nft_owner.assert_awaited_once_with(CONTRACT, "eth-mainnet", eth_signer.address)

    async def test_signature_over_bare_statement_rejected(self, flow, fetcher, eth_signer, recent_timestamp):
        statement = self._statement(eth_signer, recent_timestamp)
        proof = NftOwnershipProof(statement, await eth_signer.sign(statement.generate_statement()))

        outcome = await flow.verify(proof)

        assert outcome.reason == RejectionReason.INVALID_SIGNATURE
        fetcher.fetch_nft_owner.assert_not_awaited()

    async def test_not_owned(self, flow, fetcher, eth_signer, recent_timestamp):
        statement = self._statement(eth_signer, recent_timestamp)
        proof = NftOwnershipProof(statement, await eth_signer.sign((await flow.statement(statement)).statement))
        fetcher.fetch_nft_owner.return_value = False

        outcome = await flow.verify(proof)
        assert outcome.reason == RejectionReason.EVIDENCE_MISMATCH

    async def test_stale_statement(self, flow, eth_signer, stale_timestamp):
        with pytest.raises(FlowError) as exc:
            await flow.statement(self._statement(eth_signer, stale_timestamp))
        assert exc.value.reason == RejectionReason.EXPIRED
        assert exc.value.stage == FlowState.STATEMENT_REQUESTED.value

    async def test_stale_proof(self, flow, eth_signer, stale_timestamp):
        statement = self._statement(eth_signer, stale_timestamp)
        proof = NftOwnershipProof(statement, await eth_signer.sign(statement.generate_statement()))

        assert (await flow.verify(proof)).reason == RejectionReason.EXPIRED

    async def test_future_timestamp(self, flow, eth_signer):
        statement = self._statement(eth_signer, _iso(datetime.now(UTC) + timedelta(hours=1)))
        with pytest.raises(FlowError) as exc:
            await flow.statement(statement)
        assert exc.value.reason == RejectionReason.INVALID_REQUEST

    async def test_only_ethereum_subjects(self, flow, web_signer, recent_timestamp):
        with pytest.raises(FlowError) as exc:
            await flow.statement(self._statement(web_signer, recent_timestamp))
        assert exc.value.reason == RejectionReason.INVALID_REQUEST

    async def test_bad_timestamp(self, flow, eth_signer):
        with pytest.raises(FlowError) as exc:
            await flow.statement(self._statement(eth_signer, "not-a-date"))
        assert exc.value.reason == RejectionReason.STATEMENT


class TestPoapOwnershipFlow:
    async def test_verified(self, issuer, eth_signer, recent_timestamp):
        fetcher = AsyncMock()
        fetcher.fetch_poap_owner.return_value = True
        flow = PoapOwnershipFlow(issuer, fetcher)
        statement = PoapOwnershipStatement(42, recent_timestamp, eth_signer.as_subject())

        response = await flow.statement(statement)
        proof = PoapOwnershipProof(statement, await eth_signer.sign(response.statement))
        outcome = await flow.verify(proof, statement.generate_statement())

        assert outcome.verified
        assert isinstance(outcome.content, PoapOwnershipContent)
        fetcher.fetch_poap_owner.assert_awaited_once_with(42, eth_signer.address)

    async def test_not_holder(self, issuer, eth_signer, recent_timestamp):
        fetcher = AsyncMock()
        fetcher.fetch_poap_owner.return_value = False
        flow = PoapOwnershipFlow(issuer, fetcher)
        statement = PoapOwnershipStatement(42, recent_timestamp, eth_signer.as_subject())
        proof = PoapOwnershipProof(statement, await eth_signer.sign((await flow.statement(statement)).statement))

        assert (await flow.verify(proof)).reason == RejectionReason.EVIDENCE_MISMATCH

    async def test_custom_delimiter(self, issuer, eth_signer, recent_timestamp):
        flow = PoapOwnershipFlow(issuer, AsyncMock(), challenge_delimiter="|")
        statement = PoapOwnershipStatement(42, recent_timestamp, eth_signer.as_subject())

        response = await flow.statement(statement)
        assert response.statement == f"{statement.generate_statement()}|{await issuer.sign(statement.generate_statement())}"


# =============================================================================
# SIGNATURE-ONLY FLOWS
# =============================================================================


class TestTwoSignatureFlows:
    async def test_two_key_verified(self, web_signer, eth_signer):
        statement = TwoKeyStatement(web_signer.as_subject(), eth_signer.as_subject())
        text = statement.generate_statement()
        proof = TwoKeyProof(statement, await web_signer.sign(text), await eth_signer.sign(text))

        outcome = await TwoKeyFlow().verify(proof, text)

        assert outcome.verified
        assert isinstance(outcome.content, TwoKeyContent)

    async def test_two_key_one_bad_signature(self, web_signer, eth_signer):
        statement = TwoKeyStatement(web_signer.as_subject(), eth_signer.as_subject())
        text = statement.generate_statement()
        proof = TwoKeyProof(statement, await web_signer.sign(text), await eth_signer.sign("something else"))

        outcome = await TwoKeyFlow().verify(proof, text)

        assert outcome.rejected
        assert outcome.reason == RejectionReason.INVALID_SIGNATURE
        assert outcome.content is None

    async def test_same_controller(self, ed25519_signer, eth_signer):
        statement = SameControllerAssertionStatement(ed25519_signer.as_subject(), eth_signer.as_subject())
        text = statement.generate_statement()
        proof = SameControllerAssertionProof(statement, await ed25519_signer.sign(text), await eth_signer.sign(text))

        assert (await SameControllerFlow().verify(proof)).verified

    async def test_two_key_flow_rejects_same_controller_proof(self, ed25519_signer, eth_signer):
        statement = SameControllerAssertionStatement(ed25519_signer.as_subject(), eth_signer.as_subject())
        proof = SameControllerAssertionProof(statement, "s1", "s2")

        assert (await TwoKeyFlow().verify(proof)).reason == RejectionReason.INVALID_REQUEST


class TestAttestationFlows:
    async def test_self_issued(self, eth_signer):
        statement = AttestationStatement(AttestationType.FOLLOW, eth_signer.as_subject(), {"target": "did:web:bob"})
        text = statement.generate_statement()

        outcome = await AttestationFlow().verify(AttestationProof(statement, await eth_signer.sign(text)), text)

        assert outcome.verified
        assert isinstance(outcome.content, AttestationContent)
        assert outcome.content.delegate is None

    async def test_signed_by_someone_else(self, eth_signer):
        other = EthereumSigner.generate()
        statement = AttestationStatement(AttestationType.FOLLOW, eth_signer.as_subject(), {"target": "did:web:bob"})
        proof = AttestationProof(statement, await other.sign(statement.generate_statement()))

        assert (await AttestationFlow().verify(proof)).reason == RejectionReason.INVALID_SIGNATURE

    async def test_invalid_fields(self, eth_signer):
        statement = AttestationStatement(AttestationType.FOLLOW, eth_signer.as_subject(), {"target": 7})
        proof = AttestationProof(statement, "0x00")

        assert (await AttestationFlow().verify(proof)).reason == RejectionReason.STATEMENT

    async def test_witnessed(self, eth_signer):
        statement = WitnessedSelfIssuedStatement(AttestationType.LIKE, eth_signer.as_subject(), {"target": "post-1"})
        text = statement.generate_statement()

        outcome = await WitnessedSelfIssuedFlow().verify(WitnessedSelfIssuedProof(statement, await eth_signer.sign(text)))

        assert outcome.verified
        assert isinstance(outcome.content, WitnessedSelfIssuedContent)
        assert outcome.content.types()[-1] == "WitnessedLike"


class TestDelegatedAttestationFlow:
    @pytest.fixture
    def session_key(self) -> Ed25519Signer:
        return Ed25519Signer.generate()

    def _delegation(self, eth_signer, session_key, types, **window) -> Delegation:
        return Delegation(
            delegator=eth_signer.did(),
            delegate_did=session_key.did(),
            actions=set(actions_for(types)),
            **window,
        )

    async def test_verified(self, eth_signer, session_key):
        statement = AttestationStatement(AttestationType.LIKE, eth_signer.as_subject(), {"target": "post-1"})
        text = statement.generate_statement()
        delegation = self._delegation(eth_signer, session_key, [AttestationType.LIKE])
        proof = DelegatedAttestationProof(statement, await session_key.sign(text), delegation)

        outcome = await DelegatedAttestationFlow().verify(proof, text)

        assert outcome.verified
        assert outcome.content.delegate == session_key.did()
        assert outcome.content.types()[-1] == "LikeDelegatedAttestation"

    async def test_action_not_granted(self, eth_signer, session_key):
        statement = AttestationStatement(AttestationType.LIKE, eth_signer.as_subject(), {"target": "post-1"})
        text = statement.generate_statement()
        delegation = self._delegation(eth_signer, session_key, [AttestationType.FOLLOW])
        proof = DelegatedAttestationProof(statement, await session_key.sign(text), delegation)

        outcome = await DelegatedAttestationFlow().verify(proof, text)

        assert outcome.reason == RejectionReason.CAPABILITY
        assert outcome.stage == FlowState.STATEMENT_SIGNED

    async def test_expired_delegation(self, eth_signer, session_key):
        statement = AttestationStatement(AttestationType.LIKE, eth_signer.as_subject(), {"target": "post-1"})
        text = statement.generate_statement()
        delegation = self._delegation(
            eth_signer,
            session_key,
            [AttestationType.LIKE],
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )
        proof = DelegatedAttestationProof(statement, await session_key.sign(text), delegation)

        assert (await DelegatedAttestationFlow().verify(proof)).reason == RejectionReason.CAPABILITY

    async def test_attestation_about_someone_else(self, eth_signer, session_key):
        other = EthereumSigner.generate()
        statement = AttestationStatement(AttestationType.LIKE, other.as_subject(), {"target": "post-1"})
        text = statement.generate_statement()
        delegation = self._delegation(eth_signer, session_key, [AttestationType.LIKE])
        proof = DelegatedAttestationProof(statement, await session_key.sign(text), delegation)

        assert (await DelegatedAttestationFlow().verify(proof)).reason == RejectionReason.CAPABILITY

    async def test_wrong_session_key(self, eth_signer, session_key, other_ed25519_signer):
        statement = AttestationStatement(AttestationType.LIKE, eth_signer.as_subject(), {"target": "post-1"})
        text = statement.generate_statement()
        delegation = self._delegation(eth_signer, session_key, [AttestationType.LIKE])
        proof = DelegatedAttestationProof(statement, await other_ed25519_signer.sign(text), delegation)

        assert (await DelegatedAttestationFlow().verify(proof)).reason == RejectionReason.INVALID_SIGNATURE

    async def test_plain_attestation_flow_rejects_delegated_proof(self, eth_signer, session_key):
        statement = AttestationStatement(AttestationType.LIKE, eth_signer.as_subject(), {"target": "post-1"})
        delegation = self._delegation(eth_signer, session_key, [AttestationType.LIKE])
        proof = DelegatedAttestationProof(statement, "00", delegation)

        assert (await AttestationFlow().verify(proof)).reason == RejectionReason.INVALID_REQUEST
