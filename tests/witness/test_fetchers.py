"""Tests for rebase.witness.fetchers - evidence sources with mocked transport."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import dns.exception
import dns.resolver
import pytest

from rebase.errors import FlowError, RejectionReason
from rebase.witness.fetchers import (
    DnsResolverFetcher,
    DnsTxtFetcher,
    FetchedPost,
    GistFetcher,
    HttpEvidenceFetcher,
    SendGridEmailSender,
)


def _txt(*strings: bytes) -> MagicMock:
    rdata = MagicMock()
    rdata.strings = strings
    return rdata


@pytest.fixture
def fetcher() -> HttpEvidenceFetcher:
    return HttpEvidenceFetcher(
        timeout=1.0,
        twitter_bearer_token="token",
        soundcloud_client_id="client",
        alchemy_api_key="alchemy",
        poap_api_key="poap",
    )


class TestFetchedPost:
    def test_literal_containment(self):
        post = FetchedPost(author="alice", bodies=["intro\nthe statement\nsig"])
        assert post.contains("the statement")
        assert not post.contains("The Statement")

    def test_no_bodies(self):
        assert not FetchedPost(author=None).contains("x")


class TestProtocols:
    def test_implementations_satisfy_protocols(self, fetcher):
        assert isinstance(DnsResolverFetcher(timeout=1.0), DnsTxtFetcher)
        assert isinstance(fetcher, GistFetcher)


# =============================================================================
# DNS
# =============================================================================


class TestDnsResolverFetcher:
    def test_record_name(self):
        assert DnsResolverFetcher.record_name("example.com", "rebase") == "_rebase.example.com"
        assert DnsResolverFetcher.record_name("example.com", "") == "example.com"

    def test_dns_server_configured(self):
        assert DnsResolverFetcher(nameservers=["1.1.1.1", "8.8.8.8"], timeout=1.0).dns_server() == "1.1.1.1,8.8.8.8"

    def test_dns_server_from_system(self):
        resolver = MagicMock()
        resolver.nameservers = ["192.0.2.53"]

        with patch("dns.asyncresolver.Resolver", return_value=resolver):
            assert DnsResolverFetcher(timeout=1.0).dns_server() == "192.0.2.53"

    @pytest.mark.asyncio
    async def test_joins_record_strings(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=[_txt(b"example.com is ", b"linked"), _txt(b"other")])

        with patch("dns.asyncresolver.Resolver", return_value=resolver):
            records = await DnsResolverFetcher(nameservers=["1.1.1.1"], timeout=2.0).fetch_dns_txt(
                "example.com", "rebase"
            )

        assert records == ["example.com is linked", "other"]
        resolver.resolve.assert_awaited_once_with("_rebase.example.com", "TXT")
        assert resolver.nameservers == ["1.1.1.1"]
        assert resolver.lifetime == 2.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [dns.resolver.NXDOMAIN(), dns.resolver.NoAnswer()])
    async def test_missing_name_is_empty(self, error):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=error)

        with patch("dns.asyncresolver.Resolver", return_value=resolver):
            assert await DnsResolverFetcher(timeout=1.0).fetch_dns_txt("example.com", "rebase") == []

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=dns.exception.Timeout())

        with patch("dns.asyncresolver.Resolver", return_value=resolver):
            with pytest.raises(FlowError) as exc:
                await DnsResolverFetcher(timeout=1.0).fetch_dns_txt("example.com", "rebase")
        assert exc.value.reason == RejectionReason.EVIDENCE_UNREACHABLE


# =============================================================================
# HTTP TRANSPORT
# =============================================================================


class TestGetJson:
    @pytest.mark.asyncio
    async def test_shared_session(self):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        response.json = AsyncMock(return_value={"ok": True})
        session = MagicMock()
        session.get.return_value.__aenter__.return_value = response

        fetcher = HttpEvidenceFetcher(session=session, timeout=1.0)
        assert await fetcher.get_json("https://api.example/x", params={"a": "b"}) == {"ok": True}

        args, kwargs = session.get.call_args
        assert args == ("https://api.example/x",)
        assert kwargs["params"] == {"a": "b"}
        assert kwargs["timeout"].total == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError(), ValueError("not json")],
    )
    async def test_failures_are_unreachable(self, error):
        session = MagicMock()
        session.get.side_effect = error
        fetcher = HttpEvidenceFetcher(session=session, timeout=1.0)

        with pytest.raises(FlowError) as exc:
            await fetcher.get_json("https://api.example/x")
        assert exc.value.reason == RejectionReason.EVIDENCE_UNREACHABLE

    @pytest.mark.parametrize("limit, max_offset", [(0, 0), (201, 0), (100, 9901), (100, -1)])
    def test_soundcloud_bounds(self, limit, max_offset):
        with pytest.raises(ValueError):
            HttpEvidenceFetcher(soundcloud_limit=limit, soundcloud_max_offset=max_offset)


# =============================================================================
# SOURCES
# =============================================================================


class TestSocialSources:
    @pytest.mark.asyncio
    async def test_gist(self, fetcher):
        data = {
            "owner": {"login": "alice"},
            "files": {"a.txt": {"content": "statement"}, "b.bin": {"truncated": True}},
        }
        with patch.object(fetcher, "get_json", AsyncMock(return_value=data)) as get_json:
            post = await fetcher.fetch_gist("abc")

        assert post == FetchedPost(author="alice", bodies=["statement"])
        assert get_json.call_args.args[0] == "https://api.github.com/gists/abc"

    @pytest.mark.asyncio
    async def test_gist_unexpected_shape(self, fetcher):
        with patch.object(fetcher, "get_json", AsyncMock(return_value={"files": {}})):
            with pytest.raises(FlowError) as exc:
                await fetcher.fetch_gist("abc")
        assert exc.value.reason == RejectionReason.EVIDENCE_UNREACHABLE

    @pytest.mark.asyncio
    async def test_tweet(self, fetcher):
        data = {
            "data": [{"id": "1", "text": "statement\n\nsig"}],
            "includes": {"users": [{"username": "alice"}]},
        }
        with patch.object(fetcher, "get_json", AsyncMock(return_value=data)) as get_json:
            post = await fetcher.fetch_tweet("1")

        assert post == FetchedPost(author="alice", bodies=["statement\n\nsig"])
        assert get_json.call_args.kwargs["headers"] == {"Authorization": "Bearer token"}

    @pytest.mark.asyncio
    async def test_missing_tweet(self, fetcher):
        with patch.object(fetcher, "get_json", AsyncMock(return_value={"errors": []})):
            with pytest.raises(FlowError, match="No tweet found"):
                await fetcher.fetch_tweet("1")

    @pytest.mark.asyncio
    async def test_reddit(self, fetcher):
        data = {"data": {"name": "alice", "subreddit": {"public_description": "statement"}}}
        with patch.object(fetcher, "get_json", AsyncMock(return_value=data)):
            post = await fetcher.fetch_reddit_profile("alice")
        assert post == FetchedPost(author="alice", bodies=["statement"])

    @pytest.mark.asyncio
    async def test_soundcloud_pages_until_found(self, fetcher):
        pages = [
            {"collection": [{"permalink": "someone-else", "description": "x"}]},
            {"collection": [{"permalink": "Alice", "description": "statement"}]},
        ]
        with patch.object(fetcher, "get_json", AsyncMock(side_effect=pages)) as get_json:
            post = await fetcher.fetch_soundcloud_profile("alice")

        assert post.bodies == ["statement"]
        offsets = [c.kwargs["params"]["offset"] for c in get_json.call_args_list]
        assert offsets == ["0", "100"]

    @pytest.mark.asyncio
    async def test_soundcloud_not_found(self, fetcher):
        with patch.object(fetcher, "get_json", AsyncMock(return_value={"collection": []})):
            with pytest.raises(FlowError) as exc:
                await fetcher.fetch_soundcloud_profile("alice")
        assert exc.value.reason == RejectionReason.EVIDENCE_MISMATCH


class TestOwnershipSources:
    @pytest.mark.asyncio
    async def test_nft_follows_page_key(self, fetcher):
        pages = [
            {"ownedNfts": [{"contract": {"address": "0xOTHER"}}], "pageKey": "next"},
            {"ownedNfts": [{"contract": {"address": "0xABC"}}]},
        ]
        with patch.object(fetcher, "get_json", AsyncMock(side_effect=pages)) as get_json:
            assert await fetcher.fetch_nft_owner("0xabc", "eth-mainnet", "0xowner")

        first, second = get_json.call_args_list
        assert first.args[0] == "https://eth-mainnet.g.alchemy.com/nft/v2/alchemy/getNFTs"
        assert "pageKey" not in first.kwargs["params"]
        assert second.kwargs["params"]["pageKey"] == "next"

    @pytest.mark.asyncio
    async def test_nft_not_owned(self, fetcher):
        with patch.object(fetcher, "get_json", AsyncMock(return_value={"ownedNfts": []})):
            assert not await fetcher.fetch_nft_owner("0xabc", "eth-mainnet", "0xowner")

    @pytest.mark.asyncio
    async def test_poap(self, fetcher):
        data = [{"event": {"id": 7}}, {"event": {"id": 42}}]
        with patch.object(fetcher, "get_json", AsyncMock(return_value=data)) as get_json:
            assert await fetcher.fetch_poap_owner(42, "0xowner")
            assert not await fetcher.fetch_poap_owner(43, "0xowner")
        assert get_json.call_args.kwargs["headers"] == {"X-API-KEY": "poap"}

    @pytest.mark.asyncio
    async def test_poap_unexpected_shape(self, fetcher):
        with patch.object(fetcher, "get_json", AsyncMock(return_value={"message": "nope"})):
            with pytest.raises(FlowError):
                await fetcher.fetch_poap_owner(42, "0xowner")


class TestSendGridEmailSender:
    def test_payload(self):
        sender = SendGridEmailSender(api_key="k", from_addr="witness@example.com", from_name="Witness")
        payload = sender.payload("alice@example.com", "Verify", "body")

        assert payload["personalizations"] == [{"to": [{"email": "alice@example.com"}], "subject": "Verify"}]
        assert payload["from"] == {"email": "witness@example.com", "name": "Witness"}
        assert payload["content"] == [{"type": "text/plain", "value": "body"}]

    @pytest.mark.asyncio
    async def test_send_failure_is_unreachable(self):
        sender = SendGridEmailSender(api_key="k", from_addr="witness@example.com", from_name="Witness")
        with patch("aiohttp.ClientSession", side_effect=aiohttp.ClientError("down")):
            with pytest.raises(FlowError) as exc:
                await sender.send("alice@example.com", "Verify", "body")
        assert exc.value.reason == RejectionReason.EVIDENCE_UNREACHABLE
