# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Third-party evidence sources used by witness flows.

Each source is one request/response (paginated sources follow their page
cursor) with a per-request deadline. Transport failures are raised as
``FlowError(evidence_unreachable)``, which flows keep distinct from a
content mismatch. Nothing here retries.

Flows only depend on the protocols below, so tests and alternative backends
can pass any object with the right coroutine methods.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import aiohttp
import dns.asyncresolver
import dns.exception
import dns.resolver

from ..config import get_config
from ..errors import FlowError, RejectionReason

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

GITHUB_GIST_URL = "https://api.github.com/gists/{gist_id}"
TWITTER_TWEETS_URL = "https://api.twitter.com/2/tweets"
REDDIT_ABOUT_URL = "https://www.reddit.com/user/{handle}/about/.json"
SOUNDCLOUD_SEARCH_URL = "https://api-v2.soundcloud.com/search/users"
ALCHEMY_NFTS_URL = "https://{network}.g.alchemy.com/nft/v2/{api_key}/getNFTs"
POAP_SCAN_URL = "https://api.poap.tech/actions/scan/{address}"
SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"

SOUNDCLOUD_MAX_LIMIT = 200
SOUNDCLOUD_MAX_RESULTS = 10000


def _unreachable(message: str) -> FlowError:
    return FlowError(RejectionReason.EVIDENCE_UNREACHABLE, message)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class FetchedPost:
    """Public text fetched from a platform, with the account that owns it."""

    author: str | None
    bodies: list[str] = field(default_factory=list)

    def contains(self, text: str) -> bool:
        """Literal, case-sensitive containment in any body."""
        return any(text in body for body in self.bodies)


# =============================================================================
# PROTOCOLS
# =============================================================================


@runtime_checkable
class DnsTxtFetcher(Protocol):
    async def fetch_dns_txt(self, domain: str, prefix: str) -> list[str]: ...


@runtime_checkable
class GistFetcher(Protocol):
    async def fetch_gist(self, gist_id: str) -> FetchedPost: ...


@runtime_checkable
class TweetFetcher(Protocol):
    async def fetch_tweet(self, tweet_id: str) -> FetchedPost: ...


@runtime_checkable
class RedditFetcher(Protocol):
    async def fetch_reddit_profile(self, handle: str) -> FetchedPost: ...


@runtime_checkable
class SoundCloudFetcher(Protocol):
    async def fetch_soundcloud_profile(self, permalink: str) -> FetchedPost: ...


@runtime_checkable
class NftOwnerFetcher(Protocol):
    async def fetch_nft_owner(self, contract_address: str, network: str, address: str) -> bool: ...


@runtime_checkable
class PoapOwnerFetcher(Protocol):
    async def fetch_poap_owner(self, event_id: int, address: str) -> bool: ...


@runtime_checkable
class EmailSender(Protocol):
    async def send(self, to_addr: str, subject: str, body: str) -> None: ...


# =============================================================================
# DNS
# =============================================================================


class DnsResolverFetcher:
    """Reads TXT records at ``_{prefix}.{domain}`` with dnspython.

    Multi-string TXT records are joined. A missing name or an empty answer
    yields no records rather than an error.
    """

    def __init__(self, nameservers: list[str] | None = None, timeout: float | None = None):
        self.nameservers = nameservers
        self.timeout = timeout if timeout is not None else get_config().dns_timeout_seconds

    @staticmethod
    def record_name(domain: str, prefix: str) -> str:
        return f"_{prefix}.{domain}" if prefix else domain

    def dns_server(self) -> str:
        """Nameservers this fetcher queries, comma separated."""
        nameservers = self.nameservers or dns.asyncresolver.Resolver().nameservers
        return ",".join(str(nameserver) for nameserver in nameservers)

    async def fetch_dns_txt(self, domain: str, prefix: str) -> list[str]:
        query_name = self.record_name(domain, prefix)
        resolver = dns.asyncresolver.Resolver()
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout
        if self.nameservers:
            resolver.nameservers = self.nameservers

        try:
            answers = await resolver.resolve(query_name, "TXT")
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            logger.debug(f"No TXT records at {query_name}")
            return []
        except dns.exception.DNSException as e:
            logger.warning(f"DNS lookup failed for {query_name}: {e}")
            raise _unreachable(f"DNS lookup failed for {query_name}: {e}") from e

        records = []
        for rdata in answers:
            records.append(b"".join(rdata.strings).decode("utf-8", errors="replace"))
        logger.debug(f"Found {len(records)} TXT record(s) at {query_name}")
        return records


# =============================================================================
# HTTP
# =============================================================================


class HttpEvidenceFetcher:
    """aiohttp client for the HTTP evidence sources.

    Credentials default to the configured values. A shared session may be
    passed in; otherwise one is opened per request.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
        github_user_agent: str | None = None,
        twitter_bearer_token: str | None = None,
        soundcloud_client_id: str | None = None,
        alchemy_api_key: str | None = None,
        poap_api_key: str | None = None,
        soundcloud_limit: int = 100,
        soundcloud_max_offset: int = 9900,
    ):
        config = get_config()
        self._session = session
        self.timeout = timeout if timeout is not None else config.http_timeout_seconds
        self.github_user_agent = github_user_agent or config.github_user_agent
        self.twitter_bearer_token = twitter_bearer_token or config.twitter_bearer_token
        self.soundcloud_client_id = soundcloud_client_id or config.soundcloud_client_id
        self.alchemy_api_key = alchemy_api_key or config.alchemy_api_key
        self.poap_api_key = poap_api_key or config.poap_api_key

        if soundcloud_limit <= 0 or soundcloud_limit > SOUNDCLOUD_MAX_LIMIT:
            raise ValueError(f"SoundCloud limit must be between 1 and {SOUNDCLOUD_MAX_LIMIT}")
        if soundcloud_max_offset < 0 or soundcloud_max_offset + soundcloud_limit > SOUNDCLOUD_MAX_RESULTS:
            raise ValueError(f"SoundCloud max offset + limit must not exceed {SOUNDCLOUD_MAX_RESULTS}")
        self.soundcloud_limit = soundcloud_limit
        self.soundcloud_max_offset = soundcloud_max_offset

    async def _request(self, session: aiohttp.ClientSession, url: str, **kwargs: Any) -> Any:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout), **kwargs) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def get_json(
        self,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET a JSON document.

        Raises:
            FlowError: ``evidence_unreachable`` on any transport, status or
                decoding failure.
        """
        try:
            if self._session is not None:
                return await self._request(self._session, url, params=params, headers=headers)
            async with aiohttp.ClientSession() as session:
                return await self._request(session, url, params=params, headers=headers)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Evidence request to {url} failed: {e}")
            raise _unreachable(f"Could not fetch evidence from {url}: {e}") from e

    # -------------------------------------------------------------------------
    # Social
    # -------------------------------------------------------------------------

    async def fetch_gist(self, gist_id: str) -> FetchedPost:
        data = await self.get_json(
            GITHUB_GIST_URL.format(gist_id=gist_id),
            headers={"User-Agent": self.github_user_agent},
        )
        try:
            owner = data["owner"]["login"]
            files = data["files"].values()
            bodies = [f["content"] for f in files if isinstance(f.get("content"), str)]
        except (KeyError, TypeError, AttributeError) as e:
            raise _unreachable(f"Unexpected gist response for {gist_id}: {e}") from e
        return FetchedPost(author=owner, bodies=bodies)

    async def fetch_tweet(self, tweet_id: str) -> FetchedPost:
        data = await self.get_json(
            TWITTER_TWEETS_URL,
            params={"ids": tweet_id, "expansions": "author_id", "user.fields": "username"},
            headers={"Authorization": f"Bearer {self.twitter_bearer_token}"},
        )
        try:
            tweets = data.get("data") or []
            users = (data.get("includes") or {}).get("users") or []
        except AttributeError as e:
            raise _unreachable(f"Unexpected tweet response for {tweet_id}: {e}") from e

        if not tweets:
            raise _unreachable(f"No tweet found with id {tweet_id}")
        author = users[0].get("username") if users else None
        return FetchedPost(author=author, bodies=[t.get("text", "") for t in tweets])

    async def fetch_reddit_profile(self, handle: str) -> FetchedPost:
        data = await self.get_json(REDDIT_ABOUT_URL.format(handle=handle))
        try:
            about = data["data"]
            description = about["subreddit"]["public_description"]
        except (KeyError, TypeError) as e:
            raise _unreachable(f"Unexpected Reddit response for {handle}: {e}") from e
        return FetchedPost(author=about.get("name"), bodies=[description or ""])

    async def fetch_soundcloud_profile(self, permalink: str) -> FetchedPost:
        """Page through the user search until the permalink is found."""
        offset = 0
        while offset <= self.soundcloud_max_offset:
            data = await self.get_json(
                SOUNDCLOUD_SEARCH_URL,
                params={
                    "q": permalink,
                    "client_id": self.soundcloud_client_id,
                    "limit": str(self.soundcloud_limit),
                    "offset": str(offset),
                },
            )
            collection = data.get("collection") if isinstance(data, dict) else None
            if not collection:
                break
            for user in collection:
                if str(user.get("permalink", "")).lower() == permalink.lower():
                    return FetchedPost(author=user.get("permalink"), bodies=[user.get("description") or ""])
            offset += self.soundcloud_limit

        raise FlowError(
            RejectionReason.EVIDENCE_MISMATCH,
            f"No SoundCloud profile found for {permalink}",
        )

    # -------------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------------

    async def fetch_nft_owner(self, contract_address: str, network: str, address: str) -> bool:
        """Whether ``address`` holds any token from ``contract_address``."""
        url = ALCHEMY_NFTS_URL.format(network=network, api_key=self.alchemy_api_key)
        page_key: str | None = None
        target = contract_address.lower()

        while True:
            params = {"owner": address, "withMetadata": "false"}
            if page_key:
                params["pageKey"] = page_key
            data = await self.get_json(url, params=params)
            if not isinstance(data, dict):
                raise _unreachable("Unexpected NFT indexer response")

            if _owns_contract(data.get("ownedNfts") or [], target):
                return True
            page_key = data.get("pageKey")
            if not page_key:
                return False

    async def fetch_poap_owner(self, event_id: int, address: str) -> bool:
        data = await self.get_json(
            POAP_SCAN_URL.format(address=address),
            headers={"X-API-KEY": self.poap_api_key},
        )
        if not isinstance(data, list):
            raise _unreachable("Unexpected POAP response")
        return any((entry.get("event") or {}).get("id") == event_id for entry in data)


def _owns_contract(entries: Iterable[dict[str, Any]], contract_address: str) -> bool:
    for entry in entries:
        address = (entry.get("contract") or {}).get("address", "")
        if address.lower() == contract_address:
            return True
    return False


# =============================================================================
# EMAIL
# =============================================================================


class SendGridEmailSender:
    """Sends plain-text email through the SendGrid v3 API."""

    def __init__(
        self,
        api_key: str | None = None,
        from_addr: str | None = None,
        from_name: str | None = None,
        timeout: float | None = None,
    ):
        config = get_config()
        self.api_key = api_key or config.sendgrid_api_key
        self.from_addr = from_addr or config.email_from_addr
        self.from_name = from_name or config.email_from_name
        self.timeout = timeout if timeout is not None else config.http_timeout_seconds

    def payload(self, to_addr: str, subject: str, body: str) -> dict[str, Any]:
        return {
            "personalizations": [{"to": [{"email": to_addr}], "subject": subject}],
            "content": [{"type": "text/plain", "value": body}],
            "from": {"email": self.from_addr, "name": self.from_name},
        }

    async def send(self, to_addr: str, subject: str, body: str) -> None:
        """Raises FlowError(evidence_unreachable) if the email cannot be sent."""
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    SENDGRID_SEND_URL,
                    json=self.payload(to_addr, subject, body),
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    response.raise_for_status()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not send email: {e}")
            raise _unreachable(f"Could not send email: {e}") from e
        logger.info("Sent verification email")
