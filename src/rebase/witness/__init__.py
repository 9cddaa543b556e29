"""Rebase witness flows - third-party confirmation of signed statements.

Key components:
- base: Flow base class, FlowState, FlowOutcome, StatementResponse
- fetchers: evidence source protocols and their aiohttp / dnspython backends
- flows: one flow per claim kind
"""

from .base import (
    Flow,
    FlowOutcome,
    FlowState,
    Instructions,
    StatementResponse,
    check_window,
)
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
from .flows import (
    AttestationFlow,
    DelegatedAttestationFlow,
    DnsFlow,
    EmailFlow,
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

__all__ = [
    # Base
    "Flow",
    "FlowOutcome",
    "FlowState",
    "Instructions",
    "StatementResponse",
    "check_window",
    # Fetchers
    "DnsResolverFetcher",
    "DnsTxtFetcher",
    "EmailSender",
    "FetchedPost",
    "GistFetcher",
    "HttpEvidenceFetcher",
    "NftOwnerFetcher",
    "PoapOwnerFetcher",
    "RedditFetcher",
    "SendGridEmailSender",
    "SoundCloudFetcher",
    "TweetFetcher",
    # Flows
    "AttestationFlow",
    "DelegatedAttestationFlow",
    "DnsFlow",
    "EmailFlow",
    "GitHubFlow",
    "NftOwnershipFlow",
    "PoapOwnershipFlow",
    "RedditFlow",
    "SameControllerFlow",
    "SoundCloudFlow",
    "TwitterFlow",
    "TwoKeyFlow",
    "WitnessedSelfIssuedFlow",
]
