"""Global test fixtures for the Rebase test suite.

Keys are generated fresh per test, so nothing here depends on fixed key
material or on network access.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest

from rebase.config import clear_config_cache
from rebase.resolver import KeyResolver
from rebase.signer import Ed25519Signer, EthereumSigner
from rebase.subject import DidSubject

# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Isolate each test from REBASE_* variables and the cached config."""
    for key in list(os.environ):
        if key.startswith("REBASE_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Signer Fixtures
# ============================================================================


@pytest.fixture
def ed25519_signer() -> Ed25519Signer:
    """A did:key Ed25519 signer with a fresh key."""
    return Ed25519Signer.generate()


@pytest.fixture
def other_ed25519_signer() -> Ed25519Signer:
    return Ed25519Signer.generate()


@pytest.fixture
def web_signer() -> Ed25519Signer:
    """A did:web Ed25519 signer; its key is held locally."""
    return Ed25519Signer.generate(did="did:web:example.com")


@pytest.fixture
def eth_signer() -> EthereumSigner:
    return EthereumSigner.generate()


@pytest.fixture
def issuer() -> Ed25519Signer:
    """Witness issuer key used to sign challenges."""
    return Ed25519Signer.generate(did="did:web:witness.example")


# ============================================================================
# Subject Fixtures
# ============================================================================


@pytest.fixture
def did_key_subject(ed25519_signer: Ed25519Signer) -> DidSubject:
    """A did:key subject matching ``ed25519_signer``, resolved offline."""
    return DidSubject(ed25519_signer.did(), resolver=KeyResolver())


# ============================================================================
# Time Fixtures
# ============================================================================


def rfc3339(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@pytest.fixture
def recent_timestamp() -> str:
    """An RFC 3339 timestamp one minute in the past."""
    return rfc3339(datetime.now(UTC) - timedelta(minutes=1))


@pytest.fixture
def stale_timestamp() -> str:
    """An RFC 3339 timestamp well outside the default window."""
    return rfc3339(datetime.now(UTC) - timedelta(hours=2))
