"""Key and signature encodings shared by subjects, signers and resolvers.

- hex signatures, with or without a ``0x`` prefix
- base58btc and multibase (``z`` prefix)
- did:key identifiers for Ed25519 public keys (multicodec 0xed01)
"""

from __future__ import annotations

import base64

# =============================================================================
# CONSTANTS
# =============================================================================

MULTIBASE_BASE58BTC = "z"

# Multicodec prefix for Ed25519 public key (0xed01)
MULTICODEC_ED25519_PUB = bytes([0xED, 0x01])

DID_KEY_PREFIX = "did:key:"

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


# =============================================================================
# HEX
# =============================================================================


def decode_hex(value: str, expected_length: int | None = None) -> bytes:
    """Decode a hex string, tolerating a leading ``0x``.

    Raises:
        ValueError: If the string is not hex or has the wrong byte length.
    """
    raw = value[2:] if value[:2] in ("0x", "0X") else value
    data = bytes.fromhex(raw)
    if expected_length is not None and len(data) != expected_length:
        raise ValueError(f"expected {expected_length} bytes, got {len(data)}")
    return data


# =============================================================================
# BASE58 / MULTIBASE
# =============================================================================


def base58_encode(data: bytes) -> str:
    """Encode bytes to base58 string."""
    num = int.from_bytes(data, "big")
    result = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    # Leading zero bytes map to leading '1's
    for byte in data:
        if byte == 0:
            result = BASE58_ALPHABET[0] + result
        else:
            break

    return result


def base58_decode(string: str) -> bytes:
    """Decode base58 string to bytes.

    Raises:
        ValueError: On characters outside the base58 alphabet.
    """
    num = 0
    for char in string:
        index = BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"invalid base58 character: {char!r}")
        num = num * 58 + index

    result = bytearray()
    while num > 0:
        num, remainder = divmod(num, 256)
        result.insert(0, remainder)

    for char in string:
        if char == BASE58_ALPHABET[0]:
            result.insert(0, 0)
        else:
            break

    return bytes(result)


def multibase_encode(data: bytes) -> str:
    """Encode bytes to multibase (base58btc)."""
    return MULTIBASE_BASE58BTC + base58_encode(data)


def multibase_decode(string: str) -> bytes:
    """Decode a multibase (base58btc) string."""
    if not string.startswith(MULTIBASE_BASE58BTC):
        raise ValueError(f"Unsupported multibase encoding: {string[:1]!r}")
    return base58_decode(string[1:])


# =============================================================================
# DID:KEY
# =============================================================================


def ed25519_did_key(public_key: bytes) -> str:
    """Build the did:key identifier of a raw Ed25519 public key."""
    if len(public_key) != 32:
        raise ValueError("Ed25519 public keys are 32 bytes")
    return DID_KEY_PREFIX + multibase_encode(MULTICODEC_ED25519_PUB + public_key)


def ed25519_key_from_did_key(did: str) -> bytes:
    """Extract the raw Ed25519 public key from a did:key identifier.

    Any ``#fragment`` is ignored.
    """
    if not did.startswith(DID_KEY_PREFIX):
        raise ValueError(f"not a did:key identifier: {did}")
    identifier = did[len(DID_KEY_PREFIX):].split("#", 1)[0]
    decoded = multibase_decode(identifier)
    if not decoded.startswith(MULTICODEC_ED25519_PUB):
        raise ValueError("did:key does not carry an Ed25519 public key")
    key = decoded[len(MULTICODEC_ED25519_PUB):]
    if len(key) != 32:
        raise ValueError("Ed25519 public keys are 32 bytes")
    return key


# =============================================================================
# JWK
# =============================================================================


def b64url_decode(value: str) -> bytes:
    """Decode unpadded base64url, as used by JWK members."""
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def ed25519_public_jwk(public_key: bytes) -> dict[str, str]:
    """OKP JWK for a raw Ed25519 public key."""
    return {"kty": "OKP", "crv": "Ed25519", "x": b64url_encode(public_key)}
