"""Ed25519 signing key for the swap account.

The key is loaded once at startup from the PRIVATE_KEY credential and held
in memory for the lifetime of the run. Signing uses solders' ed25519
keypair; the Aptos account address is derived from the public key with the
single-key authentication scheme.

Accepted credential formats (32-byte seed, hex):
    0x<64 hex chars>
    <64 hex chars>
    ed25519-priv-0x<64 hex chars>

The seed is NEVER logged, printed, or included in any error message.
"""

from __future__ import annotations

import hashlib

from solders.keypair import Keypair

from swaploop.config import ConfigurationError

AIP80_PREFIX = "ed25519-priv-"
SEED_LENGTH = 32

# Aptos authentication key scheme byte for single Ed25519 keys
ED25519_SCHEME = b"\x00"


class SigningKey:
    """Ed25519 keypair plus the Aptos address it controls."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def public_key_bytes(self) -> bytes:
        return bytes(self._keypair.pubkey())

    @property
    def public_key_hex(self) -> str:
        return "0x" + self.public_key_bytes.hex()

    @property
    def address(self) -> str:
        """Account address: sha3_256(public_key || scheme)."""
        digest = hashlib.sha3_256(self.public_key_bytes + ED25519_SCHEME).hexdigest()
        return "0x" + digest

    def sign(self, message: bytes) -> bytes:
        """Sign raw message bytes. Returns the 64-byte signature."""
        return bytes(self._keypair.sign_message(message))

    def __repr__(self) -> str:
        return f"SigningKey(address={self.address[:10]}...)"


def _parse_seed(raw: str) -> bytes:
    text = raw.strip()
    if text.startswith(AIP80_PREFIX):
        text = text[len(AIP80_PREFIX):]
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        seed = bytes.fromhex(text)
    except ValueError:
        raise ConfigurationError("PRIVATE_KEY is not valid hex") from None
    if len(seed) != SEED_LENGTH:
        raise ConfigurationError(
            f"PRIVATE_KEY must be {SEED_LENGTH} bytes, got {len(seed)}"
        )
    return seed


def load_signing_key(raw: str) -> SigningKey:
    """Build a SigningKey from the PRIVATE_KEY credential.

    Raises:
        ConfigurationError: if the credential is empty or malformed.
    """
    if not raw or not raw.strip():
        raise ConfigurationError("PRIVATE_KEY is not set")
    return SigningKey(Keypair.from_seed(_parse_seed(raw)))
