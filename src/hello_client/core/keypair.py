"""
Ed25519 Keypairs

Solana signs with Ed25519. A keypair file written by the Solana CLI is a JSON
array of 64 integers: the 32-byte secret seed followed by the 32-byte public
key. We load it into an ecdsa SigningKey on the Ed25519 curve.
"""

import json
from pathlib import Path
from typing import Union

from ecdsa import SigningKey, VerifyingKey, BadSignatureError
from ecdsa.curves import Ed25519
from ecdsa.errors import MalformedPointError

from .accounts import Pubkey, pubkey_from_bytes
from .errors import KeyLoadError


SECRET_LENGTH = 32
SIGNATURE_LENGTH = 64


class Keypair:
    """
    An Ed25519 signing key together with its public identity.

    The secret never leaves this object; callers get signatures, not keys.
    """

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self._pubkey = pubkey_from_bytes(signing_key.verifying_key.to_string())

    @classmethod
    def generate(cls) -> 'Keypair':
        return cls(SigningKey.generate(curve=Ed25519))

    @classmethod
    def from_seed(cls, seed: bytes) -> 'Keypair':
        if len(seed) != SECRET_LENGTH:
            raise KeyLoadError(f"Secret seed must be {SECRET_LENGTH} bytes, got {len(seed)}")
        return cls(SigningKey.from_string(bytes(seed), curve=Ed25519))

    @classmethod
    def from_bytes(cls, raw: bytes) -> 'Keypair':
        """Build from the 64-byte secret||public layout used by keypair files."""
        if len(raw) != 2 * SECRET_LENGTH:
            raise KeyLoadError(f"Keypair must be {2 * SECRET_LENGTH} bytes, got {len(raw)}")
        keypair = cls.from_seed(raw[:SECRET_LENGTH])
        if bytes(keypair.pubkey()) != bytes(raw[SECRET_LENGTH:]):
            raise KeyLoadError("Public key does not match secret key")
        return keypair

    def pubkey(self) -> Pubkey:
        return self._pubkey

    def sign(self, message: bytes) -> bytes:
        return self._signing_key.sign(message)

    def to_bytes(self) -> bytes:
        return self._signing_key.to_string() + bytes(self._pubkey)

    def __repr__(self) -> str:
        return f"Keypair({self._pubkey})"


def verify_signature(pubkey: Pubkey, signature: bytes, message: bytes) -> bool:
    """Check an Ed25519 signature against a public identity."""
    if len(signature) != SIGNATURE_LENGTH:
        return False
    try:
        verifying_key = VerifyingKey.from_string(bytes(pubkey), curve=Ed25519)
        return verifying_key.verify(signature, message)
    except (BadSignatureError, MalformedPointError):
        return False


def read_keypair_file(path: Union[str, Path]) -> Keypair:
    """
    Load a Solana CLI keypair file.

    Raises:
        KeyLoadError: file missing, unreadable, or not a valid keypair
    """
    path = Path(path).expanduser()
    try:
        content = json.loads(path.read_text())
    except OSError as e:
        raise KeyLoadError(f"Cannot read keypair file {path}: {e}")
    except json.JSONDecodeError as e:
        raise KeyLoadError(f"Keypair file {path} is not valid JSON: {e}")

    if not isinstance(content, list) or not all(isinstance(b, int) and 0 <= b < 256 for b in content):
        raise KeyLoadError(f"Keypair file {path} must contain a JSON array of bytes")

    return Keypair.from_bytes(bytes(content))


def write_keypair_file(keypair: Keypair, path: Union[str, Path]) -> Path:
    """Write a keypair in the Solana CLI format."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(keypair.to_bytes())))
    return path
