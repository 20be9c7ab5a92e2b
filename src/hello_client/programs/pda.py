"""
Program Derived Addresses (PDA)

A PDA is an address that deliberately has no private key: it is a SHA-256
hash that does not decode to a point on the Ed25519 curve. Only the program
it was derived from can sign for it, which lets programs own accounts.

Derivation hashes the seed, a one-byte "bump" and the program id together
with a fixed marker. The bump is searched from 255 downwards and the first
off-curve result is the canonical address, so derivation is deterministic.

The curve test is solders' Pubkey.is_on_curve. The bump search is driven
here rather than through Pubkey.find_program_address, which aborts with a
Rust panic instead of an exception when no bump is valid.

Based on: https://solana.com/docs/core/pda
"""

import hashlib
import logging
from typing import Tuple

from solders.pubkey import Pubkey

from ..core.accounts import PUBKEY_LENGTH
from ..core.errors import DerivationExhausted, InvalidSeeds, SeedTooLong

logger = logging.getLogger(__name__)

MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"


def is_on_curve(data: bytes) -> bool:
    """Check whether 32 bytes decompress to an Ed25519 point."""
    if len(data) != PUBKEY_LENGTH:
        return False
    return Pubkey(bytes(data)).is_on_curve()


def check_seed(seed: bytes) -> bytes:
    seed = bytes(seed)
    if len(seed) > MAX_SEED_LEN:
        raise SeedTooLong(len(seed), MAX_SEED_LEN)
    return seed


def create_program_address(seed: bytes, bump: int, program_id: Pubkey) -> Pubkey:
    """
    Compute the address for one specific bump.

    Raises:
        SeedTooLong: seed longer than MAX_SEED_LEN
        InvalidSeeds: the hash lands on the curve (not a valid PDA)
    """
    seed = check_seed(seed)
    if not 0 <= bump <= 255:
        raise InvalidSeeds(f"Bump {bump} is outside [0, 255]")

    digest = hashlib.sha256(seed + bytes([bump]) + bytes(program_id) + PDA_MARKER).digest()
    if is_on_curve(digest):
        raise InvalidSeeds(f"Seed {seed!r} with bump {bump} yields an on-curve address")
    return Pubkey(digest)


def find_program_address(seed: bytes, program_id: Pubkey) -> Tuple[Pubkey, int]:
    """
    Find the canonical PDA for a seed: the highest bump giving an off-curve address.

    Returns:
        Tuple of (address, bump)

    Raises:
        SeedTooLong: before any hashing if the seed is too long
        DerivationExhausted: if all 256 bumps are on-curve
    """
    seed = check_seed(seed)

    for bump in range(255, -1, -1):
        try:
            address = create_program_address(seed, bump, program_id)
        except InvalidSeeds:
            continue
        logger.debug("Derived %s (bump %d) for seed %r", address, bump, seed)
        return address, bump

    raise DerivationExhausted(f"No valid bump for seed {seed!r} under program {program_id}")
