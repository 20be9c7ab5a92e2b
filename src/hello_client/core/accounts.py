"""
Solana Account Addressing

Every account and every program on Solana is identified by a 32-byte public
key. Instructions name the accounts they touch together with how they touch
them (signer? writable?), which is what lets the runtime schedule
non-conflicting transactions in parallel.

Pubkeys are solders' Pubkey; this module adds the parsing helpers that turn
bad input into InvalidOperand, and AccountMeta, a pubkey plus its access
role inside one instruction.

Based on: https://solana.com/docs/core/accounts
"""

from dataclasses import dataclass
from enum import Enum

from solders.pubkey import Pubkey

from .errors import InvalidOperand


PUBKEY_LENGTH = 32


def parse_pubkey(text: str) -> Pubkey:
    """Parse a base58 encoded pubkey."""
    try:
        return Pubkey.from_string(text.strip())
    except ValueError as e:
        raise InvalidOperand(f"Invalid pubkey {text!r}: {e}")


def pubkey_from_bytes(raw: bytes) -> Pubkey:
    raw = bytes(raw)
    if len(raw) != PUBKEY_LENGTH:
        raise InvalidOperand(f"Pubkey must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return Pubkey(raw)


# System Program: 32 zero bytes, base58 "11111111111111111111111111111111"
SYSTEM_PROGRAM_ID = Pubkey.default()


class AccountRole(Enum):
    """How an instruction accesses an account."""
    SIGNER_WRITABLE = "signer+writable"   # the payer
    SIGNER = "signer"                     # signs but is not modified
    WRITABLE = "writable"                 # accounts being modified
    READONLY = "readonly"                 # programs and reference accounts


@dataclass(frozen=True)
class AccountMeta:
    """
    Account metadata for instruction building.

    Declaring access upfront tells the runtime which accounts need a
    signature and which may be modified.
    """
    pubkey: Pubkey       # Account public key
    is_signer: bool      # Must sign transaction
    is_writable: bool    # Can be modified

    @classmethod
    def signer(cls, pubkey: Pubkey) -> 'AccountMeta':
        return cls(pubkey, is_signer=True, is_writable=True)

    @classmethod
    def writable(cls, pubkey: Pubkey) -> 'AccountMeta':
        return cls(pubkey, is_signer=False, is_writable=True)

    @classmethod
    def readonly(cls, pubkey: Pubkey) -> 'AccountMeta':
        return cls(pubkey, is_signer=False, is_writable=False)

    @property
    def role(self) -> AccountRole:
        if self.is_signer and self.is_writable:
            return AccountRole.SIGNER_WRITABLE
        if self.is_writable:
            return AccountRole.WRITABLE
        if self.is_signer:
            return AccountRole.SIGNER
        return AccountRole.READONLY

    def __str__(self) -> str:
        """Human-readable representation."""
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{str(self.pubkey)[:8]}...{flag_str}"
