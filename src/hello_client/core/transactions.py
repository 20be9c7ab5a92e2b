"""
Solana Transaction and Instruction Model

This implements Solana's transaction structure where:
- Transactions contain multiple instructions that execute atomically
- All account access is declared upfront in a single ordered key list
- Instructions reference accounts and programs by index into that list
- Signatures cover the serialized message, including a recent blockhash

The wire format is Solana's legacy transaction format: length prefixes are
compact-u16 ("shortvec") varints, keys and blockhashes are raw 32 bytes and
signatures raw 64 bytes.

Based on: https://solana.com/docs/core/transactions
"""

import base64
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

import base58

from .accounts import AccountMeta, Pubkey, PUBKEY_LENGTH, pubkey_from_bytes
from .errors import InvalidOperand, MissingSigner
from .keypair import Keypair, SIGNATURE_LENGTH, verify_signature


BLOCKHASH_LENGTH = 32


# Compact-u16 length prefixes

def encode_length(value: int) -> bytes:
    """Encode a length as a compact-u16: 7 bits per byte, high bit = continue."""
    if not 0 <= value <= 0xFFFF:
        raise InvalidOperand(f"Length {value} does not fit in compact-u16")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_length(data: bytes, offset: int) -> Tuple[int, int]:
    """Decode a compact-u16 at offset. Returns (value, new_offset)."""
    value = 0
    for i in range(3):
        if offset + i >= len(data):
            raise InvalidOperand("Truncated compact-u16 length")
        byte = data[offset + i]
        value |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            return value, offset + i + 1
    raise InvalidOperand("Compact-u16 length longer than 3 bytes")


class _Reader:
    """Cursor over a byte buffer for deserialization."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def take(self, count: int) -> bytes:
        end = self.offset + count
        if end > len(self.data):
            raise InvalidOperand(f"Truncated transaction: need {count} bytes at offset {self.offset}")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def length(self) -> int:
        value, self.offset = decode_length(self.data, self.offset)
        return value


@dataclass(frozen=True)
class RecentBlockhash:
    """
    A recent blockhash and the last block height at which it is accepted.

    Transactions referencing it are valid only until the ledger passes
    last_valid_block_height (about 150 blocks, well under two minutes).
    """
    blockhash: bytes
    last_valid_block_height: Optional[int] = None

    def __post_init__(self):
        if len(self.blockhash) != BLOCKHASH_LENGTH:
            raise InvalidOperand(f"Blockhash must be {BLOCKHASH_LENGTH} bytes, got {len(self.blockhash)}")

    @classmethod
    def from_string(cls, text: str, last_valid_block_height: Optional[int] = None) -> 'RecentBlockhash':
        try:
            raw = base58.b58decode(text)
        except ValueError as e:
            raise InvalidOperand(f"Invalid base58 blockhash {text!r}: {e}")
        return cls(raw, last_valid_block_height)

    def __str__(self) -> str:
        return base58.b58encode(self.blockhash).decode('ascii')


@dataclass(frozen=True)
class MessageHeader:
    """
    Transaction message header with account access metadata.

    This tells the runtime how many accounts need to sign and
    which accounts are read-only vs writable.
    """
    num_required_signatures: int         # Number of signatures required
    num_readonly_signed_accounts: int    # Read-only accounts that must sign
    num_readonly_unsigned_accounts: int  # Read-only accounts (no signature)


@dataclass(frozen=True)
class CompiledInstruction:
    """
    Instruction compiled to reference accounts by index.

    Instead of embedding full account keys, we reference them by their
    position in the transaction's account array.
    """
    program_id_index: int           # Index into account_keys for program
    accounts: Tuple[int, ...]       # Indices into account_keys
    data: bytes                     # Program-specific instruction data

    def __str__(self) -> str:
        return f"Instruction(program_id_index={self.program_id_index}, accounts={list(self.accounts)}, data_len={len(self.data)})"


@dataclass(frozen=True)
class TransactionMessage:
    """
    The transaction message: everything the signatures cover.
    """
    header: MessageHeader
    account_keys: Tuple[Pubkey, ...]     # All account public keys referenced
    recent_blockhash: bytes              # Recent blockhash for replay protection
    instructions: Tuple[CompiledInstruction, ...]

    def serialize(self) -> bytes:
        """Serialize message to Solana's legacy binary format for signing and transmission."""
        parts = [bytes([
            self.header.num_required_signatures,
            self.header.num_readonly_signed_accounts,
            self.header.num_readonly_unsigned_accounts,
        ])]

        parts.append(encode_length(len(self.account_keys)))
        parts.extend(bytes(key) for key in self.account_keys)

        parts.append(self.recent_blockhash)

        parts.append(encode_length(len(self.instructions)))
        for instruction in self.instructions:
            parts.append(bytes([instruction.program_id_index]))
            parts.append(encode_length(len(instruction.accounts)))
            parts.append(bytes(instruction.accounts))
            parts.append(encode_length(len(instruction.data)))
            parts.append(instruction.data)

        return b''.join(parts)

    @classmethod
    def _read(cls, reader: _Reader) -> 'TransactionMessage':
        first = reader.byte()
        if first & 0x80:
            raise InvalidOperand(f"Versioned message (v{first & 0x7F}) is not a legacy message")
        header = MessageHeader(first, reader.byte(), reader.byte())

        account_keys = tuple(pubkey_from_bytes(reader.take(PUBKEY_LENGTH)) for _ in range(reader.length()))
        recent_blockhash = reader.take(BLOCKHASH_LENGTH)

        instructions = []
        for _ in range(reader.length()):
            program_id_index = reader.byte()
            accounts = tuple(reader.take(reader.length()))
            data = reader.take(reader.length())
            instructions.append(CompiledInstruction(program_id_index, accounts, data))

        return cls(header, account_keys, recent_blockhash, tuple(instructions))

    @classmethod
    def deserialize(cls, raw: bytes) -> 'TransactionMessage':
        return cls._read(_Reader(raw))

    def signer_keys(self) -> Tuple[Pubkey, ...]:
        return self.account_keys[:self.header.num_required_signatures]

    def is_writable(self, index: int) -> bool:
        header = self.header
        if index < header.num_required_signatures:
            return index < header.num_required_signatures - header.num_readonly_signed_accounts
        return index < len(self.account_keys) - header.num_readonly_unsigned_accounts

    def decompile(self) -> List['Instruction']:
        """Expand compiled instructions back into Instruction objects."""
        result = []
        for compiled in self.instructions:
            metas = tuple(
                AccountMeta(
                    self.account_keys[index],
                    is_signer=index < self.header.num_required_signatures,
                    is_writable=self.is_writable(index),
                )
                for index in compiled.accounts
            )
            result.append(Instruction(self.account_keys[compiled.program_id_index], metas, compiled.data))
        return result


@dataclass(frozen=True)
class SolanaTransaction:
    """
    A signed transaction ready for submission.

    Signatures are ordered like the message's signer keys. The object is
    frozen: a different message needs a new TransactionBuilder and new
    signatures.
    """
    signatures: Tuple[bytes, ...]       # Ed25519 signatures, 64 bytes each
    message: TransactionMessage
    last_valid_block_height: Optional[int] = None

    @property
    def signature(self) -> str:
        """The transaction id: the fee payer's signature in base58."""
        if not self.signatures:
            raise MissingSigner("Transaction has no signatures")
        return base58.b58encode(self.signatures[0]).decode('ascii')

    def signature_map(self) -> Dict[Pubkey, bytes]:
        return dict(zip(self.message.signer_keys(), self.signatures))

    def verify_signatures(self) -> bool:
        """
        Verify all transaction signatures.

        Each required signer must provide a valid Ed25519 signature
        over the serialized message.
        """
        message_data = self.message.serialize()
        signer_keys = self.message.signer_keys()

        if len(self.signatures) != len(signer_keys):
            return False

        return all(
            verify_signature(key, signature, message_data)
            for key, signature in zip(signer_keys, self.signatures)
        )

    def get_fee_payer(self) -> Pubkey:
        """Get the fee payer (always the first signer)."""
        if not self.message.account_keys:
            raise InvalidOperand("Transaction has no accounts")
        return self.message.account_keys[0]

    def get_writable_accounts(self) -> Set[Pubkey]:
        return {key for i, key in enumerate(self.message.account_keys) if self.message.is_writable(i)}

    def get_readonly_accounts(self) -> Set[Pubkey]:
        return set(self.message.account_keys) - self.get_writable_accounts()

    def serialize(self) -> bytes:
        parts = [encode_length(len(self.signatures))]
        parts.extend(self.signatures)
        parts.append(self.message.serialize())
        return b''.join(parts)

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode('ascii')

    @classmethod
    def deserialize(cls, raw: bytes) -> 'SolanaTransaction':
        reader = _Reader(raw)
        signatures = tuple(reader.take(SIGNATURE_LENGTH) for _ in range(reader.length()))
        message = TransactionMessage._read(reader)
        if reader.offset != len(raw):
            raise InvalidOperand(f"{len(raw) - reader.offset} trailing bytes after transaction")
        return cls(signatures, message)


@dataclass(frozen=True)
class Instruction:
    """
    High-level instruction before compilation to indices.

    Account order is part of the program's interface and is preserved.
    """
    program_id: Pubkey               # Program to invoke
    accounts: Tuple[AccountMeta, ...]  # Accounts with access metadata
    data: bytes                      # Instruction data

    def __str__(self) -> str:
        return f"Instruction({str(self.program_id)[:8]}..., {len(self.accounts)} accounts, {len(self.data)} bytes)"


class TransactionBuilder:
    """
    Builder for constructing Solana transaction messages.

    This handles ordering accounts correctly and compiling instructions
    to their binary format.
    """

    def __init__(self, fee_payer: Pubkey, recent_blockhash: RecentBlockhash):
        """
        Initialize transaction builder.

        Args:
            fee_payer: Account that pays transaction fees (must be signer)
            recent_blockhash: Recent blockhash for replay protection
        """
        self.fee_payer = fee_payer
        self.recent_blockhash = recent_blockhash
        self.instructions: List[Instruction] = []

    def add_instruction(self, instruction: Instruction) -> 'TransactionBuilder':
        """Add an instruction to the transaction (fluent interface)."""
        self.instructions.append(instruction)
        return self

    def add_instructions(self, instructions: Sequence[Instruction]) -> 'TransactionBuilder':
        """Add multiple instructions at once."""
        self.instructions.extend(instructions)
        return self

    def build(self) -> TransactionMessage:
        """
        Build the final transaction message.

        Accounts are merged across instructions (a key is a signer or
        writable if any instruction says so) and then ordered:
        1. Fee payer
        2. Writable signers
        3. Readonly signers
        4. Writable non-signers
        5. Readonly non-signers (including invoked programs)
        Keys within a group are sorted by their bytes.
        """
        if not self.instructions:
            raise InvalidOperand("Transaction needs at least one instruction")

        signer_accounts = {self.fee_payer}
        writable_accounts = {self.fee_payer}
        all_accounts = {self.fee_payer}

        for instruction in self.instructions:
            all_accounts.add(instruction.program_id)
            for account in instruction.accounts:
                all_accounts.add(account.pubkey)
                if account.is_signer:
                    signer_accounts.add(account.pubkey)
                if account.is_writable:
                    writable_accounts.add(account.pubkey)

        others = all_accounts - {self.fee_payer}
        writable_signers = sorted(others & signer_accounts & writable_accounts, key=bytes)
        readonly_signers = sorted((others & signer_accounts) - writable_accounts, key=bytes)
        writable_non_signers = sorted((others & writable_accounts) - signer_accounts, key=bytes)
        readonly_non_signers = sorted(others - signer_accounts - writable_accounts, key=bytes)

        account_keys = ([self.fee_payer] + writable_signers + readonly_signers
                        + writable_non_signers + readonly_non_signers)
        if len(account_keys) > 256:
            raise InvalidOperand(f"Transaction references {len(account_keys)} accounts, limit is 256")

        account_index = {key: i for i, key in enumerate(account_keys)}

        compiled_instructions = tuple(
            CompiledInstruction(
                program_id_index=account_index[instruction.program_id],
                accounts=tuple(account_index[acc.pubkey] for acc in instruction.accounts),
                data=instruction.data,
            )
            for instruction in self.instructions
        )

        header = MessageHeader(
            num_required_signatures=1 + len(writable_signers) + len(readonly_signers),
            num_readonly_signed_accounts=len(readonly_signers),
            num_readonly_unsigned_accounts=len(readonly_non_signers),
        )

        return TransactionMessage(
            header=header,
            account_keys=tuple(account_keys),
            recent_blockhash=self.recent_blockhash.blockhash,
            instructions=compiled_instructions,
        )


def sign_transaction(message: TransactionMessage, signers: Sequence[Keypair],
                     last_valid_block_height: Optional[int] = None) -> SolanaTransaction:
    """
    Sign a transaction message with the provided keypairs.

    Args:
        message: Transaction message to sign
        signers: Keypairs for every required signer, in any order
        last_valid_block_height: Validity window of the message's blockhash

    Returns:
        Fully signed transaction ready for submission
    """
    by_pubkey = {keypair.pubkey(): keypair for keypair in signers}
    message_data = message.serialize()
    signatures = []

    for signer_key in message.signer_keys():
        keypair = by_pubkey.get(signer_key)
        if keypair is None:
            raise MissingSigner(f"No keypair provided for required signer {signer_key}")
        signatures.append(keypair.sign(message_data))

    return SolanaTransaction(
        signatures=tuple(signatures),
        message=message,
        last_valid_block_height=last_valid_block_height,
    )


def assemble_transaction(instructions: Sequence[Instruction], payer: Keypair,
                         recent_blockhash: RecentBlockhash) -> SolanaTransaction:
    """Build and sign a transaction paid for and signed by `payer`."""
    message = (TransactionBuilder(payer.pubkey(), recent_blockhash)
               .add_instructions(instructions)
               .build())
    return sign_transaction(message, [payer], recent_blockhash.last_valid_block_height)
