"""
Core Ledger Types

Addresses, keypairs, the error taxonomy and the transaction model shared by
the rest of the client.
"""

from .accounts import Pubkey, AccountMeta, AccountRole, SYSTEM_PROGRAM_ID, parse_pubkey
from .keypair import Keypair, read_keypair_file, write_keypair_file, verify_signature
from .transactions import (
    SolanaTransaction,
    TransactionMessage,
    MessageHeader,
    CompiledInstruction,
    Instruction,
    RecentBlockhash,
    TransactionBuilder,
    sign_transaction,
    assemble_transaction,
)

__all__ = [
    'Pubkey', 'AccountMeta', 'AccountRole', 'SYSTEM_PROGRAM_ID', 'parse_pubkey',
    'Keypair', 'read_keypair_file', 'write_keypair_file', 'verify_signature',
    'SolanaTransaction', 'TransactionMessage', 'MessageHeader',
    'CompiledInstruction', 'Instruction', 'RecentBlockhash', 'TransactionBuilder',
    'sign_transaction', 'assemble_transaction',
]
