"""
Hello Program Client

A client for the hello program on a Solana ledger: it derives the program's
accounts, encodes instructions in the program's wire format, signs
transactions with a local keypair, submits them, waits for confirmation and
fetches the ledger's record.

Key Features:
- ✅ Program Derived Address search with canonical bump
- ✅ Bit-exact hello-program instruction encoding and decoding
- ✅ Legacy Solana transaction compilation and Ed25519 signing
- ✅ Async JSON-RPC client with confirmation tracking and blockhash expiry
- ✅ Staged operation runner with typed failures
- ✅ Command line interface

Based on: Official Solana documentation
"""

__version__ = "1.0.0"

from .config import ClientConfig
from .core import *
from .networking import SolanaRPC, SignatureStatus, TransactionRecord
from .orchestrator import HelloClient, OperationRequest, OperationResult, Stage
from .programs import (
    Allocate, CreateAccount, HelloInstruction, Operation, ResizeAccount, Transfer, TransferFrom,
    build_instruction, decode_instruction_data, encode_operation,
    create_program_address, find_program_address, is_on_curve,
)

__all__ = [
    # Core types
    'Pubkey', 'AccountMeta', 'AccountRole', 'SYSTEM_PROGRAM_ID',
    'Keypair', 'read_keypair_file',
    'Instruction', 'RecentBlockhash', 'SolanaTransaction', 'TransactionBuilder',
    'assemble_transaction', 'sign_transaction',

    # Hello program
    'HelloInstruction', 'Operation',
    'CreateAccount', 'ResizeAccount', 'Transfer', 'TransferFrom', 'Allocate',
    'encode_operation', 'decode_instruction_data', 'build_instruction',
    'find_program_address', 'create_program_address', 'is_on_curve',

    # Ledger access and orchestration
    'SolanaRPC', 'SignatureStatus', 'TransactionRecord',
    'ClientConfig', 'HelloClient', 'OperationRequest', 'OperationResult', 'Stage',
]
