"""
Ledger Networking

The JSON-RPC boundary to a Solana node: blockhashes, submission,
confirmation tracking and transaction records.
"""

from .rpc import SolanaRPC, SignatureStatus, TransactionRecord, COMMITMENT_LEVELS

__all__ = [
    'SolanaRPC',
    'SignatureStatus',
    'TransactionRecord',
    'COMMITMENT_LEVELS',
]
