"""
Client Error Taxonomy

Every failure the client can report is a HelloClientError subclass carrying
a human-readable reason. Callers can branch on the family:

- InputError: bad or missing operands, caught before any network use
- DerivationError: program address derivation failed
- KeyLoadError: signing keypair could not be loaded (fatal)
- NetworkError: transport failure or malformed RPC response
- BlockhashExpired: the transaction outlived its blockhash (refresh and re-sign)
- TransactionRejected: the ledger or program refused the transaction
- RecordUnavailable / RecordNotFound: transaction record lookups
"""

from typing import Any, Optional


class HelloClientError(Exception):
    """Base class for all client errors. `reason` is kept verbatim for display."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# Input errors

class InputError(HelloClientError):
    """A required operand is missing or invalid."""


class MissingOperand(InputError):
    def __init__(self, operand: str, operation: str):
        super().__init__(f"{operation} requires operand '{operand}'")
        self.operand = operand
        self.operation = operation


class InvalidOperand(InputError):
    pass


class MissingSigner(InputError):
    pass


# Address derivation

class DerivationError(HelloClientError):
    pass


class SeedTooLong(DerivationError):
    def __init__(self, length: int, limit: int):
        super().__init__(f"Seed is {length} bytes, maximum is {limit}")
        self.length = length
        self.limit = limit


class InvalidSeeds(DerivationError):
    """The candidate address lies on the Ed25519 curve."""


class DerivationExhausted(DerivationError):
    """No bump in [0, 255] produced an off-curve address."""


# Keys

class KeyLoadError(HelloClientError):
    pass


# Network

class NetworkError(HelloClientError):
    pass


class NetworkUnavailable(NetworkError):
    """The RPC node could not be reached."""


class RpcError(NetworkError):
    """The node answered with a JSON-RPC error we could not classify."""

    def __init__(self, reason: str, code: Optional[int] = None, data: Any = None):
        super().__init__(reason)
        self.code = code
        self.data = data


# Submission

class BlockhashExpired(HelloClientError):
    """The blockhash validity window elapsed before confirmation."""


class TransactionRejected(HelloClientError):
    """The ledger explicitly refused the transaction."""

    def __init__(self, reason: str, signature: Optional[str] = None, err: Any = None):
        super().__init__(reason)
        self.signature = signature
        self.err = err          # The ledger's error object, when it sent one


# Record lookups

class RecordUnavailable(HelloClientError):
    pass


class NotYetAvailable(RecordUnavailable):
    """Record exists but has not reached the requested commitment yet."""


class RecordNotFound(HelloClientError):
    """The ledger does not know the signature."""
