"""
Solana JSON-RPC Client

The ledger node is only reachable through its JSON-RPC 2.0 interface. This
module wraps the handful of methods the client needs and turns every
failure into a typed error:

- getLatestBlockhash / getBlockHeight: the blockhash validity window
- sendTransaction: submission with preflight checks
- getSignatureStatuses: confirmation polling
- getTransaction: the ledger's record of a submitted transaction

Commitment levels, from least to most durable: processed < confirmed < finalized.

Based on: https://solana.com/docs/rpc
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..core.errors import (
    BlockhashExpired,
    InvalidOperand,
    NetworkUnavailable,
    NotYetAvailable,
    RecordNotFound,
    RpcError,
    TransactionRejected,
)
from ..core.transactions import RecentBlockhash, SolanaTransaction

logger = logging.getLogger(__name__)

COMMITMENT_LEVELS = ('processed', 'confirmed', 'finalized')

# JSON-RPC error codes returned by Solana nodes
PREFLIGHT_FAILURE = -32002
SIGNATURE_VERIFICATION_FAILURE = -32003
NODE_UNHEALTHY = -32005
INVALID_PARAMS = -32602


def check_commitment(commitment: str) -> str:
    if commitment not in COMMITMENT_LEVELS:
        raise InvalidOperand(f"Unknown commitment {commitment!r}, expected one of {COMMITMENT_LEVELS}")
    return commitment


def commitment_reached(actual: Optional[str], required: str) -> bool:
    if actual not in COMMITMENT_LEVELS:
        return False
    return COMMITMENT_LEVELS.index(actual) >= COMMITMENT_LEVELS.index(required)


def _unexpected(method: str, result: Any) -> RpcError:
    return RpcError(f"RPC {method} returned an unexpected result: {result!r}")


def _context_value(method: str, result: Any, kind: type) -> Any:
    """Unwrap a {"context": ..., "value": ...} result, checking the value's type."""
    if not isinstance(result, dict) or not isinstance(result.get('value'), kind):
        raise _unexpected(method, result)
    return result['value']


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class SignatureStatus:
    """Status of a submitted transaction as reported by getSignatureStatuses."""
    slot: int
    confirmations: Optional[int]       # None once rooted
    err: Any                           # None on success
    confirmation_status: Optional[str]

    @classmethod
    def from_rpc(cls, value: Dict[str, Any]) -> 'SignatureStatus':
        return cls(
            slot=value.get('slot', 0),
            confirmations=value.get('confirmations'),
            err=value.get('err'),
            confirmation_status=value.get('confirmationStatus'),
        )

    def reached(self, commitment: str) -> bool:
        return commitment_reached(self.confirmation_status, commitment)


@dataclass(frozen=True)
class TransactionRecord:
    """
    The ledger's record of a transaction, fetched with base64 encoding.

    Records are immutable once the requested commitment is reached.
    """
    signature: str
    slot: int
    block_time: Optional[int]
    err: Any
    fee: Optional[int]
    log_messages: List[str]
    transaction: bytes                 # Raw wire bytes of the transaction
    version: Any = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.err is None

    @classmethod
    def from_rpc(cls, signature: str, result: Dict[str, Any]) -> 'TransactionRecord':
        meta = result.get('meta') or {}
        logs = (meta.get('logMessages') or []) if isinstance(meta, dict) else None
        if not isinstance(logs, list):
            raise RpcError(f"Unexpected meta in record for {signature}: {meta!r}")

        encoded = result.get('transaction')
        if isinstance(encoded, list) and encoded:
            encoded = encoded[0]
        if not isinstance(encoded, str):
            raise RpcError(f"Unexpected transaction encoding in record for {signature}")
        try:
            transaction = base64.b64decode(encoded, validate=True)
        except ValueError as e:
            raise RpcError(f"Record for {signature} has invalid base64: {e}")

        return cls(
            signature=signature,
            slot=result.get('slot', 0),
            block_time=result.get('blockTime'),
            err=meta.get('err'),
            fee=meta.get('fee'),
            log_messages=list(logs),
            transaction=transaction,
            version=result.get('version'),
            raw=result,
        )

    def decode_transaction(self) -> SolanaTransaction:
        return SolanaTransaction.deserialize(self.transaction)


def _is_blockhash_not_found(error: RpcError) -> bool:
    if 'blockhash not found' in error.reason.lower():
        return True
    data = error.data if isinstance(error.data, dict) else {}
    return data.get('err') == 'BlockhashNotFound'


class SolanaRPC:
    """
    Asynchronous client for a Solana RPC node.

    One instance can be shared by concurrent operations: it holds no
    per-request state beyond the HTTP connection pool.
    """

    def __init__(self, url: str, commitment: str = 'confirmed', timeout: float = 30.0,
                 poll_interval: float = 0.5, confirm_timeout: float = 90.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            url: RPC endpoint, e.g. http://localhost:8899
            commitment: Commitment used for queries and confirmation
            timeout: Per-request HTTP timeout in seconds
            poll_interval: Delay between confirmation polls
            confirm_timeout: Wall-clock bound on confirmation when the
                blockhash's last valid block height is unknown
            transport: Optional httpx transport (used for testing)
        """
        self.url = url
        self.commitment = check_commitment(commitment)
        self.poll_interval = poll_interval
        self.confirm_timeout = confirm_timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> 'SolanaRPC':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: Sequence[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": list(params)}
        logger.debug("RPC %s %s", method, params)

        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.TransportError as e:
            raise NetworkUnavailable(f"RPC {method} to {self.url} failed: {e}")

        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkUnavailable(f"RPC {method} returned HTTP {response.status_code}")
        if response.status_code != 200:
            raise RpcError(f"RPC {method} returned HTTP {response.status_code}: {response.text}")

        try:
            body = response.json()
        except ValueError as e:
            raise RpcError(f"RPC {method} returned invalid JSON: {e}")

        if not isinstance(body, dict):
            raise RpcError(f"RPC {method} returned a non-object response: {body!r}")
        if 'error' in body:
            error = body['error']
            if not isinstance(error, dict):
                raise RpcError(f"RPC {method} failed: {error!r}")
            raise RpcError(str(error.get('message', error)), error.get('code'), error.get('data'))

        return body.get('result')

    # Blockhash validity window

    async def get_latest_blockhash(self) -> RecentBlockhash:
        result = await self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        value = _context_value("getLatestBlockhash", result, dict)
        blockhash = value.get('blockhash')
        last_valid = value.get('lastValidBlockHeight')
        if not isinstance(blockhash, str) or not (last_valid is None or _is_int(last_valid)):
            raise _unexpected("getLatestBlockhash", result)

        try:
            return RecentBlockhash.from_string(blockhash, last_valid)
        except InvalidOperand as e:
            raise RpcError(f"RPC getLatestBlockhash returned a bad blockhash: {e.reason}")

    async def get_block_height(self) -> int:
        height = await self._call("getBlockHeight", [{"commitment": self.commitment}])
        if not _is_int(height):
            raise _unexpected("getBlockHeight", height)
        return height

    # Submission

    async def send_transaction(self, transaction: SolanaTransaction) -> str:
        """
        Submit a signed transaction without waiting for confirmation.

        Returns:
            The transaction signature (base58)

        Raises:
            BlockhashExpired: node no longer knows the blockhash
            TransactionRejected: preflight or signature checks failed
            NetworkUnavailable: node unreachable or unhealthy
        """
        if not transaction.verify_signatures():
            raise InvalidOperand("Transaction signatures do not match its message")

        params = [transaction.to_base64(), {
            "encoding": "base64",
            "skipPreflight": False,
            "preflightCommitment": self.commitment,
        }]

        try:
            signature = await self._call("sendTransaction", params)
        except RpcError as e:
            if _is_blockhash_not_found(e):
                raise BlockhashExpired(f"Blockhash expired before submission: {e.reason}")
            if e.code == NODE_UNHEALTHY:
                raise NetworkUnavailable(e.reason)
            if e.code in (PREFLIGHT_FAILURE, SIGNATURE_VERIFICATION_FAILURE, INVALID_PARAMS):
                raise TransactionRejected(e.reason, transaction.signature)
            raise

        if not isinstance(signature, str):
            raise _unexpected("sendTransaction", signature)
        logger.info("Submitted transaction %s", signature)
        return signature

    async def get_signature_statuses(self, signatures: Sequence[str],
                                     search_transaction_history: bool = False) -> List[Optional[SignatureStatus]]:
        params = [list(signatures), {"searchTransactionHistory": search_transaction_history}]
        result = await self._call("getSignatureStatuses", params)
        values = _context_value("getSignatureStatuses", result, list)
        if len(values) != len(signatures) or not all(value is None or isinstance(value, dict) for value in values):
            raise _unexpected("getSignatureStatuses", result)
        return [SignatureStatus.from_rpc(value) if value else None for value in values]

    async def _expired(self, last_valid_block_height: Optional[int], deadline: float) -> bool:
        if last_valid_block_height is None:
            return asyncio.get_running_loop().time() >= deadline
        return await self.get_block_height() > last_valid_block_height

    async def confirm_transaction(self, signature: str,
                                  last_valid_block_height: Optional[int] = None) -> SignatureStatus:
        """
        Poll until the transaction reaches this client's commitment.

        The wait ends when the blockhash validity window closes (block height
        beyond last_valid_block_height) or, if that height is unknown, after
        confirm_timeout seconds.

        Raises:
            TransactionRejected: the transaction executed with an error
            BlockhashExpired: the window closed before confirmation
        """
        deadline = asyncio.get_running_loop().time() + self.confirm_timeout

        while True:
            status = (await self.get_signature_statuses([signature]))[0]
            if status is not None:
                if status.err is not None:
                    raise TransactionRejected(json.dumps(status.err), signature, status.err)
                if status.reached(self.commitment):
                    logger.info("Transaction %s reached %s in slot %d",
                                signature, status.confirmation_status, status.slot)
                    return status

            if await self._expired(last_valid_block_height, deadline):
                # The transaction may have landed in the last block of the window
                status = (await self.get_signature_statuses([signature]))[0]
                if status is not None and status.err is None and status.reached(self.commitment):
                    return status
                raise BlockhashExpired(f"Transaction {signature} was not confirmed "
                                       f"before its blockhash expired")

            await asyncio.sleep(self.poll_interval)

    async def check_blockhash_valid(self, last_valid_block_height: Optional[int]) -> None:
        """Raise BlockhashExpired if the ledger is already past the blockhash window."""
        if last_valid_block_height is None:
            return
        height = await self.get_block_height()
        if height > last_valid_block_height:
            raise BlockhashExpired(f"Blockhash expired at block height {last_valid_block_height} "
                                   f"(current height {height}); refresh it and sign again")

    async def send_and_confirm(self, transaction: SolanaTransaction) -> str:
        """Submit a transaction and wait for confirmation. Returns its signature."""
        height = transaction.last_valid_block_height
        await self.check_blockhash_valid(height)

        signature = await self.send_transaction(transaction)
        await self.confirm_transaction(signature, height)
        return signature

    # Records

    async def get_transaction(self, signature: str, commitment: str = 'confirmed') -> TransactionRecord:
        """
        Fetch the record of a transaction.

        Raises:
            NotYetAvailable: the ledger knows the signature but the record has
                not reached `commitment` yet (retry later)
            RecordNotFound: the signature is unknown
        """
        if check_commitment(commitment) == 'processed':
            raise InvalidOperand("getTransaction requires 'confirmed' or 'finalized' commitment")

        result = await self._call("getTransaction", [signature, {
            "commitment": commitment,
            "encoding": "base64",
            "maxSupportedTransactionVersion": 0,
        }])

        if result is None:
            status = (await self.get_signature_statuses([signature], search_transaction_history=True))[0]
            if status is None:
                raise RecordNotFound(f"Transaction {signature} not found")
            raise NotYetAvailable(f"Transaction {signature} is {status.confirmation_status}, "
                                  f"not yet {commitment}")
        if not isinstance(result, dict):
            raise _unexpected("getTransaction", result)

        return TransactionRecord.from_rpc(signature, result)

    async def fetch_transaction_with_retry(self, signature: str, commitment: str = 'confirmed',
                                           attempts: int = 5, backoff: float = 0.5) -> TransactionRecord:
        """get_transaction, retrying NotYetAvailable with exponential backoff."""
        delay = backoff
        for attempt in range(1, attempts + 1):
            try:
                return await self.get_transaction(signature, commitment)
            except NotYetAvailable as e:
                if attempt >= attempts:
                    raise
                logger.warning("Record for %s unavailable (attempt %d/%d): %s",
                               signature, attempt, attempts, e.reason)
                await asyncio.sleep(delay)
                delay *= 2
        raise InvalidOperand(f"attempts must be positive, got {attempts}")
