"""
Hello Program Client

HelloClient drives one operation through its whole lifecycle:

    RESOLVE_OPERANDS -> DERIVE -> ENCODE -> FETCH_BLOCKHASH -> ASSEMBLE
        -> SUBMIT -> AWAIT_CONFIRMATION -> FETCH_RECORD -> DONE

Any client error moves the operation to FAILED, keeping the stage it failed
in and the original error. Steps are not retried, except confirmation
polling, bounded record fetch retries, and (when configured) re-signing
with a fresh blockhash after BlockhashExpired.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .config import ClientConfig
from .core.accounts import Pubkey
from .core.errors import BlockhashExpired, HelloClientError, MissingOperand
from .core.keypair import Keypair
from .core.transactions import Instruction, SolanaTransaction, assemble_transaction
from .networking.rpc import SolanaRPC, TransactionRecord
from .programs.hello import (
    Operation,
    build_instruction,
    needs_derived_account,
    needs_destination,
    operation_name,
    operation_seed,
)
from .programs.pda import find_program_address

logger = logging.getLogger(__name__)


class Stage(Enum):
    RESOLVE_OPERANDS = "resolve-operands"
    DERIVE = "derive"
    ENCODE = "encode"
    FETCH_BLOCKHASH = "fetch-blockhash"
    ASSEMBLE = "assemble"
    SUBMIT = "submit"
    AWAIT_CONFIRMATION = "await-confirmation"
    FETCH_RECORD = "fetch-record"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationRequest:
    """
    One operation plus the operands it cannot carry in its payload.

    derive_seed names the derived account for operations without a seed of
    their own (resize targets the account created from that seed).
    """
    operation: Operation
    destination: Optional[Pubkey] = None
    derive_seed: Optional[bytes] = None


@dataclass
class OperationResult:
    request: OperationRequest
    stage: Stage = Stage.RESOLVE_OPERANDS
    failed_stage: Optional[Stage] = None
    error: Optional[HelloClientError] = None
    derived_address: Optional[Pubkey] = None
    bump: Optional[int] = None
    instruction: Optional[Instruction] = None
    transaction: Optional[SolanaTransaction] = None
    signature: Optional[str] = None
    record: Optional[TransactionRecord] = None

    @property
    def ok(self) -> bool:
        return self.stage is Stage.DONE

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None


def rpc_from_config(config: ClientConfig) -> SolanaRPC:
    return SolanaRPC(
        config.rpc_url,
        commitment=config.commitment,
        timeout=config.request_timeout,
        poll_interval=config.poll_interval,
        confirm_timeout=config.confirm_timeout,
    )


class HelloClient:
    """
    Sequences derivation, encoding, signing, submission and record fetch.

    The RPC client is shared and may serve several operations at once; the
    payer keypair is only used to sign.
    """

    def __init__(self, config: ClientConfig, rpc: SolanaRPC, payer: Keypair):
        self.config = config
        self.rpc = rpc
        self.payer = payer

    def derive(self, seed: bytes) -> Tuple[Pubkey, int]:
        """Derive the hello-program account for a seed."""
        return find_program_address(seed, self.config.program_id)

    async def run(self, request: OperationRequest) -> OperationResult:
        result = OperationResult(request)
        name = operation_name(request.operation)
        try:
            await self._run(request, result)
        except HelloClientError as e:
            result.failed_stage = result.stage
            result.stage = Stage.FAILED
            result.error = e
            logger.error("%s failed during %s: %s", name, result.failed_stage.value, e.reason)
        return result

    async def run_batch(self, requests: Sequence[OperationRequest]) -> List[OperationResult]:
        """Run independent operations concurrently over the shared RPC client."""
        return list(await asyncio.gather(*(self.run(request) for request in requests)))

    async def _run(self, request: OperationRequest, result: OperationResult) -> None:
        operation = request.operation
        name = operation_name(operation)

        result.stage = Stage.RESOLVE_OPERANDS
        seed = operation_seed(operation)
        if seed is None:
            seed = request.derive_seed
        if needs_derived_account(operation) and seed is None:
            raise MissingOperand('seed', name)
        if needs_destination(operation) and request.destination is None:
            raise MissingOperand('to', name)

        if needs_derived_account(operation):
            result.stage = Stage.DERIVE
            result.derived_address, result.bump = self.derive(seed)
            logger.info("%s: derived account %s (bump %d)", name, result.derived_address, result.bump)

        result.stage = Stage.ENCODE
        result.instruction = build_instruction(
            operation,
            self.payer.pubkey(),
            self.config.program_id,
            derived=result.derived_address,
            destination=request.destination,
        )

        refreshes_left = self.config.blockhash_retries
        while True:
            try:
                await self._submit(result)
                break
            except BlockhashExpired as e:
                if refreshes_left <= 0:
                    raise
                refreshes_left -= 1
                logger.warning("%s: %s; signing again with a fresh blockhash (%d refreshes left)",
                               name, e.reason, refreshes_left)

        result.stage = Stage.FETCH_RECORD
        result.record = await self.rpc.fetch_transaction_with_retry(
            result.signature,
            commitment=self.config.commitment,
            attempts=self.config.record_fetch_attempts,
            backoff=self.config.record_fetch_backoff,
        )

        result.stage = Stage.DONE
        logger.info("%s: done, signature %s", name, result.signature)

    async def _submit(self, result: OperationResult) -> None:
        result.stage = Stage.FETCH_BLOCKHASH
        blockhash = await self.rpc.get_latest_blockhash()

        result.stage = Stage.ASSEMBLE
        transaction = assemble_transaction([result.instruction], self.payer, blockhash)
        result.transaction = transaction

        result.stage = Stage.SUBMIT
        await self.rpc.check_blockhash_valid(transaction.last_valid_block_height)
        result.signature = await self.rpc.send_transaction(transaction)

        result.stage = Stage.AWAIT_CONFIRMATION
        await self.rpc.confirm_transaction(result.signature, transaction.last_valid_block_height)
