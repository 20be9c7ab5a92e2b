import asyncio
import dataclasses

import pytest

from hello_client.core.accounts import SYSTEM_PROGRAM_ID
from hello_client.core.errors import (
    BlockhashExpired,
    MissingOperand,
    NetworkUnavailable,
    RpcError,
    SeedTooLong,
    TransactionRejected,
)
from hello_client.orchestrator import HelloClient, OperationRequest, Stage
from hello_client.programs.hello import (
    Allocate,
    CreateAccount,
    ResizeAccount,
    Transfer,
    TransferFrom,
    decode_instruction_data,
)
from hello_client.programs.pda import find_program_address

from conftest import PROGRAM_ID, RpcFailure, make_rpc


def le64(value):
    return value.to_bytes(8, 'little')


def run(ledger, config, payer, *requests):
    async def scenario():
        async with make_rpc(ledger) as rpc:
            client = HelloClient(config, rpc, payer)
            if len(requests) == 1:
                return await client.run(requests[0])
            return await client.run_batch(requests)

    return asyncio.run(scenario())


def sent_instruction(ledger):
    return ledger.sent[-1].message.decompile()[0]


def test_create_account(ledger, config, payer):
    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert result.ok, result.reason
    assert result.stage is Stage.DONE
    assert (result.derived_address, result.bump) == find_program_address(b"hello", PROGRAM_ID)
    assert result.instruction.data == b"\x00hello"
    assert result.signature == result.transaction.signature
    assert result.record.succeeded
    assert sent_instruction(ledger) == result.instruction


def test_resize_targets_account_created_from_seed(ledger, config, payer):
    created = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))
    resized = run(ledger, config, payer, OperationRequest(ResizeAccount(new_size=128), derive_seed=b"hello"))

    assert resized.ok, resized.reason
    assert resized.instruction.data == b"\x01" + le64(128)
    assert resized.derived_address == created.derived_address
    assert resized.instruction.accounts[1].pubkey == created.derived_address


def test_transfer(ledger, config, payer, destination):
    result = run(ledger, config, payer, OperationRequest(Transfer(amount=1000), destination=destination))

    assert result.ok, result.reason
    assert result.derived_address is None
    assert result.instruction.data == b"\x02" + le64(1000)
    assert [meta.pubkey for meta in sent_instruction(ledger).accounts] == [
        payer.pubkey(), destination, SYSTEM_PROGRAM_ID,
    ]


def test_transfer_from(ledger, config, payer, destination):
    result = run(ledger, config, payer,
                 OperationRequest(TransferFrom(seed=b"x", amount=50), destination=destination))

    assert result.ok, result.reason
    assert result.instruction.data == b"\x03" + le64(50) + b"x"
    derived, _ = find_program_address(b"x", PROGRAM_ID)
    assert [meta.pubkey for meta in sent_instruction(ledger).accounts] == [
        payer.pubkey(), derived, destination, SYSTEM_PROGRAM_ID,
    ]


def test_allocate_stays_distinct_from_resize(ledger, config, payer):
    result = run(ledger, config, payer, OperationRequest(Allocate(seed=b"hello", new_size=64)))

    assert result.ok, result.reason
    assert decode_instruction_data(sent_instruction(ledger).data) == Allocate(seed=b"hello", new_size=64)
    assert result.instruction.data[0] == 4


def test_expired_blockhash_fails_without_submission(ledger, config, payer):
    ledger.expired_blockhashes = 1

    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert not result.ok
    assert result.stage is Stage.FAILED
    assert result.failed_stage is Stage.SUBMIT
    assert isinstance(result.error, BlockhashExpired)
    assert result.signature is None
    assert 'sendTransaction' not in ledger.calls


def test_blockhash_refresh_when_enabled(ledger, config, payer):
    ledger.expired_blockhashes = 1
    config = dataclasses.replace(config, blockhash_retries=1)

    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert result.ok, result.reason
    assert ledger.calls.count('getLatestBlockhash') == 2
    assert len(ledger.sent) == 1


def test_window_closing_while_waiting(ledger, config, payer):
    ledger.pending_polls = 10 ** 6
    ledger.height_step = 200

    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert result.failed_stage is Stage.AWAIT_CONFIRMATION
    assert isinstance(result.error, BlockhashExpired)
    assert result.record is None


def test_seed_too_long_never_touches_network(ledger, config, payer):
    with pytest.raises(SeedTooLong):
        CreateAccount(seed=b"s" * 33)

    result = run(ledger, config, payer, OperationRequest(ResizeAccount(new_size=1), derive_seed=b"s" * 33))

    assert result.failed_stage is Stage.DERIVE
    assert isinstance(result.error, SeedTooLong)
    assert ledger.calls == []


@pytest.mark.parametrize("request_", [
    OperationRequest(Transfer(amount=1)),
    OperationRequest(ResizeAccount(new_size=1)),
    OperationRequest(TransferFrom(seed=b"x", amount=1)),
])
def test_missing_operands_fail_before_network(ledger, config, payer, request_):
    result = run(ledger, config, payer, request_)

    assert result.failed_stage is Stage.RESOLVE_OPERANDS
    assert isinstance(result.error, MissingOperand)
    assert ledger.calls == []


def test_rejection_reason_is_preserved(ledger, config, payer):
    reason = "Transaction simulation failed: Error processing Instruction 0: account already in use"
    ledger.send_error = RpcFailure(-32002, reason)

    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert result.failed_stage is Stage.SUBMIT
    assert isinstance(result.error, TransactionRejected)
    assert result.reason == reason


def test_network_failure(ledger, config, payer):
    ledger.unreachable = True

    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert result.failed_stage is Stage.FETCH_BLOCKHASH
    assert isinstance(result.error, NetworkUnavailable)


def test_record_fetch_retries(ledger, config, payer):
    ledger.record_delay = 2

    result = run(ledger, config, payer, OperationRequest(CreateAccount(seed=b"hello")))

    assert result.ok, result.reason
    assert ledger.calls.count('getTransaction') == 3


def test_batch_runs_independent_operations(ledger, config, payer, destination):
    results = run(ledger, config, payer,
                  OperationRequest(CreateAccount(seed=b"a")),
                  OperationRequest(CreateAccount(seed=b"b")),
                  OperationRequest(Transfer(amount=5), destination=destination))

    assert [result.ok for result in results] == [True, True, True]
    assert len({result.signature for result in results}) == 3
    assert len(ledger.sent) == 3


def test_malformed_reply_fails_only_its_operation(ledger, config, payer, monkeypatch):
    replies = iter([{"value": None}])
    answer = ledger.getLatestBlockhash
    monkeypatch.setattr(ledger, 'getLatestBlockhash', lambda params: next(replies, None) or answer(params))

    results = run(ledger, config, payer,
                  OperationRequest(CreateAccount(seed=b"a")),
                  OperationRequest(CreateAccount(seed=b"b")))

    failed = [result for result in results if not result.ok]
    assert len(failed) == 1
    assert failed[0].failed_stage is Stage.FETCH_BLOCKHASH
    assert isinstance(failed[0].error, RpcError)
    assert len(ledger.sent) == 1
