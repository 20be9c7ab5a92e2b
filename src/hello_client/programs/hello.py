"""
Hello Program Instructions

Client-side encoding for the hello program. Instruction data is a one-byte
ordinal followed by the operation's operands:

    0 CreateAccount  seed
    1 ResizeAccount  u64 new_size
    2 Transfer       u64 amount
    3 TransferFrom   u64 amount, seed
    4 Allocate       u64 new_size, seed

Integers are 8-byte little endian; seeds are appended raw as the trailing
field. The ordinals are baked into the deployed program: new operations get
new numbers, existing numbers never change.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from ..core.accounts import AccountMeta, Pubkey, SYSTEM_PROGRAM_ID
from ..core.errors import InvalidOperand, MissingOperand
from ..core.transactions import Instruction
from .pda import check_seed


U64_MAX = 2 ** 64 - 1


class HelloInstruction(IntEnum):
    CREATE = 0
    RESIZE = 1
    TRANSFER = 2
    TRANSFER_FROM = 3
    ALLOCATE = 4


def _check_u64(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOperand(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= U64_MAX:
        raise InvalidOperand(f"{name} must fit in an unsigned 64-bit integer, got {value}")
    return value


@dataclass(frozen=True)
class CreateAccount:
    seed: bytes

    kind = HelloInstruction.CREATE

    def __post_init__(self):
        object.__setattr__(self, 'seed', check_seed(self.seed))


@dataclass(frozen=True)
class ResizeAccount:
    new_size: int

    kind = HelloInstruction.RESIZE

    def __post_init__(self):
        _check_u64('new_size', self.new_size)


@dataclass(frozen=True)
class Transfer:
    amount: int

    kind = HelloInstruction.TRANSFER

    def __post_init__(self):
        _check_u64('amount', self.amount)


@dataclass(frozen=True)
class TransferFrom:
    seed: bytes
    amount: int

    kind = HelloInstruction.TRANSFER_FROM

    def __post_init__(self):
        object.__setattr__(self, 'seed', check_seed(self.seed))
        _check_u64('amount', self.amount)


@dataclass(frozen=True)
class Allocate:
    seed: bytes
    new_size: int

    kind = HelloInstruction.ALLOCATE

    def __post_init__(self):
        object.__setattr__(self, 'seed', check_seed(self.seed))
        _check_u64('new_size', self.new_size)


Operation = Union[CreateAccount, ResizeAccount, Transfer, TransferFrom, Allocate]

OPERATION_NAMES = {
    HelloInstruction.CREATE: 'create',
    HelloInstruction.RESIZE: 'resize',
    HelloInstruction.TRANSFER: 'transfer',
    HelloInstruction.TRANSFER_FROM: 'transferfrom',
    HelloInstruction.ALLOCATE: 'allocate',
}


def _u64(value: int) -> bytes:
    return value.to_bytes(8, 'little')


def encode_operation(operation: Operation) -> bytes:
    """Serialize an operation into hello-program instruction data."""
    data = bytearray([operation.kind])

    if isinstance(operation, CreateAccount):
        data.extend(operation.seed)
    elif isinstance(operation, ResizeAccount):
        data.extend(_u64(operation.new_size))
    elif isinstance(operation, Transfer):
        data.extend(_u64(operation.amount))
    elif isinstance(operation, TransferFrom):
        data.extend(_u64(operation.amount))
        data.extend(operation.seed)
    elif isinstance(operation, Allocate):
        data.extend(_u64(operation.new_size))
        data.extend(operation.seed)
    else:
        raise InvalidOperand(f"Unsupported operation {operation!r}")

    return bytes(data)


def decode_instruction_data(data: bytes) -> Operation:
    """
    Parse hello-program instruction data back into an operation.

    Raises:
        InvalidOperand: empty data, unknown ordinal or wrong payload length
    """
    if not data:
        raise InvalidOperand("Empty instruction data")

    try:
        kind = HelloInstruction(data[0])
    except ValueError:
        raise InvalidOperand(f"Unknown hello instruction ordinal {data[0]}")

    body = bytes(data[1:])

    if kind == HelloInstruction.CREATE:
        return CreateAccount(seed=body)

    if len(body) < 8:
        raise InvalidOperand(f"{OPERATION_NAMES[kind]} payload needs 8 bytes, got {len(body)}")
    value = int.from_bytes(body[:8], 'little')
    rest = body[8:]

    if kind in (HelloInstruction.RESIZE, HelloInstruction.TRANSFER) and rest:
        raise InvalidOperand(f"{len(rest)} trailing bytes after {OPERATION_NAMES[kind]} payload")

    if kind == HelloInstruction.RESIZE:
        return ResizeAccount(new_size=value)
    if kind == HelloInstruction.TRANSFER:
        return Transfer(amount=value)
    if kind == HelloInstruction.TRANSFER_FROM:
        return TransferFrom(seed=rest, amount=value)
    return Allocate(seed=rest, new_size=value)


def operation_name(operation: Operation) -> str:
    return OPERATION_NAMES[operation.kind]


def operation_seed(operation: Operation) -> Optional[bytes]:
    """The seed an operation carries in its payload, if any."""
    return getattr(operation, 'seed', None)


def needs_derived_account(operation: Operation) -> bool:
    return not isinstance(operation, Transfer)


def needs_destination(operation: Operation) -> bool:
    return isinstance(operation, (Transfer, TransferFrom))


def build_instruction(operation: Operation, payer: Optional[Pubkey], program_id: Pubkey,
                      derived: Optional[Pubkey] = None,
                      destination: Optional[Pubkey] = None) -> Instruction:
    """
    Create a hello-program instruction.

    The payer always comes first and is the only signer; the System Program
    always comes last, read-only. In between:
        create/resize/allocate: derived account (writable)
        transfer:               destination (writable)
        transferfrom:           derived source, destination (both writable)

    Raises:
        MissingOperand: an account this operation needs was not provided
    """
    name = operation_name(operation)
    if payer is None:
        raise MissingOperand('payer', name)
    if needs_derived_account(operation) and derived is None:
        raise MissingOperand('derived', name)
    if needs_destination(operation) and destination is None:
        raise MissingOperand('to', name)

    accounts = [AccountMeta.signer(payer)]
    if needs_derived_account(operation):
        accounts.append(AccountMeta.writable(derived))
    if needs_destination(operation):
        accounts.append(AccountMeta.writable(destination))
    accounts.append(AccountMeta.readonly(SYSTEM_PROGRAM_ID))

    return Instruction(
        program_id=program_id,
        accounts=tuple(accounts),
        data=encode_operation(operation),
    )
