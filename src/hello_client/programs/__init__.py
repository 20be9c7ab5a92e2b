"""
Hello Program Support

- Program Derived Addresses (PDA): deterministic program-owned accounts
- Hello program instructions: operations, wire encoding, account lists
"""

from .pda import MAX_SEED_LEN, create_program_address, find_program_address, is_on_curve
from .hello import (
    HelloInstruction,
    Operation,
    CreateAccount,
    ResizeAccount,
    Transfer,
    TransferFrom,
    Allocate,
    encode_operation,
    decode_instruction_data,
    build_instruction,
)

__all__ = [
    'MAX_SEED_LEN', 'create_program_address', 'find_program_address', 'is_on_curve',
    'HelloInstruction', 'Operation',
    'CreateAccount', 'ResizeAccount', 'Transfer', 'TransferFrom', 'Allocate',
    'encode_operation', 'decode_instruction_data', 'build_instruction',
]
