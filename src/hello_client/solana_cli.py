#!/usr/bin/env python3
"""
Hello Program CLI

A command-line interface for the hello program. Every operation derives the
program account from a seed where needed, signs one transaction with the
local keypair, waits for confirmation and prints the ledger's record.

Usage:
    hello-client create --seed hello                      # Create the seed's account
    hello-client resize --seed hello --size 128           # Resize it
    hello-client allocate --seed hello --size 256         # Allocate space in it
    hello-client transfer --amount 1000 --to <pubkey>     # Send lamports from the payer
    hello-client transferfrom --seed hello --amount 50 --to <pubkey>
    hello-client derive --seed hello                      # Print the account address
    hello-client fetch <signature>                        # Print a transaction record
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import ClientConfig
from .core.accounts import Pubkey, parse_pubkey
from .core.errors import HelloClientError
from .core.keypair import read_keypair_file
from .networking.rpc import TransactionRecord
from .orchestrator import HelloClient, OperationRequest, OperationResult, rpc_from_config
from .programs.hello import (
    Allocate,
    CreateAccount,
    ResizeAccount,
    Transfer,
    TransferFrom,
    decode_instruction_data,
)
from .programs.pda import find_program_address


def _pubkey_arg(text: str) -> Pubkey:
    try:
        return parse_pubkey(text)
    except HelloClientError as e:
        raise argparse.ArgumentTypeError(e.reason)


def _seed_arg(text: str) -> bytes:
    return text.encode('utf-8')


def build_request(args: argparse.Namespace) -> OperationRequest:
    """Turn parsed arguments into an operation request."""
    command = args.command
    if command == 'create':
        return OperationRequest(CreateAccount(seed=args.seed))
    if command == 'resize':
        return OperationRequest(ResizeAccount(new_size=args.size), derive_seed=args.seed)
    if command == 'allocate':
        return OperationRequest(Allocate(seed=args.seed, new_size=args.size))
    if command == 'transfer':
        return OperationRequest(Transfer(amount=args.amount), destination=args.to)
    if command == 'transferfrom':
        return OperationRequest(TransferFrom(seed=args.seed, amount=args.amount), destination=args.to)
    raise ValueError(f"Not an operation command: {command}")


class SolanaCLI:
    """
    Command implementations. Each returns a process exit code.
    """

    def __init__(self, config: ClientConfig):
        self.config = config

    def derive(self, seed: bytes) -> int:
        address, bump = find_program_address(seed, self.config.program_id)
        print(f"🔑 Program:  {self.config.program_id}")
        print(f"   Seed:     {seed!r}")
        print(f"   Address:  {address}")
        print(f"   Bump:     {bump}")
        return 0

    async def run_operation(self, request: OperationRequest) -> int:
        # Load the key before touching the network
        payer = read_keypair_file(self.config.keypair_path)
        print(f"👛 Payer: {payer.pubkey()}")

        async with rpc_from_config(self.config) as rpc:
            client = HelloClient(self.config, rpc, payer)
            result = await client.run(request)

        self.print_result(result)
        return 0 if result.ok else 1

    async def fetch(self, signature: str) -> int:
        async with rpc_from_config(self.config) as rpc:
            record = await rpc.get_transaction(signature, self.config.commitment)
        self.print_record(record)
        return 0

    def print_result(self, result: OperationResult) -> None:
        if result.derived_address is not None:
            print(f"📍 Account: {result.derived_address} (bump {result.bump})")

        if not result.ok:
            print(f"❌ Failed during {result.failed_stage.value}: {result.reason}")
            return

        print(f"✅ We have done it, solana signature: {result.signature}")
        self.print_record(result.record)

    def print_record(self, record: TransactionRecord) -> None:
        status = "success" if record.succeeded else f"error {record.err}"
        print(f"\n📜 Transaction {record.signature}")
        print(f"   Slot:   {record.slot}")
        print(f"   Status: {status}")
        if record.fee is not None:
            print(f"   Fee:    {record.fee:,} lamports")

        try:
            instructions = record.decode_transaction().message.decompile()
        except HelloClientError as e:
            print(f"   (transaction not decoded: {e.reason})")
            instructions = []

        for instruction in instructions:
            if instruction.program_id != self.config.program_id:
                continue
            try:
                print(f"   Instruction: {decode_instruction_data(instruction.data)}")
            except HelloClientError as e:
                print(f"   Instruction: undecodable ({e.reason})")
            for meta in instruction.accounts:
                print(f"      {meta.pubkey} {meta.role.value}")

        if record.log_messages:
            print("   Logs:")
            for line in record.log_messages:
                print(f"      {line}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hello-client',
        description="CLI application for the hello-world program",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hello-client create --seed hello
  hello-client resize --seed hello --size 128
  hello-client transfer --amount 1000 --to <pubkey>
  hello-client transferfrom --seed x --amount 50 --to <pubkey>
  hello-client derive --seed hello
        """
    )
    parser.add_argument('--url', help='RPC endpoint (default: $HELLO_RPC_URL or http://localhost:8899)')
    parser.add_argument('--keypair-path', help='Payer keypair file (default: ~/.config/solana/id.json)')
    parser.add_argument('--program-id', type=_pubkey_arg, help='Hello program id')
    parser.add_argument('--blockhash-retries', type=int,
                        help='Times to re-sign with a fresh blockhash after expiry')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log RPC traffic and stages')

    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    create_parser = subparsers.add_parser('create', help='Create the account derived from a seed')
    create_parser.add_argument('--seed', type=_seed_arg, required=True, help='Seed for the program account')

    resize_parser = subparsers.add_parser('resize', help='Resize the account derived from a seed')
    resize_parser.add_argument('--seed', type=_seed_arg, required=True, help='Seed the account was created with')
    resize_parser.add_argument('--size', type=int, required=True, help='New account size in bytes')

    allocate_parser = subparsers.add_parser('allocate', help='Allocate space in the account derived from a seed')
    allocate_parser.add_argument('--seed', type=_seed_arg, required=True, help='Seed for the program account')
    allocate_parser.add_argument('--size', type=int, required=True, help='New account size in bytes')

    transfer_parser = subparsers.add_parser('transfer', help='Send lamports from the payer')
    transfer_parser.add_argument('--amount', type=int, required=True, help='Lamports to send')
    transfer_parser.add_argument('--to', type=_pubkey_arg, required=True, help='Destination pubkey')

    transfer_from_parser = subparsers.add_parser('transferfrom', help='Send lamports from a program account')
    transfer_from_parser.add_argument('--seed', type=_seed_arg, required=True, help='Seed of the source account')
    transfer_from_parser.add_argument('--amount', type=int, required=True, help='Lamports to send')
    transfer_from_parser.add_argument('--to', type=_pubkey_arg, required=True, help='Destination pubkey')

    derive_parser = subparsers.add_parser('derive', help='Print the program account for a seed (offline)')
    derive_parser.add_argument('--seed', type=_seed_arg, required=True, help='Seed for the program account')

    fetch_parser = subparsers.add_parser('fetch', help='Print the record of a transaction')
    fetch_parser.add_argument('signature', help='Transaction signature (base58)')

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s %(name)s %(levelname)s %(message)s')

    try:
        config = ClientConfig.from_env(
            rpc_url=args.url,
            keypair_path=args.keypair_path,
            program_id=args.program_id,
            blockhash_retries=args.blockhash_retries,
        )
        cli = SolanaCLI(config)

        if args.command == 'derive':
            return cli.derive(args.seed)
        if args.command == 'fetch':
            return asyncio.run(cli.fetch(args.signature))
        return asyncio.run(cli.run_operation(build_request(args)))

    except HelloClientError as e:
        print(f"❌ Error: {e.reason}")
        return 1


def main():
    """Main CLI entry point."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        sys.exit(130)


if __name__ == '__main__':
    main()
