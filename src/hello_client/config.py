"""
Client Configuration

Process-wide settings (RPC endpoint, keypair location, target program and
timing knobs) live in one frozen ClientConfig built at the CLI boundary and
passed into the client. Environment variables provide defaults:

    HELLO_RPC_URL        RPC endpoint
    HELLO_KEYPAIR_PATH   Solana CLI keypair file
    HELLO_PROGRAM_ID     hello program id (base58)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .core.accounts import Pubkey, parse_pubkey
from .core.errors import InvalidOperand
from .networking.rpc import check_commitment


DEFAULT_RPC_URL = "http://localhost:8899"
DEFAULT_KEYPAIR_PATH = Path.home() / ".config" / "solana" / "id.json"
DEFAULT_PROGRAM_ID = "4fnvoc7wADwtwJ9SRUvL7KpCBTp8qztm5GqjZBFP7GTt"


@dataclass(frozen=True)
class ClientConfig:
    rpc_url: str = DEFAULT_RPC_URL
    keypair_path: Path = DEFAULT_KEYPAIR_PATH
    program_id: Pubkey = field(default_factory=lambda: parse_pubkey(DEFAULT_PROGRAM_ID))
    commitment: str = 'confirmed'

    request_timeout: float = 30.0      # seconds per RPC request
    poll_interval: float = 0.5         # seconds between confirmation polls
    confirm_timeout: float = 90.0      # used only when the blockhash window is unknown
    record_fetch_attempts: int = 5
    record_fetch_backoff: float = 0.5  # first retry delay, doubled each time
    blockhash_retries: int = 0         # re-sign with a fresh blockhash after expiry

    def __post_init__(self):
        if not self.rpc_url.startswith(('http://', 'https://')):
            raise InvalidOperand(f"RPC URL must be http(s), got {self.rpc_url!r}")
        check_commitment(self.commitment)
        if self.commitment == 'processed':
            raise InvalidOperand("Commitment 'processed' cannot be used to fetch transaction records")
        for name in ('request_timeout', 'poll_interval', 'confirm_timeout', 'record_fetch_backoff'):
            if getattr(self, name) <= 0:
                raise InvalidOperand(f"{name} must be positive")
        if self.record_fetch_attempts < 1:
            raise InvalidOperand("record_fetch_attempts must be at least 1")
        if self.blockhash_retries < 0:
            raise InvalidOperand("blockhash_retries cannot be negative")
        object.__setattr__(self, 'keypair_path', Path(self.keypair_path).expanduser())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'ClientConfig':
        """Build a config from HELLO_* environment variables, then apply overrides (None values are ignored)."""
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get('HELLO_RPC_URL'):
            values['rpc_url'] = environ['HELLO_RPC_URL']
        if environ.get('HELLO_KEYPAIR_PATH'):
            values['keypair_path'] = Path(environ['HELLO_KEYPAIR_PATH'])
        if environ.get('HELLO_PROGRAM_ID'):
            values['program_id'] = parse_pubkey(environ['HELLO_PROGRAM_ID'])
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
