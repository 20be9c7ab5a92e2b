"""
Shared fixtures: a deterministic payer, a program id and an in-memory
ledger that answers JSON-RPC requests through httpx.MockTransport.
"""

import base64
import json
from typing import Any, Dict, List, Optional

import base58
import httpx
import pytest

from hello_client.config import ClientConfig
from hello_client.core.accounts import Pubkey
from hello_client.core.keypair import Keypair
from hello_client.core.transactions import SolanaTransaction
from hello_client.networking.rpc import SolanaRPC


PROGRAM_ID = Pubkey.from_string("4fnvoc7wADwtwJ9SRUvL7KpCBTp8qztm5GqjZBFP7GTt")
BLOCKHASH = bytes(range(1, 33))


class RpcFailure(Exception):
    """Raised by a FakeLedger method to answer with a JSON-RPC error."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


class FakeLedger:
    """
    Just enough of a Solana node to exercise the client.

    Transactions are accepted if their signatures verify, become visible to
    getSignatureStatuses after `pending_polls` polls, and their records after
    `record_delay` getTransaction calls.
    """

    def __init__(self, block_height: int = 100, window: int = 150):
        self.block_height = block_height
        self.window = window
        self.height_step = 0
        self.expired_blockhashes = 0     # next N blockhashes are already expired
        self.pending_polls = 1
        self.record_delay = 0
        self.send_error: Optional[RpcFailure] = None
        self.execution_error: Any = None
        self.unreachable = False

        self.calls: List[str] = []
        self.requests: List[Dict[str, Any]] = []
        self.sent: List[SolanaTransaction] = []
        self._polls: Dict[str, int] = {}
        self._records: Dict[str, Dict[str, Any]] = {}
        self._record_waits: Dict[str, int] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)

        body = json.loads(request.content)
        self.calls.append(body['method'])
        self.requests.append(body)
        try:
            result = getattr(self, body['method'])(body['params'])
        except RpcFailure as e:
            error = {"code": e.code, "message": e.message}
            if e.data is not None:
                error["data"] = e.data
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body['id'], "error": error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body['id'], "result": result})

    def getLatestBlockhash(self, params):
        last_valid = self.block_height + self.window
        if self.expired_blockhashes > 0:
            self.expired_blockhashes -= 1
            last_valid = self.block_height - 1
        return {
            "context": {"slot": self.block_height},
            "value": {"blockhash": base58.b58encode(BLOCKHASH).decode(), "lastValidBlockHeight": last_valid},
        }

    def getBlockHeight(self, params):
        height = self.block_height
        self.block_height += self.height_step
        return height

    def sendTransaction(self, params):
        if self.send_error is not None:
            raise self.send_error
        transaction = SolanaTransaction.deserialize(base64.b64decode(params[0]))
        if not transaction.verify_signatures():
            raise RpcFailure(-32003, "Transaction signature verification failure")

        signature = transaction.signature
        self.sent.append(transaction)
        self._polls[signature] = self.pending_polls
        self._record_waits[signature] = self.record_delay
        self._records[signature] = {
            "slot": 42,
            "blockTime": 1700000000,
            "meta": {
                "err": self.execution_error,
                "fee": 5000,
                "logMessages": ["Program log: hello"],
            },
            "transaction": [params[0], "base64"],
            "version": "legacy",
        }
        return signature

    def getSignatureStatuses(self, params):
        values = []
        for signature in params[0]:
            if signature not in self._polls:
                values.append(None)
            elif self._polls[signature] > 0:
                self._polls[signature] -= 1
                values.append(None)
            else:
                values.append({
                    "slot": 42,
                    "confirmations": 1,
                    "err": self.execution_error,
                    "confirmationStatus": "confirmed",
                })
        return {"context": {"slot": 42}, "value": values}

    def getTransaction(self, params):
        signature = params[0]
        if signature not in self._records:
            return None
        if self._record_waits[signature] > 0:
            self._record_waits[signature] -= 1
            return None
        return self._records[signature]


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def payer() -> Keypair:
    return Keypair.from_seed(bytes(range(32)))


@pytest.fixture
def destination() -> Pubkey:
    return Keypair.from_seed(bytes([7] * 32)).pubkey()


@pytest.fixture
def config(tmp_path) -> ClientConfig:
    return ClientConfig(
        rpc_url="http://ledger.test",
        keypair_path=tmp_path / "id.json",
        program_id=PROGRAM_ID,
        poll_interval=0.001,
        record_fetch_backoff=0.001,
    )


def make_rpc(ledger: FakeLedger, **kwargs) -> SolanaRPC:
    """An RPC client wired to the fake ledger. Create it inside the event loop."""
    kwargs.setdefault('poll_interval', 0.001)
    return SolanaRPC("http://ledger.test", transport=httpx.MockTransport(ledger.handler), **kwargs)
