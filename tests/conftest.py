from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
import requests
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from econdata.client import InvoiceSubmissionClient
from econdata.config import DEFAULT_PROGRAM_ID
from econdata.models import InvoiceRecord
from econdata.rpc import RpcError

PROGRAM_ID = Pubkey.from_string(DEFAULT_PROGRAM_ID)


class FakeResponse:
    def __init__(self, payload: Any, status: int = 200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self) -> Any:
        return self.payload


class FakeSession:
    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.bodies: List[Dict[str, Any]] = []
        self.timeouts: List[Any] = []
        self.closed = False

    def post(self, url: str, json: Dict[str, Any], headers: Dict[str, str], timeout: Any) -> Any:
        self.bodies.append(json)
        self.timeouts.append(timeout)
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def close(self) -> None:
        self.closed = True


class StubTransport:
    """In-memory stand-in for RpcTransport recording every call."""

    def __init__(
        self,
        balance: int = 2_500_000_000,
        accounts: Optional[List[Tuple[Pubkey, bytes]]] = None,
        statuses: Optional[List[Optional[Dict[str, Any]]]] = None,
        send_error: Optional[Exception] = None,
        list_error: Optional[Exception] = None,
    ):
        self.balance = balance
        self.accounts = accounts or []
        self.statuses = statuses or [None]
        self.send_error = send_error
        self.list_error = list_error
        self.sent: List[bytes] = []
        self.calls: List[Tuple[str, Any]] = []

    def __enter__(self) -> "StubTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.calls.append(("close", None))

    def get_balance(self, pubkey: Pubkey, commitment: str = "confirmed") -> int:
        self.calls.append(("getBalance", str(pubkey)))
        return self.balance

    def get_latest_blockhash(self, commitment: str = "confirmed", timeout: Optional[float] = None) -> Hash:
        self.calls.append(("getLatestBlockhash", timeout))
        return Hash.default()

    def send_transaction(self, raw_tx: bytes, preflight_commitment: str = "confirmed",
                         skip_preflight: bool = False, timeout: Optional[float] = None) -> str:
        self.calls.append(("sendTransaction", timeout))
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(raw_tx)
        return "5Tx" + str(len(self.sent))

    def get_program_accounts(self, program_id: Pubkey, filters: Sequence[Dict[str, Any]] = (),
                             commitment: str = "confirmed") -> List[Tuple[Pubkey, bytes]]:
        self.calls.append(("getProgramAccounts", list(filters)))
        if self.list_error is not None:
            raise self.list_error
        return list(self.accounts)

    def get_signature_statuses(self, signatures: Sequence[str]) -> List[Optional[Dict[str, Any]]]:
        self.calls.append(("getSignatureStatuses", list(signatures)))
        if len(self.statuses) > 1:
            return [self.statuses.pop(0)]
        return [self.statuses[0]]


@pytest.fixture
def owner() -> Keypair:
    return Keypair.from_seed(bytes([7] * 32))


@pytest.fixture
def record() -> InvoiceRecord:
    return InvoiceRecord(
        invoiceDataHashId=1,
        invoiceData="INV12345",
        hsnNumber="HSN998877",
        amount=100000,
        quantity=50,
        timestamp=1_700_000_000_000,
        imageProof="https://example.com/proof.jpg",
    )


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def client(transport: StubTransport, owner: Keypair) -> InvoiceSubmissionClient:
    return InvoiceSubmissionClient(transport, owner, PROGRAM_ID)


def rejecting_transport() -> StubTransport:
    return StubTransport(send_error=RpcError("Transaction simulation failed", code=-32002))
