from __future__ import annotations

import time
from typing import Any, Iterable, Iterator, Optional, Tuple, Union

import base58
import requests
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction
from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from .config import COMMITMENTS, Config, load_keypair
from .errors import FetchError, InvalidInputError, SubmissionError
from .layout import (
    ACCOUNT_DISCRIMINATOR,
    AUTHORITY_OFFSET,
    PUBKEY_LEN,
    SEED_TAG,
    LayoutError,
    decode_account,
    encode_submit_args,
    u64_le,
)
from .models import U64_MAX, InvoiceRecord, RawAccountRecord, SubmissionStats
from .rpc import RpcError, RpcTransport, memcmp

LAMPORTS_PER_SOL = 1_000_000_000
MAX_SEED_LEN = 32

Identity = Union[Pubkey, bytes, bytearray, str]


def identity_bytes(identity: Identity) -> bytes:
    if isinstance(identity, Pubkey):
        return bytes(identity)
    if isinstance(identity, (bytes, bytearray)):
        raw = bytes(identity)
    elif isinstance(identity, str):
        try:
            raw = base58.b58decode(identity)
        except ValueError as exc:
            raise InvalidInputError(f"identity is not base58: {identity!r}") from exc
    else:
        raise InvalidInputError(f"unsupported identity type: {type(identity).__name__}")
    if len(raw) != PUBKEY_LEN:
        raise InvalidInputError(f"identity must be {PUBKEY_LEN} bytes, got {len(raw)}")
    return raw


def derive_account_address(
    seed_tag: Union[str, bytes],
    owner_identity: Identity,
    invoice_data_hash_id: int,
    program_id: Pubkey,
) -> Tuple[Pubkey, int]:
    """Return the ``(address, bump)`` PDA for one invoice of one owner.

    Seeds are the tag, the owner's 32 byte key and the id as 8 little-endian
    bytes, in that order.
    """
    if isinstance(seed_tag, str):
        tag = seed_tag.encode("utf-8")
    elif isinstance(seed_tag, (bytes, bytearray)):
        tag = bytes(seed_tag)
    else:
        raise InvalidInputError(f"seed tag must be str or bytes, got {type(seed_tag).__name__}")
    if len(tag) > MAX_SEED_LEN:
        raise InvalidInputError(f"seed tag longer than {MAX_SEED_LEN} bytes")
    owner = identity_bytes(owner_identity)
    if isinstance(invoice_data_hash_id, bool) or not isinstance(invoice_data_hash_id, int):
        raise InvalidInputError("invoice_data_hash_id must be an integer")
    if not 0 <= invoice_data_hash_id <= U64_MAX:
        raise InvalidInputError(f"invoice_data_hash_id out of u64 range: {invoice_data_hash_id}")
    return Pubkey.find_program_address([tag, owner, u64_le(invoice_data_hash_id)], program_id)


class InvoiceSubmissionClient:
    def __init__(
        self,
        transport: Any,
        signer: Keypair,
        program_id: Pubkey,
        include_data_account: bool = True,
        commitment: str = "confirmed",
    ):
        if commitment not in COMMITMENTS:
            raise InvalidInputError(f"unknown commitment: {commitment}")
        self.transport = transport
        self.signer = signer
        self.program_id = program_id
        self.include_data_account = include_data_account
        self.commitment = commitment

    @classmethod
    def from_config(
        cls,
        cfg: Config,
        transport: Optional[Any] = None,
        signer: Optional[Keypair] = None,
    ) -> "InvoiceSubmissionClient":
        return cls(
            transport=transport or RpcTransport(cfg.rpc_url, timeout=cfg.rpc_timeout),
            signer=signer or load_keypair(cfg.keypair_path),
            program_id=cfg.program_pubkey,
            include_data_account=cfg.include_data_account,
            commitment=cfg.commitment,
        )

    @property
    def authority(self) -> Pubkey:
        return self.signer.pubkey()

    def derive_account_address(
        self,
        seed_tag: Union[str, bytes],
        owner_identity: Identity,
        invoice_data_hash_id: int,
    ) -> Tuple[Pubkey, int]:
        return derive_account_address(seed_tag, owner_identity, invoice_data_hash_id, self.program_id)

    def data_account_for(self, record: InvoiceRecord) -> Pubkey:
        address, _ = self.derive_account_address(SEED_TAG, self.authority, record.invoice_data_hash_id)
        return address

    def build_instruction(self, record: InvoiceRecord, data_account: Optional[Pubkey] = None) -> Instruction:
        expected = self.data_account_for(record)
        if data_account is not None and data_account != expected:
            raise InvalidInputError(
                f"data account {data_account} was not derived from invoice id {record.invoice_data_hash_id}"
                f" (expected {expected})"
            )
        accounts = []
        if self.include_data_account:
            accounts.append(AccountMeta(expected, is_signer=False, is_writable=True))
        accounts.append(AccountMeta(self.authority, is_signer=True, is_writable=True))
        accounts.append(AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False))
        return Instruction(self.program_id, encode_submit_args(record), accounts)

    def build_transaction(self, instruction: Instruction, blockhash: Hash) -> Transaction:
        msg = Message.new_with_blockhash([instruction], self.authority, blockhash)
        tx = Transaction.new_unsigned(msg)
        tx.sign([self.signer], blockhash)
        return tx

    def submit(
        self,
        record: InvoiceRecord,
        *,
        data_account: Optional[Pubkey] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Send one ``submitEconomicData`` instruction and return its signature.

        ``timeout`` bounds the whole submission (blockhash lookup and send).
        Failures are raised as ``SubmissionError``; nothing is retried.
        """
        ix = self.build_instruction(record, data_account)
        deadline = time.monotonic() + timeout if timeout is not None else None
        try:
            blockhash = self.transport.get_latest_blockhash(self.commitment, timeout=_remaining(deadline))
            tx = self.build_transaction(ix, blockhash)
            return self.transport.send_transaction(
                bytes(tx),
                preflight_commitment=self.commitment,
                timeout=_remaining(deadline),
            )
        except (RpcError, requests.RequestException) as exc:
            raise SubmissionError(
                f"submitEconomicData failed for invoice id {record.invoice_data_hash_id}: {exc}"
            ) from exc

    def get_balance(self, identity: Optional[Identity] = None) -> int:
        owner = self.authority if identity is None else Pubkey.from_bytes(identity_bytes(identity))
        try:
            return self.transport.get_balance(owner, self.commitment)
        except RpcError as exc:
            raise FetchError(f"getBalance failed for {owner}: {exc}") from exc

    def sol_balance(self, identity: Optional[Identity] = None) -> float:
        return self.get_balance(identity) / LAMPORTS_PER_SOL

    def _signature_status(self, signature: str) -> Optional[dict]:
        try:
            statuses = self.transport.get_signature_statuses([signature])
        except RpcError as exc:
            raise FetchError(f"getSignatureStatuses failed for {signature}: {exc}") from exc
        status = statuses[0] if statuses else None
        if not status:
            return None
        if not isinstance(status, dict):
            raise FetchError(f"getSignatureStatuses returned a malformed status for {signature}: {status!r}")
        if status.get("err") is not None:
            return status
        reached = status.get("confirmationStatus")
        if reached in COMMITMENTS and COMMITMENTS.index(reached) >= COMMITMENTS.index(self.commitment):
            return status
        return None

    def confirm(self, signature: str, timeout: float = 60, poll_interval: float = 1.0) -> bool:
        retrying = Retrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(poll_interval),
            retry=retry_if_result(lambda status: status is None),
        )
        try:
            status = retrying(self._signature_status, signature)
        except RetryError:
            return False
        return status.get("err") is None

    def list_submissions(
        self,
        program_id: Optional[Pubkey] = None,
        *,
        authority: Optional[Identity] = None,
    ) -> Iterator[RawAccountRecord]:
        """Yield every EconomicData account of the program, decoded.

        The RPC listing is fetched on first iteration. A failing fetch or an
        undecodable account raises ``FetchError`` and ends the listing.
        """
        program = program_id if program_id is not None else self.program_id
        filters = [memcmp(0, ACCOUNT_DISCRIMINATOR)]
        if authority is not None:
            filters.append(memcmp(AUTHORITY_OFFSET, identity_bytes(authority)))
        try:
            accounts = self.transport.get_program_accounts(program, filters, self.commitment)
        except RpcError as exc:
            raise FetchError(f"getProgramAccounts failed for {program}: {exc}") from exc
        for address, data in accounts:
            try:
                owner, fields = decode_account(data)
            except LayoutError as exc:
                raise FetchError(f"cannot decode account {address}: {exc}") from exc
            yield RawAccountRecord(address=str(address), authority=str(Pubkey.from_bytes(owner)), **fields)

    def query_submissions(
        self,
        start: Optional[int] = None,
        end: Optional[int] = None,
        *,
        hsn_number: Optional[str] = None,
        amount_range: Optional[Tuple[int, int]] = None,
        authority: Optional[Identity] = None,
    ) -> Iterator[RawAccountRecord]:
        # bounds are inclusive; an empty hsn_number matches everything
        for rec in self.list_submissions(authority=authority):
            if start is not None and rec.timestamp < start:
                continue
            if end is not None and rec.timestamp > end:
                continue
            if hsn_number and rec.hsn_number != hsn_number:
                continue
            if amount_range is not None and not amount_range[0] <= rec.amount <= amount_range[1]:
                continue
            yield rec


def summarize(records: Iterable[InvoiceRecord]) -> SubmissionStats:
    stats = SubmissionStats()
    for rec in records:
        stats.total_transactions += 1
        stats.total_amount += rec.amount
        if stats.first_timestamp is None or rec.timestamp < stats.first_timestamp:
            stats.first_timestamp = rec.timestamp
        if stats.last_timestamp is None or rec.timestamp > stats.last_timestamp:
            stats.last_timestamp = rec.timestamp
    return stats


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    left = deadline - time.monotonic()
    if left <= 0:
        raise RpcError("submission deadline exceeded")
    return left
