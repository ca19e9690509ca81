"""Binary layout of the economic data program (Anchor + borsh).

Instruction data is an 8 byte discriminator followed by the borsh encoded
arguments. Accounts carry their own discriminator, the authority key and the
stored invoice fields in argument order.
"""
from __future__ import annotations

import hashlib
import struct
from typing import Any, Dict, Tuple

from .models import InvoiceRecord

SEED_TAG = "economic_data"
INSTRUCTION_NAME = "submit_economic_data"
ACCOUNT_NAME = "EconomicData"

PUBKEY_LEN = 32
DISCRIMINATOR_LEN = 8

# (field, borsh type) in the order the program declares them
RECORD_FIELDS = (
    ("invoice_data_hash_id", "u64"),
    ("invoice_data", "string"),
    ("hsn_number", "string"),
    ("amount", "u64"),
    ("quantity", "u32"),
    ("timestamp", "u64"),
    ("image_proof", "string"),
)

_INT_FORMATS = {"u32": "<I", "u64": "<Q"}


class LayoutError(ValueError):
    pass


def _discriminator(namespace: str, name: str) -> bytes:
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


INSTRUCTION_DISCRIMINATOR = _discriminator("global", INSTRUCTION_NAME)
ACCOUNT_DISCRIMINATOR = _discriminator("account", ACCOUNT_NAME)

# offset of the authority key inside an account, used for memcmp filters
AUTHORITY_OFFSET = DISCRIMINATOR_LEN


def u64_le(value: int) -> bytes:
    return struct.pack("<Q", value)


def _encode_field(kind: str, value: Any) -> bytes:
    if kind == "string":
        raw = value.encode("utf-8")
        return struct.pack("<I", len(raw)) + raw
    return struct.pack(_INT_FORMATS[kind], value)


def encode_record(record: InvoiceRecord) -> bytes:
    return b"".join(_encode_field(kind, getattr(record, name)) for name, kind in RECORD_FIELDS)


def encode_submit_args(record: InvoiceRecord) -> bytes:
    return INSTRUCTION_DISCRIMINATOR + encode_record(record)


def _read(data: bytes, offset: int, size: int) -> Tuple[bytes, int]:
    end = offset + size
    if end > len(data):
        raise LayoutError(f"account data truncated at offset {offset} (need {size} bytes, have {len(data) - offset})")
    return data[offset:end], end


def _decode_field(kind: str, data: bytes, offset: int) -> Tuple[Any, int]:
    if kind == "string":
        raw_len, offset = _read(data, offset, 4)
        (length,) = struct.unpack("<I", raw_len)
        raw, offset = _read(data, offset, length)
        try:
            return raw.decode("utf-8"), offset
        except UnicodeDecodeError as exc:
            raise LayoutError(f"invalid utf-8 string at offset {offset - length}") from exc
    fmt = _INT_FORMATS[kind]
    raw, offset = _read(data, offset, struct.calcsize(fmt))
    return struct.unpack(fmt, raw)[0], offset


def decode_account(data: bytes) -> Tuple[bytes, Dict[str, Any]]:
    """Decode an EconomicData account into ``(authority_bytes, fields)``.

    Bytes after the last field are allocation padding and are ignored.
    """
    head, offset = _read(data, 0, DISCRIMINATOR_LEN)
    if head != ACCOUNT_DISCRIMINATOR:
        raise LayoutError(f"unexpected account discriminator {head.hex()}")
    authority, offset = _read(data, offset, PUBKEY_LEN)
    fields: Dict[str, Any] = {}
    for name, kind in RECORD_FIELDS:
        fields[name], offset = _decode_field(kind, data, offset)
    return authority, fields


def encode_account(authority: bytes, record: InvoiceRecord, padding: int = 0) -> bytes:
    # Mirror of what the program writes; used for fixtures and local checks.
    if len(authority) != PUBKEY_LEN:
        raise LayoutError("authority must be 32 bytes")
    return ACCOUNT_DISCRIMINATOR + authority + encode_record(record) + b"\x00" * padding
