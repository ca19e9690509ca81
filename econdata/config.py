from __future__ import annotations

import json
import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from solders.keypair import Keypair
from solders.pubkey import Pubkey

DEFAULT_PROGRAM_ID = "D8tQBi2nELbNkAzkZz5FQBN28tAQFNpWL73HakbC4qCT"
COMMITMENTS = ("processed", "confirmed", "finalized")


class Config(BaseModel):
    rpc_url: str = Field("http://127.0.0.1:8899", alias="RPC_URL")
    keypair_path: str = Field("~/.config/solana/id.json", alias="KEYPAIR_PATH")
    program_id: str = Field(DEFAULT_PROGRAM_ID, alias="PROGRAM_ID")
    commitment: str = Field("confirmed", alias="COMMITMENT")
    rpc_timeout: float = Field(30, alias="RPC_TIMEOUT", gt=0)
    include_data_account: bool = Field(True, alias="INCLUDE_DATA_ACCOUNT")

    @field_validator("program_id")
    @classmethod
    def _program_id_b58(cls, v: str) -> str:
        try:
            Pubkey.from_string(v)
        except Exception as exc:
            raise ValueError(f"PROGRAM_ID is not a valid base58 public key: {v!r}") from exc
        return v

    @field_validator("commitment")
    @classmethod
    def _known_commitment(cls, v: str) -> str:
        if v not in COMMITMENTS:
            raise ValueError(f"COMMITMENT must be one of {', '.join(COMMITMENTS)}")
        return v

    @property
    def program_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.program_id)


def load_config() -> Config:
    # dotenv is loaded by the entry scripts; Anchor's env names are accepted as fallbacks
    env = {
        "RPC_URL": os.getenv("RPC_URL") or os.getenv("ANCHOR_PROVIDER_URL"),
        "KEYPAIR_PATH": os.getenv("KEYPAIR_PATH") or os.getenv("ANCHOR_WALLET"),
        "PROGRAM_ID": os.getenv("PROGRAM_ID"),
        "COMMITMENT": os.getenv("COMMITMENT"),
        "RPC_TIMEOUT": os.getenv("RPC_TIMEOUT"),
        "INCLUDE_DATA_ACCOUNT": os.getenv("INCLUDE_DATA_ACCOUNT"),
    }
    return Config.model_validate({k: v for k, v in env.items() if v})


def load_keypair(path: Optional[str]) -> Keypair:
    """Read a Solana CLI keypair file (JSON array of 64 byte values)."""
    if not path:
        raise RuntimeError("Missing keypair: set KEYPAIR_PATH or ANCHOR_WALLET")
    full = os.path.expanduser(path)
    if not os.path.exists(full):
        raise RuntimeError(f"Keypair file not found: {full}")
    try:
        with open(full, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except ValueError as exc:
        raise RuntimeError(f"Keypair file is not valid: {full}") from exc
    if not isinstance(raw, list) or len(raw) != 64:
        raise RuntimeError(f"Keypair file must hold a JSON array of 64 bytes: {full}")
    try:
        return Keypair.from_bytes(bytes(raw))
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"Keypair file is not valid: {full}") from exc
