from __future__ import annotations

import os
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

from pydantic import ValidationError

from econdata.client import InvoiceSubmissionClient, summarize
from econdata.config import load_config
from econdata.errors import EconDataError
from econdata.models import U64_MAX


def _int_env(name: str) -> Optional[int]:
    v = os.getenv(name)
    return int(v) if v else None


def _amount_range() -> Optional[Tuple[int, int]]:
    lo, hi = _int_env("MIN_AMOUNT"), _int_env("MAX_AMOUNT")
    if lo is None and hi is None:
        return None
    return (lo or 0, hi if hi is not None else U64_MAX)


def main() -> int:
    try:
        cfg = load_config()
        client = InvoiceSubmissionClient.from_config(cfg)
    except (ValidationError, RuntimeError) as exc:
        print(f"❌ Configuration error: {exc}")
        return 2

    only_mine = os.getenv("ONLY_MINE", "").lower() in ("1", "true", "yes", "y")
    with client.transport:
        try:
            records = list(client.query_submissions(
                _int_env("START_MS"),
                _int_env("END_MS"),
                hsn_number=os.getenv("HSN_NUMBER") or None,
                amount_range=_amount_range(),
                authority=client.authority if only_mine else None,
            ))
        except (ValueError, EconDataError) as exc:
            print(f"❌ Could not list submissions: {exc}")
            return 1

    for rec in records:
        print(rec.model_dump())
    stats = summarize(records)
    print({"status": "successful" if records else "no data found", **stats.model_dump()})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
