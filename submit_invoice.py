from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

from pydantic import ValidationError

from econdata.client import InvoiceSubmissionClient
from econdata.config import load_config
from econdata.errors import EconDataError
from econdata.models import InvoiceRecord


def _record_from_env() -> InvoiceRecord:
    fields = {
        "invoiceDataHashId": int(os.getenv("INVOICE_ID", "1")),
        "invoiceData": os.getenv("INVOICE_DATA", "INV12345"),
        "hsnNumber": os.getenv("HSN_NUMBER", "HSN998877"),
        "amount": int(os.getenv("AMOUNT", "100000")),
        "quantity": int(os.getenv("QUANTITY", "50")),
        "imageProof": os.getenv("IMAGE_PROOF", "https://example.com/proof.jpg"),
    }
    # leave timestamp unset to stamp the record at submission time
    if os.getenv("TIMESTAMP"):
        fields["timestamp"] = int(os.getenv("TIMESTAMP", "0"))
    return InvoiceRecord(**fields)


def _submit(client: InvoiceSubmissionClient, record: InvoiceRecord) -> int:
    print("My address:", client.authority)
    try:
        print(f"My balance: {client.sol_balance()} SOL")
        data_account = client.data_account_for(record)
        print("economic data account:", data_account)
        tx = client.submit(record, data_account=data_account)
    except EconDataError as exc:
        print(f"❌ Error calling submitEconomicData: {exc}")
        return 1
    print("tx: ", tx)

    if os.getenv("WAIT_CONFIRM", "").lower() not in ("1", "true", "yes", "y"):
        return 0
    try:
        ok = client.confirm(tx, timeout=float(os.getenv("CONFIRM_TIMEOUT", "60")))
    except EconDataError as exc:
        print(f"❌ Confirmation lookup failed: {exc}")
        return 1
    print({"ok": ok, "tx": tx, "invoice_id": record.invoice_data_hash_id})
    return 0 if ok else 1


def main() -> int:
    try:
        cfg = load_config()
        client = InvoiceSubmissionClient.from_config(cfg)
    except (ValidationError, RuntimeError) as exc:
        print(f"❌ Configuration error: {exc}")
        return 2

    with client.transport:
        try:
            record = _record_from_env()
        except ValueError as exc:
            print(f"❌ Invalid invoice fields: {exc}")
            return 2
        return _submit(client, record)


if __name__ == "__main__":
    raise SystemExit(main())
