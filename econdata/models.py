from __future__ import annotations

import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from .errors import InvalidInputError

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


def now_ms() -> int:
    return int(time.time() * 1000)


class InvoiceRecord(BaseModel):
    """One economic data submission, as passed to ``submitEconomicData``.

    Fields accept either their snake_case names or the camelCase names used
    by the program's IDL. Out-of-range integers raise ``InvalidInputError``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    invoice_data_hash_id: StrictInt = Field(..., alias="invoiceDataHashId", ge=0, le=U64_MAX)
    invoice_data: str = Field(..., alias="invoiceData")
    hsn_number: str = Field(..., alias="hsnNumber")
    amount: StrictInt = Field(..., ge=0, le=U64_MAX)
    quantity: StrictInt = Field(..., ge=0, le=U32_MAX)
    timestamp: StrictInt = Field(default_factory=now_ms, ge=0, le=U64_MAX)
    image_proof: str = Field(..., alias="imageProof")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidInputError(str(exc)) from exc

    def to_args(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class RawAccountRecord(InvoiceRecord):
    # Decoded EconomicData account as stored by the program.
    address: str
    authority: str


class SubmissionStats(BaseModel):
    total_transactions: int = 0
    total_amount: int = 0
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None
