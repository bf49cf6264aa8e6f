"""
Pydantic schemas for bank catalog endpoints.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

MAX_BULK_CODES = 2000
# bank_overrides.code is a Postgres `integer`.
MAX_BANK_CODE = 2_147_483_647

BankCode = Annotated[int, Field(gt=0, le=MAX_BANK_CODE)]


class BulkCodesRequest(BaseModel):
    codes: list[BankCode] = Field(..., min_length=1, max_length=MAX_BULK_CODES)
