from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fundadmin.shared.enums import CapitalCallDetailStatus, CapitalCallStatus


class CapitalCallDetailCreate(BaseModel):
    investor_id: uuid.UUID
    called_amount: Decimal = Field(gt=0)


class CapitalCallCreate(BaseModel):
    call_number: int = Field(ge=1)
    call_date: dt.datetime
    due_date: dt.datetime
    purpose: str | None = Field(default=None, max_length=500)
    total_amount: Decimal | None = Field(default=None, gt=0)
    bank_account: str | None = Field(default=None, max_length=200)
    notes: str | None = None
    details: list[CapitalCallDetailCreate] = Field(min_length=1)


class CapitalCallUpdate(BaseModel):
    call_date: dt.datetime | None = None
    due_date: dt.datetime | None = None
    purpose: str | None = Field(default=None, max_length=500)
    bank_account: str | None = Field(default=None, max_length=200)
    notes: str | None = None
    status: CapitalCallStatus | None = None


class CapitalCallDetailUpdate(BaseModel):
    received_amount: Decimal | None = Field(default=None, ge=0)
    received_date: dt.datetime | None = None
    status: CapitalCallDetailStatus | None = None
    payment_reference: str | None = Field(default=None, max_length=200)
    notes: str | None = None


class CapitalCallRecord(BaseModel):
    """Fields of a capital call that the status aggregation reads."""

    model_config = ConfigDict(from_attributes=True)

    due_date: dt.date | dt.datetime
    status: CapitalCallStatus = CapitalCallStatus.DRAFT
    total_amount: Decimal | None = None


class CapitalCallDetailRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    called_amount: Decimal = Decimal("0")
    received_amount: Decimal = Decimal("0")
    status: CapitalCallDetailStatus = CapitalCallDetailStatus.PENDING


class CallStatusUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    received_amount: Decimal
    status: CapitalCallStatus
