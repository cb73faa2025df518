from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from fundadmin.shared.enums import DistributionDetailStatus, DistributionStatus, DistributionType


class DistributionDetailCreate(BaseModel):
    investor_id: uuid.UUID
    distribution_amount: Decimal = Field(gt=0)
    withholding_tax: Decimal = Field(default=Decimal("0"), ge=0)


class DistributionCreate(BaseModel):
    investment_id: uuid.UUID | None = None
    distribution_number: int = Field(ge=1)
    distribution_date: dt.date
    payment_date: dt.date | None = None
    distribution_type: DistributionType
    total_amount: Decimal | None = Field(default=None, gt=0)
    status: DistributionStatus = DistributionStatus.DRAFT
    notes: str | None = None
    details: list[DistributionDetailCreate] = Field(default_factory=list)


class DistributionUpdate(BaseModel):
    distribution_date: dt.date | None = None
    payment_date: dt.date | None = None
    status: DistributionStatus | None = None
    notes: str | None = None


class DistributionDetailUpdate(BaseModel):
    distribution_amount: Decimal | None = Field(default=None, gt=0)
    withholding_tax: Decimal | None = Field(default=None, ge=0)
    paid_amount: Decimal | None = Field(default=None, ge=0)
    status: DistributionDetailStatus | None = None
