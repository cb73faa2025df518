from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from fundadmin.shared.enums import (
    FundStatus,
    FundType,
    InvestmentStatus,
    InvestorType,
    TransactionType,
    ValuationMethod,
)


class FundCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    fund_type: FundType = FundType.VENTURE
    status: FundStatus = FundStatus.INVESTING
    currency: str = Field(default="USD", min_length=3, max_length=3)
    total_size: Decimal = Field(default=Decimal("0"), ge=0)
    vintage_year: int | None = None
    management_fee_rate: Decimal | None = Field(default=None, ge=0, le=1)
    description: str | None = None


class FundUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=200)
    fund_type: FundType | None = None
    status: FundStatus | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    total_size: Decimal | None = Field(default=None, ge=0)
    vintage_year: int | None = None
    management_fee_rate: Decimal | None = Field(default=None, ge=0, le=1)
    description: str | None = None


class InvestorCreate(BaseModel):
    name: str = Field(min_length=2, max_length=300)
    investor_type: InvestorType = InvestorType.INSTITUTION
    email: str | None = Field(default=None, max_length=320)
    country: str | None = Field(default=None, max_length=2)


class InvestorUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=300)
    investor_type: InvestorType | None = None
    email: str | None = Field(default=None, max_length=320)
    country: str | None = Field(default=None, max_length=2)
    status: str | None = Field(default=None, max_length=32)


class CommitmentCreate(BaseModel):
    investor_id: uuid.UUID
    commitment_amount: Decimal = Field(gt=0)
    commitment_date: dt.date | None = None


class InvestmentCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=300)
    industry: str | None = Field(default=None, max_length=120)
    sector: str | None = Field(default=None, max_length=120)
    investment_stage: str | None = Field(default=None, max_length=64)
    investment_amount: Decimal = Field(ge=0)
    ownership_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    investment_date: dt.date
    status: InvestmentStatus = InvestmentStatus.ACTIVE


class InvestmentUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=300)
    industry: str | None = Field(default=None, max_length=120)
    sector: str | None = Field(default=None, max_length=120)
    investment_stage: str | None = Field(default=None, max_length=64)
    investment_amount: Decimal | None = Field(default=None, ge=0)
    ownership_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    investment_date: dt.date | None = None
    status: InvestmentStatus | None = None


class TransactionCreate(BaseModel):
    investment_id: uuid.UUID | None = None
    transaction_type: TransactionType
    transaction_date: dt.date
    amount: Decimal
    description: str | None = None


class TransactionUpdate(BaseModel):
    investment_id: uuid.UUID | None = None
    transaction_type: TransactionType | None = None
    transaction_date: dt.date | None = None
    amount: Decimal | None = None
    description: str | None = None


class ValuationCreate(BaseModel):
    investment_id: uuid.UUID
    valuation_date: dt.date
    fair_value: Decimal = Field(ge=0)
    valuation_method: ValuationMethod = ValuationMethod.MARKET
    multiple: Decimal | None = None
    audited: bool = False
    notes: str | None = None


class ValuationUpdate(BaseModel):
    valuation_date: dt.date | None = None
    fair_value: Decimal | None = Field(default=None, ge=0)
    valuation_method: ValuationMethod | None = None
    multiple: Decimal | None = None
    audited: bool | None = None
    notes: str | None = None
