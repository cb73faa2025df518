from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fundadmin.shared.enums import InvestmentStatus, TransactionType


class ValuationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    investment_id: uuid.UUID | None = None
    valuation_date: dt.date
    fair_value: Decimal


class InvestmentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    fund_id: uuid.UUID | None = None
    company_name: str | None = None
    sector: str | None = None
    status: InvestmentStatus | None = None
    investment_amount: Decimal
    investment_date: dt.date
    valuations: list[ValuationRecord] = Field(default_factory=list)


class DistributionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    investment_id: uuid.UUID | None = None
    distribution_date: dt.date | None = None
    total_amount: Decimal


class TransactionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_type: TransactionType | None = None
    transaction_date: dt.date | None = None
    amount: Decimal


class FundPerformance(BaseModel):
    """Fund-level return metrics.

    ``irr`` is a simple aggregate return percentage,
    total_return / total_invested * 100. It ignores cash-flow timing and is
    NOT a time-weighted internal rate of return; the field keeps its name
    for compatibility with stored FundMetric snapshots and reports.
    """

    model_config = ConfigDict(frozen=True)

    fund_id: uuid.UUID | None = None
    total_invested: Decimal
    current_value: Decimal
    total_distributions: Decimal
    unrealized_gain: Decimal
    realized_gain: Decimal
    total_return: Decimal
    irr: Decimal
    moic: Decimal
    tvpi: Decimal
    dpi: Decimal
    rvpi: Decimal


class InvestmentPerformance(FundPerformance):
    investment_id: uuid.UUID | None = None
    holding_period: int
