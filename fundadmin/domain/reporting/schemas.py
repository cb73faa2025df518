from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fundadmin.domain.performance.schemas import FundPerformance, InvestmentPerformance
from fundadmin.shared.enums import FundStatus, FundType, InvestmentStatus


class FundHeader(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    fund_type: FundType
    status: FundStatus
    total_size: Decimal
    currency: str
    vintage_year: int | None = None


class FundPerformanceReport(BaseModel):
    fund: FundHeader
    metrics: FundPerformance
    investment_count: int
    transaction_count: int
    distribution_count: int


class InvestmentPerformanceReport(BaseModel):
    investment_id: uuid.UUID
    fund_id: uuid.UUID
    company_name: str
    investment_date: dt.date
    status: InvestmentStatus
    metrics: InvestmentPerformance
    valuation_count: int


class FundPerformanceRow(BaseModel):
    fund_id: uuid.UUID
    fund_name: str
    currency: str
    vintage_year: int | None = None
    total_commitments: Decimal
    total_called: Decimal
    total_distributed: Decimal
    total_value: Decimal
    net_asset_value: Decimal
    unrealized_value: Decimal
    realized_value: Decimal
    irr: Decimal
    tvpi: Decimal
    dpi: Decimal
    rvpi: Decimal
    moic: Decimal
    management_fees: Decimal
    from_snapshot: bool
    calculated_at: dt.datetime


class PerformanceSummary(BaseModel):
    total_funds: int
    total_investments: int
    total_commitments: Decimal
    total_called: Decimal
    total_distributed: Decimal
    total_net_asset_value: Decimal
    average_irr: Decimal
    average_tvpi: Decimal
    average_dpi: Decimal
    average_rvpi: Decimal
    currency: str


class PortfolioSummary(BaseModel):
    total_aum: Decimal
    total_funds: int
    total_investments: int
    total_invested: Decimal
    total_value: Decimal
    unrealized_gain: Decimal
    by_status: dict[str, int] = Field(default_factory=dict)
    by_sector: dict[str, int] = Field(default_factory=dict)


class CommitmentLine(BaseModel):
    fund_id: uuid.UUID
    fund_name: str
    commitment_amount: Decimal
    called_amount: Decimal
    distributed_amount: Decimal
    unfunded_commitment: Decimal
    commitment_date: dt.date | None = None


class InvestorStatementSummary(BaseModel):
    total_commitment: Decimal
    total_called: Decimal
    total_distributed: Decimal
    total_unfunded: Decimal
    net_invested: Decimal


class InvestorStatement(BaseModel):
    investor_id: uuid.UUID
    investor_name: str
    summary: InvestorStatementSummary
    commitments: list[CommitmentLine]


class FundMetricOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    fund_id: uuid.UUID
    as_of_date: dt.date
    nav: Decimal | None
    irr: Decimal | None
    moic: Decimal | None
    dpi: Decimal | None
    rvpi: Decimal | None
    tvpi: Decimal | None
    committed_capital: Decimal | None
    called_capital: Decimal | None
    distributed_capital: Decimal | None
    remaining_value: Decimal | None
