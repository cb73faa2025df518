from __future__ import annotations

import datetime as dt
import uuid
from collections import Counter

from sqlalchemy import select
from sqlalchemy.orm import Session

from fundadmin.core.config import settings
from fundadmin.core.context import actor_or_system, get_logger
from fundadmin.core.db.audit import write_audit_event
from fundadmin.core.db.models import Fund, FundInvestor
from fundadmin.domain.distributions.models import Distribution
from fundadmin.domain.performance.calculator import (
    average,
    carrying_value,
    compute_fund_performance,
    compute_investment_performance,
)
from fundadmin.domain.portfolio.models import Investment, Valuation
from fundadmin.domain.portfolio.service import (
    get_fund,
    get_investment,
    get_investor,
    list_fund_commitments,
    list_fund_investments,
    list_funds,
    list_transactions,
)
from fundadmin.domain.reporting.models import FundMetric
from fundadmin.domain.reporting.schemas import (
    CommitmentLine,
    FundHeader,
    FundPerformanceReport,
    FundPerformanceRow,
    InvestmentPerformanceReport,
    InvestorStatement,
    InvestorStatementSummary,
    PerformanceSummary,
    PortfolioSummary,
)
from fundadmin.shared.enums import DistributionStatus
from fundadmin.shared.exceptions import DuplicateRecord
from fundadmin.shared.money import ZERO, sum_money, to_decimal
from fundadmin.shared.utils import sa_model_to_dict, utcnow

log = get_logger(__name__)


def _effective_distributions(
    db: Session,
    *,
    fund_id: uuid.UUID | None = None,
    investment_id: uuid.UUID | None = None,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> list[Distribution]:
    """Distributions that count towards performance: everything except cancelled ones."""
    stmt = select(Distribution).where(Distribution.status != DistributionStatus.CANCELLED)
    if fund_id is not None:
        stmt = stmt.where(Distribution.fund_id == fund_id)
    if investment_id is not None:
        stmt = stmt.where(Distribution.investment_id == investment_id)
    if start is not None and end is not None:
        stmt = stmt.where(Distribution.distribution_date >= start, Distribution.distribution_date <= end)
    elif end is not None:
        stmt = stmt.where(Distribution.distribution_date <= end)
    stmt = stmt.order_by(Distribution.distribution_date.desc())
    return list(db.execute(stmt).scalars().all())


def _latest_metric(db: Session, *, fund_id: uuid.UUID) -> FundMetric | None:
    stmt = (
        select(FundMetric)
        .where(FundMetric.fund_id == fund_id)
        .order_by(FundMetric.as_of_date.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def _active_investments(db: Session) -> list[Investment]:
    stmt = (
        select(Investment)
        .join(Fund, Fund.id == Investment.fund_id)
        .where(Investment.deleted_at.is_(None), Fund.deleted_at.is_(None))
    )
    return list(db.execute(stmt).scalars().all())


def fund_performance_report(
    db: Session,
    *,
    fund_id: uuid.UUID,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> FundPerformanceReport:
    """Performance of one fund.

    The window applies to transactions and distributions, and only when both bounds are given.
    """
    fund = get_fund(db, fund_id)
    investments = list_fund_investments(db, fund_id=fund_id)
    window_start, window_end = (start, end) if start is not None and end is not None else (None, None)
    transactions = list_transactions(db, fund_id=fund_id, start=window_start, end=window_end)
    distributions = _effective_distributions(db, fund_id=fund_id, start=window_start, end=window_end)

    metrics = compute_fund_performance(fund, investments, transactions, distributions)
    return FundPerformanceReport(
        fund=FundHeader.model_validate(fund),
        metrics=metrics,
        investment_count=len(investments),
        transaction_count=len(transactions),
        distribution_count=len(distributions),
    )


def investment_performance_report(
    db: Session,
    *,
    investment_id: uuid.UUID,
    now: dt.datetime,
) -> InvestmentPerformanceReport:
    investment = get_investment(db, investment_id)
    valuations = list(investment.valuations)
    distributions = _effective_distributions(db, investment_id=investment_id)

    metrics = compute_investment_performance(investment, valuations, distributions, now)
    return InvestmentPerformanceReport(
        investment_id=investment.id,
        fund_id=investment.fund_id,
        company_name=investment.company_name,
        investment_date=investment.investment_date,
        status=investment.status,
        metrics=metrics,
        valuation_count=len(valuations),
    )


def fund_performance_list(db: Session, *, now: dt.datetime | None = None) -> list[FundPerformanceRow]:
    """One row per fund. Ratios come from the latest FundMetric snapshot when one exists."""
    now = now or utcnow()
    rows: list[FundPerformanceRow] = []
    for fund in list_funds(db):
        investments = list_fund_investments(db, fund_id=fund.id)
        distributions = _effective_distributions(db, fund_id=fund.id)
        perf = compute_fund_performance(fund, investments, (), distributions)
        metric = _latest_metric(db, fund_id=fund.id)

        if metric is not None:
            irr = to_decimal(metric.irr)
            tvpi = to_decimal(metric.tvpi)
            dpi = to_decimal(metric.dpi)
            rvpi = to_decimal(metric.rvpi)
            moic = to_decimal(metric.moic)
            total_called = to_decimal(metric.called_capital)
        else:
            irr, tvpi, dpi, rvpi, moic = perf.irr, perf.tvpi, perf.dpi, perf.rvpi, perf.moic
            total_called = perf.total_invested

        rows.append(
            FundPerformanceRow(
                fund_id=fund.id,
                fund_name=fund.name,
                currency=fund.currency,
                vintage_year=fund.vintage_year,
                total_commitments=to_decimal(fund.total_size),
                total_called=total_called,
                total_distributed=perf.total_distributions,
                total_value=perf.current_value + perf.total_distributions,
                net_asset_value=perf.current_value,
                unrealized_value=perf.unrealized_gain,
                realized_value=perf.realized_gain,
                irr=irr,
                tvpi=tvpi,
                dpi=dpi,
                rvpi=rvpi,
                moic=moic,
                management_fees=to_decimal(fund.management_fee_rate) * to_decimal(fund.total_size),
                from_snapshot=metric is not None,
                calculated_at=now,
            )
        )
    return rows


def performance_summary(db: Session) -> PerformanceSummary:
    funds = list_funds(db)
    investments = _active_investments(db)
    latest = [_latest_metric(db, fund_id=f.id) for f in funds]
    snapshots = [m for m in latest if m is not None]

    total_invested = sum_money(inv.investment_amount for inv in investments)
    total_called = sum_money(m.called_capital for m in snapshots)
    total_distributed = ZERO
    for fund in funds:
        total_distributed += sum_money(d.total_amount for d in _effective_distributions(db, fund_id=fund.id))

    # Funds without a snapshot count as 0 in every average.
    return PerformanceSummary(
        total_funds=len(funds),
        total_investments=len(investments),
        total_commitments=sum_money(f.total_size for f in funds),
        total_called=total_called if total_called > ZERO else total_invested,
        total_distributed=total_distributed,
        total_net_asset_value=sum_money(carrying_value(inv) for inv in investments),
        average_irr=average([to_decimal(m.irr) for m in snapshots], len(funds)),
        average_tvpi=average([to_decimal(m.tvpi) for m in snapshots], len(funds)),
        average_dpi=average([to_decimal(m.dpi) for m in snapshots], len(funds)),
        average_rvpi=average([to_decimal(m.rvpi) for m in snapshots], len(funds)),
        currency=settings.default_base_currency,
    )


def portfolio_summary(db: Session) -> PortfolioSummary:
    funds = list_funds(db)
    investments = _active_investments(db)

    total_invested = sum_money(inv.investment_amount for inv in investments)
    total_value = sum_money(carrying_value(inv) for inv in investments)
    by_status = Counter(getattr(inv.status, "value", inv.status) for inv in investments)
    by_sector = Counter(inv.sector or "Unknown" for inv in investments)

    return PortfolioSummary(
        total_aum=sum_money(f.total_size for f in funds),
        total_funds=len(funds),
        total_investments=len(investments),
        total_invested=total_invested,
        total_value=total_value,
        unrealized_gain=total_value - total_invested,
        by_status=dict(by_status),
        by_sector=dict(by_sector),
    )


def investor_statement(
    db: Session,
    *,
    investor_id: uuid.UUID,
    fund_id: uuid.UUID | None = None,
) -> InvestorStatement:
    investor = get_investor(db, investor_id)

    stmt = (
        select(FundInvestor, Fund)
        .join(Fund, Fund.id == FundInvestor.fund_id)
        .where(
            FundInvestor.investor_id == investor_id,
            FundInvestor.deleted_at.is_(None),
            Fund.deleted_at.is_(None),
        )
        .order_by(Fund.name.asc())
    )
    if fund_id is not None:
        stmt = stmt.where(FundInvestor.fund_id == fund_id)

    lines: list[CommitmentLine] = []
    for commitment, fund in db.execute(stmt).all():
        committed = to_decimal(commitment.commitment_amount)
        called = to_decimal(commitment.called_amount)
        lines.append(
            CommitmentLine(
                fund_id=fund.id,
                fund_name=fund.name,
                commitment_amount=committed,
                called_amount=called,
                distributed_amount=to_decimal(commitment.distributed_amount),
                unfunded_commitment=committed - called,
                commitment_date=commitment.commitment_date,
            )
        )

    total_called = sum_money(line.called_amount for line in lines)
    total_distributed = sum_money(line.distributed_amount for line in lines)
    return InvestorStatement(
        investor_id=investor.id,
        investor_name=investor.name,
        summary=InvestorStatementSummary(
            total_commitment=sum_money(line.commitment_amount for line in lines),
            total_called=total_called,
            total_distributed=total_distributed,
            total_unfunded=sum_money(line.unfunded_commitment for line in lines),
            net_invested=total_called - total_distributed,
        ),
        commitments=lines,
    )


def snapshot_fund_metrics(db: Session, *, fund_id: uuid.UUID, as_of: dt.date) -> FundMetric:
    """Persist a write-once FundMetric from records dated on or before ``as_of``."""
    fund = get_fund(db, fund_id)

    existing = db.execute(
        select(FundMetric.id).where(FundMetric.fund_id == fund_id, FundMetric.as_of_date == as_of)
    ).scalar_one_or_none()
    if existing is not None:
        raise DuplicateRecord(f"Fund metrics already recorded for {as_of.isoformat()}")

    investments = [inv for inv in list_fund_investments(db, fund_id=fund_id) if inv.investment_date <= as_of]
    valuations_by_investment: dict[uuid.UUID, list[Valuation]] = {
        inv.id: [v for v in inv.valuations if v.valuation_date <= as_of] for inv in investments
    }
    distributions = _effective_distributions(db, fund_id=fund_id, end=as_of)

    perf = compute_fund_performance(
        fund,
        investments,
        (),
        distributions,
        valuations_by_investment=valuations_by_investment,
    )
    committed = sum_money(c.commitment_amount for c in list_fund_commitments(db, fund_id=fund_id))

    actor_id = actor_or_system()
    metric = FundMetric(
        fund_id=fund_id,
        as_of_date=as_of,
        nav=perf.current_value,
        irr=perf.irr,
        moic=perf.moic,
        dpi=perf.dpi,
        rvpi=perf.rvpi,
        tvpi=perf.tvpi,
        committed_capital=committed,
        called_capital=perf.total_invested,
        distributed_capital=perf.total_distributions,
        remaining_value=perf.current_value,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(metric)
    db.flush()

    log.info("fund_metrics.snapshot", fund_id=str(fund_id), as_of=as_of.isoformat(), irr=str(perf.irr))
    write_audit_event(
        db,
        fund_id=fund_id,
        action="reporting.fund_metric.create",
        entity_type="fund_metric",
        entity_id=metric.id,
        before=None,
        after=sa_model_to_dict(metric),
    )
    db.commit()
    db.refresh(metric)
    return metric


def list_fund_metrics(
    db: Session,
    *,
    fund_id: uuid.UUID,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> list[FundMetric]:
    get_fund(db, fund_id)
    stmt = select(FundMetric).where(FundMetric.fund_id == fund_id)
    if start is not None:
        stmt = stmt.where(FundMetric.as_of_date >= start)
    if end is not None:
        stmt = stmt.where(FundMetric.as_of_date <= end)
    stmt = stmt.order_by(FundMetric.as_of_date.desc())
    return list(db.execute(stmt).scalars().all())
