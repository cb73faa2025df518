"""Fund and investment performance metrics.

Pure arithmetic over already-fetched records (ORM rows or the pydantic
records in ``schemas``; only attribute access is used). Valuation-less
investments are carried at cost. Every ratio is 0 when no capital was
invested, never NaN/Infinity and never an exception.
"""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from fundadmin.core.config import settings
from fundadmin.domain.performance.schemas import FundPerformance, InvestmentPerformance
from fundadmin.shared.money import HUNDRED, ZERO, safe_ratio, sum_money, to_decimal, whole_days_between


def latest_valuation(valuations: Iterable | None):
    """Valuation with the greatest valuation_date, or None."""
    latest = None
    for v in valuations or ():
        if latest is None or v.valuation_date > latest.valuation_date:
            latest = v
    return latest


def carrying_value(investment, valuations: Iterable | None = None) -> Decimal:
    if valuations is None:
        valuations = getattr(investment, "valuations", None)
    latest = latest_valuation(valuations)
    if latest is None:
        return to_decimal(investment.investment_amount)
    return to_decimal(latest.fair_value)


def _metrics(
    invested: Decimal,
    current_value: Decimal,
    distributions: Decimal,
    places: int,
) -> dict:
    unrealized = current_value - invested
    realized = distributions
    total_return = unrealized + realized
    multiple = safe_ratio(current_value + distributions, invested, places)

    return {
        "total_invested": invested,
        "current_value": current_value,
        "total_distributions": distributions,
        "unrealized_gain": unrealized,
        "realized_gain": realized,
        "total_return": total_return,
        # Simple return percentage, not a cash-flow IRR.
        "irr": safe_ratio(total_return * HUNDRED, invested, places),
        "moic": multiple,
        "tvpi": multiple,
        "dpi": safe_ratio(distributions, invested, places),
        "rvpi": safe_ratio(current_value, invested, places),
    }


def compute_fund_performance(
    fund,
    investments: Sequence,
    transactions: Sequence,
    distributions: Sequence,
    *,
    valuations_by_investment: Mapping[uuid.UUID, Sequence] | None = None,
    places: int | None = None,
) -> FundPerformance:
    """Roll a fund's investments, valuations and distributions into return metrics.

    ``transactions`` are accepted so reports can hand over the full ledger;
    the simplified formula does not use them.
    """
    places = settings.ratio_decimal_places if places is None else places

    total_invested = sum_money(inv.investment_amount for inv in investments)
    current_value = ZERO
    for inv in investments:
        valuations = None
        if valuations_by_investment is not None:
            valuations = valuations_by_investment.get(getattr(inv, "id", None), ())
        current_value += carrying_value(inv, valuations)
    total_distributions = sum_money(d.total_amount for d in distributions)

    return FundPerformance(
        fund_id=getattr(fund, "id", None),
        **_metrics(total_invested, current_value, total_distributions, places),
    )


def compute_investment_performance(
    investment,
    valuations: Sequence | None,
    distributions: Sequence,
    now: dt.datetime,
    *,
    places: int | None = None,
) -> InvestmentPerformance:
    places = settings.ratio_decimal_places if places is None else places

    invested = to_decimal(investment.investment_amount)
    current_value = carrying_value(investment, valuations)
    total_distributions = sum_money(d.total_amount for d in distributions)

    return InvestmentPerformance(
        fund_id=getattr(investment, "fund_id", None),
        investment_id=getattr(investment, "id", None),
        holding_period=whole_days_between(investment.investment_date, now),
        **_metrics(invested, current_value, total_distributions, places),
    )


def average(values: Sequence[Decimal], count: int, places: int | None = None) -> Decimal:
    """Sum / max(1, count), rounded like every other ratio."""
    places = settings.ratio_decimal_places if places is None else places
    return safe_ratio(sum_money(values), Decimal(max(1, count)), places)
