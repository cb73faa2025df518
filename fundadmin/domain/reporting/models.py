from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fundadmin.core.db.base import AuditMetaMixin, Base, FundScopedMixin, IdMixin


class FundMetric(Base, IdMixin, FundScopedMixin, AuditMetaMixin):
    """Point-in-time performance snapshot. Write-once: never recomputed in place."""

    __tablename__ = "fund_metrics"

    as_of_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    nav: Mapped[Decimal | None] = mapped_column(Numeric(20, 2), nullable=True)
    irr: Mapped[Decimal | None] = mapped_column(Numeric(20, 4), nullable=True)
    moic: Mapped[Decimal | None] = mapped_column(Numeric(20, 4), nullable=True)
    dpi: Mapped[Decimal | None] = mapped_column(Numeric(20, 4), nullable=True)
    rvpi: Mapped[Decimal | None] = mapped_column(Numeric(20, 4), nullable=True)
    tvpi: Mapped[Decimal | None] = mapped_column(Numeric(20, 4), nullable=True)

    committed_capital: Mapped[Decimal | None] = mapped_column(Numeric(20, 2), nullable=True)
    called_capital: Mapped[Decimal | None] = mapped_column(Numeric(20, 2), nullable=True)
    distributed_capital: Mapped[Decimal | None] = mapped_column(Numeric(20, 2), nullable=True)
    remaining_value: Mapped[Decimal | None] = mapped_column(Numeric(20, 2), nullable=True)

    __table_args__ = (UniqueConstraint("fund_id", "as_of_date", name="uq_fund_metrics_fund_as_of"),)
