from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Date, Enum as SAEnum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundadmin.core.db.base import AuditMetaMixin, Base, FundScopedMixin, IdMixin, SoftDeleteMixin
from fundadmin.shared.enums import InvestmentStatus, TransactionType, ValuationMethod


class Investment(Base, IdMixin, FundScopedMixin, AuditMetaMixin, SoftDeleteMixin):
    __tablename__ = "investments"

    company_name: Mapped[str] = mapped_column(String(300), index=True)
    industry: Mapped[str | None] = mapped_column(String(120), nullable=True)
    sector: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    investment_stage: Mapped[str | None] = mapped_column(String(64), nullable=True)

    investment_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2))
    ownership_percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    investment_date: Mapped[dt.date] = mapped_column(Date, index=True)
    exit_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    status: Mapped[InvestmentStatus] = mapped_column(
        SAEnum(InvestmentStatus, name="investment_status_enum"),
        default=InvestmentStatus.ACTIVE,
        index=True,
    )

    # Denormalized fair value of the latest valuation; see domain.portfolio.valuations.
    current_valuation: Mapped[Decimal | None] = mapped_column(Numeric(20, 2), nullable=True)

    valuations: Mapped[list["Valuation"]] = relationship(
        back_populates="investment",
        cascade="all, delete-orphan",
        order_by="desc(Valuation.valuation_date)",
    )


class Valuation(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "valuations"

    investment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investments.id", ondelete="CASCADE"), index=True)
    valuation_date: Mapped[dt.date] = mapped_column(Date, index=True)
    fair_value: Mapped[Decimal] = mapped_column(Numeric(20, 2))
    valuation_method: Mapped[ValuationMethod] = mapped_column(
        SAEnum(ValuationMethod, name="valuation_method_enum"),
        default=ValuationMethod.MARKET,
    )
    multiple: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    audited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    investment: Mapped["Investment"] = relationship(back_populates="valuations")

    __table_args__ = (Index("ix_valuations_investment_date", "investment_id", "valuation_date"),)


class Transaction(Base, IdMixin, FundScopedMixin, AuditMetaMixin):
    __tablename__ = "transactions"

    investment_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("investments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transaction_type_enum"),
        index=True,
    )
    transaction_date: Mapped[dt.date] = mapped_column(Date, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_transactions_fund_date", "fund_id", "transaction_date"),)
