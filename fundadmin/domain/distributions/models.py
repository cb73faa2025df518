from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import Date, Enum as SAEnum, ForeignKey, Index, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundadmin.core.db.base import AuditMetaMixin, Base, FundScopedMixin, IdMixin
from fundadmin.shared.enums import DistributionDetailStatus, DistributionStatus, DistributionType


class Distribution(Base, IdMixin, FundScopedMixin, AuditMetaMixin):
    __tablename__ = "distributions"

    # Set when proceeds come from a single portfolio company.
    investment_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("investments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    distribution_number: Mapped[int] = mapped_column(Integer, nullable=False)
    distribution_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    payment_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    distribution_type: Mapped[DistributionType] = mapped_column(
        SAEnum(DistributionType, name="distribution_type_enum"),
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    status: Mapped[DistributionStatus] = mapped_column(
        SAEnum(DistributionStatus, name="distribution_status_enum"),
        nullable=False,
        default=DistributionStatus.DRAFT,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    details: Mapped[list["DistributionDetail"]] = relationship(
        back_populates="distribution",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("fund_id", "distribution_number", name="uq_distributions_fund_number"),
        Index("ix_distributions_fund_date", "fund_id", "distribution_date"),
    )


class DistributionDetail(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "distribution_details"

    distribution_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("distributions.id", ondelete="CASCADE"), index=True)
    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id", ondelete="RESTRICT"), index=True)

    distribution_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    withholding_tax: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    # distribution_amount - withholding_tax, re-derived whenever either changes.
    net_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    status: Mapped[DistributionDetailStatus] = mapped_column(
        SAEnum(DistributionDetailStatus, name="distribution_detail_status_enum"),
        nullable=False,
        default=DistributionDetailStatus.PENDING,
    )

    distribution: Mapped["Distribution"] = relationship(back_populates="details")

    __table_args__ = (UniqueConstraint("distribution_id", "investor_id", name="uq_distribution_detail_investor"),)
