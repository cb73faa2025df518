from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import JSON, Date, Enum as SAEnum, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fundadmin.core.db.base import AuditMetaMixin, Base, FundScopedMixin, IdMixin, SoftDeleteMixin
from fundadmin.shared.enums import FundStatus, FundType, InvestorType


class Fund(Base, IdMixin, AuditMetaMixin, SoftDeleteMixin):
    __tablename__ = "funds"

    name: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    fund_type: Mapped[FundType] = mapped_column(SAEnum(FundType, name="fund_type_enum"), default=FundType.VENTURE)
    status: Mapped[FundStatus] = mapped_column(
        SAEnum(FundStatus, name="fund_status_enum"),
        default=FundStatus.INVESTING,
        index=True,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    total_size: Mapped[Decimal] = mapped_column(Numeric(20, 2), default=Decimal("0"))
    vintage_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    management_fee_rate: Mapped[Decimal | None] = mapped_column(Numeric(6, 4), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Investor(Base, IdMixin, AuditMetaMixin, SoftDeleteMixin):
    __tablename__ = "investors"

    name: Mapped[str] = mapped_column(String(300), index=True)
    investor_type: Mapped[InvestorType] = mapped_column(
        SAEnum(InvestorType, name="investor_type_enum"),
        default=InvestorType.INSTITUTION,
    )
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="active", index=True)


class FundInvestor(Base, IdMixin, FundScopedMixin, AuditMetaMixin, SoftDeleteMixin):
    """LP commitment of one investor to one fund."""

    __tablename__ = "fund_investors"

    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id", ondelete="CASCADE"), index=True)
    commitment_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2))
    called_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), default=Decimal("0"))
    distributed_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), default=Decimal("0"))
    commitment_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (UniqueConstraint("fund_id", "investor_id", name="uq_fund_investor"),)


class AuditEvent(Base, IdMixin, FundScopedMixin, AuditMetaMixin):
    __tablename__ = "audit_events"

    actor_id: Mapped[str] = mapped_column(String(200), index=True)
    actor_roles: Mapped[list[str]] = mapped_column(JSON, default=list)

    action: Mapped[str] = mapped_column(String(200), index=True)
    entity_type: Mapped[str] = mapped_column(String(100), index=True)
    entity_id: Mapped[str] = mapped_column(String(200), index=True)

    before: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    request_id: Mapped[str] = mapped_column(String(64), index=True)

    __table_args__ = (
        Index("ix_audit_events_fund_entity", "fund_id", "entity_type", "entity_id"),
    )
