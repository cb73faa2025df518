from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fundadmin.core.db.base import AuditMetaMixin, Base, FundScopedMixin, IdMixin
from fundadmin.shared.enums import CapitalCallDetailStatus, CapitalCallStatus


class CapitalCall(Base, IdMixin, FundScopedMixin, AuditMetaMixin):
    __tablename__ = "capital_calls"

    call_number: Mapped[int] = mapped_column(Integer, nullable=False)
    call_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    purpose: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    bank_account: Mapped[str | None] = mapped_column(String(200), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    # Derived from details; written only by the aggregate refresh.
    received_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    status: Mapped[CapitalCallStatus] = mapped_column(
        SAEnum(CapitalCallStatus, name="capital_call_status_enum"),
        nullable=False,
        default=CapitalCallStatus.DRAFT,
        index=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    details: Mapped[list["CapitalCallDetail"]] = relationship(
        back_populates="capital_call",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("fund_id", "call_number", name="uq_capital_calls_fund_number"),
        Index("ix_capital_calls_fund_status", "fund_id", "status"),
    )


class CapitalCallDetail(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "capital_call_details"

    capital_call_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("capital_calls.id", ondelete="CASCADE"), index=True)
    investor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investors.id", ondelete="RESTRICT"), index=True)

    called_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    received_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=Decimal("0"))
    received_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[CapitalCallDetailStatus] = mapped_column(
        SAEnum(CapitalCallDetailStatus, name="capital_call_detail_status_enum"),
        nullable=False,
        default=CapitalCallDetailStatus.PENDING,
        index=True,
    )

    capital_call: Mapped["CapitalCall"] = relationship(back_populates="details")

    __table_args__ = (UniqueConstraint("capital_call_id", "investor_id", name="uq_capital_call_detail_investor"),)
