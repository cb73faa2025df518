from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from fundadmin.core.context import actor_or_system, get_logger
from fundadmin.core.db.audit import write_audit_event
from fundadmin.core.db.models import FundInvestor
from fundadmin.domain.distributions.models import Distribution, DistributionDetail
from fundadmin.domain.distributions.schemas import DistributionCreate, DistributionDetailUpdate, DistributionUpdate
from fundadmin.domain.portfolio.service import get_fund, get_investment, get_investor
from fundadmin.shared.enums import DistributionDetailStatus, DistributionStatus
from fundadmin.shared.exceptions import DuplicateRecord, InvalidTransition, NotFound, ValidationError
from fundadmin.shared.money import ZERO, sum_money, to_decimal
from fundadmin.shared.utils import sa_model_to_dict

log = get_logger(__name__)


def net_amount(distribution_amount: Decimal, withholding_tax: Decimal | None) -> Decimal:
    gross = to_decimal(distribution_amount)
    tax = to_decimal(withholding_tax)
    if tax > gross:
        raise ValidationError("withholding_tax cannot exceed distribution_amount")
    return gross - tax


def _commitment(db: Session, *, fund_id: uuid.UUID, investor_id: uuid.UUID) -> FundInvestor | None:
    stmt = select(FundInvestor).where(
        FundInvestor.fund_id == fund_id,
        FundInvestor.investor_id == investor_id,
        FundInvestor.deleted_at.is_(None),
    )
    return db.execute(stmt).scalar_one_or_none()


def get_distribution(db: Session, distribution_id: uuid.UUID) -> Distribution:
    distribution = db.get(Distribution, distribution_id)
    if distribution is None:
        raise NotFound("Distribution not found")
    return distribution


def list_distributions(
    db: Session,
    *,
    fund_id: uuid.UUID,
    status: DistributionStatus | None = None,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> list[Distribution]:
    stmt = select(Distribution).where(Distribution.fund_id == fund_id)
    if status is not None:
        stmt = stmt.where(Distribution.status == status)
    if start is not None and end is not None:
        stmt = stmt.where(Distribution.distribution_date >= start, Distribution.distribution_date <= end)
    stmt = stmt.order_by(Distribution.distribution_date.desc())
    return list(db.execute(stmt).scalars().all())


def list_investor_distributions(db: Session, *, investor_id: uuid.UUID) -> list[DistributionDetail]:
    get_investor(db, investor_id)
    stmt = (
        select(DistributionDetail)
        .where(DistributionDetail.investor_id == investor_id)
        .options(selectinload(DistributionDetail.distribution))
        .order_by(DistributionDetail.created_at.desc(), DistributionDetail.id)
    )
    return list(db.execute(stmt).scalars().all())


def create_distribution(db: Session, *, fund_id: uuid.UUID, data: DistributionCreate) -> Distribution:
    get_fund(db, fund_id)
    if data.investment_id is not None:
        investment = get_investment(db, data.investment_id)
        if investment.fund_id != fund_id:
            raise ValidationError("Investment belongs to a different fund")

    investor_ids = [d.investor_id for d in data.details]
    if len(set(investor_ids)) != len(investor_ids):
        raise ValidationError("Each investor may appear only once per distribution")
    for investor_id in investor_ids:
        get_investor(db, investor_id)

    duplicate = db.execute(
        select(Distribution.id).where(
            Distribution.fund_id == fund_id,
            Distribution.distribution_number == data.distribution_number,
        )
    ).scalar_one_or_none()
    if duplicate is not None:
        raise DuplicateRecord(f"Distribution number {data.distribution_number} already exists for this fund")

    if data.total_amount is not None:
        total_amount = data.total_amount
    elif data.details:
        total_amount = sum_money(d.distribution_amount for d in data.details)
    else:
        raise ValidationError("total_amount is required when no investor details are given")

    actor_id = actor_or_system()
    distribution = Distribution(
        fund_id=fund_id,
        investment_id=data.investment_id,
        distribution_number=data.distribution_number,
        distribution_date=data.distribution_date,
        payment_date=data.payment_date,
        distribution_type=data.distribution_type,
        total_amount=total_amount,
        paid_amount=ZERO,
        status=data.status,
        notes=data.notes,
        created_by=actor_id,
        updated_by=actor_id,
    )
    for d in data.details:
        distribution.details.append(
            DistributionDetail(
                investor_id=d.investor_id,
                distribution_amount=d.distribution_amount,
                withholding_tax=d.withholding_tax,
                net_amount=net_amount(d.distribution_amount, d.withholding_tax),
                paid_amount=ZERO,
                status=DistributionDetailStatus.PENDING,
                created_by=actor_id,
                updated_by=actor_id,
            )
        )
    db.add(distribution)
    db.flush()

    write_audit_event(
        db,
        fund_id=fund_id,
        action="distribution.create",
        entity_type="distribution",
        entity_id=distribution.id,
        before=None,
        after={**sa_model_to_dict(distribution), "details": [sa_model_to_dict(d) for d in distribution.details]},
    )
    db.commit()
    db.refresh(distribution)
    return distribution


def update_distribution(db: Session, *, distribution_id: uuid.UUID, data: DistributionUpdate) -> Distribution:
    distribution = get_distribution(db, distribution_id)
    before = sa_model_to_dict(distribution)

    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(distribution, key, value)
    distribution.updated_by = actor_or_system()
    db.flush()

    write_audit_event(
        db,
        fund_id=distribution.fund_id,
        action="distribution.update",
        entity_type="distribution",
        entity_id=distribution.id,
        before=before,
        after=sa_model_to_dict(distribution),
    )
    db.commit()
    db.refresh(distribution)
    return distribution


def _rollup_paid(distribution: Distribution) -> None:
    details = list(distribution.details)
    distribution.paid_amount = sum_money(d.paid_amount for d in details)
    all_paid = bool(details) and all(
        DistributionDetailStatus(d.status) == DistributionDetailStatus.PAID for d in details
    )
    if all_paid and DistributionStatus(distribution.status) != DistributionStatus.PAID:
        log.info("distribution.paid", distribution_id=str(distribution.id), fund_id=str(distribution.fund_id))
        distribution.status = DistributionStatus.PAID


def update_distribution_detail(
    db: Session,
    *,
    detail_id: uuid.UUID,
    data: DistributionDetailUpdate,
) -> DistributionDetail:
    detail = db.get(DistributionDetail, detail_id)
    if detail is None:
        raise NotFound("Distribution detail not found")
    distribution = get_distribution(db, detail.distribution_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "paid_amount" in changes and DistributionStatus(distribution.status) == DistributionStatus.CANCELLED:
        raise InvalidTransition("Cannot record payments on a cancelled distribution")

    before = sa_model_to_dict(detail)
    previous_paid = to_decimal(detail.paid_amount)

    if "distribution_amount" in changes or "withholding_tax" in changes:
        gross = changes.get("distribution_amount", detail.distribution_amount)
        tax = changes.get("withholding_tax", detail.withholding_tax)
        net = net_amount(gross, tax)
        detail.distribution_amount = gross
        detail.withholding_tax = tax
        detail.net_amount = net

    if "paid_amount" in changes:
        detail.paid_amount = changes["paid_amount"]
        commitment = _commitment(db, fund_id=distribution.fund_id, investor_id=detail.investor_id)
        if commitment is not None:
            commitment.distributed_amount = to_decimal(commitment.distributed_amount) + (
                to_decimal(detail.paid_amount) - previous_paid
            )

    if "status" in changes:
        detail.status = changes["status"]
    elif "paid_amount" in changes or "distribution_amount" in changes or "withholding_tax" in changes:
        net = to_decimal(detail.net_amount)
        paid = to_decimal(detail.paid_amount)
        detail.status = (
            DistributionDetailStatus.PAID if net > ZERO and paid >= net else DistributionDetailStatus.PENDING
        )
    detail.updated_by = actor_or_system()
    db.flush()

    _rollup_paid(distribution)
    distribution.updated_by = actor_or_system()
    db.flush()

    write_audit_event(
        db,
        fund_id=distribution.fund_id,
        action="distribution.detail.update",
        entity_type="distribution_detail",
        entity_id=detail.id,
        before=before,
        after=sa_model_to_dict(detail),
    )
    db.commit()
    db.refresh(detail)
    return detail


def delete_distribution(db: Session, *, distribution_id: uuid.UUID) -> None:
    distribution = get_distribution(db, distribution_id)

    for d in distribution.details:
        commitment = _commitment(db, fund_id=distribution.fund_id, investor_id=d.investor_id)
        if commitment is not None and to_decimal(d.paid_amount) > ZERO:
            commitment.distributed_amount = to_decimal(commitment.distributed_amount) - to_decimal(d.paid_amount)

    write_audit_event(
        db,
        fund_id=distribution.fund_id,
        action="distribution.delete",
        entity_type="distribution",
        entity_id=distribution.id,
        before=sa_model_to_dict(distribution),
        after=None,
    )
    db.delete(distribution)
    db.commit()
