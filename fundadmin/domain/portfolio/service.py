from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from fundadmin.core.context import actor_or_system, get_logger
from fundadmin.core.db.audit import write_audit_event
from fundadmin.core.db.models import Fund, FundInvestor, Investor
from fundadmin.domain.portfolio.models import Investment, Transaction
from fundadmin.domain.portfolio.schemas import (
    CommitmentCreate,
    FundCreate,
    FundUpdate,
    InvestmentCreate,
    InvestmentUpdate,
    InvestorCreate,
    InvestorUpdate,
    TransactionCreate,
    TransactionUpdate,
)
from fundadmin.shared.exceptions import DuplicateRecord, NotFound, ValidationError
from fundadmin.shared.utils import sa_model_to_dict, utcnow

log = get_logger(__name__)


def get_fund(db: Session, fund_id: uuid.UUID) -> Fund:
    fund = db.get(Fund, fund_id)
    if fund is None or fund.is_deleted:
        raise NotFound("Fund not found")
    return fund


def list_funds(db: Session) -> list[Fund]:
    stmt = select(Fund).where(Fund.deleted_at.is_(None)).order_by(Fund.name.asc())
    return list(db.execute(stmt).scalars().all())


def create_fund(db: Session, *, data: FundCreate) -> Fund:
    existing = db.execute(select(Fund).where(Fund.name == data.name)).scalar_one_or_none()
    if existing is not None:
        raise DuplicateRecord(f"Fund name already in use: {data.name}")

    actor_id = actor_or_system()
    fund = Fund(**data.model_dump(), created_by=actor_id, updated_by=actor_id)
    db.add(fund)
    db.flush()

    write_audit_event(
        db,
        fund_id=fund.id,
        action="fund.create",
        entity_type="fund",
        entity_id=fund.id,
        before=None,
        after=sa_model_to_dict(fund),
    )
    db.commit()
    db.refresh(fund)
    return fund


def update_fund(db: Session, *, fund_id: uuid.UUID, data: FundUpdate) -> Fund:
    fund = get_fund(db, fund_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    new_name = changes.get("name")
    if new_name is not None and new_name != fund.name:
        taken = db.execute(select(Fund.id).where(Fund.name == new_name, Fund.id != fund.id)).scalar_one_or_none()
        if taken is not None:
            raise DuplicateRecord(f"Fund name already in use: {new_name}")

    before = sa_model_to_dict(fund)
    for key, value in changes.items():
        setattr(fund, key, value)
    fund.updated_by = actor_or_system()
    db.flush()

    write_audit_event(
        db,
        fund_id=fund.id,
        action="fund.update",
        entity_type="fund",
        entity_id=fund.id,
        before=before,
        after=sa_model_to_dict(fund),
    )
    db.commit()
    db.refresh(fund)
    return fund


def soft_delete_fund(db: Session, *, fund_id: uuid.UUID) -> Fund:
    fund = get_fund(db, fund_id)
    before = sa_model_to_dict(fund)
    fund.deleted_at = utcnow()
    fund.updated_by = actor_or_system()

    write_audit_event(
        db,
        fund_id=fund.id,
        action="fund.delete",
        entity_type="fund",
        entity_id=fund.id,
        before=before,
        after=sa_model_to_dict(fund),
    )
    db.commit()
    return fund


def get_investor(db: Session, investor_id: uuid.UUID) -> Investor:
    investor = db.get(Investor, investor_id)
    if investor is None or investor.is_deleted:
        raise NotFound("Investor not found")
    return investor


def create_investor(db: Session, *, data: InvestorCreate) -> Investor:
    actor_id = actor_or_system()
    investor = Investor(**data.model_dump(), created_by=actor_id, updated_by=actor_id)
    db.add(investor)
    db.commit()
    db.refresh(investor)
    return investor


def _audit_investor(db: Session, investor: Investor, *, action: str, before: dict) -> None:
    """Investors are not fund-scoped: record the change under each fund they are committed to."""
    fund_ids = db.execute(
        select(FundInvestor.fund_id).where(
            FundInvestor.investor_id == investor.id,
            FundInvestor.deleted_at.is_(None),
        )
    ).scalars().all()
    if not fund_ids:
        log.info("investor.audit_unscoped", investor_id=str(investor.id), action=action)

    after = sa_model_to_dict(investor)
    for fund_id in fund_ids:
        write_audit_event(
            db,
            fund_id=fund_id,
            action=action,
            entity_type="investor",
            entity_id=investor.id,
            before=before,
            after=after,
        )


def update_investor(db: Session, *, investor_id: uuid.UUID, data: InvestorUpdate) -> Investor:
    investor = get_investor(db, investor_id)
    before = sa_model_to_dict(investor)

    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(investor, key, value)
    investor.updated_by = actor_or_system()
    db.flush()

    _audit_investor(db, investor, action="investor.update", before=before)
    db.commit()
    db.refresh(investor)
    return investor


def soft_delete_investor(db: Session, *, investor_id: uuid.UUID) -> Investor:
    investor = get_investor(db, investor_id)
    before = sa_model_to_dict(investor)
    investor.deleted_at = utcnow()
    investor.updated_by = actor_or_system()
    db.flush()

    _audit_investor(db, investor, action="investor.delete", before=before)
    db.commit()
    return investor


def commit_investor_to_fund(db: Session, *, fund_id: uuid.UUID, data: CommitmentCreate) -> FundInvestor:
    get_fund(db, fund_id)
    get_investor(db, data.investor_id)

    existing = db.execute(
        select(FundInvestor).where(
            FundInvestor.fund_id == fund_id,
            FundInvestor.investor_id == data.investor_id,
            FundInvestor.deleted_at.is_(None),
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise DuplicateRecord("Investor already committed to this fund")

    actor_id = actor_or_system()
    commitment = FundInvestor(
        fund_id=fund_id,
        investor_id=data.investor_id,
        commitment_amount=data.commitment_amount,
        commitment_date=data.commitment_date,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(commitment)
    db.flush()

    write_audit_event(
        db,
        fund_id=fund_id,
        action="fund.commitment.create",
        entity_type="fund_investor",
        entity_id=commitment.id,
        before=None,
        after=sa_model_to_dict(commitment),
    )
    db.commit()
    db.refresh(commitment)
    return commitment


def list_fund_commitments(db: Session, *, fund_id: uuid.UUID) -> list[FundInvestor]:
    stmt = select(FundInvestor).where(FundInvestor.fund_id == fund_id, FundInvestor.deleted_at.is_(None))
    return list(db.execute(stmt).scalars().all())


def get_investment(db: Session, investment_id: uuid.UUID) -> Investment:
    investment = db.get(Investment, investment_id)
    if investment is None or investment.is_deleted:
        raise NotFound("Investment not found")
    return investment


def list_fund_investments(db: Session, *, fund_id: uuid.UUID) -> list[Investment]:
    stmt = (
        select(Investment)
        .where(Investment.fund_id == fund_id, Investment.deleted_at.is_(None))
        .order_by(Investment.investment_date.desc())
    )
    return list(db.execute(stmt).scalars().all())


def create_investment(db: Session, *, fund_id: uuid.UUID, data: InvestmentCreate) -> Investment:
    get_fund(db, fund_id)

    actor_id = actor_or_system()
    investment = Investment(fund_id=fund_id, **data.model_dump(), created_by=actor_id, updated_by=actor_id)
    db.add(investment)
    db.flush()

    write_audit_event(
        db,
        fund_id=fund_id,
        action="portfolio.investment.create",
        entity_type="investment",
        entity_id=investment.id,
        before=None,
        after=sa_model_to_dict(investment),
    )
    db.commit()
    db.refresh(investment)
    return investment


def update_investment(db: Session, *, investment_id: uuid.UUID, data: InvestmentUpdate) -> Investment:
    investment = get_investment(db, investment_id)
    before = sa_model_to_dict(investment)

    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(investment, key, value)
    investment.updated_by = actor_or_system()
    db.flush()

    write_audit_event(
        db,
        fund_id=investment.fund_id,
        action="portfolio.investment.update",
        entity_type="investment",
        entity_id=investment.id,
        before=before,
        after=sa_model_to_dict(investment),
    )
    db.commit()
    db.refresh(investment)
    return investment


def soft_delete_investment(db: Session, *, investment_id: uuid.UUID) -> Investment:
    investment = get_investment(db, investment_id)
    before = sa_model_to_dict(investment)
    investment.deleted_at = utcnow()
    investment.updated_by = actor_or_system()

    write_audit_event(
        db,
        fund_id=investment.fund_id,
        action="portfolio.investment.delete",
        entity_type="investment",
        entity_id=investment.id,
        before=before,
        after=sa_model_to_dict(investment),
    )
    db.commit()
    return investment


def record_transaction(db: Session, *, fund_id: uuid.UUID, data: TransactionCreate) -> Transaction:
    get_fund(db, fund_id)
    if data.investment_id is not None:
        investment = get_investment(db, data.investment_id)
        if investment.fund_id != fund_id:
            raise ValidationError("Investment belongs to a different fund")

    actor_id = actor_or_system()
    tx = Transaction(fund_id=fund_id, **data.model_dump(), created_by=actor_id, updated_by=actor_id)
    db.add(tx)
    db.flush()

    write_audit_event(
        db,
        fund_id=fund_id,
        action="portfolio.transaction.create",
        entity_type="transaction",
        entity_id=tx.id,
        before=None,
        after=sa_model_to_dict(tx),
    )
    db.commit()
    db.refresh(tx)
    return tx


def update_transaction(db: Session, *, transaction_id: uuid.UUID, data: TransactionUpdate) -> Transaction:
    tx = db.get(Transaction, transaction_id)
    if tx is None:
        raise NotFound("Transaction not found")

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "investment_id" in changes:
        investment = get_investment(db, changes["investment_id"])
        if investment.fund_id != tx.fund_id:
            raise ValidationError("Investment belongs to a different fund")

    before = sa_model_to_dict(tx)
    for key, value in changes.items():
        setattr(tx, key, value)
    tx.updated_by = actor_or_system()
    db.flush()

    write_audit_event(
        db,
        fund_id=tx.fund_id,
        action="portfolio.transaction.update",
        entity_type="transaction",
        entity_id=tx.id,
        before=before,
        after=sa_model_to_dict(tx),
    )
    db.commit()
    db.refresh(tx)
    return tx


def list_transactions(
    db: Session,
    *,
    fund_id: uuid.UUID,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> list[Transaction]:
    stmt = select(Transaction).where(Transaction.fund_id == fund_id)
    # The window only applies when both bounds are given.
    if start is not None and end is not None:
        stmt = stmt.where(Transaction.transaction_date >= start, Transaction.transaction_date <= end)
    stmt = stmt.order_by(Transaction.transaction_date.desc())
    return list(db.execute(stmt).scalars().all())


def delete_transaction(db: Session, *, transaction_id: uuid.UUID) -> None:
    tx = db.get(Transaction, transaction_id)
    if tx is None:
        raise NotFound("Transaction not found")

    write_audit_event(
        db,
        fund_id=tx.fund_id,
        action="portfolio.transaction.delete",
        entity_type="transaction",
        entity_id=tx.id,
        before=sa_model_to_dict(tx),
        after=None,
    )
    db.delete(tx)
    db.commit()
