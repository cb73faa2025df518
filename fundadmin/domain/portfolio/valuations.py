"""Valuation records and the Investment.current_valuation cache.

The cache mirrors the fair value of the investment's latest valuation
(max valuation_date). It is refreshed on every create/update/delete:

- create: per ``settings.valuation_cache_on_create``. The default
  ("last_created") lets the newest inserted valuation win even when it is
  back-dated; "latest_date" applies the same max-date check as update.
- update: a fair value edit syncs only when the edited valuation is the
  max-date one; a date change resyncs from whichever valuation is now latest.
- delete: recomputed from the remaining max-date valuation, or None.

A missing or soft-deleted investment is skipped with a warning instead of
raising, so a valuation write never fails on cache maintenance.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from fundadmin.core.config import settings
from fundadmin.core.context import actor_or_system, get_logger
from fundadmin.core.db.audit import write_audit_event
from fundadmin.domain.portfolio.models import Investment, Valuation
from fundadmin.domain.portfolio.schemas import ValuationCreate, ValuationUpdate
from fundadmin.domain.portfolio.service import get_investment
from fundadmin.shared.exceptions import NotFound
from fundadmin.shared.utils import sa_model_to_dict

log = get_logger(__name__)


def get_valuation(db: Session, valuation_id: uuid.UUID) -> Valuation:
    valuation = db.get(Valuation, valuation_id)
    if valuation is None:
        raise NotFound("Valuation not found")
    return valuation


def list_valuations(db: Session, *, investment_id: uuid.UUID) -> list[Valuation]:
    stmt = (
        select(Valuation)
        .where(Valuation.investment_id == investment_id)
        .order_by(Valuation.valuation_date.desc(), Valuation.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def get_latest_valuation(db: Session, *, investment_id: uuid.UUID) -> Valuation | None:
    stmt = (
        select(Valuation)
        .where(Valuation.investment_id == investment_id)
        .order_by(Valuation.valuation_date.desc(), Valuation.created_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def get_valuation_history(db: Session, *, investment_id: uuid.UUID) -> list[dict]:
    """Chart series, oldest first."""
    stmt = (
        select(Valuation.valuation_date, Valuation.fair_value, Valuation.valuation_method)
        .where(Valuation.investment_id == investment_id)
        .order_by(Valuation.valuation_date.asc())
    )
    return [
        {"valuation_date": d, "fair_value": v, "valuation_method": m}
        for d, v, m in db.execute(stmt).all()
    ]


def sync_current_valuation(db: Session, *, investment_id: uuid.UUID, value: Decimal | None) -> Investment | None:
    investment = db.get(Investment, investment_id)
    if investment is None or investment.is_deleted:
        log.warning("valuation_cache.investment_missing", investment_id=str(investment_id))
        return None

    if investment.current_valuation != value:
        log.info(
            "valuation_cache.updated",
            investment_id=str(investment_id),
            previous=str(investment.current_valuation) if investment.current_valuation is not None else None,
            current=str(value) if value is not None else None,
        )
    investment.current_valuation = value
    investment.updated_by = actor_or_system()
    return investment


def create_valuation(db: Session, *, data: ValuationCreate) -> Valuation:
    investment = get_investment(db, data.investment_id)

    actor_id = actor_or_system()
    valuation = Valuation(**data.model_dump(), created_by=actor_id, updated_by=actor_id)
    db.add(valuation)
    db.flush()

    if settings.valuation_cache_on_create == "latest_date":
        latest = get_latest_valuation(db, investment_id=investment.id)
        if latest is not None and latest.id == valuation.id:
            sync_current_valuation(db, investment_id=investment.id, value=valuation.fair_value)
    else:
        sync_current_valuation(db, investment_id=investment.id, value=valuation.fair_value)

    write_audit_event(
        db,
        fund_id=investment.fund_id,
        action="portfolio.valuation.create",
        entity_type="valuation",
        entity_id=valuation.id,
        before=None,
        after=sa_model_to_dict(valuation),
    )
    db.commit()
    db.refresh(valuation)
    return valuation


def update_valuation(db: Session, *, valuation_id: uuid.UUID, data: ValuationUpdate) -> Valuation:
    valuation = get_valuation(db, valuation_id)
    before = sa_model_to_dict(valuation)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in changes.items():
        setattr(valuation, key, value)
    valuation.updated_by = actor_or_system()
    db.flush()

    if "valuation_date" in changes:
        # A date move can promote or demote this row.
        latest = get_latest_valuation(db, investment_id=valuation.investment_id)
        sync_current_valuation(
            db,
            investment_id=valuation.investment_id,
            value=latest.fair_value if latest is not None else None,
        )
    elif "fair_value" in changes:
        latest = get_latest_valuation(db, investment_id=valuation.investment_id)
        if latest is not None and latest.id == valuation.id:
            sync_current_valuation(db, investment_id=valuation.investment_id, value=valuation.fair_value)

    investment = db.get(Investment, valuation.investment_id)
    if investment is not None:
        write_audit_event(
            db,
            fund_id=investment.fund_id,
            action="portfolio.valuation.update",
            entity_type="valuation",
            entity_id=valuation.id,
            before=before,
            after=sa_model_to_dict(valuation),
        )
    db.commit()
    db.refresh(valuation)
    return valuation


def delete_valuation(db: Session, *, valuation_id: uuid.UUID) -> Investment | None:
    valuation = get_valuation(db, valuation_id)
    investment_id = valuation.investment_id
    before = sa_model_to_dict(valuation)

    db.delete(valuation)
    db.flush()

    latest = get_latest_valuation(db, investment_id=investment_id)
    investment = sync_current_valuation(
        db,
        investment_id=investment_id,
        value=latest.fair_value if latest is not None else None,
    )

    if investment is not None:
        write_audit_event(
            db,
            fund_id=investment.fund_id,
            action="portfolio.valuation.delete",
            entity_type="valuation",
            entity_id=valuation_id,
            before=before,
            after=None,
        )
    db.commit()
    return investment
