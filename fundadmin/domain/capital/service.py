from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from fundadmin.core.context import actor_or_system, get_logger
from fundadmin.core.db.audit import write_audit_event
from fundadmin.core.db.models import FundInvestor
from fundadmin.domain.capital.models import CapitalCall, CapitalCallDetail
from fundadmin.domain.capital.schemas import (
    CapitalCallCreate,
    CapitalCallDetailUpdate,
    CapitalCallUpdate,
)
from fundadmin.domain.capital.status import derive_detail_status, recompute_call_status
from fundadmin.domain.portfolio.service import get_fund, get_investor
from fundadmin.shared.enums import CapitalCallDetailStatus, CapitalCallStatus
from fundadmin.shared.exceptions import (
    ConcurrencyConflict,
    DuplicateRecord,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from fundadmin.shared.money import ZERO, as_utc_datetime, sum_money
from fundadmin.shared.utils import sa_model_to_dict, utcnow

log = get_logger(__name__)

EDITABLE_STATUSES = {CapitalCallStatus.DRAFT, CapitalCallStatus.SENT}


def _flush_or_conflict(db: Session, *, call_id: uuid.UUID) -> None:
    try:
        db.flush()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflict(f"Capital call {call_id} was modified concurrently") from e


def _commit_or_conflict(db: Session, *, call_id: uuid.UUID) -> None:
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflict(f"Capital call {call_id} was modified concurrently") from e


def _lock_call(db: Session, call_id: uuid.UUID) -> CapitalCall | None:
    # Row lock where the backend supports it; the version column covers the rest.
    stmt = (
        select(CapitalCall)
        .where(CapitalCall.id == call_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()


def _call_details(db: Session, call_id: uuid.UUID) -> list[CapitalCallDetail]:
    stmt = (
        select(CapitalCallDetail)
        .where(CapitalCallDetail.capital_call_id == call_id)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def _commitment(db: Session, *, fund_id: uuid.UUID, investor_id: uuid.UUID) -> FundInvestor | None:
    stmt = select(FundInvestor).where(
        FundInvestor.fund_id == fund_id,
        FundInvestor.investor_id == investor_id,
        FundInvestor.deleted_at.is_(None),
    )
    return db.execute(stmt).scalar_one_or_none()


def _apply_call_status(db: Session, call: CapitalCall, *, now: dt.datetime) -> bool:
    """Recompute and assign the aggregate. Returns True when anything changed."""
    details = _call_details(db, call.id)
    update = recompute_call_status(call, details, now)

    if call.received_amount == update.received_amount and call.status == update.status:
        return False

    before = sa_model_to_dict(call)
    previous_status = call.status
    call.received_amount = update.received_amount
    call.status = update.status
    call.updated_by = actor_or_system()

    if previous_status != update.status:
        log.info(
            "capital_call.status_changed",
            capital_call_id=str(call.id),
            fund_id=str(call.fund_id),
            previous=CapitalCallStatus(previous_status).value,
            current=update.status.value,
        )

    write_audit_event(
        db,
        fund_id=call.fund_id,
        action="capital_call.aggregate.refresh",
        entity_type="capital_call",
        entity_id=call.id,
        before=before,
        after=sa_model_to_dict(call),
    )
    return True


def get_capital_call(db: Session, call_id: uuid.UUID) -> CapitalCall:
    call = db.get(CapitalCall, call_id)
    if call is None:
        raise NotFound("Capital call not found")
    return call


def list_capital_calls(
    db: Session,
    *,
    fund_id: uuid.UUID,
    status: CapitalCallStatus | None = None,
) -> list[CapitalCall]:
    get_fund(db, fund_id)
    stmt = select(CapitalCall).where(CapitalCall.fund_id == fund_id)
    if status is not None:
        stmt = stmt.where(CapitalCall.status == status)
    stmt = stmt.order_by(CapitalCall.call_date.desc())
    return list(db.execute(stmt).scalars().all())


def list_investor_capital_calls(db: Session, *, investor_id: uuid.UUID) -> list[CapitalCallDetail]:
    """One investor's call lines across funds, newest first. ``detail.capital_call`` is loaded."""
    get_investor(db, investor_id)
    stmt = (
        select(CapitalCallDetail)
        .where(CapitalCallDetail.investor_id == investor_id)
        .options(selectinload(CapitalCallDetail.capital_call))
        .order_by(CapitalCallDetail.created_at.desc(), CapitalCallDetail.id)
    )
    return list(db.execute(stmt).scalars().all())


def create_capital_call(db: Session, *, fund_id: uuid.UUID, data: CapitalCallCreate) -> CapitalCall:
    get_fund(db, fund_id)

    if as_utc_datetime(data.due_date) < as_utc_datetime(data.call_date):
        raise ValidationError("due_date must not be before call_date")

    investor_ids = [d.investor_id for d in data.details]
    if len(set(investor_ids)) != len(investor_ids):
        raise ValidationError("Each investor may appear only once per capital call")
    for investor_id in investor_ids:
        get_investor(db, investor_id)

    duplicate = db.execute(
        select(CapitalCall.id).where(CapitalCall.fund_id == fund_id, CapitalCall.call_number == data.call_number)
    ).scalar_one_or_none()
    if duplicate is not None:
        raise DuplicateRecord(f"Capital call number {data.call_number} already exists for this fund")

    called_total = sum_money(d.called_amount for d in data.details)
    total_amount = data.total_amount if data.total_amount is not None else called_total

    actor_id = actor_or_system()
    call = CapitalCall(
        fund_id=fund_id,
        call_number=data.call_number,
        call_date=data.call_date,
        due_date=data.due_date,
        purpose=data.purpose,
        notes=data.notes,
        bank_account=data.bank_account,
        total_amount=total_amount,
        received_amount=ZERO,
        status=CapitalCallStatus.DRAFT,
        created_by=actor_id,
        updated_by=actor_id,
    )
    for d in data.details:
        call.details.append(
            CapitalCallDetail(
                investor_id=d.investor_id,
                called_amount=d.called_amount,
                received_amount=ZERO,
                status=CapitalCallDetailStatus.PENDING,
                created_by=actor_id,
                updated_by=actor_id,
            )
        )
        commitment = _commitment(db, fund_id=fund_id, investor_id=d.investor_id)
        if commitment is not None:
            commitment.called_amount = (commitment.called_amount or ZERO) + d.called_amount

    db.add(call)
    db.flush()

    write_audit_event(
        db,
        fund_id=fund_id,
        action="capital_call.create",
        entity_type="capital_call",
        entity_id=call.id,
        before=None,
        after={**sa_model_to_dict(call), "details": [sa_model_to_dict(d) for d in call.details]},
    )
    db.commit()
    db.refresh(call)
    return call


def update_capital_call(
    db: Session,
    *,
    call_id: uuid.UUID,
    data: CapitalCallUpdate,
    now: dt.datetime | None = None,
) -> CapitalCall:
    """Edit call fields. A due date change re-runs the aggregate at ``now``."""
    call = _lock_call(db, call_id)
    if call is None:
        raise NotFound("Capital call not found")

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    new_status = changes.pop("status", None)
    if new_status is not None:
        # Past draft/sent the status is owned by the detail aggregate.
        if CapitalCallStatus(call.status) not in EDITABLE_STATUSES or new_status not in EDITABLE_STATUSES:
            raise InvalidTransition("Capital call status is derived from investor payments")

    before = sa_model_to_dict(call)
    for key, value in changes.items():
        setattr(call, key, value)
    if new_status is not None:
        call.status = new_status
    call.updated_by = actor_or_system()

    if "due_date" in changes or "call_date" in changes:
        if as_utc_datetime(call.due_date) < as_utc_datetime(call.call_date):
            db.rollback()
            raise ValidationError("due_date must not be before call_date")

    _flush_or_conflict(db, call_id=call_id)
    write_audit_event(
        db,
        fund_id=call.fund_id,
        action="capital_call.update",
        entity_type="capital_call",
        entity_id=call.id,
        before=before,
        after=sa_model_to_dict(call),
    )
    if "due_date" in changes:
        _apply_call_status(db, call, now=now or utcnow())
    _commit_or_conflict(db, call_id=call_id)
    db.refresh(call)
    return call


def mark_capital_call_sent(db: Session, *, call_id: uuid.UUID) -> CapitalCall:
    call = get_capital_call(db, call_id)
    if CapitalCallStatus(call.status) != CapitalCallStatus.DRAFT:
        raise InvalidTransition(f"Only draft capital calls can be sent (status={CapitalCallStatus(call.status).value})")
    return update_capital_call(db, call_id=call_id, data=CapitalCallUpdate(status=CapitalCallStatus.SENT))


def delete_capital_call(db: Session, *, call_id: uuid.UUID) -> None:
    call = get_capital_call(db, call_id)
    details = _call_details(db, call.id)

    for d in details:
        commitment = _commitment(db, fund_id=call.fund_id, investor_id=d.investor_id)
        if commitment is not None:
            commitment.called_amount = (commitment.called_amount or ZERO) - d.called_amount

    write_audit_event(
        db,
        fund_id=call.fund_id,
        action="capital_call.delete",
        entity_type="capital_call",
        entity_id=call.id,
        before=sa_model_to_dict(call),
        after=None,
    )
    db.delete(call)
    db.commit()


def refresh_capital_call_status(db: Session, *, call_id: uuid.UUID, now: dt.datetime) -> CapitalCall | None:
    """Read details, recompute the aggregate and write it back.

    Returns None (and logs) when the call no longer exists.
    """
    call = _lock_call(db, call_id)
    if call is None:
        log.warning("capital_call.refresh_skipped", capital_call_id=str(call_id), reason="not_found")
        return None

    _apply_call_status(db, call, now=now)
    _commit_or_conflict(db, call_id=call_id)
    return call


def _lock_detail_and_call(db: Session, detail_id: uuid.UUID) -> tuple[CapitalCallDetail, CapitalCall]:
    """Lock the parent call, then re-read the detail under that lock.

    Call before detail, always, so concurrent writers queue on the same row.
    """
    call_id = db.execute(
        select(CapitalCallDetail.capital_call_id).where(CapitalCallDetail.id == detail_id)
    ).scalar_one_or_none()
    if call_id is None:
        raise NotFound("Capital call detail not found")

    call = _lock_call(db, call_id)
    if call is None:
        raise NotFound("Capital call not found")

    stmt = (
        select(CapitalCallDetail)
        .where(CapitalCallDetail.id == detail_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    detail = db.execute(stmt).scalar_one_or_none()
    if detail is None:
        raise NotFound("Capital call detail not found")
    return detail, call


def _write_detail(
    db: Session,
    *,
    detail: CapitalCallDetail,
    call: CapitalCall,
    changes: dict,
    now: dt.datetime,
) -> CapitalCallDetail:
    explicit_status = changes.pop("status", None)

    before = sa_model_to_dict(detail)
    for key, value in changes.items():
        setattr(detail, key, value)

    if explicit_status is not None:
        detail.status = explicit_status
    elif "received_amount" in changes:
        detail.status = derive_detail_status(detail.called_amount, detail.received_amount, call.due_date, now)
    detail.updated_by = actor_or_system()

    # Touch the parent so its version is checked even when the aggregate is unchanged.
    call.updated_at = utcnow()
    _flush_or_conflict(db, call_id=call.id)

    write_audit_event(
        db,
        fund_id=call.fund_id,
        action="capital_call.detail.update",
        entity_type="capital_call_detail",
        entity_id=detail.id,
        before=before,
        after=sa_model_to_dict(detail),
    )
    _apply_call_status(db, call, now=now)
    _commit_or_conflict(db, call_id=call.id)
    db.refresh(detail)
    return detail


def update_capital_call_detail(
    db: Session,
    *,
    detail_id: uuid.UUID,
    data: CapitalCallDetailUpdate,
    now: dt.datetime,
) -> CapitalCallDetail:
    """Mutate one investor's detail and refresh the parent call in the same transaction."""
    detail, call = _lock_detail_and_call(db, detail_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    return _write_detail(db, detail=detail, call=call, changes=changes, now=now)


def record_payment(
    db: Session,
    *,
    detail_id: uuid.UUID,
    amount: Decimal,
    now: dt.datetime,
    received_date: dt.datetime | None = None,
    payment_reference: str | None = None,
) -> CapitalCallDetail:
    if amount <= ZERO:
        raise ValidationError("Payment amount must be positive")

    detail, call = _lock_detail_and_call(db, detail_id)
    # The increment is taken from the row read under the call lock.
    payment = CapitalCallDetailUpdate(
        received_amount=(detail.received_amount or ZERO) + amount,
        received_date=received_date or now,
        payment_reference=payment_reference,
    )
    changes = payment.model_dump(exclude_unset=True, exclude_none=True)
    return _write_detail(db, detail=detail, call=call, changes=changes, now=now)


def refresh_overdue_capital_calls(db: Session, *, now: dt.datetime | None = None) -> int:
    """Sweep open calls past their due date. Returns how many were updated."""
    now = now or utcnow()
    stmt = select(CapitalCall.id).where(
        CapitalCall.status.notin_([CapitalCallStatus.COMPLETE, CapitalCallStatus.OVERDUE]),
        CapitalCall.due_date < now,
    )
    call_ids = list(db.execute(stmt).scalars().all())

    updated = 0
    for call_id in call_ids:
        call = _lock_call(db, call_id)
        if call is None:
            continue
        if _apply_call_status(db, call, now=now):
            updated += 1
        _commit_or_conflict(db, call_id=call_id)
    return updated
