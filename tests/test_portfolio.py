from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session
from structlog.testing import capture_logs

from fundadmin.core.context import set_actor, set_request_id
from fundadmin.core.db.audit import get_audit_log
from fundadmin.core.db.models import Fund, Investor
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
from fundadmin.domain.portfolio.service import (
    commit_investor_to_fund,
    create_fund,
    create_investment,
    create_investor,
    delete_transaction,
    get_fund,
    get_investment,
    get_investor,
    list_fund_commitments,
    list_fund_investments,
    list_funds,
    list_transactions,
    record_transaction,
    soft_delete_fund,
    soft_delete_investment,
    soft_delete_investor,
    update_fund,
    update_investment,
    update_investor,
    update_transaction,
)
from fundadmin.shared.enums import FundStatus, FundType, InvestmentStatus, TransactionType
from fundadmin.shared.exceptions import DuplicateRecord, NotFound, ValidationError


def test_fund_lifecycle_and_audit_context(db_session: Session):
    set_actor("ops-analyst", roles=["FUND_ADMIN"])
    set_request_id("req-42")

    fund = create_fund(
        db_session,
        data=FundCreate(name="Harbor Credit II", fund_type=FundType.CREDIT, total_size=Decimal("250000000")),
    )
    assert [f.id for f in list_funds(db_session)] == [fund.id]

    with pytest.raises(ValidationError):
        create_fund(db_session, data=FundCreate(name="Harbor Credit II"))

    soft_delete_fund(db_session, fund_id=fund.id)
    with pytest.raises(NotFound):
        get_fund(db_session, fund.id)
    assert list_funds(db_session) == []

    events = get_audit_log(db_session, fund_id=fund.id, entity_id=fund.id, entity_type="fund")
    assert sorted(e.action for e in events) == ["fund.create", "fund.delete"]
    created = next(e for e in events if e.action == "fund.create")
    assert created.actor_id == "ops-analyst"
    assert created.actor_roles == ["FUND_ADMIN"]
    assert created.request_id == "req-42"
    assert created.before is None
    assert created.after["total_size"] == "250000000"


def test_commitments(db_session: Session, seeded_fund: Fund):
    investor = create_investor(db_session, data=InvestorCreate(name="Gamma Family Office"))
    commitment = commit_investor_to_fund(
        db_session,
        fund_id=seeded_fund.id,
        data=CommitmentCreate(investor_id=investor.id, commitment_amount=Decimal("2500000")),
    )
    assert commitment.called_amount == Decimal("0")
    assert commitment.distributed_amount == Decimal("0")

    with pytest.raises(ValidationError):
        commit_investor_to_fund(
            db_session,
            fund_id=seeded_fund.id,
            data=CommitmentCreate(investor_id=investor.id, commitment_amount=Decimal("1")),
        )
    with pytest.raises(NotFound):
        commit_investor_to_fund(
            db_session,
            fund_id=seeded_fund.id,
            data=CommitmentCreate(investor_id=uuid.uuid4(), commitment_amount=Decimal("1")),
        )
    assert [c.id for c in list_fund_commitments(db_session, fund_id=seeded_fund.id)] == [commitment.id]


def test_investments_soft_delete(db_session: Session, seeded_fund: Fund):
    investment = create_investment(
        db_session,
        fund_id=seeded_fund.id,
        data=InvestmentCreate(
            company_name="Nimbus Labs", investment_amount=Decimal("750000"), investment_date=dt.date(2024, 5, 2)
        ),
    )
    assert investment.current_valuation is None

    soft_delete_investment(db_session, investment_id=investment.id)

    with pytest.raises(NotFound):
        get_investment(db_session, investment.id)
    assert list_fund_investments(db_session, fund_id=seeded_fund.id) == []


def test_transactions_window_needs_both_bounds(db_session: Session, seeded_fund: Fund):
    for day, amount in ((dt.date(2024, 1, 10), "100"), (dt.date(2024, 7, 10), "200"), (dt.date(2025, 1, 10), "300")):
        record_transaction(
            db_session,
            fund_id=seeded_fund.id,
            data=TransactionCreate(transaction_type=TransactionType.FEE, transaction_date=day, amount=Decimal(amount)),
        )

    window = list_transactions(db_session, fund_id=seeded_fund.id, start=dt.date(2024, 6, 1), end=dt.date(2024, 12, 31))
    assert [t.amount for t in window] == [Decimal("200")]
    assert len(list_transactions(db_session, fund_id=seeded_fund.id, end=dt.date(2024, 12, 31))) == 3

    newest = list_transactions(db_session, fund_id=seeded_fund.id)[0]
    assert newest.transaction_date == dt.date(2025, 1, 10)

    delete_transaction(db_session, transaction_id=newest.id)
    assert len(list_transactions(db_session, fund_id=seeded_fund.id)) == 2
    with pytest.raises(NotFound):
        delete_transaction(db_session, transaction_id=uuid.uuid4())


def test_transaction_for_other_funds_investment_rejected(db_session: Session, seeded_fund: Fund):
    other = create_fund(db_session, data=FundCreate(name="Other Fund"))
    foreign = create_investment(
        db_session,
        fund_id=other.id,
        data=InvestmentCreate(
            company_name="Foreign Co", investment_amount=Decimal("1"), investment_date=dt.date(2024, 1, 1)
        ),
    )

    with pytest.raises(ValidationError):
        record_transaction(
            db_session,
            fund_id=seeded_fund.id,
            data=TransactionCreate(
                investment_id=foreign.id,
                transaction_type=TransactionType.INVESTMENT,
                transaction_date=dt.date(2024, 1, 1),
                amount=Decimal("1"),
            ),
        )


def test_update_fund(db_session: Session, seeded_fund: Fund):
    create_fund(db_session, data=FundCreate(name="Harbor Credit III"))

    updated = update_fund(
        db_session,
        fund_id=seeded_fund.id,
        data=FundUpdate(total_size=Decimal("600000000"), status=FundStatus.HARVESTING),
    )
    assert updated.total_size == Decimal("600000000")
    assert updated.status == FundStatus.HARVESTING
    assert updated.name == "Seeded Fund"

    with pytest.raises(DuplicateRecord):
        update_fund(db_session, fund_id=seeded_fund.id, data=FundUpdate(name="Harbor Credit III"))

    (event,) = get_audit_log(db_session, fund_id=seeded_fund.id, entity_id=seeded_fund.id, action_prefix="fund.update")
    assert Decimal(event.before["total_size"]) == Decimal("500000000")
    assert Decimal(event.after["total_size"]) == Decimal("600000000")


def test_update_and_soft_delete_investor(db_session: Session, seeded_fund: Fund, seeded_investors: list[Investor]):
    alpha, _ = seeded_investors

    updated = update_investor(
        db_session, investor_id=alpha.id, data=InvestorUpdate(email="ops@alpha.example", country="US")
    )
    assert updated.email == "ops@alpha.example"
    assert updated.name == "Alpha Pension"

    soft_delete_investor(db_session, investor_id=alpha.id)
    with pytest.raises(NotFound):
        get_investor(db_session, alpha.id)
    with pytest.raises(NotFound):
        update_investor(db_session, investor_id=alpha.id, data=InvestorUpdate(name="Alpha Pension Plan"))

    # Recorded under the fund the investor is committed to.
    actions = [e.action for e in get_audit_log(db_session, fund_id=seeded_fund.id, entity_id=alpha.id)]
    assert sorted(actions) == ["investor.delete", "investor.update"]


def test_investor_without_commitments_logs_unscoped_change(db_session: Session):
    investor = create_investor(db_session, data=InvestorCreate(name="Epsilon Capital"))

    with capture_logs() as logs:
        soft_delete_investor(db_session, investor_id=investor.id)

    assert [e["action"] for e in logs if e["event"] == "investor.audit_unscoped"] == ["investor.delete"]
    assert db_session.get(Investor, investor.id).deleted_at is not None


def test_update_investment(db_session: Session, seeded_fund: Fund):
    investment = create_investment(
        db_session,
        fund_id=seeded_fund.id,
        data=InvestmentCreate(
            company_name="Nimbus Labs", investment_amount=Decimal("750000"), investment_date=dt.date(2024, 5, 2)
        ),
    )

    updated = update_investment(
        db_session,
        investment_id=investment.id,
        data=InvestmentUpdate(investment_amount=Decimal("900000"), status=InvestmentStatus.EXITED),
    )
    assert updated.investment_amount == Decimal("900000")
    assert updated.status == InvestmentStatus.EXITED
    assert updated.company_name == "Nimbus Labs"

    events = get_audit_log(
        db_session, fund_id=seeded_fund.id, entity_id=investment.id, action_prefix="portfolio.investment.update"
    )
    assert len(events) == 1

    soft_delete_investment(db_session, investment_id=investment.id)
    with pytest.raises(NotFound):
        update_investment(db_session, investment_id=investment.id, data=InvestmentUpdate(sector="Fintech"))


def test_update_transaction(db_session: Session, seeded_fund: Fund):
    tx = record_transaction(
        db_session,
        fund_id=seeded_fund.id,
        data=TransactionCreate(
            transaction_type=TransactionType.FEE, transaction_date=dt.date(2024, 3, 1), amount=Decimal("2500")
        ),
    )

    updated = update_transaction(
        db_session, transaction_id=tx.id, data=TransactionUpdate(amount=Decimal("2750"), description="Q1 fee")
    )
    assert updated.amount == Decimal("2750")
    assert updated.transaction_type == TransactionType.FEE

    other = create_fund(db_session, data=FundCreate(name="Other Fund"))
    foreign = create_investment(
        db_session,
        fund_id=other.id,
        data=InvestmentCreate(
            company_name="Foreign Co", investment_amount=Decimal("1"), investment_date=dt.date(2024, 1, 1)
        ),
    )
    with pytest.raises(ValidationError):
        update_transaction(db_session, transaction_id=tx.id, data=TransactionUpdate(investment_id=foreign.id))
    with pytest.raises(NotFound):
        update_transaction(db_session, transaction_id=uuid.uuid4(), data=TransactionUpdate(amount=Decimal("1")))

    actions = [e.action for e in get_audit_log(db_session, fund_id=seeded_fund.id, entity_id=tx.id)]
    assert sorted(actions) == ["portfolio.transaction.create", "portfolio.transaction.update"]
