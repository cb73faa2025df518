from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from fundadmin.core.config import settings
from fundadmin.core.context import clear_context, set_actor, set_request_id
from fundadmin.core.db.models import Fund, FundInvestor, Investor
from fundadmin.core.db.session import init_schema, make_sessionmaker
from fundadmin.shared.enums import Env

NOW = dt.datetime(2025, 6, 1, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture(autouse=True)
def _actor_context() -> Generator[None, None, None]:
    settings.env = Env.test
    set_actor("seed-user", roles=["ADMIN"])
    set_request_id("test-request")
    try:
        yield
    finally:
        clear_context()


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_schema(engine)
    return engine


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    db = make_sessionmaker(db_engine)()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def now() -> dt.datetime:
    return NOW


@pytest.fixture()
def seeded_fund(db_session: Session) -> Fund:
    fund = Fund(
        id=uuid.uuid4(),
        name="Seeded Fund",
        total_size=Decimal("500000000"),
        management_fee_rate=Decimal("0.02"),
        vintage_year=2022,
        created_by="seed-user",
        updated_by="seed-user",
    )
    db_session.add(fund)
    db_session.commit()
    return fund


@pytest.fixture()
def seeded_investors(db_session: Session, seeded_fund: Fund) -> list[Investor]:
    """Two LPs, each committed to the seeded fund."""
    investors = [
        Investor(id=uuid.uuid4(), name="Alpha Pension", created_by="seed-user", updated_by="seed-user"),
        Investor(id=uuid.uuid4(), name="Beta Endowment", created_by="seed-user", updated_by="seed-user"),
    ]
    db_session.add_all(investors)
    db_session.flush()
    for inv, amount in zip(investors, (Decimal("1000000"), Decimal("500000"))):
        db_session.add(
            FundInvestor(
                fund_id=seeded_fund.id,
                investor_id=inv.id,
                commitment_amount=amount,
                called_amount=Decimal("0"),
                distributed_amount=Decimal("0"),
                created_by="seed-user",
                updated_by="seed-user",
            )
        )
    db_session.commit()
    return investors
