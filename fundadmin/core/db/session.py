from __future__ import annotations

import importlib
from collections.abc import Generator
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from fundadmin.core.config import settings
from fundadmin.core.db.base import Base

# Every module that declares tables on Base.metadata.
MODEL_MODULES = (
    "fundadmin.core.db.models",
    "fundadmin.domain.portfolio.models",
    "fundadmin.domain.capital.models",
    "fundadmin.domain.distributions.models",
    "fundadmin.domain.reporting.models",
)


def import_model_modules() -> None:
    for module_name in MODEL_MODULES:
        importlib.import_module(module_name)


def init_schema(engine: Engine) -> None:
    """Create any missing fund-admin tables on ``engine``."""
    import_model_modules()
    Base.metadata.create_all(bind=engine)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    # Built on first use so importing fundadmin never touches the database.
    engine = create_engine(settings.database_url, pool_pre_ping=True)
    init_schema(engine)
    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    db = make_sessionmaker(get_engine())()
    try:
        yield db
    finally:
        db.close()
