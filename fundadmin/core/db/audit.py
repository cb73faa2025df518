"""Append-only audit trail for fund data.

Each service write records one ``AuditEvent`` holding the row before and
after the change. Actor and request id default to whatever
``fundadmin.core.context`` has bound for the current unit of work.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fundadmin.core.context import get_actor_id, get_actor_roles, get_request_id
from fundadmin.core.db.models import AuditEvent
from fundadmin.shared.utils import json_safe

UNKNOWN = "unknown"


def write_audit_event(
    db: Session,
    *,
    fund_id: uuid.UUID,
    action: str,
    entity_type: str,
    entity_id: str | uuid.UUID,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    actor_id: str | None = None,
    actor_roles: Iterable[str] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    actor = actor_id or get_actor_id() or UNKNOWN
    roles = list(actor_roles) if actor_roles is not None else get_actor_roles()

    event = AuditEvent(
        fund_id=fund_id,
        actor_id=actor,
        actor_roles=roles,
        request_id=request_id or get_request_id() or UNKNOWN,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before=json_safe(before),
        after=json_safe(after),
        created_by=actor,
        updated_by=actor,
    )
    db.add(event)
    db.flush()
    return event


def get_audit_log(
    db: Session,
    *,
    fund_id: uuid.UUID,
    entity_id: str | uuid.UUID,
    entity_type: str | None = None,
    action_prefix: str | None = None,
    limit: int = 200,
) -> list[AuditEvent]:
    """Events for one entity within a fund, oldest first.

    ``action_prefix`` narrows to one family, e.g. ``"capital_call.detail"``.
    """
    stmt = select(AuditEvent).where(
        AuditEvent.fund_id == fund_id,
        AuditEvent.entity_id == str(entity_id),
    )
    if entity_type is not None:
        stmt = stmt.where(AuditEvent.entity_type == entity_type)
    if action_prefix is not None:
        stmt = stmt.where(AuditEvent.action.startswith(action_prefix, autoescape=True))
    stmt = stmt.order_by(AuditEvent.created_at.asc(), AuditEvent.id.asc()).limit(limit)
    return list(db.scalars(stmt))
