"""Capital-call status aggregation.

Pure functions over already-loaded records: no session, no clock. Callers
pass ``now`` explicitly and persist the result themselves.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from decimal import Decimal

from fundadmin.domain.capital.schemas import CallStatusUpdate
from fundadmin.shared.enums import CapitalCallDetailStatus, CapitalCallStatus
from fundadmin.shared.money import ZERO, as_utc_datetime, sum_money, to_decimal


def _detail_status(detail) -> CapitalCallDetailStatus:
    return CapitalCallDetailStatus(detail.status)


def recompute_call_status(call, details: Sequence, now: dt.datetime) -> CallStatusUpdate:
    """Roll detail payments up into the call's received amount and status.

    Precedence, first match wins: every detail paid -> complete; past due
    with anything unpaid -> overdue; any money received -> partial;
    otherwise the call keeps its current status (draft/sent).

    A call without details has nothing to collect: received is 0 and the
    status is left as is, so it is never reported complete or overdue.
    """
    current = CapitalCallStatus(call.status)
    total_received = sum_money(d.received_amount for d in details)

    if not details:
        return CallStatusUpdate(received_amount=total_received, status=current)

    all_paid = all(_detail_status(d) == CapitalCallDetailStatus.PAID for d in details)
    some_paid = any(to_decimal(d.received_amount) > ZERO for d in details)
    is_overdue = as_utc_datetime(now) > as_utc_datetime(call.due_date) and not all_paid

    if all_paid:
        status = CapitalCallStatus.COMPLETE
    elif is_overdue:
        status = CapitalCallStatus.OVERDUE
    elif some_paid:
        status = CapitalCallStatus.PARTIAL
    else:
        status = current

    return CallStatusUpdate(received_amount=total_received, status=status)


def derive_detail_status(
    called_amount: Decimal,
    received_amount: Decimal,
    due_date: dt.date | dt.datetime,
    now: dt.datetime,
) -> CapitalCallDetailStatus:
    called = to_decimal(called_amount)
    received = to_decimal(received_amount)

    if called > ZERO and received >= called:
        return CapitalCallDetailStatus.PAID
    if as_utc_datetime(now) > as_utc_datetime(due_date):
        return CapitalCallDetailStatus.OVERDUE
    if received > ZERO:
        return CapitalCallDetailStatus.PARTIAL
    return CapitalCallDetailStatus.PENDING
