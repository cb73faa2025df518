from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from fundadmin.domain.capital.schemas import CapitalCallDetailRecord, CapitalCallRecord
from fundadmin.domain.capital.status import derive_detail_status, recompute_call_status
from fundadmin.shared.enums import CapitalCallDetailStatus, CapitalCallStatus

NOW = dt.datetime(2025, 6, 1, 12, 0, tzinfo=dt.timezone.utc)
YESTERDAY = NOW - dt.timedelta(days=1)
NEXT_WEEK = NOW + dt.timedelta(days=7)


def _detail(called: str, received: str, status: CapitalCallDetailStatus) -> CapitalCallDetailRecord:
    return CapitalCallDetailRecord(called_amount=Decimal(called), received_amount=Decimal(received), status=status)


def test_overdue_takes_precedence_over_partial():
    call = CapitalCallRecord(due_date=YESTERDAY, status=CapitalCallStatus.SENT, total_amount=Decimal("100"))
    details = [
        _detail("40", "40", CapitalCallDetailStatus.PAID),
        _detail("30", "30", CapitalCallDetailStatus.PAID),
        _detail("30", "0", CapitalCallDetailStatus.PENDING),
    ]

    update = recompute_call_status(call, details, NOW)

    assert update.received_amount == Decimal("70")
    assert update.status == CapitalCallStatus.OVERDUE


def test_partial_before_due_date():
    call = CapitalCallRecord(due_date=NEXT_WEEK, status=CapitalCallStatus.SENT)
    details = [
        _detail("40", "10", CapitalCallDetailStatus.PARTIAL),
        _detail("60", "0", CapitalCallDetailStatus.PENDING),
    ]

    update = recompute_call_status(call, details, NOW)

    assert update.status == CapitalCallStatus.PARTIAL
    assert update.received_amount == Decimal("10")


def test_nothing_received_keeps_prior_status():
    for prior in (CapitalCallStatus.DRAFT, CapitalCallStatus.SENT):
        call = CapitalCallRecord(due_date=NEXT_WEEK, status=prior)
        update = recompute_call_status(call, [_detail("50", "0", CapitalCallDetailStatus.PENDING)], NOW)
        assert update.status == prior
        assert update.received_amount == Decimal("0")


def test_all_paid_is_complete_even_past_due():
    call = CapitalCallRecord(due_date=YESTERDAY, status=CapitalCallStatus.OVERDUE)
    details = [
        _detail("40", "40", CapitalCallDetailStatus.PAID),
        _detail("60", "60", CapitalCallDetailStatus.PAID),
    ]

    assert recompute_call_status(call, details, NOW).status == CapitalCallStatus.COMPLETE


def test_empty_details_never_complete():
    call = CapitalCallRecord(due_date=YESTERDAY, status=CapitalCallStatus.SENT)

    update = recompute_call_status(call, [], NOW)

    assert update.received_amount == Decimal("0")
    assert update.status == CapitalCallStatus.SENT


def test_recompute_is_idempotent():
    call = CapitalCallRecord(due_date=YESTERDAY, status=CapitalCallStatus.SENT)
    details = [
        _detail("40", "40", CapitalCallDetailStatus.PAID),
        _detail("60", "15", CapitalCallDetailStatus.PARTIAL),
    ]

    first = recompute_call_status(call, details, NOW)
    second = recompute_call_status(call, details, NOW)

    assert first == second


def test_status_never_regresses_once_complete():
    call = CapitalCallRecord(due_date=NEXT_WEEK, status=CapitalCallStatus.SENT)
    called = [Decimal("40"), Decimal("60")]
    payments = [
        (Decimal("0"), Decimal("0")),
        (Decimal("20"), Decimal("0")),
        (Decimal("40"), Decimal("30")),
        (Decimal("40"), Decimal("60")),
        (Decimal("40"), Decimal("60")),
    ]

    seen_complete = False
    for step, received in enumerate(payments):
        # Cross the due date halfway through; payments only ever increase.
        now = NOW if step < 2 else NEXT_WEEK + dt.timedelta(days=1)
        details = [
            CapitalCallDetailRecord(
                called_amount=c,
                received_amount=r,
                status=derive_detail_status(c, r, call.due_date, now),
            )
            for c, r in zip(called, received)
        ]
        update = recompute_call_status(call, details, now)
        call = call.model_copy(update={"status": update.status})

        if seen_complete:
            assert update.status == CapitalCallStatus.COMPLETE
        seen_complete = seen_complete or update.status == CapitalCallStatus.COMPLETE

    assert seen_complete


@pytest.mark.parametrize(
    "received",
    [
        ("0", "0", "0"),
        ("10", "0", "5"),
        ("40", "30", "30"),
        ("40.25", "0.75", "12.00"),
    ],
)
def test_received_amount_is_sum_of_details(received):
    call = CapitalCallRecord(due_date=NEXT_WEEK, status=CapitalCallStatus.SENT)
    statuses = [CapitalCallDetailStatus.PAID, CapitalCallDetailStatus.PENDING, CapitalCallDetailStatus.PARTIAL]
    details = [_detail("40", r, s) for r, s in zip(received, statuses)]

    update = recompute_call_status(call, details, NOW)

    assert update.received_amount == sum((Decimal(r) for r in received), Decimal("0"))


def test_derive_detail_status():
    assert derive_detail_status(Decimal("40"), Decimal("40"), YESTERDAY, NOW) == CapitalCallDetailStatus.PAID
    assert derive_detail_status(Decimal("40"), Decimal("50"), NEXT_WEEK, NOW) == CapitalCallDetailStatus.PAID
    assert derive_detail_status(Decimal("40"), Decimal("10"), YESTERDAY, NOW) == CapitalCallDetailStatus.OVERDUE
    assert derive_detail_status(Decimal("40"), Decimal("10"), NEXT_WEEK, NOW) == CapitalCallDetailStatus.PARTIAL
    assert derive_detail_status(Decimal("40"), Decimal("0"), NEXT_WEEK, NOW) == CapitalCallDetailStatus.PENDING


def test_naive_due_date_is_treated_as_utc():
    call = CapitalCallRecord(due_date=dt.datetime(2025, 5, 31), status=CapitalCallStatus.SENT)

    update = recompute_call_status(call, [_detail("10", "0", CapitalCallDetailStatus.PENDING)], NOW)

    assert update.status == CapitalCallStatus.OVERDUE
