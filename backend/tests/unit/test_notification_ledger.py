from datetime import datetime, timedelta, timezone

import pytest

from confdesk.models.decision import NotificationStatus
from confdesk.models.notification import AttemptStatus, NotificationAttempt
from confdesk.services.notification_ledger import (
    aggregate_status,
    failed_author_ids,
    latest_attempt_by_author,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _attempt(author_id: str, status: AttemptStatus, at: datetime) -> NotificationAttempt:
    return NotificationAttempt(
        paper_id="P1",
        decision_id="D1",
        author_id=author_id,
        status=status,
        attempted_at=at,
    )


def test_latest_attempt_wins_by_time_not_by_position():
    attempts = [
        _attempt("a1", AttemptStatus.DELIVERED, T0 + timedelta(seconds=5)),
        _attempt("a1", AttemptStatus.FAILED, T0),
    ]
    latest = latest_attempt_by_author(attempts)
    assert latest["a1"].status == AttemptStatus.DELIVERED


def test_equal_timestamps_resolve_to_later_insertion():
    attempts = [
        _attempt("a1", AttemptStatus.FAILED, T0),
        _attempt("a1", AttemptStatus.DELIVERED, T0),
    ]
    assert failed_author_ids(attempts) == []

    attempts.append(_attempt("a1", AttemptStatus.FAILED, T0))
    assert failed_author_ids(attempts) == ["a1"]


def test_failed_author_ids_only_reports_current_failures():
    attempts = [
        _attempt("a1", AttemptStatus.FAILED, T0),
        _attempt("a2", AttemptStatus.FAILED, T0),
        _attempt("a1", AttemptStatus.DELIVERED, T0 + timedelta(minutes=1)),
    ]
    assert failed_author_ids(attempts) == ["a2"]


@pytest.mark.parametrize(
    "statuses,expected",
    [
        ([], NotificationStatus.SENT),
        ([AttemptStatus.DELIVERED], NotificationStatus.SENT),
        ([AttemptStatus.FAILED], NotificationStatus.FAILED),
        ([AttemptStatus.DELIVERED, AttemptStatus.DELIVERED], NotificationStatus.SENT),
        ([AttemptStatus.DELIVERED, AttemptStatus.FAILED], NotificationStatus.PARTIAL),
        ([AttemptStatus.FAILED, AttemptStatus.FAILED], NotificationStatus.FAILED),
        ([AttemptStatus.DELIVERED] * 3, NotificationStatus.SENT),
        ([AttemptStatus.FAILED, AttemptStatus.DELIVERED, AttemptStatus.DELIVERED], NotificationStatus.PARTIAL),
        ([AttemptStatus.FAILED, AttemptStatus.FAILED, AttemptStatus.DELIVERED], NotificationStatus.PARTIAL),
        ([AttemptStatus.FAILED] * 3, NotificationStatus.FAILED),
    ],
)
def test_aggregate_status(statuses, expected):
    assert aggregate_status(statuses) == expected
