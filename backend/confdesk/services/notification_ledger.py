from __future__ import annotations

from typing import Iterable

from confdesk.models.decision import NotificationStatus
from confdesk.models.notification import AttemptStatus, NotificationAttempt


def latest_attempt_by_author(
    attempts: Iterable[NotificationAttempt],
) -> dict[str, NotificationAttempt]:
    """
    按作者取“当前”投递记录：attempted_at 最大者胜出，时间相同取后写入的一条。

    中文注释:
    - attempts 必须按写入顺序传入（仓储层负责保证）。
    - 每次都从完整流水投影，不缓存聚合结果，避免补发后读到过期的失败列表。
    """
    latest: dict[str, NotificationAttempt] = {}
    for attempt in attempts:
        current = latest.get(attempt.author_id)
        if current is None or attempt.attempted_at >= current.attempted_at:
            latest[attempt.author_id] = attempt
    return latest


def failed_author_ids(attempts: Iterable[NotificationAttempt]) -> list[str]:
    return [
        author_id
        for author_id, attempt in latest_attempt_by_author(attempts).items()
        if attempt.status == AttemptStatus.FAILED
    ]


def aggregate_status(statuses: Iterable[AttemptStatus]) -> NotificationStatus:
    """
    sent: 全部 delivered（含 0 个作者）；failed: 全部 failed；其余为 partial。
    """
    items = list(statuses)
    failed = sum(1 for s in items if s == AttemptStatus.FAILED)
    if failed == 0:
        return NotificationStatus.SENT
    if failed == len(items):
        return NotificationStatus.FAILED
    return NotificationStatus.PARTIAL
