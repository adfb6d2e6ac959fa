from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional, Sequence

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from confdesk.core.config import NotificationConfig
from confdesk.models.decision import Decision
from confdesk.models.notification import AttemptStatus, DispatchOutcome, NotificationAttempt
from confdesk.models.paper import Paper, PaperAuthor
from confdesk.services.decision_notifier import DecisionNotifier
from confdesk.services.notification_ledger import aggregate_status, latest_attempt_by_author
from confdesk.services.paper_repository import PaperRepository, RepositoryError

logger = logging.getLogger("confdesk.notifications")

MISSING_RECIPIENT_EMAIL = "missing_recipient_email"
NOTIFICATION_FAILED = "notification_failed"


class NotificationLedgerWriteError(RepositoryError):
    """投递记录重试后仍写入失败：通知可能已发出，但流水里没有对应记录。"""


def _failure_reason(error: BaseException) -> str:
    message = str(error).strip()
    return message or NOTIFICATION_FAILED


def _order_by_authors(author_ids: Sequence[str], authors: Sequence[PaperAuthor]) -> list[str]:
    """按论文作者顺序输出；不在作者列表里的 id 追加在末尾。"""
    wanted = set(author_ids)
    ordered = [a.id for a in authors if a.id in wanted]
    seen = set(ordered)
    extras = [aid for aid in author_ids if aid not in seen]
    return ordered + extras


class DecisionNotificationService:
    """
    决策通知分发器

    中文注释:
    1) 每位作者一次投递 + 一条投递记录（delivered / failed），单个作者失败不影响其他作者。
    2) 单次分发内对作者并发扇出；全部完成后才计算聚合状态（分发调用本身是同步屏障）。
    3) 补发只针对“最新一次投递仍为 failed”的作者；聚合状态基于全部作者的最新记录重新计算。
    4) 通知异常只体现在返回的 notification_status / failed_authors 上，绝不向上抛。
    5) 投递流水写入（有限重试后）仍失败时抛出 NotificationLedgerWriteError，不丢弃记录。
    """

    def __init__(
        self,
        *,
        repository: PaperRepository,
        notifier: DecisionNotifier,
        config: NotificationConfig | None = None,
    ) -> None:
        self.repository = repository
        self.notifier = notifier
        self.config = config or NotificationConfig.from_env()

    def _deliver(self, paper: Paper, decision: Decision, author: PaperAuthor) -> NotificationAttempt:
        status = AttemptStatus.DELIVERED
        error_reason: Optional[str] = None

        if not author.id or not author.email:
            status = AttemptStatus.FAILED
            error_reason = MISSING_RECIPIENT_EMAIL
        else:
            try:
                self.notifier.send_decision_notification(paper=paper, author=author, decision=decision)
            except Exception as e:
                status = AttemptStatus.FAILED
                error_reason = _failure_reason(e)

        attempt = NotificationAttempt(
            paper_id=decision.paper_id,
            decision_id=decision.id,
            author_id=author.id,
            status=status,
            error_reason=error_reason,
        )
        if status == AttemptStatus.FAILED:
            logger.warning(
                json.dumps(
                    {
                        "event": "decision_notification_failed",
                        "paper_id": decision.paper_id,
                        "decision_id": decision.id,
                        "author_id": author.id,
                        "reason": error_reason,
                        "at": datetime.now(timezone.utc).isoformat(),
                    }
                )
            )

        self._append_attempt(attempt)
        return attempt

    def _append_attempt(self, attempt: NotificationAttempt) -> None:
        """
        写入投递流水；有限次重试后仍失败则抛出 NotificationLedgerWriteError。

        中文注释: 流水是补发选人的唯一依据，写入失败必须上抛。
        """
        cfg = self.config
        try:
            for retry in Retrying(
                stop=stop_after_attempt(cfg.send_attempts),
                wait=wait_exponential(multiplier=1, min=0, max=cfg.retry_wait_max_sec),
                retry=retry_if_exception_type(RepositoryError),
                reraise=True,
            ):
                with retry:
                    self.repository.record_notification_attempt(attempt)
        except RepositoryError as err:
            logger.exception(
                "[Notifications] failed to record attempt decision=%s author=%s status=%s",
                attempt.decision_id,
                attempt.author_id,
                attempt.status.value,
            )
            raise NotificationLedgerWriteError(
                f"failed to record attempt for author {attempt.author_id}"
            ) from err

    def _send_to_recipients(
        self, paper: Paper, decision: Decision, recipients: Sequence[PaperAuthor]
    ) -> list[NotificationAttempt]:
        if not recipients:
            return []
        workers = max(1, min(self.config.max_workers, len(recipients)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="decision-notify") as pool:
            # map 保持输入顺序；with 退出时等待全部投递完成
            return list(pool.map(lambda author: self._deliver(paper, decision, author), recipients))

    def send_decision_notifications(
        self,
        *,
        paper: Paper,
        decision: Decision,
        authors: Sequence[PaperAuthor] | None = None,
    ) -> DispatchOutcome:
        recipients = list(paper.authors if authors is None else authors)
        attempts = self._send_to_recipients(paper, decision, recipients)
        failed = [a.author_id for a in attempts if a.status == AttemptStatus.FAILED]
        return DispatchOutcome(
            notification_status=aggregate_status(a.status for a in attempts),
            failed_authors=failed,
        )

    def resend_failed_decision_notifications(
        self, *, paper: Paper, decision: Decision
    ) -> Optional[DispatchOutcome]:
        """
        返回 None 表示当前没有需要补发的作者。

        中文注释:
        - 完整流水只在发送前读取一次，补发对象与最终聚合都基于这次读取；发送之后不再读库。
        - 只统计论文当前作者列表里的作者；流水里不属于该论文作者的 id 不参与补发与聚合。
        """
        author_ids = set(paper.author_ids)
        latest = {
            author_id: attempt
            for author_id, attempt in latest_attempt_by_author(
                self.repository.list_notification_attempts_by_decision_id(decision.id)
            ).items()
            if author_id in author_ids
        }
        targets = [
            author
            for author in paper.authors
            if author.id in latest and latest[author.id].status == AttemptStatus.FAILED
        ]
        if not targets:
            return None

        for attempt in self._send_to_recipients(paper, decision, targets):
            latest[attempt.author_id] = attempt

        still_failed = [
            author_id for author_id, attempt in latest.items() if attempt.status == AttemptStatus.FAILED
        ]
        return DispatchOutcome(
            notification_status=aggregate_status(a.status for a in latest.values()),
            failed_authors=_order_by_authors(still_failed, paper.authors),
        )
