from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from confdesk.models.actor import Actor
from confdesk.models.decision import (
    Decision,
    DecisionRecordResponse,
    DecisionView,
    NotificationResendResponse,
    normalize_outcome,
)
from confdesk.models.notification import NotificationAttempt
from confdesk.models.paper import Paper
from confdesk.services.decision_notification_service import (
    DecisionNotificationService,
    NotificationLedgerWriteError,
)
from confdesk.services.paper_repository import (
    DecisionAlreadyFinalError,
    PaperRepository,
    RepositoryError,
)
from confdesk.services.review_status_service import ReviewStatusService

logger = logging.getLogger("confdesk.decisions")


class ResultType(str, Enum):
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE_ERROR = "storage_error"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ServiceResult:
    type: ResultType
    message: str = ""
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.type is ResultType.SUCCESS

    @classmethod
    def success(cls, data: Any) -> "ServiceResult":
        return cls(ResultType.SUCCESS, "", data)

    @classmethod
    def fail(cls, type_: ResultType, message: str) -> "ServiceResult":
        return cls(type_, message, None)


_PAPER_ID_REQUIRED = ServiceResult.fail(ResultType.VALIDATION_ERROR, "paperId is required.")
_PAPER_NOT_FOUND = ServiceResult.fail(ResultType.NOT_FOUND, "Paper not found.")
_UNAVAILABLE = ServiceResult.fail(
    ResultType.UNAVAILABLE, "Decision temporarily unavailable. Please try again later."
)
_DELIVERY_STATE_UNKNOWN = ServiceResult.fail(
    ResultType.STORAGE_ERROR, "Decision recorded, but notification delivery state could not be saved."
)
_RESEND_STATE_UNKNOWN = ServiceResult.fail(
    ResultType.STORAGE_ERROR, "Notifications were resent, but delivery state could not be saved."
)


def _clean_id(value: object) -> str:
    return str(value or "").strip()


class DecisionService:
    """
    最终决策服务（记录 / 作者视图 / 通知补发）

    中文注释:
    - 所有结果以 ServiceResult 返回，由路由层统一映射 HTTP 状态码，不向外暴露异常细节。
    - “已存在最终决策”的判断以仓储层条件写为准：读检查只是快速失败，
      并发请求仍由 save_decision 的 compare-and-set 兜底，保证只有一个成功。
    - 通知失败不会让决策记录失败或回滚，只体现在 notification_status / failed_authors。
    - 投递流水写入失败时返回 storage_error（决策仍保留），此时不回写 notification_status。
    """

    def __init__(
        self,
        *,
        repository: PaperRepository,
        notifications: DecisionNotificationService,
        review_status: ReviewStatusService | None = None,
    ) -> None:
        self.repository = repository
        self.notifications = notifications
        self.review_status = review_status or ReviewStatusService(repository)

    def record_decision(self, *, paper_id: object, outcome: object, actor: Optional[Actor]) -> ServiceResult:
        pid = _clean_id(paper_id)
        if not pid:
            return _PAPER_ID_REQUIRED
        if actor is None or not actor.is_editor:
            return ServiceResult.fail(ResultType.FORBIDDEN, "Only editors can send decisions.")
        normalized = normalize_outcome(outcome)
        if normalized is None:
            return ServiceResult.fail(ResultType.VALIDATION_ERROR, "Outcome must be accept or reject.")

        try:
            paper = self.repository.get_paper_by_id(pid)
            if paper is None:
                return _PAPER_NOT_FOUND

            existing = self.repository.get_decision_by_paper_id(pid)
            if existing is not None and existing.final:
                return ServiceResult.fail(ResultType.CONFLICT, "Final decision already recorded.")

            review_status = self.review_status.get_review_status(pid)
        except RepositoryError:
            logger.exception("[Decision] read failed while recording decision paper=%s", pid)
            return _UNAVAILABLE

        if review_status is None:
            return _PAPER_NOT_FOUND
        if not review_status.complete:
            return ServiceResult.fail(
                ResultType.VALIDATION_ERROR,
                "Decision cannot be sent until all required reviews are submitted.",
            )

        try:
            decision = self.repository.save_decision(
                Decision(paper_id=paper.id, outcome=normalized, final=True)
            )
        except DecisionAlreadyFinalError:
            return ServiceResult.fail(ResultType.CONFLICT, "Final decision already recorded.")
        except RepositoryError:
            logger.exception("[Decision] failed to save decision paper=%s", pid)
            return ServiceResult.fail(
                ResultType.STORAGE_ERROR, "Decision could not be saved or sent at this time."
            )

        try:
            dispatch = self.notifications.send_decision_notifications(
                paper=paper, decision=decision, authors=paper.authors
            )
        except NotificationLedgerWriteError:
            # 决策已落库但投递流水不完整，不回写聚合状态
            logger.exception(
                "[Decision] notification ledger write failed paper=%s decision=%s", pid, decision.id
            )
            return _DELIVERY_STATE_UNKNOWN

        self._persist_notification_status(paper.id, dispatch.notification_status)
        logger.info(
            "[Decision] recorded paper=%s decision=%s outcome=%s by=%s notification=%s failed=%s",
            paper.id,
            decision.id,
            decision.outcome.value,
            actor.id,
            dispatch.notification_status.value,
            len(dispatch.failed_authors),
        )

        return ServiceResult.success(
            DecisionRecordResponse(
                decision_id=decision.id,
                final=True,
                notification_status=dispatch.notification_status,
                failed_authors=dispatch.failed_authors,
            )
        )

    def resend_failed_notifications(self, *, paper_id: object, actor: Optional[Actor]) -> ServiceResult:
        pid = _clean_id(paper_id)
        if not pid:
            return _PAPER_ID_REQUIRED
        if actor is None or not actor.is_editor:
            return ServiceResult.fail(ResultType.FORBIDDEN, "Only editors can resend notifications.")

        try:
            paper = self.repository.get_paper_by_id(pid)
            if paper is None:
                return _PAPER_NOT_FOUND
            decision = self.repository.get_decision_by_paper_id(pid)
            if decision is None:
                return ServiceResult.fail(ResultType.NOT_FOUND, "No decision to resend for.")
        except RepositoryError:
            logger.exception("[Decision] read failed while resending notifications paper=%s", pid)
            return _UNAVAILABLE

        try:
            resent = self.notifications.resend_failed_decision_notifications(
                paper=paper, decision=decision
            )
        except NotificationLedgerWriteError:
            logger.exception("[Decision] resend failed on notification ledger paper=%s", pid)
            return _RESEND_STATE_UNKNOWN
        except RepositoryError:
            logger.exception("[Decision] ledger read failed while resending notifications paper=%s", pid)
            return _UNAVAILABLE

        if resent is None:
            return ServiceResult.fail(ResultType.NOT_FOUND, "No failed recipients to resend.")

        self._persist_notification_status(paper.id, resent.notification_status)
        logger.info(
            "[Decision] resent notifications paper=%s decision=%s by=%s notification=%s still_failed=%s",
            paper.id,
            decision.id,
            actor.id,
            resent.notification_status.value,
            len(resent.failed_authors),
        )
        return ServiceResult.success(
            NotificationResendResponse(
                final=decision.final,
                notification_status=resent.notification_status,
                failed_authors=resent.failed_authors,
            )
        )

    def get_decision_view(self, *, paper_id: object, actor: Optional[Actor]) -> ServiceResult:
        pid = _clean_id(paper_id)
        if not pid:
            return _PAPER_ID_REQUIRED

        try:
            paper = self.repository.get_paper_by_id(pid)
            if paper is None:
                return _PAPER_NOT_FOUND
            if not self._can_view(paper, actor):
                return ServiceResult.fail(ResultType.FORBIDDEN, "Access denied.")
            decision = self.repository.get_decision_by_paper_id(pid)
        except RepositoryError:
            logger.exception("[Decision] read failed while loading decision view paper=%s", pid)
            return _UNAVAILABLE

        if decision is None:
            return ServiceResult.fail(ResultType.NOT_FOUND, "Decision not recorded.")

        return ServiceResult.success(
            DecisionView(
                paper_id=paper.id,
                paper_title=paper.title,
                outcome=decision.outcome,
                recorded_at=decision.recorded_at,
                final=decision.final,
            )
        )

    def list_notification_attempts(self, *, paper_id: object, actor: Optional[Actor]) -> ServiceResult:
        """
        编辑查看某篇论文决策通知的完整投递流水（按写入顺序）。
        """
        pid = _clean_id(paper_id)
        if not pid:
            return _PAPER_ID_REQUIRED
        if actor is None or not actor.is_editor:
            return ServiceResult.fail(ResultType.FORBIDDEN, "Only editors can view notification attempts.")

        try:
            paper = self.repository.get_paper_by_id(pid)
            if paper is None:
                return _PAPER_NOT_FOUND
            decision = self.repository.get_decision_by_paper_id(pid)
            if decision is None:
                return ServiceResult.fail(ResultType.NOT_FOUND, "Decision not recorded.")
            attempts: list[NotificationAttempt] = (
                self.repository.list_notification_attempts_by_decision_id(decision.id)
            )
        except RepositoryError:
            logger.exception("[Decision] failed to list notification attempts paper=%s", pid)
            return _UNAVAILABLE

        return ServiceResult.success(attempts)

    def get_review_status(self, *, paper_id: object, actor: Optional[Actor]) -> ServiceResult:
        pid = _clean_id(paper_id)
        if not pid:
            return _PAPER_ID_REQUIRED
        if actor is None or not actor.is_editor:
            return ServiceResult.fail(ResultType.FORBIDDEN, "Only editors can view review status.")
        try:
            status = self.review_status.get_review_status(pid)
        except RepositoryError:
            logger.exception("[Decision] failed to load review status paper=%s", pid)
            return _UNAVAILABLE
        if status is None:
            return _PAPER_NOT_FOUND
        return ServiceResult.success(status)

    def _can_view(self, paper: Paper, actor: Optional[Actor]) -> bool:
        if actor is None:
            return False
        if actor.is_editor:
            return True
        return bool(actor.id) and actor.id in paper.author_ids

    def _persist_notification_status(self, paper_id: str, status) -> None:
        # 中文注释: 决策已落库；状态回写失败只记日志，本次结果仍为 success。
        try:
            self.repository.update_decision_notification_status(paper_id, status)
        except RepositoryError:
            logger.exception(
                "[Decision] failed to persist notification status paper=%s status=%s",
                paper_id,
                getattr(status, "value", status),
            )
