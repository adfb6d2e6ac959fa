from __future__ import annotations

from threading import Lock
from typing import Any, Iterable, Optional, Protocol

from postgrest.exceptions import APIError

from confdesk.models.decision import Decision, NotificationStatus
from confdesk.models.notification import NotificationAttempt
from confdesk.models.paper import Paper, ReviewAssignment
from confdesk.services.notification_ledger import failed_author_ids


# PostgreSQL unique_violation
_UNIQUE_VIOLATION = "23505"


class RepositoryError(Exception):
    """存储层读写失败（网络、权限、表缺失等）。"""


class DecisionAlreadyFinalError(RepositoryError):
    """条件写入失败：该论文已存在最终决策。"""


class PaperRepository(Protocol):
    def get_paper_by_id(self, paper_id: str) -> Optional[Paper]: ...

    def get_decision_by_paper_id(self, paper_id: str) -> Optional[Decision]: ...

    def save_decision(self, decision: Decision) -> Decision: ...

    def update_decision_notification_status(
        self, paper_id: str, status: NotificationStatus
    ) -> Optional[Decision]: ...

    def list_review_assignments(self, paper_id: str) -> list[ReviewAssignment]: ...

    def record_notification_attempt(self, attempt: NotificationAttempt) -> NotificationAttempt: ...

    def list_notification_attempts_by_decision_id(
        self, decision_id: str
    ) -> list[NotificationAttempt]: ...

    def list_latest_failed_author_ids_by_decision_id(self, decision_id: str) -> list[str]: ...


class InMemoryPaperRepository:
    """
    进程内仓储（本地联调 / 单元测试）

    中文注释:
    - save_decision 在锁内做 compare-and-set：已有 final 决策则抛 DecisionAlreadyFinalError，
      保证并发 record 只有一个成功。
    - 通知流水只追加；列表按写入顺序返回。
    - 对外返回的都是副本，调用方修改不会污染存储。
    """

    def __init__(
        self,
        *,
        papers: Iterable[Paper] = (),
        assignments: Iterable[ReviewAssignment] = (),
    ) -> None:
        self._lock = Lock()
        self._papers: dict[str, Paper] = {}
        self._assignments: list[ReviewAssignment] = []
        self._decisions: dict[str, Decision] = {}
        self._attempts: list[NotificationAttempt] = []
        self.seed(papers=papers, assignments=assignments)

    def seed(
        self,
        *,
        papers: Iterable[Paper] = (),
        assignments: Iterable[ReviewAssignment] = (),
    ) -> None:
        with self._lock:
            for paper in papers:
                self._papers[paper.id] = paper.model_copy(deep=True)
            self._assignments.extend(a.model_copy() for a in assignments)

    def get_paper_by_id(self, paper_id: str) -> Optional[Paper]:
        with self._lock:
            paper = self._papers.get(str(paper_id))
            return paper.model_copy(deep=True) if paper else None

    def get_decision_by_paper_id(self, paper_id: str) -> Optional[Decision]:
        with self._lock:
            decision = self._decisions.get(str(paper_id))
            return decision.model_copy() if decision else None

    def save_decision(self, decision: Decision) -> Decision:
        with self._lock:
            existing = self._decisions.get(decision.paper_id)
            if existing is not None and existing.final:
                raise DecisionAlreadyFinalError(f"final decision exists for paper {decision.paper_id}")
            self._decisions[decision.paper_id] = decision.model_copy()
            return decision.model_copy()

    def update_decision_notification_status(
        self, paper_id: str, status: NotificationStatus
    ) -> Optional[Decision]:
        with self._lock:
            existing = self._decisions.get(str(paper_id))
            if existing is None:
                return None
            updated = existing.model_copy(update={"notification_status": NotificationStatus(status)})
            self._decisions[updated.paper_id] = updated
            return updated.model_copy()

    def list_review_assignments(self, paper_id: str) -> list[ReviewAssignment]:
        with self._lock:
            return [a.model_copy() for a in self._assignments if a.paper_id == str(paper_id)]

    def record_notification_attempt(self, attempt: NotificationAttempt) -> NotificationAttempt:
        with self._lock:
            self._attempts.append(attempt.model_copy())
        return attempt

    def list_notification_attempts_by_decision_id(
        self, decision_id: str
    ) -> list[NotificationAttempt]:
        with self._lock:
            return [a.model_copy() for a in self._attempts if a.decision_id == str(decision_id)]

    def list_latest_failed_author_ids_by_decision_id(self, decision_id: str) -> list[str]:
        return failed_author_ids(self.list_notification_attempts_by_decision_id(decision_id))

    def count_decisions(self) -> int:
        with self._lock:
            return len(self._decisions)


def _rows(resp: Any) -> list[dict[str, Any]]:
    return getattr(resp, "data", None) or []


def _is_unique_violation(err: APIError) -> bool:
    code = str(getattr(err, "code", "") or "")
    return code == _UNIQUE_VIOLATION or _UNIQUE_VIOLATION in str(err)


class SupabasePaperRepository:
    """
    基于 Supabase(PostgREST) 的仓储实现

    表结构约定:
    - papers(id, title, authors jsonb, required_review_count)
    - review_assignments(paper_id, reviewer_id, required, status)
    - decisions(id, paper_id UNIQUE, outcome, recorded_at, final, notification_status)
    - notification_attempts(seq bigserial, attempt_id, paper_id, decision_id, author_id,
      status, attempted_at, error_reason)

    中文注释:
    - decisions.paper_id 的唯一约束就是“每篇论文最多一个最终决策”的原子条件写；
      并发插入时数据库返回 23505，这里转成 DecisionAlreadyFinalError。
    - notification_attempts 只 insert，按 (attempted_at, seq) 排序还原写入顺序。
    """

    DECISION_FIELDS = "id,paper_id,outcome,recorded_at,final,notification_status"
    ATTEMPT_FIELDS = "attempt_id,paper_id,decision_id,author_id,status,attempted_at,error_reason"

    def __init__(self, client: Any = None) -> None:
        if client is None:
            from confdesk.lib.api_client import supabase_admin

            client = supabase_admin
        self.client = client

    def get_paper_by_id(self, paper_id: str) -> Optional[Paper]:
        try:
            resp = (
                self.client.table("papers")
                .select("id,title,authors,required_review_count")
                .eq("id", paper_id)
                .limit(1)
                .execute()
            )
        except Exception as err:
            raise RepositoryError(f"failed to load paper {paper_id}") from err
        rows = _rows(resp)
        if not rows:
            return None
        row = dict(rows[0])
        row["authors"] = row.get("authors") or []
        row["required_review_count"] = int(row.get("required_review_count") or 0)
        return Paper.model_validate(row)

    def get_decision_by_paper_id(self, paper_id: str) -> Optional[Decision]:
        try:
            resp = (
                self.client.table("decisions")
                .select(self.DECISION_FIELDS)
                .eq("paper_id", paper_id)
                .limit(1)
                .execute()
            )
        except Exception as err:
            raise RepositoryError(f"failed to load decision for paper {paper_id}") from err
        rows = _rows(resp)
        return Decision.model_validate(rows[0]) if rows else None

    def save_decision(self, decision: Decision) -> Decision:
        payload = decision.model_dump(mode="json")
        try:
            resp = self.client.table("decisions").insert(payload).execute()
        except APIError as err:
            if _is_unique_violation(err):
                raise DecisionAlreadyFinalError(
                    f"final decision exists for paper {decision.paper_id}"
                ) from err
            raise RepositoryError(f"failed to save decision for paper {decision.paper_id}") from err
        except Exception as err:
            raise RepositoryError(f"failed to save decision for paper {decision.paper_id}") from err
        rows = _rows(resp)
        if not rows:
            raise RepositoryError(f"decision insert returned no row for paper {decision.paper_id}")
        return Decision.model_validate(rows[0])

    def update_decision_notification_status(
        self, paper_id: str, status: NotificationStatus
    ) -> Optional[Decision]:
        try:
            resp = (
                self.client.table("decisions")
                .update({"notification_status": NotificationStatus(status).value})
                .eq("paper_id", paper_id)
                .execute()
            )
        except Exception as err:
            raise RepositoryError(f"failed to update notification status for paper {paper_id}") from err
        rows = _rows(resp)
        return Decision.model_validate(rows[0]) if rows else None

    def list_review_assignments(self, paper_id: str) -> list[ReviewAssignment]:
        try:
            resp = (
                self.client.table("review_assignments")
                .select("paper_id,reviewer_id,required,status")
                .eq("paper_id", paper_id)
                .execute()
            )
        except Exception as err:
            raise RepositoryError(f"failed to list review assignments for paper {paper_id}") from err
        return [ReviewAssignment.model_validate(row) for row in _rows(resp)]

    def record_notification_attempt(self, attempt: NotificationAttempt) -> NotificationAttempt:
        try:
            self.client.table("notification_attempts").insert(attempt.model_dump(mode="json")).execute()
        except Exception as err:
            raise RepositoryError(f"failed to record notification attempt {attempt.attempt_id}") from err
        return attempt

    def list_notification_attempts_by_decision_id(
        self, decision_id: str
    ) -> list[NotificationAttempt]:
        try:
            resp = (
                self.client.table("notification_attempts")
                .select(self.ATTEMPT_FIELDS)
                .eq("decision_id", decision_id)
                .order("attempted_at")
                .order("seq")
                .execute()
            )
        except Exception as err:
            raise RepositoryError(f"failed to list notification attempts for {decision_id}") from err
        return [NotificationAttempt.model_validate(row) for row in _rows(resp)]

    def list_latest_failed_author_ids_by_decision_id(self, decision_id: str) -> list[str]:
        return failed_author_ids(self.list_notification_attempts_by_decision_id(decision_id))
