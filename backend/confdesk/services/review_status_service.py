from __future__ import annotations

from typing import Iterable, Optional

from confdesk.models.paper import (
    OUTSTANDING_REVIEW_STATUSES,
    ReviewAssignment,
    ReviewAssignmentStatus,
    ReviewStatus,
    normalize_assignment_status,
)
from confdesk.services.paper_repository import PaperRepository


def _required_status_counts(assignments: Iterable[ReviewAssignment]) -> tuple[int, int]:
    submitted = 0
    outstanding = 0
    for assignment in assignments:
        if not assignment.required:
            continue
        status = normalize_assignment_status(assignment.status)
        if status == ReviewAssignmentStatus.SUBMITTED.value:
            submitted += 1
        elif status in OUTSTANDING_REVIEW_STATUSES:
            outstanding += 1
    return submitted, outstanding


def is_complete(assignments: Iterable[ReviewAssignment], required_count: int) -> bool:
    """
    审稿完整性判定（纯函数）

    中文注释:
    - 只看 required=True 的分配；可选审稿再多也不能抵消未完成的必审项。
    - 两个条件同时满足才算完整：已提交必审数 >= required_count，且没有待完成的必审项。
    """
    submitted, outstanding = _required_status_counts(assignments)
    return submitted >= max(int(required_count or 0), 0) and outstanding == 0


class ReviewStatusService:
    def __init__(self, repository: PaperRepository) -> None:
        self.repository = repository

    def get_review_status(self, paper_id: str) -> Optional[ReviewStatus]:
        paper = self.repository.get_paper_by_id(paper_id)
        if paper is None:
            return None
        assignments = self.repository.list_review_assignments(paper.id)
        submitted, outstanding = _required_status_counts(assignments)
        return ReviewStatus(
            paper_id=paper.id,
            required_count=paper.required_review_count,
            submitted_required_count=submitted,
            outstanding_required_count=outstanding,
            complete=is_complete(assignments, paper.required_review_count),
        )
