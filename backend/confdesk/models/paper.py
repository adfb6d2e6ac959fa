from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReviewAssignmentStatus(str, Enum):
    PENDING = "pending"
    INVITED = "invited"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


# 尚未完成的审稿状态（必审项处于这些状态时，稿件不能做最终决策）
OUTSTANDING_REVIEW_STATUSES = frozenset(
    {
        ReviewAssignmentStatus.PENDING.value,
        ReviewAssignmentStatus.INVITED.value,
        ReviewAssignmentStatus.IN_PROGRESS.value,
    }
)


def normalize_assignment_status(value: object) -> str:
    raw = value.value if isinstance(value, Enum) else value
    return str(raw or "").strip().lower()


class PaperAuthor(BaseModel):
    id: str
    email: str = ""

    @field_validator("id", "email", mode="before")
    @classmethod
    def _strip(cls, value: object) -> str:
        return str(value or "").strip()


class Paper(BaseModel):
    """
    论文实体（只读投影）

    中文注释:
    - authors 保持投稿时的顺序，按 id 去重（保留首次出现），丢弃缺少 id 的条目。
    """

    id: str
    title: str = ""
    authors: list[PaperAuthor] = Field(default_factory=list)
    required_review_count: int = Field(0, ge=0)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("authors", mode="after")
    @classmethod
    def _dedupe_authors(cls, authors: list[PaperAuthor]) -> list[PaperAuthor]:
        seen: set[str] = set()
        out: list[PaperAuthor] = []
        for author in authors:
            if not author.id or author.id in seen:
                continue
            seen.add(author.id)
            out.append(author)
        return out

    @property
    def author_ids(self) -> list[str]:
        return [a.id for a in self.authors if a.id]


class ReviewAssignment(BaseModel):
    paper_id: str
    reviewer_id: str
    required: bool = False
    # 外部数据可能带有未知状态，这里保留原值，由完整性判定做归一化
    status: str = ReviewAssignmentStatus.PENDING.value

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> str:
        return normalize_assignment_status(value)


class ReviewStatus(BaseModel):
    paper_id: str
    required_count: int
    submitted_required_count: int
    outstanding_required_count: int
    complete: bool
