from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class DecisionOutcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class NotificationStatus(str, Enum):
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"


# 兼容过去式写法（表单/旧数据里常见 Accepted / Rejected）
_OUTCOME_SYNONYMS = {
    "accept": DecisionOutcome.ACCEPT,
    "accepted": DecisionOutcome.ACCEPT,
    "reject": DecisionOutcome.REJECT,
    "rejected": DecisionOutcome.REJECT,
}


def normalize_outcome(value: object) -> Optional[DecisionOutcome]:
    if isinstance(value, DecisionOutcome):
        return value
    return _OUTCOME_SYNONYMS.get(str(value or "").strip().lower())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_decision_id() -> str:
    return f"decision_{uuid4().hex}"


class Decision(BaseModel):
    """
    最终决策记录

    中文注释:
    - 每篇论文最多一条 final=True 的决策，一旦写入不可修改（notification_status 除外）。
    - 初始 notification_status 为 failed 占位，分发完成后再回写真实聚合状态。
    """

    id: str = Field(default_factory=_new_decision_id)
    paper_id: str
    outcome: DecisionOutcome
    recorded_at: datetime = Field(default_factory=_utc_now)
    final: bool = True
    notification_status: NotificationStatus = NotificationStatus.FAILED

    model_config = ConfigDict(from_attributes=True)


class DecisionRecordRequest(BaseModel):
    # 中文注释: 这里不做枚举校验，交给 service 归一化，保证非法值返回 400 而非 422。
    outcome: str = Field("", description="accept / reject（大小写不敏感，兼容 accepted / rejected）")


class DecisionRecordResponse(BaseModel):
    decision_id: str
    final: bool
    notification_status: NotificationStatus
    failed_authors: list[str] = Field(default_factory=list)


class NotificationResendResponse(BaseModel):
    final: bool
    notification_status: NotificationStatus
    failed_authors: list[str] = Field(default_factory=list)


class DecisionView(BaseModel):
    """
    作者可见的决策视图：只包含这 5 个字段，严禁带出审稿人身份或审稿意见。
    """

    paper_id: str
    paper_title: str
    outcome: DecisionOutcome
    recorded_at: Optional[datetime] = None
    final: bool

    model_config = ConfigDict(extra="forbid")
