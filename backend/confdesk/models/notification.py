from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from confdesk.models.decision import NotificationStatus


class AttemptStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_attempt_id() -> str:
    return f"attempt_{uuid4().hex}"


class NotificationAttempt(BaseModel):
    """
    单次通知投递记录（只追加，不修改、不删除）
    """

    attempt_id: str = Field(default_factory=_new_attempt_id)
    paper_id: str
    decision_id: str
    author_id: str
    status: AttemptStatus
    attempted_at: datetime = Field(default_factory=_utc_now)
    error_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DispatchOutcome(BaseModel):
    notification_status: NotificationStatus
    failed_authors: list[str] = Field(default_factory=list)
