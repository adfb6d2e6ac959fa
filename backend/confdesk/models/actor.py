from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class ActorRole(str, Enum):
    EDITOR = "editor"
    AUTHOR = "author"
    REVIEWER = "reviewer"

    @classmethod
    def parse(cls, value: object) -> Optional["ActorRole"]:
        """
        将外部角色字符串归一化为枚举；未知角色返回 None（视为无权限）。
        """
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for role in cls:
            if role.value == raw:
                return role
        return None


class Actor(BaseModel):
    """
    当前请求的操作者（由会话/JWT 推导，不落库）。
    """

    id: str
    role: Optional[ActorRole] = None

    @field_validator("id", mode="before")
    @classmethod
    def _strip_id(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: object) -> Optional[ActorRole]:
        return ActorRole.parse(value)

    @property
    def is_editor(self) -> bool:
        return self.role is ActorRole.EDITOR
