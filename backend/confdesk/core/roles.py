import logging
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request

from confdesk.core.auth_utils import get_optional_user
from confdesk.core.config import allow_header_actor
from confdesk.lib.api_client import supabase
from confdesk.models.actor import Actor, ActorRole

logger = logging.getLogger("confdesk.auth")

# 多角色用户按此优先级取“当前身份”
_ROLE_PRIORITY = (ActorRole.EDITOR, ActorRole.AUTHOR, ActorRole.REVIEWER)


def pick_role(profile_role: object = None, roles: Optional[Iterable[object]] = None) -> Optional[ActorRole]:
    """
    从 profile 推导单一角色：显式 role 字段优先，其次按优先级从 roles 列表里挑。
    """
    explicit = ActorRole.parse(profile_role)
    if explicit is not None:
        return explicit
    parsed = {ActorRole.parse(r) for r in (roles or [])}
    for role in _ROLE_PRIORITY:
        if role in parsed:
            return role
    return None


def _load_profile_role(user_id: str) -> Optional[ActorRole]:
    try:
        resp = supabase.table("user_profiles").select("id,role,roles").eq("id", user_id).execute()
        row = (getattr(resp, "data", None) or [None])[0]
    except Exception as e:
        # 中文注释: profile 读取失败时不授予任何角色（不能因为降级而放大权限）
        logger.warning(f"Failed to fetch user profile {user_id}: {e}")
        return None
    if not row:
        return None
    return pick_role(row.get("role"), row.get("roles"))


async def get_current_actor(
    request: Request,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> Actor:
    """
    解析当前操作者。

    中文注释:
    1) 正式路径：Bearer JWT -> user_profiles(role/roles) -> Actor。
    2) 开发/测试路径（ALLOW_HEADER_ACTOR=1）：X-User-Id + X-User-Role 头部直接声明身份。
    3) 两者都没有 -> 401。
    """
    if current_user:
        user_id = str(current_user.get("id") or "").strip()
        return Actor(id=user_id, role=_load_profile_role(user_id))

    if allow_header_actor():
        user_id = (request.headers.get("x-user-id") or "").strip()
        if user_id:
            return Actor(id=user_id, role=request.headers.get("x-user-role"))

    raise HTTPException(status_code=401, detail="Session expired. Please log in again.")
