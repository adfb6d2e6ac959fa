import os
import threading
from typing import Any, Callable, Optional

from supabase import Client, create_client

from confdesk.core.config import app_config

url: str = app_config.supabase_url

# SUPABASE_ANON_KEY 优先，旧部署只配置了 SUPABASE_KEY
key: str = os.environ.get("SUPABASE_ANON_KEY") or os.environ.get("SUPABASE_KEY") or ""

service_role_key: str = app_config.supabase_key


class _LazySupabaseClient:
    """
    首次访问属性时才创建 Client。

    中文注释:
    - 内存存储模式下完全不需要 Supabase，模块必须在缺少环境变量时也能导入。
    - 单测通过 monkeypatch 替换 `supabase` / `supabase_admin`，或把 `_client` 置空重新触发构建。
    """

    def __init__(self, build: Callable[[], Client], *, name: str):
        self._build = build
        self._name = name
        self._client: Optional[Client] = None
        self._lock = threading.Lock()

    def _resolve(self) -> Client:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._build()
        return self._client

    def __getattr__(self, item: str) -> Any:
        return getattr(self._resolve(), item)

    def __repr__(self) -> str:
        state = "ready" if self._client is not None else "lazy"
        return f"<{self._name} supabase client ({state})>"


def _connect(api_key: str) -> Client:
    if not url:
        raise RuntimeError("SUPABASE_URL is required")
    return create_client(url, api_key)


def _build_profile_client() -> Client:
    if not key:
        raise RuntimeError("SUPABASE_ANON_KEY or SUPABASE_KEY is required")
    return _connect(key)


def _build_admin_client() -> Client:
    admin_key = service_role_key or key
    if not admin_key:
        raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_KEY) is required")
    return _connect(admin_key)


# 读取 user_profiles / 校验会话
supabase: Client = _LazySupabaseClient(_build_profile_client, name="profile")  # type: ignore[assignment]

# papers / review_assignments / decisions / notification_attempts 读写（service role）
supabase_admin: Client = _LazySupabaseClient(_build_admin_client, name="admin")  # type: ignore[assignment]
