import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    return lowered in {"1", "true", "yes", "y", "on"}


def _env_int(key: str, default: int, *, minimum: int = 1) -> int:
    raw = (os.environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(value, minimum)


def _env_float(key: str, default: float) -> float:
    raw = (os.environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    """
    Application Environment Config
    """
    env: str  # 'development', 'staging', 'production', 'test'
    is_staging: bool
    supabase_url: str
    supabase_key: str
    decision_store: str  # 'supabase' | 'memory'

    @staticmethod
    def from_env() -> "AppConfig":
        env = (os.environ.get("APP_ENV") or "development").strip().lower()
        is_staging = env == "staging"

        supabase_url = (os.environ.get("SUPABASE_URL") or "").strip()
        supabase_key = (os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip()

        # 中文注释: 未配置 Supabase 时默认走进程内存储，保证本地/CI 可直接启动。
        default_store = "supabase" if supabase_url and supabase_key else "memory"
        decision_store = (os.environ.get("DECISION_STORE") or default_store).strip().lower()
        if decision_store not in {"supabase", "memory"}:
            decision_store = default_store

        return AppConfig(
            env=env,
            is_staging=is_staging,
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            decision_store=decision_store,
        )

# Global Config Instance
app_config = AppConfig.from_env()


@dataclass(frozen=True)
class NotificationConfig:
    """
    决策通知分发配置

    中文注释:
    1) max_workers 控制单次分发时对作者的并发扇出上限。
    2) send_attempts 仅约束“单次投递”内部的瞬时重试（provider 层），
       与 resend（编辑手动补发）无关。
    """

    max_workers: int
    send_attempts: int
    retry_wait_max_sec: float

    @staticmethod
    def from_env() -> "NotificationConfig":
        return NotificationConfig(
            max_workers=_env_int("NOTIFY_MAX_WORKERS", 4),
            send_attempts=_env_int("NOTIFY_SEND_ATTEMPTS", 3),
            retry_wait_max_sec=max(0.0, _env_float("NOTIFY_RETRY_WAIT_MAX_SEC", 10.0)),
        )


@dataclass(frozen=True)
class ResendConfig:
    """
    Resend API Configuration (decision emails)
    """
    api_key: str
    sender: str

    @staticmethod
    def from_env() -> Optional["ResendConfig"]:
        api_key = (os.environ.get("RESEND_API_KEY") or "").strip()
        if not api_key:
            return None

        sender = (
            os.environ.get("EMAIL_SENDER") or "Conference Office <decisions@confdesk.local>"
        ).strip()

        return ResendConfig(api_key=api_key, sender=sender)


@dataclass(frozen=True)
class SentryConfig:
    enabled: bool
    dsn: str
    environment: str
    traces_sample_rate: float

    @staticmethod
    def from_env() -> "SentryConfig":
        dsn = (os.environ.get("SENTRY_DSN") or "").strip()
        return SentryConfig(
            enabled=_env_bool("SENTRY_ENABLED", bool(dsn)),
            dsn=dsn,
            environment=(
                os.environ.get("SENTRY_ENVIRONMENT") or os.environ.get("APP_ENV") or "development"
            ).strip(),
            traces_sample_rate=min(1.0, max(0.0, _env_float("SENTRY_TRACES_SAMPLE_RATE", 0.0))),
        )


def allow_header_actor() -> bool:
    """
    是否允许通过 X-User-Id / X-User-Role 头部直接声明身份。

    中文注释:
    - 仅用于本地联调与测试环境，生产环境必须关闭。
    """
    if _env_bool("ALLOW_HEADER_ACTOR", False):
        return True
    env = (os.environ.get("APP_ENV") or "").strip().lower()
    return env in {"test", "testing"}
