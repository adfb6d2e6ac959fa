from __future__ import annotations

import logging
from functools import lru_cache

from confdesk.core.config import AppConfig, NotificationConfig, app_config
from confdesk.services.decision_notification_service import DecisionNotificationService
from confdesk.services.decision_notifier import (
    DecisionNotifier,
    EmailDecisionNotifier,
    LogOnlyDecisionNotifier,
)
from confdesk.services.decision_service import DecisionService
from confdesk.services.paper_repository import (
    InMemoryPaperRepository,
    PaperRepository,
    SupabasePaperRepository,
)

logger = logging.getLogger("confdesk")


def build_repository(cfg: AppConfig) -> PaperRepository:
    if cfg.decision_store == "supabase":
        return SupabasePaperRepository()
    logger.info("[confdesk] DECISION_STORE=memory: decisions are kept in-process only")
    return InMemoryPaperRepository()


def build_notifier(notification_config: NotificationConfig) -> DecisionNotifier:
    notifier = EmailDecisionNotifier(notification_config=notification_config)
    if notifier.is_configured():
        return notifier
    logger.info("[confdesk] RESEND_API_KEY not set: decision emails are logged only")
    return LogOnlyDecisionNotifier()


@lru_cache(maxsize=1)
def get_paper_repository() -> PaperRepository:
    return build_repository(app_config)


@lru_cache(maxsize=1)
def get_decision_service() -> DecisionService:
    """
    进程级单例：仓储 + 通知器 + 分发器组装。

    中文注释: 测试通过 app.dependency_overrides[get_decision_service] 注入内存仓储与假通知器。
    """
    repository = get_paper_repository()
    notification_config = NotificationConfig.from_env()
    notifications = DecisionNotificationService(
        repository=repository,
        notifier=build_notifier(notification_config),
        config=notification_config,
    )
    return DecisionService(repository=repository, notifications=notifications)
