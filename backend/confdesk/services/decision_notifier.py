from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape
from tenacity import Retrying, stop_after_attempt, wait_exponential

from confdesk.core.config import NotificationConfig, ResendConfig
from confdesk.models.decision import Decision, DecisionOutcome
from confdesk.models.paper import Paper, PaperAuthor

logger = logging.getLogger("confdesk.notifications")

TEMPLATE_NAME = "decision_notification.html"

_OUTCOME_LABELS = {
    DecisionOutcome.ACCEPT: "Accepted",
    DecisionOutcome.REJECT: "Rejected",
}


class DecisionNotifier(Protocol):
    def send_decision_notification(
        self, *, paper: Paper, author: PaperAuthor, decision: Decision
    ) -> None: ...


class NotifierNotConfiguredError(RuntimeError):
    pass


class LogOnlyDecisionNotifier:
    """
    本地/测试环境的占位通知器：只写日志，视为投递成功。
    """

    def send_decision_notification(
        self, *, paper: Paper, author: PaperAuthor, decision: Decision
    ) -> None:
        logger.info(
            "[Decision email skipped] paper=%s author=%s outcome=%s",
            paper.id,
            author.id,
            decision.outcome.value,
        )


class EmailDecisionNotifier:
    """
    通过 Resend 发送决策邮件。

    中文注释:
    - resend_config / notification_config 支持依赖注入，方便单测与不同环境切换。
    - provider 层瞬时失败用 tenacity 做有限次重试；重试耗尽后把异常抛给分发器，
      由分发器记一条 failed 投递记录（不会中断其他作者的投递）。
    """

    _SENTINEL = object()

    def __init__(
        self,
        *,
        resend_config: ResendConfig | None | object = _SENTINEL,
        notification_config: NotificationConfig | None = None,
        templates_dir: Path | None = None,
    ) -> None:
        if resend_config is self._SENTINEL:
            resend_config = ResendConfig.from_env()
        self.resend_config: Optional[ResendConfig] = resend_config  # type: ignore[assignment]
        self.notification_config = notification_config or NotificationConfig.from_env()

        if self.resend_config:
            resend.api_key = self.resend_config.api_key

        # Path to templates: backend/confdesk/core/templates
        templates_dir = templates_dir or Path(__file__).resolve().parent.parent / "core" / "templates"
        self._jinja = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def is_configured(self) -> bool:
        return bool(self.resend_config)

    def render(self, *, paper: Paper, decision: Decision) -> tuple[str, str]:
        title = paper.title or "your submission"
        label = _OUTCOME_LABELS.get(decision.outcome, "Updated")
        subject = f"Final decision for '{title}': {label}"
        html = self._jinja.get_template(TEMPLATE_NAME).render(
            paper_title=title,
            outcome_label=label,
            recorded_at=decision.recorded_at.isoformat(),
        )
        return subject, html

    def send_decision_notification(
        self, *, paper: Paper, author: PaperAuthor, decision: Decision
    ) -> None:
        if not self.resend_config:
            raise NotifierNotConfiguredError("email provider not configured")

        subject, html = self.render(paper=paper, decision=decision)
        params = {
            "from": self.resend_config.sender,
            "to": [author.email],
            "subject": subject,
            "html": html,
        }
        cfg = self.notification_config
        for attempt in Retrying(
            stop=stop_after_attempt(cfg.send_attempts),
            wait=wait_exponential(multiplier=1, min=0, max=cfg.retry_wait_max_sec),
            reraise=True,
        ):
            with attempt:
                resend.Emails.send(params)
