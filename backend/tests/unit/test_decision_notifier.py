from unittest.mock import patch

import pytest
import resend

from confdesk.core.config import NotificationConfig, ResendConfig
from confdesk.models.decision import Decision, DecisionOutcome
from confdesk.models.paper import PaperAuthor
from confdesk.services.decision_notifier import (
    EmailDecisionNotifier,
    LogOnlyDecisionNotifier,
    NotifierNotConfiguredError,
)

from decision_factories import make_paper


def _notifier(attempts: int = 3) -> EmailDecisionNotifier:
    return EmailDecisionNotifier(
        resend_config=ResendConfig(api_key="re_test", sender="Office <office@example.org>"),
        notification_config=NotificationConfig(max_workers=1, send_attempts=attempts, retry_wait_max_sec=0),
    )


def _decision(outcome=DecisionOutcome.ACCEPT) -> Decision:
    return Decision(paper_id="P1", outcome=outcome)


AUTHOR = PaperAuthor(id="author_1", email="author1@example.org")


def test_render_uses_outcome_label_and_escapes_title():
    subject, html = _notifier().render(
        paper=make_paper("P1", title="<script>x</script>"), decision=_decision(DecisionOutcome.REJECT)
    )

    assert subject == "Final decision for '<script>x</script>': Rejected"
    assert "Rejected" in html
    assert "<script>x</script>" not in html


def test_send_calls_resend_with_author_address():
    with patch.object(resend.Emails, "send", return_value={"id": "email_1"}) as send:
        _notifier().send_decision_notification(paper=make_paper("P1"), author=AUTHOR, decision=_decision())

    params = send.call_args.args[0]
    assert params["to"] == ["author1@example.org"]
    assert params["from"] == "Office <office@example.org>"
    assert params["subject"].endswith("Accepted")


def test_send_retries_transient_provider_errors():
    with patch.object(resend.Emails, "send", side_effect=[RuntimeError("429"), {"id": "email_1"}]) as send:
        _notifier(attempts=3).send_decision_notification(
            paper=make_paper("P1"), author=AUTHOR, decision=_decision()
        )

    assert send.call_count == 2


def test_send_reraises_after_attempts_exhausted():
    with patch.object(resend.Emails, "send", side_effect=RuntimeError("provider down")) as send:
        with pytest.raises(RuntimeError, match="provider down"):
            _notifier(attempts=2).send_decision_notification(
                paper=make_paper("P1"), author=AUTHOR, decision=_decision()
            )

    assert send.call_count == 2


def test_unconfigured_notifier_raises():
    notifier = EmailDecisionNotifier(resend_config=None)

    assert notifier.is_configured() is False
    with pytest.raises(NotifierNotConfiguredError):
        notifier.send_decision_notification(paper=make_paper("P1"), author=AUTHOR, decision=_decision())


def test_log_only_notifier_never_raises():
    LogOnlyDecisionNotifier().send_decision_notification(
        paper=make_paper("P1"), author=AUTHOR, decision=_decision()
    )
