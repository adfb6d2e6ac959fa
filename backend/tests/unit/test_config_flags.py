from confdesk.core import config as config_module


def test_allow_header_actor_explicit_flag(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("ALLOW_HEADER_ACTOR", "true")
    assert config_module.allow_header_actor() is True

    monkeypatch.setenv("ALLOW_HEADER_ACTOR", "0")
    assert config_module.allow_header_actor() is False


def test_allow_header_actor_test_env_names(monkeypatch):
    monkeypatch.delenv("ALLOW_HEADER_ACTOR", raising=False)
    monkeypatch.setenv("APP_ENV", "test")
    assert config_module.allow_header_actor() is True

    monkeypatch.setenv("APP_ENV", "Testing")
    assert config_module.allow_header_actor() is True

    monkeypatch.setenv("APP_ENV", "staging")
    assert config_module.allow_header_actor() is False


def test_app_config_store_defaults_to_memory_without_supabase(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.delenv("DECISION_STORE", raising=False)
    assert config_module.AppConfig.from_env().decision_store == "memory"


def test_app_config_store_prefers_supabase_when_configured(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
    monkeypatch.delenv("DECISION_STORE", raising=False)
    assert config_module.AppConfig.from_env().decision_store == "supabase"

    monkeypatch.setenv("DECISION_STORE", "memory")
    assert config_module.AppConfig.from_env().decision_store == "memory"

    monkeypatch.setenv("DECISION_STORE", "redis")
    assert config_module.AppConfig.from_env().decision_store == "supabase"


def test_notification_config_env_parsing(monkeypatch):
    monkeypatch.setenv("NOTIFY_MAX_WORKERS", "8")
    monkeypatch.setenv("NOTIFY_SEND_ATTEMPTS", "0")
    monkeypatch.setenv("NOTIFY_RETRY_WAIT_MAX_SEC", "not-a-number")

    cfg = config_module.NotificationConfig.from_env()

    assert cfg.max_workers == 8
    assert cfg.send_attempts == 1
    assert cfg.retry_wait_max_sec == 10.0


def test_resend_config_requires_api_key(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    assert config_module.ResendConfig.from_env() is None

    monkeypatch.setenv("RESEND_API_KEY", "re_123")
    monkeypatch.setenv("EMAIL_SENDER", "PC <pc@example.org>")
    cfg = config_module.ResendConfig.from_env()
    assert cfg.api_key == "re_123"
    assert cfg.sender == "PC <pc@example.org>"
