"""
Unit tests for settings loading. Environments are passed as plain dicts so
the process environment is never touched.
"""

from pathlib import Path

from formrelay.config import load_settings

BASE_ENV = {
    "EMAIL_USER": "forms@example.com",
    "EMAIL_PASSWORD": "secret",
}


def _load(**overrides):
    env = dict(BASE_ENV)
    env.update(overrides)
    return load_settings(env)


class TestLoadSettings:

    def test_defaults(self):
        settings = _load()
        assert settings.primary.host == "smtp.gmail.com"
        assert settings.primary.port == 465
        assert settings.primary.use_implicit_tls is True
        assert settings.fallback.port == 587
        assert settings.fallback.use_implicit_tls is False
        assert settings.port == 3000
        assert settings.smtp_timeout == 30.0
        assert settings.upload_dir == Path("uploads")
        assert settings.static_dir == Path("public")
        assert settings.cors_origins == ("*",)
        assert settings.environment == "development"

    def test_sender_and_recipient_default_to_user(self):
        settings = _load()
        assert settings.sender == "forms@example.com"
        assert settings.recipient == "forms@example.com"

    def test_explicit_recipient_and_sender(self):
        settings = _load(RECIPIENT_EMAIL="owner@example.com", EMAIL_FROM="noreply@example.com")
        assert settings.recipient == "owner@example.com"
        assert settings.sender == "noreply@example.com"

    def test_email_secure_false_disables_implicit_tls(self):
        settings = _load(EMAIL_SECURE="false", EMAIL_PORT="587")
        assert settings.primary.use_implicit_tls is False
        assert settings.primary.port == 587

    def test_any_other_email_secure_value_keeps_tls(self):
        assert _load(EMAIL_SECURE="no").primary.use_implicit_tls is True

    def test_certificates_checked_only_in_production(self):
        assert _load().primary.accept_invalid_certificates is True
        production = _load(APP_ENV="production")
        assert production.is_production
        assert production.primary.accept_invalid_certificates is False
        assert production.fallback.accept_invalid_certificates is True

    def test_node_env_is_accepted(self):
        assert _load(NODE_ENV="production").is_production

    def test_both_transports_share_host_and_credentials(self):
        settings = _load(EMAIL_HOST="mail.example.com")
        assert settings.primary.host == settings.fallback.host == "mail.example.com"
        assert settings.fallback.username == "forms@example.com"
        assert settings.fallback.password == "secret"

    def test_bad_numbers_fall_back_to_defaults(self):
        settings = _load(EMAIL_PORT="abc", SMTP_TIMEOUT="soon", PORT="")
        assert settings.primary.port == 465
        assert settings.smtp_timeout == 30.0
        assert settings.port == 3000

    def test_cors_origins_parsed(self):
        settings = _load(CORS_ORIGINS="https://a.example, https://b.example,https://a.example")
        assert settings.cors_origins == ("https://a.example", "https://b.example")

    def test_missing_credentials_still_load(self, mocker):
        warning = mocker.patch("formrelay.config.logger.warning")
        settings = load_settings({})
        assert warning.call_count == 2
        assert settings.primary.username is None
        assert settings.recipient == ""

    def test_password_not_in_repr(self):
        assert "secret" not in repr(_load().primary)
