"""
Process configuration.

Settings are read from the environment once (a ``.env`` file in the working
directory is loaded first, without overriding variables that are already
set) and frozen. Routers receive them through ``get_settings`` so tests can
swap in their own values with ``app.dependency_overrides``.

Environment variables
---------------------
PORT                  HTTP port for the ``formrelay`` runner (default 3000).
EMAIL_HOST            SMTP host for both transports (default smtp.gmail.com).
EMAIL_PORT            Primary SMTP port (default 465).
EMAIL_SECURE          "false" disables implicit TLS on the primary transport.
EMAIL_USER            SMTP username; also the default sender address.
EMAIL_PASSWORD        SMTP password.
EMAIL_FROM            Sender address (default: EMAIL_USER).
RECIPIENT_EMAIL       Where submissions are delivered (default: EMAIL_USER).
FALLBACK_EMAIL_PORT   Fallback SMTP port, STARTTLS (default 587).
SMTP_TIMEOUT          Upper bound in seconds for one send attempt (default 30).
APP_ENV               "production" enforces TLS certificate checks on the
                      primary transport. NODE_ENV is accepted as a legacy alias.
UPLOAD_DIR            Managed upload directory (default ./uploads).
STATIC_DIR            Directory served at / when present (default ./public).
CORS_ORIGINS          Comma-separated allowed origins (default "*").
LOG_LEVEL             Root log level (default INFO).
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_DEFAULT_HOST = "smtp.gmail.com"
_DEFAULT_PRIMARY_PORT = 465
_DEFAULT_FALLBACK_PORT = 587
_DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class TransportConfig:
    """One SMTP sending configuration. Never mutated after startup."""
    name: str
    host: str
    port: int
    use_implicit_tls: bool
    username: Optional[str] = None
    password: Optional[str] = None
    accept_invalid_certificates: bool = False

    def __repr__(self) -> str:
        # Keep the password out of log lines.
        return (
            f"TransportConfig(name={self.name!r}, host={self.host!r}, "
            f"port={self.port}, use_implicit_tls={self.use_implicit_tls}, "
            f"accept_invalid_certificates={self.accept_invalid_certificates})"
        )


@dataclass(frozen=True)
class Settings:
    primary: TransportConfig
    fallback: TransportConfig
    sender: str
    recipient: str
    upload_dir: Path
    static_dir: Path
    environment: str = "development"
    port: int = 3000
    smtp_timeout: float = _DEFAULT_TIMEOUT_SECONDS
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _parse_int(value: Optional[str], default: int, name: str) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, value, default)
        return default


def _parse_float(value: Optional[str], default: float, name: str) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, value, default)
        return default


def _parse_origins(value: Optional[str]) -> tuple[str, ...]:
    if not value or not value.strip():
        return ("*",)
    origins: list[str] = []
    for origin in value.split(","):
        origin = origin.strip()
        if origin and origin not in origins:
            origins.append(origin)
    return tuple(origins) or ("*",)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from an environment mapping (``os.environ`` by default).

    The primary transport follows EMAIL_PORT/EMAIL_SECURE and only accepts
    invalid certificates outside production. The fallback transport always
    uses STARTTLS on FALLBACK_EMAIL_PORT with the same host and credentials,
    and does not verify certificates.
    """
    env = os.environ if environ is None else environ

    environment = (
        env.get("APP_ENV") or env.get("NODE_ENV") or "development"
    ).strip().lower()

    username = env.get("EMAIL_USER") or None
    password = env.get("EMAIL_PASSWORD") or None
    if not username or not password:
        logger.warning(
            "EMAIL_USER or EMAIL_PASSWORD not set; SMTP login will be skipped "
            "and most providers will refuse to relay"
        )

    host = env.get("EMAIL_HOST") or _DEFAULT_HOST
    secure = (env.get("EMAIL_SECURE") or "").strip().lower() != "false"

    primary = TransportConfig(
        name="primary",
        host=host,
        port=_parse_int(env.get("EMAIL_PORT"), _DEFAULT_PRIMARY_PORT, "EMAIL_PORT"),
        use_implicit_tls=secure,
        username=username,
        password=password,
        accept_invalid_certificates=environment != "production",
    )
    fallback = TransportConfig(
        name="fallback",
        host=host,
        port=_parse_int(
            env.get("FALLBACK_EMAIL_PORT"), _DEFAULT_FALLBACK_PORT, "FALLBACK_EMAIL_PORT"
        ),
        use_implicit_tls=False,
        username=username,
        password=password,
        accept_invalid_certificates=True,
    )

    sender = env.get("EMAIL_FROM") or username or ""
    recipient = env.get("RECIPIENT_EMAIL") or username or ""
    if not recipient:
        logger.warning("RECIPIENT_EMAIL not set; submissions have nowhere to go")

    return Settings(
        primary=primary,
        fallback=fallback,
        sender=sender,
        recipient=recipient,
        upload_dir=Path(env.get("UPLOAD_DIR") or "uploads"),
        static_dir=Path(env.get("STATIC_DIR") or "public"),
        environment=environment,
        port=_parse_int(env.get("PORT"), 3000, "PORT"),
        smtp_timeout=_parse_float(
            env.get("SMTP_TIMEOUT"), _DEFAULT_TIMEOUT_SECONDS, "SMTP_TIMEOUT"
        ),
        cors_origins=_parse_origins(env.get("CORS_ORIGINS")),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load ``.env`` and return the process-wide Settings (cached)."""
    load_dotenv()
    return load_settings()
