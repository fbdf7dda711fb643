"""Runtime settings for tuigram.

Values come from the environment (a ``.env`` file is honoured) and can be
overridden from the command line.
"""
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_DATA_FILE = Path.home() / ".tuigram_store.json"
DEFAULT_LOG_FILE = Path.home() / ".tuigram_debug.log"
DEFAULT_TIMEOUT = 5.0
DEFAULT_EMAIL_DOMAINS = ("gmail.com",)

# Always accepted at registration, on top of the allow-list.
SPECIAL_EMAIL_DOMAIN = "special.user"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    data_file: Path = DEFAULT_DATA_FILE
    backend_url: Optional[str] = None
    backend_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False
    log_file: Path = DEFAULT_LOG_FILE
    email_domains: Tuple[str, ...] = DEFAULT_EMAIL_DOMAINS

    def allows_email(self, email: str) -> bool:
        """Check the email against the domain allow-list (case-insensitive)."""
        email = email.lower()
        domains = tuple(self.email_domains) + (SPECIAL_EMAIL_DOMAIN,)
        return any(email.endswith("@" + d.lower()) for d in domains)

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _parse_domains(raw: str) -> Tuple[str, ...]:
    domains = tuple(d.strip().lstrip("@") for d in raw.split(",") if d.strip())
    return domains or DEFAULT_EMAIL_DOMAINS


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``env`` or, when omitted, the process environment."""
    if env is None:
        load_dotenv(override=True)
        env = os.environ

    raw_timeout = env.get("TUIGRAM_TIMEOUT")
    try:
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
    except ValueError:
        raise ConfigError(f"TUIGRAM_TIMEOUT must be a number, got {raw_timeout!r}")

    data_file = env.get("TUIGRAM_DATA_FILE")
    log_file = env.get("TUIGRAM_LOG_FILE")
    return Settings(
        data_file=Path(data_file).expanduser() if data_file else DEFAULT_DATA_FILE,
        backend_url=env.get("TUIGRAM_BACKEND_URL") or None,
        backend_token=env.get("TUIGRAM_BACKEND_TOKEN") or None,
        timeout=timeout,
        debug=(env.get("TUIGRAM_DEBUG") or "").strip().lower() in _TRUTHY,
        log_file=Path(log_file).expanduser() if log_file else DEFAULT_LOG_FILE,
        email_domains=_parse_domains(env.get("TUIGRAM_EMAIL_DOMAINS") or ""),
    )


def create_backend(settings: Settings):
    """Pick the hosted backend when a URL is configured, else local storage."""
    from .backend import LocalBackend, RemoteBackend
    from .store import JsonFileStore

    if settings.backend_url:
        return RemoteBackend(
            settings.backend_url,
            token=settings.backend_token,
            timeout=settings.timeout,
        )
    return LocalBackend(JsonFileStore(settings.data_file))
