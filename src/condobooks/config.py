"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from condobooks.domain.attachments import DEFAULT_URL_TTL
from condobooks.domain.entities import Actor
from condobooks.domain.patterns import DEFAULT_CHUNK_SIZE as DEFAULT_PATTERN_CHUNK_SIZE

DEFAULT_SIGNING_KEY = "condobooks-local-signing-key"


def _data_dir() -> Path:
    return Path.home() / ".condobooks"


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration.

    Every value has a default so the CLI works without any environment set.
    """

    db_path: Optional[str] = None
    attachments_dir: Optional[str] = None
    signing_key: str = DEFAULT_SIGNING_KEY
    url_ttl: int = DEFAULT_URL_TTL
    pattern_chunk_size: int = DEFAULT_PATTERN_CHUNK_SIZE
    user: Optional[str] = None
    admins: tuple[str, ...] = ()
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from CONDOBOOKS_* environment variables.

        Args:
            env: Mapping to read instead of os.environ (used by tests)

        Returns:
            Settings instance

        Raises:
            ValueError: If a numeric setting is not a positive integer
        """
        if env is None:
            env = os.environ
        admins = tuple(a.strip() for a in env.get("CONDOBOOKS_ADMINS", "").split(",") if a.strip())
        return cls(
            db_path=env.get("CONDOBOOKS_DB_PATH") or None,
            attachments_dir=env.get("CONDOBOOKS_ATTACHMENTS_DIR") or None,
            signing_key=env.get("CONDOBOOKS_SIGNING_KEY") or DEFAULT_SIGNING_KEY,
            url_ttl=_int_setting(env, "CONDOBOOKS_URL_TTL", DEFAULT_URL_TTL),
            pattern_chunk_size=_int_setting(env, "CONDOBOOKS_PATTERN_CHUNK_SIZE", DEFAULT_PATTERN_CHUNK_SIZE),
            user=env.get("CONDOBOOKS_USER") or None,
            admins=admins,
            log_level=env.get("CONDOBOOKS_LOG_LEVEL") or "INFO",
        )

    def resolved_attachments_dir(self) -> Path:
        """Attachments directory, defaulting to ~/.condobooks/attachments."""
        if self.attachments_dir:
            return Path(self.attachments_dir)
        return _data_dir() / "attachments"

    def actor_for(self, user: Optional[str] = None) -> Actor:
        """Build the acting identity for a user name.

        An empty admin list makes every user an admin (single operator setup).
        """
        user_id = user or self.user or os.environ.get("USER") or "operator"
        is_admin = not self.admins or user_id in self.admins
        email = user_id if "@" in user_id else None
        return Actor(user_id=user_id, email=email, is_admin=is_admin)
