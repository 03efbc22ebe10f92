"""Tests for environment settings."""

from pathlib import Path

import pytest

from condobooks.config import DEFAULT_SIGNING_KEY, Settings
from condobooks.domain.attachments import DEFAULT_URL_TTL


def test_defaults():
    settings = Settings.from_env({})
    assert settings.db_path is None
    assert settings.signing_key == DEFAULT_SIGNING_KEY
    assert settings.url_ttl == DEFAULT_URL_TTL
    assert settings.admins == ()
    assert settings.log_level == "INFO"
    assert settings.resolved_attachments_dir() == Path.home() / ".condobooks" / "attachments"


def test_from_env_mapping(tmp_path):
    settings = Settings.from_env(
        {
            "CONDOBOOKS_DB_PATH": "/data/books.db",
            "CONDOBOOKS_ATTACHMENTS_DIR": str(tmp_path),
            "CONDOBOOKS_SIGNING_KEY": "k",
            "CONDOBOOKS_URL_TTL": "120",
            "CONDOBOOKS_PATTERN_CHUNK_SIZE": "25",
            "CONDOBOOKS_ADMINS": "ana@example.com, luis ,",
            "CONDOBOOKS_LOG_LEVEL": "DEBUG",
        }
    )
    assert settings.db_path == "/data/books.db"
    assert settings.resolved_attachments_dir() == tmp_path
    assert settings.url_ttl == 120
    assert settings.pattern_chunk_size == 25
    assert settings.admins == ("ana@example.com", "luis")
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_invalid_ttl(value):
    with pytest.raises(ValueError):
        Settings.from_env({"CONDOBOOKS_URL_TTL": value})


def test_actor_for_without_admin_list():
    actor = Settings(user="luis").actor_for()
    assert actor.user_id == "luis"
    assert actor.is_admin
    assert actor.email is None


def test_actor_for_with_admin_list():
    settings = Settings(admins=("ana@example.com",))
    admin = settings.actor_for("ana@example.com")
    viewer = settings.actor_for("luis")

    assert admin.is_admin
    assert admin.email == "ana@example.com"
    assert not viewer.is_admin
