from __future__ import annotations

import pytest

from hygienist.config import (
    ConfigurationError,
    HygieneConfig,
    get_hygiene_config,
    optional_env_float,
    optional_env_int,
)
from hygienist.domain.model import ConflictPolicy

HYGIENE_VARS = (
    "HYGIENIST_PERSON_FLOOR",
    "HYGIENIST_SECTION_FLOOR",
    "HYGIENIST_SPACE_FLOOR",
    "HYGIENIST_BATCH_SIZE",
    "HYGIENIST_CONFLICT_POLICY",
    "HYGIENIST_ORIGIN",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in HYGIENE_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_optional_numbers_fall_back_and_validate(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOME_FLOOR", " ")
    monkeypatch.setenv("SOME_SIZE", "ten")

    assert optional_env_float("SOME_FLOOR", 0.7) == 0.7
    with pytest.raises(ConfigurationError, match="SOME_SIZE must be an integer"):
        optional_env_int("SOME_SIZE", 500)


def test_hygiene_defaults(clean_env: pytest.MonkeyPatch) -> None:
    assert get_hygiene_config() == HygieneConfig()


def test_hygiene_reads_environment(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("HYGIENIST_PERSON_FLOOR", "0.85")
    clean_env.setenv("HYGIENIST_BATCH_SIZE", "100")
    clean_env.setenv("HYGIENIST_CONFLICT_POLICY", "Most_Recent")
    clean_env.setenv("HYGIENIST_ORIGIN", "cron")

    config = get_hygiene_config()

    assert config.person_floor == 0.85
    assert config.batch_size == 100
    assert config.conflict_policy is ConflictPolicy.MOST_RECENT
    assert config.origin == "cron"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("HYGIENIST_SECTION_FLOOR", "1.2"),
        ("HYGIENIST_BATCH_SIZE", "501"),
        ("HYGIENIST_CONFLICT_POLICY", "coin_flip"),
    ],
)
def test_hygiene_rejects_bad_values(clean_env: pytest.MonkeyPatch, name: str, value: str) -> None:
    clean_env.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_hygiene_config()
