from __future__ import annotations

import logging
from pathlib import Path  # noqa: TC003

import pytest

from tenure_reconcile.config import (
    ConfigurationError,
    MissingConfigurationError,
    StorageConfig,
    configure_logging,
    env_flag,
    get_pipeline_config,
    require_env_vars,
)
from tenure_reconcile.config.logging import LOG_LEVEL_ENV_VAR, resolve_log_level


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "BLANK_VAR", "MISSING_A"])

    assert str(exc.value) == "Missing configuration for: BLANK_VAR, MISSING_A, MISSING_B"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), (" on ", True), ("0", False), ("FALSE", False), ("", False)],
)
def test_env_flag_parses_common_spellings(
    monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", raw)

    assert env_flag("EXAMPLE_FLAG") is expected


def test_env_flag_default_and_invalid(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_FLAG", raising=False)
    assert env_flag("EXAMPLE_FLAG", default=True) is True

    monkeypatch.setenv("EXAMPLE_FLAG", "maybe")
    with pytest.raises(ConfigurationError, match="EXAMPLE_FLAG"):
        env_flag("EXAMPLE_FLAG")


def test_pipeline_config_defaults_under_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("TENURE_RECONCILE_PACKAGE_DIR", raising=False)
    monkeypatch.delenv("TENURE_RECONCILE_ARCHIVE_DIR", raising=False)
    monkeypatch.delenv("TENURE_RECONCILE_CLEANUP_STAGING", raising=False)

    config = get_pipeline_config(storage=StorageConfig(data_dir=tmp_path))

    assert config.package_dir == tmp_path.resolve() / "packages"
    assert config.archive_dir == tmp_path.resolve() / "archive"
    assert config.cleanup_staging_after_commit is False
    assert config.package_file_suffix == ".uhc"


def test_pipeline_config_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TENURE_RECONCILE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TENURE_RECONCILE_PACKAGE_DIR", str(tmp_path / "incoming"))
    monkeypatch.setenv("TENURE_RECONCILE_ARCHIVE_DIR", str(tmp_path / "vault"))
    monkeypatch.setenv("TENURE_RECONCILE_CLEANUP_STAGING", "true")

    config = get_pipeline_config()

    assert config.package_dir == tmp_path / "incoming"
    assert config.archive_dir == tmp_path / "vault"
    assert config.cleanup_staging_after_commit is True


def test_log_level_comes_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, " debug ")
    assert resolve_log_level() == logging.DEBUG

    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "")
    assert resolve_log_level(logging.WARNING) == logging.WARNING

    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "chatty")
    with pytest.raises(ConfigurationError, match=LOG_LEVEL_ENV_VAR):
        resolve_log_level()


def test_configure_logging_quiets_database_loggers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(LOG_LEVEL_ENV_VAR, raising=False)
    engine_logger = logging.getLogger("sqlalchemy.engine")
    previous = engine_logger.level
    try:
        configure_logging(force=True)
        assert engine_logger.level == logging.WARNING

        configure_logging(level=logging.DEBUG, force=True)
        assert engine_logger.level == logging.DEBUG
    finally:
        engine_logger.setLevel(previous)
