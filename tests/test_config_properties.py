"""Property-based tests for configuration models and loading."""

from pathlib import Path

import pytest
import structlog
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from ticketsync.models.config import AppConfig, DetailLevel, OutputConfig, RegistrationConfig
from ticketsync.utils.config_loader import ConfigLoader, ConfigurationError

log = structlog.stdlib.get_logger()


@given(st.text(alphabet="abcdefABCDEF0123456789-", min_size=1, max_size=40))
def test_api_key_is_normalized(api_key: str):
    """API keys are compared case insensitively, so they are stored upper case."""
    config = RegistrationConfig(api_key=f"  {api_key} ")

    assert config.api_key == api_key.upper()


@given(st.integers(min_value=20, max_value=500))
def test_auto_wrap_accepts_sane_columns(column: int):
    assert OutputConfig(auto_wrap=column).auto_wrap == column


@given(st.integers(max_value=19))
def test_auto_wrap_rejects_narrow_columns(column: int):
    log.info("test_auto_wrap_rejects_narrow_columns", column=column)

    with pytest.raises(ValidationError):
        OutputConfig(auto_wrap=column)


def test_defaults():
    config = AppConfig()

    assert str(config.registration.url).startswith("https://reg.arin.net")
    assert config.output.detail is DetailLevel.NORMAL
    assert config.output.auto_wrap == 80
    assert config.storage.data_dir == "~/.ticketsync"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("TICKETSYNC_REGISTRATION__API_KEY", "abcd-1234")
    monkeypatch.setenv("TICKETSYNC_OUTPUT__DETAIL", "all")

    config = AppConfig()

    assert config.registration.api_key == "ABCD-1234"
    assert config.output.detail is DetailLevel.ALL


class TestConfigLoader:
    def test_shipped_default_file(self):
        config = ConfigLoader().load_config()

        assert config.registration.max_retries == 3
        assert config.logging.log_level == "WARNING"

    def test_missing_config_dir_uses_builtin_defaults(self, tmp_path: Path):
        config = ConfigLoader(config_dir=tmp_path).load_config()

        assert config == AppConfig()

    def test_app_env_selects_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / "default.yaml").write_text("output:\n  detail: terse\n")
        (tmp_path / "ote.yaml").write_text("output:\n  detail: extra\n")
        monkeypatch.setenv("APP_ENV", "ote")

        config = ConfigLoader(config_dir=tmp_path).load_config()

        assert config.output.detail is DetailLevel.EXTRA

    def test_overrides_merge_into_file(self, tmp_path: Path):
        path = tmp_path / "c.yaml"
        path.write_text("registration:\n  url: https://reg.ote.arin.net\n  timeout: 5\n")

        config = ConfigLoader().load_config(str(path), overrides={"registration": {"api_key": "k"}})

        assert config.registration.timeout == 5
        assert config.registration.api_key == "K"
        assert str(config.registration.url).startswith("https://reg.ote.arin.net")

    def test_environment_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        path = tmp_path / "c.yaml"
        path.write_text("storage:\n  data_dir: ${TICKET_HOME}/data\n")
        monkeypatch.setenv("TICKET_HOME", "/srv/tickets")

        assert ConfigLoader().load_config(str(path)).storage.data_dir == "/srv/tickets/data"

    def test_unset_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        path = tmp_path / "c.yaml"
        path.write_text("storage:\n  data_dir: ${TICKET_HOME_UNSET}\n")
        monkeypatch.delenv("TICKET_HOME_UNSET", raising=False)

        with pytest.raises(ConfigurationError, match="TICKET_HOME_UNSET"):
            ConfigLoader().load_config(str(path))

    @pytest.mark.parametrize(
        "content",
        ["registration: [1, 2", "- just\n- a list\n", "registration:\n  timeout: -1\n"],
    )
    def test_bad_files(self, tmp_path: Path, content: str):
        path = tmp_path / "c.yaml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            ConfigLoader().load_config(str(path))

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader().load_config(str(tmp_path / "absent.yaml"))
