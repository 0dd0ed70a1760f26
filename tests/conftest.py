"""
Shared test fixtures and configuration for spacetime-token tests.

Every test runs against a temporary HOME and app directory so the real
~/.config/spacetime/cli.toml and profile store are never touched.
"""

from pathlib import Path

import pytest

from spacetime_token.settings import APP_DIR_ENV_VAR, AppSettings

# ============================================================================
# DIRECTORY FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def temp_home_dir(tmp_path, monkeypatch):
    """Temporary home directory for testing.

    Sets HOME to a temporary directory so Path.home() based paths
    (the spacetime CLI config) resolve inside tmp_path.
    """
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir


@pytest.fixture(autouse=True)
def temp_app_dir(tmp_path, monkeypatch):
    """Temporary spacetime-token app directory (settings + profile store)."""
    app_dir = tmp_path / "app"
    monkeypatch.setenv(APP_DIR_ENV_VAR, str(app_dir))
    return app_dir


@pytest.fixture
def settings(temp_app_dir):
    """Default settings bound to the temporary app directory."""
    temp_app_dir.mkdir(exist_ok=True)
    return AppSettings(app_dir=temp_app_dir)


@pytest.fixture
def cli_config_path(temp_home_dir) -> Path:
    """Location of the spacetime CLI config under the temporary HOME."""
    return temp_home_dir / ".config" / "spacetime" / "cli.toml"


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================


SAMPLE_CLI_TOML = """\
# Managed by the spacetime CLI
spacetimedb_token = "old-token-0123456789"
default_host = "local"
web_session_id = "keep-me"

[[server_configs]]
nickname = "maincloud"
host = "maincloud.spacetimedb.com"
protocol = "https"

[[server_configs]]
nickname = "p1"
host = "stale.example"
protocol = "https"
ecdsa_public_key = "untouched"
"""


@pytest.fixture
def sample_cli_toml(cli_config_path) -> Path:
    """A realistic cli.toml with comments and fields this tool does not own."""
    cli_config_path.parent.mkdir(parents=True, exist_ok=True)
    cli_config_path.write_text(SAMPLE_CLI_TOML)
    return cli_config_path
