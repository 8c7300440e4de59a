"""
Unit tests for the command-line entry point.
"""

import os

import pytest

from splitstack import __version__
from splitstack.__main__ import build_parser, config_from_args, main
from splitstack.config import Mode


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    env = {k: v for k, v in os.environ.items() if k not in ("PORT", "HOST", "APP_ENV", "NODE_ENV", "WORKERS")}
    monkeypatch.setattr(os, "environ", env)
    monkeypatch.chdir(tmp_path)


class TestCLI:
    """Tests for argument handling."""

    def test_flags_override_environment(self, monkeypatch):
        """CLI beats env."""
        monkeypatch.setenv("PORT", "7000")
        args = build_parser().parse_args(["--port", "8000", "--env", "development", "--workers", "2"])

        config = config_from_args(args)

        assert config.port == 8000
        assert config.mode is Mode.DEVELOPMENT
        assert config.max_workers == 2
        assert config.min_workers == 2

    def test_environment_used_when_flag_absent(self, monkeypatch):
        """Unset flags leave env values alone."""
        monkeypatch.setenv("PORT", "7000")

        config = config_from_args(build_parser().parse_args([]))

        assert config.port == 7000

    def test_env_file_flag(self, tmp_path):
        """--env-file picks the dotenv file."""
        env_file = tmp_path / "deploy.env"
        env_file.write_text("HOST=0.0.0.0\n")

        config = config_from_args(build_parser().parse_args(["--env-file", str(env_file)]))

        assert config.host == "0.0.0.0"

    def test_log_level_case_insensitive(self):
        """--log-level debug is accepted."""
        args = build_parser().parse_args(["--log-level", "debug"])

        assert config_from_args(args).log_level == "DEBUG"

    def test_version(self, capsys):
        """--version prints and exits."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_configuration_error_exit_code(self, monkeypatch, capsys):
        """Bad configuration exits with status 2 before binding."""
        monkeypatch.setenv("APP_ENV", "staging")

        assert main([]) == 2
        assert "Configuration error" in capsys.readouterr().err
