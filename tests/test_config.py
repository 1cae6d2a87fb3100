"""Tests for server configuration.

1. Default values and the lending policy they produce
2. Environment variable loading
3. Field validation
4. The configuration singleton
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from loan_desk.config import ServerConfig, get_config, reset_config
from loan_desk.models.loan import LoanPolicy


class TestServerConfig:
    """Test configuration behavior."""

    def test_default_configuration(self, clean_env, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = ServerConfig()

        assert config.server_name == "loan-desk"
        assert config.server_version == "0.1.0"
        assert config.transport == "stdio"
        assert config.database_path == Path("data/loan_desk.db").absolute()
        assert config.current_user_id is None
        assert config.debug is False
        assert config.log_level == "INFO"

    def test_default_lending_policy(self, clean_env, tmp_path, monkeypatch):
        """Defaults are a 14-day loan, 14-day renewal, $0.50/day, 7-day wait."""
        monkeypatch.chdir(tmp_path)
        policy = ServerConfig().loan_policy

        assert policy == LoanPolicy(
            loan_period_days=14,
            renewal_period_days=14,
            daily_late_fee=0.50,
            reservation_wait_days=7,
        )

    def test_environment_variable_loading(self, tmp_path):
        env_vars = {
            "LOAN_DESK_SERVER_NAME": "branch-library",
            "LOAN_DESK_DATABASE_PATH": str(tmp_path / "branch.db"),
            "LOAN_DESK_LOAN_PERIOD_DAYS": "21",
            "LOAN_DESK_DAILY_LATE_FEE": "0.25",
            "LOAN_DESK_CURRENT_USER_ID": "user_jane_doe",
            "LOAN_DESK_DEBUG": "true",
        }

        with patch.dict(os.environ, env_vars):
            config = ServerConfig()

            assert config.server_name == "branch-library"
            assert config.database_path == tmp_path / "branch.db"
            assert config.loan_period_days == 21
            assert config.daily_late_fee == 0.25
            assert config.current_user_id == "user_jane_doe"
            assert config.debug is True
            assert config.loan_policy.loan_period_days == 21

    def test_server_name_validation(self):
        for name in ["loan-desk", "branch-01", "abc"]:
            assert ServerConfig(server_name=name).server_name == name

        for name in ["Loan_Desk", "loan desk", "ab", "a" * 51]:
            with pytest.raises(ValidationError):
                ServerConfig(server_name=name)

    def test_transport_validation(self):
        assert ServerConfig(transport="streamable_http").transport == "streamable_http"

        with pytest.raises(ValidationError):
            ServerConfig(transport="websocket")

    def test_port_validation(self):
        assert ServerConfig(http_port=8000).http_port == 8000

        for port in [80, 1023, 3306, 65536]:
            with pytest.raises(ValidationError):
                ServerConfig(http_port=port)

    def test_lending_policy_bounds(self):
        with pytest.raises(ValidationError):
            ServerConfig(loan_period_days=0)
        with pytest.raises(ValidationError):
            ServerConfig(daily_late_fee=-0.5)
        with pytest.raises(ValidationError):
            ServerConfig(reservation_wait_days=0)

    def test_database_directory_created(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "loans.db"

        config = ServerConfig(database_path=db_path)

        assert config.database_path.parent.is_dir()
        assert config.get_database_url() == f"sqlite:///{db_path}"

    def test_development_mode(self):
        assert ServerConfig(debug=True).is_development is True
        assert ServerConfig(log_level="DEBUG").is_development is True
        assert ServerConfig().is_development is False


class TestConfigSingleton:
    def test_get_config_returns_same_instance(self):
        assert get_config() is get_config()

    def test_reset_config_rereads_environment(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("LOAN_DESK_LOAN_PERIOD_DAYS", "7")

        reset_config()
        second = get_config()

        assert second is not first
        assert second.loan_period_days == 7
