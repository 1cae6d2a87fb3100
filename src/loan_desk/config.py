"""Configuration management for the Loan Desk MCP Server.

Settings come from environment variables prefixed with ``LOAN_DESK_`` (or a
``.env`` file) and are validated with Pydantic v2:
1. Server metadata - name and version sent during the MCP handshake
2. Storage - where the SQLite catalog lives
3. Lending policy - loan period, renewal extension, late fee, queue wait
4. Diagnostics - debug flag and log level
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.loan import LoanPolicy


class ServerConfig(BaseSettings):
    """Loan Desk server configuration.

    Every field can be overridden with ``LOAN_DESK_<FIELD_NAME>``.
    """

    model_config = SettingsConfigDict(
        # LOAN_DESK_ prefix keeps us clear of other services' variables
        env_prefix="LOAN_DESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="loan-desk",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/loan_desk.db"),
        description="SQLite database file path",
    )

    # === Transport Configuration ===

    transport: str = Field(
        default="stdio",
        description="Primary transport mechanism",
        pattern=r"^(stdio|streamable_http)$",
    )

    http_host: str = Field(
        default="127.0.0.1",
        description="HTTP server host for Streamable HTTP transport",
    )

    http_port: int = Field(
        default=8080,
        description="HTTP server port for Streamable HTTP transport",
        ge=1024,
        le=65535,
    )

    # === Lending Policy ===

    loan_period_days: int = Field(
        default=14,
        description="Days between borrowing a book and its due date",
        ge=1,
        le=365,
    )

    renewal_period_days: int = Field(
        default=14,
        description="Days added to the due date by each renewal",
        ge=1,
        le=365,
    )

    daily_late_fee: float = Field(
        default=0.50,
        description="Fee charged per whole day a book is returned late",
        ge=0.0,
    )

    reservation_wait_days: int = Field(
        default=7,
        description="Expected days each queued reservation adds to the wait",
        ge=1,
        le=90,
    )

    # === Session ===

    current_user_id: str | None = Field(
        default=None,
        description="Member the front end acts as; defaults to the first registered user",
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging for protocol messages",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        """Server names are shown to clients, keep them short but meaningful."""
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: int) -> int:
        reserved_ports = {22, 25, 80, 443, 3306, 5432}
        if v in reserved_ports:
            raise ValueError(f"Port {v} is commonly reserved, choose another")
        return v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        """Development mode turns on verbose logging and detailed errors."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """Server information sent during the MCP handshake."""
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    @property
    def loan_policy(self) -> LoanPolicy:
        """Lending rules handed to the circulation repository."""
        return LoanPolicy(
            loan_period_days=self.loan_period_days,
            renewal_period_days=self.renewal_period_days,
            daily_late_fee=self.daily_late_fee,
            reservation_wait_days=self.reservation_wait_days,
        )

    def get_database_url(self) -> str:
        """SQLAlchemy URL for the configured database file."""
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
