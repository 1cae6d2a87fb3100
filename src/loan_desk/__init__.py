"""
Loan Desk MCP Server Package.

A library catalog and loan-management service exposed over MCP.

Key Components:
- models: Pydantic models and the loan/reservation arithmetic
- database: SQLAlchemy schema, sessions and repositories
- config: Configuration management with Pydantic v2
- resources: MCP resources (read-only endpoints)
- tools: MCP tools (operations with side effects)
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
