"""Loan Desk MCP Server - FastMCP Implementation

Serves the library catalog and loan desk over MCP:
- Resources: catalog, member profiles, loans, reservation queues
- Tools: borrow, return, renew, reserve, cancel, search, profile update

Clients connect via stdio (default) or Streamable HTTP.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from loan_desk.config import get_config
from loan_desk.database.session import get_db_manager
from loan_desk.resources import all_resources
from loan_desk.tools import all_tools

# stderr for logs, stdout for MCP protocol
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Loan Desk MCP Server - a library catalog and loan desk. Use resources to "
        "browse books, check availability and view a member's loans, history and "
        "reservations; use tools to borrow, return, renew and reserve books, search "
        "the catalog and update the member profile."
    ),
)

for resource in all_resources:
    uri = resource.get("uri_template", resource.get("uri"))
    if not uri:
        logger.error("Resource missing URI: %s", resource)
        continue

    logger.debug("Registering resource: %s with URI: %s", resource["name"], uri)
    try:
        mcp.resource(
            uri=uri,
            name=resource["name"],
            description=resource["description"],
            mime_type=resource["mime_type"],
        )(resource["handler"])
    except Exception:
        logger.exception("Failed to register resource %s", resource["name"])
        raise

logger.info("Registered %d resources", len(all_resources))

for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))


def handle_shutdown() -> None:
    """Release the database engine on the way out."""
    logger.info("Loan desk shutting down")
    get_db_manager().close()
    logger.info("Loan desk stopped")


def configure_logging() -> None:
    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging on, fastmcp protocol messages included")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)


def run_server() -> None:
    """Run the MCP server on the configured transport.

    Stdio reads JSON-RPC requests from stdin and answers on stdout;
    Streamable HTTP listens on ``http_host:http_port``.
    """
    logger.info(
        "Starting %s v%s on %s transport",
        config.server_name,
        config.server_version,
        config.transport,
    )

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Signal %s received", signum)
        handle_shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("Loan desk ready (%s)", config.transport)
        if config.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(transport="streamable-http", host=config.http_host, port=config.http_port)
    except Exception:
        logger.exception("Loan desk crashed")
        sys.exit(1)


def main() -> None:
    """Main entry point, used by the ``loan-desk-mcp`` script."""
    try:
        configure_logging()

        logger.info("=" * 60)
        logger.info("Loan Desk MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        db_manager = get_db_manager()
        if not db_manager.verify_connection():
            logger.error("Database is not reachable")
            sys.exit(1)
        db_manager.init_database()

        run_server()

    except KeyboardInterrupt:
        logger.info("Interrupted, loan desk stopped")
    except Exception:
        logger.exception("Loan desk failed to start")
        sys.exit(1)


if __name__ == "__main__":
    main()
