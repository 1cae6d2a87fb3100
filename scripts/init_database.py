#!/usr/bin/env python3
"""
Initialize the Loan Desk database.

This script:
1. Creates all database tables
2. Optionally loads the fixed sample data or a generated demo library
3. Verifies the database is ready for MCP server use

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data | --demo-data]
"""

import argparse
import logging
import sys

from sqlalchemy import text

from loan_desk.database import get_db_manager
from loan_desk.database.seed import generate_demo_data, load_sample_data

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"books", "users", "loans", "reservations"}


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the Loan Desk MCP Server database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    data_group = parser.add_mutually_exclusive_group()
    data_group.add_argument(
        "--sample-data",
        action="store_true",
        help="Load the small fixed sample data set",
    )
    data_group.add_argument(
        "--demo-data",
        action="store_true",
        help="Generate a larger demo library with Faker",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for --demo-data (default: 42)",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )

    args = parser.parse_args()

    logger.info("Initializing database manager...")
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        logger.info("Creating database schema...")
        db_manager.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            logger.info("Loading sample data...")
            with db_manager.session_scope() as session:
                load_sample_data(session)
        elif args.demo_data:
            logger.info("Generating demo data (seed %d)...", args.seed)
            with db_manager.session_scope() as session:
                generate_demo_data(session, seed=args.seed)

        with db_manager.session_scope() as session:
            result = session.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
            )
            tables = [row[0] for row in result]
            logger.info("Created tables: %s", ", ".join(tables))

            missing_tables = EXPECTED_TABLES - set(tables)
            if missing_tables:
                logger.error("Missing expected tables: %s", missing_tables)
                sys.exit(1)

        logger.info("Database initialization complete!")
        logger.info("The Loan Desk MCP Server is ready to use.")

    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
