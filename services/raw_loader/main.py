"""
Raw Loader Service - Main Entry Point

This is the command-line interface for the raw loader stage.
It can be called directly from the terminal or from Airflow tasks.

Usage:
    python -m services.raw_loader.main [OPTIONS]

Options:
    --config TEXT         Path to pipeline.yml configuration file
    --data-dir TEXT       Override the dataset directory from the config
    --dry-run            Validate source files without writing to database
    --verbose            Enable debug logging
    --help               Show this message and exit

Examples:
    # Load all CSV exports from the configured data directory:
    python -m services.raw_loader.main

    # Validate a different export without touching the database:
    python -m services.raw_loader.main --data-dir /tmp/export --dry-run

Exit Codes:
    0: Success
    2: Fatal error (missing file, header mismatch, database error, etc.)
"""

import argparse
import csv
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from services.common.config_loader import load_pipeline_config
from services.common.database import DatabaseError

from .db_operations import RawLoaderDB
from .sources import RawLoadError, validate_source_files

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Load raw CSV exports into untyped staging tables',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to pipeline.yml configuration file (default: config/pipeline.yml)'
    )

    parser.add_argument(
        '--data-dir',
        type=str,
        default=None,
        dest='data_dir',
        help='Directory holding the CSV export (overrides config)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        dest='dry_run',
        help='Validate source files without writing to database'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def _count_data_rows(path: Path) -> int:
    with open(path, newline='', encoding='utf-8-sig') as f:
        return max(sum(1 for _ in csv.reader(f)) - 1, 0)


def run_raw_loader(
    db: Optional[RawLoaderDB],
    data_dir: str,
    schema: str,
    dry_run: bool = False
) -> dict[str, int]:
    """
    Main raw loader logic.

    Args:
        db: Database interface (may be None for a dry run)
        data_dir: Directory holding the CSV export
        schema: Raw schema name
        dry_run: If True, only validate and count rows

    Returns:
        Mapping of raw table name to row count (loaded, or counted in dry run)

    Raises:
        RawLoadError: If any source file is missing or malformed
        DatabaseError: If the load fails
    """
    start_time = datetime.now(timezone.utc)

    logger.info(
        "Starting raw loader",
        extra={'data_dir': data_dir, 'schema': schema, 'dry_run': dry_run}
    )

    # Fail before any DDL if a single file is off-contract
    files = validate_source_files(data_dir)

    if dry_run:
        counts = {table: _count_data_rows(path) for table, path in files.items()}
        logger.info(f"DRY RUN: Would load {sum(counts.values())} rows into {len(counts)} raw tables")
        return counts

    if db is None:
        raise ValueError("A database interface is required unless dry_run is set")

    counts = db.load_raw_tables(schema, files)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Raw loader completed",
        extra={
            'duration_seconds': duration,
            'tables': len(counts),
            'rows': sum(counts.values()),
        }
    )

    return counts


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the raw loader.

    Returns:
        Exit code (0 = success, 2 = fatal error)
    """
    args = parse_args(argv)

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    try:
        config = load_pipeline_config(args.config)
        data_dir = args.data_dir or config.data_dir

        db = None
        if not args.dry_run:
            database_url = os.getenv('DATABASE_URL')
            if not database_url:
                logger.error("DATABASE_URL environment variable must be set")
                return 2

            logger.info("Connecting to database")
            db = RawLoaderDB(database_url)

        counts = run_raw_loader(
            db=db,
            data_dir=data_dir,
            schema=config.schemas.raw,
            dry_run=args.dry_run
        )

        for table, count in counts.items():
            print(f"{table}: {count} rows")

        logger.info("Raw loader completed successfully")
        return 0

    except RawLoadError as e:
        logger.error(f"Structural load failure: {e}")
        return 2

    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        return 2

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(
            "Unexpected fatal error",
            extra={
                'error': str(e),
                'error_type': type(e).__name__,
            },
            exc_info=True
        )
        return 2


if __name__ == '__main__':
    sys.exit(main())
